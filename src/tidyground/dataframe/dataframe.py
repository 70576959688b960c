"""The Dataframe object itself."""
from typing import Any, Callable, Self

import pyarrow as pa

from .. import io, utils
from ..compute import (
  AggregateNode,
  CSVDataSource,
  DropNode,
  FilterNode,
  NestNode,
  PaginateNode,
  PivotLongerNode,
  PivotWiderNode,
  ProjectNode,
  PyArrowTableDataSource,
  RenameNode,
  SortNode,
  UnnestNode,
)
from ..compute.aggregate import Aggregation
from ..compute.base import Expression, Literal, QueryPlanNode
from ..compute.datasources import DataSourceNode
from ..config import get_settings
from ..expr import compile_predicate
from ..summary import SummarySpec, parse_summary


class Dataframe:
  """Data structure that handles data in rows and columns.

  The Dataframe object allows to represent in-memory data
  and perform transformations over it.

  The tidyground dataframe object is lazy, which means that
  any transformation or analysis will be applied only when the
  ``.collect()`` method will be invoked and no data is kept
  in memory until that moment (unless it already was).

  >>> import pyarrow as pa
  >>> df = Dataframe(pa.table({"group": ["A", "A", "B"], "value": [1, 2, 3]}))
  >>> df.filter("value > 1").group_by("group").summarise("sum:value").to_arrow().to_pydict()
  {'group': ['A', 'B'], 'sum_value': [2, 3]}
  """
  def __init__(self, node_or_table: QueryPlanNode|pa.Table|pa.RecordBatch) -> None:
    """
    :param node_or_table: A compute engine node expected to emit
                          the data for the dataframe or a `pyarrow.Table`.
    """
    if isinstance(node_or_table, (pa.Table, pa.RecordBatch)):
      node_or_table = PyArrowTableDataSource(node_or_table)

    if not isinstance(node_or_table, QueryPlanNode):
      raise ValueError("Invalid input, expected a QueryPlanNode or a PyArrow Table")

    self.node = node_or_table

  @classmethod
  def open_csv(cls, filename: str, **options: Any) -> Self:
    """Open a CSV file and create a Dataframe out of its data.

    :param filename: The path to a local CSV file.
    :param options: Reading options accepted by :class:`tidyground.compute.CSVDataSource`
                    like ``delimiter``, ``decimal_point``, ``skip_rows``, ``n_max``.
    """
    if options.get("block_size") is None:
      options["block_size"] = get_settings().csv_block_size
    return cls(CSVDataSource(filename, **options))

  @property
  def columns(self) -> list[str]:
    """The names of the columns of the dataframe.

    Data sources know their columns in advance, for
    any other transformation the first batch is computed.
    """
    if isinstance(self.node, DataSourceNode):
      return self.node.poll_schema().names
    for batch in self.node.batches():
      return batch.schema.names
    return []

  def filter(self, predicate: Expression|str|Callable) -> Self:
    """Apply a filter to the data and return a new Dataframe.

    The returned dataframe will only contain the data that
    matches the filter predicate.

    :param predicate: The expression representing the predicate.
                      for example ``"A > B"``, or a function receiving
                      each batch and returning a boolean mask.
    """
    return self.__class__(FilterNode(compile_predicate(predicate), self.node))

  def select(self, *columns: str) -> Self:
    """Keep only the provided columns, in the order they are provided."""
    return self.__class__(ProjectNode(list(columns), None, self.node))

  def mutate(self, **columns: Expression|str|Callable|Any) -> Self:
    """Add or replace columns computed from the existing ones.

    >>> df.mutate(double="value * 2")  # doctest: +SKIP

    Each new column is an expression, an expression string,
    a function receiving the batch or a constant value.
    """
    project = {}
    for name, value in columns.items():
      if isinstance(value, (str, Expression)) or callable(value):
        project[name] = compile_predicate(value)
      else:
        project[name] = Literal(value)
    return self.__class__(ProjectNode(None, project, self.node))

  def rename(self, mapping: dict[str, str]|None = None, **renames: str) -> Self:
    """Rename columns, given as ``{old_name: new_name}`` or ``old_name=new_name``."""
    return self.__class__(RenameNode({**(mapping or {}), **renames}, self.node))

  def drop(self, *columns: str) -> Self:
    """Remove the provided columns."""
    return self.__class__(DropNode(list(columns), self.node))

  def arrange(self, *columns: str, descending: bool|list[bool] = False) -> Self:
    """Sort the rows by the provided columns.

    :param descending: One flag for all the columns or one for each column.
    """
    if isinstance(descending, bool):
      descending = [descending] * len(columns)
    return self.__class__(SortNode(list(columns), list(descending), self.node))

  def head(self, n: int = 5) -> Self:
    """Keep only the first ``n`` rows."""
    return self.__class__(PaginateNode(0, n, self.node))

  def group_by(self, *keys: str) -> "GroupedDataframe":
    """Group the rows by the provided columns.

    The grouping is applied by the next ``summarise`` or ``nest`` call.
    """
    return GroupedDataframe(self, list(keys))

  def pivot_wider(
    self,
    names_from: str,
    values_from: str,
    id_columns: list[str]|None = None,
    values_fn: str|type[Aggregation]|list|None = None,
    values_fill: Any = None,
  ) -> Self:
    """Spread the values of a column into multiple columns.

    See :class:`tidyground.compute.PivotWiderNode`.
    """
    return self.__class__(PivotWiderNode(
      id_columns, names_from, values_from, self.node,
      values_fn=values_fn, values_fill=values_fill
    ))

  def pivot_longer(
    self,
    columns: list[str],
    names_to: str = "name",
    values_to: str = "value",
    drop_nulls: bool = False,
  ) -> Self:
    """Stack multiple columns into name and value pairs.

    See :class:`tidyground.compute.PivotLongerNode`.
    """
    return self.__class__(PivotLongerNode(
      list(columns), self.node, names_to=names_to, values_to=values_to, drop_nulls=drop_nulls
    ))

  def nest(self, *keys: str, column: str = "data") -> Self:
    """Pack all the columns except the keys into a nested column."""
    return self.__class__(NestNode(list(keys), self.node, column=column))

  def unnest(self, column: str = "data") -> Self:
    """Expand a nested column back into rows and columns."""
    return self.__class__(UnnestNode(column, self.node))

  def collect(self) -> Self:
    """Collect all data of the dataframe in memory.

    Returns a new Dataframe that has all data from the
    previous dataframe eagerly loaded in memory.
    """
    return self.__class__(self.to_arrow())

  def to_arrow(self) -> pa.Table:
    """Collect all the data and return a pyarrow.Table"""
    return self.node.collect()

  def write_csv(self, filename: str, **options: Any) -> None:
    """Save the data of the dataframe to a CSV file.

    Accepts the options of :func:`tidyground.io.write_csv`.
    """
    io.write_csv(self.node, filename, **options)

  def __str__(self) -> str:
    return utils.tabulate.tabulate(self.to_arrow())

  def __repr__(self) -> str:
    return f"<Dataframe {self.node}>"


class GroupedDataframe:
  """A Dataframe with grouping keys waiting to be summarised.

  Created by :meth:`Dataframe.group_by`.
  """
  def __init__(self, df: Dataframe, keys: list[str]) -> None:
    self.df = df
    self.keys = keys

  def summarise(self, *summaries: SummarySpec, **named: str|tuple) -> Dataframe:
    """Compute summaries for each group.

    Summaries are provided as ``"function:column"`` strings or ``(function, column)``
    pairs, named after the function and column, or as keyword arguments where
    the keyword is the output name::

      df.group_by("group").summarise("mean:value", total=("sum", "value"))
    """
    parsed = [parse_summary(s) for s in summaries]
    for name, summary in named.items():
      function, column = summary.split(":", 1) if isinstance(summary, str) else summary
      parsed.append(parse_summary((function, column, name)))
    aggregations: dict = {}
    for name, aggregation in parsed:
      if name in aggregations:
        raise ValueError(f"Duplicate summary name: {name}")
      aggregations[name] = aggregation
    return self.df.__class__(AggregateNode(self.keys, aggregations, self.df.node))

  summarize = summarise

  def nest(self, column: str = "data") -> Dataframe:
    """One row for each group, with the other columns packed in a nested column."""
    return self.df.nest(*self.keys, column=column)
