"""Summaries described by plain data.

:func:`custom_summary` filters rows, groups them and computes
aggregations, all described by values received at runtime
instead of code written in advance::

    >>> import pyarrow as pa
    >>> data = pa.table({
    ...     "id": [1, 2, 3, 4],
    ...     "group": ["A", "A", "B", "B"],
    ...     "value": [10, 20, 30, 40],
    ... })
    >>> custom_summary(data, group_by=["group"], summaries=["mean:value"]).to_pydict()
    {'group': ['A', 'B'], 'mean_value': [15.0, 35.0]}

Each summary is one of:

- a ``"function:column"`` string,
- a ``(function, column)`` pair,
- a ``(function, column, name)`` triple.

Where the function is the name of an aggregation (see :data:`tidyground.compute.AGGREGATIONS`)
or an :class:`tidyground.compute.Aggregation` subclass. When the name is not
provided the output column is named ``{function}_{column}``.

Zero, one or more grouping columns and summaries are accepted,
they all go through the same path. Columns are checked against
the data before anything is computed and unknown ones
raise :class:`tidyground.compute.UnknownColumnError`.
"""

from typing import Any, Callable, Iterable, Sequence

import pyarrow as pa
import structlog

from .compute.aggregate import AggregateNode, Aggregation, aggregation_name, get_aggregation
from .compute.base import Expression, QueryPlanNode, ensure_columns
from .compute.datasources import DataSourceNode, PyArrowTableDataSource
from .compute.filtering import FilterNode
from .expr import compile_predicate

log = structlog.get_logger(__name__)

SummarySpec = str | tuple[str | type[Aggregation], str] | tuple[str | type[Aggregation], str, str]


def parse_summary(summary: SummarySpec) -> tuple[str, Aggregation]:
    """Convert a summary description into its output name and aggregation.

    >>> parse_summary("sum:value")
    ('sum_value', SumAggregation(value))
    >>> parse_summary(("mean", "value", "avg"))
    ('avg', MeanAggregation(value))
    """
    if isinstance(summary, str):
        function, sep, column = summary.partition(":")
        if not sep or not function or not column:
            raise ValueError(f"Invalid summary {summary!r}, expected 'function:column'")
        name = None
    elif isinstance(summary, (tuple, list)) and len(summary) in (2, 3):
        function, column, *rest = summary
        name = rest[0] if rest else None
    else:
        raise ValueError(
            f"Invalid summary {summary!r}, expected 'function:column', "
            "(function, column) or (function, column, name)"
        )
    aggregation = get_aggregation(function)
    if name is None:
        name = f"{aggregation_name(function)}_{column}"
    return name, aggregation(column)


def _source(data: Any) -> tuple[QueryPlanNode, list[str]]:
    """Provide a plan node for the data and the columns it will emit."""
    node = getattr(data, "node", data)
    if isinstance(node, (pa.Table, pa.RecordBatch)):
        node = PyArrowTableDataSource(node)
    if isinstance(node, DataSourceNode):
        return node, node.poll_schema().names
    if isinstance(node, QueryPlanNode):
        # Intermediate nodes can't tell their columns in advance,
        # so their data is materialized before building the summary.
        table = node.collect()
        return PyArrowTableDataSource(table), table.column_names
    raise TypeError(
        f"Unsupported data {type(data).__name__}, expected a Table, RecordBatch, Dataframe or plan node"
    )


def build_summary_plan(
    data: Any,
    filter: str | Expression | Callable | None = None,
    group_by: Sequence[str] = (),
    summaries: Iterable[SummarySpec] = (),
) -> QueryPlanNode:
    """Build the plan computing a summary, without running it.

    Accepts the same arguments as :func:`custom_summary`.
    """
    node, columns = _source(data)
    if isinstance(group_by, str):
        group_by = [group_by]
    group_by = list(group_by)

    aggregations: dict[str, Aggregation] = {}
    for summary in summaries:
        name, aggregation = parse_summary(summary)
        if name in aggregations:
            raise ValueError(f"Duplicate summary name: {name}")
        aggregations[name] = aggregation

    predicate = compile_predicate(filter) if filter is not None else None
    ensure_columns(predicate.columns() if predicate is not None else (), columns)
    ensure_columns(group_by, columns)
    ensure_columns((a.column for a in aggregations.values()), columns)

    if predicate is not None:
        node = FilterNode(predicate, node)
    plan = AggregateNode(group_by, aggregations, node)
    log.debug("summary_planned", plan=str(plan))
    return plan


def custom_summary(
    data: Any,
    filter: str | Expression | Callable | None = None,
    group_by: Sequence[str] = (),
    summaries: Iterable[SummarySpec] = (),
) -> pa.Table:
    """Filter the data, group it and compute the summaries.

    :param data: A :class:`pyarrow.Table`, :class:`pyarrow.RecordBatch`,
                 :class:`tidyground.dataframe.Dataframe` or plan node.
    :param filter: Predicate selecting the rows to summarise. An expression
                   string like ``"value > 10"``, an :class:`Expression` or a function
                   receiving each batch and returning a boolean mask.
    :param group_by: The names of the columns to group by.
    :param summaries: The summaries to compute.
    """
    group_by = [group_by] if isinstance(group_by, str) else list(group_by)
    summaries = list(summaries)
    plan = build_summary_plan(data, filter=filter, group_by=group_by, summaries=summaries)
    result = plan.collect()
    if result.num_columns == 0 and (group_by or summaries):
        # The input had no batches at all, provide the expected columns anyway.
        names = list(group_by) + list(plan.aggregations)
        result = pa.table({name: pa.array([], type=pa.null()) for name in names})
    return result
