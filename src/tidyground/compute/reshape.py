"""Plan nodes that reshape data between wide and long form.

The same data can be laid out in two equivalent ways.
In *long* form each row holds a single measurement
and a column tells which variable was measured::

    id, variable, value
    1, x, 10
    1, y, 20
    2, x, 30
    2, y, 40

In *wide* form each variable gets its own column::

    id, x, y
    1, 10, 20
    2, 30, 40

:class:`PivotWiderNode` moves from long to wide form,
while :class:`PivotLongerNode` moves from wide to long form.
When no aggregation is involved, the two are the inverse of each other.
"""

from typing import Any

import pyarrow as pa
import structlog

from .aggregate import Aggregation, aggregation_name, get_aggregation, scalars_to_array
from .base import QueryPlanNode, combine_batches, ensure_columns

log = structlog.get_logger(__name__)


class ReshapeCollisionError(ValueError):
    """Multiple rows would end up in the same cell of the reshaped data.

    Raised by :class:`PivotWiderNode` when no ``values_fn``
    was provided to combine them into a single value.
    """

    def __init__(self, names_from: str, collisions: list[tuple[dict, str, int]]) -> None:
        self.names_from = names_from
        self.collisions = collisions
        details = ", ".join(
            f"{ids} -> {name!r} ({count} rows)" for ids, name, count in collisions[:5]
        )
        more = f" and {len(collisions) - 5} more" if len(collisions) > 5 else ""
        super().__init__(
            f"Values from {names_from!r} are not uniquely identified, "
            f"provide a values_fn to aggregate them: {details}{more}"
        )


class PivotWiderNode(QueryPlanNode):
    """Reshape data from long form to wide form.

    The distinct values of the ``names_from`` column become new
    columns, filled with the values of the ``values_from`` column.
    The new columns are created in order of first appearance of each
    value, or in the order of the labels for categorical columns.

    Rows are identified by the ``id_columns``, when they are not
    provided all the columns that are not ``names_from`` or
    ``values_from`` are used as identifiers.

    When more than one row maps to the same cell, a ``values_fn``
    must be provided to aggregate them, otherwise
    :class:`ReshapeCollisionError` is raised.
    ``values_fn`` can be the name of an aggregation (like ``"mean"``),
    an :class:`Aggregation` class or a list of them. When a list is
    provided the new columns are named ``{function}_{name}``.

    Null values of ``names_from`` go to a column named ``"NA"``,
    so they can't be mixed with the text ``"NA"`` in the same column.

    >>> import pyarrow as pa
    >>> from tidyground.compute import PyArrowTableDataSource
    >>> data = pa.record_batch({
    ...     "id": [1, 1, 2, 2],
    ...     "variable": ["x", "y", "x", "y"],
    ...     "value": [10, 20, 30, 40],
    ... })
    >>> node = PivotWiderNode(["id"], "variable", "value", PyArrowTableDataSource(data))
    >>> next(node.batches()).to_pydict()
    {'id': [1, 2], 'x': [10, 30], 'y': [20, 40]}
    """

    def __init__(
        self,
        id_columns: list[str] | None,
        names_from: str,
        values_from: str,
        child: QueryPlanNode,
        values_fn: "str | type[Aggregation] | list[str | type[Aggregation]] | None" = None,
        values_fill: Any = None,
    ) -> None:
        """
        :param id_columns: Columns identifying each row of the output.
        :param names_from: The column whose values become the new column names.
        :param values_from: The column providing the values of the new columns.
        :param child: The node emitting the data in long form.
        :param values_fn: How to aggregate multiple values that map to the same cell.
        :param values_fill: Value used for cells that have no data, ``None`` means null.
        """
        self.id_columns = id_columns
        self.names_from = names_from
        self.values_from = values_from
        self.child = child
        self.values_fill = values_fill
        self.values_fn = values_fn
        if values_fn is None:
            self.functions = None
        elif isinstance(values_fn, (list, tuple)):
            if not values_fn:
                raise ValueError("values_fn can't be an empty list")
            self.functions = [get_aggregation(fn) for fn in values_fn]
        else:
            self.functions = [get_aggregation(values_fn)]

    def __str__(self) -> str:
        return (
            f"PivotWiderNode(id_columns={self.id_columns}, names_from={self.names_from}, "
            f"values_from={self.values_from}, values_fn={self.values_fn}, {self.child})"
        )

    def batches(self) -> QueryPlanNode.RecordBatchesGenerator:
        """Pivot the data emitted by the child.

        Pivoting requires knowing all the values of ``names_from``
        before the output schema can be known, so all the data
        is accumulated in memory before being reshaped.
        """
        batches = list(self.child.batches())
        if not batches:
            return
        data = combine_batches(batches)

        columns = data.schema.names
        ensure_columns([self.names_from, self.values_from], columns)
        if self.id_columns is None:
            id_columns = [c for c in columns if c not in (self.names_from, self.values_from)]
        else:
            ensure_columns(self.id_columns, columns)
            id_columns = list(self.id_columns)

        destinations = self._destinations(data.column(self.names_from))
        clashing = set(destinations) & set(id_columns)
        if clashing and not isinstance(self.values_fn, (list, tuple)):
            raise ValueError(f"New columns would clash with identifier columns: {sorted(clashing)}")

        # Map each identifier to the output row and each
        # (output row, destination) pair to the source rows.
        rows: dict[tuple, int] = {}
        first_rows: list[int] = []
        cells: dict[tuple[int, str], list[int]] = {}
        id_values = [data.column(c).to_pylist() for c in id_columns]
        raw_names = data.column(self.names_from).to_pylist()
        if None in raw_names and "NA" in raw_names:
            raise ValueError(
                f"Column {self.names_from!r} contains both nulls and \"NA\", "
                "which would both become the \"NA\" column"
            )
        names = [_column_name(v) for v in raw_names]
        for row_index, name in enumerate(names):
            ids = tuple(values[row_index] for values in id_values)
            if ids not in rows:
                rows[ids] = len(first_rows)
                first_rows.append(row_index)
            cells.setdefault((rows[ids], name), []).append(row_index)

        if self.functions is None:
            collisions = [
                (
                    {c: id_values[j][indices[0]] for j, c in enumerate(id_columns)},
                    name,
                    len(indices),
                )
                for (_, name), indices in cells.items()
                if len(indices) > 1
            ]
            if collisions:
                raise ReshapeCollisionError(self.names_from, collisions)

        result = data.select(id_columns).take(pa.array(first_rows, type=pa.int64()))
        for name, values in self._pivoted_columns(data, destinations, cells, len(first_rows)):
            result = result.append_column(name, values)
        log.debug("pivot_wider_completed", rows=result.num_rows, new_columns=destinations)
        yield result

    def _destinations(self, names: pa.Array) -> list[str]:
        """The names of the new columns in the order they should appear."""
        if pa.types.is_dictionary(names.type):
            used = set(names.indices.to_pylist())
            return [
                _column_name(label)
                for idx, label in enumerate(names.dictionary.to_pylist())
                if idx in used
            ] + (["NA"] if names.null_count else [])
        return list(dict.fromkeys(_column_name(v) for v in names.to_pylist()))

    def _pivoted_columns(
        self,
        data: pa.RecordBatch,
        destinations: list[str],
        cells: dict[tuple[int, str], list[int]],
        num_rows: int,
    ) -> list[tuple[str, pa.Array]]:
        values = data.column(self.values_from)
        if self.functions is None:
            if pa.types.is_dictionary(values.type):
                values = values.dictionary_decode()
            pyvalues = values.to_pylist()
            columns = []
            for name in destinations:
                column = [
                    pyvalues[cells[(row, name)][0]] if (row, name) in cells else self.values_fill
                    for row in range(num_rows)
                ]
                columns.append((name, pa.array(column, type=values.type)))
            return columns

        columns = []
        prefix = isinstance(self.values_fn, (list, tuple))
        for function in self.functions:
            aggregation = function(self.values_from)
            for name in destinations:
                aggregated: dict[int, pa.Scalar] = {}
                for row in range(num_rows):
                    indices = cells.get((row, name))
                    if indices is not None:
                        chunk = data.take(pa.array(indices, type=pa.int64()))
                        aggregated[row] = aggregation.reduce([aggregation.compute_chunk(chunk)])
                type_, fill = self._fill_for(scalars_to_array(list(aggregated.values())).type)
                column = pa.array(
                    [aggregated[row].as_py() if row in aggregated else fill for row in range(num_rows)],
                    type=type_,
                )
                column_name = f"{aggregation_name(function)}_{name}" if prefix else name
                columns.append((column_name, column))
        return columns

    def _fill_for(self, type_: pa.DataType) -> tuple[pa.DataType, Any]:
        """The type of an aggregated column and the value filling its empty cells.

        The type comes from the aggregated values, the fill value is
        converted to it and :class:`pyarrow.ArrowInvalid` is raised
        when that would lose information.
        """
        if self.values_fill is None:
            return type_, None
        fill = pa.array([self.values_fill])
        if pa.types.is_null(type_):
            return fill.type, self.values_fill
        return type_, fill.cast(type_)[0].as_py()


class PivotLongerNode(QueryPlanNode):
    """Reshape data from wide form to long form.

    The ``columns`` are stacked into two new columns:
    ``names_to`` holding the name of the column the value
    came from and ``values_to`` holding the value itself.
    All the other columns are kept as identifiers and
    repeated for each stacked value.

    >>> import pyarrow as pa
    >>> from tidyground.compute import PyArrowTableDataSource
    >>> data = pa.record_batch({"id": [1, 2], "x": [10, 30], "y": [20, 40]})
    >>> node = PivotLongerNode(["x", "y"], PyArrowTableDataSource(data), names_to="variable")
    >>> next(node.batches()).to_pydict()
    {'id': [1, 1, 2, 2], 'variable': ['x', 'y', 'x', 'y'], 'value': [10, 20, 30, 40]}
    """

    def __init__(
        self,
        columns: list[str],
        child: QueryPlanNode,
        names_to: str = "name",
        values_to: str = "value",
        drop_nulls: bool = False,
    ) -> None:
        """
        :param columns: The columns to stack.
        :param child: The node emitting the data in wide form.
        :param names_to: Name of the new column holding the stacked column names.
        :param values_to: Name of the new column holding the stacked values.
        :param drop_nulls: Skip the rows where the stacked value is null.
        """
        if not columns:
            raise ValueError("At least one column to pivot is required")
        self.columns = list(columns)
        self.child = child
        self.names_to = names_to
        self.values_to = values_to
        self.drop_nulls = drop_nulls

    def __str__(self) -> str:
        return (
            f"PivotLongerNode(columns={self.columns}, names_to={self.names_to}, "
            f"values_to={self.values_to}, {self.child})"
        )

    def batches(self) -> QueryPlanNode.RecordBatchesGenerator:
        """Stack the columns of each batch emitted by the child.

        Each input row produces one output row for each stacked column,
        output rows follow the order of the input rows.
        """
        for batch in self.child.batches():
            ensure_columns(self.columns, batch.schema.names)
            id_columns = [c for c in batch.schema.names if c not in self.columns]
            clashing = {self.names_to, self.values_to} & set(id_columns)
            if clashing:
                raise ValueError(f"Columns {sorted(clashing)} already exist")

            stacked = self._stacked_values(batch)
            num_rows, num_columns = batch.num_rows, len(self.columns)
            row_indices = pa.array(
                [row for row in range(num_rows) for _ in range(num_columns)], type=pa.int64()
            )
            value_indices = pa.array(
                [col * num_rows + row for row in range(num_rows) for col in range(num_columns)],
                type=pa.int64(),
            )
            result = batch.select(id_columns).take(row_indices)
            result = result.append_column(
                self.names_to, pa.array(self.columns * num_rows, type=pa.string())
            )
            result = result.append_column(self.values_to, stacked.take(value_indices))
            if self.drop_nulls:
                result = result.filter(result.column(self.values_to).is_valid())
            yield result

    def _stacked_values(self, batch: pa.RecordBatch) -> pa.Array:
        """Concatenate the values of all the stacked columns.

        Columns must share the same type, integers and floats
        can be mixed in which case they are all stacked as floats.
        """
        arrays = [batch.column(c) for c in self.columns]
        types = {a.type for a in arrays}
        if len(types) > 1:
            if all(pa.types.is_integer(t) or pa.types.is_floating(t) for t in types):
                arrays = [a.cast(pa.float64()) for a in arrays]
            else:
                raise TypeError(
                    f"Can't combine columns {self.columns} of different types: "
                    f"{sorted(str(t) for t in types)}"
                )
        elif pa.types.is_dictionary(arrays[0].type):
            arrays = [a.dictionary_decode() for a in arrays]
        return pa.concat_arrays(arrays)


def _column_name(value: Any) -> str:
    """Convert a value to the name of a column."""
    if value is None:
        return "NA"
    return str(value)

