"""Plan nodes that nest and unnest data.

Nesting packs the rows that share the same keys
into a single cell, so that each partition of
the data sits next to its key as a small table of its own::

    group, data
    A,     [{id: 1, value: 10}, {id: 2, value: 20}]
    B,     [{id: 3, value: 30}, {id: 4, value: 40}]

This is convenient to compute something for each partition,
like fitting a model, by mapping a function over the cells
converted to record batches with :func:`nested_batches`.

Nested cells are stored as a list of structs column.
"""

import pyarrow as pa
import pyarrow.compute as pc

from .aggregate import group_indices
from .base import QueryPlanNode, combine_batches, ensure_columns


class NestNode(QueryPlanNode):
    """Pack all the non key columns in a nested column.

    >>> import pyarrow as pa
    >>> from tidyground.compute import PyArrowTableDataSource
    >>> data = pa.record_batch({"group": ["A", "A", "B"], "value": [10, 20, 30]})
    >>> next(NestNode(["group"], PyArrowTableDataSource(data)).batches()).to_pydict()
    {'group': ['A', 'B'], 'data': [[{'value': 10}, {'value': 20}], [{'value': 30}]]}
    """

    def __init__(self, keys: list[str], child: QueryPlanNode, column: str = "data") -> None:
        """
        :param keys: The columns identifying each partition.
        :param child: The node emitting the data to nest.
        :param column: The name of the new nested column.
        """
        if column in keys:
            raise ValueError(f"Nested column {column!r} can't be one of the keys")
        self.keys = list(keys)
        self.child = child
        self.column = column

    def __str__(self) -> str:
        return f"NestNode(keys={self.keys}, column={self.column}, {self.child})"

    def batches(self) -> QueryPlanNode.RecordBatchesGenerator:
        batches = list(self.child.batches())
        if not batches:
            return
        data = combine_batches(batches)
        ensure_columns(self.keys, data.schema.names)
        nested_columns = [c for c in data.schema.names if c not in self.keys]
        if not nested_columns:
            raise ValueError("There are no columns left to nest")

        groups = group_indices(data, self.keys)
        order: list[int] = []
        offsets = [0]
        first_rows = []
        for indices in groups.values():
            if indices:
                first_rows.append(indices[0])
            order.extend(indices)
            offsets.append(len(order))

        rows = pa.StructArray.from_arrays(
            [data.column(c) for c in nested_columns],
            fields=[data.schema.field(c) for c in nested_columns],
        ).take(pa.array(order, type=pa.int64()))
        nested = pa.ListArray.from_arrays(pa.array(offsets, type=pa.int32()), rows)
        if not self.keys:
            yield pa.RecordBatch.from_arrays([nested], names=[self.column])
            return

        result = data.select(self.keys).take(pa.array(first_rows, type=pa.int64()))
        yield result.append_column(self.column, nested)


class UnnestNode(QueryPlanNode):
    """Expand a nested column back to one row for each nested row.

    The key columns are repeated for each of the nested rows,
    rows whose nested cell is empty or null are discarded.
    """

    def __init__(self, column: str, child: QueryPlanNode) -> None:
        """
        :param column: The nested column to expand.
        :param child: The node emitting the nested data.
        """
        self.column = column
        self.child = child

    def __str__(self) -> str:
        return f"UnnestNode(column={self.column}, {self.child})"

    def batches(self) -> QueryPlanNode.RecordBatchesGenerator:
        for batch in self.child.batches():
            ensure_columns([self.column], batch.schema.names)
            nested = batch.column(self.column)
            if not (pa.types.is_list(nested.type) and pa.types.is_struct(nested.type.value_type)):
                raise TypeError(f"Column {self.column!r} is not a nested column: {nested.type}")

            parents = pc.list_parent_indices(nested)
            rows = pc.list_flatten(nested)
            result = batch.select(
                [c for c in batch.schema.names if c != self.column]
            ).take(parents)
            struct_type = nested.type.value_type
            for idx, values in enumerate(rows.flatten()):
                name = struct_type.field(idx).name
                if name in result.schema.names:
                    raise ValueError(f"Unnesting would duplicate column {name!r}")
                result = result.append_column(struct_type.field(idx), values)
            yield result


def nested_batches(nested: pa.Array | pa.ChunkedArray) -> list[pa.RecordBatch | None]:
    """Convert each cell of a nested column to a :class:`pyarrow.RecordBatch`.

    Null cells are returned as ``None``.
    """
    if isinstance(nested, pa.ChunkedArray):
        nested = nested.combine_chunks()
    result = []
    for cell in nested:
        if not cell.is_valid:
            result.append(None)
        else:
            result.append(pa.RecordBatch.from_struct_array(cell.values))
    return result
