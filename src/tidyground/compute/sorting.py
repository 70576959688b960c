"""Plan nodes that perform sorting of data.

When computing ranks or looking for most significant
values, it's often necessary to sort the data based
on one or more columns.

Categorical columns are sorted by the order of their
labels, not alphabetically, so that changing the order
of the labels of a categorical column changes how
the rows are arranged.
"""

import pyarrow as pa
import pyarrow.compute as pc

from .base import QueryPlanNode, ensure_columns


class SortNode(QueryPlanNode):
    """Sort data in-memory based on one or more columns.

    The node expects a list of columns and a list of
    sort directions. The data will be sorted based on
    the columns in the order they are provided.

    The sort directions are used to specify if the
    sorting should be ascending or descending.
    Null values are always placed at the end.

    >>> import pyarrow as pa
    >>> from tidyground.compute import PyArrowTableDataSource
    >>> data = pa.record_batch({"values": [1, 2, 3, 4, 5]})
    >>> # Sort the data in descending order
    >>> sort = SortNode(["values"], [True], PyArrowTableDataSource(data))
    >>> next(sort.batches()).to_pydict()
    {'values': [5, 4, 3, 2, 1]}
    """

    def __init__(
        self, keys: list[str], descending: list[bool], child: QueryPlanNode
    ) -> None:
        """
        :param keys: The columns to sort by in the order they should be sorted.
        :param descending: If each columns should be sorted in a descending order.
        :param child: The node emitting the data to be sorted.
        """
        if len(keys) != len(descending):
            raise ValueError("Keys and descending must have the same length")

        self.sorting = list(
            zip(keys, ("descending" if desc else "ascending" for desc in descending))
        )
        self.child = child

    def __str__(self) -> str:
        return f"SortNode(sorting={self.sorting}, {self.child})"

    def batches(self) -> QueryPlanNode.RecordBatchesGenerator:
        """Sort the data emitted by the child node.

        Batches provided by child node are accumulated
        until they are all loaded in memory, than they
        are merged and sorted as an unique table.
        """
        batches = list(self.child.batches())
        if not batches:
            return

        # The process converts the batches to tables
        # as converting to and from tables is a zero-copy
        # operation and tables can be concatenated at no cost
        # when promote_options is set to none as they are based on ChunkedArrays.
        table = pa.concat_tables(
            [pa.table(batch) for batch in batches], promote_options="none"
        )
        ensure_columns([key for key, _ in self.sorting], table.column_names)
        table = table.unify_dictionaries().combine_chunks()
        indices = pc.sort_indices(
            self._sort_keys_table(table),
            sort_keys=[(f"k{idx}", order) for idx, (_, order) in enumerate(self.sorting)],
            null_placement="at_end",
        )
        table = table.take(indices)
        # to_batches is a zero-copy operation when maximum chunk size is None
        yield from table.combine_chunks().to_batches()

    def _sort_keys_table(self, table: pa.Table) -> pa.Table:
        """Build the table of values the rows have to be sorted by.

        Categorical columns are replaced by the position
        of each row label in the label set.
        """
        keys = {}
        for idx, (name, _) in enumerate(self.sorting):
            column = table.column(name).combine_chunks()
            if pa.types.is_dictionary(column.type):
                column = column.indices
            keys[f"k{idx}"] = column
        return pa.table(keys)
