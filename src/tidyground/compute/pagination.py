"""Support limiting or skipping data in a plan.

Implements nodes whose purpose is to slice the data
emitted by a plan. Discarding the rows that
are not part of the selected slice of data.

This is what powers ``Dataframe.head`` and the
row limit when reading files.
"""

from .base import QueryPlanNode


class PaginateNode(QueryPlanNode):
    """Emit only one page of the received data.

    Given a starting index and a length, only emit
    length rows after the starting index is reached.

    For example if ``offset=1`` and ``length=1``
    only the second row will be emitted::

        0: skip because < offset
        1: emit
        2: skip because > length=1 and one row was already emitted.

    When ``length`` is ``None`` all rows after offset are emitted.
    """

    def __init__(self, offset: int, length: int | None, child: QueryPlanNode) -> None:
        """
        :param offset: From which row to take data, first row is 0.
        :param length: How many rows to take after offset was reached.
        :param child: the node from which to consume the rows.
        """
        if offset < 0 or (length is not None and length < 0):
            raise ValueError("Offset and length must be positive numbers")
        self.offset = offset
        self.length = length
        self.end = None if length is None else offset + length
        self.child = child

    def __str__(self) -> str:
        end = "" if self.end is None else self.end
        return f"PaginateNode({self.offset}:{end}, {self.child})"

    def batches(self) -> QueryPlanNode.RecordBatchesGenerator:
        """Apply the pagination to the child node and emit the rows.

        Consume rows from the child node skipping those until we
        reach offset. Once offset is reached start yielding rows
        until length is reached.

        Subsequent rows are never consumed, so the child might
        not get exhausted, the child generator is closed
        explicitly to release any resource it holds.
        """
        if self.length == 0:
            return

        consumed_rows = 0  # keep track of how many rows we have already seen

        batches_generator = self.child.batches()
        for batch in batches_generator:
            batch_size = batch.num_rows

            # Keep discarding batches until we get to the batch that
            # has the rows _after_ offset.
            if consumed_rows + batch_size <= self.offset:
                consumed_rows += batch_size
                continue

            start_in_batch = max(0, self.offset - consumed_rows)
            if self.end is None:
                rows_in_this_batch = batch_size - start_in_batch
            else:
                remaining_rows = self.end - consumed_rows - start_in_batch
                rows_in_this_batch = min(batch_size - start_in_batch, remaining_rows)
            if rows_in_this_batch > 0:
                yield batch.slice(start_in_batch, rows_in_this_batch)
            consumed_rows += batch_size
            if self.end is not None and consumed_rows >= self.end:
                batches_generator.close()
                break
