"""Plan nodes that implement filtering of rows.

A common request in analyses is to filter the data to
pick only the rows that respect a specific condition.

This module implements the basic filtering capabilities.
"""

import pyarrow as pa
import pyarrow.compute as pc

from .base import QueryPlanNode, ensure_columns
from .expressions import Expression


class FilterNode(QueryPlanNode):
    """Filter data based on a predicate expression.

    The filter expects an expression that when applied
    to the batch of data being filtered returns ``true``
    or ``false`` for each row in the data to mark which
    rows have to be preserved and which rows have to be discarded.

    Rows for which the predicate is ``null`` are discarded.

    >>> import pyarrow as pa
    >>> import pyarrow.compute as pc
    >>> from tidyground.compute import col, lit, FunctionCallExpression, PyArrowTableDataSource
    >>> data = pa.record_batch({"values": [1, 2, 3, 4, 5]})
    >>> predicate = FunctionCallExpression(pc.greater, col("values"), lit(3))
    >>> next(FilterNode(predicate, PyArrowTableDataSource(data)).batches()).to_pydict()
    {'values': [4, 5]}
    """

    def __init__(self, expression: Expression, child: QueryPlanNode) -> None:
        """
        :param expression: The predicate expression to filter with.
        :param child: The node emitting the data to be filtered.
        """
        self.expression = expression
        self.child = child

    def __str__(self) -> str:
        return f"FilterNode(filter={self.expression}, child={self.child})"

    def batches(self) -> QueryPlanNode.RecordBatchesGenerator:
        """Apply the filtering to the child node.

        For each recordbatch yielded by the child node,
        apply the expression and get back a mask
        (an array of only true/false values).

        Based on the mask filter the rows of the batch
        and return only those matching the filter.
        """
        for batch in self.child.batches():
            ensure_columns(self.expression.columns(), batch.schema.names)
            mask = self.expression.apply(batch)
            if isinstance(mask, pa.Scalar):
                # Constant predicates like ``TRUE`` apply to all rows.
                mask_type = pa.bool_() if pa.types.is_null(mask.type) else mask.type
                mask = pa.array([mask.as_py()] * batch.num_rows, type=mask_type)
            if not pa.types.is_boolean(mask.type):
                raise TypeError(
                    f"Filter predicate must produce booleans, got {mask.type} from {self.expression}"
                )
            yield batch.filter(pc.fill_null(mask, False))
