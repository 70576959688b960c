"""Plan nodes that implement projection of columns.

A common request in analyses is to select specific columns,
add new columns computed from expressions, rename columns
or get rid of the ones that are not needed.

This module implements those column level capabilities.
"""

import pyarrow as pa

from .base import QueryPlanNode, ensure_columns
from .expressions import Expression, apply_expression_if_needed


class ProjectNode(QueryPlanNode):
    """Project data by selecting specific columns and computing expressions.

    The projection expects a list of column names to select and a dictionary
    of column names and expressions to project new columns.

    When a projected column has the same name of an existing one,
    the existing column is replaced in place.

    >>> import pyarrow as pa
    >>> import pyarrow.compute as pc
    >>> from tidyground.compute import col, lit, FunctionCallExpression, PyArrowTableDataSource
    >>> data = pa.record_batch({"a": [1, 2, 3], "b": [4, 5, 6]})
    >>> next(ProjectNode(["a"], {"ab_sum": FunctionCallExpression(pc.add, col("a"), col("b"))},
    ...                  PyArrowTableDataSource(data)).batches()).to_pydict()
    {'a': [1, 2, 3], 'ab_sum': [5, 7, 9]}
    """

    def __init__(
        self,
        select: list[str] | None,
        project: dict[str, Expression] | None,
        child: QueryPlanNode,
    ) -> None:
        """
        :param select: The list of column names to select.
                       ``None`` means select all columns.
                       ``[]`` means select only the projected columns.
        :param project: The dict {name: Expression} to project new columns.
        :param child: The node emitting the data to be projected.
        """
        self.select = select
        self.project = project or {}
        self.child = child

        if self.select is None:
            # No selection was provided, we will select all columns
            self.restrict_columns = None
        else:
            # This is the list of columns we want to keep,
            # in case select=[] it will only provide the project columns.
            self.restrict_columns = self.select + [
                name for name in self.project if name not in self.select
            ]

    def __str__(self) -> str:
        return f"ProjectNode(select={self.select}, project={self.project}, child={self.child})"

    def batches(self) -> QueryPlanNode.RecordBatchesGenerator:
        """Apply the projection to the child node.

        For each recordbatch yielded by the child node,
        sequentially apply the expressions to project new columns
        and then select the requested columns.

        Expressions are applied in order, so an expression
        can refer to a column projected by a previous one.
        """
        for batch in self.child.batches():
            if self.select:
                ensure_columns(self.select, list(batch.schema.names) + list(self.project))
            for name, expr in self.project.items():
                data = apply_expression_if_needed(batch, expr)
                if isinstance(data, pa.Scalar):
                    data = pa.array([data.as_py()] * batch.num_rows, type=data.type)
                elif isinstance(data, pa.ChunkedArray):
                    data = data.combine_chunks()
                elif not isinstance(data, pa.Array):
                    data = pa.array([data] * batch.num_rows)
                if len(data) != batch.num_rows:
                    raise ValueError(
                        f"Column {name!r} has {len(data)} values, expected {batch.num_rows}"
                    )
                if name in batch.schema.names:
                    batch = batch.set_column(batch.schema.get_field_index(name), name, data)
                else:
                    batch = batch.append_column(name, data)

            if self.restrict_columns is not None:
                batch = batch.select(self.restrict_columns)

            yield batch


class RenameNode(QueryPlanNode):
    """Rename columns preserving their position.

    >>> import pyarrow as pa
    >>> from tidyground.compute import PyArrowTableDataSource
    >>> data = pa.record_batch({"a": [1], "b": [2]})
    >>> next(RenameNode({"a": "x"}, PyArrowTableDataSource(data)).batches()).schema.names
    ['x', 'b']
    """

    def __init__(self, mapping: dict[str, str], child: QueryPlanNode) -> None:
        """
        :param mapping: The ``{old_name: new_name}`` renames to apply.
        :param child: The node emitting the data to be renamed.
        """
        self.mapping = mapping
        self.child = child

    def __str__(self) -> str:
        return f"RenameNode(mapping={self.mapping}, child={self.child})"

    def batches(self) -> QueryPlanNode.RecordBatchesGenerator:
        for batch in self.child.batches():
            ensure_columns(self.mapping, batch.schema.names)
            names = [self.mapping.get(name, name) for name in batch.schema.names]
            if len(set(names)) != len(names):
                raise ValueError(f"Renaming would lead to duplicate columns: {names}")
            yield batch.rename_columns(names)


class DropNode(QueryPlanNode):
    """Remove columns from the data."""

    def __init__(self, columns: list[str], child: QueryPlanNode) -> None:
        """
        :param columns: The names of the columns to remove.
        :param child: The node emitting the data.
        """
        self.columns = columns
        self.child = child

    def __str__(self) -> str:
        return f"DropNode(columns={self.columns}, child={self.child})"

    def batches(self) -> QueryPlanNode.RecordBatchesGenerator:
        for batch in self.child.batches():
            ensure_columns(self.columns, batch.schema.names)
            yield batch.select(
                [name for name in batch.schema.names if name not in self.columns]
            )
