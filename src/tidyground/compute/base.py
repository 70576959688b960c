"""Base classes and interfaces for Compute Engine

This module defines the base components that are
necessary to represent a transformation plan and execute it.
"""

import abc
from typing import Any, Iterable, Iterator

import pyarrow as pa


class UnknownColumnError(KeyError):
    """A column referenced by an expression or a node doesn't exist.

    Subclasses :class:`KeyError` so that code looking up columns
    by name can keep catching the usual error, but the message
    names the missing column and lists the ones that are available.
    """

    def __init__(self, name: str, available: Iterable[str]) -> None:
        self.name = name
        self.available = list(available)
        super().__init__(name)

    def __str__(self) -> str:
        return f"Unknown column {self.name!r}, available columns are: {self.available}"


def ensure_columns(names: Iterable[str], available: Iterable[str]) -> None:
    """Check that all ``names`` are part of ``available`` columns.

    Raises :class:`UnknownColumnError` for the first missing one.

    >>> ensure_columns(["a"], ["a", "b"])
    >>> ensure_columns(["c"], ["a", "b"])
    Traceback (most recent call last):
        ...
    tidyground.compute.base.UnknownColumnError: Unknown column 'c', available columns are: ['a', 'b']
    """
    available = list(available)
    for name in names:
        if name not in available:
            raise UnknownColumnError(name, available)


def combine_batches(batches: list[pa.RecordBatch]) -> pa.RecordBatch:
    """Merge multiple batches sharing the same schema into a single one.

    Categorical columns whose label sets differ across batches
    are unified in the process.
    """
    table = pa.Table.from_batches(batches).unify_dictionaries().combine_chunks()
    combined = table.to_batches()
    if not combined:
        return pa.RecordBatch.from_pylist([], schema=table.schema)
    return combined[0]


class QueryPlanNode(abc.ABC):
    """A node of a transformation plan.

    The plan is represented as a tree
    of nodes. Each node is a step in the execution
    and all previous steps are children of the
    last one.

    For example a simple plan might involve
    loading data and filtering it::

        LoadDataNode -> FilterDataNode(filter)

    That would be a plan where the last step
    is filtering, and the LoadDataNode is a child
    of the filter node.

    Each Node accepts :class:`pyarrow.RecordBatch`
    data as its input and emits a new
    :class:`pyarrow.RecordBatch` as its output.

    The base `QueryPlanNode` class does nothing
    and purely acts as the interface that all nodes
    must implement. Actual work will be done
    in the subclasses.

    For example a simple node that takes data
    and just forwards it as is after printing
    its content can be implemented as::

        class DebugDataNode(QueryPlanNode):
            def __init__(self, child):
                self.child = child

            def batches(self):
                for b in self.child.batches():
                    print(b)
                    yield b

            def __str__(self):
                return f"DebugDataNode()"
    """

    RecordBatchesGenerator = Iterator[pa.RecordBatch]

    @abc.abstractmethod
    def batches(self) -> Iterator[pa.RecordBatch]:
        """Emits the batches for the next node.

        Each node is expected to be able to
        generate data that has to be provided to the next
        node in the plan.

        Usually this happens by consuming data from its
        child nodes, transforming it somehow, and yielding
        it back to the next consumer.
        """
        ...

    @abc.abstractmethod
    def __str__(self) -> str:
        """Human readable representation of the node."""
        ...

    def collect(self) -> pa.Table:
        """Run the plan and gather all the emitted batches in a table.

        Nodes that emit no batches at all produce an empty table.
        """
        batches = list(self.batches())
        if not batches:
            return pa.table({})
        return pa.Table.from_batches(batches)


class Expression(abc.ABC):
    """Expression to apply to a RecordBatch.

    Expressions are some form of operation that
    has to be applied to the data of a :class:`pyarrow.RecordBatch`
    to create new data.

    Typical example of expressions are: A + B
    which is expected to sum column A of the RecordBatch
    to column B of the RecordBatch and return the result.

    As the engine is Column Major, applying an expression
    always results in a new column, thus in a
    :class:`pyarrow.Array` that contains the data
    for that column.
    """

    @abc.abstractmethod
    def apply(self, batch: pa.RecordBatch) -> pa.Array:
        """Apply the expression to a RecordBatch."""
        ...

    @abc.abstractmethod
    def __str__(self) -> str:
        """Human readable representation of the expression."""
        ...

    def columns(self) -> set[str]:
        """Names of the columns the expression reads."""
        return set()

    def __repr__(self) -> str:
        return str(self)


class ColumnRef(Expression):
    """References a column in a record batch.

    When another expression or the engine need
    to operate on a specific column, we will
    need a way to reference that column and its data.

    This expression is aware of the column and when
    applied to a record batch returns the data for
    that column.
    """

    def __init__(self, name: str) -> None:
        """
        :param name: The name of the column being referenced.
        """
        self.name = name

    def apply(self, batch: pa.RecordBatch) -> pa.Array:
        """Get the data for the column."""
        if self.name not in batch.schema.names:
            raise UnknownColumnError(self.name, batch.schema.names)
        return batch.column(self.name)

    def columns(self) -> set[str]:
        return {self.name}

    def __eq__(self, other: object) -> bool:
        return isinstance(other, ColumnRef) and other.name == self.name

    def __hash__(self) -> int:
        return hash(("ColumnRef", self.name))

    def __str__(self) -> str:
        return f"ColumnRef({self.name})"


class Literal(Expression):
    """A constant value.

    Applying a literal always returns the same :class:`pyarrow.Scalar`
    whatever is the batch, compute functions take care of
    broadcasting it against the other arguments.
    """

    def __init__(self, value: Any) -> None:
        """
        :param value: The python value or :class:`pyarrow.Scalar` of the literal.
        """
        if not isinstance(value, pa.Scalar):
            value = pa.scalar(value)
        self.value = value

    def apply(self, batch: pa.RecordBatch) -> pa.Scalar:
        return self.value

    def __eq__(self, other: object) -> bool:
        return isinstance(other, Literal) and other.value.equals(self.value)

    def __hash__(self) -> int:
        return hash(("Literal", self.value.as_py()))

    def __str__(self) -> str:
        return f"Literal({self.value!r})"


col = ColumnRef
lit = Literal
