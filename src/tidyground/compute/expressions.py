"""Expressions executed by compute engine nodes.

The Compute Engine will sometimes need to filter data
or emit new data. This will be performed by nodes that
need to know how the data must be filtered or emitted.

Filters will need a ``predicate``, so an expression that
returns ``true`` or ``false`` for each row that has to be
filtered.

Projections will need an expression that computes the rows
for the projection, for example ``A + B``.

Expressions can be built explicitly combining :class:`FunctionCallExpression`
with column references, or by wrapping a plain Python function
with :class:`CallableExpression` when the logic is easier to
write as code than as a tree of compute functions.
"""

from typing import Any, Callable

import pyarrow as pa

from .. import utils
from .base import Expression


def apply_expression_if_needed(batch: pa.RecordBatch, o: Expression | Any) -> Any:
    """Invoke Apply on expressions when needed

    If the provided object is an Expression,
    it will be applied to the target batch.

    Otherwise it will treat it as if it's
    already the result of an expression
    or a literal value.

    This allows us to apply all arguments
    we receive without having to care if
    they are the data we need or if they
    are the expression resulting in that data.
    """
    if isinstance(o, Expression):
        o = o.apply(batch)
    return o


class FunctionCallExpression(Expression):
    """Call a compute function on its arguments.

    Given a compute function, and a set of arguments
    (other expressions, literals or data), execute
    the function on the provided arguments and return
    the resulting data.

    For example to sum two columns this would be used as::

        FunctionCallExpression(pyarrow.compute.add, ColumnRef("A"), ColumnRef("B"))

    Keyword arguments are forwarded untouched to the function,
    which allows to provide options like ``ignore_case=True``.
    """

    def __init__(self, func: Callable, *args: Expression | Any, **kwargs: Any) -> None:
        """
        :param func: The function accepting the arguments.
        :param *args: The arguments for the function.
        :param **kwargs: Options forwarded to the function.
        """
        self.func = func
        self.args = args
        self.kwargs = kwargs

    def __str__(self) -> str:
        func_qualname = utils.inspect.get_qualname(self.func)
        args = [str(a) for a in self.args]
        args.extend(f"{k}={v!r}" for k, v in self.kwargs.items())
        return f"{func_qualname}({','.join(args)})"

    def __eq__(self, other: object) -> bool:
        return (
            isinstance(other, FunctionCallExpression)
            and other.func == self.func
            and other.args == self.args
            and other.kwargs == self.kwargs
        )

    __hash__ = Expression.__hash__

    def columns(self) -> set[str]:
        found: set[str] = set()
        for arg in self.args:
            if isinstance(arg, Expression):
                found |= arg.columns()
        return found

    def apply(self, batch: pa.RecordBatch) -> pa.Array:
        """Invoke the function resolving all arguments on the recordbatch.

        When the function arguments are expressions themselves,
        this will apply the expressions on the provided recordbatch
        and the resulting data will be used as the arguments for the
        function.
        """
        args = tuple(apply_expression_if_needed(batch, arg) for arg in self.args)
        return self.func(*args, **self.kwargs)


class CallableExpression(Expression):
    """Wrap a Python function receiving the whole batch.

    The function gets the :class:`pyarrow.RecordBatch` and must return
    an array with one value for each row, or a list of python values
    that will be converted to an array::

        CallableExpression(lambda batch: pc.greater(batch["value"], 10))

    As the function is opaque, the columns it reads can't be
    known in advance. When ``columns`` are provided they are
    used to validate the input before running the function.
    """

    def __init__(self, func: Callable[[pa.RecordBatch], Any], columns: list[str] | None = None) -> None:
        self.func = func
        self._columns = set(columns or ())

    def __str__(self) -> str:
        return f"CallableExpression({utils.inspect.get_qualname(self.func)})"

    def columns(self) -> set[str]:
        return set(self._columns)

    def apply(self, batch: pa.RecordBatch) -> pa.Array:
        result = self.func(batch)
        if isinstance(result, (pa.Array, pa.ChunkedArray, pa.Scalar)):
            return result
        return pa.array(result)
