"""Compile expression ASTs into compute engine expressions.

The :class:`ExpressionCompiler` traverses the AST produced by
:class:`tidyground.expr.parser.ExpressionParser` and builds
the corresponding tree of :class:`tidyground.compute.FunctionCallExpression`,
:class:`tidyground.compute.ColumnRef` and :class:`tidyground.compute.Literal`.

Operators and functions are resolved through ``FUNCTIONS_MAP``,
mostly mapping them to :mod:`pyarrow.compute` functions.
Logical operators follow Kleene logic, so ``NULL OR TRUE`` is ``TRUE``.
"""

from typing import Any, Callable

import pyarrow as pa
import pyarrow.compute as pc

from ..compute.base import ColumnRef, Expression, Literal
from ..compute.expressions import CallableExpression, FunctionCallExpression
from .parser import parse
from .tokenize import ExpressionError


def _decoded(value: Any) -> Any:
    """Decode categorical values to their labels, leave everything else as is."""
    if isinstance(value, (pa.Array, pa.ChunkedArray)) and pa.types.is_dictionary(
        value.type
    ):
        return value.cast(value.type.value_type)
    return value


def _decoding(func: Callable) -> Callable:
    """Wrap a compute function so categorical arguments are compared by label."""

    def wrapper(*args: Any) -> Any:
        return func(*(_decoded(a) for a in args))

    wrapper.__qualname__ = func.__name__
    wrapper.__module__ = "pyarrow.compute"
    return wrapper


def true_divide(left: Any, right: Any) -> Any:
    """Divide always producing floating point results, like ``5 / 2 = 2.5``."""
    return pc.divide(pc.cast(left, pa.float64()), pc.cast(right, pa.float64()))


def round_(value: Any, ndigits: Any = 0) -> Any:
    if isinstance(ndigits, pa.Scalar):
        ndigits = ndigits.as_py()
    return pc.round(value, ndigits=int(ndigits))


def str_detect(value: Any, pattern: Any) -> Any:
    if isinstance(pattern, pa.Scalar):
        pattern = pattern.as_py()
    return pc.match_substring_regex(_decoded(value), pattern)


def starts_with(value: Any, prefix: Any) -> Any:
    if isinstance(prefix, pa.Scalar):
        prefix = prefix.as_py()
    return pc.starts_with(_decoded(value), prefix)


def ends_with(value: Any, suffix: Any) -> Any:
    if isinstance(suffix, pa.Scalar):
        suffix = suffix.as_py()
    return pc.ends_with(_decoded(value), suffix)


def is_in(value: Any, *candidates: Any) -> Any:
    """Check membership of each value in the literal candidates.

    Used as ``is_in(group, 'A', 'B')``.
    """
    if not candidates:
        raise ExpressionError("is_in requires at least one candidate value")
    values = [c.as_py() if isinstance(c, pa.Scalar) else c for c in candidates]
    return pc.is_in(_decoded(value), value_set=pa.array(values))


class ExpressionCompiler:
    """Convert an expression AST into an executable :class:`Expression`."""

    FUNCTIONS_MAP: dict[str, Callable] = {
        "+": pc.add,
        "-": pc.subtract,
        "*": pc.multiply,
        "/": true_divide,
        ">": _decoding(pc.greater),
        "<": _decoding(pc.less),
        ">=": _decoding(pc.greater_equal),
        "<=": _decoding(pc.less_equal),
        "=": _decoding(pc.equal),
        "==": _decoding(pc.equal),
        "!=": _decoding(pc.not_equal),
        "<>": _decoding(pc.not_equal),
        "AND": pc.and_kleene,
        "OR": pc.or_kleene,
        "NOT": pc.invert,
        "NEGATE": pc.negate,
        "is_null": pc.is_null,
        "is_valid": pc.is_valid,
        "round": round_,
        "abs": pc.abs,
        "lower": _decoding(pc.utf8_lower),
        "upper": _decoding(pc.utf8_upper),
        "length": _decoding(pc.utf8_length),
        "str_detect": str_detect,
        "starts_with": starts_with,
        "ends_with": ends_with,
        "is_in": is_in,
        "in": is_in,
    }

    def compile(self, node: dict) -> Expression:
        """Compile an expression node from the AST.

        When the node type is one of ``conjunction``, ``binary_op`` or ``comparison``,
        it will recursively compile the left and right children of the node and create
        a function call expression with the provided operator.

        When the node type is ``unary_op``, it will compile the operand of the node
        and create a function call expression with the provided operator.

        Function names are matched case insensitively.

        :param node: The expression node from the AST.
        """
        if node["type"] in ("conjunction", "binary_op", "comparison"):
            left = self.compile(node["left"])
            right = self.compile(node["right"])
            return FunctionCallExpression(self.FUNCTIONS_MAP[node["op"]], left, right)
        elif node["type"] == "unary_op":
            op = "NEGATE" if node["op"] == "-" else node["op"]
            return FunctionCallExpression(
                self.FUNCTIONS_MAP[op], self.compile(node["operand"])
            )
        elif node["type"] == "function_call":
            name = node["name"].lower()
            if name not in self.FUNCTIONS_MAP or not name[0].isalpha():
                raise ExpressionError(f"Unknown function: {node['name']}")
            args = [self.compile(arg) for arg in node["args"]]
            return FunctionCallExpression(self.FUNCTIONS_MAP[name], *args)
        elif node["type"] == "identifier":
            return ColumnRef(node["value"])
        elif node["type"] == "literal":
            return Literal(node["value"])
        else:
            raise ExpressionError(f"Unsupported expression type: {node['type']}")


def compile_expression(text: str) -> Expression:
    """Parse and compile the text of an expression.

    >>> compile_expression("value > 2")
    pyarrow.compute.greater(ColumnRef(value),Literal(<pyarrow.Int64Scalar: 2>))
    """
    return ExpressionCompiler().compile(parse(text))


def compile_predicate(predicate: str | Expression | Callable) -> Expression:
    """Normalize every accepted form of a predicate into an :class:`Expression`.

    - strings are parsed with the expression language,
    - expressions are returned as they are,
    - plain functions receiving the batch are wrapped in :class:`CallableExpression`.
    """
    if isinstance(predicate, str):
        return compile_expression(predicate)
    elif isinstance(predicate, Expression):
        return predicate
    elif callable(predicate):
        return CallableExpression(predicate)
    raise TypeError(
        f"Predicate must be a string, an Expression or a callable, not {type(predicate).__name__}"
    )
