"""Expression language for filters and computed columns.

Expressions are written as text, like ``"value > 10 AND group = 'A'"``,
they are tokenized, parsed into a dictionary based AST, and
finally compiled into :class:`tidyground.compute.Expression` objects
that the compute engine can apply on record batches.

    >>> from tidyground.expr import compile_expression
    >>> import pyarrow as pa
    >>> batch = pa.record_batch({"value": [5, 15], "group": ["A", "A"]})
    >>> compile_expression("value > 10 AND group = 'A'").apply(batch)
    <pyarrow.lib.BooleanArray object at ...>
    [
      false,
      true
    ]
"""

from .compiler import ExpressionCompiler, compile_expression, compile_predicate
from .parser import ExpressionParser, parse, referenced_columns
from .tokenize import ExpressionError, Tokenizer

__all__ = (
    "ExpressionError",
    "Tokenizer",
    "ExpressionParser",
    "ExpressionCompiler",
    "parse",
    "referenced_columns",
    "compile_expression",
    "compile_predicate",
)
