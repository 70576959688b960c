"""Split the text of an expression into tokens.

Given an expression like ``"value >= 18 AND group = 'A'"``,
the tokenizer will produce a sequence of tokens like::

    [value, >=, 18, AND, group, =, 'A']

The tokenizer is a simple regex-based one, each kind of token
has a regular expression and the first one matching at the current
position wins. For this reason keywords are checked before
identifiers and multi character operators before single character ones.

Besides the SQL like ``AND``, ``OR``, ``NOT`` keywords the
symbolic ``&``, ``|`` and ``!`` forms are accepted too
and normalized to the keyword.
"""

import re


class ExpressionError(Exception):
    """Exception raised for errors in expression tokenization or parsing."""

    pass


class Token:
    """A token of an expression, identified by its class and value."""

    def __init__(self, value: str) -> None:
        self.value = value

    def __eq__(self, other: object) -> bool:
        return type(other) is type(self) and other.value == self.value

    def __hash__(self) -> int:
        return hash((type(self), self.value))

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}({self.value!r})"

    __str__ = __repr__


class IdentifierToken(Token):
    """A column name."""


class LiteralToken(Token):
    """A number, a quoted string, or one of TRUE, FALSE and NULL."""


class OperatorToken(Token):
    """Arithmetic, comparison and logical operators."""


class PunctuationToken(Token):
    """Parenthesis and commas."""


class EOFToken(Token):
    """Marks the end of the tokens."""

    def __init__(self) -> None:
        super().__init__("")


SYMBOLIC_OPERATORS = {"&&": "AND", "&": "AND", "||": "OR", "|": "OR", "!": "NOT"}

TOKENS_SPEC = [
    (None, r"\s+"),
    (LiteralToken, r"'(?:[^'\\]|\\.)*'|\"(?:[^\"\\]|\\.)*\""),
    (LiteralToken, r"(?:\d+\.\d*|\.\d+|\d+)(?:[eE][+-]?\d+)?"),
    (LiteralToken, r"(?i:\b(?:TRUE|FALSE|NULL)\b)"),
    (OperatorToken, r"(?i:\b(?:AND|OR|NOT)\b)"),
    (OperatorToken, r"<=|>=|<>|!=|==|&&|\|\||[=<>+\-*/&|!]"),
    (PunctuationToken, r"[(),]"),
    (IdentifierToken, r"`[^`]+`"),
    (IdentifierToken, r"[A-Za-z_][A-Za-z0-9_.]*"),
]


class Tokenizer:
    """Convert the text of an expression into a list of tokens.

    >>> Tokenizer("age >= 18").tokenize()
    [IdentifierToken('age'), OperatorToken('>='), LiteralToken('18')]
    """

    def __init__(self, text: str) -> None:
        """
        :param text: The expression to tokenize.
        """
        self.text = text
        self.patterns = [(cls, re.compile(regex)) for cls, regex in TOKENS_SPEC]

    def tokenize(self) -> list[Token]:
        """Produce the tokens of the expression.

        Raises :class:`ExpressionError` when a character
        doesn't start any known token.
        """
        tokens: list[Token] = []
        pos = 0
        while pos < len(self.text):
            for token_class, pattern in self.patterns:
                match = pattern.match(self.text, pos)
                if match is None:
                    continue
                value = match.group(0)
                pos = match.end()
                if token_class is not None:
                    tokens.append(self._make_token(token_class, value))
                break
            else:
                raise ExpressionError(
                    f"Unexpected character {self.text[pos]!r} at position {pos}"
                )
        return tokens

    def _make_token(self, token_class: type[Token], value: str) -> Token:
        if token_class is OperatorToken:
            value = SYMBOLIC_OPERATORS.get(value, value)
            if value.upper() in ("AND", "OR", "NOT"):
                value = value.upper()
        elif token_class is IdentifierToken and value.startswith("`"):
            value = value[1:-1]
        return token_class(value)
