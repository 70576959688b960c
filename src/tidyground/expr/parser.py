"""Implement a parser for filter and computed column expressions.

An expression is a combination of literals, identifiers, operators, and functions that
can be evaluated to a value for each row. This module provides a parser for expressions
with the following features:

- Arithmetic operators: ``+, -, *, /``
- Comparison operators: ``=, ==, <, >, <=, >=, <>, !=``
- Logical operators: ``AND, OR, NOT`` (or ``&, |, !``)
- Parentheses for grouping
- Function calls with arguments
- Identifiers and literals

The parser returns an abstract syntax tree (AST) made of nested dictionaries.

The parser is implemented as a recursive descent parser, with each method in the
parser class corresponding to a different level of the grammar. The parser
advances through the tokens and builds the AST by recursively calling the appropriate
methods based on the current token.

In case of an expression like ``a + b * c != 3 AND NOT d``, the workflow would proceed as follows::

    - parse_expression (``a + b * c != 3 AND NOT d``)            # Handles OR last because it is the lowest precedence
        - parse_term (``AND``)                                   # Handles AND first because it has an higher precedence
            - parse_factor (``a + b * c != 3``)                  # Handles operands connected by AND
                - parse_comparison (``!=``)                      # Handles comparison operators
                    - parse_additive_expr (``a + b * c``)        # Handles addition last as they have lower math precedence
                        - parse_multiplicative_expr (``b * c``)  # Handles multiplication first as they have higher math precedence
                            - parse_unary_expr (``b``)           # Handles possible -X to negate values
                                - parse_primary (``b``)          # Handles possible parenthesis
                                    - parse_atom (``b``)         # Handles identifiers, literals and function calls
                - parse_additive_expr (``3``)                    # Handles the right side of the comparison
            - parse_factor (``NOT d``)                           # Handles the right side of the AND, processes NOT operator

The resulting AST would look like this::

    {
        "type": "conjunction",
        "op": "AND",
        "left": {
            "type": "comparison",
            "op": "!=",
            "left": {
                "type": "binary_op",
                "op": "+",
                "left": {"type": "identifier", "value": "a"},
                "right": {
                    "type": "binary_op",
                    "op": "*",
                    "left": {"type": "identifier", "value": "b"},
                    "right": {"type": "identifier", "value": "c"}
                }
            },
            "right": {"type": "literal", "value": 3}
        },
        "right": {
            "type": "unary_op",
            "op": "NOT",
            "operand": {"type": "identifier", "value": "d"}
        }
    }
"""

import re

from .tokenize import (
    EOFToken,
    ExpressionError,
    IdentifierToken,
    LiteralToken,
    OperatorToken,
    PunctuationToken,
    Token,
    Tokenizer,
)

ESCAPES = {"n": "\n", "t": "\t", "r": "\r"}


class ExpressionParser:
    """A parser for expressions.

    Handles parsing of expressions like "a + b", "x > 5 AND y < 7" or "round(x) * 2".
    into an abstract syntax tree (AST).
    """

    def __init__(self, tokens: list[Token]) -> None:
        """
        :param tokens: A list of tokens representing the expression.
        """
        if not tokens:
            raise ExpressionError("Empty expression.")
        self.tokens = tokens
        self.pos = 0  # Current position in the tokens list
        self.current_token = tokens[self.pos]

    def advance(self) -> None:
        """Advance the parser to the next token.

        The parser keeps track of the current token that
        has to parse, this function is used to move to the next
        token after the current one has been parsed.
        """
        self.pos += 1
        if self.pos < len(self.tokens):
            self.current_token = self.tokens[self.pos]
        else:
            self.current_token = EOFToken()  # End of input

    def parse(self) -> tuple[int, dict]:
        """Main method to parse a whole expression.

        Returns the abstract syntax tree (AST) for the parsed expression
        and how many tokens were consumed to parse the expression.
        """
        ast = self.parse_expression()
        return self.pos, ast

    def parse_expression(self) -> dict:
        """Parse an expression, which are terms connected by OR"""
        term = self.parse_term()
        while self.is_operator("OR"):
            op = self.current_token.value.upper()
            self.advance()
            right = self.parse_term()
            term = {"type": "conjunction", "op": op, "left": term, "right": right}
        return term

    def parse_term(self) -> dict:
        """Parse a term, which are factors connected by AND."""
        factor = self.parse_factor()
        while self.is_operator("AND"):
            op = self.current_token.value.upper()
            self.advance()
            right = self.parse_factor()
            factor = {"type": "conjunction", "op": op, "left": factor, "right": right}
        return factor

    def parse_factor(self) -> dict:
        """Parse a factor, which are comparison expressions possibly negated by NOT."""
        if self.is_operator("NOT"):
            self.advance()
            operand = self.parse_factor()
            return {"type": "unary_op", "op": "NOT", "operand": operand}
        else:
            return self.parse_comparison()

    def parse_comparison(self) -> dict:
        """Parse a comparison between two mathematical expressions.

        If there is no comparison operator, it will return the left side as is.
        """
        left = self.parse_additive_expr()
        if self.is_operator("=", "==", "<", ">", "<=", ">=", "<>", "!="):
            op = self.current_token.value
            self.advance()
            right = self.parse_additive_expr()
            return {"type": "comparison", "op": op, "left": left, "right": right}
        else:
            return left

    def parse_additive_expr(self) -> dict:
        """Parse addition and subtraction expressions as they have math precedence."""
        expr = self.parse_multiplicative_expr()
        while self.is_operator("+", "-"):
            op = self.current_token.value
            self.advance()
            right = self.parse_multiplicative_expr()
            expr = {"type": "binary_op", "op": op, "left": expr, "right": right}
        return expr

    def parse_multiplicative_expr(self) -> dict:
        """Parse multiplication and division expressions."""
        expr = self.parse_unary_expr()
        while self.is_operator("*", "/"):
            op = self.current_token.value
            self.advance()
            right = self.parse_unary_expr()
            expr = {"type": "binary_op", "op": op, "left": expr, "right": right}
        return expr

    def parse_unary_expr(self) -> dict:
        """Parse unary mathematical expressions. Like -X"""
        if self.is_operator("-"):
            op = self.current_token.value
            self.advance()
            operand = self.parse_unary_expr()
            return {"type": "unary_op", "op": op, "operand": operand}
        else:
            return self.parse_primary()

    def parse_primary(self) -> dict:
        """Parse primary expressions: atoms or parenthesis expressions."""
        if self.is_punctuation("("):
            self.advance()
            expr = self.parse_expression()
            if not self.is_punctuation(")"):
                raise ExpressionError("Expected ')'")
            self.advance()
            return expr
        else:
            return self.parse_atom()

    def parse_atom(self) -> dict:
        """Parse an identifier, literal, or function call.

        In case of literals it also tries to cast them to Python values.
        """
        token = self.current_token
        if isinstance(token, IdentifierToken):
            identifier = token.value
            self.advance()
            if self.is_punctuation("("):
                return self.parse_function_call(identifier)
            else:
                return {"type": "identifier", "value": identifier}
        elif isinstance(token, LiteralToken):
            value = token.value
            self.advance()
            return {"type": "literal", "value": self.cast_literal(value)}
        elif isinstance(token, EOFToken):
            raise ExpressionError("Unexpected end of expression")
        else:
            raise ExpressionError(f"Unexpected token: {token}")

    def parse_function_call(self, function_name: str) -> dict:
        """Parse the arguments of a function call.

        The arguments of the call are parsed as expressions too. So they restart the parsing.
        """
        self.advance()  # Consume '('
        args = []
        if not self.is_punctuation(")"):
            while True:
                arg = self.parse_expression()
                args.append(arg)
                if self.is_punctuation(","):
                    self.advance()
                else:
                    break
        if not self.is_punctuation(")"):
            raise ExpressionError("Expected ')'")
        self.advance()  # Consume ')'
        return {"type": "function_call", "name": function_name, "args": args}

    def is_operator(self, *ops: str) -> bool:
        """Check if the current token is an OperatorToken with a value in ops."""
        return isinstance(
            self.current_token, OperatorToken
        ) and self.current_token.value.upper() in [op.upper() for op in ops]

    def is_punctuation(self, *chars: str) -> bool:
        """Check if the current token is a PunctuationToken with a value in chars."""
        return (
            isinstance(self.current_token, PunctuationToken)
            and self.current_token.value in chars
        )

    def cast_literal(self, value: str) -> str | float | int | bool | None:
        """Cast a literal in an expression to a Python value.

        As the tokenizer returns literals as strings, we need to detect
        if the string represents a number, a boolean, a null or a string
        and cast it to the appropriate Python type.
        """
        if value[0] == value[-1] and value[0] in ("'", '"'):
            # Any other escaped character stands for itself.
            return re.sub(r"\\(.)", lambda m: ESCAPES.get(m.group(1), m.group(1)), value[1:-1])
        upper = value.upper()
        if upper == "TRUE":
            return True
        elif upper == "FALSE":
            return False
        elif upper == "NULL":
            return None
        try:
            return int(value)
        except ValueError:
            return float(value)


def parse(text: str) -> dict:
    """Parse the text of an expression into its AST.

    The whole text must be a single expression.

    >>> parse("age >= 18")
    {'type': 'comparison', 'op': '>=', 'left': {'type': 'identifier', 'value': 'age'}, 'right': {'type': 'literal', 'value': 18}}
    """
    tokens = Tokenizer(text).tokenize()
    consumed, ast = ExpressionParser(tokens).parse()
    if consumed != len(tokens):
        raise ExpressionError(f"Unexpected token: {tokens[consumed]}")
    return ast


def referenced_columns(ast: dict) -> list[str]:
    """List the column names an expression AST refers to, in order of appearance."""
    if ast["type"] == "identifier":
        return [ast["value"]]
    found: list[str] = []
    children = []
    if ast["type"] in ("conjunction", "binary_op", "comparison"):
        children = [ast["left"], ast["right"]]
    elif ast["type"] == "unary_op":
        children = [ast["operand"]]
    elif ast["type"] == "function_call":
        children = ast["args"]
    for child in children:
        for name in referenced_columns(child):
            if name not in found:
                found.append(name)
    return found
