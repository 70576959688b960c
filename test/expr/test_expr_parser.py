import pytest

from tidyground.expr import ExpressionError, ExpressionParser, Tokenizer, parse, referenced_columns


def test_literal_expression():
    tokens = Tokenizer("42").tokenize()
    pos, ast = ExpressionParser(tokens).parse()
    assert ast == {"type": "literal", "value": 42}
    assert pos == len(tokens)


def test_unary_negation_expression():
    assert parse("-42") == {
        "type": "unary_op",
        "op": "-",
        "operand": {"type": "literal", "value": 42},
    }


def test_precedence():
    assert parse("a + b * c != 3 AND NOT d") == {
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
                    "right": {"type": "identifier", "value": "c"},
                },
            },
            "right": {"type": "literal", "value": 3},
        },
        "right": {
            "type": "unary_op",
            "op": "NOT",
            "operand": {"type": "identifier", "value": "d"},
        },
    }


def test_or_binds_looser_than_and():
    ast = parse("a OR b AND c")
    assert ast["op"] == "OR"
    assert ast["right"]["op"] == "AND"


def test_parenthesis():
    ast = parse("(a + b) * c")
    assert ast["op"] == "*"
    assert ast["left"]["op"] == "+"


def test_function_call():
    assert parse("is_in(group, 'A', 'B')") == {
        "type": "function_call",
        "name": "is_in",
        "args": [
            {"type": "identifier", "value": "group"},
            {"type": "literal", "value": "A"},
            {"type": "literal", "value": "B"},
        ],
    }
    assert parse("now()") == {"type": "function_call", "name": "now", "args": []}


@pytest.mark.parametrize(
    "text, expected",
    [
        ("1", 1),
        ("1.5", 1.5),
        ("1e3", 1000.0),
        ("'text'", "text"),
        ("'it\\'s'", "it's"),
        ("'café\\'s'", "café's"),
        ('"a\\\\b\\tc"', "a\\b\tc"),
        ("TRUE", True),
        ("false", False),
        ("NULL", None),
    ],
)
def test_literals(text, expected):
    assert parse(text) == {"type": "literal", "value": expected}


@pytest.mark.parametrize(
    "text",
    ["", "a +", "(a + b", "a b", "round(a", "a > > b", ")"],
)
def test_invalid_expressions(text):
    with pytest.raises(ExpressionError):
        parse(text)


def test_referenced_columns():
    ast = parse("a + b > a AND round(c, 2) = 3 OR NOT d")
    assert referenced_columns(ast) == ["a", "b", "c", "d"]
    assert referenced_columns(parse("1 + 2")) == []
