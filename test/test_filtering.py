import pyarrow as pa
import pyarrow.compute as pc
import pytest

from tidyground.compute import (
    CallableExpression,
    FilterNode,
    FunctionCallExpression,
    PyArrowTableDataSource,
    UnknownColumnError,
    col,
    lit,
)


@pytest.fixture
def mock_data():
    return pa.table({"n": [1, 2, None, 4], "name": ["a", "b", "c", "d"]})


def test_filter_expression(mock_data):
    node = FilterNode(
        FunctionCallExpression(pc.greater, col("n"), lit(1)), PyArrowTableDataSource(mock_data)
    )
    assert node.collect().to_pydict() == {"n": [2, 4], "name": ["b", "d"]}


def test_filter_discards_null_predicates(mock_data):
    node = FilterNode(
        FunctionCallExpression(pc.less, col("n"), lit(10)), PyArrowTableDataSource(mock_data)
    )
    assert node.collect()["name"].to_pylist() == ["a", "b", "d"]


def test_filter_callable(mock_data):
    node = FilterNode(
        CallableExpression(lambda batch: pc.equal(batch["name"], "c")),
        PyArrowTableDataSource(mock_data),
    )
    assert node.collect().to_pydict() == {"n": [None], "name": ["c"]}


@pytest.mark.parametrize("value, expected_rows", [(True, 4), (False, 0), (None, 0)])
def test_filter_constant_predicate(mock_data, value, expected_rows):
    node = FilterNode(lit(value), PyArrowTableDataSource(mock_data))
    assert node.collect().num_rows == expected_rows


def test_filter_unknown_column(mock_data):
    node = FilterNode(
        FunctionCallExpression(pc.greater, col("missing"), lit(1)),
        PyArrowTableDataSource(mock_data),
    )
    with pytest.raises(UnknownColumnError) as err:
        node.collect()
    assert err.value.name == "missing"
    assert err.value.available == ["n", "name"]


def test_filter_requires_booleans(mock_data):
    node = FilterNode(
        FunctionCallExpression(pc.add, col("n"), lit(1)), PyArrowTableDataSource(mock_data)
    )
    with pytest.raises(TypeError):
        node.collect()


def test_filter_str(mock_data):
    node = FilterNode(
        FunctionCallExpression(pc.greater, col("n"), lit(1)), PyArrowTableDataSource(mock_data)
    )
    assert str(node) == (
        "FilterNode(filter=pyarrow.compute.greater(ColumnRef(n),Literal(<pyarrow.Int64Scalar: 1>)), "
        "child=PyArrowTableDataSource(columns=['n', 'name'], rows=4))"
    )
