import pyarrow as pa
import pytest

from tidyground.compute import (
    NestNode,
    PyArrowTableDataSource,
    UnknownColumnError,
    UnnestNode,
    nested_batches,
)

DATA = pa.record_batch(
    {
        "id": [1, 2, 3, 4],
        "group": ["A", "A", "B", "B"],
        "value": [10, 20, 30, 40],
    }
)


def test_nest_by_key():
    result = NestNode(["group"], PyArrowTableDataSource(DATA)).collect()
    assert result.column_names == ["group", "data"]
    assert result["group"].to_pylist() == ["A", "B"]
    assert result["data"].to_pylist() == [
        [{"id": 1, "value": 10}, {"id": 2, "value": 20}],
        [{"id": 3, "value": 30}, {"id": 4, "value": 40}],
    ]


def test_nest_keeps_first_appearance_order():
    data = pa.record_batch({"k": ["b", "a", "b"], "v": [1, 2, 3]})
    result = NestNode(["k"], PyArrowTableDataSource(data), column="rows").collect()
    assert result.to_pydict() == {"k": ["b", "a"], "rows": [[{"v": 1}, {"v": 3}], [{"v": 2}]]}


def test_nest_without_keys_is_a_single_cell():
    result = NestNode([], PyArrowTableDataSource(DATA)).collect()
    assert result.num_rows == 1
    assert len(result["data"][0]) == 4


def test_nest_then_unnest_round_trips():
    nested = NestNode(["group"], PyArrowTableDataSource(DATA))
    result = UnnestNode("data", nested).collect()
    assert result.to_pydict() == {
        "group": ["A", "A", "B", "B"],
        "id": [1, 2, 3, 4],
        "value": [10, 20, 30, 40],
    }


def test_nested_batches_map_over_partitions():
    nested = NestNode(["group"], PyArrowTableDataSource(DATA)).collect()
    partitions = nested_batches(nested["data"])
    assert [p.num_rows for p in partitions] == [2, 2]
    assert [sum(p["value"].to_pylist()) for p in partitions] == [30, 70]


def test_nested_batches_null_cell():
    nested = pa.array([[{"a": 1}], None], type=pa.list_(pa.struct([("a", pa.int64())])))
    partitions = nested_batches(nested)
    assert partitions[0].to_pydict() == {"a": [1]}
    assert partitions[1] is None


def test_unnest_drops_empty_cells():
    data = pa.record_batch(
        {
            "k": ["a", "b", "c"],
            "data": pa.array(
                [[{"v": 1}, {"v": 2}], [], None],
                type=pa.list_(pa.struct([("v", pa.int64())])),
            ),
        }
    )
    result = UnnestNode("data", PyArrowTableDataSource(data)).collect()
    assert result.to_pydict() == {"k": ["a", "a"], "v": [1, 2]}


def test_unnest_requires_nested_column():
    with pytest.raises(TypeError):
        UnnestNode("value", PyArrowTableDataSource(DATA)).collect()


def test_unnest_duplicate_columns():
    data = pa.record_batch(
        {
            "v": [0],
            "data": pa.array([[{"v": 1}]], type=pa.list_(pa.struct([("v", pa.int64())]))),
        }
    )
    with pytest.raises(ValueError):
        UnnestNode("data", PyArrowTableDataSource(data)).collect()


def test_nest_errors():
    with pytest.raises(ValueError):
        NestNode(["data"], PyArrowTableDataSource(DATA))
    with pytest.raises(UnknownColumnError):
        NestNode(["missing"], PyArrowTableDataSource(DATA)).collect()
    with pytest.raises(ValueError):
        NestNode(["id", "group", "value"], PyArrowTableDataSource(DATA)).collect()


def test_nest_without_keys_of_empty_data():
    empty = DATA.slice(0, 0)
    result = NestNode([], PyArrowTableDataSource(empty)).collect()
    assert result.to_pydict() == {"data": [[]]}
