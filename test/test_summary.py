import pyarrow as pa
import pyarrow.compute as pc
import pytest

from tidyground.compute import (
    AggregateNode,
    FilterNode,
    PyArrowTableDataSource,
    SortNode,
    UnknownColumnError,
)
from tidyground.compute.aggregate import MeanAggregation, SumAggregation
from tidyground.dataframe import Dataframe
from tidyground.summary import build_summary_plan, custom_summary, parse_summary

DATA = pa.table(
    {
        "id": [1, 2, 3, 4],
        "group": ["A", "A", "B", "B"],
        "value": [10, 20, 30, 40],
    }
)


class ExplodingSource(PyArrowTableDataSource):
    """Fails if anything tries to read its data."""

    def batches(self):
        raise AssertionError("Data should not be read")


def test_grouped_mean():
    result = custom_summary(DATA, group_by=["group"], summaries=["mean:value"])
    assert result.to_pydict() == {"group": ["A", "B"], "mean_value": [15.0, 35.0]}


@pytest.mark.parametrize(
    "group_by, expected_columns, expected_rows",
    [
        ([], ["sum_value"], 1),
        (["group"], ["group", "sum_value"], 2),
        (["group", "id"], ["group", "id", "sum_value"], 4),
    ],
)
def test_zero_one_many_group_keys(group_by, expected_columns, expected_rows):
    result = custom_summary(DATA, group_by=group_by, summaries=["sum:value"])
    assert result.column_names == expected_columns
    assert result.num_rows == expected_rows
    assert sum(result["sum_value"].to_pylist()) == 100


def test_group_by_single_string():
    result = custom_summary(DATA, group_by="group", summaries=[("max", "value")])
    assert result.to_pydict() == {"group": ["A", "B"], "max_value": [20, 40]}


def test_many_summaries_and_names():
    result = custom_summary(
        DATA,
        group_by=["group"],
        summaries=["min:value", ("max", "value", "highest"), (SumAggregation, "id")],
    )
    assert result.to_pydict() == {
        "group": ["A", "B"],
        "min_value": [10, 30],
        "highest": [20, 40],
        "sum_id": [3, 7],
    }


def test_no_summaries_gives_distinct_groups():
    result = custom_summary(DATA, group_by=["group"])
    assert result.to_pydict() == {"group": ["A", "B"]}


def test_string_filter():
    result = custom_summary(
        DATA, filter="value > 15", group_by=["group"], summaries=["count:id"]
    )
    assert result.to_pydict() == {"group": ["A", "B"], "count_id": [1, 2]}


def test_callable_filter():
    result = custom_summary(
        DATA,
        filter=lambda batch: pc.equal(batch["group"], "B"),
        summaries=["sum:value"],
    )
    assert result.to_pydict() == {"sum_value": [70]}


def test_unknown_columns_fail_before_reading_data():
    source = ExplodingSource(DATA)
    with pytest.raises(UnknownColumnError) as err:
        build_summary_plan(source, group_by=["country"], summaries=["sum:value"])
    assert err.value.name == "country"

    with pytest.raises(UnknownColumnError):
        build_summary_plan(source, summaries=["sum:price"])

    with pytest.raises(UnknownColumnError):
        build_summary_plan(source, filter="price > 3", summaries=["sum:value"])


def test_build_summary_plan():
    plan = build_summary_plan(
        DATA, filter="value > 15", group_by=["group"], summaries=["mean:value"]
    )
    assert isinstance(plan, AggregateNode)
    assert isinstance(plan.child, FilterNode)
    assert plan.aggregations == {"mean_value": MeanAggregation("value")}


def test_summary_of_plan_node_and_dataframe():
    sorted_data = SortNode(["value"], [True], PyArrowTableDataSource(DATA))
    result = custom_summary(sorted_data, group_by=["group"], summaries=["first:id"])
    assert result.to_pydict() == {"group": ["B", "A"], "first_id": [4, 2]}

    result = custom_summary(Dataframe(DATA), summaries=["count:id"])
    assert result.to_pydict() == {"count_id": [4]}


def test_invalid_summaries():
    with pytest.raises(ValueError):
        custom_summary(DATA, summaries=["sum"])
    with pytest.raises(ValueError):
        custom_summary(DATA, summaries=[("sum",)])
    with pytest.raises(ValueError):
        custom_summary(DATA, summaries=["median_of_medians:value"])
    with pytest.raises(ValueError):
        custom_summary(DATA, summaries=["sum:value", ("sum", "id", "sum_value")])


def test_unsupported_data():
    with pytest.raises(TypeError):
        custom_summary({"value": [1, 2]}, summaries=["sum:value"])


@pytest.mark.parametrize(
    "summary, expected",
    [
        ("sum:value", ("sum_value", SumAggregation("value"))),
        (("mean", "value"), ("mean_value", MeanAggregation("value"))),
        (("mean", "value", "avg"), ("avg", MeanAggregation("value"))),
        ((MeanAggregation, "value"), ("mean_value", MeanAggregation("value"))),
    ],
)
def test_parse_summary(summary, expected):
    assert parse_summary(summary) == expected


def test_filter_on_escaped_non_ascii_text():
    data = pa.table({"name": ["café's", "x"], "v": [1, 2]})
    result = custom_summary(data, filter="name == 'café\\'s'", summaries=["sum:v"])
    assert result.to_pydict() == {"sum_v": [1]}
