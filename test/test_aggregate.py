import pyarrow as pa
import pytest

from tidyground.categorical import factor, reorder_levels
from tidyground.compute import PyArrowTableDataSource, UnknownColumnError
from tidyground.compute.aggregate import (
    AGGREGATIONS,
    AggregateNode,
    CountAggregation,
    CountDistinctAggregation,
    FirstAggregation,
    LastAggregation,
    MaxAggregation,
    MeanAggregation,
    MinAggregation,
    StddevAggregation,
    SumAggregation,
    VarianceAggregation,
    get_aggregation,
)
from tidyground.compute.base import QueryPlanNode

TEST_DATA = pa.record_batch(
    {
        "city": pa.array(
            ["New York", "New York", "Los Angeles", "Los Angeles", "New York"]
        ),
        "shop": pa.array(["Shop A", "Shop B", "Shop A", "Shop A2", "Shop B"]),
        "n_employees": pa.array([10, 15, 8, 12, 20]),
    }
)


class MockQueryPlanNode(QueryPlanNode):
    def __init__(self, batches):
        self._batches = batches

    def batches(self):
        for batch in self._batches:
            yield batch

    def __str__(self):
        return "MockQueryPlanNode"


@pytest.mark.parametrize("keys", [["city"], ["city", "shop"]])
def test_basic_aggregation(keys):
    aggregate = AggregateNode(
        keys,
        {"total_employees": SumAggregation("n_employees")},
        PyArrowTableDataSource(TEST_DATA),
    )
    result = next(aggregate.batches())

    if keys == ["city"]:
        assert result.column_names == ["city", "total_employees"]
        assert result.column(0).to_pylist() == ["New York", "Los Angeles"]
        assert result.column(1).to_pylist() == [45, 20]
    else:
        assert result.column_names == ["city", "shop", "total_employees"]
        assert result.column(0).to_pylist() == [
            "New York",
            "New York",
            "Los Angeles",
            "Los Angeles",
        ]
        assert result.column(1).to_pylist() == ["Shop A", "Shop B", "Shop A", "Shop A2"]
        assert result.column(2).to_pylist() == [10, 35, 8, 12]


@pytest.mark.parametrize("keys", [["city"], ["city", "shop"]])
def test_aggregate_node_str(keys):
    aggregate = AggregateNode(
        keys,
        {"total_employees": SumAggregation("n_employees")},
        PyArrowTableDataSource(TEST_DATA),
    )
    assert str(aggregate) == (
        "AggregateNode(keys=%r, aggregations={'total_employees': SumAggregation(n_employees)}, "
        "PyArrowTableDataSource(columns=['city', 'shop', 'n_employees'], rows=5))"
        % (keys,)
    )


@pytest.mark.parametrize(
    "aggregation, expected_by_city, expected_by_city_and_shop",
    [
        (MinAggregation, [10, 8], [10, 15, 8, 12]),
        (MaxAggregation, [20, 12], [10, 20, 8, 12]),
        (CountAggregation, [3, 2], [1, 2, 1, 1]),
        (MeanAggregation, [15.0, 10.0], [10.0, 17.5, 8.0, 12.0]),
        (CountDistinctAggregation, [3, 2], [1, 2, 1, 1]),
        (FirstAggregation, [10, 8], [10, 15, 8, 12]),
        (LastAggregation, [20, 12], [10, 20, 8, 12]),
    ],
)
@pytest.mark.parametrize("keys", [["city"], ["city", "shop"]])
def test_aggregations(keys, aggregation, expected_by_city, expected_by_city_and_shop):
    aggregate = AggregateNode(
        keys,
        {"result": aggregation("n_employees")},
        PyArrowTableDataSource(TEST_DATA),
    )
    result = next(aggregate.batches())

    assert result.column_names == keys + ["result"]
    if keys == ["city"]:
        assert result["result"].to_pylist() == expected_by_city
    else:
        assert result["result"].to_pylist() == expected_by_city_and_shop


def test_mean_is_always_floating_point():
    aggregate = AggregateNode(
        ["city"], {"mean": MeanAggregation("n_employees")}, PyArrowTableDataSource(TEST_DATA)
    )
    result = next(aggregate.batches())
    assert result["mean"].type == pa.float64()


def test_grouped_mean_example():
    data = pa.record_batch(
        {
            "id": [1, 2, 3, 4],
            "group": ["A", "A", "B", "B"],
            "value": [10, 20, 30, 40],
        }
    )
    aggregate = AggregateNode(
        ["group"], {"mean_value": MeanAggregation("value")}, PyArrowTableDataSource(data)
    )
    result = aggregate.collect()
    assert dict(zip(result["group"].to_pylist(), result["mean_value"].to_pylist())) == {
        "A": 15,
        "B": 35,
    }


def test_variance_and_stddev_across_batches():
    child = MockQueryPlanNode(
        [
            pa.record_batch({"g": ["a", "a"], "v": [2.0, 4.0]}),
            pa.record_batch({"g": ["a", "a"], "v": [4.0, 6.0]}),
        ]
    )
    aggregate = AggregateNode(
        ["g"],
        {"var": VarianceAggregation("v"), "sd": StddevAggregation("v")},
        child,
    )
    result = aggregate.collect()
    # Sample variance of [2, 4, 4, 6]
    assert result["var"].to_pylist() == [pytest.approx(8 / 3)]
    assert result["sd"].to_pylist() == [pytest.approx((8 / 3) ** 0.5)]


def test_variance_single_value_is_null():
    aggregate = AggregateNode(
        [], {"var": VarianceAggregation("n_employees")},
        PyArrowTableDataSource(TEST_DATA.slice(0, 1)),
    )
    assert aggregate.collect()["var"].to_pylist() == [None]


@pytest.mark.parametrize("keys", [[], ["city"], ["city", "shop"]])
def test_zero_one_many_keys(keys):
    aggregate = AggregateNode(
        keys,
        {"total": SumAggregation("n_employees"), "n": CountAggregation("shop")},
        PyArrowTableDataSource(TEST_DATA),
    )
    result = aggregate.collect()
    assert result.column_names == keys + ["total", "n"]
    assert sum(result["total"].to_pylist()) == 65
    assert sum(result["n"].to_pylist()) == 5


def test_no_keys_is_a_single_group():
    aggregate = AggregateNode(
        [], {"total": SumAggregation("n_employees")}, PyArrowTableDataSource(TEST_DATA)
    )
    assert aggregate.collect().to_pydict() == {"total": [65]}


def test_no_aggregations_gives_distinct_keys():
    aggregate = AggregateNode(["city"], {}, PyArrowTableDataSource(TEST_DATA))
    assert aggregate.collect().to_pydict() == {"city": ["New York", "Los Angeles"]}


def test_null_keys_form_their_own_group():
    data = pa.record_batch({"k": ["a", None, "a", None], "v": [1, 2, 3, 4]})
    aggregate = AggregateNode(["k"], {"v": SumAggregation("v")}, PyArrowTableDataSource(data))
    assert aggregate.collect().to_pydict() == {"k": ["a", None], "v": [4, 6]}


def test_groups_across_multiple_batches():
    child = MockQueryPlanNode(
        [
            pa.record_batch({"k": ["x", "y"], "v": [1, 2]}),
            pa.record_batch({"k": ["z", "x"], "v": [3, 4]}),
        ]
    )
    aggregate = AggregateNode(["k"], {"v": SumAggregation("v")}, child)
    assert aggregate.collect().to_pydict() == {"k": ["x", "y", "z"], "v": [5, 2, 3]}


def test_unknown_column():
    aggregate = AggregateNode(
        ["country"], {"total": SumAggregation("n_employees")}, PyArrowTableDataSource(TEST_DATA)
    )
    with pytest.raises(UnknownColumnError) as err:
        aggregate.collect()
    assert "country" in str(err.value)


def test_names_clash_with_keys():
    with pytest.raises(ValueError):
        AggregateNode(
            ["city"], {"city": SumAggregation("n_employees")}, PyArrowTableDataSource(TEST_DATA)
        )


def test_no_batches_produce_no_output():
    aggregate = AggregateNode(["k"], {"v": SumAggregation("v")}, MockQueryPlanNode([]))
    assert list(aggregate.batches()) == []


def test_categorical_keys_keep_their_labels():
    data = pa.record_batch(
        {
            "size": factor(["small", "large", "small"], levels=["small", "medium", "large"]),
            "v": [1, 2, 3],
        }
    )
    result = AggregateNode(["size"], {"v": SumAggregation("v")}, PyArrowTableDataSource(data)).collect()
    size = result["size"].combine_chunks()
    assert size.to_pylist() == ["small", "large"]
    assert size.dictionary.to_pylist() == ["small", "medium", "large"]
    assert result["v"].to_pylist() == [4, 2]


def test_reordering_levels_does_not_change_grouped_results():
    sizes = factor(["small", "large", "small", "medium"], levels=["small", "medium", "large"])
    values = pa.array([1, 2, 3, 4])

    def summarise(column):
        data = pa.record_batch({"size": column, "v": values})
        result = AggregateNode(
            ["size"], {"v": SumAggregation("v")}, PyArrowTableDataSource(data)
        ).collect()
        return dict(zip(result["size"].to_pylist(), result["v"].to_pylist()))

    reordered = reorder_levels(sizes, ["large", "small", "medium"])
    assert summarise(reordered) == summarise(sizes) == {"small": 4, "large": 2, "medium": 4}


@pytest.mark.parametrize("keys", [["city"], ["city", "shop"]])
def test_count_aggregation_50_rows(keys):
    aggregate = AggregateNode(
        keys,
        {"count_employees": CountAggregation("n_employees")},
        PyArrowTableDataSource(_generate_50rows_test_data()),
    )
    result = next(aggregate.batches())

    if keys == ["city"]:
        assert result.column_names == ["city", "count_employees"]
        assert result.column(0).to_pylist() == [
            "City0",
            "City1",
            "City2",
            "City3",
            "City4",
        ]
        assert result.column(1).to_pylist() == [20, 20, 20, 20, 20]
    else:
        assert result.column_names == ["city", "shop", "count_employees"]
        expected_cities = ["City" + str(i) for i in range(5) for _ in range(10)]
        expected_shops = ["Shop" + str(i) for _ in range(5) for i in range(10)]
        expected_counts = [2] * 50
        assert result.column(0).to_pylist() == expected_cities
        assert result.column(1).to_pylist() == expected_shops
        assert result.column(2).to_pylist() == expected_counts


def test_get_aggregation():
    assert get_aggregation("mean") is MeanAggregation
    assert get_aggregation("n_distinct") is CountDistinctAggregation
    assert get_aggregation(SumAggregation) is SumAggregation
    assert set(AGGREGATIONS) >= {"sum", "min", "max", "count", "mean", "var", "sd"}
    with pytest.raises(ValueError):
        get_aggregation("median_of_medians")


def _generate_50rows_test_data():
    cities = ["City" + str(i) for i in range(5)]
    shops = ["Shop" + str(i) for i in range(10)]
    data = {"city": [], "shop": [], "n_employees": []}
    for city in cities:
        for shop in shops:
            for _ in range(2):  # Ensure each combination appears at least twice
                data["city"].append(city)
                data["shop"].append(shop)
                data["n_employees"].append(10)  # Arbitrary number of employees
    return pa.record_batch(data)
