"""Plan nodes that compute aggregations.

Frequently when analysing data is necessary
to compute statistics like the min, max, average, etc...
of the data stored in datasets.

The aggregate node is in charge of computing
those aggregations and projecting them as new
columns in a plan.

Typically the aggregate node will group the data
by a set of columns and then compute the aggregations

For example, given the following data::

    city, shop, n_employees
    New York, Shop A, 10
    New York, Shop B, 15
    Los Angeles, Shop C, 8
    Los Angeles, Shop D, 12
    New York, Shop E, 20

We could group by city and compute the sum of the employees
to get::

    city, total_employees
    New York, 45
    Los Angeles, 20

Grouping can happen on any number of columns, including none at all,
in which case the whole data is a single group.
"""

import abc
import math
from typing import Any

import pyarrow as pa
import pyarrow.compute as pc
import structlog

from .base import QueryPlanNode, ensure_columns

__all__ = (
    "AggregateNode",
    "Aggregation",
    "SumAggregation",
    "MinAggregation",
    "MaxAggregation",
    "CountAggregation",
    "MeanAggregation",
    "CountDistinctAggregation",
    "FirstAggregation",
    "LastAggregation",
    "VarianceAggregation",
    "StddevAggregation",
    "AGGREGATIONS",
    "get_aggregation",
    "group_indices",
)

log = structlog.get_logger(__name__)


class AggregateNode(QueryPlanNode):
    """Group data and compute aggregations.

    Groups are emitted in the order their key first appears in the data.
    Rows where a key is null are grouped together.

    >>> import pyarrow as pa
    >>> from tidyground.compute import SumAggregation, PyArrowTableDataSource
    >>> data = pa.record_batch({
    ...    'city': pa.array(['New York', 'New York', 'Los Angeles', 'Los Angeles', 'New York']),
    ...    'shop': pa.array(['Shop A', 'Shop B', 'Shop C', 'Shop D', 'Shop E']),
    ...    'n_employees': pa.array([10, 15, 8, 12, 20])
    ... })
    >>> aggregate = AggregateNode(["city"], {"total_employees": SumAggregation("n_employees")}, PyArrowTableDataSource(data))
    >>> next(aggregate.batches()).to_pydict()
    {'city': ['New York', 'Los Angeles'], 'total_employees': [45, 20]}
    """

    def __init__(
        self,
        keys: list[str],
        aggregations: dict[str, "Aggregation"],
        child: QueryPlanNode,
    ) -> None:
        """
        :param keys: The columns to group by, can be empty.
        :param aggregations: The aggregations to compute in the form of {"new_col_name": Aggregation}.
        :param child: The child node that will provide the data to aggregate.
        """
        overlapping = set(keys) & set(aggregations)
        if overlapping:
            raise ValueError(f"Aggregation names clash with grouping keys: {sorted(overlapping)}")
        self.keys = list(keys)
        self.aggregations = aggregations
        self.child = child

    def __str__(self) -> str:
        return f"AggregateNode(keys={self.keys}, aggregations={self.aggregations}, {self.child})"

    def batches(self) -> QueryPlanNode.RecordBatchesGenerator:
        """Compute the aggregations for each group.

        Compute separate aggregation results for each batch.
        This makes so that we need to keep in memory only one batch
        at the time, and the aggregation results, which are far smaller::

            chunks_data = {key_value: {aggr_name: [aggr_value1, aggr_value2, ...]}}

        Once all batches were consumed, the partial results are reduced
        to the final value of each aggregation.
        """
        chunks_data: dict[tuple, dict[str, list[Any]]] = {}
        schema: pa.Schema | None = None
        labels: dict[str, list] = {}
        for batch in self.child.batches():
            if schema is None:
                schema = batch.schema
                ensure_columns(self.keys, schema.names)
                ensure_columns(
                    [a.column for a in self.aggregations.values() if a.column is not None],
                    schema.names,
                )
            self._collect_labels(batch, labels)
            for keyvalue, indices in self.group_rows(batch):
                chunk = batch.take(pa.array(indices, type=pa.int64()))
                group = chunks_data.setdefault(keyvalue, {})
                for name, aggregation in self.aggregations.items():
                    group.setdefault(name, []).append(aggregation.compute_chunk(chunk))

        if schema is None:
            # The child emitted no data at all, so there is nothing to group.
            return

        log.debug("aggregate_groups_computed", keys=self.keys, groups=len(chunks_data))
        yield self.reduce_aggregations(chunks_data, schema, labels)

    def group_rows(self, batch: pa.RecordBatch) -> list[tuple[tuple, list[int]]]:
        """Split the rows of a batch in groups based on the keys.

        Returns a list of ``(key_values, row_indices)`` in order of
        first appearance of each key. Without keys, all the rows
        constitute a single group, even when there are no rows.
        """
        return list(group_indices(batch, self.keys).items())

    def _collect_labels(self, batch: pa.RecordBatch, labels: dict[str, list]) -> None:
        """Keep track of the label set of categorical keys.

        The label set is preserved in the output, including
        labels that are not used by any row.
        """
        for key in self.keys:
            column = batch.column(key)
            if not pa.types.is_dictionary(column.type):
                continue
            known = labels.setdefault(key, [])
            for label in column.dictionary.to_pylist():
                if label not in known:
                    known.append(label)

    def reduce_aggregations(
        self,
        chunks_data: dict[tuple, dict[str, list[Any]]],
        schema: pa.Schema,
        labels: dict[str, list],
    ) -> pa.RecordBatch:
        """Reduce the partial aggregation results to the final aggregation results.

        For example if we had 3 chunks and the chunks_data is::

            {("New York",): {"total_employees": [10, 20, 30]}}

        The result will be::

            {"city": ["New York"], "total_employees": [60]}
        """
        key_values: dict[str, list] = {k: [] for k in self.keys}
        results: dict[str, list[pa.Scalar]] = {k: [] for k in self.aggregations}
        for keyvalue, aggregated_values in chunks_data.items():
            for i, key in enumerate(self.keys):
                key_values[key].append(keyvalue[i])
            for aggrname, aggregation in self.aggregations.items():
                results[aggrname].append(aggregation.reduce(aggregated_values[aggrname]))

        columns = {}
        for key in self.keys:
            columns[key] = _key_array(key_values[key], schema.field(key).type, labels.get(key))
        for aggrname, scalars in results.items():
            columns[aggrname] = scalars_to_array(scalars)
        return pa.RecordBatch.from_arrays(list(columns.values()), names=list(columns))


def group_indices(batch: pa.RecordBatch, keys: list[str]) -> dict[tuple, list[int]]:
    """Find the rows of each distinct combination of values of the keys.

    Groups are returned in order of first appearance.
    Without keys, all the rows constitute a single group,
    even when there are no rows.
    """
    if not keys:
        return {(): list(range(batch.num_rows))}

    # Categorical columns are decoded to their labels
    # so that the same label in different batches
    # leads to the same group.
    columns = [batch.column(k).to_pylist() for k in keys]
    groups: dict[tuple, list[int]] = {}
    for row_index, keyvalue in enumerate(zip(*columns)):
        groups.setdefault(keyvalue, []).append(row_index)
    return groups


def _key_array(values: list, type_: pa.DataType, labels: list | None) -> pa.Array:
    """Build the output column of a grouping key."""
    if not pa.types.is_dictionary(type_):
        return pa.array(values, type=type_)
    dictionary = pa.array(labels or [], type=type_.value_type)
    indices = pc.index_in(pa.array(values, type=type_.value_type), value_set=dictionary)
    return pa.DictionaryArray.from_arrays(
        pc.cast(indices, type_.index_type), dictionary, ordered=type_.ordered
    )


def scalars_to_array(scalars: list[pa.Scalar]) -> pa.Array:
    """Convert a list of :class:`pyarrow.Scalar` to an array of their type."""
    if not scalars:
        return pa.array([], type=pa.null())
    type_ = next((s.type for s in scalars if s.is_valid), scalars[0].type)
    return pa.array([s.as_py() for s in scalars], type=type_)


class Aggregation(abc.ABC):
    """Base class for aggregations.

    Every aggregation is expected to implement
    a method to compute any needed intermediate results
    on a single chunk of data and then provide a reduce method
    to combine the intermediate results into a final result.

    The ``function_name`` is used to refer to the aggregation
    by name, for example in :func:`get_aggregation`.
    """

    function_name: str = ""

    def __init__(self, column: str) -> None:
        self.column = column

    def __str__(self) -> str:
        return f"{self.__class__.__name__}({self.column})"

    __repr__ = __str__

    def __eq__(self, other: object) -> bool:
        return type(other) is type(self) and other.column == self.column

    def __hash__(self) -> int:
        return hash((type(self), self.column))

    @abc.abstractmethod
    def compute_chunk(self, batch: pa.RecordBatch) -> Any: ...

    @abc.abstractmethod
    def reduce(self, chunks: list[Any]) -> pa.Scalar: ...


class SimpleAggregation(Aggregation):
    """Provide a base implementation for simple aggregations like min,max,sum.

    Simple aggregations are those where the function applied to compute
    intermediate results for a single chunk of data is the same as the function
    applied to combine the intermediate results into the final.

    For example ``sum([1, 2, 3])`` is the same as ``sum([sum([1, 2]), 3])``.
    """

    @abc.abstractmethod
    def _aggregate(self, data: Any) -> pa.Scalar: ...

    def compute_chunk(self, batch: pa.RecordBatch) -> pa.Scalar:
        return self._aggregate(batch.column(self.column))

    def reduce(self, chunks: list[pa.Scalar]) -> pa.Scalar:
        return self._aggregate(scalars_to_array(chunks))


class SumAggregation(SimpleAggregation):
    """Compute the sum of an aggregated column."""

    function_name = "sum"

    def _aggregate(self, data: Any) -> pa.Scalar:
        return pc.sum(data)


class MinAggregation(SimpleAggregation):
    """Compute the min of an aggregated column."""

    function_name = "min"

    def _aggregate(self, data: Any) -> pa.Scalar:
        return pc.min(data)


class MaxAggregation(SimpleAggregation):
    """Compute the max of an aggregated column."""

    function_name = "max"

    def _aggregate(self, data: Any) -> pa.Scalar:
        return pc.max(data)


class CountAggregation(Aggregation):
    """Compute the count of the non null values of an aggregated column.

    This is based on computing the counts for each intermediate batch
    and then sum them to compute the final result.
    """

    function_name = "count"

    def compute_chunk(self, batch: pa.RecordBatch) -> pa.Scalar:
        """Compute the count of the column in a single batch."""
        return pc.count(batch.column(self.column))

    def reduce(self, chunks: list[pa.Scalar]) -> pa.Scalar:
        """Sum the counts of all intermediate results to the final count."""
        return pc.sum(scalars_to_array(chunks), min_count=0)


class MeanAggregation(Aggregation):
    """Compute the mean of an aggregated column.

    This is based by computing count and sum of the column
    for each intermediate batch and then dividing
    the sum of all intermediate results by the count
    of all intermediate results.

    The mean is always a floating point number, even for integer columns.
    """

    function_name = "mean"

    def compute_chunk(self, batch: pa.RecordBatch) -> tuple[pa.Scalar, pa.Scalar]:
        """Compute the count and sum of the column in a single batch."""
        col = batch.column(self.column)
        return (pc.count(col), pc.sum(col))

    def reduce(self, chunks: list[tuple[pa.Scalar, pa.Scalar]]) -> pa.Scalar:
        """Compute the mean of the column from the intermediate sums and counts."""
        count = pc.sum(scalars_to_array([chunk[0] for chunk in chunks]), min_count=0)
        total = pc.sum(scalars_to_array([chunk[1] for chunk in chunks]))
        if count.as_py() == 0:
            return pa.scalar(None, type=pa.float64())
        return pc.divide(pc.cast(total, pa.float64()), pc.cast(count, pa.float64()))


class CountDistinctAggregation(Aggregation):
    """Count the distinct non null values of an aggregated column.

    Each chunk keeps its unique values, which are merged
    and deduplicated again when reducing.
    """

    function_name = "count_distinct"

    def compute_chunk(self, batch: pa.RecordBatch) -> pa.Array:
        column = batch.column(self.column)
        if pa.types.is_dictionary(column.type):
            column = column.dictionary_decode()
        return pc.unique(column)

    def reduce(self, chunks: list[pa.Array]) -> pa.Scalar:
        return pc.count_distinct(pa.concat_arrays(chunks))


class FirstAggregation(Aggregation):
    """Take the first value of the aggregated column in each group."""

    function_name = "first"

    def compute_chunk(self, batch: pa.RecordBatch) -> pa.Scalar | None:
        column = batch.column(self.column)
        return column[0] if len(column) else None

    def reduce(self, chunks: list[pa.Scalar | None]) -> pa.Scalar:
        return next((c for c in chunks if c is not None), pa.scalar(None))


class LastAggregation(FirstAggregation):
    """Take the last value of the aggregated column in each group."""

    function_name = "last"

    def compute_chunk(self, batch: pa.RecordBatch) -> pa.Scalar | None:
        column = batch.column(self.column)
        return column[len(column) - 1] if len(column) else None

    def reduce(self, chunks: list[pa.Scalar | None]) -> pa.Scalar:
        return super().reduce(list(reversed(chunks)))


class VarianceAggregation(Aggregation):
    """Compute the sample variance of an aggregated column.

    Each chunk is summarised as ``(count, mean, sum of squared deviations)``,
    the partial summaries are then merged pairwise, which avoids the
    precision loss of accumulating sums of squares.
    """

    function_name = "var"

    def compute_chunk(self, batch: pa.RecordBatch) -> tuple[int, float, float]:
        col = batch.column(self.column)
        count = pc.count(col).as_py()
        if count == 0:
            return (0, 0.0, 0.0)
        mean = pc.mean(col).as_py()
        m2 = pc.variance(col, ddof=0).as_py() * count
        return (count, mean, m2)

    def _merge(self, chunks: list[tuple[int, float, float]]) -> tuple[int, float, float]:
        count, mean, m2 = 0, 0.0, 0.0
        for chunk_count, chunk_mean, chunk_m2 in chunks:
            if chunk_count == 0:
                continue
            total = count + chunk_count
            delta = chunk_mean - mean
            mean += delta * chunk_count / total
            m2 += chunk_m2 + delta * delta * count * chunk_count / total
            count = total
        return count, mean, m2

    def reduce(self, chunks: list[tuple[int, float, float]]) -> pa.Scalar:
        count, _, m2 = self._merge(chunks)
        if count < 2:
            return pa.scalar(None, type=pa.float64())
        return pa.scalar(m2 / (count - 1), type=pa.float64())


class StddevAggregation(VarianceAggregation):
    """Compute the sample standard deviation of an aggregated column."""

    function_name = "sd"

    def reduce(self, chunks: list[tuple[int, float, float]]) -> pa.Scalar:
        variance = super().reduce(chunks)
        if not variance.is_valid:
            return variance
        return pa.scalar(math.sqrt(variance.as_py()), type=pa.float64())


AGGREGATIONS: dict[str, type[Aggregation]] = {
    cls.function_name: cls
    for cls in (
        SumAggregation,
        MinAggregation,
        MaxAggregation,
        CountAggregation,
        MeanAggregation,
        CountDistinctAggregation,
        FirstAggregation,
        LastAggregation,
        VarianceAggregation,
        StddevAggregation,
    )
}
AGGREGATIONS["n_distinct"] = CountDistinctAggregation
AGGREGATIONS["stddev"] = StddevAggregation


def get_aggregation(function: "str | type[Aggregation]") -> type[Aggregation]:
    """Look up an aggregation by its name.

    Aggregation classes are accepted too and returned as they are.

    >>> get_aggregation("mean")
    <class 'tidyground.compute.aggregate.MeanAggregation'>
    """
    if isinstance(function, type) and issubclass(function, Aggregation):
        return function
    try:
        return AGGREGATIONS[function]
    except (KeyError, TypeError):
        raise ValueError(
            f"Unknown aggregation function {function!r}, expected one of: {sorted(AGGREGATIONS)}"
        ) from None


def aggregation_name(function: "str | type[Aggregation]") -> str:
    """The name to use when naming output columns after an aggregation."""
    if isinstance(function, str):
        return function
    return get_aggregation(function).function_name
