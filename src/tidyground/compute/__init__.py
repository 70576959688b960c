"""The tidyground Compute Engine

The compute engine defines the in-memory
format for transformation plans and the plan nodes
supported.

The compute engine is tightly bound to Apache Arrow,
thus the engine will expect to always deal with
:class:`pyarrow.RecordBatch` and emit a new RecordBatch
as the result of the node execution.

This allows to easily build pipelines like::

    (RecordBatch)-->Node1--(RecordBatch)-->Node2--(RecordBatch)-->...

The plan nodes themselves are in charge of their execution,
this keeps the behavior near to the node and thus makes easy to
know how a Node is actually executed without having to look around too much.

Building a plan requires to combine the nodes that we want
to be executed starting with one or more ``DataSource`` nodes as the
leaf nodes of a plan:

>>> import pyarrow as pa
>>> data = pa.table({
...    "animals": pa.array(["Flamingo", "Horse", "Brittle stars", "Centipede"]),
...    "n_legs": pa.array([2, 4, 5, 100])
... })
>>>
>>> import pyarrow.compute as pc
>>> from tidyground.compute import col, PyArrowTableDataSource
>>> from tidyground.compute import FilterNode, FunctionCallExpression
>>> # keep the animals with 5 legs or more
>>> query = FilterNode(
...     FunctionCallExpression(pc.greater_equal, col("n_legs"), 5),
...     child=PyArrowTableDataSource(
...         data
...     )
... )
>>> query.collect().to_pydict()
{'animals': ['Brittle stars', 'Centipede'], 'n_legs': [5, 100]}
"""

from .aggregate import (
    AGGREGATIONS,
    AggregateNode,
    Aggregation,
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
from .base import ColumnRef, Literal, UnknownColumnError, col, lit
from .datasources import CSVDataSource, DataReadError, PyArrowTableDataSource
from .expressions import CallableExpression, FunctionCallExpression
from .filtering import FilterNode
from .nesting import NestNode, UnnestNode, nested_batches
from .pagination import PaginateNode
from .reshape import PivotLongerNode, PivotWiderNode, ReshapeCollisionError
from .selection import DropNode, ProjectNode, RenameNode
from .sorting import SortNode

__all__ = (
    "CSVDataSource",
    "PyArrowTableDataSource",
    "DataReadError",
    "FilterNode",
    "FunctionCallExpression",
    "CallableExpression",
    "col",
    "lit",
    "ColumnRef",
    "Literal",
    "UnknownColumnError",
    "PaginateNode",
    "SortNode",
    "ProjectNode",
    "RenameNode",
    "DropNode",
    "AggregateNode",
    "Aggregation",
    "AGGREGATIONS",
    "get_aggregation",
    "CountAggregation",
    "CountDistinctAggregation",
    "FirstAggregation",
    "LastAggregation",
    "MaxAggregation",
    "MeanAggregation",
    "MinAggregation",
    "StddevAggregation",
    "SumAggregation",
    "VarianceAggregation",
    "PivotWiderNode",
    "PivotLongerNode",
    "ReshapeCollisionError",
    "NestNode",
    "UnnestNode",
    "nested_batches",
)
