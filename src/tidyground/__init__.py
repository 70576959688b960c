"""tidyground

Tools to tidy, reshape and summarise tabular data, built on Apache Arrow.

The library is constituted by multiple components, each isolated within its own
module and each self documented:

* The Compute Engine (:mod:`tidyground.compute`), lazy plans of nodes
  transforming :class:`pyarrow.RecordBatch` objects: filters, projections,
  grouped aggregations, pivots and nesting.
* The expression language (:mod:`tidyground.expr`), to write filters
  and computed columns as text like ``"value > 10 AND group = 'A'"``.
* The Dataframe API (:mod:`tidyground.dataframe`), which provides an high
  level API for the compute engine.
* Column helpers for strings (:mod:`tidyground.strings`) and
  categorical data (:mod:`tidyground.categorical`).
* Iteration helpers (:mod:`tidyground.mapping`) to apply functions
  over lists, columns and nested partitions.
* Summaries described as plain data (:mod:`tidyground.summary`).
* Reading and writing files (:mod:`tidyground.io`).
"""

from . import categorical, compute, mapping, strings
from .dataframe import Dataframe
from .io import read_csv, read_lines, write_csv, write_lines
from .summary import build_summary_plan, custom_summary

__all__ = (
    "compute",
    "categorical",
    "mapping",
    "strings",
    "Dataframe",
    "custom_summary",
    "build_summary_plan",
    "read_csv",
    "write_csv",
    "read_lines",
    "write_lines",
)
