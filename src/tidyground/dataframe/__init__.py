"""Dataframe library built on top of tidyground.

A dataframe library is a tool designed to handle and manipulate structured data,
typically in the form of tables (i.e., rows and columns).
It allows users to load data from various sources (like CSV files),
explore it, apply transformations, and analyze it.

The tidyground dataframe exposes the verbs used to tidy data:
filtering rows, selecting and computing columns, sorting,
grouped summaries, reshaping between wide and long form
and nesting the rows of each group::

    >>> import pyarrow as pa
    >>> from tidyground.dataframe import Dataframe
    >>> df = Dataframe(pa.table({
    ...     "id": [1, 1, 2, 2],
    ...     "variable": ["x", "y", "x", "y"],
    ...     "value": [10, 20, 30, 40],
    ... }))
    >>> df.pivot_wider(names_from="variable", values_from="value").to_arrow().to_pydict()
    {'id': [1, 2], 'x': [10, 30], 'y': [20, 40]}

Each verb returns a new lazy Dataframe, the data is only
computed by ``collect()``, ``to_arrow()`` or when printing it.
"""

from .dataframe import Dataframe, GroupedDataframe

__all__ = ("Dataframe", "GroupedDataframe")
