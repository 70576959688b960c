"""Format tabular data into a text table for print.

the `tabulate` function takes a `pyarrow.RecordBatch` or `pyarrow.Table`
and formats it into a text table. It will truncate long strings,
format floats to 2 decimal places, and limit the number of rows to display.
The function is used to display dataframes and the results of the shell commands.

Example:

    >>> import pyarrow as pa
    >>> data = {
    ...     "Product": ["Videogame", "Laptop", None],
    ...     "Quantity": [8, 8, 7],
    ...     "Price": [66.5, 38.72, 77.46],
    ... }
    >>> table = pa.RecordBatch.from_pydict(data)
    >>> print(tabulate(table))
    Product   | Quantity | Price
    --------- | -------- | -----
    Videogame | 8        | 66.50
    Laptop    | 8        | 38.72
    NA        | 7        | 77.46
"""

from typing import Any

import pyarrow as pa

from ..config import get_settings


def tabulate(data: pa.RecordBatch | pa.Table, max_rows: int | None = None) -> str:
    """Format a RecordBatch or Table into a text table.

    Will produce a string like::

        Product   | Quantity | Price | Total
        --------- | -------- | ----- | ------
        Videogame | 8        | 66.50 | 532.00
        Laptop    | 8        | 38.72 | 309.76
        Laptop    | 7        | 77.46 | 542.22

    :param data: The data to format.
    :param max_rows: How many rows to show at most,
                     defaults to the ``display_max_rows`` setting.
    """
    settings = get_settings()
    if max_rows is None:
        max_rows = settings.display_max_rows

    cols = data.column_names
    rows = [
        [format_value(row[c], settings.display_max_width) for c in cols]
        for row in data.slice(length=max_rows).to_pylist()
    ]

    colsizes = compute_max_colsize(cols, rows)
    header = [maketablerow(cols, colsizes=colsizes)]
    separator = [maketablerow(["-"] * len(cols), colsizes=colsizes, fillvalue="-")]
    textrows = [maketablerow(row, colsizes=colsizes) for row in rows]

    table = "\n".join(header + separator + textrows)
    if data.num_rows > max_rows:
        table += f"\n... and {data.num_rows - max_rows} more rows"
    return table


def compute_max_colsize(cols: list[str], rows: list[list[str]]) -> list[int]:
    """Compute the maximum size of each column in a table."""
    return [
        max([len(row[colidx]) for row in rows] + [len(cols[colidx])])
        for colidx, _ in enumerate(cols)
    ]


def maketablerow(cols: list[str], colsizes: list[int], fillvalue: str = " ") -> str:
    """Make a table row with the given column sizes."""
    return " | ".join(
        [col.ljust(colsizes[idx], fillvalue) for idx, col in enumerate(cols)]
    ).rstrip()


def format_value(v: Any, max_width: int = 30) -> str:
    """Format a value to be printed in the table.

    This function will format floats to 2 decimal places,
    show missing values as ``NA`` and truncate long strings.
    Nested cells and lists are summarised with their length.
    """
    if v is None:
        return "NA"
    elif isinstance(v, bool):
        return "true" if v else "false"
    elif isinstance(v, float):
        return f"{v:.2f}"
    elif isinstance(v, list):
        return f"<{len(v)} items>"

    v = str(v)
    if len(v) > max_width:
        v = v[: max_width - 3] + "..."
    return v
