"""Read and write data files.

Delimited text files are read through :class:`tidyground.compute.CSVDataSource`
and written with the :mod:`pyarrow.csv` writer, plain text files are
read and written one line at a time.
"""

import itertools

import pyarrow as pa
import pyarrow.csv
import structlog

from .compute.base import QueryPlanNode
from .compute.datasources import CSVDataSource, DataReadError
from .config import get_settings

log = structlog.get_logger(__name__)


def read_csv(
    filename: str,
    *,
    delimiter: str = ",",
    decimal_point: str = ".",
    skip_rows: int = 0,
    n_max: int | None = None,
    column_names: list[str] | None = None,
    block_size: int | None = None,
) -> pa.Table:
    """Load a delimited text file into a :class:`pyarrow.Table`.

    Accepts the same options as :class:`tidyground.compute.CSVDataSource`,
    when ``block_size`` is not provided the ``csv_block_size`` setting is used.
    """
    source = CSVDataSource(
        filename,
        block_size=block_size or get_settings().csv_block_size,
        delimiter=delimiter,
        decimal_point=decimal_point,
        skip_rows=skip_rows,
        n_max=n_max,
        column_names=column_names,
    )
    table = source.collect()
    if table.num_columns == 0:
        # No batches at all, still provide the columns of the file.
        table = source.poll_schema().empty_table()
    return table


def write_csv(
    data: pa.Table | pa.RecordBatch | QueryPlanNode,
    filename: str,
    *,
    delimiter: str = ",",
    include_header: bool = True,
) -> None:
    """Save tabular data to a delimited text file.

    Categorical columns are written as their labels,
    missing values are written as empty fields.
    Nested columns can't be represented and raise :class:`TypeError`.
    """
    if isinstance(data, QueryPlanNode):
        data = data.collect()
    if isinstance(data, pa.RecordBatch):
        data = pa.Table.from_batches([data])

    columns = []
    for name, column in zip(data.column_names, data.columns):
        if pa.types.is_dictionary(column.type):
            column = column.cast(column.type.value_type)
        elif pa.types.is_nested(column.type):
            raise TypeError(f"Column {name!r} of type {column.type} can't be written to CSV")
        columns.append(column)
    data = pa.Table.from_arrays(columns, names=data.column_names)

    log.debug("csv_write_started", filename=filename, rows=data.num_rows)
    pa.csv.write_csv(
        data,
        filename,
        write_options=pa.csv.WriteOptions(
            include_header=include_header, delimiter=delimiter
        ),
    )


def read_lines(filename: str, n_max: int | None = None, encoding: str = "utf-8") -> pa.Array:
    """Read the lines of a text file, without their line terminators.

    :param n_max: Maximum number of lines to read, ``None`` reads them all.
    """
    if n_max is not None and n_max < 0:
        raise ValueError("n_max must be zero or a positive number")
    try:
        with open(filename, encoding=encoding, newline=None) as f:
            lines = [line.rstrip("\n") for line in itertools.islice(f, n_max)]
    except UnicodeDecodeError as err:
        raise DataReadError(filename, str(err)) from err
    except OSError as err:
        raise DataReadError(filename, err.strerror or str(err)) from err
    return pa.array(lines, type=pa.string())


def write_lines(lines, filename: str, sep: str = "\n", encoding: str = "utf-8") -> None:
    """Write each line to a text file, followed by ``sep``.

    Missing lines are written as ``NA``.
    """
    if isinstance(lines, (pa.Array, pa.ChunkedArray)):
        lines = lines.to_pylist()
    elif isinstance(lines, str):
        lines = [lines]
    with open(filename, "w", encoding=encoding, newline="") as f:
        for line in lines:
            f.write(("NA" if line is None else str(line)) + sep)
