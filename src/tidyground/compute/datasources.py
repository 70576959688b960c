"""Plan nodes that load data

The datasource nodes are expected to fetch the data from some source,
convert it into the format accepted by the compute engine and forward it
to the next node in the plan.

They are used to do things like loading
data from delimited text files or equivalent operations.
"""

from abc import abstractmethod

import pyarrow as pa
import pyarrow.csv
import structlog

from .base import QueryPlanNode

log = structlog.get_logger(__name__)


class DataReadError(Exception):
    """The content of a file couldn't be parsed into a table."""

    def __init__(self, filename: str, reason: str) -> None:
        self.filename = filename
        self.reason = reason
        super().__init__(f"Unable to read {filename}: {reason}")


class DataSourceNode(QueryPlanNode):
    """Base class for nodes that load data from a source."""

    @abstractmethod
    def poll_schema(self) -> pa.Schema:
        """Poll the schema of the data source without loading its content."""
        ...


class CSVDataSource(DataSourceNode):
    """Load data from a delimited text file.

    Given a local CSV file path, load the content,
    convert it into Arrow format, and emit it
    for the next nodes of the plan to consume.

    The file doesn't have to be comma separated,
    any single character ``delimiter`` is accepted
    and numbers written with a different decimal
    separator (like ``3,14``) can be parsed by
    providing the ``decimal_point``.
    """

    def __init__(
        self,
        filename: str,
        block_size: int | None = None,
        *,
        delimiter: str = ",",
        decimal_point: str = ".",
        skip_rows: int = 0,
        n_max: int | None = None,
        column_names: list[str] | None = None,
    ) -> None:
        """
        :param filename: The path of the local CSV file.
        :param block_size: How big to make batches of data,
                           Influences how many batches will be produced
        :param delimiter: The character separating the values in a row.
        :param decimal_point: The character used as decimal separator in numbers.
        :param skip_rows: How many rows to skip at the beginning of the file.
        :param n_max: Maximum number of rows to read, ``None`` reads them all.
        :param column_names: Names for the columns, when provided
                             the first row is considered data and not a header.
        """
        self.filename = filename
        self.block_size = block_size
        self.delimiter = delimiter
        self.decimal_point = decimal_point
        self.skip_rows = skip_rows
        self.n_max = n_max
        self.column_names = column_names

    def __str__(self) -> str:
        return f"CSVDataSource({self.filename}, block_size={self.block_size})"

    def _options(self) -> dict:
        read_options = pa.csv.ReadOptions(
            skip_rows=self.skip_rows, column_names=self.column_names
        )
        if self.block_size is not None:
            read_options.block_size = self.block_size
        return {
            "read_options": read_options,
            "parse_options": pa.csv.ParseOptions(delimiter=self.delimiter),
            "convert_options": pa.csv.ConvertOptions(decimal_point=self.decimal_point),
        }

    def batches(self) -> QueryPlanNode.RecordBatchesGenerator:
        """Open CSV file and emit the batches.

        Parsing errors are reported as :class:`DataReadError`.
        """
        log.debug("csv_read_started", filename=self.filename, delimiter=self.delimiter)
        remaining = self.n_max
        try:
            with pa.csv.open_csv(self.filename, **self._options()) as reader:
                for batch in reader:
                    if remaining is not None:
                        if remaining <= 0:
                            break
                        batch = batch.slice(0, remaining)
                        remaining -= batch.num_rows
                    yield batch
        except (pa.ArrowInvalid, pa.ArrowTypeError) as err:
            raise DataReadError(self.filename, str(err)) from err
        except OSError as err:
            raise DataReadError(self.filename, err.strerror or str(err)) from err

    def poll_schema(self) -> pa.Schema:
        """Poll the schema of the CSV file."""
        try:
            with pa.csv.open_csv(self.filename, **self._options()) as reader:
                return reader.schema
        except (pa.ArrowInvalid, OSError) as err:
            raise DataReadError(self.filename, str(err)) from err


class PyArrowTableDataSource(DataSourceNode):
    """Load data from an in-memory pyarrow.Table or pyarrow.RecordBatch.

    Given a :class:`pyarrow.Table` or `pyarrow.RecordBatch` object,
    allow to use its data in a plan.
    """

    def __init__(self, table: pa.Table | pa.RecordBatch) -> None:
        """
        :param table: The table or recordbatch with the data to read.
        """
        self.table = table
        self.is_recordbatch = isinstance(table, pa.RecordBatch)

    def __str__(self) -> str:
        return f"PyArrowTableDataSource(columns={self.table.column_names}, rows={self.table.num_rows})"

    def batches(self) -> QueryPlanNode.RecordBatchesGenerator:
        """Emit the data contained in the Table for consumption by other node."""
        if self.is_recordbatch:
            yield self.table
        elif self.table.num_rows == 0:
            # Tables without rows have no batches, but the schema
            # still matters for the nodes that consume them.
            yield pa.RecordBatch.from_pylist([], schema=self.table.schema)
        else:
            yield from self.table.to_batches()

    def poll_schema(self) -> pa.Schema:
        """Poll the schema of the Table."""
        return self.table.schema
