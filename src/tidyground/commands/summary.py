"""Command line interface for summarising CSV files.

This module provides a command line interface running
:func:`tidyground.summary.custom_summary` on the content of a CSV file.

The results of the execution are then printed to the console in a tabular format
using the :mod:`tidyground.utils.tabulate` module.
"""

import argparse
import sys

import pyarrow as pa
import structlog

from tidyground.compute import DataReadError, UnknownColumnError
from tidyground.expr import ExpressionError
from tidyground.io import read_csv
from tidyground.summary import custom_summary
from tidyground.utils import logs, tabulate

log = structlog.get_logger(__name__)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="tidyground-summary",
        description="Filter, group and summarise the content of a CSV file.",
    )
    parser.add_argument("filename", help="The CSV file to summarise.")
    parser.add_argument(
        "-f", "--filter", help="Expression selecting the rows, like \"value > 10\"."
    )
    parser.add_argument(
        "-g",
        "--group-by",
        action="append",
        default=[],
        help="Column to group by. Can be provided multiple times.",
    )
    parser.add_argument(
        "-s",
        "--summary",
        action="append",
        default=[],
        help="Summary in the form function:column, like mean:value. Can be provided multiple times.",
    )
    parser.add_argument(
        "-d", "--delimiter", default=",", help="Character separating the values."
    )
    parser.add_argument(
        "--decimal-point", default=".", help="Character used as decimal separator."
    )
    parser.add_argument(
        "--max-rows", type=int, default=None, help="Maximum number of rows to print."
    )
    parser.add_argument(
        "--log-level",
        type=str.upper,
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        default=None,
        help="Verbosity of the logs written to stderr.",
    )
    return parser


def main(argv: list[str] | None = None) -> int:
    """Parse the command line arguments and print the summary.

    Returns the exit status, errors in the input are
    reported on a single line and give status 1.
    """
    args = build_parser().parse_args(argv)
    logs.configure_logging(level=args.log_level)

    try:
        data = read_csv(
            args.filename, delimiter=args.delimiter, decimal_point=args.decimal_point
        )
        result = custom_summary(
            data,
            filter=args.filter,
            group_by=args.group_by,
            summaries=args.summary,
        )
    except (
        DataReadError,
        ExpressionError,
        UnknownColumnError,
        ValueError,
        TypeError,
        pa.ArrowException,
    ) as err:
        log.debug("summary_failed", error=repr(err))
        print(f"Error: {err}", file=sys.stderr)
        return 1

    print(tabulate.tabulate(result, max_rows=args.max_rows))
    return 0


if __name__ == "__main__":
    sys.exit(main())
