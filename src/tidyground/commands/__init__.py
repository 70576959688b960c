"""Shell commands exposing tidyground functionalities.

This module contains the shell commands that can be used to interact with tidyground.

Summary
=======

``tidyground-summary`` filters, groups and summarises a CSV file::

    tidyground-summary sales.csv -f "Quantity > 2" -g Product -s sum:Quantity -s mean:Price

It can be tested against provided example data running it with the following command::

    tidyground-summary examples/data/sales.csv -g Product -s count:Quantity -s "mean:Price"

Invalid input, like unknown columns or malformed files, is reported
with a single line error message and exit status 1.
Logs are written to stderr, their verbosity is controlled by ``--log-level``
or by the ``TIDYGROUND_LOG_LEVEL`` environment variable.
"""
