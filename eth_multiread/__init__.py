"""eth_multiread package root.

Read many smart contract view functions across EVM chains
with as few JSON-RPC round trips as possible.

See :py:class:`eth_multiread.reader.MultiReader` for the entry point.
"""

import sys


#: Minimum required Python version to run this package
MIN_PYTHON_VERSION = (3, 10)


def _check_python_version():
    """Try early abort if the Python version is too old."""

    # Use Python tuple comparison for version numbers
    # https://stackoverflow.com/a/1093331/315168
    if sys.version_info < MIN_PYTHON_VERSION:
        raise RuntimeError(f"eth-multiread needs Python {MIN_PYTHON_VERSION[0]}.{MIN_PYTHON_VERSION[1]} or later")


_check_python_version()


class MultireadError(Exception):
    """Base class for input validation errors.

    All subclasses are raised before any network activity happens.
    """
