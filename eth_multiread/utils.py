"""Small helpers shared by the reader modules."""

import logging
import os
from itertools import islice
from typing import Iterable
from urllib.parse import urlparse


def get_url_domain(url: str) -> str:
    """Redact URL so that only domain is displayed.

    Some services e.g. infura use path as an API key.
    """
    parsed = urlparse(url)
    if parsed.port in (80, 443, None):
        return parsed.hostname
    else:
        return f"{parsed.hostname}:{parsed.port}"


def shorten_string(s: str, max_length: int = 150) -> str:
    """Cut a long string for log output and mark it cut with ``...``."""
    if len(s) > max_length:
        return s[0:max_length] + "..."
    return s


def chunked(iterable: Iterable, chunk_size: int) -> Iterable[list]:
    """Split an iterable to lists of ``chunk_size``. The last list may be shorter."""
    iterator = iter(iterable)
    while chunk := list(islice(iterator, chunk_size)):
        yield chunk


def setup_console_logging(default_log_level: str = "warning") -> logging.Logger:
    """Log to the console in scripts and notebooks.

    - ``LOG_LEVEL`` environment variable overrides ``default_log_level``
    - Output is coloured if ``coloredlogs`` is installed
    - web3 and urllib3 request logging is muted below warning

    :return:
        Root logger
    """
    level = os.environ.get("LOG_LEVEL", default_log_level).upper()
    numeric_level = getattr(logging, level, None)
    assert isinstance(numeric_level, int), f"Unknown log level: {level}"

    fmt = "%(asctime)s %(name)-30s %(levelname)-8s %(message)s"
    date_fmt = "%H:%M:%S"

    try:
        import coloredlogs

        coloredlogs.install(level=numeric_level, fmt=fmt, datefmt=date_fmt)
    except ImportError:
        logging.basicConfig(level=numeric_level, format=fmt, datefmt=date_fmt)

    for noisy in ("web3.providers.HTTPProvider", "web3.RequestManager", "urllib3.connectionpool"):
        logging.getLogger(noisy).setLevel(logging.WARNING)

    return logging.getLogger()
