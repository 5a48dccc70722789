"""Retry policy for multicall submissions.

Public RPC nodes fail randomly. A whole aggregated call is resubmitted
a fixed number of times before the error is given to the caller.
"""

import logging
import time
from dataclasses import dataclass
from typing import Callable, TypeVar

import requests


logger = logging.getLogger(__name__)


T = TypeVar("T")


#: Exceptions raised by :py:mod:`requests` when the node is down or overloaded
TRANSIENT_HTTP_EXCEPTIONS = (
    requests.exceptions.ConnectionError,
    requests.exceptions.ChunkedEncodingError,
    requests.exceptions.HTTPError,
    requests.exceptions.Timeout,
)


def retry_any_error(exc: Exception) -> bool:
    """Retry predicate: every failure is worth another attempt."""
    return True


def is_transient_rpc_error(exc: Exception) -> bool:
    """Retry predicate: only network level failures.

    Malformed calls and reverts fail the same way on the second attempt,
    so these are not retried.
    """
    return isinstance(exc, TRANSIENT_HTTP_EXCEPTIONS)


@dataclass(frozen=True, slots=True)
class RetryPolicy:
    """How many times to try a submission.

    Example:

    .. code-block:: python

        policy = RetryPolicy(max_attempts=3, backoff=0.5, should_retry=is_transient_rpc_error)
        result = policy.run(lambda: transport.call(address, data, "latest"))
    """

    #: Total attempts, including the first one
    max_attempts: int = 2

    #: Seconds to sleep between attempts
    backoff: float = 0.0

    #: Decide if an exception is worth a retry
    should_retry: Callable[[Exception], bool] = retry_any_error

    def __post_init__(self):
        assert self.max_attempts >= 1, f"max_attempts must be at least 1, got {self.max_attempts}"
        assert self.backoff >= 0, f"Negative backoff: {self.backoff}"

    def run(self, func: Callable[[], T], description: str = "call") -> T:
        """Run a function under this policy.

        :param description:
            For log messages

        :raise Exception:
            The last exception of ``func``, unwrapped
        """
        attempt = 1
        while True:
            try:
                return func()
            except Exception as e:
                if attempt >= self.max_attempts or not self.should_retry(e):
                    raise

                logger.warning(
                    "Retrying %s, attempt %d/%d failed: %s",
                    description,
                    attempt,
                    self.max_attempts,
                    e,
                )

                if self.backoff:
                    time.sleep(self.backoff)

                attempt += 1


#: Submit twice, no sleep
DEFAULT_RETRY_POLICY = RetryPolicy()
