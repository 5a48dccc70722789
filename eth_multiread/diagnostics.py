"""Human readable error messages for failed reads.

Turn raw RPC and decoding errors into one line that tells which chain,
which node, which contract and which function failed.

- Formatting never changes control flow. The formatted errors are for logging,
  or for callers who want to re-raise with a better message.

- RPC URLs are reduced to their domain, as API keys often live in the URL path
"""

import logging
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any, Sequence

import requests
from web3.exceptions import BadFunctionCallOutput, ContractLogicError

from eth_multiread.codec import DecodeError
from eth_multiread.utils import get_url_domain, shorten_string

if TYPE_CHECKING:
    from eth_multiread.multicall import CallResult


logger = logging.getLogger(__name__)

#: Multicall summaries are cut at this length
MAX_MULTICALL_SUMMARY_LENGTH = 310

#: Errors that mean the node could not be reached
TRANSPORT_ERRORS = (
    requests.exceptions.RequestException,
    ConnectionError,
    TimeoutError,
)

#: Errors that mean the contract did not give us a good answer
CALL_ERRORS = (
    ContractLogicError,
    BadFunctionCallOutput,
    DecodeError,
)


@dataclass(slots=True)
class ErrorContext:
    """What we were doing when the error happened."""

    #: Chain name
    chain: str | None = None

    #: ABI spec as given by the caller
    abi: Any = None

    #: Contract address
    target: str | None = None

    #: Call arguments
    params: Sequence | None = None

    #: RPC URL or name of the transport
    rpc: str | None = None

    #: Slots that failed in a multicall batch
    failed_queries: list["CallResult"] = field(default_factory=list)

    #: Errors of chunks that failed as a whole
    pool_errors: list[Exception] = field(default_factory=list)

    @property
    def host(self) -> str:
        if not self.rpc:
            return ""
        if "://" in self.rpc:
            return get_url_domain(self.rpc) or self.rpc
        return self.rpc


class FormattedCallError(Exception):
    """Error with a formatted message and the original error texts attached."""

    def __init__(self, message: str, underlying_errors: list[str] | None = None):
        super().__init__(message)
        self.message = message
        self.underlying_errors = underlying_errors or []

    @property
    def underlying_error(self) -> str | None:
        if self.underlying_errors:
            return self.underlying_errors[0]
        return None


def get_error_message(error: Exception) -> str:
    """Human readable error text.

    :py:mod:`web3` exceptions carry extra args, so their ``str()`` is a tuple.
    """
    message = getattr(error, "message", None)
    if isinstance(message, str) and message:
        return message
    return str(error)


def _format_params(params: Sequence | None) -> str:
    if not params:
        return ""
    if len(params) == 1:
        return str(params[0])
    return ", ".join(str(p) for p in params)


def _format_multicall_summary(context: ErrorContext) -> str:
    target_str = f"[target: {context.target}]" if context.target else ""
    error_string = f"Multicall failed! \n [chain: {context.chain or 'ethereum'}] [fail count: {len(context.failed_queries)}] [abi: {context.abi}] {target_str} "

    for result in context.failed_queries:
        call = result.input
        target = f"   target: {call.target}" if not target_str else ""
        params = f"params: {_format_params(call.params)}" if call.params else ""
        error_string += f"\n {target} {params}"

    if len(error_string) > MAX_MULTICALL_SUMMARY_LENGTH:
        return error_string[0:MAX_MULTICALL_SUMMARY_LENGTH] + "..."
    return error_string


def format_error_string(error: Exception | None, context: ErrorContext | None = None) -> str:
    """Create a one line description of a failure.

    Example:

    .. code-block:: python

        context = ErrorContext(chain="ethereum", abi="uint8:decimals", failed_queries=failed)
        logger.warning(format_error_string(None, context))

    :param error:
        The raised exception.

        Pass ``None`` to describe failed slots of a multicall batch in ``context.failed_queries``.

    :return:
        Formatted message, empty string if there is nothing to report
    """
    if context is None:
        context = ErrorContext()

    if error is None:
        if context.pool_errors:
            errors = [format_error_string(e, context) for e in context.pool_errors]
            return "Worker pool failed! \n " + "\n".join(errors)
        if context.failed_queries:
            return _format_multicall_summary(context)
        return ""

    if isinstance(error, FormattedCallError):
        return error.message

    if isinstance(error, TRANSPORT_ERRORS):
        return f"host: {context.host} reason: {error}"

    if isinstance(error, CALL_ERRORS):
        extra_info = f"target: {context.target}"
        if context.params:
            extra_info += shorten_string(" params: " + ", ".join(str(p) for p in context.params))
        return f"Failed to call {context.abi} {extra_info} on chain: [{context.chain}] rpc: {context.host}  call reverted {get_error_message(error)}"

    return str(error)


def format_error(error: Exception | None, context: ErrorContext | None = None) -> FormattedCallError:
    """Wrap an error to :py:class:`FormattedCallError`.

    - Already formatted errors are returned as is
    - For multicall summaries, the errors of the failed slots are attached
    """
    if isinstance(error, FormattedCallError):
        return error

    if context is None:
        context = ErrorContext()

    message = format_error_string(error, context)

    if error is None:
        underlying = [shorten_string(get_error_message(e)) for e in context.pool_errors]
        underlying += [shorten_string(str(getattr(r, "error", None) or "call failed")) for r in context.failed_queries]
    else:
        underlying = [shorten_string(get_error_message(error))]

    return FormattedCallError(message, underlying)
