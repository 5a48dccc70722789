"""Read many contracts with one RPC request.

- Calls are packed to one `Multicall3 <https://www.multicall3.com/>`_ ``tryAggregate`` call,
  so that a reverting call does not fail the whole batch

- If Multicall3 is not available on a chain, or not yet deployed at the queried block,
  calls are made one by one with plain ``eth_call``

- Chains with a non-standard calling convention are given to an
  :py:class:`AlternateChainAdapter`

Example:

.. code-block:: python

    dispatcher = MulticallDispatcher(CallExecutor(transports), MulticallRegistry())
    descriptor = normalise_abi("uint8:decimals")
    results = dispatcher.dispatch(
        descriptor,
        [CallRequest(usdc_address), CallRequest(weth_address)],
        chain="ethereum",
    )
    for r in results:
        print(r.input.target, r.success, r.output)
"""

import abc
import datetime
import logging
from dataclasses import dataclass, field
from typing import Any, Final, Mapping, Sequence

from eth_typing import BlockIdentifier, HexAddress
from web3 import Web3
from web3.exceptions import BadFunctionCallOutput, ContractLogicError

from eth_multiread.abi import FunctionDescriptor
from eth_multiread.call import CallExecutor, normalise_block
from eth_multiread.codec import DecodeError, decode_output, encode_call
from eth_multiread.deployments import MulticallRegistry
from eth_multiread.diagnostics import get_error_message
from eth_multiread.retry import DEFAULT_RETRY_POLICY, RetryPolicy


logger = logging.getLogger(__name__)


#: Multicall3 ``tryAggregate`` function.
#:
#: https://github.com/mds1/multicall/blob/main/src/Multicall3.sol
TRY_AGGREGATE_ABI: Final[dict] = {
    "inputs": [
        {"internalType": "bool", "name": "requireSuccess", "type": "bool"},
        {
            "components": [
                {"internalType": "address", "name": "target", "type": "address"},
                {"internalType": "bytes", "name": "callData", "type": "bytes"},
            ],
            "internalType": "struct Multicall3.Call[]",
            "name": "calls",
            "type": "tuple[]",
        },
    ],
    "name": "tryAggregate",
    "outputs": [
        {
            "components": [
                {"internalType": "bool", "name": "success", "type": "bool"},
                {"internalType": "bytes", "name": "returnData", "type": "bytes"},
            ],
            "internalType": "struct Multicall3.Result[]",
            "name": "returnData",
            "type": "tuple[]",
        }
    ],
    "stateMutability": "payable",
    "type": "function",
}

TRY_AGGREGATE: Final[FunctionDescriptor] = FunctionDescriptor.from_abi(TRY_AGGREGATE_ABI)


@dataclass(frozen=True, slots=True)
class CallRequest:
    """One read in a batch."""

    #: Contract address
    target: HexAddress | str

    #: Function arguments
    params: tuple = ()

    #: Block number or "latest"
    block: BlockIdentifier | str = "latest"

    def __post_init__(self):
        assert isinstance(self.params, tuple), f"params must be a tuple, got {type(self.params)}"


@dataclass(frozen=True, slots=True)
class CallResult:
    """Result of one read in a batch.

    - ``output`` is always ``None`` for a failed call
    """

    #: The request this is the result for
    input: CallRequest

    #: Decoded return value
    output: Any

    #: Did the call succeed and could we decode the return value
    success: bool

    #: Why the call failed, for diagnostics
    error: str | None = field(default=None, compare=False)

    def __post_init__(self):
        assert self.success or self.output is None, f"Failed call cannot have output: {self.output}"

    @staticmethod
    def failed(call: CallRequest, error: str | Exception | None = None) -> "CallResult":
        if isinstance(error, Exception):
            error = get_error_message(error)
        return CallResult(input=call, output=None, success=False, error=error or None)


def decode_slot(descriptor: FunctionDescriptor, call: CallRequest, success: bool, return_data: bytes) -> CallResult:
    """Turn one ``tryAggregate`` result to a call result.

    - A call is successful only if Multicall3 reports success and the return data decodes
    - Calling a non-contract address succeeds with empty return data, which fails the decode
    """
    if not success:
        return CallResult.failed(call, f"Call reverted: {return_data.hex() or '<no data>'}")

    try:
        output = decode_output(descriptor, return_data)
    except DecodeError as e:
        return CallResult.failed(call, e)

    return CallResult(input=call, output=output, success=True)


class AlternateChainAdapter(abc.ABC):
    """Batch reads on a chain that does not follow EVM calling conventions."""

    @abc.abstractmethod
    def call(
        self,
        descriptor: FunctionDescriptor,
        target: str,
        params: Sequence | None = None,
        block: BlockIdentifier | str = "latest",
    ) -> Any:
        """Same contract as :py:meth:`eth_multiread.call.CallExecutor.execute`."""

    @abc.abstractmethod
    def dispatch(
        self,
        descriptor: FunctionDescriptor,
        calls: Sequence[CallRequest],
        block: BlockIdentifier | str = "latest",
    ) -> list[CallResult]:
        """Same contract as :py:meth:`MulticallDispatcher.dispatch`."""


class MulticallDispatcher:
    """Execute one chunk of calls.

    - No chunking or threading here, see :py:mod:`eth_multiread.scheduler`
    - Thread safe, as long as the executor transports are
    """

    def __init__(
        self,
        executor: CallExecutor,
        registry: MulticallRegistry,
        retry_policy: RetryPolicy = DEFAULT_RETRY_POLICY,
        alternate_adapters: Mapping[str, AlternateChainAdapter] | None = None,
    ):
        """
        :param executor:
            Used for both aggregated and legacy calls

        :param registry:
            Multicall3 deployments

        :param retry_policy:
            How to resubmit a failed aggregate call

        :param alternate_adapters:
            Chain name -> adapter, for chains that need special handling
        """
        assert isinstance(executor, CallExecutor), f"Got {type(executor)}"
        assert isinstance(registry, MulticallRegistry), f"Got {type(registry)}"
        self.executor = executor
        self.registry = registry
        self.retry_policy = retry_policy
        self.alternate_adapters = dict(alternate_adapters or {})

    def __repr__(self):
        return f"<MulticallDispatcher {self.registry}, alternate chains: {list(self.alternate_adapters.keys())}>"

    def dispatch(
        self,
        descriptor: FunctionDescriptor,
        calls: Sequence[CallRequest],
        chain: str = "ethereum",
        block: BlockIdentifier | str = "latest",
    ) -> list[CallResult]:
        """Perform a batch of calls.

        :return:
            One result per call, in the same order

        :raise InvalidBlockTag:
            Before any network activity

        :raise Exception:
            If the aggregate call fails after retries, the transport error as is
        """
        block = normalise_block(block)

        if len(calls) == 0:
            return []

        adapter = self.alternate_adapters.get(chain)
        if adapter is not None:
            results = adapter.dispatch(descriptor, calls, block)
        elif not self.registry.is_supported(chain, block):
            logger.info("Multicall3 not available on %s at block %s, using legacy calls", chain, block)
            results = self.dispatch_legacy(descriptor, calls, chain, block)
        else:
            address = self.registry.get_address(chain)
            results = self.dispatch_aggregate(descriptor, calls, chain, block, address)

        assert len(results) == len(calls), f"Expected {len(calls)} results, got {len(results)}"
        return results

    def dispatch_aggregate(
        self,
        descriptor: FunctionDescriptor,
        calls: Sequence[CallRequest],
        chain: str,
        block: BlockIdentifier | str,
        multicall_address: HexAddress | str,
    ) -> list[CallResult]:
        """Pack all calls to one ``tryAggregate``."""

        encoded_calls = [(Web3.to_checksum_address(c.target), encode_call(descriptor, c.params)) for c in calls]

        payload_size = sum(20 + len(c[1]) for c in encoded_calls)

        start = datetime.datetime.now(datetime.timezone.utc)

        logger.info(
            "Performing multicall on %s, input payload total size %d bytes on %d functions, block is %s",
            chain,
            payload_size,
            len(encoded_calls),
            block,
        )

        def _submit() -> list[tuple[bool, bytes]]:
            return self.executor.execute(
                TRY_AGGREGATE,
                multicall_address,
                [False, encoded_calls],
                block=block,
                chain=chain,
            )

        calls_results = self.retry_policy.run(_submit, description=f"multicall {descriptor.name} on {chain}")

        assert len(calls_results) == len(calls), f"Multicall returned {len(calls_results)} results for {len(calls)} calls"

        results = [decode_slot(descriptor, call, succeed, output) for call, (succeed, output) in zip(calls, calls_results)]

        out_size = sum(len(o[1]) for o in calls_results)
        duration = datetime.datetime.now(datetime.timezone.utc) - start
        logger.info("Multicall result fetch and handling took %s, output was %d bytes", duration, out_size)

        return results

    def dispatch_legacy(
        self,
        descriptor: FunctionDescriptor,
        calls: Sequence[CallRequest],
        chain: str,
        block: BlockIdentifier | str,
    ) -> list[CallResult]:
        """Skip Multicall3 and do ``eth_call`` for each call.

        - Reverts and undecodable results become failed results
        - Network errors are raised
        """
        results = []
        for idx, call in enumerate(calls, start=1):
            logger.debug("Doing legacy call #%d to %s, args %s", idx, call.target, call.params)
            try:
                output = self.executor.execute(descriptor, call.target, call.params, block=block, chain=chain)
                results.append(CallResult(input=call, output=output, success=True))
            except (DecodeError, ContractLogicError, BadFunctionCallOutput) as e:
                logger.debug("Legacy call to %s failed: %s", call.target, e)
                results.append(CallResult.failed(call, e))
        return results
