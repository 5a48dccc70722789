"""Read smart contract state in bulk.

:py:class:`MultiReader` is the entry point of the package.
It ties together ABI normalisation, caching, chunking, concurrency and
Multicall3 dispatch.

Example:

.. code-block:: python

    from eth_multiread.reader import MultiReader

    # Reads ETHEREUM_RPC, BSC_RPC, ... environment variables
    reader = MultiReader.from_environment()

    decimals = reader.call(
        target="0xA0b86991c6218b36c1d19D4a2e9Eb0cE3606eB48",
        abi="erc20:decimals",
    ).output

    balances = reader.multi_call(
        abi="erc20:balanceOf",
        target="0xA0b86991c6218b36c1d19D4a2e9Eb0cE3606eB48",
        calls=[{"params": [holder]} for holder in holders],
    ).output

    for result in balances:
        if result.success:
            print(result.input.params[0], result.output)
"""

import logging
from dataclasses import dataclass, field
from typing import Any, Iterable, Mapping, MutableMapping

from eth_typing import BlockIdentifier, HexAddress
from eth_utils import is_address

from eth_multiread import MultireadError
from eth_multiread.abi import FunctionDescriptor, normalise_abi
from eth_multiread.cache import MISSING, CallCache, create_cache_key, is_cacheable_abi
from eth_multiread.call import CallExecutor, normalise_block
from eth_multiread.codec import normalise_params
from eth_multiread.deployments import DEFAULT_MULTICALL_DEPLOYMENTS, MulticallDeployment, MulticallRegistry
from eth_multiread.diagnostics import ErrorContext, format_error_string
from eth_multiread.multicall import AlternateChainAdapter, CallRequest, CallResult, MulticallDispatcher
from eth_multiread.retry import DEFAULT_RETRY_POLICY, RetryPolicy
from eth_multiread.scheduler import DEFAULT_CONCURRENCY, get_default_chunk_size, run_in_pool, slice_into_chunks
from eth_multiread.transport import TransportRegistry
from eth_multiread.tron import TronMulticallAdapter, is_tron_address


logger = logging.getLogger(__name__)


class MissingCallsParameter(MultireadError):
    """multi_call() was called without calls."""


class MissingTarget(MultireadError):
    """A call has no target and there is no default target."""


class InvalidTarget(MultireadError):
    """The default target is not an address."""


@dataclass(slots=True)
class CallOutput:
    """Result of :py:meth:`MultiReader.call`."""

    #: Decoded return value
    output: Any


@dataclass(slots=True)
class MultiCallOutput:
    """Result of :py:meth:`MultiReader.multi_call`."""

    #: One result per call, in the order of calls
    output: list[CallResult] = field(default_factory=list)

    def __len__(self):
        return len(self.output)

    @property
    def failed(self) -> list[CallResult]:
        return [r for r in self.output if not r.success]


class MultiReader:
    """Read many contracts over many chains.

    - Owns its cache, so that two readers do not share memoised values
    - Thread safe
    """

    def __init__(
        self,
        transports: TransportRegistry,
        deployments: Mapping[str, MulticallDeployment] = DEFAULT_MULTICALL_DEPLOYMENTS,
        cache_store: MutableMapping | None = None,
        retry_policy: RetryPolicy = DEFAULT_RETRY_POLICY,
        concurrency: int = DEFAULT_CONCURRENCY,
        default_chunk_size: int | None = None,
        alternate_adapters: Mapping[str, AlternateChainAdapter] | None = None,
    ):
        """
        :param transports:
            Chain name -> transport

        :param deployments:
            Multicall3 deployment table

        :param cache_store:
            Mapping to store immutable call results in.

            Defaults to an unbounded in-memory cache.

        :param retry_policy:
            Multicall resubmission policy

        :param concurrency:
            Max chunks in flight

        :param default_chunk_size:
            Calls per multicall. Read from ``MULTICALL_CHUNK_SIZE`` if not given.

        :param alternate_adapters:
            Chain name -> adapter for non-EVM calling conventions.

            Defaults to Tron support.
        """
        assert isinstance(transports, TransportRegistry), f"Got {type(transports)}"
        assert concurrency >= 1, f"Bad concurrency {concurrency}"

        if alternate_adapters is None:
            alternate_adapters = {
                "tron": TronMulticallAdapter(transports, retry_policy=retry_policy),
            }

        self.transports = transports
        self.executor = CallExecutor(transports)
        self.registry = MulticallRegistry(deployments)
        self.cache = CallCache(cache_store)
        self.concurrency = concurrency
        self.default_chunk_size = default_chunk_size or get_default_chunk_size()
        self.dispatcher = MulticallDispatcher(
            self.executor,
            self.registry,
            retry_policy=retry_policy,
            alternate_adapters=alternate_adapters,
        )

    def __repr__(self):
        return f"<MultiReader {self.transports} chunk size {self.default_chunk_size} concurrency {self.concurrency}>"

    def _get_rpc_name(self, chain: str) -> str | None:
        transport = self.transports.get(chain)
        return transport.name if transport else None

    def _validate_target(self, target: Any, chain: str):
        if is_address(target):
            return
        if chain in self.dispatcher.alternate_adapters and is_tron_address(target):
            return
        raise InvalidTarget(f"Invalid target: {target} on chain {chain}")

    def _create_request(self, idx: int, call: dict | CallRequest, target: str | None, block: int | str) -> CallRequest:
        if isinstance(call, CallRequest):
            return CallRequest(target=call.target, params=call.params, block=block)

        assert isinstance(call, Mapping), f"Call #{idx} must be a dict or CallRequest, got {type(call)}"

        call_target = call.get("target") or target
        if not call_target:
            raise MissingTarget(f"Call #{idx} has no target and no default target was given: {call}")

        return CallRequest(
            target=call_target,
            params=tuple(normalise_params(call.get("params"))),
            block=block,
        )

    def call(
        self,
        target: HexAddress | str,
        abi: str | dict | FunctionDescriptor,
        params: Any = None,
        chain: str = "ethereum",
        block: BlockIdentifier | str = "latest",
        skip_cache: bool = False,
    ) -> CallOutput:
        """Read one contract function.

        :param abi:
            ABI dict, ``"<type>:<name>"`` shorthand, human-readable signature or alias like ``erc20:decimals``

        :param params:
            Function arguments. A single argument does not need to be wrapped in a list.

        :param skip_cache:
            Always go to the network, and do not store the result

        :raise MultireadError:
            On invalid input, before any network activity

        :raise DecodeError:
            If the call reverted or returned garbage
        """
        descriptor = normalise_abi(abi)
        block = normalise_block(block)
        params = normalise_params(params)

        if not target:
            raise MissingTarget(f"No target given for {descriptor.signature}")

        cacheable = not skip_cache and is_cacheable_abi(abi)
        if cacheable:
            key = create_cache_key(chain, target, abi)
            cached = self.cache.get(key)
            if cached is not MISSING:
                return CallOutput(cached)

        try:
            adapter = self.dispatcher.alternate_adapters.get(chain)
            if adapter is not None:
                output = adapter.call(descriptor, target, params, block)
            else:
                output = self.executor.execute(descriptor, target, params, block=block, chain=chain)
        except MultireadError:
            raise
        except Exception as e:
            context = ErrorContext(chain=chain, abi=abi, target=target, params=params, rpc=self._get_rpc_name(chain))
            logger.warning("%s", format_error_string(e, context))
            raise

        if cacheable:
            self.cache.put(key, output)

        return CallOutput(output)

    def multi_call(
        self,
        abi: str | dict | FunctionDescriptor,
        calls: Iterable[dict | CallRequest] | None,
        target: HexAddress | str | None = None,
        chain: str = "ethereum",
        block: BlockIdentifier | str = "latest",
        chunk_size: int | None = None,
        skip_cache: bool = False,
    ) -> MultiCallOutput:
        """Read the same function from many contracts, or with many arguments.

        - Individual call failures do not fail the batch, see :py:attr:`CallResult.success`
        - Failed calls are logged as a warning

        :param calls:
            List of ``{"target": ..., "params": [...]}`` dicts or :py:class:`CallRequest`.
            Both keys are optional.

        :param target:
            Default target for calls that do not have one

        :param chunk_size:
            Max calls per one multicall. Chunks are executed in parallel.

        :raise MultireadError:
            On invalid input, before any network activity

        :raise Exception:
            Transport error if a multicall fails after retries
        """
        if calls is None:
            raise MissingCallsParameter(f"calls missing for {abi}")

        descriptor = normalise_abi(abi)
        block = normalise_block(block)

        if target is not None:
            self._validate_target(target, chain)

        requests = [self._create_request(idx, c, target, block) for idx, c in enumerate(calls)]

        if len(requests) == 0:
            return MultiCallOutput([])

        chunk_size = chunk_size or self.default_chunk_size
        assert chunk_size > 0, f"Bad chunk size {chunk_size}"

        results: list[CallResult | None] = [None] * len(requests)

        cacheable = not skip_cache and is_cacheable_abi(abi)
        if cacheable:
            pending_indexes = []
            for idx, request in enumerate(requests):
                cached = self.cache.get(create_cache_key(chain, request.target, abi))
                if cached is MISSING:
                    pending_indexes.append(idx)
                else:
                    results[idx] = CallResult(input=request, output=cached, success=True)
            logger.debug("%d/%d calls served from cache", len(requests) - len(pending_indexes), len(requests))
        else:
            pending_indexes = list(range(len(requests)))

        if pending_indexes:
            pending = [requests[idx] for idx in pending_indexes]
            chunks = slice_into_chunks(pending, chunk_size)

            def _dispatch_chunk(chunk: list[CallRequest]) -> list[CallResult]:
                return self.dispatcher.dispatch(descriptor, chunk, chain=chain, block=block)

            try:
                chunk_results = run_in_pool(chunks, _dispatch_chunk, concurrency=self.concurrency)
            except MultireadError:
                raise
            except Exception as e:
                context = ErrorContext(chain=chain, abi=abi, target=target, rpc=self._get_rpc_name(chain), pool_errors=[e])
                logger.warning("%s", format_error_string(None, context))
                raise
            fetched = [r for chunk_result in chunk_results for r in chunk_result]
            assert len(fetched) == len(pending), f"Expected {len(pending)} results, got {len(fetched)}"

            for idx, result in zip(pending_indexes, fetched):
                results[idx] = result
                if cacheable and result.success:
                    self.cache.put(create_cache_key(chain, result.input.target, abi), result.output)

        assert all(r is not None for r in results), "Result reassembly failed"

        output = MultiCallOutput(results)

        if output.failed:
            context = ErrorContext(
                chain=chain,
                abi=abi,
                target=target,
                rpc=self._get_rpc_name(chain),
                failed_queries=output.failed,
            )
            logger.warning("%s", format_error_string(None, context))

        return output

    @staticmethod
    def from_environment(**kwargs) -> "MultiReader":
        """Create a reader using ``<CHAIN>_RPC`` environment variables.

        :param kwargs:
            Passed to :py:class:`MultiReader`
        """
        return MultiReader(TransportRegistry.from_environment(), **kwargs)
