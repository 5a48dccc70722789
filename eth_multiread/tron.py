"""Tron support.

Tron runs EVM bytecode, but

- Addresses are base58check encoded with ``0x41`` prefix, e.g. ``TEazPvZwDjDtFeJupyo7QunvnrnUjPH8ED``
- Nodes do not speak Ethereum JSON-RPC, reads go through
  the `TronGrid HTTP API <https://developers.tron.network/reference/triggerconstantcontract>`_
- Historical state reads are not supported

This module converts addresses at the edges and otherwise reuses
the Multicall3 packing of :py:mod:`eth_multiread.multicall`.
"""

import logging
from typing import Any, Sequence

import base58
import requests
from eth_typing import BlockIdentifier, HexAddress
from eth_utils import is_hex_address
from web3 import Web3

from eth_multiread.abi import FunctionDescriptor
from eth_multiread.codec import decode_output, encode_call, normalise_params
from eth_multiread.deployments import DEFAULT_MULTICALL_DEPLOYMENTS
from eth_multiread.multicall import TRY_AGGREGATE, AlternateChainAdapter, CallRequest, CallResult, decode_slot
from eth_multiread.retry import DEFAULT_RETRY_POLICY, RetryPolicy
from eth_multiread.transport import Transport, TransportRegistry
from eth_multiread.utils import get_url_domain


logger = logging.getLogger(__name__)

#: Tron mainnet address prefix byte
TRON_ADDRESS_PREFIX = b"\x41"

#: Multicall3 on Tron
TRON_MULTICALL_ADDRESS = DEFAULT_MULTICALL_DEPLOYMENTS["tron"].address


class TronCallFailed(Exception):
    """Tron node reported the call as failed."""


def is_tron_address(address: Any) -> bool:
    """Is this a valid base58check Tron address."""
    if not isinstance(address, str) or not address.startswith("T"):
        return False
    try:
        raw = base58.b58decode_check(address)
    except ValueError:
        return False
    return len(raw) == 21 and raw[0:1] == TRON_ADDRESS_PREFIX


def to_hex_address(address: str) -> HexAddress:
    """Convert a base58 Tron address to a 20 bytes EVM address.

    Hex addresses are returned as is, lowercased.
    """
    if is_hex_address(address):
        return HexAddress(address.lower())

    raw = base58.b58decode_check(address)
    assert len(raw) == 21, f"Not a Tron address: {address}"
    return HexAddress("0x" + raw[1:].hex())


def to_tron_address(address: str) -> str:
    """Convert an EVM address to a base58 Tron address.

    Tron addresses are returned as is.
    """
    if is_tron_address(address):
        return address
    raw = bytes.fromhex(address.removeprefix("0x"))
    assert len(raw) == 20, f"Not an address: {address}"
    return base58.b58encode_check(TRON_ADDRESS_PREFIX + raw).decode()


#: Used as the caller of constant calls
TRON_ZERO_ADDRESS = to_tron_address("0x" + "00" * 20)


class TronTransport(Transport):
    """Call Tron contracts over the TronGrid HTTP API."""

    def __init__(self, api_url: str, session: requests.Session | None = None, timeout: float = 30.0):
        """
        :param api_url:
            E.g. ``https://api.trongrid.io``

        :param session:
            Pass a session with your own headers, e.g. ``TRON-PRO-API-KEY``
        """
        self.api_url = api_url.rstrip("/")
        self.session = session or requests.Session()
        self.timeout = timeout

    def __repr__(self):
        return f"<TronTransport {self.name}>"

    @property
    def name(self) -> str:
        return get_url_domain(self.api_url)

    def call(self, target: HexAddress | str, data: bytes, block_identifier: BlockIdentifier = "latest") -> bytes:
        """Do ``triggerconstantcontract``.

        :param block_identifier:
            Ignored, Tron nodes can only read the latest state

        :raise TronCallFailed:
            If the node could not execute the call
        """
        payload = {
            "owner_address": TRON_ZERO_ADDRESS,
            "contract_address": to_tron_address(target),
            "data": bytes(data).hex(),
            "visible": True,
        }

        response = self.session.post(f"{self.api_url}/wallet/triggerconstantcontract", json=payload, timeout=self.timeout)
        response.raise_for_status()
        result = response.json()

        status = result.get("result", {})
        if not status.get("result"):
            message = status.get("message", "")
            try:
                message = bytes.fromhex(message).decode("utf-8", errors="replace")
            except ValueError:
                pass
            raise TronCallFailed(f"Call to {target} failed: {status.get('code', 'unknown')} {message}")

        constant_result = result.get("constant_result")
        if not constant_result:
            raise TronCallFailed(f"Call to {target} returned no data: {result}")

        return bytes.fromhex(constant_result[0])


def _convert_output_addresses(descriptor: FunctionDescriptor, output: Any) -> Any:
    """Show returned addresses in Tron format."""
    if descriptor.output_types == ("address",):
        return to_tron_address(output)
    if descriptor.output_types == ("address[]",):
        return [to_tron_address(a) for a in output]
    return output


def _convert_param_addresses(descriptor: FunctionDescriptor, params: Sequence) -> list:
    params = normalise_params(params)
    if len(params) != len(descriptor.input_types):
        # Let the encoder report the mismatch
        return params
    return [to_hex_address(p) if t == "address" and isinstance(p, str) else p for t, p in zip(descriptor.input_types, params)]


class TronMulticallAdapter(AlternateChainAdapter):
    """Pack Tron reads to one Multicall3 call.

    - Targets and address arguments can be given in base58 or hex
    - Returned ``address`` and ``address[]`` values are converted to base58
    """

    def __init__(
        self,
        transports: TransportRegistry,
        chain: str = "tron",
        multicall_address: str = TRON_MULTICALL_ADDRESS,
        retry_policy: RetryPolicy = DEFAULT_RETRY_POLICY,
    ):
        """
        :param transports:
            The Tron transport is resolved from here on the first dispatch
        """
        self.transports = transports
        self.chain = chain
        self.multicall_address = multicall_address
        self.retry_policy = retry_policy

    def __repr__(self):
        return f"<TronMulticallAdapter {self.chain} multicall at {self.multicall_address}>"

    def call(
        self,
        descriptor: FunctionDescriptor,
        target: str,
        params: Sequence | None = None,
        block: BlockIdentifier | str = "latest",
    ) -> Any:
        """Read one Tron contract without Multicall3."""
        if block != "latest":
            logger.warning("Tron does not support historical reads, reading the latest block instead of %s", block)

        transport = self.transports.get_transport(self.chain)
        data = encode_call(descriptor, _convert_param_addresses(descriptor, params))
        raw = transport.call(to_hex_address(target), data, "latest")
        return _convert_output_addresses(descriptor, decode_output(descriptor, raw))

    def dispatch(
        self,
        descriptor: FunctionDescriptor,
        calls: Sequence[CallRequest],
        block: BlockIdentifier | str = "latest",
    ) -> list[CallResult]:
        if block != "latest":
            logger.warning("Tron does not support historical reads, reading the latest block instead of %s", block)

        if len(calls) == 0:
            return []

        transport = self.transports.get_transport(self.chain)

        encoded_calls = [
            (
                Web3.to_checksum_address(to_hex_address(c.target)),
                encode_call(descriptor, _convert_param_addresses(descriptor, c.params)),
            )
            for c in calls
        ]
        payload = encode_call(TRY_AGGREGATE, [False, encoded_calls])

        logger.info("Performing Tron multicall, %d functions, payload %d bytes", len(calls), len(payload))

        def _submit() -> list[tuple[bool, bytes]]:
            raw = transport.call(self.multicall_address, payload, "latest")
            return decode_output(TRY_AGGREGATE, raw)

        calls_results = self.retry_policy.run(_submit, description=f"Tron multicall {descriptor.name}")

        assert len(calls_results) == len(calls), f"Multicall returned {len(calls_results)} results for {len(calls)} calls"

        results = []
        for call, (succeed, output) in zip(calls, calls_results):
            result = decode_slot(descriptor, call, succeed, output)
            if result.success:
                result = CallResult(input=call, output=_convert_output_addresses(descriptor, result.output), success=True)
            results.append(result)

        return results
