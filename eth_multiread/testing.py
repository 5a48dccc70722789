"""Test helpers.

- :py:class:`FakeTransport` plays a chain with scripted contracts and a Multicall3 deployment,
  so readers can be tested without a node

- The fake records every request, so tests can assert how many round trips were made

Example:

.. code-block:: python

    transport = FakeTransport()
    transport.add_function(token, "function decimals() view returns (uint8)", lambda: 6)
    reader = MultiReader(TransportRegistry({"ethereum": transport}))
    assert reader.call(token, "uint8:decimals").output == 6
    assert len(transport.requests) == 1
"""

import logging
from typing import Callable

import eth_abi
from eth_typing import BlockIdentifier
from web3 import Web3
from web3.exceptions import ContractLogicError

from eth_multiread.abi import FunctionDescriptor, normalise_abi
from eth_multiread.deployments import MULTICALL_DEPLOY_ADDRESS
from eth_multiread.multicall import TRY_AGGREGATE
from eth_multiread.transport import Transport


logger = logging.getLogger(__name__)


#: Mainnet USDC
USDC = "0xA0b86991c6218b36c1d19D4a2e9Eb0cE3606eB48"

#: Mainnet WETH
WETH = "0xC02aaA39b223FE8D0A0e5C4F27eAD9083C756Cc2"

#: Account without code
EOA = Web3.to_checksum_address("0x" + "ab" * 20)

#: What owner() returns on the fake tokens
OWNER = Web3.to_checksum_address("0x" + "12" * 20)


class FakeTransport(Transport):
    """In-memory chain.

    - Unknown addresses behave like accounts without code: calls succeed with empty return data
    - Unknown functions revert
    - Calls to the multicall address are executed as Multicall3 ``tryAggregate``
    """

    def __init__(self, multicall_address: str = MULTICALL_DEPLOY_ADDRESS):
        self.multicall_address = multicall_address.lower()
        self.contracts: dict[str, dict[bytes, tuple[FunctionDescriptor, Callable]]] = {}

        #: (target, data, block) of every request
        self.requests: list[tuple[str, bytes, BlockIdentifier]] = []

        #: Targets packed in each tryAggregate
        self.aggregated_targets: list[list[str]] = []

        #: Exceptions to raise on the next requests
        self.failures: list[Exception] = []

    def __repr__(self):
        return f"<FakeTransport {len(self.contracts)} contracts>"

    @property
    def name(self) -> str:
        return "fake-rpc.example.com"

    @property
    def multicall_requests(self) -> list[tuple[str, bytes, BlockIdentifier]]:
        return [r for r in self.requests if r[0].lower() == self.multicall_address]

    def add_function(self, address: str, signature: str, handler: Callable):
        """Script a contract function.

        :param handler:
            Called with decoded arguments. Return the value, or a tuple for multiple outputs.
            Raise :py:class:`ContractLogicError` to revert.
        """
        descriptor = normalise_abi(signature)
        self.contracts.setdefault(address.lower(), {})[descriptor.selector] = (descriptor, handler)

    def execute(self, target: str, data: bytes) -> bytes:
        functions = self.contracts.get(target.lower())
        if functions is None:
            return b""

        selector = bytes(data[0:4])
        if selector not in functions:
            raise ContractLogicError("execution reverted")

        descriptor, handler = functions[selector]
        args = eth_abi.decode(list(descriptor.input_types), bytes(data[4:]))
        value = handler(*args)

        if len(descriptor.output_types) == 1:
            value = [value]
        return eth_abi.encode(list(descriptor.output_types), list(value))

    def call(self, target: str, data: bytes, block_identifier: BlockIdentifier) -> bytes:
        self.requests.append((target, bytes(data), block_identifier))

        if self.failures:
            raise self.failures.pop(0)

        if target.lower() == self.multicall_address and bytes(data[0:4]) == TRY_AGGREGATE.selector:
            _, calls = eth_abi.decode(["bool", "(address,bytes)[]"], bytes(data[4:]))
            self.aggregated_targets.append([Web3.to_checksum_address(t) for t, _ in calls])
            results = []
            for call_target, call_data in calls:
                try:
                    results.append((True, self.execute(call_target, call_data)))
                except ContractLogicError:
                    results.append((False, b""))
            return eth_abi.encode(["(bool,bytes)[]"], [results])

        return self.execute(target, data)


def fake_balance_of(holder: str) -> int:
    """Deterministic balance for any holder."""
    return int(holder, 16) * 1000


def _revert():
    raise ContractLogicError("execution reverted: paused")


def create_fake_tokens(transport: FakeTransport):
    """Script USDC and WETH like ERC-20 contracts on a fake chain.

    - USDC also has ``owner()``, ``balanceOf()`` and a reverting ``paused()``
    """
    transport.add_function(USDC, "function decimals() view returns (uint8)", lambda: 6)
    transport.add_function(USDC, "function symbol() view returns (string)", lambda: "USDC")
    transport.add_function(USDC, "function owner() view returns (address)", lambda: OWNER)
    transport.add_function(USDC, "function totalSupply() view returns (uint256)", lambda: 10**15)
    transport.add_function(USDC, "function balanceOf(address) view returns (uint256)", fake_balance_of)
    transport.add_function(USDC, "function paused() view returns (bool)", _revert)
    transport.add_function(WETH, "function decimals() view returns (uint8)", lambda: 18)
    transport.add_function(WETH, "function symbol() view returns (string)", lambda: "WETH")
    transport.add_function(WETH, "function owner() view returns (address)", lambda: OWNER)
    transport.add_function(WETH, "function totalSupply() view returns (uint256)", lambda: 3 * 10**24)
