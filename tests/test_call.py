"""Single call execution."""

import pytest

from eth_multiread.abi import normalise_abi
from eth_multiread.call import CallExecutor, InvalidBlockTag, normalise_block
from eth_multiread.codec import DecodeError
from eth_multiread.testing import EOA, USDC, FakeTransport
from eth_multiread.transport import TransportRegistry, UnknownChain


@pytest.fixture()
def executor(transports: TransportRegistry) -> CallExecutor:
    return CallExecutor(transports)


def test_normalise_block():
    assert normalise_block(None) == "latest"
    assert normalise_block("latest") == "latest"
    assert normalise_block(15_000_000) == 15_000_000
    assert normalise_block("15000000") == 15_000_000
    assert normalise_block("0x10") == 16


@pytest.mark.parametrize("block", ["pending", "earliest", "yesterday", "12a", True])
def test_normalise_block_invalid(block):
    with pytest.raises(InvalidBlockTag):
        normalise_block(block)


def test_execute(executor: CallExecutor, transport: FakeTransport):
    assert executor.execute(normalise_abi("uint8:decimals"), USDC) == 6
    assert executor.execute(normalise_abi("string:symbol"), USDC, block=20_000_000) == "USDC"
    assert transport.requests[-1][2] == 20_000_000


def test_execute_with_params(executor: CallExecutor):
    holder = "0x0000000000000000000000000000000000000002"
    assert executor.execute(normalise_abi("erc20:balanceOf"), USDC, [holder]) == 2000


def test_execute_non_contract(executor: CallExecutor):
    with pytest.raises(DecodeError):
        executor.execute(normalise_abi("uint8:decimals"), EOA)


def test_execute_bad_block_before_network(executor: CallExecutor, transport: FakeTransport):
    with pytest.raises(InvalidBlockTag):
        executor.execute(normalise_abi("uint8:decimals"), USDC, block="pending")
    assert transport.requests == []


def test_execute_unknown_chain(executor: CallExecutor):
    with pytest.raises(UnknownChain):
        executor.execute(normalise_abi("uint8:decimals"), USDC, chain="base")
