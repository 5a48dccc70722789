"""Shared fixtures.

No live RPC needed, all tests run against :py:class:`eth_multiread.testing.FakeTransport`.
"""

import pytest

from eth_multiread.reader import MultiReader
from eth_multiread.testing import FakeTransport, create_fake_tokens
from eth_multiread.transport import TransportRegistry


@pytest.fixture()
def transport() -> FakeTransport:
    """Ethereum mainnet with USDC and WETH."""
    t = FakeTransport()
    create_fake_tokens(t)
    return t


@pytest.fixture()
def transports(transport: FakeTransport) -> TransportRegistry:
    return TransportRegistry({"ethereum": transport})


@pytest.fixture()
def reader(transports: TransportRegistry) -> MultiReader:
    """Reader with a fresh cache."""
    return MultiReader(transports, default_chunk_size=500)
