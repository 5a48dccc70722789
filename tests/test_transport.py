"""Transports and environment configuration."""

import pytest
from web3 import HTTPProvider, Web3

from eth_multiread.provider.env import get_rpc_env, read_default_chunk_size, read_rpc_urls
from eth_multiread.testing import FakeTransport
from eth_multiread.transport import TransportRegistry, UnknownChain, Web3Transport
from eth_multiread.tron import TronTransport


def test_get_rpc_env():
    assert get_rpc_env("ethereum") == "ETHEREUM_RPC"
    assert get_rpc_env("arbitrum_nova") == "ARBITRUM_NOVA_RPC"


def test_read_rpc_urls(monkeypatch):
    monkeypatch.setenv("POLYGON_RPC", "https://polygon-rpc.com, https://backup.example.com ,")
    assert read_rpc_urls("polygon") == ["https://polygon-rpc.com", "https://backup.example.com"]

    monkeypatch.delenv("POLYGON_RPC")
    assert read_rpc_urls("polygon") == []


@pytest.mark.parametrize(
    "value, expected",
    [
        (None, 500),
        ("", 500),
        ("100", 100),
        ("a lot", 500),
        ("0", 500),
        ("-5", 500),
    ],
)
def test_read_default_chunk_size(monkeypatch, value, expected):
    if value is None:
        monkeypatch.delenv("MULTICALL_CHUNK_SIZE", raising=False)
    else:
        monkeypatch.setenv("MULTICALL_CHUNK_SIZE", value)
    assert read_default_chunk_size() == expected


def test_registry_get():
    transport = FakeTransport()
    registry = TransportRegistry({"ethereum": transport})
    assert registry.get("ethereum") is transport
    assert registry.get("bsc") is None
    assert "ethereum" in registry
    assert "bsc" not in registry

    with pytest.raises(UnknownChain) as exc_info:
        registry.get_transport("bsc")
    assert "BSC_RPC" in str(exc_info.value)


def test_registry_set_custom_chain():
    registry = TransportRegistry()
    transport = FakeTransport()
    registry.set("my_devnet", transport)
    assert registry.get_transport("my_devnet") is transport


def test_registry_factory_called_once():
    created = []

    def _factory(chain: str):
        created.append(chain)
        return FakeTransport() if chain == "ethereum" else None

    registry = TransportRegistry(factory=_factory)
    first = registry.get("ethereum")
    assert registry.get("ethereum") is first
    assert registry.get("fantom") is None
    assert created == ["ethereum", "fantom"]


def test_registry_from_environment(monkeypatch):
    monkeypatch.setenv("ARBITRUM_RPC", "https://arb1.example.com/secret")
    monkeypatch.setenv("TRON_RPC", "https://api.trongrid.io")
    monkeypatch.delenv("CELO_RPC", raising=False)

    registry = TransportRegistry.from_environment()

    arbitrum = registry.get_transport("arbitrum")
    assert isinstance(arbitrum, Web3Transport)
    assert arbitrum.name == "arb1.example.com"
    assert registry.get_transport("arbitrum") is arbitrum

    tron = registry.get_transport("tron")
    assert isinstance(tron, TronTransport)
    assert tron.api_url == "https://api.trongrid.io"

    with pytest.raises(UnknownChain):
        registry.get_transport("celo")


def test_web3_transport_name():
    transport = Web3Transport(Web3(HTTPProvider("https://mainnet.infura.io/v3/my-api-key")))
    assert transport.name == "mainnet.infura.io"
    assert "my-api-key" not in repr(transport)
