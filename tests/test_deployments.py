"""Multicall3 deployment table."""

import pytest

from eth_multiread.deployments import (
    DEFAULT_MULTICALL_DEPLOYMENTS,
    MULTICALL_DEPLOY_ADDRESS,
    MulticallDeployment,
    MulticallRegistry,
)


def test_default_table():
    assert len(DEFAULT_MULTICALL_DEPLOYMENTS) >= 45
    assert DEFAULT_MULTICALL_DEPLOYMENTS["ethereum"].deployment_block == 14_353_601
    assert DEFAULT_MULTICALL_DEPLOYMENTS["ethereum"].address == MULTICALL_DEPLOY_ADDRESS


@pytest.mark.parametrize(
    "chain, address",
    [
        ("onus", "0x748c384f759cc596f0d9fa96dcabe8a11e443b30"),
        ("era", "0xF9cda624FBC7e059355ce98a31693d299FACd963"),
        ("mantle", "0x05f3105fc9FC531712b2570f1C6E11dD4bCf7B3c"),
        ("tron", "TEazPvZwDjDtFeJupyo7QunvnrnUjPH8ED"),
        ("neon_evm", "0x2f6eee8ee450a959e640b6fb4dd522b5d5dcd20f"),
        ("arbitrum", MULTICALL_DEPLOY_ADDRESS),
    ],
)
def test_address_overrides(chain, address):
    assert MulticallRegistry().get_address(chain) == address


def test_default_table_immutable():
    with pytest.raises(TypeError):
        DEFAULT_MULTICALL_DEPLOYMENTS["devnet"] = MulticallDeployment(1)


def test_is_supported():
    registry = MulticallRegistry()
    assert registry.is_supported("ethereum")
    assert registry.is_supported("ethereum", "latest")
    assert registry.is_supported("ethereum", None)
    assert registry.is_supported("ethereum", 20_000_000)

    # Only after the deployment block
    assert not registry.is_supported("ethereum", 14_353_601)
    assert not registry.is_supported("ethereum", 10_000_000)


def test_unknown_chain():
    registry = MulticallRegistry()
    assert "devnet" not in registry
    assert registry.get("devnet") is None
    assert not registry.is_supported("devnet")
    with pytest.raises(KeyError):
        registry.get_address("devnet")


def test_custom_table():
    """Registry does not change when the source table changes."""
    table = {"devnet": MulticallDeployment(0, "0x" + "42" * 20)}
    registry = MulticallRegistry(table)
    table["ethereum"] = MulticallDeployment(1)

    assert registry.is_supported("devnet", 1)
    assert registry.get_address("devnet") == "0x" + "42" * 20
    assert "ethereum" not in registry
