"""ABI specification normalisation."""

import pytest

from eth_multiread.abi import (
    FunctionDescriptor,
    InvalidSpec,
    ShorthandSpec,
    SignatureSpec,
    StructuredSpec,
    normalise_abi,
    parse_abi_spec,
    resolve_abi_spec,
)


#: Copy-pasted from Etherscan
DECIMALS_ABI = {
    "constant": True,
    "inputs": [],
    "name": "decimals",
    "outputs": [{"name": "", "type": "uint8"}],
    "payable": False,
    "stateMutability": "view",
    "type": "function",
}


def test_shorthand_getter():
    """uint8:decimals becomes a zero-argument view function."""
    descriptor = normalise_abi("uint8:decimals")
    assert descriptor.name == "decimals"
    assert descriptor.input_types == ()
    assert descriptor.output_types == ("uint8",)
    assert descriptor.state_mutability == "view"
    assert descriptor.kind == "function"
    assert descriptor.source == "uint8:decimals"
    assert descriptor.signature == "decimals()"
    assert descriptor.selector == bytes.fromhex("313ce567")


def test_signature_equivalent_to_shorthand():
    a = normalise_abi("function decimals() view returns (uint8)")
    b = normalise_abi("uint8:decimals")
    assert a == b
    assert a.selector == b.selector
    assert hash(a) == hash(b)


def test_structured_equivalent_to_shorthand():
    assert normalise_abi(DECIMALS_ABI) == normalise_abi("uint8:decimals")


def test_alias():
    """Known aliases resolve to their definition."""
    assert normalise_abi("erc20:decimals") == normalise_abi("uint8:decimals")
    assert normalise_abi("erc20:decimals").source == "uint8:decimals"

    balance_of = normalise_abi("erc20:balanceOf")
    assert balance_of.signature == "balanceOf(address)"
    assert balance_of.output_types == ("uint256",)


def test_shorthand_widens_int():
    assert normalise_abi("uint:totalSupply").output_types == ("uint256",)
    assert normalise_abi("int[]:deltas").output_types == ("int256[]",)


def test_shorthand_array():
    descriptor = normalise_abi("address[]:getAllPools")
    assert descriptor.output_types == ("address[]",)
    assert descriptor.name == "getAllPools"


def test_structured_forced_to_function():
    """Entries without type or mutability are accepted."""
    abi = {
        "name": "getOwner",
        "inputs": [],
        "outputs": [{"name": "", "type": "address"}],
        "constant": True,
    }
    descriptor = normalise_abi(abi)
    assert descriptor.kind == "function"
    assert descriptor.abi["type"] == "function"
    assert descriptor.state_mutability == "view"
    assert descriptor.source is None


def test_structured_nonpayable_fallback():
    abi = {"name": "poke", "inputs": [], "outputs": []}
    assert normalise_abi(abi).state_mutability == "nonpayable"


def test_structured_tuple_output():
    abi = {
        "name": "slot0",
        "inputs": [],
        "outputs": [
            {
                "name": "",
                "type": "tuple",
                "components": [
                    {"name": "sqrtPriceX96", "type": "uint160"},
                    {"name": "tick", "type": "int24"},
                ],
            }
        ],
        "stateMutability": "view",
        "type": "function",
    }
    assert normalise_abi(abi).output_types == ("(uint160,int24)",)


def test_descriptor_passes_through():
    descriptor = normalise_abi("uint8:decimals")
    assert normalise_abi(descriptor) is descriptor


def test_parse_abi_spec_variants():
    assert isinstance(parse_abi_spec(DECIMALS_ABI), StructuredSpec)
    assert parse_abi_spec("string:symbol") == ShorthandSpec(output_type="string", name="symbol", source="string:symbol")
    assert parse_abi_spec("function symbol() view returns (string)") == SignatureSpec("function symbol() view returns (string)")

    # Not a known scalar type, must be a signature
    assert isinstance(parse_abi_spec("bytes32:DOMAIN_SEPARATOR"), SignatureSpec)


def test_resolve_abi_spec():
    descriptor = resolve_abi_spec(ShorthandSpec(output_type="bool", name="paused", source="bool:paused"))
    assert descriptor.output_types == ("bool",)


@pytest.mark.parametrize(
    "spec",
    [
        "foo:bar",
        "bytes32:DOMAIN_SEPARATOR",
        "uint256:balanceOf(address)",
        "uint8:decimals:x",
        "address: owner",
        "function foo(uint7 a) view returns (bool)",
        "event Transfer(address indexed from, address indexed to, uint256 value)",
        "",
    ],
)
def test_invalid_string_spec(spec):
    with pytest.raises(InvalidSpec):
        normalise_abi(spec)


def test_invalid_spec_type():
    with pytest.raises(InvalidSpec):
        normalise_abi(123)

    with pytest.raises(InvalidSpec):
        normalise_abi(["uint8:decimals"])


def test_structured_without_name():
    with pytest.raises(InvalidSpec):
        normalise_abi({"inputs": [], "outputs": []})


def test_descriptor_str():
    assert str(normalise_abi("uint8:decimals")) == "uint8:decimals"
    assert str(normalise_abi(DECIMALS_ABI)) == "decimals() returns (uint8)"


def test_descriptor_is_hashable():
    descriptor = FunctionDescriptor.from_abi(DECIMALS_ABI)
    assert {descriptor: 1}[normalise_abi("uint8:decimals")] == 1
