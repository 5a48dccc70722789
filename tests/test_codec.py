"""Call encoding and return data decoding."""

import eth_abi
import pytest
from eth_abi.exceptions import EncodingError

from eth_multiread.abi import normalise_abi
from eth_multiread.codec import DecodeError, decode_output, encode_call, normalise_params
from eth_multiread.testing import OWNER, USDC


def test_normalise_params():
    assert normalise_params(None) == []
    assert normalise_params([1, 2]) == [1, 2]
    assert normalise_params((1, 2)) == [1, 2]
    assert normalise_params(USDC) == [USDC]
    assert normalise_params(0) == [0]


def test_encode_call():
    descriptor = normalise_abi("erc20:balanceOf")
    data = encode_call(descriptor, [USDC])
    assert data[0:4] == bytes.fromhex("70a08231")
    assert len(data) == 4 + 32
    assert data[4:] == eth_abi.encode(["address"], [USDC])


def test_encode_call_single_param_not_wrapped():
    descriptor = normalise_abi("erc20:balanceOf")
    assert encode_call(descriptor, USDC) == encode_call(descriptor, [USDC])


def test_encode_numeric_string():
    """JSON callers pass big numbers as strings."""
    descriptor = normalise_abi("function ownerOf(uint256 tokenId) view returns (address)")
    assert encode_call(descriptor, ["1000000000000000000000"]) == encode_call(descriptor, [10**21])
    assert encode_call(descriptor, ["0x10"]) == encode_call(descriptor, [16])


def test_encode_wrong_argument_count():
    descriptor = normalise_abi("erc20:allowance")
    with pytest.raises(EncodingError):
        encode_call(descriptor, [USDC])


def test_decode_single():
    descriptor = normalise_abi("uint8:decimals")
    assert decode_output(descriptor, eth_abi.encode(["uint8"], [6])) == 6


def test_decode_address_checksummed():
    descriptor = normalise_abi("address:owner")
    assert decode_output(descriptor, eth_abi.encode(["address"], [OWNER.lower()])) == OWNER


def test_decode_named_outputs():
    descriptor = normalise_abi("function getReserves() view returns (uint112 reserve0, uint112 reserve1, uint32 blockTimestampLast)")
    data = eth_abi.encode(["uint112", "uint112", "uint32"], [1, 2, 3])
    assert decode_output(descriptor, data) == {"reserve0": 1, "reserve1": 2, "blockTimestampLast": 3}


def test_decode_unnamed_outputs():
    descriptor = normalise_abi("function pair() view returns (address, uint256)")
    data = eth_abi.encode(["address", "uint256"], [OWNER, 5])
    assert decode_output(descriptor, data) == (OWNER, 5)


def test_decode_no_outputs():
    descriptor = normalise_abi("function poke()")
    assert decode_output(descriptor, b"") is None


def test_decode_empty_data():
    """Calling an account without code gives empty return data."""
    descriptor = normalise_abi("uint8:decimals")
    with pytest.raises(DecodeError) as exc_info:
        decode_output(descriptor, b"")
    assert exc_info.value.__cause__ is not None
