"""Encode function calls and decode their return data.

A thin layer over :py:mod:`eth_abi`. All ABI byte level work is done there.
"""

import logging
from typing import Any, Sequence

import eth_abi
from eth_abi.exceptions import DecodingError, EncodingError
from hexbytes import HexBytes
from web3._utils.abi import map_abi_data
from web3._utils.normalizers import BASE_RETURN_NORMALIZERS

from eth_multiread.abi import FunctionDescriptor


logger = logging.getLogger(__name__)


class DecodeError(Exception):
    """Return data could not be decoded with the function ABI.

    - Happens when the call reverted, the target is not a contract,
      or the contract does not implement the function

    - The original :py:mod:`eth_abi` exception is chained as ``__cause__``
    """


def normalise_params(params: Any) -> list:
    """Turn the user given call arguments to a list.

    - ``None`` -> no arguments
    - list or tuple -> as is
    - anything else -> single argument
    """
    if params is None:
        return []
    elif isinstance(params, (list, tuple)):
        return list(params)
    else:
        return [params]


def _coerce_arg(solidity_type: str, value: Any) -> Any:
    """Accept numbers as strings and bytes as hex strings, like JSON callers pass them."""
    if isinstance(value, str):
        if solidity_type.startswith(("uint", "int")) and "[" not in solidity_type:
            return int(value, 0) if value.startswith("0x") else int(value)
        if solidity_type.startswith("bytes") and "[" not in solidity_type:
            return HexBytes(value)
    return value


def encode_call(descriptor: FunctionDescriptor, params: Sequence) -> bytes:
    """Build the calldata: selector + ABI encoded arguments."""
    params = normalise_params(params)
    if len(params) != len(descriptor.input_types):
        raise EncodingError(f"{descriptor.signature} takes {len(descriptor.input_types)} arguments, got {len(params)}: {params}")
    args = [_coerce_arg(t, v) for t, v in zip(descriptor.input_types, params)]
    return descriptor.selector + eth_abi.encode(list(descriptor.input_types), args)


def decode_output(descriptor: FunctionDescriptor, data: bytes) -> Any:
    """Decode raw return data of a function.

    - Addresses are returned checksummed
    - Single return value is returned as is
    - Multiple return values are returned as a dict if all of them are named, tuple otherwise

    :raise DecodeError:
        If the data does not match the output types
    """
    output_types = list(descriptor.output_types)

    if not output_types:
        return None

    try:
        decoded = eth_abi.decode(output_types, bytes(data))
    except (DecodingError, ValueError) as e:
        raise DecodeError(f"Could not decode {descriptor.signature} return data {HexBytes(data).hex()} as {output_types}") from e

    normalised = map_abi_data(BASE_RETURN_NORMALIZERS, output_types, decoded)

    if len(normalised) == 1:
        return normalised[0]

    names = descriptor.output_names
    if names and all(names):
        return dict(zip(names, normalised))

    return tuple(normalised)
