"""ABI specification normalisation.

Callers can describe the function they want to read in several ways:

- Full JSON ABI entry (dict), as copy-pasted from Etherscan or a compiler artifact
- Shorthand ``"<type>:<name>"`` for zero-argument getters, e.g. ``"uint8:decimals"``
- Human-readable signature, e.g. ``"function balanceOf(address) view returns (uint256)"``
- A well-known alias, e.g. ``"erc20:decimals"``

All of them are resolved to one :py:class:`FunctionDescriptor` that the codec knows how to handle.
Resolution happens in two phases: :py:func:`parse_abi_spec` picks the variant,
:py:func:`resolve_abi_spec` builds the descriptor. Use :py:func:`normalise_abi` to do both.
"""

from dataclasses import dataclass, field
from typing import Any, TypeAlias

from eth_utils import function_signature_to_4byte_selector
from eth_utils.abi import collapse_if_tuple

from eth_multiread import MultireadError
from eth_multiread.signature import SignatureParseError, is_identifier, parse_function_signature


#: Solidity types we accept in ``"<type>:<name>"`` shorthand.
#:
#: https://docs.soliditylang.org/en/latest/abi-spec.html
SHORTHAND_SCALAR_TYPES = [
    "string",
    "address",
    "bool",
    "int",
    "int8",
    "int16",
    "int32",
    "int64",
    "int128",
    "int256",
    "uint",
    "uint8",
    "uint16",
    "uint32",
    "uint64",
    "uint128",
    "uint256",
]

#: Shorthand types including array variants
SHORTHAND_TYPES = frozenset(SHORTHAND_SCALAR_TYPES + [t + "[]" for t in SHORTHAND_SCALAR_TYPES])

#: Commonly used functions by a name.
#:
#: Alias -> shorthand or signature
KNOWN_ABIS = {
    "erc20:decimals": "uint8:decimals",
    "erc20:symbol": "string:symbol",
    "erc20:name": "string:name",
    "erc20:totalSupply": "uint256:totalSupply",
    "erc20:balanceOf": "function balanceOf(address account) view returns (uint256)",
    "erc20:allowance": "function allowance(address owner, address spender) view returns (uint256)",
}


class InvalidSpec(MultireadError):
    """Could not turn the given ABI specification to a function descriptor."""


def _widen(solidity_type: str) -> str:
    """uint -> uint256, int[] -> int256[]"""
    for alias in ("uint", "int"):
        if solidity_type == alias or solidity_type == alias + "[]":
            return solidity_type.replace(alias, alias + "256", 1)
    return solidity_type


@dataclass(frozen=True, slots=True)
class FunctionDescriptor:
    """Canonical description of one contract function.

    - Two descriptors are equal if they describe the same call and return shape,
      regardless how they were originally written down
    """

    #: Solidity function name
    name: str

    #: Canonical input types, tuples collapsed to ``(type,type)`` form
    input_types: tuple[str, ...]

    #: Canonical output types
    output_types: tuple[str, ...]

    #: pure, view, nonpayable, payable
    state_mutability: str = "view"

    #: Always "function"
    kind: str = "function"

    #: Parameter names, can be empty strings
    input_names: tuple[str, ...] = field(default=(), compare=False)

    #: Return value names, can be empty strings
    output_names: tuple[str, ...] = field(default=(), compare=False)

    #: The string this descriptor was parsed from, if any.
    #:
    #: Used as the cache key component.
    source: str | None = field(default=None, compare=False)

    #: JSON ABI entry
    abi: dict = field(default=None, compare=False, hash=False, repr=False)

    def __post_init__(self):
        assert self.kind == "function", f"Got kind {self.kind}"
        assert type(self.input_types) == tuple, f"Got {self.input_types}"
        assert type(self.output_types) == tuple, f"Got {self.output_types}"

    @property
    def signature(self) -> str:
        """Solidity signature used to calculate the selector, e.g. ``balanceOf(address)``."""
        return f"{self.name}({','.join(self.input_types)})"

    @property
    def selector(self) -> bytes:
        """4 bytes function selector."""
        return function_signature_to_4byte_selector(self.signature)

    def __str__(self):
        if self.source:
            return self.source
        return f"{self.signature} returns ({','.join(self.output_types)})"

    @staticmethod
    def from_abi(abi: dict, source: str | None = None) -> "FunctionDescriptor":
        """Create a descriptor from a JSON ABI function entry.

        - ``type`` is forced to ``function``
        - Legacy ``constant`` flag is honoured when ``stateMutability`` is missing
        """
        assert isinstance(abi, dict), f"Got {type(abi)}"

        abi = {**abi, "type": "function"}

        if "name" not in abi:
            raise InvalidSpec(f"ABI entry has no function name: {abi}")

        inputs = abi.get("inputs") or []
        outputs = abi.get("outputs") or []

        state_mutability = abi.get("stateMutability")
        if not state_mutability:
            state_mutability = "view" if abi.get("constant") else "nonpayable"
            abi["stateMutability"] = state_mutability

        try:
            input_types = tuple(_widen(collapse_if_tuple(i)) for i in inputs)
            output_types = tuple(_widen(collapse_if_tuple(o)) for o in outputs)
        except (KeyError, TypeError, ValueError) as e:
            raise InvalidSpec(f"Malformed ABI parameters in: {abi}") from e

        return FunctionDescriptor(
            name=abi["name"],
            input_types=input_types,
            output_types=output_types,
            state_mutability=state_mutability,
            input_names=tuple(i.get("name", "") for i in inputs),
            output_names=tuple(o.get("name", "") for o in outputs),
            source=source,
            abi=abi,
        )


@dataclass(frozen=True, slots=True)
class StructuredSpec:
    """ABI given as a JSON ABI dict or an already resolved descriptor."""

    abi: dict | FunctionDescriptor


@dataclass(frozen=True, slots=True)
class ShorthandSpec:
    """ABI given as ``"<type>:<name>"``."""

    output_type: str
    name: str
    source: str


@dataclass(frozen=True, slots=True)
class SignatureSpec:
    """ABI given as a human-readable function signature."""

    text: str


#: Any of the supported ABI specification variants
AbiSpec: TypeAlias = StructuredSpec | ShorthandSpec | SignatureSpec


def resolve_alias(spec: Any) -> Any:
    """Map well-known ABI aliases like ``erc20:decimals`` to their definition.

    Anything else is returned as is.
    """
    if isinstance(spec, str):
        return KNOWN_ABIS.get(spec, spec)
    return spec


def parse_abi_spec(spec: str | dict | FunctionDescriptor) -> AbiSpec:
    """Classify an ABI specification.

    :raise InvalidSpec:
        If the spec is not a string, dict or descriptor
    """
    spec = resolve_alias(spec)

    if isinstance(spec, (dict, FunctionDescriptor)):
        return StructuredSpec(spec)

    if isinstance(spec, str):
        output_type, _, name = spec.partition(":")
        if output_type in SHORTHAND_TYPES and is_identifier(name):
            return ShorthandSpec(output_type=output_type, name=name, source=spec)
        return SignatureSpec(spec)

    raise InvalidSpec(f"Unsupported ABI specification type {type(spec)}: {spec}")


def resolve_abi_spec(spec: AbiSpec) -> FunctionDescriptor:
    """Build a function descriptor from a classified ABI specification.

    :raise InvalidSpec:
        If a signature cannot be parsed
    """
    match spec:
        case StructuredSpec(abi=FunctionDescriptor() as descriptor):
            return descriptor
        case StructuredSpec(abi=abi):
            return FunctionDescriptor.from_abi(abi)
        case ShorthandSpec(output_type=output_type, name=name, source=source):
            abi = {
                "constant": True,
                "inputs": [],
                "name": name,
                "outputs": [{"internalType": output_type, "name": "", "type": output_type}],
                "payable": False,
                "stateMutability": "view",
                "type": "function",
            }
            return FunctionDescriptor.from_abi(abi, source=source)
        case SignatureSpec(text=text):
            try:
                abi = parse_function_signature(text)
            except SignatureParseError as e:
                raise InvalidSpec(f"Could not parse ABI: {text}: {e}") from e
            return FunctionDescriptor.from_abi(abi, source=text)

    raise InvalidSpec(f"Unknown ABI spec variant: {spec}")


def normalise_abi(spec: str | dict | FunctionDescriptor) -> FunctionDescriptor:
    """Turn any supported ABI specification to a :py:class:`FunctionDescriptor`.

    Example:

    .. code-block:: python

        a = normalise_abi("uint8:decimals")
        b = normalise_abi("function decimals() view returns (uint8)")
        assert a == b

    :raise InvalidSpec:
        If the spec cannot be understood
    """
    return resolve_abi_spec(parse_abi_spec(spec))
