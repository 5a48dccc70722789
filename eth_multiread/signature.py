"""Human-readable Solidity function signature parsing.

Turn a function signature as it appears in Solidity source or in
Etherscan UI to a JSON ABI function entry.

Example:

.. code-block:: python

    abi = parse_function_signature("function balanceOf(address owner) view returns (uint256)")
    assert abi["inputs"] == [{"name": "owner", "type": "address"}]
    assert abi["stateMutability"] == "view"

Parameter types are checked against the :py:mod:`eth_abi` type grammar,
so anything this module returns can be encoded by the codec.
"""

import re

from eth_abi import is_encodable_type
from eth_abi.exceptions import ParseError
from eth_abi.grammar import normalize
from eth_utils.abi import collapse_if_tuple

#: Function modifiers we accept after the argument list
FUNCTION_MODIFIERS = {
    "view",
    "pure",
    "payable",
    "nonpayable",
    "constant",
    "external",
    "public",
    "virtual",
    "override",
}

#: Mutability keywords, in the order we pick them
MUTABILITY_KEYWORDS = ("pure", "view", "payable", "nonpayable")

#: Data location keywords that may appear between the type and the name
DATA_LOCATIONS = {"memory", "calldata", "storage", "indexed"}

#: Declarations that are valid Solidity, but not functions we can call
NON_FUNCTION_KEYWORDS = ("event", "error", "constructor", "fallback", "receive", "struct")

_NAME_RE = re.compile(r"^([A-Za-z_$][A-Za-z0-9_$]*)\s*\(")
_ARRAY_SUFFIX_RE = re.compile(r"^((?:\[\d*\])*)")
_IDENTIFIER_RE = re.compile(r"^[A-Za-z_$][A-Za-z0-9_$]*$")
_RETURNS_RE = re.compile(r"\breturns\b")


class SignatureParseError(ValueError):
    """The string is not a function signature we understand."""


def is_identifier(name: str) -> bool:
    """Is this a valid Solidity function or parameter name."""
    return _IDENTIFIER_RE.match(name) is not None


def _read_group(text: str, start: int) -> tuple[str, int]:
    """Read a parenthesised group.

    :param start:
        Index of the opening parenthesis

    :return:
        Tuple (content inside the parenthesis, index after the closing parenthesis)
    """
    assert text[start] == "(", f"Expected ( at {start} in {text}"
    depth = 0
    for idx in range(start, len(text)):
        c = text[idx]
        if c == "(":
            depth += 1
        elif c == ")":
            depth -= 1
            if depth == 0:
                return text[start + 1 : idx], idx + 1
    raise SignatureParseError(f"Unbalanced parenthesis in: {text}")


def _split_top_level(text: str) -> list[str]:
    """Split parameter list by commas that are not inside a tuple."""
    parts = []
    depth = 0
    current = ""
    for c in text:
        if c == "(":
            depth += 1
        elif c == ")":
            depth -= 1
        if c == "," and depth == 0:
            parts.append(current)
            current = ""
        else:
            current += c
    parts.append(current)

    parts = [p.strip() for p in parts]
    if parts == [""]:
        return []

    if any(p == "" for p in parts):
        raise SignatureParseError(f"Empty parameter in: ({text})")

    return parts


def _parse_name(tokens: list[str], param: str) -> str:
    tokens = [t for t in tokens if t not in DATA_LOCATIONS]
    if len(tokens) > 1:
        raise SignatureParseError(f"Cannot parse parameter: {param}")
    if tokens:
        if not is_identifier(tokens[0]):
            raise SignatureParseError(f"Bad parameter name {tokens[0]} in: {param}")
        return tokens[0]
    return ""


def _parse_param(param: str) -> dict:
    """Parse one ``type [location] [name]`` parameter to an ABI entry."""

    if param.startswith("tuple(") or param.startswith("("):
        start = param.index("(")
        inner, end = _read_group(param, start)
        rest = param[end:]
        suffix = _ARRAY_SUFFIX_RE.match(rest).group(1)
        rest = rest[len(suffix) :]
        entry = {
            "name": _parse_name(rest.split(), param),
            "type": "tuple" + suffix,
            "components": [_parse_param(p) for p in _split_top_level(inner)],
        }
    else:
        tokens = param.split()
        entry = {
            "name": _parse_name(tokens[1:], param),
            "type": normalize(tokens[0]),
        }

    try:
        canonical = collapse_if_tuple(entry)
        valid = is_encodable_type(canonical)
    except (ParseError, ValueError) as e:
        raise SignatureParseError(f"Invalid type in parameter: {param}") from e

    if not valid:
        raise SignatureParseError(f"Unknown type in parameter: {param}")

    return entry


def parse_function_signature(text: str) -> dict:
    """Parse a human-readable Solidity function signature.

    Supports

    - Optional ``function`` keyword
    - Named and unnamed parameters, data locations
    - Tuples written as ``tuple(...)`` or ``(...)``, with array suffixes
    - Mutability and visibility modifiers
    - Optional ``returns (...)`` clause

    :param text:
        E.g. ``function decimals() view returns (uint8)``

    :return:
        JSON ABI function entry

    :raise SignatureParseError:
        If the text is not a function signature
    """

    if not isinstance(text, str):
        raise SignatureParseError(f"Expected string, got {type(text)}")

    text = text.strip().rstrip(";").strip()

    first_word = text.split("(")[0].split()
    if first_word and first_word[0] in NON_FUNCTION_KEYWORDS:
        raise SignatureParseError(f"Not a function: {text}")

    if text.startswith("function "):
        text = text[len("function ") :].strip()

    match = _NAME_RE.match(text)
    if not match:
        raise SignatureParseError(f"Could not find function name in: {text}")

    name = match.group(1)
    inputs_text, end = _read_group(text, match.end() - 1)
    rest = text[end:]

    returns_match = _RETURNS_RE.search(rest)
    if returns_match:
        modifiers_text = rest[: returns_match.start()]
        outputs_text = rest[returns_match.end() :].strip()
        if not outputs_text.startswith("("):
            raise SignatureParseError(f"Expected ( after returns in: {text}")
        outputs_inner, outputs_end = _read_group(outputs_text, 0)
        if outputs_text[outputs_end:].strip():
            raise SignatureParseError(f"Trailing data after returns clause in: {text}")
        outputs = [_parse_param(p) for p in _split_top_level(outputs_inner)]
    else:
        modifiers_text = rest
        outputs = []

    modifiers = modifiers_text.split()
    unknown = [m for m in modifiers if m not in FUNCTION_MODIFIERS]
    if unknown:
        raise SignatureParseError(f"Unknown modifiers {unknown} in: {text}")

    state_mutability = "nonpayable"
    if "constant" in modifiers:
        state_mutability = "view"
    for keyword in MUTABILITY_KEYWORDS:
        if keyword in modifiers:
            state_mutability = keyword
            break

    return {
        "type": "function",
        "name": name,
        "inputs": [_parse_param(p) for p in _split_top_level(inputs_text)],
        "outputs": outputs,
        "stateMutability": state_mutability,
    }
