"""Execute a single contract read."""

import logging
from typing import Any, Sequence

from eth_typing import BlockIdentifier, HexAddress

from eth_multiread import MultireadError
from eth_multiread.abi import FunctionDescriptor
from eth_multiread.codec import decode_output, encode_call
from eth_multiread.transport import TransportRegistry


logger = logging.getLogger(__name__)


class InvalidBlockTag(MultireadError):
    """Block must be a number, a numeric string or ``"latest"``."""


def normalise_block(block: BlockIdentifier | str | None) -> int | str:
    """Validate and convert a user-given block identifier.

    - ``None`` and ``"latest"`` -> ``"latest"``
    - ``"123"`` -> ``123``

    :raise InvalidBlockTag:
        For any other string
    """
    if block is None or block == "latest":
        return "latest"

    if isinstance(block, bool):
        raise InvalidBlockTag(f"Invalid block: {block}")

    if isinstance(block, int):
        return block

    if isinstance(block, str):
        try:
            return int(block, 0) if block.startswith("0x") else int(block)
        except ValueError:
            raise InvalidBlockTag(f"Invalid block: {block}")

    raise InvalidBlockTag(f"Invalid block: {block}")


class CallExecutor:
    """Encode, transmit and decode one contract read.

    The executor holds no state besides the transport registry
    and can be shared between threads.
    """

    def __init__(self, transports: TransportRegistry):
        assert isinstance(transports, TransportRegistry), f"Got {type(transports)}"
        self.transports = transports

    def __repr__(self):
        return f"<CallExecutor {self.transports}>"

    def execute(
        self,
        descriptor: FunctionDescriptor,
        target: HexAddress | str,
        params: Sequence | None = None,
        block: BlockIdentifier | str = "latest",
        chain: str = "ethereum",
    ) -> Any:
        """Perform a call and decode its result.

        :return:
            Decoded return value

        :raise InvalidBlockTag:
            Before any network activity

        :raise DecodeError:
            If the return data does not match the function ABI.
            Transport errors are passed through as is.
        """
        block = normalise_block(block)
        data = encode_call(descriptor, params)
        transport = self.transports.get_transport(chain)

        logger.debug("Calling %s.%s on chain %s at block %s, calldata %d bytes", target, descriptor.name, chain, block, len(data))

        raw = transport.call(target, data, block)
        return decode_output(descriptor, raw)
