"""Send raw ``eth_call`` requests to a chain.

- :py:class:`Transport` is the only interface the rest of the package uses
  to talk to a node
- :py:class:`Web3Transport` wraps a :py:class:`web3.Web3` connection
- :py:class:`TransportRegistry` maps chain names to transports

Provider failover, retries on HTTP level and connection pooling are the
business of the underlying :py:mod:`web3` provider, not this module.
"""

import abc
import logging
import threading
from typing import Callable, Mapping

from eth_typing import BlockIdentifier, HexAddress
from hexbytes import HexBytes
from web3 import HTTPProvider, Web3

from eth_multiread import MultireadError
from eth_multiread.provider.env import read_rpc_urls, RPC_ENV_SUFFIX
from eth_multiread.utils import get_url_domain


logger = logging.getLogger(__name__)


class UnknownChain(MultireadError):
    """We do not have a transport configured for the chain."""


class Transport(abc.ABC):
    """Perform a read-only call against a chain."""

    @abc.abstractmethod
    def call(self, target: HexAddress | str, data: bytes, block_identifier: BlockIdentifier) -> bytes:
        """Call a contract.

        :param target:
            Contract address

        :param data:
            Calldata, selector included

        :param block_identifier:
            Block number or ``"latest"``

        :return:
            Raw return data
        """

    @property
    def name(self) -> str:
        """Loggable name of the node we are talking to, without API keys."""
        return self.__class__.__name__


class Web3Transport(Transport):
    """Call EVM contracts over a :py:class:`web3.Web3` connection."""

    def __init__(self, web3: Web3):
        assert isinstance(web3, Web3), f"Got {type(web3)}"
        self.web3 = web3

    def __repr__(self):
        return f"<Web3Transport {self.name}>"

    @property
    def name(self) -> str:
        provider = self.web3.provider
        if getattr(provider, "endpoint_uri", None):
            return get_url_domain(provider.endpoint_uri)
        return str(provider)

    def call(self, target: HexAddress | str, data: bytes, block_identifier: BlockIdentifier) -> bytes:
        result = self.web3.eth.call(
            {
                "to": Web3.to_checksum_address(target),
                "data": HexBytes(data),
            },
            block_identifier=block_identifier,
        )
        return bytes(result)

    @staticmethod
    def from_url(json_rpc_url: str) -> "Web3Transport":
        return Web3Transport(Web3(HTTPProvider(json_rpc_url)))


class TransportRegistry:
    """Per-chain transports.

    - Transports are created lazily with ``factory`` the first time a chain is asked
    - Created transports are reused for the lifetime of the registry
    - Transports can be added for custom chains with :py:meth:`set`
    """

    def __init__(
        self,
        transports: Mapping[str, Transport] | None = None,
        factory: Callable[[str], Transport | None] | None = None,
    ):
        """
        :param transports:
            Chain name -> transport

        :param factory:
            Create a transport for a chain not in ``transports``.

            Return ``None`` if the chain is not supported.
        """
        self._transports: dict[str, Transport] = dict(transports or {})
        self._factory = factory
        self._lock = threading.Lock()

    def __repr__(self):
        return f"<TransportRegistry chains: {', '.join(self._transports.keys())}>"

    def __contains__(self, chain: str) -> bool:
        return self.get(chain) is not None

    def set(self, chain: str, transport: Transport):
        """Add or replace a transport for a chain."""
        assert isinstance(transport, Transport), f"Got {type(transport)}"
        with self._lock:
            self._transports[chain] = transport

    def get(self, chain: str) -> Transport | None:
        """Get a transport for a chain.

        :return:
            None if the chain is not configured
        """
        with self._lock:
            transport = self._transports.get(chain)
            if transport is None and self._factory is not None:
                transport = self._factory(chain)
                if transport is not None:
                    logger.info("Created transport for chain %s: %s", chain, transport.name)
                    self._transports[chain] = transport
            return transport

    def get_transport(self, chain: str) -> Transport:
        """Get a transport for a chain.

        :raise UnknownChain:
            If the chain is not configured
        """
        transport = self.get(chain)
        if transport is None:
            raise UnknownChain(f"No RPC configured for chain {chain}, set {chain.upper()}{RPC_ENV_SUFFIX} environment variable")
        return transport

    @staticmethod
    def from_environment() -> "TransportRegistry":
        """Create transports from ``<CHAIN>_RPC`` environment variables on demand.

        Tron is served by :py:class:`eth_multiread.tron.TronTransport`,
        everything else by :py:class:`Web3Transport`.
        """

        def _factory(chain: str) -> Transport | None:
            urls = read_rpc_urls(chain)
            if not urls:
                return None

            if len(urls) > 1:
                logger.info("Chain %s has %d RPC URLs configured, using the first one", chain, len(urls))

            if chain == "tron":
                from eth_multiread.tron import TronTransport

                return TronTransport(urls[0])

            return Web3Transport.from_url(urls[0])

        return TransportRegistry(factory=_factory)
