"""Memoisation of contract reads that never change.

Some contract functions return values that stay the same for the whole
lifetime of a contract: token decimals, token names, linked contract addresses.
We store these in the process memory and never hit the RPC for them twice.

- Only a whitelist of ABI shorthands is cached, see :py:func:`is_cacheable_abi`
- Entries are never evicted or invalidated. This is a policy choice:
  a contract returning a different ``decimals()`` later is considered broken.
- The store is owned by the reader instance, so test suites and different
  configurations get isolated caches
"""

import logging
import math
import threading
from typing import Any, Hashable, MutableMapping, TypeAlias

import cachetools
from eth_utils import is_hex_address

from eth_multiread.abi import FunctionDescriptor, resolve_alias


logger = logging.getLogger(__name__)

#: (chain, lowercased address, ABI source string)
CacheKey: TypeAlias = tuple[str, str, str]

#: ABI shorthands cached in addition to all ``address:`` and ``string:`` getters
CACHEABLE_ABIS = {
    "uint8:decimals",
}


class _Missing:
    def __repr__(self):
        return "<missing>"


#: Returned by :py:meth:`CallCache.get` on a miss,
#: as ``None`` can be a legit cached value
MISSING = _Missing()


def is_cacheable_abi(abi: str | dict | FunctionDescriptor) -> bool:
    """Can the results of this function be memoised forever.

    Only string specs are considered, as we cannot tell
    the intent of a full ABI entry.
    """
    abi = resolve_alias(abi)
    if not isinstance(abi, str):
        return False
    return abi.startswith("address:") or abi.startswith("string:") or abi in CACHEABLE_ABIS


def create_cache_key(chain: str, target: str, abi: str) -> CacheKey:
    """Hex addresses are case insensitive, base58 addresses are not."""
    if is_hex_address(target):
        target = target.lower()
    return (chain, target, resolve_alias(abi))


class CallCache:
    """Address keyed store for immutable call results.

    - Thread safe
    - Concurrent writers for the same key: last one wins,
      which is fine because the values are the same

    Example:

    .. code-block:: python

        cache = CallCache()
        key = create_cache_key("ethereum", usdc_address, "uint8:decimals")
        if cache.get(key) is MISSING:
            cache.put(key, 6)
    """

    def __init__(self, store: MutableMapping[Hashable, Any] | None = None):
        """
        :param store:
            Any mapping. Defaults to an unbounded :py:class:`cachetools.Cache`.
        """
        if store is None:
            store = cachetools.Cache(maxsize=math.inf)
        self.store = store
        self.lock = threading.Lock()

    def __repr__(self):
        return f"<CallCache {self.store.__class__.__name__} with {len(self)} entries>"

    def __len__(self):
        with self.lock:
            return len(self.store)

    def __contains__(self, key: CacheKey) -> bool:
        return self.get(key) is not MISSING

    def get(self, key: CacheKey) -> Any:
        """Get a cached value.

        :return:
            :py:data:`MISSING` if we have not seen this call
        """
        with self.lock:
            value = self.store.get(key, MISSING)
        logger.debug("Cache %s: %s", "miss" if value is MISSING else "hit", key)
        return value

    def put(self, key: CacheKey, value: Any):
        with self.lock:
            self.store[key] = value

    def clear(self):
        with self.lock:
            self.store.clear()
