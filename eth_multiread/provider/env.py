"""Get JSON-RPC URLs and tuning parameters from environment variables."""

import logging
import os


logger = logging.getLogger(__name__)

#: ``ETHEREUM_RPC``, ``ARBITRUM_RPC``, ...
RPC_ENV_SUFFIX = "_RPC"

#: Environment variable to override the default multicall chunk size
CHUNK_SIZE_ENV = "MULTICALL_CHUNK_SIZE"

#: Max calls packed in one multicall if not configured otherwise
DEFAULT_CHUNK_SIZE = 500


def get_rpc_env(chain: str) -> str:
    """Get the environment variable name holding RPC URLs for a chain name."""
    assert type(chain) is str, f"Chain must be a string: {type(chain)}"
    return f"{chain.upper()}{RPC_ENV_SUFFIX}"


def read_rpc_urls(chain: str) -> list[str]:
    """Read JSON-RPC URLs for a chain.

    The environment variable can contain multiple comma separated URLs.

    :return:
        List of URLs, empty if not configured
    """
    value = os.environ.get(get_rpc_env(chain))
    if not value:
        return []
    return [u.strip() for u in value.split(",") if u.strip()]


def read_default_chunk_size() -> int:
    """Read the default multicall chunk size.

    Falls back to :py:data:`DEFAULT_CHUNK_SIZE` if the variable is unset or garbage.
    """
    value = os.environ.get(CHUNK_SIZE_ENV)
    if not value:
        return DEFAULT_CHUNK_SIZE

    try:
        chunk_size = int(value)
    except ValueError:
        logger.warning("Bad %s value %s, using %d", CHUNK_SIZE_ENV, value, DEFAULT_CHUNK_SIZE)
        return DEFAULT_CHUNK_SIZE

    if chunk_size <= 0:
        logger.warning("Bad %s value %s, using %d", CHUNK_SIZE_ENV, value, DEFAULT_CHUNK_SIZE)
        return DEFAULT_CHUNK_SIZE

    return chunk_size
