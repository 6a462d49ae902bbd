"""
Configuration for the EthQuery SDK.

Network definitions ship with the package in ``networks.json``. Environment
variables override them:

- ``<NETWORK>_RPC_URL``: RPC URL for a named network (e.g. ``MAINNET_RPC_URL``)
- ``ETHQUERY_RPC_TIMEOUT``: default per-call timeout in seconds
- ``ETHQUERY_INSECURE_RPC=1``: allow plain ``http://`` to non-local hosts
"""
import importlib.resources
import json
import logging
import os
import threading
from typing import Any, Dict, Optional

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT = 30.0


def get_default_timeout() -> float:
    """Default transport timeout in seconds, from ``ETHQUERY_RPC_TIMEOUT`` if set."""
    value = os.environ.get("ETHQUERY_RPC_TIMEOUT")
    if not value:
        return DEFAULT_TIMEOUT
    try:
        timeout = float(value)
    except ValueError:
        logger.warning("Invalid ETHQUERY_RPC_TIMEOUT %r, using %ss", value, DEFAULT_TIMEOUT)
        return DEFAULT_TIMEOUT
    if timeout <= 0:
        logger.warning("ETHQUERY_RPC_TIMEOUT must be positive, using %ss", DEFAULT_TIMEOUT)
        return DEFAULT_TIMEOUT
    return timeout


def insecure_http_allowed() -> bool:
    return os.environ.get("ETHQUERY_INSECURE_RPC") == "1"


class NetworkConfig:
    """Access to the packaged network table."""

    _networks_cache: Optional[Dict[str, Dict[str, Any]]] = None
    _cache_lock = threading.Lock()

    @classmethod
    def load_networks(cls) -> Dict[str, Dict[str, Any]]:
        """
        Load network definitions, caching them after the first read.

        Returns:
            Mapping of network name to its definition
        """
        with cls._cache_lock:
            if cls._networks_cache is None:
                text = importlib.resources.files("ethquery_sdk").joinpath("networks.json").read_text(
                    encoding="utf-8")
                cls._networks_cache = json.loads(text)
            return cls._networks_cache

    @classmethod
    def get_network(cls, network: str) -> Dict[str, Any]:
        """
        Get the definition of a named network.

        Raises:
            ValueError: If the network is unknown
        """
        networks = cls.load_networks()
        if network not in networks:
            available = ", ".join(sorted(networks))
            raise ValueError(f"Unknown network '{network}'. Available networks: {available}")
        return networks[network]

    @classmethod
    def get_rpc_url(cls, network: str, override: Optional[str] = None) -> str:
        """
        Resolve the RPC URL for a network.

        Precedence: ``override``, then ``<NETWORK>_RPC_URL``, then the table.
        """
        if override:
            return override
        env_name = network.upper().replace("-", "_") + "_RPC_URL"
        env_url = os.environ.get(env_name)
        if env_url:
            logger.debug("Using RPC URL from %s", env_name)
            return env_url
        return cls.get_network(network)["rpc"]

    @classmethod
    def get_chain_id(cls, network: str) -> int:
        return int(cls.get_network(network)["chainId"])
