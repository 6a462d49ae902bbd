"""
Transport layer for JSON-RPC endpoints.

This module defines the interface every transport implements, the shared
JSON-RPC 2.0 request/response handling, and the factory that picks an
implementation from an endpoint string.

Transports make exactly one attempt per call. Retrying is left to the caller
so that timeouts and connection failures stay visible.
"""
import itertools
import logging
import os
import threading
import urllib.parse
from abc import ABC, abstractmethod
from typing import Any, Dict, Optional, Sequence

from ..config import get_default_timeout, insecure_http_allowed
from ..exceptions import MalformedResponseError, RpcError

# Configure logger
logger = logging.getLogger(__name__)

LOCAL_HOSTS = ("localhost", "127.0.0.1", "::1")


class RpcTransport(ABC):
    """
    Abstract base class for JSON-RPC transport implementations.

    Implementations must be safe for concurrent use: the query client may be
    shared between threads and issue independent calls in parallel.
    """

    def __init__(self, endpoint: str, timeout: Optional[float] = None):
        """
        Args:
            endpoint: Endpoint the transport talks to
            timeout: Default per-call timeout in seconds
        """
        self.endpoint = endpoint
        self.timeout = timeout if timeout is not None else get_default_timeout()
        self._request_ids = itertools.count(1)
        self._request_id_lock = threading.Lock()

    def next_request_id(self) -> int:
        """Return a request ID unique for this transport instance."""
        with self._request_id_lock:
            return next(self._request_ids)

    @abstractmethod
    def call(self, method: str, params: Sequence[Any] = (), timeout: Optional[float] = None) -> Any:
        """
        Send one JSON-RPC request and return its ``result`` member.

        Args:
            method: RPC method name (e.g., "eth_getBlockByNumber")
            params: Positional parameters, JSON-compatible
            timeout: Timeout in seconds for this call (defaults to ``self.timeout``)

        Returns:
            The decoded JSON ``result`` (may be None)

        Raises:
            EndpointUnreachableError: If the endpoint cannot be reached
            TransportTimeoutError: If no response arrives in time
            MalformedResponseError: If the response is not valid JSON-RPC
            RpcError: If the endpoint returns an error object
        """
        pass

    def close(self) -> None:
        """Close any open connections or resources."""
        pass

    def __enter__(self) -> "RpcTransport":
        return self

    def __exit__(self, *exc_info: Any) -> None:
        self.close()

    def __repr__(self) -> str:
        return f"{type(self).__name__}({self.endpoint!r})"


def build_request(method: str, params: Sequence[Any], request_id: int) -> Dict[str, Any]:
    """Build a JSON-RPC 2.0 request object."""
    return {
        "jsonrpc": "2.0",
        "method": method,
        "params": list(params),
        "id": request_id,
    }


def parse_response(payload: Any, request_id: int) -> Any:
    """
    Validate a JSON-RPC 2.0 response and extract its result.

    Args:
        payload: Decoded JSON response body
        request_id: ID of the request the response should answer

    Returns:
        The ``result`` member

    Raises:
        RpcError: If the response carries an error object
        MalformedResponseError: If the envelope is invalid
    """
    if not isinstance(payload, dict):
        raise MalformedResponseError(f"Expected a JSON-RPC object, got {type(payload).__name__}")
    if payload.get("jsonrpc") != "2.0":
        raise MalformedResponseError(f"Unsupported JSON-RPC version: {payload.get('jsonrpc')!r}")

    error = payload.get("error")
    if error is not None:
        if not isinstance(error, dict) or not isinstance(error.get("code"), int):
            raise MalformedResponseError(f"Malformed error object: {error!r}")
        # the endpoint may answer with a null ID when it could not parse the request
        if payload.get("id") not in (request_id, None):
            raise MalformedResponseError(
                f"Response ID {payload.get('id')!r} does not match request ID {request_id}")
        raise RpcError(error["code"], str(error.get("message", "")), error.get("data"))

    if payload.get("id") != request_id:
        raise MalformedResponseError(
            f"Response ID {payload.get('id')!r} does not match request ID {request_id}")
    if "result" not in payload:
        raise MalformedResponseError("Response has neither result nor error")
    return payload["result"]


def _is_local(host: Optional[str]) -> bool:
    return host in LOCAL_HOSTS


def get_transport(
    endpoint: str,
    timeout: Optional[float] = None,
    allow_insecure: Optional[bool] = None,
) -> RpcTransport:
    """
    Create the transport matching an endpoint string.

    ``https://`` URLs use HTTP. ``http://`` is accepted for local hosts, or
    for any host when ``allow_insecure`` (or ``ETHQUERY_INSECURE_RPC=1``) is
    set. ``ipc://<path>`` or a plain filesystem path uses the IPC socket.

    Args:
        endpoint: Endpoint URL or socket path
        timeout: Default per-call timeout in seconds
        allow_insecure: Allow plain HTTP to remote hosts

    Returns:
        Transport implementation

    Raises:
        ValueError: If the endpoint is unsupported or insecure
    """
    if allow_insecure is None:
        allow_insecure = insecure_http_allowed()

    parsed = urllib.parse.urlparse(endpoint)
    scheme = parsed.scheme.lower()

    if scheme in ("http", "https"):
        if scheme == "http" and not (_is_local(parsed.hostname) or allow_insecure):
            raise ValueError(
                f"endpoint must use https:// for security (got: {endpoint}); "
                "set allow_insecure=True to override")
        from .http_transport import HttpTransport
        logger.debug("Using HTTP transport for %s", endpoint)
        return HttpTransport(endpoint, timeout=timeout)

    if scheme == "ipc" or (not scheme and (endpoint.endswith(".ipc") or os.sep in endpoint)):
        path = parsed.path if scheme == "ipc" else endpoint
        from .ipc_transport import IpcTransport
        logger.debug("Using IPC transport for %s", path)
        return IpcTransport(path, timeout=timeout)

    raise ValueError(f"Unsupported endpoint: {endpoint!r}")
