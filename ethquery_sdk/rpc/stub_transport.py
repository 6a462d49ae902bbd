"""
Stub-based transport implementation.

Answers calls from canned results held in memory. Used for testing and for
working offline against recorded responses; it never touches the network.
"""
import copy
import json
import logging
import threading
from typing import Any, Callable, Dict, List, Optional, Sequence, Tuple

from ..exceptions import RpcError
from .transport import RpcTransport

# Configure logger
logger = logging.getLogger(__name__)

METHOD_NOT_FOUND = -32601


def _params_key(params: Sequence[Any]) -> str:
    return json.dumps(list(params), sort_keys=True)


class StubTransport(RpcTransport):
    """
    A simple stub implementation of the RPC transport.

    Responses are registered per method, optionally narrowed to exact
    parameters. A registered value may be a result, an exception instance to
    raise, or a callable receiving the call's parameters. Every call is
    recorded in ``calls``.
    """

    def __init__(self, responses: Optional[Dict[str, Any]] = None, endpoint: str = "stub://"):
        """
        Args:
            responses: Initial mapping of method name to response
            endpoint: Name reported as the endpoint
        """
        super().__init__(endpoint, timeout=0)
        self._responses: Dict[Tuple[str, Optional[str]], Any] = {}
        self._lock = threading.Lock()
        self.calls: List[Tuple[str, List[Any]]] = []
        for method, response in (responses or {}).items():
            self.set_response(method, response)

    def set_response(self, method: str, response: Any, params: Optional[Sequence[Any]] = None) -> None:
        """
        Register the response for a method.

        Args:
            method: RPC method name
            response: Result value, exception instance, or callable(*params)
            params: Only answer calls with exactly these parameters
        """
        key = (method, None if params is None else _params_key(params))
        with self._lock:
            self._responses[key] = response

    def call_count(self, method: str) -> int:
        """Number of recorded calls to a method."""
        with self._lock:
            return sum(1 for name, _ in self.calls if name == method)

    def call(self, method: str, params: Sequence[Any] = (), timeout: Optional[float] = None) -> Any:
        params = list(params)
        with self._lock:
            self.calls.append((method, params))
            specific = (method, _params_key(params))
            if specific in self._responses:
                response = self._responses[specific]
            elif (method, None) in self._responses:
                response = self._responses[(method, None)]
            else:
                logger.debug("StubTransport has no response for %s", method)
                raise RpcError(METHOD_NOT_FOUND, f"the method {method} does not exist/is not available")

        if isinstance(response, Exception):
            raise response
        if callable(response):
            response = response(*params)
        return copy.deepcopy(response)
