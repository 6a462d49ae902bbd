"""
HTTP(S) transport for JSON-RPC endpoints.
"""
import logging
from typing import Any, Dict, Optional, Sequence

import requests
from requests.adapters import HTTPAdapter
from urllib3.util.retry import Retry

from ..exceptions import (
    EndpointUnreachableError,
    MalformedResponseError,
    TransportError,
    TransportTimeoutError,
)
from .transport import RpcTransport, build_request, parse_response

# Configure logger
logger = logging.getLogger(__name__)


class HttpTransport(RpcTransport):
    """
    JSON-RPC over HTTP(S) using a ``requests`` session.

    Automatic retries are disabled at the adapter level; each call is a
    single POST. The session is shared between threads.
    """

    def __init__(
        self,
        endpoint: str,
        timeout: Optional[float] = None,
        session: Optional[requests.Session] = None,
        headers: Optional[Dict[str, str]] = None,
    ):
        """
        Args:
            endpoint: HTTP(S) URL of the JSON-RPC endpoint
            timeout: Default per-call timeout in seconds
            session: Session to use instead of a new one
            headers: Extra headers sent with every request (e.g., auth)
        """
        super().__init__(endpoint, timeout)
        self.session = session or requests.Session()
        no_retries = Retry(total=0, connect=0, read=0, redirect=0, status=0, raise_on_status=False)
        self.session.mount("http://", HTTPAdapter(max_retries=no_retries))
        self.session.mount("https://", HTTPAdapter(max_retries=no_retries))
        self.session.headers.update({"Content-Type": "application/json"})
        if headers:
            self.session.headers.update(headers)

    def call(self, method: str, params: Sequence[Any] = (), timeout: Optional[float] = None) -> Any:
        request_id = self.next_request_id()
        timeout = timeout if timeout is not None else self.timeout
        payload = build_request(method, params, request_id)
        logger.debug("RPC request %s id=%d params=%s", method, request_id, payload["params"])

        try:
            response = self.session.post(self.endpoint, json=payload, timeout=timeout)
        except requests.Timeout as e:
            logger.warning("RPC %s timed out after %ss", method, timeout)
            raise TransportTimeoutError(f"{method} timed out after {timeout}s") from e
        except requests.ConnectionError as e:
            logger.warning("RPC endpoint unreachable: %s", e)
            raise EndpointUnreachableError(f"Cannot reach {self.endpoint}: {e}") from e
        except requests.RequestException as e:
            logger.error("RPC request %s failed: %s", method, e)
            raise TransportError(f"{method} request failed: {e}") from e

        try:
            body = response.json()
        except ValueError:
            body = None

        if response.status_code >= 400 and not (isinstance(body, dict) and body.get("error")):
            raise MalformedResponseError(
                f"HTTP {response.status_code} from endpoint: {response.text[:200]}")
        if body is None:
            content_type = response.headers.get("Content-Type", "")
            raise MalformedResponseError(
                f"Response is not valid JSON (Content-Type: {content_type or 'unset'})")

        result = parse_response(body, request_id)
        logger.debug("RPC response %s id=%d", method, request_id)
        return result

    def close(self) -> None:
        self.session.close()
