"""
IPC transport for JSON-RPC endpoints exposed on a local UNIX socket.
"""
import codecs
import json
import logging
import socket
from typing import Any, List, Optional, Sequence

from ..exceptions import EndpointUnreachableError, MalformedResponseError, TransportTimeoutError
from .transport import RpcTransport, build_request, parse_response

# Configure logger
logger = logging.getLogger(__name__)

# Upper bound on a single response; a full block with large calldata fits comfortably
MAX_RESPONSE_BYTES = 64 * 1024 * 1024


class IpcTransport(RpcTransport):
    """
    JSON-RPC over a UNIX domain socket, as exposed by a local node.

    Each call opens its own connection, so concurrent calls never share a
    socket.
    """

    def __init__(self, path: str, timeout: Optional[float] = None):
        """
        Args:
            path: Filesystem path of the node's IPC socket
            timeout: Default per-call timeout in seconds
        """
        super().__init__(path, timeout)
        self.path = path

    def call(self, method: str, params: Sequence[Any] = (), timeout: Optional[float] = None) -> Any:
        request_id = self.next_request_id()
        timeout = timeout if timeout is not None else self.timeout
        request = json.dumps(build_request(method, params, request_id)).encode("utf-8")
        logger.debug("IPC request %s id=%d", method, request_id)

        try:
            with socket.socket(socket.AF_UNIX, socket.SOCK_STREAM) as sock:
                sock.settimeout(timeout)
                sock.connect(self.path)
                sock.sendall(request)
                payload = self._read_response(sock)
        except socket.timeout as e:
            logger.warning("IPC %s timed out after %ss", method, timeout)
            raise TransportTimeoutError(f"{method} timed out after {timeout}s") from e
        except OSError as e:
            logger.warning("IPC endpoint unreachable: %s", e)
            raise EndpointUnreachableError(f"Cannot reach {self.path}: {e}") from e

        return parse_response(payload, request_id)

    @staticmethod
    def _read_response(sock: socket.socket) -> Any:
        """
        Read from the socket until one complete JSON document has arrived.

        Only the newly received text is scanned for the closing bracket, and
        the document is parsed once, when its outermost bracket closes.
        """
        utf8 = codecs.getincrementaldecoder("utf-8")()
        parts: List[str] = []
        received = 0
        depth = 0
        started = in_string = escaped = False
        while True:
            chunk = sock.recv(65536)
            if not chunk:
                raise MalformedResponseError(
                    "Connection closed before a complete response was received")
            received += len(chunk)
            if received > MAX_RESPONSE_BYTES:
                raise MalformedResponseError("Response exceeds maximum size")
            try:
                text = utf8.decode(chunk)
            except UnicodeDecodeError as e:
                raise MalformedResponseError(f"Response is not valid UTF-8: {e}") from e
            parts.append(text)

            for char in text:
                if in_string:
                    if escaped:
                        escaped = False
                    elif char == "\\":
                        escaped = True
                    elif char == '"':
                        in_string = False
                elif not started and char not in "{[":
                    if not char.isspace():
                        raise MalformedResponseError(f"Response does not start with a JSON document: {char!r}")
                elif char == '"':
                    in_string = True
                elif char in "{[":
                    depth += 1
                    started = True
                elif char in "}]":
                    depth -= 1
                    if depth == 0:
                        return IpcTransport._parse_document("".join(parts))

    @staticmethod
    def _parse_document(text: str) -> Any:
        try:
            payload, _ = json.JSONDecoder().raw_decode(text.lstrip())
        except ValueError as e:
            raise MalformedResponseError(f"Invalid JSON response: {e}") from e
        return payload
