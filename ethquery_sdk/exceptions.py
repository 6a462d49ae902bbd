"""
Exceptions for the EthQuery SDK.

Every failure surfaced by the SDK is a subclass of ``EthQueryError`` so callers
can branch on the specific kind. Lower layers raise the most specific class and
the query client passes them through unchanged.
"""
from typing import Any, Optional


class EthQueryError(Exception):
    """Base exception for all EthQuery SDK errors."""
    pass


class TransportError(EthQueryError):
    """
    Raised when a JSON-RPC round trip fails.

    Attributes:
        code: JSON-RPC error code when the remote side reported one, else None
        message: Human-readable description of the failure
    """

    def __init__(self, message: str, code: Optional[int] = None):
        self.code = code
        self.message = message
        super().__init__(message)


class EndpointUnreachableError(TransportError):
    """Raised when the endpoint cannot be reached (refused, DNS, missing socket)."""
    pass


class TransportTimeoutError(TransportError):
    """Raised when the endpoint does not answer within the call timeout."""
    pass


class MalformedResponseError(TransportError):
    """Raised when the endpoint answers with something that is not a valid JSON-RPC response."""
    pass


class RpcError(TransportError):
    """Raised when the endpoint returns a JSON-RPC error object."""

    def __init__(self, code: int, message: str, data: Any = None):
        self.data = data
        super().__init__(message, code=code)

    def __str__(self) -> str:
        return f"RPC error {self.code}: {self.message}"


class DecodeError(EthQueryError):
    """
    Raised when a payload from the endpoint cannot be decoded.

    Attributes:
        field: Name of the field being decoded when the failure happened
        offset: Byte offset into the raw payload, when known
    """

    def __init__(self, message: str, field: Optional[str] = None, offset: Optional[int] = None):
        self.field = field
        self.offset = offset
        context = []
        if field is not None:
            context.append(f"field={field}")
        if offset is not None:
            context.append(f"offset={offset}")
        if context:
            message = f"{message} ({', '.join(context)})"
        super().__init__(message)


class RecoveryError(EthQueryError):
    """Raised when a sender address cannot be recovered from a signature."""
    pass


class NotFoundError(EthQueryError):
    """Raised when the endpoint does not know the requested entity."""
    pass


class OutOfRangeError(EthQueryError):
    """Raised when a transaction index is outside the block's transaction list."""

    def __init__(self, index: int, count: int):
        self.index = index
        self.count = count
        super().__init__(f"Transaction index {index} out of range for block with {count} transactions")


class NetworkError(EthQueryError):
    """Raised for network configuration problems such as a chain ID mismatch."""
    pass
