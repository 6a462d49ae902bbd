"""
EthQuery SDK - typed, verifiable queries against Ethereum JSON-RPC endpoints.
"""
from .version import __version__
from .client import QueryClient
from .codec import (
    decode_block,
    decode_header,
    decode_transaction,
    encode_block,
    encode_header,
    encode_transaction,
)
from .config import NetworkConfig
from .exceptions import (
    DecodeError,
    EndpointUnreachableError,
    EthQueryError,
    MalformedResponseError,
    NetworkError,
    NotFoundError,
    OutOfRangeError,
    RecoveryError,
    RpcError,
    TransportError,
    TransportTimeoutError,
)
from .models import (
    AccessListEntry,
    Block,
    BlockHeader,
    EnvelopeKind,
    LogEntry,
    Message,
    Receipt,
    ReceiptStatus,
    Transaction,
    Withdrawal,
)
from .rpc import HttpTransport, IpcTransport, RpcTransport, StubTransport, get_transport
from .rpc_codec import block_from_rpc, receipt_from_rpc, transaction_from_rpc
from .signing import recover_sender, signing_payload

__all__ = [
    # Client
    "QueryClient",
    "NetworkConfig",
    # Models
    "AccessListEntry",
    "Block",
    "BlockHeader",
    "EnvelopeKind",
    "LogEntry",
    "Message",
    "Receipt",
    "ReceiptStatus",
    "Transaction",
    "Withdrawal",
    # Codec
    "decode_block",
    "decode_header",
    "decode_transaction",
    "encode_block",
    "encode_header",
    "encode_transaction",
    "block_from_rpc",
    "receipt_from_rpc",
    "transaction_from_rpc",
    # Signatures
    "recover_sender",
    "signing_payload",
    # Transports
    "RpcTransport",
    "HttpTransport",
    "IpcTransport",
    "StubTransport",
    "get_transport",
    # Errors
    "EthQueryError",
    "TransportError",
    "EndpointUnreachableError",
    "TransportTimeoutError",
    "MalformedResponseError",
    "RpcError",
    "DecodeError",
    "RecoveryError",
    "NotFoundError",
    "OutOfRangeError",
    "NetworkError",
    "__version__",
]
