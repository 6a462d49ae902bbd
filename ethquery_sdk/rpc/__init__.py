"""
JSON-RPC transports for the EthQuery SDK.

HTTP(S) and local IPC sockets are supported; ``StubTransport`` answers from
memory for tests.
"""
from .transport import RpcTransport, build_request, get_transport, parse_response
from .http_transport import HttpTransport
from .ipc_transport import IpcTransport
from .stub_transport import StubTransport

__all__ = [
    'RpcTransport',
    'HttpTransport',
    'IpcTransport',
    'StubTransport',
    'get_transport',
    'build_request',
    'parse_response',
]
