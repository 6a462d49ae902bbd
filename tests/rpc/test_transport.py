"""
Tests for the shared JSON-RPC handling and the transport factory.
"""
import pytest

from ethquery_sdk.config import DEFAULT_TIMEOUT
from ethquery_sdk.exceptions import MalformedResponseError, RpcError
from ethquery_sdk.rpc import HttpTransport, IpcTransport, build_request, get_transport, parse_response


class TestParseResponse:
    """Tests for JSON-RPC 2.0 response validation."""

    def test_result(self):
        assert parse_response({"jsonrpc": "2.0", "id": 3, "result": "0x1"}, 3) == "0x1"

    def test_null_result(self):
        assert parse_response({"jsonrpc": "2.0", "id": 3, "result": None}, 3) is None

    def test_error_object(self):
        payload = {"jsonrpc": "2.0", "id": 3, "error": {"code": -32602, "message": "invalid argument", "data": "x"}}

        with pytest.raises(RpcError) as exc_info:
            parse_response(payload, 3)

        assert exc_info.value.code == -32602
        assert exc_info.value.data == "x"

    def test_error_with_null_id(self):
        payload = {"jsonrpc": "2.0", "id": None, "error": {"code": -32700, "message": "parse error"}}

        with pytest.raises(RpcError):
            parse_response(payload, 3)

    @pytest.mark.parametrize("payload", [
        ["not", "an", "object"],
        {"id": 3, "result": "0x1"},
        {"jsonrpc": "1.0", "id": 3, "result": "0x1"},
        {"jsonrpc": "2.0", "id": 4, "result": "0x1"},
        {"jsonrpc": "2.0", "id": 3},
        {"jsonrpc": "2.0", "id": 3, "error": "boom"},
        {"jsonrpc": "2.0", "id": 3, "error": {"message": "no code"}},
    ])
    def test_malformed(self, payload):
        with pytest.raises(MalformedResponseError):
            parse_response(payload, 3)


def test_build_request():
    assert build_request("eth_getBalance", ("0xabc", "latest"), 7) == {
        "jsonrpc": "2.0",
        "method": "eth_getBalance",
        "params": ["0xabc", "latest"],
        "id": 7,
    }


class TestGetTransport:
    """Tests for endpoint string dispatch."""

    def test_https(self):
        transport = get_transport("https://rpc.example.com", timeout=3)

        assert isinstance(transport, HttpTransport)
        assert transport.timeout == 3

    @pytest.mark.parametrize("url", ["http://localhost:8545", "http://127.0.0.1:8545"])
    def test_local_http_allowed(self, url):
        assert isinstance(get_transport(url), HttpTransport)

    def test_remote_http_rejected(self):
        with pytest.raises(ValueError, match="https://"):
            get_transport("http://rpc.example.com")

    def test_remote_http_allowed_explicitly(self):
        assert isinstance(get_transport("http://rpc.example.com", allow_insecure=True), HttpTransport)

    def test_remote_http_allowed_by_environment(self, monkeypatch):
        monkeypatch.setenv("ETHQUERY_INSECURE_RPC", "1")
        assert isinstance(get_transport("http://rpc.example.com"), HttpTransport)

    @pytest.mark.parametrize("endpoint,path", [
        ("ipc:///tmp/geth.ipc", "/tmp/geth.ipc"),
        ("/var/lib/geth/geth.ipc", "/var/lib/geth/geth.ipc"),
        ("geth.ipc", "geth.ipc"),
    ])
    def test_ipc(self, endpoint, path):
        transport = get_transport(endpoint)

        assert isinstance(transport, IpcTransport)
        assert transport.path == path

    @pytest.mark.parametrize("endpoint", ["wss://rpc.example.com", "ftp://example.com", "rpc.example.com"])
    def test_unsupported(self, endpoint):
        with pytest.raises(ValueError, match="Unsupported endpoint"):
            get_transport(endpoint)

    def test_default_timeout_from_environment(self, monkeypatch):
        monkeypatch.setenv("ETHQUERY_RPC_TIMEOUT", "12.5")
        assert get_transport("https://rpc.example.com").timeout == 12.5

    def test_default_timeout(self):
        assert get_transport("https://rpc.example.com").timeout == DEFAULT_TIMEOUT
