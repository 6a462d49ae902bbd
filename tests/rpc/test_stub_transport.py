"""
Tests for the StubTransport implementation.
"""
import pytest

from ethquery_sdk.exceptions import EndpointUnreachableError, RpcError
from ethquery_sdk.rpc import StubTransport


class TestStubTransport:
    """Tests for the StubTransport implementation."""

    def test_initial_responses(self):
        transport = StubTransport({"eth_chainId": "0x1"})
        assert transport.call("eth_chainId") == "0x1"

    def test_unregistered_method(self):
        transport = StubTransport()

        with pytest.raises(RpcError) as exc_info:
            transport.call("eth_chainId")

        assert exc_info.value.code == -32601

    def test_params_specific_response(self):
        transport = StubTransport()
        transport.set_response("eth_getBlockByNumber", {"number": "0x1"})
        transport.set_response("eth_getBlockByNumber", None, params=["0xffff", True])

        assert transport.call("eth_getBlockByNumber", ["0x1", True]) == {"number": "0x1"}
        assert transport.call("eth_getBlockByNumber", ["0xffff", True]) is None

    def test_exception_response(self):
        transport = StubTransport({"eth_chainId": EndpointUnreachableError("down")})

        with pytest.raises(EndpointUnreachableError):
            transport.call("eth_chainId")

    def test_callable_response(self):
        transport = StubTransport({"eth_getTransactionCount": lambda address, block: hex(len(address))})
        assert transport.call("eth_getTransactionCount", ["0xabc", "latest"]) == "0x5"

    def test_results_are_copies(self):
        block = {"transactions": []}
        transport = StubTransport({"eth_getBlockByNumber": block})

        transport.call("eth_getBlockByNumber")["transactions"].append("0x1")
        assert transport.call("eth_getBlockByNumber") == {"transactions": []}

    def test_calls_recorded(self):
        transport = StubTransport({"eth_chainId": "0x1", "eth_blockNumber": "0x10"})
        transport.call("eth_chainId")
        transport.call("eth_blockNumber")
        transport.call("eth_chainId")

        assert transport.call_count("eth_chainId") == 2
        assert transport.calls[1] == ("eth_blockNumber", [])
