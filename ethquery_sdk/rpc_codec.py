"""
Decoders for the JSON objects returned by the standard ``eth_*`` RPC methods.

The endpoint reports blocks, transactions and receipts as JSON with hex
quantities. These functions turn them into the same typed entities the wire
codec produces. Transaction objects are re-encoded and their reported hash is
checked against the recomputed one, so a transaction whose fields were garbled
in transit never reaches the caller.
"""
import logging
from typing import Any, Dict, Optional, Tuple

from pydantic import ValidationError

from .exceptions import DecodeError
from .models import (
    EIP155_V_OFFSET,
    ENVELOPE_TYPE_BYTES,
    AccessListEntry,
    Block,
    BlockHeader,
    EnvelopeKind,
    LogEntry,
    Receipt,
    ReceiptStatus,
    Transaction,
    Withdrawal,
)
from .utils import format_hex, hex_to_address, hex_to_bytes, hex_to_int

logger = logging.getLogger(__name__)

_KIND_BY_TYPE: Dict[int, EnvelopeKind] = {b: k for k, b in ENVELOPE_TYPE_BYTES.items()}

_RECEIPT_STATUS = {1: ReceiptStatus.SUCCEEDED, 0: ReceiptStatus.FAILED}


def _expect_object(obj: Any, field: str) -> Dict[str, Any]:
    if not isinstance(obj, dict):
        raise DecodeError(f"Expected a JSON object, got {type(obj).__name__}", field=field)
    return obj


def _expect_list(value: Any, field: str) -> list:
    if not isinstance(value, list):
        raise DecodeError(f"Expected a list, got {type(value).__name__}", field=field)
    return value


def _optional_int(obj: Dict[str, Any], key: str) -> Optional[int]:
    value = obj.get(key)
    return None if value is None else hex_to_int(value, key)


def _optional_bytes(obj: Dict[str, Any], key: str, length: Optional[int] = None) -> Optional[bytes]:
    value = obj.get(key)
    return None if value is None else hex_to_bytes(value, key, length)


def _optional_address(obj: Dict[str, Any], key: str) -> Optional[str]:
    value = obj.get(key)
    return None if value is None else hex_to_address(value, key)


def _access_list(value: Any) -> Tuple[AccessListEntry, ...]:
    if not isinstance(value, list):
        raise DecodeError("Expected a list", field="accessList")
    entries = []
    for i, entry in enumerate(value):
        field = f"accessList[{i}]"
        entry = _expect_object(entry, field)
        keys = _expect_list(entry.get("storageKeys", []), field + ".storageKeys")
        entries.append(AccessListEntry(
            address=hex_to_address(entry.get("address"), field + ".address"),
            storage_keys=tuple(
                hex_to_bytes(k, f"{field}.storageKeys[{j}]", 32) for j, k in enumerate(keys)
            ),
        ))
    return tuple(entries)


def transaction_from_rpc(obj: Any, verify_hash: bool = True) -> Transaction:
    """
    Decode a transaction object as returned by ``eth_getTransactionByHash``.

    Args:
        obj: The JSON object from the endpoint
        verify_hash: Check the reported ``hash`` against the re-encoded transaction

    Returns:
        The decoded Transaction, with block linkage set if it has been mined

    Raises:
        DecodeError: If a field is missing or malformed, the type is unknown,
            or the reported hash does not match
    """
    obj = _expect_object(obj, "transaction")
    tx_type = hex_to_int(obj.get("type", "0x0"), "type")

    fields: Dict[str, Any] = {
        "nonce": hex_to_int(obj.get("nonce"), "nonce"),
        "gas_limit": hex_to_int(obj.get("gas"), "gas"),
        "to": _optional_address(obj, "to"),
        "value": hex_to_int(obj.get("value"), "value"),
        "data": hex_to_bytes(obj.get("input", obj.get("data")), "input"),
        "r": hex_to_int(obj.get("r"), "r"),
        "s": hex_to_int(obj.get("s"), "s"),
        "block_hash": _optional_bytes(obj, "blockHash", 32),
        "block_number": _optional_int(obj, "blockNumber"),
        "transaction_index": _optional_int(obj, "transactionIndex"),
    }

    if tx_type == 0:
        v = hex_to_int(obj.get("v"), "v")
        fields["v"] = v
        fields["gas_price"] = hex_to_int(obj.get("gasPrice"), "gasPrice")
        if v >= EIP155_V_OFFSET:
            fields["kind"] = EnvelopeKind.REPLAY_PROTECTED
            fields["chain_id"] = (v - EIP155_V_OFFSET) // 2
        else:
            fields["kind"] = EnvelopeKind.LEGACY
    else:
        kind = _KIND_BY_TYPE.get(tx_type)
        if kind is None:
            raise DecodeError(f"Unknown envelope kind 0x{tx_type:02x}", field="type")
        fields["kind"] = kind
        fields["chain_id"] = hex_to_int(obj.get("chainId"), "chainId")
        parity = obj.get("yParity", obj.get("v"))
        fields["v"] = hex_to_int(parity, "yParity")
        fields["access_list"] = _access_list(obj.get("accessList", []))
        if kind is EnvelopeKind.ACCESS_LIST:
            fields["gas_price"] = hex_to_int(obj.get("gasPrice"), "gasPrice")
        else:
            fields["max_priority_fee_per_gas"] = hex_to_int(
                obj.get("maxPriorityFeePerGas"), "maxPriorityFeePerGas")
            fields["max_fee_per_gas"] = hex_to_int(obj.get("maxFeePerGas"), "maxFeePerGas")
        if kind is EnvelopeKind.BLOB:
            fields["max_fee_per_blob_gas"] = hex_to_int(
                obj.get("maxFeePerBlobGas"), "maxFeePerBlobGas")
            hashes = obj.get("blobVersionedHashes")
            if not isinstance(hashes, list):
                raise DecodeError("Expected a list", field="blobVersionedHashes")
            fields["blob_versioned_hashes"] = tuple(
                hex_to_bytes(h, f"blobVersionedHashes[{i}]", 32) for i, h in enumerate(hashes)
            )

    try:
        tx = Transaction(**fields)
    except ValidationError as e:
        raise DecodeError(f"Inconsistent transaction: {e.errors()[0]['msg']}", field="transaction")

    if verify_hash and obj.get("hash") is not None:
        reported = hex_to_bytes(obj["hash"], "hash", 32)
        if tx.hash != reported:
            logger.warning(
                "Transaction hash mismatch: endpoint reported %s, fields encode to %s",
                format_hex(reported), format_hex(tx.hash),
            )
            raise DecodeError("Reported hash does not match transaction contents", field="hash")
    return tx


def _header_from_rpc(obj: Dict[str, Any]) -> BlockHeader:
    try:
        return BlockHeader(
            hash=_optional_bytes(obj, "hash", 32),
            parent_hash=hex_to_bytes(obj.get("parentHash"), "parentHash", 32),
            uncles_hash=hex_to_bytes(obj.get("sha3Uncles"), "sha3Uncles", 32),
            coinbase=_optional_address(obj, "miner"),
            state_root=hex_to_bytes(obj.get("stateRoot"), "stateRoot", 32),
            transactions_root=hex_to_bytes(obj.get("transactionsRoot"), "transactionsRoot", 32),
            receipts_root=hex_to_bytes(obj.get("receiptsRoot"), "receiptsRoot", 32),
            logs_bloom=hex_to_bytes(obj.get("logsBloom"), "logsBloom", 256),
            difficulty=hex_to_int(obj.get("difficulty", "0x0"), "difficulty"),
            number=hex_to_int(obj.get("number"), "number"),
            gas_limit=hex_to_int(obj.get("gasLimit"), "gasLimit"),
            gas_used=hex_to_int(obj.get("gasUsed"), "gasUsed"),
            timestamp=hex_to_int(obj.get("timestamp"), "timestamp"),
            extra_data=hex_to_bytes(obj.get("extraData", "0x"), "extraData"),
            mix_hash=hex_to_bytes(obj.get("mixHash", "0x" + "00" * 32), "mixHash", 32),
            nonce=_optional_bytes(obj, "nonce", 8),
            base_fee_per_gas=_optional_int(obj, "baseFeePerGas"),
            withdrawals_root=_optional_bytes(obj, "withdrawalsRoot", 32),
            blob_gas_used=_optional_int(obj, "blobGasUsed"),
            excess_blob_gas=_optional_int(obj, "excessBlobGas"),
            parent_beacon_block_root=_optional_bytes(obj, "parentBeaconBlockRoot", 32),
            requests_hash=_optional_bytes(obj, "requestsHash", 32),
        )
    except ValidationError as e:
        raise DecodeError(f"Inconsistent header: {e.errors()[0]['msg']}", field="header")


def _withdrawal_from_rpc(obj: Any, field: str) -> Withdrawal:
    obj = _expect_object(obj, field)
    return Withdrawal(
        index=hex_to_int(obj.get("index"), field + ".index"),
        validator_index=hex_to_int(obj.get("validatorIndex"), field + ".validatorIndex"),
        address=hex_to_address(obj.get("address"), field + ".address"),
        amount=hex_to_int(obj.get("amount"), field + ".amount"),
    )


def block_from_rpc(obj: Any, verify_hashes: bool = True) -> Block:
    """
    Decode a block object as returned by ``eth_getBlockByNumber`` with full
    transaction objects.

    Args:
        obj: The JSON object from the endpoint
        verify_hashes: Check every transaction's reported hash

    Raises:
        DecodeError: If the block or any of its transactions is malformed
    """
    obj = _expect_object(obj, "block")
    header = _header_from_rpc(obj)

    raw_txs = obj.get("transactions", [])
    if not isinstance(raw_txs, list):
        raise DecodeError("Expected a list", field="transactions")
    transactions = []
    for index, raw_tx in enumerate(raw_txs):
        if not isinstance(raw_tx, dict):
            raise DecodeError(
                "Expected a full transaction object, got a hash", field=f"transactions[{index}]")
        transactions.append(transaction_from_rpc(raw_tx, verify_hash=verify_hashes))

    uncles = obj.get("uncles", [])
    if not isinstance(uncles, list):
        raise DecodeError("Expected a list", field="uncles")

    withdrawals = None
    if obj.get("withdrawals") is not None:
        withdrawals = tuple(
            _withdrawal_from_rpc(w, f"withdrawals[{i}]")
            for i, w in enumerate(_expect_list(obj["withdrawals"], "withdrawals"))
        )

    return Block(
        header=header,
        transactions=tuple(transactions),
        uncle_hashes=tuple(hex_to_bytes(u, f"uncles[{i}]", 32) for i, u in enumerate(uncles)),
        withdrawals=withdrawals,
    )


def _log_from_rpc(obj: Any, field: str) -> LogEntry:
    obj = _expect_object(obj, field)
    topics = _expect_list(obj.get("topics", []), field + ".topics")
    return LogEntry(
        address=hex_to_address(obj.get("address"), field + ".address"),
        topics=tuple(hex_to_bytes(t, f"{field}.topics[{i}]", 32) for i, t in enumerate(topics)),
        data=hex_to_bytes(obj.get("data", "0x"), field + ".data"),
        log_index=_optional_int(obj, "logIndex"),
        removed=bool(obj.get("removed", False)),
    )


def receipt_from_rpc(obj: Any) -> Receipt:
    """
    Decode a receipt object as returned by ``eth_getTransactionReceipt``.

    The numeric status is mapped to ``ReceiptStatus``; any value other than
    0 or 1 is rejected.

    Raises:
        DecodeError: If a field is missing or malformed
    """
    obj = _expect_object(obj, "receipt")

    status = None
    if obj.get("status") is not None:
        code = hex_to_int(obj["status"], "status")
        if code not in _RECEIPT_STATUS:
            raise DecodeError(f"Unknown receipt status {code}", field="status")
        status = _RECEIPT_STATUS[code]

    logs = _expect_list(obj.get("logs", []), "logs")

    try:
        return Receipt(
            transaction_hash=hex_to_bytes(obj.get("transactionHash"), "transactionHash", 32),
            status=status,
            post_state=_optional_bytes(obj, "root", 32),
            cumulative_gas_used=hex_to_int(obj.get("cumulativeGasUsed"), "cumulativeGasUsed"),
            gas_used=_optional_int(obj, "gasUsed"),
            logs=tuple(_log_from_rpc(log, f"logs[{i}]") for i, log in enumerate(logs)),
            logs_bloom=_optional_bytes(obj, "logsBloom", 256),
            block_hash=_optional_bytes(obj, "blockHash", 32),
            block_number=_optional_int(obj, "blockNumber"),
            transaction_index=_optional_int(obj, "transactionIndex"),
            contract_address=_optional_address(obj, "contractAddress"),
            effective_gas_price=_optional_int(obj, "effectiveGasPrice"),
            transaction_type=_optional_int(obj, "type"),
        )
    except ValidationError as e:
        raise DecodeError(f"Inconsistent receipt: {e.errors()[0]['msg']}", field="receipt")
