"""
Wire codec for the chain's canonical RLP encodings.

Encodes and decodes signed transactions of every envelope kind, block headers,
withdrawals and whole blocks. Everything here is pure: no I/O and no state.
Input handed to the decoders is treated as untrusted; any malformation is
reported as ``DecodeError`` naming the offending field.
"""
import logging
from typing import Any, Callable, Dict, List, Optional, Sequence, Tuple, Union

import rlp
from pydantic import ValidationError
from rlp.exceptions import RLPException
from rlp.sedes import big_endian_int

from .exceptions import DecodeError
from .models import (
    EIP155_V_OFFSET,
    ENVELOPE_TYPE_BYTES,
    AccessListEntry,
    Block,
    BlockHeader,
    EnvelopeKind,
    Transaction,
    Withdrawal,
)
from .utils import address_to_bytes, keccak256, to_checksum_address

logger = logging.getLogger(__name__)

RlpItem = Union[bytes, List[Any]]

_KIND_BY_TYPE_BYTE: Dict[int, EnvelopeKind] = {b: k for k, b in ENVELOPE_TYPE_BYTES.items()}

# Unsigned field layouts, in wire order. Legacy and replay-protected legacy share one layout.
_LEGACY_FIELDS = ("nonce", "gas_price", "gas_limit", "to", "value", "data")
_TYPED_FIELDS: Dict[EnvelopeKind, Tuple[str, ...]] = {
    EnvelopeKind.ACCESS_LIST: (
        "chain_id", "nonce", "gas_price", "gas_limit", "to", "value", "data", "access_list",
    ),
    EnvelopeKind.FEE_MARKET: (
        "chain_id", "nonce", "max_priority_fee_per_gas", "max_fee_per_gas",
        "gas_limit", "to", "value", "data", "access_list",
    ),
    EnvelopeKind.BLOB: (
        "chain_id", "nonce", "max_priority_fee_per_gas", "max_fee_per_gas",
        "gas_limit", "to", "value", "data", "access_list",
        "max_fee_per_blob_gas", "blob_versioned_hashes",
    ),
}
_SIGNATURE_FIELDS = ("v", "r", "s")

_HEADER_FIELDS = (
    "parent_hash", "uncles_hash", "coinbase", "state_root", "transactions_root",
    "receipts_root", "logs_bloom", "difficulty", "number", "gas_limit", "gas_used",
    "timestamp", "extra_data", "mix_hash", "nonce",
)
# Appended by successive forks; a field can only be present if every earlier one is
_HEADER_FORK_FIELDS = (
    "base_fee_per_gas", "withdrawals_root", "blob_gas_used", "excess_blob_gas",
    "parent_beacon_block_root", "requests_hash",
)


# ---------------------------------------------------------------------------
# Item-level helpers
# ---------------------------------------------------------------------------

def _rlp_decode(raw: bytes, field: str, offset: int = 0) -> RlpItem:
    try:
        return rlp.decode(raw, strict=True)
    except RLPException as e:
        raise DecodeError(f"Malformed RLP: {e}", field=field, offset=offset)


def _expect_list(item: RlpItem, field: str, lengths: Sequence[int]) -> List[RlpItem]:
    if not isinstance(item, (list, tuple)):
        raise DecodeError("Expected an RLP list", field=field)
    if len(item) not in lengths:
        expected = " or ".join(str(n) for n in lengths)
        raise DecodeError(f"Expected {expected} items, got {len(item)}", field=field)
    return list(item)


def _expect_bytes(item: RlpItem, field: str, length: Optional[int] = None) -> bytes:
    if not isinstance(item, bytes):
        raise DecodeError("Expected an RLP string, got a list", field=field)
    if length is not None and len(item) != length:
        raise DecodeError(f"Expected {length} bytes, got {len(item)}", field=field)
    return item


def _decode_int(item: RlpItem, field: str) -> int:
    raw = _expect_bytes(item, field)
    try:
        return big_endian_int.deserialize(raw)
    except RLPException as e:
        raise DecodeError(f"Non-canonical integer: {e}", field=field)


def _decode_address(item: RlpItem, field: str) -> str:
    return to_checksum_address(_expect_bytes(item, field, 20))


def _decode_recipient(item: RlpItem, field: str) -> Optional[str]:
    raw = _expect_bytes(item, field)
    if not raw:
        # empty recipient marks contract creation
        return None
    if len(raw) != 20:
        raise DecodeError(f"Recipient must be empty or 20 bytes, got {len(raw)}", field=field)
    return to_checksum_address(raw)


def _decode_access_list(item: RlpItem, field: str) -> Tuple[AccessListEntry, ...]:
    if not isinstance(item, (list, tuple)):
        raise DecodeError("Expected an RLP list", field=field)
    entries = []
    for i, entry in enumerate(item):
        entry_field = f"{field}[{i}]"
        address_item, keys_item = _expect_list(entry, entry_field, (2,))
        if not isinstance(keys_item, (list, tuple)):
            raise DecodeError("Expected a list of storage keys", field=entry_field)
        entries.append(AccessListEntry(
            address=_decode_address(address_item, entry_field + ".address"),
            storage_keys=tuple(
                _expect_bytes(key, f"{entry_field}.storage_keys[{j}]", 32)
                for j, key in enumerate(keys_item)
            ),
        ))
    return tuple(entries)


def _decode_hash_list(item: RlpItem, field: str) -> Tuple[bytes, ...]:
    if not isinstance(item, (list, tuple)):
        raise DecodeError("Expected an RLP list", field=field)
    return tuple(_expect_bytes(h, f"{field}[{i}]", 32) for i, h in enumerate(item))


_FIELD_DECODERS: Dict[str, Callable[[RlpItem, str], Any]] = {
    "to": _decode_recipient,
    "data": _expect_bytes,
    "access_list": _decode_access_list,
    "blob_versioned_hashes": _decode_hash_list,
}


def _encode_field(name: str, value: Any) -> RlpItem:
    if name == "to":
        return b"" if value is None else address_to_bytes(value)
    if name == "access_list":
        return [[address_to_bytes(e.address), list(e.storage_keys)] for e in value]
    if name == "blob_versioned_hashes":
        return list(value)
    if isinstance(value, bytes):
        return value
    return big_endian_int.serialize(value)


def _build(model: type, field: str, **kwargs: Any) -> Any:
    try:
        return model(**kwargs)
    except ValidationError as e:
        raise DecodeError(f"Inconsistent {model.__name__}: {e.errors()[0]['msg']}", field=field)


# ---------------------------------------------------------------------------
# Transactions
# ---------------------------------------------------------------------------

def _transaction_items(tx: Transaction, include_signature: bool) -> List[RlpItem]:
    names = _LEGACY_FIELDS if not tx.kind.is_typed else _TYPED_FIELDS[tx.kind]
    items = [_encode_field(name, getattr(tx, name)) for name in names]
    if include_signature:
        items.extend(big_endian_int.serialize(getattr(tx, name)) for name in _SIGNATURE_FIELDS)
    elif tx.kind is EnvelopeKind.REPLAY_PROTECTED:
        # EIP-155 signing payload folds in the chain ID with empty r and s
        items.extend([big_endian_int.serialize(tx.chain_id), b"", b""])
    return items


def encode_transaction(tx: Transaction, include_signature: bool = True) -> bytes:
    """
    Encode a transaction in its canonical wire form.

    With ``include_signature=False`` the result is exactly the payload the
    sender signed (for replay-protected legacy transactions this includes the
    chain ID per EIP-155).

    Args:
        tx: Transaction to encode
        include_signature: Whether to append the signature fields

    Returns:
        Encoded bytes; typed envelopes are prefixed with their type byte
    """
    body = rlp.encode(_transaction_items(tx, include_signature))
    type_byte = tx.kind.type_byte
    if type_byte is None:
        return body
    return bytes([type_byte]) + body


def _decode_fields(items: List[RlpItem], names: Sequence[str], field: str) -> Dict[str, Any]:
    fields = {}
    for name, item in zip(names, items):
        decoder = _FIELD_DECODERS.get(name, _decode_int)
        fields[name] = decoder(item, f"{field}.{name}")
    return fields


def decode_transaction(raw: bytes) -> Transaction:
    """
    Decode a signed transaction from its wire form.

    Dispatches on the leading byte: an RLP list header (``>= 0xc0``) is a
    legacy transaction, a known type byte selects the typed layout.

    Args:
        raw: Encoded transaction bytes

    Returns:
        The decoded Transaction

    Raises:
        DecodeError: On truncated or malformed input or an unknown envelope kind
    """
    raw = bytes(raw)
    if not raw:
        raise DecodeError("Empty transaction payload", field="transaction", offset=0)

    first = raw[0]
    if first >= 0xC0:
        items = _expect_list(_rlp_decode(raw, "transaction"), "transaction", (9,))
        fields = _decode_fields(items, _LEGACY_FIELDS + _SIGNATURE_FIELDS, "transaction")
        v = fields["v"]
        if v >= EIP155_V_OFFSET:
            fields["kind"] = EnvelopeKind.REPLAY_PROTECTED
            fields["chain_id"] = (v - EIP155_V_OFFSET) // 2
        else:
            fields["kind"] = EnvelopeKind.LEGACY
        return _build(Transaction, "transaction", **fields)

    kind = _KIND_BY_TYPE_BYTE.get(first)
    if kind is None:
        raise DecodeError(f"Unknown envelope kind 0x{first:02x}", field="type", offset=0)

    names = _TYPED_FIELDS[kind] + _SIGNATURE_FIELDS
    field = f"transaction[{kind.value}]"
    items = _expect_list(_rlp_decode(raw[1:], field, offset=1), field, (len(names),))
    fields = _decode_fields(items, names, field)
    return _build(Transaction, field, kind=kind, **fields)


# ---------------------------------------------------------------------------
# Headers, withdrawals and blocks
# ---------------------------------------------------------------------------

_HEADER_DECODERS: Dict[str, Callable[[RlpItem, str], Any]] = {
    "parent_hash": lambda item, f: _expect_bytes(item, f, 32),
    "uncles_hash": lambda item, f: _expect_bytes(item, f, 32),
    "coinbase": _decode_address,
    "state_root": lambda item, f: _expect_bytes(item, f, 32),
    "transactions_root": lambda item, f: _expect_bytes(item, f, 32),
    "receipts_root": lambda item, f: _expect_bytes(item, f, 32),
    "logs_bloom": lambda item, f: _expect_bytes(item, f, 256),
    "extra_data": _expect_bytes,
    "mix_hash": lambda item, f: _expect_bytes(item, f, 32),
    "nonce": lambda item, f: _expect_bytes(item, f, 8),
    "withdrawals_root": lambda item, f: _expect_bytes(item, f, 32),
    "parent_beacon_block_root": lambda item, f: _expect_bytes(item, f, 32),
    "requests_hash": lambda item, f: _expect_bytes(item, f, 32),
}


def _header_items(header: BlockHeader) -> List[RlpItem]:
    items = []
    for name in _HEADER_FIELDS:
        value = getattr(header, name)
        if value is None:
            raise ValueError(f"Header field {name} is unset; header cannot be encoded")
        items.append(address_to_bytes(value) if name == "coinbase" else _encode_field(name, value))
    for name in _HEADER_FORK_FIELDS:
        value = getattr(header, name)
        if value is None:
            break
        items.append(_encode_field(name, value))
    return items


def _decode_header_items(item: RlpItem, field: str) -> BlockHeader:
    lengths = range(len(_HEADER_FIELDS), len(_HEADER_FIELDS) + len(_HEADER_FORK_FIELDS) + 1)
    items = _expect_list(item, field, lengths)
    names = (_HEADER_FIELDS + _HEADER_FORK_FIELDS)[:len(items)]
    fields = {}
    for name, value in zip(names, items):
        decoder = _HEADER_DECODERS.get(name, _decode_int)
        fields[name] = decoder(value, f"{field}.{name}")
    fields["hash"] = keccak256(rlp.encode(items))
    return _build(BlockHeader, field, **fields)


def encode_header(header: BlockHeader) -> bytes:
    """Encode a block header; its keccak256 is the block hash."""
    return rlp.encode(_header_items(header))


def decode_header(raw: bytes) -> BlockHeader:
    """
    Decode a block header and compute its hash.

    Raises:
        DecodeError: If the header is malformed
    """
    return _decode_header_items(_rlp_decode(bytes(raw), "header"), "header")


def _decode_withdrawal(item: RlpItem, field: str) -> Withdrawal:
    index, validator_index, address, amount = _expect_list(item, field, (4,))
    return Withdrawal(
        index=_decode_int(index, field + ".index"),
        validator_index=_decode_int(validator_index, field + ".validator_index"),
        address=_decode_address(address, field + ".address"),
        amount=_decode_int(amount, field + ".amount"),
    )


def _decode_block_transaction(item: RlpItem, field: str) -> Transaction:
    if isinstance(item, (list, tuple)):
        return decode_transaction(rlp.encode(item))
    if not item or item[0] >= 0xC0:
        # typed envelopes are wrapped in an RLP string; a legacy list never is
        raise DecodeError("Expected a typed transaction envelope", field=field)
    return decode_transaction(item)


def decode_block(raw: bytes) -> Block:
    """
    Decode a full block: header, transactions, uncle headers and withdrawals.

    Transactions get their block linkage (hash, number, index) filled in.

    Args:
        raw: Encoded block bytes

    Returns:
        The decoded Block

    Raises:
        DecodeError: If any part of the block is malformed
    """
    items = _expect_list(_rlp_decode(bytes(raw), "block"), "block", (3, 4))
    header = _decode_header_items(items[0], "block.header")

    tx_items = items[1]
    if not isinstance(tx_items, (list, tuple)):
        raise DecodeError("Expected a list of transactions", field="block.transactions")
    transactions = []
    for index, tx_item in enumerate(tx_items):
        tx = _decode_block_transaction(tx_item, f"block.transactions[{index}]")
        transactions.append(tx.model_copy(update={
            "block_hash": header.hash,
            "block_number": header.number,
            "transaction_index": index,
        }))

    uncle_items = items[2]
    if not isinstance(uncle_items, (list, tuple)):
        raise DecodeError("Expected a list of uncle headers", field="block.uncles")
    uncles = tuple(
        _decode_header_items(u, f"block.uncles[{i}]") for i, u in enumerate(uncle_items)
    )

    withdrawals = None
    if len(items) == 4:
        if not isinstance(items[3], (list, tuple)):
            raise DecodeError("Expected a list of withdrawals", field="block.withdrawals")
        withdrawals = tuple(
            _decode_withdrawal(w, f"block.withdrawals[{i}]") for i, w in enumerate(items[3])
        )

    logger.debug("Decoded block %d with %d transactions", header.number, len(transactions))
    return Block(
        header=header,
        transactions=tuple(transactions),
        uncle_hashes=tuple(u.hash for u in uncles),
        uncles=uncles,
        withdrawals=withdrawals,
    )


def encode_block(block: Block) -> bytes:
    """
    Encode a block in its canonical wire form.

    Raises:
        ValueError: If the block lacks data needed for encoding, such as the
            full uncle headers of a block fetched over JSON-RPC
    """
    if block.uncles is None and block.uncle_hashes:
        raise ValueError("Uncle headers are not available; block cannot be encoded")

    tx_items: List[RlpItem] = []
    for tx in block.transactions:
        if tx.kind.is_typed:
            tx_items.append(encode_transaction(tx))
        else:
            tx_items.append(_transaction_items(tx, include_signature=True))

    items: List[RlpItem] = [
        _header_items(block.header),
        tx_items,
        [_header_items(u) for u in block.uncles or ()],
    ]
    if block.withdrawals is not None:
        items.append([
            [
                big_endian_int.serialize(w.index),
                big_endian_int.serialize(w.validator_index),
                address_to_bytes(w.address),
                big_endian_int.serialize(w.amount),
            ]
            for w in block.withdrawals
        ])
    return rlp.encode(items)
