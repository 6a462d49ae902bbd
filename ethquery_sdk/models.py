"""
Data models for the EthQuery SDK.

All entities are immutable once built by the codec. Hashes and other fixed-size
binary values are raw ``bytes``; addresses are EIP-55 checksum strings.
"""
from enum import Enum
from typing import Dict, FrozenSet, Optional, Tuple

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from .utils import keccak256, to_checksum_address


class EnvelopeKind(str, Enum):
    """Transaction envelope variants, each with its own field layout and signing rules."""
    LEGACY = "legacy"
    REPLAY_PROTECTED = "replay-protected-legacy"
    ACCESS_LIST = "access-list"
    FEE_MARKET = "fee-market"
    BLOB = "blob"

    @property
    def type_byte(self) -> Optional[int]:
        """Leading type marker of the encoding; None for untyped legacy envelopes."""
        return ENVELOPE_TYPE_BYTES.get(self)

    @property
    def is_typed(self) -> bool:
        return self in ENVELOPE_TYPE_BYTES


ENVELOPE_TYPE_BYTES: Dict[EnvelopeKind, int] = {
    EnvelopeKind.ACCESS_LIST: 0x01,
    EnvelopeKind.FEE_MARKET: 0x02,
    EnvelopeKind.BLOB: 0x03,
}

# Optional fields each envelope kind must carry; every other optional field must be unset
_KIND_FIELDS: Dict[EnvelopeKind, FrozenSet[str]] = {
    EnvelopeKind.LEGACY: frozenset({"gas_price"}),
    EnvelopeKind.REPLAY_PROTECTED: frozenset({"gas_price", "chain_id"}),
    EnvelopeKind.ACCESS_LIST: frozenset({"chain_id", "gas_price", "access_list"}),
    EnvelopeKind.FEE_MARKET: frozenset({
        "chain_id", "max_priority_fee_per_gas", "max_fee_per_gas", "access_list",
    }),
    EnvelopeKind.BLOB: frozenset({
        "chain_id", "max_priority_fee_per_gas", "max_fee_per_gas", "access_list",
        "max_fee_per_blob_gas", "blob_versioned_hashes",
    }),
}
_VARIANT_FIELDS: FrozenSet[str] = frozenset().union(*_KIND_FIELDS.values())

# EIP-155: v = chain_id * 2 + 35 + parity
EIP155_V_OFFSET = 35


class _Frozen(BaseModel):
    model_config = ConfigDict(frozen=True)


def _check_address(value: Optional[str]) -> Optional[str]:
    if value is None:
        return None
    return to_checksum_address(value)


class AccessListEntry(_Frozen):
    """An address and the storage slots a transaction declares it will touch."""
    address: str
    storage_keys: Tuple[bytes, ...] = ()

    @field_validator("address")
    @classmethod
    def normalize_address(cls, value: Optional[str]) -> Optional[str]:
        return _check_address(value)

    @field_validator("storage_keys")
    @classmethod
    def check_storage_keys(cls, keys: Tuple[bytes, ...]) -> Tuple[bytes, ...]:
        for key in keys:
            if len(key) != 32:
                raise ValueError(f"Storage key must be 32 bytes, got {len(key)}")
        return keys


class Transaction(_Frozen):
    """
    A signed transaction, tagged with its envelope kind.

    The ``kind`` tag decides which of the variant fields (gas price, fee caps,
    access list, blob fields, chain ID) are present; the model validator
    rejects any other combination. ``to`` is None for contract creation.

    The block linkage fields are set only for transactions returned from a
    mined block; they are not part of the encoding.
    """
    kind: EnvelopeKind
    nonce: int = Field(ge=0)
    gas_limit: int = Field(ge=0)
    to: Optional[str] = None
    value: int = Field(ge=0)
    data: bytes = b""
    v: int = Field(ge=0)
    r: int = Field(ge=0)
    s: int = Field(ge=0)

    chain_id: Optional[int] = Field(default=None, ge=0)
    gas_price: Optional[int] = Field(default=None, ge=0)
    max_priority_fee_per_gas: Optional[int] = Field(default=None, ge=0)
    max_fee_per_gas: Optional[int] = Field(default=None, ge=0)
    access_list: Optional[Tuple[AccessListEntry, ...]] = None
    max_fee_per_blob_gas: Optional[int] = Field(default=None, ge=0)
    blob_versioned_hashes: Optional[Tuple[bytes, ...]] = None

    block_hash: Optional[bytes] = None
    block_number: Optional[int] = None
    transaction_index: Optional[int] = None

    @field_validator("to")
    @classmethod
    def normalize_to(cls, value: Optional[str]) -> Optional[str]:
        return _check_address(value)

    @model_validator(mode="after")
    def check_variant_fields(self) -> "Transaction":
        required = _KIND_FIELDS[self.kind]
        for name in _VARIANT_FIELDS:
            present = getattr(self, name) is not None
            if name in required and not present:
                raise ValueError(f"{self.kind.value} transaction requires {name}")
            if name not in required and present:
                raise ValueError(f"{self.kind.value} transaction must not set {name}")

        if self.kind is EnvelopeKind.LEGACY and self.v >= EIP155_V_OFFSET:
            raise ValueError(f"Unprotected legacy transaction cannot have v={self.v}")
        if self.kind is EnvelopeKind.REPLAY_PROTECTED:
            base = self.chain_id * 2 + EIP155_V_OFFSET
            if self.v not in (base, base + 1):
                raise ValueError(f"v={self.v} does not encode chain ID {self.chain_id}")
        if self.kind is EnvelopeKind.BLOB and self.to is None:
            raise ValueError("Blob transactions cannot create contracts")
        return self

    @property
    def is_contract_creation(self) -> bool:
        return self.to is None

    @property
    def is_replay_protected(self) -> bool:
        return self.kind is not EnvelopeKind.LEGACY

    @property
    def hash(self) -> bytes:
        """Transaction hash: keccak256 of the full signed encoding."""
        from .codec import encode_transaction
        return keccak256(encode_transaction(self, include_signature=True))

    @property
    def signing_hash(self) -> bytes:
        """Hash of the payload the sender signed."""
        from .codec import encode_transaction
        return keccak256(encode_transaction(self, include_signature=False))


class Message(Transaction):
    """A transaction copy with its sender resolved from the signature."""
    sender: str

    @field_validator("sender")
    @classmethod
    def normalize_sender(cls, value: Optional[str]) -> Optional[str]:
        return _check_address(value)

    @classmethod
    def from_transaction(cls, tx: Transaction, sender: str) -> "Message":
        return cls(**dict(tx), sender=sender)


class Withdrawal(_Frozen):
    """A beacon-chain withdrawal credited in an execution block. ``amount`` is in gwei."""
    index: int = Field(ge=0)
    validator_index: int = Field(ge=0)
    address: str
    amount: int = Field(ge=0)

    @field_validator("address")
    @classmethod
    def normalize_address(cls, value: Optional[str]) -> Optional[str]:
        return _check_address(value)


class BlockHeader(_Frozen):
    """Block header fields, including the optional fields added by later forks."""
    hash: Optional[bytes] = None
    parent_hash: bytes
    uncles_hash: bytes
    coinbase: Optional[str] = None
    state_root: bytes
    transactions_root: bytes
    receipts_root: bytes
    logs_bloom: bytes
    difficulty: int = Field(ge=0)
    number: int = Field(ge=0)
    gas_limit: int = Field(ge=0)
    gas_used: int = Field(ge=0)
    timestamp: int = Field(ge=0)
    extra_data: bytes = b""
    mix_hash: bytes
    nonce: Optional[bytes] = None
    base_fee_per_gas: Optional[int] = None
    withdrawals_root: Optional[bytes] = None
    blob_gas_used: Optional[int] = None
    excess_blob_gas: Optional[int] = None
    parent_beacon_block_root: Optional[bytes] = None
    requests_hash: Optional[bytes] = None

    @field_validator("coinbase")
    @classmethod
    def normalize_coinbase(cls, value: Optional[str]) -> Optional[str]:
        return _check_address(value)


class Block(_Frozen):
    """
    A block and the transactions it owns, in block order.

    ``uncles`` holds full uncle headers only when the block was decoded from
    its raw encoding; JSON-RPC responses carry uncle hashes only.
    """
    header: BlockHeader
    transactions: Tuple[Transaction, ...] = ()
    uncle_hashes: Tuple[bytes, ...] = ()
    uncles: Optional[Tuple[BlockHeader, ...]] = None
    withdrawals: Optional[Tuple[Withdrawal, ...]] = None

    @property
    def hash(self) -> Optional[bytes]:
        return self.header.hash

    @property
    def parent_hash(self) -> bytes:
        return self.header.parent_hash

    @property
    def number(self) -> int:
        return self.header.number

    @property
    def timestamp(self) -> int:
        return self.header.timestamp

    @property
    def gas_limit(self) -> int:
        return self.header.gas_limit

    @property
    def gas_used(self) -> int:
        return self.header.gas_used

    @property
    def transaction_count(self) -> int:
        return len(self.transactions)


class ReceiptStatus(str, Enum):
    """Execution outcome reported in a receipt."""
    SUCCEEDED = "succeeded"
    FAILED = "failed"


class LogEntry(_Frozen):
    """A log emitted during execution"""
    address: str
    topics: Tuple[bytes, ...] = ()
    data: bytes = b""
    log_index: Optional[int] = None
    removed: bool = False

    @field_validator("address")
    @classmethod
    def normalize_address(cls, value: Optional[str]) -> Optional[str]:
        return _check_address(value)


class Receipt(_Frozen):
    """
    Execution receipt of a mined transaction.

    ``status`` is None only for pre-Byzantium receipts, which report an
    intermediate ``post_state`` root instead.
    """
    transaction_hash: bytes
    status: Optional[ReceiptStatus] = None
    post_state: Optional[bytes] = None
    cumulative_gas_used: int = Field(ge=0)
    gas_used: Optional[int] = Field(default=None, ge=0)
    logs: Tuple[LogEntry, ...] = ()
    logs_bloom: Optional[bytes] = None
    block_hash: Optional[bytes] = None
    block_number: Optional[int] = None
    transaction_index: Optional[int] = None
    contract_address: Optional[str] = None
    effective_gas_price: Optional[int] = None
    transaction_type: Optional[int] = None

    @field_validator("contract_address")
    @classmethod
    def normalize_contract(cls, value: Optional[str]) -> Optional[str]:
        return _check_address(value)

    @model_validator(mode="after")
    def check_outcome(self) -> "Receipt":
        if self.status is None and self.post_state is None:
            raise ValueError("Receipt must carry either a status or a post-state root")
        return self

    @property
    def succeeded(self) -> bool:
        return self.status is ReceiptStatus.SUCCEEDED
