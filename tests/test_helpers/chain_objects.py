"""
Builders for transactions, blocks and JSON-RPC objects used across the tests.
"""
from typing import Any, Dict, Optional, Sequence

from eth_keys import keys
from web3 import Web3

from ethquery_sdk.models import (
    EIP155_V_OFFSET,
    AccessListEntry,
    Block,
    BlockHeader,
    EnvelopeKind,
    Transaction,
    Withdrawal,
)
from ethquery_sdk.utils import format_hex

# Test constants used throughout tests
TEST_PRIV_KEY = "0x0123456789abcdef0123456789abcdef0123456789abcdef0123456789abcdef"
OTHER_PRIV_KEY = "0x" + "42" * 32
TEST_RECIPIENT = Web3.to_checksum_address("0x39a4d265db942361d92e2b0039cae73ea72a2ff9")
MAINNET_CHAIN_ID = 1
SEPOLIA_CHAIN_ID = 11155111
BLOCK_HASH = bytes.fromhex("ab" * 32)
STORAGE_KEY = bytes.fromhex("00" * 31 + "01")
BLOB_HASH = bytes.fromhex("01" + "ee" * 31)
COINBASE = Web3.to_checksum_address("0x95222290dd7278aa3ddd389cc1e1d165cc4bafe5")


def _placeholder_v(kind: EnvelopeKind, chain_id: Optional[int]) -> int:
    if kind is EnvelopeKind.LEGACY:
        return 27
    if kind is EnvelopeKind.REPLAY_PROTECTED:
        return chain_id * 2 + EIP155_V_OFFSET
    return 0


def sign(tx: Transaction, private_key: str = TEST_PRIV_KEY) -> Transaction:
    """Sign a transaction with eth_keys, returning a copy carrying the signature."""
    key = keys.PrivateKey(bytes.fromhex(private_key[2:]))
    signature = key.sign_msg_hash(tx.signing_hash)
    parity = signature.v
    if tx.kind is EnvelopeKind.LEGACY:
        v = 27 + parity
    elif tx.kind is EnvelopeKind.REPLAY_PROTECTED:
        v = tx.chain_id * 2 + EIP155_V_OFFSET + parity
    else:
        v = parity
    return tx.model_copy(update={"v": v, "r": signature.r, "s": signature.s})


def address_of(private_key: str) -> str:
    return keys.PrivateKey(bytes.fromhex(private_key[2:])).public_key.to_checksum_address()


def make_transaction(kind: EnvelopeKind, chain_id: int = MAINNET_CHAIN_ID, **overrides: Any) -> Transaction:
    """
    Build and sign a transaction of the given kind with realistic defaults.
    """
    private_key = overrides.pop("private_key", TEST_PRIV_KEY)
    fields: Dict[str, Any] = {
        "kind": kind,
        "nonce": 6,
        "gas_limit": 1_000_000,
        "to": TEST_RECIPIENT,
        "value": 10**18,
        "data": b"\xa9\x05\x9c\xbb" + b"\x00" * 32,
        "r": 1,
        "s": 1,
    }
    if kind in (EnvelopeKind.LEGACY, EnvelopeKind.REPLAY_PROTECTED, EnvelopeKind.ACCESS_LIST):
        fields["gas_price"] = 2_500_000_020
    if kind is not EnvelopeKind.LEGACY:
        fields["chain_id"] = chain_id
    if kind in (EnvelopeKind.ACCESS_LIST, EnvelopeKind.FEE_MARKET, EnvelopeKind.BLOB):
        fields["access_list"] = (AccessListEntry(address=TEST_RECIPIENT, storage_keys=(STORAGE_KEY,)),)
    if kind in (EnvelopeKind.FEE_MARKET, EnvelopeKind.BLOB):
        fields["max_priority_fee_per_gas"] = 1_500_000_000
        fields["max_fee_per_gas"] = 30_000_000_000
    if kind is EnvelopeKind.BLOB:
        fields["max_fee_per_blob_gas"] = 1
        fields["blob_versioned_hashes"] = (BLOB_HASH,)
    fields["v"] = _placeholder_v(kind, fields.get("chain_id"))
    fields.update(overrides)
    return sign(Transaction(**fields), private_key)


def transaction_to_rpc(
    tx: Transaction,
    block_hash: Optional[bytes] = None,
    block_number: Optional[int] = None,
    index: Optional[int] = None,
) -> Dict[str, Any]:
    """Render a transaction the way ``eth_getTransactionByHash`` reports it."""
    type_byte = tx.kind.type_byte or 0
    obj: Dict[str, Any] = {
        "type": hex(type_byte),
        "hash": format_hex(tx.hash),
        "nonce": hex(tx.nonce),
        "gas": hex(tx.gas_limit),
        "to": tx.to.lower() if tx.to else None,
        "value": hex(tx.value),
        "input": format_hex(tx.data),
        "v": hex(tx.v),
        "r": hex(tx.r),
        "s": hex(tx.s),
        "blockHash": format_hex(block_hash) if block_hash is not None else None,
        "blockNumber": hex(block_number) if block_number is not None else None,
        "transactionIndex": hex(index) if index is not None else None,
        "from": "0x" + "00" * 20,
    }
    if tx.gas_price is not None:
        obj["gasPrice"] = hex(tx.gas_price)
    if tx.chain_id is not None:
        obj["chainId"] = hex(tx.chain_id)
    if tx.kind.is_typed:
        obj["yParity"] = hex(tx.v)
        obj["accessList"] = [
            {"address": e.address, "storageKeys": [format_hex(k) for k in e.storage_keys]}
            for e in tx.access_list
        ]
    if tx.max_fee_per_gas is not None:
        obj["maxFeePerGas"] = hex(tx.max_fee_per_gas)
        obj["maxPriorityFeePerGas"] = hex(tx.max_priority_fee_per_gas)
        # endpoints report the effective price too; it is not part of the envelope
        obj["gasPrice"] = hex(tx.max_fee_per_gas)
    if tx.max_fee_per_blob_gas is not None:
        obj["maxFeePerBlobGas"] = hex(tx.max_fee_per_blob_gas)
        obj["blobVersionedHashes"] = [format_hex(h) for h in tx.blob_versioned_hashes]
    return obj


def make_header(number: int = 20_000_000, **overrides: Any) -> BlockHeader:
    fields: Dict[str, Any] = {
        "parent_hash": bytes.fromhex("11" * 32),
        "uncles_hash": bytes.fromhex("1dcc4de8dec75d7aab85b567b6ccd41ad312451b948a7413f0a142fd40d49347"),
        "coinbase": COINBASE,
        "state_root": bytes.fromhex("22" * 32),
        "transactions_root": bytes.fromhex("33" * 32),
        "receipts_root": bytes.fromhex("44" * 32),
        "logs_bloom": b"\x00" * 256,
        "difficulty": 0,
        "number": number,
        "gas_limit": 30_000_000,
        "gas_used": 12_345_678,
        "timestamp": 1_718_000_000,
        "extra_data": b"beaverbuild.org",
        "mix_hash": bytes.fromhex("55" * 32),
        "nonce": b"\x00" * 8,
        "base_fee_per_gas": 7_000_000_000,
        "withdrawals_root": bytes.fromhex("66" * 32),
        "blob_gas_used": 131072,
        "excess_blob_gas": 0,
        "parent_beacon_block_root": bytes.fromhex("77" * 32),
    }
    fields.update(overrides)
    return BlockHeader(**fields)


def make_block(transactions: Sequence[Transaction] = (), number: int = 20_000_000) -> Block:
    return Block(
        header=make_header(number),
        transactions=tuple(transactions),
        uncles=(),
        withdrawals=(
            Withdrawal(index=1, validator_index=42, address=TEST_RECIPIENT, amount=17_000_000),
        ),
    )


def block_to_rpc(block: Block, block_hash: bytes = BLOCK_HASH) -> Dict[str, Any]:
    """Render a block the way ``eth_getBlockByHash(hash, true)`` reports it."""
    header = block.header
    return {
        "hash": format_hex(block_hash),
        "parentHash": format_hex(header.parent_hash),
        "sha3Uncles": format_hex(header.uncles_hash),
        "miner": header.coinbase.lower(),
        "stateRoot": format_hex(header.state_root),
        "transactionsRoot": format_hex(header.transactions_root),
        "receiptsRoot": format_hex(header.receipts_root),
        "logsBloom": format_hex(header.logs_bloom),
        "difficulty": hex(header.difficulty),
        "number": hex(header.number),
        "gasLimit": hex(header.gas_limit),
        "gasUsed": hex(header.gas_used),
        "timestamp": hex(header.timestamp),
        "extraData": format_hex(header.extra_data),
        "mixHash": format_hex(header.mix_hash),
        "nonce": format_hex(header.nonce),
        "baseFeePerGas": hex(header.base_fee_per_gas),
        "withdrawalsRoot": format_hex(header.withdrawals_root),
        "blobGasUsed": hex(header.blob_gas_used),
        "excessBlobGas": hex(header.excess_blob_gas),
        "parentBeaconBlockRoot": format_hex(header.parent_beacon_block_root),
        "size": "0x1000",
        "totalDifficulty": "0xc70d815d562d3cfa955",
        "uncles": [],
        "withdrawals": [
            {
                "index": hex(w.index),
                "validatorIndex": hex(w.validator_index),
                "address": w.address.lower(),
                "amount": hex(w.amount),
            }
            for w in block.withdrawals or ()
        ],
        "transactions": [
            transaction_to_rpc(tx, block_hash, header.number, i)
            for i, tx in enumerate(block.transactions)
        ],
    }


def receipt_to_rpc(tx_hash: bytes, status: str = "0x1", **overrides: Any) -> Dict[str, Any]:
    """A receipt as reported by ``eth_getTransactionReceipt``."""
    obj: Dict[str, Any] = {
        "transactionHash": format_hex(tx_hash),
        "transactionIndex": "0x0",
        "blockHash": format_hex(BLOCK_HASH),
        "blockNumber": hex(20_000_000),
        "from": address_of(TEST_PRIV_KEY).lower(),
        "to": TEST_RECIPIENT.lower(),
        "cumulativeGasUsed": "0x5208",
        "gasUsed": "0x5208",
        "effectiveGasPrice": "0x9502f914",
        "contractAddress": None,
        "logs": [
            {
                "address": TEST_RECIPIENT.lower(),
                "topics": [
                    "0xddf252ad1be2c89b69c2b068fc378daa952ba7f163c4a11628f55a4df523b3ef",
                    "0x" + "00" * 32,
                ],
                "data": "0x" + "00" * 31 + "64",
                "logIndex": "0x0",
                "removed": False,
            }
        ],
        "logsBloom": "0x" + "00" * 256,
        "type": "0x2",
        "status": status,
    }
    obj.update(overrides)
    return obj
