from .chain_objects import (
    BLOB_HASH,
    BLOCK_HASH,
    COINBASE,
    MAINNET_CHAIN_ID,
    OTHER_PRIV_KEY,
    SEPOLIA_CHAIN_ID,
    STORAGE_KEY,
    TEST_PRIV_KEY,
    TEST_RECIPIENT,
    address_of,
    block_to_rpc,
    make_block,
    make_header,
    make_transaction,
    receipt_to_rpc,
    sign,
    transaction_to_rpc,
)
