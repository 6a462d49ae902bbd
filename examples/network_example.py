#!/usr/bin/env python3
"""
Example of using QueryClient with network configuration.
"""
import logging
import os
import sys

from ethquery_sdk import NetworkConfig, OutOfRangeError, QueryClient, RecoveryError
from ethquery_sdk.utils import format_hex


def main():
    """
    Walk the latest block of a network.

    This example shows how to:
    1. Initialize the client from a network configuration
    2. Verify the endpoint serves the expected chain
    3. Fetch a block with its transactions
    4. Resolve each sender and fetch the receipts
    """
    network = os.environ.get("NETWORK", "sepolia")
    limit = int(os.environ.get("TX_LIMIT", "5"))

    print("Available networks:")
    for network_name in NetworkConfig.load_networks().keys():
        print(f"  - {network_name}")
    print()

    with QueryClient.from_network(network) as client:
        client.assert_chain_id()
        print(f"Connected to network: {network} (chain ID {client.get_chain_id()})")

        block = client.get_block_by_number("latest")
        print(f"Block {block.number} {format_hex(block.hash)}: {block.transaction_count} transactions")

        transactions = block.transactions[:limit]
        receipts = client.get_transaction_receipts([tx.hash for tx in transactions])
        for tx, receipt in zip(transactions, receipts):
            try:
                sender = client.resolve_sender(tx)
            except RecoveryError as e:
                sender = f"<unrecoverable: {e}>"
            status = "ok" if receipt.succeeded else "failed"
            print(f"  [{tx.transaction_index}] {tx.kind.value:<24} {sender} -> {tx.to or '<create>'} "
                  f"gas={receipt.gas_used} {status}")

        if transactions:
            first = transactions[0]
            try:
                client.get_transaction_in_block(block.hash, block.transaction_count)
            except OutOfRangeError as e:
                print(f"Index past the end: {e}")
            print(f"Transaction {format_hex(first.hash)} pending: {client.get_transaction_by_hash(first.hash)[1]}")


if __name__ == "__main__":
    logging.basicConfig(level=os.environ.get("LOG_LEVEL", "WARNING"))
    sys.exit(main())
