"""
QueryClient - Main client for querying chain state over JSON-RPC.
"""
import logging
import threading
from concurrent.futures import ThreadPoolExecutor
from typing import Any, List, Optional, Sequence, Tuple, Union

from .codec import decode_block, decode_transaction
from .config import NetworkConfig
from .exceptions import NetworkError, NotFoundError, OutOfRangeError
from .models import Block, Message, Receipt, Transaction
from .rpc import RpcTransport, get_transport
from .rpc_codec import block_from_rpc, receipt_from_rpc, transaction_from_rpc
from .signing import recover_sender
from .utils import format_hex, hex_to_bytes, hex_to_int, parse_hash, to_quantity

HashLike = Union[str, bytes]
BlockId = Union[int, str, None]

BLOCK_TAGS = frozenset({"latest", "earliest", "pending", "safe", "finalized"})


class QueryClient:
    """
    Client for querying blocks, transactions and receipts.

    Every query issues a single transport call, decodes the result into a
    typed entity and lets transport and decode errors propagate unchanged.
    A missing entity raises ``NotFoundError``; nothing is ever returned empty.

    The chain ID needed for sender recovery is fetched from the endpoint on
    first use and cached for the lifetime of the client, or until
    ``reset_chain_id`` / ``reconfigure``. It is the only state the client
    mutates, and is guarded so concurrent callers see it either unset or
    fully set.

    The client is safe to share between threads provided its transport is;
    all bundled transports are.
    """

    def __init__(
        self,
        transport: Union[RpcTransport, str],
        chain_id: Optional[int] = None,
        expected_chain_id: Optional[int] = None,
        timeout: Optional[float] = None,
        enforce_low_s: bool = True,
        verify_hashes: bool = True,
        logger: Optional[logging.Logger] = None
    ):
        """
        Initialize the QueryClient

        Args:
            transport: Transport instance, or an endpoint URL / IPC path
            chain_id: Known chain ID; skips the ``eth_chainId`` lookup
            expected_chain_id: Chain ID the endpoint must report (see ``assert_chain_id``)
            timeout: Per-call timeout in seconds (defaults to the transport's)
            enforce_low_s: Reject signatures with S above half the curve order
            verify_hashes: Check reported transaction hashes against their contents
            logger: Optional logger instance to use for debug/info logging

        Raises:
            ValueError: If an endpoint string is unsupported or insecure
        """
        if isinstance(transport, str):
            transport = get_transport(transport, timeout=timeout)
        self.transport = transport
        self.timeout = timeout
        self.expected_chain_id = expected_chain_id
        self.enforce_low_s = enforce_low_s
        self.verify_hashes = verify_hashes
        self.logger = logger or logging.getLogger(__name__)

        self._chain_id = chain_id
        self._chain_id_lock = threading.Lock()

    @classmethod
    def from_network(cls, network: str, rpc_url: Optional[str] = None, **kwargs: Any) -> "QueryClient":
        """
        Create a client for a network from the packaged network table.

        Args:
            network: Network name (e.g., "mainnet", "sepolia")
            rpc_url: Optional RPC URL override
            **kwargs: Passed through to the constructor

        Raises:
            ValueError: If the network is unknown
        """
        url = NetworkConfig.get_rpc_url(network, override=rpc_url)
        kwargs.setdefault("expected_chain_id", NetworkConfig.get_chain_id(network))
        return cls(url, **kwargs)

    def _call(self, method: str, *params: Any) -> Any:
        self.logger.debug("Calling %s", method)
        return self.transport.call(method, params, timeout=self.timeout)

    # ------------------------------------------------------------------
    # Chain identity
    # ------------------------------------------------------------------

    def get_chain_id(self) -> int:
        """
        Return the endpoint's chain ID, fetching it once and caching it.

        Raises:
            TransportError: If the lookup fails (nothing is cached)
            DecodeError: If the endpoint returns a malformed chain ID
        """
        with self._chain_id_lock:
            if self._chain_id is None:
                chain_id = hex_to_int(self._call("eth_chainId"), "chainId")
                self.logger.info(f"Endpoint chain ID: {chain_id}")
                self._chain_id = chain_id
            return self._chain_id

    def reset_chain_id(self) -> None:
        """Forget the cached chain ID so the next recovery fetches it again."""
        with self._chain_id_lock:
            self._chain_id = None

    def reconfigure(
        self,
        transport: Optional[Union[RpcTransport, str]] = None,
        chain_id: Optional[int] = None,
    ) -> None:
        """
        Point the client at a different endpoint and/or chain.

        The cached chain ID is replaced by ``chain_id`` (or cleared).
        """
        with self._chain_id_lock:
            if transport is not None:
                if isinstance(transport, str):
                    transport = get_transport(transport, timeout=self.timeout)
                self.transport = transport
            self._chain_id = chain_id

    def assert_chain_id(self) -> None:
        """
        Check the endpoint's chain ID against ``expected_chain_id``.

        Raises:
            NetworkError: If the chain IDs differ
        """
        if self.expected_chain_id is None:
            self.logger.warning("No expected chain ID set, skipping chain ID check")
            return
        actual = self.get_chain_id()
        if actual != self.expected_chain_id:
            raise NetworkError(
                f"Chain ID mismatch: endpoint reports {actual}, expected {self.expected_chain_id}")

    # ------------------------------------------------------------------
    # Blocks
    # ------------------------------------------------------------------

    @staticmethod
    def _block_param(block: BlockId) -> str:
        if block is None:
            return "latest"
        if isinstance(block, bool):
            raise ValueError(f"Invalid block identifier: {block!r}")
        if isinstance(block, int):
            if block < 0:
                raise ValueError(f"Block number must be non-negative, got {block}")
            return to_quantity(block)
        if isinstance(block, str) and block in BLOCK_TAGS:
            return block
        raise ValueError(f"Invalid block identifier: {block!r}")

    def get_block_number(self) -> int:
        """Return the number of the most recent block."""
        return hex_to_int(self._call("eth_blockNumber"), "blockNumber")

    def get_block_by_number(self, number: BlockId = None) -> Block:
        """
        Get a block with its full transactions.

        Args:
            number: Block number, a block tag ("latest", "earliest", "pending",
                "safe", "finalized"), or None for latest

        Raises:
            NotFoundError: If the block does not exist
        """
        param = self._block_param(number)
        result = self._call("eth_getBlockByNumber", param, True)
        if result is None:
            raise NotFoundError(f"Block {number if number is not None else 'latest'} not found")
        return block_from_rpc(result, verify_hashes=self.verify_hashes)

    def get_block_by_hash(self, block_hash: HashLike) -> Block:
        """
        Get a block by its hash.

        Raises:
            NotFoundError: If the block is unknown to the endpoint
        """
        block_hex = format_hex(parse_hash(block_hash, "block hash"))
        result = self._call("eth_getBlockByHash", block_hex, True)
        if result is None:
            raise NotFoundError(f"Block {block_hex} not found")
        return block_from_rpc(result, verify_hashes=self.verify_hashes)

    def get_raw_block(self, block: Union[BlockId, bytes]) -> Block:
        """
        Fetch a block's canonical encoding and decode it locally.

        Requires the endpoint to expose ``debug_getRawBlock``.

        Args:
            block: Block hash, number or tag
        """
        if isinstance(block, bytes) or (isinstance(block, str) and block.startswith("0x")):
            param = format_hex(parse_hash(block, "block hash"))
        else:
            param = self._block_param(block)
        result = self._call("debug_getRawBlock", param)
        if result is None:
            raise NotFoundError(f"Block {param} not found")
        return decode_block(hex_to_bytes(result, "rawBlock"))

    # ------------------------------------------------------------------
    # Transactions
    # ------------------------------------------------------------------

    def get_transaction_by_hash(self, tx_hash: HashLike) -> Tuple[Transaction, bool]:
        """
        Get a transaction by hash.

        Returns:
            Tuple of (transaction, is_pending). A pending transaction is known
            to the endpoint but not yet in a block; its block linkage fields
            are unset.

        Raises:
            NotFoundError: If the transaction is unknown
        """
        tx_hex = format_hex(parse_hash(tx_hash, "transaction hash"))
        result = self._call("eth_getTransactionByHash", tx_hex)
        if result is None:
            raise NotFoundError(f"Transaction {tx_hex} not found")
        tx = transaction_from_rpc(result, verify_hash=self.verify_hashes)
        is_pending = tx.block_hash is None and tx.block_number is None
        return tx, is_pending

    def get_raw_transaction(self, tx_hash: HashLike) -> Transaction:
        """
        Fetch a transaction's canonical encoding and decode it locally.

        Raises:
            NotFoundError: If the transaction is unknown
        """
        tx_hex = format_hex(parse_hash(tx_hash, "transaction hash"))
        result = self._call("eth_getRawTransactionByHash", tx_hex)
        if result is None or result == "0x":
            raise NotFoundError(f"Transaction {tx_hex} not found")
        return decode_transaction(hex_to_bytes(result, "rawTransaction"))

    def get_transaction_count(self, block_hash: HashLike) -> int:
        """
        Number of transactions in a block.

        Raises:
            NotFoundError: If the block is unknown
        """
        block_hex = format_hex(parse_hash(block_hash, "block hash"))
        result = self._call("eth_getBlockTransactionCountByHash", block_hex)
        if result is None:
            raise NotFoundError(f"Block {block_hex} not found")
        return hex_to_int(result, "transactionCount")

    def get_transaction_in_block(self, block_hash: HashLike, index: int) -> Transaction:
        """
        Get the transaction at a position in a block.

        Args:
            block_hash: Hash of the block
            index: Zero-based position in the block

        Raises:
            OutOfRangeError: If ``index`` is not below the block's transaction count
            NotFoundError: If the block is unknown
            ValueError: If ``index`` is negative
        """
        if index < 0:
            raise ValueError(f"Transaction index must be non-negative, got {index}")
        block_hex = format_hex(parse_hash(block_hash, "block hash"))
        result = self._call("eth_getTransactionByBlockHashAndIndex", block_hex, to_quantity(index))
        if result is None:
            # null covers both an unknown block and a bad index; the count tells them apart
            count = self.get_transaction_count(block_hex)
            if index >= count:
                raise OutOfRangeError(index, count)
            raise NotFoundError(f"Transaction {index} of block {block_hex} not found")
        return transaction_from_rpc(result, verify_hash=self.verify_hashes)

    # ------------------------------------------------------------------
    # Receipts
    # ------------------------------------------------------------------

    def get_transaction_receipt(self, tx_hash: HashLike) -> Receipt:
        """
        Get the execution receipt of a mined transaction.

        Raises:
            NotFoundError: If the transaction is unknown or not yet executed
        """
        tx_hex = format_hex(parse_hash(tx_hash, "transaction hash"))
        result = self._call("eth_getTransactionReceipt", tx_hex)
        if result is None:
            raise NotFoundError(f"Receipt for {tx_hex} not found")
        return receipt_from_rpc(result)

    def get_transaction_receipts(self, tx_hashes: Sequence[HashLike], max_workers: int = 8) -> List[Receipt]:
        """
        Fetch several receipts concurrently.

        Args:
            tx_hashes: Transaction hashes
            max_workers: Maximum number of requests in flight

        Returns:
            Receipts in the order of ``tx_hashes``

        Raises:
            The first error raised by any individual fetch
        """
        if not tx_hashes:
            return []
        workers = max(1, min(max_workers, len(tx_hashes)))
        with ThreadPoolExecutor(max_workers=workers) as executor:
            return list(executor.map(self.get_transaction_receipt, tx_hashes))

    # ------------------------------------------------------------------
    # Senders
    # ------------------------------------------------------------------

    def resolve_sender(self, tx: Transaction) -> str:
        """
        Recover the sender of a transaction using the endpoint's chain ID.

        Returns:
            Checksummed sender address

        Raises:
            RecoveryError: If the signature is invalid or bound to another chain
            TransportError: If the chain ID lookup fails
        """
        return recover_sender(tx, self.get_chain_id(), enforce_low_s=self.enforce_low_s)

    def as_message(self, tx: Transaction) -> Message:
        """Return a copy of ``tx`` with its sender resolved."""
        return Message.from_transaction(tx, self.resolve_sender(tx))

    def close(self) -> None:
        """Close the underlying transport."""
        self.transport.close()

    def __enter__(self) -> "QueryClient":
        return self

    def __exit__(self, *exc_info: Any) -> None:
        self.close()
