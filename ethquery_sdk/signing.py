"""
Sender recovery from transaction signatures.

The signed payload and the recovery ID encoding depend on the envelope kind:

- unprotected legacy: six-field payload, ``v`` is 27 or 28
- replay-protected legacy (EIP-155): payload also carries ``[chain_id, 0, 0]``
  and ``v = parity + chain_id * 2 + 35``
- typed envelopes: ``type || rlp(fields)`` with an explicit chain ID field,
  ``v`` is the bare parity bit

Recovery never guesses: any inconsistency raises ``RecoveryError``.
"""
import logging
from typing import Optional

from eth_keys import keys
from eth_keys.exceptions import BadSignature
from eth_keys.exceptions import ValidationError as KeyValidationError

from ._rate_limited_log import rate_limited_log
from .codec import encode_transaction
from .ec_constants import SECP256K1_HALF_N, SECP256K1_N
from .exceptions import RecoveryError
from .models import EIP155_V_OFFSET, EnvelopeKind, Transaction
from .utils import format_hex, keccak256

logger = logging.getLogger(__name__)

LEGACY_V_OFFSET = 27


def recovery_id(tx: Transaction, chain_id: Optional[int]) -> int:
    """
    Extract the recovery ID (0 or 1) from a transaction's ``v`` value.

    Args:
        tx: Signed transaction
        chain_id: Chain the caller expects the transaction to belong to

    Raises:
        RecoveryError: If ``v`` is malformed for the envelope kind, the chain
            ID is required but missing, or it does not match the transaction's
    """
    if tx.kind is EnvelopeKind.LEGACY:
        if tx.v not in (LEGACY_V_OFFSET, LEGACY_V_OFFSET + 1):
            raise RecoveryError(f"Invalid legacy signature v={tx.v}")
        return tx.v - LEGACY_V_OFFSET

    if chain_id is None:
        raise RecoveryError(
            f"Chain ID is required to recover the sender of a {tx.kind.value} transaction")
    if tx.chain_id != chain_id:
        raise RecoveryError(
            f"Chain ID mismatch: transaction is bound to chain {tx.chain_id}, expected {chain_id}")

    if tx.kind is EnvelopeKind.REPLAY_PROTECTED:
        return tx.v - EIP155_V_OFFSET - chain_id * 2

    if tx.v not in (0, 1):
        raise RecoveryError(f"Invalid signature parity {tx.v} for {tx.kind.value} transaction")
    return tx.v


def check_signature_values(r: int, s: int, enforce_low_s: bool = True) -> None:
    """
    Reject out-of-range and non-canonical signature components.

    Args:
        r: Signature R
        s: Signature S
        enforce_low_s: Reject S in the upper half of the curve order

    Raises:
        RecoveryError: If a component is out of range
    """
    if not 0 < r < SECP256K1_N:
        raise RecoveryError("Signature r is out of range")
    if not 0 < s < SECP256K1_N:
        raise RecoveryError("Signature s is out of range")
    if enforce_low_s and s > SECP256K1_HALF_N:
        raise RecoveryError("Non-canonical signature: s is above half the curve order")


def signing_payload(tx: Transaction, chain_id: Optional[int]) -> bytes:
    """
    Reconstruct the exact byte sequence the sender signed.

    Raises:
        RecoveryError: If the chain ID is missing or does not match
    """
    recovery_id(tx, chain_id)
    return encode_transaction(tx, include_signature=False)


def recover_sender(tx: Transaction, chain_id: Optional[int], enforce_low_s: bool = True) -> str:
    """
    Recover the address that signed a transaction.

    Passing ``chain_id=None`` only works for unprotected legacy transactions
    and is flagged with a warning, since such signatures are valid on every
    chain.

    Args:
        tx: Signed transaction
        chain_id: Chain identifier the transaction is expected to belong to
        enforce_low_s: Reject signatures with S above half the curve order

    Returns:
        EIP-55 checksummed sender address

    Raises:
        RecoveryError: On malformed or non-canonical signatures, chain ID
            mismatch, or when no public key can be recovered
    """
    rec_id = recovery_id(tx, chain_id)
    check_signature_values(tx.r, tx.s, enforce_low_s)

    if tx.kind is EnvelopeKind.LEGACY and chain_id is None:
        rate_limited_log(
            "Recovering sender without a chain ID; legacy signature is not replay-protected",
            level="warning",
            logger_instance=logger,
        )

    msg_hash = keccak256(encode_transaction(tx, include_signature=False))
    try:
        signature = keys.Signature(vrs=(rec_id, tx.r, tx.s))
        public_key = signature.recover_public_key_from_msg_hash(msg_hash)
    except (BadSignature, KeyValidationError, ValueError) as e:
        logger.debug("Recovery failed for signing hash %s: %s", format_hex(msg_hash), e)
        raise RecoveryError(f"Signature recovery failed: {e}") from e

    return public_key.to_checksum_address()
