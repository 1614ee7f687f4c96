"""
Transaction Builder - constructs ledger transactions and batches.

Wraps a signed ballot transaction into a ledger transaction (header,
header signature, payload) and then into a single-transaction batch.
"""

import hashlib
import secrets
from typing import Optional, Sequence

import structlog

from ballot_batcher.ballot.identifier import Identifier
from ballot_batcher.ballot.transaction import SignedTransaction
from ballot_batcher.config import BallotConfig, get_config
from ballot_batcher.ledger import messages
from ballot_batcher.ledger.address import AddressScheme
from ballot_batcher.tx.signer import SigningProvider

logger = structlog.get_logger(__name__)

NONCE_BYTES = 16


class TransactionBuildError(Exception):
    """Raised when transaction or batch construction fails."""
    pass


def build_header(
    signer: SigningProvider,
    payload_bytes: bytes,
    inputs: Sequence[Identifier],
    outputs: Sequence[Identifier],
    addressing: AddressScheme,
    config: Optional[BallotConfig] = None,
) -> bytes:
    """
    Build the serialized transaction header.

    Args:
        signer: Identity used as both signer and batcher
        payload_bytes: Exact payload the header commits to
        inputs: Identifiers the transaction reads, in ledger execution order
        outputs: Identifiers the transaction writes
        addressing: Address scheme used to translate identifiers

    Returns:
        Header bytes, ready to be signed

    Raises:
        SigningError: If the signer's public key is unavailable
    """
    config = config or get_config()

    # Raises SigningError before any header field is set
    public_key = signer.public_key_hex()

    header = messages.TransactionHeader(
        family_name=config.family_name,
        family_version=config.family_version,
        nonce=secrets.token_hex(NONCE_BYTES),
        inputs=[addressing.address_of(ident) for ident in inputs],
        outputs=[addressing.address_of(ident) for ident in outputs],
        signer_public_key=public_key,
        batcher_public_key=public_key,
        payload_sha512=hashlib.sha512(payload_bytes).hexdigest(),
    )

    return messages.serialize(header)


def build_transaction(
    signer: SigningProvider,
    signed_tx: SignedTransaction,
    addressing: AddressScheme,
    config: Optional[BallotConfig] = None,
):
    """
    Build and sign the ledger transaction carrying a ballot transaction.

    The ballot transaction is its own sole output; its declared inputs are
    passed through in order.
    """
    payload_bytes = signed_tx.to_bytes()
    header_bytes = build_header(
        signer,
        payload_bytes,
        signed_tx.inputs(),
        [signed_tx.id],
        addressing,
        config,
    )

    signature = signer.sign_hex(header_bytes)

    logger.debug(
        "transaction_header_signed",
        tx_id=str(signed_tx.id)[:16] + "...",
        header_signature=signature[:16] + "...",
    )

    return messages.Transaction(
        header=header_bytes,
        header_signature=signature,
        payload=payload_bytes,
    )


def build_batch_header(signer: SigningProvider, transaction) -> bytes:
    """Serialized batch header naming exactly one transaction."""
    if not transaction.header_signature:
        raise TransactionBuildError("Cannot batch a transaction without a header signature")

    header = messages.BatchHeader(
        signer_public_key=signer.public_key_hex(),
        transaction_ids=[transaction.header_signature],
    )
    return messages.serialize(header)


def build_batch(signer: SigningProvider, transaction):
    """Wrap one signed transaction into a batch signed by the same identity."""
    header_bytes = build_batch_header(signer, transaction)
    signature = signer.sign_hex(header_bytes)

    batch = messages.Batch(
        header=header_bytes,
        header_signature=signature,
        transactions=[transaction],
    )
    return batch


def build_batch_list(signer: SigningProvider, transaction) -> bytes:
    """Serialized batch list holding a single batch, ready for submission."""
    batch = build_batch(signer, transaction)
    batch_list = messages.BatchList(batches=[batch])

    logger.debug("batch_built", batch_id=batch.header_signature[:16] + "...")

    return messages.serialize(batch_list)


__all__ = [
    "TransactionBuildError",
    "build_header",
    "build_transaction",
    "build_batch_header",
    "build_batch",
    "build_batch_list",
]
