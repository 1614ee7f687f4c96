"""
Author keys for ballot transactions.

Ballot transactions are signed with ed25519 keys; secret keys are stored
on disk as a single hex-encoded 32-byte seed.
"""

from pathlib import Path
from typing import Tuple, Union

import structlog
from nacl.signing import SigningKey, VerifyKey

from ballot_batcher.ballot.transaction import (
    AlreadySignedError,
    PayloadShape,
    SignedTransaction,
    decode_payload,
    signing_bytes,
)

logger = structlog.get_logger(__name__)


SUPPORTED_ALGORITHMS = ("ed25519",)


class KeyFormatError(ValueError):
    """Raised when a secret key file or string cannot be used."""
    pass


def generate_keypair(algorithm: str = "ed25519") -> Tuple[SigningKey, VerifyKey]:
    """
    Generate a new author keypair.

    Args:
        algorithm: Key algorithm; only ed25519 is supported

    Returns:
        (secret key, public key)
    """
    if algorithm not in SUPPORTED_ALGORITHMS:
        raise KeyFormatError(
            f"unsupported algorithm {algorithm!r}, expected one of {', '.join(SUPPORTED_ALGORITHMS)}"
        )
    secret = SigningKey.generate()
    return secret, secret.verify_key


def signing_key_from_hex(value: str) -> SigningKey:
    try:
        seed = bytes.fromhex(value.strip())
    except ValueError:
        raise KeyFormatError("secret key is not valid hex")
    if len(seed) != 32:
        raise KeyFormatError(f"secret key must be 32 bytes, got {len(seed)}")
    return SigningKey(seed)


def load_signing_key(path: Union[str, Path]) -> SigningKey:
    """Load a hex-encoded ed25519 secret key from a file."""
    path = Path(path)
    if not path.exists():
        raise FileNotFoundError(f"Secret key file not found: {path}")
    return signing_key_from_hex(path.read_text())


def write_signing_key(key: SigningKey, path: Union[str, Path]) -> None:
    Path(path).write_text(bytes(key).hex())


def sign_transaction(tx, signing_key: SigningKey) -> SignedTransaction:
    """Sign an unsigned ballot transaction."""
    signed = signing_key.sign(signing_bytes(tx))
    logger.debug("ballot_transaction_signed", tx_id=str(tx.id)[:16] + "...")
    return SignedTransaction(
        tx=tx,
        public_key=bytes(signing_key.verify_key),
        signature=signed.signature,
    )


def sign_payload(raw: bytes, signing_key: SigningKey) -> SignedTransaction:
    """
    Sign the unsigned transaction encoded in raw bytes.

    Raises:
        AlreadySignedError: If the bytes already hold a signed transaction
        PayloadDecodeError: If the bytes hold no known transaction shape
    """
    decoded = decode_payload(raw)
    if decoded.shape is PayloadShape.SIGNED:
        raise AlreadySignedError(f"transaction {decoded.transaction.id} is already signed")
    return sign_transaction(decoded.transaction, signing_key)
