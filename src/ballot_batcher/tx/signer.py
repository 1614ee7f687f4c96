"""
Ledger Signer - signs transaction and batch headers.

The ledger authenticates headers with secp256k1 keys: public keys are the
33-byte compressed point and signatures are 64-byte compact r||s values
over SHA-256, both hex encoded on the wire.
"""

import os
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Optional

import structlog
from cryptography.exceptions import InvalidSignature
from cryptography.hazmat.primitives import hashes, serialization
from cryptography.hazmat.primitives.asymmetric import ec
from cryptography.hazmat.primitives.asymmetric.utils import decode_dss_signature, encode_dss_signature

from ballot_batcher.config import BallotConfig, get_config

logger = structlog.get_logger(__name__)

# secp256k1 group order
_CURVE_ORDER = 0xFFFFFFFFFFFFFFFFFFFFFFFFFFFFFFFEBAAEDCE6AF48A03BBFD25E8CD0364141


class SigningError(Exception):
    """Raised when the signing provider cannot supply a key or signature."""
    pass


class SigningProvider(ABC):
    """Contract for anything that can sign ledger headers."""

    @abstractmethod
    def get_public_key(self) -> bytes:
        """Raw public key bytes."""
        pass

    @abstractmethod
    def sign(self, data: bytes) -> bytes:
        """Raw signature over data."""
        pass

    def public_key_hex(self) -> str:
        try:
            return self.get_public_key().hex()
        except SigningError:
            raise
        except Exception as e:
            raise SigningError(f"Unable to retrieve public key: {e}")

    def sign_hex(self, data: bytes) -> str:
        try:
            return self.sign(data).hex()
        except SigningError:
            raise
        except Exception as e:
            raise SigningError(f"Unable to sign: {e}")


class LedgerSigner(SigningProvider):
    """
    secp256k1 signer for transaction and batch headers.

    Keys can be loaded from:
    - File path (hex-encoded 32-byte private key)
    - Hex string
    """

    def __init__(
        self,
        private_key: Optional[ec.EllipticCurvePrivateKey] = None,
        config: Optional[BallotConfig] = None,
    ):
        self.config = config or get_config()
        self._private_key = private_key

    def load_key_from_hex(self, private_hex: str) -> None:
        try:
            value = int(private_hex.strip(), 16)
            self._private_key = ec.derive_private_key(value, ec.SECP256K1())
        except ValueError as e:
            raise SigningError(f"Invalid secp256k1 private key: {e}")

        logger.info("signer_key_loaded", public_key=self.public_key_hex()[:16] + "...")

    def load_key_from_file(self, key_path: str) -> None:
        path = Path(key_path)
        if not path.exists():
            raise FileNotFoundError(f"Signer key file not found: {key_path}")
        self.load_key_from_hex(path.read_text())

    def load_from_config(self) -> None:
        """Load the signer key from configuration."""
        if not self.config.signer_key_path:
            raise SigningError("No signer key configured")
        self.load_key_from_file(os.path.expandvars(os.path.expanduser(self.config.signer_key_path)))

    @property
    def is_loaded(self) -> bool:
        return self._private_key is not None

    def _require_key(self) -> ec.EllipticCurvePrivateKey:
        if self._private_key is None:
            raise SigningError("No signer key loaded")
        return self._private_key

    def get_public_key(self) -> bytes:
        return self._require_key().public_key().public_bytes(
            serialization.Encoding.X962,
            serialization.PublicFormat.CompressedPoint,
        )

    def private_key_hex(self) -> str:
        value = self._require_key().private_numbers().private_value
        return value.to_bytes(32, "big").hex()

    def sign(self, data: bytes) -> bytes:
        der = self._require_key().sign(data, ec.ECDSA(hashes.SHA256()))
        r, s = decode_dss_signature(der)
        # low-S form, as the validator rejects malleable signatures
        if s > _CURVE_ORDER // 2:
            s = _CURVE_ORDER - s
        return r.to_bytes(32, "big") + s.to_bytes(32, "big")

    def verify(self, data: bytes, signature: bytes) -> bool:
        """Check a compact signature made by this signer."""
        if len(signature) != 64:
            return False
        der = encode_dss_signature(
            int.from_bytes(signature[:32], "big"),
            int.from_bytes(signature[32:], "big"),
        )
        try:
            self._require_key().public_key().verify(der, data, ec.ECDSA(hashes.SHA256()))
        except InvalidSignature:
            return False
        return True


def generate_signer(config: Optional[BallotConfig] = None) -> LedgerSigner:
    """
    Generate a signer with a new random secp256k1 key.

    The key is not persisted, so nothing signed with it can later be tied
    back to a known identity.
    """
    signer = LedgerSigner(ec.generate_private_key(ec.SECP256K1()), config=config)
    logger.warning("ephemeral_signer_generated", public_key=signer.public_key_hex()[:16] + "...")
    return signer
