"""
Ballot transaction model.

Identifiers, transaction shapes and author signing for the CryptoBallot
application layer.
"""

from ballot_batcher.ballot.identifier import Identifier, IdentifierError, TransactionType
from ballot_batcher.ballot.keys import KeyFormatError, generate_keypair, load_signing_key, sign_payload, sign_transaction
from ballot_batcher.ballot.transaction import (
    AlreadySignedError,
    DecodedPayload,
    DecryptionTransaction,
    ElectionTransaction,
    InvalidSignatureError,
    NeedsSigningError,
    PayloadDecodeError,
    PayloadError,
    PayloadShape,
    SignedTransaction,
    VoteTransaction,
    decode_payload,
)

__all__ = [
    "Identifier",
    "IdentifierError",
    "TransactionType",
    "KeyFormatError",
    "generate_keypair",
    "load_signing_key",
    "sign_payload",
    "sign_transaction",
    "AlreadySignedError",
    "DecodedPayload",
    "DecryptionTransaction",
    "ElectionTransaction",
    "InvalidSignatureError",
    "NeedsSigningError",
    "PayloadDecodeError",
    "PayloadError",
    "PayloadShape",
    "SignedTransaction",
    "VoteTransaction",
    "decode_payload",
]
