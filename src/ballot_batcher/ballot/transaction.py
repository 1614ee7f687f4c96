"""
Ballot transaction payloads.

Defines the unsigned transaction shapes (election, vote, decryption), the
signed envelope that wraps them, and the decoder that tells the two apart.
Bytes fields travel as lowercase hex strings in both JSON and CBOR.
"""

import io
import json
from dataclasses import dataclass
from enum import Enum
from typing import Annotated, Any, List, Literal, Optional, Union

import cbor2
from nacl.exceptions import CryptoError
from nacl.signing import VerifyKey
from pydantic import BaseModel, ConfigDict, Field, PlainSerializer, PlainValidator, TypeAdapter, ValidationError, model_validator

from ballot_batcher.ballot.identifier import Identifier, IdentifierError, TransactionType


class PayloadError(ValueError):
    """Base class for problems with an application transaction payload."""
    pass


class PayloadDecodeError(PayloadError):
    """Raised when bytes are neither a signed nor an unsigned transaction."""
    pass


class NeedsSigningError(PayloadError):
    """Raised when an unsigned transaction is given where a signed one is required."""
    pass


class AlreadySignedError(PayloadError):
    """Raised when a signed transaction is given where an unsigned one is required."""
    pass


class InvalidSignatureError(PayloadError):
    """Raised when a signed transaction's signature does not verify."""
    pass


def _parse_hex(value: Any) -> bytes:
    if isinstance(value, (bytes, bytearray)):
        return bytes(value)
    if isinstance(value, str):
        try:
            return bytes.fromhex(value)
        except ValueError:
            raise ValueError("expected a hex string")
    raise ValueError("expected a hex string")


def _parse_identifier(value: Any) -> Identifier:
    if isinstance(value, Identifier):
        return value
    if isinstance(value, str):
        try:
            return Identifier.from_str(value)
        except IdentifierError as e:
            raise ValueError(str(e))
    raise ValueError("expected an identifier hex string")


HexBytes = Annotated[
    bytes,
    PlainValidator(_parse_hex),
    PlainSerializer(lambda b: b.hex(), return_type=str),
]

IdentifierField = Annotated[
    Identifier,
    PlainValidator(_parse_identifier),
    PlainSerializer(str, return_type=str),
]


class _BallotModel(BaseModel):
    model_config = ConfigDict(extra="forbid", frozen=True)

    def _require_type(self, expected: TransactionType) -> None:
        if self.id.tx_type != expected:
            raise ValueError(
                f"id has type {self.id.tx_type.label}, expected {expected.label}"
            )

    def _require_same_election(self, other: Identifier, name: str) -> None:
        if other.election_id != self.id.election_id:
            raise ValueError(f"{name} belongs to a different election")


class ElectionTransaction(_BallotModel):
    """Creates an election. Signed by the election authority."""

    type: Literal["election"] = "election"
    id: IdentifierField
    authority_public: HexBytes
    title: str = ""
    options: List[str] = Field(default_factory=list)

    @model_validator(mode="after")
    def _check_id(self):
        self._require_type(TransactionType.ELECTION)
        return self

    def inputs(self) -> List[Identifier]:
        return []


class VoteTransaction(_BallotModel):
    """An encrypted vote cast in an election."""

    type: Literal["vote"] = "vote"
    id: IdentifierField
    election: IdentifierField
    encrypted_vote: HexBytes

    @model_validator(mode="after")
    def _check_id(self):
        self._require_type(TransactionType.VOTE)
        self._require_same_election(self.election, "election")
        return self

    def inputs(self) -> List[Identifier]:
        return [self.election]


class DecryptionTransaction(_BallotModel):
    """The decrypted selection of a single vote."""

    type: Literal["decryption"] = "decryption"
    id: IdentifierField
    election: IdentifierField
    vote: IdentifierField
    decrypted_vote: HexBytes

    @model_validator(mode="after")
    def _check_id(self):
        self._require_type(TransactionType.DECRYPTION)
        self._require_same_election(self.election, "election")
        self._require_same_election(self.vote, "vote")
        return self

    def inputs(self) -> List[Identifier]:
        return [self.election, self.vote]


Transaction = Annotated[
    Union[ElectionTransaction, VoteTransaction, DecryptionTransaction],
    Field(discriminator="type"),
]

_transaction_adapter = TypeAdapter(Transaction)


def signing_bytes(tx: BaseModel) -> bytes:
    """Canonical bytes an author signs for an unsigned transaction."""
    return cbor2.dumps(tx.model_dump(mode="json"), canonical=True)


class SignedTransaction(_BallotModel):
    """
    A transaction together with its author's ed25519 signature.

    The signature covers `signing_bytes(tx)`.
    """

    tx: Transaction
    public_key: HexBytes
    signature: HexBytes

    @property
    def id(self) -> Identifier:
        return self.tx.id

    @property
    def tx_type(self) -> TransactionType:
        return self.tx.id.tx_type

    def inputs(self) -> List[Identifier]:
        return self.tx.inputs()

    def verify(self) -> None:
        """
        Check the signature against the embedded public key.

        Raises:
            InvalidSignatureError: If the key is malformed or the signature is wrong
        """
        try:
            VerifyKey(self.public_key).verify(signing_bytes(self.tx), self.signature)
        except (CryptoError, ValueError, TypeError) as e:
            raise InvalidSignatureError(f"signature does not verify for {self.id}: {e}")

    def to_bytes(self) -> bytes:
        """Canonical CBOR encoding, used as the ledger payload."""
        return cbor2.dumps(self.model_dump(mode="json"), canonical=True)

    @classmethod
    def from_bytes(cls, data: bytes) -> "SignedTransaction":
        decoded = decode_payload(data)
        if decoded.shape is not PayloadShape.SIGNED:
            raise NeedsSigningError("transaction is unsigned")
        return decoded.transaction


class PayloadShape(str, Enum):
    """The closed set of payload shapes the decoder recognizes."""
    SIGNED = "signed"
    UNSIGNED = "unsigned"


@dataclass(frozen=True)
class DecodedPayload:
    """Result of decoding raw bytes into one of the known payload shapes."""
    shape: PayloadShape
    transaction: Any

    @property
    def is_signed(self) -> bool:
        return self.shape is PayloadShape.SIGNED


def _load_document(raw: bytes) -> Any:
    if raw.lstrip()[:1] == b"{":
        try:
            return json.loads(raw.decode("utf-8"))
        except (UnicodeDecodeError, json.JSONDecodeError) as e:
            raise PayloadDecodeError(f"invalid JSON: {e}")
    fp = io.BytesIO(raw)
    try:
        document = cbor2.CBORDecoder(fp).decode()
    except (cbor2.CBORDecodeError, ValueError, EOFError) as e:
        raise PayloadDecodeError(f"invalid CBOR: {e}")
    if fp.tell() != len(raw):
        raise PayloadDecodeError("trailing data after CBOR document")
    return document


def shape_of(document: Any) -> Optional[PayloadShape]:
    """Classify a decoded document by its tag keys; None when it matches no shape."""
    if not isinstance(document, dict):
        return None
    if "tx" in document and "signature" in document:
        return PayloadShape.SIGNED
    if "type" in document:
        return PayloadShape.UNSIGNED
    return None


def decode_payload(raw: bytes) -> DecodedPayload:
    """
    Decode JSON or CBOR bytes into a signed or unsigned transaction.

    The shape is chosen from the document's tag keys and the document is
    then validated against that shape only.

    Raises:
        PayloadDecodeError: If the bytes match no known shape or fail validation
    """
    document = _load_document(raw)
    shape = shape_of(document)
    if shape is None:
        raise PayloadDecodeError("not a ballot transaction")

    try:
        if shape is PayloadShape.SIGNED:
            transaction = SignedTransaction.model_validate(document)
        else:
            transaction = _transaction_adapter.validate_python(document)
    except ValidationError as e:
        raise PayloadDecodeError(
            f"invalid {shape.value} transaction: {e.error_count()} validation error(s): "
            f"{e.errors()[0]['msg']}"
        )

    return DecodedPayload(shape=shape, transaction=transaction)


def transaction_to_json(tx: BaseModel, pretty: bool = False) -> str:
    return tx.model_dump_json(indent=2 if pretty else None)
