"""
Ballot transaction identifiers.

An identifier names a single transaction on the ledger and embeds the
election it belongs to, so every transaction of an election shares a
common address prefix.
"""

import secrets
from dataclasses import dataclass
from enum import IntEnum
from typing import Optional, Union


ELECTION_ID_LENGTH = 15
UNIQUE_ID_LENGTH = 16
IDENTIFIER_LENGTH = ELECTION_ID_LENGTH + 1 + UNIQUE_ID_LENGTH


class IdentifierError(ValueError):
    """Raised when an identifier cannot be parsed or constructed."""
    pass


class TransactionType(IntEnum):
    """Kinds of ballot transactions, encoded as the identifier type byte."""
    ELECTION = 1
    VOTE = 2
    DECRYPTION = 3

    @property
    def label(self) -> str:
        return self.name.lower()


@dataclass(frozen=True)
class Identifier:
    """
    Canonical 32-byte transaction identifier.

    Layout: election_id (15 bytes) | tx_type (1 byte) | unique_id (16 bytes).
    The string form is the lowercase hex encoding of those 32 bytes.
    """

    election_id: bytes
    tx_type: TransactionType
    unique_id: bytes

    def __post_init__(self):
        if len(self.election_id) != ELECTION_ID_LENGTH:
            raise IdentifierError(
                f"election id must be {ELECTION_ID_LENGTH} bytes, got {len(self.election_id)}"
            )
        if len(self.unique_id) != UNIQUE_ID_LENGTH:
            raise IdentifierError(
                f"unique id must be {UNIQUE_ID_LENGTH} bytes, got {len(self.unique_id)}"
            )
        try:
            object.__setattr__(self, "tx_type", TransactionType(self.tx_type))
        except ValueError:
            raise IdentifierError(f"unknown transaction type: {self.tx_type!r}")

    @classmethod
    def new_for_election(cls) -> "Identifier":
        """Create an identifier for a brand new election."""
        return cls(
            election_id=secrets.token_bytes(ELECTION_ID_LENGTH),
            tx_type=TransactionType.ELECTION,
            unique_id=bytes(UNIQUE_ID_LENGTH),
        )

    @classmethod
    def new(
        cls,
        election: Union["Identifier", bytes],
        tx_type: TransactionType,
        unique_id: Optional[bytes] = None,
    ) -> "Identifier":
        """
        Create an identifier scoped to an election.

        Args:
            election: The election identifier or its raw election id
            tx_type: Type of the transaction being identified
            unique_id: 16 unique bytes; random when not given
        """
        election_id = election.election_id if isinstance(election, Identifier) else election
        if unique_id is None:
            unique_id = secrets.token_bytes(UNIQUE_ID_LENGTH)
        return cls(election_id=election_id, tx_type=tx_type, unique_id=unique_id)

    @classmethod
    def from_bytes(cls, data: bytes) -> "Identifier":
        if len(data) != IDENTIFIER_LENGTH:
            raise IdentifierError(
                f"identifier must be {IDENTIFIER_LENGTH} bytes, got {len(data)}"
            )
        return cls(
            election_id=bytes(data[:ELECTION_ID_LENGTH]),
            tx_type=data[ELECTION_ID_LENGTH],
            unique_id=bytes(data[ELECTION_ID_LENGTH + 1:]),
        )

    @classmethod
    def from_str(cls, value: str) -> "Identifier":
        """Parse the 64-character hex form."""
        try:
            data = bytes.fromhex(value.strip())
        except ValueError:
            raise IdentifierError(f"identifier is not valid hex: {value!r}")
        return cls.from_bytes(data)

    def to_bytes(self) -> bytes:
        return self.election_id + bytes([self.tx_type]) + self.unique_id

    def election(self) -> "Identifier":
        """Identifier of the election this transaction belongs to."""
        return Identifier(
            election_id=self.election_id,
            tx_type=TransactionType.ELECTION,
            unique_id=bytes(UNIQUE_ID_LENGTH),
        )

    def __str__(self) -> str:
        return self.to_bytes().hex()

    def __repr__(self) -> str:
        return f"Identifier({self.tx_type.label}, {str(self)[:16]}...)"
