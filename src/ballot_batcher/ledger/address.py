"""
Ledger address derivation.

Every ballot transaction is stored at `namespace + identifier hex`, where
the namespace is the first 3 bytes of SHA-512 over the application label.
Because identifiers start with the election id and type byte, all
transactions of an election (or of one type within it) share a prefix.
"""

import hashlib
from dataclasses import dataclass
from typing import Optional, Union

from ballot_batcher.ballot.identifier import ELECTION_ID_LENGTH, Identifier, IdentifierError, TransactionType

DEFAULT_NAMESPACE_LABEL = "cryptoballot"
NAMESPACE_LENGTH = 6


def namespace_for(label: str) -> str:
    """Compute the 6 hex character namespace tag for a label."""
    return hashlib.sha512(label.encode("utf-8")).digest()[:3].hex()


@dataclass(frozen=True)
class AddressScheme:
    """
    Immutable addressing configuration.

    Build one per process with `AddressScheme.from_label()` and hand it to
    whatever needs to compute addresses.
    """

    namespace: str

    def __post_init__(self):
        if len(self.namespace) != NAMESPACE_LENGTH:
            raise ValueError(f"namespace must be {NAMESPACE_LENGTH} hex characters")
        int(self.namespace, 16)

    @classmethod
    def from_label(cls, label: str = DEFAULT_NAMESPACE_LABEL) -> "AddressScheme":
        return cls(namespace=namespace_for(label))

    def address_of(self, identifier: Identifier) -> str:
        """Full 70 character state address of a transaction."""
        return f"{self.namespace}{identifier}"

    def address_prefix_of(
        self,
        election: Union[Identifier, bytes],
        tx_type: Optional[TransactionType] = None,
    ) -> str:
        """
        Address prefix covering an election, optionally narrowed to one type.

        Args:
            election: Any identifier in the election, or the raw election id
            tx_type: Restrict the prefix to transactions of this type
        """
        election_id = election.election_id if isinstance(election, Identifier) else bytes(election)
        if len(election_id) != ELECTION_ID_LENGTH:
            raise IdentifierError(
                f"election id must be {ELECTION_ID_LENGTH} bytes, got {len(election_id)}"
            )

        prefix = f"{self.namespace}{election_id.hex()}"
        if tx_type is not None:
            prefix += bytes([TransactionType(tx_type)]).hex()
        return prefix

    def owns(self, address: str) -> bool:
        return address.startswith(self.namespace)

    def identifier_at(self, address: str) -> Identifier:
        """Recover the identifier stored at an address of this namespace."""
        if not self.owns(address):
            raise IdentifierError(f"address {address[:12]}... is outside namespace {self.namespace}")
        return Identifier.from_str(address[NAMESPACE_LENGTH:])
