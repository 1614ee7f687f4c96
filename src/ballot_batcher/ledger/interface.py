"""
Abstract interface for ledger access.

Defines the contract for state lookups and batch submission that every
ledger adapter must implement.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from enum import Enum
from typing import List, Optional, Union

from ballot_batcher.ballot.identifier import Identifier, TransactionType
from ballot_batcher.ballot.transaction import SignedTransaction
from ballot_batcher.ledger.address import AddressScheme


class BatchStatus(str, Enum):
    """Commit status reported by the ledger for a submitted batch."""
    COMMITTED = "COMMITTED"
    INVALID = "INVALID"
    PENDING = "PENDING"
    UNKNOWN = "UNKNOWN"


@dataclass(frozen=True)
class TransactionRecord:
    """Raw state entry: the address and the payload bytes stored there."""
    address: str
    data: bytes

    def decode(self) -> SignedTransaction:
        """
        Decode the stored payload.

        Raises:
            PayloadError: If the data is not a signed ballot transaction
        """
        return SignedTransaction.from_bytes(self.data)


@dataclass(frozen=True)
class SubmitResult:
    """Outcome of an accepted batch submission."""
    batch_id: str
    link: Optional[str] = None


class LedgerInterface(ABC):
    """
    Abstract interface for ledger access.

    This interface defines all ledger operations the client needs:
    - Batch submission and status
    - Single state lookups
    - Prefix (range) state lookups
    """

    def __init__(self, addressing: Optional[AddressScheme] = None):
        self.addressing = addressing or AddressScheme.from_label()

    @abstractmethod
    async def connect(self) -> None:
        """
        Establish connection to the ledger API.

        Raises:
            LedgerConnectionError: If connection cannot be established
        """
        pass

    @abstractmethod
    async def disconnect(self) -> None:
        """Close connection to the ledger API."""
        pass

    @abstractmethod
    async def submit_batch(self, batch_list_bytes: bytes) -> SubmitResult:
        """
        Submit a serialized batch list.

        Args:
            batch_list_bytes: Serialized BatchList

        Returns:
            Submission result with the batch id

        Raises:
            SubmissionError: If the ledger does not accept the batch
        """
        pass

    @abstractmethod
    async def fetch_state(self, address: str) -> Optional[TransactionRecord]:
        """
        Get the state entry at an address.

        Returns:
            The record if present, None otherwise
        """
        pass

    @abstractmethod
    async def fetch_state_by_prefix(self, prefix: str) -> List[TransactionRecord]:
        """
        Get every state entry whose address starts with prefix.

        Ordering of the result is unspecified.
        """
        pass

    @abstractmethod
    async def get_batch_status(
        self,
        batch_id: str,
        wait: Optional[int] = None,
    ) -> BatchStatus:
        """
        Get the commit status of a batch.

        Args:
            batch_id: Header signature of the batch
            wait: Seconds the ledger may wait for the batch to commit
        """
        pass

    async def fetch_by_id(self, identifier: Identifier) -> TransactionRecord:
        """
        Get the record stored for a transaction identifier.

        Raises:
            TransactionNotFoundError: If no state exists at its address
        """
        record = await self.fetch_state(self.addressing.address_of(identifier))
        if record is None:
            raise TransactionNotFoundError(f"Transaction {identifier} not found")
        return record

    async def fetch_by_prefix(
        self,
        election: Union[Identifier, bytes],
        tx_type: Optional[TransactionType] = None,
    ) -> List[TransactionRecord]:
        """Get every record of an election, optionally of one transaction type."""
        prefix = self.addressing.address_prefix_of(election, tx_type)
        return await self.fetch_state_by_prefix(prefix)


class LedgerConnectionError(Exception):
    """Raised when the ledger API cannot be reached or answers with an error."""
    pass


class TransactionNotFoundError(Exception):
    """Raised when a transaction lookup finds nothing."""
    pass


class SubmissionError(Exception):
    """Raised when batch submission fails."""

    def __init__(self, message: str, error_code: Optional[int] = None):
        super().__init__(message)
        self.error_code = error_code
