"""
Pytest configuration and shared fixtures for the test suite.
"""

from typing import List, Optional

import pytest
from nacl.signing import SigningKey

from ballot_batcher.ballot.identifier import Identifier, TransactionType
from ballot_batcher.ballot.keys import sign_transaction
from ballot_batcher.ballot.transaction import (
    DecryptionTransaction,
    ElectionTransaction,
    SignedTransaction,
    VoteTransaction,
)
from ballot_batcher.config import BallotConfig, MalformedVotePolicy
from ballot_batcher.ledger import messages
from ballot_batcher.ledger.address import AddressScheme
from ballot_batcher.ledger.interface import (
    BatchStatus,
    LedgerInterface,
    SubmitResult,
    TransactionRecord,
)


# ============================================================================
# Configuration Fixtures
# ============================================================================

@pytest.fixture
def test_config() -> BallotConfig:
    """Create a test configuration."""
    return BallotConfig(
        uri="http://ledger.test:8008",
        request_timeout_seconds=5,
        tally_malformed_votes=MalformedVotePolicy.ABORT,
        log_level="DEBUG",
    )


@pytest.fixture
def addressing() -> AddressScheme:
    return AddressScheme.from_label("cryptoballot")


# ============================================================================
# Test Data Generators
# ============================================================================

def make_election(authority: SigningKey, election_id: Optional[Identifier] = None) -> SignedTransaction:
    """Create a signed election transaction."""
    election_id = election_id or Identifier.new_for_election()
    tx = ElectionTransaction(
        id=election_id,
        authority_public=bytes(authority.verify_key),
        title="Test Election",
        options=["A", "B", "C"],
    )
    return sign_transaction(tx, authority)


def make_vote(author: SigningKey, election_id: Identifier) -> SignedTransaction:
    """Create a signed vote transaction."""
    tx = VoteTransaction(
        id=Identifier.new(election_id, TransactionType.VOTE),
        election=election_id,
        encrypted_vote=b"\x01\x02\x03\x04",
    )
    return sign_transaction(tx, author)


def make_decryption(
    author: SigningKey,
    election_id: Identifier,
    selection: bytes,
) -> SignedTransaction:
    """Create a signed decryption transaction carrying a selection."""
    vote_id = Identifier.new(election_id, TransactionType.VOTE)
    tx = DecryptionTransaction(
        id=Identifier.new(election_id, TransactionType.DECRYPTION),
        election=election_id,
        vote=vote_id,
        decrypted_vote=selection,
    )
    return sign_transaction(tx, author)


@pytest.fixture
def author_key() -> SigningKey:
    """A random ed25519 author key."""
    return SigningKey.generate()


@pytest.fixture
def election_id() -> Identifier:
    return Identifier.new_for_election()


@pytest.fixture
def signed_election(author_key, election_id) -> SignedTransaction:
    return make_election(author_key, election_id)


@pytest.fixture
def signed_vote(author_key, election_id) -> SignedTransaction:
    return make_vote(author_key, election_id)


# ============================================================================
# Mock Ledger Interface
# ============================================================================

class MockLedger(LedgerInterface):
    """In-memory ledger for testing."""

    def __init__(self, addressing: Optional[AddressScheme] = None):
        super().__init__(addressing)
        self.state: dict = {}
        self.submitted: List[bytes] = []
        self.fail_submission: Optional[Exception] = None
        self._connected = False

    async def connect(self) -> None:
        self._connected = True

    async def disconnect(self) -> None:
        self._connected = False

    async def submit_batch(self, batch_list_bytes: bytes) -> SubmitResult:
        if self.fail_submission:
            raise self.fail_submission
        self.submitted.append(batch_list_bytes)

        batch_list = messages.parse(messages.BatchList, batch_list_bytes)
        batch = batch_list.batches[0]
        return SubmitResult(
            batch_id=batch.header_signature,
            link=f"http://ledger.test/batch_statuses?id={batch.header_signature}",
        )

    async def fetch_state(self, address: str) -> Optional[TransactionRecord]:
        if address not in self.state:
            return None
        return TransactionRecord(address=address, data=self.state[address])

    async def fetch_state_by_prefix(self, prefix: str) -> List[TransactionRecord]:
        return [
            TransactionRecord(address=address, data=data)
            for address, data in self.state.items()
            if address.startswith(prefix)
        ]

    async def get_batch_status(self, batch_id: str, wait: Optional[int] = None) -> BatchStatus:
        for raw in self.submitted:
            batch_list = messages.parse(messages.BatchList, raw)
            if batch_list.batches[0].header_signature == batch_id:
                return BatchStatus.COMMITTED
        return BatchStatus.UNKNOWN

    def put(self, signed_tx: SignedTransaction) -> str:
        """Store a transaction at its address (simulate a committed batch)."""
        address = self.addressing.address_of(signed_tx.id)
        self.state[address] = signed_tx.to_bytes()
        return address

    def put_raw(self, address: str, data: bytes) -> None:
        self.state[address] = data


@pytest.fixture
def mock_ledger(addressing) -> MockLedger:
    """Create a mock ledger."""
    return MockLedger(addressing)


# ============================================================================
# Test Signer
# ============================================================================

@pytest.fixture
def test_signer(test_config):
    """Create a header signer with a random key."""
    from ballot_batcher.tx.signer import generate_signer
    return generate_signer(test_config)
