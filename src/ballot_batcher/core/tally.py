"""
Tally Aggregator.

Counts the decrypted selections of an election into a plurality tally.
Ties are not broken here: every selection with the top count is reported.
"""

from dataclasses import dataclass, field
from typing import Dict, List, Optional

import structlog

from ballot_batcher.ballot.identifier import Identifier, TransactionType
from ballot_batcher.ballot.transaction import DecryptionTransaction, PayloadError
from ballot_batcher.config import BallotConfig, MalformedVotePolicy, get_config
from ballot_batcher.ledger.address import AddressScheme
from ballot_batcher.ledger.interface import LedgerInterface, TransactionRecord

logger = structlog.get_logger(__name__)


class TallyError(Exception):
    """Raised when an election cannot be tallied."""
    pass


class MalformedVoteError(TallyError):
    """Raised when a decryption record cannot be read as a vote."""

    def __init__(self, message: str, address: Optional[str] = None):
        super().__init__(message)
        self.address = address


@dataclass
class TallyResult:
    """
    Result of a plurality tally.

    Attributes:
        election_id: Election that was tallied
        counts: Votes per selection, in first-encounter order
        winners: Every selection with the highest count, in first-encounter order
        skipped: Decryption records left out as malformed
    """

    election_id: Identifier
    counts: Dict[str, int] = field(default_factory=dict)
    winners: List[str] = field(default_factory=list)
    skipped: int = 0

    @property
    def total_votes(self) -> int:
        return sum(self.counts.values())

    @property
    def is_tie(self) -> bool:
        return len(self.winners) > 1

    @property
    def winner(self) -> Optional[str]:
        """First of the unranked winners; not a tie-break."""
        return self.winners[0] if self.winners else None

    def to_dict(self) -> dict:
        return {
            "election_id": str(self.election_id),
            "counts": dict(self.counts),
            "winners": list(self.winners),
            "total_votes": self.total_votes,
            "skipped": self.skipped,
        }


def plurality_winners(counts: Dict[str, int]) -> List[str]:
    """Selections with the maximal count, in the order they appear in counts."""
    if not counts:
        return []
    top = max(counts.values())
    return [selection for selection, count in counts.items() if count == top]


def read_selection(record: TransactionRecord) -> str:
    """
    Extract the decrypted selection from a decryption record.

    Raises:
        MalformedVoteError: If the record is not a decryption or not UTF-8
    """
    try:
        signed_tx = record.decode()
    except PayloadError as e:
        raise MalformedVoteError(f"unreadable decryption record: {e}", record.address)

    if not isinstance(signed_tx.tx, DecryptionTransaction):
        raise MalformedVoteError(
            f"expected a decryption transaction, found {signed_tx.tx_type.label}",
            record.address,
        )

    try:
        return signed_tx.tx.decrypted_vote.decode("utf-8")
    except UnicodeDecodeError as e:
        raise MalformedVoteError(f"decrypted vote is not UTF-8: {e}", record.address)


class TallyAggregator:
    """
    Tallies an election from its decryption transactions.

    Usage:
        ```python
        aggregator = TallyAggregator(ledger)
        result = await aggregator.tally(election_id)
        ```
    """

    def __init__(
        self,
        ledger: LedgerInterface,
        addressing: Optional[AddressScheme] = None,
        policy: Optional[MalformedVotePolicy] = None,
        config: Optional[BallotConfig] = None,
    ):
        self.ledger = ledger
        self.addressing = addressing or ledger.addressing
        self.config = config or get_config()
        self.policy = policy or self.config.tally_malformed_votes

    async def tally(self, election_id: Identifier) -> TallyResult:
        """
        Tally every decryption transaction of an election.

        Raises:
            TransactionNotFoundError: If the election does not exist
            TallyError: If the identifier does not name an election
            MalformedVoteError: If a vote is unreadable and the policy is ABORT
        """
        if election_id.tx_type != TransactionType.ELECTION:
            raise TallyError(f"{election_id} is a {election_id.tx_type.label}, not an election")

        record = await self.ledger.fetch_by_id(election_id)
        try:
            election = record.decode()
        except PayloadError as e:
            raise TallyError(f"unreadable election record: {e}")
        if election.tx_type != TransactionType.ELECTION:
            raise TallyError(f"{election_id} does not hold an election transaction")

        prefix = self.addressing.address_prefix_of(election_id, TransactionType.DECRYPTION)
        records = await self.ledger.fetch_state_by_prefix(prefix)

        logger.info("tally_started", election_id=str(election_id)[:16] + "...", records=len(records))

        return self.count(election_id, records)

    def count(self, election_id: Identifier, records: List[TransactionRecord]) -> TallyResult:
        """Fold decryption records into a tally, in the order given."""
        result = TallyResult(election_id=election_id)

        for record in records:
            try:
                selection = read_selection(record)
            except MalformedVoteError as e:
                if self.policy == MalformedVotePolicy.ABORT:
                    raise
                result.skipped += 1
                logger.warning("malformed_vote_skipped", address=record.address[:20] + "...", error=str(e))
                continue

            result.counts[selection] = result.counts.get(selection, 0) + 1

        result.winners = plurality_winners(result.counts)

        logger.info(
            "tally_completed",
            election_id=str(election_id)[:16] + "...",
            votes=result.total_votes,
            winners=len(result.winners),
            skipped=result.skipped,
        )
        return result
