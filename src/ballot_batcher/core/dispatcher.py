"""
Transaction Dispatcher.

Takes the bytes of a signed ballot transaction through validation, header
construction, batching and submission:

    UNVALIDATED -> VERIFIED_SIGNED -> HEADERED -> BATCHED -> SUBMITTED
                                                        \\-> REJECTED

Every failure is terminal for the dispatch; nothing is retried.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Optional

import structlog

from ballot_batcher.ballot.identifier import Identifier
from ballot_batcher.ballot.transaction import (
    NeedsSigningError,
    PayloadError,
    SignedTransaction,
    decode_payload,
)
from ballot_batcher.config import BallotConfig, get_config
from ballot_batcher.ledger.address import AddressScheme
from ballot_batcher.ledger.interface import (
    BatchStatus,
    LedgerConnectionError,
    LedgerInterface,
    SubmissionError,
)
from ballot_batcher.tx.builder import TransactionBuildError, build_batch_list, build_transaction
from ballot_batcher.tx.signer import SigningError, SigningProvider

logger = structlog.get_logger(__name__)


class DispatchStage(str, Enum):
    """Progress of a single dispatch."""
    UNVALIDATED = "unvalidated"
    VERIFIED_SIGNED = "verified_signed"
    HEADERED = "headered"
    BATCHED = "batched"
    SUBMITTED = "submitted"
    REJECTED = "rejected"


@dataclass(frozen=True)
class DispatchResult:
    """What was submitted and where the ledger put it."""
    tx_id: Identifier
    transaction_id: str
    batch_id: str
    batch_list: bytes
    stage: DispatchStage = DispatchStage.SUBMITTED
    link: Optional[str] = None
    status: Optional[BatchStatus] = None


class TransactionDispatcher:
    """
    Packages signed ballot transactions and hands them to the ledger.

    The signer is owned by the caller and used for both the transaction
    header and the batch header. The dispatcher keeps no state between
    dispatches.

    Usage:
        ```python
        dispatcher = TransactionDispatcher(ledger, signer)
        result = await dispatcher.dispatch(file_bytes)
        ```
    """

    def __init__(
        self,
        ledger: LedgerInterface,
        signer: SigningProvider,
        addressing: Optional[AddressScheme] = None,
        config: Optional[BallotConfig] = None,
    ):
        self.ledger = ledger
        self.signer = signer
        self.addressing = addressing or ledger.addressing
        self.config = config or get_config()

    def verify_signed(self, raw: bytes) -> SignedTransaction:
        """
        Decode raw bytes that must hold a signed ballot transaction.

        Raises:
            NeedsSigningError: If the bytes hold an unsigned transaction
            PayloadDecodeError: If the bytes hold no known transaction shape
            InvalidSignatureError: If the author signature does not verify
        """
        decoded = decode_payload(raw)
        if not decoded.is_signed:
            raise NeedsSigningError(
                f"transaction {decoded.transaction.id} is unsigned and must be signed first"
            )

        signed_tx = decoded.transaction
        signed_tx.verify()
        return signed_tx

    async def dispatch(self, raw: bytes, wait: Optional[int] = None) -> DispatchResult:
        """
        Validate, package and submit a signed ballot transaction.

        Args:
            raw: JSON or CBOR bytes of a signed transaction
            wait: If set, ask the ledger for the batch status, waiting up to this many seconds

        Returns:
            DispatchResult describing the submitted batch

        Raises:
            PayloadError: If the bytes are not a valid signed transaction
            SigningError: If the header signer fails
            TransactionBuildError: If the envelope cannot be built
            SubmissionError: If the ledger does not accept the batch
        """
        stage = DispatchStage.UNVALIDATED

        try:
            signed_tx = self.verify_signed(raw)
            stage = DispatchStage.VERIFIED_SIGNED

            transaction = build_transaction(self.signer, signed_tx, self.addressing, self.config)
            stage = DispatchStage.HEADERED

            batch_list = build_batch_list(self.signer, transaction)
            stage = DispatchStage.BATCHED

            logger.info(
                "transaction_batched",
                tx_id=str(signed_tx.id)[:16] + "...",
                tx_type=signed_tx.tx_type.label,
                inputs=len(signed_tx.inputs()),
            )

            try:
                submitted = await self.ledger.submit_batch(batch_list)
            except LedgerConnectionError as e:
                raise SubmissionError(f"submission failed: {e}")
            stage = DispatchStage.SUBMITTED

        except (PayloadError, SigningError, TransactionBuildError, SubmissionError) as e:
            logger.error(
                "dispatch_rejected",
                stage=DispatchStage.REJECTED.value,
                failed_after=stage.value,
                error=str(e),
            )
            raise
        except Exception as e:
            logger.error(
                "dispatch_rejected",
                stage=DispatchStage.REJECTED.value,
                failed_after=stage.value,
                error=str(e),
            )
            raise TransactionBuildError(f"Failed to package transaction: {e}")

        status = None
        if wait:
            # Batch is already on the ledger at this point
            try:
                status = await self.ledger.get_batch_status(submitted.batch_id, wait=wait)
                logger.info("batch_status", batch_id=submitted.batch_id[:16] + "...", status=status.value)
            except LedgerConnectionError as e:
                status = BatchStatus.UNKNOWN
                logger.warning(
                    "batch_status_unavailable",
                    batch_id=submitted.batch_id[:16] + "...",
                    error=str(e),
                )

        return DispatchResult(
            tx_id=signed_tx.id,
            transaction_id=transaction.header_signature,
            batch_id=submitted.batch_id,
            batch_list=batch_list,
            stage=stage,
            link=submitted.link,
            status=status,
        )
