"""
Ledger Integration Layer.

Address derivation, the ledger message schema, and access to the ledger's
state and batch submission endpoints.
"""

from ballot_batcher.ledger.address import AddressScheme
from ballot_batcher.ledger.interface import (
    BatchStatus,
    LedgerConnectionError,
    LedgerInterface,
    SubmissionError,
    SubmitResult,
    TransactionNotFoundError,
    TransactionRecord,
)
from ballot_batcher.ledger.rest import SawtoothRestClient

__all__ = [
    "AddressScheme",
    "BatchStatus",
    "LedgerConnectionError",
    "LedgerInterface",
    "SubmissionError",
    "SubmitResult",
    "TransactionNotFoundError",
    "TransactionRecord",
    "SawtoothRestClient",
]
