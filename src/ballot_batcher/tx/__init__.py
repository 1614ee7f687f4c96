"""
Transaction module.

Handles ledger transaction construction, batching and header signing.
"""

from ballot_batcher.tx.builder import (
    TransactionBuildError,
    build_batch,
    build_batch_header,
    build_batch_list,
    build_header,
    build_transaction,
)
from ballot_batcher.tx.signer import LedgerSigner, SigningError, SigningProvider, generate_signer

__all__ = [
    "TransactionBuildError",
    "build_batch",
    "build_batch_header",
    "build_batch_list",
    "build_header",
    "build_transaction",
    "LedgerSigner",
    "SigningError",
    "SigningProvider",
    "generate_signer",
]
