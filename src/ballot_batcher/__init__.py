"""
CryptoBallot Ledger Client

Packages signed ballot transactions into single-transaction batches for a
Sawtooth ledger, derives the state addresses they live at, and tallies
elections from their decryption transactions.
"""

__version__ = "0.1.0"

from ballot_batcher.core.dispatcher import TransactionDispatcher
from ballot_batcher.core.tally import TallyAggregator, TallyResult
from ballot_batcher.ledger.address import AddressScheme

__all__ = [
    "TransactionDispatcher",
    "TallyAggregator",
    "TallyResult",
    "AddressScheme",
]
