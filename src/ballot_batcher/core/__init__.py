"""
Core client components.

Dispatches signed ballot transactions to the ledger and tallies elections
from the ledger's state.
"""

from ballot_batcher.core.dispatcher import DispatchResult, DispatchStage, TransactionDispatcher
from ballot_batcher.core.tally import MalformedVoteError, TallyAggregator, TallyError, TallyResult

__all__ = [
    "DispatchResult",
    "DispatchStage",
    "TransactionDispatcher",
    "MalformedVoteError",
    "TallyAggregator",
    "TallyError",
    "TallyResult",
]
