"""
Quote Generation Service

Generates Quotes for Opportunities. The Quote and its line items are written
as one atomic unit of work whose operations reference each other through
pending references, resolved by the record store inside the transaction.
"""

__version__ = "0.1.0"

from quotegen.core.unit_of_work import UnitOfWork, BatchState
from quotegen.core.reference import PendingReference, OperationHandle
from quotegen.core.result import CommitResult, OperationResult
from quotegen.composite.committer import UnitOfWorkCommitter

__all__ = [
    "UnitOfWork",
    "BatchState",
    "PendingReference",
    "OperationHandle",
    "CommitResult",
    "OperationResult",
    "UnitOfWorkCommitter",
]
