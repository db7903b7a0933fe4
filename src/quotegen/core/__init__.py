"""
Core unit-of-work components.

This module contains pending references, operations, the unit of work batch
and its commit results.
"""

from quotegen.core.errors import (
    BackingStoreError,
    BatchAlreadyCommittedError,
    BatchTooLargeError,
    EmptyBatchError,
    ProtocolError,
    StoreAuthenticationError,
    TransportError,
    UnitOfWorkError,
    UnresolvedReferenceError,
    ValidationError,
)
from quotegen.core.operation import Operation, OperationKind
from quotegen.core.reference import OperationHandle, PendingReference, ReferenceValue
from quotegen.core.result import CommitResult, OperationResult, RecordError
from quotegen.core.unit_of_work import BatchState, UnitOfWork

__all__ = [
    "BackingStoreError",
    "BatchAlreadyCommittedError",
    "BatchState",
    "BatchTooLargeError",
    "CommitResult",
    "EmptyBatchError",
    "Operation",
    "OperationHandle",
    "OperationKind",
    "OperationResult",
    "PendingReference",
    "ProtocolError",
    "RecordError",
    "ReferenceValue",
    "StoreAuthenticationError",
    "TransportError",
    "UnitOfWork",
    "UnitOfWorkError",
    "UnresolvedReferenceError",
    "ValidationError",
]
