"""
Unit of work model.

Collects an ordered sequence of operations to be committed as one atomic
transaction.
"""

import uuid
from dataclasses import dataclass
from datetime import datetime, timezone
from enum import Enum
from typing import Container, Dict, List, Optional, Set

from quotegen.core.errors import (
    BatchAlreadyCommittedError,
    BatchTooLargeError,
    EmptyBatchError,
    UnresolvedReferenceError,
    ValidationError,
)
from quotegen.core.operation import FieldValue, Operation, OperationKind, RecordId
from quotegen.core.reference import (
    OperationHandle,
    PendingReference,
    ReferenceAllocator,
    ReferenceValue,
)


class BatchState(str, Enum):
    """State of a unit of work."""
    OPEN = "open"                       # Accepting registrations
    COMMIT_PENDING = "commit_pending"   # Commit request in flight
    COMMITTED = "committed"             # Every operation succeeded
    FAILED = "failed"                   # Commit failed or outcome unknown


@dataclass(frozen=True)
class RegisteredOperation:
    """An operation paired with the handle returned when it was registered."""

    handle: OperationHandle
    operation: Operation


def _now() -> datetime:
    return datetime.now(timezone.utc)


class UnitOfWork:
    """
    A batch of pending writes committed together.

    Operations keep registration order; the committer never reorders them,
    so a parent must be registered before any child that embeds its
    reference. A unit of work is consumed by exactly one commit and cannot be
    reused afterwards.

    Not safe for concurrent registration.

    Usage:
        ```python
        uow = UnitOfWork()
        quote = uow.register_create("Quote", {"Name": "New Quote"})
        uow.register_create("QuoteLineItem", {"QuoteId": quote.embed()})
        result = await committer.commit(uow, context)
        quote_id = result[quote].id
        ```
    """

    def __init__(self, batch_id: Optional[str] = None):
        self.batch_id = batch_id or str(uuid.uuid4())
        self.state = BatchState.OPEN
        self.created_at = _now()
        self.updated_at = self.created_at
        self.committed_at: Optional[datetime] = None
        self.error_message: Optional[str] = None

        self._allocator = ReferenceAllocator(self.batch_id)
        self._entries: List[RegisteredOperation] = []
        self._created: Dict[str, PendingReference] = {}

    # Reference resolution

    def create_reference(self, record_type: str) -> PendingReference:
        """
        Allocate a reference before registering the create it stands for.

        Pass it as ``reference`` to ``register_create``. Until that create is
        registered, embedding the reference elsewhere is a forward reference
        and is rejected.
        """
        return self._allocator.create_reference(record_type)

    def embed(self, reference: PendingReference) -> ReferenceValue:
        """Embed a reference from this batch as a field value."""
        return self._allocator.embed(reference)

    # Registration

    def register(self, operation: Operation) -> OperationHandle:
        """
        Append an operation to the batch.

        Args:
            operation: The operation to queue

        Returns:
            A PendingReference for creates, an OperationHandle otherwise

        Raises:
            BatchAlreadyCommittedError: If the batch is no longer open
            UnresolvedReferenceError: If the operation embeds a reference
                from another batch or one whose create is not yet registered
        """
        if self.state != BatchState.OPEN:
            raise BatchAlreadyCommittedError(
                f"Batch {self.batch_id} is {self.state.value}; registration is closed"
            )

        self._check_references(operation, self._created)

        if operation.kind == OperationKind.CREATE:
            handle = operation.reference
            if handle is None:
                handle = self._allocator.create_reference(operation.record_type)
            else:
                self._allocator.check_owned(handle)
                if handle.token in self._created:
                    raise ValidationError(
                        f"Reference {handle.token} is already bound to a create operation"
                    )
            self._created[handle.token] = handle
        else:
            handle = self._allocator.create_handle(operation.record_type)

        self._entries.append(RegisteredOperation(handle=handle, operation=operation))
        self.updated_at = _now()
        return handle

    def _check_references(self, operation: Operation, created: Container[str]) -> None:
        """Check every reference the operation embeds was issued here and created before it."""
        for reference in operation.embedded_references():
            self._allocator.check_owned(reference)
            if reference.token not in created:
                raise UnresolvedReferenceError(
                    f"Reference {reference.token} is used before its create "
                    f"operation is registered"
                )

    def register_create(
        self,
        record_type: str,
        fields: Optional[Dict[str, FieldValue]] = None,
        reference: Optional[PendingReference] = None,
    ) -> PendingReference:
        """Register a create and get the reference for the new record."""
        return self.register(Operation.create(record_type, fields, reference=reference))

    def register_update(
        self,
        record_type: str,
        record_id: RecordId,
        fields: Dict[str, FieldValue],
    ) -> OperationHandle:
        """Register an update of an existing or earlier-created record."""
        return self.register(Operation.update(record_type, record_id, fields))

    def register_delete(self, record_type: str, record_id: RecordId) -> OperationHandle:
        """Register a delete of an existing or earlier-created record."""
        return self.register(Operation.delete(record_type, record_id))

    # Validation

    def validate(self, max_operations: int) -> None:
        """
        Check the batch can be committed. Makes no network call.

        Raises:
            BatchAlreadyCommittedError: If the batch has left OPEN
            EmptyBatchError: If no operations are registered
            BatchTooLargeError: If the batch exceeds ``max_operations``
            ValidationError: If an operation was changed after registration
                and no longer holds
            UnresolvedReferenceError: If an operation now embeds a reference
                from another batch or one not created before it
        """
        if self.state != BatchState.OPEN:
            raise BatchAlreadyCommittedError(
                f"Batch {self.batch_id} is {self.state.value} and cannot be committed again"
            )
        if self.is_empty:
            raise EmptyBatchError(f"Batch {self.batch_id} has no operations")
        if self.size > max_operations:
            raise BatchTooLargeError(self.size, max_operations)

        created: Set[str] = set()
        for entry in self._entries:
            entry.operation.validate()
            self._check_references(entry.operation, created)
            if entry.operation.kind == OperationKind.CREATE:
                created.add(entry.handle.token)

    # State transitions

    def mark_commit_pending(self) -> None:
        """Close registration; the commit request is about to be sent."""
        if self.state != BatchState.OPEN:
            raise BatchAlreadyCommittedError(
                f"Batch {self.batch_id} is {self.state.value} and cannot be committed again"
            )
        self.state = BatchState.COMMIT_PENDING
        self.updated_at = _now()

    def mark_committed(self) -> None:
        """Mark batch as committed."""
        self.state = BatchState.COMMITTED
        self.committed_at = _now()
        self.updated_at = self.committed_at

    def mark_failed(self, error: str) -> None:
        """Mark batch as failed."""
        self.state = BatchState.FAILED
        self.error_message = error
        self.updated_at = _now()

    # Accessors

    @property
    def entries(self) -> List[RegisteredOperation]:
        """Registered operations, in registration order."""
        return list(self._entries)

    @property
    def operations(self) -> List[Operation]:
        return [entry.operation for entry in self._entries]

    @property
    def handles(self) -> List[OperationHandle]:
        return [entry.handle for entry in self._entries]

    @property
    def size(self) -> int:
        """Get the number of operations in this batch."""
        return len(self._entries)

    @property
    def is_empty(self) -> bool:
        return not self._entries

    @property
    def is_open(self) -> bool:
        return self.state == BatchState.OPEN

    def __len__(self) -> int:
        return self.size

    def to_dict(self) -> dict:
        """Convert to dictionary for logging and debugging."""
        return {
            "batch_id": self.batch_id,
            "state": self.state.value,
            "size": self.size,
            "created_at": self.created_at.isoformat(),
            "updated_at": self.updated_at.isoformat(),
            "committed_at": self.committed_at.isoformat() if self.committed_at else None,
            "error_message": self.error_message,
            "operations": [
                {
                    "handle": entry.handle.token,
                    "kind": entry.operation.kind.value,
                    "record_type": entry.operation.record_type,
                }
                for entry in self._entries
            ],
        }

    def __repr__(self) -> str:
        return f"UnitOfWork(id={self.batch_id[:8]}..., state={self.state.value}, size={self.size})"
