"""
Pending references and operation handles.

A pending reference stands in for the identifier of a record that does not
exist yet. Operations registered later in the same batch embed it in their
field maps to express a parent/child link; the store resolves it inside the
transaction.
"""

import itertools
import re
import threading
from dataclasses import dataclass
from typing import Iterator, Union

from quotegen.core.errors import UnresolvedReferenceError, ValidationError

# Record type API names and reference tokens share this shape: the store
# accepts only letters, digits and underscores, starting with a letter.
_NAME_PATTERN = re.compile(r"^[A-Za-z][A-Za-z0-9_]*$")

# Literal record ids are placed in request paths and must be alphanumeric.
_RECORD_ID_PATTERN = re.compile(r"^[A-Za-z0-9]+$")

# Wire syntax of an embedded reference; literal strings may not take this shape.
REFERENCE_EXPRESSION = re.compile(r"^@\{\w+\.id\}$")


def validate_record_type(record_type: str) -> str:
    """Check a record type tag and return it unchanged."""
    if not isinstance(record_type, str) or not _NAME_PATTERN.match(record_type):
        raise ValidationError(f"Invalid record type: {record_type!r}")
    return record_type


def validate_record_id(record_id: str) -> str:
    """Check a literal record id and return it unchanged."""
    if not _RECORD_ID_PATTERN.match(record_id):
        raise ValidationError(f"Invalid record id: {record_id!r}")
    return record_id


@dataclass(frozen=True)
class OperationHandle:
    """
    Operation-scoped token used to read an operation's outcome after commit.

    Attributes:
        token: Opaque token, unique within the owning batch
        batch_id: ID of the batch that issued the handle
    """

    token: str
    batch_id: str

    def __str__(self) -> str:
        return self.token


@dataclass(frozen=True)
class PendingReference(OperationHandle):
    """
    Placeholder for the identifier of a record created in the same batch.

    Attributes:
        record_type: Record type the reference stands in for
    """

    record_type: str

    def embed(self) -> "ReferenceValue":
        """Get a field value that resolves to this record's identifier."""
        return ReferenceValue(self)


@dataclass(frozen=True)
class ReferenceValue:
    """Field value carrying a pending reference awaiting substitution."""

    reference: PendingReference

    @property
    def token(self) -> str:
        return self.reference.token


ReferenceLike = Union[PendingReference, ReferenceValue]


class ReferenceAllocator:
    """
    Issues tokens for one batch.

    Tokens come from a monotonic counter, so they are unique within the batch
    and meaningless outside it.
    """

    def __init__(self, batch_id: str):
        self.batch_id = batch_id
        self._counter: Iterator[int] = itertools.count()
        self._lock = threading.Lock()

    def _next(self) -> int:
        with self._lock:
            return next(self._counter)

    def create_reference(self, record_type: str) -> PendingReference:
        """
        Allocate a fresh pending reference.

        Args:
            record_type: Record type the reference stands in for

        Returns:
            New PendingReference owned by this batch
        """
        validate_record_type(record_type)
        return PendingReference(
            token=f"ref{self._next()}_{record_type}",
            batch_id=self.batch_id,
            record_type=record_type,
        )

    def create_handle(self, record_type: str) -> OperationHandle:
        """Allocate a handle for an operation that creates no new record."""
        validate_record_type(record_type)
        return OperationHandle(
            token=f"op{self._next()}_{record_type}",
            batch_id=self.batch_id,
        )

    def embed(self, reference: PendingReference) -> ReferenceValue:
        """Embed a reference issued by this allocator as a field value."""
        self.check_owned(reference)
        return ReferenceValue(reference)

    def check_owned(self, reference: ReferenceLike) -> PendingReference:
        """
        Unwrap a reference and make sure this allocator issued it.

        Raises:
            UnresolvedReferenceError: If the reference belongs to another batch
        """
        if isinstance(reference, ReferenceValue):
            reference = reference.reference
        if reference.batch_id != self.batch_id:
            raise UnresolvedReferenceError(
                f"Reference {reference.token} belongs to another batch"
            )
        return reference
