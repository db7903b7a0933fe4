"""
Unit-of-work error taxonomy.

Errors are split by where they are detected and whether the outcome of the
commit is known:

- ValidationError: local, raised before any network call. Safe to retry
  after the caller corrects the batch.
- TransportError: the single commit round trip failed. The store may or may
  not have applied the transaction.
- BackingStoreError: the store processed the request and reported failure.
- ProtocolError: the store's response does not account for every operation.
"""

from typing import Any, List, Optional


class UnitOfWorkError(Exception):
    """Base class for all unit-of-work errors."""
    pass


class ValidationError(UnitOfWorkError):
    """Raised when a batch or operation is malformed. Never reaches the network."""
    pass


class EmptyBatchError(ValidationError):
    """Raised when committing a batch with no operations."""
    pass


class BatchTooLargeError(ValidationError):
    """Raised when a batch exceeds the store's operations-per-transaction limit."""

    def __init__(self, size: int, limit: int):
        super().__init__(
            f"Batch has {size} operations; the limit per transaction is {limit}"
        )
        self.size = size
        self.limit = limit


class UnresolvedReferenceError(ValidationError):
    """Raised when an operation embeds a reference its batch cannot resolve."""
    pass


class BatchAlreadyCommittedError(ValidationError):
    """Raised when registering into, or committing, a batch that has left OPEN."""
    pass


class TransportError(UnitOfWorkError):
    """
    Raised when the commit round trip fails at the transport level.

    The store may have committed the transaction before the failure was
    observed, so ``outcome_unknown`` is always True. Resubmitting the same
    operations can create duplicates.
    """

    outcome_unknown = True

    def __init__(self, message: str, cause: Optional[BaseException] = None):
        super().__init__(message)
        self.cause = cause


class BackingStoreError(UnitOfWorkError):
    """
    Raised when the store executed the request and reported failure.

    Attributes:
        errors: Store-reported error records, in the order the store sent them
        results: Per-operation commit result, when the failure came from a
            structured composite response
        status_code: HTTP status returned by the store, if any
    """

    def __init__(
        self,
        message: str,
        errors: Optional[List[Any]] = None,
        results: Optional[Any] = None,
        status_code: Optional[int] = None,
    ):
        super().__init__(message)
        self.errors = list(errors or [])
        self.results = results
        self.status_code = status_code


class StoreAuthenticationError(BackingStoreError):
    """Raised when the store rejects the request's credentials."""
    pass


class ProtocolError(UnitOfWorkError):
    """Raised when a store response cannot be correlated with the registered operations."""
    pass
