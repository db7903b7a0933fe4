"""
Commit results.

A commit result maps every handle returned by ``register`` to the outcome of
its operation. Results are keyed by token string, not by handle identity.
"""

from dataclasses import dataclass, field
from typing import Any, Dict, Iterator, List, Optional, Union

from quotegen.core.errors import BackingStoreError
from quotegen.core.reference import OperationHandle


@dataclass(frozen=True)
class RecordError:
    """Structured error reported by the store for one operation."""

    error_code: str
    message: str
    fields: List[str] = field(default_factory=list)

    @classmethod
    def from_dict(cls, data: Any) -> "RecordError":
        """Parse a store error record, tolerating loosely shaped payloads."""
        if not isinstance(data, dict):
            return cls(error_code="UNKNOWN_ERROR", message=str(data))
        return cls(
            error_code=str(data.get("errorCode") or data.get("statusCode") or "UNKNOWN_ERROR"),
            message=str(data.get("message") or ""),
            fields=list(data.get("fields") or []),
        )

    def __str__(self) -> str:
        return f"{self.error_code}: {self.message}"

    def to_dict(self) -> dict:
        return {
            "error_code": self.error_code,
            "message": self.message,
            "fields": list(self.fields),
        }


@dataclass(frozen=True)
class OperationResult:
    """
    Outcome of one operation.

    Attributes:
        handle: Handle returned when the operation was registered
        success: Whether the store applied the operation
        id: Persisted record identifier (on success)
        errors: Store-reported errors, in store order (on failure)
        status_code: Per-operation HTTP status reported by the store
    """

    handle: OperationHandle
    success: bool
    id: Optional[str] = None
    errors: List[RecordError] = field(default_factory=list)
    status_code: Optional[int] = None

    @property
    def token(self) -> str:
        return self.handle.token

    def to_dict(self) -> dict:
        if self.success:
            return {"success": True, "id": self.id}
        return {"success": False, "errors": [e.to_dict() for e in self.errors]}


HandleKey = Union[OperationHandle, str]


class CommitResult:
    """
    Mapping from handle token to operation outcome, in registration order.
    """

    def __init__(self, batch_id: str, results: List[OperationResult]):
        self.batch_id = batch_id
        self._results: Dict[str, OperationResult] = {}
        for result in results:
            self._results[result.token] = result

    @staticmethod
    def _key(handle: HandleKey) -> str:
        return handle.token if isinstance(handle, OperationHandle) else handle

    def __getitem__(self, handle: HandleKey) -> OperationResult:
        return self._results[self._key(handle)]

    def __contains__(self, handle: HandleKey) -> bool:
        return self._key(handle) in self._results

    def __iter__(self) -> Iterator[str]:
        return iter(self._results)

    def __len__(self) -> int:
        return len(self._results)

    def get(self, handle: HandleKey) -> Optional[OperationResult]:
        """Get the result for a handle or token, if present."""
        return self._results.get(self._key(handle))

    def values(self) -> List[OperationResult]:
        return list(self._results.values())

    @property
    def successes(self) -> List[OperationResult]:
        return [r for r in self._results.values() if r.success]

    @property
    def failures(self) -> List[OperationResult]:
        return [r for r in self._results.values() if not r.success]

    @property
    def ok(self) -> bool:
        """True when every operation succeeded."""
        return not self.failures

    def error_summary(self) -> str:
        """Join every reported error as ``CODE: message``."""
        return "; ".join(str(e) for r in self.failures for e in r.errors)

    def raise_for_errors(self) -> None:
        """
        Raise if any operation failed.

        Raises:
            BackingStoreError: Carrying every reported error and this result
        """
        failures = self.failures
        if not failures:
            return
        errors = [e for r in failures for e in r.errors]
        raise BackingStoreError(
            self.error_summary() or f"{len(failures)} operation(s) failed",
            errors=errors,
            results=self,
        )

    def to_dict(self) -> dict:
        return {token: r.to_dict() for token, r in self._results.items()}

    def __repr__(self) -> str:
        return (
            f"CommitResult(batch={self.batch_id[:8]}..., "
            f"ok={len(self.successes)}, failed={len(self.failures)})"
        )
