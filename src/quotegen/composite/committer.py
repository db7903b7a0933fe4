"""
Unit-of-Work Committer.

Validates a unit of work, sends it to the record store as one atomic
composite request and correlates the per-operation results back to the
handles returned at registration.
"""

import asyncio
from typing import Any, Dict, List, Optional

import structlog

from quotegen.config import AppConfig, get_config
from quotegen.context import ClientContext
from quotegen.composite.builder import CompositeRequestBuilder
from quotegen.core.errors import ProtocolError
from quotegen.core.operation import OperationKind
from quotegen.core.reference import PendingReference
from quotegen.core.result import CommitResult, OperationResult, RecordError
from quotegen.core.unit_of_work import UnitOfWork
from quotegen.store.interface import RecordStore

logger = structlog.get_logger(__name__)


def parse_subresponse_errors(body: Any) -> List[RecordError]:
    """Parse the error body of a failed subrequest."""
    if body is None:
        return [RecordError(error_code="UNKNOWN_ERROR", message="No error detail returned")]
    if isinstance(body, dict):
        body = body.get("errors") or [body]
    if not isinstance(body, list):
        return [RecordError.from_dict(body)]
    return [RecordError.from_dict(item) for item in body]


class UnitOfWorkCommitter:
    """
    Commits units of work against a record store.

    Performs no retries. A commit that fails in transit leaves the batch
    FAILED with an unknown outcome; resubmitting is the caller's decision.

    Usage:
        ```python
        committer = UnitOfWorkCommitter(store)
        result = await committer.commit(uow, context)
        result.raise_for_errors()
        ```
    """

    def __init__(
        self,
        store: RecordStore,
        config: Optional[AppConfig] = None,
        builder: Optional[CompositeRequestBuilder] = None,
    ):
        """
        Initialize the committer.

        Args:
            store: Record store that executes composite requests
            config: Application configuration
            builder: Custom composite request builder
        """
        self.store = store
        self.config = config or get_config()
        self.builder = builder or CompositeRequestBuilder()

    async def commit(self, unit_of_work: UnitOfWork, context: ClientContext) -> CommitResult:
        """
        Commit a unit of work in one round trip.

        Args:
            unit_of_work: The batch to commit; it is consumed by this call
            context: Request credentials

        Returns:
            CommitResult with exactly one entry per registered operation

        Raises:
            ValidationError: If the batch is reused, empty or too large
                (raised before any network call)
            TransportError: If the round trip fails; the outcome is unknown
            BackingStoreError: If the store rejects the whole request
            ProtocolError: If the response does not account for every operation
        """
        unit_of_work.validate(self.config.max_batch_operations)

        payload = self.builder.build(unit_of_work, self.store.data_path(context))
        unit_of_work.mark_commit_pending()

        log = logger.bind(batch_id=unit_of_work.batch_id, **context.log_context())
        log.info("commit_started", operations=unit_of_work.size)

        try:
            response = await self.store.submit_composite(payload, context)
            result = self.correlate(unit_of_work, response)
        except asyncio.CancelledError:
            unit_of_work.mark_failed("Commit cancelled; outcome unknown")
            log.warning("commit_cancelled")
            raise
        except Exception as e:
            unit_of_work.mark_failed(str(e))
            log.error("commit_failed", error_type=type(e).__name__, error=str(e))
            raise

        if result.ok:
            unit_of_work.mark_committed()
            log.info("commit_succeeded", operations=len(result))
        else:
            unit_of_work.mark_failed(result.error_summary())
            log.warning(
                "commit_rejected",
                succeeded=len(result.successes),
                failed=len(result.failures),
                errors=result.error_summary(),
            )
        return result

    def correlate(self, unit_of_work: UnitOfWork, response: Dict[str, Any]) -> CommitResult:
        """
        Match composite subresponses to the batch's handles.

        Args:
            unit_of_work: The committed batch
            response: Decoded composite response body

        Returns:
            CommitResult in registration order

        Raises:
            ProtocolError: If a subresponse is missing, duplicated or unknown
        """
        entries = response.get("compositeResponse") if isinstance(response, dict) else None
        if not isinstance(entries, list):
            raise ProtocolError("Composite response has no compositeResponse list")

        by_reference: Dict[str, Dict[str, Any]] = {}
        for item in entries:
            reference_id = item.get("referenceId") if isinstance(item, dict) else None
            if not reference_id:
                raise ProtocolError("Composite subresponse without referenceId")
            if reference_id in by_reference:
                raise ProtocolError(f"Duplicate composite subresponse for {reference_id}")
            by_reference[reference_id] = item

        expected = {handle.token for handle in unit_of_work.handles}
        unknown = sorted(set(by_reference) - expected)
        if unknown:
            raise ProtocolError(f"Composite response has unknown references: {', '.join(unknown)}")

        resolved: Dict[str, str] = {}
        results: List[OperationResult] = []

        for entry in unit_of_work.entries:
            token = entry.handle.token
            item = by_reference.get(token)
            if item is None:
                raise ProtocolError(f"Composite response has no result for {token}")

            try:
                status = int(item.get("httpStatusCode"))
            except (TypeError, ValueError):
                raise ProtocolError(f"Composite subresponse for {token} has no status code")

            body = item.get("body")
            if not 200 <= status < 300:
                results.append(OperationResult(
                    handle=entry.handle,
                    success=False,
                    errors=parse_subresponse_errors(body),
                    status_code=status,
                ))
                continue

            record_id = body.get("id") if isinstance(body, dict) else None
            if record_id is None and entry.operation.kind != OperationKind.CREATE:
                target = entry.operation.record_id
                if isinstance(target, PendingReference):
                    record_id = resolved.get(target.token)
                else:
                    record_id = target
            if not record_id:
                raise ProtocolError(f"Successful subresponse for {token} has no record id")

            resolved[token] = record_id
            results.append(OperationResult(
                handle=entry.handle,
                success=True,
                id=record_id,
                status_code=status,
            ))

        return CommitResult(unit_of_work.batch_id, results)
