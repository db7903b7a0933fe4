"""
Composite Request Builder - serializes a unit of work.

Turns the registered operations of a unit of work into one Salesforce
composite request. Every subrequest is tagged with its handle token as
``referenceId``; embedded pending references become ``@{token.id}`` so the
store resolves them inside the transaction.
"""

from dataclasses import dataclass
from decimal import Decimal
from typing import Any, Dict, List, Optional

from quotegen.core.operation import FieldValue, Operation, OperationKind
from quotegen.core.reference import PendingReference, ReferenceValue
from quotegen.core.unit_of_work import UnitOfWork

_METHODS = {
    OperationKind.CREATE: "POST",
    OperationKind.UPDATE: "PATCH",
    OperationKind.DELETE: "DELETE",
}


def reference_expression(reference: PendingReference) -> str:
    """Get the store's cross-reference syntax for a pending reference."""
    return f"@{{{reference.token}.id}}"


def serialize_value(value: FieldValue) -> Any:
    """Convert a field value to its wire form."""
    if isinstance(value, ReferenceValue):
        return reference_expression(value.reference)
    if isinstance(value, Decimal):
        return float(value)
    return value


@dataclass
class CompositeSubrequest:
    """One subrequest of a composite request."""

    method: str
    url: str
    reference_id: str
    body: Optional[Dict[str, Any]] = None

    def to_dict(self) -> Dict[str, Any]:
        data = {
            "method": self.method,
            "url": self.url,
            "referenceId": self.reference_id,
        }
        if self.body is not None:
            data["body"] = self.body
        return data


class CompositeRequestBuilder:
    """
    Builds composite request payloads.

    The builder never reorders operations: subrequests appear in
    registration order, which the store executes sequentially.
    """

    def __init__(self, all_or_none: bool = True):
        """
        Initialize the builder.

        Args:
            all_or_none: Ask the store to roll back every subrequest when
                any of them fails
        """
        self.all_or_none = all_or_none

    def build_subrequest(
        self,
        token: str,
        operation: Operation,
        data_path: str,
    ) -> CompositeSubrequest:
        """
        Build the subrequest for a single operation.

        Args:
            token: Handle token of the operation
            operation: The operation to serialize
            data_path: Versioned Data API path, e.g. /services/data/v62.0

        Returns:
            CompositeSubrequest for the operation
        """
        url = f"{data_path}/sobjects/{operation.record_type}"

        if operation.kind != OperationKind.CREATE:
            record_id = operation.record_id
            if isinstance(record_id, PendingReference):
                record_id = reference_expression(record_id)
            url = f"{url}/{record_id}"

        body = None
        if operation.kind != OperationKind.DELETE:
            body = {name: serialize_value(value) for name, value in operation.fields.items()}

        return CompositeSubrequest(
            method=_METHODS[operation.kind],
            url=url,
            reference_id=token,
            body=body,
        )

    def build(self, unit_of_work: UnitOfWork, data_path: str) -> Dict[str, Any]:
        """
        Build the composite request body for a unit of work.

        Args:
            unit_of_work: The batch to serialize
            data_path: Versioned Data API path

        Returns:
            Composite request body
        """
        subrequests: List[CompositeSubrequest] = [
            self.build_subrequest(entry.handle.token, entry.operation, data_path)
            for entry in unit_of_work.entries
        ]
        return {
            "allOrNone": self.all_or_none,
            "compositeRequest": [s.to_dict() for s in subrequests],
        }
