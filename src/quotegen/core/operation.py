"""
Operation model.

An operation is one create, update or delete against a record type, queued in
a unit of work until commit.
"""

import math
from dataclasses import dataclass, field
from decimal import Decimal
from enum import Enum
from typing import Dict, List, Optional, Union

from quotegen.core.errors import ValidationError
from quotegen.core.reference import (
    REFERENCE_EXPRESSION,
    PendingReference,
    ReferenceValue,
    validate_record_id,
    validate_record_type,
)

Scalar = Union[str, int, float, Decimal, bool, None]
FieldValue = Union[Scalar, ReferenceValue]
RecordId = Union[str, PendingReference]

_SCALAR_TYPES = (str, int, float, Decimal, bool)


class OperationKind(str, Enum):
    """Kinds of write operation."""
    CREATE = "create"
    UPDATE = "update"
    DELETE = "delete"


def normalize_field_value(name: str, value) -> FieldValue:
    """
    Check a field value against the supported kinds.

    Bare pending references are embedded; anything outside the scalar kinds
    is rejected so nothing unserializable reaches the store.
    """
    if isinstance(value, PendingReference):
        return value.embed()
    if value is None or isinstance(value, ReferenceValue):
        return value
    if not isinstance(value, _SCALAR_TYPES):
        raise ValidationError(
            f"Field {name!r} has unsupported value type {type(value).__name__}"
        )
    if isinstance(value, str) and REFERENCE_EXPRESSION.match(value):
        raise ValidationError(
            f"Field {name!r} holds a literal reference expression; embed a PendingReference instead"
        )
    if isinstance(value, float) and not math.isfinite(value):
        raise ValidationError(f"Field {name!r} is not a finite number")
    return value


@dataclass
class Operation:
    """
    A single write queued in a unit of work.

    Attributes:
        kind: Create, update or delete
        record_type: Target record type, e.g. "Quote"
        fields: Field values to write; may embed pending references
        record_id: Target record for update/delete, either an existing
            identifier or a reference created earlier in the same batch
        reference: Pre-allocated reference for a create, if the caller
            needed one before registering
    """

    kind: OperationKind
    record_type: str
    fields: Dict[str, FieldValue] = field(default_factory=dict)
    record_id: Optional[RecordId] = None
    reference: Optional[PendingReference] = None

    def __post_init__(self):
        self.validate()

    def validate(self) -> None:
        """
        Validate and normalize the operation.

        Runs on construction and again when the owning batch is validated.

        Raises:
            ValidationError: If the operation is malformed
        """
        if isinstance(self.kind, str):
            self.kind = OperationKind(self.kind)
        validate_record_type(self.record_type)

        if not isinstance(self.fields, dict):
            raise ValidationError("Operation fields must be a mapping")
        self.fields = {
            name: normalize_field_value(name, value)
            for name, value in self.fields.items()
        }

        if self.kind == OperationKind.CREATE:
            if self.record_id is not None:
                raise ValidationError("Create operations cannot target a record id")
            if self.reference is not None and self.reference.record_type != self.record_type:
                raise ValidationError(
                    f"Reference {self.reference.token} stands in for "
                    f"{self.reference.record_type}, not {self.record_type}"
                )
            return

        if self.reference is not None:
            raise ValidationError(f"{self.kind.value} operations do not create a reference")
        if isinstance(self.record_id, PendingReference):
            if self.record_id.record_type != self.record_type:
                raise ValidationError(
                    f"Reference {self.record_id.token} stands in for "
                    f"{self.record_id.record_type}, not {self.record_type}"
                )
        elif not isinstance(self.record_id, str) or not self.record_id.strip():
            raise ValidationError(f"{self.kind.value} operations require a record id")
        else:
            validate_record_id(self.record_id)

        if self.kind == OperationKind.UPDATE and not self.fields:
            raise ValidationError("Update operations require at least one field")
        if self.kind == OperationKind.DELETE and self.fields:
            raise ValidationError("Delete operations cannot carry fields")

    @classmethod
    def create(
        cls,
        record_type: str,
        fields: Optional[Dict[str, FieldValue]] = None,
        reference: Optional[PendingReference] = None,
    ) -> "Operation":
        return cls(OperationKind.CREATE, record_type, dict(fields or {}), reference=reference)

    @classmethod
    def update(
        cls,
        record_type: str,
        record_id: RecordId,
        fields: Dict[str, FieldValue],
    ) -> "Operation":
        return cls(OperationKind.UPDATE, record_type, dict(fields), record_id=record_id)

    @classmethod
    def delete(cls, record_type: str, record_id: RecordId) -> "Operation":
        return cls(OperationKind.DELETE, record_type, record_id=record_id)

    def embedded_references(self) -> List[PendingReference]:
        """Get every pending reference this operation depends on."""
        refs = [
            value.reference
            for value in self.fields.values()
            if isinstance(value, ReferenceValue)
        ]
        if isinstance(self.record_id, PendingReference):
            refs.append(self.record_id)
        return refs
