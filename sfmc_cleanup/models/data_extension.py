"""Data extension models.

Data extensions are the deletable leaf resources. ``customer_key`` is the
stable identity; ``name`` is mutable and not unique.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Optional

from ..gateway.records import RawDataExtension, RawDependency, RawField
from ..safety.patterns import is_pii_field


@dataclass(frozen=True)
class Field:
    """Column of a data extension schema."""

    name: str
    field_type: str = "Text"
    default_value: Optional[str] = None
    is_primary_key: bool = False
    is_required: bool = False
    max_length: Optional[int] = None
    scale: Optional[int] = None
    ordinal: int = 0
    is_pii: bool = False

    @classmethod
    def from_raw(cls, raw: RawField) -> "Field":
        return cls(
            name=raw.name,
            field_type=raw.field_type,
            default_value=raw.default_value,
            is_primary_key=raw.is_primary_key,
            is_required=raw.is_required,
            max_length=raw.max_length,
            scale=raw.scale,
            ordinal=raw.ordinal,
            is_pii=is_pii_field(raw.name),
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "name": self.name,
            "field_type": self.field_type,
            "default_value": self.default_value,
            "is_primary_key": self.is_primary_key,
            "is_required": self.is_required,
            "max_length": self.max_length,
            "scale": self.scale,
            "ordinal": self.ordinal,
        }


@dataclass(frozen=True)
class DependencyRef:
    """Reference from another platform object into a data extension.

    Attributes:
        type: Referencing object type ("Automation", "Query Activity", ...)
        name: Referencing object name
        identifier: Referencing object ID
        status: Status text reported by the platform
        status_id: Numeric status where the platform provides one
        last_run_time: Last execution timestamp
        modified_date: Last modification timestamp
        details: Where the reference was found
        referenced_by: Objects using the referencing object (e.g. automations of a filter)
    """

    type: str
    name: str
    identifier: Optional[str] = None
    status: Optional[str] = None
    status_id: Optional[int] = None
    last_run_time: Optional[str] = None
    modified_date: Optional[str] = None
    details: Optional[str] = None
    referenced_by: tuple["DependencyRef", ...] = field(default_factory=tuple)

    @property
    def dedup_key(self) -> str:
        return f"{self.type}:{self.identifier or self.name}"

    @classmethod
    def from_raw(cls, raw: RawDependency) -> "DependencyRef":
        return cls(
            type=raw.type,
            name=raw.name,
            identifier=raw.identifier,
            status=raw.status,
            status_id=raw.status_id,
            last_run_time=raw.last_run_time,
            modified_date=raw.modified_date,
            details=raw.details,
            referenced_by=tuple(cls.from_raw(r) for r in raw.referenced_by),
        )

    def to_dict(self) -> dict[str, Any]:
        return {"type": self.type, "name": self.name, "identifier": self.identifier, "status": self.status}


@dataclass
class DataExtension:
    """Typed data container owned by a folder.

    Row count, fields and dependencies are fetched lazily and filled in by the
    services as a run progresses.
    """

    customer_key: str
    name: str
    folder_id: Optional[int]
    object_id: Optional[str] = None
    description: str = ""
    is_sendable: bool = False
    is_testable: bool = False
    created_date: Optional[str] = None
    modified_date: Optional[str] = None
    sendable_subscriber_field: Optional[str] = None
    sendable_data_extension_field: Optional[str] = None
    retain_until: Optional[str] = None
    retention_period_length: Optional[int] = None
    retention_period_unit: Optional[str] = None
    row_based_retention: bool = False
    reset_retention_on_import: bool = False
    delete_at_end_of_retention: bool = False
    is_protected: bool = False
    row_count: Optional[int] = None
    fields: list[Field] = field(default_factory=list)
    pii_fields: list[str] = field(default_factory=list)
    has_dependencies: bool = False
    dependencies: list[DependencyRef] = field(default_factory=list)
    folder_path: Optional[str] = None

    @property
    def has_pii(self) -> bool:
        return bool(self.pii_fields)

    @classmethod
    def from_raw(cls, raw: RawDataExtension, is_protected: bool = False) -> "DataExtension":
        """Map a raw gateway data extension into the normalized model."""
        return cls(
            customer_key=raw.customer_key,
            name=raw.name,
            folder_id=raw.folder_id,
            object_id=raw.object_id,
            description=raw.description,
            is_sendable=raw.is_sendable,
            is_testable=raw.is_testable,
            created_date=raw.created_date,
            modified_date=raw.modified_date,
            sendable_subscriber_field=raw.sendable_subscriber_field,
            sendable_data_extension_field=raw.sendable_data_extension_field,
            retain_until=raw.retain_until,
            retention_period_length=raw.retention_period_length,
            retention_period_unit=raw.retention_period_unit,
            row_based_retention=raw.row_based_retention,
            reset_retention_on_import=raw.reset_retention_on_import,
            delete_at_end_of_retention=raw.delete_at_end_of_retention,
            is_protected=is_protected,
        )

    def structure(self) -> dict[str, Any]:
        """Schema metadata sufficient to recreate the structure (never the rows)."""
        return {
            "customer_key": self.customer_key,
            "name": self.name,
            "description": self.description,
            "folder_id": self.folder_id,
            "is_sendable": self.is_sendable,
            "is_testable": self.is_testable,
            "sendable_subscriber_field": self.sendable_subscriber_field,
            "sendable_data_extension_field": self.sendable_data_extension_field,
            "retention": {
                "retain_until": self.retain_until,
                "period_length": self.retention_period_length,
                "period_unit": self.retention_period_unit,
                "row_based": self.row_based_retention,
                "reset_on_import": self.reset_retention_on_import,
                "delete_at_end": self.delete_at_end_of_retention,
            },
            "primary_keys": [f.name for f in self.fields if f.is_primary_key],
            "fields": [f.to_dict() for f in sorted(self.fields, key=lambda f: f.ordinal)],
        }
