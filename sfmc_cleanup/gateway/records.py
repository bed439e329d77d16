"""Typed records for raw gateway payloads.

Gateway implementations return SOAP/REST objects as plain dictionaries. Each
record parses one payload at the boundary: identity fields are required and
everything else is defaulted, so untyped objects never travel further inward.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Optional


def _nested(payload: dict[str, Any], parent: str, child: str) -> Any:
    """Read ``parent.child`` from either a nested dict or a dotted key."""
    value = payload.get(parent)
    if isinstance(value, dict) and child in value:
        return value[child]
    return payload.get(f"{parent}.{child}")


def _as_bool(value: Any) -> bool:
    if isinstance(value, bool):
        return value
    if value is None:
        return False
    return str(value).strip().lower() == "true"


def _as_int(value: Any) -> Optional[int]:
    if value is None or value == "":
        return None
    try:
        return int(value)
    except (TypeError, ValueError):
        return None


def _require(payload: dict[str, Any], key: str, record: str) -> Any:
    value = payload.get(key)
    if value is None or value == "":
        raise ValueError(f"{record} payload missing required field '{key}'")
    return value


@dataclass(frozen=True)
class RawFolder:
    """DataFolder as returned by the remote platform."""

    id: int
    name: str
    parent_id: Optional[int]
    content_type: str = ""
    description: str = ""
    customer_key: Optional[str] = None
    created_date: Optional[str] = None
    modified_date: Optional[str] = None

    @classmethod
    def from_api(cls, payload: dict[str, Any]) -> "RawFolder":
        folder_id = _as_int(_require(payload, "ID", "Folder"))
        if folder_id is None:
            raise ValueError(f"Folder payload has non-numeric ID: {payload.get('ID')!r}")

        return cls(
            id=folder_id,
            name=str(_require(payload, "Name", "Folder")),
            parent_id=_as_int(_nested(payload, "ParentFolder", "ID")),
            content_type=str(payload.get("ContentType") or ""),
            description=str(payload.get("Description") or ""),
            customer_key=payload.get("CustomerKey"),
            created_date=payload.get("CreatedDate"),
            modified_date=payload.get("ModifiedDate"),
        )


@dataclass(frozen=True)
class RawField:
    """DataExtensionField as returned by the remote platform."""

    name: str
    field_type: str = "Text"
    default_value: Optional[str] = None
    is_primary_key: bool = False
    is_required: bool = False
    max_length: Optional[int] = None
    scale: Optional[int] = None
    ordinal: int = 0

    @classmethod
    def from_api(cls, payload: dict[str, Any]) -> "RawField":
        return cls(
            name=str(_require(payload, "Name", "Field")),
            field_type=str(payload.get("FieldType") or "Text"),
            default_value=payload.get("DefaultValue") or None,
            is_primary_key=_as_bool(payload.get("IsPrimaryKey")),
            is_required=_as_bool(payload.get("IsRequired")),
            max_length=_as_int(payload.get("MaxLength")),
            scale=_as_int(payload.get("Scale")),
            ordinal=_as_int(payload.get("Ordinal")) or 0,
        )


@dataclass(frozen=True)
class RawDataExtension:
    """DataExtension as returned by the remote platform."""

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

    @classmethod
    def from_api(cls, payload: dict[str, Any]) -> "RawDataExtension":
        return cls(
            customer_key=str(_require(payload, "CustomerKey", "DataExtension")),
            name=str(_require(payload, "Name", "DataExtension")),
            folder_id=_as_int(payload.get("CategoryID")),
            object_id=payload.get("ObjectID"),
            description=str(payload.get("Description") or ""),
            is_sendable=_as_bool(payload.get("IsSendable")),
            is_testable=_as_bool(payload.get("IsTestable")),
            created_date=payload.get("CreatedDate"),
            modified_date=payload.get("ModifiedDate"),
            sendable_subscriber_field=_nested(payload, "SendableSubscriberField", "Name"),
            sendable_data_extension_field=_nested(payload, "SendableDataExtensionField", "Name"),
            retain_until=payload.get("RetainUntil") or None,
            retention_period_length=_as_int(payload.get("DataRetentionPeriodLength")),
            retention_period_unit=payload.get("DataRetentionPeriodUnitOfMeasure") or None,
            row_based_retention=_as_bool(payload.get("RowBasedRetention")),
            reset_retention_on_import=_as_bool(payload.get("ResetRetentionPeriodOnImport")),
            delete_at_end_of_retention=_as_bool(payload.get("DeleteAtEndOfRetentionPeriod")),
        )


@dataclass(frozen=True)
class RawDependency:
    """Platform object that references a data extension.

    ``referenced_by`` lists the objects that in turn use this one, e.g. the
    automations a filter activity is a step of.
    """

    type: str
    identifier: Optional[str]
    name: str
    status: Optional[str] = None
    status_id: Optional[int] = None
    last_run_time: Optional[str] = None
    modified_date: Optional[str] = None
    details: Optional[str] = None
    referenced_by: tuple["RawDependency", ...] = field(default_factory=tuple)

    @classmethod
    def from_api(cls, payload: dict[str, Any]) -> "RawDependency":
        identifier = payload.get("id") or payload.get("ObjectID")
        return cls(
            type=str(_require(payload, "type", "Dependency")),
            identifier=str(identifier) if identifier is not None else None,
            name=str(payload.get("name") or payload.get("Name") or ""),
            status=payload.get("status") or payload.get("Status"),
            status_id=_as_int(payload.get("statusId")),
            last_run_time=payload.get("lastRunTime"),
            modified_date=payload.get("modifiedDate") or payload.get("ModifiedDate"),
            details=payload.get("details"),
            referenced_by=tuple(cls.from_api(p) for p in payload.get("referencedBy") or []),
        )
