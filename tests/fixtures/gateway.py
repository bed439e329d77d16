"""In-memory gateway and payload builders for testing."""

from __future__ import annotations

import threading
import time
from collections import Counter
from typing import Any, Dict, List, Optional

from sfmc_cleanup.errors import GatewayError
from sfmc_cleanup.gateway.base import DeleteResult, RemoteGateway
from sfmc_cleanup.gateway.records import RawDataExtension, RawDependency, RawField, RawFolder

TENANT_ID = "100012345"


def folder_payload(folder_id: int, name: str, parent_id: Optional[int] = None) -> Dict[str, Any]:
    """Create a DataFolder payload as returned by the SOAP API."""
    return {
        "ID": str(folder_id),
        "Name": name,
        "ParentFolder": {"ID": str(parent_id or 0)},
        "ContentType": "dataextension",
    }


def de_payload(
    customer_key: str,
    name: Optional[str] = None,
    folder_id: int = 2,
    modified_date: str = "2024-01-15T10:00:00",
    created_date: str = "2023-06-01T10:00:00",
    **extra: Any,
) -> Dict[str, Any]:
    """Create a DataExtension payload as returned by the SOAP API."""
    payload = {
        "CustomerKey": customer_key,
        "Name": name or customer_key,
        "CategoryID": str(folder_id),
        "CreatedDate": created_date,
        "ModifiedDate": modified_date,
        "IsSendable": "false",
    }
    payload.update(extra)
    return payload


def field_payload(name: str, ordinal: int = 0, primary_key: bool = False) -> Dict[str, Any]:
    return {
        "Name": name,
        "FieldType": "Text",
        "IsPrimaryKey": "true" if primary_key else "false",
        "IsRequired": "true" if primary_key else "false",
        "MaxLength": "254",
        "Ordinal": str(ordinal),
    }


def dependency_payload(
    dep_type: str,
    identifier: str,
    name: str,
    last_run_time: Optional[str] = None,
    status: Optional[str] = None,
    status_id: Optional[int] = None,
    referenced_by: Optional[List[Dict[str, Any]]] = None,
) -> Dict[str, Any]:
    payload: Dict[str, Any] = {"type": dep_type, "id": identifier, "name": name}
    if last_run_time:
        payload["lastRunTime"] = last_run_time
    if status:
        payload["status"] = status
    if status_id is not None:
        payload["statusId"] = status_id
    if referenced_by:
        payload["referencedBy"] = referenced_by
    return payload


class FakeGateway(RemoteGateway):
    """Gateway backed by dictionaries.

    Counts calls per endpoint in ``calls`` and can be told to fail specific
    deletes, either with an unsuccessful result (``delete_failures``) or by
    raising (``delete_errors``).
    """

    def __init__(
        self,
        folders: Optional[List[Dict[str, Any]]] = None,
        data_extensions: Optional[List[Dict[str, Any]]] = None,
        tenant_id: str = TENANT_ID,
    ) -> None:
        self.tenant_id = tenant_id
        self.folders: List[Dict[str, Any]] = list(folders or [])
        self.data_extensions: List[Dict[str, Any]] = list(data_extensions or [])
        self.fields: Dict[str, List[Dict[str, Any]]] = {}
        self.row_counts: Dict[str, int] = {}
        self.dependents: Dict[str, List[Dict[str, Any]]] = {}
        self.delete_failures: Dict[str, str] = {}
        self.delete_errors: Dict[str, Exception] = {}
        self.dependency_errors: Dict[str, Exception] = {}
        self.connection_error: Optional[Exception] = None
        self.list_folders_delay = 0.0
        self.list_dependents_delay = 0.0
        self.on_delete = None
        self.calls: Counter = Counter()
        self.deleted_data_extensions: List[str] = []
        self.deleted_folders: List[int] = []
        self._lock = threading.Lock()

    def _count(self, endpoint: str) -> None:
        with self._lock:
            self.calls[endpoint] += 1

    @property
    def delete_calls(self) -> int:
        return self.calls["delete_data_extension"] + self.calls["delete_folder"]

    def test_connection(self) -> None:
        self._count("test_connection")
        if self.connection_error:
            raise self.connection_error

    def list_folders(self, content_type: str = "dataextension") -> List[RawFolder]:
        self._count("list_folders")
        if self.list_folders_delay:
            time.sleep(self.list_folders_delay)
        return [RawFolder.from_api(p) for p in self.folders if p.get("ContentType", content_type) == content_type]

    def list_data_extensions(self, folder_id: int) -> List[RawDataExtension]:
        self._count("list_data_extensions")
        return [RawDataExtension.from_api(p) for p in self.data_extensions if int(p["CategoryID"]) == int(folder_id)]

    def get_data_extension(self, customer_key: str) -> Optional[RawDataExtension]:
        self._count("get_data_extension")
        for payload in self.data_extensions:
            if payload["CustomerKey"] == customer_key:
                return RawDataExtension.from_api(payload)
        return None

    def get_fields(self, customer_key: str) -> List[RawField]:
        self._count("get_fields")
        return [RawField.from_api(p) for p in self.fields.get(customer_key, [])]

    def get_row_count(self, customer_key: str) -> Optional[int]:
        self._count("get_row_count")
        return self.row_counts.get(customer_key)

    def delete_folder(self, folder_id: int) -> DeleteResult:
        self._count("delete_folder")
        key = f"folder:{folder_id}"
        if self.on_delete:
            self.on_delete(key)
        if key in self.delete_errors:
            raise self.delete_errors[key]
        if key in self.delete_failures:
            return DeleteResult(success=False, error=self.delete_failures[key])

        has_children = any(int(p["ParentFolder"]["ID"]) == int(folder_id) for p in self.folders)
        has_content = any(int(p["CategoryID"]) == int(folder_id) for p in self.data_extensions)
        if has_children or has_content:
            return DeleteResult(success=False, error="Folder is not empty")

        self.folders = [p for p in self.folders if int(p["ID"]) != int(folder_id)]
        self.deleted_folders.append(int(folder_id))
        return DeleteResult(success=True)

    def delete_data_extension(self, customer_key: str) -> DeleteResult:
        self._count("delete_data_extension")
        if self.on_delete:
            self.on_delete(customer_key)
        if customer_key in self.delete_errors:
            raise self.delete_errors[customer_key]
        if customer_key in self.delete_failures:
            return DeleteResult(success=False, error=self.delete_failures[customer_key])

        self.data_extensions = [p for p in self.data_extensions if p["CustomerKey"] != customer_key]
        self.deleted_data_extensions.append(customer_key)
        return DeleteResult(success=True)

    def list_dependents(self, customer_key: str) -> List[RawDependency]:
        self._count("list_dependents")
        if self.list_dependents_delay:
            time.sleep(self.list_dependents_delay)
        if customer_key in self.dependency_errors:
            raise self.dependency_errors[customer_key]
        return [RawDependency.from_api(p) for p in self.dependents.get(customer_key, [])]


def create_sample_gateway() -> FakeGateway:
    """Gateway with a small folder tree.

    Tree:
        Data Extensions (1)
            Archive (2)
                2023 (3)
                    Q1 (4)
            System Data (5)
        Shared Data Extensions (6)

    Archive holds three data extensions, 2023 one, Q1 one and System Data one.
    """
    folders = [
        folder_payload(1, "Data Extensions"),
        folder_payload(2, "Archive", 1),
        folder_payload(3, "2023", 2),
        folder_payload(4, "Q1", 3),
        folder_payload(5, "System Data", 1),
        folder_payload(6, "Shared Data Extensions"),
    ]
    data_extensions = [
        de_payload("Campaign_Jan", "Campaign Jan", folder_id=2),
        de_payload("Campaign_Feb", "Campaign Feb", folder_id=2),
        de_payload("Newsletter_Old", "Newsletter Old", folder_id=2, modified_date="2022-02-01T09:00:00"),
        de_payload("Promo_2023", "Promo 2023", folder_id=3),
        de_payload("Promo_Q1", "Promo Q1", folder_id=4),
        de_payload("Settings", "Settings", folder_id=5),
    ]
    gateway = FakeGateway(folders=folders, data_extensions=data_extensions)
    gateway.fields = {
        "Campaign_Jan": [field_payload("SubscriberKey", 0, primary_key=True), field_payload("EmailAddress", 1)],
        "Campaign_Feb": [field_payload("SubscriberKey", 0, primary_key=True)],
    }
    gateway.row_counts = {"Campaign_Jan": 120, "Campaign_Feb": 80, "Newsletter_Old": 0}
    return gateway


def gateway_factory(config) -> FakeGateway:
    """Factory usable as ``SFMC_GATEWAY_FACTORY=tests.fixtures.gateway:gateway_factory``."""
    return create_sample_gateway()
