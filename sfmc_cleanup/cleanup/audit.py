"""Audit storage for deletion operations.

Stores and retrieves audit logs in YAML format for compliance and troubleshooting.
"""

from __future__ import annotations

import logging
import uuid
from datetime import datetime
from pathlib import Path
from typing import Any, Optional

import yaml

from ..models.deletion_operation import DeletionOperation
from ..models.deletion_record import DeletionRecord, DeletionStatus
from ..utils.dates import parse_timestamp, utcnow

logger = logging.getLogger(__name__)


def _iso(value: Optional[datetime]) -> Optional[str]:
    return value.isoformat() if value else None


class AuditStorage:
    """Audit log storage and retrieval.

    Stores deletion operation audit logs as YAML files organized by year/month.
    Supports querying operations by date range and retrieving detailed operation logs.

    Storage structure:
        ~/.sfmc-cleanup/audit/
            2026/
                01/
                    operation-op_20260105_101500_ab12cd34.yaml

    Attributes:
        storage_dir: Base directory for audit logs
    """

    def __init__(self, storage_dir: Optional[str] = None) -> None:
        """Initialize audit storage.

        Args:
            storage_dir: Base directory for audit logs (default: ~/.sfmc-cleanup/audit)
        """
        if storage_dir is None:
            storage_dir = str(Path.home() / ".sfmc-cleanup" / "audit")

        self.storage_dir = Path(storage_dir)
        self.storage_dir.mkdir(parents=True, exist_ok=True)

    def log_operation(
        self,
        operation: DeletionOperation,
        records: list[DeletionRecord],
        pre_execution: Optional[dict[str, Any]] = None,
    ) -> Path:
        """Write the audit log of an operation.

        A resumed run rewrites the log of the operation it resumes; its
        AuditLog has already carried the earlier records over.

        Args:
            operation: Deletion operation to log
            records: Deletion records of this operation
            pre_execution: Candidate counts captured before execution started

        Returns:
            Path of the written audit file
        """
        year_month_dir = self.storage_dir / str(operation.timestamp.year) / f"{operation.timestamp.month:02d}"
        year_month_dir.mkdir(parents=True, exist_ok=True)

        audit_data = {
            "metadata": {
                "version": "1.0",
                "log_type": "resource_deletion",
                "created_at": utcnow().isoformat(),
            },
            "operation": {
                "operation_id": operation.operation_id,
                "target_folder": operation.target_folder,
                "tenant_id": operation.tenant_id,
                "resource_kind": operation.resource_kind,
                "timestamp": _iso(operation.timestamp),
                "mode": operation.mode.value,
                "status": operation.status.value,
                "exit_code": operation.exit_code,
                "options": operation.options,
                "pre_execution": pre_execution or {},
                "total_resources": operation.total_resources,
                "succeeded_count": operation.succeeded_count,
                "failed_count": operation.failed_count,
                "skipped_count": operation.skipped_count,
                "started_at": _iso(operation.started_at),
                "completed_at": _iso(operation.completed_at),
                "duration_seconds": operation.duration_seconds,
            },
            "records": [record.to_dict() for record in records],
        }

        audit_file = year_month_dir / f"operation-{operation.operation_id}.yaml"
        with open(audit_file, "w") as f:
            yaml.dump(audit_data, f, default_flow_style=False, sort_keys=False)

        logger.info(f"Audit log saved: {audit_file}")
        return audit_file

    def get_operation(self, operation_id: str) -> Optional[dict]:
        """Retrieve operation audit log by ID.

        Args:
            operation_id: Operation ID to retrieve

        Returns:
            Audit log dictionary if found, None otherwise
        """
        for audit_file in self.storage_dir.glob(f"*/*/operation-{operation_id}.yaml"):
            with open(audit_file, "r") as f:
                return yaml.safe_load(f)

        return None

    def query_operations(self, since: Optional[datetime] = None, until: Optional[datetime] = None) -> list[dict]:
        """Query operations within date range.

        Args:
            since: Start date (inclusive), None for all
            until: End date (inclusive), None for all

        Returns:
            List of operation audit logs matching criteria, oldest first
        """
        since = parse_timestamp(since)
        until = parse_timestamp(until)
        results = []

        for year_dir in sorted(self.storage_dir.glob("*")):
            if not year_dir.is_dir():
                continue

            for month_dir in sorted(year_dir.glob("*")):
                if not month_dir.is_dir():
                    continue

                for audit_file in sorted(month_dir.glob("operation-*.yaml")):
                    with open(audit_file, "r") as f:
                        audit_data = yaml.safe_load(f)

                    timestamp = parse_timestamp(audit_data["operation"]["timestamp"])
                    if timestamp is None:
                        continue

                    if since and timestamp < since:
                        continue
                    if until and timestamp > until:
                        continue

                    results.append(audit_data)

        results.sort(key=lambda data: parse_timestamp(data["operation"]["timestamp"]))
        return results


class AuditLog:
    """Append-only record of one operation, persisted once at the end.

    Attributes:
        storage: Where the log is written
        operation: Operation being recorded
        records: Outcomes in the order they happened
        pre_execution: Candidate counts captured before execution
    """

    def __init__(self, storage: AuditStorage, operation: DeletionOperation) -> None:
        self.storage = storage
        self.operation = operation
        self.records: list[DeletionRecord] = []
        self.pre_execution: dict[str, Any] = {}
        self.carried_count = 0

    def set_pre_execution(self, **counts: Any) -> None:
        self.pre_execution.update(counts)

    def carry_over(self, previous: dict[str, Any]) -> int:
        """Adopt the outcomes logged by an earlier part of the same operation.

        Succeeded and failed records are kept ahead of anything this run
        appends, with their counts. Skipped records are dropped since a
        resumed run evaluates protection again. The original timestamp is
        kept so the log stays in the same year/month directory.

        Args:
            previous: Audit log of the interrupted run, as returned by
                AuditStorage.get_operation

        Returns:
            Number of records carried over
        """
        timestamp = parse_timestamp(previous.get("operation", {}).get("timestamp"))
        if timestamp is not None:
            self.operation.timestamp = timestamp

        for data in previous.get("records") or []:
            record = DeletionRecord.from_dict(data, self.operation.operation_id)
            if record.status == DeletionStatus.SUCCEEDED:
                self.operation.succeeded_count += 1
            elif record.status == DeletionStatus.FAILED:
                self.operation.failed_count += 1
            else:
                continue
            self.records.append(record)
            self.carried_count += 1

        return self.carried_count

    def append_success(
        self,
        resource_key: str,
        resource_name: str,
        resource_type: str,
        row_count: Optional[int] = None,
        parent_folder: Optional[str] = None,
    ) -> DeletionRecord:
        self.operation.succeeded_count += 1
        return self._append(
            resource_key,
            resource_name,
            resource_type,
            DeletionStatus.SUCCEEDED,
            row_count=row_count,
            parent_folder=parent_folder,
        )

    def append_failure(
        self,
        resource_key: str,
        resource_name: str,
        resource_type: str,
        error: str,
        parent_folder: Optional[str] = None,
    ) -> DeletionRecord:
        self.operation.failed_count += 1
        return self._append(
            resource_key,
            resource_name,
            resource_type,
            DeletionStatus.FAILED,
            error_message=error or "Unknown error",
            parent_folder=parent_folder,
        )

    def append_skipped(
        self,
        resource_key: str,
        resource_name: str,
        resource_type: str,
        reason: str,
        parent_folder: Optional[str] = None,
    ) -> DeletionRecord:
        self.operation.skipped_count += 1
        return self._append(
            resource_key,
            resource_name,
            resource_type,
            DeletionStatus.SKIPPED,
            protection_reason=reason or "Protected",
            parent_folder=parent_folder,
        )

    def save(self, exit_code: int) -> Path:
        """Tag the operation with its exit code and write the log."""
        self.operation.exit_code = int(exit_code)
        if self.operation.completed_at is None:
            self.operation.completed_at = utcnow()
        return self.storage.log_operation(self.operation, self.records, self.pre_execution)

    def _append(
        self,
        resource_key: str,
        resource_name: str,
        resource_type: str,
        status: DeletionStatus,
        **details: Any,
    ) -> DeletionRecord:
        record = DeletionRecord(
            record_id=f"rec_{uuid.uuid4().hex[:12]}",
            operation_id=self.operation.operation_id,
            resource_key=str(resource_key),
            resource_name=resource_name,
            resource_type=resource_type,
            timestamp=utcnow(),
            status=status,
            **details,
        )
        record.validate()
        self.records.append(record)
        return record
