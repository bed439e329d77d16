"""Tests for DeletionOperation model.

Test coverage for status derivation and validation rules.
"""

from __future__ import annotations

from datetime import datetime, timedelta, timezone

import pytest

from sfmc_cleanup.models.deletion_operation import DeletionOperation, OperationMode, OperationStatus


def _operation(**overrides) -> DeletionOperation:
    values = dict(
        operation_id="op_20251111_153000_ab12cd34",
        target_folder="Data Extensions/Archive",
        tenant_id="100012345",
        resource_kind="data_extension",
        timestamp=datetime(2025, 11, 11, 15, 30, 0, tzinfo=timezone.utc),
        mode=OperationMode.EXECUTE,
        status=OperationStatus.EXECUTING,
        total_resources=10,
    )
    values.update(overrides)
    return DeletionOperation(**values)


class TestDeletionOperation:
    """Test suite for DeletionOperation model."""

    def test_finalize_all_succeeded(self) -> None:
        operation = _operation(succeeded_count=10)

        assert operation.finalize_status() == OperationStatus.COMPLETED
        assert operation.status == OperationStatus.COMPLETED

    def test_finalize_some_failed(self) -> None:
        operation = _operation(succeeded_count=9, failed_count=1)

        assert operation.finalize_status() == OperationStatus.PARTIAL

    def test_finalize_all_failed(self) -> None:
        operation = _operation(failed_count=10)

        assert operation.finalize_status() == OperationStatus.FAILED

    def test_processed_count_ignores_skipped(self) -> None:
        operation = _operation(succeeded_count=3, failed_count=2, skipped_count=4)

        assert operation.processed_count == 5

    def test_duration_seconds(self) -> None:
        started = datetime(2025, 11, 11, 15, 30, 0, tzinfo=timezone.utc)
        operation = _operation(started_at=started, completed_at=started + timedelta(seconds=42))

        assert operation.duration_seconds == 42.0
        assert _operation().duration_seconds is None

    def test_validate_rejects_processed_over_total(self) -> None:
        with pytest.raises(ValueError, match="exceeds total"):
            _operation(total_resources=2, succeeded_count=3).validate()

    def test_validate_rejects_completion_before_start(self) -> None:
        started = datetime(2025, 11, 11, 15, 30, 0, tzinfo=timezone.utc)
        operation = _operation(started_at=started, completed_at=started - timedelta(seconds=1))

        with pytest.raises(ValueError, match="before start"):
            operation.validate()

    def test_validate_rejects_deletions_in_dry_run(self) -> None:
        operation = _operation(mode=OperationMode.DRY_RUN, succeeded_count=1)

        with pytest.raises(ValueError, match="Dry-run"):
            operation.validate()
