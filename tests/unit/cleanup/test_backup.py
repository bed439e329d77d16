"""Tests for schema backups and undo manifests."""

from __future__ import annotations

from pathlib import Path
from unittest.mock import patch

import pytest
import yaml

from sfmc_cleanup.cleanup.backup import BackupStorage
from sfmc_cleanup.models.data_extension import DataExtension, Field
from sfmc_cleanup.models.folder import Folder


@pytest.fixture
def storage(tmp_path: Path) -> BackupStorage:
    return BackupStorage(backup_dir=str(tmp_path / "backups"), undo_dir=str(tmp_path / "undo"))


@pytest.fixture
def data_extension() -> DataExtension:
    de = DataExtension(
        customer_key="Campaign/Jan",
        name="Campaign Jan",
        folder_id=2,
        row_count=120,
        folder_path="Data Extensions/Archive",
    )
    de.fields = [Field(name="SubscriberKey", is_primary_key=True), Field(name="EmailAddress", ordinal=1)]
    return de


class TestBackupStorage:
    """Test suite for BackupStorage class."""

    def test_backup_schema_writes_structure_only(self, storage: BackupStorage, data_extension: DataExtension) -> None:
        path = storage.backup_schema("op_1", data_extension)

        assert path == storage.backup_dir / "op_1" / "Campaign_Jan.yaml"
        with open(path) as f:
            document = yaml.safe_load(f)
        assert document["row_count"] == 120
        assert document["folder_path"] == "Data Extensions/Archive"
        assert document["structure"]["primary_keys"] == ["SubscriberKey"]
        assert "rows" not in document

    def test_backup_failure_is_not_fatal(self, storage: BackupStorage, data_extension: DataExtension) -> None:
        with patch("builtins.open", side_effect=OSError("disk full")):
            assert storage.backup_schema("op_1", data_extension) is None

    def test_backup_all_counts_written(self, storage: BackupStorage, data_extension: DataExtension) -> None:
        other = DataExtension(customer_key="Promo_Q1", name="Promo Q1", folder_id=4)

        assert storage.backup_all("op_1", [data_extension, other]) == 2

    def test_undo_manifest_round_trip(self, storage: BackupStorage, data_extension: DataExtension) -> None:
        folder_entry = BackupStorage.folder_entry(Folder(id=4, name="Q1", parent_id=3), "Data Extensions/Archive/2023/Q1")

        path = storage.write_undo_manifest(
            "op_1",
            "100012345",
            "Data Extensions/Archive",
            data_extensions=[data_extension],
            folders=[folder_entry],
        )
        manifest = storage.load_undo_manifest("op_1")

        assert path.name == "undo-op_1.yaml"
        assert manifest["metadata"]["tenant_id"] == "100012345"
        assert "Row data cannot be restored" in manifest["metadata"]["note"]
        assert manifest["folders"] == [{"id": 4, "name": "Q1", "path": "Data Extensions/Archive/2023/Q1", "parent_id": 3}]
        assert manifest["data_extensions"][0]["customer_key"] == "Campaign/Jan"

    def test_missing_undo_manifest(self, storage: BackupStorage) -> None:
        assert storage.load_undo_manifest("op_missing") is None

    def test_undo_manifest_merges_earlier_part_of_operation(
        self, storage: BackupStorage, data_extension: DataExtension
    ) -> None:
        """Test a resumed operation keeps the entries its interrupted run recorded."""
        first_folder = BackupStorage.folder_entry(Folder(id=4, name="Q1", parent_id=3), "Archive/2023/Q1")
        second_folder = BackupStorage.folder_entry(Folder(id=3, name="2023", parent_id=2), "Archive/2023")
        storage.write_undo_manifest("op_1", "100012345", "Archive", [data_extension], [first_folder])

        other = DataExtension(customer_key="Promo_Q1", name="Promo Q1", folder_id=4)
        storage.write_undo_manifest("op_1", "100012345", "Archive", [other], [second_folder])
        manifest = storage.load_undo_manifest("op_1")

        assert [entry["customer_key"] for entry in manifest["data_extensions"]] == ["Campaign/Jan", "Promo_Q1"]
        assert [entry["id"] for entry in manifest["folders"]] == [4, 3]

    def test_undo_manifests_of_other_operations_stay_apart(
        self, storage: BackupStorage, data_extension: DataExtension
    ) -> None:
        storage.write_undo_manifest("op_1", "100012345", "Archive", [data_extension])

        storage.write_undo_manifest("op_2", "100012345", "Archive", [])

        assert storage.load_undo_manifest("op_2")["data_extensions"] == []
