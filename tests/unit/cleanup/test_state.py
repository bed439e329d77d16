"""Tests for StateStorage."""

from __future__ import annotations

from pathlib import Path

import pytest

from sfmc_cleanup.cleanup.state import StateStorage
from sfmc_cleanup.models.operation_state import OperationState


class TestStateStorage:
    """Test suite for StateStorage class."""

    @pytest.fixture
    def storage(self, tmp_path: Path) -> StateStorage:
        return StateStorage(str(tmp_path / "state"))

    def test_save_and_load(self, storage: StateStorage) -> None:
        state = OperationState(
            operation_id="op_1",
            target_folder="Data Extensions/Archive",
            processed=[{"key": "Campaign_Jan", "status": "succeeded", "error": None}],
            remaining=["Campaign_Feb", "Newsletter_Old"],
        )

        path = storage.save(state)
        loaded = storage.load("op_1")

        assert path.name == "state-op_1.yaml"
        assert state.saved_at is not None
        assert loaded.remaining == ["Campaign_Feb", "Newsletter_Old"]
        assert loaded.processed[0]["key"] == "Campaign_Jan"
        assert loaded.saved_at == state.saved_at
        assert list(storage.storage_dir.glob("*.tmp")) == []

    def test_save_replaces_previous_state(self, storage: StateStorage) -> None:
        storage.save(OperationState(operation_id="op_1", remaining=["a", "b"]))
        storage.save(OperationState(operation_id="op_1", remaining=["b"]))

        assert storage.load("op_1").remaining == ["b"]

    def test_missing_state(self, storage: StateStorage) -> None:
        assert storage.load("op_missing") is None
        assert storage.exists("op_missing") is False

    def test_unreadable_state(self, storage: StateStorage) -> None:
        storage.path_for("op_bad").write_text("remaining: [unclosed")

        assert storage.load("op_bad") is None

    def test_state_without_operation_id(self, storage: StateStorage) -> None:
        storage.path_for("op_bad").write_text("remaining: []\n")

        assert storage.load("op_bad") is None

    def test_clear(self, storage: StateStorage) -> None:
        storage.save(OperationState(operation_id="op_1"))

        assert storage.clear("op_1") is True
        assert storage.exists("op_1") is False
        assert storage.clear("op_1") is False
