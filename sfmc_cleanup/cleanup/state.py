"""Resumable operation state storage."""

from __future__ import annotations

import logging
import os
import tempfile
from pathlib import Path
from typing import Optional

import yaml

from ..models.operation_state import OperationState
from ..utils.dates import utcnow

logger = logging.getLogger(__name__)


class StateStorage:
    """Stores one YAML state file per operation.

    Storage structure:
        ~/.sfmc-cleanup/state/
            state-op_20260101_120000_ab12cd34.yaml

    Attributes:
        storage_dir: Directory holding state files
    """

    def __init__(self, storage_dir: Optional[str] = None) -> None:
        if storage_dir is None:
            storage_dir = str(Path.home() / ".sfmc-cleanup" / "state")

        self.storage_dir = Path(storage_dir)
        self.storage_dir.mkdir(parents=True, exist_ok=True)

    def path_for(self, operation_id: str) -> Path:
        return self.storage_dir / f"state-{operation_id}.yaml"

    def save(self, state: OperationState) -> Path:
        """Persist state atomically, stamping ``saved_at``."""
        state.saved_at = utcnow()
        state_file = self.path_for(state.operation_id)

        fd, tmp_name = tempfile.mkstemp(dir=self.storage_dir, prefix=f".{state_file.name}.", suffix=".tmp")
        try:
            with os.fdopen(fd, "w") as f:
                yaml.dump(state.to_dict(), f, default_flow_style=False, sort_keys=False)
            os.replace(tmp_name, state_file)
        except OSError:
            Path(tmp_name).unlink(missing_ok=True)
            raise

        logger.debug(
            f"Saved state for {state.operation_id}: "
            f"{len(state.processed)} processed, {len(state.remaining)} remaining"
        )
        return state_file

    def load(self, operation_id: str) -> Optional[OperationState]:
        """Load saved state, or None if there is none or it is unreadable."""
        state_file = self.path_for(operation_id)
        if not state_file.exists():
            return None

        try:
            with open(state_file, "r") as f:
                data = yaml.safe_load(f)
            return OperationState.from_dict(data)
        except (OSError, yaml.YAMLError, KeyError, TypeError) as e:
            logger.warning(f"Could not read state for {operation_id}: {e}")
            return None

    def clear(self, operation_id: str) -> bool:
        state_file = self.path_for(operation_id)
        if state_file.exists():
            state_file.unlink()
            logger.debug(f"Cleared state for {operation_id}")
            return True
        return False

    def exists(self, operation_id: str) -> bool:
        return self.path_for(operation_id).exists()
