"""Schema backups and undo manifests.

Only structure is ever written: field lists, keys and retention settings.
Row data is never exported.
"""

from __future__ import annotations

import logging
import re
from pathlib import Path
from typing import Any, Optional

import yaml

from ..models.data_extension import DataExtension
from ..models.folder import Folder
from ..utils.dates import utcnow

logger = logging.getLogger(__name__)

_UNSAFE_FILENAME_CHARS = re.compile(r"[^A-Za-z0-9_.-]")


def _safe_filename(value: str) -> str:
    return _UNSAFE_FILENAME_CHARS.sub("_", value) or "unnamed"


class BackupStorage:
    """Writes per-item schema backups and per-operation undo manifests.

    Storage structure:
        ~/.sfmc-cleanup/backups/<operation_id>/<customer_key>.yaml
        ~/.sfmc-cleanup/undo/undo-<operation_id>.yaml

    Attributes:
        backup_dir: Base directory for schema backups
        undo_dir: Directory for undo manifests
    """

    def __init__(self, backup_dir: Optional[str] = None, undo_dir: Optional[str] = None) -> None:
        base = Path.home() / ".sfmc-cleanup"
        self.backup_dir = Path(backup_dir) if backup_dir else base / "backups"
        self.undo_dir = Path(undo_dir) if undo_dir else base / "undo"

    def backup_schema(self, operation_id: str, data_extension: DataExtension) -> Optional[Path]:
        """Write the schema of one data extension.

        A failed backup is logged and skipped; it never stops the run.

        Returns:
            Path of the backup file, or None if it could not be written
        """
        target_dir = self.backup_dir / _safe_filename(operation_id)
        backup_file = target_dir / f"{_safe_filename(data_extension.customer_key)}.yaml"
        document = {
            "backed_up_at": utcnow().isoformat(),
            "operation_id": operation_id,
            "folder_path": data_extension.folder_path,
            "row_count": data_extension.row_count,
            "structure": data_extension.structure(),
        }

        try:
            target_dir.mkdir(parents=True, exist_ok=True)
            with open(backup_file, "w") as f:
                yaml.dump(document, f, default_flow_style=False, sort_keys=False)
        except (OSError, yaml.YAMLError) as e:
            logger.warning(f"Backup failed for {data_extension.customer_key}: {e}")
            return None

        return backup_file

    def backup_all(self, operation_id: str, data_extensions: list[DataExtension]) -> int:
        """Back up every data extension, returning how many succeeded."""
        written = sum(1 for de in data_extensions if self.backup_schema(operation_id, de) is not None)
        logger.info(f"Backed up {written}/{len(data_extensions)} data extension schema(s)")
        return written

    def write_undo_manifest(
        self,
        operation_id: str,
        tenant_id: str,
        target_folder: str,
        data_extensions: Optional[list[DataExtension]] = None,
        folders: Optional[list[dict[str, Any]]] = None,
    ) -> Path:
        """Record what is needed to recreate the deleted structures.

        An existing manifest of the same operation, left by the run that was
        resumed, is merged in with its entries first.

        Args:
            operation_id: Operation that deleted the items
            tenant_id: Business unit the items belonged to
            target_folder: Folder the operation targeted
            data_extensions: Successfully deleted data extensions
            folders: Successfully deleted folders as ``{id, name, path, parent_id}``

        Returns:
            Path of the manifest
        """
        folder_entries = list(folders or [])
        structures = [de.structure() for de in data_extensions or []]

        previous = self.load_undo_manifest(operation_id)
        if previous:
            known_folders = {entry["id"] for entry in folder_entries}
            known_keys = {entry["customer_key"] for entry in structures}
            folder_entries = [
                entry for entry in previous.get("folders") or [] if entry["id"] not in known_folders
            ] + folder_entries
            structures = [
                entry for entry in previous.get("data_extensions") or [] if entry["customer_key"] not in known_keys
            ] + structures

        document = {
            "metadata": {
                "operation_id": operation_id,
                "tenant_id": tenant_id,
                "target_folder": target_folder,
                "generated_at": utcnow().isoformat(),
                "note": "Structure only. Row data cannot be restored.",
            },
            "folders": folder_entries,
            "data_extensions": structures,
        }

        self.undo_dir.mkdir(parents=True, exist_ok=True)
        manifest = self._undo_path(operation_id)
        with open(manifest, "w") as f:
            yaml.dump(document, f, default_flow_style=False, sort_keys=False)

        logger.info(
            f"Undo manifest saved with {len(structures)} data extension(s) "
            f"and {len(folder_entries)} folder(s): {manifest}"
        )
        return manifest

    def _undo_path(self, operation_id: str) -> Path:
        return self.undo_dir / f"undo-{_safe_filename(operation_id)}.yaml"

    def load_undo_manifest(self, operation_id: str) -> Optional[dict[str, Any]]:
        manifest = self._undo_path(operation_id)
        if not manifest.exists():
            return None
        with open(manifest, "r") as f:
            return yaml.safe_load(f)

    @staticmethod
    def folder_entry(folder: Folder, path: str) -> dict[str, Any]:
        return {"id": folder.id, "name": folder.name, "path": path, "parent_id": folder.parent_id}
