"""Deletion orchestrator for folders.

Folders are deleted deepest first because the platform refuses to delete a
folder that still has children. With ``force`` the data extensions of each
folder are deleted immediately before the folder itself.
"""

from __future__ import annotations

import logging
from dataclasses import asdict, dataclass
from typing import Any, Optional, Union

from ..errors import GatewayError, OperationCancelled, ResolutionError, SafetyViolation
from ..models.data_extension import DataExtension
from ..models.deletion_operation import OperationStatus
from ..models.folder import Folder
from ..models.operation_state import OperationState
from ..utils.dates import utcnow
from .audit import AuditLog
from .backup import BackupStorage
from .cleaner import BaseCleaner, CleanupResult, RunCallbacks, RunPhase
from .executor import DEFAULT_BATCH_SIZE, MAX_BATCH_SIZE

logger = logging.getLogger(__name__)


@dataclass
class FolderDeletionOptions:
    """Options of a folder deletion run."""

    dry_run: bool = True
    force: bool = False
    skip_protected: bool = False
    backup: bool = True
    batch_size: int = DEFAULT_BATCH_SIZE
    refresh_cache: bool = False
    resume_operation_id: Optional[str] = None

    def validate(self) -> bool:
        if self.batch_size < 1 or self.batch_size > MAX_BATCH_SIZE:
            raise ValueError(f"Batch size must be between 1 and {MAX_BATCH_SIZE}")
        return True

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


@dataclass
class WorkItem:
    """One delete call of a folder run."""

    resource: Union[Folder, DataExtension]

    @property
    def is_folder(self) -> bool:
        return isinstance(self.resource, Folder)

    @property
    def key(self) -> str:
        if isinstance(self.resource, Folder):
            return f"folder:{self.resource.id}"
        return f"de:{self.resource.customer_key}"

    @property
    def name(self) -> str:
        return self.resource.name


class FolderCleaner(BaseCleaner):
    """Deletes a folder together with all of its subfolders."""

    resource_kind = "folder"

    def run(
        self,
        target: str,
        options: Optional[FolderDeletionOptions] = None,
        callbacks: Optional[RunCallbacks] = None,
    ) -> CleanupResult:
        """Run a folder deletion against a folder path or name.

        Args:
            target: Folder path (``A/B/C``) or folder name
            options: Run options, dry run by default
            callbacks: Front-end hooks for progress and confirmation

        Returns:
            CleanupResult whose candidates are the folders to delete, deepest first

        Raises:
            Exception: Unexpected errors, after state and audit have been saved
        """
        options = options or FolderDeletionOptions()
        callbacks = callbacks or RunCallbacks()
        options.validate()

        result, audit, state, resume_state = self._start(target, options)
        try:
            return self._run(target, options, callbacks, result, audit, state, resume_state)
        except (ResolutionError, SafetyViolation, OperationCancelled) as e:
            return self._handle_stop(result, audit, state, e)
        except Exception as e:
            self._fail(result, audit, state, e)
            raise

    def _run(
        self,
        target: str,
        options: FolderDeletionOptions,
        callbacks: RunCallbacks,
        result: CleanupResult,
        audit: AuditLog,
        state: OperationState,
        resume_state: Optional[OperationState],
    ) -> CleanupResult:
        self._phase(result, RunPhase.CONNECT, callbacks)
        try:
            self._connect()
        except GatewayError as e:
            return self._abort(result, audit, f"Connection failed: {e}")

        self._phase(result, RunPhase.RESOLVE_TARGET, callbacks)
        folder = self._resolve(result, state, target, options.refresh_cache)

        self._phase(result, RunPhase.ENUMERATE, callbacks)
        order = self.resolver.deletion_order(folder.id)
        paths = {f.id: self.resolver.build_path(f.id) for f in order}
        result.discovered = len(order)
        logger.info(f"Found {len(order)} folder(s) under {result.target_path}")

        self._phase(result, RunPhase.CONTENTS_CHECK, callbacks)
        contents: dict[int, list[DataExtension]] = {}
        for item in order:
            des = self.data_extension_service.list_in_folder(item.id)
            for de in des:
                de.folder_path = paths[item.id]
            if des:
                contents[item.id] = des

        result.non_empty = [f for f in order if f.id in contents]
        if result.non_empty and not options.force:
            total = sum(len(des) for des in contents.values())
            raise SafetyViolation(
                f"{len(result.non_empty)} folder(s) still contain {total} data extension(s)",
                "non_empty",
                [paths[f.id] for f in result.non_empty],
            )

        self._phase(result, RunPhase.PROTECTION_CHECK, callbacks)
        excluded = self._protection_check(order, contents, paths, options, result, audit)

        folders = [f for f in order if f.id not in excluded]
        work: list[WorkItem] = []
        for item in folders:
            for de in contents.get(item.id, []):
                work.append(WorkItem(de))
            work.append(WorkItem(item))

        if resume_state is not None:
            by_key = {w.key: w for w in work}
            work = [by_key[key] for key in resume_state.remaining if key in by_key]
            folders = [w.resource for w in work if w.is_folder]
            logger.info(f"Resuming with {len(work)} remaining item(s)")

        if not folders:
            return self._finish_empty(result, "No folders left to delete")

        result.candidates = folders
        result.contained = [w.resource for w in work if not w.is_folder]
        result.operation.total_resources = audit.carried_count + len(work)
        state.remaining = [w.key for w in work]

        if result.contained:
            self._phase(result, RunPhase.DETAIL_FETCH, callbacks)
            for de in result.contained:
                try:
                    self.data_extension_service.get_full_details(de.customer_key, data_extension=de)
                except GatewayError as e:
                    logger.warning(f"Could not load details for {de.customer_key}: {e}")

        audit.set_pre_execution(
            total_folders=len(folders),
            total_data_extensions=len(result.contained),
            protected_items=len(result.protected),
            total_records=result.total_rows,
        )

        if options.backup and self.backup_storage is not None and result.contained:
            self._phase(result, RunPhase.BACKUP, callbacks)
            result.backup_count = self.backup_storage.backup_all(result.operation_id, result.contained)
            result.backup_dir = self.backup_storage.backup_dir / result.operation_id

        self._phase(result, RunPhase.PREVIEW, callbacks)
        if callbacks.preview:
            callbacks.preview(result)

        if options.dry_run:
            return self._dry_run_exit(result, audit, callbacks)

        if not self._confirm(result, audit, callbacks):
            return result

        self._phase(result, RunPhase.EXECUTE, callbacks)
        result.operation.status = OperationStatus.EXECUTING
        result.operation.started_at = utcnow()
        return self._execute(work, paths, options, callbacks, result, audit, state, target)

    def _protection_check(
        self,
        order: list[Folder],
        contents: dict[int, list[DataExtension]],
        paths: dict[int, str],
        options: FolderDeletionOptions,
        result: CleanupResult,
        audit: AuditLog,
    ) -> set[int]:
        """Return IDs of folders that must be left in place.

        A kept folder also keeps every ancestor up to the deletion root, since
        a parent cannot be deleted while a child remains.
        """
        protected_folders = [f for f in order if f.is_protected]
        protected_des = [de for des in contents.values() for de in des if de.is_protected]
        result.protected = [*protected_folders, *protected_des]

        if not result.protected:
            return set()

        names = [paths[f.id] for f in protected_folders] + [de.name for de in protected_des]
        if not options.skip_protected:
            raise SafetyViolation(f"{len(names)} protected item(s) detected", "protected", names)

        by_id = {f.id: f for f in order}
        keep: set[int] = set()

        def keep_with_ancestors(folder_id: Optional[int]) -> None:
            while folder_id in by_id and folder_id not in keep:
                keep.add(folder_id)
                folder_id = by_id[folder_id].parent_id

        for f in protected_folders:
            audit.append_skipped(str(f.id), f.name, "Folder", "Protected folder", paths[f.id])
            keep_with_ancestors(f.id)
        for de in protected_des:
            audit.append_skipped(de.customer_key, de.name, "DataExtension", "Protected data extension", de.folder_path)
            keep_with_ancestors(de.folder_id)

        for folder_id in keep:
            if not by_id[folder_id].is_protected:
                audit.append_skipped(
                    str(folder_id), by_id[folder_id].name, "Folder", "Contains protected items", paths[folder_id]
                )

        logger.warning(f"Skipping {len(keep)} folder(s) because of protected items")
        return keep

    def _execute(
        self,
        work: list[WorkItem],
        paths: dict[int, str],
        options: FolderDeletionOptions,
        callbacks: RunCallbacks,
        result: CleanupResult,
        audit: AuditLog,
        state: OperationState,
        target: str,
    ) -> CleanupResult:
        blocked: set[int] = set()
        deleted_des: list[DataExtension] = []
        deleted_folders: list[dict[str, Any]] = []
        total = len(work)

        def action(item: WorkItem) -> tuple[bool, Optional[str]]:
            if not item.is_folder:
                return self.deleter.delete_data_extension(item.resource)

            folder = item.resource
            if folder.id in blocked:
                return (False, "Folder not empty: contents could not be deleted")

            success, error = self.deleter.delete_folder(folder)
            if success:
                self.resolver.invalidate()
            return (success, error)

        def record(item: WorkItem, success: bool, error: Optional[str]) -> None:
            resource = item.resource
            if isinstance(resource, Folder):
                path = paths.get(resource.id)
                if success:
                    audit.append_success(str(resource.id), resource.name, "Folder", parent_folder=path)
                    deleted_folders.append(BackupStorage.folder_entry(resource, path))
                else:
                    audit.append_failure(str(resource.id), resource.name, "Folder", error or "Unknown error", path)
                    blocked.add(resource.parent_id)
            else:
                if success:
                    audit.append_success(
                        resource.customer_key, resource.name, "DataExtension", resource.row_count, resource.folder_path
                    )
                    deleted_des.append(resource)
                else:
                    audit.append_failure(
                        resource.customer_key, resource.name, "DataExtension", error or "Unknown error", resource.folder_path
                    )
                    blocked.add(resource.folder_id)

            if success:
                result.succeeded.append(item.key)
            else:
                result.failed.append({"key": item.key, "name": item.name, "error": error})
            if callbacks.on_item:
                callbacks.on_item(len(result.succeeded) + len(result.failed), total, item.name, success, error)

        outcome = self._executor(options.batch_size).run(
            state,
            work,
            key=lambda item: item.key,
            action=action,
            on_result=record,
        )

        if (deleted_des or deleted_folders) and self.backup_storage is not None:
            result.undo_path = self.backup_storage.write_undo_manifest(
                result.operation_id,
                self.tenant_id,
                result.target_path or target,
                data_extensions=deleted_des,
                folders=deleted_folders,
            )

        return self._complete(result, audit, outcome.cancelled)
