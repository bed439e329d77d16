"""Deletion orchestrator for data extensions.

A run moves through these phases, in order:

    CONNECT → RESOLVE_TARGET → ENUMERATE → FILTER → DETAIL_FETCH →
    PROTECTION_CHECK → DEPENDENCY_CHECK → SELECT → BACKUP → PREVIEW →
    DRY_RUN_EXIT | CONFIRM → EXECUTE → REPORT

Not-found targets, protection and dependency blocks, rejected patterns,
declined confirmation and cancellation end the run with exit code 2.
Unexpected errors persist whatever progress exists, save the audit log with
exit code 1 and propagate to the caller.
"""

from __future__ import annotations

import logging
import uuid
from dataclasses import asdict, dataclass, field
from datetime import datetime
from enum import Enum, IntEnum
from pathlib import Path
from typing import Any, Callable, Optional

from ..catalog.data_extensions import DataExtensionService
from ..catalog.folders import FolderResolver
from ..errors import GatewayError, OperationCancelled, PatternValidationError, ResolutionError, SafetyViolation
from ..gateway.base import RemoteGateway
from ..models.data_extension import DataExtension
from ..models.deletion_operation import DeletionOperation, OperationMode, OperationStatus
from ..models.folder import Folder
from ..models.operation_state import OperationState
from ..safety.checker import SafetyChecker
from ..safety.dependency import DependencyChecker, ProgressCallback
from ..safety.filters import filter_by_date, filter_by_pattern
from ..safety.patterns import compile_user_pattern
from ..utils.dates import utcnow
from .audit import AuditLog, AuditStorage
from .backup import BackupStorage
from .cancellation import CancellationToken
from .deleter import ResourceDeleter
from .executor import DEFAULT_BATCH_SIZE, DEFAULT_DELAY_SECONDS, MAX_BATCH_SIZE, BatchExecutor
from .state import StateStorage

logger = logging.getLogger(__name__)


class ExitCode(IntEnum):
    """Process exit codes of a run."""

    SUCCESS = 0
    FAILURES = 1
    ABORTED = 2


class RunPhase(Enum):
    """Checkpoints of a deletion run."""

    CONNECT = "connect"
    RESOLVE_TARGET = "resolve_target"
    ENUMERATE = "enumerate"
    FILTER = "filter"
    DETAIL_FETCH = "detail_fetch"
    CONTENTS_CHECK = "contents_check"
    PROTECTION_CHECK = "protection_check"
    DEPENDENCY_CHECK = "dependency_check"
    SELECT = "select"
    BACKUP = "backup"
    PREVIEW = "preview"
    DRY_RUN_EXIT = "dry_run_exit"
    CONFIRM = "confirm"
    EXECUTE = "execute"
    REPORT = "report"


def confirmation_phrase(count: int, kind: str = "data_extension") -> str:
    """Phrase the operator must type to confirm a live run.

    >>> confirmation_phrase(3)
    'DELETE 3 DATA EXTENSION(S)'
    """
    label = "FOLDER(S)" if kind == "folder" else "DATA EXTENSION(S)"
    return f"DELETE {count} {label}"


def new_operation_id(now: Optional[datetime] = None) -> str:
    now = now or utcnow()
    return f"op_{now:%Y%m%d_%H%M%S}_{uuid.uuid4().hex[:8]}"


@dataclass
class DeletionOptions:
    """Options of a data extension deletion run.

    Runs are dry runs unless ``dry_run`` is explicitly turned off.
    """

    dry_run: bool = True
    skip_protected: bool = False
    skip_dependency_check: bool = False
    force_with_dependencies: bool = False
    backup: bool = True
    include_subfolders: bool = True
    older_than_days: Optional[int] = None
    created_before: Optional[datetime] = None
    created_after: Optional[datetime] = None
    modified_before: Optional[datetime] = None
    modified_after: Optional[datetime] = None
    include_pattern: Optional[str] = None
    exclude_pattern: Optional[str] = None
    batch_size: int = DEFAULT_BATCH_SIZE
    interactive: bool = False
    include_row_count: bool = True
    refresh_cache: bool = False
    resume_operation_id: Optional[str] = None

    def validate(self) -> bool:
        """Validate option values.

        Raises:
            ValueError: If a numeric option is out of range
        """
        if self.batch_size < 1 or self.batch_size > MAX_BATCH_SIZE:
            raise ValueError(f"Batch size must be between 1 and {MAX_BATCH_SIZE}")
        if self.older_than_days is not None and self.older_than_days < 0:
            raise ValueError("older_than_days must be >= 0")
        return True

    def to_dict(self) -> dict[str, Any]:
        data = asdict(self)
        for key, value in data.items():
            if isinstance(value, datetime):
                data[key] = value.isoformat()
        return data


@dataclass
class RunCallbacks:
    """Hooks through which a front end takes part in a run.

    Attributes:
        on_phase: Called when a phase starts
        on_dependency_progress: Called as (current, total, key) during dependency lookups
        select: Interactive selection, returns the items to delete
        preview: Called once with the result before dry-run exit or confirmation
        confirm: Returns True if the operator confirmed deletion
        on_item: Called as (index, total, name, success, error) after every deletion
    """

    on_phase: Optional[Callable[[RunPhase], None]] = None
    on_dependency_progress: Optional[ProgressCallback] = None
    select: Optional[Callable[[list[Any]], list[Any]]] = None
    preview: Optional[Callable[["CleanupResult"], None]] = None
    confirm: Optional[Callable[["CleanupResult"], bool]] = None
    on_item: Optional[Callable[[int, int, str, bool, Optional[str]], None]] = None


@dataclass
class CleanupResult:
    """Everything a front end needs to report on a run.

    Attributes:
        operation: Operation record (also written to the audit log)
        exit_code: Process exit code
        phase: Last phase reached
        message: Why the run stopped early, if it did
        suggestions: Similar folders when the target was not found
        target: Resolved target folder
        target_path: Full path of the target folder
        discovered: Items found before filtering
        candidates: Items selected for deletion, in execution order
        protected: Protected items found among the candidates
        dependent: Data extensions with dependencies
        non_empty: Folders that still contain data extensions
        contained: Data extensions inside folders of a folder run
        succeeded: Keys deleted successfully
        failed: ``{key, name, error}`` for each failed deletion
    """

    operation: DeletionOperation
    exit_code: ExitCode = ExitCode.SUCCESS
    phase: RunPhase = RunPhase.CONNECT
    message: Optional[str] = None
    suggestions: list[dict[str, str]] = field(default_factory=list)
    target: Optional[Folder] = None
    target_path: Optional[str] = None
    discovered: int = 0
    candidates: list[Any] = field(default_factory=list)
    protected: list[Any] = field(default_factory=list)
    dependent: list[DataExtension] = field(default_factory=list)
    non_empty: list[Folder] = field(default_factory=list)
    contained: list[DataExtension] = field(default_factory=list)
    succeeded: list[str] = field(default_factory=list)
    failed: list[dict[str, Optional[str]]] = field(default_factory=list)
    resumed: bool = False
    backup_count: int = 0
    backup_dir: Optional[Path] = None
    audit_path: Optional[Path] = None
    undo_path: Optional[Path] = None

    @property
    def operation_id(self) -> str:
        return self.operation.operation_id

    @property
    def dry_run(self) -> bool:
        return self.operation.mode == OperationMode.DRY_RUN

    @property
    def cancelled(self) -> bool:
        return self.operation.status == OperationStatus.CANCELLED

    @property
    def total_rows(self) -> int:
        items = self.contained if self.operation.resource_kind == "folder" else self.candidates
        return sum(getattr(item, "row_count", None) or 0 for item in items)

    @property
    def pii_count(self) -> int:
        items = self.contained if self.operation.resource_kind == "folder" else self.candidates
        return sum(1 for item in items if getattr(item, "has_pii", False))

    def summary(self) -> dict[str, Any]:
        """Plain completion summary for webhooks."""
        return {
            "operation": (
                "delete-folders" if self.operation.resource_kind == "folder" else "delete-data-extensions"
            ),
            "operationId": self.operation_id,
            "tenant": self.operation.tenant_id,
            "targetFolder": self.target_path or self.operation.target_folder,
            "results": {
                "status": self.operation.status.value,
                "exitCode": int(self.exit_code),
                "total": self.operation.total_resources,
                "successful": self.operation.succeeded_count,
                "failed": self.operation.failed_count,
                "skipped": self.operation.skipped_count,
                "failedItems": [{"name": item["name"], "error": item["error"]} for item in self.failed],
            },
            "completedAt": (self.operation.completed_at or utcnow()).isoformat(),
        }


class BaseCleaner:
    """Shared machinery of the data extension and folder orchestrators.

    Attributes:
        gateway: Remote gateway bound to the tenant
        resolver: Folder resolver of the same tenant
        data_extension_service: Data extension lookups
        safety_checker: Protection rules
        audit_storage: Where audit logs are written
        state_storage: Where resumable state is written
        backup_storage: Where schema backups and undo manifests are written
        token: Cancellation token shared with the front end
    """

    resource_kind = ""

    def __init__(
        self,
        gateway: RemoteGateway,
        resolver: FolderResolver,
        data_extension_service: DataExtensionService,
        safety_checker: SafetyChecker,
        audit_storage: AuditStorage,
        state_storage: StateStorage,
        backup_storage: Optional[BackupStorage] = None,
        token: Optional[CancellationToken] = None,
        delay_seconds: float = DEFAULT_DELAY_SECONDS,
        sleep: Optional[Callable[[float], object]] = None,
    ) -> None:
        self.gateway = gateway
        self.resolver = resolver
        self.data_extension_service = data_extension_service
        self.safety_checker = safety_checker
        self.audit_storage = audit_storage
        self.state_storage = state_storage
        self.backup_storage = backup_storage
        self.token = token or CancellationToken()
        self.delay_seconds = delay_seconds
        self.sleep = sleep
        self.deleter = ResourceDeleter(gateway, safety_checker)

    @property
    def tenant_id(self) -> str:
        return self.resolver.tenant_id

    def _start(self, target: str, options: Any) -> tuple[CleanupResult, AuditLog, OperationState, Optional[OperationState]]:
        resume_state = None
        if options.resume_operation_id:
            resume_state = self.state_storage.load(options.resume_operation_id)
            if resume_state is None:
                logger.warning(f"No saved state found for {options.resume_operation_id}, running from the start")
            else:
                logger.info(
                    f"Resuming operation {options.resume_operation_id}: "
                    f"{len(resume_state.remaining)} item(s) remaining"
                )

        operation = DeletionOperation(
            operation_id=options.resume_operation_id or new_operation_id(),
            target_folder=target,
            tenant_id=self.tenant_id,
            resource_kind=self.resource_kind,
            timestamp=utcnow(),
            mode=OperationMode.DRY_RUN if options.dry_run else OperationMode.EXECUTE,
            status=OperationStatus.PLANNED,
            options=options.to_dict(),
        )
        state = OperationState(operation_id=operation.operation_id, target_folder=target)
        if resume_state is not None:
            state.processed = list(resume_state.processed)

        audit = AuditLog(self.audit_storage, operation)
        if resume_state is not None:
            previous = self.audit_storage.get_operation(operation.operation_id)
            if previous is not None:
                carried = audit.carry_over(previous)
                logger.info(f"Carried {carried} earlier outcome(s) into the audit log of {operation.operation_id}")

        result = CleanupResult(operation=operation, resumed=resume_state is not None)
        return result, audit, state, resume_state

    def _phase(self, result: CleanupResult, phase: RunPhase, callbacks: RunCallbacks) -> None:
        if self.token.cancelled:
            raise OperationCancelled(self.token.reason or "Cancelled")
        result.phase = phase
        logger.debug(f"[{result.operation_id}] phase: {phase.value}")
        if callbacks.on_phase:
            callbacks.on_phase(phase)

    def _connect(self) -> None:
        self.gateway.test_connection()
        logger.info(f"Connected to tenant {self.tenant_id}")

    def _resolve(self, result: CleanupResult, state: OperationState, target: str, refresh: bool) -> Folder:
        if refresh:
            self.resolver.load_tree(force_refresh=True)
        folder = self.resolver.resolve(target)
        result.target = folder
        result.target_path = self.resolver.build_path(folder.id)
        result.operation.target_folder = result.target_path
        state.target_folder = result.target_path
        logger.info(f"Found folder: {result.target_path} (ID: {folder.id})")
        return folder

    def _abort(
        self,
        result: CleanupResult,
        audit: AuditLog,
        message: str,
        status: OperationStatus = OperationStatus.ABORTED,
    ) -> CleanupResult:
        logger.warning(f"Run aborted during {result.phase.value}: {message}")
        result.message = message
        result.exit_code = ExitCode.ABORTED
        result.operation.status = status
        result.operation.completed_at = utcnow()
        result.audit_path = audit.save(ExitCode.ABORTED)
        return result

    def _handle_stop(
        self,
        result: CleanupResult,
        audit: AuditLog,
        state: OperationState,
        error: Exception,
    ) -> CleanupResult:
        """Translate an expected early stop into an aborted result."""
        if isinstance(error, ResolutionError):
            result.suggestions = error.suggestions
        if isinstance(error, OperationCancelled):
            if state.remaining:
                self.state_storage.save(state)
                logger.warning(f"Progress saved. Resume with: --resume {result.operation_id}")
            return self._abort(result, audit, f"Cancelled: {error}", status=OperationStatus.CANCELLED)
        return self._abort(result, audit, str(error))

    def _fail(self, result: CleanupResult, audit: AuditLog, state: OperationState, error: Exception) -> None:
        logger.error(f"Run {result.operation_id} failed during {result.phase.value}: {error}")
        state.error = str(error)
        try:
            self.state_storage.save(state)
        except OSError as e:
            logger.error(f"Could not save state for {result.operation_id}: {e}")
        result.message = str(error)
        result.exit_code = ExitCode.FAILURES
        result.operation.status = OperationStatus.FAILED
        result.operation.completed_at = utcnow()
        result.audit_path = audit.save(ExitCode.FAILURES)

    def _finish_empty(self, result: CleanupResult, message: str) -> CleanupResult:
        logger.info(message)
        result.message = message
        result.exit_code = ExitCode.SUCCESS
        result.operation.status = OperationStatus.COMPLETED
        result.operation.completed_at = utcnow()
        return result

    def _dry_run_exit(self, result: CleanupResult, audit: AuditLog, callbacks: RunCallbacks) -> CleanupResult:
        self._phase(result, RunPhase.DRY_RUN_EXIT, callbacks)
        logger.info(f"Dry run complete, {len(result.candidates)} item(s) would be deleted")
        result.exit_code = ExitCode.SUCCESS
        result.operation.completed_at = utcnow()
        result.audit_path = audit.save(ExitCode.SUCCESS)
        return result

    def _confirm(self, result: CleanupResult, audit: AuditLog, callbacks: RunCallbacks) -> bool:
        self._phase(result, RunPhase.CONFIRM, callbacks)
        confirmed = bool(callbacks.confirm(result)) if callbacks.confirm else False
        if not confirmed:
            self._abort(result, audit, "Deletion not confirmed")
        return confirmed

    def _executor(self, batch_size: int) -> BatchExecutor:
        return BatchExecutor(
            self.state_storage,
            token=self.token,
            batch_size=batch_size,
            delay_seconds=self.delay_seconds,
            sleep=self.sleep,
        )

    def _complete(self, result: CleanupResult, audit: AuditLog, cancelled: bool) -> CleanupResult:
        operation = result.operation
        operation.completed_at = utcnow()

        if cancelled:
            operation.status = OperationStatus.CANCELLED
            result.exit_code = ExitCode.ABORTED
            result.message = f"Cancelled. Resume with: --resume {operation.operation_id}"
        else:
            operation.finalize_status()
            result.exit_code = ExitCode.FAILURES if operation.failed_count else ExitCode.SUCCESS

        result.phase = RunPhase.REPORT
        result.audit_path = audit.save(result.exit_code)

        if result.exit_code == ExitCode.SUCCESS:
            self.state_storage.clear(operation.operation_id)

        logger.info(
            f"Operation {operation.operation_id} {operation.status.value}: "
            f"{operation.succeeded_count} succeeded, {operation.failed_count} failed, "
            f"{operation.skipped_count} skipped"
        )
        return result


class DataExtensionCleaner(BaseCleaner):
    """Deletes the data extensions of a folder (and optionally its subfolders)."""

    resource_kind = "data_extension"

    def __init__(self, *args: Any, dependency_checker: Optional[DependencyChecker] = None, **kwargs: Any) -> None:
        super().__init__(*args, **kwargs)
        self.dependency_checker = dependency_checker or DependencyChecker(self.gateway)

    def run(
        self,
        target: str,
        options: Optional[DeletionOptions] = None,
        callbacks: Optional[RunCallbacks] = None,
    ) -> CleanupResult:
        """Run a data extension deletion against a folder path or name.

        Args:
            target: Folder path (``A/B/C``) or folder name
            options: Run options, dry run by default
            callbacks: Front-end hooks for progress, selection and confirmation

        Returns:
            CleanupResult with the exit code and everything needed for reporting

        Raises:
            Exception: Unexpected errors, after state and audit have been saved
        """
        options = options or DeletionOptions()
        callbacks = callbacks or RunCallbacks()
        options.validate()

        result, audit, state, resume_state = self._start(target, options)
        try:
            return self._run(target, options, callbacks, result, audit, state, resume_state)
        except (ResolutionError, SafetyViolation, PatternValidationError, OperationCancelled) as e:
            return self._handle_stop(result, audit, state, e)
        except Exception as e:
            self._fail(result, audit, state, e)
            raise

    def _run(
        self,
        target: str,
        options: DeletionOptions,
        callbacks: RunCallbacks,
        result: CleanupResult,
        audit: AuditLog,
        state: OperationState,
        resume_state: Optional[OperationState],
    ) -> CleanupResult:
        # Reject unsafe patterns before any network call
        for pattern in (options.include_pattern, options.exclude_pattern):
            if pattern:
                compile_user_pattern(pattern)

        self._phase(result, RunPhase.CONNECT, callbacks)
        try:
            self._connect()
        except GatewayError as e:
            return self._abort(result, audit, f"Connection failed: {e}")

        self._phase(result, RunPhase.RESOLVE_TARGET, callbacks)
        folder = self._resolve(result, state, target, options.refresh_cache)
        if folder.is_protected and not options.skip_protected:
            raise SafetyViolation(f"Target folder '{folder.name}' is protected", "protected", [folder.name])

        self._phase(result, RunPhase.ENUMERATE, callbacks)
        folders = [folder]
        if options.include_subfolders:
            folders += self.resolver.subtree(folder.id, recursive=True)

        discovered: list[DataExtension] = []
        for item in folders:
            path = self.resolver.build_path(item.id)
            for de in self.data_extension_service.list_in_folder(item.id):
                de.folder_path = path
                discovered.append(de)

        result.discovered = len(discovered)
        logger.info(f"Found {len(discovered)} data extension(s) in {len(folders)} folder(s)")
        if not discovered:
            return self._finish_empty(result, "No data extensions found in the specified folder(s)")

        self._phase(result, RunPhase.FILTER, callbacks)
        candidates = filter_by_date(
            discovered,
            older_than_days=options.older_than_days,
            created_before=options.created_before,
            created_after=options.created_after,
            modified_before=options.modified_before,
            modified_after=options.modified_after,
        )
        candidates = filter_by_pattern(candidates, include=options.include_pattern, exclude=options.exclude_pattern)

        if resume_state is not None:
            by_key = {de.customer_key: de for de in candidates}
            candidates = [by_key[key] for key in resume_state.remaining if key in by_key]
            logger.info(f"Resuming with {len(candidates)} remaining data extension(s)")

        if not candidates:
            return self._finish_empty(result, "No data extensions match the specified filters")

        self._phase(result, RunPhase.DETAIL_FETCH, callbacks)
        for de in candidates:
            try:
                self.data_extension_service.get_full_details(
                    de.customer_key, include_row_count=options.include_row_count, data_extension=de
                )
            except GatewayError as e:
                logger.warning(f"Could not load details for {de.customer_key}: {e}")

        self._phase(result, RunPhase.PROTECTION_CHECK, callbacks)
        protected = [de for de in candidates if de.is_protected]
        result.protected = protected
        if protected:
            names = [de.name for de in protected]
            if not options.skip_protected:
                raise SafetyViolation(f"{len(protected)} protected data extension(s) detected", "protected", names)

            logger.warning(f"Skipping {len(protected)} protected data extension(s)")
            for de in protected:
                _, reason = self.safety_checker.is_protected(
                    {"resource_type": "data_extension", "customer_key": de.customer_key, "name": de.name}
                )
                audit.append_skipped(de.customer_key, de.name, "DataExtension", reason or "Protected", de.folder_path)
            candidates = [de for de in candidates if not de.is_protected]

        if candidates and not options.skip_dependency_check:
            self._phase(result, RunPhase.DEPENDENCY_CHECK, callbacks)
            reports = self.dependency_checker.batch_check(
                [de.customer_key for de in candidates],
                on_progress=callbacks.on_dependency_progress,
                should_stop=lambda: self.token.cancelled,
            )
            for de in candidates:
                report = reports.get(de.customer_key)
                if report is not None:
                    de.dependencies = list(report.all)
                    de.has_dependencies = report.has_dependencies

            dependent = [de for de in candidates if de.has_dependencies]
            result.dependent = dependent
            if dependent:
                names = [de.name for de in dependent]
                if not options.force_with_dependencies:
                    raise SafetyViolation(
                        f"{len(dependent)} data extension(s) have dependencies", "dependencies", names
                    )
                logger.warning(
                    f"FORCED: deleting {len(dependent)} data extension(s) despite dependencies: {', '.join(names)}"
                )

        if options.interactive and callbacks.select:
            self._phase(result, RunPhase.SELECT, callbacks)
            candidates = list(callbacks.select(candidates))

        if not candidates:
            return self._finish_empty(result, "No data extensions selected")

        result.candidates = candidates
        result.operation.total_resources = audit.carried_count + len(candidates)
        state.remaining = [de.customer_key for de in candidates]
        audit.set_pre_execution(
            total_folders=len(folders),
            discovered_data_extensions=result.discovered,
            protected_data_extensions=len(protected),
            data_extensions_with_dependencies=len(result.dependent),
            total_data_extensions=len(candidates),
            total_records=result.total_rows,
            data_extensions_with_pii=result.pii_count,
        )

        if options.backup and self.backup_storage is not None:
            self._phase(result, RunPhase.BACKUP, callbacks)
            result.backup_count = self.backup_storage.backup_all(result.operation_id, candidates)
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
        deleted: list[DataExtension] = []
        total = len(candidates)

        def record(de: DataExtension, success: bool, error: Optional[str]) -> None:
            if success:
                audit.append_success(de.customer_key, de.name, "DataExtension", de.row_count, de.folder_path)
                result.succeeded.append(de.customer_key)
                deleted.append(de)
            else:
                audit.append_failure(de.customer_key, de.name, "DataExtension", error or "Unknown error", de.folder_path)
                result.failed.append({"key": de.customer_key, "name": de.name, "error": error})
            if callbacks.on_item:
                callbacks.on_item(len(result.succeeded) + len(result.failed), total, de.name, success, error)

        outcome = self._executor(options.batch_size).run(
            state,
            candidates,
            key=lambda de: de.customer_key,
            action=self.deleter.delete_data_extension,
            on_result=record,
        )

        if deleted and self.backup_storage is not None:
            result.undo_path = self.backup_storage.write_undo_manifest(
                result.operation_id,
                self.tenant_id,
                result.target_path or target,
                data_extensions=deleted,
            )

        return self._complete(result, audit, outcome.cancelled)
