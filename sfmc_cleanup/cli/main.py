"""Main CLI entry point using Typer."""

from __future__ import annotations

import logging
import signal
import sys
from contextlib import contextmanager
from dataclasses import dataclass
from datetime import datetime, timedelta
from pathlib import Path
from typing import Iterator, Optional

import typer
from rich.console import Console

from .. import __version__
from ..catalog.cache import FOLDER_CACHE_TYPE, CacheStorage, FolderTreeCache
from ..catalog.data_extensions import DataExtensionService
from ..catalog.folders import FolderResolver
from ..cleanup.audit import AuditStorage
from ..cleanup.backup import BackupStorage
from ..cleanup.cancellation import CancellationToken
from ..cleanup.cleaner import (
    CleanupResult,
    DataExtensionCleaner,
    DeletionOptions,
    ExitCode,
    RunCallbacks,
    RunPhase,
    confirmation_phrase,
)
from ..cleanup.folder_cleaner import FolderCleaner, FolderDeletionOptions
from ..cleanup.state import StateStorage
from ..errors import FatalConfigError, GatewayError, ResolutionError
from ..gateway.base import RemoteGateway
from ..gateway.webhook import send_webhook
from ..models.data_extension import DataExtension
from ..safety.analyzer import DependencyAnalyzer
from ..safety.checker import SafetyChecker, build_default_rules
from ..safety.dependency import DependencyChecker
from ..utils.dates import parse_timestamp, utcnow
from ..utils.logging import setup_logging
from .config import Config
from .reporter import CleanupReporter

logger = logging.getLogger(__name__)

# Create Typer app
app = typer.Typer(
    name="sfmc-cleanup",
    help="Safety-gated bulk deletion of Marketing Cloud folders and data extensions",
    add_completion=False,
)
cache_app = typer.Typer(help="Inspect and clear the folder cache")
audit_app = typer.Typer(help="Browse deletion audit logs")

# Create Rich console for output
console = Console()

# Global config
config: Optional[Config] = None

_PHASE_HINTS = {
    RunPhase.PROTECTION_CHECK: "Re-run with --skip-protected to leave protected items in place.",
    RunPhase.DEPENDENCY_CHECK: (
        "Review the dependencies, then re-run with --force-delete-with-dependencies "
        "or --skip-dependency-check if deletion is intended."
    ),
    RunPhase.CONTENTS_CHECK: "Re-run with --force to delete the data extensions together with their folders.",
}


@dataclass
class Services:
    """Collaborators of one CLI run, bound to a single tenant."""

    gateway: RemoteGateway
    safety_checker: SafetyChecker
    cache_storage: CacheStorage
    resolver: FolderResolver
    data_extension_service: DataExtensionService
    dependency_checker: DependencyChecker
    audit_storage: AuditStorage
    state_storage: StateStorage
    backup_storage: BackupStorage
    token: CancellationToken


def get_config() -> Config:
    global config
    if config is None:
        config = Config.load()
    return config


def build_services(cfg: Config) -> Services:
    """Wire the gateway, caches, storages and checkers for a run.

    Raises:
        FatalConfigError: If required settings are missing or the tenant is not allowed
    """
    cfg.validate()
    gateway = cfg.create_gateway()
    if not cfg.is_business_unit_allowed(gateway.tenant_id):
        raise FatalConfigError(f"Business unit {gateway.tenant_id} is not in ALLOWED_BUSINESS_UNITS")

    safety_checker = SafetyChecker(build_default_rules(cfg.protected_folder_patterns, cfg.protected_de_prefixes))
    cache_storage = CacheStorage(str(cfg.cache_dir))
    tree_cache = FolderTreeCache(cache_storage, ttl_seconds=cfg.cache_ttl_seconds)

    return Services(
        gateway=gateway,
        safety_checker=safety_checker,
        cache_storage=cache_storage,
        resolver=FolderResolver(gateway, tree_cache, safety_checker=safety_checker),
        data_extension_service=DataExtensionService(gateway, safety_checker),
        dependency_checker=DependencyChecker(gateway, max_workers=cfg.dependency_concurrency),
        audit_storage=AuditStorage(str(cfg.audit_dir)),
        state_storage=StateStorage(str(cfg.state_dir)),
        backup_storage=BackupStorage(str(cfg.backup_dir), str(cfg.undo_dir)),
        token=CancellationToken(),
    )


@contextmanager
def handle_interrupts(token: CancellationToken) -> Iterator[None]:
    """Route Ctrl+C to the cancellation token.

    The first interrupt asks the run to stop at the next checkpoint. A second
    interrupt exits immediately with code 2.
    """
    interrupts = 0

    def handler(signum, frame):
        nonlocal interrupts
        interrupts += 1
        if interrupts > 1:
            console.print("\n✗ Forced exit", style="bold red")
            sys.exit(int(ExitCode.ABORTED))
        console.print(
            "\n⚠️  Interrupt received, stopping after the current item. Press Ctrl+C again to force exit.",
            style="yellow",
        )
        token.cancel("Interrupted by user")

    previous = signal.signal(signal.SIGINT, handler)
    try:
        yield
    finally:
        signal.signal(signal.SIGINT, previous)


def parse_date_option(value: Optional[str], option: str) -> Optional[datetime]:
    if value is None:
        return None
    parsed = parse_timestamp(value)
    if parsed is None:
        console.print(f"✗ Invalid date for {option}: {value}. Use YYYY-MM-DD", style="bold red")
        raise typer.Exit(code=int(ExitCode.ABORTED))
    return parsed


def resolve_batch_size(batch_size: Optional[int], cfg: Config) -> int:
    size = batch_size if batch_size is not None else cfg.batch_size
    if not 1 <= size <= cfg.max_delete_batch_size:
        console.print(f"✗ Batch size must be between 1 and {cfg.max_delete_batch_size}", style="bold red")
        raise typer.Exit(code=int(ExitCode.ABORTED))
    return size


def check_confirmation_flags(confirm: bool, non_interactive: bool, confirm_phrase: Optional[str]) -> None:
    if non_interactive and confirm and not confirm_phrase:
        console.print("✗ --non-interactive requires --confirm-phrase for live deletions", style="bold red")
        raise typer.Exit(code=int(ExitCode.ABORTED))


def make_confirm(kind: str, non_interactive: bool, confirm_phrase: Optional[str]):
    """Build the confirmation callback of a live run."""

    def confirm(result: CleanupResult) -> bool:
        count = len(result.candidates)
        phrase = confirmation_phrase(count, kind)

        if non_interactive:
            if (confirm_phrase or "").strip() != phrase:
                console.print(f"✗ Confirmation phrase does not match. Expected: {phrase}", style="bold red")
                return False
            return True

        console.print(f"\n[bold red]⚠️  WARNING: This will permanently delete {count} item(s).[/bold red]")
        if result.backup_dir:
            console.print(f"Schema backups were saved to {result.backup_dir}", style="dim")
        typed = typer.prompt(f'Type "{phrase}" to confirm')
        if typed.strip() != phrase:
            console.print("Confirmation phrase did not match. Nothing was deleted.", style="yellow")
            return False
        return True

    return confirm


def select_interactively(data_extensions: list[DataExtension]) -> list[DataExtension]:
    """Ask per data extension; items without protection or dependencies default to yes."""
    console.print(f"\n[bold]Select data extensions to delete ({len(data_extensions)} candidates):[/bold]")
    selected = []
    for de in data_extensions:
        flags = []
        if de.has_dependencies:
            flags.append(f"{len(de.dependencies)} dependencies")
        if de.has_pii:
            flags.append("PII")
        suffix = f" [{', '.join(flags)}]" if flags else ""
        default = not de.is_protected and not de.has_dependencies
        if typer.confirm(f"Delete {de.name} ({de.customer_key}){suffix}?", default=default):
            selected.append(de)
    console.print(f"Selected {len(selected)} of {len(data_extensions)}")
    return selected


def show_dependency_progress(current: int, total: int, customer_key: str) -> None:
    if current == total or current % 10 == 0:
        console.print(f"  Checked dependencies {current}/{total}", style="dim")


def show_item_result(index: int, total: int, name: str, success: bool, error: Optional[str]) -> None:
    if success:
        console.print(f"  [{index}/{total}] ✓ {name}", style="green")
    else:
        console.print(f"  [{index}/{total}] ✗ {name}: {error}", style="red")


def finish_run(result: CleanupResult, reporter: CleanupReporter, webhook_url: Optional[str]) -> None:
    """Print the outcome of a run, notify the webhook and exit with the run's code."""
    if result.exit_code == ExitCode.ABORTED and result.phase != RunPhase.REPORT:
        console.print(f"\n✗ {result.message}", style="bold red")
        reporter.display_suggestions(result.suggestions)
        if result.phase == RunPhase.PROTECTION_CHECK:
            reporter.display_protected(result.protected)
        elif result.phase == RunPhase.DEPENDENCY_CHECK:
            reporter.display_dependencies(result.dependent)
        hint = _PHASE_HINTS.get(result.phase)
        if hint:
            console.print(hint, style="dim")
        if result.cancelled and result.candidates:
            console.print(f"Resume with: --resume {result.operation_id}", style="yellow")
    elif result.phase == RunPhase.REPORT:
        reporter.display_report(result)
    elif result.dry_run and result.candidates:
        console.print(f"\n✓ Dry run complete. {len(result.candidates)} item(s) would be deleted.", style="bold green")
        console.print("Re-run with --confirm to delete.", style="dim")
        if result.audit_path:
            console.print(f"Audit log: {result.audit_path}", style="dim")
    elif result.message:
        console.print(f"\n{result.message}", style="yellow")

    if webhook_url:
        send_webhook(webhook_url, result.summary(), timeout=get_config().webhook_timeout_ms / 1000.0)

    raise typer.Exit(code=int(result.exit_code))


@app.callback()
def main(
    config_path: Optional[str] = typer.Option(None, "--config", "-c", help="Config file (default: ~/.sfmc-cleanup/config.yaml)"),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Enable verbose logging"),
    quiet: bool = typer.Option(False, "--quiet", "-q", help="Suppress output except errors"),
    no_color: bool = typer.Option(False, "--no-color", help="Disable colored output"),
):
    """Safety-gated bulk deletion of Marketing Cloud folders and data extensions."""
    global config

    # Load configuration
    try:
        config = Config.load(config_path)
    except FatalConfigError as e:
        console.print(f"✗ {e}", style="bold red")
        raise typer.Exit(code=int(ExitCode.ABORTED))

    # Setup logging
    log_level = "ERROR" if quiet else ("DEBUG" if verbose else config.log_level)
    setup_logging(level=log_level, verbose=verbose, log_file=config.logs_dir)

    # Disable colors if requested
    if no_color:
        console.no_color = True


@app.command()
def version():
    """Show version information."""
    console.print(f"sfmc-cleanup version {__version__}")
    console.print(f"Python {sys.version.split()[0]}")


@app.command("delete-data-extensions")
def delete_data_extensions(
    folder: str = typer.Option(..., "--folder", "-f", help="Folder path (A/B/C) or folder name"),
    confirm: bool = typer.Option(False, "--confirm", help="Delete for real (default is a dry run)"),
    skip_protected: bool = typer.Option(False, "--skip-protected", help="Leave protected items in place instead of aborting"),
    skip_dependency_check: bool = typer.Option(False, "--skip-dependency-check", help="Do not look up dependencies"),
    force_with_dependencies: bool = typer.Option(
        False, "--force-delete-with-dependencies", help="Delete data extensions that still have dependencies"
    ),
    no_backup: bool = typer.Option(False, "--no-backup", help="Skip schema backups"),
    no_subfolders: bool = typer.Option(False, "--no-subfolders", help="Only the target folder, not its subfolders"),
    older_than_days: Optional[int] = typer.Option(None, "--older-than-days", help="Only items not modified for N days"),
    created_before: Optional[str] = typer.Option(None, "--created-before", help="Only items created before YYYY-MM-DD"),
    created_after: Optional[str] = typer.Option(None, "--created-after", help="Only items created after YYYY-MM-DD"),
    modified_before: Optional[str] = typer.Option(None, "--modified-before", help="Only items modified before YYYY-MM-DD"),
    modified_after: Optional[str] = typer.Option(None, "--modified-after", help="Only items modified after YYYY-MM-DD"),
    include_pattern: Optional[str] = typer.Option(None, "--include-pattern", help="Regex on name or customer key"),
    exclude_pattern: Optional[str] = typer.Option(None, "--exclude-pattern", help="Regex on name or customer key"),
    batch_size: Optional[int] = typer.Option(None, "--batch-size", help="Deletions between progress checkpoints"),
    interactive: bool = typer.Option(False, "--interactive", "-i", help="Choose items one by one"),
    no_row_count: bool = typer.Option(False, "--no-row-count", help="Skip row counts in the preview"),
    resume: Optional[str] = typer.Option(None, "--resume", help="Operation ID to resume"),
    non_interactive: bool = typer.Option(False, "--non-interactive", help="Never prompt"),
    confirm_phrase: Optional[str] = typer.Option(None, "--confirm-phrase", help="Confirmation phrase for --non-interactive"),
    webhook_url: Optional[str] = typer.Option(None, "--webhook-url", help="POST a summary here when the run ends"),
    refresh_cache: bool = typer.Option(False, "--refresh-cache", help="Reload the folder tree from the platform"),
):
    """Delete the data extensions of a folder.

    Runs are dry runs unless --confirm is given. Protected data extensions and
    data extensions with dependencies abort the run unless explicitly allowed.

    Examples:
        sfmc-cleanup delete-data-extensions --folder "Data Extensions/Archive"
        sfmc-cleanup delete-data-extensions --folder Archive --older-than-days 180 --confirm
        sfmc-cleanup delete-data-extensions --folder Archive --resume op_20250101_120000_ab12cd34 --confirm
    """
    cfg = get_config()
    try:
        if interactive and non_interactive:
            console.print("✗ --interactive cannot be combined with --non-interactive", style="bold red")
            raise typer.Exit(code=int(ExitCode.ABORTED))
        check_confirmation_flags(confirm, non_interactive, confirm_phrase)

        options = DeletionOptions(
            dry_run=not confirm,
            skip_protected=skip_protected,
            skip_dependency_check=skip_dependency_check,
            force_with_dependencies=force_with_dependencies,
            backup=not no_backup,
            include_subfolders=not no_subfolders,
            older_than_days=older_than_days,
            created_before=parse_date_option(created_before, "--created-before"),
            created_after=parse_date_option(created_after, "--created-after"),
            modified_before=parse_date_option(modified_before, "--modified-before"),
            modified_after=parse_date_option(modified_after, "--modified-after"),
            include_pattern=include_pattern,
            exclude_pattern=exclude_pattern,
            batch_size=resolve_batch_size(batch_size, cfg),
            interactive=interactive,
            include_row_count=not no_row_count,
            refresh_cache=refresh_cache,
            resume_operation_id=resume,
        )
        options.validate()

        services = build_services(cfg)
        reporter = CleanupReporter(console, max_items=cfg.max_items_to_display)
        cleaner = DataExtensionCleaner(
            services.gateway,
            services.resolver,
            services.data_extension_service,
            services.safety_checker,
            services.audit_storage,
            services.state_storage,
            services.backup_storage,
            token=services.token,
            delay_seconds=cfg.delay_seconds,
            dependency_checker=services.dependency_checker,
        )
        callbacks = RunCallbacks(
            on_dependency_progress=show_dependency_progress,
            select=select_interactively,
            preview=reporter.display_preview,
            confirm=make_confirm("data_extension", non_interactive, confirm_phrase),
            on_item=show_item_result,
        )

        if options.dry_run:
            console.print("ℹ Dry run: nothing will be deleted. Add --confirm to delete.", style="dim")

        with handle_interrupts(services.token):
            result = cleaner.run(folder, options, callbacks)

    except typer.Exit:
        raise
    except (FatalConfigError, ValueError) as e:
        console.print(f"✗ {e}", style="bold red")
        raise typer.Exit(code=int(ExitCode.ABORTED))
    except Exception as e:
        console.print(f"✗ Error deleting data extensions: {e}", style="bold red")
        logger.exception("Error in delete-data-extensions command")
        raise typer.Exit(code=int(ExitCode.FAILURES))

    finish_run(result, reporter, webhook_url or cfg.webhook_url)


@app.command("delete-folders")
def delete_folders(
    folder: str = typer.Option(..., "--folder", "-f", help="Folder path (A/B/C) or folder name"),
    confirm: bool = typer.Option(False, "--confirm", help="Delete for real (default is a dry run)"),
    force: bool = typer.Option(False, "--force", help="Also delete data extensions inside the folders"),
    skip_protected: bool = typer.Option(False, "--skip-protected", help="Leave protected items in place instead of aborting"),
    no_backup: bool = typer.Option(False, "--no-backup", help="Skip schema backups"),
    batch_size: Optional[int] = typer.Option(None, "--batch-size", help="Deletions between progress checkpoints"),
    resume: Optional[str] = typer.Option(None, "--resume", help="Operation ID to resume"),
    non_interactive: bool = typer.Option(False, "--non-interactive", help="Never prompt"),
    confirm_phrase: Optional[str] = typer.Option(None, "--confirm-phrase", help="Confirmation phrase for --non-interactive"),
    webhook_url: Optional[str] = typer.Option(None, "--webhook-url", help="POST a summary here when the run ends"),
    refresh_cache: bool = typer.Option(False, "--refresh-cache", help="Reload the folder tree from the platform"),
):
    """Delete a folder and all of its subfolders, deepest first.

    Folders that still contain data extensions abort the run unless --force
    is given.

    Examples:
        sfmc-cleanup delete-folders --folder "Data Extensions/Old Campaigns"
        sfmc-cleanup delete-folders --folder "Old Campaigns" --force --confirm
    """
    cfg = get_config()
    try:
        check_confirmation_flags(confirm, non_interactive, confirm_phrase)

        options = FolderDeletionOptions(
            dry_run=not confirm,
            force=force,
            skip_protected=skip_protected,
            backup=not no_backup,
            batch_size=resolve_batch_size(batch_size, cfg),
            refresh_cache=refresh_cache,
            resume_operation_id=resume,
        )
        options.validate()

        services = build_services(cfg)
        reporter = CleanupReporter(console, max_items=cfg.max_items_to_display)
        cleaner = FolderCleaner(
            services.gateway,
            services.resolver,
            services.data_extension_service,
            services.safety_checker,
            services.audit_storage,
            services.state_storage,
            services.backup_storage,
            token=services.token,
            delay_seconds=cfg.delay_seconds,
        )
        callbacks = RunCallbacks(
            preview=reporter.display_preview,
            confirm=make_confirm("folder", non_interactive, confirm_phrase),
            on_item=show_item_result,
        )

        if options.dry_run:
            console.print("ℹ Dry run: nothing will be deleted. Add --confirm to delete.", style="dim")

        with handle_interrupts(services.token):
            result = cleaner.run(folder, options, callbacks)

    except typer.Exit:
        raise
    except (FatalConfigError, ValueError) as e:
        console.print(f"✗ {e}", style="bold red")
        raise typer.Exit(code=int(ExitCode.ABORTED))
    except Exception as e:
        console.print(f"✗ Error deleting folders: {e}", style="bold red")
        logger.exception("Error in delete-folders command")
        raise typer.Exit(code=int(ExitCode.FAILURES))

    finish_run(result, reporter, webhook_url or cfg.webhook_url)


@app.command("analyze-dependencies")
def analyze_dependencies(
    folder: str = typer.Option(..., "--folder", "-f", help="Folder path (A/B/C) or folder name"),
    stale_days: Optional[int] = typer.Option(None, "--stale-days", help="Days without a run before a reference is stale"),
    csv_path: Optional[Path] = typer.Option(None, "--csv", help="Export the dependency list to CSV"),
    no_subfolders: bool = typer.Option(False, "--no-subfolders", help="Only the target folder, not its subfolders"),
    refresh_cache: bool = typer.Option(False, "--refresh-cache", help="Reload the folder tree from the platform"),
):
    """Classify what still references the data extensions of a folder.

    Examples:
        sfmc-cleanup analyze-dependencies --folder Archive
        sfmc-cleanup analyze-dependencies --folder Archive --stale-days 180 --csv deps.csv
    """
    cfg = get_config()
    try:
        services = build_services(cfg)
        reporter = CleanupReporter(console, max_items=cfg.max_items_to_display)
        services.gateway.test_connection()

        if refresh_cache:
            services.resolver.load_tree(force_refresh=True)
        target = services.resolver.resolve(folder)
        folders = [target]
        if not no_subfolders:
            folders += services.resolver.subtree(target.id, recursive=True)

        data_extensions = []
        for item in folders:
            data_extensions.extend(services.data_extension_service.list_in_folder(item.id))

        if not data_extensions:
            console.print(f"No data extensions found under {services.resolver.build_path(target.id)}", style="yellow")
            raise typer.Exit(code=0)

        console.print(f"Analyzing {len(data_extensions)} data extension(s)...")
        analyzer = DependencyAnalyzer(services.dependency_checker, stale_days=stale_days or cfg.stale_days)
        report = analyzer.analyze(data_extensions, on_progress=show_dependency_progress)
        reporter.display_analysis(report)

        if csv_path:
            report.export_csv(csv_path)
            console.print(f"\n✓ Exported dependencies to: [cyan]{csv_path}[/cyan] (CSV)")

    except typer.Exit:
        raise
    except ResolutionError as e:
        console.print(f"✗ {e}", style="bold red")
        CleanupReporter(console).display_suggestions(e.suggestions)
        raise typer.Exit(code=int(ExitCode.ABORTED))
    except (FatalConfigError, GatewayError, ValueError) as e:
        console.print(f"✗ {e}", style="bold red")
        raise typer.Exit(code=int(ExitCode.ABORTED))
    except Exception as e:
        console.print(f"✗ Error analyzing dependencies: {e}", style="bold red")
        logger.exception("Error in analyze-dependencies command")
        raise typer.Exit(code=int(ExitCode.FAILURES))


@cache_app.command("info")
def cache_info(
    tenant: Optional[str] = typer.Option(None, "--tenant", "-t", help="Business unit ID (default: configured account)"),
):
    """Show the folder cache of a tenant."""
    cfg = get_config()
    storage = CacheStorage(str(cfg.cache_dir))
    tenant_id = tenant or cfg.account_id
    if not tenant_id:
        CleanupReporter(console).display_cache_info(storage.list_all())
        return

    info = storage.info(FOLDER_CACHE_TYPE, tenant_id)
    if not info.exists:
        console.print(f"No folder cache for tenant {tenant_id}", style="yellow")
        return
    CleanupReporter(console).display_cache_info([info])
    console.print(f"File: {info.file_path}", style="dim")


@cache_app.command("clear")
def cache_clear(
    tenant: Optional[str] = typer.Option(None, "--tenant", "-t", help="Business unit ID (default: configured account)"),
    all_tenants: bool = typer.Option(False, "--all", help="Clear caches of every tenant"),
):
    """Delete cached folder trees."""
    cfg = get_config()
    storage = CacheStorage(str(cfg.cache_dir))

    if all_tenants:
        removed = storage.clear_all()
        console.print(f"✓ Removed {removed} cache file(s)", style="green")
        return

    tenant_id = tenant or cfg.account_id
    if not tenant_id:
        console.print("✗ No tenant given. Use --tenant or --all", style="bold red")
        raise typer.Exit(code=1)

    if storage.clear(FOLDER_CACHE_TYPE, tenant_id):
        console.print(f"✓ Cleared folder cache for tenant {tenant_id}", style="green")
    else:
        console.print(f"No folder cache for tenant {tenant_id}", style="yellow")


@cache_app.command("list")
def cache_list():
    """List every cache file."""
    cfg = get_config()
    CleanupReporter(console).display_cache_info(CacheStorage(str(cfg.cache_dir)).list_all())


@audit_app.command("list")
def audit_list(
    days: Optional[int] = typer.Option(None, "--days", help="Only operations from the last N days"),
):
    """List recorded deletion operations."""
    cfg = get_config()
    since = utcnow() - timedelta(days=days) if days is not None else None
    operations = AuditStorage(str(cfg.audit_dir)).query_operations(since=since)
    CleanupReporter(console).display_audit_list(operations)


@audit_app.command("show")
def audit_show(
    operation_id: str = typer.Argument(..., help="Operation ID"),
):
    """Show one operation with all of its records."""
    cfg = get_config()
    data = AuditStorage(str(cfg.audit_dir)).get_operation(operation_id)
    if data is None:
        console.print(f"✗ Operation '{operation_id}' not found", style="bold red")
        raise typer.Exit(code=1)
    CleanupReporter(console).display_audit_detail(data)


app.add_typer(cache_app, name="cache")
app.add_typer(audit_app, name="audit")


def cli_main():
    """Entry point for console script."""
    app()


if __name__ == "__main__":
    cli_main()
