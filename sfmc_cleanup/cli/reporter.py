"""Terminal rendering of previews, reports and analysis results."""

from __future__ import annotations

from typing import Any, Optional

from rich.console import Console
from rich.panel import Panel
from rich.table import Table

from ..cleanup.cleaner import CleanupResult, ExitCode
from ..models.cache_snapshot import CacheInfo
from ..models.data_extension import DataExtension
from ..models.folder import Folder
from ..safety.analyzer import AnalysisReport, Classification, Verdict

_CLASSIFICATION_STYLES = {
    Classification.SAFE_TO_DELETE: "green",
    Classification.REQUIRES_REVIEW: "yellow",
    Classification.UNKNOWN: "dim",
}

_VERDICT_STYLES = {
    Verdict.DELETABLE: "green",
    Verdict.REQUIRES_REVIEW: "yellow",
    Verdict.BLOCKED: "red",
}


def _fmt_rows(value: Optional[int]) -> str:
    return f"{value:,}" if value is not None else "?"


class CleanupReporter:
    """Format and display cleanup runs."""

    def __init__(self, console: Optional[Console] = None, max_items: int = 20):
        """Initialize reporter.

        Args:
            console: Rich console instance (creates new one if not provided)
            max_items: Rows shown before a list is truncated
        """
        self.console = console or Console()
        self.max_items = max_items

    def display_suggestions(self, suggestions: list[dict[str, str]]) -> None:
        if not suggestions:
            return
        self.console.print("\n[yellow]Did you mean one of these?[/yellow]")
        for suggestion in suggestions:
            self.console.print(f"  - {suggestion['path']}", style="dim")

    def display_protected(self, items: list[Any]) -> None:
        if not items:
            return
        self.console.print(f"\n[bold red]⚠️  {len(items)} PROTECTED ITEM(S) DETECTED:[/bold red]")
        for item in items[: self.max_items]:
            if isinstance(item, DataExtension):
                self.console.print(f"   - {item.name} ({item.customer_key})", style="red")
            else:
                self.console.print(f"   - {item.name} (folder {item.id})", style="red")
        self._more(len(items))

    def display_dependencies(self, data_extensions: list[DataExtension], per_item: int = 5) -> None:
        if not data_extensions:
            return
        self.console.print(
            f"\n[bold yellow]⚠️  {len(data_extensions)} DATA EXTENSION(S) HAVE DEPENDENCIES:[/bold yellow]"
        )
        for de in data_extensions[: self.max_items]:
            self.console.print(f"\n   [yellow]{de.name}:[/yellow]")
            for dep in de.dependencies[:per_item]:
                self.console.print(f"     - {dep.type}: {dep.name}", style="dim")
            if len(de.dependencies) > per_item:
                self.console.print(f"     ... and {len(de.dependencies) - per_item} more", style="dim")
            if not de.dependencies and de.has_dependencies:
                self.console.print("     - dependency lookup failed", style="dim")
        self._more(len(data_extensions))

    def display_preview(self, result: CleanupResult) -> None:
        """Show what a run is about to delete."""
        is_folder_run = result.operation.resource_kind == "folder"
        mode = "[cyan]DRY RUN[/cyan]" if result.dry_run else "[bold red]LIVE DELETION[/bold red]"

        lines = [
            f"[bold]Deletion Preview[/bold]  ({mode})",
            f"Target folder: {result.target_path}",
            f"Operation: {result.operation_id}",
        ]
        if is_folder_run:
            lines.append(f"Folders: {len(result.candidates)}")
            lines.append(f"Data extensions inside: {len(result.contained)}")
        else:
            lines.append(f"Data extensions: {len(result.candidates)}")
        lines.append(f"Total records: {result.total_rows:,}")
        if result.pii_count:
            lines.append(f"[yellow]With PII fields: {result.pii_count}[/yellow]")
        if result.dependent:
            lines.append(f"[yellow]With dependencies: {len(result.dependent)}[/yellow]")
        if result.backup_dir:
            lines.append(f"Schema backups: {result.backup_dir} ({result.backup_count})")

        self.console.print()
        self.console.print(Panel("\n".join(lines), style="yellow"))

        if is_folder_run:
            self._display_folder_table(result.candidates, result)
            if result.contained:
                self._display_data_extension_table(result.contained, title="Data extensions deleted with their folders")
        else:
            self._display_data_extension_table(result.candidates)

    def display_report(self, result: CleanupResult) -> None:
        """Show the outcome of an executed run."""
        operation = result.operation
        style = "green" if result.exit_code == ExitCode.SUCCESS else ("yellow" if result.cancelled else "red")

        table = Table(title="Deletion Report", show_header=True, header_style="bold magenta")
        table.add_column("Outcome", style="cyan", width=15)
        table.add_column("Count", justify="right", width=10)
        table.add_row("✓ Deleted", f"[green]{operation.succeeded_count}[/green]")
        if operation.failed_count:
            table.add_row("✗ Failed", f"[red]{operation.failed_count}[/red]")
        if operation.skipped_count:
            table.add_row("⊘ Skipped", f"[yellow]{operation.skipped_count}[/yellow]")
        table.add_row("━" * 15, "━" * 10, style="dim")
        table.add_row("[bold]Total", f"[bold]{operation.total_resources}")

        self.console.print()
        self.console.print(table)

        if result.failed:
            self.console.print("\n[bold red]Failed items:[/bold red]")
            for item in result.failed[: self.max_items]:
                self.console.print(f"   - {item['name']}: {item['error']}", style="red")
            self._more(len(result.failed))

        self.console.print()
        self.console.print(f"Status: [{style}]{operation.status.value}[/{style}]")
        if operation.duration_seconds is not None:
            self.console.print(f"Duration: {operation.duration_seconds:.1f}s")
        if result.audit_path:
            self.console.print(f"Audit log: {result.audit_path}", style="dim")
        if result.backup_dir:
            self.console.print(f"Schema backups: {result.backup_dir}", style="dim")
        if result.undo_path:
            self.console.print(f"Undo manifest: {result.undo_path}", style="dim")
        if result.exit_code != ExitCode.SUCCESS:
            self.console.print(f"Resume with: --resume {result.operation_id}", style="yellow")

    def display_analysis(self, report: AnalysisReport) -> None:
        """Show a dependency analysis report."""
        self.console.print()
        self.console.print(
            Panel(
                f"[bold]Dependency Analysis[/bold]\n"
                f"Stale threshold: {report.stale_days} days\n"
                f"Generated: {report.generated_at.strftime('%Y-%m-%d %H:%M:%S UTC')}",
                style="cyan",
            )
        )

        verdicts = Table(title="Data Extensions", show_header=True, header_style="bold magenta")
        verdicts.add_column("Name", style="cyan")
        verdicts.add_column("Customer Key", style="dim")
        verdicts.add_column("Dependencies", justify="right")
        verdicts.add_column("Verdict")
        verdicts.add_column("Reason", style="dim")
        for item in report.data_extensions[: self.max_items]:
            style = _VERDICT_STYLES[item.verdict]
            verdicts.add_row(
                item.name,
                item.customer_key,
                str(len(item.dependencies)),
                f"[{style}]{item.verdict.value}[/{style}]",
                item.reason,
            )
        self.console.print(verdicts)
        self._more(len(report.data_extensions))

        if report.dependencies:
            deps = Table(title="Dependencies", show_header=True, header_style="bold magenta")
            deps.add_column("Type", style="cyan")
            deps.add_column("Name")
            deps.add_column("Classification")
            deps.add_column("Reason", style="dim")
            for item in report.dependencies[: self.max_items]:
                style = _CLASSIFICATION_STYLES[item.classification]
                deps.add_row(
                    item.dependency.type,
                    item.dependency.name,
                    f"[{style}]{item.classification.value}[/{style}]",
                    item.reason,
                )
            self.console.print(deps)
            self._more(len(report.dependencies))

        summary = Table(title="Summary", show_header=True, header_style="bold magenta")
        summary.add_column("Group", style="cyan")
        summary.add_column("Count", justify="right")
        for name, count in report.count_by_verdict().items():
            summary.add_row(f"Verdict: {name}", str(count))
        for name, count in report.count_by_classification().items():
            summary.add_row(f"Dependency: {name}", str(count))
        for name, count in report.count_by_type().items():
            summary.add_row(f"Type: {name}", str(count))
        self.console.print(summary)

    def display_cache_info(self, infos: list[CacheInfo]) -> None:
        if not infos:
            self.console.print("No cache files found.", style="yellow")
            return

        table = Table(show_header=True, title="Cache Files")
        table.add_column("Type", style="cyan")
        table.add_column("Tenant")
        table.add_column("Items", justify="right")
        table.add_column("Age", style="green")
        table.add_column("Size (KB)", justify="right")
        for info in infos:
            table.add_row(
                info.resource_type,
                info.tenant_id,
                str(info.item_count) if info.exists else "-",
                info.age_string or "missing",
                f"{info.file_size / 1024:.1f}" if info.exists else "-",
            )
        self.console.print(table)

    def display_audit_list(self, operations: list[dict]) -> None:
        if not operations:
            self.console.print("No audit logs found.", style="yellow")
            return

        table = Table(show_header=True, title="Deletion Operations")
        table.add_column("Operation", style="cyan")
        table.add_column("Started", style="green")
        table.add_column("Kind")
        table.add_column("Target")
        table.add_column("Mode")
        table.add_column("Status")
        table.add_column("OK/Failed/Skipped", justify="right")
        table.add_column("Exit", justify="right")
        for data in operations:
            op = data["operation"]
            table.add_row(
                op["operation_id"],
                str(op.get("timestamp", ""))[:19].replace("T", " "),
                op.get("resource_kind", ""),
                op.get("target_folder", ""),
                op.get("mode", ""),
                op.get("status", ""),
                f"{op.get('succeeded_count', 0)}/{op.get('failed_count', 0)}/{op.get('skipped_count', 0)}",
                str(op.get("exit_code", "")),
            )
        self.console.print(table)
        self.console.print(f"\nTotal operations: {len(operations)}")

    def display_audit_detail(self, data: dict) -> None:
        op = data["operation"]
        self.console.print(f"\n[bold]Operation: {op['operation_id']}[/bold]")
        self.console.print(f"Target: {op.get('target_folder')}")
        self.console.print(f"Tenant: {op.get('tenant_id')}")
        self.console.print(f"Mode: {op.get('mode')}  Status: {op.get('status')}  Exit code: {op.get('exit_code')}")
        if op.get("pre_execution"):
            self.console.print("Pre-execution counts:")
            for key, value in op["pre_execution"].items():
                self.console.print(f"  {key}: {value}")

        records = data.get("records") or []
        if not records:
            self.console.print("\nNo deletion records.", style="dim")
            return

        table = Table(show_header=True, title="Records")
        table.add_column("Type", style="cyan")
        table.add_column("Name")
        table.add_column("Key", style="dim")
        table.add_column("Status")
        table.add_column("Detail", style="dim")
        for record in records:
            status = record.get("status", "")
            style = {"succeeded": "green", "failed": "red", "skipped": "yellow"}.get(status, "white")
            table.add_row(
                record.get("resource_type", ""),
                record.get("resource_name", ""),
                record.get("resource_key", ""),
                f"[{style}]{status}[/{style}]",
                record.get("error_message") or record.get("protection_reason") or "",
            )
        self.console.print(table)

    def _display_data_extension_table(self, data_extensions: list[DataExtension], title: Optional[str] = None) -> None:
        table = Table(show_header=True, title=title)
        table.add_column("Name", style="cyan")
        table.add_column("Customer Key", style="dim")
        table.add_column("Rows", justify="right")
        table.add_column("PII", justify="center")
        table.add_column("Deps", justify="right")
        table.add_column("Folder", style="dim")
        for de in data_extensions[: self.max_items]:
            table.add_row(
                de.name,
                de.customer_key,
                _fmt_rows(de.row_count),
                "⚠" if de.has_pii else "",
                str(len(de.dependencies)) if de.has_dependencies else "",
                de.folder_path or "",
            )
        self.console.print(table)
        self._more(len(data_extensions))

    def _display_folder_table(self, folders: list[Folder], result: CleanupResult) -> None:
        non_empty = {f.id for f in result.non_empty}
        table = Table(show_header=True, title="Folders (deletion order)")
        table.add_column("#", justify="right", style="dim")
        table.add_column("Name", style="cyan")
        table.add_column("ID", justify="right")
        table.add_column("Contents")
        for index, folder in enumerate(folders[: self.max_items], start=1):
            count = sum(1 for de in result.contained if de.folder_id == folder.id)
            contents = f"[yellow]{count} data extension(s)[/yellow]" if folder.id in non_empty else "empty"
            table.add_row(str(index), folder.name, str(folder.id), contents)
        self.console.print(table)
        self._more(len(folders))

    def _more(self, total: int) -> None:
        if total > self.max_items:
            self.console.print(f"   ... and {total - self.max_items} more", style="dim")
