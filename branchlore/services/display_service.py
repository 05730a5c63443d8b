"""Display and formatting service for branches, queries and merges"""
import json
from typing import Any, Dict, List, Optional

from rich.console import Console
from rich.syntax import Syntax
from rich.table import Table

from branchlore.models.branch import Branch, BranchStatus
from branchlore.models.merge import MergeResult
from branchlore.models.query import QueryResult
from branchlore.utils.logging import get_logger

logger = get_logger(__name__)


def format_size(size: Optional[int]) -> str:
    """Human-readable byte count."""
    if size is None:
        return "-"
    value = float(size)
    for unit in ("B", "KB", "MB", "GB"):
        if value < 1024 or unit == "GB":
            return f"{value:.0f} {unit}" if unit == "B" else f"{value:.1f} {unit}"
        value /= 1024
    return f"{size} B"


def format_value(value: Any) -> str:
    if value is None:
        return "NULL"
    if isinstance(value, bytes):
        return f"<{len(value)} bytes>"
    return str(value)


class DisplayService:
    def __init__(self, console: Optional[Console] = None, verbose: bool = False):
        self.console = console or Console()
        self.verbose = verbose

    def display_branches(self, branches: List[Branch], trunk: str) -> None:
        """Display a table of branches, trunk first."""
        table = Table(title="Branches")
        table.add_column("Branch")
        table.add_column("Revision")
        table.add_column("Created")

        for branch in branches:
            name = f"* {branch.name}" if branch.name == trunk else f"  {branch.name}"
            table.add_row(
                name,
                branch.short_revision,
                branch.created_at.strftime("%Y-%m-%d %H:%M:%S"),
                style="cyan" if branch.is_main else None,
            )

        self.console.print(table)

    def display_branch_status(self, status: BranchStatus) -> None:
        branch = status.branch
        self.console.print(f"[bold]Branch:[/bold] {branch.name}" + (" [cyan](main)[/cyan]" if branch.is_main else ""))
        self.console.print(f"  Revision: {branch.revision}")
        self.console.print(f"  Created:  {branch.created_at.isoformat()}")
        self.console.print(f"  Database: {status.db_path}")
        if status.db_exists:
            self.console.print(f"  Size:     {format_size(status.size)}")
        else:
            self.console.print("  [dim]Database not materialized yet[/dim]")

    def display_query_result(self, result: QueryResult, output: str = "table") -> None:
        """Render a query result as a table or as JSON."""
        if output == "json":
            self.console.print_json(json.dumps(result.to_dict(), default=format_value))
            return

        if not result.is_result_set:
            self.console.print(
                f"[green]OK[/green] {result.rows_affected} row(s) affected"
                + (f", last insert id {result.last_insert_id}" if result.last_insert_id else "")
            )
            return

        table = Table()
        for column in result.columns:
            table.add_column(column)
        for row in result.rows:
            table.add_row(*(format_value(value) for value in row))
        self.console.print(table)
        self.console.print(f"[dim]{result.count} row(s)[/dim]")

    def display_merge_result(self, source: str, target: str, result: MergeResult) -> None:
        if result.success:
            self.console.print(f"[green]Merged {source} into {target}[/green]")
            if self.verbose and result.message:
                self.console.print(result.message, markup=False)
            return

        if result.has_conflicts:
            self.console.print(f"[red]Merge of {source} into {target} has conflicts:[/red]")
            for conflict in result.conflicts:
                self.console.print(f"  {conflict}", markup=False)
            self.console.print("[yellow]The merge was aborted; resolve the conflict and merge again.[/yellow]")
        else:
            self.console.print(f"[red]Merge of {source} into {target} failed[/red]")
            if result.message:
                self.console.print(result.message, markup=False)

    def display_schema(self, branch: str, schema: Dict[str, str]) -> None:
        if not schema:
            self.console.print(f"[dim]No tables on {branch}[/dim]")
            return
        for table, sql in schema.items():
            self.console.print(f"[bold]{table}[/bold]")
            self.console.print(Syntax(sql, "sql", theme="ansi_dark", word_wrap=True))

    def display_status(self, summary: Dict[str, Any]) -> None:
        """Display the repository summary."""
        self.console.print(f"[bold]Repository:[/bold] {summary['repo_path']}")
        self.console.print(f"[bold]Revision:[/bold]   {summary['revision'][:8]}")
        self.console.print(
            f"Branches: {summary['branch_count']}    "
            f"Databases: {summary['database_count']}    "
            f"Worktrees: {summary['worktree_count']}"
        )

        databases = summary.get("databases") or {}
        if databases:
            table = Table(title="Databases")
            table.add_column("Branch")
            table.add_column("Path")
            for branch, path in sorted(databases.items()):
                table.add_row(branch, path)
            self.console.print(table)

        if self.verbose:
            self.console.print("\nConfiguration:")
            for key, value in summary["config"].items():
                self.console.print(f"  {key}: {value}")
