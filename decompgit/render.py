"""
Rendering functions for decompgit output.

This module handles all pretty-printing and table formatting.
Services return data, this module makes it human-readable.
"""

from rich.table import Table
from rich.console import Console
from rich import box
from typing import Iterable

from .domain.operation import ApplyResult
from .domain.plan import ActionKind, ReconciliationPlan
from .domain.repository import RepositorySnapshot
from .domain.version import GameVersion

console = Console()

ACTION_STYLES = {
    ActionKind.ADD: "green",
    ActionKind.KEEP: "dim",
    ActionKind.REMOVE: "red",
}


def _short(commit) -> str:
    return commit[:12] if commit else "-"


def render_versions_table(versions: Iterable[GameVersion], title: str = "Target Versions") -> None:
    """Render versions in release order."""
    versions = list(versions)
    if not versions:
        console.print("[yellow]No versions selected.[/yellow]")
        return

    table = Table(
        title=title,
        box=box.ROUNDED,
        show_header=True,
        header_style="bold magenta"
    )
    table.add_column("#", justify="right", style="dim")
    table.add_column("Version", style="cyan")
    table.add_column("Kind", style="blue")
    table.add_column("Released", style="green")

    for i, version in enumerate(versions, 1):
        table.add_row(str(i), version.identifier, version.kind.value,
                      version.release_time.strftime("%Y-%m-%d %H:%M"))

    console.print(table)


def render_plan_table(plan: ReconciliationPlan) -> None:
    """
    Render a reconciliation plan.

    ADD and KEEP actions are listed in final branch order, followed by
    the tags a rewrite removes.
    """
    table = Table(
        title=f"Plan: {plan.mode.value}",
        box=box.ROUNDED,
        show_header=True,
        header_style="bold magenta"
    )
    table.add_column("Action")
    table.add_column("Version", style="cyan")
    table.add_column("Kind", style="blue")

    for action in list(plan.actions) + plan.removals:
        style = ACTION_STYLES[action.kind]
        kind = action.version.kind.value if action.version else ""
        label = f"{action.kind.value} (reused)" if action.reuse_commit else action.kind.value
        table.add_row(f"[{style}]{label}[/{style}]", action.identifier, kind)

    if plan.actions or plan.removed:
        console.print(table)
    console.print(f"[bold]{plan.mode.value}:[/bold] {plan.reason}")
    console.print(
        f"  Add: {len(plan.additions)}  Keep: {len(plan.keeps)}  "
        f"Remove: {len(plan.removed)}"
    )


def render_status_table(snapshot: RepositorySnapshot) -> None:
    """Render the versions committed in the repository."""
    if snapshot.fresh:
        console.print(f"[yellow]No repository at {snapshot.path} yet.[/yellow]")
        return

    if not snapshot.entries:
        console.print(f"[yellow]Branch {snapshot.branch} holds no versions.[/yellow]")
        return

    table = Table(
        title=f"Repository {snapshot.path} ({snapshot.branch})",
        box=box.ROUNDED,
        show_header=True,
        header_style="bold magenta"
    )
    table.add_column("#", justify="right", style="dim")
    table.add_column("Version", style="cyan")
    table.add_column("Tag", style="blue")
    table.add_column("Commit", style="green")
    table.add_column("Status")

    for entry in snapshot.entries:
        status = "[green]current[/green]" if entry.current else "[yellow]stale[/yellow]"
        table.add_row(str(entry.position + 1), entry.version, entry.tag, _short(entry.commit), status)

    console.print(table)

    stale = sum(1 for e in snapshot.entries if not e.current)
    console.print("\n[bold]Summary:[/bold]")
    console.print(f"  Versions: {len(snapshot.entries)}")
    console.print(f"  Tip: {_short(snapshot.tip)}")
    if stale:
        console.print(f"  [yellow]Stale (will be rebuilt): {stale}[/yellow]")


def render_apply_summary(result: ApplyResult) -> None:
    """Render what a sync run changed."""
    mode = "[bold yellow]DRY RUN[/bold yellow] " if result.dry_run else ""

    table = Table(title=f"{mode}Sync Summary", show_header=True)
    table.add_column("Metric", style="cyan")
    table.add_column("Value", justify="right", style="green")

    table.add_row("Mode", result.mode.value)
    table.add_row("Versions committed" if not result.dry_run else "Versions to commit",
                  str(len(result.committed)))
    table.add_row("Tags removed" if not result.dry_run else "Tags to remove",
                  str(len(result.removed_tags)))
    table.add_row("Previous tip", _short(result.previous_tip))
    table.add_row("Tip", _short(result.tip))

    console.print(table)
