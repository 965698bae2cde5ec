"""
Handles the 'sync' command, the default action of decompgit.

One invocation is one reconciliation run: the repository ends up
holding exactly the configured versions, or is left as it was.
"""

import json
import click

from ..cli_utils import standard_command, add_common_options, load_command_config
from ..render import render_apply_summary, render_plan_table
from ..services.sync_service import SyncService


@click.command(name='sync')
@click.option('--pretty', is_flag=True, help='Show a progress bar and summary table')
@add_common_options('dry_run', 'verbose', 'quiet')
@standard_command()
def sync_handler(pretty, dry_run, verbose, quiet, **kwargs):
    """Bring the repository in line with the configuration.

    \b
    Fetches the version manifest, selects the configured versions,
    compares them with the repository and then either does nothing,
    appends new version commits, or rebuilds the whole history.

    Examples:

    \b
        decompgit sync                 # Reconcile (also the default command)
        decompgit sync --dry-run       # Show what would change
        decompgit sync --pretty        # Progress bar and summary table
    """
    config = load_command_config(verbose)
    service = SyncService(config)

    if pretty:
        return _sync_pretty(service, dry_run)

    def on_commit(version, commit):
        if not quiet:
            print(json.dumps({'type': 'commit', 'version': version.identifier, 'commit': commit},
                             ensure_ascii=False), flush=True)

    result = service.run(dry_run=dry_run, on_commit=on_commit)
    return result.to_dict()


def _sync_pretty(service: SyncService, dry_run: bool):
    """Rich progress on stderr, summary table on stdout."""
    from rich.console import Console
    from rich.progress import Progress, SpinnerColumn, TextColumn, BarColumn, TaskProgressColumn

    with Progress(
        SpinnerColumn(),
        TextColumn("[progress.description]{task.description}"),
        BarColumn(),
        TaskProgressColumn(),
        console=Console(stderr=True),
    ) as progress:
        task = progress.add_task("Reconciling...", total=None)

        def on_plan(plan):
            progress.update(task, total=len(plan.additions) or 1,
                            description=f"Plan: {plan.mode.value}")
            if dry_run:
                render_plan_table(plan)

        def on_commit(version, commit):
            progress.update(task, advance=1, description=f"Committed {version.identifier}")

        result = service.run(dry_run=dry_run, on_plan=on_plan, on_commit=on_commit)
        progress.update(task, description="Done")

    render_apply_summary(result)
    if not result.changed and not dry_run:
        click.echo("Repository is up to date.", err=True)
