"""
Handles the 'plan' command: what a sync run would do, without the lock
and without writing anything.
"""

import click

from ..cli_utils import standard_command, add_common_options, load_command_config, use_table
from ..render import render_plan_table
from ..services.sync_service import SyncService


@click.command(name='plan')
@add_common_options('offline', 'table', 'verbose', 'quiet')
@standard_command()
def plan_handler(offline, table, verbose, quiet, **kwargs):
    """Show the reconciliation plan.

    \b
    Output format:
    - Interactive terminal: table
    - Piped/redirected: a plan summary line, then one line per action

    Examples:

    \b
        decompgit plan
        decompgit plan --offline       # Use the cached version manifest
        decompgit plan --no-table | jq 'select(.action == "add")'
    """
    config = load_command_config(verbose)
    plan = SyncService(config).plan(offline=offline)

    if use_table(table):
        if not quiet:
            render_plan_table(plan)
        return None

    def generate():
        yield plan.to_dict()
        for action in plan.actions:
            yield action.to_dict()
        for action in plan.removals:
            yield action.to_dict()

    return generate()
