"""
Handles the 'status' command: the versions committed in the repository.
"""

import click

from ..cli_utils import standard_command, add_common_options, load_command_config, use_table
from ..render import render_status_table
from ..services.sync_service import SyncService


@click.command(name='status')
@add_common_options('table', 'verbose', 'quiet')
@standard_command()
def status_handler(table, verbose, quiet, **kwargs):
    """Show the versions committed in the repository.

    \b
    Entries marked stale were built by another decompiler toolchain and
    will be rebuilt by the next sync. A corrupt repository exits with
    code 2.
    """
    config = load_command_config(verbose)
    snapshot = SyncService(config).inspect()

    if use_table(table):
        if not quiet:
            render_status_table(snapshot)
        return None

    return (entry.to_dict() for entry in snapshot.entries)
