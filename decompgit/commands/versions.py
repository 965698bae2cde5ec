"""
Handles the 'versions' command: the target version set.
"""

import click

from ..cli_utils import standard_command, add_common_options, load_command_config, use_table
from ..render import render_versions_table
from ..services.sync_service import SyncService


@click.command(name='versions')
@add_common_options('offline', 'table', 'verbose', 'quiet')
@standard_command()
def versions_handler(offline, table, verbose, quiet, **kwargs):
    """List the versions the repository should hold, oldest first.

    Examples:

    \b
        decompgit versions
        decompgit versions --offline --no-table
    """
    config = load_command_config(verbose)
    versions = SyncService(config).target_versions(offline=offline)

    if use_table(table):
        if not quiet:
            render_versions_table(versions)
        return None

    return (version.to_dict() for version in versions)
