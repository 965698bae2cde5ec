"""
Handles the 'init' command: write a starter configuration.
"""

import click

from ..cli_utils import standard_command, add_common_options, get_root_options
from ..config import get_state_dir, write_config_template


@click.command(name='init')
@click.option('--min-version', required=True, help='Oldest version to include')
@click.option('--max-version', required=True, help='Newest version to include')
@click.option('--include-snapshots', is_flag=True, help='Include snapshot versions')
@click.option('--force', is_flag=True, help='Overwrite an existing configuration')
@add_common_options('verbose', 'quiet')
@standard_command()
def init_handler(min_version, max_version, include_snapshots, force, verbose, quiet, **kwargs):
    """Create config.toml in the state directory.

    Examples:

    \b
        decompgit init --min-version 1.20 --max-version 1.21
        decompgit --state-dir ~/mc-sources init --min-version 1.14 --max-version 1.21.4
    """
    state_dir = get_state_dir(get_root_options().get('state_dir'))
    path = write_config_template(
        state_dir,
        min_version,
        max_version,
        include_snapshots=include_snapshots,
        force=force,
    )
    return {'config_path': str(path)}
