#!/usr/bin/env python3

import click

from decompgit import __version__
from decompgit.commands.sync import sync_handler
from decompgit.commands.plan import plan_handler
from decompgit.commands.versions import versions_handler
from decompgit.commands.status import status_handler
from decompgit.commands.init import init_handler


@click.group(invoke_without_command=True)
@click.version_option(version=__version__, prog_name='decompgit')
@click.option('--state-dir', type=click.Path(file_okay=False),
              help='State directory holding the config, ./repository and the work area '
                   '(default: $DECOMPGIT_STATE_DIR or the current directory)')
@click.option('-v', '--verbose', is_flag=True, help='Debug logging on stderr')
@click.option('-q', '--quiet', is_flag=True, help='Suppress data output')
@click.pass_context
def cli(ctx, state_dir, verbose, quiet):
    """decompgit - Decompiled game sources as a git history.

    Keeps ./repository holding exactly one tagged commit per configured
    version, in release order. Without a command, runs `sync`.
    """
    ctx.ensure_object(dict)
    ctx.obj['state_dir'] = state_dir
    ctx.obj['verbose'] = verbose
    ctx.obj['quiet'] = quiet
    if ctx.invoked_subcommand is None:
        ctx.invoke(sync_handler)


cli.add_command(sync_handler)
cli.add_command(plan_handler)
cli.add_command(versions_handler)
cli.add_command(status_handler)
cli.add_command(init_handler)


def main():
    cli()

if __name__ == "__main__":
    main()
