"""
Common CLI utilities and decorators for consistent command behavior.
"""

import json
import logging
import sys
import click
from functools import wraps
from typing import Any, Generator

from .config import Config, configure_logging, get_state_dir, load_config
from .exit_codes import (
    SUCCESS, INTERRUPTED,
    get_exit_code_for_exception, CommandError, PlanInvariantError
)

logger = logging.getLogger("decompgit")


def get_root_options() -> dict:
    """Options given to the top-level group (--state-dir, -v, -q)."""
    ctx = click.get_current_context(silent=True)
    if ctx is None:
        return {}
    return ctx.find_root().obj or {}


def standard_command():
    """
    Decorator that provides standard CLI behavior:
    - Log records on stderr
    - Clean JSON lines on stdout
    - Automatic --verbose/-v flag
    - Automatic --quiet/-q flag to suppress data output
    - Consistent error handling and exit codes
    """
    def decorator(func):

        @wraps(func)
        def wrapper(*args, **kwargs):
            root = get_root_options()
            verbose = kwargs.get('verbose', False) or root.get('verbose', False)
            quiet = kwargs.get('quiet', False) or root.get('quiet', False)
            kwargs['verbose'] = verbose
            kwargs['quiet'] = quiet

            configure_logging("DEBUG" if verbose else "INFO")

            try:
                result = func(*args, **kwargs)

                if quiet:
                    # Consume the generator so the work still happens
                    if isinstance(result, Generator):
                        for _ in result:
                            pass
                elif result is None:
                    # Command handles its own output
                    pass
                else:
                    output_result(result)

                sys.exit(SUCCESS)

            except KeyboardInterrupt:
                logger.error("Interrupted by user")
                sys.exit(INTERRUPTED)
            except click.ClickException:
                # Click exceptions already have their exit code
                raise
            except CommandError as e:
                if isinstance(e, PlanInvariantError):
                    logger.critical(str(e), exc_info=True)
                else:
                    logger.error(str(e))
                if not quiet:
                    error_obj = {
                        "error": str(e),
                        "type": type(e).__name__,
                        "exit_code": e.exit_code
                    }
                    if hasattr(e, 'version'):
                        error_obj['version'] = e.version
                    print(json.dumps(error_obj, ensure_ascii=False), flush=True)
                sys.exit(e.exit_code)
            except Exception as e:
                logger.error(f"Command failed: {e}", exc_info=verbose)
                if not quiet:
                    error_obj = {
                        "error": str(e),
                        "type": type(e).__name__
                    }
                    print(json.dumps(error_obj, ensure_ascii=False), flush=True)
                sys.exit(get_exit_code_for_exception(e))

        return wrapper
    return decorator


def output_result(result: Any):
    """
    Standard output handler for results.

    Args:
        result: The result to output (dict, list, or generator)
    """
    if isinstance(result, Generator):
        for item in result:
            print(json.dumps(item, ensure_ascii=False), flush=True)
    elif isinstance(result, (list, tuple)):
        for item in result:
            print(json.dumps(item, ensure_ascii=False), flush=True)
    elif isinstance(result, dict):
        print(json.dumps(result, ensure_ascii=False), flush=True)
    else:
        print(result, flush=True)


def load_command_config(verbose: bool = False) -> Config:
    """
    Load the configuration of the selected state directory.

    The config's logging level applies unless --verbose was given.
    """
    config = load_config(get_state_dir(get_root_options().get('state_dir')))
    if not verbose:
        configure_logging(config.log_level, config.log_format)
    return config


def use_table(table) -> bool:
    """Table output on interactive terminals unless --table/--no-table says otherwise."""
    if table is None:
        return sys.stdout.isatty()
    return table


# Standard options that many commands share
common_options = {
    'verbose': click.option('-v', '--verbose', is_flag=True,
                           help='Debug logging on stderr'),
    'quiet': click.option('-q', '--quiet', is_flag=True,
                         help='Suppress data output, show only log messages'),
    'dry_run': click.option('--dry-run', is_flag=True,
                           help='Show what would change without writing'),
    'offline': click.option('--offline', is_flag=True,
                           help='Use the cached version manifest instead of fetching it'),
    'table': click.option('--table/--no-table', default=None,
                         help='Display as formatted table (auto-detected by default)'),
}


def add_common_options(*option_names):
    """
    Decorator to add common options to a command.

    Example:
        @add_common_options('verbose', 'dry_run')
        def my_command(verbose, dry_run):
            ...
    """
    def decorator(func):
        for name in reversed(option_names):
            if name in common_options:
                func = common_options[name](func)
        return func
    return decorator
