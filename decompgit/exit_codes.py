"""
Standard exit codes for decompgit commands.

Every run either succeeds (including a no-op), or fails with one of the
codes below. Commands raise a CommandError subclass and the CLI layer
turns it into the matching exit code.
"""
from typing import Optional

SUCCESS = 0                 # Successful termination, including no-op runs
GENERAL_ERROR = 1           # Configuration and other operator-fixable errors
CONFIG_ERROR = 1            # Bad range, missing or malformed config file
RECONCILIATION_ERROR = 2    # Corrupt repository or reconciliation bug guard
DECOMPILATION_ERROR = 3     # The decompiler failed for a version
LOCK_ERROR = 4              # Another run holds the state directory lock
INTERRUPTED = 130           # Terminated by Ctrl+C (SIGINT)

# Exit code mappings for exceptions that are not CommandErrors
EXCEPTION_EXIT_CODES = {
    'FileNotFoundError': GENERAL_ERROR,
    'PermissionError': GENERAL_ERROR,
    'ConnectionError': GENERAL_ERROR,
    'TimeoutError': GENERAL_ERROR,
    'GitCommandError': RECONCILIATION_ERROR,
    'KeyboardInterrupt': INTERRUPTED,
}


def get_exit_code_for_exception(exc: BaseException) -> int:
    """
    Get the appropriate exit code for an exception.

    Args:
        exc: The exception that occurred

    Returns:
        Appropriate exit code
    """
    if isinstance(exc, CommandError):
        return exc.exit_code
    exc_name = exc.__class__.__name__
    return EXCEPTION_EXIT_CODES.get(exc_name, GENERAL_ERROR)


class CommandError(Exception):
    """
    Exception that commands can raise to indicate specific exit codes.
    """
    def __init__(self, message: str, exit_code: int = GENERAL_ERROR):
        super().__init__(message)
        self.exit_code = exit_code


class ConfigurationError(CommandError):
    """Raised when the configuration file is missing or invalid."""
    def __init__(self, message: str):
        super().__init__(message, CONFIG_ERROR)


class InvalidRangeError(ConfigurationError):
    """Raised when min/max versions are unknown or out of order."""


class CatalogError(CommandError):
    """Raised when the version manifest cannot be fetched or parsed."""
    def __init__(self, message: str):
        super().__init__(message, GENERAL_ERROR)


class RepositoryCorruptError(CommandError):
    """Raised when the repository is not in a state this tool could have left it in."""
    def __init__(self, message: str):
        super().__init__(message, RECONCILIATION_ERROR)


class RepositoryWriteError(CommandError):
    """Raised when writing commits, tags or references fails."""
    def __init__(self, message: str):
        super().__init__(message, RECONCILIATION_ERROR)


class PlanInvariantError(CommandError):
    """
    Raised when a reconciliation plan does not reproduce its target.

    This is an internal defect, never an input problem.
    """
    def __init__(self, message: str):
        super().__init__(message, RECONCILIATION_ERROR)


class DecompilationFailedError(CommandError):
    """Raised when the decompiler fails for a version."""
    def __init__(self, version: str, reason: Optional[str] = None):
        message = f"Decompilation failed for version {version}"
        if reason:
            message += f": {reason}"
        super().__init__(message, DECOMPILATION_ERROR)
        self.version = version


class ConcurrentRunError(CommandError):
    """Raised when another run already holds the state directory lock."""
    def __init__(self, message: str = "Another run holds the state directory lock"):
        super().__init__(message, LOCK_ERROR)
