"""
Infrastructure layer for decompgit.

Contains abstractions for external systems:
- GitClient: Git command execution
- ManifestClient: Version manifest HTTP access
- FileStore: Atomic JSON file persistence
- StateLock: Exclusive lock on the state directory

These provide clean interfaces that can be mocked for testing.
"""

from .git_client import GitClient, GitCommandError, GitTag
from .manifest_client import ManifestClient, ManifestError, DEFAULT_MANIFEST_URL
from .file_store import FileStore
from .lock import StateLock

__all__ = [
    'GitClient',
    'GitCommandError',
    'GitTag',
    'ManifestClient',
    'ManifestError',
    'DEFAULT_MANIFEST_URL',
    'FileStore',
    'StateLock',
]
