"""
Service layer for decompgit.

Services contain the business logic, using domain objects and
infrastructure abstractions:
- VersionCatalog: all known versions
- select_versions: the configured target set
- RepositoryState: what the repository holds
- reconcile: the plan from one to the other
- RepositoryWriter: applies a plan
- SyncService: one full run

Services receive their dependencies through the constructor so they
can be tested with mocks.
"""

from .version_catalog import VersionCatalog, parse_versions
from .version_selector import select_versions
from .repository_state import RepositoryState
from .reconciliation import reconcile, rewrite_reason, validate_plan
from .repository_writer import STAGING_REF, RepositoryWriter, commit_message
from .sync_service import SyncService

__all__ = [
    'VersionCatalog',
    'parse_versions',
    'select_versions',
    'RepositoryState',
    'reconcile',
    'rewrite_reason',
    'validate_plan',
    'STAGING_REF',
    'RepositoryWriter',
    'commit_message',
    'SyncService',
]
