"""
Domain layer for decompgit.

Contains pure domain objects with no I/O or side effects:
- GameVersion, VersionSet, TargetPolicy: what should be in the repository
- RepositoryEntry, RepositorySnapshot: what is in the repository
- ReconciliationPlan: how to get from one to the other
- ApplyResult: what a run changed
"""

from .version import GameVersion, ReleaseKind, TargetPolicy, VersionSet
from .repository import (
    CURRENT_FORMAT_VERSION,
    SENTINEL_FILENAME,
    RepositoryEntry,
    RepositorySnapshot,
    SentinelMarker,
    tag_name_for,
)
from .plan import Action, ActionKind, PlanMode, ReconciliationPlan
from .operation import ApplyResult

__all__ = [
    'GameVersion',
    'ReleaseKind',
    'TargetPolicy',
    'VersionSet',
    'CURRENT_FORMAT_VERSION',
    'SENTINEL_FILENAME',
    'RepositoryEntry',
    'RepositorySnapshot',
    'SentinelMarker',
    'tag_name_for',
    'Action',
    'ActionKind',
    'PlanMode',
    'ReconciliationPlan',
    'ApplyResult',
]
