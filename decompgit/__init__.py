"""
decompgit - Decompiled game sources as a git history.

decompgit keeps a git repository holding one commit per game version,
in release order, each tagged with its version identifier. Every run
fetches the version manifest, selects the configured range, compares
it with the repository and then does nothing, appends new versions on
top of the branch, or rebuilds the history from scratch.

Quick Start:
    from decompgit import SyncService, load_config

    service = SyncService(load_config())

    # What would change
    plan = service.plan()
    print(plan.mode, [a.identifier for a in plan.additions])

    # Reconcile
    result = service.run()
    print(result.committed, result.tip)

Domain Objects:
    GameVersion, VersionSet - What should be in the repository
    RepositorySnapshot - What is in the repository
    ReconciliationPlan - How to get from one to the other

Layout of a state directory:
    config.toml
    repository/               the version history
    decompilationWorkArea/    Gradle project and decompiler output
"""

__version__ = "0.3.0"

from .config import Config, load_config
from .domain import (
    ApplyResult,
    GameVersion,
    PlanMode,
    ReconciliationPlan,
    RepositorySnapshot,
    VersionSet,
)
from .services import SyncService, reconcile, select_versions

__all__ = [
    '__version__',
    'Config',
    'load_config',
    'ApplyResult',
    'GameVersion',
    'PlanMode',
    'ReconciliationPlan',
    'RepositorySnapshot',
    'VersionSet',
    'SyncService',
    'reconcile',
    'select_versions',
]
