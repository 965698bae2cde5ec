"""
Reconciliation plan domain objects for decompgit.

A plan lists, in final branch order, what happens to every target
version, and how the history is produced:
- NOOP: every target version is already committed, nothing to do
- APPEND: new commits go on top of the current branch tip
- REWRITE: a brand new history replaces the old one
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional, Tuple

from .repository import RepositoryEntry
from .version import GameVersion


class ActionKind(Enum):
    """What happens to one version."""
    ADD = "add"
    KEEP = "keep"
    REMOVE = "remove"


class PlanMode(Enum):
    """How the planned history is built."""
    NOOP = "noop"
    APPEND = "append"
    REWRITE = "rewrite"


@dataclass(frozen=True)
class Action:
    """
    A single plan step for one version.

    An ADD may name an existing commit in `reuse_commit`; its tree is
    committed again on the new history instead of decompiling the version.
    """
    kind: ActionKind
    identifier: str
    version: Optional[GameVersion] = None
    reuse_commit: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        result = {'action': self.kind.value, 'version': self.identifier}
        if self.version is not None:
            result['kind'] = self.version.kind.value
            result['release_time'] = self.version.release_time.isoformat()
        if self.reuse_commit is not None:
            result['reuse'] = self.reuse_commit
        return result


@dataclass(frozen=True)
class ReconciliationPlan:
    """
    Ordered actions that turn the repository into the target set.

    Attributes:
        mode: How the history is built
        actions: ADD and KEEP actions in final branch order
        removed: Existing entries that will no longer be tagged
        base: Commit new commits are parented on (APPEND only)
        reason: Why this mode was chosen, for the operator
    """

    mode: PlanMode
    actions: Tuple[Action, ...] = field(default_factory=tuple)
    removed: Tuple[RepositoryEntry, ...] = field(default_factory=tuple)
    base: Optional[str] = None
    reason: str = ""

    @property
    def additions(self) -> List[Action]:
        return [a for a in self.actions if a.kind == ActionKind.ADD]

    @property
    def keeps(self) -> List[Action]:
        return [a for a in self.actions if a.kind == ActionKind.KEEP]

    @property
    def removals(self) -> List[Action]:
        """Tags dropped by a rewrite, as REMOVE actions."""
        return [Action(ActionKind.REMOVE, e.version) for e in self.removed]

    @property
    def is_empty(self) -> bool:
        """True if applying the plan would change nothing."""
        return not self.additions and not self.removed

    @property
    def final_identifiers(self) -> List[str]:
        return [a.identifier for a in self.actions]

    def to_dict(self) -> Dict[str, Any]:
        return {
            'type': 'plan',
            'mode': self.mode.value,
            'reason': self.reason,
            'add': len(self.additions),
            'keep': len(self.keeps),
            'remove': len(self.removed),
        }
