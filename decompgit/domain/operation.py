"""
Apply result domain objects for decompgit.

Summarizes what RepositoryWriter.apply changed, for JSON output.
"""

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from .plan import PlanMode


@dataclass
class ApplyResult:
    """
    Outcome of applying a reconciliation plan.

    Attributes:
        mode: Plan mode that was applied
        committed: Version identifiers committed, in order
        removed_tags: Tags deleted by a rewrite
        previous_tip: Branch tip before the run
        tip: Branch tip after the run
        dry_run: True if nothing was written
    """

    mode: PlanMode
    committed: List[str] = field(default_factory=list)
    removed_tags: List[str] = field(default_factory=list)
    previous_tip: Optional[str] = None
    tip: Optional[str] = None
    dry_run: bool = False

    @property
    def changed(self) -> bool:
        return bool(self.committed or self.removed_tags)

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for JSON serialization."""
        return {
            'type': 'summary',
            'mode': self.mode.value,
            'committed': self.committed,
            'removed_tags': self.removed_tags,
            'previous_tip': self.previous_tip,
            'tip': self.tip,
            'dry_run': self.dry_run,
        }
