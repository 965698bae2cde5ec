"""
Reconciliation engine for decompgit.

Compares the target version set with the repository snapshot and plans
how to close the gap. History is never edited in place: either new
commits are appended on top of the branch tip, or the whole history is
rebuilt from the first target version. A rebuilt history reuses the
trees of versions that are still current, so only new and stale
versions are decompiled again.

A rewrite is required when:
- an existing version is no longer in the target set
- an existing version was built by another format or toolchain
- existing versions appear in a different order than in the target
- a new version was released before the newest existing version
"""

import logging
from typing import List, Optional, Sequence

from ..domain.plan import Action, ActionKind, PlanMode, ReconciliationPlan
from ..domain.repository import RepositorySnapshot, tag_name_for
from ..domain.version import VersionSet
from ..exit_codes import PlanInvariantError

logger = logging.getLogger(__name__)


def _describe(identifiers: Sequence[str], limit: int = 5) -> str:
    shown = ", ".join(identifiers[:limit])
    if len(identifiers) > limit:
        shown += f" and {len(identifiers) - limit} more"
    return shown


def _reusable_commit(existing: RepositorySnapshot, identifier: str) -> Optional[str]:
    """Commit whose tree a rewrite can take over for `identifier`, if any."""
    entry = existing.get(identifier)
    if entry is not None and entry.current:
        return entry.commit
    return None


def rewrite_reason(target: VersionSet, existing: RepositorySnapshot) -> Optional[str]:
    """
    Explain why the history must be rebuilt, or None if it can be kept.
    """
    if not existing.entries:
        return "repository has no versions yet" if len(target) else None

    removed = [e.version for e in existing.entries if e.version not in target]
    if removed:
        return f"{len(removed)} version(s) no longer in range: {_describe(removed)}"

    stale = [e.version for e in existing.entries if not e.current]
    if stale:
        return f"{len(stale)} version(s) built by another format or toolchain: {_describe(stale)}"

    existing_ids = existing.identifiers
    kept_in_target_order = [i for i in target.identifiers if i in set(existing_ids)]
    if kept_in_target_order != existing_ids:
        return "order of existing versions no longer matches release order"

    if target.identifiers[:len(existing_ids)] != existing_ids:
        older = [
            i for i in target.identifiers[:len(existing_ids)]
            if i not in set(existing_ids)
        ]
        return f"new version(s) released before {existing_ids[-1]}: {_describe(older)}"

    return None


def reconcile(target: VersionSet, existing: RepositorySnapshot) -> ReconciliationPlan:
    """
    Plan the changes that make the repository hold exactly `target`.

    Returns:
        A validated plan. ADD and KEEP actions are in final branch order.

    Raises:
        PlanInvariantError: If the plan does not reproduce the target
    """
    reason = rewrite_reason(target, existing)

    if reason is not None:
        plan = ReconciliationPlan(
            mode=PlanMode.REWRITE,
            actions=tuple(
                Action(ActionKind.ADD, v.identifier, v, reuse_commit=_reusable_commit(existing, v.identifier))
                for v in target
            ),
            removed=tuple(e for e in existing.entries if e.version not in target),
            reason=reason,
        )
    else:
        existing_ids = set(existing.identifiers)
        actions = tuple(
            Action(ActionKind.KEEP if v.identifier in existing_ids else ActionKind.ADD, v.identifier, v)
            for v in target
        )
        additions = [a for a in actions if a.kind == ActionKind.ADD]
        if additions:
            plan = ReconciliationPlan(
                mode=PlanMode.APPEND,
                actions=actions,
                base=existing.tip,
                reason=f"{len(additions)} new version(s) after {existing.identifiers[-1]}",
            )
        else:
            plan = ReconciliationPlan(mode=PlanMode.NOOP, actions=actions, reason="up to date")

    validate_plan(plan, target, existing)
    logger.debug(f"Plan: {plan.mode.value} ({plan.reason})")
    return plan


def _fail(message: str) -> None:
    raise PlanInvariantError(f"Reconciliation plan is inconsistent: {message}")


def validate_plan(plan: ReconciliationPlan, target: VersionSet, existing: RepositorySnapshot) -> None:
    """
    Simulate the plan and check it lands exactly on `target`.

    Raises:
        PlanInvariantError: On any mismatch
    """
    existing_ids = existing.identifiers

    if plan.mode == PlanMode.REWRITE:
        state: List[str] = []
        if plan.keeps:
            _fail("a rewrite cannot keep existing commits")
        if plan.base is not None:
            _fail("a rewrite must start an orphan history")
    else:
        state = list(existing_ids)
        keeps = [a.identifier for a in plan.keeps]
        if keeps != existing_ids:
            _fail(f"kept versions {keeps} do not match existing history {existing_ids}")
        if any(a.kind != ActionKind.KEEP for a in plan.actions[:len(keeps)]):
            _fail("new versions must come after every kept version")
        if plan.removed:
            _fail("only a rewrite can drop versions")
        if plan.mode == PlanMode.APPEND and (plan.base is None or plan.base != existing.tip):
            _fail("appended commits must be parented on the current branch tip")
        if plan.mode == PlanMode.NOOP and plan.additions:
            _fail("a no-op plan cannot add versions")

    for action in plan.additions:
        if action.version is None or target.get(action.identifier) is not action.version:
            _fail(f"ADD {action.identifier} is not a target version")
        if action.reuse_commit is not None:
            entry = existing.get(action.identifier)
            if plan.mode != PlanMode.REWRITE:
                _fail(f"ADD {action.identifier} can only reuse a commit during a rewrite")
            if entry is None or not entry.current or entry.commit != action.reuse_commit:
                _fail(f"ADD {action.identifier} reuses a commit that is not a current build of it")
        if action.identifier in state:
            _fail(f"version {action.identifier} would be committed twice")
        state.append(action.identifier)

    if state != target.identifiers:
        _fail(f"post-state {state} differs from target {target.identifiers}")

    keys = [target.get(i).sort_key for i in state]
    if any(a >= b for a, b in zip(keys, keys[1:])):
        _fail("post-state is not in ascending release order")

    tags = [tag_name_for(i) for i in state]
    if len(set(tags)) != len(tags):
        _fail("two versions map to the same tag name")

    expected_removed = {e.version for e in existing.entries if e.version not in target}
    if {e.version for e in plan.removed} != expected_removed:
        _fail("removed versions do not match the versions dropped from the target")
