"""
Repository writer for decompgit.

Applies a reconciliation plan to the git repository. New commits are
built with plumbing commands against a private index and recorded under
a staging ref; the primary branch and the version tags are repointed in
one reference transaction only after every commit exists. A failed or
interrupted run therefore leaves the branch and tags untouched, and its
staging ref is discarded by the next run.
"""

import logging
import shutil
from pathlib import Path
from typing import Callable, Dict, List, Optional, Tuple

from ..decompiler import DecompilationDriver
from ..domain.operation import ApplyResult
from ..domain.plan import PlanMode, ReconciliationPlan
from ..domain.repository import SENTINEL_FILENAME, RepositorySnapshot, SentinelMarker, tag_name_for
from ..domain.version import GameVersion
from ..exit_codes import DecompilationFailedError, RepositoryWriteError
from ..infra.git_client import GitClient, GitCommandError

logger = logging.getLogger(__name__)

STAGING_REF = "refs/decompgit/staging"
STAGING_INDEX = "decompgit-staging.index"

CommitCallback = Callable[[GameVersion, str], None]


def commit_message(version: GameVersion) -> str:
    return (
        f"Version {version.identifier} ({version.kind.value})\n"
        f"\n"
        f"Release time: {version.release_time.isoformat()}\n"
    )


class RepositoryWriter:
    """
    Writes version commits and tags.

    Example:
        writer = RepositoryWriter(Path("repository"), driver)
        writer.discard_incomplete_run()
        result = writer.apply(plan, snapshot)
    """

    def __init__(
        self,
        repo_path: Path,
        driver: DecompilationDriver,
        branch: str = "main",
        author_name: str = "decompgit",
        author_email: str = "decompgit@localhost",
        git_client: Optional[GitClient] = None,
    ):
        self.repo_path = Path(repo_path)
        self.driver = driver
        self.branch = branch
        self.author_name = author_name
        self.author_email = author_email
        self.git = git_client or GitClient()

    @property
    def _path(self) -> str:
        return str(self.repo_path)

    def _index_path(self) -> Path:
        return (self.repo_path / ".git" / STAGING_INDEX).resolve()

    def discard_incomplete_run(self) -> bool:
        """
        Drop the staging ref and index left by an interrupted run.

        Returns:
            True if anything was discarded
        """
        if not self.git.is_git_repo(self._path):
            return False

        discarded = False
        if self.git.ref_exists(self._path, STAGING_REF):
            logger.warning("Discarding commits staged by an incomplete previous run")
            self.git.delete_ref(self._path, STAGING_REF)
            discarded = True

        index = self._index_path()
        if index.exists():
            index.unlink()
            discarded = True
        return discarded

    def apply(
        self,
        plan: ReconciliationPlan,
        snapshot: RepositorySnapshot,
        on_commit: Optional[CommitCallback] = None,
    ) -> ApplyResult:
        """
        Apply a plan computed against `snapshot`.

        Args:
            plan: Validated reconciliation plan
            snapshot: Repository state the plan was computed from
            on_commit: Called after each version commit is staged

        Returns:
            What was committed and removed

        Raises:
            DecompilationFailedError: If the driver fails for a version
            RepositoryWriteError: If a git step fails
        """
        result = ApplyResult(mode=plan.mode, previous_tip=snapshot.tip, tip=snapshot.tip)
        if plan.is_empty:
            logger.info("Repository is up to date")
            return result

        try:
            if snapshot.fresh:
                logger.info(f"Creating repository at {self._path}")
                self.git.init(self._path, self.branch)

            staged = self._stage(plan, on_commit)
            new_tip = staged[-1][1] if staged else None
            self._cut_over(plan, snapshot, staged, new_tip)
            self._sync_working_tree(new_tip)
        except GitCommandError as e:
            raise RepositoryWriteError(f"Writing to {self._path} failed: {e}") from e
        finally:
            index = self._index_path()
            if index.exists():
                index.unlink()

        result.committed = [version.identifier for version, _ in staged]
        result.removed_tags = [entry.tag for entry in plan.removed]
        result.tip = new_tip
        return result

    def _stage(
        self,
        plan: ReconciliationPlan,
        on_commit: Optional[CommitCallback],
    ) -> List[Tuple[GameVersion, str]]:
        """Commit every ADD action on the staging ref, in plan order."""
        parent = plan.base if plan.mode == PlanMode.APPEND else None
        staged: List[Tuple[GameVersion, str]] = []

        for action in plan.additions:
            version = action.version
            if action.reuse_commit:
                commit = self._recommit_version(version, action.reuse_commit, parent)
                logger.info(f"Reused tree of {version.identifier} as {commit[:12]}")
            else:
                commit = self._commit_version(version, parent)
                logger.info(f"Committed {version.identifier} as {commit[:12]}")
            self.git.update_ref(self._path, STAGING_REF, commit)
            staged.append((version, commit))
            parent = commit
            if on_commit:
                on_commit(version, commit)
        return staged

    def _decompile(self, version: GameVersion) -> Path:
        try:
            output = Path(self.driver.decompile(version))
        except DecompilationFailedError:
            raise
        except Exception as e:
            raise DecompilationFailedError(version.identifier, str(e)) from e
        if not output.is_dir():
            raise DecompilationFailedError(version.identifier, f"output {output} is not a directory")
        return output

    def _commit_version(self, version: GameVersion, parent: Optional[str]) -> str:
        """Build the commit holding exactly the driver's output plus the marker."""
        output = self._decompile(version)
        index = str(self._index_path())

        self.git.read_tree_empty(self._path, index)
        self.git.add_all(self._path, str(output), index)
        return self._commit_index(version, index, parent)

    def _recommit_version(self, version: GameVersion, source: str, parent: Optional[str]) -> str:
        """Commit the sources of an existing build again, with a fresh marker."""
        index = str(self._index_path())
        self.git.read_tree(self._path, index, source)
        return self._commit_index(version, index, parent)

    def _commit_index(self, version: GameVersion, index: str, parent: Optional[str]) -> str:
        marker = SentinelMarker.for_version(version, self.driver.toolchain_version)
        blob = self.git.hash_object(self._path, marker.to_json())
        self.git.add_blob(self._path, index, blob, SENTINEL_FILENAME)

        tree = self.git.write_tree(self._path, index)
        return self.git.commit_tree(
            self._path,
            tree,
            commit_message(version),
            parents=[parent] if parent else [],
            env=self._commit_env(version),
        )

    def _commit_env(self, version: GameVersion) -> Dict[str, str]:
        """Author and committer identity, dated at the release time."""
        date = f"{int(version.release_time.timestamp())} +0000"
        return {
            "GIT_AUTHOR_NAME": self.author_name,
            "GIT_AUTHOR_EMAIL": self.author_email,
            "GIT_AUTHOR_DATE": date,
            "GIT_COMMITTER_NAME": self.author_name,
            "GIT_COMMITTER_EMAIL": self.author_email,
            "GIT_COMMITTER_DATE": date,
        }

    def _cut_over(
        self,
        plan: ReconciliationPlan,
        snapshot: RepositorySnapshot,
        staged: List[Tuple[GameVersion, str]],
        new_tip: Optional[str],
    ) -> None:
        """Repoint the branch and tags in a single transaction."""
        branch_ref = f"refs/heads/{self.branch}"
        commands: List[str] = []

        if new_tip and snapshot.tip:
            commands.append(f"update {branch_ref} {new_tip} {snapshot.tip}")
        elif new_tip:
            commands.append(f"create {branch_ref} {new_tip}")
        elif snapshot.tip:
            commands.append(f"delete {branch_ref} {snapshot.tip}")

        updated = set()
        for version, commit in staged:
            tag = tag_name_for(version.identifier)
            updated.add(tag)
            commands.append(f"update refs/tags/{tag} {commit}")
        # A removed version may share its sanitized tag with a new one
        for entry in plan.removed:
            if entry.tag not in updated:
                commands.append(f"delete refs/tags/{entry.tag}")
        if staged:
            commands.append(f"delete {STAGING_REF}")

        self.git.update_refs(self._path, commands)
        logger.info(
            f"Branch {self.branch} now at {new_tip[:12] if new_tip else '(empty)'} "
            f"({len(staged)} committed, {len(plan.removed)} removed)"
        )

    def _sync_working_tree(self, new_tip: Optional[str]) -> None:
        """Check out the new branch tip."""
        self.git.set_head(self._path, self.branch)
        if new_tip:
            self.git.reset_hard(self._path)
            return

        self.git.read_tree_empty(self._path, str((self.repo_path / ".git" / "index").resolve()))
        for entry in self.repo_path.iterdir():
            if entry.name == ".git":
                continue
            if entry.is_dir() and not entry.is_symlink():
                shutil.rmtree(entry)
            else:
                entry.unlink()
