"""
Repository state inspection for decompgit.

Reads tags, the primary branch and the sentinel markers of the git
repository into a RepositorySnapshot. The snapshot is taken once per
run; nothing from a previous run is trusted.
"""

import logging
from pathlib import Path
from typing import Dict, List, Optional

from ..domain.repository import (
    CURRENT_FORMAT_VERSION,
    SENTINEL_FILENAME,
    RepositoryEntry,
    RepositorySnapshot,
    SentinelMarker,
    tag_name_for,
)
from ..exit_codes import RepositoryCorruptError
from ..infra.git_client import GitClient, GitCommandError

logger = logging.getLogger(__name__)


class RepositoryState:
    """
    Inspects the version repository.

    Example:
        state = RepositoryState(Path("repository"), branch="main",
                                toolchain_version=driver.toolchain_version)
        snapshot = state.inspect()
        print(snapshot.identifiers)
    """

    def __init__(
        self,
        repo_path: Path,
        branch: str = "main",
        toolchain_version: str = "",
        git_client: Optional[GitClient] = None,
    ):
        self.repo_path = Path(repo_path)
        self.branch = branch
        self.toolchain_version = toolchain_version
        self.git = git_client or GitClient()

    def inspect(self) -> RepositorySnapshot:
        """
        Read the repository.

        Returns:
            Snapshot with entries in branch order; fresh if there is no
            repository yet

        Raises:
            RepositoryCorruptError: If the repository holds anything this
                tool would not have written
        """
        path = str(self.repo_path)

        if not self.repo_path.exists() or (self.repo_path.is_dir() and not any(self.repo_path.iterdir())):
            logger.debug(f"No repository at {path} yet")
            return RepositorySnapshot(path=path, fresh=True, branch=self.branch)

        if not self.git.is_git_repo(path):
            raise RepositoryCorruptError(f"{path} exists but is not a git repository")

        try:
            return self._inspect(path)
        except GitCommandError as e:
            raise RepositoryCorruptError(f"Cannot read repository {path}: {e}") from e

    def _inspect(self, path: str) -> RepositorySnapshot:
        branch_ref = f"refs/heads/{self.branch}"
        tip = self.git.resolve_commit(path, branch_ref)
        if tip is None and self.git.ref_exists(path, branch_ref):
            raise RepositoryCorruptError(f"Branch {self.branch} points to a missing commit")
        if tip is not None and self.git.current_branch(path) != self.branch:
            raise RepositoryCorruptError(
                f"HEAD is not on branch {self.branch}; check it out before running decompgit"
            )

        history = self.git.first_parent_history(path, tip) if tip else []
        positions: Dict[str, int] = {commit: i for i, commit in enumerate(history)}

        entries: List[RepositoryEntry] = []
        for tag in self.git.tags(path):
            if tag.commit is None:
                raise RepositoryCorruptError(f"Tag {tag.name} points to a missing object")

            marker = self._read_marker(path, tag.name, tag.commit)
            if tag_name_for(marker.version) != tag.name:
                raise RepositoryCorruptError(
                    f"Tag {tag.name} points to a commit holding version {marker.version}"
                )
            if tag.commit not in positions:
                raise RepositoryCorruptError(
                    f"Tag {tag.name} is not on the first-parent history of branch {self.branch}"
                )

            entries.append(RepositoryEntry(
                version=marker.version,
                tag=tag.name,
                commit=tag.commit,
                position=positions[tag.commit],
                current=marker.is_current(self.toolchain_version),
            ))

        entries.sort(key=lambda e: e.position)

        for previous, entry in zip(entries, entries[1:]):
            if previous.commit == entry.commit:
                raise RepositoryCorruptError(
                    f"Tags {previous.tag} and {entry.tag} point to the same commit"
                )

        if len(entries) != len(history):
            raise RepositoryCorruptError(
                f"Branch {self.branch} has {len(history)} commits but {len(entries)} version tags; "
                f"the repository was modified outside decompgit"
            )
        if entries and entries[-1].commit != tip:
            raise RepositoryCorruptError(
                f"Branch {self.branch} is not at the newest version tag {entries[-1].tag}"
            )

        stale = [e.version for e in entries if not e.current]
        if stale:
            logger.info(f"{len(stale)} version(s) were built by another format or toolchain")

        return RepositorySnapshot(
            path=path,
            fresh=False,
            branch=self.branch,
            tip=tip,
            entries=tuple(entries),
        )

    def _read_marker(self, path: str, tag: str, commit: str) -> SentinelMarker:
        text = self.git.show_file(path, commit, SENTINEL_FILENAME)
        if text is None:
            raise RepositoryCorruptError(
                f"Tag {tag} points to commit {commit[:12]} without a {SENTINEL_FILENAME} marker"
            )
        try:
            marker = SentinelMarker.from_json(text)
        except ValueError as e:
            raise RepositoryCorruptError(f"Tag {tag}: {e}") from e
        if marker.format_version > CURRENT_FORMAT_VERSION:
            raise RepositoryCorruptError(
                f"Tag {tag} was written by a newer decompgit (format {marker.format_version}, "
                f"this version understands {CURRENT_FORMAT_VERSION})"
            )
        return marker
