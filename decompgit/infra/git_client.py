"""
Git client infrastructure for decompgit.

Provides a clean abstraction over git command execution.
All git operations go through this client, making them:
- Easy to mock for testing
- Consistent in error handling
- Isolated from business logic

Version commits are built with plumbing commands against a private
index file, so the primary branch and the working tree are never
touched until the final reference update.
"""

import os
import re
import subprocess
from dataclasses import dataclass
from pathlib import Path
from typing import Dict, List, Optional, Sequence, Tuple
import logging

logger = logging.getLogger(__name__)

# git skips unusable refs while listing and only reports them on stderr
BROKEN_REF_PATTERNS = [
    re.compile(r"^warning: ignoring broken ref (\S+)$"),
    re.compile(r"^error: (\S+) does not point to a valid object!$"),
]


class GitCommandError(Exception):
    """A git command exited with a non-zero status."""

    def __init__(self, args: Sequence[str], returncode: int, stderr: str = ""):
        self.args_list = list(args)
        self.returncode = returncode
        self.stderr = (stderr or "").strip()
        message = f"git {' '.join(self.args_list)} failed with exit code {returncode}"
        if self.stderr:
            message += f": {self.stderr}"
        super().__init__(message)


@dataclass
class GitTag:
    """A git tag and the commit it resolves to."""
    name: str
    commit: Optional[str] = None


class GitClient:
    """
    Abstraction over git commands.

    Example:
        client = GitClient()
        if client.is_git_repo("/path/to/repo"):
            for tag in client.tags("/path/to/repo"):
                print(tag.name, tag.commit)
    """

    def __init__(self, executable: str = "git", timeout: Optional[int] = None):
        """
        Initialize GitClient.

        Args:
            executable: git executable to run
            timeout: Command timeout in seconds (default: none)
        """
        self.executable = executable
        self.timeout = timeout

    def _run(
        self,
        args: List[str],
        cwd: str,
        check: bool = False,
        env: Optional[Dict[str, str]] = None,
        input: Optional[str] = None,
        capture_stderr: bool = False,
    ) -> Tuple[Optional[str], int]:
        """
        Run a git command.

        Args:
            args: Arguments after the git executable
            cwd: Working directory
            check: Raise GitCommandError on non-zero exit
            env: Extra environment variables
            input: Text fed to stdin
            capture_stderr: Include stderr in output

        Returns:
            Tuple of (stdout, returncode)
        """
        full_env = None
        if env:
            full_env = os.environ.copy()
            full_env.update(env)

        try:
            result = subprocess.run(
                [self.executable] + args,
                cwd=cwd,
                capture_output=True,
                text=True,
                input=input,
                env=full_env,
                timeout=self.timeout,
            )
        except subprocess.TimeoutExpired:
            logger.warning(f"Git command timed out: git {' '.join(args)}")
            if check:
                raise GitCommandError(args, -1, "timed out")
            return None, -1
        except OSError as e:
            logger.error(f"Git command failed: git {' '.join(args)} - {e}")
            if check:
                raise GitCommandError(args, -1, str(e)) from e
            return None, -1

        if check and result.returncode != 0:
            raise GitCommandError(args, result.returncode, result.stderr)

        output = result.stdout
        if capture_stderr and result.stderr:
            output += result.stderr
        return output.strip() if output else None, result.returncode

    def is_git_repo(self, path: str) -> bool:
        """Check if path is a git repository."""
        git_dir = Path(path) / ".git"
        return git_dir.exists()

    def init(self, path: str, branch: str) -> None:
        """Create a repository whose HEAD is the (unborn) branch."""
        Path(path).mkdir(parents=True, exist_ok=True)
        self._run(["init", "-q"], cwd=path, check=True)
        self.set_head(path, branch)

    def set_head(self, path: str, branch: str) -> None:
        """Point HEAD at refs/heads/<branch>."""
        self._run(["symbolic-ref", "HEAD", f"refs/heads/{branch}"], cwd=path, check=True)

    def current_branch(self, path: str) -> Optional[str]:
        """Get the branch HEAD points to, even if unborn."""
        output, code = self._run(["symbolic-ref", "-q", "--short", "HEAD"], cwd=path)
        if code == 0 and output:
            return output.strip()
        return None

    def resolve_commit(self, path: str, rev: str) -> Optional[str]:
        """
        Resolve a revision to a commit id.

        Returns:
            Full commit id, or None if rev does not name an existing commit
        """
        output, code = self._run(["rev-parse", "--verify", "-q", f"{rev}^{{commit}}"], cwd=path)
        if code == 0 and output:
            return output.strip()
        return None

    def ref_exists(self, path: str, ref: str) -> bool:
        """True if ref exists, even when the object it names is missing."""
        _, code = self._run(["rev-parse", "--verify", "-q", ref], cwd=path)
        return code == 0

    def tags(self, path: str) -> List[GitTag]:
        """
        List tags with the commit each one resolves to.

        Tags pointing at missing objects are returned with commit None.
        """
        output, _ = self._run(["for-each-ref", "--format=%(refname)", "refs/tags"],
                                 cwd=path, capture_stderr=True, env={"LC_ALL": "C"})
        if not output:
            return []

        tags = []
        for line in output.split('\n'):
            line = line.strip()
            broken = self._broken_ref(line)
            if broken is not None:
                if broken.startswith('refs/tags/'):
                    tags.append(GitTag(name=broken[len('refs/tags/'):], commit=None))
                continue
            if not line.startswith('refs/tags/'):
                continue
            tags.append(GitTag(name=line[len('refs/tags/'):], commit=self.resolve_commit(path, line)))
        return tags

    @staticmethod
    def _broken_ref(line: str) -> Optional[str]:
        for pattern in BROKEN_REF_PATTERNS:
            match = pattern.match(line)
            if match:
                return match.group(1)
        return None

    def first_parent_history(self, path: str, tip: str) -> List[str]:
        """Commit ids on the first-parent chain ending at tip, oldest first."""
        output, _ = self._run(["rev-list", "--first-parent", "--reverse", tip], cwd=path, check=True)
        if not output:
            return []
        return [line.strip() for line in output.split('\n') if line.strip()]

    def show_file(self, path: str, commit: str, filename: str) -> Optional[str]:
        """Read a file from a commit, or None if it is not there."""
        output, code = self._run(["cat-file", "-p", f"{commit}:{filename}"], cwd=path)
        if code != 0:
            return None
        return output or ""

    def hash_object(self, path: str, content: str) -> str:
        """Store content as a blob and return its id."""
        output, _ = self._run(["hash-object", "-w", "--stdin"], cwd=path, check=True, input=content)
        return output

    def read_tree_empty(self, path: str, index_file: str) -> None:
        """Reset the given index file to an empty tree."""
        self._run(["read-tree", "--empty"], cwd=path, check=True,
                  env={"GIT_INDEX_FILE": index_file})

    def read_tree(self, path: str, index_file: str, commit: str) -> None:
        """Load the tree of commit into the given index file."""
        self._run(["read-tree", f"{commit}^{{tree}}"], cwd=path, check=True,
                  env={"GIT_INDEX_FILE": index_file})

    def add_all(self, path: str, work_tree: str, index_file: str) -> None:
        """
        Stage everything under work_tree into the index file.

        Files missing from work_tree are removed from the index, and
        ignore rules are bypassed.
        """
        git_dir = str(Path(path).resolve() / ".git")
        self._run(
            ["--git-dir", git_dir, "--work-tree", str(Path(work_tree).resolve()),
             "add", "-A", "-f", "--", "."],
            cwd=str(work_tree),
            check=True,
            env={"GIT_INDEX_FILE": index_file},
        )

    def add_blob(self, path: str, index_file: str, blob: str, filename: str,
                 mode: str = "100644") -> None:
        """Place an existing blob into the index file at filename."""
        self._run(["update-index", "--add", "--cacheinfo", f"{mode},{blob},{filename}"],
                  cwd=path, check=True, env={"GIT_INDEX_FILE": index_file})

    def write_tree(self, path: str, index_file: str) -> str:
        output, _ = self._run(["write-tree"], cwd=path, check=True,
                              env={"GIT_INDEX_FILE": index_file})
        return output

    def commit_tree(
        self,
        path: str,
        tree: str,
        message: str,
        parents: Sequence[str] = (),
        env: Optional[Dict[str, str]] = None,
    ) -> str:
        """Create a commit object for tree and return its id."""
        args = ["commit-tree", tree]
        for parent in parents:
            args += ["-p", parent]
        output, _ = self._run(args, cwd=path, check=True, env=env, input=message)
        return output

    def update_ref(self, path: str, ref: str, new: str) -> None:
        self._run(["update-ref", ref, new], cwd=path, check=True)

    def delete_ref(self, path: str, ref: str) -> None:
        self._run(["update-ref", "-d", ref], cwd=path, check=True)

    def update_refs(self, path: str, commands: List[str]) -> None:
        """
        Apply reference updates in a single transaction.

        Each command is an `update-ref --stdin` line, e.g.
        "update refs/heads/main <new> <old>". Either all succeed or
        none are applied.
        """
        if not commands:
            return
        self._run(["update-ref", "--stdin"], cwd=path, check=True,
                  input="\n".join(commands) + "\n")

    def reset_hard(self, path: str) -> None:
        """Make the index and working tree match HEAD."""
        self._run(["reset", "--hard", "-q"], cwd=path, check=True)
