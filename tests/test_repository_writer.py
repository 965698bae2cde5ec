"""
Tests for RepositoryWriter against real repositories.

Tests cover:
- Fresh repositories, appends and full rewrites
- Commit contents, metadata and tags
- Atomic failure: a failed decompilation leaves branch and tags untouched
- Discarding staging state left by an interrupted run
"""

import subprocess

import pytest

from decompgit.domain.plan import PlanMode
from decompgit.domain.repository import SENTINEL_FILENAME, SentinelMarker
from decompgit.domain.version import VersionSet
from decompgit.exit_codes import DecompilationFailedError, RepositoryWriteError
from decompgit.infra.git_client import GitClient, GitCommandError
from decompgit.services.reconciliation import reconcile
from decompgit.services.repository_state import RepositoryState
from decompgit.services.repository_writer import (
    STAGING_INDEX,
    STAGING_REF,
    RepositoryWriter,
    commit_message,
)

from conftest import make_version, requires_git

pytestmark = requires_git


def git_out(repo, *args):
    return subprocess.run(["git", *args], cwd=repo, capture_output=True, text=True, check=True).stdout.strip()


class Harness:
    """Inspect, reconcile and apply against one repository."""

    def __init__(self, repo, driver):
        self.repo = repo
        self.driver = driver
        self.git = GitClient()

    def state(self):
        return RepositoryState(self.repo, toolchain_version=self.driver.toolchain_version,
                               git_client=self.git).inspect()

    def writer(self):
        return RepositoryWriter(self.repo, self.driver, git_client=self.git)

    def sync(self, target):
        snapshot = self.state()
        plan = reconcile(target, snapshot)
        return plan, self.writer().apply(plan, snapshot)

    def tags(self):
        return {t.name: t.commit for t in self.git.tags(str(self.repo))}

    def tip(self):
        return self.git.resolve_commit(str(self.repo), "refs/heads/main")


@pytest.fixture
def harness(tmp_path, fake_driver):
    return Harness(tmp_path / "repository", fake_driver)


def target_of(catalog, *identifiers):
    return VersionSet(catalog.get(i) for i in identifiers)


class TestFreshRepository:
    """Tests for writing into a repository that does not exist yet."""

    def test_creates_history(self, harness, catalog):
        """Test one tagged commit per version, in release order."""
        plan, result = harness.sync(target_of(catalog, "1.0", "1.1", "1.2"))

        assert plan.mode == PlanMode.REWRITE
        assert result.committed == ["1.0", "1.1", "1.2"]
        assert sorted(harness.tags()) == ["1.0", "1.1", "1.2"]
        history = harness.git.first_parent_history(str(harness.repo), harness.tip())
        assert history == [harness.tags()[v] for v in ("1.0", "1.1", "1.2")]
        assert result.tip == harness.tip() == harness.tags()["1.2"]
        assert result.previous_tip is None

    def test_commit_contents(self, harness, catalog):
        """Test a commit holds the driver output plus the sentinel marker."""
        harness.sync(target_of(catalog, "1.0"))
        commit = harness.tags()["1.0"]

        files = git_out(harness.repo, "ls-tree", "-r", "--name-only", commit).split("\n")
        assert sorted(files) == sorted([
            SENTINEL_FILENAME, "libraries.txt", "src/net/game/Game.java", "src/net/game/V1.java",
        ])
        marker = SentinelMarker.from_json(harness.git.show_file(str(harness.repo), commit, SENTINEL_FILENAME))
        assert marker.version == "1.0"
        assert marker.toolchain_version == harness.driver.toolchain_version

    def test_commit_metadata(self, harness, catalog):
        """Test message and dates come from the version."""
        harness.sync(target_of(catalog, "1.0"))
        version = catalog.get("1.0")
        log = git_out(harness.repo, "log", "-1", "--format=%B%x00%an%x00%at%x00%ct", "1.0").split("\x00")
        assert log[0].strip() == commit_message(version).strip()
        assert log[1] == "decompgit"
        assert int(log[2]) == int(log[3]) == int(version.release_time.timestamp())

    def test_working_tree_at_tip(self, harness, catalog):
        """Test HEAD is on the branch and the files of the newest version are checked out."""
        harness.sync(target_of(catalog, "1.0", "1.1"))
        assert git_out(harness.repo, "symbolic-ref", "HEAD") == "refs/heads/main"
        assert "// 1.1" in (harness.repo / "src" / "net" / "game" / "Game.java").read_text()
        assert git_out(harness.repo, "status", "--porcelain") == ""

    def test_staging_cleaned_up(self, harness, catalog):
        """Test no staging ref or index survives a successful run."""
        harness.sync(target_of(catalog, "1.0"))
        assert not harness.git.ref_exists(str(harness.repo), STAGING_REF)
        assert not (harness.repo / ".git" / STAGING_INDEX).exists()

    def test_empty_plan_writes_nothing(self, harness):
        """Test an empty target on a fresh repository does not create it."""
        plan, result = harness.sync(VersionSet())
        assert plan.is_empty
        assert not result.changed
        assert not harness.repo.exists()


class TestAppend:
    """Tests for the append fast path."""

    def test_appends_on_previous_tip(self, harness, catalog):
        """Test new commits are children of the old tip and old commits are kept."""
        harness.sync(target_of(catalog, "1.0", "1.1"))
        before = harness.tags()

        plan, result = harness.sync(target_of(catalog, "1.0", "1.1", "1.2"))

        assert plan.mode == PlanMode.APPEND
        assert result.committed == ["1.2"]
        after = harness.tags()
        assert after["1.0"] == before["1.0"]
        assert after["1.1"] == before["1.1"]
        assert git_out(harness.repo, "rev-parse", "1.2^") == before["1.1"]
        assert result.previous_tip == before["1.1"]
        assert harness.driver.calls == ["1.0", "1.1", "1.2"]

    def test_files_removed_between_versions(self, harness, catalog):
        """Test files missing from the new output are gone from the new commit."""
        harness.sync(target_of(catalog, "1.0"))
        harness.sync(target_of(catalog, "1.0", "1.1"))
        files = git_out(harness.repo, "ls-tree", "-r", "--name-only", "1.1").split("\n")
        assert "src/net/game/V1.java" not in files
        assert "src/net/game/V2.java" in files
        assert not (harness.repo / "src" / "net" / "game" / "V1.java").exists()


class TestRewrite:
    """Tests for full history rewrites."""

    def test_removal_rewrites_history(self, harness, catalog):
        """Test dropping a version rebuilds an orphan history and deletes its tag."""
        harness.sync(target_of(catalog, "1.0", "1.1", "1.2"))
        old_tip = harness.tip()

        plan, result = harness.sync(target_of(catalog, "1.1", "1.2"))

        assert plan.mode == PlanMode.REWRITE
        assert result.removed_tags == ["1.0"]
        assert sorted(harness.tags()) == ["1.1", "1.2"]
        history = harness.git.first_parent_history(str(harness.repo), harness.tip())
        assert len(history) == 2
        assert old_tip not in history
        assert harness.state().identifiers == ["1.1", "1.2"]

    def test_backfill_rewrites_in_order(self, harness, catalog):
        """Test a version older than the tip ends up in the right place."""
        harness.sync(target_of(catalog, "1.0", "1.2"))
        harness.sync(target_of(catalog, "1.0", "1.1", "1.2"))
        assert harness.state().identifiers == ["1.0", "1.1", "1.2"]

    def test_toolchain_change_rewrites(self, harness, catalog):
        """Test a new toolchain version rebuilds every commit."""
        harness.sync(target_of(catalog, "1.0", "1.1"))
        before = harness.tags()

        harness.driver.toolchain_version = "fake-toolchain-2"
        assert not any(e.current for e in harness.state().entries)
        plan, _ = harness.sync(target_of(catalog, "1.0", "1.1"))

        assert plan.mode == PlanMode.REWRITE
        assert harness.tags()["1.0"] != before["1.0"]
        assert all(e.current for e in harness.state().entries)

    def test_rewrite_reuses_current_trees(self, harness, catalog):
        """Test a rewrite recommits current versions without decompiling them."""
        harness.sync(target_of(catalog, "1.0", "1.1", "1.2", "1.3"))
        before = harness.tags()
        harness.driver.calls.clear()

        plan, result = harness.sync(target_of(catalog, "1.1", "1.2", "1.3"))

        assert plan.mode == PlanMode.REWRITE
        assert harness.driver.calls == []
        assert result.committed == ["1.1", "1.2", "1.3"]
        after = harness.tags()
        for tag in ("1.1", "1.2", "1.3"):
            assert after[tag] != before[tag]
            assert git_out(harness.repo, "rev-parse", f"{after[tag]}^{{tree}}") == \
                git_out(harness.repo, "rev-parse", f"{before[tag]}^{{tree}}")
        assert all(e.current for e in harness.state().entries)

    def test_backfill_decompiles_only_new_version(self, harness, catalog):
        """Test inserting an older version decompiles just that version."""
        harness.sync(target_of(catalog, "1.0", "1.2", "1.3"))
        harness.driver.calls.clear()

        harness.sync(target_of(catalog, "1.0", "1.1", "1.2", "1.3"))

        assert harness.driver.calls == ["1.1"]
        assert harness.state().identifiers == ["1.0", "1.1", "1.2", "1.3"]
        assert "// 1.3" in (harness.repo / "src" / "net" / "game" / "Game.java").read_text()

    def test_stale_versions_are_decompiled_again(self, harness, catalog):
        """Test only versions from another toolchain are rebuilt."""
        harness.sync(target_of(catalog, "1.0", "1.1"))
        harness.driver.calls.clear()
        harness.driver.toolchain_version = "fake-toolchain-2"

        harness.sync(target_of(catalog, "1.0", "1.1"))

        assert harness.driver.calls == ["1.0", "1.1"]

    def test_replacing_version_with_same_tag_name(self, harness):
        """Test a new version can take over the tag of a removed one."""
        harness.sync(VersionSet([make_version("1.0 a", "2020-01-01")]))

        plan, result = harness.sync(VersionSet([make_version("1.0_a", "2020-01-02")]))

        assert plan.mode == PlanMode.REWRITE
        assert result.committed == ["1.0_a"]
        assert list(harness.tags()) == ["1.0_a"]
        assert harness.state().identifiers == ["1.0_a"]

    def test_empty_target_deletes_everything(self, harness, catalog):
        """Test an empty target removes the branch, tags and checked out files."""
        harness.sync(target_of(catalog, "1.0", "1.1"))
        plan, result = harness.sync(VersionSet())

        assert result.removed_tags == ["1.0", "1.1"]
        assert harness.tags() == {}
        assert harness.tip() is None
        assert [p.name for p in harness.repo.iterdir()] == [".git"]
        assert harness.state().entries == ()


class TestIdempotence:
    """Tests for re-running against the state just written."""

    def test_second_run_is_noop(self, harness, catalog):
        """Test reconciling right after applying yields an empty plan."""
        target = target_of(catalog, "1.0", "1.1", "1.2")
        harness.sync(target)
        tip = harness.tip()
        plan, result = harness.sync(target)
        assert plan.is_empty
        assert not result.changed
        assert harness.tip() == tip


class TestAtomicFailure:
    """Tests for failures in the middle of a plan."""

    def test_failure_on_third_of_five_fresh(self, harness, catalog):
        """Test no tags and no branch exist after a failed first run."""
        harness.driver.fail_on = {"1.2"}
        with pytest.raises(DecompilationFailedError) as exc_info:
            harness.sync(target_of(catalog, "1.0", "1.1", "1.2", "1.3", "1.4"))

        assert exc_info.value.version == "1.2"
        assert harness.tags() == {}
        assert harness.tip() is None
        assert harness.driver.calls == ["1.0", "1.1", "1.2"]

    def test_failure_on_third_of_five_append(self, harness, catalog):
        """Test tags and tip are unchanged when an append fails."""
        harness.sync(target_of(catalog, "1.0"))
        tags_before, tip_before = harness.tags(), harness.tip()

        harness.driver.fail_on = {"1.3"}
        target = catalog.filter(lambda v: v.is_release)
        assert len(target) - 1 == 5
        with pytest.raises(DecompilationFailedError):
            harness.sync(target)

        assert harness.tags() == tags_before
        assert harness.tip() == tip_before
        assert "// 1.0" in (harness.repo / "src" / "net" / "game" / "Game.java").read_text()

    def test_failure_during_rewrite_keeps_old_history(self, harness, catalog):
        """Test a failed rewrite leaves the previous history in place."""
        harness.sync(target_of(catalog, "1.0", "1.1", "1.2"))
        tags_before, tip_before = harness.tags(), harness.tip()

        harness.driver.fail_on = {"1.3"}
        with pytest.raises(DecompilationFailedError):
            harness.sync(target_of(catalog, "1.1", "1.2", "1.3", "1.4", "1.5"))

        assert harness.tags() == tags_before
        assert harness.tip() == tip_before
        assert harness.state().identifiers == ["1.0", "1.1", "1.2"]

    def test_failed_run_leaves_staging_then_discarded(self, harness, catalog):
        """Test an aborted run's staged commits are discarded by the next run."""
        harness.driver.fail_on = {"1.1"}
        with pytest.raises(DecompilationFailedError):
            harness.sync(target_of(catalog, "1.0", "1.1"))
        assert harness.git.ref_exists(str(harness.repo), STAGING_REF)

        assert harness.writer().discard_incomplete_run() is True
        assert not harness.git.ref_exists(str(harness.repo), STAGING_REF)
        assert harness.writer().discard_incomplete_run() is False

        harness.driver.fail_on = set()
        harness.sync(target_of(catalog, "1.0", "1.1"))
        assert sorted(harness.tags()) == ["1.0", "1.1"]

    def test_unexpected_driver_error_is_decompilation_failure(self, harness, catalog):
        """Test arbitrary driver exceptions are reported against the version."""
        def explode(version):
            raise RuntimeError("disk full")
        harness.driver.decompile = explode
        with pytest.raises(DecompilationFailedError, match="disk full"):
            harness.sync(target_of(catalog, "1.0"))

    def test_missing_output_directory(self, harness, catalog, tmp_path):
        """Test a driver returning a non-directory fails the version."""
        harness.driver.decompile = lambda version: tmp_path / "nowhere"
        with pytest.raises(DecompilationFailedError, match="not a directory"):
            harness.sync(target_of(catalog, "1.0"))

    def test_git_failure_is_write_error(self, harness, catalog, monkeypatch):
        """Test a failing git step surfaces as RepositoryWriteError."""
        harness.sync(target_of(catalog, "1.0"))
        tip = harness.tip()

        def fail(*args, **kwargs):
            raise GitCommandError(["update-ref", "--stdin"], 128, "fatal: cannot lock ref")
        monkeypatch.setattr(harness.git, "update_refs", fail)

        with pytest.raises(RepositoryWriteError, match="cannot lock ref"):
            harness.sync(target_of(catalog, "1.0", "1.1"))
        assert harness.tip() == tip
        assert not (harness.repo / ".git" / STAGING_INDEX).exists()

    def test_cut_over_guards_against_concurrent_branch_move(self, harness, catalog):
        """Test the branch is only moved if it still points at the inspected tip."""
        harness.sync(target_of(catalog, "1.0"))
        snapshot = harness.state()
        plan = reconcile(target_of(catalog, "1.0", "1.1"), snapshot)

        # Someone else moves the branch after inspection
        tree = git_out(harness.repo, "rev-parse", f"{harness.tip()}^{{tree}}")
        other = harness.git.commit_tree(str(harness.repo), tree, "other", env={
            "GIT_AUTHOR_NAME": "Someone", "GIT_AUTHOR_EMAIL": "someone@example.org",
            "GIT_COMMITTER_NAME": "Someone", "GIT_COMMITTER_EMAIL": "someone@example.org",
        })
        harness.git.update_ref(str(harness.repo), "refs/heads/main", other)

        with pytest.raises(RepositoryWriteError):
            harness.writer().apply(plan, snapshot)
        assert harness.tip() == other
        assert "1.1" not in harness.tags()
