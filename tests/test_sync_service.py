"""
Tests for SyncService.

Tests cover:
- Full runs against a real repository with a fake decompiler
- Dry runs, plans and repository inspection
- Lock contention between runs
- Cleanup of staging state and post-apply verification
"""

from dataclasses import replace
from unittest.mock import MagicMock, patch

import pytest

from decompgit.config import Config
from decompgit.domain.operation import ApplyResult
from decompgit.domain.plan import PlanMode
from decompgit.exit_codes import (
    CatalogError,
    ConcurrentRunError,
    DecompilationFailedError,
    InvalidRangeError,
    PlanInvariantError,
)
from decompgit.infra.git_client import GitClient
from decompgit.infra.lock import StateLock
from decompgit.services.repository_writer import STAGING_REF, RepositoryWriter
from decompgit.services.sync_service import SyncService

from conftest import requires_git


@pytest.fixture
def config(tmp_path):
    return Config(state_dir=tmp_path, min_version="1.0", max_version="1.3")


@pytest.fixture
def version_catalog(catalog):
    mock = MagicMock()
    mock.list_versions.return_value = catalog
    return mock


@pytest.fixture
def service(config, version_catalog, fake_driver):
    return SyncService(config, catalog=version_catalog, driver_factory=lambda versions: fake_driver)


class TestTargetVersions:
    """Tests for target selection."""

    def test_releases_in_range(self, service):
        """Test the configured range selects releases only by default."""
        assert service.target_versions().identifiers == ["1.0", "1.1", "1.2", "1.3"]

    def test_with_snapshots(self, config, version_catalog, fake_driver):
        """Test snapshots are added when enabled, April Fools versions are not."""
        service = SyncService(replace(config, include_snapshots=True), catalog=version_catalog,
                              driver_factory=lambda versions: fake_driver)
        assert service.target_versions().identifiers == ["1.0", "1.1", "20w06a", "1.2", "1.3"]

    def test_offline_is_passed_to_catalog(self, service, version_catalog):
        """Test offline listing reaches the catalog."""
        service.target_versions(offline=True)
        version_catalog.list_versions.assert_called_once_with(offline=True)

    def test_unknown_bound(self, config, version_catalog, fake_driver):
        """Test a bound missing from the catalog is a range error."""
        service = SyncService(replace(config, max_version="9.9"), catalog=version_catalog,
                              driver_factory=lambda versions: fake_driver)
        with pytest.raises(InvalidRangeError):
            service.target_versions()


@requires_git
class TestRun:
    """Tests for full runs."""

    def test_first_run(self, service, config):
        """Test an empty state directory ends up with every target version."""
        result = service.run()

        assert result.mode == PlanMode.REWRITE
        assert result.committed == ["1.0", "1.1", "1.2", "1.3"]
        assert not result.dry_run
        tags = sorted(t.name for t in GitClient().tags(str(config.repository_path)))
        assert tags == ["1.0", "1.1", "1.2", "1.3"]

    def test_second_run_is_noop(self, service, fake_driver):
        """Test a repeated run decompiles nothing."""
        service.run()
        calls = len(fake_driver.calls)

        result = service.run()

        assert result.mode == PlanMode.NOOP
        assert not result.changed
        assert len(fake_driver.calls) == calls

    def test_widened_range_appends(self, config, version_catalog, fake_driver):
        """Test raising max_version appends only the new versions."""
        SyncService(config, catalog=version_catalog, driver_factory=lambda v: fake_driver).run()
        fake_driver.calls.clear()

        wider = SyncService(replace(config, max_version="1.5"), catalog=version_catalog,
                            driver_factory=lambda v: fake_driver)
        result = wider.run()

        assert result.mode == PlanMode.APPEND
        assert fake_driver.calls == ["1.4", "1.5"]

    def test_narrowed_range_rewrites(self, config, version_catalog, fake_driver):
        """Test raising min_version rewrites and drops the old tags."""
        SyncService(config, catalog=version_catalog, driver_factory=lambda v: fake_driver).run()

        narrower = SyncService(replace(config, min_version="1.2"), catalog=version_catalog,
                               driver_factory=lambda v: fake_driver)
        result = narrower.run()

        assert result.mode == PlanMode.REWRITE
        assert result.removed_tags == ["1.0", "1.1"]
        assert narrower.inspect().identifiers == ["1.2", "1.3"]

    def test_callbacks(self, service):
        """Test the plan and each commit are reported."""
        plans, commits = [], []
        service.run(on_plan=plans.append, on_commit=lambda v, c: commits.append((v.identifier, c)))

        assert len(plans) == 1
        assert len(plans[0].additions) == 4
        assert [identifier for identifier, _ in commits] == ["1.0", "1.1", "1.2", "1.3"]
        assert all(len(commit) == 40 for _, commit in commits)

    def test_decompilation_failure_propagates(self, service, fake_driver, config):
        """Test a failed version aborts the run and leaves no repository history."""
        fake_driver.fail_on = {"1.2"}
        with pytest.raises(DecompilationFailedError):
            service.run()
        assert service.inspect().identifiers == []

    def test_catalog_failure_propagates(self, service, version_catalog):
        """Test catalog errors stop the run before anything is written."""
        version_catalog.list_versions.side_effect = CatalogError("manifest unreachable")
        with pytest.raises(CatalogError):
            service.run()

    def test_discards_staging_ref(self, service, config):
        """Test staging state left by an interrupted run is removed."""
        service.run()
        repo = str(config.repository_path)
        git = GitClient()
        git.update_ref(repo, STAGING_REF, git.resolve_commit(repo, "refs/tags/1.0"))

        result = service.run()

        assert result.mode == PlanMode.NOOP
        assert not git.ref_exists(repo, STAGING_REF)

    def test_verification_failure(self, service):
        """Test a repository that does not match after apply is a plan invariant error."""
        with patch.object(RepositoryWriter, "apply", return_value=ApplyResult(mode=PlanMode.REWRITE)):
            with pytest.raises(PlanInvariantError, match="still differs"):
                service.run()


@requires_git
class TestDryRun:
    """Tests for dry runs and plans."""

    def test_dry_run_writes_nothing(self, service, config, fake_driver):
        """Test a dry run reports the additions without decompiling."""
        result = service.run(dry_run=True)

        assert result.dry_run
        assert result.committed == ["1.0", "1.1", "1.2", "1.3"]
        assert fake_driver.calls == []
        assert not config.repository_path.exists()

    def test_dry_run_calls_on_plan(self, service):
        """Test the plan callback also fires for dry runs."""
        plans = []
        service.run(dry_run=True, on_plan=plans.append)
        assert plans[0].mode == PlanMode.REWRITE

    def test_plan(self, service, fake_driver):
        """Test plan() computes without writing or locking."""
        plan = service.plan()
        assert plan.final_identifiers == ["1.0", "1.1", "1.2", "1.3"]
        assert fake_driver.calls == []

    def test_plan_after_run(self, service):
        """Test a synced repository plans nothing."""
        service.run()
        assert service.plan().is_empty

    def test_inspect(self, service):
        """Test inspect() reads the repository."""
        assert service.inspect().fresh
        service.run()
        assert service.inspect().identifiers == ["1.0", "1.1", "1.2", "1.3"]


class TestLocking:
    """Tests for the state directory lock."""

    def test_concurrent_run_refused(self, service, config, fake_driver):
        """Test a run fails fast while another holds the lock."""
        with StateLock(config.state_dir):
            with pytest.raises(ConcurrentRunError):
                service.run()
        assert fake_driver.calls == []

    def test_plan_does_not_lock(self, service, config):
        """Test planning works while a run holds the lock."""
        with StateLock(config.state_dir):
            assert len(service.plan().additions) == 4

    def test_lock_released_after_failure(self, service, version_catalog, config):
        """Test a failed run releases the lock."""
        version_catalog.list_versions.side_effect = CatalogError("manifest unreachable")
        with pytest.raises(CatalogError):
            service.run()
        lock = StateLock(config.state_dir)
        lock.acquire()
        assert lock.acquired
        lock.release()
