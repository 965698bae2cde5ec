"""
Sync service for decompgit.

One run of the tool: lock the state directory, fetch the catalog,
select the target versions, inspect the repository, reconcile, apply
and verify. Every run starts from fresh facts; nothing is carried over
from a previous run except what is committed in the repository.
"""

import logging
from dataclasses import dataclass
from typing import Callable, Optional

from ..config import Config
from ..decompiler import DecompilationDriver, GradleDecompiler
from ..domain.operation import ApplyResult
from ..domain.plan import ReconciliationPlan
from ..domain.repository import RepositorySnapshot
from ..domain.version import VersionSet
from ..exit_codes import PlanInvariantError
from ..infra.git_client import GitClient
from ..infra.lock import StateLock
from ..infra.manifest_client import ManifestClient
from .reconciliation import reconcile
from .repository_state import RepositoryState
from .repository_writer import CommitCallback, RepositoryWriter
from .version_catalog import VersionCatalog
from .version_selector import select_versions

logger = logging.getLogger(__name__)

DriverFactory = Callable[[VersionSet], DecompilationDriver]


@dataclass
class RunContext:
    """Facts gathered at the start of a run."""
    catalog: VersionSet
    target: VersionSet
    driver: DecompilationDriver
    snapshot: RepositorySnapshot


class SyncService:
    """
    Drives a reconciliation run.

    Example:
        service = SyncService(load_config())
        plan = service.plan()
        result = service.run()
        print(result.committed)
    """

    def __init__(
        self,
        config: Config,
        catalog: Optional[VersionCatalog] = None,
        driver_factory: Optional[DriverFactory] = None,
        git_client: Optional[GitClient] = None,
    ):
        """
        Initialize SyncService.

        Args:
            config: Validated configuration
            catalog: Version catalog (builds one from config if None)
            driver_factory: Builds the decompilation driver from the
                catalog (Gradle driver if None)
            git_client: GitClient instance (creates new if None)
        """
        self.config = config
        self.catalog = catalog or VersionCatalog(
            ManifestClient(config.manifest_url, timeout=config.catalog_timeout),
            cache_dir=config.cache_dir,
        )
        self.driver_factory = driver_factory or self._gradle_driver
        self.git = git_client or GitClient()

    def _gradle_driver(self, catalog: VersionSet) -> DecompilationDriver:
        return GradleDecompiler(
            self.config.work_area,
            catalog,
            gradle_version=self.config.gradle_version,
            timeout=self.config.decompile_timeout,
            stop_daemon=self.config.stop_daemon,
        )

    def target_versions(self, offline: bool = False) -> VersionSet:
        """The versions the repository should hold."""
        catalog = self.catalog.list_versions(offline=offline)
        return select_versions(catalog, self.config.policy)

    def _state(self, driver: DecompilationDriver) -> RepositoryState:
        return RepositoryState(
            self.config.repository_path,
            branch=self.config.branch,
            toolchain_version=driver.toolchain_version,
            git_client=self.git,
        )

    def _gather(self, offline: bool = False) -> RunContext:
        catalog = self.catalog.list_versions(offline=offline)
        target = select_versions(catalog, self.config.policy)
        logger.info(
            f"{len(target)} versions from {self.config.min_version} to {self.config.max_version}"
            f"{' including snapshots' if self.config.include_snapshots else ''}"
        )
        driver = self.driver_factory(catalog)
        snapshot = self._state(driver).inspect()
        return RunContext(catalog=catalog, target=target, driver=driver, snapshot=snapshot)

    def inspect(self) -> RepositorySnapshot:
        """Read the repository, judging staleness against the configured toolchain."""
        return self._state(self.driver_factory(VersionSet())).inspect()

    def plan(self, offline: bool = False) -> ReconciliationPlan:
        """Compute the plan without taking the lock or writing anything."""
        context = self._gather(offline=offline)
        return reconcile(context.target, context.snapshot)

    def run(
        self,
        dry_run: bool = False,
        on_plan: Optional[Callable[[ReconciliationPlan], None]] = None,
        on_commit: Optional[CommitCallback] = None,
    ) -> ApplyResult:
        """
        Bring the repository in line with the configuration.

        Args:
            dry_run: Plan only, write nothing
            on_plan: Called with the plan before it is applied
            on_commit: Called after each version commit is staged

        Raises:
            ConcurrentRunError: If another run holds the lock
            CatalogError, InvalidRangeError, RepositoryCorruptError,
            DecompilationFailedError, RepositoryWriteError,
            PlanInvariantError: See exit_codes
        """
        with StateLock(self.config.state_dir):
            context = self._gather()
            plan = reconcile(context.target, context.snapshot)
            logger.info(
                f"Plan: {plan.mode.value} - {len(plan.additions)} to add, "
                f"{len(plan.keeps)} to keep, {len(plan.removed)} to remove ({plan.reason})"
            )
            if dry_run:
                if on_plan:
                    on_plan(plan)
                return ApplyResult(
                    mode=plan.mode,
                    committed=[a.identifier for a in plan.additions],
                    removed_tags=[e.tag for e in plan.removed],
                    previous_tip=context.snapshot.tip,
                    tip=context.snapshot.tip,
                    dry_run=True,
                )

            writer = RepositoryWriter(
                self.config.repository_path,
                context.driver,
                branch=self.config.branch,
                author_name=self.config.author_name,
                author_email=self.config.author_email,
                git_client=self.git,
            )
            if writer.discard_incomplete_run():
                # The snapshot ignores staging refs, but re-read after cleanup anyway
                context.snapshot = self._state(context.driver).inspect()
                plan = reconcile(context.target, context.snapshot)

            if on_plan:
                on_plan(plan)
            result = writer.apply(plan, context.snapshot, on_commit=on_commit)
            self._verify(context)
            return result

    def _verify(self, context: RunContext) -> None:
        """Re-inspect and make sure nothing is left to do."""
        snapshot = self._state(context.driver).inspect()
        leftover = reconcile(context.target, snapshot)
        if not leftover.is_empty:
            raise PlanInvariantError(
                f"Repository still differs from target after apply: {leftover.mode.value} "
                f"({leftover.reason})"
            )
