"""Preference engine - orchestrates apply, unapply, status and reset.

Apply runs:
1. Loading the configuration (refusing a locked one)
2. Collecting and flattening the [set] domains
3. Loading the snapshot of earlier runs
4. Calculating the diff against the live store
5. Writing the changes, best-effort
6. Saving a snapshot that can undo every managed key

Unapply walks the snapshot backwards, restoring original values and
deleting keys that did not exist before, then removes the snapshot.
"""
import logging
import os
import warnings
from pathlib import Path
from typing import Optional

from .. import __version__
from ..config.document import ConfigDocument, LoadedConfig
from ..errors import (
    ConfigError,
    ConfigLockedError,
    DriftWarning,
    PrivilegeError,
    SnapshotError,
)
from ..external.runner import ExecMode, ExternalCommandRunner
from ..preferences.base import PreferenceStore
from ..preferences.defaults import DefaultsStore
from ..snapshot.store import Snapshot, SnapshotEntry, SnapshotStore
from ..utils.audit_log import ChangeTracker
from ..utils.logging_config import timed_section
from ..utils.services import ServiceRestarter
from ..values import format_value, to_serializable
from .collector import collect_domains, flatten
from .diff import DiffEngine, summarize_changes
from .executor import JobExecutor
from .rules import Operation, rules_for
from .schema import (
    ApplyResult,
    ConfigEntry,
    DeleteJob,
    EffectiveKey,
    PreferenceJob,
    ResetResult,
    ResolutionOrder,
    RestoreJob,
    RunOptions,
    UnapplyResult,
)
from .status import StatusReport

logger = logging.getLogger(__name__)


class PreferenceEngine:
    """
    Main engine for reconciling preferences with a configuration.

    Usage:
        engine = PreferenceEngine.from_path()
        result = await engine.apply(RunOptions(dry_run=True))
    """

    def __init__(
        self,
        config: ConfigDocument,
        snapshots: Optional[SnapshotStore] = None,
        store: Optional[PreferenceStore] = None,
        restarter: Optional[ServiceRestarter] = None,
        runner: Optional[ExternalCommandRunner] = None,
        version: str = __version__,
    ):
        """
        Initialize the engine.

        Args:
            config: Configuration document handle
            snapshots: Snapshot store (defaults to one beside the config)
            store: Live preference store (defaults to the `defaults` tool)
            restarter: Service restarter
            runner: External command runner
            version: Version recorded in snapshots
        """
        self.config = config
        self.snapshots = snapshots or SnapshotStore.for_config(config.path)
        self.store = store or DefaultsStore()
        self.restarter = restarter or ServiceRestarter()
        self.runner = runner or ExternalCommandRunner()
        self.version = version

    @classmethod
    def from_path(cls, path: Optional[Path] = None, **kwargs) -> "PreferenceEngine":
        """Engine for the configuration at path, or the discovered one."""
        config = ConfigDocument(path) if path is not None else ConfigDocument.find()
        return cls(config, **kwargs)

    # --- Shared steps ---

    def _enforce_rules(self, operation: Operation) -> None:
        """
        Check the privilege rule for an operation.

        Raises:
            PrivilegeError: If the operation needs root
        """
        rules = rules_for(operation)
        if rules.require_sudo and os.geteuid() != 0:
            raise PrivilegeError(f"{operation.value} must be run as root (sudo)")

    def _load(self, operation: Operation) -> LoadedConfig:
        rules = rules_for(operation)
        return self.config.load(respect_lock=rules.respect_lock)

    def _entries(self, loaded: LoadedConfig) -> list[ConfigEntry]:
        return flatten(collect_domains(loaded.document))

    async def _system_domains(self, options: RunOptions) -> frozenset:
        if options.check_domains or options.domain_resolution == ResolutionOrder.LITERAL_FIRST:
            return frozenset(await self.store.list_domains())
        return frozenset()

    async def _restart_services(self, options: RunOptions) -> bool:
        if not options.restart_services:
            logger.info("Skipping service restart")
            return False

        outcome = await self.restarter.restart()
        if not all(outcome.values()):
            failed = [name for name, ok in outcome.items() if not ok]
            logger.warning(f"Some services did not restart: {', '.join(failed)}")
        return True

    def _load_snapshot_for_apply(self, result: ApplyResult) -> tuple[Snapshot, bool]:
        """Load the previous snapshot, starting fresh on corruption.

        Returns:
            Tuple of (snapshot, suppress_original_capture)
        """
        if not self.snapshots.is_loadable():
            return self.snapshots.new_empty(), False

        try:
            return self.snapshots.load(), False
        except SnapshotError as e:
            message = (
                f"Bad snapshot: {e}; starting new. Unapplying will reset the "
                f"affected settings instead of restoring their previous values."
            )
            logger.warning(message)
            result.warnings.append(message)
            result.snapshot_recovered = True
            return self.snapshots.new_empty(), True

    # --- Operations ---

    async def apply(self, options: Optional[RunOptions] = None) -> ApplyResult:
        """
        Bring the live store in line with the configuration.

        Args:
            options: Run options (defaults apply when omitted)

        Returns:
            ApplyResult with the jobs and their outcome

        Raises:
            ConfigError: If the configuration is missing, invalid or locked
            DomainValidationError: If a domain does not exist (nothing is written)
            ValueConversionError: If a value cannot be represented
        """
        options = options or RunOptions()
        self._enforce_rules(Operation.APPLY)
        result = ApplyResult(dry_run=options.dry_run)

        async with timed_section("apply", target=self.config.path.name, dry_run=options.dry_run):
            loaded = self._load(Operation.APPLY)
            digest = loaded.digest
            entries = self._entries(loaded)

            previous, suppress = self._load_snapshot_for_apply(result)
            existing = previous.lookup()

            system_domains = await self._system_domains(options)
            diff = DiffEngine(self.store, system_domains, options.domain_resolution)
            changes = await diff.calculate(entries, check_domains=options.check_domains)

            for change in changes:
                ident = (change.effective.domain, change.effective.key)
                superseded = existing.pop(ident, None)

                if suppress:
                    original = None
                elif superseded is not None:
                    original = superseded.original
                elif change.current is not None:
                    original = to_serializable(change.current)
                else:
                    original = None

                result.jobs.append(PreferenceJob(
                    effective=change.effective,
                    new_value=change.desired,
                    original=original,
                ))

            executor = JobExecutor(self.store, ChangeTracker(dry_run=options.dry_run))

            if options.dry_run:
                logger.info(summarize_changes(changes))
                executor.report([f"Would apply {job.describe()}" for job in result.jobs])
                executor.report([f"Would save snapshot to {self.snapshots.path}"])
                return result

            tally = await executor.apply(result.jobs)
            result.applied = tally.succeeded
            result.failed = tally.failed

            if tally.succeeded:
                logger.info(f"Applied {tally.succeeded} settings")
                result.services_restarted = await self._restart_services(options)
            elif not result.jobs:
                logger.info("Nothing to apply; preferences already match")

            exec_run_count = 0 if suppress else previous.exec_run_count
            if options.exec_mode != ExecMode.NONE:
                exec_run_count += await self.runner.run_all(
                    loaded.model, options.exec_mode, dry_run=False
                )
            result.exec_run_count = exec_run_count

            snapshot = self.snapshots.new_empty()
            snapshot.entries = list(existing.values()) + [
                SnapshotEntry(
                    domain=job.effective.domain,
                    key=job.effective.key,
                    original=job.original,
                )
                for job in result.jobs
            ]
            snapshot.digest = digest
            snapshot.version = self.version
            snapshot.exec_run_count = exec_run_count
            self.snapshots.save(snapshot)

        return result

    async def unapply(self, options: Optional[RunOptions] = None) -> UnapplyResult:
        """
        Undo every change recorded in the snapshot.

        Raises:
            NoSnapshotError: If there is nothing to undo
            SnapshotError: If the snapshot is corrupt
            ConfigLockedError: If the configuration is locked
        """
        options = options or RunOptions()
        self._enforce_rules(Operation.UNAPPLY)
        result = UnapplyResult(dry_run=options.dry_run)

        async with timed_section("unapply", target=self.config.path.name, dry_run=options.dry_run):
            snapshot = self.snapshots.load()

            if self._config_drifted(snapshot):
                message = (
                    "Configuration changed since it was last applied; "
                    "only the applied modifications will be undone."
                )
                logger.warning(message)
                warnings.warn(message, DriftWarning, stacklevel=2)
                result.warnings.append(message)
                result.drift_detected = True

            for entry in reversed(snapshot.entries):
                effective = EffectiveKey(entry.domain, entry.key)
                if entry.original is not None:
                    result.restore_jobs.append(RestoreJob(effective, entry.original))
                else:
                    result.delete_jobs.append(DeleteJob(effective))

            executor = JobExecutor(self.store, ChangeTracker(dry_run=options.dry_run))

            if options.dry_run:
                executor.report(
                    [f"Would restore {job.effective} -> {format_value(job.value)}"
                     for job in result.restore_jobs]
                    + [f"Would delete {job.effective}" for job in result.delete_jobs]
                    + [f"Would delete snapshot at {self.snapshots.path}"]
                )
                return result

            tally = await executor.restore(result.restore_jobs, result.delete_jobs)
            result.modified = tally.succeeded
            result.failed = tally.failed

            if snapshot.exec_run_count > 0:
                message = (
                    f"{snapshot.exec_run_count} external commands were run previously; "
                    f"revert them manually."
                )
                logger.warning(message)
                result.warnings.append(message)

            if tally.succeeded:
                logger.info(f"Modified {tally.succeeded} settings")
                result.services_restarted = await self._restart_services(options)

            result.snapshot_deleted = self.snapshots.delete()

        return result

    def _config_drifted(self, snapshot: Snapshot) -> bool:
        """Compare the configuration on disk with the snapshot's digest.

        Raises:
            ConfigLockedError: If the configuration is locked
        """
        if not self.config.is_loadable():
            return True

        try:
            loaded = self._load(Operation.UNAPPLY)
        except ConfigLockedError:
            raise
        except ConfigError as e:
            logger.warning(f"Cannot read configuration: {e}")
            return True

        return loaded.digest != snapshot.digest

    async def status(self, options: Optional[RunOptions] = None) -> StatusReport:
        """Compare every configured entry with the live store. Read-only."""
        options = options or RunOptions()
        self._enforce_rules(Operation.STATUS)

        async with timed_section("status", target=self.config.path.name):
            loaded = self._load(Operation.STATUS)
            entries = self._entries(loaded)

            system_domains = await self._system_domains(options)
            diff = DiffEngine(self.store, system_domains, options.domain_resolution)
            diff.resolve_all(entries)
            comparisons = [await diff.compare(entry) for entry in entries]

        report = StatusReport.from_comparisons(comparisons)
        logger.info(report.summary())
        return report

    async def reset(self, options: Optional[RunOptions] = None) -> ResetResult:
        """
        Delete every configured key from the live store and drop the snapshot.

        Keys go back to system defaults, not to earlier values.
        """
        options = options or RunOptions()
        self._enforce_rules(Operation.RESET)
        result = ResetResult(dry_run=options.dry_run)

        async with timed_section("reset", target=self.config.path.name, dry_run=options.dry_run):
            loaded = self._load(Operation.RESET)
            entries = self._entries(loaded)
            system_domains = await self._system_domains(options)

            diff = DiffEngine(self.store, system_domains, options.domain_resolution)

            for effective in diff.resolve_all(entries):
                if await self.store.read(effective.domain, effective.key) is None:
                    logger.info(f"Skipping {effective} (not set)")
                    result.skipped.append(effective)
                else:
                    result.deleted.append(effective)

            executor = JobExecutor(self.store, ChangeTracker(dry_run=options.dry_run))

            if options.dry_run:
                lines = [f"Would reset {key} to system default" for key in result.deleted]
                if self.snapshots.is_loadable():
                    lines.append(f"Would remove snapshot at {self.snapshots.path}")
                executor.report(lines)
                return result

            tally = await executor.delete(result.deleted)
            result.failed = tally.failed
            result.deleted = [key for key in result.deleted if key not in tally.failed_keys]

            result.snapshot_removed = self.snapshots.delete()
            await self._restart_services(options)

        return result

    async def run_commands(
        self,
        options: Optional[RunOptions] = None,
        name: Optional[str] = None,
    ) -> int:
        """
        Run external commands without touching preferences.

        Args:
            options: Run options; exec_mode NONE is treated as REGULAR
            name: Run only this command

        Returns:
            Number of commands that succeeded
        """
        options = options or RunOptions()
        self._enforce_rules(Operation.EXEC)
        loaded = self._load(Operation.EXEC)

        if name is not None:
            await self.runner.run_one(loaded.model, name, dry_run=options.dry_run)
            return 1

        mode = options.exec_mode if options.exec_mode != ExecMode.NONE else ExecMode.REGULAR
        return await self.runner.run_all(loaded.model, mode, dry_run=options.dry_run)

    def lock(self) -> None:
        """Lock the configuration against mutating operations."""
        self._enforce_rules(Operation.LOCK)
        self.config.lock()

    def unlock(self) -> None:
        """Unlock the configuration."""
        self._enforce_rules(Operation.UNLOCK)
        self.config.unlock()
