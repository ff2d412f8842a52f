"""Executor for running preference jobs against the live store.

Execution is best-effort: a failing key is logged, audited and counted,
and the batch moves on to the next one. Nothing is rolled back.
"""
import logging
from dataclasses import dataclass, field
from typing import Optional

from ..errors import PreferenceIOError, ValueConversionError
from ..preferences.base import PreferenceStore
from ..utils.audit_log import ChangeTracker
from ..values import format_value
from .schema import DeleteJob, EffectiveKey, PreferenceJob, RestoreJob

logger = logging.getLogger(__name__)

# Per-key failures that never abort a batch
KEY_ERRORS = (PreferenceIOError, ValueConversionError, OSError)


@dataclass
class ExecutionTally:
    """Outcome of one batch."""
    succeeded: int = 0
    failed: list[str] = field(default_factory=list)
    failed_keys: list[EffectiveKey] = field(default_factory=list)


class JobExecutor:
    """Execute write, restore and delete jobs on a preference store."""

    def __init__(self, store: PreferenceStore, tracker: Optional[ChangeTracker] = None):
        """
        Initialize executor.

        Args:
            store: Live preference store
            tracker: Audit tracker for this run (a fresh one when omitted)
        """
        self.store = store
        self.tracker = tracker or ChangeTracker()

    def report(self, lines: list[str]) -> None:
        """Log planned actions without executing them."""
        for line in lines:
            logger.info(f"[DRY-RUN] {line}")

    async def _write(
        self,
        effective: EffectiveKey,
        value,
        before,
        operation: str,
        tally: ExecutionTally,
    ) -> None:
        try:
            await self.store.write(effective.domain, effective.key, value)
        except KEY_ERRORS as e:
            logger.error(f"Failed to {operation} {effective}: {e}")
            tally.failed.append(f"{effective}: {e}")
            tally.failed_keys.append(effective)
            self.tracker.log_change(
                effective.domain, effective.key, operation, False,
                before=before, after=value, error=str(e),
            )
            return

        logger.info(f"{operation.capitalize()} {effective} -> {format_value(value)}")
        tally.succeeded += 1
        self.tracker.log_change(
            effective.domain, effective.key, operation, True,
            before=before, after=value,
        )

    async def _delete(
        self,
        effective: EffectiveKey,
        before,
        operation: str,
        tally: ExecutionTally,
    ) -> None:
        try:
            await self.store.delete(effective.domain, effective.key)
        except KEY_ERRORS as e:
            logger.error(f"Failed to delete {effective}: {e}")
            tally.failed.append(f"{effective}: {e}")
            tally.failed_keys.append(effective)
            self.tracker.log_change(
                effective.domain, effective.key, operation, False,
                before=before, error=str(e),
            )
            return

        logger.info(f"Deleted {effective}")
        tally.succeeded += 1
        self.tracker.log_change(
            effective.domain, effective.key, operation, True, before=before,
        )

    async def apply(self, jobs: list[PreferenceJob]) -> ExecutionTally:
        """Write each job's new value, in order."""
        tally = ExecutionTally()
        for job in jobs:
            await self._write(job.effective, job.new_value, job.original, "write", tally)
        return tally

    async def restore(
        self,
        restore_jobs: list[RestoreJob],
        delete_jobs: list[DeleteJob],
    ) -> ExecutionTally:
        """Write captured originals back, then delete keys that were absent."""
        tally = ExecutionTally()
        for job in restore_jobs:
            await self._write(job.effective, job.value, None, "restore", tally)
        for job in delete_jobs:
            await self._delete(job.effective, None, "delete", tally)
        return tally

    async def delete(self, keys: list[EffectiveKey], operation: str = "reset") -> ExecutionTally:
        """Delete keys, in order."""
        tally = ExecutionTally()
        for effective in keys:
            await self._delete(effective, None, operation, tally)
        return tally
