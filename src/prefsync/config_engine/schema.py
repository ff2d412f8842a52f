"""Schema definitions for the Config Engine.

Defines entries, jobs, run options and all result dataclasses.
"""
import os
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Optional

from ..external.runner import ExecMode
from ..preferences.base import GLOBAL_DOMAIN
from ..utils.logging_config import setup_logging
from ..values import PreferenceValue, format_value


class ResolutionOrder(str, Enum):
    """How a configured domain that names a live domain is resolved."""
    LITERAL_FIRST = "literal_first"     # live domain names are used as-is
    SHORTHAND_ONLY = "shorthand_only"   # always expand to com.apple.<domain>


class MatchState(str, Enum):
    """Status of one configured key against the live store."""
    MATCHED = "matched"
    DIVERGED = "diverged"


# --- Entries ---

@dataclass(frozen=True)
class EffectiveKey:
    """Real store address of a preference."""
    domain: str
    key: str

    def __str__(self) -> str:
        return f"{self.domain} | {self.key}"


@dataclass
class ConfigEntry:
    """One flattened setting from the document."""
    domain: str
    key: str
    desired: PreferenceValue


@dataclass
class Comparison:
    """A configured entry compared against the live store."""
    entry: ConfigEntry
    effective: EffectiveKey
    current: Optional[Any] = None
    matched: bool = False

    @property
    def is_set(self) -> bool:
        return self.current is not None


@dataclass
class PreferenceChange:
    """Diff output: a key whose live value differs from the desired one."""
    effective: EffectiveKey
    desired: PreferenceValue
    current: Optional[Any] = None


# --- Jobs ---

@dataclass
class PreferenceJob:
    """A write to perform, with the value to restore on undo."""
    effective: EffectiveKey
    new_value: PreferenceValue
    original: Optional[PreferenceValue] = None

    def describe(self) -> str:
        text = f"{self.effective} -> {format_value(self.new_value)}"
        if self.original is not None:
            text += f" [restorable to {format_value(self.original)}]"
        return text


@dataclass
class RestoreJob:
    """Undo step: write a captured original value back."""
    effective: EffectiveKey
    value: PreferenceValue


@dataclass
class DeleteJob:
    """Undo step: remove a key that did not exist before management."""
    effective: EffectiveKey


# --- Run options ---

def _env_flag(name: str, default: bool = False) -> bool:
    raw = os.environ.get(name)
    if raw is None:
        return default
    return raw.strip().lower() in ("1", "true", "yes", "on")


@dataclass(frozen=True)
class RunOptions:
    """Options for one engine invocation.

    Passed explicitly to every operation instead of process-wide flags.
    quiet and verbose only shape console logging; see configure_logging.
    """
    dry_run: bool = False
    quiet: bool = False
    verbose: bool = False
    check_domains: bool = True
    restart_services: bool = True
    exec_mode: ExecMode = ExecMode.NONE
    domain_resolution: ResolutionOrder = ResolutionOrder.LITERAL_FIRST

    @classmethod
    def from_env(cls) -> "RunOptions":
        """Load run options from PREFSYNC_* environment variables."""
        exec_mode = os.environ.get("PREFSYNC_EXEC_MODE", ExecMode.NONE.value)
        resolution = os.environ.get(
            "PREFSYNC_DOMAIN_RESOLUTION", ResolutionOrder.LITERAL_FIRST.value
        )

        return cls(
            dry_run=_env_flag("PREFSYNC_DRY_RUN"),
            quiet=_env_flag("PREFSYNC_QUIET"),
            verbose=_env_flag("PREFSYNC_VERBOSE"),
            check_domains=not _env_flag("PREFSYNC_NO_DOM_CHECK"),
            restart_services=not _env_flag("PREFSYNC_NO_RESTART"),
            exec_mode=ExecMode(exec_mode.strip().lower()),
            domain_resolution=ResolutionOrder(resolution.strip().lower()),
        )

    def configure_logging(self) -> None:
        """Install log handlers with the console level these options ask for."""
        setup_logging(quiet=self.quiet, verbose=self.verbose)


# --- Results ---

@dataclass
class ApplyResult:
    """Result of an apply run."""
    dry_run: bool = False
    jobs: list[PreferenceJob] = field(default_factory=list)
    applied: int = 0
    failed: list[str] = field(default_factory=list)
    snapshot_recovered: bool = False
    services_restarted: bool = False
    exec_run_count: int = 0
    warnings: list[str] = field(default_factory=list)

    @property
    def no_change(self) -> bool:
        return len(self.jobs) == 0

    def to_dict(self) -> dict:
        """Convert to dictionary for JSON serialization."""
        return {
            "dry_run": self.dry_run,
            "jobs": [job.describe() for job in self.jobs],
            "applied": self.applied,
            "failed": self.failed,
            "snapshot_recovered": self.snapshot_recovered,
            "services_restarted": self.services_restarted,
            "exec_run_count": self.exec_run_count,
            "warnings": self.warnings,
        }


@dataclass
class UnapplyResult:
    """Result of an unapply run."""
    dry_run: bool = False
    restore_jobs: list[RestoreJob] = field(default_factory=list)
    delete_jobs: list[DeleteJob] = field(default_factory=list)
    modified: int = 0
    failed: list[str] = field(default_factory=list)
    drift_detected: bool = False
    services_restarted: bool = False
    snapshot_deleted: bool = False
    warnings: list[str] = field(default_factory=list)

    def to_dict(self) -> dict:
        """Convert to dictionary for JSON serialization."""
        return {
            "dry_run": self.dry_run,
            "restore": [
                f"{job.effective} -> {format_value(job.value)}"
                for job in self.restore_jobs
            ],
            "delete": [str(job.effective) for job in self.delete_jobs],
            "modified": self.modified,
            "failed": self.failed,
            "drift_detected": self.drift_detected,
            "services_restarted": self.services_restarted,
            "snapshot_deleted": self.snapshot_deleted,
            "warnings": self.warnings,
        }


@dataclass
class ResetResult:
    """Result of a full reset."""
    dry_run: bool = False
    deleted: list[EffectiveKey] = field(default_factory=list)
    skipped: list[EffectiveKey] = field(default_factory=list)
    failed: list[str] = field(default_factory=list)
    snapshot_removed: bool = False
