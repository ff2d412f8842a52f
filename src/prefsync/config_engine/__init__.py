"""Config Engine - declarative macOS preference reconciliation.

The engine turns the [set] section of a TOML configuration into flat
domain/key entries, diffs them against the live preference store and
writes only what differs, recording enough to undo it later:
- Inline tables are dictionary values, headed tables are new domains
- Shorthand domains expand to com.apple.<domain>
- Writes are best-effort; failures are reported, not rolled back
- A snapshot beside the configuration makes every change undoable

Usage:
    from prefsync.config_engine import PreferenceEngine, RunOptions

    engine = PreferenceEngine.from_path()
    result = await engine.apply(RunOptions(dry_run=True))
    report = await engine.status()
    await engine.unapply()
"""

from .engine import PreferenceEngine
from .schema import (
    ApplyResult,
    Comparison,
    ConfigEntry,
    DeleteJob,
    EffectiveKey,
    ExecMode,
    MatchState,
    PreferenceChange,
    PreferenceJob,
    ResetResult,
    ResolutionOrder,
    RestoreJob,
    RunOptions,
    UnapplyResult,
)
from .collector import collect_domains, flatten
from .resolver import resolve
from .diff import DiffEngine, summarize_changes
from .executor import ExecutionTally, JobExecutor
from .rules import InvokeRules, Operation, rules_for
from .status import DomainStatus, StatusItem, StatusReport

__all__ = [
    # Main engine
    "PreferenceEngine",
    # Schema classes
    "ApplyResult",
    "Comparison",
    "ConfigEntry",
    "DeleteJob",
    "EffectiveKey",
    "ExecMode",
    "MatchState",
    "PreferenceChange",
    "PreferenceJob",
    "ResetResult",
    "ResolutionOrder",
    "RestoreJob",
    "RunOptions",
    "UnapplyResult",
    # Components (for advanced use)
    "collect_domains",
    "flatten",
    "resolve",
    "DiffEngine",
    "summarize_changes",
    "ExecutionTally",
    "JobExecutor",
    "InvokeRules",
    "Operation",
    "rules_for",
    "DomainStatus",
    "StatusItem",
    "StatusReport",
]
