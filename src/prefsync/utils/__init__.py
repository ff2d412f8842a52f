"""Utility modules for logging, auditing, retries and service restarts."""
from .audit_log import ChangeRecord, ChangeTracker, get_recent_changes, setup_audit_logging
from .logging_config import (
    setup_logging,
    timed,
    timed_section,
    perf_logger,
)
from .retry import with_retry
from .services import ServiceRestarter

__all__ = [
    "ChangeRecord",
    "ChangeTracker",
    "get_recent_changes",
    "setup_audit_logging",
    "setup_logging",
    "timed",
    "timed_section",
    "perf_logger",
    "with_retry",
    "ServiceRestarter",
]
