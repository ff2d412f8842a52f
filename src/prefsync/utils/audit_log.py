"""Audit trail of live preference changes.

Each write, restore and delete made against the live store becomes one
JSON line in audit.log, with the value before and after the change, so a
run can be reconstructed even after its snapshot is gone.
"""
import getpass
import json
import logging
from datetime import datetime, timezone
from dataclasses import dataclass, asdict
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import Any, Iterator, Optional

audit_logger = logging.getLogger("prefsync.audit")

DEFAULT_AUDIT_DIR = Path("~/.config/prefsync")
AUDIT_FILENAME = "audit.log"


def default_audit_file() -> Path:
    return DEFAULT_AUDIT_DIR.expanduser() / AUDIT_FILENAME


def setup_audit_logging(log_dir: Optional[str] = None) -> None:
    """Send audit records to <log_dir>/audit.log.

    Args:
        log_dir: Directory for the audit log. Defaults to ~/.config/prefsync/
    """
    directory = Path(log_dir) if log_dir is not None else DEFAULT_AUDIT_DIR.expanduser()
    directory.mkdir(parents=True, exist_ok=True)

    handler = RotatingFileHandler(
        directory / AUDIT_FILENAME,
        maxBytes=10 * 1024 * 1024,  # 10MB
        backupCount=10,
        encoding="utf-8",
    )
    # One JSON document per line
    handler.setFormatter(logging.Formatter("%(message)s"))

    audit_logger.handlers.clear()
    audit_logger.setLevel(logging.INFO)
    audit_logger.addHandler(handler)
    audit_logger.propagate = False


@dataclass
class ChangeRecord:
    """One live preference change."""
    timestamp: str
    domain: str
    key: str
    operation: str  # write, restore, delete, reset
    user: str
    dry_run: bool
    success: bool
    before: Optional[Any] = None
    after: Optional[Any] = None
    error: Optional[str] = None

    def to_json(self) -> str:
        return json.dumps(asdict(self), default=repr)

    @classmethod
    def from_json(cls, json_str: str) -> "ChangeRecord":
        return cls(**json.loads(json_str))

    def matches(self, domain: Optional[str] = None, operation: Optional[str] = None) -> bool:
        if domain and self.domain != domain:
            return False
        if operation and self.operation != operation:
            return False
        return True


def _current_user() -> str:
    try:
        return getpass.getuser()
    except (KeyError, OSError):
        return "unknown"


class ChangeTracker:
    """Audit the store calls of one engine run.

    Records are written to the audit logger as they happen and kept in
    `records` for the caller.
    """

    def __init__(self, dry_run: bool = False):
        self.dry_run = dry_run
        self.user = _current_user()
        self.records: list[ChangeRecord] = []

    def log_change(
        self,
        domain: str,
        key: str,
        operation: str,
        success: bool,
        before: Optional[Any] = None,
        after: Optional[Any] = None,
        error: Optional[str] = None,
    ) -> ChangeRecord:
        """Record one store call.

        Args:
            domain: Effective domain
            key: Effective key
            operation: write, restore, delete or reset
            success: Whether the store call succeeded
            before: Value before the change (None when absent or unknown)
            after: Value after the change (None for deletes)
            error: Error message if failed
        """
        record = ChangeRecord(
            timestamp=datetime.now(timezone.utc).isoformat(),
            domain=domain,
            key=key,
            operation=operation,
            user=self.user,
            dry_run=self.dry_run,
            success=success,
            before=before,
            after=after,
            error=error,
        )
        audit_logger.info(record.to_json())
        self.records.append(record)
        return record


def _read_records(path: Path) -> Iterator[ChangeRecord]:
    with path.open(encoding="utf-8") as f:
        for line in f:
            line = line.strip()
            if not line:
                continue
            try:
                yield ChangeRecord.from_json(line)
            except (json.JSONDecodeError, TypeError):
                continue  # Skip malformed lines


def get_recent_changes(
    log_file: Optional[str] = None,
    domain: Optional[str] = None,
    operation: Optional[str] = None,
    limit: int = 100,
) -> list[ChangeRecord]:
    """Read recent changes from the audit log.

    Args:
        log_file: Path to audit log. Defaults to ~/.config/prefsync/audit.log
        domain: Filter by effective domain
        operation: Filter by operation type
        limit: Maximum number of records to return

    Returns:
        List of ChangeRecords, most recent first
    """
    path = Path(log_file) if log_file is not None else default_audit_file()
    if not path.exists():
        return []

    records = [r for r in _read_records(path) if r.matches(domain, operation)]
    return records[::-1][:limit]
