"""Snapshot store for undoing applied preference changes.

Handles:
- Reading/writing the YAML snapshot file next to the configuration
- Fallback loading of older files that only carry the settings list
- Deleting the snapshot after a successful unapply or reset

File format:

    version: 0.1.0
    digest: 9f86d081884c7d65...
    exec_run_count: 0
    settings:
      - domain: com.apple.dock
        key: tilesize
        original_value: 36
      - domain: com.apple.finder
        key: ShowPathbar
        original_value: null      # did not exist before; delete on undo
"""
import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Optional

import yaml

from .. import __version__
from ..errors import NoSnapshotError, SnapshotError, ValueConversionError
from ..values import PreferenceValue, from_serializable, to_serializable

logger = logging.getLogger(__name__)

SNAPSHOT_FILENAME = "snapshot.yaml"

_METADATA_FIELDS = ("version", "digest", "exec_run_count")


@dataclass
class SnapshotEntry:
    """One managed key and the value to restore on undo."""
    domain: str
    key: str
    original: Optional[PreferenceValue] = None

    def to_dict(self) -> dict:
        return {
            "domain": self.domain,
            "key": self.key,
            "original_value": (
                to_serializable(self.original) if self.original is not None else None
            ),
        }

    @classmethod
    def from_dict(cls, data: Any) -> "SnapshotEntry":
        """Parse one settings item.

        Raises:
            SnapshotError: If the item is malformed
        """
        if not isinstance(data, dict):
            raise SnapshotError(f"Snapshot entry must be a mapping, got {data!r}")

        unknown = set(data) - {"domain", "key", "original_value"}
        if unknown:
            raise SnapshotError(f"Unknown snapshot entry fields: {', '.join(sorted(unknown))}")

        domain = data.get("domain")
        key = data.get("key")
        if not isinstance(domain, str) or not isinstance(key, str):
            raise SnapshotError(f"Snapshot entry needs string domain and key: {data!r}")

        raw = data.get("original_value")
        try:
            original = from_serializable(raw) if raw is not None else None
        except ValueConversionError as e:
            raise SnapshotError(f"Bad original value for {domain} | {key}: {e}") from e

        return cls(domain=domain, key=key, original=original)


@dataclass
class Snapshot:
    """Persisted record of managed keys plus run metadata."""
    path: Path
    entries: list[SnapshotEntry] = field(default_factory=list)
    version: str = __version__
    digest: str = ""
    exec_run_count: int = 0

    def to_yaml(self) -> str:
        """Convert to YAML string."""
        data = {
            "version": self.version,
            "digest": self.digest,
            "exec_run_count": self.exec_run_count,
            "settings": [entry.to_dict() for entry in self.entries],
        }
        return yaml.safe_dump(data, default_flow_style=False, sort_keys=False)

    @classmethod
    def from_yaml(cls, yaml_str: str, path: Path) -> "Snapshot":
        """
        Parse from YAML string.

        Metadata is optional; when it is missing or malformed the settings
        list alone is loaded and the metadata takes its defaults.

        Raises:
            SnapshotError: If the document or its settings list is unusable
        """
        try:
            data = yaml.safe_load(yaml_str)
        except yaml.YAMLError as e:
            raise SnapshotError(f"Failed to parse snapshot: {e}") from e

        if not isinstance(data, dict) or "settings" not in data:
            raise SnapshotError("Snapshot has no settings list")

        settings = data["settings"] or []
        if not isinstance(settings, list):
            raise SnapshotError("Snapshot settings must be a list")

        entries = [SnapshotEntry.from_dict(item) for item in settings]
        _check_unique(entries)

        snapshot = cls(path=path, entries=entries)

        try:
            snapshot._load_metadata(data)
        except SnapshotError as e:
            logger.warning(f"Snapshot metadata unreadable ({e}); loaded settings only")
            snapshot.version = __version__
            snapshot.digest = ""
            snapshot.exec_run_count = 0

        return snapshot

    def _load_metadata(self, data: dict) -> None:
        unknown = set(data) - set(_METADATA_FIELDS) - {"settings"}
        if unknown:
            raise SnapshotError(f"unknown fields: {', '.join(sorted(unknown))}")

        version = data.get("version", __version__)
        digest = data.get("digest", "")
        exec_run_count = data.get("exec_run_count", 0)

        if not isinstance(version, str):
            raise SnapshotError(f"version must be a string, got {version!r}")
        if not isinstance(digest, str):
            raise SnapshotError(f"digest must be a string, got {digest!r}")
        if isinstance(exec_run_count, bool) or not isinstance(exec_run_count, int):
            raise SnapshotError(f"exec_run_count must be an integer, got {exec_run_count!r}")

        self.version = version
        self.digest = digest
        self.exec_run_count = exec_run_count

    def lookup(self) -> dict[tuple[str, str], SnapshotEntry]:
        """Entries indexed by (domain, key)."""
        return {(e.domain, e.key): e for e in self.entries}


def _check_unique(entries: list[SnapshotEntry]) -> None:
    seen: set[tuple[str, str]] = set()
    for entry in entries:
        ident = (entry.domain, entry.key)
        if ident in seen:
            raise SnapshotError(f"Duplicate snapshot entry: {entry.domain} | {entry.key}")
        seen.add(ident)


class SnapshotStore:
    """
    Manages the snapshot file for one configuration.

    The file lives next to the configuration document.
    """

    def __init__(self, path: Path):
        """
        Initialize the snapshot store.

        Args:
            path: Snapshot file path
        """
        self.path = Path(path)

    @classmethod
    def for_config(cls, config_path: Path) -> "SnapshotStore":
        """Snapshot store co-located with a configuration file."""
        return cls(Path(config_path).parent / SNAPSHOT_FILENAME)

    def is_loadable(self) -> bool:
        """Check whether a snapshot file exists."""
        return self.path.is_file()

    def new_empty(self) -> Snapshot:
        """A fresh snapshot bound to this store's path."""
        return Snapshot(path=self.path)

    def load(self) -> Snapshot:
        """
        Load the snapshot from disk.

        Raises:
            NoSnapshotError: If no snapshot file exists
            SnapshotError: If the file is corrupt
        """
        if not self.is_loadable():
            raise NoSnapshotError(f"No snapshot at {self.path}")

        try:
            content = self.path.read_text(encoding="utf-8")
        except (OSError, UnicodeDecodeError) as e:
            raise SnapshotError(f"Failed to read snapshot {self.path}: {e}") from e

        snapshot = Snapshot.from_yaml(content, self.path)
        logger.debug(f"Loaded snapshot with {len(snapshot.entries)} entries from {self.path}")
        return snapshot

    def save(self, snapshot: Snapshot) -> None:
        """Write a snapshot to its path."""
        _check_unique(snapshot.entries)
        snapshot.path.parent.mkdir(parents=True, exist_ok=True)
        snapshot.path.write_text(snapshot.to_yaml(), encoding="utf-8")
        logger.info(f"Saved snapshot with {len(snapshot.entries)} entries to {snapshot.path}")

    def delete(self) -> bool:
        """Delete the snapshot file. Returns False if none existed."""
        if self.path.exists():
            self.path.unlink()
            logger.info(f"Deleted snapshot {self.path}")
            return True
        return False
