"""prefsync - declarative macOS preferences with undo."""

__version__ = "0.1.0"

from .errors import (  # noqa: E402
    ConfigError,
    ConfigLockedError,
    DomainValidationError,
    DriftWarning,
    ExternalCommandError,
    NoSnapshotError,
    PreferenceIOError,
    PrefSyncError,
    PrivilegeError,
    SnapshotError,
    ValueConversionError,
)

__all__ = [
    "__version__",
    "ConfigError",
    "ConfigLockedError",
    "DomainValidationError",
    "DriftWarning",
    "ExternalCommandError",
    "NoSnapshotError",
    "PreferenceIOError",
    "PrefSyncError",
    "PrivilegeError",
    "SnapshotError",
    "ValueConversionError",
]
