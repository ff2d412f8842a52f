"""Exception types shared across prefsync.

Taxonomy:
- ConfigError: document unreadable, invalid, or locked against mutation
- DomainValidationError: a configured domain does not exist in the store
- PreferenceIOError: a single live-store read/write/delete failed
- SnapshotError: the snapshot file is missing or corrupt
- ValueConversionError: a value is outside the preference value model
- ExternalCommandError: a configured external command could not run
- PrivilegeError: the operation needs root and the process is not root
- DriftWarning: the document changed since the last apply (informational)
"""


class PrefSyncError(Exception):
    """Base class for prefsync errors."""
    pass


class ConfigError(PrefSyncError):
    """Configuration document cannot be used."""
    pass


class ConfigLockedError(ConfigError):
    """Configuration is locked and the operation would mutate state."""
    pass


class DomainValidationError(PrefSyncError):
    """A resolved domain is not present in the live domain enumeration."""

    def __init__(self, domain: str):
        self.domain = domain
        super().__init__(
            f'Domain "{domain}" was not found; cannot write to it. '
            f"Disable this check with check_domains=False."
        )


class PreferenceIOError(PrefSyncError):
    """Reading, writing or deleting one preference key failed."""

    def __init__(self, domain: str, key: str, reason: str):
        self.domain = domain
        self.key = key
        self.reason = reason
        super().__init__(f"{domain} | {key}: {reason}")


class SnapshotError(PrefSyncError):
    """Snapshot could not be loaded."""
    pass


class NoSnapshotError(SnapshotError):
    """No snapshot file exists."""
    pass


class ValueConversionError(PrefSyncError):
    """Value does not fit the preference value model."""
    pass


class ExternalCommandError(PrefSyncError):
    """External command is unknown, cannot run, or exited non-zero."""
    pass


class PrivilegeError(PrefSyncError):
    """Operation requires root privileges."""
    pass


class DriftWarning(UserWarning):
    """Configuration changed since it was last applied."""
    pass
