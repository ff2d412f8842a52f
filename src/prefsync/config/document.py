"""Configuration document discovery, loading and in-place edits.

The document is TOML:

    lock = false

    [set.dock]
    tilesize = 50
    autohide = true

    [set.NSGlobalDomain]
    ApplePressAndHoldEnabled = false

    [vars]
    hostname = "studio"

    [command.hostname]
    run = "scutil --set ComputerName ${hostname}"
    sudo = true

Edits go through tomlkit so comments and layout survive a lock/unlock.
"""
import hashlib
import logging
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Optional

import tomlkit
from pydantic import ValidationError
from tomlkit.container import OutOfOrderTableProxy
from tomlkit.exceptions import TOMLKitError
from tomlkit.items import Table
from tomlkit.toml_document import TOMLDocument

from ..errors import ConfigError, ConfigLockedError
from ..values import PreferenceValue, to_toml
from .schema import ConfigModel

logger = logging.getLogger(__name__)

CONFIG_ENV_VAR = "PREFSYNC_CONFIG"
APP_NAME = "prefsync"


def candidate_paths() -> list[Path]:
    """Configuration locations, in lookup order."""
    paths = []

    env_path = os.environ.get(CONFIG_ENV_VAR)
    if env_path:
        paths.append(Path(env_path).expanduser())

    config_home = Path.home() / ".config"
    paths.append(config_home / APP_NAME / "config.toml")
    paths.append(config_home / f"{APP_NAME}.toml")

    xdg = os.environ.get("XDG_CONFIG_HOME")
    if xdg:
        xdg_home = Path(xdg).expanduser()
        paths.append(xdg_home / APP_NAME / "config.toml")
        paths.append(xdg_home / f"{APP_NAME}.toml")

    return paths


def digest_bytes(data: bytes) -> str:
    """SHA-256 hex digest of document bytes."""
    return hashlib.sha256(data).hexdigest()


@dataclass
class LoadedConfig:
    """A parsed and validated configuration document."""
    path: Path
    raw: bytes
    document: TOMLDocument
    model: ConfigModel

    @property
    def digest(self) -> str:
        return digest_bytes(self.raw)

    @property
    def locked(self) -> bool:
        return self.model.lock


class ConfigDocument:
    """Handle on a configuration file.

    Loading is lazy; every load re-reads the file so that digests always
    reflect what is on disk.
    """

    def __init__(self, path: Path):
        self.path = Path(path)

    @classmethod
    def find(cls) -> "ConfigDocument":
        """Locate the configuration file.

        Returns the first existing candidate, or the first candidate when
        none exist yet.
        """
        candidates = candidate_paths()
        for path in candidates:
            if path.is_file():
                logger.debug(f"Using configuration {path}")
                return cls(path)

        logger.debug(f"No configuration found, defaulting to {candidates[0]}")
        return cls(candidates[0])

    def is_loadable(self) -> bool:
        """Check whether the file exists."""
        return self.path.is_file()

    def read_bytes(self) -> bytes:
        """Raw document bytes.

        Raises:
            ConfigError: If the file cannot be read
        """
        try:
            return self.path.read_bytes()
        except OSError as e:
            raise ConfigError(f"Cannot read configuration {self.path}: {e}") from e

    def digest(self) -> str:
        """SHA-256 hex digest of the file as it is now."""
        return digest_bytes(self.read_bytes())

    def _parse(self, raw: bytes) -> TOMLDocument:
        try:
            return tomlkit.parse(raw.decode("utf-8"))
        except UnicodeDecodeError as e:
            raise ConfigError(f"Configuration {self.path} is not UTF-8: {e}") from e
        except TOMLKitError as e:
            raise ConfigError(f"Invalid TOML in {self.path}: {e}") from e

    def load(self, respect_lock: bool = False) -> LoadedConfig:
        """
        Read, parse and validate the document.

        Args:
            respect_lock: Refuse to load a locked document

        Raises:
            ConfigError: If the file is missing, unparsable or invalid
            ConfigLockedError: If respect_lock is set and the document is locked
        """
        if not self.is_loadable():
            raise ConfigError(f"No configuration file at {self.path}")

        raw = self.read_bytes()
        document = self._parse(raw)

        try:
            model = ConfigModel.model_validate(document.unwrap())
        except ValidationError as e:
            raise ConfigError(f"Invalid configuration {self.path}:\n{e}") from e

        if respect_lock and model.lock:
            raise ConfigLockedError(
                f"Configuration {self.path} is locked; unlock it to make changes"
            )

        return LoadedConfig(path=self.path, raw=raw, document=document, model=model)

    def save(self, document: TOMLDocument) -> None:
        """Write a document back to the file."""
        self.path.parent.mkdir(parents=True, exist_ok=True)
        self.path.write_text(tomlkit.dumps(document), encoding="utf-8")

    def lock(self) -> None:
        """Set `lock = true` in place.

        Raises:
            ConfigError: If the document is invalid or already locked
        """
        loaded = self.load()
        document = loaded.document
        if loaded.locked:
            raise ConfigError("Configuration is already locked")

        document["lock"] = True
        self.save(document)
        logger.info(f"Locked configuration {self.path}")

    def unlock(self) -> None:
        """Remove the lock in place.

        Raises:
            ConfigError: If the document is invalid or not locked
        """
        loaded = self.load()
        document = loaded.document
        if not loaded.locked:
            raise ConfigError("Configuration is not locked")

        del document["lock"]
        self.save(document)
        logger.info(f"Unlocked configuration {self.path}")

    def set_value(self, domain: str, key: str, value: PreferenceValue) -> None:
        """
        Set one preference in the document, creating the domain table.

        `domain` is a configured domain name; dotted names become nested
        headed tables, e.g. "dock.nested" -> [set.dock.nested].

        Raises:
            ConfigLockedError: If the document is locked
            ConfigError: If the document is invalid or a path segment is
                already a non-table value
        """
        document = self.load(respect_lock=True).document

        segments = ["set", *domain.split(".")]
        table: Any = document
        for depth, segment in enumerate(segments, start=1):
            if segment not in table:
                table[segment] = tomlkit.table(is_super_table=depth < len(segments))
            table = table[segment]
            if not isinstance(table, (Table, OutOfOrderTableProxy)):
                raise ConfigError(f"'{segment}' in set.{domain} is not a table")

        table[key] = to_toml(value)
        self.save(document)
        logger.info(f"Set {domain}.{key} in {self.path}")


def load_config(path: Optional[Path] = None, respect_lock: bool = False) -> LoadedConfig:
    """Load the configuration at `path`, or the discovered one."""
    document = ConfigDocument(path) if path is not None else ConfigDocument.find()
    return document.load(respect_lock=respect_lock)
