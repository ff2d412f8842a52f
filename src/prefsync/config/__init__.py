"""Configuration document handling."""
from .document import (
    ConfigDocument,
    LoadedConfig,
    candidate_paths,
    digest_bytes,
    load_config,
)
from .schema import BrewSpec, CommandSpec, ConfigModel, RemoteSpec

__all__ = [
    "ConfigDocument",
    "LoadedConfig",
    "candidate_paths",
    "digest_bytes",
    "load_config",
    "BrewSpec",
    "CommandSpec",
    "ConfigModel",
    "RemoteSpec",
]
