"""Pydantic models for the configuration document.

Only the document's shape is validated here. The [set] table is walked
separately by the domain collector because inline and headed tables carry
different meaning there, which the plain mapping loses.
"""
from typing import Any, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, StrictBool

VarValue = Union[str, int, float, bool]


class CommandSpec(BaseModel):
    """[command.<name>] table."""

    model_config = ConfigDict(extra="forbid")

    run: str
    ensure_first: bool = False
    required: list[str] = Field(default_factory=list)
    flag: bool = False
    sudo: bool = False


class BrewSpec(BaseModel):
    """[brew] table. Read for validation only."""

    model_config = ConfigDict(extra="forbid")

    formulae: list[str] = Field(default_factory=list)
    casks: list[str] = Field(default_factory=list)
    taps: list[str] = Field(default_factory=list)
    no_deps: bool = False


class RemoteSpec(BaseModel):
    """[remote] table. Read for validation only."""

    model_config = ConfigDict(extra="forbid")

    url: str
    autosync: bool = False


class ConfigModel(BaseModel):
    """Top-level document."""

    model_config = ConfigDict(extra="forbid")

    lock: StrictBool = False
    settings: dict[str, Any] = Field(default_factory=dict, alias="set")
    vars: dict[str, VarValue] = Field(default_factory=dict)
    command: dict[str, CommandSpec] = Field(default_factory=dict)
    brew: Optional[BrewSpec] = None
    remote: Optional[RemoteSpec] = None

    def variables(self) -> dict[str, str]:
        """Variables as substitution strings."""
        out = {}
        for name, value in self.vars.items():
            if isinstance(value, bool):
                out[name] = "true" if value else "false"
            else:
                out[name] = str(value)
        return out
