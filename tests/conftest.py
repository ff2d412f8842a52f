"""Shared fixtures for prefsync tests."""
import textwrap

import pytest

from prefsync.config.document import ConfigDocument
from prefsync.config_engine import PreferenceEngine
from prefsync.preferences import InMemoryPreferenceStore
from prefsync.utils.audit_log import audit_logger
from prefsync.utils.logging_config import main_logger, perf_logger


class FakeRestarter:
    """Records restart calls instead of killing processes."""

    name = "fake-services"

    def __init__(self):
        self.calls = 0

    async def restart(self) -> dict[str, bool]:
        self.calls += 1
        return {"Dock": True}


class FakeRunner:
    """Records external command runs and reports a fixed success count."""

    def __init__(self, successes: int = 1):
        self.successes = successes
        self.runs = []

    async def run_all(self, model, mode, dry_run=False) -> int:
        self.runs.append((sorted(model.command), mode, dry_run))
        return self.successes

    async def run_one(self, model, name, dry_run=False) -> None:
        self.runs.append(([name], None, dry_run))


@pytest.fixture
def write_config(tmp_path):
    """Write a TOML document to tmp_path/config.toml and return its handle."""
    def _write(text: str) -> ConfigDocument:
        path = tmp_path / "config.toml"
        path.write_text(textwrap.dedent(text).lstrip(), encoding="utf-8")
        return ConfigDocument(path)
    return _write


@pytest.fixture
def clean_loggers():
    """Close handlers installed by a test and restore propagation."""
    yield
    for log in (main_logger, perf_logger, audit_logger):
        for handler in list(log.handlers):
            handler.close()
            log.removeHandler(handler)
        log.propagate = True


@pytest.fixture
def restarter():
    return FakeRestarter()


@pytest.fixture
def runner():
    return FakeRunner()


@pytest.fixture
def make_engine(restarter, runner):
    """Build an engine over an in-memory store."""
    def _make(config: ConfigDocument, domains=None, store=None) -> PreferenceEngine:
        if store is None:
            store = InMemoryPreferenceStore(domains or {})
        return PreferenceEngine(config, store=store, restarter=restarter, runner=runner)
    return _make
