"""Tests for the external command runner."""
import pytest

from prefsync.config import ConfigModel
from prefsync.errors import ExternalCommandError
from prefsync.external import (
    CommandJob,
    ExecMode,
    ExternalCommandRunner,
    build_job,
    missing_binaries,
    substitute,
)

MISSING_BINARY = "prefsync-test-no-such-binary"


def make_model(commands: dict, variables: dict = None) -> ConfigModel:
    return ConfigModel.model_validate({"command": commands, "vars": variables or {}})


class TestSubstitute:
    """Tests for variable substitution."""

    def test_both_forms(self):
        """$name and ${name} are both substituted."""
        text = substitute("echo $name ${count}", {"name": "studio", "count": "3"}, environ={})
        assert text == "echo studio 3"

    def test_vars_before_environment(self):
        """Configured variables shadow the environment."""
        text = substitute("$HOME", {"HOME": "/configured"}, environ={"HOME": "/env"})
        assert text == "/configured"

    def test_environment_fallback(self):
        """Unconfigured names come from the environment."""
        assert substitute("$EDITOR", {}, environ={"EDITOR": "vim"}) == "vim"

    def test_unknown_left_in_place(self):
        """Unknown names are kept as ${name}."""
        assert substitute("echo $nope", {}, environ={}) == "echo ${nope}"


class TestCommandJob:
    """Tests for job construction and selection."""

    def test_build_job(self):
        """Jobs carry substituted text and sudo."""
        model = make_model(
            {"hello": {"run": "echo $who", "sudo": True, "flag": True}},
            {"who": "world"},
        )

        job = build_job(model, "hello")

        assert job.run == "echo world"
        assert job.argv() == ["sudo", "sh", "-c", "echo world"]

    def test_build_unknown(self):
        """Building an undeclared command fails."""
        with pytest.raises(ExternalCommandError):
            build_job(make_model({}), "nope")

    @pytest.mark.parametrize("mode,regular,flagged", [
        (ExecMode.NONE, False, False),
        (ExecMode.REGULAR, True, False),
        (ExecMode.FLAGGED, False, True),
        (ExecMode.ALL, True, True),
    ])
    def test_selected_by(self, mode, regular, flagged):
        """Each mode selects regular and flagged commands."""
        assert CommandJob("a", "true").selected_by(mode) is regular
        assert CommandJob("b", "true", flag=True).selected_by(mode) is flagged

    def test_missing_binaries(self):
        """Only binaries absent from $PATH are reported."""
        assert missing_binaries(["sh", MISSING_BINARY]) == [MISSING_BINARY]


class TestExternalCommandRunner:
    """Tests for running commands through sh."""

    @pytest.fixture
    def runner(self):
        return ExternalCommandRunner()

    @pytest.mark.asyncio
    async def test_ensure_first_runs_before_others(self, runner, tmp_path):
        """ensure_first commands finish before the rest start."""
        log = tmp_path / "log"
        model = make_model({
            "later": {"run": f"echo later >> {log}"},
            "setup": {"run": f"echo setup >> {log}", "ensure_first": True},
        })

        assert await runner.run_all(model) == 2
        assert log.read_text().splitlines() == ["setup", "later"]

    @pytest.mark.asyncio
    async def test_mode_filters_flagged(self, runner, tmp_path):
        """FLAGGED runs only flagged commands."""
        log = tmp_path / "log"
        model = make_model({
            "regular": {"run": f"echo regular >> {log}"},
            "flagged": {"run": f"echo flagged >> {log}", "flag": True},
        })

        assert await runner.run_all(model, ExecMode.FLAGGED) == 1
        assert log.read_text().splitlines() == ["flagged"]

    @pytest.mark.asyncio
    async def test_failure_does_not_stop_others(self, runner, tmp_path):
        """A failing command does not stop its siblings."""
        log = tmp_path / "log"
        model = make_model({
            "broken": {"run": "exit 3"},
            "fine": {"run": f"echo fine >> {log}"},
        })

        assert await runner.run_all(model) == 1
        assert log.read_text().splitlines() == ["fine"]

    @pytest.mark.asyncio
    async def test_missing_binary_skipped(self, runner, tmp_path):
        """Commands with missing binaries are skipped."""
        log = tmp_path / "log"
        model = make_model({
            "needs": {"run": f"echo needs >> {log}", "required": [MISSING_BINARY]},
        })

        assert await runner.run_all(model) == 0
        assert not log.exists()

    @pytest.mark.asyncio
    async def test_dry_run(self, runner, tmp_path):
        """Dry-run counts commands without running them."""
        log = tmp_path / "log"
        model = make_model({"hello": {"run": f"echo hello >> {log}"}})

        assert await runner.run_all(model, dry_run=True) == 1
        assert not log.exists()

    @pytest.mark.asyncio
    async def test_variables_reach_the_shell(self, runner, tmp_path):
        """Substituted variables reach the shell."""
        log = tmp_path / "log"
        model = make_model(
            {"greet": {"run": f"echo $greeting >> {log}"}},
            {"greeting": "hi"},
        )

        await runner.run_all(model)

        assert log.read_text().strip() == "hi"

    @pytest.mark.asyncio
    async def test_run_one(self, runner, tmp_path):
        """run_one ignores the flag and runs one command."""
        log = tmp_path / "log"
        model = make_model({
            "one": {"run": f"echo one >> {log}", "flag": True},
            "two": {"run": f"echo two >> {log}"},
        })

        await runner.run_one(model, "one")

        assert log.read_text().splitlines() == ["one"]

    @pytest.mark.asyncio
    async def test_run_one_failures(self, runner):
        """run_one raises on failure, missing binaries and unknown names."""
        model = make_model({
            "broken": {"run": "exit 1"},
            "needs": {"run": "true", "required": [MISSING_BINARY]},
        })

        with pytest.raises(ExternalCommandError):
            await runner.run_one(model, "broken")
        with pytest.raises(ExternalCommandError):
            await runner.run_one(model, "needs")
        with pytest.raises(ExternalCommandError):
            await runner.run_one(model, "unknown")
