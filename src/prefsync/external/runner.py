"""Runner for the external commands declared under [command.<name>].

    [vars]
    wallpaper = "~/Pictures/sunset.jpg"

    [command.wallpaper]
    run = "osascript -e 'set desktop picture to POSIX file \"$wallpaper\"'"
    required = ["osascript"]

    [command.dock-reset]
    run = "defaults delete com.apple.dock persistent-apps"
    ensure_first = true

Commands run through `sh -c`, or `sudo sh -c` when `sudo = true`.
"""
import asyncio
import logging
import os
import re
import shutil
from dataclasses import dataclass, field
from enum import Enum
from typing import Mapping, Optional

from ..config.schema import ConfigModel
from ..errors import ExternalCommandError
from ..utils.logging_config import timed
from ..utils.retry import with_retry

logger = logging.getLogger(__name__)

# $name or ${name}
VARIABLE_PATTERN = re.compile(r"\$([A-Za-z_][A-Za-z0-9_]*)|\$\{([A-Za-z_][A-Za-z0-9_]*)\}")


class ExecMode(str, Enum):
    """Which external commands a run executes."""
    NONE = "none"
    REGULAR = "regular"   # unflagged only
    FLAGGED = "flagged"   # flagged only
    ALL = "all"


def substitute(
    text: str,
    variables: Mapping[str, str],
    environ: Optional[Mapping[str, str]] = None,
) -> str:
    """
    Replace $name and ${name} in text.

    Lookup order is the configured variables, then the environment.
    Unknown names are left in place as ${name}.
    """
    env = os.environ if environ is None else environ

    def replace(match: re.Match) -> str:
        name = match.group(1) or match.group(2)
        if name in variables:
            return variables[name]
        if name in env:
            return env[name]
        return f"${{{name}}}"

    return VARIABLE_PATTERN.sub(replace, text)


def missing_binaries(required: list[str]) -> list[str]:
    """Required binaries that are not on $PATH."""
    return [binary for binary in required if shutil.which(binary) is None]


@dataclass
class CommandJob:
    """One external command, with variables substituted."""
    name: str
    run: str
    sudo: bool = False
    ensure_first: bool = False
    flag: bool = False
    required: list[str] = field(default_factory=list)

    def selected_by(self, mode: ExecMode) -> bool:
        if mode == ExecMode.NONE:
            return False
        if mode == ExecMode.REGULAR:
            return not self.flag
        if mode == ExecMode.FLAGGED:
            return self.flag
        return True

    def argv(self) -> list[str]:
        if self.sudo:
            return ["sudo", "sh", "-c", self.run]
        return ["sh", "-c", self.run]


def build_job(model: ConfigModel, name: str) -> CommandJob:
    """
    Build a job for one named command.

    Raises:
        ExternalCommandError: If no such command is declared
    """
    spec = model.command.get(name)
    if spec is None:
        raise ExternalCommandError(f"No such command: {name}")

    return CommandJob(
        name=name,
        run=substitute(spec.run, model.variables()),
        sudo=spec.sudo,
        ensure_first=spec.ensure_first,
        flag=spec.flag,
        required=list(spec.required),
    )


class ExternalCommandRunner:
    """Run external commands declared in the configuration."""

    name = "commands"

    @with_retry()
    async def _spawn(self, argv: list[str]) -> asyncio.subprocess.Process:
        return await asyncio.create_subprocess_exec(*argv)

    async def execute(self, job: CommandJob, dry_run: bool = False) -> None:
        """
        Run one job.

        Raises:
            ExternalCommandError: If the command could not start or exited non-zero
        """
        argv = job.argv()

        if dry_run:
            logger.info(f"[DRY-RUN] Would execute: {' '.join(argv[:-1])} {job.run}")
            return

        logger.info(f"Executing {job.name}")
        try:
            process = await self._spawn(argv)
        except OSError as e:
            raise ExternalCommandError(f"Command {job.name} failed to start: {e}") from e

        code = await process.wait()
        if code != 0:
            raise ExternalCommandError(f"Command {job.name} exited with {code}")

    @timed("run_commands")
    async def run_all(
        self,
        model: ConfigModel,
        mode: ExecMode = ExecMode.REGULAR,
        dry_run: bool = False,
    ) -> int:
        """
        Run every command selected by mode.

        Commands with ensure_first run one after another before the rest,
        which then run concurrently. A failure never stops other commands.

        Returns:
            Number of commands that succeeded
        """
        first: list[CommandJob] = []
        rest: list[CommandJob] = []

        for name in model.command:
            job = build_job(model, name)
            if not job.selected_by(mode):
                continue

            missing = missing_binaries(job.required)
            if missing:
                logger.warning(
                    f"Skipping {job.name}: {', '.join(missing)} not found in $PATH"
                )
                continue

            (first if job.ensure_first else rest).append(job)

        successes = 0
        failures = 0

        for job in first:
            try:
                await self.execute(job, dry_run)
            except ExternalCommandError as e:
                logger.error(str(e))
                failures += 1
            else:
                successes += 1

        results = await asyncio.gather(
            *(self.execute(job, dry_run) for job in rest),
            return_exceptions=True,
        )
        for job, outcome in zip(rest, results):
            if isinstance(outcome, ExternalCommandError):
                logger.error(str(outcome))
                failures += 1
            elif isinstance(outcome, BaseException):
                raise outcome
            else:
                successes += 1

        if failures:
            logger.warning(f"{failures} external command(s) failed")
        elif successes == 0:
            logger.warning("No external commands ran. Maybe you meant flagged or all?")

        return successes

    async def run_one(self, model: ConfigModel, name: str, dry_run: bool = False) -> None:
        """
        Run exactly one named command.

        Raises:
            ExternalCommandError: If unknown, missing binaries, or it fails
        """
        job = build_job(model, name)

        missing = missing_binaries(job.required)
        if missing:
            raise ExternalCommandError(
                f"Cannot execute {name}: {', '.join(missing)} not found in $PATH"
            )

        await self.execute(job, dry_run)
