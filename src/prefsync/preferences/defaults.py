"""macOS defaults database, accessed through the `defaults` command.

Reads export the whole domain as an XML property list and pick the key;
writes pass scalars with type flags and containers as plist fragments.
"""
import asyncio
import logging
import plistlib
from typing import Any, Optional

from ..errors import PreferenceIOError
from ..utils.retry import with_retry
from ..values import PreferenceValue, ValueKind, check_value, kind_of
from .base import GLOBAL_DOMAIN, PreferenceStore

logger = logging.getLogger(__name__)

DEFAULTS_BIN = "defaults"


def plist_fragment(value: PreferenceValue) -> str:
    """
    Render a value as a bare plist element, e.g. ``<dict>...</dict>``.

    `defaults write` accepts this form for arrays and dictionaries.
    """
    document = plistlib.dumps(check_value(value), fmt=plistlib.FMT_XML).decode("utf-8")
    start = document.index("<plist")
    start = document.index(">", start) + 1
    end = document.rindex("</plist>")
    return document[start:end].strip()


def write_arguments(value: PreferenceValue) -> list[str]:
    """Build the trailing `defaults write` arguments for a value."""
    kind = kind_of(value)

    if kind == ValueKind.BOOLEAN:
        return ["-bool", "true" if value else "false"]
    if kind == ValueKind.INTEGER:
        return ["-int", str(value)]
    if kind == ValueKind.FLOAT:
        return ["-float", repr(value)]
    if kind == ValueKind.STRING:
        return ["-string", value]
    return [plist_fragment(value)]


class DefaultsStore(PreferenceStore):
    """Preference store backed by the `defaults` command line tool."""

    name = "defaults"

    def __init__(self, binary: str = DEFAULTS_BIN):
        self.binary = binary

    @with_retry()
    async def _run(self, *args: str) -> tuple[int, bytes, str]:
        """Run `defaults` with arguments.

        Returns:
            Tuple of (returncode, stdout, stderr)
        """
        process = await asyncio.create_subprocess_exec(
            self.binary,
            *args,
            stdout=asyncio.subprocess.PIPE,
            stderr=asyncio.subprocess.PIPE,
        )
        stdout, stderr = await process.communicate()
        return process.returncode, stdout, stderr.decode("utf-8", errors="replace").strip()

    async def _export(self, domain: str) -> Optional[dict[str, Any]]:
        """Export a whole domain, or None if it does not exist."""
        code, stdout, stderr = await self._run("export", domain, "-")
        if code != 0:
            logger.debug(f"defaults export {domain} failed: {stderr}")
            return None

        try:
            data = plistlib.loads(stdout)
        except plistlib.InvalidFileException as e:
            raise PreferenceIOError(domain, "*", f"unreadable export: {e}") from e

        return data if isinstance(data, dict) else None

    async def read(self, domain: str, key: str) -> Optional[Any]:
        data = await self._export(domain)
        if data is None:
            return None
        return data.get(key)

    async def write(self, domain: str, key: str, value: PreferenceValue) -> None:
        code, _, stderr = await self._run("write", domain, key, *write_arguments(value))
        if code != 0:
            raise PreferenceIOError(domain, key, stderr or f"defaults exited with {code}")

    async def delete(self, domain: str, key: str) -> None:
        code, _, stderr = await self._run("delete", domain, key)
        if code != 0:
            raise PreferenceIOError(domain, key, stderr or f"defaults exited with {code}")

    async def list_domains(self) -> set[str]:
        code, stdout, stderr = await self._run("domains")
        if code != 0:
            raise PreferenceIOError("*", "*", f"cannot list domains: {stderr}")

        text = stdout.decode("utf-8", errors="replace")
        domains = {d.strip() for d in text.split(",") if d.strip()}
        domains.discard(GLOBAL_DOMAIN)
        return domains
