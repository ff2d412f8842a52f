"""In-memory preference store.

Used for previews and tests; behaves like the defaults database without
touching the system.
"""
import copy
import logging
from typing import Any, Optional

from ..errors import PreferenceIOError
from ..values import PreferenceValue, check_value
from .base import GLOBAL_DOMAIN, PreferenceStore

logger = logging.getLogger(__name__)


class InMemoryPreferenceStore(PreferenceStore):
    """Preference store backed by nested dicts."""

    name = "memory"

    def __init__(self, domains: Optional[dict[str, dict[str, Any]]] = None):
        self._domains: dict[str, dict[str, Any]] = copy.deepcopy(domains or {})

    async def read(self, domain: str, key: str) -> Optional[Any]:
        value = self._domains.get(domain, {}).get(key)
        return copy.deepcopy(value)

    async def write(self, domain: str, key: str, value: PreferenceValue) -> None:
        self._domains.setdefault(domain, {})[key] = check_value(value)
        logger.debug(f"memory write {domain} | {key}")

    async def delete(self, domain: str, key: str) -> None:
        table = self._domains.get(domain)
        if table is None or key not in table:
            raise PreferenceIOError(domain, key, "key does not exist")
        del table[key]

    async def list_domains(self) -> set[str]:
        return {d for d in self._domains if d != GLOBAL_DOMAIN}

    def dump(self) -> dict[str, dict[str, Any]]:
        """Copy of the whole store."""
        return copy.deepcopy(self._domains)
