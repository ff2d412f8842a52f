"""Diff engine for comparing configured entries against the live store.

Computes the minimal set of writes needed to reach the configured state.
"""
import logging
from collections.abc import Collection

from ..errors import ConfigError, DomainValidationError
from ..preferences.base import PreferenceStore
from ..values import format_value, values_equal
from .resolver import resolve
from .schema import (
    GLOBAL_DOMAIN,
    Comparison,
    ConfigEntry,
    EffectiveKey,
    PreferenceChange,
    ResolutionOrder,
)

logger = logging.getLogger(__name__)


class DiffEngine:
    """Calculate differences between configured and current preferences."""

    def __init__(
        self,
        store: PreferenceStore,
        system_domains: Collection[str] = frozenset(),
        order: ResolutionOrder = ResolutionOrder.LITERAL_FIRST,
    ):
        """
        Initialize the diff engine.

        Args:
            store: Live preference store to read from
            system_domains: Live domain enumeration, fetched once by the caller
            order: Domain resolution strategy
        """
        self.store = store
        self.system_domains = frozenset(system_domains)
        self.order = order

    def resolve(self, entry: ConfigEntry) -> EffectiveKey:
        """Effective store address of an entry."""
        return resolve(entry.domain, entry.key, self.system_domains, self.order)

    def resolve_all(self, entries: list[ConfigEntry]) -> list[EffectiveKey]:
        """
        Resolve every entry, refusing two entries with one effective address.

        Raises:
            ConfigError: If two spellings in the document reach the same key
        """
        seen: dict[EffectiveKey, ConfigEntry] = {}
        resolved = []
        for entry in entries:
            effective = self.resolve(entry)
            first = seen.setdefault(effective, entry)
            if first is not entry:
                raise ConfigError(
                    f"{first.domain}.{first.key} and {entry.domain}.{entry.key} "
                    f"both set {effective}"
                )
            resolved.append(effective)
        return resolved

    def check_domain(self, effective: EffectiveKey) -> None:
        """
        Ensure the effective domain exists.

        Raises:
            DomainValidationError: If the domain is not in the live enumeration
        """
        if effective.domain == GLOBAL_DOMAIN:
            return
        if effective.domain not in self.system_domains:
            raise DomainValidationError(effective.domain)

    async def compare(self, entry: ConfigEntry) -> Comparison:
        """Read the live value for an entry and compare it."""
        effective = self.resolve(entry)
        current = await self.store.read(effective.domain, effective.key)
        comparison = Comparison(entry=entry, effective=effective, current=current)
        comparison.matched = comparison.is_set and values_equal(current, entry.desired)
        return comparison

    async def calculate(
        self,
        entries: list[ConfigEntry],
        check_domains: bool = True,
    ) -> list[PreferenceChange]:
        """
        Calculate the changes needed for a list of entries.

        Every entry is resolved before the first read, so a document
        addressing one key twice fails without touching the store. Entries
        are then read in order. Validation of an entry's domain happens
        before its read, so a failure stops the walk there.

        Args:
            entries: Flattened configured entries
            check_domains: Verify that every effective domain exists

        Returns:
            One PreferenceChange per entry that is absent or different

        Raises:
            ConfigError: If two entries resolve to the same effective key
            DomainValidationError: If check_domains is set and a domain is unknown
        """
        changes = []

        for entry, effective in zip(entries, self.resolve_all(entries)):
            if check_domains:
                self.check_domain(effective)

            comparison = await self.compare(entry)
            if comparison.matched:
                logger.debug(f"Skipping {comparison.effective}: already set")
                continue

            changes.append(PreferenceChange(
                effective=comparison.effective,
                desired=entry.desired,
                current=comparison.current,
            ))

        logger.debug(f"Diff found {len(changes)} of {len(entries)} entries to change")
        return changes


def summarize_changes(changes: list[PreferenceChange]) -> str:
    """
    Create a human-readable summary of changes.

    Useful for dry-run output and logging.
    """
    if not changes:
        return "No changes needed - current preferences match the configuration"

    lines = [f"Changes to apply ({len(changes)} total):", ""]

    for change in changes:
        if change.current is None:
            lines.append(f"  [+] {change.effective} = {format_value(change.desired)}")
        else:
            lines.append(
                f"  [~] {change.effective}: {format_value(change.current)} "
                f"-> {format_value(change.desired)}"
            )

    return "\n".join(lines)
