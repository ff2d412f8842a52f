"""Domain collector for the [set] section of the configuration document.

Walks the tomlkit document so that inline tables and headed tables can be
told apart:

    [set.finder]
    FXInfoPanesExpanded = { Preview = false }   # dictionary value of "finder"

    [set.dock.nested]                           # new domain "dock.nested"
    key = 1
"""
import logging
from typing import Any

from tomlkit.container import OutOfOrderTableProxy
from tomlkit.items import AoT, Table

from ..errors import ConfigError, ValueConversionError
from ..values import PreferenceValue, from_toml
from .schema import ConfigEntry

logger = logging.getLogger(__name__)

SETTINGS_KEY = "set"

# Deepest header path accepted under [set]
MAX_DOMAIN_DEPTH = 32

# Headed tables split across the document come back as proxies
TABLE_TYPES = (Table, OutOfOrderTableProxy)


def collect_domains(document: Any) -> dict[str, dict[str, PreferenceValue]]:
    """
    Collect every managed domain and its flat key table.

    Args:
        document: Parsed tomlkit document

    Returns:
        Mapping of configured domain name to {key: value}, in document
        order. Domains without keys are omitted.

    Raises:
        ConfigError: On a malformed [set] section
        ValueConversionError: On a value outside the preference model
    """
    out: dict[str, dict[str, PreferenceValue]] = {}

    settings = document.get(SETTINGS_KEY)
    if settings is None:
        return out

    if not isinstance(settings, TABLE_TYPES):
        raise ConfigError(f"[{SETTINGS_KEY}] must be a table")

    for domain, item in settings.items():
        if not isinstance(item, TABLE_TYPES):
            raise ConfigError(
                f"'{SETTINGS_KEY}.{domain}' must be a table naming a domain, "
                f"not a value"
            )
        _walk(str(domain), item, out, depth=1)

    logger.debug(f"Collected {len(out)} domains from [{SETTINGS_KEY}]")
    return out


def _walk(
    domain: str,
    table: Any,
    out: dict[str, dict[str, PreferenceValue]],
    depth: int,
) -> None:
    """Collect one domain table, then recurse into headed sub-tables."""
    if depth > MAX_DOMAIN_DEPTH:
        raise ConfigError(
            f"Domain '{domain}' is nested deeper than {MAX_DOMAIN_DEPTH} levels"
        )

    settings: dict[str, PreferenceValue] = {}
    nested: list[tuple[str, Any]] = []

    for key, item in table.items():
        key = str(key)
        if isinstance(item, TABLE_TYPES):
            nested.append((f"{domain}.{key}", item))
        elif isinstance(item, AoT):
            raise ValueConversionError(
                f"Array of tables at '{domain}.{key}' is not a preference value"
            )
        else:
            try:
                settings[key] = from_toml(item)
            except ValueConversionError as e:
                raise ValueConversionError(f"{domain}.{key}: {e}") from e

    if settings:
        existing = out.setdefault(domain, {})
        for key, value in settings.items():
            if key in existing:
                raise ConfigError(f"Setting '{key}' is defined twice for domain '{domain}'")
            existing[key] = value

    for nested_domain, nested_table in nested:
        _walk(nested_domain, nested_table, out, depth + 1)


def flatten(domains: dict[str, dict[str, PreferenceValue]]) -> list[ConfigEntry]:
    """Flatten collected domains into entries, preserving order."""
    return [
        ConfigEntry(domain=domain, key=key, desired=value)
        for domain, table in domains.items()
        for key, value in table.items()
    ]
