"""Resolution of configured domain/key pairs to real store addresses.

    finder                           + ShowPathbar -> com.apple.finder | ShowPathbar
    NSGlobalDomain                   + Foo         -> NSGlobalDomain | Foo
    NSGlobalDomain.com.apple.keyboard + fnState    -> NSGlobalDomain | com.apple.keyboard.fnState
    com.googlecode.iterm2 (live)     + Key         -> com.googlecode.iterm2 | Key
"""
from collections.abc import Collection

from .schema import GLOBAL_DOMAIN, EffectiveKey, ResolutionOrder

SHORTHAND_PREFIX = "com.apple."
GLOBAL_PREFIX = f"{GLOBAL_DOMAIN}."


def resolve(
    domain: str,
    key: str,
    system_domains: Collection[str] = frozenset(),
    order: ResolutionOrder = ResolutionOrder.LITERAL_FIRST,
) -> EffectiveKey:
    """
    Map a configured (domain, key) to the effective store (domain, key).

    Args:
        domain: Domain as written in the document
        key: Key as written in the document
        system_domains: Live domain enumeration (looked up, never fetched)
        order: Whether live domain names win over shorthand expansion

    Returns:
        EffectiveKey
    """
    if domain == GLOBAL_DOMAIN:
        return EffectiveKey(GLOBAL_DOMAIN, key)

    if domain.startswith(GLOBAL_PREFIX):
        suffix = domain[len(GLOBAL_PREFIX):]
        return EffectiveKey(GLOBAL_DOMAIN, f"{suffix}.{key}")

    if order == ResolutionOrder.LITERAL_FIRST and domain in system_domains:
        return EffectiveKey(domain, key)

    return EffectiveKey(f"{SHORTHAND_PREFIX}{domain}", key)
