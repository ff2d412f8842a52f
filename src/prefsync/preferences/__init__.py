"""Live preference store backends."""
from .base import PreferenceStore
from .defaults import DefaultsStore
from .memory import InMemoryPreferenceStore

__all__ = [
    "PreferenceStore",
    "DefaultsStore",
    "InMemoryPreferenceStore",
]

# Store type registry
STORE_TYPES = {
    "defaults": DefaultsStore,
    "memory": InMemoryPreferenceStore,
}


def create_store(store_type: str = "defaults", **kwargs) -> PreferenceStore:
    """Factory function to create preference store instances."""
    store_type = store_type.lower()
    if store_type not in STORE_TYPES:
        raise ValueError(f"Unknown store type: {store_type}")

    return STORE_TYPES[store_type](**kwargs)
