"""Base abstraction for live preference stores."""
import logging
from abc import ABC, abstractmethod
from typing import Any, Optional

from ..values import PreferenceValue

logger = logging.getLogger(__name__)

# The global domain is always present and never listed by the store
GLOBAL_DOMAIN = "NSGlobalDomain"


class PreferenceStore(ABC):
    """Abstract base class for key-value preference stores.

    Values read and written are shaped like preference values. Each call
    is independent; the store holds no transaction state.
    """

    name: str = "store"

    @abstractmethod
    async def read(self, domain: str, key: str) -> Optional[Any]:
        """Read a key.

        Returns:
            The current value, or None if the key is absent
        """
        pass

    @abstractmethod
    async def write(self, domain: str, key: str, value: PreferenceValue) -> None:
        """Write a key.

        Raises:
            PreferenceIOError: If the write failed
        """
        pass

    @abstractmethod
    async def delete(self, domain: str, key: str) -> None:
        """Delete a key.

        Raises:
            PreferenceIOError: If the delete failed
        """
        pass

    @abstractmethod
    async def list_domains(self) -> set[str]:
        """Enumerate the domains that currently exist."""
        pass
