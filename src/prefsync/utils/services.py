"""Restarting the system services that cache preferences.

Several preferences only take effect once the owning process reloads
them; killing the process makes launchd start it again with fresh values.
"""
import asyncio
import logging

from .logging_config import timed
from .retry import with_retry

logger = logging.getLogger(__name__)

DEFAULT_SERVICES = (
    "SystemUIServer",
    "Dock",
    "Finder",
    "ControlCenter",
    "NotificationCenter",
)


class ServiceRestarter:
    """Restart preference-caching services with `killall`."""

    name = "services"

    def __init__(self, services: tuple = DEFAULT_SERVICES, binary: str = "killall"):
        self.services = services
        self.binary = binary

    @with_retry()
    async def _kill(self, service: str) -> int:
        process = await asyncio.create_subprocess_exec(
            self.binary,
            service,
            stdout=asyncio.subprocess.DEVNULL,
            stderr=asyncio.subprocess.DEVNULL,
        )
        return await process.wait()

    async def _restart_one(self, service: str) -> bool:
        try:
            code = await self._kill(service)
        except OSError as e:
            logger.warning(f"Failed to restart {service}: {e}")
            return False

        if code != 0:
            logger.warning(f"Failed to restart {service} (killall exited with {code})")
            return False
        return True

    @timed("restart_services")
    async def restart(self) -> dict[str, bool]:
        """Restart every service concurrently.

        Returns:
            Mapping of service name to whether its restart succeeded
        """
        results = await asyncio.gather(*(self._restart_one(s) for s in self.services))
        outcome = dict(zip(self.services, results))

        restarted = sum(1 for ok in outcome.values() if ok)
        logger.info(f"Restarted {restarted}/{len(self.services)} services")
        return outcome
