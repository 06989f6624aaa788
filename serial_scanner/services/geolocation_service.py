"""Best-effort, single-shot device position lookup."""
from __future__ import annotations

import asyncio
import logging
from typing import Optional, Protocol

from ..core.entities import Position
from ..core.exceptions import GeolocationError

logger = logging.getLogger(__name__)


class PositionSource(Protocol):
    async def get_position(self, timeout_s: float) -> Position:
        ...


class StaticPositionSource:
    """Fixed site coordinates, e.g. a warehouse the scanner is mounted in."""

    def __init__(self, position: Position):
        self._position = position

    async def get_position(self, timeout_s: float) -> Position:
        return self._position


class UnavailablePositionSource:
    async def get_position(self, timeout_s: float) -> Position:
        raise GeolocationError("Geolocation not supported")


class GeolocationResolver:
    """Wraps a PositionSource with a timeout; never raises."""

    def __init__(self, source: Optional[PositionSource] = None, timeout_ms: int = 10000):
        self._source = source or UnavailablePositionSource()
        self.timeout_ms = timeout_ms

    @classmethod
    def from_config(cls, config) -> "GeolocationResolver":
        position = config.get_site_position()
        source = StaticPositionSource(position) if position else UnavailablePositionSource()
        return cls(source, timeout_ms=config.geolocation_timeout_ms)

    async def resolve_once(self) -> Optional[Position]:
        """Ask the source once.

        Returns:
            The position, or None on denial, timeout or lack of support
        """
        timeout_s = self.timeout_ms / 1000.0
        try:
            position = await asyncio.wait_for(self._source.get_position(timeout_s), timeout=timeout_s)
        except asyncio.TimeoutError:
            logger.info(f"Location not available: no fix within {self.timeout_ms} ms")
            return None
        except GeolocationError as e:
            logger.info(f"Location not available: {e}")
            return None
        except Exception as e:
            logger.warning(f"Location lookup failed: {e}")
            return None
        logger.debug(f"Position resolved: {position}")
        return position
