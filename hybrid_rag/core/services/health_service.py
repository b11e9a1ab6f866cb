"""Health service - short connectivity checks for providers."""

import asyncio
import logging
import time
from dataclasses import dataclass
from typing import Mapping

from ..protocols.health import HealthCheckable

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ProviderHealth:
    name: str
    available: bool
    latency_ms: int

    @property
    def status(self) -> str:
        return "available" if self.available else "unavailable"


class HealthService:
    """Pings every registered provider concurrently."""

    def __init__(self, providers: Mapping[str, HealthCheckable], timeout: float = 2.0):
        self._providers = dict(providers)
        self._timeout = timeout

    async def check(self) -> list[ProviderHealth]:
        return list(
            await asyncio.gather(
                *(self._check_one(name, p) for name, p in self._providers.items())
            )
        )

    async def _check_one(self, name: str, provider: HealthCheckable) -> ProviderHealth:
        started = time.perf_counter()
        try:
            available = await asyncio.wait_for(
                provider.ping(self._timeout), self._timeout + 0.5
            )
        except Exception as e:
            logger.warning(f"Health check for {name} failed: {e}")
            available = False

        latency = int((time.perf_counter() - started) * 1000)
        if not available:
            logger.warning(f"{name} is unavailable")
        return ProviderHealth(name=name, available=bool(available), latency_ms=latency)
