"""Health-check protocol for providers that expose connectivity checks."""
from typing import Protocol, runtime_checkable


@runtime_checkable
class HealthCheckable(Protocol):
    """Provider with a short connectivity check."""

    async def ping(self, timeout: float = 2.0) -> bool:
        """Return True when the provider answers within `timeout` seconds."""
        ...
