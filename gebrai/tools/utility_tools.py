import time
from datetime import datetime, timezone
from typing import Any, Callable, Dict

from gebrai import __version__


class UtilityTools:
    """Connectivity checks that never touch GeoGebra."""

    def __init__(self, tool_count: Callable[[], int], name: str = "gebrai"):
        self._tool_count = tool_count
        self._name = name
        self._started = time.monotonic()

    def handlers(self):
        return [self.echo, self.ping, self.server_info]

    async def echo(self, message: str) -> Dict[str, Any]:
        """
        Return the message unchanged.

        Args:
            message: text to echo back
        """
        return {"message": message}

    async def ping(self) -> Dict[str, Any]:
        """Check that the server responds."""
        return {"message": "pong", "timestamp": datetime.now(timezone.utc).isoformat()}

    async def server_info(self) -> Dict[str, Any]:
        """Name, version, uptime and number of registered tools."""
        return {
            "name": self._name,
            "version": __version__,
            "uptime": round(time.monotonic() - self._started, 3),
            "toolCount": self._tool_count(),
        }
