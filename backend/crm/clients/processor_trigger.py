"""
Best-effort trigger for the background message processor.

Each navigation to a new page sends one POST to
``/api/messages/process-background`` without waiting for it. The outcome is
never reported to the caller: failures are logged at DEBUG and dropped.
"""

import asyncio
import logging
from typing import Dict, Optional, Set

import httpx


logger = logging.getLogger(__name__)

PROCESS_PATH = "/api/messages/process-background"
TRIGGER_TIMEOUT_SECONDS = 10.0


class MessageProcessorTrigger:
    """
    Fire-and-forget POSTer keyed on navigation.

    Args:
        base_url: API origin, e.g. ``https://crm.example.com``
        client: shared ``httpx.AsyncClient``; one is created (and owned) if omitted
        headers: sent with every request, typically the session cookie or bearer token
    """

    def __init__(
        self,
        base_url: str,
        client: Optional[httpx.AsyncClient] = None,
        headers: Optional[Dict[str, str]] = None,
    ):
        self.url = f"{base_url.rstrip('/')}{PROCESS_PATH}"
        self._owns_client = client is None
        self._client = client or httpx.AsyncClient(timeout=TRIGGER_TIMEOUT_SECONDS)
        self._headers = headers or {}
        self._current_path: Optional[str] = None
        self._pending: Set[asyncio.Task] = set()

    @property
    def current_path(self) -> Optional[str]:
        return self._current_path

    @property
    def in_flight(self) -> int:
        """Number of requests sent and not yet finished."""
        return len(self._pending)

    def on_navigation(self, path: str) -> bool:
        """
        Record a route change; a new path fires one request.

        Must be called from a running event loop. Returns whether a request
        was started.
        """
        if path == self._current_path:
            return False
        self._current_path = path

        task = asyncio.get_running_loop().create_task(self._fire(path))
        self._pending.add(task)
        task.add_done_callback(self._pending.discard)
        return True

    async def _fire(self, path: str) -> None:
        try:
            response = await self._client.post(self.url, headers=self._headers)
            logger.debug(f"Message processor trigger for {path}: HTTP {response.status_code}")
        except Exception as e:
            logger.debug(f"Message processor trigger for {path} failed: {e}")

    async def drain(self) -> None:
        """Wait for in-flight requests to finish."""
        if self._pending:
            await asyncio.gather(*list(self._pending), return_exceptions=True)

    async def aclose(self) -> None:
        await self.drain()
        if self._owns_client:
            await self._client.aclose()
