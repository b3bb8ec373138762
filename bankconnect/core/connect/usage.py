"""Best-effort institution usage reporting."""

from __future__ import annotations

import asyncio
import logging
from typing import Optional, Set
from urllib.parse import quote

import httpx

from bankconnect.core.connect.engine import EngineClient
from bankconnect.core.connect.errors import UsageReportError

logger = logging.getLogger(__name__)


class UsageReporter:
    """Tells the directory an institution was picked, for popularity ranking.

    ``report_usage`` never blocks and never raises. Reports run as
    background tasks; failures are logged and dropped, never retried.
    """

    def __init__(self, engine: Optional[EngineClient] = None):
        self.engine = engine or EngineClient()
        self._pending: Set[asyncio.Task] = set()

    def report_usage(self, institution_id: str) -> None:
        """Schedule a usage report for ``institution_id``."""
        try:
            task = asyncio.get_running_loop().create_task(self._report(institution_id))
        except RuntimeError:
            logger.warning(f"No running event loop; usage for {institution_id} not reported")
            return

        self._pending.add(task)
        task.add_done_callback(self._pending.discard)

    async def _report(self, institution_id: str) -> None:
        try:
            await self.send(institution_id)
            logger.debug(f"Reported usage for institution {institution_id}")
        except Exception as e:
            logger.warning(f"Usage report for {institution_id} failed: {e}")

    async def send(self, institution_id: str) -> None:
        """Send one usage report.

        Raises:
            UsageReportError: If the report was not accepted
        """
        try:
            await self.engine.post(f"/institutions/{quote(institution_id, safe='')}/usage")
        except (httpx.HTTPError, ValueError) as e:
            raise UsageReportError(str(e)) from e

    @property
    def pending(self) -> int:
        return len(self._pending)

    async def aclose(self) -> None:
        """Wait for reports still in flight."""
        if self._pending:
            await asyncio.gather(*list(self._pending), return_exceptions=True)
