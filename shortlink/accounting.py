"""Fire-and-forget click accounting.

``ClickRecorder.record`` hands the increment to a background task and returns
at once; the redirect that triggered it never waits for, or learns about, the
outcome. A failed increment is wrapped in ``AccountingError``, logged and
counted. Losing a click is an accepted degradation.
"""

import asyncio
import logging

from prometheus_client import Counter

from shortlink.exceptions import AccountingError
from shortlink.store import LinkStore

__all__ = ["ClickRecorder"]

CLICK_INCREMENTS_TOTAL = Counter(
    "shortlink_click_increments_total",
    "Click increments by outcome",
    ["status"],
)


class ClickRecorder:
    def __init__(self, store: LinkStore, logger: logging.Logger | None = None) -> None:
        self._store = store
        self._logger = logger or logging.getLogger("shortlink.accounting")
        # Strong references; the event loop only keeps weak ones.
        self._tasks: set[asyncio.Task] = set()

    @property
    def pending(self) -> int:
        return len(self._tasks)

    def record(self, code: str) -> None:
        task = asyncio.create_task(self._increment(code), name=f"click:{code}")
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)

    async def drain(self) -> None:
        """Wait for every in-flight increment to finish."""
        while self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)

    async def _increment(self, code: str) -> None:
        try:
            await self._store.increment_clicks(code)
        except Exception as exc:
            error = AccountingError(code, exc)
            CLICK_INCREMENTS_TOTAL.labels(status="failed").inc()
            self._logger.error(str(error), exc_info=exc)
            return
        CLICK_INCREMENTS_TOTAL.labels(status="success").inc()
        self._logger.debug(f"Click recorded for {code}")
