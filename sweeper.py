import asyncio
import logging
import time
from typing import Callable, List, Optional

from config import DEFAULT_STALE_AFTER, DEFAULT_SWEEP_INTERVAL
from messages import LEAVE_TEXT, MessageStore
from presence import PresenceRegistry

logger = logging.getLogger(__name__)


class LivenessSweeper:
    """
    Background task that evicts participants who stopped sending heartbeats.

    Every `interval` seconds it selects participants not seen for `stale_after`
    seconds, posts a departure notice for each and then removes them in one
    batch. A failed cycle is logged and the next one starts over; eviction of
    a name that is already gone is a no-op, so repeating a half done cycle is
    harmless.
    """

    def __init__(
        self,
        registry: PresenceRegistry,
        messages: MessageStore,
        interval: float = DEFAULT_SWEEP_INTERVAL,
        stale_after: float = DEFAULT_STALE_AFTER,
        clock: Callable[[], float] = time.time,
    ):
        self.registry = registry
        self.messages = messages
        self.interval = interval
        self.stale_after = stale_after
        self.clock = clock
        self._task: Optional[asyncio.Task] = None

    def run_once(self) -> List[str]:
        """Run a single sweep cycle and return the evicted names."""
        cutoff = self.clock() - self.stale_after
        stale = [p.name for p in self.registry.stale(cutoff)]
        if not stale:
            return []

        for name in stale:
            self.messages.append_status(name, LEAVE_TEXT)
        evicted = self.registry.evict_many(stale, cutoff)
        logger.info(f"Evicted {evicted} inactive participant(s): {', '.join(stale)}")
        return stale

    def start(self):
        """Starts the sweep loop on the running event loop."""
        if self._task is None:
            self._task = asyncio.create_task(self._run())
            logger.info(
                f"Liveness sweeper started. Interval: {self.interval}s, stale after: {self.stale_after}s."
            )

    async def stop(self):
        if self._task:
            self._task.cancel()
            try:
                await self._task
            except asyncio.CancelledError:
                pass
            self._task = None
            logger.info("Liveness sweeper stopped.")

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    async def _run(self):
        while True:
            await asyncio.sleep(self.interval)
            try:
                # store calls are blocking
                await asyncio.to_thread(self.run_once)
            except Exception as e:
                logger.exception(f"Sweep cycle failed, retrying next cycle: {e}")
