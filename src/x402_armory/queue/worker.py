"""
Background worker draining a settlement queue
"""

import asyncio
import logging
from typing import Awaitable, Callable

from x402_armory.queue.base import SettleJob

logger = logging.getLogger(__name__)


class SettlementWorker:
    """
    Polls ``process_next`` until stopped.

    ``process_next`` handles one queued job and returns it, or returns None
    when nothing is ready; the worker sleeps ``poll_interval`` only in the
    latter case.
    """

    def __init__(
        self,
        process_next: Callable[[], Awaitable[SettleJob | None]],
        poll_interval: float = 1.0,
    ) -> None:
        self._process_next = process_next
        self._poll_interval = poll_interval
        self._task: asyncio.Task | None = None
        self._stopping = asyncio.Event()

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    def start(self) -> None:
        if self.running:
            return
        self._stopping.clear()
        self._task = asyncio.create_task(self._run())
        logger.info("Settlement worker started")

    async def stop(self) -> None:
        if self._task is None:
            return
        self._stopping.set()
        await self._task
        self._task = None
        logger.info("Settlement worker stopped")

    async def run_until_idle(self) -> int:
        """Process ready jobs until none is left; return how many ran"""
        processed = 0
        while await self._process_next() is not None:
            processed += 1
        return processed

    async def _run(self) -> None:
        while not self._stopping.is_set():
            try:
                job = await self._process_next()
            except Exception:
                logger.exception("Settlement worker iteration crashed")
                job = None
            if job is not None:
                continue
            try:
                await asyncio.wait_for(self._stopping.wait(), timeout=self._poll_interval)
            except asyncio.TimeoutError:
                pass
