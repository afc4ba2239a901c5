"""Background task that periodically completes elapsed bookings."""

import asyncio
import logging
from collections.abc import Callable
from contextlib import AbstractAsyncContextManager

from app.scheduling.engine import BookingEngine

logger = logging.getLogger(__name__)

EngineFactory = Callable[[], AbstractAsyncContextManager[BookingEngine]]


class BookingSweeper:
    """Runs ``BookingEngine.sweep_completed`` every ``interval`` seconds.

    ``engine_factory`` yields an engine bound to a fresh unit of work (for the
    SQL store: a session that is committed when the context exits).
    """

    def __init__(self, engine_factory: EngineFactory, interval: float = 60) -> None:
        self._engine_factory = engine_factory
        self.interval = interval
        self._task: asyncio.Task | None = None

    @property
    def is_running(self) -> bool:
        return self._task is not None and not self._task.done()

    def start(self) -> None:
        if self.is_running:
            logger.info("Booking sweeper is already running")
            return
        logger.info("Starting booking sweeper (every %ss)", self.interval)
        self._task = asyncio.create_task(self._loop(), name="booking-sweeper")

    async def stop(self) -> None:
        if self._task is None:
            return
        self._task.cancel()
        try:
            await self._task
        except asyncio.CancelledError:
            pass
        self._task = None
        logger.info("Booking sweeper stopped")

    async def run_once(self) -> int:
        async with self._engine_factory() as engine:
            return await engine.sweep_completed()

    async def _loop(self) -> None:
        while True:
            try:
                await self.run_once()
            except Exception:
                # Keep sweeping; the next run resumes where this one stopped.
                logger.exception("Booking sweep failed")
            await asyncio.sleep(self.interval)
