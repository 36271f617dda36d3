"""Background task that drives batches through the lifecycle.

Each tick expires unfunded orders, promotes due batches to ready and
executes every ready batch. ``stop`` cancels the loop, then waits for a
batch that is mid-execution to reach ``completed`` or ``failed``.
"""

import asyncio
import logging

from src.pm_common.errors import AppError
from src.pm_relay.application.service import RelayService

logger = logging.getLogger(__name__)


class BatchScheduler:
    def __init__(self, service: RelayService, interval_seconds: float = 5.0) -> None:
        self._service = service
        self._interval = interval_seconds
        self._task: asyncio.Task[None] | None = None
        self._executing: asyncio.Task | None = None

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    async def run_once(self) -> int:
        """One scheduling pass. Returns the number of batches executed."""
        await self._service.expire_orders()
        ready = await self._service.promote_ready_batches()
        executed = 0
        for batch in ready:
            self._executing = asyncio.ensure_future(self._service.execute_batch(batch.id))
            try:
                # Shielded: cancelling the pass never interrupts a submitted trade.
                await asyncio.shield(self._executing)
                executed += 1
            except AppError as e:
                logger.warning("Scheduled execution of %s rejected: %s", batch.id, e.message)
            finally:
                if self._executing.done():
                    self._executing = None
        return executed

    async def _run(self) -> None:
        logger.info("Batch scheduler started (interval %.1fs)", self._interval)
        while True:
            try:
                await self.run_once()
            except asyncio.CancelledError:
                raise
            except Exception:
                logger.exception("Batch scheduler pass failed")
            await asyncio.sleep(self._interval)

    def start(self) -> None:
        if self.running:
            return
        self._task = asyncio.create_task(self._run(), name="batch-scheduler")

    async def stop(self) -> None:
        if self._task is None:
            return
        self._task.cancel()
        try:
            await self._task
        except asyncio.CancelledError:
            pass
        self._task = None

        executing, self._executing = self._executing, None
        if executing is not None:
            logger.info("Waiting for in-flight batch execution to finish")
            try:
                await executing
            except AppError as e:
                logger.warning("In-flight execution rejected: %s", e.message)
            except Exception:
                logger.exception("In-flight execution failed")
        logger.info("Batch scheduler stopped")
