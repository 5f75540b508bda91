import asyncio
import logging
from typing import Optional

from contentforge.services.publish_orchestrator import PublishOrchestrator

logger = logging.getLogger(__name__)


class SchedulerService:
    """Background loop that publishes due posts every `check_interval` seconds."""

    def __init__(self, orchestrator: PublishOrchestrator, check_interval: int = 60):
        self.orchestrator = orchestrator
        self.check_interval = check_interval
        self.running = False
        self._task: Optional[asyncio.Task] = None

    async def start(self):
        """Start the scheduler service"""
        if self.running:
            logger.info("Scheduler service already running")
            return

        self.running = True
        logger.info(f"🚀 Scheduler service started - checking every {self.check_interval} seconds")

        while self.running:
            await self.run_once()
            await asyncio.sleep(self.check_interval)

    async def run_once(self):
        """One pass over the due posts; errors are logged and the loop carries on."""
        try:
            await self.orchestrator.publish_due_posts()
        except Exception as e:
            logger.error(f"Error in scheduler loop: {e}")

    def start_background(self) -> asyncio.Task:
        self._task = asyncio.create_task(self.start())
        return self._task

    async def stop(self):
        """Stop the scheduler service"""
        self.running = False
        if self._task is not None and not self._task.done():
            self._task.cancel()
            try:
                await self._task
            except asyncio.CancelledError:
                pass
        self._task = None
        logger.info("🛑 Scheduler service stopped")
