"""Service for driving session timers."""
import asyncio
import logging
from typing import Dict, Optional

from vocabpractice.config import settings
from vocabpractice.services.session_service import PracticeSessionController

logger = logging.getLogger(__name__)


class TickScheduler:
    """Emits periodic ticks to a session controller.

    The controller enforces the time limit and autosaves on each tick; a tick
    after the session ended or was reset does nothing.
    """

    def __init__(self, controller: PracticeSessionController, interval: Optional[float] = None):
        self.controller = controller
        self.interval = settings.progress.tick_interval if interval is None else interval
        self.tasks: Dict[str, asyncio.Task] = {}
        self.running = False

    async def start(self) -> None:
        """Start the scheduler."""
        if self.running:
            return

        self.running = True
        logger.info(f"Starting tick scheduler for user {self.controller.user_id}...")
        self.tasks["session_ticks"] = asyncio.create_task(self._run_ticks())

    async def stop(self) -> None:
        """Stop the scheduler."""
        if not self.running:
            return

        self.running = False
        logger.info(f"Stopping tick scheduler for user {self.controller.user_id}...")

        for task in self.tasks.values():
            task.cancel()

        await asyncio.gather(*self.tasks.values(), return_exceptions=True)
        self.tasks.clear()

    async def _run_ticks(self) -> None:
        """Tick the controller until stopped."""
        while self.running:
            await asyncio.sleep(self.interval)
            try:
                if self.controller.tick():
                    logger.info(f"Time limit reached for user {self.controller.user_id}")
            except Exception as e:
                logger.error(f"Error in session tick: {e}")
