"""
Periodic Task Scheduling.

This module runs the timer-driven side effects of the application: the expiry
sweep, the bot import cycle and the decay heartbeat.

Key Components:
- `PeriodicTask`: Wraps one async action. `trigger()` runs it once and can be
  awaited directly by tests or endpoints; `start()` launches a background
  loop that waits `initial_delay` (defaults to one interval), runs the action,
  then repeats every `interval` seconds; `stop()` cancels the loop.
- `SchedulerService`: Holds the named tasks and starts or stops them together
  during the application lifespan.

A failing run is logged and the loop keeps going; tasks end only when the
process shuts down.
"""

import asyncio
import logging
from typing import Any, Awaitable, Callable, Dict, Optional

logger = logging.getLogger(__name__)


class PeriodicTask:
    """An async action repeated on a fixed interval"""

    def __init__(
        self,
        name: str,
        action: Callable[[], Awaitable[Any]],
        interval: float,
        initial_delay: Optional[float] = None,
    ):
        self.name = name
        self.action = action
        self.interval = interval
        self.initial_delay = interval if initial_delay is None else initial_delay
        self.run_count = 0
        self.last_error: Optional[str] = None
        self._task: Optional[asyncio.Task] = None

    async def trigger(self) -> Any:
        """Run the action once, logging instead of raising on failure"""
        try:
            result = await self.action()
            self.last_error = None
            return result
        except Exception as e:
            self.last_error = str(e)
            logger.error(f"Periodic task {self.name} failed: {e}", exc_info=True)
            return None
        finally:
            self.run_count += 1

    async def _run_forever(self) -> None:
        await asyncio.sleep(self.initial_delay)
        while True:
            await self.trigger()
            await asyncio.sleep(self.interval)

    def start(self) -> None:
        if self.is_running():
            logger.warning(f"Periodic task {self.name} already running")
            return
        self._task = asyncio.create_task(self._run_forever(), name=f"periodic:{self.name}")
        logger.info(f"Started periodic task {self.name} (every {self.interval}s)")

    async def stop(self) -> None:
        if not self._task:
            return
        self._task.cancel()
        try:
            await self._task
        except asyncio.CancelledError:
            pass
        self._task = None
        logger.info(f"Stopped periodic task {self.name}")

    def is_running(self) -> bool:
        return self._task is not None and not self._task.done()


class SchedulerService:
    """Owns the application's periodic tasks"""

    def __init__(self):
        self.tasks: Dict[str, PeriodicTask] = {}

    def add_task(self, task: PeriodicTask) -> PeriodicTask:
        self.tasks[task.name] = task
        return task

    def get_task(self, name: str) -> PeriodicTask:
        return self.tasks[name]

    def start_all(self) -> None:
        for task in self.tasks.values():
            task.start()

    async def stop_all(self) -> int:
        """
        Stop all running tasks (useful for shutdown).

        Returns:
            Number of tasks stopped
        """
        stopped_count = 0
        for task in self.tasks.values():
            if task.is_running():
                await task.stop()
                stopped_count += 1
        logger.info(f"Stopped {stopped_count} periodic tasks")
        return stopped_count

    def get_stats(self) -> Dict[str, Any]:
        return {
            name: {
                "running": task.is_running(),
                "interval_seconds": task.interval,
                "run_count": task.run_count,
                "last_error": task.last_error,
            }
            for name, task in self.tasks.items()
        }
