import asyncio
import logging
import time
from typing import Awaitable, Callable, Dict, Hashable

logger = logging.getLogger(__name__)


class TaskRegistry:
    """
    Named asyncio tasks, at most one live task per key.

    Finished tasks remove themselves. Cancelling from inside the task
    that owns the key only forgets it; the task then runs to the end
    of its current step on its own.
    """

    def __init__(self, name: str = "tasks"):
        self.name = name
        self._tasks: Dict[Hashable, asyncio.Task] = {}

    def start(self, key: Hashable, coro: Awaitable) -> bool:
        """
        Schedule `coro` under `key`. Returns False (and closes the
        coroutine) when a task for that key is already running.
        """
        existing = self._tasks.get(key)
        if existing is not None and not existing.done():
            coro.close()
            return False

        task = asyncio.create_task(coro, name=f"{self.name}:{key}")
        self._tasks[key] = task
        task.add_done_callback(lambda t, k=key: self._forget(k, t))
        return True

    def cancel(self, key: Hashable) -> bool:
        task = self._tasks.pop(key, None)
        if task is None or task.done():
            return False
        if task is asyncio.current_task():
            return False
        task.cancel()
        return True

    def is_running(self, key: Hashable) -> bool:
        task = self._tasks.get(key)
        return task is not None and not task.done()

    def keys(self) -> list:
        return [key for key, task in self._tasks.items() if not task.done()]

    async def cancel_all(self) -> None:
        tasks = [t for t in self._tasks.values() if not t.done()]
        self._tasks.clear()
        for task in tasks:
            task.cancel()
        if tasks:
            await asyncio.gather(*tasks, return_exceptions=True)

    def _forget(self, key: Hashable, task: asyncio.Task) -> None:
        if self._tasks.get(key) is task:
            del self._tasks[key]


TickCallback = Callable[[Hashable], Awaitable[bool]]


class BillingScheduler:
    """
    One periodic billing loop per active session.

    The callback returns False to stop the loop. Deadlines are taken
    from the monotonic clock and advanced by a fixed interval, so a
    slow tick shortens the next sleep instead of shifting the schedule.
    """

    def __init__(self, on_tick: TickCallback):
        self.on_tick = on_tick
        self._tasks = TaskRegistry("billing")

    def start(self, session_id: Hashable, interval: float) -> bool:
        started = self._tasks.start(session_id, self._run(session_id, interval))
        if started:
            logger.info(f"Billing timer started for {session_id} ({interval}s)")
        else:
            logger.warning(f"Billing timer already running for {session_id}")
        return started

    def stop(self, session_id: Hashable) -> None:
        if self._tasks.cancel(session_id):
            logger.info(f"Billing timer stopped for {session_id}")

    def is_running(self, session_id: Hashable) -> bool:
        return self._tasks.is_running(session_id)

    def active(self) -> list:
        return self._tasks.keys()

    async def stop_all(self) -> None:
        await self._tasks.cancel_all()

    async def _run(self, session_id: Hashable, interval: float) -> None:
        deadline = time.monotonic() + interval
        while True:
            await asyncio.sleep(max(deadline - time.monotonic(), 0))
            deadline += interval

            try:
                keep_going = await self.on_tick(session_id)
            except asyncio.CancelledError:
                raise
            except Exception:
                logger.exception(f"Billing tick failed for {session_id}")
                return

            if not keep_going:
                return
