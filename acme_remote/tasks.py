import asyncio
import logging
from typing import Coroutine, Dict


logger = logging.getLogger(__name__)


class BackgroundTaskMixin:
    """
    Миксин для управления фоновыми задачами asyncio.
    Задачи хранятся по имени, повторный запуск отменяет предыдущую задачу с тем же именем.
    """
    _bg_tasks: Dict[str, asyncio.Task]

    def start_task(self, name: str, coro: Coroutine) -> asyncio.Task:
        if not hasattr(self, "_bg_tasks"):
            self._bg_tasks = {}

        self.cancel_task(name)

        task = asyncio.create_task(coro, name=name)
        self._bg_tasks[name] = task

        def _done(t: asyncio.Task):
            if self._bg_tasks.get(name) is t:
                del self._bg_tasks[name]
            if not t.cancelled() and t.exception() is not None:
                logger.error(f"Background task {name!r} crashed", exc_info=t.exception())

        task.add_done_callback(_done)
        return task

    def has_task(self, name: str) -> bool:
        return name in getattr(self, "_bg_tasks", {})

    def cancel_task(self, name: str):
        if not hasattr(self, "_bg_tasks"): return

        task = self._bg_tasks.pop(name, None)
        if task is not None and not task.done():
            task.cancel()

    def cancel_all_tasks(self):
        if not hasattr(self, "_bg_tasks"): return

        for name in list(self._bg_tasks.keys()):
            self.cancel_task(name)

    async def wait_cancelled(self, *names: str):
        """Отменяет задачи и дожидается их завершения."""
        tasks = [self._bg_tasks.pop(n) for n in names if n in getattr(self, "_bg_tasks", {})]
        for task in tasks:
            task.cancel()
        if tasks:
            await asyncio.gather(*tasks, return_exceptions=True)
