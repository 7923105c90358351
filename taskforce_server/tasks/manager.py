from __future__ import annotations

import asyncio
import json
import logging
from datetime import timedelta
from typing import AsyncIterator, Dict, Optional
from uuid import uuid4

from taskforce_common.schemas import TaskStatus, TaskSubmissionOptions
from taskforce_server.models.task import Task, utcnow
from taskforce_server.tasks.executor import DEFAULT_MODEL, MOCK_RESULT, execute

logger = logging.getLogger(__name__)

KEEP_ALIVE = ": keep-alive\n\n"


def sse_frame(status: TaskStatus) -> str:
    return f"data: {json.dumps(status.to_wire())}\n\n"


class TaskManager:
    """In-memory task store.

    A task advances one step each time its status is observed: it reports
    ``processing`` for ``steps`` observations and then runs the executor.
    """

    def __init__(self, steps: int = 2, task_ttl_seconds: int = 3600):
        self._lock = asyncio.Lock()
        self.steps = steps
        self.task_ttl = timedelta(seconds=task_ttl_seconds)
        self.tasks: Dict[str, Task] = {}

    async def submit(self, prompt: str, options: Optional[TaskSubmissionOptions]) -> str:
        task_id = str(uuid4())
        options = options or TaskSubmissionOptions()
        task = Task(
            task_id=task_id,
            prompt=prompt,
            options=options,
            steps_left=self.steps,
            metadata=dict(options.metadata or {}),
        )
        if not options.model_id and not options.mock:
            task.warnings.append(f"no modelId given, using {DEFAULT_MODEL}")
        async with self._lock:
            self.tasks[task_id] = task
        logger.info("accepted task %s", task_id)
        return task_id

    async def get(self, task_id: str) -> Optional[Task]:
        async with self._lock:
            return self.tasks.get(task_id)

    async def observe(self, task_id: str) -> Optional[TaskStatus]:
        async with self._lock:
            task = self.tasks.get(task_id)
            if not task:
                return None
            self._advance(task)
            return task.to_status()

    def _advance(self, task: Task) -> None:
        if task.is_terminal:
            return

        if task.options.mock:
            task.mark_done(MOCK_RESULT)
            return

        if task.steps_left > 0:
            task.steps_left -= 1
            return

        try:
            task.mark_done(execute(task.prompt, task.options.model_id))
        except ValueError as e:
            task.mark_failed(str(e))
        logger.info("task %s finished: %s", task.task_id, task.status.value)

    async def events(self, task_id: str, tick: float = 0.5) -> AsyncIterator[str]:
        """SSE frames for a task, one per observation, until it is terminal."""
        while True:
            status = await self.observe(task_id)
            if status is None:
                return
            yield sse_frame(status)
            if status.is_terminal:
                return
            yield KEEP_ALIVE
            await asyncio.sleep(tick)

    async def evict_finished(self) -> int:
        cutoff = utcnow() - self.task_ttl
        async with self._lock:
            stale = [tid for tid, t in self.tasks.items() if t.finished_at and t.finished_at < cutoff]
            for tid in stale:
                del self.tasks[tid]
        if stale:
            logger.debug("evicted %d finished tasks", len(stale))
        return len(stale)
