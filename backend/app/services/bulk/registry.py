"""
Registry of bulk runs executing in this process
"""

import asyncio
import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Coroutine, Dict, List, Optional

logger = logging.getLogger(__name__)


@dataclass
class RunningJob:
    """A detached bulk run and when it was launched"""
    job_id: str
    task: asyncio.Task
    resumed: bool = False
    started_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))


class JobRegistry:
    """Tracks detached run tasks by job id.

    One registry is created per application (or worker invocation) and
    injected into the orchestrator and the resume manager. A job id maps to at
    most one running task; finished tasks unregister themselves.
    """

    def __init__(self):
        self._running: Dict[str, RunningJob] = {}

    def register(self, job_id: str, coro: Coroutine, resumed: bool = False) -> asyncio.Task:
        if self.is_running(job_id):
            coro.close()
            raise RuntimeError(f"Bulk job {job_id} is already running")

        task = asyncio.create_task(coro, name=f"bulk-job-{job_id}")
        self._running[job_id] = RunningJob(job_id=job_id, task=task, resumed=resumed)
        task.add_done_callback(lambda finished: self._on_done(job_id, finished))
        logger.info(f"Registered bulk job {job_id} ({len(self._running)} running)")
        return task

    def _on_done(self, job_id: str, task: asyncio.Task) -> None:
        entry = self._running.get(job_id)
        if entry is not None and entry.task is task:
            self.unregister(job_id)

        if task.cancelled():
            logger.warning(f"Bulk job {job_id} task was cancelled")
        elif task.exception() is not None:
            logger.error(f"Bulk job {job_id} task crashed", exc_info=task.exception())

    def unregister(self, job_id: str) -> None:
        if self._running.pop(job_id, None) is not None:
            logger.debug(f"Unregistered bulk job {job_id}")

    def is_running(self, job_id: str) -> bool:
        entry = self._running.get(job_id)
        return entry is not None and not entry.task.done()

    def active_job_ids(self) -> List[str]:
        return [job_id for job_id in self._running if self.is_running(job_id)]

    async def wait(self, job_id: str, timeout: Optional[float] = None) -> None:
        """Wait for a running job's task to finish; returns at once if not running"""
        entry = self._running.get(job_id)
        if entry is None:
            return
        await asyncio.wait_for(asyncio.shield(entry.task), timeout=timeout)

    async def wait_all(self, timeout: Optional[float] = None) -> None:
        tasks = [entry.task for entry in self._running.values()]
        if tasks:
            await asyncio.wait(tasks, timeout=timeout)
