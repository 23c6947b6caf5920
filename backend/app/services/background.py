"""
In-process background jobs with bounded retry.

Side effects that must not block or fail the request (real-time push, email,
rating recomputation, cache invalidation) run here as asyncio tasks. Jobs are
normally scheduled with `schedule_after_commit`, so they only start once the
unit of work that produced them is durable.

Retry policy:
  attempt 1 fails -> sleep backoff
  attempt 2 fails -> sleep backoff * 2
  ...
  attempt N fails -> log `background_job_failed` with the traceback and give up

Jobs must therefore be idempotent (re-query fresh state, absolute writes).
"""

import asyncio
from typing import Awaitable, Callable, Optional

from sqlalchemy.ext.asyncio import AsyncSession

from app.core.config import get_settings
from app.core.logging import get_logger
from app.core.metrics import record_background_job
from app.db.session import after_commit

logger = get_logger(__name__)

Job = Callable[[], Awaitable[None]]


class TaskRunner:
    """Tracks spawned jobs so they can be drained in tests and at shutdown."""

    def __init__(self, max_attempts: Optional[int] = None, backoff_seconds: Optional[float] = None):
        settings = get_settings()
        self.max_attempts = max_attempts or settings.BACKGROUND_TASK_MAX_ATTEMPTS
        self.backoff_seconds = (
            settings.BACKGROUND_TASK_BACKOFF_SECONDS if backoff_seconds is None else backoff_seconds
        )
        self._tasks: set[asyncio.Task] = set()

    @property
    def pending(self) -> int:
        return len(self._tasks)

    def submit(self, name: str, job: Job) -> asyncio.Task:
        task = asyncio.get_running_loop().create_task(self._run(name, job), name=f"job:{name}")
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        return task

    async def _run(self, name: str, job: Job) -> None:
        for attempt in range(1, self.max_attempts + 1):
            try:
                await job()
            except asyncio.CancelledError:
                raise
            except Exception as e:
                if attempt == self.max_attempts:
                    logger.error(
                        "background_job_failed",
                        job=name,
                        attempts=attempt,
                        error=str(e),
                        exc_info=True,
                    )
                    record_background_job(name, "failed")
                    return
                wait_time = self.backoff_seconds * (2 ** (attempt - 1))
                logger.warning(
                    "background_job_retry",
                    job=name,
                    attempt=attempt,
                    max_attempts=self.max_attempts,
                    wait_seconds=wait_time,
                    error=str(e),
                )
                record_background_job(name, "retried")
                await asyncio.sleep(wait_time)
            else:
                record_background_job(name, "succeeded")
                return

    async def drain(self) -> None:
        """Wait until no jobs are pending, including jobs spawned by jobs."""
        while self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)

    async def shutdown(self, timeout: Optional[float] = None) -> None:
        if not self._tasks:
            return
        timeout = get_settings().BACKGROUND_SHUTDOWN_TIMEOUT if timeout is None else timeout
        done, pending = await asyncio.wait(list(self._tasks), timeout=timeout)
        for task in pending:
            task.cancel()
        if pending:
            await asyncio.gather(*pending, return_exceptions=True)
            logger.warning("background_jobs_cancelled", count=len(pending))
        logger.info("background_jobs_stopped", completed=len(done))


task_runner = TaskRunner()


def schedule_after_commit(session: AsyncSession, name: str, job: Job) -> None:
    """Run `job` in the background once `session` commits; dropped on rollback."""
    after_commit(session, lambda: task_runner.submit(name, job))
