"""
Worker Pool Executor

Runs a batch of independent async tasks with a bounded number of
workers. Every task runs exactly once; a failing task is recorded and
never stops its siblings.
"""
import asyncio
import time
from typing import List, Optional

from app.features.scan.schemas.tasks import (
    BatchOutcome,
    ExecutionOptions,
    Task,
    TaskFailure,
    TaskSuccess,
)
from app.platform.config import settings
from app.platform.logger import get_logger

logger = get_logger(__name__)

CANCELLED_BEFORE_START = "Run cancelled before task started"


class WorkerPoolExecutor:
    """Executes task batches with at most N tasks in flight"""

    def __init__(self, default_concurrency: int = settings.DEFAULT_CONCURRENCY):
        if default_concurrency < 1:
            raise ValueError("default_concurrency must be at least 1")
        self.default_concurrency = default_concurrency

    async def execute_tasks(self, tasks: List[Task], options: Optional[ExecutionOptions] = None) -> BatchOutcome:
        """
        Execute tasks in parallel with a worker pool.

        Args:
            tasks: Tasks to execute, ids unique within the batch
            options: Concurrency override, progress callback, timeout, cancellation

        Returns:
            BatchOutcome whose successes and failures together cover every task
        """
        options = options or ExecutionOptions()
        limit = options.max_concurrency if options.max_concurrency is not None else self.default_concurrency
        if limit < 1:
            raise ValueError(f"max_concurrency must be at least 1, got {limit}")

        outcome = BatchOutcome()
        total = len(tasks)
        if total == 0:
            return outcome

        worker_count = min(limit, total)
        logger.info(f"Executing {total} {options.description} with {worker_count} worker(s)")

        queue: asyncio.Queue = asyncio.Queue()
        for task in tasks:
            queue.put_nowait(task)

        completed = 0
        started = time.monotonic()

        def record_progress():
            nonlocal completed
            completed += 1
            if options.on_progress:
                try:
                    options.on_progress(completed, total)
                except Exception as e:
                    logger.warning(f"Progress callback failed at {completed}/{total}: {e}")

        async def run_one(task: Task):
            if options.task_timeout is not None:
                return await asyncio.wait_for(task.execute(), timeout=options.task_timeout)
            return await task.execute()

        async def worker():
            while True:
                try:
                    task = queue.get_nowait()
                except asyncio.QueueEmpty:
                    return

                if options.cancel_event is not None and options.cancel_event.is_set():
                    outcome.failures.append(TaskFailure(id=task.id, error=CANCELLED_BEFORE_START))
                    record_progress()
                    continue

                try:
                    result = await run_one(task)
                    outcome.successes.append(TaskSuccess(id=task.id, result=result))
                except asyncio.TimeoutError:
                    message = f"Task timed out after {options.task_timeout}s"
                    logger.warning(f"Task {task.id} ({task.name}) failed: {message}")
                    outcome.failures.append(TaskFailure(id=task.id, error=message))
                except Exception as e:
                    logger.warning(f"Task {task.id} ({task.name}) failed: {e}")
                    outcome.failures.append(TaskFailure(id=task.id, error=str(e) or e.__class__.__name__))
                record_progress()

        await asyncio.gather(*(worker() for _ in range(worker_count)))

        outcome.duration = time.monotonic() - started
        logger.info(
            f"Completed {total} {options.description} in {outcome.duration:.2f}s: "
            f"{len(outcome.successes)} succeeded, {len(outcome.failures)} failed"
        )
        return outcome
