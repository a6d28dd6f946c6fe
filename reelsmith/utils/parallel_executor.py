"""Parallel Executor - manages controlled concurrency for independent API calls."""

import asyncio
import time
from typing import Any, Awaitable, Callable, Optional

from reelsmith.core.config import Settings


class ParallelExecutor:
    """Runs independent coroutines with bounded concurrency."""

    def __init__(self, settings: Settings, logger: Any):
        """
        Initialize parallel executor.

        Args:
            settings: Application settings
            logger: Logger instance
        """
        self.settings = settings
        self.logger = logger
        self.max_parallel_downloads = getattr(settings, "max_parallel_downloads", 4)

    async def execute_api_calls(
        self,
        tasks: list[Callable[[], Awaitable[Any]]],
        task_names: Optional[list[str]] = None,
        item_id: Optional[str] = None,
        max_workers: Optional[int] = None,
    ) -> list[tuple[Any, Optional[Exception]]]:
        """
        Execute a batch of API calls concurrently with a concurrency cap.

        Every task runs to completion (or failure) before this returns, so
        callers can rely on all side effects being in place.

        Args:
            tasks: Zero-argument callables returning awaitables
            task_names: Optional list of task names for logging
            item_id: Optional content item ID for logging context
            max_workers: Concurrency cap (defaults to max_parallel_downloads)

        Returns:
            List of tuples: (result, exception) for each task, in input order
        """
        if not tasks:
            return []

        max_workers = max(1, max_workers or self.max_parallel_downloads)
        log_prefix = f"[{item_id}] " if item_id else ""
        semaphore = asyncio.Semaphore(max_workers)
        start_time = time.time()
        completed = 0

        async def run(index: int, task: Callable[[], Awaitable[Any]]) -> tuple[Any, Optional[Exception]]:
            nonlocal completed
            task_name = task_names[index] if task_names and index < len(task_names) else f"api_call_{index + 1}"
            async with semaphore:
                try:
                    result = await task()
                except Exception as e:
                    completed += 1
                    elapsed = time.time() - start_time
                    self.logger.warning(
                        f"{log_prefix}❌ {task_name} failed ({completed}/{len(tasks)}) after {elapsed:.2f}s: {e}"
                    )
                    return None, e
            completed += 1
            elapsed = time.time() - start_time
            self.logger.debug(
                f"{log_prefix}✅ {task_name} completed ({completed}/{len(tasks)}) in {elapsed:.2f}s"
            )
            return result, None

        self.logger.debug(
            f"{log_prefix}Parallel API calls: {len(tasks)} tasks with max {max_workers} workers"
        )
        results = await asyncio.gather(*(run(i, task) for i, task in enumerate(tasks)))

        total_elapsed = time.time() - start_time
        successful = sum(1 for _, error in results if error is None)
        self.logger.debug(
            f"{log_prefix}API batch complete: {successful}/{len(tasks)} successful in {total_elapsed:.2f}s"
        )
        return list(results)
