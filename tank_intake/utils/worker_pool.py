"""Worker pool for the LLM extraction fan-out.

A ThreadPoolExecutor wrapper that tracks task statistics and logs failures.
The coordinator submits one LLM extraction per text interaction and joins it
with a bounded timeout; an abandoned task keeps running in its thread and its
result is discarded.
"""

import logging
import threading
from concurrent.futures import Future, ThreadPoolExecutor


class WorkerPool:
    """ThreadPoolExecutor wrapper with exception tracking."""

    def __init__(self, max_workers: int = 2, logger=None, thread_name_prefix: str = "intake-llm"):
        """
        Initialize worker pool.

        Args:
            max_workers: Maximum number of concurrent worker threads
            logger: Optional logger instance
            thread_name_prefix: Prefix for worker thread names
        """
        self.max_workers = max_workers
        self.logger = logger or logging.getLogger(__name__)
        self.thread_name_prefix = thread_name_prefix
        self.executor = None
        self._executor_lock = threading.Lock()
        self._stats_lock = threading.Lock()
        self.stats = {
            "max_workers": max_workers,
            "total_submitted": 0,
            "total_completed": 0,
            "total_successful": 0,
            "total_failed": 0,
            "total_cancelled": 0,
        }

    def submit(self, func, *args, **kwargs) -> Future:
        """
        Submit a single task for execution.

        Args:
            func: Callable to execute
            *args: Positional arguments to func
            **kwargs: Keyword arguments to func

        Returns:
            Future representing the pending execution
        """
        with self._executor_lock:
            if self.executor is None:
                self.executor = ThreadPoolExecutor(
                    max_workers=self.max_workers, thread_name_prefix=self.thread_name_prefix
                )
            executor = self.executor

        with self._stats_lock:
            self.stats["total_submitted"] += 1
        future = executor.submit(func, *args, **kwargs)

        task_name = getattr(func, "__name__", type(func).__name__)

        def _track_completion(f: Future):
            with self._stats_lock:
                if f.cancelled():
                    self.stats["total_cancelled"] += 1
                    return
                self.stats["total_completed"] += 1
                failed = f.exception() is not None
                if failed:
                    self.stats["total_failed"] += 1
                else:
                    self.stats["total_successful"] += 1
            if failed:
                self.logger.debug(f"Task failed: {task_name}: {f.exception()}")

        future.add_done_callback(_track_completion)
        return future

    def shutdown(self, wait: bool = True) -> None:
        """
        Shutdown worker pool.

        Args:
            wait: If True, block until all submitted tasks complete
        """
        with self._executor_lock:
            executor = self.executor
            self.executor = None
        if executor is not None:
            self.logger.debug(f"Shutting down worker pool (wait={wait})...")
            executor.shutdown(wait=wait, cancel_futures=not wait)
            self.logger.debug(
                f"Worker pool shutdown complete. Stats: "
                f"{self.stats['total_successful']} successful, {self.stats['total_failed']} failed"
            )

    def get_stats(self) -> dict:
        """Get worker pool statistics."""
        with self._stats_lock:
            return dict(self.stats)
