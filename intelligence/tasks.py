"""
Background enrichment tasks.

Dossier extraction, red-flag detection and scoring run off the request
path. The queue is bounded: when it is full, new work is dropped with a
warning instead of blocking the conversation.
"""

import logging
from abc import ABC, abstractmethod
import threading
from concurrent.futures import Future, ThreadPoolExecutor, wait
from functools import lru_cache
from typing import Callable, Optional

from config import get_settings

logger = logging.getLogger(__name__)


class TaskRunner(ABC):
    """Interface shared by the queue and the inline runner."""

    @abstractmethod
    def submit(self, name: str, fn: Callable, *args) -> bool:
        """Run or queue fn(*args); False if the task was dropped."""

    def join(self, timeout: Optional[float] = None) -> None:
        """Wait for submitted work to finish."""

    def shutdown(self) -> None:
        """Stop accepting work and release resources."""


def _run_task(name: str, fn: Callable, args: tuple) -> None:
    try:
        fn(*args)
    except Exception:
        logger.exception("Background task %s failed", name)


class EnrichmentQueue(TaskRunner):
    """
    Bounded thread pool for enrichment work.

    Args:
        workers: Number of worker threads
        max_pending: Maximum queued plus running tasks
    """

    def __init__(self, workers: int = 4, max_pending: int = 100):
        self._executor = ThreadPoolExecutor(
            max_workers=workers, thread_name_prefix="enrichment"
        )
        self._slots = threading.BoundedSemaphore(max_pending)
        self._futures: set[Future] = set()
        self._lock = threading.Lock()
        self._closed = False

    def submit(self, name: str, fn: Callable, *args) -> bool:
        """
        Queue a task.

        Returns:
            True if queued, False if dropped because the queue is full or closed
        """
        if self._closed:
            logger.warning("Enrichment queue closed, dropping task %s", name)
            return False
        if not self._slots.acquire(blocking=False):
            logger.warning("Enrichment queue full, dropping task %s", name)
            return False

        try:
            future = self._executor.submit(self._run, name, fn, args)
        except RuntimeError:
            # Shut down between the closed check and submit
            self._slots.release()
            logger.warning("Enrichment queue closed, dropping task %s", name)
            return False
        with self._lock:
            self._futures.add(future)
        future.add_done_callback(self._forget)
        return True

    def _run(self, name: str, fn: Callable, args: tuple) -> None:
        # Free the slot before the future resolves so join() sees it released
        try:
            _run_task(name, fn, args)
        finally:
            self._slots.release()

    def _forget(self, future: Future) -> None:
        with self._lock:
            self._futures.discard(future)

    def join(self, timeout: Optional[float] = None) -> None:
        with self._lock:
            pending = set(self._futures)
        wait(pending, timeout=timeout)

    def shutdown(self) -> None:
        self._closed = True
        self._executor.shutdown(wait=True)


class InlineTaskRunner(TaskRunner):
    """Runs tasks immediately on the caller's thread, with the same error isolation."""

    def submit(self, name: str, fn: Callable, *args) -> bool:
        _run_task(name, fn, args)
        return True


@lru_cache
def get_task_queue() -> TaskRunner:
    """Get the process-wide task runner."""
    settings = get_settings()
    if settings.enrichment_workers <= 0:
        return InlineTaskRunner()
    return EnrichmentQueue(
        workers=settings.enrichment_workers,
        max_pending=settings.enrichment_queue_size,
    )
