"""Executor carrying webhook deliveries off the scan thread."""

from __future__ import annotations

from concurrent.futures import Executor, Future, ThreadPoolExecutor
from threading import Lock
from typing import Any, Callable


class DeliveryPool(Executor):
    """Lazily start one worker pool, sized by ``notify_workers``.

    Commands that never find new jobs never spawn threads. After
    ``shutdown`` the pool refuses new work with ``RuntimeError``, the same
    as a plain ``ThreadPoolExecutor``.
    """

    def __init__(self, workers: int = 4) -> None:
        self.workers = workers
        self._executor: ThreadPoolExecutor | None = None
        self._closed = False
        self._lock = Lock()

    @property
    def started(self) -> bool:
        return self._executor is not None

    def submit(self, fn: Callable[..., Any], /, *args: Any, **kwargs: Any) -> Future:
        with self._lock:
            if self._closed:
                raise RuntimeError("cannot schedule new deliveries after shutdown")
            if self._executor is None:
                self._executor = ThreadPoolExecutor(
                    max_workers=self.workers, thread_name_prefix="sentinel-notify"
                )
            return self._executor.submit(fn, *args, **kwargs)

    def shutdown(self, wait: bool = True, *, cancel_futures: bool = False) -> None:
        with self._lock:
            self._closed = True
            executor, self._executor = self._executor, None
        if executor is not None:
            executor.shutdown(wait=wait, cancel_futures=cancel_futures)


__all__ = ["DeliveryPool"]
