from __future__ import annotations

import logging
import random
import threading
import time
from collections import OrderedDict
from concurrent.futures import Future, ThreadPoolExecutor
from concurrent.futures import TimeoutError as FutureTimeoutError
from pathlib import Path
from typing import Any, Callable

from tablepdf.errors import RenderError, ResourceError

logger = logging.getLogger(__name__)

RECYCLE_PROBABILITY = 0.05
START_POLL_SECONDS = 0.05


class _Worker:
    """One owner thread and the handle that lives on it."""

    def __init__(self, generation: int) -> None:
        self.generation = generation
        self.executor = ThreadPoolExecutor(max_workers=1, thread_name_prefix=f'tablepdf-browser-{generation}')
        self.handle: Any = None
        self.retired = False


class BrowserResourceManager:
    """Owns the one shared browser handle and the rendered-PDF cache.

    All handle work runs on a single worker thread: Playwright's sync API is
    bound to the thread that started it, and a single owner also means two
    callers can never launch two handles. The handle is dropped when it
    reports ``disconnected`` and, after a successful render, recycled with
    probability ``recycle_probability``.

    A render that overruns ``render_timeout_seconds`` (counted from when it
    starts, not from when it was queued) retires its worker. Later renders go
    to a fresh worker and handle; the retired worker closes its own handle
    once the stuck call returns.
    """

    def __init__(
        self,
        launcher: Callable[[], Any],
        *,
        cache_capacity: int = 20,
        recycle_probability: float = RECYCLE_PROBABILITY,
        render_timeout_seconds: float = 30.0,
        random_source: Callable[[], float] = random.random,
        backend_name: str = 'browser',
    ) -> None:
        self._launcher = launcher
        self.cache_capacity = max(int(cache_capacity), 1)
        self.recycle_probability = recycle_probability
        self.render_timeout_seconds = render_timeout_seconds
        self._random = random_source
        self._backend_name = backend_name
        self._lock = threading.RLock()
        self._cache: OrderedDict[str, bytes] = OrderedDict()
        self._worker = _Worker(generation=1)
        self._closed = False
        self.launch_count = 0
        self.render_count = 0
        self.retired_count = 0

    # Cache

    def cache_get(self, key: str) -> bytes | None:
        with self._lock:
            return self._cache.get(key)

    def cache_put(self, key: str, data: bytes) -> None:
        with self._lock:
            if key in self._cache:
                return
            self._cache[key] = data
            while len(self._cache) > self.cache_capacity:
                evicted, _ = self._cache.popitem(last=False)
                logger.debug('Evicted cached PDF %s', evicted[:12])

    def cached_keys(self) -> list[str]:
        with self._lock:
            return list(self._cache.keys())

    # Handle lifecycle (worker thread only)

    @property
    def has_handle(self) -> bool:
        with self._lock:
            return self._worker.handle is not None

    def _acquire(self, worker: _Worker) -> Any:
        with self._lock:
            handle = worker.handle
        if handle is not None:
            if handle.is_connected():
                return handle
            logger.warning('Stored browser handle is no longer connected; replacing it')
            with self._lock:
                if worker.handle is handle:
                    worker.handle = None

        # Launching can take seconds; cache readers must not wait on it.
        handle = self._launcher()
        handle.on('disconnected', lambda *_: self._forget(worker, handle))
        with self._lock:
            worker.handle = handle
            self.launch_count += 1
            count = self.launch_count
        logger.info('Launched browser handle #%s', count)
        return handle

    def _forget(self, worker: _Worker, handle: Any) -> None:
        with self._lock:
            if worker.handle is handle:
                worker.handle = None
                logger.warning('Browser handle disconnected; a new one will be launched on demand')

    def _close_handle(self, handle: Any) -> None:
        try:
            handle.close()
        except Exception as exc:
            logger.warning('Failed to close browser handle: %s', exc)

    def _release(self, worker: _Worker) -> None:
        with self._lock:
            handle, worker.handle = worker.handle, None
        if handle is not None:
            self._close_handle(handle)

    def _maybe_recycle(self, worker: _Worker) -> None:
        if self._random() >= self.recycle_probability:
            return
        logger.info('Recycling browser handle')
        self._release(worker)

    def _run_task(
        self,
        worker: _Worker,
        started: threading.Event,
        key: str,
        output_path: Path,
        render_fn: Callable[[Any, Path], None],
    ) -> bytes | None:
        # Queued before its worker was retired; the caller resubmits.
        if worker.retired:
            return None
        started.set()
        cached = self.cache_get(key)
        if cached is not None:
            output_path.write_bytes(cached)
            return cached
        handle = self._acquire(worker)
        render_fn(handle, output_path)
        data = output_path.read_bytes()
        if worker.retired:
            return data
        self.cache_put(key, data)
        with self._lock:
            self.render_count += 1
        self._maybe_recycle(worker)
        return data

    # Worker retirement

    def _retire(self, worker: _Worker) -> None:
        with self._lock:
            if worker.retired:
                return
            worker.retired = True
            self.retired_count += 1
            if self._closed:
                # close() has already queued the release on this worker.
                return
            if self._worker is worker:
                self._worker = _Worker(generation=worker.generation + 1)
        logger.warning('Retiring browser worker %s after a render timeout', worker.generation)
        # Runs after the stuck call returns, on the thread that owns the handle.
        worker.executor.submit(self._release, worker)
        worker.executor.shutdown(wait=False)

    def _log_abandoned(self, future: Future) -> None:
        if future.cancelled():
            return
        exc = future.exception()
        if exc is not None:
            logger.warning('Abandoned browser render finished with %s: %s', type(exc).__name__, exc)

    def _submit(
        self,
        key: str,
        output_path: Path,
        render_fn: Callable[[Any, Path], None],
    ) -> tuple[_Worker, threading.Event, Future]:
        while True:
            with self._lock:
                if self._closed:
                    raise ResourceError('browser resource manager is closed', backend=self._backend_name)
                worker = self._worker
            started = threading.Event()
            try:
                future = worker.executor.submit(self._run_task, worker, started, key, output_path, render_fn)
            except RuntimeError as exc:
                # The worker was retired (or closed) between the lookup and the submit.
                if worker.retired:
                    continue
                raise ResourceError('browser resource manager is closed', backend=self._backend_name) from exc
            return worker, started, future

    def _await_start(self, worker: _Worker, started: threading.Event, future: Future, deadline: float) -> bool:
        """Wait for the task to begin; False means it must be resubmitted."""
        while not started.wait(START_POLL_SECONDS):
            if future.done() and not started.is_set():
                return False
            if worker.retired and future.cancel():
                return False
            if time.monotonic() >= deadline and future.cancel():
                raise RenderError('browser worker stayed busy; render was not started', backend=self._backend_name)
        return True

    def render(self, key: str, output_path: Path, render_fn: Callable[[Any, Path], None]) -> bytes:
        """Return cached bytes for ``key`` or run ``render_fn(handle, output_path)``.

        Either way the PDF ends up at ``output_path``.
        """
        cached = self.cache_get(key)
        if cached is not None:
            logger.info('Browser cache hit for %s', key[:12])
            output_path.write_bytes(cached)
            return cached

        # Anything ahead of us is itself bounded by the render timeout.
        deadline = time.monotonic() + 2 * self.render_timeout_seconds
        while True:
            worker, started, future = self._submit(key, output_path, render_fn)
            if self._await_start(worker, started, future, deadline):
                break

        try:
            return future.result(timeout=self.render_timeout_seconds)
        except FutureTimeoutError as exc:
            future.add_done_callback(self._log_abandoned)
            self._retire(worker)
            raise RenderError(
                f'browser render timed out after {self.render_timeout_seconds:g}s',
                backend=self._backend_name,
            ) from exc

    def close(self) -> None:
        with self._lock:
            if self._closed:
                return
            self._closed = True
            worker = self._worker
        future = worker.executor.submit(self._release, worker)
        try:
            future.result(timeout=10)
        except FutureTimeoutError:
            logger.warning('Timed out closing browser handle')
        worker.executor.shutdown(wait=False)
        logger.info('Browser resource manager closed')
