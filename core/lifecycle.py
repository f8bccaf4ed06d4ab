"""Shared asyncio loop on a background thread plus task ownership helpers."""

from __future__ import annotations

import asyncio
import logging
import threading
from collections.abc import Coroutine
from concurrent.futures import CancelledError as FutureCancelledError
from concurrent.futures import TimeoutError
from typing import Any, TypeVar

L = logging.getLogger("scan_runtime.runtime")

T = TypeVar("T")


class LoopRunner:
    """Owns the service event loop; every session, sensor and HTTP call runs on it."""

    def __init__(self, *, logger: logging.Logger | None = None):
        self._logger = logger or L
        self._loop: asyncio.AbstractEventLoop | None = None
        self._thread: threading.Thread | None = None
        self._loop_thread_ident: int | None = None
        self._stopped = False
        self._lock = threading.Lock()

    def in_loop_thread(self) -> bool:
        return (
            self._loop_thread_ident is not None
            and threading.get_ident() == self._loop_thread_ident
        )

    def _ensure_loop(self) -> asyncio.AbstractEventLoop:
        with self._lock:
            if self._stopped:
                raise RuntimeError("Async loop already stopped")
            if self._loop and self._thread and self._thread.is_alive():
                return self._loop
            loop = asyncio.new_event_loop()
            ready = threading.Event()

            def _runner():
                asyncio.set_event_loop(loop)
                self._loop_thread_ident = threading.get_ident()
                ready.set()
                loop.run_forever()

            self._loop = loop
            self._thread = threading.Thread(
                target=_runner, name="scan-runtime-loop", daemon=True
            )
            self._thread.start()
            ready.wait(timeout=0.5)
            return loop

    def run_async(self, coro: Coroutine[Any, Any, T], timeout: float | None = 0.5) -> T:
        """Run `coro` on the loop from another thread and wait for its result."""
        loop = self._ensure_loop()
        if self.in_loop_thread():
            raise RuntimeError(
                "run_async must not be called from the loop thread; await directly"
            )
        fut = asyncio.run_coroutine_threadsafe(coro, loop)
        try:
            return fut.result(timeout=timeout)
        except TimeoutError:
            fut.cancel()
            self._logger.warning("run_async timeout after %.2fs", timeout or 0)
            raise

    def spawn(self, coro: Coroutine[Any, Any, Any], *, name: str | None = None):
        """Schedule `coro` without waiting; returns a Task or a concurrent Future."""
        loop = self._ensure_loop()
        if self.in_loop_thread():
            return loop.create_task(coro, name=name)
        return asyncio.run_coroutine_threadsafe(coro, loop)

    def shutdown_loop(self, timeout: float = 1.0):
        if self.in_loop_thread():
            raise RuntimeError("shutdown_loop must not be called from the loop thread")
        with self._lock:
            self._stopped = True
            loop = self._loop
            thread = self._thread
        if loop is None or thread is None or loop.is_closed():
            return

        async def _cancel_pending():
            current = asyncio.current_task()
            tasks = [t for t in asyncio.all_tasks() if t is not current and not t.done()]
            self._logger.debug(
                "shutdown_loop pending_tasks=%d names=%s",
                len(tasks),
                ", ".join(t.get_name() for t in tasks[:10]),
            )
            for t in tasks:
                t.cancel()
            if tasks:
                await asyncio.gather(*tasks, return_exceptions=True)
            await loop.shutdown_asyncgens()

        fut = asyncio.run_coroutine_threadsafe(_cancel_pending(), loop)
        try:
            fut.result(timeout=timeout)
        except TimeoutError:
            fut.cancel()
            raise
        finally:
            loop.call_soon_threadsafe(loop.stop)
            thread.join(timeout=timeout)
            if thread.is_alive():
                self._logger.warning(
                    "shutdown_loop thread did not exit within %.2fs; loop not closed",
                    timeout,
                )
            else:
                loop.close()
                self._loop = None
                self._thread = None
                self._loop_thread_ident = None


class AsyncTaskOwner:
    """Tracks the background tasks of one component so they can be checked and cancelled."""

    def __init__(self, *, loop_runner: LoopRunner | None = None, owner_name: str = "task"):
        self._loop_runner = loop_runner
        self._owner_name = owner_name
        self._tasks: list[Any] = []
        self._seq = 0

    def spawn(self, coro: Coroutine[Any, Any, Any]):
        self._seq += 1
        name = f"{self._owner_name}.{self._seq}"
        if self._loop_runner is not None:
            task = self._loop_runner.spawn(coro, name=name)
        else:
            task = asyncio.get_running_loop().create_task(coro, name=name)
        return self.register(task)

    def register(self, task: Any):
        if task is None:
            return None
        self._tasks = [t for t in self._tasks if not _done_ok(t)]
        self._tasks.append(task)
        return task

    def cancel_and_clear(self):
        for task in self._tasks:
            task.cancel()
        self._tasks.clear()

    def raise_if_failed(self):
        for task in self._tasks:
            if not task.done():
                continue
            try:
                err = task.exception()
            except (asyncio.CancelledError, FutureCancelledError):
                continue
            if err is not None:
                raise RuntimeError(
                    f"{self._owner_name} task stopped unexpectedly ({type(err).__name__})"
                ) from err


def _done_ok(task: Any) -> bool:
    if not task.done():
        return False
    if task.cancelled():
        return True
    return task.exception() is None


__all__ = ["AsyncTaskOwner", "LoopRunner"]
