"""Spawners for fire-and-forget background work (post-timeout container kills).

A spawner is any object with `spawn(fn, *args)`. The engine never waits on
what it spawns; `InlineSpawner` runs the work synchronously so tests can
assert on it deterministically.
"""
from __future__ import annotations

import atexit
import threading
from concurrent.futures import Future, ThreadPoolExecutor
from typing import Any, Callable, Optional, Protocol

from loguru import logger

from runbox_Server_API.app.core.config import settings as app_settings


class Spawner(Protocol):
    def spawn(self, fn: Callable[..., Any], *args: Any) -> None: ...


class InlineSpawner:
    """Runs spawned work immediately on the calling thread."""

    def __init__(self) -> None:
        self.calls: list[tuple[Callable[..., Any], tuple]] = []

    def spawn(self, fn: Callable[..., Any], *args: Any) -> None:
        self.calls.append((fn, args))
        try:
            fn(*args)
        except Exception as e:
            logger.warning(f"Inline background task {getattr(fn, '__name__', fn)} raised: {e}")


class ThreadSpawner:
    """Runs spawned work on a small thread pool."""

    def __init__(self, max_workers: int = 4, name: str = "sandbox_bg") -> None:
        self._executor = ThreadPoolExecutor(max_workers=max(1, int(max_workers)), thread_name_prefix=name)
        self._name = name

    def spawn(self, fn: Callable[..., Any], *args: Any) -> None:
        future = self._executor.submit(fn, *args)
        future.add_done_callback(self._report)

    def _report(self, future: Future) -> None:
        exc = future.exception()
        if exc is not None:
            logger.warning(f"Background task in '{self._name}' raised: {exc}")

    def shutdown(self, wait: bool = True) -> None:
        try:
            self._executor.shutdown(wait=wait, cancel_futures=False)
        except Exception as exc:  # pragma: no cover
            logger.warning(f"Spawner '{self._name}' shutdown raised: {exc}")


_default_lock = threading.Lock()
_default_spawner: Optional[ThreadSpawner] = None


def get_default_spawner() -> ThreadSpawner:
    """Process-wide spawner, created on first use and drained at exit."""
    global _default_spawner
    with _default_lock:
        if _default_spawner is None:
            try:
                workers = int(getattr(app_settings, "SANDBOX_KILL_WORKERS", 4))
            except (TypeError, ValueError):
                workers = 4
            _default_spawner = ThreadSpawner(max_workers=workers, name="sandbox_kill")
            atexit.register(_default_spawner.shutdown)
        return _default_spawner
