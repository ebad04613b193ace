"""Utilities to execute coroutines on the main asyncio loop from sync contexts."""

from __future__ import annotations

import asyncio
import threading
from typing import Awaitable, Optional, TypeVar


_loop: Optional[asyncio.AbstractEventLoop] = None
_thread: Optional[threading.Thread] = None
T = TypeVar("T")


def set_main_loop(loop: asyncio.AbstractEventLoop) -> None:
    global _loop
    _loop = loop


def start_background_loop() -> asyncio.AbstractEventLoop:
    """Run a dedicated event loop in a daemon thread and make it the main loop.

    Flask request threads hand their coroutines to this loop, so every
    aiosqlite connection in the pool lives on a single loop.
    """
    global _thread
    if _loop is not None and _loop.is_running():
        return _loop

    loop = asyncio.new_event_loop()
    started = threading.Event()

    def _run() -> None:
        asyncio.set_event_loop(loop)
        loop.call_soon(started.set)
        loop.run_forever()

    _thread = threading.Thread(target=_run, name="async-runner", daemon=True)
    _thread.start()
    started.wait()
    set_main_loop(loop)
    return loop


def run_coroutine_sync(coro: Awaitable[T], timeout: Optional[float] = None) -> T:
    if _loop is None:
        raise RuntimeError("Asyncio loop is not initialized")
    future = asyncio.run_coroutine_threadsafe(coro, _loop)
    return future.result(timeout)

