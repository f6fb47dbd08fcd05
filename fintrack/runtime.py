"""
Background Event Loop

Streamlit re-runs the page script synchronously on every interaction,
while the backend client, the change channels and the live collections
are async and long-lived. They all live on one event loop that runs in a
daemon thread for the lifetime of the process; the page script hands
coroutines to it and waits for the result.
"""

import asyncio
import threading
from concurrent.futures import Future
from typing import Any, Coroutine, Optional, TypeVar

import structlog


logger = structlog.get_logger(__name__)

T = TypeVar("T")


class BackgroundLoop:
    """An asyncio event loop running forever in a daemon thread."""

    def __init__(self, name: str = "fintrack-loop"):
        self._loop = asyncio.new_event_loop()
        self._thread = threading.Thread(target=self._run, name=name, daemon=True)
        self._thread.start()
        logger.info("background_loop_started", thread=name)

    def _run(self) -> None:
        asyncio.set_event_loop(self._loop)
        self._loop.run_forever()

    @property
    def loop(self) -> asyncio.AbstractEventLoop:
        return self._loop

    def submit(self, coro: Coroutine[Any, Any, T]) -> Future:
        """Schedule a coroutine without waiting for it."""
        return asyncio.run_coroutine_threadsafe(coro, self._loop)

    def run(self, coro: Coroutine[Any, Any, T], timeout: Optional[float] = None) -> T:
        """Run a coroutine on the loop and block until it finishes."""
        return self.submit(coro).result(timeout)

    def stop(self) -> None:
        self._loop.call_soon_threadsafe(self._loop.stop)
        self._thread.join(timeout=5)
        logger.info("background_loop_stopped")


_default_loop: Optional[BackgroundLoop] = None
_default_lock = threading.Lock()


def get_background_loop() -> BackgroundLoop:
    """The process-wide loop, started on first use."""
    global _default_loop
    with _default_lock:
        if _default_loop is None:
            _default_loop = BackgroundLoop()
        return _default_loop


def run_async(coro: Coroutine[Any, Any, T]) -> T:
    """Run an async function from synchronous (Streamlit) code."""
    return get_background_loop().run(coro)
