"""Tests for the background event loop used by the Streamlit pages."""

import asyncio
import threading

from fintrack.runtime import BackgroundLoop, get_background_loop, run_async


async def _thread_name():
    await asyncio.sleep(0)
    return threading.current_thread().name


def test_runs_coroutines_on_its_own_thread():
    loop = BackgroundLoop(name="test-loop")
    try:
        assert loop.run(_thread_name(), timeout=5) == "test-loop"
    finally:
        loop.stop()


def test_run_async_reuses_one_loop():
    assert get_background_loop() is get_background_loop()
    first = run_async(_thread_name())
    second = run_async(_thread_name())
    assert first == second == "fintrack-loop"
