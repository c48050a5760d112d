"""Running retry sessions from synchronous code.

run_sync() picks the right strategy for the calling context:
    1. No running loop -> asyncio.run()
    2. Inside a running loop (Jupyter, a web handler calling blocking code)
       -> a one-off worker thread with its own event loop, so the caller's
       loop is never re-entered
"""

from __future__ import annotations

import asyncio
from collections.abc import Coroutine
from concurrent.futures import ThreadPoolExecutor
from typing import TypeVar

T = TypeVar("T")


def run_sync(coro: Coroutine[object, object, T]) -> T:
    """Run a coroutine to completion from synchronous code.

    Blocks the calling thread, including a thread that is running an event
    loop; that loop makes no progress until the coroutine finishes.

    Example:
        >>> result = run_sync(retry(fetch_profile, max_attempts=5))
    """
    try:
        asyncio.get_running_loop()
    except RuntimeError:
        return asyncio.run(coro)
    with ThreadPoolExecutor(max_workers=1, thread_name_prefix="retrycase-run-sync") as pool:
        return pool.submit(asyncio.run, coro).result()
