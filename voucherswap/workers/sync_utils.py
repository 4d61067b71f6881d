"""Sync bridge for Celery workers.

Celery tasks run in sync context; the engine is async. Each worker thread
keeps one event loop and reuses it for every task.
"""

from __future__ import annotations

import asyncio
import logging
import threading
from collections.abc import Coroutine
from typing import Any, TypeVar

logger = logging.getLogger(__name__)

T = TypeVar("T")

_loop_holder = threading.local()


def _get_or_create_loop() -> asyncio.AbstractEventLoop:
    loop = getattr(_loop_holder, "loop", None)
    if loop is None or loop.is_closed():
        loop = asyncio.new_event_loop()
        _loop_holder.loop = loop
        logger.debug("[SYNC_UTILS] Created event loop for thread %s", threading.current_thread().name)
    return loop


def run_sync(coro: Coroutine[Any, Any, T]) -> T:
    """Run ``coro`` to completion on this thread's loop.

    The loop stays open after errors so the next task can reuse it.
    """
    return _get_or_create_loop().run_until_complete(coro)


def cleanup_loop() -> None:
    """Cancel leftover tasks and close this thread's loop (worker shutdown)."""
    loop = getattr(_loop_holder, "loop", None)
    if loop is None or loop.is_closed():
        return
    try:
        pending = asyncio.all_tasks(loop)
        for task in pending:
            task.cancel()
        if pending:
            loop.run_until_complete(asyncio.gather(*pending, return_exceptions=True))
        loop.close()
        logger.debug("[SYNC_UTILS] Closed event loop for thread %s", threading.current_thread().name)
    except RuntimeError as e:
        logger.warning("[SYNC_UTILS] Error cleaning up loop: %s", e)
    finally:
        _loop_holder.loop = None
