"""
Async helpers for the file-backed services.

The store, voice storage and analytics are plain synchronous code doing
blocking disk I/O. Routers call them through run_sync() so a slow disk
never stalls the event loop.
"""

import asyncio
import logging
import time
from typing import Any, Callable, Optional, TypeVar

from app.core.errors import InternalError

logger = logging.getLogger(__name__)

T = TypeVar("T")

DEFAULT_IO_TIMEOUT = 30.0


async def run_sync(func: Callable[..., T], *args: Any, timeout: Optional[float] = DEFAULT_IO_TIMEOUT) -> T:
    """Run a blocking callable in a worker thread.

    Exceptions raised by ``func`` propagate unchanged. Exceeding ``timeout``
    raises InternalError; the worker thread itself cannot be cancelled and
    finishes in the background. Writes whose outcome the caller reports
    must pass ``timeout=None`` so a late success is never reported as a
    failure.
    """
    name = getattr(func, "__qualname__", None) or getattr(func, "__name__", repr(func))
    start = time.perf_counter()
    if timeout is None:
        result = await asyncio.to_thread(func, *args)
    else:
        try:
            result = await asyncio.wait_for(asyncio.to_thread(func, *args), timeout=timeout)
        except asyncio.TimeoutError:
            elapsed_ms = (time.perf_counter() - start) * 1000
            logger.error("blocking_call_timeout", extra={"operation": name, "elapsed_ms": round(elapsed_ms)})
            raise InternalError(
                detail=f"{name} timed out after {elapsed_ms:.0f}ms (limit {timeout}s)",
                context={"operation": name},
            )
    logger.debug("run_sync %s completed in %.2fms", name, (time.perf_counter() - start) * 1000)
    return result
