"""
ModBoard - Async Utilities
==========================

Helpers that keep background and concurrent work from failing silently.

Usage:
    from src.utils.async_utils import create_safe_task, gather_with_logging

    create_safe_task(worker(), "Backfill Worker 1")

    results = await gather_with_logging(
        ("Lookup 1234", resolve("1234")),
        ("Lookup 5678", resolve("5678")),
        context="Log Enrichment",
    )
"""

import asyncio
from typing import Any, Coroutine, List, Optional, Tuple

from src.core.logger import logger


async def gather_with_logging(
    *operations: Tuple[str, Coroutine[Any, Any, Any]],
    context: Optional[str] = None,
) -> List[Any]:
    """
    Run operations concurrently and log each failure.

    Returns:
        Results in input order. Failed operations yield their exception
        as the value instead of raising.
    """
    names = [name for name, _ in operations]
    coros = [coro for _, coro in operations]

    results = await asyncio.gather(*coros, return_exceptions=True)

    for name, result in zip(names, results):
        if isinstance(result, Exception):
            error_details = [
                ("Operation", name),
                ("Error Type", type(result).__name__),
                ("Error", str(result)[:100]),
            ]
            if context:
                error_details.insert(0, ("Context", context))
            logger.warning("Async Operation Failed", error_details)

    return results


def create_safe_task(
    coro: Coroutine[Any, Any, Any],
    name: str = "Background Task",
) -> asyncio.Task:
    """
    Create a background task whose exceptions are logged, not lost.

    Cancellation is treated as a normal shutdown.
    """
    async def wrapped():
        try:
            await coro
        except asyncio.CancelledError:
            pass
        except Exception as e:
            logger.error("Background Task Failed", [
                ("Task", name),
                ("Error Type", type(e).__name__),
                ("Error", str(e)[:200]),
            ])

    return asyncio.create_task(wrapped(), name=name)


__all__ = [
    "gather_with_logging",
    "create_safe_task",
]
