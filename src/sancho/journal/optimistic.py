"""Optimistic mutation helper: apply locally, confirm remotely, roll back on failure."""

from __future__ import annotations

from collections.abc import Awaitable, Callable

from loguru import logger


async def optimistic_mutation(
    apply: Callable[[], None],
    remote: Callable[[], Awaitable[object]],
    rollback: Callable[[], None],
    *,
    description: str = "optimistic update",
) -> bool:
    """Run *apply* now, then await *remote*; call *rollback* if it fails.

    Failures are logged and reported through the return value, never
    raised: the rollback itself is the user-visible signal.

    Returns:
        True when the remote call succeeded.
    """
    apply()
    try:
        await remote()
    except Exception as exc:
        logger.warning(f"{description} failed, rolling back: {exc}")
        rollback()
        return False
    return True
