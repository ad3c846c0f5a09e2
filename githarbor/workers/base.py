"""Worker -- fire-and-forget jobs on the running event loop."""

from __future__ import annotations

import asyncio
from typing import Any, Callable, Optional, Set

from sqlalchemy.ext.asyncio import AsyncSession

from githarbor.core.database import async_session_maker
from githarbor.core.logging_config import get_logger

logger = get_logger(__name__)

# Strong references keep scheduled jobs alive until they finish
_pending: Set[asyncio.Task] = set()


class Worker:
    """Base class of background jobs.

    Subclasses implement ``perform``. ``perform_async`` schedules a job and
    returns immediately; failures are logged, never propagated to the caller.
    """

    def __init__(self, session_factory: Optional[Callable[[], AsyncSession]] = None) -> None:
        self.session_factory = session_factory or async_session_maker

    async def perform(self, *args: Any) -> None:
        raise NotImplementedError

    async def run(self, *args: Any) -> None:
        name = type(self).__name__
        logger.debug(f"{name} started with {args!r}")
        try:
            await self.perform(*args)
        except Exception as e:
            logger.error(f"{name} failed with {args!r}: {e}", exc_info=True)
            return
        logger.debug(f"{name} finished")

    @classmethod
    def perform_async(cls, *args: Any) -> asyncio.Task:
        """Schedule ``perform(*args)`` on the running event loop."""
        task = asyncio.get_running_loop().create_task(cls().run(*args))
        _pending.add(task)
        task.add_done_callback(_pending.discard)
        return task


def pending_jobs() -> Set[asyncio.Task]:
    return set(_pending)


async def wait_for_pending_jobs(timeout: Optional[float] = None) -> None:
    """Wait for every scheduled job, e.g. on shutdown."""
    if not _pending:
        return
    done, not_done = await asyncio.wait(set(_pending), timeout=timeout)
    if not_done:
        logger.warning(f"{len(not_done)} background jobs still running")
