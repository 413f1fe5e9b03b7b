"""Retention cleanup background worker.

asyncio background task started from the FastAPI lifespan. Runs
run_all_cleanups on a configurable interval (~15 min).
"""

import asyncio
import contextlib
import logging
from datetime import datetime

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from passage.services.retention_cleanup import AllCleanupResult, run_all_cleanups

logger = logging.getLogger(__name__)

# Default interval: 15 minutes
DEFAULT_INTERVAL_SECONDS = 15 * 60


class CleanupWorker:
    """Background worker that periodically deletes expired auth rows.

    Lifecycle:
    - start() creates an asyncio task that runs the cleanup loop.
    - stop() cancels the task and waits for graceful shutdown.
    - run_once() executes a single pass (for testing).

    Args:
        session_factory: Async session factory for DB access.
        interval_seconds: Seconds between cleanup passes.
    """

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        *,
        interval_seconds: int = DEFAULT_INTERVAL_SECONDS,
    ) -> None:
        self._session_factory = session_factory
        self._interval_seconds = interval_seconds
        self._task: asyncio.Task[None] | None = None
        self._last_run_at: datetime | None = None
        self._running = False

    @property
    def is_running(self) -> bool:
        """Whether the background task is currently active."""
        return self._running and self._task is not None and not self._task.done()

    @property
    def last_run_at(self) -> datetime | None:
        """Timestamp of the most recent completed pass."""
        return self._last_run_at

    def start(self) -> None:
        """Start the background cleanup loop.

        Creates an asyncio task. No-op if already running.
        Must be called from an async context (running event loop).
        """
        if self.is_running:
            logger.warning("Cleanup worker already running")
            return

        self._running = True
        self._task = asyncio.create_task(self._run_loop())
        logger.info("Cleanup worker started (interval=%ds)", self._interval_seconds)

    async def stop(self) -> None:
        """Stop the background cleanup loop.

        Cancels the task and waits for it to finish.
        """
        self._running = False
        if self._task is not None and not self._task.done():
            self._task.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await self._task
        self._task = None
        logger.info("Cleanup worker stopped")

    async def run_once(self) -> AllCleanupResult:
        """Execute a single cleanup pass.

        Returns:
            AllCleanupResult with deletion counts from the pass.
        """
        async with self._session_factory() as db:
            result = await run_all_cleanups(db)
        self._last_run_at = result.finished_at
        return result

    async def _run_loop(self) -> None:
        """Background loop: run_all_cleanups → sleep → repeat."""
        try:
            while self._running:
                try:
                    result = await self.run_once()
                    logger.info(
                        "Cleanup pass: %d oauth states, %d sessions, %d action tokens",
                        result.expired_oauth_states,
                        result.expired_sessions,
                        result.stale_action_tokens,
                    )
                except Exception:  # noqa: BLE001
                    logger.exception("Error in cleanup pass")
                await asyncio.sleep(self._interval_seconds)
        except asyncio.CancelledError:
            logger.debug("Cleanup loop cancelled")
            raise
