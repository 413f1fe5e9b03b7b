"""Notification dispatcher: bounded queue + worker tasks.

Request handlers call deliver(), which only enqueues and returns, so a slow
or failing mail transport never delays or fails an auth flow. Workers
started from the FastAPI lifespan drain the queue. On shutdown, stop()
lets queued and in-flight sends finish (up to a timeout) before cancelling.

Delivery is attempted at least once, not guaranteed: failures are logged
and counted in ``stats``, never reported to the original caller.

Lifecycle:
- start() creates the worker tasks.
- stop() drains, then cancels the workers.
- deliver() enqueues a message (non-blocking).
"""

import asyncio
import contextlib
import itertools
from collections.abc import Mapping
from dataclasses import dataclass

import structlog

from passage.core.logging import mask_email
from passage.notifications.messages import (
    PRIORITY_RANK,
    Channel,
    OutboundMessage,
)
from passage.notifications.senders import NotificationSender

logger = structlog.get_logger()

DEFAULT_QUEUE_SIZE = 1000
DEFAULT_DRAIN_TIMEOUT_SECONDS = 10.0


@dataclass
class DispatcherStats:
    """Delivery counters.

    Attributes:
        enqueued: Messages accepted by deliver().
        sent: Messages a sender accepted.
        failed: Messages whose sender raised.
        dropped: Messages rejected because the queue was full, the channel
            had no sender, or shutdown abandoned them.
    """

    enqueued: int = 0
    sent: int = 0
    failed: int = 0
    dropped: int = 0


class NotificationDispatcher:
    """Fire-and-forget delivery through supervised worker tasks.

    Args:
        senders: Sender per channel.
        max_queue_size: Queue bound; deliver() drops beyond it.
        workers: Number of concurrent worker tasks.
    """

    def __init__(
        self,
        senders: Mapping[Channel, NotificationSender],
        *,
        max_queue_size: int = DEFAULT_QUEUE_SIZE,
        workers: int = 1,
    ) -> None:
        self._senders = dict(senders)
        self._queue: asyncio.PriorityQueue[tuple[int, int, OutboundMessage]] = (
            asyncio.PriorityQueue(maxsize=max_queue_size)
        )
        self._worker_count = max(workers, 1)
        self._tasks: list[asyncio.Task[None]] = []
        # Tie-breaker so equal priorities keep FIFO order
        self._sequence = itertools.count()
        self.stats = DispatcherStats()

    @property
    def is_running(self) -> bool:
        """Whether worker tasks are active."""
        return any(not task.done() for task in self._tasks)

    @property
    def pending(self) -> int:
        """Messages waiting in the queue."""
        return self._queue.qsize()

    def deliver(self, message: OutboundMessage) -> None:
        """Hand a message to the workers. Never blocks, never raises."""
        if message.channel not in self._senders:
            self.stats.dropped += 1
            logger.error("No sender for notification channel", channel=message.channel)
            return
        try:
            self._queue.put_nowait(
                (PRIORITY_RANK[message.priority], next(self._sequence), message)
            )
        except asyncio.QueueFull:
            self.stats.dropped += 1
            logger.error(
                "Notification queue full; message dropped",
                channel=message.channel,
                to=mask_email(message.recipient),
            )
            return
        self.stats.enqueued += 1

    async def start(self) -> None:
        """Start the worker tasks. No-op if already running."""
        if self.is_running:
            logger.warning("Notification dispatcher already running")
            return
        self._tasks = [
            asyncio.create_task(self._run_worker(), name=f"notification-worker-{i}")
            for i in range(self._worker_count)
        ]
        logger.info("Notification dispatcher started", workers=self._worker_count)

    async def flush(self, *, timeout: float = DEFAULT_DRAIN_TIMEOUT_SECONDS) -> bool:
        """Wait until every queued message has been handled.

        Args:
            timeout: Seconds to wait.

        Returns:
            True if the queue drained, False on timeout.
        """
        try:
            await asyncio.wait_for(self._queue.join(), timeout=timeout)
        except TimeoutError:
            return False
        return True

    async def stop(self, *, drain_timeout: float = DEFAULT_DRAIN_TIMEOUT_SECONDS) -> None:
        """Drain the queue, then stop the workers.

        Args:
            drain_timeout: Seconds to wait for queued sends to finish.
        """
        if not self._tasks:
            return

        if not await self.flush(timeout=drain_timeout):
            abandoned = self._queue.qsize()
            self.stats.dropped += abandoned
            logger.warning(
                "Notification drain timed out",
                abandoned=abandoned,
                timeout_seconds=drain_timeout,
            )

        for task in self._tasks:
            task.cancel()
        for task in self._tasks:
            with contextlib.suppress(asyncio.CancelledError):
                await task
        self._tasks = []
        logger.info(
            "Notification dispatcher stopped",
            sent=self.stats.sent,
            failed=self.stats.failed,
            dropped=self.stats.dropped,
        )

    async def _run_worker(self) -> None:
        """Worker loop: take the next message, send it, repeat."""
        while True:
            _, _, message = await self._queue.get()
            try:
                await self._send(message)
            finally:
                self._queue.task_done()

    async def _send(self, message: OutboundMessage) -> None:
        sender = self._senders[message.channel]
        try:
            await sender.send(message)
        except Exception:  # noqa: BLE001
            self.stats.failed += 1
            logger.exception(
                "Notification delivery failed",
                channel=message.channel,
                to=mask_email(message.recipient),
                subject=message.subject,
            )
            return
        self.stats.sent += 1
