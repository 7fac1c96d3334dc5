"""
In-process queue for bulk movie ingestion.

Batches are appended to a FIFO buffer and drained by a single background
task that hands items one at a time to an ItemProcessor. All state lives in
memory and is lost when the process exits; callers only see aggregate
progress through status().

Coordination relies on the asyncio event loop: enqueue() and the drain
loop's exit check never await between reading and writing the processing
flag, so at most one drain loop can run at a time.
"""

from __future__ import annotations

import asyncio
import logging
from collections import deque
from datetime import datetime, timezone
from typing import Any, Deque, Dict, Optional, Sequence

from pydantic import BaseModel

from ingestion_errors import IngestionError, InvalidBatch

logger = logging.getLogger(__name__)


class QueueItem(BaseModel):
    payload: Any
    received_at: datetime

    @property
    def label(self) -> str:
        if isinstance(self.payload, dict) and self.payload.get("title"):
            return str(self.payload["title"]).strip()
        return "untitled movie"


class IngestionQueue:
    def __init__(self, processor):
        """
        Args:
            processor: object with an async process(item: QueueItem) method.
                Raising from process() marks the item as failed.
        """
        self._processor = processor
        self._pending: Deque[QueueItem] = deque()
        self._processing = False
        self._processed = 0
        self._failed = 0
        self._drain_runs = 0
        self._stopping = False
        self._drain_task: Optional[asyncio.Task] = None

    @property
    def processing(self) -> bool:
        return self._processing

    @property
    def drain_runs(self) -> int:
        """Number of drain loops started since construction."""
        return self._drain_runs

    def enqueue(self, records: Sequence[Any]) -> Dict[str, int]:
        """
        Append raw movie payloads to the queue and start the drain loop if idle.

        Must be called from inside the running event loop. Returns immediately
        with the accepted count and the queue length after the append.

        Raises:
            InvalidBatch: records is not a non-empty list.
        """
        if not isinstance(records, (list, tuple)):
            raise InvalidBatch("movies must be an array of movie records")
        if not records:
            raise InvalidBatch("movies array must not be empty")

        received_at = datetime.now(timezone.utc)
        for payload in records:
            self._pending.append(QueueItem(payload=payload, received_at=received_at))

        accepted = len(records)
        queue_length = len(self._pending)
        logger.info(f"Accepted {accepted} movie(s) for ingestion, queue length is now {queue_length}")

        if not self._processing and not self._stopping:
            self._start_drain()

        return {"accepted": accepted, "queueLength": queue_length}

    def status(self) -> Dict[str, Any]:
        """Read-only snapshot of the queue."""
        return {
            "queueLength": len(self._pending),
            "processing": self._processing,
            "stats": {
                "processed": self._processed,
                "failed": self._failed,
            },
        }

    async def join(self) -> None:
        """Wait until the queue is idle (no drain loop running)."""
        while self._drain_task is not None and not self._drain_task.done():
            await asyncio.wait({self._drain_task})

    async def shutdown(self, grace_seconds: float) -> None:
        """
        Give an active drain loop up to grace_seconds to finish. After that the
        loop stops taking new items once the current one completes, and
        whatever is still pending is reported and dropped (nothing is persisted).
        """
        task = self._drain_task
        if task is not None and not task.done():
            logger.info(f"Waiting up to {grace_seconds}s for {len(self._pending)} queued movie(s) to finish")
            done, _ = await asyncio.wait({task}, timeout=grace_seconds)
            if not done:
                # Stop popping new items; the one in flight still runs to completion
                self._stopping = True
                logger.warning("Grace period over, waiting for the movie currently being ingested")
                await asyncio.wait({task})
        self._stopping = True

        if self._pending:
            logger.warning(
                f"Shutting down with {len(self._pending)} movie(s) still queued; "
                "they will not be ingested (the ingestion queue is in-memory only)"
            )

    def _start_drain(self) -> None:
        self._processing = True
        self._drain_runs += 1
        loop = asyncio.get_running_loop()
        self._drain_task = loop.create_task(self._drain(), name=f"movie-ingestion-drain-{self._drain_runs}")
        self._drain_task.add_done_callback(self._on_drain_done)

    async def _drain(self) -> None:
        logger.info(f"Ingestion drain loop started with {len(self._pending)} queued movie(s)")
        try:
            while self._pending and not self._stopping:
                item = self._pending.popleft()
                try:
                    await self._processor.process(item)
                except IngestionError as e:
                    self._failed += 1
                    logger.warning(f"Failed to ingest movie: {e}")
                except Exception as e:
                    self._failed += 1
                    logger.error(f"Unexpected error ingesting '{item.label}': {e}", exc_info=True)
                else:
                    self._processed += 1
        finally:
            self._processing = False
        logger.info(
            f"Ingestion drain loop finished (processed={self._processed}, failed={self._failed})"
        )

    def _on_drain_done(self, task: asyncio.Task) -> None:
        if task.cancelled():
            logger.warning(f"Ingestion drain loop was cancelled with {len(self._pending)} movie(s) still queued")
            return
        exc = task.exception()
        if exc is not None:
            logger.error(f"Ingestion drain loop crashed: {exc}", exc_info=exc)
