"""
Validation and storage of a single queued movie.
"""

import logging
from typing import Any, Dict

from fastapi.concurrency import run_in_threadpool

from config import INGEST_MAX_DURATION_MINUTES
from ingestion_errors import IngestionError, StorageError
from ingestion_queue import QueueItem
from movie_record import MovieRecord, normalize_movie_payload

logger = logging.getLogger(__name__)


class ItemProcessor:
    """
    Validates a queued payload and upserts it into the store.

    Holds no queue state. The store's blocking upsert runs in the threadpool
    so the event loop stays responsive while an item is written.
    """

    def __init__(self, store, max_duration: int = INGEST_MAX_DURATION_MINUTES):
        self.store = store
        self.max_duration = max_duration

    def validate(self, payload: Any) -> MovieRecord:
        return normalize_movie_payload(payload, self.max_duration)

    async def process(self, item: QueueItem) -> Dict[str, Any]:
        record = self.validate(item.payload)
        try:
            stored = await run_in_threadpool(self.store.upsert, record.natural_key, record.to_storage())
        except IngestionError:
            raise
        except Exception as e:
            raise StorageError(f"could not store movie: {e}", record.title) from e
        logger.debug(f"Ingested '{record.title}' ({record.release_date})")
        return stored
