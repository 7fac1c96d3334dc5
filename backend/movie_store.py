"""
SQLAlchemy-backed storage for movies, keyed by (title, release_date).
"""

from datetime import date
from typing import Any, Callable, Dict, Optional, Tuple
import logging

from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from ingestion_errors import StorageError
from models import Movie
from utils import serialize_movie

logger = logging.getLogger(__name__)

MovieKey = Tuple[str, date]


class MovieStore:
    """
    Storage collaborator used by the ingestion core.

    Each call opens its own session from session_factory, so the store can be
    used from a worker thread while request handlers use their own sessions.
    """

    def __init__(self, session_factory: Callable[[], Session]):
        self._session_factory = session_factory

    def find_by_key(self, key: MovieKey) -> Optional[Dict[str, Any]]:
        title, release_date = key
        db = self._session_factory()
        try:
            movie = db.query(Movie).filter(
                Movie.title == title,
                Movie.release_date == release_date
            ).first()
            return serialize_movie(movie) if movie else None
        except SQLAlchemyError as e:
            raise StorageError(f"lookup failed: {e}", title)
        finally:
            db.close()

    def upsert(self, key: MovieKey, record: Dict[str, Any]) -> Dict[str, Any]:
        """
        Insert the record, or update the existing movie with the same key.
        Returns the stored movie. Raises StorageError on any database failure.
        """
        title, release_date = key
        db = self._session_factory()
        try:
            try:
                movie = self._write(db, key, record)
            except IntegrityError:
                # A concurrent writer inserted the same key between our lookup and commit
                db.rollback()
                logger.debug(f"Upsert race on '{title}' ({release_date}), retrying as update")
                movie = self._write(db, key, record)
            return serialize_movie(movie)
        except SQLAlchemyError as e:
            db.rollback()
            raise StorageError(f"could not store movie: {e}", title)
        finally:
            db.close()

    def _write(self, db: Session, key: MovieKey, record: Dict[str, Any]) -> Movie:
        title, release_date = key
        movie = db.query(Movie).filter(
            Movie.title == title,
            Movie.release_date == release_date
        ).first()

        if movie:
            for field, value in record.items():
                setattr(movie, field, value)
            logger.debug(f"Updating existing movie '{title}' ({release_date})")
        else:
            movie = Movie(**record)
            db.add(movie)
            logger.debug(f"Inserting movie '{title}' ({release_date})")

        db.commit()
        db.refresh(movie)
        return movie
