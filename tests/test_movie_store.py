from datetime import date

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from conftest import make_movie
from ingestion_errors import StorageError
from models import Movie
from movie_record import normalize_movie_payload
from movie_store import MovieStore


def upsert(store, payload):
    record = normalize_movie_payload(payload, 600)
    return store.upsert(record.natural_key, record.to_storage())


def test_upsert_inserts_new_movie(session_factory, db):
    store = MovieStore(session_factory)
    stored = upsert(store, make_movie("A"))

    assert stored["id"] is not None
    assert stored["title"] == "A"
    assert stored["releaseDate"] == "2020-01-01"
    assert db.query(Movie).count() == 1


def test_upsert_same_key_updates_instead_of_duplicating(session_factory, db):
    store = MovieStore(session_factory)
    first = upsert(store, make_movie("A", rating=5))
    second = upsert(store, make_movie("A", rating=8, description="updated"))

    assert first["id"] == second["id"]
    assert db.query(Movie).count() == 1
    movie = db.query(Movie).one()
    assert movie.rating == 8
    assert movie.description == "updated"


def test_same_title_different_release_date_is_a_new_movie(session_factory, db):
    store = MovieStore(session_factory)
    upsert(store, make_movie("Dune", releaseDate="1984-12-14"))
    upsert(store, make_movie("Dune", releaseDate="2021-10-22"))
    assert db.query(Movie).count() == 2


def test_find_by_key(session_factory):
    store = MovieStore(session_factory)
    assert store.find_by_key(("A", date(2020, 1, 1))) is None

    upsert(store, make_movie("A", streamingLinks=[{"platform": "Netflix", "url": "https://n.example"}]))
    found = store.find_by_key(("A", date(2020, 1, 1)))
    assert found["streamingLinks"] == [{"platform": "Netflix", "url": "https://n.example"}]


def test_database_failure_becomes_storage_error():
    # No tables created on this engine
    engine = create_engine("sqlite://", connect_args={"check_same_thread": False}, poolclass=StaticPool)
    store = MovieStore(sessionmaker(bind=engine))

    with pytest.raises(StorageError) as exc:
        upsert(store, make_movie("Orphan"))
    assert exc.value.record == "Orphan"
    engine.dispose()
