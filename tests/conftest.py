import os

# Must be set before config is imported
os.environ["DATABASE_URL"] = "sqlite://"
os.environ["ADMIN_EMAILS"] = "admin@example.com"
os.environ.setdefault("JWT_SECRET_KEY", "test-secret-key-that-is-long-enough-1234")

import httpx
import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from auth import UserCreate, create_token_for_user, create_user
from database import get_db, init_db
from main import app, build_ingestion_queue


@pytest.fixture
def engine():
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    init_db(bind=engine)
    yield engine
    engine.dispose()


@pytest.fixture
def session_factory(engine):
    return sessionmaker(autocommit=False, autoflush=False, bind=engine)


@pytest.fixture
def db(session_factory):
    session = session_factory()
    yield session
    session.close()


@pytest.fixture
def ingestion_queue(session_factory):
    return build_ingestion_queue(session_factory)


@pytest.fixture
async def client(session_factory, ingestion_queue):
    def override_get_db():
        session = session_factory()
        try:
            yield session
        finally:
            session.close()

    app.dependency_overrides[get_db] = override_get_db
    app.state.ingestion_queue = ingestion_queue
    async with httpx.AsyncClient(transport=httpx.ASGITransport(app=app), base_url="http://test") as ac:
        yield ac
    await ingestion_queue.join()
    app.dependency_overrides.clear()


@pytest.fixture
def admin_headers(db):
    admin = create_user(db, UserCreate(username="admin", email="admin@example.com", password="adminpass"))
    assert admin.role == "admin"
    return {"Authorization": f"Bearer {create_token_for_user(admin)}"}


@pytest.fixture
def user_headers(db):
    user = create_user(db, UserCreate(username="viewer", email="viewer@example.com", password="viewerpass"))
    return {"Authorization": f"Bearer {create_token_for_user(user)}"}


def make_movie(title="A", **overrides):
    movie = {
        "title": title,
        "description": "d",
        "releaseDate": "2020-01-01",
        "duration": 90,
        "rating": 7.5,
    }
    movie.update(overrides)
    return movie
