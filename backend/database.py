from sqlalchemy import create_engine
from sqlalchemy.orm import declarative_base, sessionmaker
from config import DATABASE_URL
import logging

logger = logging.getLogger(__name__)

# Configure connect_args based on database type
# SQLite requires check_same_thread=False, PostgreSQL doesn't need it
connect_args = {}
if DATABASE_URL.startswith("sqlite"):
    connect_args = {"check_same_thread": False}

engine = create_engine(DATABASE_URL, connect_args=connect_args)
SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)

Base = declarative_base()


def get_db():
    """Get a database session for the request."""
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


def init_db(bind=None):
    """
    Create all tables (users, movies) if they don't exist.
    """
    # Register models on Base.metadata before create_all
    import models  # noqa: F401

    Base.metadata.create_all(bind=bind or engine)
    logger.info("Database initialized with users and movies tables")
