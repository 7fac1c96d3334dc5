from sqlalchemy import Column, Integer, String, Text, Float, Date, JSON, DateTime, UniqueConstraint, CheckConstraint
from sqlalchemy.sql import func
from database import Base


class Movie(Base):
    __tablename__ = "movies"
    __table_args__ = (
        # Natural key used by the bulk ingestion upsert
        UniqueConstraint("title", "release_date", name="uq_movies_title_release_date"),
        CheckConstraint("duration >= 1", name="ck_movies_duration_positive"),
        CheckConstraint("rating >= 0 AND rating <= 10", name="ck_movies_rating_range"),
    )

    id = Column(Integer, primary_key=True, index=True)
    title = Column(String, nullable=False, index=True)
    description = Column(Text, nullable=False)
    release_date = Column(Date, nullable=False, index=True)
    duration = Column(Integer, nullable=False)  # in minutes
    rating = Column(Float, nullable=False)
    poster = Column(String, default="")
    trailer_id = Column(String, default="")
    streaming_links = Column(JSON)  # list of {platform, url}
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), onupdate=func.now())


class User(Base):
    __tablename__ = "users"

    id = Column(Integer, primary_key=True, index=True)
    username = Column(String, unique=True, index=True, nullable=False)
    email = Column(String, unique=True, index=True, nullable=False)
    hashed_password = Column(String, nullable=False)
    role = Column(String, nullable=False, default="user")  # "user" or "admin"
    created_at = Column(DateTime(timezone=True), server_default=func.now())
