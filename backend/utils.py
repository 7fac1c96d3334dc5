from typing import Any, Dict, Optional
from datetime import date, datetime


def to_iso(value: Optional[Any]) -> Optional[str]:
    """Format a date/datetime as an ISO string for the frontend (SQLite may hand back strings)."""
    if value is None:
        return None
    if isinstance(value, (date, datetime)):
        return value.isoformat()
    return str(value)


def serialize_movie(movie) -> Dict[str, Any]:
    """Movie row -> API payload (camelCase keys, as the client expects)."""
    return {
        "id": movie.id,
        "title": movie.title,
        "description": movie.description,
        "releaseDate": to_iso(movie.release_date),
        "duration": movie.duration,
        "rating": movie.rating,
        "poster": movie.poster or "",
        "trailerId": movie.trailer_id or "",
        "streamingLinks": movie.streaming_links or [],
        "createdAt": to_iso(movie.created_at),
        "updatedAt": to_iso(movie.updated_at),
    }


def serialize_user(user) -> Dict[str, Any]:
    return {
        "id": user.id,
        "username": user.username,
        "email": user.email,
        "role": user.role,
        "createdAt": to_iso(user.created_at),
    }
