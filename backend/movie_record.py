"""
Canonical movie record shape and the parse step that turns a raw,
caller-supplied payload into it.

Raw payloads are loosely typed: numbers may arrive as strings, optional
fields may be missing or null, and streamingLinks may be either a list or a
JSON-encoded string. Everything downstream (storage, API responses) only ever
sees a MovieRecord.
"""

from __future__ import annotations

import json
import math
from datetime import date, datetime
from typing import Any, Dict, List, Optional, Tuple

from pydantic import BaseModel

from ingestion_errors import ValidationError

RELEASE_DATE_FORMATS = ("%Y-%m-%d", "%Y/%m/%d", "%d-%m-%Y")
MIN_DURATION_MINUTES = 1
MIN_RATING = 0.0
MAX_RATING = 10.0


class StreamingLink(BaseModel):
    platform: str
    url: str


class MovieRecord(BaseModel):
    title: str
    description: str
    release_date: date
    duration: int
    rating: float
    poster: str = ""
    trailer_id: str = ""
    streaming_links: List[StreamingLink] = []

    @property
    def natural_key(self) -> Tuple[str, date]:
        """Uniqueness key used for idempotent upserts."""
        return (self.title, self.release_date)

    def to_storage(self) -> Dict[str, Any]:
        return {
            "title": self.title,
            "description": self.description,
            "release_date": self.release_date,
            "duration": self.duration,
            "rating": self.rating,
            "poster": self.poster,
            "trailer_id": self.trailer_id,
            "streaming_links": [link.model_dump() for link in self.streaming_links],
        }


def _label_for(payload: Any) -> Optional[str]:
    if isinstance(payload, dict):
        title = payload.get("title")
        if isinstance(title, str) and title.strip():
            return title.strip()
    return None


def _required_text(payload: Dict[str, Any], field: str, label: Optional[str]) -> str:
    value = payload.get(field)
    if value is None:
        raise ValidationError(field, f"{field} is required", label)
    if not isinstance(value, str):
        value = str(value)
    value = value.strip()
    if not value:
        raise ValidationError(field, f"{field} is required", label)
    return value


def _optional_text(payload: Dict[str, Any], field: str, label: Optional[str]) -> str:
    value = payload.get(field)
    if value is None:
        return ""
    if not isinstance(value, str):
        raise ValidationError(field, f"{field} must be a string", label)
    return value.strip()


def parse_release_date(value: str, label: Optional[str] = None) -> date:
    """Parse a release date written as YYYY-MM-DD (or a few close variants / ISO datetimes)."""
    for pattern in RELEASE_DATE_FORMATS:
        try:
            return datetime.strptime(value, pattern).date()
        except ValueError:
            continue
    try:
        # Accept full ISO timestamps such as 2020-01-01T00:00:00.000Z
        return datetime.fromisoformat(value.replace("Z", "+00:00")).date()
    except ValueError:
        raise ValidationError("releaseDate", f"'{value}' is not a valid date", label)


def parse_duration(value: Any, max_duration: int, label: Optional[str] = None) -> int:
    """Duration in whole minutes, between 1 and max_duration inclusive."""
    if value is None or isinstance(value, bool):
        raise ValidationError("duration", "duration is required", label)

    if isinstance(value, int):
        duration = value
    elif isinstance(value, float):
        if not value.is_integer():
            raise ValidationError("duration", f"'{value}' is not a whole number of minutes", label)
        duration = int(value)
    else:
        text = str(value).strip()
        try:
            duration = int(text)
        except ValueError:
            # "120.0" is the same duration as 120.0
            try:
                number = float(text)
            except ValueError:
                number = math.nan
            if not number.is_integer():
                raise ValidationError("duration", f"'{text}' is not a whole number of minutes", label)
            duration = int(number)

    if duration < MIN_DURATION_MINUTES or duration > max_duration:
        raise ValidationError(
            "duration",
            f"duration must be between {MIN_DURATION_MINUTES} and {max_duration} minutes (got {duration})",
            label,
        )
    return duration


def parse_rating(value: Any, label: Optional[str] = None) -> float:
    """Rating as a real number in the inclusive range [0, 10]."""
    if value is None or isinstance(value, bool):
        raise ValidationError("rating", "rating is required", label)
    try:
        rating = float(str(value).strip()) if isinstance(value, str) else float(value)
    except (TypeError, ValueError, OverflowError):
        raise ValidationError("rating", "rating must be a number", label)
    if math.isnan(rating) or rating < MIN_RATING or rating > MAX_RATING:
        raise ValidationError("rating", f"rating must be between 0 and 10 (got {rating:g})", label)
    return rating


def parse_streaming_links(value: Any, label: Optional[str] = None) -> List[StreamingLink]:
    """
    Normalize streamingLinks into a list of StreamingLink.

    Accepts None/empty (no links), a list of {platform, url} objects, or a
    JSON string encoding such a list.
    """
    if value is None:
        return []

    if isinstance(value, str):
        text = value.strip()
        if not text:
            return []
        try:
            value = json.loads(text)
        except json.JSONDecodeError:
            raise ValidationError(
                "streamingLinks",
                f"invalid streamingLinks JSON format for movie: {label or 'Unknown'}",
                label,
            )

    if not isinstance(value, list):
        raise ValidationError("streamingLinks", "streamingLinks must be a list of {platform, url}", label)

    links = []
    for index, entry in enumerate(value):
        if not isinstance(entry, dict):
            raise ValidationError("streamingLinks", f"entry {index} is not an object", label)
        platform = entry.get("platform")
        url = entry.get("url")
        if not isinstance(platform, str) or not platform.strip() or not isinstance(url, str) or not url.strip():
            raise ValidationError("streamingLinks", f"entry {index} needs a platform and a url", label)
        links.append(StreamingLink(platform=platform.strip(), url=url.strip()))
    return links


def normalize_movie_payload(payload: Any, max_duration: int) -> MovieRecord:
    """
    Validate a raw movie payload and return its canonical MovieRecord.

    Raises ValidationError naming the record (by title when available) and
    the first offending field. No storage access happens here.
    """
    if not isinstance(payload, dict):
        raise ValidationError("movie", "movie record must be an object")

    label = _label_for(payload)
    title = _required_text(payload, "title", label)
    description = _required_text(payload, "description", label)
    release_date = parse_release_date(_required_text(payload, "releaseDate", label), label)

    return MovieRecord(
        title=title,
        description=description,
        release_date=release_date,
        duration=parse_duration(payload.get("duration"), max_duration, label),
        rating=parse_rating(payload.get("rating"), label),
        poster=_optional_text(payload, "poster", label),
        trailer_id=_optional_text(payload, "trailerId", label),
        streaming_links=parse_streaming_links(payload.get("streamingLinks"), label),
    )
