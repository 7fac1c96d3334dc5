import pandas as pd
from typing import Any, Dict, List, Optional
import json
import logging
from io import BytesIO

from ingestion_errors import InvalidBatch

logger = logging.getLogger(__name__)

# Accepted column spellings -> payload field names used by the ingestion queue
COLUMN_ALIASES = {
    'title': 'title',
    'name': 'title',
    'movie': 'title',
    'film': 'title',
    'description': 'description',
    'overview': 'description',
    'plot': 'description',
    'releasedate': 'releaseDate',
    'release_date': 'releaseDate',
    'release date': 'releaseDate',
    'released': 'releaseDate',
    'duration': 'duration',
    'runtime': 'duration',
    'rating': 'rating',
    'score': 'rating',
    'poster': 'poster',
    'poster_url': 'poster',
    'trailerid': 'trailerId',
    'trailer_id': 'trailerId',
    'trailer': 'trailerId',
    'streaminglinks': 'streamingLinks',
    'streaming_links': 'streamingLinks',
}

ENCODINGS = ['utf-8', 'utf-8-sig', 'latin-1']


def parse_movies_file(content: bytes, filename: Optional[str] = None) -> List[Dict[str, Any]]:
    """
    Parse an uploaded bulk movie file into raw movie payloads.
    JSON files must contain an array of movie objects; anything else is read as CSV.
    Rows are not validated here - the ingestion queue does that per item.
    """
    name = (filename or '').lower()
    stripped = content.lstrip()
    if name.endswith('.json') or stripped.startswith(b'['):
        return parse_movies_json(content)
    return parse_movies_csv(content)


def parse_movies_json(content: bytes) -> List[Dict[str, Any]]:
    try:
        data = json.loads(content.decode('utf-8-sig'))
    except (UnicodeDecodeError, json.JSONDecodeError) as e:
        raise InvalidBatch(f"Invalid JSON file: {e}")

    if not isinstance(data, list):
        raise InvalidBatch("File must contain a JSON array of movies")

    logger.info(f"Parsed {len(data)} movies from JSON upload")
    return data


def parse_movies_csv(content: bytes) -> List[Dict[str, Any]]:
    """
    Parse a CSV file of movies. Cells are read as strings; empty cells become None.
    """
    df = None
    for encoding in ENCODINGS:
        try:
            df = pd.read_csv(BytesIO(content), encoding=encoding, dtype=str, keep_default_na=False)
            logger.info(f"Successfully read CSV with encoding: {encoding}")
            break
        except UnicodeDecodeError as e:
            logger.debug(f"Failed to read with encoding {encoding}: {e}")
            continue
        except (pd.errors.ParserError, pd.errors.EmptyDataError) as e:
            raise InvalidBatch(f"Could not parse CSV file: {e}")

    if df is None:
        raise InvalidBatch("Could not read CSV file with any supported encoding")

    column_map = {}
    for col in df.columns:
        key = str(col).strip().lower()
        if key in COLUMN_ALIASES:
            column_map[col] = COLUMN_ALIASES[key]
        else:
            logger.debug(f"No mapping for column: {repr(col)}")
    df = df.rename(columns=column_map)
    # Keep the first column when two aliases map to the same field (e.g. "name" and "title")
    df = df.loc[:, ~df.columns.duplicated()]
    logger.info(f"Column mapping applied: {column_map}")

    if 'title' not in df.columns:
        raise InvalidBatch(f"CSV file needs a title column (found: {list(df.columns)})")

    known_columns = [col for col in df.columns if col in COLUMN_ALIASES.values()]
    movies = []
    for _, row in df[known_columns].iterrows():
        movie = {}
        for col in known_columns:
            value = row[col].strip()
            movie[col] = value if value else None
        movies.append(movie)

    logger.info(f"Parsed {len(movies)} movies from CSV upload")
    return movies
