from fastapi import APIRouter, Depends, HTTPException, Query, Body, UploadFile, File, Request, status
from fastapi.concurrency import run_in_threadpool
from sqlalchemy.orm import Session
from sqlalchemy import or_, func
from sqlalchemy.exc import IntegrityError
from typing import Dict, Any
import logging
import math

from auth import (
    UserCreate,
    UserLogin,
    authenticate_user,
    create_token_for_user,
    create_user,
    get_current_user,
    get_user_by_login,
    get_user_by_username,
    require_admin,
)
from config import INGEST_MAX_BATCH_SIZE, INGEST_MAX_DURATION_MINUTES
from database import get_db
from ingestion_errors import InvalidBatch, ValidationError
from ingestion_queue import IngestionQueue
from models import Movie, User
from movie_file_parser import parse_movies_file
from movie_record import normalize_movie_payload
from utils import serialize_movie, serialize_user

logger = logging.getLogger(__name__)

router = APIRouter()

MAX_PAGE_SIZE = 100
MIN_PASSWORD_LENGTH = 6


def get_ingestion_queue(request: Request) -> IngestionQueue:
    """The process-wide ingestion queue created in the app lifespan."""
    return request.app.state.ingestion_queue


def paginate(query, page: int, limit: int) -> Dict[str, Any]:
    total = query.count()
    movies = query.offset((page - 1) * limit).limit(limit).all()
    return {
        "status": "success",
        "results": len(movies),
        "total": total,
        "page": page,
        "totalPages": math.ceil(total / limit) if total else 0,
        "data": {"movies": [serialize_movie(m) for m in movies]},
    }


def validate_movie_or_400(payload: Any):
    try:
        return normalize_movie_payload(payload, INGEST_MAX_DURATION_MINUTES)
    except ValidationError as e:
        raise HTTPException(status_code=400, detail=e.message)


def enqueue_or_400(ingestion_queue: IngestionQueue, movies: Any) -> Dict[str, int]:
    """Shared envelope checks for JSON and file batch submissions."""
    if isinstance(movies, list) and len(movies) > INGEST_MAX_BATCH_SIZE:
        raise HTTPException(
            status_code=400,
            detail=f"Too many movies in one batch (max {INGEST_MAX_BATCH_SIZE})"
        )
    try:
        return ingestion_queue.enqueue(movies)
    except InvalidBatch as e:
        raise HTTPException(status_code=400, detail=e.message)


# --- Auth ---

@router.post("/api/auth/signup", status_code=status.HTTP_201_CREATED)
def signup(user_data: UserCreate, db: Session = Depends(get_db)):
    """
    Create an account. Does not log the user in.
    """
    username = user_data.username.strip()
    email = user_data.email.strip().lower()

    if not username:
        raise HTTPException(status_code=400, detail="Username is required")
    if "@" not in email:
        raise HTTPException(status_code=400, detail="A valid email is required")
    if len(user_data.password) < MIN_PASSWORD_LENGTH:
        raise HTTPException(
            status_code=400,
            detail=f"Password must be at least {MIN_PASSWORD_LENGTH} characters"
        )

    if get_user_by_username(db, username) or get_user_by_login(db, email):
        raise HTTPException(status_code=409, detail="Username or email already registered")

    try:
        user = create_user(db, user_data)
    except IntegrityError:
        db.rollback()
        raise HTTPException(status_code=409, detail="Username or email already registered")

    return {
        "status": "success",
        "message": "Account created successfully! Please log in.",
        "data": {"user": serialize_user(user)},
    }


@router.post("/api/auth/login")
def login(credentials: UserLogin, db: Session = Depends(get_db)):
    user = authenticate_user(db, credentials.emailOrUsername, credentials.password)
    if not user:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid credentials",
            headers={"WWW-Authenticate": "Bearer"},
        )

    logger.info(f"User {user.username} logged in")
    return {
        "status": "success",
        "data": {"token": create_token_for_user(user), "user": serialize_user(user)},
    }


@router.get("/api/auth/me")
def get_me(user: User = Depends(get_current_user)):
    return {"status": "success", "data": {"user": serialize_user(user)}}


# --- Bulk ingestion ---

@router.post("/api/movies/bulk", status_code=status.HTTP_202_ACCEPTED)
async def bulk_add_movies(
    body: Dict[str, Any] = Body(...),
    admin: User = Depends(require_admin),
    ingestion_queue: IngestionQueue = Depends(get_ingestion_queue),
):
    """
    Queue a batch of movies for background ingestion.
    Body: {"movies": [...]}. Returns immediately; poll /api/movies/queue/status for progress.
    """
    result = enqueue_or_400(ingestion_queue, body.get("movies"))
    logger.info(f"{admin.username} queued {result['accepted']} movies")
    return {
        "status": "success",
        "message": f"{result['accepted']} movies queued for processing",
        "data": result,
    }


@router.post("/api/movies/bulk/upload", status_code=status.HTTP_202_ACCEPTED)
async def bulk_upload_movies(
    file: UploadFile = File(...),
    admin: User = Depends(require_admin),
    ingestion_queue: IngestionQueue = Depends(get_ingestion_queue),
):
    """
    Queue movies from an uploaded JSON array or CSV file.
    """
    try:
        content = await file.read()
    except Exception as e:
        logger.error(f"Error reading uploaded file: {str(e)}", exc_info=True)
        raise HTTPException(status_code=400, detail="Could not read uploaded file")

    try:
        movies = await run_in_threadpool(parse_movies_file, content, file.filename)
    except InvalidBatch as e:
        raise HTTPException(status_code=400, detail=e.message)

    result = enqueue_or_400(ingestion_queue, movies)
    logger.info(f"{admin.username} queued {result['accepted']} movies from {file.filename}")
    return {
        "status": "success",
        "message": f"{result['accepted']} movies queued for processing",
        "data": result,
    }


@router.get("/api/movies/queue/status")
async def get_queue_status(
    admin: User = Depends(require_admin),
    ingestion_queue: IngestionQueue = Depends(get_ingestion_queue),
):
    return {"status": "success", "data": {"queue": ingestion_queue.status()}}


# --- Movies ---

@router.get("/api/movies")
def list_movies(
    page: int = Query(1, ge=1),
    limit: int = Query(12, ge=1, le=MAX_PAGE_SIZE),
    db: Session = Depends(get_db)
):
    query = db.query(Movie).order_by(Movie.created_at.desc(), Movie.id.desc())
    return paginate(query, page, limit)


@router.get("/api/movies/search")
def search_movies(
    q: str = Query(..., min_length=1),
    page: int = Query(1, ge=1),
    limit: int = Query(12, ge=1, le=MAX_PAGE_SIZE),
    db: Session = Depends(get_db)
):
    """
    Case-insensitive search over title and description.
    """
    term = q.strip()
    if not term:
        raise HTTPException(status_code=400, detail="Search query is required")

    pattern = f"%{term.lower()}%"
    query = db.query(Movie).filter(
        or_(
            func.lower(Movie.title).like(pattern),
            func.lower(Movie.description).like(pattern)
        )
    ).order_by(Movie.rating.desc(), Movie.id.desc())
    return paginate(query, page, limit)


@router.get("/api/movies/{movie_id}")
def get_movie(movie_id: int, db: Session = Depends(get_db)):
    movie = db.query(Movie).filter(Movie.id == movie_id).first()
    if not movie:
        raise HTTPException(status_code=404, detail="Movie not found")
    return {"status": "success", "data": {"movie": serialize_movie(movie)}}


@router.post("/api/movies", status_code=status.HTTP_201_CREATED)
def add_movie(
    movie_data: Dict[str, Any] = Body(...),
    admin: User = Depends(require_admin),
    db: Session = Depends(get_db)
):
    """
    Add a single movie. Same validation as bulk ingestion, but synchronous.
    """
    record = validate_movie_or_400(movie_data)

    existing = db.query(Movie).filter(
        Movie.title == record.title,
        Movie.release_date == record.release_date
    ).first()
    if existing:
        raise HTTPException(
            status_code=409,
            detail=f"Movie '{record.title}' ({record.release_date}) already exists",
            headers={"X-Movie-Id": str(existing.id)}
        )

    movie = Movie(**record.to_storage())
    db.add(movie)
    db.commit()
    db.refresh(movie)

    logger.info(f"{admin.username} added movie '{movie.title}'")
    return {
        "status": "success",
        "message": "Movie created successfully",
        "data": {"movie": serialize_movie(movie)},
    }


@router.put("/api/movies/{movie_id}")
def update_movie(
    movie_id: int,
    movie_data: Dict[str, Any] = Body(...),
    admin: User = Depends(require_admin),
    db: Session = Depends(get_db)
):
    """
    Update a movie. Fields missing from the body keep their current value.
    """
    movie = db.query(Movie).filter(Movie.id == movie_id).first()
    if not movie:
        raise HTTPException(status_code=404, detail="Movie not found")

    merged = serialize_movie(movie)
    merged.update(movie_data)
    record = validate_movie_or_400(merged)

    clash = db.query(Movie).filter(
        Movie.title == record.title,
        Movie.release_date == record.release_date,
        Movie.id != movie_id
    ).first()
    if clash:
        raise HTTPException(
            status_code=409,
            detail=f"Movie '{record.title}' ({record.release_date}) already exists",
            headers={"X-Movie-Id": str(clash.id)}
        )

    for field, value in record.to_storage().items():
        setattr(movie, field, value)
    db.commit()
    db.refresh(movie)

    logger.info(f"{admin.username} updated movie {movie_id}")
    return {
        "status": "success",
        "message": "Movie updated successfully",
        "data": {"movie": serialize_movie(movie)},
    }


@router.delete("/api/movies/{movie_id}")
def delete_movie(
    movie_id: int,
    admin: User = Depends(require_admin),
    db: Session = Depends(get_db)
):
    movie = db.query(Movie).filter(Movie.id == movie_id).first()
    if not movie:
        raise HTTPException(status_code=404, detail="Movie not found")

    db.delete(movie)
    db.commit()

    logger.info(f"{admin.username} deleted movie {movie_id}")
    return {"status": "success", "message": "Movie deleted successfully"}
