from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from database import init_db, SessionLocal
from config import LOG_LEVEL, INGEST_SHUTDOWN_GRACE_SECONDS, INGEST_MAX_DURATION_MINUTES
from ingestion_queue import IngestionQueue
from item_processor import ItemProcessor
from movie_store import MovieStore
from routes import router
from datetime import datetime, timezone
import logging
import os
from contextlib import asynccontextmanager

logging.basicConfig(
    level=getattr(logging, LOG_LEVEL.upper(), logging.INFO),
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)
logger = logging.getLogger(__name__)


def build_ingestion_queue(session_factory=SessionLocal) -> IngestionQueue:
    """Wire the ingestion queue to SQLAlchemy storage."""
    store = MovieStore(session_factory)
    return IngestionQueue(ItemProcessor(store, max_duration=INGEST_MAX_DURATION_MINUTES))


@asynccontextmanager
async def lifespan(app: FastAPI):
    # Startup
    init_db()
    logger.info("Database initialized")
    app.state.ingestion_queue = build_ingestion_queue()
    yield
    # Shutdown: the queue is in-memory, anything still pending is lost
    await app.state.ingestion_queue.shutdown(INGEST_SHUTDOWN_GRACE_SECONDS)


def get_allowed_origins():
    # In production you MUST set CORS_ORIGINS to your frontend URL(s), comma separated,
    # or the browser will block API requests.
    cors_origins_env = os.getenv("CORS_ORIGINS", "")
    if cors_origins_env:
        return [origin.strip() for origin in cors_origins_env.split(",") if origin.strip()]
    # Default to localhost for development only
    return [
        "http://localhost:5173",  # Vite dev server
        "http://localhost:3000",
        "http://127.0.0.1:5173",
    ]


app = FastAPI(
    title="Movie Catalog API",
    version="1.0.0",
    lifespan=lifespan
)

allowed_origins = get_allowed_origins()
logger.info(f"CORS allowed origins: {allowed_origins}")

# Add CORS middleware BEFORE including routes
app.add_middleware(
    CORSMiddleware,
    allow_origins=allowed_origins,
    allow_credentials=True,
    allow_methods=["GET", "POST", "PUT", "DELETE", "PATCH", "OPTIONS"],
    allow_headers=["Content-Type", "Authorization", "X-Requested-With"],
    expose_headers=["Authorization"],
)

app.include_router(router)


@app.get("/health")
def health():
    return {
        "status": "success",
        "message": "Server is running",
        "timestamp": datetime.now(timezone.utc).isoformat(),
    }


@app.get("/")
def root():
    return {"message": "Movie Catalog API"}


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(app, host="0.0.0.0", port=int(os.getenv("PORT", "5000")))
