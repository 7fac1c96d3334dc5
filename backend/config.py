import os
from dotenv import load_dotenv
import secrets

load_dotenv()

DATABASE_URL = os.getenv("DATABASE_URL", "sqlite:///./movies.db")
LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")

# JWT Configuration
# IMPORTANT: Set JWT_SECRET_KEY in production - generate with: python -c "import secrets; print(secrets.token_hex(32))"
JWT_SECRET_KEY = os.getenv("JWT_SECRET_KEY", secrets.token_hex(32))
JWT_ALGORITHM = os.getenv("JWT_ALGORITHM", "HS256")
JWT_EXPIRATION_HOURS = int(os.getenv("JWT_EXPIRATION_HOURS", "168"))

# Accounts that sign up with one of these addresses are created as admins
ADMIN_EMAILS = [email.strip().lower() for email in os.getenv("ADMIN_EMAILS", "").split(",") if email.strip()]

# Bulk ingestion
INGEST_MAX_DURATION_MINUTES = int(os.getenv("INGEST_MAX_DURATION_MINUTES", "600"))
INGEST_MAX_BATCH_SIZE = int(os.getenv("INGEST_MAX_BATCH_SIZE", "1000"))
INGEST_SHUTDOWN_GRACE_SECONDS = float(os.getenv("INGEST_SHUTDOWN_GRACE_SECONDS", "10"))
