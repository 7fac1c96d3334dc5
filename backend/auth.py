"""
Authentication module for user management.
Handles password hashing, JWT token creation/validation, and role checks.
"""

from __future__ import annotations

from datetime import datetime, timedelta, timezone
from typing import Optional
from jose import JWTError, jwt
from fastapi import Depends, HTTPException, status
from fastapi.security import OAuth2PasswordBearer
from sqlalchemy import or_
from sqlalchemy.orm import Session
from pydantic import BaseModel
import hashlib
import base64
import bcrypt

from config import JWT_SECRET_KEY, JWT_ALGORITHM, JWT_EXPIRATION_HOURS, ADMIN_EMAILS
from database import get_db
from models import User

import logging

logger = logging.getLogger(__name__)

ROLE_USER = "user"
ROLE_ADMIN = "admin"

# OAuth2 scheme for token extraction
oauth2_scheme = OAuth2PasswordBearer(tokenUrl="/api/auth/login", auto_error=False)


# Pydantic models for request/response
class UserCreate(BaseModel):
    username: str
    email: str
    password: str


class UserLogin(BaseModel):
    emailOrUsername: str
    password: str


class TokenData(BaseModel):
    user_id: Optional[int] = None
    username: Optional[str] = None
    role: Optional[str] = None


def _pre_hash_password(password: str) -> bytes:
    """
    Pre-hash password with SHA256 to handle passwords longer than 72 bytes.
    Returns base64-encoded SHA256 hash (always 44 bytes, safe for bcrypt).
    """
    sha256_hash = hashlib.sha256(password.encode('utf-8')).digest()
    return base64.b64encode(sha256_hash)


def hash_password(password: str) -> str:
    """
    Hash a password using bcrypt.
    For passwords longer than 72 bytes, pre-hash with SHA256 first.
    """
    password_bytes = password.encode('utf-8')

    if len(password_bytes) > 72:
        password_bytes = _pre_hash_password(password)

    salt = bcrypt.gensalt()
    hashed = bcrypt.hashpw(password_bytes, salt)
    return hashed.decode('utf-8')


def verify_password(plain_password: str, hashed_password: str) -> bool:
    """
    Verify a password against a hash created by hash_password.
    """
    password_bytes = plain_password.encode('utf-8')
    hashed_bytes = hashed_password.encode('utf-8')

    if len(password_bytes) > 72:
        password_bytes = _pre_hash_password(plain_password)

    try:
        return bcrypt.checkpw(password_bytes, hashed_bytes)
    except ValueError as e:
        # Malformed hash in the database
        logger.warning(f"Password hash could not be checked: {e}")
        return False


def create_access_token(data: dict, expires_delta: Optional[timedelta] = None) -> str:
    """
    Create a JWT access token.

    Args:
        data: Dictionary containing claims to encode (e.g., user_id, username, role)
        expires_delta: Optional custom expiration time

    Returns:
        Encoded JWT token string
    """
    to_encode = data.copy()

    if expires_delta:
        expire = datetime.now(timezone.utc) + expires_delta
    else:
        expire = datetime.now(timezone.utc) + timedelta(hours=JWT_EXPIRATION_HOURS)

    to_encode.update({"exp": expire})
    return jwt.encode(to_encode, JWT_SECRET_KEY, algorithm=JWT_ALGORITHM)


def create_token_for_user(user: User) -> str:
    return create_access_token(data={"user_id": user.id, "username": user.username, "role": user.role})


def decode_token(token: str) -> Optional[TokenData]:
    """
    Decode and validate a JWT token. Returns None for invalid or expired tokens.
    """
    try:
        payload = jwt.decode(token, JWT_SECRET_KEY, algorithms=[JWT_ALGORITHM])
        user_id = payload.get("user_id")
        if user_id is None:
            return None
        return TokenData(user_id=user_id, username=payload.get("username"), role=payload.get("role"))
    except JWTError as e:
        logger.debug(f"JWT decode error: {e}")
        return None


async def get_current_user(
    token: Optional[str] = Depends(oauth2_scheme),
    db: Session = Depends(get_db)
) -> User:
    """
    Dependency to get the current authenticated user.

    Raises:
        HTTPException: If not authenticated or invalid token
    """
    credentials_exception = HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail="Could not validate credentials",
        headers={"WWW-Authenticate": "Bearer"},
    )

    if token is None:
        raise credentials_exception

    token_data = decode_token(token)
    if token_data is None:
        raise credentials_exception

    user = db.query(User).filter(User.id == token_data.user_id).first()
    if user is None:
        raise credentials_exception

    return user


async def require_admin(user: User = Depends(get_current_user)) -> User:
    """
    Dependency that only lets admins through. The role is read from the
    database, not the token, so demoted users lose access immediately.
    """
    if user.role != ROLE_ADMIN:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Admin privileges required",
        )
    return user


def get_user_by_username(db: Session, username: str) -> Optional[User]:
    """Get a user by username."""
    return db.query(User).filter(User.username == username).first()


def get_user_by_login(db: Session, email_or_username: str) -> Optional[User]:
    """Get a user by email (case-insensitive) or username."""
    value = email_or_username.strip()
    return db.query(User).filter(
        or_(User.email == value.lower(), User.username == value)
    ).first()


def create_user(db: Session, user_data: UserCreate) -> User:
    """
    Create a new user in the database.
    Addresses listed in ADMIN_EMAILS get the admin role.
    """
    email = user_data.email.strip().lower()
    role = ROLE_ADMIN if email in ADMIN_EMAILS else ROLE_USER

    db_user = User(
        username=user_data.username.strip(),
        email=email,
        hashed_password=hash_password(user_data.password),
        role=role,
    )

    db.add(db_user)
    db.commit()
    db.refresh(db_user)

    logger.info(f"Created user {db_user.username} with role {db_user.role}")

    return db_user


def authenticate_user(db: Session, email_or_username: str, password: str) -> Optional[User]:
    """
    Authenticate a user by email/username and password.

    Returns:
        User object if authenticated, None otherwise
    """
    user = get_user_by_login(db, email_or_username)

    if not user:
        return None

    if not verify_password(password, user.hashed_password):
        return None

    return user
