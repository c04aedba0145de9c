"""Accounts and bearer tokens.

Passwords are stored as bcrypt hashes.  Access tokens are HS256 JWTs whose
``sub`` is the user id and whose ``typ`` claim is ``access``; a token
without that claim never resolves to a user.  Emails are compared in
lower case.
"""

import logging
from datetime import datetime, timedelta, timezone

import bcrypt
from jose import JWTError, jwt
from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from tactica.config import settings
from tactica.errors import AuthError, ConflictError
from tactica.models.user import User

logger = logging.getLogger(__name__)

TOKEN_TYPE = "access"
BCRYPT_MAX_BYTES = 72


def _password_bytes(password: str) -> bytes:
    # bcrypt only reads the first 72 bytes
    return password.encode("utf-8")[:BCRYPT_MAX_BYTES]


def hash_password(password: str) -> str:
    return bcrypt.hashpw(_password_bytes(password), bcrypt.gensalt()).decode("utf-8")


def verify_password(password: str, hashed_password: str) -> bool:
    try:
        return bcrypt.checkpw(_password_bytes(password), hashed_password.encode("utf-8"))
    except ValueError:
        logger.warning("Stored password hash is malformed")
        return False


def token_lifetime_seconds() -> int:
    return settings.access_token_expire_minutes * 60


def create_access_token(user_id: int, now: datetime | None = None) -> str:
    issued = now or datetime.now(timezone.utc)
    claims = {
        "sub": str(user_id),
        "typ": TOKEN_TYPE,
        "iat": issued,
        "exp": issued + timedelta(seconds=token_lifetime_seconds()),
    }
    return jwt.encode(claims, settings.secret_key, algorithm=settings.algorithm)


def decode_access_token(token: str) -> int | None:
    """User id carried by a valid access token, else None."""
    try:
        claims = jwt.decode(token, settings.secret_key, algorithms=[settings.algorithm])
    except JWTError:
        return None
    if claims.get("typ") != TOKEN_TYPE:
        return None
    try:
        return int(claims["sub"])
    except (KeyError, TypeError, ValueError):
        return None


async def get_user_by_email(db: AsyncSession, email: str) -> User | None:
    result = await db.execute(select(User).where(User.email == email.strip().lower()))
    return result.scalar_one_or_none()


async def get_user_by_username(db: AsyncSession, username: str) -> User | None:
    result = await db.execute(select(User).where(User.username == username))
    return result.scalar_one_or_none()


async def get_user_by_id(db: AsyncSession, user_id: int) -> User | None:
    result = await db.execute(select(User).where(User.id == user_id))
    return result.scalar_one_or_none()


async def register_user(db: AsyncSession, email: str, username: str, password: str) -> User:
    """Create an account; the caller commits."""
    email = email.strip().lower()
    if await get_user_by_email(db, email) is not None:
        raise ConflictError("Email already registered", code="email_taken")
    if await get_user_by_username(db, username) is not None:
        raise ConflictError("Username already taken", code="username_taken")
    user = User(email=email, username=username, hashed_password=hash_password(password))
    db.add(user)
    try:
        await db.flush()
    except IntegrityError:
        # lost a race with a concurrent registration
        await db.rollback()
        raise ConflictError("Email or username already registered", code="account_exists") from None
    logger.info("Registered user %s (%s)", user.id, username)
    return user


async def authenticate_user(db: AsyncSession, email: str, password: str) -> User:
    user = await get_user_by_email(db, email)
    if user is None or not verify_password(password, user.hashed_password):
        raise AuthError("Invalid email or password", code="invalid_credentials")
    return user


async def resolve_bearer_user(db: AsyncSession, token: str) -> User:
    user_id = decode_access_token(token)
    user = await get_user_by_id(db, user_id) if user_id is not None else None
    if user is None:
        raise AuthError("Invalid or expired token", code="invalid_token")
    return user
