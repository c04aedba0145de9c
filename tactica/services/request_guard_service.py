"""Per-route rate limiting and idempotent replay, backed by shared tables.

Rate limiting is a fixed window per ``<route>:<client address>``.  The
counter is committed on its own so requests that later fail still count.

Idempotency keys are scoped by user and route.  A request first claims its
key (a placeholder row with status_code 0); the response body is stored in
the same transaction as the combat writes, so a retry either replays the
exact stored bytes or, while the first attempt is still running, gets a
conflict.  Expired rows are evicted lazily.
"""

import logging
import math
import time
from dataclasses import dataclass

from fastapi import Request
from sqlalchemy import delete, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from tactica.config import settings
from tactica.errors import ConflictError, RateLimitedError
from tactica.models.request_guard import IdempotencyRecord, RateLimitBucket

logger = logging.getLogger(__name__)

IN_FLIGHT_STATUS = 0


def client_address(request: Request) -> str:
    forwarded = request.headers.get("x-forwarded-for")
    if forwarded:
        first = forwarded.split(",")[0].strip()
        if first:
            return first
    if request.client is not None and request.client.host:
        return request.client.host
    return "unknown"


async def purge_expired(db: AsyncSession, now: float | None = None) -> None:
    now = time.time() if now is None else now
    await db.execute(delete(RateLimitBucket).where(RateLimitBucket.expires_at <= now))
    await db.execute(delete(IdempotencyRecord).where(IdempotencyRecord.expires_at <= now))


async def _get_bucket(db: AsyncSession, key: str) -> RateLimitBucket | None:
    result = await db.execute(select(RateLimitBucket).where(RateLimitBucket.bucket_key == key))
    return result.scalar_one_or_none()


async def _create_bucket(db: AsyncSession, key: str, now: float, window: int) -> RateLimitBucket:
    bucket = RateLimitBucket(bucket_key=key, window_start=now, count=0, expires_at=now + window)
    try:
        async with db.begin_nested():
            db.add(bucket)
    except IntegrityError:
        # another request opened the window since our select
        existing = await _get_bucket(db, key)
        if existing is None:
            raise
        return existing
    return bucket


async def enforce_rate_limit(
    db: AsyncSession,
    route: str,
    client: str,
    limit: int,
    window_seconds: int | None = None,
    now: float | None = None,
) -> int:
    """Count one request against the bucket; raise RateLimitedError once over ``limit``.

    Returns the count in the current window.
    """
    window = window_seconds or settings.rate_limit_window_seconds
    now = time.time() if now is None else now
    key = f"{route}:{client}"
    await purge_expired(db, now)

    bucket = await _get_bucket(db, key)
    if bucket is None:
        bucket = await _create_bucket(db, key, now, window)
    if bucket.expires_at <= now:
        bucket.window_start = now
        bucket.count = 0
        bucket.expires_at = now + window
    bucket.count += 1
    count = bucket.count
    retry_after = max(1, math.ceil(bucket.expires_at - now))
    await db.commit()

    if count > limit:
        logger.warning("Rate limit hit for %s (%s requests)", key, count)
        raise RateLimitedError("Too many requests", retry_after=retry_after)
    return count


def scoped_idempotency_key(user_id: int, route: str, header_value: str | None) -> str | None:
    if header_value is None:
        return None
    value = header_value.strip()
    if not value:
        return None
    return f"{user_id}:{route}:{value[:128]}"


async def _get_record(db: AsyncSession, key: str) -> IdempotencyRecord | None:
    result = await db.execute(select(IdempotencyRecord).where(IdempotencyRecord.key == key))
    return result.scalar_one_or_none()


@dataclass(frozen=True)
class StoredResponse:
    """A completed response captured as plain values, safe to use after the session rolls back."""
    body: str
    status_code: int


async def claim_idempotency_key(db: AsyncSession, key: str, now: float | None = None) -> StoredResponse | None:
    """Return the stored response of a completed earlier request, or claim the key and return None."""
    now = time.time() if now is None else now
    record = await _get_record(db, key)
    if record is not None and record.expires_at <= now:
        await db.delete(record)
        await db.flush()
        record = None
    if record is not None:
        if record.status_code == IN_FLIGHT_STATUS:
            raise ConflictError("A request with this idempotency key is in progress", code="idempotency_in_flight")
        logger.info("Replaying stored response for idempotency key %s", key)
        return StoredResponse(body=record.response_body, status_code=record.status_code)

    db.add(
        IdempotencyRecord(
            key=key,
            response_body="",
            status_code=IN_FLIGHT_STATUS,
            expires_at=now + settings.idempotency_ttl_seconds,
        )
    )
    try:
        await db.flush()
    except IntegrityError:
        await db.rollback()
        record = await _get_record(db, key)
        if record is None or record.status_code == IN_FLIGHT_STATUS:
            raise ConflictError(
                "A request with this idempotency key is in progress", code="idempotency_in_flight"
            ) from None
        return StoredResponse(body=record.response_body, status_code=record.status_code)
    return None


async def store_idempotent_response(
    db: AsyncSession, key: str, body: str, status_code: int = 200, now: float | None = None
) -> None:
    now = time.time() if now is None else now
    record = await _get_record(db, key)
    if record is None:
        record = IdempotencyRecord(key=key, response_body=body, status_code=status_code, expires_at=0)
        db.add(record)
    record.response_body = body
    record.status_code = status_code
    record.expires_at = now + settings.idempotency_ttl_seconds
    await db.flush()
