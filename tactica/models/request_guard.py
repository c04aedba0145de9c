"""Shared store backing per-route rate limits and idempotency keys.

Timestamps are epoch seconds so comparisons behave the same on every backend.
"""

from sqlalchemy import Float, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from tactica.models.base import Base


class RateLimitBucket(Base):
    __tablename__ = "rate_limit_buckets"

    id: Mapped[int] = mapped_column(primary_key=True, index=True)
    # "<route>:<client address>"
    bucket_key: Mapped[str] = mapped_column(String(255), unique=True, index=True, nullable=False)
    window_start: Mapped[float] = mapped_column(Float, nullable=False)
    count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    expires_at: Mapped[float] = mapped_column(Float, nullable=False, index=True)


class IdempotencyRecord(Base):
    __tablename__ = "idempotency_records"

    id: Mapped[int] = mapped_column(primary_key=True, index=True)
    # "<user_id>:<route>:<client key>"
    key: Mapped[str] = mapped_column(String(255), unique=True, index=True, nullable=False)
    # Serialized response body, replayed verbatim
    response_body: Mapped[str] = mapped_column(Text, nullable=False)
    status_code: Mapped[int] = mapped_column(Integer, nullable=False, default=200)
    expires_at: Mapped[float] = mapped_column(Float, nullable=False, index=True)
