"""Error taxonomy shared by services and routers.

Every error a client can see derives from CombatError and carries an HTTP
status plus a short machine-readable code.  Services raise these; the
handlers registered in tactica.main render them as ``{"error", "code"}``.
CombatError subclasses ValueError so validation helpers that only know
about ValueError keep working.
"""

import re

from fastapi import status

_JWT_PATTERN = re.compile(r"\beyJ[A-Za-z0-9_-]+\.[A-Za-z0-9._-]+\.[A-Za-z0-9._-]+\b")
_BEARER_PATTERN = re.compile(r"\b[Bb]earer\s+[A-Za-z0-9._~+/-]{20,}=*")
_API_KEY_PATTERN = re.compile(r"\b(sk-[A-Za-z0-9_-]{16,}|sb_publishable_[A-Za-z0-9_-]{20,})\b")


class CombatError(ValueError):
    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR
    code = "internal_error"

    def __init__(self, message: str, *, code: str | None = None, details: dict | None = None):
        super().__init__(message)
        self.message = message
        if code is not None:
            self.code = code
        self.details = details or {}


class InvalidRequestError(CombatError):
    status_code = status.HTTP_400_BAD_REQUEST
    code = "invalid_request"


class AuthError(CombatError):
    status_code = status.HTTP_401_UNAUTHORIZED
    code = "auth_required"


class AccessDeniedError(CombatError):
    status_code = status.HTTP_403_FORBIDDEN
    code = "forbidden"


class NotFoundError(CombatError):
    status_code = status.HTTP_404_NOT_FOUND
    code = "not_found"


class ConflictError(CombatError):
    status_code = status.HTTP_409_CONFLICT
    code = "conflict"


class RateLimitedError(CombatError):
    status_code = status.HTTP_429_TOO_MANY_REQUESTS
    code = "rate_limited"

    def __init__(self, message: str, *, retry_after: int, code: str | None = None):
        super().__init__(message, code=code)
        self.retry_after = retry_after


# ---------------------------------------------------------------------------
# Redaction
# ---------------------------------------------------------------------------

def redact_text(text: str) -> str:
    """Strip bearer tokens, JWTs and API keys from a message."""
    text = _BEARER_PATTERN.sub("Bearer [REDACTED]", text)
    text = _JWT_PATTERN.sub("[REDACTED_JWT]", text)
    return _API_KEY_PATTERN.sub("[REDACTED_KEY]", text)


def sanitize_error(exc: BaseException) -> dict[str, str | None]:
    """Return a client-safe ``{"message", "code"}`` view of an exception."""
    code = getattr(exc, "code", None)
    return {
        "message": redact_text(str(exc)) or exc.__class__.__name__,
        "code": code if isinstance(code, str) else None,
    }
