import logging

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from tactica.config import settings
from tactica.errors import CombatError, RateLimitedError, redact_text, sanitize_error
from tactica.logging_config import configure_logging
from tactica.routers import auth, campaigns, combat

configure_logging()
logger = logging.getLogger(__name__)

_STATUS_CODES = {
    400: "invalid_request",
    401: "auth_required",
    403: "forbidden",
    404: "not_found",
    405: "method_not_allowed",
    409: "conflict",
    429: "rate_limited",
}

app = FastAPI(
    title="Tactica",
    description="Turn-based tactical combat engine for tabletop campaigns",
    version="0.1.0",
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.exception_handler(CombatError)
async def combat_error_handler(request: Request, exc: CombatError):
    headers = None
    if isinstance(exc, RateLimitedError):
        headers = {"Retry-After": str(exc.retry_after)}
    if exc.status_code >= 500:
        logger.error("%s %s failed: %s", request.method, request.url.path, redact_text(exc.message))
    return JSONResponse(
        status_code=exc.status_code,
        content={"error": redact_text(exc.message), "code": exc.code},
        headers=headers,
    )


@app.exception_handler(RequestValidationError)
async def validation_error_handler(request: Request, exc: RequestValidationError):
    errors = exc.errors()
    first = errors[0] if errors else {}
    location = ".".join(str(part) for part in first.get("loc", ()) if part != "body")
    message = first.get("msg", "Invalid request")
    return JSONResponse(
        status_code=status.HTTP_400_BAD_REQUEST,
        content={"error": f"{location}: {message}" if location else message, "code": "invalid_request"},
    )


@app.exception_handler(StarletteHTTPException)
async def http_error_handler(request: Request, exc: StarletteHTTPException):
    return JSONResponse(
        status_code=exc.status_code,
        content={"error": str(exc.detail), "code": _STATUS_CODES.get(exc.status_code, "error")},
        headers=getattr(exc, "headers", None),
    )


@app.exception_handler(Exception)
async def unhandled_error_handler(request: Request, exc: Exception):
    logger.exception("Unhandled error on %s %s", request.method, request.url.path)
    safe = sanitize_error(exc)
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={"error": "Internal server error", "code": safe["code"] or "internal_error"},
    )


app.include_router(auth.router)
app.include_router(campaigns.router)
app.include_router(combat.router)


@app.get("/health")
async def health_check():
    return {"status": "ok"}
