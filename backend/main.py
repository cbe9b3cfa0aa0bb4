"""
main.py - SoulMirror FastAPI application entry point.

Start with: uvicorn backend.main:app --reload --port 8787
       or:  python -m backend.main   (port from settings.port)
(run from the project root)
"""
import logging
from contextlib import asynccontextmanager
from datetime import datetime, timezone
from pathlib import Path
from typing import Any

import httpx
from fastapi import FastAPI, HTTPException, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import FileResponse, JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from backend.config import settings
from backend.errors import SoulMirrorError

# ---------------------------------------------------------------------------
# Logging - configured before anything else
# ---------------------------------------------------------------------------
logging.basicConfig(
    level=logging.DEBUG if settings.debug else logging.INFO,
    format="%(asctime)s %(levelname)s %(name)s - %(message)s",
)
logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Lifespan - startup & shutdown hooks
# ---------------------------------------------------------------------------
@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Startup:
      1. In-memory payment store (lost on restart - intentionally)
      2. Gemini client over a shared httpx.AsyncClient
    Shutdown:
      1. Close the httpx connection pool
    """
    from backend.agents.payment_agent.store import PaymentStore
    from backend.agents.reading_agent.llm_service import GeminiClient

    # --- 1. Payment sessions ---
    app.state.payment_store = PaymentStore(
        ttl_seconds=settings.payment_ttl_seconds,
        default_amount=settings.payment_amount,
    )
    logger.info(
        "Payment store ready require_payment=%s ttl=%ds",
        settings.require_payment, settings.payment_ttl_seconds,
    )

    # --- 2. Gemini client - singleton for HTTP connection pool reuse ---
    app.state.gemini = GeminiClient(
        http=httpx.AsyncClient(timeout=settings.gemini_timeout_seconds),
        api_key=settings.gemini_api_key,
        model=settings.gemini_model,
        base_url=settings.gemini_base_url,
    )
    if settings.gemini_api_key:
        logger.info("Gemini client initialized model=%s", settings.gemini_model)
    else:
        logger.warning("GEMINI_API_KEY not set - /api/hook and /api/report run in disabled mode")

    logger.info("SoulMirror v%s starting up", settings.app_version)
    yield

    # --- Shutdown ---
    await app.state.gemini.aclose()
    logger.info("Gemini HTTP client closed")
    logger.info("SoulMirror shutting down")


# ---------------------------------------------------------------------------
# FastAPI application instance
# ---------------------------------------------------------------------------
app = FastAPI(
    title="SoulMirror API",
    version=settings.app_version,
    description=(
        "Gemini-backed MBTI × zodiac × tarot readings behind a mock QR-code paywall."
    ),
    lifespan=lifespan,
    docs_url="/api/docs",
    redoc_url="/api/redoc",
    openapi_url="/api/openapi.json",
)

# ---------------------------------------------------------------------------
# CORS middleware - origins from settings ("*" by default for the SPA dev server)
# ---------------------------------------------------------------------------
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins_list,
    allow_credentials="*" not in settings.cors_origins_list,
    allow_methods=["*"],
    allow_headers=["*"],
)


# ---------------------------------------------------------------------------
# Error response helper
# ---------------------------------------------------------------------------
def _make_error_response(
    code: str,
    message: str,
    details: list[dict[str, Any]] | None = None,
    status_code: int = 500,
) -> JSONResponse:
    """Build a standard {error, code[, details]} response. error stays a plain string for the SPA."""
    body: dict[str, Any] = {"error": message, "code": code}
    if details:
        body["details"] = details
    return JSONResponse(status_code=status_code, content=body)


# ---------------------------------------------------------------------------
# Global exception handlers - registered BEFORE routers
# ---------------------------------------------------------------------------
@app.exception_handler(SoulMirrorError)
async def domain_exception_handler(
    request: Request, exc: SoulMirrorError
) -> JSONResponse:
    """
    Paywall, lookup, QR and Gemini failures raised from business logic.
    The message is already client-safe (Gemini errors pass through to_short_error).
    """
    if exc.status_code >= 500:
        logger.error("%s on %s %s: %s", exc.code, request.method, request.url.path, exc.message)
    else:
        logger.info("%s on %s %s", exc.code, request.method, request.url.path)
    return _make_error_response(
        code=exc.code,
        message=exc.message,
        status_code=exc.status_code,
    )


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(
    request: Request, exc: RequestValidationError
) -> JSONResponse:
    """
    Converts Pydantic / FastAPI 422 validation errors to standard format.
    Returns ALL field violations in one response.
    """
    details = []
    for error in exc.errors():
        # Build dot-notation field path, excluding the top-level 'body'/'query' loc
        field = ".".join(str(loc) for loc in error["loc"] if loc not in ("body", "query"))
        details.append({"field": field or None, "issue": error["msg"]})
    return _make_error_response(
        code="VALIDATION_ERROR",
        message="Request validation failed",
        details=details,
        status_code=422,
    )


@app.exception_handler(StarletteHTTPException)
async def http_exception_handler(
    request: Request, exc: StarletteHTTPException
) -> JSONResponse:
    """
    Converts FastAPI HTTPException to standard error format with semantic code.
    """
    code_map = {
        400: "BAD_REQUEST",
        402: "PAYMENT_REQUIRED",
        404: "NOT_FOUND",
        405: "METHOD_NOT_ALLOWED",
        410: "EXPIRED",
        422: "VALIDATION_ERROR",
    }
    code = code_map.get(exc.status_code, f"HTTP_{exc.status_code}")
    return _make_error_response(
        code=code,
        message=str(exc.detail),
        status_code=exc.status_code,
    )


@app.exception_handler(Exception)
async def unhandled_exception_handler(
    request: Request, exc: Exception
) -> JSONResponse:
    """
    Catch-all for unexpected errors.
    DEBUG=true  → includes exception type & message in details (dev only).
    DEBUG=false → generic message; full traceback logged server-side only.
    """
    logger.error(
        "Unhandled exception on %s %s",
        request.method,
        request.url.path,
        exc_info=True,
    )
    if settings.debug:
        details = [{"issue": f"{type(exc).__name__}: {exc}"}]
        message = "An unexpected error occurred (debug details included)"
    else:
        details = []
        message = "An unexpected error occurred"
    return _make_error_response(
        code="INTERNAL_ERROR",
        message=message,
        details=details,
        status_code=500,
    )


# ---------------------------------------------------------------------------
# Health endpoint
# ---------------------------------------------------------------------------
@app.get("/api/health", tags=["System"])
async def health_check() -> dict:
    """Returns service health status."""
    return {
        "status": "ok",
        "version": settings.app_version,
        "timestamp": datetime.now(timezone.utc).isoformat(),
    }


# ---------------------------------------------------------------------------
# Agent routers
# ---------------------------------------------------------------------------
from backend.agents.payment_agent.routes import router as payment_router
from backend.agents.payment_agent.routes import wallet_router
from backend.agents.reading_agent.routes import router as reading_router

app.include_router(payment_router)
app.include_router(wallet_router)
app.include_router(reading_router)


# ---------------------------------------------------------------------------
# Built SPA - served only when the dist directory exists
# ---------------------------------------------------------------------------
def mount_spa(target: FastAPI, directory: Path) -> bool:
    """
    Serve files from directory, falling back to index.html for client-side routes.
    /api/* is never answered with the SPA. Must be called after all routers.
    """
    root = directory.resolve()
    if not (root / "index.html").is_file():
        return False

    @target.get("/{full_path:path}", include_in_schema=False)
    async def spa(full_path: str) -> FileResponse:
        if full_path == "api" or full_path.startswith("api/"):
            raise HTTPException(status_code=404, detail="Not Found")
        candidate = (root / full_path).resolve()
        if full_path and candidate.is_file() and candidate.is_relative_to(root):
            return FileResponse(candidate)
        return FileResponse(root / "index.html")

    logger.info("Serving SPA from %s", root)
    return True


mount_spa(app, Path(settings.static_dir))


if __name__ == "__main__":
    import uvicorn

    uvicorn.run("backend.main:app", host="0.0.0.0", port=settings.port, log_level="info")
