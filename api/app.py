"""
FastAPI application factory.

Usage:
    python -m api.app                    # Dev server on port 8000
    APP_DB_PATH=/data/taskdesk.sqlite python -m api.app

OpenAPI docs available at http://localhost:8000/docs after starting.

Proxy-aware client IPs via TRUSTED_PROXIES, per-IP rate limits with periodic
counter cleanup, structured JSON logging when APP_LOG_FORMAT=json, and CORS
origins from APP_CORS_ORIGINS.
"""

import json
import logging
import os
import sqlite3
import time
import uuid
from collections import defaultdict
from contextlib import asynccontextmanager
from pathlib import Path

from fastapi import FastAPI, Request
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from api.database import TABLES, ensure_database, get_db_path, set_db_path
from api.routes import clients, dashboard, download, profile, public, tasks, team_members, todos
from utils.config import AppConfig
from utils.database import get_table_count

# ── Configuration ─────────────────────────────────────────────────────────────
_cfg = AppConfig.from_env()

# ── Structured JSON logging ───────────────────────────────────────────────────


class _JsonFormatter(logging.Formatter):
    """Emit log records as newline-delimited JSON."""

    def format(self, record: logging.LogRecord) -> str:
        data: dict = {
            "timestamp": self.formatTime(record, "%Y-%m-%dT%H:%M:%S"),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        # Merge extra fields added via logger.info("...", extra={...})
        for key in ("method", "path", "status", "duration_ms", "client_ip",
                    "request_id", "principal"):
            if hasattr(record, key):
                data[key] = getattr(record, key)
        if record.exc_info:
            data["exc_info"] = self.formatException(record.exc_info)
        return json.dumps(data)


_logger = logging.getLogger("taskdesk_api")
_handler = logging.StreamHandler()
if _cfg.log_format == "json":
    _handler.setFormatter(_JsonFormatter())
else:
    _handler.setFormatter(
        logging.Formatter("%(asctime)s %(levelname)s %(name)s %(message)s")
    )
logging.basicConfig(handlers=[_handler], level=logging.INFO, force=True)

# ── Rate limiting state with memory bounds ────────────────────────────────────
# Matched by path prefix; anything else gets the default limit.
_RATE_LIMITS: dict[str, int] = {
    "/api/v1/public":   _cfg.rate_limit_public,
    "/api/v1/download": _cfg.rate_limit_download,
}
_DEFAULT_RATE_LIMIT = _cfg.rate_limit_default
_rate_counters: dict[str, dict[str, list]] = defaultdict(lambda: defaultdict(list))
_MAX_TRACKED_IPS = 10_000
_last_cleanup: float = 0.0
_CLEANUP_INTERVAL = 300.0  # 5 minutes


def _rate_limit_for(path: str) -> int:
    for prefix, limit in _RATE_LIMITS.items():
        if path.startswith(prefix):
            return limit
    return _DEFAULT_RATE_LIMIT


def _cleanup_rate_counters() -> None:
    """Remove stale rate counter entries to bound memory usage."""
    global _last_cleanup
    now = time.time()
    if now - _last_cleanup < _CLEANUP_INTERVAL:
        return
    _last_cleanup = now
    window_start = now - 60.0
    to_delete = []
    for ip, paths in _rate_counters.items():
        for path in list(paths.keys()):
            paths[path] = [t for t in paths[path] if t > window_start]
            if not paths[path]:
                del paths[path]
        if not paths:
            to_delete.append(ip)
    for ip in to_delete:
        del _rate_counters[ip]
    # Still over the cap: evict the IPs with the fewest recent hits
    if len(_rate_counters) > _MAX_TRACKED_IPS:
        excess = len(_rate_counters) - _MAX_TRACKED_IPS
        oldest = sorted(
            _rate_counters.keys(),
            key=lambda ip: sum(len(v) for v in _rate_counters[ip].values()),
        )[:excess]
        for ip in oldest:
            del _rate_counters[ip]


def reset_rate_limits() -> None:
    _rate_counters.clear()


def _get_client_ip(request: Request) -> str:
    """Return the real client IP, respecting X-Forwarded-For from trusted proxies."""
    direct_ip = request.client.host if request.client else "unknown"
    if not _cfg.trusted_proxies:
        return direct_ip
    if direct_ip not in _cfg.trusted_proxies:
        return direct_ip
    xff = request.headers.get("X-Forwarded-For", "")
    if xff:
        # leftmost entry is the originating client
        real_ip = xff.split(",")[0].strip()
        if real_ip:
            return real_ip
    return direct_ip


_app_start_time: float = time.time()
_metrics: dict = {
    "request_count": 0,
    "error_count": 0,
    "blocked_count": 0,
}


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Create the database and schema on startup if they are missing."""
    ensure_database(get_db_path())
    yield


def _error_body(error: str, detail, status_code: int) -> dict:
    return {"error": error, "detail": detail, "status_code": status_code}


_ERROR_NAMES = {
    400: "Bad request",
    401: "Unauthorized",
    403: "Forbidden",
    404: "Not found",
    405: "Method not allowed",
    429: "Too many requests",
    503: "Service unavailable",
}


def create_app(db_path: Path | None = None) -> FastAPI:
    """Create and configure the FastAPI application.

    Args:
        db_path: Override the database path (useful for testing).  The file
            and schema are created immediately.

    Returns:
        Configured FastAPI application instance.
    """
    if db_path is not None:
        set_db_path(db_path)
        ensure_database(db_path)
    tasks.invalidate_aggregates()

    app = FastAPI(
        title="TaskDesk API",
        summary="Clients, tasks, team members and to-dos for an accounting practice.",
        description=(
            "## TaskDesk API\n\n"
            "Back end for a tax and accounting practice: clients, their tasks "
            "(GST, Audit, IT Notice, TDS and so on), the team working on them, "
            "personal to-do lists and revenue / due-date dashboards.\n\n"
            "### Key concepts\n"
            "- **Identity** is the `X-Principal` request header. Without it the "
            "caller is anonymous and only `/api/v1/public` and public downloads work.\n"
            "- **Timestamps** are integer nanoseconds since the Unix epoch (UTC).\n"
            "- **Bills** are stored as entered; amounts are parsed from them for totals.\n\n"
            "### Rate limits\n"
            f"- `/api/v1/public`: {_cfg.rate_limit_public} req/min per IP\n"
            f"- `/api/v1/download`: {_cfg.rate_limit_download} req/min per IP\n"
            f"- All other endpoints: {_cfg.rate_limit_default} req/min per IP\n\n"
            "Returns `429 Too Many Requests` with `Retry-After: 60` when exceeded."
        ),
        version="1.0.0",
        lifespan=lifespan,
        docs_url="/docs",
        redoc_url="/redoc",
        openapi_tags=[
            {"name": "profile", "description": "Caller profile and role management."},
            {"name": "clients", "description": "Client records, bulk edits and spreadsheet import."},
            {
                "name": "tasks",
                "description": (
                    "Task CRUD, partial updates, filters, date searches, "
                    "multi-column sorting and spreadsheet import."
                ),
            },
            {"name": "team-members", "description": "Team roster and spreadsheet import."},
            {"name": "todos", "description": "Personal to-do lists scoped to the caller."},
            {"name": "dashboard", "description": "Revenue and due-date cards with drill-down data."},
            {"name": "public", "description": "Unauthenticated read-only search."},
            {"name": "download", "description": "CSV and Excel exports."},
            {"name": "meta", "description": "Health check."},
        ],
    )

    # ── CORS middleware ───────────────────────────────────────────────────────
    app.add_middleware(
        CORSMiddleware,
        allow_origins=_cfg.cors_origins,
        allow_credentials=False,
        allow_methods=["GET", "POST", "PUT", "PATCH", "DELETE", "OPTIONS"],
        allow_headers=["*"],
        expose_headers=["X-Total-Count", "X-Request-ID", "Content-Disposition"],
    )

    # ── Request logging + rate limiting middleware ────────────────────────────

    @app.middleware("http")
    async def log_and_rate_limit(request: Request, call_next):
        """Log each request, enforce per-IP rate limits, and record metrics."""
        request_id = str(uuid.uuid4())[:8]
        start = time.monotonic()
        client_ip = _get_client_ip(request)
        path = request.url.path

        _cleanup_rate_counters()

        # Health check bypass: not rate limited
        if path == "/health":
            return await call_next(request)

        limit = _rate_limit_for(path)
        now = time.time()
        window_start = now - 60.0
        hits = _rate_counters[client_ip][path]
        _rate_counters[client_ip][path] = [t for t in hits if t > window_start]
        if len(_rate_counters[client_ip][path]) >= limit:
            _metrics["blocked_count"] += 1
            _logger.warning(
                "rate_limited ip=%s path=%s limit=%d", client_ip, path, limit
            )
            return JSONResponse(
                status_code=429,
                content=_error_body("Too many requests", None, 429),
                headers={"Retry-After": "60"},
            )
        _rate_counters[client_ip][path].append(now)

        _metrics["request_count"] += 1
        response = await call_next(request)
        duration_ms = (time.monotonic() - start) * 1000
        if response.status_code >= 500:
            _metrics["error_count"] += 1

        response.headers["X-Request-ID"] = request_id

        if _cfg.log_format == "json":
            _logger.info(
                "request",
                extra={
                    "method": request.method,
                    "path": path,
                    "status": response.status_code,
                    "duration_ms": round(duration_ms, 1),
                    "client_ip": client_ip,
                    "request_id": request_id,
                    "principal": request.headers.get("X-Principal", ""),
                },
            )
        else:
            _logger.info(
                "method=%s path=%s status=%d duration_ms=%.1f ip=%s rid=%s",
                request.method, path, response.status_code, duration_ms,
                client_ip, request_id,
            )
        if duration_ms > 500:
            _logger.warning(
                "slow_request method=%s path=%s duration_ms=%.1f",
                request.method, path, duration_ms,
            )
        return response

    # ── Security headers ──────────────────────────────────────────────────────

    @app.middleware("http")
    async def security_headers(request: Request, call_next):
        """Add X-Content-Type-Options and X-Frame-Options to every response."""
        response = await call_next(request)
        response.headers["X-Content-Type-Options"] = "nosniff"
        response.headers["X-Frame-Options"] = "DENY"
        return response

    # ── Error handling ────────────────────────────────────────────────────────

    @app.exception_handler(Exception)
    async def generic_exception_handler(request: Request, exc: Exception):
        """Catch unhandled exceptions and return JSON instead of HTML traceback."""
        _logger.exception("unhandled_error path=%s", request.url.path)
        return JSONResponse(
            status_code=500,
            content=_error_body("Internal server error", str(exc), 500),
        )

    @app.exception_handler(ValueError)
    async def value_error_handler(request: Request, exc: ValueError):
        return JSONResponse(
            status_code=400,
            content=_error_body("Bad request", str(exc), 400),
        )

    @app.exception_handler(StarletteHTTPException)
    async def http_exception_handler(request: Request, exc: StarletteHTTPException):
        return JSONResponse(
            status_code=exc.status_code,
            content=_error_body(_ERROR_NAMES.get(exc.status_code, "Error"), exc.detail, exc.status_code),
            headers=getattr(exc, "headers", None),
        )

    @app.exception_handler(RequestValidationError)
    async def validation_error_handler(request: Request, exc: RequestValidationError):
        return JSONResponse(
            status_code=422,
            content=_error_body("Validation error", jsonable_encoder(exc.errors()), 422),
        )

    # ── Health check ──────────────────────────────────────────────────────────

    @app.get("/health", tags=["meta"], summary="Health check")
    def health():
        """Return 200 OK with record counts if the database is reachable."""
        path = get_db_path()
        if not path.exists():
            return JSONResponse(
                status_code=503,
                content={"status": "no_database", "database": str(path)},
            )
        try:
            conn = sqlite3.connect(str(path))
            try:
                counts = {table: get_table_count(conn, table) for table in TABLES}
            finally:
                conn.close()
        except sqlite3.Error as e:
            return JSONResponse(
                status_code=503,
                content={"status": "degraded", "error": str(e)},
            )
        return {
            "status": "ok",
            "database": str(path),
            "db_size_bytes": os.path.getsize(str(path)),
            "uptime_seconds": round(time.time() - _app_start_time, 2),
            "counts": counts,
            "request_count": _metrics["request_count"],
            "error_count": _metrics["error_count"],
            "blocked_requests": _metrics["blocked_count"],
        }

    # ── Register routers ──────────────────────────────────────────────────────

    prefix = "/api/v1"
    app.include_router(profile.router,      prefix=prefix)
    app.include_router(clients.router,      prefix=prefix)
    app.include_router(tasks.router,        prefix=prefix)
    app.include_router(team_members.router, prefix=prefix)
    app.include_router(todos.router,        prefix=prefix)
    app.include_router(dashboard.router,    prefix=prefix)
    app.include_router(public.router,       prefix=prefix)
    app.include_router(download.router,     prefix=prefix)

    return app


# Singleton instance for uvicorn
app = create_app()


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(
        "api.app:app",
        host=_cfg.api_host,
        port=_cfg.api_port,
        reload=True,
        log_level="info",
    )
