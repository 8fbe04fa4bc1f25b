"""
Bill Tracker web service.

Run locally with ``python -m api.app`` (reload enabled, docs at /docs), or
point uvicorn at ``api.app:app`` in production.  APP_DB_PATH selects the
database; see utils.config.AppConfig for the remaining settings.

Logging is structured JSON when APP_LOG_FORMAT=json, plain text otherwise.
CORS origins come from APP_CORS_ORIGINS.  Every error, whether raised by a
route, by request validation, or unhandled, is returned as
``{"error", "detail", "status_code"}``.
"""

import json
import logging
import sqlite3
import time
import uuid
from contextlib import asynccontextmanager
from http import HTTPStatus
from pathlib import Path

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from api import database as api_database
from api import deps
from api.routes import bills, update
from pipeline.update_lock import UpdateLock
from utils.config import AppConfig
from utils.database import create_database, get_connection, get_table_count

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
                    "request_id"):
            if hasattr(record, key):
                data[key] = getattr(record, key)
        if record.exc_info:
            data["exc_info"] = self.formatException(record.exc_info)
        return json.dumps(data)


_logger = logging.getLogger("bill_api")
_handler = logging.StreamHandler()
if _cfg.log_format == "json":
    _handler.setFormatter(_JsonFormatter())
else:
    _handler.setFormatter(
        logging.Formatter("%(asctime)s %(levelname)s %(name)s %(message)s")
    )
logging.basicConfig(handlers=[_handler], level=logging.INFO, force=True)


def _error_body(status_code: int, detail) -> dict:
    try:
        error = HTTPStatus(status_code).phrase
    except ValueError:
        error = "Error"
    return {"error": error, "detail": detail, "status_code": status_code}


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Create the schema on startup; release the update lock on shutdown."""
    db_path = api_database.get_db_path()
    create_database(db_path).close()
    _logger.info("Serving bills from %s", db_path)
    try:
        yield
    finally:
        # A request thread killed mid-update must not leave the lock held
        deps.get_update_lock().release()


def create_app(
    db_path: Path | None = None,
    config: AppConfig | None = None,
    lock: UpdateLock | None = None,
) -> FastAPI:
    """Build the service.

    Each argument overrides what would otherwise come from the environment:
    the database file, the AppConfig, and the update lock (a FileLock on
    ``config.lock_file`` when omitted).
    """
    cfg = config or _cfg
    deps.set_config(cfg)
    api_database.set_db_path(db_path if db_path is not None else cfg.db_path)
    deps.set_update_lock(lock)

    app = FastAPI(
        title="Bill Tracker API",
        summary="REST API for browsing congressional bills and their cost estimates.",
        description=(
            "## Bill Tracker API\n\n"
            "Lists finalized bills with their CBO cost projections and the queue "
            "of newly published bills awaiting review.\n\n"
            "### Paging\n"
            f"- Lists return up to {cfg.page_size} bills per page.\n"
            "- `next` is the URL of the following page, or `null` on the last one.\n\n"
            "### Updates\n"
            "When the review queue is stale, `GET /api/v1/bills` returns an "
            "`update` URL.  POSTing to it refreshes the queue; concurrent "
            "triggers are dropped while one update is running."
        ),
        version="1.0.0",
        lifespan=lifespan,
        docs_url="/docs",
        redoc_url="/redoc",
        openapi_tags=[
            {
                "name": "bills",
                "description": "List, filter, sort, retrieve and finalize bills.",
            },
            {
                "name": "update",
                "description": "Refresh the pending review queue.",
            },
            {
                "name": "meta",
                "description": "Health check.",
            },
        ],
    )

    # ── CORS middleware ───────────────────────────────────────────────────────
    app.add_middleware(
        CORSMiddleware,
        allow_origins=cfg.cors_origins,
        allow_credentials=False,
        allow_methods=["GET", "POST", "HEAD", "OPTIONS"],
        allow_headers=["*"],
    )

    # ── Cache-Control ─────────────────────────────────────────────────────────

    @app.middleware("http")
    async def cache_control_middleware(request: Request, call_next):
        """Bill lists change with every finalize and update; never cache them."""
        response = await call_next(request)
        if request.url.path.startswith(f"{deps.API_PREFIX}/bills"):
            response.headers["Cache-Control"] = "no-cache"
        return response

    # ── Request logging middleware ────────────────────────────────────────────

    @app.middleware("http")
    async def log_requests(request: Request, call_next):
        """Log each request with a short request ID for tracing."""
        request_id = str(uuid.uuid4())[:8]
        start = time.monotonic()
        client_ip = request.client.host if request.client else "unknown"
        path = request.url.path

        response = await call_next(request)
        duration_ms = (time.monotonic() - start) * 1000
        response.headers["X-Request-ID"] = request_id

        if cfg.log_format == "json":
            _logger.info(
                "request",
                extra={
                    "method": request.method,
                    "path": path,
                    "status": response.status_code,
                    "duration_ms": round(duration_ms, 1),
                    "client_ip": client_ip,
                    "request_id": request_id,
                },
            )
        else:
            _logger.info(
                "method=%s path=%s status=%d duration_ms=%.1f ip=%s rid=%s",
                request.method, path, response.status_code, duration_ms,
                client_ip, request_id,
            )
        return response

    # ── Error handling ────────────────────────────────────────────────────────

    def _error(status_code: int, detail, headers=None) -> JSONResponse:
        return JSONResponse(
            status_code=status_code,
            content=_error_body(status_code, detail),
            headers=headers,
        )

    @app.exception_handler(Exception)
    async def unhandled_error(request: Request, exc: Exception):
        _logger.exception("Unhandled error on %s %s", request.method, request.url.path)
        return _error(500, str(exc))

    @app.exception_handler(ValueError)
    async def bad_value(request: Request, exc: ValueError):
        return _error(400, str(exc))

    @app.exception_handler(RequestValidationError)
    async def bad_parameters(request: Request, exc: RequestValidationError):
        """Report FastAPI's parameter and body validation failures as 400."""
        problems = []
        for err in exc.errors():
            where = ".".join(str(part) for part in err["loc"])
            problems.append(f"{where}: {err['msg']}")
        return _error(400, "; ".join(problems))

    @app.exception_handler(StarletteHTTPException)
    async def http_error(request: Request, exc: StarletteHTTPException):
        return _error(exc.status_code, exc.detail, getattr(exc, "headers", None))

    # ── Health check ──────────────────────────────────────────────────────────

    @app.get("/health", tags=["meta"], summary="Health check")
    def health():
        """Report row counts, or 503 when the database is missing or unreadable."""
        db_path = api_database.get_db_path()
        status = {"database": str(db_path)}
        if not db_path.exists():
            return JSONResponse(status_code=503, content={**status, "status": "no_database"})
        conn = None
        try:
            conn = get_connection(db_path)
            status["bills"] = get_table_count(conn, "Bills")
            status["pending_bills"] = get_table_count(conn, "PendingBills")
        except sqlite3.Error as e:
            _logger.warning("Health check failed: %s", e)
            return JSONResponse(
                status_code=503,
                content={**status, "status": "degraded", "error": str(e)},
            )
        finally:
            if conn is not None:
                conn.close()
        return {"status": "ok", **status}

    # ── Register routers ──────────────────────────────────────────────────────

    app.include_router(bills.router,  prefix=deps.API_PREFIX)
    app.include_router(update.router, prefix=deps.API_PREFIX)

    return app


# Module-level instance served by uvicorn
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
