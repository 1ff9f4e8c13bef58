"""Main FastAPI application."""

import logging
import re
import time
from contextlib import asynccontextmanager

from fastapi import Depends, FastAPI
from fastapi.middleware.cors import CORSMiddleware
from sqlalchemy import text
from sqlalchemy.orm import Session

from . import models  # noqa: F401  (registers tables on Base.metadata)
from .api import nodes_router
from .core.config import settings, ConfigurationError
from .core.logging_config import setup_logging
from .database import engine, Base, get_db, DATABASE_URL, is_postgresql
from .exceptions import HierarchyException
from .middleware.exception_handler import hierarchy_exception_handler
from .middleware.request_context import RequestContextMiddleware
from .repositories import NodeRepository

API_VERSION = "1.0.0"

# Setup logging first
setup_logging(log_level=settings.log_level, log_format=settings.log_format)
logger = logging.getLogger(__name__)


def _mask_url(url: str) -> str:
    """Mask password in database URL for safe logging."""
    return re.sub(r'://([^:]+):([^@]+)@', r'://\1:***@', url)


def _validate_database_connection() -> None:
    """Test that the database is reachable. Exits with a clear message on failure."""
    masked = _mask_url(DATABASE_URL)
    logger.info(f"Connecting to database: {masked}")

    try:
        with engine.connect() as conn:
            conn.execute(text("SELECT 1"))
        logger.info("Database connection verified")
    except Exception as e:
        error_str = str(e)
        if is_postgresql() and ("could not connect" in error_str or "Connection refused" in error_str):
            logger.critical(
                "Cannot connect to PostgreSQL.\n"
                f"  DATABASE_URL: {masked}\n"
                "  Verify PostgreSQL is running and DATABASE_URL is correct.\n"
                f"  Error: {error_str}"
            )
        elif DATABASE_URL.startswith("sqlite"):
            logger.critical(
                f"SQLite database error.\n"
                f"  DATABASE_URL: {masked}\n"
                "  Check that the directory exists and is writable.\n"
                f"  Error: {error_str}"
            )
        else:
            logger.critical(
                f"Database connection failed.\n"
                f"  DATABASE_URL: {masked}\n"
                f"  Error: {error_str}"
            )
        raise SystemExit(1) from e


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Startup / shutdown lifecycle for the orgtree API."""
    logger.info(f"Environment: {settings.environment.value}")
    try:
        settings.validate_production_config()
    except ConfigurationError as e:
        logger.critical(f"STARTUP BLOCKED: {e}")
        raise SystemExit(1) from e

    _validate_database_connection()
    Base.metadata.create_all(bind=engine)

    logger.info(
        "orgtree API started | env=%s | db=%s | strategy=%s | cors=%s",
        settings.environment.value,
        "PostgreSQL" if is_postgresql() else "SQLite",
        settings.hierarchy_strategy.value,
        ",".join(settings.get_cors_origins()),
    )

    yield  # App runs here


app = FastAPI(
    title="orgtree API",
    description=(
        "REST API for hierarchical entities (departments, categories, folders). "
        "Nodes can be created, renamed, moved and deleted with their subtree; "
        "children, parent, descendants and ancestors are queryable. The storage "
        "strategy (adjacency list, closure table or materialized path) is chosen "
        "per deployment with `HIERARCHY_STRATEGY`."
    ),
    version=API_VERSION,
    license_info={"name": "MIT", "url": "https://opensource.org/licenses/MIT"},
    lifespan=lifespan,
)

# Middleware stack (outermost first: CORS wraps request context).
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.get_cors_origins(),
    allow_credentials=True,
    allow_methods=["GET", "POST", "PUT", "DELETE"],
    allow_headers=["Content-Type", "X-Request-ID"],
)
app.add_middleware(RequestContextMiddleware)

app.add_exception_handler(HierarchyException, hierarchy_exception_handler)

app.include_router(nodes_router)


@app.get("/")
def root():
    """Root endpoint."""
    return {
        "name": "orgtree API",
        "version": API_VERSION,
        "strategy": settings.hierarchy_strategy.value,
        "status": "running",
    }


_startup_time = time.monotonic()


@app.get("/health")
def health_check(db: Session = Depends(get_db)):
    """Health check endpoint returning database status, uptime, and node count.

    Never raises: returns degraded status on DB failure so load balancers
    can still poll it without receiving 5xx.
    """
    db_status = "ok"
    node_count = 0
    try:
        db.execute(text("SELECT 1"))
        node_count = NodeRepository(db).count()
    except Exception:
        logger.warning("Health check database query failed", exc_info=True)
        db.rollback()
        db_status = "error"

    return {
        "status": "healthy" if db_status == "ok" else "degraded",
        "db": db_status,
        "uptime_seconds": round(time.monotonic() - _startup_time),
        "version": API_VERSION,
        "node_count": node_count,
    }
