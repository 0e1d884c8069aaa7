"""FastAPI main application entry point."""

import logging
from contextlib import asynccontextmanager

from fastapi import Depends, FastAPI, Request
from fastapi.responses import JSONResponse
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from iis_manager import __version__
from iis_manager.core.config import settings
from iis_manager.core.middleware import request_id_of, setup_middleware
from iis_manager.core.exceptions import IISManagerError, PersistenceError
from iis_manager.db.session import get_db, init_db

from iis_manager.api.iis import router as iis_router
from iis_manager.api.audit import router as audit_router

# Configure logging
logging.basicConfig(
    level=logging.DEBUG if settings.DEBUG else logging.INFO,
    format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
)
logger = logging.getLogger("iis_manager")


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Startup and shutdown events."""
    logger.info("Starting %s (gateway backend: %s)", settings.APP_NAME, settings.GATEWAY_BACKEND)
    init_db()
    logger.info("Audit database ready")

    yield

    logger.info("Shutting down %s", settings.APP_NAME)


app = FastAPI(
    title=settings.APP_NAME,
    description="Minimal API to inspect IIS sites and application pools, restart sites, "
                "recycle pools and review the audit trail of those actions.",
    version=__version__,
    lifespan=lifespan,
    docs_url="/docs",
    redoc_url="/redoc",
)

# Middleware
setup_middleware(app)


@app.exception_handler(IISManagerError)
async def iis_manager_exception_handler(request: Request, exc: IISManagerError):
    request_id = request_id_of(request)
    content = {"detail": exc.message}
    if isinstance(exc, PersistenceError):
        content["actionCompleted"] = exc.action_completed
    if exc.status_code >= 500:
        content["requestId"] = request_id
        logger.error("[%s] %s %s failed: %s", request_id, request.method, request.url.path, exc.message)
    return JSONResponse(status_code=exc.status_code, content=content)


# Register routers
app.include_router(iis_router, prefix="/api")
app.include_router(audit_router, prefix="/api")


@app.get("/")
async def root():
    return {
        "name": settings.APP_NAME,
        "version": __version__,
        "docs": "/docs",
    }


@app.get("/api/health")
def health(db: Session = Depends(get_db)):
    """Health check: audit database reachability."""
    db_ok = False
    try:
        db.execute(text("SELECT 1"))
        db_ok = True
    except SQLAlchemyError as e:
        logger.warning("Health check: audit database unavailable: %s", e)

    return {
        "database": "ok" if db_ok else "error",
        "gateway": settings.GATEWAY_BACKEND,
        "status": "healthy" if db_ok else "degraded",
    }
