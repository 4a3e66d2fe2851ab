from __future__ import annotations

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.encoders import jsonable_encoder
from fastapi.middleware.cors import CORSMiddleware
from starlette.responses import JSONResponse

from sqlalchemy import text
from sqlalchemy.exc import OperationalError as SAOperationalError

from api.router import api_router
from core.bootstrap import bootstrap
from core.config import settings
from core.database import DatabaseUnavailableError, ENGINE, is_transient_db_connectivity_error
from core.errors import DomainError
from core.logging import setup_logging


logger = logging.getLogger(__name__)


_DB_UNAVAILABLE = {
    "code": "DATABASE_UNAVAILABLE",
    "message": "Database temporarily unavailable. Please retry.",
}


@asynccontextmanager
async def lifespan(_app: FastAPI):
    try:
        bootstrap()
    except SAOperationalError as exc:
        # Keep serving; /health reports the database as down.
        logger.warning("Startup bootstrap skipped: database unreachable (%s)", exc.orig)
    yield


def create_app() -> FastAPI:
    setup_logging(environment=settings.environment, level=settings.log_level)
    is_production = settings.is_production
    app = FastAPI(
        title="eMadrasa API",
        version="0.1.0",
        docs_url=None if is_production else "/docs",
        redoc_url=None if is_production else "/redoc",
        openapi_url=None if is_production else "/openapi.json",
        lifespan=lifespan,
    )

    @app.exception_handler(DomainError)
    def _domain_error(_request: Request, exc: DomainError):
        return JSONResponse(status_code=exc.status_code, content=exc.to_content())

    @app.exception_handler(RequestValidationError)
    def _request_validation_error(_request: Request, exc: RequestValidationError):
        return JSONResponse(
            status_code=400,
            content={
                "code": "VALIDATION_ERROR",
                "message": "Invalid request data",
                "details": jsonable_encoder(exc.errors()),
            },
        )

    @app.exception_handler(DatabaseUnavailableError)
    def _db_unavailable(_request: Request, _exc: DatabaseUnavailableError):
        logger.warning("Database unavailable (503)", exc_info=_exc)
        return JSONResponse(status_code=503, content=_DB_UNAVAILABLE)

    @app.exception_handler(SAOperationalError)
    def _sqlalchemy_operational_error(_request: Request, exc: SAOperationalError):
        if is_transient_db_connectivity_error(exc):
            logger.warning("Database transient connectivity error (503)", exc_info=exc)
            return JSONResponse(status_code=503, content=_DB_UNAVAILABLE)
        logger.error("Database operation failed", exc_info=exc)
        return JSONResponse(
            status_code=500,
            content={
                "code": "DATABASE_ERROR",
                "message": "Database operation failed.",
            },
        )

    @app.exception_handler(Exception)
    def _unhandled(request: Request, exc: Exception):
        logger.exception("Unhandled error on %s %s", request.method, request.url.path, exc_info=exc)
        return JSONResponse(
            status_code=500,
            content={
                "code": "INTERNAL_ERROR",
                "message": "Internal server error",
            },
        )

    allow_origins = [settings.frontend_origin]
    allow_origin_regex = None
    if not is_production:
        # Dev-friendly: allow the configured origin and any localhost port.
        allow_origins.extend(["http://localhost:5173", "http://127.0.0.1:5173"])
        allow_origin_regex = r"^https?://(localhost|127\.0\.0\.1)(:\d+)?$"

    app.add_middleware(
        CORSMiddleware,
        allow_origins=allow_origins,
        allow_origin_regex=allow_origin_regex,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.get("/health")
    def health() -> dict:
        # Always respond; reflect DB availability without crashing.
        db_status = "ok"
        try:
            with ENGINE.connect() as conn:
                conn.execute(text("SELECT 1"))
        except Exception:
            db_status = "down"

        return {"app": "ok", "database": db_status}

    app.include_router(api_router, prefix="/api")
    return app


app = create_app()
