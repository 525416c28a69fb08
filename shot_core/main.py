"""FastAPI application factory."""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from shot_core.api import chases, fights, locations
from shot_core.domain.errors import ConflictError, EngineError, NotFoundError, ValidationError
from shot_core.infra.config import settings

logger = logging.getLogger(__name__)


def _status_for(exc: EngineError) -> int:
    if isinstance(exc, NotFoundError):
        return 404
    if isinstance(exc, ConflictError):
        return 409
    if isinstance(exc, ValidationError):
        return 422
    return 400


async def engine_error_handler(request: Request, exc: EngineError) -> JSONResponse:
    status = _status_for(exc)
    logger.info("%s %s -> %d: %s", request.method, request.url.path, status, exc)
    return JSONResponse(
        status_code=status,
        content={"detail": str(exc), "error": type(exc).__name__},
    )


@asynccontextmanager
async def lifespan(app: FastAPI):
    logger.info("Starting %s", settings.app_name)
    yield
    from shot_core.infra.db import engine

    await engine.dispose()
    logger.info("Stopped %s", settings.app_name)


def create_app() -> FastAPI:
    logging.basicConfig(
        level=settings.log_level.upper(),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    app = FastAPI(title=settings.app_name, debug=settings.debug, lifespan=lifespan)
    app.add_exception_handler(EngineError, engine_error_handler)
    app.include_router(fights.router)
    app.include_router(chases.router)
    app.include_router(locations.router)

    @app.get("/health")
    async def health() -> dict:
        return {"status": "ok", "engine": settings.app_name}

    return app


app = create_app()
