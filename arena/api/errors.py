"""Map domain errors onto HTTP responses."""

import logging

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from ..errors import InvalidTransition, RecordNotFound, StoreError, VersionConflict

logger = logging.getLogger(__name__)


def register_error_handlers(app: FastAPI):
    @app.exception_handler(RecordNotFound)
    async def not_found(request: Request, exc: RecordNotFound):
        return JSONResponse(status_code=404, content={"detail": str(exc)})

    @app.exception_handler(VersionConflict)
    async def conflict(request: Request, exc: VersionConflict):
        return JSONResponse(
            status_code=409,
            content={"detail": str(exc), "expected": exc.expected, "actual": exc.actual},
        )

    @app.exception_handler(InvalidTransition)
    async def bad_transition(request: Request, exc: InvalidTransition):
        return JSONResponse(status_code=400, content={"detail": str(exc)})

    @app.exception_handler(StoreError)
    async def store_failed(request: Request, exc: StoreError):
        logger.error(f"{request.method} {request.url.path} failed: {exc}")
        return JSONResponse(status_code=502, content={"detail": f"Data store error: {exc}"})
