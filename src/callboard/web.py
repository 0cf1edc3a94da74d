from __future__ import annotations

import logging

from dotenv import load_dotenv

load_dotenv()

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from callboard.db import init_db
from callboard.exceptions import (
    CallboardError,
    ConflictError,
    CredentialMissing,
    NotFoundError,
    StoreError,
    UpstreamError,
    UpstreamFormatError,
    ValidationError,
)
from callboard.routes import customers, notes, settings, summaries, sync, vapi

logger = logging.getLogger(__name__)

_STATUS = {
    ValidationError: 400,
    CredentialMissing: 400,
    NotFoundError: 404,
    ConflictError: 409,
    UpstreamError: 502,
    UpstreamFormatError: 502,
    StoreError: 500,
}


async def _handle_error(request: Request, exc: CallboardError) -> JSONResponse:
    status = next((code for cls, code in _STATUS.items() if isinstance(exc, cls)), 500)
    if isinstance(exc, ValidationError):
        body = {"error": "Validation failed", "details": exc.errors}
    elif isinstance(exc, UpstreamError):
        body = {"error": str(exc), "status": exc.status_code, "details": exc.body}
    else:
        body = {"error": str(exc)}
    if status >= 500:
        logger.error("%s %s failed: %s", request.method, request.url.path, exc)
    return JSONResponse(body, status_code=status)


def create_app() -> FastAPI:
    init_db()

    app = FastAPI(title="Callboard")
    app.add_exception_handler(CallboardError, _handle_error)

    app.include_router(customers.router)
    app.include_router(notes.router)
    app.include_router(sync.router)
    app.include_router(vapi.router)
    app.include_router(summaries.router)
    app.include_router(settings.router)

    @app.get("/health")
    async def health():
        return {"status": "ok"}

    return app
