"""Global error handlers ensuring request_id is included in JSON responses."""

from __future__ import annotations

from fastapi import FastAPI, Request
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from matchmaker.domain.matching.exceptions import MatchingError
from matchmaker.obs.logging import current_request_id


def get_request_id(request: Request, default: str = "unknown") -> str:
    return getattr(request.state, "request_id", None) or current_request_id() or request.headers.get("X-Request-Id") or default


def install_error_handlers(app: FastAPI) -> None:
    @app.exception_handler(StarletteHTTPException)
    async def http_exc_handler(request: Request, exc: StarletteHTTPException):  # type: ignore[override]
        payload = {"detail": exc.detail, "request_id": get_request_id(request)}
        return JSONResponse(status_code=exc.status_code, content=payload)

    @app.exception_handler(RequestValidationError)
    async def validation_exc_handler(request: Request, exc: RequestValidationError):  # type: ignore[override]
        payload = {
            "detail": "validation_error",
            "errors": jsonable_encoder(exc.errors()),
            "request_id": get_request_id(request),
        }
        return JSONResponse(status_code=422, content=payload)

    @app.exception_handler(MatchingError)
    async def matching_exc_handler(request: Request, exc: MatchingError):  # type: ignore[override]
        payload = {"detail": exc.reason, "request_id": get_request_id(request)}
        return JSONResponse(status_code=422, content=payload)
