from __future__ import annotations

import logging
from http import HTTPStatus

from fastapi import FastAPI, Request
from fastapi import HTTPException as FastAPIHTTPException
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException

logger = logging.getLogger(__name__)

_MISSING_TYPES = {"missing", "string_too_short", "too_short"}


class ApiError(FastAPIHTTPException):
    """An HTTP error rendered as ``{"error": ..., "message": ...}``."""

    def __init__(self, status_code: int, error: str, message: str):
        super().__init__(status_code=status_code, detail=message)
        self.error = error


class UpstreamError(Exception):
    """An external service call failed or returned something unusable."""


class MisconfiguredError(Exception):
    """A setting required by an external service is empty."""


def error_body(error: str, message: str) -> dict:
    return {"error": error, "message": message}


def _phrase(status_code: int) -> str:
    try:
        return HTTPStatus(status_code).phrase
    except ValueError:
        return "Error"


async def _http_exception_handler(request: Request, exc: HTTPException) -> JSONResponse:
    error = getattr(exc, "error", None) or _phrase(exc.status_code)
    allow = (exc.headers or {}).get("Allow")
    if exc.status_code == 405 and allow:
        message = f"Only {allow} is supported."
    else:
        message = exc.detail if isinstance(exc.detail, str) else str(exc.detail)
    return JSONResponse(
        status_code=exc.status_code,
        content=error_body(error, message),
        headers=getattr(exc, "headers", None),
    )


def _field_names(errors: list[dict]) -> str:
    names = []
    for err in errors:
        loc = [str(part) for part in err.get("loc", ()) if part != "body"]
        if loc:
            names.append(".".join(loc))
    return ", ".join(dict.fromkeys(names))


async def _validation_exception_handler(
    request: Request, exc: RequestValidationError
) -> JSONResponse:
    errors = exc.errors()
    types = {err.get("type") for err in errors}

    if "json_invalid" in types:
        body = error_body("Invalid JSON", "Request body must be valid JSON.")
    elif "missing_fields" in types:
        # raised by model validators that know which combination is required
        message = next(e["msg"] for e in errors if e.get("type") == "missing_fields")
        body = error_body("Missing fields", message)
    elif types & _MISSING_TYPES:
        missing = _field_names([e for e in errors if e.get("type") in _MISSING_TYPES])
        body = error_body(
            "Missing fields",
            f"The request body must include non-empty: {missing}." if missing
            else "The request body is required.",
        )
    else:
        body = error_body(
            "Invalid fields",
            f"Invalid value for: {_field_names(errors) or 'request'}.",
        )

    logger.info("Rejected %s %s: %s", request.method, request.url.path, body["message"])
    return JSONResponse(status_code=400, content=body)


async def _upstream_exception_handler(request: Request, exc: UpstreamError) -> JSONResponse:
    logger.warning("Upstream failure on %s %s: %s", request.method, request.url.path, exc)
    return JSONResponse(status_code=502, content=error_body("Upstream error", str(exc)))


async def _misconfigured_exception_handler(
    request: Request, exc: MisconfiguredError
) -> JSONResponse:
    logger.error("Misconfiguration on %s %s: %s", request.method, request.url.path, exc)
    return JSONResponse(status_code=500, content=error_body("Server misconfiguration", str(exc)))


def install_error_handlers(app: FastAPI) -> None:
    app.add_exception_handler(HTTPException, _http_exception_handler)
    app.add_exception_handler(RequestValidationError, _validation_exception_handler)
    app.add_exception_handler(UpstreamError, _upstream_exception_handler)
    app.add_exception_handler(MisconfiguredError, _misconfigured_exception_handler)
