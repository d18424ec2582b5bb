"""Exception handlers that give every error response a request id."""

from __future__ import annotations

from typing import TYPE_CHECKING, Any
from uuid import uuid4

from fastapi import status
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError, ResponseValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from hse_core.core.errors import DomainError
from hse_core.core.logging import get_logger
from hse_core.schemas.errors import ErrorResponse

if TYPE_CHECKING:
    from collections.abc import Awaitable, Callable

    from fastapi import FastAPI
    from starlette.requests import Request
    from starlette.responses import Response

logger = get_logger(__name__)
REQUEST_ID_HEADER = "X-Request-Id"


def _get_request_id(request: Request) -> str:
    request_id = getattr(request.state, "request_id", None)
    if isinstance(request_id, str) and request_id:
        return request_id
    header_value = request.headers.get(REQUEST_ID_HEADER, "").strip()
    request_id = header_value or uuid4().hex
    request.state.request_id = request_id
    return request_id


def _error_payload(
    *,
    detail: Any,
    request_id: str,
    code: str | None = None,
    retryable: bool | None = None,
) -> dict[str, Any]:
    return ErrorResponse(
        detail=detail,
        request_id=request_id,
        code=code,
        retryable=retryable,
    ).model_dump(exclude_none=True)


def _json_error(
    request: Request,
    *,
    status_code: int,
    detail: Any,
    code: str | None = None,
    retryable: bool | None = None,
    headers: dict[str, str] | None = None,
) -> JSONResponse:
    request_id = _get_request_id(request)
    response_headers = dict(headers or {})
    response_headers[REQUEST_ID_HEADER] = request_id
    return JSONResponse(
        status_code=status_code,
        content=jsonable_encoder(
            _error_payload(
                detail=detail,
                request_id=request_id,
                code=code,
                retryable=retryable,
            ),
        ),
        headers=response_headers,
    )


async def _domain_error_exception_handler(request: Request, exc: Exception) -> Response:
    if not isinstance(exc, DomainError):
        msg = "Expected DomainError"
        raise TypeError(msg)
    logger.info(
        "request.domain_error",
        extra={
            "code": exc.code,
            "status_code": exc.status_code,
            "path": request.url.path,
        },
    )
    return _json_error(
        request,
        status_code=exc.status_code,
        detail=exc.detail,
        code=exc.code,
        retryable=exc.retryable,
    )


async def _http_exception_exception_handler(request: Request, exc: Exception) -> Response:
    if not isinstance(exc, StarletteHTTPException):
        msg = "Expected StarletteHTTPException"
        raise TypeError(msg)
    return _json_error(
        request,
        status_code=exc.status_code,
        detail=exc.detail,
        headers=dict(exc.headers or {}),
    )


def _safe_validation_errors(exc: RequestValidationError) -> list[dict[str, Any]]:
    errors: list[dict[str, Any]] = []
    for error in exc.errors():
        cleaned = dict(error)
        raw_input = cleaned.get("input")
        if isinstance(raw_input, bytes):
            cleaned["input"] = raw_input.decode("utf-8", errors="replace")
        errors.append(cleaned)
    return errors


async def _request_validation_exception_handler(
    request: Request,
    exc: Exception,
) -> Response:
    if not isinstance(exc, RequestValidationError):
        msg = "Expected RequestValidationError"
        raise TypeError(msg)
    return _json_error(
        request,
        status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
        detail=_safe_validation_errors(exc),
    )


async def _response_validation_exception_handler(
    request: Request,
    exc: Exception,
) -> Response:
    if not isinstance(exc, ResponseValidationError):
        msg = "Expected ResponseValidationError"
        raise TypeError(msg)
    logger.error(
        "request.response_validation_failed",
        extra={"path": request.url.path, "errors": str(exc.errors())},
    )
    return _json_error(
        request,
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        detail="Internal Server Error",
    )


async def _unhandled_exception_handler(request: Request, exc: Exception) -> Response:
    logger.exception(
        "request.unhandled_exception",
        extra={"path": request.url.path, "error_type": type(exc).__name__},
    )
    return _json_error(
        request,
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        detail="Internal Server Error",
    )


def install_error_handling(app: FastAPI) -> None:
    """Register request-id middleware and all exception handlers on *app*."""

    @app.middleware("http")
    async def _request_id_middleware(
        request: Request,
        call_next: Callable[[Request], Awaitable[Response]],
    ) -> Response:
        request_id = _get_request_id(request)
        response = await call_next(request)
        response.headers[REQUEST_ID_HEADER] = request_id
        return response

    app.add_exception_handler(DomainError, _domain_error_exception_handler)
    app.add_exception_handler(StarletteHTTPException, _http_exception_exception_handler)
    app.add_exception_handler(RequestValidationError, _request_validation_exception_handler)
    app.add_exception_handler(ResponseValidationError, _response_validation_exception_handler)
    app.add_exception_handler(Exception, _unhandled_exception_handler)
