"""
Global exception handlers.

Every error leaves the API as ``{"error": ...}``. Gateway failures add
``detail`` (and ``status`` for MP_FAIL) so the storefront can tell them apart.
"""

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from slowapi.errors import RateLimitExceeded
from starlette.exceptions import HTTPException as StarletteHTTPException

from shared.config.logging import api_logger as logger
from shared.security.rate_limit import rate_limit_exceeded_handler
from shared.utils.exceptions import GatewayError, GatewayUnavailableError

INTERNAL_ERROR_MESSAGE = "Erro interno do servidor"


def format_validation_error(exc: RequestValidationError) -> str:
    """First validation error as ``<field>: <msg>``."""
    errors = exc.errors()
    if not errors:
        return "Dados inválidos"
    first = errors[0]
    loc = [str(part) for part in first.get("loc", ()) if part not in ("body", "query", "path")]
    field = ".".join(loc)
    message = first.get("msg", "valor inválido")
    return f"{field}: {message}" if field else message


async def validation_exception_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    return JSONResponse(status_code=400, content={"error": format_validation_error(exc)})


async def gateway_exception_handler(request: Request, exc: GatewayError) -> JSONResponse:
    headers = None
    if isinstance(exc, GatewayUnavailableError) and exc.retry_after:
        headers = {"Retry-After": str(int(exc.retry_after) or 1)}
    return JSONResponse(status_code=exc.status_code, content=exc.to_dict(), headers=headers)


async def http_exception_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
    # AppException subclasses HTTPException, so this covers both
    return JSONResponse(
        status_code=exc.status_code,
        content={"error": exc.detail},
        headers=getattr(exc, "headers", None),
    )


async def unhandled_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.error(
        "Unhandled exception",
        path=request.url.path,
        method=request.method,
        error_type=type(exc).__name__,
        exc_info=True,
    )
    return JSONResponse(status_code=500, content={"error": INTERNAL_ERROR_MESSAGE})


def register_exception_handlers(app: FastAPI) -> None:
    app.add_exception_handler(RequestValidationError, validation_exception_handler)
    app.add_exception_handler(GatewayError, gateway_exception_handler)
    app.add_exception_handler(StarletteHTTPException, http_exception_handler)
    app.add_exception_handler(RateLimitExceeded, rate_limit_exceeded_handler)
    app.add_exception_handler(Exception, unhandled_exception_handler)
