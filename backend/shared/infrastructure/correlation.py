"""
Request Correlation Middleware.

Every request gets an ID that appears in its log lines and in the
X-Request-ID response header. Gateway webhooks send their own
``x-request-id``, so a delivery can be traced end to end.
"""

import re
import uuid
from contextvars import ContextVar
from typing import Callable

from fastapi import Request, Response
from starlette.middleware.base import BaseHTTPMiddleware

# Context variable for request ID (async-safe)
request_id_var: ContextVar[str] = ContextVar("request_id", default="")

# Client-supplied IDs end up in logs; keep them short and printable
_VALID_REQUEST_ID = re.compile(r"^[A-Za-z0-9._:-]{1,128}$")


def get_request_id() -> str:
    """Get the current request ID."""
    return request_id_var.get()


def resolve_request_id(header_value: str | None) -> str:
    """Use the incoming ID when it is well-formed, otherwise a new UUID."""
    if header_value and _VALID_REQUEST_ID.match(header_value):
        return header_value
    return str(uuid.uuid4())


class CorrelationIdMiddleware(BaseHTTPMiddleware):
    """
    - If a valid X-Request-ID header is present, uses that value
    - Otherwise generates a new UUID
    - Sets the ID in context for logging
    - Returns the ID in response headers
    """

    HEADER_NAME = "X-Request-ID"

    async def dispatch(
        self,
        request: Request,
        call_next: Callable,
    ) -> Response:
        request_id = resolve_request_id(request.headers.get(self.HEADER_NAME))
        token = request_id_var.set(request_id)

        try:
            request.state.request_id = request_id
            response = await call_next(request)
            response.headers[self.HEADER_NAME] = request_id
            return response
        finally:
            request_id_var.reset(token)


class CorrelationIdFilter:
    """
    Logging filter that adds request_id to log records.

    Installed on the root handler by ``setup_logging``.
    """

    def filter(self, record) -> bool:
        record.request_id = request_id_var.get() or "-"
        return True
