"""
Utilities module: Exceptions, validators, formatting.
"""

from shared.utils.exceptions import (
    AppException,
    NotFoundError,
    ForbiddenError,
    UnauthorizedError,
    ValidationError,
    ConflictError,
    GatewayError,
)
from shared.utils.validators import (
    validate_image_url,
    escape_like_pattern,
    sanitize_search_term,
    format_brl,
    format_decimal_comma,
)

__all__ = [
    # exceptions
    "AppException",
    "NotFoundError",
    "ForbiddenError",
    "UnauthorizedError",
    "ValidationError",
    "ConflictError",
    "GatewayError",
    # validators
    "validate_image_url",
    "escape_like_pattern",
    "sanitize_search_term",
    "format_brl",
    "format_decimal_comma",
]
