"""
Security module: authentication, password hashing, webhook signatures, rate limiting.
"""

from shared.security.auth import (
    sign_jwt,
    verify_jwt,
    get_bearer_token,
    current_user_context,
)
from shared.security.password import hash_password, verify_password
from shared.security.rate_limit import limiter, rate_limit_exceeded_handler
from shared.security.webhook_signature import (
    compute_signature,
    parse_signature_header,
    verify_webhook_signature,
)

__all__ = [
    # auth
    "sign_jwt",
    "verify_jwt",
    "get_bearer_token",
    "current_user_context",
    # password
    "hash_password",
    "verify_password",
    # rate_limit
    "limiter",
    "rate_limit_exceeded_handler",
    # webhook signatures
    "compute_signature",
    "parse_signature_header",
    "verify_webhook_signature",
]
