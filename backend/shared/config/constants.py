"""
Centralized constants for the backend application.
Avoid magic strings and repeated constants.

Usage:
    from shared.config.constants import Roles, OrderStatus, Limits

    if status == OrderStatus.PENDING:
        ...
"""

from typing import Final


# =============================================================================
# User Roles
# =============================================================================


class Roles:
    """Profile role constants."""

    ADMIN: Final[str] = "admin"
    USER: Final[str] = "user"

    ALL: Final[list[str]] = [ADMIN, USER]


# =============================================================================
# Entity Status Constants
# =============================================================================


class OrderStatus:
    """Order status constants."""

    PENDING: Final[str] = "pending"
    PAID: Final[str] = "paid"
    FAILED: Final[str] = "failed"

    ALL: Final[list[str]] = [PENDING, PAID, FAILED]
    TERMINAL: Final[list[str]] = [PAID, FAILED]


class PaymentMethod:
    """Payment methods offered at checkout."""

    PIX: Final[str] = "pix"
    CREDIT: Final[str] = "credit"
    DEBIT: Final[str] = "debit"

    ALL: Final[list[str]] = [PIX, CREDIT, DEBIT]

    LABELS: Final[dict[str, str]] = {
        PIX: "PIX",
        CREDIT: "Crédito",
        DEBIT: "Débito",
    }


class GatewayPaymentStatus:
    """Mercado Pago payment status values."""

    APPROVED: Final[str] = "approved"
    REJECTED: Final[str] = "rejected"
    CANCELLED: Final[str] = "cancelled"
    PENDING: Final[str] = "pending"
    IN_PROCESS: Final[str] = "in_process"


# Gateway payment status -> order status. Anything unlisted stays pending.
GATEWAY_TO_ORDER_STATUS: Final[dict[str, str]] = {
    GatewayPaymentStatus.APPROVED: OrderStatus.PAID,
    GatewayPaymentStatus.REJECTED: OrderStatus.FAILED,
    GatewayPaymentStatus.CANCELLED: OrderStatus.FAILED,
}


class NotificationStatus:
    """Webhook notification processing status."""

    RECEIVED: Final[str] = "RECEIVED"
    PROCESSED: Final[str] = "PROCESSED"
    IGNORED: Final[str] = "IGNORED"
    FAILED: Final[str] = "FAILED"


# =============================================================================
# Validation Constants
# =============================================================================


class Limits:
    """Validation limits."""

    # Per-order cap on a single product, regardless of remaining stock
    MAX_QUANTITY_PER_ORDER: Final[int] = 5

    # Price limits (in cents)
    MIN_PRICE_CENTS: Final[int] = 1
    MAX_PRICE_CENTS: Final[int] = 100_000_00

    # String lengths
    MAX_NAME_LENGTH: Final[int] = 200
    MAX_DESCRIPTION_LENGTH: Final[int] = 2000
    MAX_URL_LENGTH: Final[int] = 2048
    MAX_SEARCH_TERM_LENGTH: Final[int] = 100
    MAX_AUTHOR_NAME_LENGTH: Final[int] = 100
    MAX_MESSAGE_LENGTH: Final[int] = 1000

    # Pagination defaults
    DEFAULT_PAGE_SIZE: Final[int] = 20
    MAX_PAGE_SIZE: Final[int] = 200

    # PIX codes expire at the gateway after this many minutes
    PIX_EXPIRATION_MINUTES: Final[int] = 30


# =============================================================================
# Singleton defaults
# =============================================================================

SINGLETON_ID: Final[int] = 1

DEFAULT_GOAL_CENTS: Final[int] = 115500

DEFAULT_STORY_CONTENT: Final[str] = "Digite a história aqui..."

DEFAULT_TEMPLATE_SUBJECT: Final[str] = "Obrigado pela sua contribuição!"

DEFAULT_TEMPLATE_BODY: Final[str] = (
    "Olá {{name}},\n\n"
    "Obrigado pela sua contribuição de {{total_brl}} para nosso enxoval!\n\n"
    "Pedido: {{order_id}}"
)

# Upload content types accepted for product and couple photos
ALLOWED_IMAGE_TYPES: Final[dict[str, str]] = {
    "image/jpeg": ".jpg",
    "image/png": ".png",
    "image/webp": ".webp",
    "image/gif": ".gif",
}
