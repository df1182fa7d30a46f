"""
Payment Services - Mercado Pago integration.

Provides:
- Checkout Pro preference creation and payment lookup
- Exactly-once order status reconciliation
- Circuit breaker for external API resilience

Webhook processing lives in ``payments.webhook`` and is imported directly.
"""

from .circuit_breaker import (
    CircuitBreaker,
    CircuitBreakerConfig,
    CircuitBreakerError,
    CircuitBreakerStats,
    CircuitState,
    email_breaker,
    get_all_breaker_stats,
    mercadopago_breaker,
)
from .gateway import (
    MercadoPagoGateway,
    PreferenceRequest,
    PreferenceResult,
    cents_to_amount,
    validate_preference_request,
)
from .reconciliation import (
    PaymentReconciler,
    ReconcileResult,
    increment_purchased_qty,
    map_gateway_status,
    parse_external_reference,
)

__all__ = [
    # Circuit breaker
    "CircuitBreaker",
    "CircuitBreakerConfig",
    "CircuitBreakerError",
    "CircuitBreakerStats",
    "CircuitState",
    "email_breaker",
    "get_all_breaker_stats",
    "mercadopago_breaker",
    # Gateway
    "MercadoPagoGateway",
    "PreferenceRequest",
    "PreferenceResult",
    "cents_to_amount",
    "validate_preference_request",
    # Reconciliation
    "PaymentReconciler",
    "ReconcileResult",
    "increment_purchased_qty",
    "map_gateway_status",
    "parse_external_reference",
]
