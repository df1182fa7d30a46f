"""
Centralized exceptions for consistent error handling.

Two families live here:
- AppException subclasses: HTTP errors raised from routers and services,
  rendered as {"error": detail}.
- GatewayError subclasses: payment gateway failures carrying a stable
  error code, rendered as {"error": code, "detail": ...}.

Usage:
    from shared.utils.exceptions import NotFoundError, ValidationError

    raise NotFoundError("Produto", product_id)
    raise ValidationError("Nome é obrigatório", field="name")
"""

from typing import Any

from fastapi import HTTPException, status

from shared.config.logging import get_logger

logger = get_logger(__name__)


class AppException(HTTPException):
    """
    Base exception with automatic logging.

    All custom HTTP exceptions inherit from this class
    to ensure consistent logging and response format.
    """

    def __init__(
        self,
        status_code: int,
        detail: str,
        log_level: str = "warning",
        headers: dict[str, str] | None = None,
        **log_context: Any,
    ):
        log_fn = getattr(logger, log_level, logger.warning)
        log_fn(detail, status_code=status_code, **log_context)

        super().__init__(status_code=status_code, detail=detail, headers=headers)


# =============================================================================
# 400 Bad Request Errors
# =============================================================================


class ValidationError(AppException):
    """
    Input validation error (400).

    Usage:
        raise ValidationError("O preço deve ser positivo")
        raise ValidationError("Quantidade inválida", field="quantity", value=-1)
    """

    def __init__(self, detail: str, **log_context: Any):
        super().__init__(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=detail,
            log_level="warning",
            **log_context,
        )


class ReferentialIntegrityError(ValidationError):
    """A row cannot be removed while other rows still reference it."""

    def __init__(self, detail: str, **log_context: Any):
        super().__init__(detail, **log_context)


class EntityNotFoundError(ValidationError):
    """
    Missing entity inside an admin action (400, not 404).

    Admin handlers report unknown ids as validation failures of the request.
    """

    def __init__(self, entity: str, entity_id: int | str | None = None, **log_context: Any):
        if entity_id is not None:
            detail = f"{entity} com ID {entity_id} não encontrado"
        else:
            detail = f"{entity} não encontrado"
        super().__init__(detail, entity=entity, entity_id=entity_id, **log_context)


class InsufficientStockError(ValidationError):
    """Requested quantity exceeds what is still available for a product."""

    def __init__(self, product_name: str, available: int, **log_context: Any):
        if available <= 0:
            detail = f"O produto '{product_name}' não está mais disponível"
        else:
            detail = (
                f"Apenas {available} unidade(s) disponível(is) de '{product_name}'"
            )
        super().__init__(detail, product=product_name, available=available, **log_context)


# =============================================================================
# 401 / 403 Errors
# =============================================================================


class UnauthorizedError(AppException):
    """Missing or invalid credentials (401)."""

    def __init__(self, detail: str = "Não autorizado", **log_context: Any):
        super().__init__(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail=detail,
            log_level="warning",
            headers={"WWW-Authenticate": "Bearer"},
            **log_context,
        )


class ForbiddenError(AppException):
    """
    Authorization/permission error (403).

    Usage:
        raise ForbiddenError("gerenciar produtos")
    """

    def __init__(self, action: str | None = None, **log_context: Any):
        if action:
            detail = f"Sem permissão para {action}"
        else:
            detail = "Acesso negado"

        super().__init__(
            status_code=status.HTTP_403_FORBIDDEN,
            detail=detail,
            log_level="warning",
            action=action,
            **log_context,
        )


# =============================================================================
# 404 Not Found Errors
# =============================================================================


class NotFoundError(AppException):
    """
    Entity not found on public endpoints (404).

    Usage:
        raise NotFoundError("Pedido", 123)
    """

    def __init__(self, entity: str, entity_id: int | str | None = None, **log_context: Any):
        if entity_id is not None:
            detail = f"{entity} com ID {entity_id} não encontrado"
        else:
            detail = f"{entity} não encontrado"

        super().__init__(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=detail,
            log_level="warning",
            entity=entity,
            entity_id=entity_id,
            **log_context,
        )


# =============================================================================
# 409 Conflict Errors
# =============================================================================


class ConflictError(AppException):
    """
    Resource conflict error (409).

    Usage:
        raise ConflictError("Já existe uma categoria com este nome")
    """

    def __init__(self, detail: str, **log_context: Any):
        super().__init__(
            status_code=status.HTTP_409_CONFLICT,
            detail=detail,
            log_level="warning",
            **log_context,
        )


# =============================================================================
# 500 Internal Server Errors
# =============================================================================


class InternalError(AppException):
    """
    Internal server error (500).

    Usage:
        raise InternalError("Falha ao processar pagamento", order_id=123)
    """

    def __init__(self, detail: str = "Erro interno do servidor", **log_context: Any):
        super().__init__(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail=detail,
            log_level="error",
            **log_context,
        )


# =============================================================================
# Payment gateway errors
# =============================================================================


class GatewayError(Exception):
    """
    Base class for payment gateway failures.

    Each subclass pins an error ``code`` and the HTTP status it maps to.
    ``detail`` carries a human readable message or the upstream body.
    """

    code: str = "GATEWAY_ERROR"
    status_code: int = status.HTTP_502_BAD_GATEWAY
    message: str = "Erro ao comunicar com o Mercado Pago"

    def __init__(self, detail: Any = None, **log_context: Any):
        self.detail = detail if detail is not None else self.message
        logger.warning(
            f"Gateway error: {self.code}",
            code=self.code,
            detail=self.detail if isinstance(self.detail, str) else None,
            **log_context,
        )
        super().__init__(self.code)

    def to_dict(self) -> dict[str, Any]:
        return {"error": self.code, "detail": self.detail}


class InvalidPayloadError(GatewayError):
    """Preference request rejected locally before any network call."""

    code = "INVALID_PAYLOAD"
    status_code = status.HTTP_400_BAD_REQUEST
    message = "Dados inválidos para criar o pagamento"


class MissingConfigError(GatewayError):
    """No gateway access token is configured."""

    code = "MISSING_CONFIG"
    status_code = status.HTTP_502_BAD_GATEWAY
    message = "Token do Mercado Pago não configurado"


class GatewayRejectedError(GatewayError):
    """Gateway answered with a non-2xx status. ``detail`` is the upstream body."""

    code = "MP_FAIL"
    status_code = status.HTTP_502_BAD_GATEWAY
    message = "O Mercado Pago recusou a solicitação"

    def __init__(self, detail: Any = None, upstream_status: int | None = None, **log_context: Any):
        self.upstream_status = upstream_status
        super().__init__(detail, upstream_status=upstream_status, **log_context)

    def to_dict(self) -> dict[str, Any]:
        data = super().to_dict()
        data["status"] = self.upstream_status
        return data


class GatewayUnavailableError(GatewayError):
    """Gateway unreachable, timed out, or circuit breaker open."""

    code = "MP_UNAVAILABLE"
    status_code = status.HTTP_503_SERVICE_UNAVAILABLE
    message = "Mercado Pago temporariamente indisponível"

    def __init__(self, detail: Any = None, retry_after: float | None = None, **log_context: Any):
        self.retry_after = retry_after
        super().__init__(detail, retry_after=retry_after, **log_context)
