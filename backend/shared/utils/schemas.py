"""
Shared Pydantic schemas for the public API (auth, catalog, checkout, gateway).
"""

from datetime import datetime
from decimal import Decimal
from typing import Annotated, Any, Literal, Optional

from pydantic import AfterValidator, BaseModel, EmailStr, Field, field_validator

from shared.config.constants import Limits


# =============================================================================
# Common Types
# =============================================================================

Role = Literal["admin", "user"]
OrderStatusLiteral = Literal["pending", "paid", "failed"]
PaymentMethodLiteral = Literal["pix", "credit", "debit"]


def _strip_required(value: str) -> str:
    value = value.strip()
    if not value:
        raise ValueError("não pode ser vazio")
    return value


NonEmptyStr = Annotated[str, AfterValidator(_strip_required)]


# =============================================================================
# Authentication Schemas
# =============================================================================


class LoginRequest(BaseModel):
    email: EmailStr
    password: str = Field(min_length=1)


class UserInfo(BaseModel):
    id: int
    email: str
    full_name: Optional[str] = None
    role: Role


class LoginResponse(BaseModel):
    access_token: str
    token_type: str = "Bearer"
    expires_in: int  # seconds
    user: UserInfo


# =============================================================================
# Catalog Schemas
# =============================================================================


class CategoryOutput(BaseModel):
    id: int
    name: str
    sort_order: int

    class Config:
        from_attributes = True


class ProductOutput(BaseModel):
    """Public product card. ``remaining`` and ``max_per_order`` are derived."""

    id: int
    name: str
    description: Optional[str] = None
    price_cents: int
    target_qty: int
    purchased_qty: int
    remaining: int
    max_per_order: int
    category_id: Optional[int] = None
    category_name: Optional[str] = None
    image_url: Optional[str] = None

    class Config:
        from_attributes = True


class ProgressOutput(BaseModel):
    goal_cents: int
    raised_cents: int
    percentage: float
    paid_orders: int


class StoryOutput(BaseModel):
    content: str
    couple_photo: Optional[str] = None


class GuestbookMessageInput(BaseModel):
    author_name: NonEmptyStr = Field(max_length=Limits.MAX_AUTHOR_NAME_LENGTH)
    message: NonEmptyStr = Field(max_length=Limits.MAX_MESSAGE_LENGTH)


class GuestbookMessageOutput(BaseModel):
    id: int
    author_name: str
    message: str
    approved: bool
    created_at: datetime

    class Config:
        from_attributes = True


# =============================================================================
# Gateway Schemas (direct preference creation)
# =============================================================================


class PreferenceInput(BaseModel):
    """
    Body of POST /api/mp/checkout.

    Validation of positive quantity/amount happens in the gateway adapter
    so it can answer with the INVALID_PAYLOAD code.
    """

    title: str = ""
    quantity: int = 0
    amount: Decimal = Decimal("0")
    external_reference: Optional[str] = None


class PreferenceOutput(BaseModel):
    init_point: str
    preference_id: str


class GatewayHealthOutput(BaseModel):
    status: Literal["SUCCESS", "ERROR"]
    statusHTTP: Optional[int] = None
    responseBody: Any = None
    init_point: Optional[str] = None
    preference_id: Optional[str] = None
    error: Optional[str] = None


# =============================================================================
# Order Checkout Schemas
# =============================================================================


class CheckoutItemInput(BaseModel):
    product_id: int
    quantity: int = Field(ge=1)


class CheckoutInput(BaseModel):
    purchaser_name: NonEmptyStr = Field(max_length=Limits.MAX_NAME_LENGTH)
    purchaser_email: EmailStr
    payment_method: PaymentMethodLiteral = "pix"
    items: list[CheckoutItemInput] = Field(min_length=1)

    @field_validator("items")
    @classmethod
    def _unique_products(cls, items: list[CheckoutItemInput]) -> list[CheckoutItemInput]:
        ids = [item.product_id for item in items]
        if len(ids) != len(set(ids)):
            raise ValueError("produto repetido no pedido")
        return items


class CheckoutOutput(BaseModel):
    order_id: int
    init_point: str
    preference_id: str
    amount_cents: int
    expires_at: Optional[datetime] = None
