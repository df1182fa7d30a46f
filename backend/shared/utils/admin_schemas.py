"""
Pydantic schemas for admin API endpoints.

Every admin resource takes a single POST body ``{"action": ..., ...}``.
Each resource has a discriminated union on ``action``; routers validate
the raw body against it with ``parse_action``.
"""

from datetime import date, datetime
from typing import Annotated, Any, Literal, Optional, Union

from pydantic import BaseModel, EmailStr, Field

from shared.config.constants import Limits
from shared.utils.schemas import (
    NonEmptyStr,
    OrderStatusLiteral,
    PaymentMethodLiteral,
)


# =============================================================================
# Products
# =============================================================================


class AdminProductOutput(BaseModel):
    id: int
    name: str
    description: Optional[str] = None
    price_cents: int
    target_qty: int
    purchased_qty: int
    remaining: int
    category_id: Optional[int] = None
    category_name: Optional[str] = None
    is_active: bool
    image_url: Optional[str] = None
    created_at: datetime
    updated_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class ProductFields(BaseModel):
    name: NonEmptyStr = Field(max_length=Limits.MAX_NAME_LENGTH)
    description: Optional[str] = Field(default=None, max_length=Limits.MAX_DESCRIPTION_LENGTH)
    price_cents: int = Field(ge=Limits.MIN_PRICE_CENTS, le=Limits.MAX_PRICE_CENTS)
    target_qty: int = Field(default=1, ge=1)
    category_id: Optional[int] = None
    is_active: bool = True
    image_url: Optional[str] = Field(default=None, max_length=Limits.MAX_URL_LENGTH)


class ProductUpdateFields(BaseModel):
    id: int
    name: Optional[NonEmptyStr] = Field(default=None, max_length=Limits.MAX_NAME_LENGTH)
    description: Optional[str] = Field(default=None, max_length=Limits.MAX_DESCRIPTION_LENGTH)
    price_cents: Optional[int] = Field(default=None, ge=Limits.MIN_PRICE_CENTS, le=Limits.MAX_PRICE_CENTS)
    target_qty: Optional[int] = Field(default=None, ge=1)
    category_id: Optional[int] = None
    is_active: Optional[bool] = None
    image_url: Optional[str] = Field(default=None, max_length=Limits.MAX_URL_LENGTH)


class ProductList(BaseModel):
    action: Literal["list"]
    page: int = Field(default=1, ge=1)
    limit: int = Field(default=10, ge=1, le=Limits.MAX_PAGE_SIZE)
    search: Optional[str] = Field(default=None, max_length=Limits.MAX_SEARCH_TERM_LENGTH)
    category_id: Optional[int] = None
    is_active: Optional[bool] = None


class ProductCreate(BaseModel):
    action: Literal["create"]
    product: ProductFields


class ProductUpdate(BaseModel):
    action: Literal["update"]
    product: ProductUpdateFields


class ProductDelete(BaseModel):
    action: Literal["delete"]
    id: int


class ProductToggleActive(BaseModel):
    action: Literal["toggle_active"]
    id: int


class ProductBulkToggle(BaseModel):
    action: Literal["bulk_toggle"]
    ids: list[int] = Field(min_length=1)
    active: bool


ProductAction = Annotated[
    Union[ProductList, ProductCreate, ProductUpdate, ProductDelete, ProductToggleActive, ProductBulkToggle],
    Field(discriminator="action"),
]


# =============================================================================
# Categories
# =============================================================================


class CategoryList(BaseModel):
    action: Literal["list"]


class CategoryCreate(BaseModel):
    action: Literal["create"]
    name: NonEmptyStr = Field(max_length=Limits.MAX_NAME_LENGTH)
    sort_order: Optional[int] = None


class CategoryUpdate(BaseModel):
    action: Literal["update"]
    category_id: int
    name: NonEmptyStr = Field(max_length=Limits.MAX_NAME_LENGTH)
    sort_order: Optional[int] = None


class CategoryDelete(BaseModel):
    action: Literal["delete"]
    category_id: int


class CategoryReorder(BaseModel):
    action: Literal["reorder"]
    category_id: int
    direction: Literal["up", "down"]


CategoryAction = Annotated[
    Union[CategoryList, CategoryCreate, CategoryUpdate, CategoryDelete, CategoryReorder],
    Field(discriminator="action"),
]


# =============================================================================
# Guestbook messages
# =============================================================================


class MessageList(BaseModel):
    action: Literal["list"]
    approved: Optional[bool] = None


class MessageToggleApproval(BaseModel):
    action: Literal["toggle_approval"]
    message_id: int
    approved: bool


class MessageDelete(BaseModel):
    action: Literal["delete"]
    message_id: int


MessageAction = Annotated[
    Union[MessageList, MessageToggleApproval, MessageDelete],
    Field(discriminator="action"),
]


# =============================================================================
# Orders
# =============================================================================


class OrderItemOutput(BaseModel):
    product_id: int
    product_name: Optional[str] = None
    quantity: int
    unit_price_cents: int
    subtotal_cents: int


class AdminOrderOutput(BaseModel):
    id: int
    purchaser_name: str
    purchaser_email: str
    payment_method: str
    amount_cents: int
    status: str
    preference_id: Optional[str] = None
    external_payment_id: Optional[str] = None
    created_at: datetime
    updated_at: Optional[datetime] = None
    paid_at: Optional[datetime] = None
    items: list[OrderItemOutput] = []


class OrderFilters(BaseModel):
    search: Optional[str] = Field(default=None, max_length=Limits.MAX_SEARCH_TERM_LENGTH)
    status: Optional[OrderStatusLiteral] = None
    payment_method: Optional[PaymentMethodLiteral] = None
    date_from: Optional[date] = None
    date_to: Optional[date] = None


class OrderList(OrderFilters):
    action: Literal["list"]
    page: int = Field(default=1, ge=1)
    limit: int = Field(default=Limits.DEFAULT_PAGE_SIZE, ge=1, le=Limits.MAX_PAGE_SIZE)


class OrderGet(BaseModel):
    action: Literal["get"]
    order_id: int


class OrderReconcile(BaseModel):
    action: Literal["reconcile"]
    order_id: int


class OrderMarkStatus(BaseModel):
    action: Literal["mark_status"]
    order_id: int
    status: OrderStatusLiteral


class OrderExportCsv(BaseModel):
    action: Literal["export_csv"]
    filters: OrderFilters = Field(default_factory=OrderFilters)


OrderAction = Annotated[
    Union[OrderList, OrderGet, OrderReconcile, OrderMarkStatus, OrderExportCsv],
    Field(discriminator="action"),
]


# =============================================================================
# Content (story + thank-you template)
# =============================================================================


class ContentGetStory(BaseModel):
    action: Literal["get_story"]


class ContentUpdateStory(BaseModel):
    action: Literal["update_story"]
    content: str
    couple_photo: Optional[str] = Field(default=None, max_length=Limits.MAX_URL_LENGTH)


class ContentGetTemplate(BaseModel):
    action: Literal["get_template"]


class ContentUpdateTemplate(BaseModel):
    action: Literal["update_template"]
    subject: NonEmptyStr = Field(max_length=Limits.MAX_NAME_LENGTH)
    body_markdown: NonEmptyStr


class ContentSendTestEmail(BaseModel):
    action: Literal["send_test_email"]
    email: EmailStr
    name: Optional[str] = None
    order_id: Optional[str] = None
    total_brl: Optional[str] = None


ContentAction = Annotated[
    Union[ContentGetStory, ContentUpdateStory, ContentGetTemplate, ContentUpdateTemplate, ContentSendTestEmail],
    Field(discriminator="action"),
]


class TemplateOutput(BaseModel):
    subject: str
    body_markdown: str


# =============================================================================
# Settings (campaign goal + Mercado Pago)
# =============================================================================


class SettingsGetGoal(BaseModel):
    action: Literal["get_goal"]


class SettingsUpdateGoal(BaseModel):
    action: Literal["update_goal"]
    goal_cents: int = Field(gt=0)


class SettingsGetMercadoPago(BaseModel):
    action: Literal["get_mercadopago"]


class SettingsUpdateMercadoPago(BaseModel):
    action: Literal["update_mercadopago"]
    access_token: Optional[str] = None
    public_key: Optional[str] = None
    webhook_secret: Optional[str] = None
    is_enabled: Optional[bool] = None


class SettingsTestMercadoPago(BaseModel):
    action: Literal["test_mercadopago"]
    access_token: Optional[str] = None


SettingsAction = Annotated[
    Union[
        SettingsGetGoal,
        SettingsUpdateGoal,
        SettingsGetMercadoPago,
        SettingsUpdateMercadoPago,
        SettingsTestMercadoPago,
    ],
    Field(discriminator="action"),
]


class MercadoPagoSettingsOutput(BaseModel):
    access_token: str
    public_key: Optional[str] = None
    webhook_secret_set: bool
    is_enabled: bool
    source: Literal["database", "environment", "none"]


# =============================================================================
# Dashboard
# =============================================================================


class DashboardGetStats(BaseModel):
    action: Literal["get_stats"]


class DashboardGetAuditLogs(BaseModel):
    action: Literal["get_audit_logs"]
    page: int = Field(default=1, ge=1)
    limit: int = Field(default=Limits.DEFAULT_PAGE_SIZE, ge=1, le=Limits.MAX_PAGE_SIZE)


DashboardAction = Annotated[
    Union[DashboardGetStats, DashboardGetAuditLogs],
    Field(discriminator="action"),
]


class AdminStatsOutput(BaseModel):
    total_products: int
    completed_products: int
    paid_orders: int
    pending_orders: int
    failed_orders: int
    total_raised_cents: int
    total_goal_cents: int


class DailySalesOutput(BaseModel):
    sale_date: date
    orders_count: int
    total_cents: int


class AuditLogOutput(BaseModel):
    id: int
    user_id: Optional[int] = None
    user_email: Optional[str] = None
    action: str
    entity: str
    entity_id: Optional[str] = None
    meta: Optional[dict[str, Any]] = None
    created_at: datetime

    class Config:
        from_attributes = True


class UploadOutput(BaseModel):
    url: str
