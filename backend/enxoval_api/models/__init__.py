"""
SQLAlchemy ORM Models Package.

Models are organized into domain-specific modules:
- base: Base class and TimestampMixin
- catalog: Category, Product
- order: Order, OrderItem
- content: GuestbookMessage and singleton settings rows
- user: AdminUser, Profile
- audit: AuditLog
- payment: PaymentNotification
"""

from .base import Base, TimestampMixin
from .catalog import Category, Product
from .order import Order, OrderItem
from .content import (
    GuestbookMessage,
    CampaignSettings,
    StoryContent,
    ThankYouTemplate,
    MercadoPagoSettings,
)
from .user import AdminUser, Profile
from .audit import AuditLog
from .payment import PaymentNotification

__all__ = [
    "Base",
    "TimestampMixin",
    "Category",
    "Product",
    "Order",
    "OrderItem",
    "GuestbookMessage",
    "CampaignSettings",
    "StoryContent",
    "ThankYouTemplate",
    "MercadoPagoSettings",
    "AdminUser",
    "Profile",
    "AuditLog",
    "PaymentNotification",
]
