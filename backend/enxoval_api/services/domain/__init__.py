"""
Domain Services - application layer.

Structure:
    Router (thin controller)
        ↓
    Service (business logic + audit)
        ↓
    Model (entity)

Usage:
    from enxoval_api.services.domain import CategoryService

    # In router
    service = CategoryService(db)
    categories = service.list_ordered()
"""

from .category_service import CategoryService
from .content_service import ContentService
from .message_service import MessageService
from .order_service import OrderService
from .product_service import ProductService
from .settings_service import SettingsService
from .stats_service import StatsService

__all__ = [
    "CategoryService",
    "ContentService",
    "MessageService",
    "OrderService",
    "ProductService",
    "SettingsService",
    "StatsService",
]
