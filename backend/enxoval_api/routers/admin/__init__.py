"""
Admin API router - combines all admin sub-routers.

Each resource is a single POST endpoint taking ``{"action": ...}``:

- products: catalog CRUD and activation toggles
- categories: CRUD and reordering
- messages: guestbook moderation
- orders: listing, reconciliation, manual status, CSV export
- content: couple's story and thank-you template
- settings: campaign goal and Mercado Pago credentials
- dashboard: stats and audit logs
- uploads: image storage (multipart, not action based)

All routes are prefixed with /api/admin
"""

from fastapi import APIRouter

from .products import router as products_router
from .categories import router as categories_router
from .messages import router as messages_router
from .orders import router as orders_router
from .content import router as content_router
from .settings import router as settings_router
from .dashboard import router as dashboard_router
from .uploads import router as uploads_router


router = APIRouter(prefix="/api/admin")

# Catalog
router.include_router(products_router)
router.include_router(categories_router)
router.include_router(messages_router)

# Operations
router.include_router(orders_router)

# Site configuration
router.include_router(content_router)
router.include_router(settings_router)

# Reporting
router.include_router(dashboard_router)
router.include_router(uploads_router)


__all__ = ["router"]
