"""
Product management endpoint.
"""

from typing import Any

from fastapi import APIRouter

from enxoval_api.routers.admin._base import (
    Depends, Session, TypeAdapter,
    action_body, audit_user, get_db, parse_action, require_admin,
)
from enxoval_api.services.domain import ProductService
from shared.utils.admin_schemas import (
    ProductAction,
    ProductBulkToggle,
    ProductCreate,
    ProductDelete,
    ProductList,
    ProductToggleActive,
    ProductUpdate,
)

router = APIRouter(tags=["admin-products"])

_actions = TypeAdapter(ProductAction)


@router.post("/products")
def admin_products(
    user: dict = Depends(require_admin),
    payload: dict = Depends(action_body),
    db: Session = Depends(get_db),
) -> Any:
    """list, create, update, delete, toggle_active, bulk_toggle."""
    body = parse_action(_actions, payload)
    service = ProductService(db)
    ctx = audit_user(user)

    if isinstance(body, ProductList):
        return service.list_admin(
            page=body.page,
            limit=body.limit,
            search=body.search,
            category_id=body.category_id,
            is_active=body.is_active,
        )

    if isinstance(body, ProductCreate):
        product = service.create(body.product.model_dump(), ctx)
        return {"success": True, "product": product.model_dump(mode="json")}

    if isinstance(body, ProductUpdate):
        fields = body.product.model_dump(exclude_unset=True)
        product_id = fields.pop("id")
        product = service.update(product_id, fields, ctx)
        return {"success": True, "product": product.model_dump(mode="json")}

    if isinstance(body, ProductDelete):
        service.delete(body.id, ctx)
        return {"success": True}

    if isinstance(body, ProductToggleActive):
        return {"success": True, "is_active": service.toggle_active(body.id, ctx)}

    if isinstance(body, ProductBulkToggle):
        return {"success": True, "updated": service.bulk_toggle(body.ids, body.active, ctx)}
