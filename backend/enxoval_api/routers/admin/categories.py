"""
Category management endpoint.
"""

from typing import Any

from fastapi import APIRouter

from enxoval_api.routers.admin._base import (
    Depends, Session, TypeAdapter,
    action_body, audit_user, get_db, parse_action, require_admin,
)
from enxoval_api.services.domain import CategoryService
from shared.utils.admin_schemas import (
    CategoryAction,
    CategoryCreate,
    CategoryDelete,
    CategoryList,
    CategoryReorder,
    CategoryUpdate,
)

router = APIRouter(tags=["admin-categories"])

_actions = TypeAdapter(CategoryAction)


@router.post("/categories")
def admin_categories(
    user: dict = Depends(require_admin),
    payload: dict = Depends(action_body),
    db: Session = Depends(get_db),
) -> Any:
    """list, create, update, delete, reorder."""
    body = parse_action(_actions, payload)
    service = CategoryService(db)
    ctx = audit_user(user)

    if isinstance(body, CategoryList):
        return {"categories": [c.model_dump() for c in service.list_ordered()]}

    if isinstance(body, CategoryCreate):
        category = service.create_with_auto_order(
            {"name": body.name, "sort_order": body.sort_order}, ctx
        )
        return {"success": True, "category": category.model_dump()}

    if isinstance(body, CategoryUpdate):
        data: dict[str, Any] = {"name": body.name}
        if body.sort_order is not None:
            data["sort_order"] = body.sort_order
        category = service.update(body.category_id, data, ctx)
        return {"success": True, "category": category.model_dump()}

    if isinstance(body, CategoryDelete):
        service.delete(body.category_id, ctx)
        return {"success": True}

    if isinstance(body, CategoryReorder):
        return service.reorder(body.category_id, body.direction, ctx)
