"""
Product Service.

Admin CRUD for registry items plus the public catalog query.
``purchased_qty`` is never written here; it only moves on payment.
"""

from __future__ import annotations

from typing import Any, Optional

from sqlalchemy import func, select, update
from sqlalchemy.orm import Session, joinedload

from enxoval_api.models import Category, OrderItem, Product
from enxoval_api.services.base_service import BaseCRUDService
from shared.infrastructure.db import safe_commit
from shared.utils.admin_schemas import AdminProductOutput
from shared.utils.exceptions import EntityNotFoundError, ReferentialIntegrityError, ValidationError
from shared.utils.schemas import ProductOutput
from shared.utils.validators import escape_like_pattern, sanitize_search_term


class ProductService(BaseCRUDService[Product, AdminProductOutput]):
    """
    Business rules:
    - target_qty may not drop below purchased_qty
    - category_id must reference an existing category
    - products with order history cannot be deleted, only deactivated
    """

    def __init__(self, db: Session):
        super().__init__(
            db=db,
            model=Product,
            output_schema=AdminProductOutput,
            entity_name="Produto",
            audit_entity="product",
            image_url_fields={"image_url"},
        )

    # =========================================================================
    # Query Methods
    # =========================================================================

    def list_public(self, category_id: Optional[int] = None) -> list[ProductOutput]:
        """Active products, by category sort_order then name."""
        query = (
            select(Product)
            .outerjoin(Category, Product.category_id == Category.id)
            .options(joinedload(Product.category))
            .where(Product.is_active.is_(True))
        )
        if category_id is not None:
            query = query.where(Product.category_id == category_id)
        query = query.order_by(Category.sort_order.asc().nulls_last(), Product.name.asc())

        products = self._db.scalars(query).unique().all()
        return [self.to_public_output(p) for p in products]

    def list_admin(
        self,
        *,
        page: int = 1,
        limit: int = 10,
        search: Optional[str] = None,
        category_id: Optional[int] = None,
        is_active: Optional[bool] = None,
    ) -> dict[str, Any]:
        """Paginated admin listing, newest first."""
        filters = []
        term = sanitize_search_term(search)
        if term:
            filters.append(Product.name.ilike(f"%{escape_like_pattern(term)}%", escape="\\"))
        if category_id is not None:
            filters.append(Product.category_id == category_id)
        if is_active is not None:
            filters.append(Product.is_active.is_(is_active))

        total = self._db.scalar(select(func.count()).select_from(Product).where(*filters)) or 0
        products = self._db.scalars(
            select(Product)
            .options(joinedload(Product.category))
            .where(*filters)
            .order_by(Product.created_at.desc(), Product.id.desc())
            .offset((page - 1) * limit)
            .limit(limit)
        ).unique().all()

        return {
            "products": [self.to_output(p).model_dump(mode="json") for p in products],
            "total": total,
            "page": page,
            "limit": limit,
        }

    # =========================================================================
    # Command Methods
    # =========================================================================

    def toggle_active(self, product_id: int, user_ctx: Optional[dict]) -> bool:
        product = self.require_entity(product_id)
        product.is_active = not product.is_active
        new_status = product.is_active
        safe_commit(self._db)

        self.audit(user_ctx, "toggle_active", product_id, {"is_active": new_status})
        return new_status

    def bulk_toggle(self, ids: list[int], active: bool, user_ctx: Optional[dict]) -> int:
        result = self._db.execute(
            update(Product)
            .where(Product.id.in_(ids))
            .values(is_active=active)
            .execution_options(synchronize_session=False)
        )
        safe_commit(self._db)

        self.audit(user_ctx, "bulk_toggle", None, {"ids": ids, "active": active, "updated": result.rowcount})
        return result.rowcount

    # =========================================================================
    # Transformation
    # =========================================================================

    def to_output(self, entity: Product) -> AdminProductOutput:
        return AdminProductOutput(
            id=entity.id,
            name=entity.name,
            description=entity.description,
            price_cents=entity.price_cents,
            target_qty=entity.target_qty,
            purchased_qty=entity.purchased_qty,
            remaining=entity.remaining,
            category_id=entity.category_id,
            category_name=entity.category.name if entity.category else None,
            is_active=entity.is_active,
            image_url=entity.image_url,
            created_at=entity.created_at,
            updated_at=entity.updated_at,
        )

    def to_public_output(self, entity: Product) -> ProductOutput:
        return ProductOutput(
            id=entity.id,
            name=entity.name,
            description=entity.description,
            price_cents=entity.price_cents,
            target_qty=entity.target_qty,
            purchased_qty=entity.purchased_qty,
            remaining=entity.remaining,
            max_per_order=entity.max_per_order,
            category_id=entity.category_id,
            category_name=entity.category.name if entity.category else None,
            image_url=entity.image_url,
        )

    # =========================================================================
    # Validation Hooks
    # =========================================================================

    def _check_category(self, category_id: Optional[int]) -> None:
        if category_id is not None and self._db.get(Category, category_id) is None:
            raise EntityNotFoundError("Categoria", category_id)

    def _validate_create(self, data: dict[str, Any]) -> None:
        self._check_category(data.get("category_id"))

    def _validate_update(self, entity: Product, data: dict[str, Any]) -> None:
        if "category_id" in data:
            self._check_category(data["category_id"])
        target_qty = data.get("target_qty")
        if target_qty is not None and target_qty < entity.purchased_qty:
            raise ValidationError(
                f"A quantidade desejada não pode ser menor que a já presenteada ({entity.purchased_qty})",
                field="target_qty",
            )

    def _validate_delete(self, entity: Product) -> None:
        orders = self._db.scalar(
            select(func.count()).select_from(OrderItem).where(OrderItem.product_id == entity.id)
        )
        if orders:
            raise ReferentialIntegrityError(
                f"Não é possível excluir produto com {orders} pedido(s). Desative-o.",
                product_id=entity.id,
            )
