"""
Category Service.

Usage:
    service = CategoryService(db)
    categories = service.list_ordered()
    category = service.create_with_auto_order({"name": "Roupinhas"}, user_ctx)
"""

from __future__ import annotations

from typing import Any, Literal, Optional

from sqlalchemy import and_, func, or_, select
from sqlalchemy.orm import Session

from enxoval_api.models import Category, Product
from enxoval_api.services.base_service import BaseCRUDService
from shared.infrastructure.db import safe_commit
from shared.utils.exceptions import ReferentialIntegrityError
from shared.utils.schemas import CategoryOutput


class CategoryService(BaseCRUDService[Category, CategoryOutput]):
    """
    Business rules:
    - sort_order defaults to max + 1
    - a category referenced by any product cannot be deleted
    - reorder swaps sort_order with the nearest neighbour
    """

    def __init__(self, db: Session):
        super().__init__(
            db=db,
            model=Category,
            output_schema=CategoryOutput,
            entity_name="Categoria",
            audit_entity="category",
        )

    # =========================================================================
    # Query Methods
    # =========================================================================

    def list_ordered(self) -> list[CategoryOutput]:
        categories = self._db.scalars(
            select(Category).order_by(Category.sort_order.asc(), Category.id.asc())
        ).all()
        return [self.to_output(c) for c in categories]

    def get_next_order(self) -> int:
        max_order = self._db.scalar(select(func.max(Category.sort_order)))
        return (max_order or 0) + 1

    # =========================================================================
    # Command Methods
    # =========================================================================

    def create_with_auto_order(self, data: dict[str, Any], user_ctx: Optional[dict]) -> CategoryOutput:
        if data.get("sort_order") is None:
            data["sort_order"] = self.get_next_order()
        return self.create(data, user_ctx)

    def _renumber(self) -> None:
        """Give every category a distinct sort_order, keeping the listed order."""
        rows = self._db.scalars(
            select(Category).order_by(Category.sort_order.asc(), Category.id.asc())
        ).all()
        for position, row in enumerate(rows, start=1):
            row.sort_order = position

    def reorder(
        self,
        category_id: int,
        direction: Literal["up", "down"],
        user_ctx: Optional[dict],
    ) -> dict[str, Any]:
        """
        Swap with the previous (up) or next (down) category.

        Neighbours are found in listing order, (sort_order, id), so equal
        sort_order values are renumbered before the swap. At either end
        nothing changes and ``success`` is False.
        """
        category = self.require_entity(category_id)
        current = category.sort_order

        if direction == "up":
            neighbour = self._db.scalar(
                select(Category)
                .where(
                    or_(
                        Category.sort_order < current,
                        and_(Category.sort_order == current, Category.id < category.id),
                    )
                )
                .order_by(Category.sort_order.desc(), Category.id.desc())
                .limit(1)
            )
        else:
            neighbour = self._db.scalar(
                select(Category)
                .where(
                    or_(
                        Category.sort_order > current,
                        and_(Category.sort_order == current, Category.id > category.id),
                    )
                )
                .order_by(Category.sort_order.asc(), Category.id.asc())
                .limit(1)
            )

        if neighbour is None:
            where = "cima" if direction == "up" else "baixo"
            return {"success": False, "message": f"Não é possível mover para {where}"}

        if neighbour.sort_order == current:
            self._renumber()
        category.sort_order, neighbour.sort_order = neighbour.sort_order, category.sort_order
        safe_commit(self._db)

        self.audit(
            user_ctx,
            "reorder",
            category_id,
            {"direction": direction, "swapped_with": neighbour.id},
        )
        return {"success": True}

    # =========================================================================
    # Validation Hooks
    # =========================================================================

    def _validate_delete(self, entity: Category) -> None:
        count = self._db.scalar(
            select(func.count()).select_from(Product).where(Product.category_id == entity.id)
        )
        if count:
            raise ReferentialIntegrityError(
                f"Não é possível excluir categoria com {count} produtos",
                category_id=entity.id,
            )
