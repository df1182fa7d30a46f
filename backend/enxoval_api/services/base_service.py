"""
Base Service Classes.

Routers stay thin and hand the validated action to a service:

    Router (auth + parsing) → Service (business rules + audit) → Model

Usage:
    from enxoval_api.services.base_service import BaseCRUDService

    class CategoryService(BaseCRUDService[Category, CategoryOutput]):
        def __init__(self, db: Session):
            super().__init__(
                db=db,
                model=Category,
                output_schema=CategoryOutput,
                entity_name="Categoria",
                audit_entity="category",
            )
"""

from __future__ import annotations

from typing import Any, Generic, Optional, Type, TypeVar

from pydantic import BaseModel
from sqlalchemy.orm import Session

from enxoval_api.models import Base
from enxoval_api.services.audit import diff_values, log_change, serialize_model
from shared.config.logging import get_logger
from shared.infrastructure.db import safe_commit
from shared.utils.exceptions import EntityNotFoundError, ValidationError
from shared.utils.validators import validate_image_url

logger = get_logger(__name__)

ModelT = TypeVar("ModelT", bound=Base)
OutputT = TypeVar("OutputT", bound=BaseModel)


class BaseService(Generic[ModelT]):
    """
    Common infrastructure for domain services: session, entity lookup, audit.
    """

    def __init__(self, db: Session, model: Type[ModelT], entity_name: str, audit_entity: str):
        self._db = db
        self._model = model
        self._entity_name = entity_name
        self._audit_entity = audit_entity

    @property
    def db(self) -> Session:
        return self._db

    @property
    def entity_name(self) -> str:
        """Human-readable entity name for messages."""
        return self._entity_name

    def get_entity(self, entity_id: int) -> Optional[ModelT]:
        return self._db.get(self._model, entity_id)

    def require_entity(self, entity_id: int) -> ModelT:
        """
        Raises:
            EntityNotFoundError: 400 with "<Entidade> com ID n não encontrado"
        """
        entity = self.get_entity(entity_id)
        if entity is None:
            raise EntityNotFoundError(self._entity_name, entity_id)
        return entity

    def audit(
        self,
        user_ctx: Optional[dict],
        action: str,
        entity_id: Any = None,
        meta: Optional[dict] = None,
    ) -> None:
        """Append an audit row in its own commit, after the business write."""
        log_change(
            self._db,
            user_ctx=user_ctx,
            action=action,
            entity=self._audit_entity,
            entity_id=entity_id,
            meta=meta,
        )


class BaseCRUDService(BaseService[ModelT], Generic[ModelT, OutputT]):
    """
    Base service for entities with create/update/delete.

    Subclasses override the ``_validate_*`` hooks for business rules.
    Every mutation is audited with the old and new values.
    """

    def __init__(
        self,
        db: Session,
        model: Type[ModelT],
        output_schema: Type[OutputT],
        entity_name: str,
        audit_entity: str,
        *,
        image_url_fields: set[str] | None = None,
    ):
        super().__init__(db, model, entity_name, audit_entity)
        self._output_schema = output_schema
        self._image_url_fields = image_url_fields or set()

    # =========================================================================
    # Write Operations
    # =========================================================================

    def create(self, data: dict[str, Any], user_ctx: Optional[dict]) -> OutputT:
        """
        Create new entity.

        Raises:
            ValidationError: If data is invalid.
        """
        self._validate_create(data)
        data = self._validate_image_urls(data)

        entity = self._model(**data)
        self._db.add(entity)
        safe_commit(self._db)
        self._db.refresh(entity)

        self.audit(user_ctx, "create", entity.id, {"new": serialize_model(entity)})
        return self.to_output(entity)

    def update(self, entity_id: int, data: dict[str, Any], user_ctx: Optional[dict]) -> OutputT:
        """
        Update existing entity. Only keys present in ``data`` are written.

        Raises:
            EntityNotFoundError, ValidationError
        """
        entity = self.require_entity(entity_id)

        self._validate_update(entity, data)
        data = self._validate_image_urls(data)

        old_values = {k: getattr(entity, k) for k in data if hasattr(entity, k)}
        for field_name, value in data.items():
            if hasattr(entity, field_name):
                setattr(entity, field_name, value)

        safe_commit(self._db)
        self._db.refresh(entity)

        self.audit(user_ctx, "update", entity_id, {"changes": diff_values(old_values, data)})
        return self.to_output(entity)

    def delete(self, entity_id: int, user_ctx: Optional[dict]) -> None:
        """
        Hard delete.

        Raises:
            EntityNotFoundError, ReferentialIntegrityError
        """
        entity = self.require_entity(entity_id)
        self._validate_delete(entity)

        snapshot = serialize_model(entity)
        self._db.delete(entity)
        safe_commit(self._db)

        self.audit(user_ctx, "delete", entity_id, {"old": snapshot})

    # =========================================================================
    # Transformation
    # =========================================================================

    def to_output(self, entity: ModelT) -> OutputT:
        """Override for computed fields."""
        return self._output_schema.model_validate(entity)

    # =========================================================================
    # Validation Hooks (override in subclasses)
    # =========================================================================

    def _validate_create(self, data: dict[str, Any]) -> None:
        pass

    def _validate_update(self, entity: ModelT, data: dict[str, Any]) -> None:
        pass

    def _validate_delete(self, entity: ModelT) -> None:
        pass

    # =========================================================================
    # Internal Helpers
    # =========================================================================

    def _validate_image_urls(self, data: dict[str, Any]) -> dict[str, Any]:
        """Validate and sanitize image URL fields."""
        for field_name in self._image_url_fields:
            if field_name in data and data[field_name]:
                try:
                    data[field_name] = validate_image_url(data[field_name])
                except ValueError as e:
                    raise ValidationError(str(e), field=field_name)
        return data
