"""
Guestbook Service.

Visitors post messages that stay hidden until an admin approves them.
"""

from __future__ import annotations

from typing import Optional

from sqlalchemy import select
from sqlalchemy.orm import Session

from enxoval_api.models import GuestbookMessage
from enxoval_api.services.base_service import BaseCRUDService
from shared.config.logging import get_logger
from shared.infrastructure.db import safe_commit
from shared.utils.schemas import GuestbookMessageInput, GuestbookMessageOutput

logger = get_logger(__name__)


class MessageService(BaseCRUDService[GuestbookMessage, GuestbookMessageOutput]):
    def __init__(self, db: Session):
        super().__init__(
            db=db,
            model=GuestbookMessage,
            output_schema=GuestbookMessageOutput,
            entity_name="Mensagem",
            audit_entity="guestbook_message",
        )

    def list_messages(self, approved: Optional[bool] = None) -> list[GuestbookMessageOutput]:
        """Newest first. ``approved=None`` returns every message."""
        query = select(GuestbookMessage)
        if approved is not None:
            query = query.where(GuestbookMessage.approved.is_(approved))
        query = query.order_by(GuestbookMessage.created_at.desc(), GuestbookMessage.id.desc())
        return [self.to_output(m) for m in self._db.scalars(query).all()]

    def submit(self, body: GuestbookMessageInput) -> GuestbookMessageOutput:
        """Public submission. Always stored unapproved."""
        message = GuestbookMessage(
            author_name=body.author_name,
            message=body.message,
            approved=False,
        )
        self._db.add(message)
        safe_commit(self._db)
        self._db.refresh(message)

        logger.info("Guestbook message received", message_id=message.id)
        return self.to_output(message)

    def set_approval(self, message_id: int, approved: bool, user_ctx: Optional[dict]) -> GuestbookMessageOutput:
        message = self.require_entity(message_id)
        previous = message.approved
        message.approved = approved
        safe_commit(self._db)
        self._db.refresh(message)

        self.audit(
            user_ctx,
            "toggle_approval",
            message_id,
            {"approved": {"old": previous, "new": approved}},
        )
        return self.to_output(message)
