"""
Guestbook moderation endpoint.
"""

from typing import Any

from fastapi import APIRouter

from enxoval_api.routers.admin._base import (
    Depends, Session, TypeAdapter,
    action_body, audit_user, get_db, parse_action, require_admin,
)
from enxoval_api.services.domain import MessageService
from shared.utils.admin_schemas import MessageAction, MessageDelete, MessageList, MessageToggleApproval

router = APIRouter(tags=["admin-messages"])

_actions = TypeAdapter(MessageAction)


@router.post("/messages")
def admin_messages(
    user: dict = Depends(require_admin),
    payload: dict = Depends(action_body),
    db: Session = Depends(get_db),
) -> Any:
    body = parse_action(_actions, payload)
    service = MessageService(db)

    if isinstance(body, MessageList):
        messages = service.list_messages(approved=body.approved)
        return {"messages": [m.model_dump(mode="json") for m in messages]}

    if isinstance(body, MessageToggleApproval):
        message = service.set_approval(body.message_id, body.approved, audit_user(user))
        return {"success": True, "message": message.model_dump(mode="json")}

    if isinstance(body, MessageDelete):
        service.delete(body.message_id, audit_user(user))
        return {"success": True}
