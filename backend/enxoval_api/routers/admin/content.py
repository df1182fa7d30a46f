"""
Site content endpoint: story and thank-you email template.
"""

from typing import Any

from fastapi import APIRouter

from enxoval_api.routers._common.dependencies import get_email_sender
from enxoval_api.routers.admin._base import (
    Depends, Session, TypeAdapter,
    action_body, audit_user, get_db, parse_action, require_admin,
)
from enxoval_api.services.domain import ContentService
from enxoval_api.services.email import EmailSender
from shared.utils.admin_schemas import (
    ContentAction,
    ContentGetStory,
    ContentGetTemplate,
    ContentSendTestEmail,
    ContentUpdateStory,
    ContentUpdateTemplate,
)

router = APIRouter(tags=["admin-content"])

_actions = TypeAdapter(ContentAction)


@router.post("/content")
async def admin_content(
    user: dict = Depends(require_admin),
    payload: dict = Depends(action_body),
    db: Session = Depends(get_db),
    sender: EmailSender = Depends(get_email_sender),
) -> Any:
    """get_story, update_story, get_template, update_template, send_test_email."""
    body = parse_action(_actions, payload)
    service = ContentService(db)
    ctx = audit_user(user)

    if isinstance(body, ContentGetStory):
        return service.get_story().model_dump()

    if isinstance(body, ContentUpdateStory):
        story = service.update_story(body.content, body.couple_photo, ctx)
        return {"success": True, **story.model_dump()}

    if isinstance(body, ContentGetTemplate):
        return service.get_template().model_dump()

    if isinstance(body, ContentUpdateTemplate):
        template = service.update_template(body.subject, body.body_markdown, ctx)
        return {"success": True, **template.model_dump()}

    if isinstance(body, ContentSendTestEmail):
        return await service.send_test_email(
            body.email,
            ctx,
            name=body.name,
            order_id=body.order_id,
            total_brl=body.total_brl,
            sender=sender,
        )
