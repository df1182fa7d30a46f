"""
Site content: the couple's story and the thank-you email template.

Both live in singleton rows (id=1). Reads fall back to defaults when the
row does not exist; writes upsert it.
"""

from __future__ import annotations

from typing import Any, Optional

from sqlalchemy.orm import Session

from enxoval_api.models import StoryContent, ThankYouTemplate
from enxoval_api.services.audit import log_change
from enxoval_api.services.email import (
    EmailDeliveryError,
    EmailMessage,
    EmailNotConfiguredError,
    EmailSender,
    get_template,
    render_markdown,
    substitute_variables,
)
from shared.config.constants import DEFAULT_STORY_CONTENT, SINGLETON_ID
from shared.infrastructure.db import safe_commit
from shared.utils.admin_schemas import TemplateOutput
from shared.utils.exceptions import ValidationError
from shared.utils.schemas import StoryOutput
from shared.utils.validators import validate_image_url

TEST_SUBJECT_PREFIX = "[TESTE] "


class ContentService:
    def __init__(self, db: Session):
        self.db = db

    # =========================================================================
    # Story
    # =========================================================================

    def get_story(self) -> StoryOutput:
        row = self.db.get(StoryContent, SINGLETON_ID)
        if row is None:
            return StoryOutput(content=DEFAULT_STORY_CONTENT, couple_photo=None)
        return StoryOutput(content=row.content, couple_photo=row.couple_photo)

    def update_story(self, content: str, couple_photo: Optional[str], user_ctx: Optional[dict]) -> StoryOutput:
        try:
            couple_photo = validate_image_url(couple_photo)
        except ValueError as e:
            raise ValidationError(str(e), field="couple_photo")

        row = self.db.get(StoryContent, SINGLETON_ID)
        if row is None:
            row = StoryContent(id=SINGLETON_ID)
            self.db.add(row)
        row.content = content
        row.couple_photo = couple_photo
        safe_commit(self.db)

        log_change(
            self.db,
            user_ctx=user_ctx,
            action="update_story",
            entity="story_content",
            entity_id=SINGLETON_ID,
            meta={"content_length": len(content), "couple_photo": couple_photo},
        )
        return StoryOutput(content=content, couple_photo=couple_photo)

    # =========================================================================
    # Thank-you template
    # =========================================================================

    def get_template(self) -> TemplateOutput:
        subject, body = get_template(self.db)
        return TemplateOutput(subject=subject, body_markdown=body)

    def update_template(self, subject: str, body_markdown: str, user_ctx: Optional[dict]) -> TemplateOutput:
        row = self.db.get(ThankYouTemplate, SINGLETON_ID)
        if row is None:
            row = ThankYouTemplate(id=SINGLETON_ID)
            self.db.add(row)
        row.subject = subject
        row.body_markdown = body_markdown
        safe_commit(self.db)

        log_change(
            self.db,
            user_ctx=user_ctx,
            action="update_template",
            entity="thankyou_template",
            entity_id=SINGLETON_ID,
            meta={"subject": subject},
        )
        return TemplateOutput(subject=subject, body_markdown=body_markdown)

    def build_test_message(
        self,
        email: str,
        name: Optional[str] = None,
        order_id: Optional[str] = None,
        total_brl: Optional[str] = None,
    ) -> EmailMessage:
        """Render the current template with sample values."""
        subject, body = get_template(self.db)
        variables = {
            "name": name or "Convidado Teste",
            "order_id": order_id or "TESTE-123",
            "total_brl": total_brl or "R$ 150,00",
        }
        return EmailMessage(
            to=email,
            subject=TEST_SUBJECT_PREFIX + substitute_variables(subject, variables),
            html=render_markdown(body, variables),
        )

    async def send_test_email(
        self,
        email: str,
        user_ctx: Optional[dict],
        *,
        name: Optional[str] = None,
        order_id: Optional[str] = None,
        total_brl: Optional[str] = None,
        sender: Optional[EmailSender] = None,
    ) -> dict[str, Any]:
        """
        Send the template to ``email`` right away.

        Raises:
            ValidationError: provider not configured or delivery refused
        """
        message = self.build_test_message(email, name, order_id, total_brl)
        sender = sender or EmailSender()
        try:
            response = await sender.send(message)
        except EmailNotConfiguredError as e:
            raise ValidationError("Serviço de e-mail não configurado (RESEND_API_KEY)") from e
        except EmailDeliveryError as e:
            raise ValidationError(f"Falha ao enviar e-mail de teste: {e}") from e

        log_change(
            self.db,
            user_ctx=user_ctx,
            action="send_test_email",
            entity="thankyou_template",
            entity_id=SINGLETON_ID,
            meta={"to": email},
        )
        return {"success": True, "id": response.get("id")}
