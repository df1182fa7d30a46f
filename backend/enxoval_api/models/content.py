"""
Site content and configuration models.

GuestbookMessage plus the singleton rows (id fixed at 1):
CampaignSettings, StoryContent, ThankYouTemplate, MercadoPagoSettings.
"""

from __future__ import annotations

from typing import Optional

from sqlalchemy import Boolean, CheckConstraint, Integer, Text
from sqlalchemy.orm import Mapped, mapped_column

from shared.config.constants import (
    DEFAULT_GOAL_CENTS,
    DEFAULT_STORY_CONTENT,
    DEFAULT_TEMPLATE_BODY,
    DEFAULT_TEMPLATE_SUBJECT,
)
from .base import Base, BigIntPK, TimestampMixin


class GuestbookMessage(TimestampMixin, Base):
    """Visitor message. Hidden from the public page until ``approved``."""

    __tablename__ = "guestbook_messages"

    id: Mapped[int] = mapped_column(BigIntPK, primary_key=True)
    author_name: Mapped[str] = mapped_column(Text, nullable=False)
    message: Mapped[str] = mapped_column(Text, nullable=False)
    approved: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False, index=True)


class CampaignSettings(TimestampMixin, Base):
    __tablename__ = "campaign_settings"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=False)
    goal_cents: Mapped[int] = mapped_column(Integer, default=DEFAULT_GOAL_CENTS, nullable=False)

    __table_args__ = (CheckConstraint("goal_cents > 0", name="ck_campaign_goal_positive"),)


class StoryContent(TimestampMixin, Base):
    __tablename__ = "story_content"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=False)
    content: Mapped[str] = mapped_column(Text, default=DEFAULT_STORY_CONTENT, nullable=False)
    couple_photo: Mapped[Optional[str]] = mapped_column(Text)


class ThankYouTemplate(TimestampMixin, Base):
    """Markdown email template. Supports {{name}}, {{total_brl}} and {{order_id}}."""

    __tablename__ = "thankyou_template"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=False)
    subject: Mapped[str] = mapped_column(Text, default=DEFAULT_TEMPLATE_SUBJECT, nullable=False)
    body_markdown: Mapped[str] = mapped_column(Text, default=DEFAULT_TEMPLATE_BODY, nullable=False)


class MercadoPagoSettings(TimestampMixin, Base):
    """Gateway credentials managed from the admin portal."""

    __tablename__ = "mercadopago_settings"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=False)
    access_token: Mapped[Optional[str]] = mapped_column(Text)
    public_key: Mapped[Optional[str]] = mapped_column(Text)
    webhook_secret: Mapped[Optional[str]] = mapped_column(Text)
    is_enabled: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)
