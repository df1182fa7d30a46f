"""
User and Authentication Models.
"""

from __future__ import annotations

from typing import Optional

from sqlalchemy import BigInteger, ForeignKey, Text
from sqlalchemy.orm import Mapped, mapped_column, relationship

from shared.config.constants import Roles
from .base import Base, BigIntPK, TimestampMixin


class AdminUser(TimestampMixin, Base):
    """Portal login. The role lives in Profile, looked up on every admin request."""

    __tablename__ = "admin_users"

    id: Mapped[int] = mapped_column(BigIntPK, primary_key=True)
    email: Mapped[str] = mapped_column(Text, nullable=False, unique=True, index=True)
    password: Mapped[str] = mapped_column(Text, nullable=False)  # bcrypt hash
    full_name: Mapped[Optional[str]] = mapped_column(Text)

    profile: Mapped[Optional["Profile"]] = relationship(
        back_populates="user", uselist=False, cascade="all, delete-orphan"
    )

    def __repr__(self) -> str:
        return f"<AdminUser(id={self.id}, email='{self.email}')>"


class Profile(TimestampMixin, Base):
    __tablename__ = "profiles"

    id: Mapped[int] = mapped_column(BigIntPK, primary_key=True)
    user_id: Mapped[int] = mapped_column(
        BigInteger, ForeignKey("admin_users.id", ondelete="CASCADE"), nullable=False, unique=True
    )
    role: Mapped[str] = mapped_column(Text, default=Roles.USER, nullable=False)

    user: Mapped["AdminUser"] = relationship(back_populates="profile")
