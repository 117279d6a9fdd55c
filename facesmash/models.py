from __future__ import annotations

from datetime import datetime, timezone
from typing import Optional

from sqlalchemy import Boolean, DateTime, Index, Integer, String
from sqlalchemy.orm import Mapped, mapped_column, validates

from . import rules
from .database import Base
from .rules import FieldRuleViolation


def _utcnow() -> datetime:
    # Naive UTC: SQLite drops tzinfo on the way in, so keep it off everywhere
    return datetime.now(timezone.utc).replace(tzinfo=None)


class Student(Base):
    """A student record that can be shown in a pair and voted for."""

    __tablename__ = "students"
    __table_args__ = (
        # Random sampling and stats always filter on these two
        Index("ix_students_is_active_gender", "is_active", "gender"),
    )

    id: Mapped[str] = mapped_column(String(24), primary_key=True, default=rules.new_identifier)
    roll_number: Mapped[str] = mapped_column(String(rules.MAX_ROLL_NUMBER_LENGTH), unique=True, index=True)
    image_url: Mapped[str] = mapped_column(String(rules.MAX_IMAGE_URL_LENGTH))
    gender: Mapped[str] = mapped_column(String(16))
    instagram_id: Mapped[Optional[str]] = mapped_column(String(30), nullable=True, default=None)
    upvotes: Mapped[int] = mapped_column(Integer, default=0)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=_utcnow, index=True)
    updated_at: Mapped[datetime] = mapped_column(DateTime, default=_utcnow, onupdate=_utcnow)

    # ------------------------------------------------------------------
    # Field rules — same checks the request validation layer runs
    # ------------------------------------------------------------------

    @validates("roll_number")
    def _validate_roll_number(self, key: str, value):
        message = rules.check_roll_number(value)
        if message:
            raise FieldRuleViolation("rollNumber", message)
        return value.strip()

    @validates("image_url")
    def _validate_image_url(self, key: str, value):
        message = rules.check_image_url(value)
        if message:
            raise FieldRuleViolation("imageUrl", message)
        return value.strip()

    @validates("gender")
    def _validate_gender(self, key: str, value):
        message = rules.check_gender(value)
        if message:
            raise FieldRuleViolation("gender", message)
        return rules.normalize_gender(value)

    @validates("instagram_id")
    def _validate_instagram_id(self, key: str, value):
        message = rules.check_instagram_id(value)
        if message:
            raise FieldRuleViolation("instagramId", message)
        return rules.normalize_instagram_id(value)

    @validates("upvotes")
    def _validate_upvotes(self, key: str, value):
        message = rules.check_upvotes(value)
        if message:
            raise FieldRuleViolation("upvotes", message)
        return value

    @validates("is_active")
    def _validate_is_active(self, key: str, value):
        message = rules.check_is_active(value)
        if message:
            raise FieldRuleViolation("isActive", message)
        return value

    @property
    def instagram_url(self) -> Optional[str]:
        return f"https://instagram.com/{self.instagram_id}" if self.instagram_id else None
