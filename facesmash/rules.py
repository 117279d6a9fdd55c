"""
rules.py — Field rules for student records
==========================================
One place for every per-field constraint. The request validation layer
(validation.py) and the ORM ``@validates`` hooks (models.py) both call
these functions, so the two layers always agree on what a valid student
looks like.

Each ``check_*`` function returns ``None`` when the value is acceptable,
otherwise the human-readable violation message.
"""
from __future__ import annotations

import re
import secrets
from typing import Any, Optional

GENDERS = ("male", "female", "other")
SORT_FIELDS = ("rollNumber", "upvotes", "gender", "createdAt", "updatedAt")
SORT_ORDERS = ("asc", "desc")

# Column widths in models.py
MAX_ROLL_NUMBER_LENGTH = 64
MAX_IMAGE_URL_LENGTH = 2048

IMAGE_URL_PATTERN = re.compile(r"^https?://.+\.(jpg|jpeg|png|gif|webp)$", re.IGNORECASE)
INSTAGRAM_ID_PATTERN = re.compile(r"^[a-zA-Z0-9_.]{1,30}$")
IDENTIFIER_PATTERN = re.compile(r"^[0-9a-fA-F]{24}$")


class FieldRuleViolation(ValueError):
    """Raised by the model layer when an attribute breaks a field rule."""

    def __init__(self, field: str, message: str) -> None:
        super().__init__(message)
        self.field = field
        self.message = message


# ---------------------------------------------------------------------------
# Identifiers
# ---------------------------------------------------------------------------

def new_identifier() -> str:
    """Fresh 24-char hex identifier for a new record."""
    return secrets.token_hex(12)


def is_valid_identifier(value: Any) -> bool:
    return isinstance(value, str) and IDENTIFIER_PATTERN.match(value) is not None


def normalize_identifier(value: str) -> str:
    """Stored identifiers are lower-case hex; accept either case on input."""
    return value.lower()


# ---------------------------------------------------------------------------
# Normalisation
# ---------------------------------------------------------------------------

def normalize_gender(value: str) -> str:
    return value.strip().lower()


def normalize_instagram_id(value: Optional[str]) -> Optional[str]:
    """Blank handles are stored as null, never as an empty string."""
    if value is None:
        return None
    value = value.strip()
    return value or None


# ---------------------------------------------------------------------------
# Per-field checks
# ---------------------------------------------------------------------------

def _is_blank(value: Any) -> bool:
    return not isinstance(value, str) or not value.strip()


def check_roll_number(value: Any) -> Optional[str]:
    if _is_blank(value):
        return "Roll number is required and must be a non-empty string"
    if len(value.strip()) > MAX_ROLL_NUMBER_LENGTH:
        return f"Roll number must be at most {MAX_ROLL_NUMBER_LENGTH} characters"
    return None


def check_image_url(value: Any) -> Optional[str]:
    if _is_blank(value):
        return "Image URL is required and must be a non-empty string"
    if len(value.strip()) > MAX_IMAGE_URL_LENGTH:
        return f"Image URL must be at most {MAX_IMAGE_URL_LENGTH} characters"
    if not IMAGE_URL_PATTERN.match(value.strip()):
        return (
            "Image URL must be a valid HTTP/HTTPS URL ending with "
            ".jpg, .jpeg, .png, .gif, or .webp"
        )
    return None


def check_gender(value: Any) -> Optional[str]:
    if _is_blank(value) or normalize_gender(value) not in GENDERS:
        return "Gender is required and must be one of: male, female, other"
    return None


def check_instagram_id(value: Any) -> Optional[str]:
    """Absent or blank handles are fine; anything else must match the pattern."""
    if value is None:
        return None
    if not isinstance(value, str):
        return "Instagram ID must be a string"
    value = value.strip()
    if value and not INSTAGRAM_ID_PATTERN.match(value):
        return (
            "Instagram ID must contain only letters, numbers, dots, and "
            "underscores (max 30 characters)"
        )
    return None


def check_upvotes(value: Any) -> Optional[str]:
    # bool is an int subclass; a JSON true must not become one upvote
    if isinstance(value, bool) or not isinstance(value, int) or value < 0:
        return "Upvotes must be a non-negative integer"
    return None


def check_is_active(value: Any) -> Optional[str]:
    if not isinstance(value, bool):
        return "isActive must be a boolean"
    return None
