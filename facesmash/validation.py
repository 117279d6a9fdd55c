"""
validation.py — Request validation layer
========================================
Runs before any store access. Each ``validate_*`` function either returns
a normalised value for the route to hand to the service, or raises one of
the 400-class errors from errors.py. Field-level checks come from
rules.py so they match what the model enforces.
"""
from __future__ import annotations

from typing import Any, Dict, List, Mapping, Optional

from . import rules
from .config import settings
from .errors import InvalidIdentifier, MissingField, ValidationFailed
from .schemas import ListingQuery, StudentCreate

# Keys a patch may never touch; the store owns them
PROTECTED_FIELDS = ("id", "_id", "__v", "createdAt", "updatedAt", "created_at", "updated_at")

# Wire name -> (column name, rule check)
UPDATABLE_FIELDS = {
    "rollNumber": ("roll_number", rules.check_roll_number),
    "imageUrl": ("image_url", rules.check_image_url),
    "gender": ("gender", rules.check_gender),
    "instagramId": ("instagram_id", rules.check_instagram_id),
    "upvotes": ("upvotes", rules.check_upvotes),
    "isActive": ("is_active", rules.check_is_active),
}


def validate_identifier(value: Any) -> str:
    if not rules.is_valid_identifier(value):
        raise InvalidIdentifier()
    return rules.normalize_identifier(value)


def validate_creation(payload: Mapping[str, Any]) -> StudentCreate:
    """Check a creation body, reporting every violation at once."""
    roll_number = payload.get("rollNumber")
    image_url = payload.get("imageUrl")
    gender = payload.get("gender")
    instagram_id = payload.get("instagramId")

    errors: List[str] = []
    for check, value in (
        (rules.check_roll_number, roll_number),
        (rules.check_image_url, image_url),
        (rules.check_gender, gender),
        (rules.check_instagram_id, instagram_id),
    ):
        message = check(value)
        if message:
            errors.append(message)

    if errors:
        raise ValidationFailed(errors)

    return StudentCreate(
        roll_number=roll_number.strip(),
        image_url=image_url.strip(),
        gender=rules.normalize_gender(gender),
        instagram_id=rules.normalize_instagram_id(instagram_id),
    )


def validate_vote(payload: Mapping[str, Any]) -> str:
    student_id = payload.get("studentId")
    if not student_id:
        raise MissingField(
            "student ID",
            "Student ID is required to record a vote",
        )
    if not rules.is_valid_identifier(student_id):
        raise InvalidIdentifier(
            "The provided student ID is not a valid student identifier",
            error="Invalid student ID format",
        )
    return rules.normalize_identifier(student_id)


def _parse_int(raw: Optional[str]) -> Optional[int]:
    try:
        return int(raw)
    except (TypeError, ValueError):
        return None


def validate_listing_query(
    page: Optional[str] = None,
    limit: Optional[str] = None,
    gender: Optional[str] = None,
    sort_by: Optional[str] = None,
    sort_order: Optional[str] = None,
    search: Optional[str] = None,
) -> ListingQuery:
    """Validate raw query-string values for the listing endpoint.

    Absent parameters fall back to defaults; ``gender`` and ``sort_order``
    come back lower-cased.
    """
    errors: List[str] = []
    max_limit = settings.max_page_size

    page_num = 1
    if page:
        page_num = _parse_int(page)
        if page_num is None or page_num < 1:
            errors.append("Page must be a positive integer")

    limit_num = settings.default_page_size
    if limit:
        limit_num = _parse_int(limit)
        if limit_num is None or not 1 <= limit_num <= max_limit:
            errors.append(f"Limit must be a positive integer between 1 and {max_limit}")

    if gender and gender.lower() not in rules.GENDERS:
        errors.append("Gender must be one of: male, female, other")

    if sort_by and sort_by not in rules.SORT_FIELDS:
        errors.append(f"Sort field must be one of: {', '.join(rules.SORT_FIELDS)}")

    if sort_order and sort_order.lower() not in rules.SORT_ORDERS:
        errors.append('Sort order must be either "asc" or "desc"')

    if errors:
        raise ValidationFailed(errors, error="Query validation failed")

    return ListingQuery(
        page=page_num,
        limit=limit_num,
        gender=gender.lower() if gender else None,
        search=search or None,
        sort_by=sort_by or "upvotes",
        sort_order=sort_order.lower() if sort_order else "desc",
    )


def validate_update(payload: Mapping[str, Any]) -> Dict[str, Any]:
    """Turn an update body into a column-name patch.

    Store-owned keys are stripped and unknown keys ignored. Every
    supplied field is checked; all violations are reported together.
    """
    patch: Dict[str, Any] = {}
    errors: List[str] = []

    for key, value in payload.items():
        if key in PROTECTED_FIELDS or key not in UPDATABLE_FIELDS:
            continue
        column, check = UPDATABLE_FIELDS[key]
        message = check(value)
        if message:
            errors.append(message)
            continue
        if column == "gender":
            value = rules.normalize_gender(value)
        elif column == "instagram_id":
            value = rules.normalize_instagram_id(value)
        elif isinstance(value, str):
            value = value.strip()
        patch[column] = value

    if errors:
        raise ValidationFailed(errors)
    return patch
