from __future__ import annotations

from datetime import datetime
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class _CamelModel(BaseModel):
    """Python attribute names, camelCase on the wire."""

    model_config = ConfigDict(
        from_attributes=True,
        alias_generator=to_camel,
        populate_by_name=True,
    )

    def to_json(self) -> Dict[str, Any]:
        return self.model_dump(mode="json", by_alias=True)


# ---------------------------------------------------------------------------
# Students
# ---------------------------------------------------------------------------

class StudentCreate(_CamelModel):
    """Normalised creation payload (already passed the field rules)."""

    roll_number: str
    image_url: str
    gender: str
    instagram_id: Optional[str] = None


class StudentRead(_CamelModel):
    id: str
    roll_number: str
    image_url: str
    gender: str
    instagram_id: Optional[str] = None
    instagram_url: Optional[str] = None
    upvotes: int = 0
    is_active: bool = True
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


class TopVotedStudent(_CamelModel):
    id: str
    roll_number: str
    upvotes: int
    gender: str
    instagram_id: Optional[str] = None


# ---------------------------------------------------------------------------
# Listing
# ---------------------------------------------------------------------------

class ListingQuery(BaseModel):
    """Validated, normalised query for GET /students."""

    page: int = Field(1, ge=1)
    limit: int = Field(20, ge=1)
    gender: Optional[str] = None
    search: Optional[str] = None
    sort_by: str = "upvotes"
    sort_order: str = "desc"


class Pagination(BaseModel):
    current: int
    total: int
    count: int
    total_students: int = Field(..., serialization_alias="totalStudents")


class StudentPage(BaseModel):
    students: List[StudentRead]
    pagination: Pagination


# ---------------------------------------------------------------------------
# Statistics
# ---------------------------------------------------------------------------

class GenderDistribution(BaseModel):
    male: int = 0
    female: int = 0
    other: int = 0


class StudentStats(_CamelModel):
    total_students: int
    gender_distribution: GenderDistribution
    total_votes: int
    top_voted: List[TopVotedStudent] = Field(default_factory=list)
