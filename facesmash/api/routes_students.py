"""
routes_students.py — Student voting and administration endpoints
================================================================
  - GET    /students/random   two random active students for a round
  - POST   /students/vote     upvote one of them
  - GET    /students          paginated, filterable listing
  - POST   /students          add a student
  - GET    /students/stats    counts, gender split, total votes, top ten
  - GET    /students/{id}     fetch one (active or not)
  - PUT    /students/{id}     administrative patch
  - DELETE /students/{id}     soft delete

Every route is gated by the per-client rate limiter. Request bodies are
read as plain dicts so the validation layer can report all violations in
one response instead of FastAPI's per-field 422.
"""
from __future__ import annotations

from typing import Any, Dict, Optional

from fastapi import APIRouter, Body, Depends, Query

from .. import student_service
from ..rate_limit import enforce_rate_limit
from ..validation import (
    validate_creation,
    validate_identifier,
    validate_listing_query,
    validate_update,
    validate_vote,
)

router = APIRouter(
    prefix="/students",
    tags=["students"],
    dependencies=[Depends(enforce_rate_limit)],
)


@router.get("/random")
def random_students(
    gender: Optional[str] = Query(None, description="Restrict the pair to male, female or other"),
    count: Optional[str] = Query(None, description="How many students to sample (1-10, default 2)"),
) -> dict:
    """Sample students for the next comparison round."""
    students = student_service.get_random_students(gender=gender, count=count)
    return {
        "success": True,
        "students": [s.to_json() for s in students],
        "filter": student_service.gender_filter(gender) or "all",
    }


@router.post("/vote")
def vote(payload: Optional[Dict[str, Any]] = Body(None)) -> dict:
    """Record one upvote for the chosen student."""
    student_id = validate_vote(payload or {})
    student = student_service.record_vote(student_id)
    return {
        "success": True,
        "message": "Vote recorded successfully",
        "student": {
            "id": student.id,
            "rollNumber": student.roll_number,
            "upvotes": student.upvotes,
        },
    }


@router.get("")
def list_students(
    page: Optional[str] = Query(None, description="1-based page number"),
    limit: Optional[str] = Query(None, description="Page size (1-100, default 20)"),
    gender: Optional[str] = Query(None, description="Filter by gender"),
    sort_by: Optional[str] = Query(None, alias="sortBy", description="rollNumber | upvotes | gender | createdAt | updatedAt"),
    sort_order: Optional[str] = Query(None, alias="sortOrder", description="asc | desc"),
    search: Optional[str] = Query(None, description="Case-insensitive roll number substring"),
) -> dict:
    """List active students with pagination, filtering and sorting."""
    query = validate_listing_query(
        page=page,
        limit=limit,
        gender=gender,
        sort_by=sort_by,
        sort_order=sort_order,
        search=search,
    )
    result = student_service.list_students(query)
    return {
        "success": True,
        "students": [s.to_json() for s in result.students],
        "pagination": result.pagination.model_dump(by_alias=True),
        "filters": {
            "gender": query.gender or "all",
            "search": query.search or "",
            "sortBy": query.sort_by,
            "sortOrder": query.sort_order,
        },
    }


@router.post("", status_code=201)
def create_student(payload: Optional[Dict[str, Any]] = Body(None)) -> dict:
    """Add a new student; roll numbers must be unique."""
    data = validate_creation(payload or {})
    student = student_service.create_student(data)
    return {
        "success": True,
        "message": "Student added successfully",
        "student": student.to_json(),
    }


@router.get("/stats")
def stats() -> dict:
    return {"success": True, "stats": student_service.get_stats().to_json()}


@router.get("/{student_id}")
def get_student(student_id: str) -> dict:
    """Fetch one student by id, including deactivated ones."""
    student_id = validate_identifier(student_id)
    return {"success": True, "student": student_service.get_student(student_id).to_json()}


@router.put("/{student_id}")
def update_student(student_id: str, payload: Optional[Dict[str, Any]] = Body(None)) -> dict:
    """Administrative patch. id and timestamps cannot be changed."""
    student_id = validate_identifier(student_id)
    patch = validate_update(payload or {})
    student = student_service.update_student(student_id, patch)
    return {
        "success": True,
        "message": "Student updated successfully",
        "student": student.to_json(),
    }


@router.delete("/{student_id}")
def deactivate_student(student_id: str) -> dict:
    """Soft delete: the student disappears from rounds, listings and stats."""
    student_id = validate_identifier(student_id)
    student = student_service.deactivate_student(student_id)
    return {
        "success": True,
        "message": "Student deactivated successfully",
        "student": {
            "id": student.id,
            "rollNumber": student.roll_number,
            "isActive": student.is_active,
        },
    }
