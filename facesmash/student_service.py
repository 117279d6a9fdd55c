"""
student_service.py — Domain operations on student records
=========================================================
Random pair selection, voting, listing, creation, update, soft delete and
statistics. Every operation opens its own session; persistence errors are
surfaced as StoreFailure with an operation-specific title and never
retried.
"""
from __future__ import annotations

import logging
import math
from contextlib import contextmanager
from typing import Any, Dict, Iterator, List, Optional

from sqlalchemy import func, select, update
from sqlalchemy.exc import IntegrityError, SQLAlchemyError

from . import rules
from .database import db_session
from .errors import (
    DuplicateRollNumber,
    InactiveTarget,
    InsufficientCandidates,
    NotFound,
    StoreFailure,
    ValidationFailed,
)
from .models import Student
from .rules import FieldRuleViolation
from .schemas import (
    GenderDistribution,
    ListingQuery,
    Pagination,
    StudentCreate,
    StudentPage,
    StudentRead,
    StudentStats,
    TopVotedStudent,
)

log = logging.getLogger("facesmash.students")

MIN_SAMPLE = 1
MAX_SAMPLE = 10
TOP_VOTED_LIMIT = 10

_SORT_COLUMNS = {
    "rollNumber": Student.roll_number,
    "upvotes": Student.upvotes,
    "gender": Student.gender,
    "createdAt": Student.created_at,
    "updatedAt": Student.updated_at,
}


@contextmanager
def _store_call(failure: str) -> Iterator[None]:
    """Map persistence errors onto StoreFailure(failure, <store message>)."""
    try:
        yield
    except SQLAlchemyError as exc:
        log.exception(failure)
        raise StoreFailure(failure, str(exc)) from exc


def _active_filter(stmt, gender: Optional[str] = None):
    stmt = stmt.where(Student.is_active.is_(True))
    if gender:
        stmt = stmt.where(Student.gender == gender)
    return stmt


def gender_filter(gender: Optional[str]) -> Optional[str]:
    """Unknown gender filters are ignored rather than matching nothing."""
    if gender and rules.normalize_gender(gender) in rules.GENDERS:
        return rules.normalize_gender(gender)
    return None


def clamp_count(count: Any, default: int = 2) -> int:
    """Parse a requested sample size and clamp it to [1, 10].

    Missing, non-numeric and zero values fall back to ``default``.
    """
    try:
        value = int(count)
    except (TypeError, ValueError):
        value = 0
    if not value:
        value = default
    return min(max(value, MIN_SAMPLE), MAX_SAMPLE)


# ---------------------------------------------------------------------------
# Random pair
# ---------------------------------------------------------------------------

def get_random_students(gender: Optional[str] = None, count: Any = 2) -> List[StudentRead]:
    """Uniformly sample ``count`` active students, optionally of one gender.

    Raises InsufficientCandidates when fewer than two come back, so a
    caller never receives a pair it cannot show.
    """
    gender = gender_filter(gender)
    size = clamp_count(count)

    with _store_call("Failed to fetch students"):
        with db_session() as session:
            stmt = _active_filter(select(Student), gender).order_by(func.random()).limit(size)
            rows = session.execute(stmt).scalars().all()
            students = [StudentRead.model_validate(r) for r in rows]

    if len(students) < 2:
        raise InsufficientCandidates(found=len(students), gender=gender)
    return students


# ---------------------------------------------------------------------------
# Voting
# ---------------------------------------------------------------------------

def record_vote(student_id: str) -> StudentRead:
    """Add exactly one upvote to an active student.

    The increment and the active check are a single UPDATE, so concurrent
    votes never lose updates and a student deactivated mid-request is not
    counted.
    """
    with _store_call("Failed to record vote"):
        with db_session() as session:
            result = session.execute(
                update(Student)
                .where(Student.id == student_id, Student.is_active.is_(True))
                .values(upvotes=Student.upvotes + 1)
                .execution_options(synchronize_session=False)
            )
            student = session.get(Student, student_id, populate_existing=True)
            if student is None:
                raise NotFound()
            if result.rowcount == 0:
                raise InactiveTarget()
            voted = StudentRead.model_validate(student)

    log.info("Vote recorded for %s (upvotes=%d)", voted.roll_number, voted.upvotes)
    return voted


# ---------------------------------------------------------------------------
# Listing
# ---------------------------------------------------------------------------

def list_students(query: ListingQuery) -> StudentPage:
    """One page of active students plus pagination metadata."""
    column = _SORT_COLUMNS[query.sort_by]
    ordering = column.asc() if query.sort_order == "asc" else column.desc()

    with _store_call("Failed to fetch students"):
        with db_session() as session:
            stmt = _active_filter(select(Student), query.gender)
            count_stmt = _active_filter(select(func.count(Student.id)), query.gender)
            if query.search:
                match = func.lower(Student.roll_number).contains(query.search.lower(), autoescape=True)
                stmt = stmt.where(match)
                count_stmt = count_stmt.where(match)

            stmt = (
                stmt.order_by(ordering, Student.id.asc())
                .offset((query.page - 1) * query.limit)
                .limit(query.limit)
            )
            rows = session.execute(stmt).scalars().all()
            total = session.execute(count_stmt).scalar_one() or 0
            students = [StudentRead.model_validate(r) for r in rows]

    return StudentPage(
        students=students,
        pagination=Pagination(
            current=query.page,
            total=math.ceil(total / query.limit),
            count=len(students),
            total_students=total,
        ),
    )


# ---------------------------------------------------------------------------
# Create / read / update / soft delete
# ---------------------------------------------------------------------------

def create_student(data: StudentCreate) -> StudentRead:
    """Persist a new active student with zero upvotes."""
    with _store_call("Failed to add student"):
        with db_session() as session:
            existing = session.execute(
                select(Student.id).where(Student.roll_number == data.roll_number)
            ).scalar_one_or_none()
        if existing is not None:
            raise DuplicateRollNumber(data.roll_number)

        try:
            with db_session() as session:
                student = Student(
                    roll_number=data.roll_number,
                    image_url=data.image_url,
                    gender=data.gender,
                    instagram_id=data.instagram_id,
                    upvotes=0,
                    is_active=True,
                )
                session.add(student)
                session.flush()
                created = StudentRead.model_validate(student)
        except FieldRuleViolation as exc:
            raise ValidationFailed([exc.message]) from exc
        except IntegrityError as exc:
            # Lost a race with a concurrent create of the same roll number
            raise DuplicateRollNumber() from exc

    log.info("Student %s created (%s)", created.roll_number, created.id)
    return created


def get_student(student_id: str) -> StudentRead:
    """Fetch by id, including deactivated students."""
    with _store_call("Failed to fetch student"):
        with db_session() as session:
            student = session.get(Student, student_id)
            if student is None:
                raise NotFound()
            return StudentRead.model_validate(student)


def update_student(student_id: str, patch: Dict[str, Any]) -> StudentRead:
    """Apply an already-validated column patch; the model re-checks each field.

    Upvotes only ever grow: a patch may raise the counter but never lower
    it below the stored value.
    """
    with _store_call("Failed to update student"):
        try:
            with db_session() as session:
                student = session.get(Student, student_id)
                if student is None:
                    raise NotFound()
                if "upvotes" in patch and patch["upvotes"] < student.upvotes:
                    raise ValidationFailed(
                        [f"Upvotes cannot be decreased (currently {student.upvotes})"]
                    )
                for column, value in patch.items():
                    setattr(student, column, value)
                session.flush()
                updated = StudentRead.model_validate(student)
        except FieldRuleViolation as exc:
            raise ValidationFailed([exc.message]) from exc
        except IntegrityError as exc:
            raise DuplicateRollNumber(patch.get("roll_number")) from exc

    log.info("Student %s updated (fields=%s)", updated.roll_number, ",".join(sorted(patch)))
    return updated


def deactivate_student(student_id: str) -> StudentRead:
    """Soft delete: flip is_active off. There is no hard delete."""
    with _store_call("Failed to deactivate student"):
        with db_session() as session:
            student = session.get(Student, student_id)
            if student is None:
                raise NotFound()
            student.is_active = False
            session.flush()
            deactivated = StudentRead.model_validate(student)

    log.info("Student %s deactivated", deactivated.roll_number)
    return deactivated


# ---------------------------------------------------------------------------
# Statistics
# ---------------------------------------------------------------------------

def get_stats() -> StudentStats:
    """Counts, gender split, total votes and the top ten active students."""
    with _store_call("Failed to fetch statistics"):
        with db_session() as session:
            total = session.execute(_active_filter(select(func.count(Student.id)))).scalar_one() or 0

            by_gender = dict(
                session.execute(
                    _active_filter(select(Student.gender, func.count(Student.id)))
                    .group_by(Student.gender)
                ).all()
            )

            total_votes = (
                session.execute(
                    _active_filter(select(func.coalesce(func.sum(Student.upvotes), 0)))
                ).scalar_one() or 0
            )

            top_rows = session.execute(
                _active_filter(select(Student))
                .order_by(Student.upvotes.desc(), Student.created_at.asc(), Student.id.asc())
                .limit(TOP_VOTED_LIMIT)
            ).scalars().all()
            top_voted = [TopVotedStudent.model_validate(r) for r in top_rows]

    return StudentStats(
        total_students=total,
        gender_distribution=GenderDistribution(
            **{g: by_gender.get(g, 0) for g in rules.GENDERS}
        ),
        total_votes=int(total_votes),
        top_voted=top_voted,
    )
