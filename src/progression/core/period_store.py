"""Period record store.

Responsibilities:
- Validate and persist the four component scores of a (class, student, period)
- Recompute the period final score on every write
- Read records back ordered by period

Writes are idempotent: an identical upsert leaves the stored row as it was.
"""

from __future__ import annotations

import math
import sqlite3
from dataclasses import dataclass
from typing import Any

import structlog

from progression.config.catalog import CatalogReader, Level, SchoolClass
from progression.core.errors import NotFoundError, ValidationError
from progression.core.grade_aggregator import ComponentScores, final_score_for
from progression.db import level_attempts_repository as attempts_repo
from progression.db import period_records_repository as records_repo
from progression.db.database import get_db
from progression.db.period_records_repository import PeriodRecord

logger = structlog.get_logger(__name__)


@dataclass(frozen=True)
class PeriodFeedback:
    """Instructor notes for a period.

    attendance is a percentage in [0, 100]; submitted_by is the id of the
    staff member entering the grades.
    """

    strengths: str | None = None
    improvements: str | None = None
    notes: str | None = None
    recommendations: str | None = None
    attendance: float | None = None
    submitted_by: int | None = None


def require_id(name: str, value: int | None) -> int:
    """Check that an identifier is a positive integer.

    Raises:
        ValidationError: If the identifier is missing or not positive
    """
    if value is None:
        raise ValidationError(f"Missing required identifier: {name}")
    if isinstance(value, bool) or not isinstance(value, int) or value < 1:
        raise ValidationError(f"Invalid {name}: {value!r}")
    return value


def resolve_class_level(catalog: CatalogReader, class_id: int) -> tuple[SchoolClass, Level]:
    """Look up a class and the level it teaches.

    Raises:
        NotFoundError: If the class or its level is not in the catalog
    """
    school_class = catalog.get_class(class_id)
    if school_class is None:
        raise NotFoundError(f"Class not found: {class_id}")

    level = catalog.get_level(school_class.level_id)
    if level is None:
        raise NotFoundError(
            f"Level {school_class.level_id} of class {class_id} not found"
        )
    return school_class, level


def validate_period_number(level: Level, period_number: int) -> int:
    """Check period_number against the level's configured period count.

    Raises:
        ValidationError: If outside 1..period_count
    """
    if isinstance(period_number, bool) or not isinstance(period_number, int):
        raise ValidationError(f"Invalid period_number: {period_number!r}")
    if not 1 <= period_number <= level.period_count:
        raise ValidationError(
            f"period_number {period_number} outside 1..{level.period_count} "
            f"for level {level.level_id}"
        )
    return period_number


def validate_attendance(value: Any) -> float | None:
    """Check an optional attendance percentage.

    Raises:
        ValidationError: If not a finite number in [0, 100]
    """
    if value is None:
        return None
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise ValidationError(f"Attendance must be a number: {value!r}")
    if not math.isfinite(value) or not 0 <= value <= 100:
        raise ValidationError(f"Attendance {value} outside [0, 100]")
    return float(value)


def _clean_text(value: str | None) -> str | None:
    if value is None:
        return None
    value = value.strip()
    return value or None


def upsert_period_record(
    class_id: int,
    student_id: int,
    period_number: int,
    scores: ComponentScores,
    feedback: PeriodFeedback | None = None,
    *,
    catalog: CatalogReader,
    conn: sqlite3.Connection | None = None,
) -> PeriodRecord:
    """Save the scores of one student in one period.

    Args:
        class_id: Class identifier
        student_id: Student identifier
        period_number: 1-based period, bounded by the level's period count
        scores: Component scores, each in [0, 20]
        feedback: Optional instructor notes, attendance and author
        catalog: Course catalog reader
        conn: Connection of an enclosing unit of work

    Returns:
        The stored PeriodRecord with its recomputed final score

    Raises:
        ValidationError: Invalid identifiers, period number or scores
        NotFoundError: Unknown class, or student not enrolled at its level
    """
    require_id("class_id", class_id)
    require_id("student_id", student_id)
    school_class, level = resolve_class_level(catalog, class_id)
    validate_period_number(level, period_number)

    final_score = final_score_for(scores)
    feedback = feedback or PeriodFeedback()
    attendance = validate_attendance(feedback.attendance)
    if feedback.submitted_by is not None:
        require_id("submitted_by", feedback.submitted_by)

    with get_db(conn) as db:
        enrolled = attempts_repo.find_class_attempt(
            student_id, level.level_id, class_id, conn=db
        )
        if enrolled is None:
            raise NotFoundError(
                f"Student {student_id} is not enrolled in class {class_id}"
            )

        record = records_repo.upsert_period_record(
            class_id=class_id,
            student_id=student_id,
            period_number=period_number,
            test1=float(scores.test1),
            test2=float(scores.test2),
            practical_exam=float(scores.practical_exam),
            theory_exam=float(scores.theory_exam),
            final_score=final_score,
            strengths=_clean_text(feedback.strengths),
            improvements=_clean_text(feedback.improvements),
            notes=_clean_text(feedback.notes),
            recommendations=_clean_text(feedback.recommendations),
            attendance=attendance,
            submitted_by=feedback.submitted_by,
            conn=db,
        )

    logger.info(
        "period_record.upserted",
        class_id=class_id,
        student_id=student_id,
        period_number=period_number,
        final_score=final_score,
        revision=record.revision,
        terminal=period_number == level.terminal_period,
    )
    return record


def get_period_records(
    class_id: int,
    student_id: int,
    period_number: int | None = None,
    *,
    catalog: CatalogReader,
    conn: sqlite3.Connection | None = None,
) -> list[PeriodRecord]:
    """Records of a student in a class, ordered by period number.

    Raises:
        ValidationError: Invalid identifiers or period number
        NotFoundError: Unknown class, or student never enrolled in it
    """
    require_id("class_id", class_id)
    require_id("student_id", student_id)
    _, level = resolve_class_level(catalog, class_id)
    if period_number is not None:
        validate_period_number(level, period_number)

    with get_db(conn) as db:
        if attempts_repo.find_class_attempt(student_id, level.level_id, class_id, conn=db) is None:
            raise NotFoundError(
                f"Student {student_id} is not enrolled in class {class_id}"
            )
        records = records_repo.list_period_records(class_id, student_id, conn=db)

    if period_number is not None:
        records = [r for r in records if r.period_number == period_number]
    return records


def list_class_records(
    class_id: int,
    period_number: int | None = None,
    *,
    catalog: CatalogReader,
) -> list[PeriodRecord]:
    """Records of every student of a class, optionally for one period."""
    require_id("class_id", class_id)
    _, level = resolve_class_level(catalog, class_id)
    if period_number is not None:
        validate_period_number(level, period_number)
    return records_repo.list_class_period_records(class_id, period_number)


def list_student_records(student_id: int) -> list[PeriodRecord]:
    """Records of a student across all classes."""
    require_id("student_id", student_id)
    return records_repo.list_student_period_records(student_id)
