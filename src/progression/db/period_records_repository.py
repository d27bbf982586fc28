"""Repository functions for the period_records table."""

from __future__ import annotations

import sqlite3
from dataclasses import dataclass
from typing import Any

import structlog

from progression.db.database import get_db, utc_now

logger = structlog.get_logger(__name__)

DEFAULT_PASS_MARK = 10


@dataclass
class PeriodRecord:
    """Period record from database."""

    record_id: int
    class_id: int
    student_id: int
    period_number: int
    test1: float
    test2: float
    practical_exam: float
    theory_exam: float
    final_score: int
    strengths: str | None
    improvements: str | None
    notes: str | None
    recommendations: str | None
    attendance: float | None
    submitted_by: int | None
    revision: int
    created_at: str
    updated_at: str

    def is_passing(self, pass_mark: int = DEFAULT_PASS_MARK) -> bool:
        """Whether the period final score reaches the pass mark."""
        return self.final_score >= pass_mark

    def to_dict(self, pass_mark: int = DEFAULT_PASS_MARK) -> dict[str, Any]:
        """Convert to dictionary for JSON serialization.

        passed and status are derived from pass_mark, never stored.
        """
        passed = self.is_passing(pass_mark)
        return {
            "record_id": self.record_id,
            "class_id": self.class_id,
            "student_id": self.student_id,
            "period_number": self.period_number,
            "test1": self.test1,
            "test2": self.test2,
            "practical_exam": self.practical_exam,
            "theory_exam": self.theory_exam,
            "final_score": self.final_score,
            "passed": passed,
            "status": "passed" if passed else "failed",
            "attendance": self.attendance,
            "strengths": self.strengths,
            "improvements": self.improvements,
            "notes": self.notes,
            "recommendations": self.recommendations,
            "submitted_by": self.submitted_by,
            "revision": self.revision,
            "created_at": self.created_at,
            "updated_at": self.updated_at,
        }


def upsert_period_record(
    class_id: int,
    student_id: int,
    period_number: int,
    test1: float,
    test2: float,
    practical_exam: float,
    theory_exam: float,
    final_score: int,
    strengths: str | None = None,
    improvements: str | None = None,
    notes: str | None = None,
    recommendations: str | None = None,
    attendance: float | None = None,
    submitted_by: int | None = None,
    conn: sqlite3.Connection | None = None,
) -> PeriodRecord:
    """Insert or overwrite the record for (class, student, period).

    The row is only touched when a value differs from what is stored, so
    repeating a write leaves revision and updated_at unchanged. revision
    counts score changes only; notes and attendance edits keep it.

    Returns:
        The stored PeriodRecord
    """
    now = utc_now()
    with get_db(conn) as db:
        db.execute(
            """
            INSERT INTO period_records (
                class_id, student_id, period_number,
                test1, test2, practical_exam, theory_exam, final_score,
                strengths, improvements, notes, recommendations, attendance,
                submitted_by, revision, created_at, updated_at
            ) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, 1, ?, ?)
            ON CONFLICT(class_id, student_id, period_number) DO UPDATE SET
                test1 = excluded.test1,
                test2 = excluded.test2,
                practical_exam = excluded.practical_exam,
                theory_exam = excluded.theory_exam,
                final_score = excluded.final_score,
                strengths = excluded.strengths,
                improvements = excluded.improvements,
                notes = excluded.notes,
                recommendations = excluded.recommendations,
                attendance = excluded.attendance,
                submitted_by = excluded.submitted_by,
                revision = period_records.revision + (
                    period_records.test1 IS NOT excluded.test1
                    OR period_records.test2 IS NOT excluded.test2
                    OR period_records.practical_exam IS NOT excluded.practical_exam
                    OR period_records.theory_exam IS NOT excluded.theory_exam
                ),
                updated_at = excluded.updated_at
            WHERE period_records.test1 IS NOT excluded.test1
               OR period_records.test2 IS NOT excluded.test2
               OR period_records.practical_exam IS NOT excluded.practical_exam
               OR period_records.theory_exam IS NOT excluded.theory_exam
               OR period_records.strengths IS NOT excluded.strengths
               OR period_records.improvements IS NOT excluded.improvements
               OR period_records.notes IS NOT excluded.notes
               OR period_records.recommendations IS NOT excluded.recommendations
               OR period_records.attendance IS NOT excluded.attendance
               OR period_records.submitted_by IS NOT excluded.submitted_by
            """,
            (
                class_id,
                student_id,
                period_number,
                test1,
                test2,
                practical_exam,
                theory_exam,
                final_score,
                strengths,
                improvements,
                notes,
                recommendations,
                attendance,
                submitted_by,
                now,
                now,
            ),
        )
        record = get_period_record(class_id, student_id, period_number, conn=db)

    logger.debug(
        "period_records.upserted",
        class_id=class_id,
        student_id=student_id,
        period_number=period_number,
        revision=record.revision,
    )
    return record


def get_period_record(
    class_id: int,
    student_id: int,
    period_number: int,
    conn: sqlite3.Connection | None = None,
) -> PeriodRecord | None:
    """Get the record for (class, student, period), or None."""
    with get_db(conn) as db:
        row = db.execute(
            """
            SELECT * FROM period_records
            WHERE class_id = ? AND student_id = ? AND period_number = ?
            """,
            (class_id, student_id, period_number),
        ).fetchone()

    if row is None:
        return None

    return _row_to_record(row)


def list_period_records(
    class_id: int,
    student_id: int,
    conn: sqlite3.Connection | None = None,
) -> list[PeriodRecord]:
    """All records of a student in a class, ordered by period."""
    with get_db(conn) as db:
        rows = db.execute(
            """
            SELECT * FROM period_records
            WHERE class_id = ? AND student_id = ?
            ORDER BY period_number
            """,
            (class_id, student_id),
        ).fetchall()

    return [_row_to_record(row) for row in rows]


def list_class_period_records(
    class_id: int,
    period_number: int | None = None,
    conn: sqlite3.Connection | None = None,
) -> list[PeriodRecord]:
    """Records of a whole class, optionally for one period."""
    query = "SELECT * FROM period_records WHERE class_id = ?"
    params: list[int] = [class_id]
    if period_number is not None:
        query += " AND period_number = ?"
        params.append(period_number)
    query += " ORDER BY student_id, period_number"

    with get_db(conn) as db:
        rows = db.execute(query, params).fetchall()

    return [_row_to_record(row) for row in rows]


def list_student_period_records(
    student_id: int,
    conn: sqlite3.Connection | None = None,
) -> list[PeriodRecord]:
    """Records of a student across all classes."""
    with get_db(conn) as db:
        rows = db.execute(
            """
            SELECT * FROM period_records
            WHERE student_id = ?
            ORDER BY class_id, period_number
            """,
            (student_id,),
        ).fetchall()

    return [_row_to_record(row) for row in rows]


def _row_to_record(row) -> PeriodRecord:
    """Convert database row to PeriodRecord."""
    return PeriodRecord(
        record_id=row["record_id"],
        class_id=row["class_id"],
        student_id=row["student_id"],
        period_number=row["period_number"],
        test1=row["test1"],
        test2=row["test2"],
        practical_exam=row["practical_exam"],
        theory_exam=row["theory_exam"],
        final_score=row["final_score"],
        strengths=row["strengths"],
        improvements=row["improvements"],
        notes=row["notes"],
        recommendations=row["recommendations"],
        attendance=row["attendance"],
        submitted_by=row["submitted_by"],
        revision=row["revision"],
        created_at=row["created_at"],
        updated_at=row["updated_at"],
    )
