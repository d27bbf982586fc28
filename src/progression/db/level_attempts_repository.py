"""Repository functions for the level ledger.

Tables: level_attempts (one row per attempt) and level_transitions
(append-only audit of every status change).
"""

from __future__ import annotations

import sqlite3
from dataclasses import dataclass
from typing import Any

import structlog

from progression.core.level_state import LevelStatus, effective_status
from progression.db.database import get_db, utc_now

logger = structlog.get_logger(__name__)

# Columns update_attempt() may write
_UPDATABLE = frozenset(
    {
        "status",
        "renewal_pending",
        "recovery_used",
        "end_date",
        "final_grade",
        "evaluated_score",
        "evaluated_revision",
    }
)


@dataclass
class LevelAttempt:
    """Level attempt record from database."""

    attempt_id: int
    student_id: int
    level_id: int
    attempt_number: int
    status: str
    renewal_pending: bool
    recovery_used: bool
    start_date: str
    end_date: str | None
    final_grade: int | None
    evaluated_score: int | None
    evaluated_revision: int | None
    class_id: int | None
    class_name: str | None
    course_id: int
    level_number: int
    level_name: str
    next_level_id: int | None
    version: int
    created_at: str
    updated_at: str

    @property
    def effective_status(self) -> LevelStatus:
        """Status with the renewal marker folded in."""
        return effective_status(self.status, self.renewal_pending)

    @property
    def is_open(self) -> bool:
        """Whether this is the current (in progress or recovery) attempt."""
        return self.status in (LevelStatus.IN_PROGRESS.value, LevelStatus.RECOVERY.value)

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for JSON serialization."""
        return {
            "attempt_id": self.attempt_id,
            "student_id": self.student_id,
            "level_id": self.level_id,
            "attempt_number": self.attempt_number,
            "status": self.effective_status.value,
            "start_date": self.start_date,
            "end_date": self.end_date,
            "final_grade": self.final_grade,
            "class_id": self.class_id,
            "class_name": self.class_name,
            "course_id": self.course_id,
            "level_number": self.level_number,
            "level_name": self.level_name,
            "next_level_id": self.next_level_id,
        }


@dataclass
class LevelTransition:
    """Audit row for one applied transition."""

    transition_id: int
    attempt_id: int
    student_id: int
    level_id: int
    from_status: str | None
    to_status: str
    event: str
    final_grade: int | None
    created_at: str


def insert_attempt(
    student_id: int,
    level_id: int,
    attempt_number: int,
    course_id: int,
    level_number: int,
    level_name: str,
    next_level_id: int | None = None,
    class_id: int | None = None,
    class_name: str | None = None,
    evaluated_revision: int | None = None,
    start_date: str | None = None,
    conn: sqlite3.Connection | None = None,
) -> LevelAttempt:
    """Insert a new in_progress attempt.

    Raises:
        sqlite3.IntegrityError: If the attempt number is taken or another
            attempt is already open for (student, level)
    """
    now = utc_now()
    with get_db(conn) as db:
        cursor = db.execute(
            """
            INSERT INTO level_attempts (
                student_id, level_id, attempt_number, status,
                start_date, class_id, class_name, course_id,
                level_number, level_name, next_level_id,
                evaluated_revision, created_at, updated_at
            ) VALUES (?, ?, ?, 'in_progress', ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
            """,
            (
                student_id,
                level_id,
                attempt_number,
                start_date or now,
                class_id,
                class_name,
                course_id,
                level_number,
                level_name,
                next_level_id,
                evaluated_revision,
                now,
                now,
            ),
        )
        attempt = get_attempt(cursor.lastrowid, conn=db)

    logger.debug(
        "level_attempts.inserted",
        attempt_id=attempt.attempt_id,
        student_id=student_id,
        level_id=level_id,
        attempt_number=attempt_number,
    )
    return attempt


def update_attempt(
    attempt_id: int,
    expected_version: int,
    conn: sqlite3.Connection | None = None,
    **fields: Any,
) -> bool:
    """Write fields if the row is still at expected_version.

    Returns:
        True if updated, False if the row changed since it was read
    """
    unknown = set(fields) - _UPDATABLE
    if unknown:
        raise ValueError(f"Not updatable: {sorted(unknown)}")

    assignments = ", ".join(f"{name} = ?" for name in fields)
    params = [_to_db(value) for value in fields.values()]

    with get_db(conn) as db:
        cursor = db.execute(
            f"""
            UPDATE level_attempts
            SET {assignments}, version = version + 1, updated_at = ?
            WHERE attempt_id = ? AND version = ?
            """,
            (*params, utc_now(), attempt_id, expected_version),
        )

    updated = cursor.rowcount > 0
    if not updated:
        logger.debug(
            "level_attempts.stale_version",
            attempt_id=attempt_id,
            expected_version=expected_version,
        )
    return updated


def get_attempt(
    attempt_id: int,
    conn: sqlite3.Connection | None = None,
) -> LevelAttempt | None:
    """Get attempt by ID."""
    with get_db(conn) as db:
        row = db.execute(
            "SELECT * FROM level_attempts WHERE attempt_id = ?", (attempt_id,)
        ).fetchone()

    if row is None:
        return None

    return _row_to_attempt(row)


def get_open_attempt(
    student_id: int,
    level_id: int,
    conn: sqlite3.Connection | None = None,
) -> LevelAttempt | None:
    """Get the current (in_progress or recovery) attempt, or None."""
    with get_db(conn) as db:
        row = db.execute(
            """
            SELECT * FROM level_attempts
            WHERE student_id = ? AND level_id = ?
              AND status IN ('in_progress', 'recovery')
            """,
            (student_id, level_id),
        ).fetchone()

    if row is None:
        return None

    return _row_to_attempt(row)


def get_latest_attempt(
    student_id: int,
    level_id: int,
    conn: sqlite3.Connection | None = None,
) -> LevelAttempt | None:
    """Get the attempt with the highest attempt number, or None."""
    with get_db(conn) as db:
        row = db.execute(
            """
            SELECT * FROM level_attempts
            WHERE student_id = ? AND level_id = ?
            ORDER BY attempt_number DESC
            LIMIT 1
            """,
            (student_id, level_id),
        ).fetchone()

    if row is None:
        return None

    return _row_to_attempt(row)


def find_class_attempt(
    student_id: int,
    level_id: int,
    class_id: int,
    conn: sqlite3.Connection | None = None,
) -> LevelAttempt | None:
    """Latest attempt of a student at the level taught by class_id.

    Attempts opened without a class count for any class of the level.
    """
    with get_db(conn) as db:
        row = db.execute(
            """
            SELECT * FROM level_attempts
            WHERE student_id = ? AND level_id = ?
              AND (class_id = ? OR class_id IS NULL)
            ORDER BY attempt_number DESC
            LIMIT 1
            """,
            (student_id, level_id, class_id),
        ).fetchone()

    if row is None:
        return None

    return _row_to_attempt(row)


def get_pending_renewal(
    student_id: int,
    next_level_id: int,
    conn: sqlite3.Connection | None = None,
) -> LevelAttempt | None:
    """Passed attempt still waiting for renewal into next_level_id."""
    with get_db(conn) as db:
        row = db.execute(
            """
            SELECT * FROM level_attempts
            WHERE student_id = ? AND next_level_id = ?
              AND status = 'passed' AND renewal_pending = 1
            ORDER BY end_date DESC
            LIMIT 1
            """,
            (student_id, next_level_id),
        ).fetchone()

    if row is None:
        return None

    return _row_to_attempt(row)


def next_attempt_number(
    student_id: int,
    level_id: int,
    conn: sqlite3.Connection | None = None,
) -> int:
    """Attempt number for a new attempt of (student, level)."""
    with get_db(conn) as db:
        row = db.execute(
            """
            SELECT COALESCE(MAX(attempt_number), 0) AS last
            FROM level_attempts
            WHERE student_id = ? AND level_id = ?
            """,
            (student_id, level_id),
        ).fetchone()

    return row["last"] + 1


def list_student_attempts(
    student_id: int,
    course_id: int | None = None,
    conn: sqlite3.Connection | None = None,
) -> list[LevelAttempt]:
    """Attempts of a student ordered by level number, then attempt number."""
    query = "SELECT * FROM level_attempts WHERE student_id = ?"
    params: list[int] = [student_id]
    if course_id is not None:
        query += " AND course_id = ?"
        params.append(course_id)
    query += " ORDER BY course_id, level_number, attempt_number"

    with get_db(conn) as db:
        rows = db.execute(query, params).fetchall()

    return [_row_to_attempt(row) for row in rows]


def list_level_attempts(
    level_id: int,
    statuses: list[LevelStatus] | None = None,
    conn: sqlite3.Connection | None = None,
) -> list[LevelAttempt]:
    """Attempts at a level, optionally filtered by effective status."""
    with get_db(conn) as db:
        rows = db.execute(
            """
            SELECT * FROM level_attempts
            WHERE level_id = ?
            ORDER BY student_id, attempt_number
            """,
            (level_id,),
        ).fetchall()

    attempts = [_row_to_attempt(row) for row in rows]
    if statuses is None:
        return attempts

    wanted = set(statuses)
    return [a for a in attempts if a.effective_status in wanted]


def list_open_attempts(conn: sqlite3.Connection | None = None) -> list[LevelAttempt]:
    """All current attempts, oldest first."""
    with get_db(conn) as db:
        rows = db.execute(
            """
            SELECT * FROM level_attempts
            WHERE status IN ('in_progress', 'recovery')
            ORDER BY attempt_id
            """
        ).fetchall()

    return [_row_to_attempt(row) for row in rows]


def insert_transition(
    attempt_id: int,
    student_id: int,
    level_id: int,
    from_status: str | None,
    to_status: str,
    event: str,
    final_grade: int | None = None,
    conn: sqlite3.Connection | None = None,
) -> None:
    """Append a transition to the audit history."""
    with get_db(conn) as db:
        db.execute(
            """
            INSERT INTO level_transitions (
                attempt_id, student_id, level_id,
                from_status, to_status, event, final_grade, created_at
            ) VALUES (?, ?, ?, ?, ?, ?, ?, ?)
            """,
            (
                attempt_id,
                student_id,
                level_id,
                from_status,
                to_status,
                event,
                final_grade,
                utc_now(),
            ),
        )


def list_transitions(
    student_id: int,
    level_id: int | None = None,
    conn: sqlite3.Connection | None = None,
) -> list[LevelTransition]:
    """Audit history of a student, oldest first."""
    query = "SELECT * FROM level_transitions WHERE student_id = ?"
    params: list[int] = [student_id]
    if level_id is not None:
        query += " AND level_id = ?"
        params.append(level_id)
    query += " ORDER BY transition_id"

    with get_db(conn) as db:
        rows = db.execute(query, params).fetchall()

    return [
        LevelTransition(
            transition_id=row["transition_id"],
            attempt_id=row["attempt_id"],
            student_id=row["student_id"],
            level_id=row["level_id"],
            from_status=row["from_status"],
            to_status=row["to_status"],
            event=row["event"],
            final_grade=row["final_grade"],
            created_at=row["created_at"],
        )
        for row in rows
    ]


def _to_db(value: Any) -> Any:
    """Adapt Python values to SQLite column values."""
    if isinstance(value, bool):
        return int(value)
    if isinstance(value, LevelStatus):
        return value.value
    return value


def _row_to_attempt(row) -> LevelAttempt:
    """Convert database row to LevelAttempt."""
    return LevelAttempt(
        attempt_id=row["attempt_id"],
        student_id=row["student_id"],
        level_id=row["level_id"],
        attempt_number=row["attempt_number"],
        status=row["status"],
        renewal_pending=bool(row["renewal_pending"]),
        recovery_used=bool(row["recovery_used"]),
        start_date=row["start_date"],
        end_date=row["end_date"],
        final_grade=row["final_grade"],
        evaluated_score=row["evaluated_score"],
        evaluated_revision=row["evaluated_revision"],
        class_id=row["class_id"],
        class_name=row["class_name"],
        course_id=row["course_id"],
        level_number=row["level_number"],
        level_name=row["level_name"],
        next_level_id=row["next_level_id"],
        version=row["version"],
        created_at=row["created_at"],
        updated_at=row["updated_at"],
    )
