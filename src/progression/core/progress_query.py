"""Student progress projection.

Read-only view over the level ledger for student dashboards. Never raises
for a student without data; only malformed identifiers are rejected.
"""

from __future__ import annotations

from collections import Counter
from dataclasses import dataclass, field
from typing import Any

import structlog

from progression.config.catalog import CatalogReader
from progression.core.errors import NotFoundError
from progression.core.grade_aggregator import round_half_up
from progression.core.level_state import (
    CLOSED_STATUSES,
    OPEN_STATUSES,
    LevelStatus,
    status_label,
)
from progression.core.period_store import require_id
from progression.db import level_attempts_repository as attempts_repo
from progression.db.level_attempts_repository import LevelAttempt

logger = structlog.get_logger(__name__)

# Statuses listed by list_awaiting() when none are given
PENDING_ACTION_STATUSES = (LevelStatus.AWAITING_RENEWAL, LevelStatus.RECOVERY)

_PASSED_STATUSES = frozenset({LevelStatus.PASSED, LevelStatus.AWAITING_RENEWAL})


@dataclass
class CurrentLevel:
    """Level the student is attending or waiting to renew from."""

    attempt_id: int
    level_id: int
    level_number: int
    level_name: str
    attempt_number: int
    status: LevelStatus
    class_id: int | None
    class_name: str | None
    start_date: str
    next_level_id: int | None

    @property
    def status_label(self) -> str:
        return status_label(self.status)

    def to_dict(self) -> dict[str, Any]:
        return {
            "attempt_id": self.attempt_id,
            "level_id": self.level_id,
            "level_number": self.level_number,
            "level_name": self.level_name,
            "attempt_number": self.attempt_number,
            "status": self.status.value,
            "status_label": self.status_label,
            "class_id": self.class_id,
            "class_name": self.class_name,
            "start_date": self.start_date,
            "next_level_id": self.next_level_id,
        }


@dataclass
class LevelHistoryEntry:
    """One attempt in a student's level history."""

    attempt_id: int
    course_id: int
    level_id: int
    level_number: int
    level_name: str
    attempt_number: int
    attempts_at_level: int
    status: LevelStatus
    final_grade: int | None
    start_date: str
    end_date: str | None
    class_name: str | None

    def to_dict(self) -> dict[str, Any]:
        return {
            "attempt_id": self.attempt_id,
            "course_id": self.course_id,
            "level_id": self.level_id,
            "level_number": self.level_number,
            "level_name": self.level_name,
            "attempt_number": self.attempt_number,
            "attempts_at_level": self.attempts_at_level,
            "status": self.status.value,
            "status_label": status_label(self.status),
            "final_grade": self.final_grade,
            "start_date": self.start_date,
            "end_date": self.end_date,
            "class_name": self.class_name,
        }


@dataclass
class StudentProgress:
    """Dashboard view of a student's position in a course."""

    student_id: int
    has_progress: bool
    course_id: int | None = None
    course_name: str | None = None
    current_level: CurrentLevel | None = None
    history: list[LevelHistoryEntry] = field(default_factory=list)
    total_levels: int = 0
    levels_passed: int = 0
    progress_percent: int = 0

    @classmethod
    def empty(cls, student_id: int) -> StudentProgress:
        """Result for a student with no level attempts."""
        return cls(student_id=student_id, has_progress=False)

    def to_dict(self) -> dict[str, Any]:
        return {
            "student_id": self.student_id,
            "has_progress": self.has_progress,
            "course_id": self.course_id,
            "course_name": self.course_name,
            "current_level": self.current_level.to_dict() if self.current_level else None,
            "history": [entry.to_dict() for entry in self.history],
            "total_levels": self.total_levels,
            "levels_passed": self.levels_passed,
            "progress_percent": self.progress_percent,
        }


def compute_progress_percent(levels_passed: int, total_levels: int) -> int:
    """Share of passed levels as a whole percentage (0 when no levels)."""
    if total_levels <= 0:
        return 0
    return min(100, round_half_up(levels_passed * 100 / total_levels))


def _pick_current(attempts: list[LevelAttempt]) -> LevelAttempt | None:
    """Open attempt first, then one awaiting renewal; highest level wins."""
    for wanted in (OPEN_STATUSES, {LevelStatus.AWAITING_RENEWAL}):
        candidates = [a for a in attempts if a.effective_status in wanted]
        if candidates:
            return max(candidates, key=lambda a: (a.level_number, a.attempt_number))
    return None


def _history_entries(attempts: list[LevelAttempt]) -> list[LevelHistoryEntry]:
    counts = Counter(a.level_id for a in attempts)
    return [
        LevelHistoryEntry(
            attempt_id=a.attempt_id,
            course_id=a.course_id,
            level_id=a.level_id,
            level_number=a.level_number,
            level_name=a.level_name,
            attempt_number=a.attempt_number,
            attempts_at_level=counts[a.level_id],
            status=a.effective_status,
            final_grade=a.final_grade,
            start_date=a.start_date,
            end_date=a.end_date,
            class_name=a.class_name,
        )
        for a in attempts
    ]


def get_student_progress(student_id: int, catalog: CatalogReader) -> StudentProgress:
    """Build the progress view of a student's current course.

    Args:
        student_id: Student identifier
        catalog: Course catalog reader (level counts and names)

    Returns:
        StudentProgress; has_progress is False when the student has no attempts

    Raises:
        ValidationError: If student_id is not a positive integer
    """
    require_id("student_id", student_id)

    attempts = attempts_repo.list_student_attempts(student_id)
    if not attempts:
        logger.debug("progress.no_data", student_id=student_id)
        return StudentProgress.empty(student_id)

    current = _pick_current(attempts)
    if current is not None:
        course_id = current.course_id
    else:
        course_id = max(attempts, key=lambda a: (a.start_date, a.attempt_id)).course_id

    course_attempts = [a for a in attempts if a.course_id == course_id]

    course = catalog.get_course(course_id)
    total_levels = len(catalog.list_levels(course_id))
    levels_passed = len(
        {a.level_id for a in course_attempts if a.effective_status in _PASSED_STATUSES}
    )

    current_level = None
    if current is not None:
        current_level = CurrentLevel(
            attempt_id=current.attempt_id,
            level_id=current.level_id,
            level_number=current.level_number,
            level_name=current.level_name,
            attempt_number=current.attempt_number,
            status=current.effective_status,
            class_id=current.class_id,
            class_name=current.class_name,
            start_date=current.start_date,
            next_level_id=current.next_level_id,
        )

    history = [
        entry
        for entry in _history_entries(course_attempts)
        if entry.status in CLOSED_STATUSES
    ]
    return StudentProgress(
        student_id=student_id,
        has_progress=True,
        course_id=course_id,
        course_name=course.name if course else None,
        current_level=current_level,
        history=sorted(history, key=lambda e: (e.level_number, e.attempt_number)),
        total_levels=total_levels,
        levels_passed=levels_passed,
        progress_percent=compute_progress_percent(levels_passed, total_levels),
    )


def get_student_history(student_id: int) -> list[LevelHistoryEntry]:
    """Every attempt of a student, all courses, open ones included."""
    require_id("student_id", student_id)
    return _history_entries(attempts_repo.list_student_attempts(student_id))


def list_awaiting(
    level_id: int,
    catalog: CatalogReader,
    statuses: list[LevelStatus] | None = None,
) -> list[LevelAttempt]:
    """Attempts at a level that need administrative action.

    Defaults to students awaiting renewal or in recovery.

    Raises:
        NotFoundError: If the level is not in the catalog
    """
    require_id("level_id", level_id)
    if catalog.get_level(level_id) is None:
        raise NotFoundError(f"Level not found: {level_id}")

    wanted = list(statuses) if statuses else list(PENDING_ACTION_STATUSES)
    return attempts_repo.list_level_attempts(level_id, statuses=wanted)
