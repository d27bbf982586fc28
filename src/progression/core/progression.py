"""Progression controller.

Responsibilities:
- Evaluate a level when its terminal period is graded (pass / recovery / fail)
- Mark passed levels as awaiting renewal when a next level exists
- Open the next level's attempt on an explicit renewal request
- Administrative actions: enroll, repeat, promote, fail, withdraw
- Batch sweep over attempts whose terminal period has unevaluated grades

Every ledger write for a (student, level) runs under that pair's lock and
inside one SQLite transaction. The attempt row is also updated with a
version check, so a stale writer gets ConflictError instead of applying a
second transition.
"""

from __future__ import annotations

import sqlite3
from contextlib import ExitStack
from dataclasses import dataclass, field
from decimal import Decimal
from typing import Any, Callable, ContextManager

import structlog

from progression.config.app_config import ProgressionConfig, load_app_config
from progression.config.catalog import CatalogReader, Level, SchoolClass, load_catalog
from progression.core.errors import (
    ConflictError,
    InconsistentStateError,
    NotFoundError,
    ProgressionError,
    ValidationError,
)
from progression.core.grade_aggregator import ComponentScores, round_half_up
from progression.core.level_state import (
    OPEN_STATUSES,
    LevelEvent,
    LevelStatus,
    next_status,
    pass_event,
    storage_fields,
)
from progression.core.locks import KeyedLockRegistry
from progression.core.period_store import (
    PeriodFeedback,
    require_id,
    resolve_class_level,
    upsert_period_record,
    validate_period_number,
)
from progression.db import level_attempts_repository as attempts_repo
from progression.db import period_records_repository as records_repo
from progression.db.database import get_db, utc_now
from progression.db.level_attempts_repository import LevelAttempt
from progression.db.period_records_repository import PeriodRecord

logger = structlog.get_logger(__name__)


# =============================================================================
# DATA CLASSES
# =============================================================================


@dataclass
class RenewalRequest:
    """Administrative request to open the next level after a pass."""

    student_id: int
    next_level_id: int
    class_id: int


@dataclass
class FinalizeResult:
    """Outcome of evaluating a level."""

    attempt: LevelAttempt
    level_status: LevelStatus
    final_grade: int | None
    avg_raw: float | None
    attendance: float | None
    periods_used: int
    transitioned: bool
    message: str

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for JSON serialization."""
        return {
            "attempt_id": self.attempt.attempt_id,
            "attempt_number": self.attempt.attempt_number,
            "level_id": self.attempt.level_id,
            "level_status": self.level_status.value,
            "final_grade": self.final_grade,
            "avg_raw": self.avg_raw,
            "attendance": self.attendance,
            "periods_used": self.periods_used,
            "transitioned": self.transitioned,
            "message": self.message,
        }


@dataclass
class PromotionResult:
    """Outcome of promoting a student out of recovery."""

    attempt: LevelAttempt
    next_attempt: LevelAttempt | None
    course_completed: bool
    message: str

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for JSON serialization."""
        return {
            "attempt": self.attempt.to_dict(),
            "next_attempt": self.next_attempt.to_dict() if self.next_attempt else None,
            "next_level": self.next_attempt.level_name if self.next_attempt else None,
            "course_completed": self.course_completed,
            "message": self.message,
        }


@dataclass
class SaveResult:
    """Result of saving period grades."""

    record: PeriodRecord
    finalize: FinalizeResult | None = None


@dataclass
class SweepSummary:
    """Summary of a finalize_pending() run."""

    evaluated: int = 0
    transitioned: int = 0
    skipped: int = 0
    errors: list[str] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for JSON serialization."""
        return {
            "evaluated": self.evaluated,
            "transitioned": self.transitioned,
            "skipped": self.skipped,
            "errors": list(self.errors),
        }


# =============================================================================
# HELPERS
# =============================================================================


def _average_raw(records: dict[int, PeriodRecord]) -> Decimal | None:
    if not records:
        return None
    total = sum((Decimal(r.final_score) for r in records.values()), Decimal("0"))
    return total / len(records)


def _average_attendance(records: dict[int, PeriodRecord]) -> Decimal | None:
    values = [Decimal(str(r.attendance)) for r in records.values() if r.attendance is not None]
    if not values:
        return None
    return sum(values, Decimal("0")) / len(values)


def _as_float(value: Decimal | None) -> float | None:
    if value is None:
        return None
    return float(value.quantize(Decimal("0.01")))


# =============================================================================
# CONTROLLER
# =============================================================================


class ProgressionController:
    """Drives level attempts through the level state machine.

    Course, level and class data come from the injected catalog reader;
    pass rules come from ProgressionConfig.
    """

    def __init__(
        self,
        catalog: CatalogReader,
        config: ProgressionConfig | None = None,
        locks: KeyedLockRegistry | None = None,
        clock: Callable[[], str] | None = None,
    ):
        self.catalog = catalog
        self.config = config or ProgressionConfig()
        self.locks = locks or KeyedLockRegistry()
        self._clock = clock or utc_now

    # -------------------------------------------------------------------------
    # Grade submission
    # -------------------------------------------------------------------------

    def save_period_grades(
        self,
        class_id: int,
        student_id: int,
        period_number: int,
        scores: ComponentScores,
        feedback: PeriodFeedback | None = None,
    ) -> SaveResult:
        """Save one period's grades, evaluating the level on the terminal period.

        Safe to repeat with the same arguments: the record is overwritten
        with identical values and no second transition is applied.

        Raises:
            ValidationError: Invalid identifiers, period or scores
            NotFoundError: Unknown class or student not enrolled
            InconsistentStateError: Terminal period saved with no open attempt
            ConflictError: Ledger entry locked by another writer
        """
        require_id("class_id", class_id)
        require_id("student_id", student_id)
        school_class, level = resolve_class_level(self.catalog, class_id)
        validate_period_number(level, period_number)

        if period_number != level.terminal_period or not self.config.auto_finalize:
            record = upsert_period_record(
                class_id, student_id, period_number, scores, feedback, catalog=self.catalog
            )
            return SaveResult(record=record)

        with self._hold(student_id, level.level_id):
            with get_db() as conn:
                record = upsert_period_record(
                    class_id,
                    student_id,
                    period_number,
                    scores,
                    feedback,
                    catalog=self.catalog,
                    conn=conn,
                )
                result = self._evaluate(conn, school_class, level, student_id)

        return SaveResult(record=record, finalize=result)

    def finalize_level(self, class_id: int, student_id: int) -> FinalizeResult:
        """Evaluate the level taught by class_id for one student.

        Idempotent: once the terminal period's current grades have been
        evaluated, further calls return the attempt unchanged.

        Raises:
            ValidationError: Invalid identifiers
            NotFoundError: Unknown class or student never enrolled there
            InconsistentStateError: No open attempt to evaluate
            ConflictError: Ledger entry locked by another writer
        """
        require_id("class_id", class_id)
        require_id("student_id", student_id)
        school_class, level = resolve_class_level(self.catalog, class_id)

        with self._hold(student_id, level.level_id):
            with get_db() as conn:
                return self._evaluate(conn, school_class, level, student_id)

    def finalize_pending(self) -> SweepSummary:
        """Finalize every open attempt whose terminal grades are unevaluated.

        Safe to run repeatedly; errors are collected, not raised.
        """
        summary = SweepSummary()

        for attempt in attempts_repo.list_open_attempts():
            if attempt.class_id is None:
                summary.skipped += 1
                continue

            level = self.catalog.get_level(attempt.level_id)
            if level is None or self.catalog.get_class(attempt.class_id) is None:
                summary.errors.append(
                    f"attempt {attempt.attempt_id}: class {attempt.class_id} or "
                    f"level {attempt.level_id} missing from catalog"
                )
                continue

            terminal = records_repo.get_period_record(
                attempt.class_id, attempt.student_id, level.terminal_period
            )
            if terminal is None or terminal.revision == attempt.evaluated_revision:
                summary.skipped += 1
                continue

            summary.evaluated += 1
            try:
                result = self.finalize_level(attempt.class_id, attempt.student_id)
            except ProgressionError as e:
                logger.warning(
                    "progression.sweep_error",
                    attempt_id=attempt.attempt_id,
                    error=str(e),
                )
                summary.errors.append(f"attempt {attempt.attempt_id}: {e}")
                continue

            if result.transitioned:
                summary.transitioned += 1

        logger.info("progression.sweep_finished", **summary.to_dict())
        return summary

    # -------------------------------------------------------------------------
    # Enrollment and renewal
    # -------------------------------------------------------------------------

    def enroll(
        self,
        student_id: int,
        level_id: int,
        class_id: int | None = None,
    ) -> LevelAttempt:
        """Start tracking a student at a level.

        Returns the open attempt unchanged when the student is already
        enrolled in the same class.

        Raises:
            NotFoundError: Unknown level or class
            ValidationError: Class does not teach the level
            ConflictError: Open attempt in another class
            InconsistentStateError: Level already passed
        """
        require_id("student_id", student_id)
        level = self._require_level(level_id)
        school_class = self._require_class(class_id, level) if class_id is not None else None

        with self._hold(student_id, level.level_id):
            with get_db() as conn:
                current = attempts_repo.get_open_attempt(student_id, level.level_id, conn=conn)
                if current is not None:
                    if class_id is None or current.class_id in (None, class_id):
                        logger.info(
                            "level.already_enrolled",
                            student_id=student_id,
                            level_id=level.level_id,
                            attempt_id=current.attempt_id,
                        )
                        return current
                    raise ConflictError(
                        f"Student {student_id} already has an open attempt at level "
                        f"{level.level_id} in class {current.class_id}"
                    )

                latest = attempts_repo.get_latest_attempt(student_id, level.level_id, conn=conn)
                if latest is not None and latest.status == LevelStatus.PASSED.value:
                    raise InconsistentStateError(
                        f"Student {student_id} already passed level {level.level_id}"
                    )

                number = attempts_repo.next_attempt_number(student_id, level.level_id, conn=conn)
                return self._open_attempt(
                    conn, student_id, level, school_class, LevelEvent.ENROLL, number
                )

    def renew(self, request: RenewalRequest) -> LevelAttempt:
        """Open the next level for a student awaiting renewal.

        Repeating a renewal that already opened the attempt returns it.

        Raises:
            NotFoundError: Unknown level or class
            ValidationError: Class does not teach the next level
            InconsistentStateError: No passed level awaits this renewal
        """
        require_id("student_id", request.student_id)
        next_level = self._require_level(request.next_level_id)
        require_id("class_id", request.class_id)
        school_class = self._require_class(request.class_id, next_level)

        with self._hold(request.student_id, next_level.level_id):
            with get_db() as conn:
                pending = attempts_repo.get_pending_renewal(
                    request.student_id, next_level.level_id, conn=conn
                )
                current = attempts_repo.get_open_attempt(
                    request.student_id, next_level.level_id, conn=conn
                )

                if pending is None:
                    if current is not None:
                        logger.info(
                            "level.renewal_already_open",
                            student_id=request.student_id,
                            level_id=next_level.level_id,
                            attempt_id=current.attempt_id,
                        )
                        return current
                    raise InconsistentStateError(
                        f"Student {request.student_id} has no level awaiting renewal "
                        f"into level {next_level.level_id}"
                    )

                if current is not None:
                    raise ConflictError(
                        f"Student {request.student_id} already has an open attempt at "
                        f"level {next_level.level_id}"
                    )

                self._transition(conn, pending, LevelEvent.RENEW)
                number = attempts_repo.next_attempt_number(
                    request.student_id, next_level.level_id, conn=conn
                )
                return self._open_attempt(
                    conn, request.student_id, next_level, school_class, LevelEvent.RENEW, number
                )

    def repeat(
        self,
        student_id: int,
        level_id: int,
        class_id: int | None = None,
    ) -> LevelAttempt:
        """Open a new attempt at a level after failure.

        A student still in recovery has the recovery attempt closed as
        failed first.

        Raises:
            NotFoundError: No attempt at the level, unknown class
            InconsistentStateError: Latest attempt in progress or passed
        """
        require_id("student_id", student_id)
        level = self._require_level(level_id)
        school_class = self._require_class(class_id, level) if class_id is not None else None

        with self._hold(student_id, level.level_id):
            with get_db() as conn:
                latest = attempts_repo.get_latest_attempt(student_id, level.level_id, conn=conn)
                if latest is None:
                    raise NotFoundError(
                        f"Student {student_id} has no attempt at level {level.level_id}"
                    )

                status = latest.effective_status
                if status == LevelStatus.RECOVERY:
                    latest = self._transition(
                        conn, latest, LevelEvent.FAIL, final_grade=latest.evaluated_score
                    )
                elif status not in (LevelStatus.FAILED, LevelStatus.WITHDRAWN):
                    raise InconsistentStateError(
                        f"Cannot repeat level {level.level_id} from status {status.value}"
                    )

                if school_class is None and latest.class_id is not None:
                    school_class = self.catalog.get_class(latest.class_id)

                return self._open_attempt(
                    conn,
                    student_id,
                    level,
                    school_class,
                    LevelEvent.REPEAT,
                    latest.attempt_number + 1,
                )

    # -------------------------------------------------------------------------
    # Administrative closes
    # -------------------------------------------------------------------------

    def withdraw(self, student_id: int, level_id: int) -> LevelAttempt:
        """Close the open attempt as withdrawn."""
        return self._close_open_attempt(student_id, level_id, LevelEvent.WITHDRAW)

    def fail(self, student_id: int, level_id: int) -> LevelAttempt:
        """Close the open attempt as failed."""
        return self._close_open_attempt(student_id, level_id, LevelEvent.FAIL)

    def promote(
        self,
        student_id: int,
        level_id: int,
        dest_class_id: int | None = None,
    ) -> PromotionResult:
        """Pass a student in recovery without a new evaluation.

        Without dest_class_id the attempt waits for renewal like any pass.
        With it, the renewal step is skipped: the next level's attempt is
        opened in that class in the same transaction.

        Raises:
            NotFoundError: No open attempt, unknown destination class
            ValidationError: dest_class_id given on the last level, or the
                class does not teach the next level
            InconsistentStateError: Student is not in recovery
            ConflictError: Next level already open for the student
        """
        require_id("student_id", student_id)
        level = self._require_level(level_id)

        next_level = None
        dest_class = None
        if dest_class_id is not None:
            if level.next_level_id is None:
                raise ValidationError(
                    f"Level {level.level_id} is the last level of its course"
                )
            next_level = self._require_level(level.next_level_id)
            dest_class = self._require_class(dest_class_id, next_level)

        with ExitStack() as stack:
            stack.enter_context(self._hold(student_id, level.level_id))
            if next_level is not None:
                stack.enter_context(self._hold(student_id, next_level.level_id))
            conn = stack.enter_context(get_db())

            attempt = self._require_open_attempt(conn, student_id, level)
            if attempt.effective_status != LevelStatus.RECOVERY:
                raise InconsistentStateError(
                    f"Only students in recovery can be promoted "
                    f"(status: {attempt.effective_status.value})"
                )

            course_completed = attempt.next_level_id is None
            passed = self._transition(
                conn,
                attempt,
                pass_event(not course_completed),
                final_grade=attempt.evaluated_score,
            )

            next_attempt = None
            if next_level is not None:
                if attempts_repo.get_open_attempt(
                    student_id, next_level.level_id, conn=conn
                ) is not None:
                    raise ConflictError(
                        f"Student {student_id} already has an open attempt at "
                        f"level {next_level.level_id}"
                    )
                passed = self._transition(conn, passed, LevelEvent.RENEW)
                number = attempts_repo.next_attempt_number(
                    student_id, next_level.level_id, conn=conn
                )
                next_attempt = self._open_attempt(
                    conn, student_id, next_level, dest_class, LevelEvent.RENEW, number
                )

        if course_completed:
            message = f"Student {student_id} completed the course at {level.name}"
        elif next_attempt is not None:
            message = f"Student {student_id} promoted to {next_attempt.level_name}"
        else:
            message = f"Student {student_id} passed {level.name}, awaiting renewal"

        return PromotionResult(
            attempt=passed,
            next_attempt=next_attempt,
            course_completed=course_completed,
            message=message,
        )

    def _close_open_attempt(
        self,
        student_id: int,
        level_id: int,
        event: LevelEvent,
    ) -> LevelAttempt:
        require_id("student_id", student_id)
        level = self._require_level(level_id)

        with self._hold(student_id, level.level_id):
            with get_db() as conn:
                attempt = self._require_open_attempt(conn, student_id, level)
                if event == LevelEvent.WITHDRAW:
                    return self._transition(conn, attempt, event)
                return self._transition(
                    conn, attempt, event, final_grade=attempt.evaluated_score
                )

    # -------------------------------------------------------------------------
    # Internals
    # -------------------------------------------------------------------------

    def _require_open_attempt(
        self,
        conn: sqlite3.Connection,
        student_id: int,
        level: Level,
    ) -> LevelAttempt:
        attempt = attempts_repo.get_open_attempt(student_id, level.level_id, conn=conn)
        if attempt is None:
            raise NotFoundError(
                f"Student {student_id} has no open attempt at level {level.level_id}"
            )
        return attempt

    def _hold(self, student_id: int, level_id: int) -> ContextManager[None]:
        return self.locks.hold((student_id, level_id), self.config.lock_timeout_seconds)

    def _require_level(self, level_id: int) -> Level:
        require_id("level_id", level_id)
        level = self.catalog.get_level(level_id)
        if level is None:
            raise NotFoundError(f"Level not found: {level_id}")
        return level

    def _require_class(self, class_id: int, level: Level) -> SchoolClass:
        require_id("class_id", class_id)
        school_class = self.catalog.get_class(class_id)
        if school_class is None:
            raise NotFoundError(f"Class not found: {class_id}")
        if school_class.level_id != level.level_id:
            raise ValidationError(
                f"Class {class_id} teaches level {school_class.level_id}, not {level.level_id}"
            )
        return school_class

    def _evaluate(
        self,
        conn: sqlite3.Connection,
        school_class: SchoolClass,
        level: Level,
        student_id: int,
    ) -> FinalizeResult:
        """Apply the level rule to the current grades of a student."""
        class_id = school_class.class_id
        records = {
            r.period_number: r
            for r in records_repo.list_period_records(class_id, student_id, conn=conn)
            if r.period_number <= level.period_count
        }
        terminal = records.get(level.terminal_period)

        attempt = attempts_repo.get_open_attempt(student_id, level.level_id, conn=conn)
        if attempt is None:
            latest = attempts_repo.find_class_attempt(
                student_id, level.level_id, class_id, conn=conn
            )
            if latest is None:
                raise NotFoundError(
                    f"Student {student_id} is not enrolled in class {class_id}"
                )
            if terminal is not None and latest.evaluated_revision == terminal.revision:
                return self._unchanged(latest, records, "Level already finalized")

            logger.warning(
                "progression.no_open_attempt",
                student_id=student_id,
                level_id=level.level_id,
                class_id=class_id,
                latest_attempt_id=latest.attempt_id,
                latest_status=latest.effective_status.value,
            )
            raise InconsistentStateError(
                f"Student {student_id} has no open attempt at level {level.level_id} "
                f"(attempt {latest.attempt_number} is {latest.effective_status.value})"
            )

        if attempt.class_id is not None and attempt.class_id != class_id:
            raise InconsistentStateError(
                f"Open attempt {attempt.attempt_id} belongs to class {attempt.class_id}, "
                f"not {class_id}"
            )

        if terminal is None:
            return self._unchanged(
                attempt, records, f"Period {level.terminal_period} not graded yet"
            )

        missing = [p for p in range(1, level.period_count + 1) if p not in records]
        if self.config.pass_rule == "average" and missing:
            logger.info(
                "progression.awaiting_periods",
                student_id=student_id,
                level_id=level.level_id,
                missing=missing,
            )
            return self._unchanged(attempt, records, f"Waiting for periods {missing}")

        if attempt.evaluated_revision == terminal.revision:
            if attempt.effective_status == LevelStatus.RECOVERY:
                message = (
                    "Recovery grades identical to the evaluated ones; save different "
                    "terminal scores to re-evaluate, or use fail / promote"
                )
            else:
                message = "No new terminal grades since last evaluation"
            return self._unchanged(attempt, records, message)

        avg_raw = _average_raw(records)
        if self.config.pass_rule == "average":
            score = round_half_up(avg_raw)
        else:
            score = terminal.final_score

        current = attempt.effective_status
        if score >= self.config.pass_mark:
            event = pass_event(attempt.next_level_id is not None)
        elif (
            current == LevelStatus.IN_PROGRESS
            and self.config.recovery_enabled
            and not attempt.recovery_used
        ):
            event = LevelEvent.OPEN_RECOVERY
        else:
            event = LevelEvent.FAIL

        target = next_status(current, event)
        closes = target not in OPEN_STATUSES
        updated = self._transition(
            conn,
            attempt,
            event,
            final_grade=score if closes else None,
            evaluated_score=score,
            evaluated_revision=terminal.revision,
            recovery_used=attempt.recovery_used or event == LevelEvent.OPEN_RECOVERY,
        )

        return FinalizeResult(
            attempt=updated,
            level_status=target,
            final_grade=updated.final_grade,
            avg_raw=_as_float(avg_raw),
            attendance=_as_float(_average_attendance(records)),
            periods_used=len(records),
            transitioned=True,
            message=f"Level {level.name} finalized: {current.value} -> {target.value} (score {score})",
        )

    def _unchanged(
        self,
        attempt: LevelAttempt,
        records: dict[int, PeriodRecord],
        message: str,
    ) -> FinalizeResult:
        return FinalizeResult(
            attempt=attempt,
            level_status=attempt.effective_status,
            final_grade=attempt.final_grade,
            avg_raw=_as_float(_average_raw(records)),
            attendance=_as_float(_average_attendance(records)),
            periods_used=len(records),
            transitioned=False,
            message=message,
        )

    def _transition(
        self,
        conn: sqlite3.Connection,
        attempt: LevelAttempt,
        event: LevelEvent,
        **fields: Any,
    ) -> LevelAttempt:
        """Move attempt through event, recording the change in the audit table.

        Raises:
            InconsistentStateError: Transition not in the table
            ConflictError: Attempt row changed since it was read
        """
        current = attempt.effective_status
        target = next_status(current, event)
        status, renewal_pending = storage_fields(target)

        if target not in OPEN_STATUSES and attempt.end_date is None:
            fields["end_date"] = self._clock()

        updated = attempts_repo.update_attempt(
            attempt.attempt_id,
            attempt.version,
            conn=conn,
            status=status,
            renewal_pending=renewal_pending,
            **fields,
        )
        if not updated:
            raise ConflictError(
                f"Level attempt {attempt.attempt_id} was modified concurrently"
            )

        final_grade = fields.get("final_grade", attempt.final_grade)
        attempts_repo.insert_transition(
            attempt_id=attempt.attempt_id,
            student_id=attempt.student_id,
            level_id=attempt.level_id,
            from_status=current.value,
            to_status=target.value,
            event=event.value,
            final_grade=final_grade,
            conn=conn,
        )

        logger.info(
            "level.transitioned",
            attempt_id=attempt.attempt_id,
            student_id=attempt.student_id,
            level_id=attempt.level_id,
            from_status=current.value,
            to_status=target.value,
            level_event=event.value,
            final_grade=final_grade,
        )
        return attempts_repo.get_attempt(attempt.attempt_id, conn=conn)

    def _open_attempt(
        self,
        conn: sqlite3.Connection,
        student_id: int,
        level: Level,
        school_class: SchoolClass | None,
        event: LevelEvent,
        attempt_number: int,
    ) -> LevelAttempt:
        """Insert a new in_progress attempt.

        Grades already stored for the class's terminal period are taken as
        evaluated, so only a new terminal save triggers the next evaluation.
        """
        baseline = None
        if school_class is not None:
            terminal = records_repo.get_period_record(
                school_class.class_id, student_id, level.terminal_period, conn=conn
            )
            baseline = terminal.revision if terminal is not None else None

        try:
            attempt = attempts_repo.insert_attempt(
                student_id=student_id,
                level_id=level.level_id,
                attempt_number=attempt_number,
                course_id=level.course_id,
                level_number=level.level_number,
                level_name=level.name,
                next_level_id=level.next_level_id,
                class_id=school_class.class_id if school_class else None,
                class_name=school_class.name if school_class else None,
                evaluated_revision=baseline,
                start_date=self._clock(),
                conn=conn,
            )
        except sqlite3.IntegrityError as e:
            raise ConflictError(
                f"Student {student_id} already has an open attempt at level {level.level_id}"
            ) from e

        attempts_repo.insert_transition(
            attempt_id=attempt.attempt_id,
            student_id=student_id,
            level_id=level.level_id,
            from_status=None,
            to_status=LevelStatus.IN_PROGRESS.value,
            event=event.value,
            conn=conn,
        )

        logger.info(
            "level.attempt_opened",
            attempt_id=attempt.attempt_id,
            student_id=student_id,
            level_id=level.level_id,
            attempt_number=attempt_number,
            class_id=attempt.class_id,
            level_event=event.value,
        )
        return attempt


# =============================================================================
# GLOBAL INSTANCE
# =============================================================================

_controller: ProgressionController | None = None


def get_controller() -> ProgressionController:
    """Get the global controller built from app config and catalog."""
    global _controller
    if _controller is None:
        config = load_app_config()
        _controller = ProgressionController(
            catalog=load_catalog(),
            config=config.progression,
        )
    return _controller


def reset_controller() -> None:
    """Reset the global controller (for testing)."""
    global _controller
    _controller = None
