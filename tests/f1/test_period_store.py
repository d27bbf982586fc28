"""Tests for the period record store."""

import pytest

from progression.core.errors import NotFoundError, ValidationError
from progression.core.grade_aggregator import ComponentScores
from progression.core.period_store import (
    PeriodFeedback,
    get_period_records,
    list_class_records,
    list_student_records,
    upsert_period_record,
)
from progression.db.database import get_db

STUDENT = 7


def _scores(value: float) -> ComponentScores:
    return ComponentScores(value, value, value, value)


@pytest.fixture
def enrolled(controller):
    """Student 7 enrolled at level 11 in class 101."""
    return controller.enroll(STUDENT, 11, 101)


class TestUpsertPeriodRecord:
    """Tests for upsert_period_record()."""

    def test_creates_record_with_computed_score(self, enrolled, catalog):
        record = upsert_period_record(
            101, STUDENT, 1, ComponentScores(17.5, 18, 0, 0), catalog=catalog
        )

        assert record.class_id == 101
        assert record.student_id == STUDENT
        assert record.period_number == 1
        assert record.final_score == 7
        assert record.revision == 1

    def test_identical_upsert_is_idempotent(self, enrolled, catalog):
        """Same inputs twice: one row, same revision, same timestamps."""
        first = upsert_period_record(101, STUDENT, 2, _scores(12), catalog=catalog)
        second = upsert_period_record(101, STUDENT, 2, _scores(12), catalog=catalog)

        assert second == first
        with get_db() as conn:
            count = conn.execute(
                "SELECT COUNT(*) FROM period_records WHERE student_id = ?", (STUDENT,)
            ).fetchone()[0]
        assert count == 1

    def test_changed_scores_overwrite_and_bump_revision(self, enrolled, catalog):
        upsert_period_record(101, STUDENT, 3, _scores(8), catalog=catalog)
        record = upsert_period_record(101, STUDENT, 3, _scores(14), catalog=catalog)

        assert record.final_score == 14
        assert record.revision == 2

    def test_feedback_edit_keeps_revision(self, enrolled, catalog):
        upsert_period_record(101, STUDENT, 1, _scores(12), catalog=catalog)
        record = upsert_period_record(
            101,
            STUDENT,
            1,
            _scores(12),
            PeriodFeedback(strengths="  Boa pronúncia ", improvements=""),
            catalog=catalog,
        )

        assert record.strengths == "Boa pronúncia"
        assert record.improvements is None
        assert record.revision == 1

    def test_unknown_class_not_found(self, enrolled, catalog):
        with pytest.raises(NotFoundError):
            upsert_period_record(999, STUDENT, 1, _scores(10), catalog=catalog)

    def test_student_not_enrolled_not_found(self, enrolled, catalog):
        with pytest.raises(NotFoundError):
            upsert_period_record(101, 8, 1, _scores(10), catalog=catalog)

    def test_attempt_in_other_class_not_found(self, enrolled, catalog):
        """Class 111 teaches the same level but the student is in 101."""
        with pytest.raises(NotFoundError):
            upsert_period_record(111, STUDENT, 1, _scores(10), catalog=catalog)

    def test_attempt_without_class_accepts_any_class(self, controller, catalog):
        controller.enroll(9, 11)

        record = upsert_period_record(111, 9, 1, _scores(10), catalog=catalog)

        assert record.class_id == 111

    @pytest.mark.parametrize("period", [0, 5, -1])
    def test_period_outside_count_rejected(self, enrolled, catalog, period):
        with pytest.raises(ValidationError):
            upsert_period_record(101, STUDENT, period, _scores(10), catalog=catalog)

    def test_period_count_is_per_level(self, controller, catalog):
        """Level 21 has three periods: 4 is invalid there."""
        controller.enroll(STUDENT, 21, 201)

        upsert_period_record(201, STUDENT, 3, _scores(10), catalog=catalog)
        with pytest.raises(ValidationError):
            upsert_period_record(201, STUDENT, 4, _scores(10), catalog=catalog)

    @pytest.mark.parametrize("class_id,student_id", [(0, STUDENT), (101, 0), (None, STUDENT)])
    def test_invalid_identifiers_rejected(self, enrolled, catalog, class_id, student_id):
        with pytest.raises(ValidationError):
            upsert_period_record(class_id, student_id, 1, _scores(10), catalog=catalog)

    def test_invalid_score_writes_nothing(self, enrolled, catalog):
        with pytest.raises(ValidationError):
            upsert_period_record(
                101, STUDENT, 1, ComponentScores(10, 10, 10, 21), catalog=catalog
            )

        assert get_period_records(101, STUDENT, catalog=catalog) == []


class TestReadRecords:
    """Tests for the read functions."""

    def test_records_ordered_by_period(self, enrolled, catalog):
        for period in (3, 1, 2):
            upsert_period_record(101, STUDENT, period, _scores(10 + period), catalog=catalog)

        records = get_period_records(101, STUDENT, catalog=catalog)

        assert [r.period_number for r in records] == [1, 2, 3]
        assert [r.final_score for r in records] == [11, 12, 13]

    def test_read_is_restartable(self, enrolled, catalog):
        upsert_period_record(101, STUDENT, 1, _scores(10), catalog=catalog)

        first = get_period_records(101, STUDENT, catalog=catalog)

        assert get_period_records(101, STUDENT, catalog=catalog) == first

    def test_list_class_records_by_period(self, controller, catalog):
        for student in (1, 2):
            controller.enroll(student, 11, 101)
            upsert_period_record(101, student, 1, _scores(10), catalog=catalog)
            upsert_period_record(101, student, 2, _scores(12), catalog=catalog)

        assert len(list_class_records(101, catalog=catalog)) == 4
        period_two = list_class_records(101, 2, catalog=catalog)
        assert {r.student_id for r in period_two} == {1, 2}
        assert all(r.period_number == 2 for r in period_two)

    def test_list_class_records_rejects_bad_period(self, temp_db, catalog):
        with pytest.raises(ValidationError):
            list_class_records(101, 9, catalog=catalog)

    def test_list_student_records_across_classes(self, controller, catalog):
        controller.enroll(STUDENT, 11, 101)
        controller.enroll(STUDENT, 21, 201)
        upsert_period_record(101, STUDENT, 1, _scores(10), catalog=catalog)
        upsert_period_record(201, STUDENT, 1, _scores(15), catalog=catalog)

        records = list_student_records(STUDENT)

        assert {r.class_id for r in records} == {101, 201}

    def test_get_records_for_one_period(self, enrolled, catalog):
        for period in (1, 2):
            upsert_period_record(101, STUDENT, period, _scores(10 + period), catalog=catalog)

        records = get_period_records(101, STUDENT, 2, catalog=catalog)

        assert [r.final_score for r in records] == [12]

    def test_get_records_unknown_class(self, temp_db, catalog):
        with pytest.raises(NotFoundError):
            get_period_records(999, STUDENT, catalog=catalog)

    def test_get_records_student_not_in_class(self, enrolled, catalog):
        with pytest.raises(NotFoundError):
            get_period_records(111, STUDENT, catalog=catalog)

    def test_get_records_rejects_bad_period(self, enrolled, catalog):
        with pytest.raises(ValidationError):
            get_period_records(101, STUDENT, 5, catalog=catalog)


class TestPeriodDetails:
    """Attendance, notes and derived pass status."""

    def test_notes_and_attendance_stored(self, enrolled, catalog):
        feedback = PeriodFeedback(
            notes="  Participa bem  ",
            recommendations="Ler mais em inglês",
            attendance=87.5,
            submitted_by=3,
        )

        record = upsert_period_record(101, STUDENT, 1, _scores(12), feedback, catalog=catalog)

        assert record.notes == "Participa bem"
        assert record.recommendations == "Ler mais em inglês"
        assert record.attendance == 87.5
        assert record.submitted_by == 3

    def test_attendance_edit_keeps_revision(self, enrolled, catalog):
        first = upsert_period_record(
            101, STUDENT, 1, _scores(12), PeriodFeedback(attendance=90), catalog=catalog
        )
        second = upsert_period_record(
            101, STUDENT, 1, _scores(12), PeriodFeedback(attendance=80), catalog=catalog
        )

        assert second.attendance == 80
        assert second.revision == first.revision

    @pytest.mark.parametrize("attendance", [-1, 100.5, float("nan"), "90"])
    def test_invalid_attendance_rejected(self, enrolled, catalog, attendance):
        with pytest.raises(ValidationError):
            upsert_period_record(
                101,
                STUDENT,
                1,
                _scores(12),
                PeriodFeedback(attendance=attendance),
                catalog=catalog,
            )

    def test_invalid_submitted_by_rejected(self, enrolled, catalog):
        with pytest.raises(ValidationError):
            upsert_period_record(
                101, STUDENT, 1, _scores(12), PeriodFeedback(submitted_by=0), catalog=catalog
            )

    @pytest.mark.parametrize(
        "score,pass_mark,status",
        [(10, 10, "passed"), (9, 10, "failed"), (11, 12, "failed"), (12, 12, "passed")],
    )
    def test_status_derived_from_pass_mark(self, enrolled, catalog, score, pass_mark, status):
        record = upsert_period_record(101, STUDENT, 1, _scores(score), catalog=catalog)

        data = record.to_dict(pass_mark=pass_mark)

        assert data["status"] == status
        assert data["passed"] is (status == "passed")
