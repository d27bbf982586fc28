"""Grade entry endpoints."""

from fastapi import APIRouter, Query

from progression.core.grade_aggregator import ComponentScores
from progression.core.period_store import (
    PeriodFeedback,
    get_period_records,
    list_class_records,
)
from progression.core.progression import get_controller
from progression.db.period_records_repository import PeriodRecord
from progression.web.schemas import (
    FinalizeRequest,
    FinalizeResponse,
    PeriodGradesRequest,
    PeriodRecordListResponse,
    PeriodRecordResponse,
    SaveGradesResponse,
)

router = APIRouter(prefix="/api/grades", tags=["grades"])


def record_response(record: PeriodRecord) -> PeriodRecordResponse:
    """Serialize a record with its pass status under the configured pass mark."""
    pass_mark = get_controller().config.pass_mark
    return PeriodRecordResponse.model_validate(record.to_dict(pass_mark=pass_mark))


@router.post("", response_model=SaveGradesResponse)
def save_period_grades(body: PeriodGradesRequest) -> SaveGradesResponse:
    """Save one student's grades for one period.

    Saving the level's terminal period also evaluates the level.
    """
    result = get_controller().save_period_grades(
        class_id=body.class_id,
        student_id=body.student_id,
        period_number=body.period_number,
        scores=ComponentScores(
            test1=body.test1,
            test2=body.test2,
            practical_exam=body.practical_exam,
            theory_exam=body.theory_exam,
        ),
        feedback=PeriodFeedback(
            strengths=body.strengths,
            improvements=body.improvements,
            notes=body.notes,
            recommendations=body.recommendations,
            attendance=body.attendance,
            submitted_by=body.submitted_by,
        ),
    )

    return SaveGradesResponse(
        record=record_response(result.record),
        finalize=(
            FinalizeResponse.model_validate(result.finalize.to_dict())
            if result.finalize
            else None
        ),
    )


@router.get("", response_model=PeriodRecordListResponse)
def list_period_records(
    class_id: int = Query(...),
    student_id: int | None = Query(default=None),
    period: int | None = Query(default=None),
) -> PeriodRecordListResponse:
    """List period records of a class, or of one student in it."""
    catalog = get_controller().catalog
    if student_id is not None:
        records = get_period_records(class_id, student_id, period, catalog=catalog)
    else:
        records = list_class_records(class_id, period, catalog=catalog)

    items = [record_response(r) for r in records]
    return PeriodRecordListResponse(records=items, count=len(items))


@router.post("/finalize", response_model=FinalizeResponse)
def finalize_level(body: FinalizeRequest) -> FinalizeResponse:
    """Evaluate the level for one student. Safe to call repeatedly."""
    result = get_controller().finalize_level(body.class_id, body.student_id)
    return FinalizeResponse.model_validate(result.to_dict())
