"""Student progress endpoints."""

from fastapi import APIRouter

from progression.core.period_store import list_student_records
from progression.core.progress_query import get_student_history, get_student_progress
from progression.core.progression import get_controller
from progression.web.routes.grades import record_response
from progression.web.schemas import (
    LevelHistoryListResponse,
    LevelHistoryResponse,
    PeriodRecordListResponse,
    StudentProgressResponse,
)

router = APIRouter(prefix="/api/students", tags=["students"])


@router.get("/{student_id}/progress", response_model=StudentProgressResponse)
def get_progress(student_id: int) -> StudentProgressResponse:
    """Progress of a student in the current course.

    A student without data gets has_progress=false, not 404.
    """
    progress = get_student_progress(student_id, get_controller().catalog)
    return StudentProgressResponse.model_validate(progress.to_dict())


@router.get("/{student_id}/levels", response_model=LevelHistoryListResponse)
def get_levels(student_id: int) -> LevelHistoryListResponse:
    """Every level attempt of a student."""
    history = [
        LevelHistoryResponse.model_validate(entry.to_dict())
        for entry in get_student_history(student_id)
    ]
    return LevelHistoryListResponse(history=history, count=len(history))


@router.get("/{student_id}/grades", response_model=PeriodRecordListResponse)
def get_grades(student_id: int) -> PeriodRecordListResponse:
    """Period records of a student across all classes."""
    records = [record_response(r) for r in list_student_records(student_id)]
    return PeriodRecordListResponse(records=records, count=len(records))
