"""Level ledger endpoints: enrollment, renewal and administrative actions."""

from fastapi import APIRouter, Query, status

from progression.core.level_state import LevelStatus
from progression.core.progress_query import list_awaiting
from progression.core.progression import RenewalRequest, get_controller
from progression.db.level_attempts_repository import LevelAttempt
from progression.web.schemas import (
    EnrollRequest,
    LevelAttemptListResponse,
    LevelAttemptResponse,
    PromoteRequest,
    PromotionResponse,
    RenewRequest,
    StudentLevelRequest,
)

router = APIRouter(prefix="/api/levels", tags=["levels"])


def _to_response(attempt: LevelAttempt) -> LevelAttemptResponse:
    return LevelAttemptResponse.model_validate(attempt.to_dict())


@router.get("/{level_id}/awaiting", response_model=LevelAttemptListResponse)
def list_awaiting_students(
    level_id: int,
    status_filter: list[LevelStatus] | None = Query(default=None, alias="status"),
) -> LevelAttemptListResponse:
    """Students at a level awaiting renewal or in recovery."""
    attempts = list_awaiting(level_id, get_controller().catalog, statuses=status_filter)
    items = [_to_response(a) for a in attempts]
    return LevelAttemptListResponse(attempts=items, count=len(items))


@router.post("/enroll", response_model=LevelAttemptResponse, status_code=status.HTTP_201_CREATED)
def enroll(body: EnrollRequest) -> LevelAttemptResponse:
    """Start tracking a student at a level."""
    attempt = get_controller().enroll(body.student_id, body.level_id, body.class_id)
    return _to_response(attempt)


@router.post("/renew", response_model=LevelAttemptResponse, status_code=status.HTTP_201_CREATED)
def renew(body: RenewRequest) -> LevelAttemptResponse:
    """Open the next level for a student awaiting renewal."""
    attempt = get_controller().renew(
        RenewalRequest(
            student_id=body.student_id,
            next_level_id=body.next_level_id,
            class_id=body.class_id,
        )
    )
    return _to_response(attempt)


@router.post("/repeat", response_model=LevelAttemptResponse, status_code=status.HTTP_201_CREATED)
def repeat(body: EnrollRequest) -> LevelAttemptResponse:
    """Open a new attempt after failure."""
    attempt = get_controller().repeat(body.student_id, body.level_id, body.class_id)
    return _to_response(attempt)


@router.post("/withdraw", response_model=LevelAttemptResponse)
def withdraw(body: StudentLevelRequest) -> LevelAttemptResponse:
    """Close the open attempt as withdrawn."""
    return _to_response(get_controller().withdraw(body.student_id, body.level_id))


@router.post("/promote", response_model=PromotionResponse)
def promote(body: PromoteRequest) -> PromotionResponse:
    """Pass a student in recovery.

    With dest_class_id the next level is opened in that class right away.
    """
    result = get_controller().promote(body.student_id, body.level_id, body.dest_class_id)
    return PromotionResponse.model_validate(result.to_dict())


@router.post("/fail", response_model=LevelAttemptResponse)
def fail(body: StudentLevelRequest) -> LevelAttemptResponse:
    """Close the open attempt as failed."""
    return _to_response(get_controller().fail(body.student_id, body.level_id))
