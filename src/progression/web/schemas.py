"""Pydantic schemas for Web API.

Serialization models for period records, level attempts and progress.
"""

from __future__ import annotations

from pydantic import BaseModel, Field


# =============================================================================
# GRADE SCHEMAS
# =============================================================================


class PeriodGradesRequest(BaseModel):
    """Request body for saving one period's grades."""

    class_id: int
    student_id: int
    period_number: int
    test1: float
    test2: float
    practical_exam: float
    theory_exam: float
    strengths: str | None = Field(default=None, max_length=2000)
    improvements: str | None = Field(default=None, max_length=2000)
    notes: str | None = Field(default=None, max_length=2000)
    recommendations: str | None = Field(default=None, max_length=2000)
    attendance: float | None = None
    submitted_by: int | None = None


class PeriodRecordResponse(BaseModel):
    """Response for a period record."""

    record_id: int
    class_id: int
    student_id: int
    period_number: int
    test1: float
    test2: float
    practical_exam: float
    theory_exam: float
    final_score: int
    passed: bool
    status: str
    attendance: float | None = None
    strengths: str | None = None
    improvements: str | None = None
    notes: str | None = None
    recommendations: str | None = None
    submitted_by: int | None = None
    revision: int
    updated_at: str

    model_config = {"from_attributes": True}


class PeriodRecordListResponse(BaseModel):
    """Response for list of period records."""

    records: list[PeriodRecordResponse]
    count: int


class FinalizeRequest(BaseModel):
    """Request body for finalizing a level."""

    class_id: int
    student_id: int


class FinalizeResponse(BaseModel):
    """Outcome of a level evaluation."""

    attempt_id: int
    attempt_number: int
    level_id: int
    level_status: str
    final_grade: int | None = None
    avg_raw: float | None = None
    attendance: float | None = None
    periods_used: int
    transitioned: bool
    message: str


class SaveGradesResponse(BaseModel):
    """Response for a grade save, with the evaluation when one ran."""

    record: PeriodRecordResponse
    finalize: FinalizeResponse | None = None


# =============================================================================
# LEVEL SCHEMAS
# =============================================================================


class EnrollRequest(BaseModel):
    """Request body for enrolling or repeating a level."""

    student_id: int
    level_id: int
    class_id: int | None = None


class RenewRequest(BaseModel):
    """Request body for renewal into the next level."""

    student_id: int
    next_level_id: int
    class_id: int


class StudentLevelRequest(BaseModel):
    """Request body for actions on a student's open attempt."""

    student_id: int
    level_id: int


class PromoteRequest(BaseModel):
    """Request body for promoting a student out of recovery."""

    student_id: int
    level_id: int
    dest_class_id: int | None = None


class LevelAttemptResponse(BaseModel):
    """Response for a level attempt."""

    attempt_id: int
    student_id: int
    level_id: int
    attempt_number: int
    status: str
    start_date: str
    end_date: str | None = None
    final_grade: int | None = None
    class_id: int | None = None
    class_name: str | None = None
    course_id: int
    level_number: int
    level_name: str
    next_level_id: int | None = None


class LevelAttemptListResponse(BaseModel):
    """Response for list of level attempts."""

    attempts: list[LevelAttemptResponse]
    count: int


class PromotionResponse(BaseModel):
    """Outcome of a promotion, with the next level when it was opened."""

    attempt: LevelAttemptResponse
    next_attempt: LevelAttemptResponse | None = None
    next_level: str | None = None
    course_completed: bool
    message: str


# =============================================================================
# PROGRESS SCHEMAS
# =============================================================================


class CurrentLevelResponse(BaseModel):
    """Level the student is attending or waiting to renew from."""

    attempt_id: int
    level_id: int
    level_number: int
    level_name: str
    attempt_number: int
    status: str
    status_label: str
    class_id: int | None = None
    class_name: str | None = None
    start_date: str
    next_level_id: int | None = None


class LevelHistoryResponse(BaseModel):
    """One attempt in a student's level history."""

    attempt_id: int
    course_id: int
    level_id: int
    level_number: int
    level_name: str
    attempt_number: int
    attempts_at_level: int
    status: str
    status_label: str
    final_grade: int | None = None
    start_date: str
    end_date: str | None = None
    class_name: str | None = None


class LevelHistoryListResponse(BaseModel):
    """Response for a student's full level history."""

    history: list[LevelHistoryResponse]
    count: int


class StudentProgressResponse(BaseModel):
    """Dashboard progress view of a student."""

    student_id: int
    has_progress: bool
    course_id: int | None = None
    course_name: str | None = None
    current_level: CurrentLevelResponse | None = None
    history: list[LevelHistoryResponse] = Field(default_factory=list)
    total_levels: int = 0
    levels_passed: int = 0
    progress_percent: int = 0


# =============================================================================
# HEALTH SCHEMAS
# =============================================================================


class HealthResponse(BaseModel):
    """Health check response."""

    status: str
    version: str
    timestamp: str
