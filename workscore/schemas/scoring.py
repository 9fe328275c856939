from pydantic import BaseModel, Field, model_validator
from datetime import date, datetime
from typing import List, Optional


class ScoringWeights(BaseModel):
    completion_weight: int = Field(..., ge=0, le=100)
    timeliness_weight: int = Field(..., ge=0, le=100)
    quality_weight: int = Field(..., ge=0, le=100)
    kra_alignment_weight: int = Field(..., ge=0, le=100)

    @model_validator(mode="after")
    def check_sum(self):
        total = (
            self.completion_weight + self.timeliness_weight
            + self.quality_weight + self.kra_alignment_weight
        )
        if total != 100:
            raise ValueError(f"Weights must sum to 100 (got {total})")
        return self


class ScoringConfigResponse(BaseModel):
    completion_weight: int
    timeliness_weight: int
    quality_weight: int
    kra_alignment_weight: int
    updated_at: datetime
    updated_by: str

    model_config = {"from_attributes": True}


class ScoreBreakdown(BaseModel):
    completion_score: int = Field(..., ge=0, le=100)
    timeliness_score: int = Field(..., ge=0, le=100)
    quality_score: int = Field(..., ge=0, le=100)
    kra_alignment_score: int = Field(..., ge=0, le=100)
    total_score: int = Field(..., ge=0, le=100)


class WeeklyReportData(BaseModel):
    user_id: int
    week_start: date
    week_end: date
    tasks_assigned: int
    tasks_completed: int
    on_time_completion: int
    delay_count: int
    breakdown: ScoreBreakdown
    generated_at: datetime


class WeeklyReportResponse(WeeklyReportData):
    id: int

    @classmethod
    def from_record(cls, record) -> "WeeklyReportResponse":
        return cls(
            id=record.id,
            user_id=record.user_id,
            week_start=record.week_start,
            week_end=record.week_end,
            tasks_assigned=record.tasks_assigned,
            tasks_completed=record.tasks_completed,
            on_time_completion=record.on_time_completion,
            delay_count=record.delay_count,
            breakdown=ScoreBreakdown(
                completion_score=record.completion_score,
                timeliness_score=record.timeliness_score,
                quality_score=record.quality_score,
                kra_alignment_score=record.kra_alignment_score,
                total_score=record.total_score,
            ),
            generated_at=record.generated_at,
        )


class RecalculationEnqueue(BaseModel):
    user_id: int
    week: date  # any day of the invalidated week


class RecalculationRequestResponse(BaseModel):
    id: int
    user_id: int
    week_start: date
    status: str
    enqueued_at: datetime
    attempts: int
    last_error: Optional[str]

    model_config = {"from_attributes": True}


class BatchResult(BaseModel):
    success: bool
    processed_count: int = 0
    errors: List[str] = []
