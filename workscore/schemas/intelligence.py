from pydantic import BaseModel
from datetime import date, datetime
from typing import Dict, List, Optional


class ChronicOverduePatternResponse(BaseModel):
    id: int
    user_id: int
    window_start: datetime
    window_end: datetime
    total_tasks: int
    overdue_tasks: int
    overdue_percentage: float
    avg_days_overdue: int
    max_consecutive_overdue: int
    severity: str
    recommendations: List[str]
    detected_at: datetime

    model_config = {"from_attributes": True}


class DepartmentTrendResponse(BaseModel):
    id: int
    team_id: int
    window_start: datetime
    window_end: datetime
    current_total: int
    current_completed: int
    current_overdue: int
    previous_total: int
    previous_completed: int
    previous_overdue: int
    current_completion_rate: float
    previous_completion_rate: float
    change_points: float
    direction: str
    risk_level: str
    detected_at: datetime

    model_config = {"from_attributes": True}


class TaskRiskAssessmentResponse(BaseModel):
    id: int
    work_item_id: int
    assignees: List[int]
    risk_score: int
    risk_tier: str
    factors: Dict[str, float]
    predicted_outcome: str
    days_until_due: int
    recommendations: List[str]
    assessed_at: datetime

    model_config = {"from_attributes": True}


class PerformanceSnapshotResponse(BaseModel):
    id: int
    user_id: int
    week_start: date
    week_end: date
    iso_year: int
    iso_week: int
    overall_score: int
    previous_score: Optional[int]
    trend: str
    tasks_assigned: int
    tasks_completed: int
    alerts: List[str]
    snapshot_at: datetime

    model_config = {"from_attributes": True}


class IntelligenceSummary(BaseModel):
    chronic_overdue_count: int
    critical_risk_tasks: int
    declining_departments: int
    total_alerts: int
    last_pattern_detected_at: Optional[datetime] = None
    last_risk_assessed_at: Optional[datetime] = None
    last_trend_detected_at: Optional[datetime] = None
    generated_at: datetime


class PersonalInsights(BaseModel):
    user_id: int
    risks: List[TaskRiskAssessmentResponse]
    snapshot: Optional[PerformanceSnapshotResponse]
    pattern: Optional[ChronicOverduePatternResponse]
    generated_at: datetime


class AnalysisOutcome(BaseModel):
    count: int = 0
    errors: List[str] = []


class IntelligenceRunResult(BaseModel):
    success: bool
    results: Dict[str, AnalysisOutcome]
    duration_ms: int
