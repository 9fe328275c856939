from pydantic import BaseModel
from datetime import date, datetime
from typing import Any, Dict, List

from workscore.schemas.scoring import WeeklyReportResponse

REPORT_TYPES = ("overview", "teams", "users", "performance")


class TeamStats(BaseModel):
    total_tasks_assigned: int
    total_tasks_completed: int
    average_score: int
    on_time_percentage: int


class TeamWeeklyReport(BaseModel):
    team_id: int
    team_name: str
    week_start: date
    week_end: date
    member_reports: List[WeeklyReportResponse]
    team_stats: TeamStats
    generated_at: datetime


class AdminReport(BaseModel):
    report_type: str
    week_start: date
    week_end: date
    generated_at: datetime
    data: Dict[str, Any]
