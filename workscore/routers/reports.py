from datetime import date
from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from workscore.database import get_db, get_session_factory
from workscore.exceptions import ScoringConfigError
from workscore.schemas.report import AdminReport, TeamWeeklyReport, REPORT_TYPES
from workscore.schemas.scoring import WeeklyReportResponse
from workscore.services.reports import generate_admin_report, generate_team_report, get_user_weekly_reports
from workscore.utils.dates import utcnow

router = APIRouter(prefix="/reports", tags=["reports"])


@router.get("/users/{user_id}", response_model=List[WeeklyReportResponse])
async def read_user_reports(
    user_id: int,
    limit: int = Query(12, ge=1, le=52),
    db: AsyncSession = Depends(get_db)
):
    reports = await get_user_weekly_reports(db, user_id, limit)
    return [WeeklyReportResponse.from_record(r) for r in reports]


@router.get("/teams/{team_id}", response_model=TeamWeeklyReport)
async def read_team_report(
    team_id: int,
    week_start: Optional[date] = None,
    session_factory: async_sessionmaker = Depends(get_session_factory)
):
    try:
        report = await generate_team_report(session_factory, team_id, week_start or utcnow())
    except ScoringConfigError as e:
        raise HTTPException(400, str(e))
    if report is None:
        raise HTTPException(404, "Team not found")
    return report


@router.get("/admin/{report_type}", response_model=AdminReport)
async def read_admin_report(
    report_type: str,
    week_start: Optional[date] = None,
    session_factory: async_sessionmaker = Depends(get_session_factory)
):
    if report_type not in REPORT_TYPES:
        raise HTTPException(400, f"Invalid report type. Must be one of: {', '.join(REPORT_TYPES)}")
    try:
        return await generate_admin_report(session_factory, report_type, week_start)
    except ScoringConfigError as e:
        raise HTTPException(400, str(e))
