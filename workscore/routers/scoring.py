from datetime import date
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.ext.asyncio import AsyncSession

from workscore.core.auth import get_actor_id
from workscore.database import get_db
from workscore.exceptions import InvalidWeekError, ScoringConfigError
from workscore.repositories import users as users_repo
from workscore.schemas.scoring import (
    ScoringWeights, ScoringConfigResponse, WeeklyReportResponse,
    RecalculationEnqueue, RecalculationRequestResponse,
)
from workscore.services import recalculation_queue
from workscore.services.reports import get_scoring_config, update_scoring_config, generate_weekly_report
from workscore.utils.dates import utcnow, week_bounds

router = APIRouter(prefix="/scoring", tags=["scoring"])


@router.get("/config", response_model=ScoringConfigResponse)
async def read_scoring_config(db: AsyncSession = Depends(get_db)):
    return await get_scoring_config(db)


@router.put("/config", response_model=ScoringConfigResponse)
async def write_scoring_config(
    weights: ScoringWeights,
    db: AsyncSession = Depends(get_db),
    actor_id: str = Depends(get_actor_id)
):
    try:
        return await update_scoring_config(db, weights, actor_id)
    except ScoringConfigError as e:
        raise HTTPException(400, str(e))


@router.post("/recalculate", response_model=RecalculationRequestResponse)
async def request_recalculation(
    body: RecalculationEnqueue,
    db: AsyncSession = Depends(get_db)
):
    if await users_repo.get_user(db, body.user_id) is None:
        raise HTTPException(404, "User not found")
    return await recalculation_queue.enqueue(db, body.user_id, body.week)


@router.post("/reports/{user_id}", response_model=WeeklyReportResponse)
async def create_weekly_report(
    user_id: int,
    week_start: Optional[date] = None,
    db: AsyncSession = Depends(get_db)
):
    if await users_repo.get_user(db, user_id) is None:
        raise HTTPException(404, "User not found")
    if week_start is None:
        week_start, _ = week_bounds(utcnow())
    try:
        report = await generate_weekly_report(db, user_id, week_start)
    except (ScoringConfigError, InvalidWeekError) as e:
        raise HTTPException(400, str(e))
    return WeeklyReportResponse.from_record(report)
