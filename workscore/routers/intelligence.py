from typing import List

from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy.ext.asyncio import AsyncSession

from workscore.database import get_db
from workscore.repositories import users as users_repo
from workscore.schemas.intelligence import (
    IntelligenceSummary, PersonalInsights,
    ChronicOverduePatternResponse, TaskRiskAssessmentResponse,
)
from workscore.services import intelligence

router = APIRouter(prefix="/intelligence", tags=["intelligence"])


@router.get("/summary", response_model=IntelligenceSummary)
async def read_summary(
    days: int = Query(7, ge=1, le=90),
    db: AsyncSession = Depends(get_db)
):
    return await intelligence.generate_intelligence_summary(db, days=days)


@router.get("/chronic-overdue", response_model=List[ChronicOverduePatternResponse])
async def read_chronic_overdue(
    days: int = Query(30, ge=1, le=365),
    db: AsyncSession = Depends(get_db)
):
    return await intelligence.list_chronic_patterns(db, days=days)


@router.get("/task-risks", response_model=List[TaskRiskAssessmentResponse])
async def read_task_risks(
    min_score: int = Query(40, ge=0, le=100),
    days: int = Query(7, ge=1, le=90),
    db: AsyncSession = Depends(get_db)
):
    return await intelligence.list_task_risks(db, min_score=min_score, days=days)


@router.get("/personal/{user_id}", response_model=PersonalInsights)
async def read_personal_insights(user_id: int, db: AsyncSession = Depends(get_db)):
    if await users_repo.get_user(db, user_id) is None:
        raise HTTPException(404, "User not found")
    return await intelligence.get_personal_insights(db, user_id)
