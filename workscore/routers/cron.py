from datetime import date
from typing import Optional

from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse
from sqlalchemy.ext.asyncio import async_sessionmaker

from workscore.core.auth import verify_cron_token
from workscore.database import get_session_factory
from workscore.services import jobs

router = APIRouter(prefix="/cron", tags=["cron"], dependencies=[Depends(verify_cron_token)])


def _respond(result):
    # Failed runs still return the full result body so the scheduler can log it
    return JSONResponse(status_code=200 if result.success else 500, content=result.model_dump(mode="json"))


@router.post("/score-recalculation")
async def trigger_score_recalculation(
    max_items: Optional[int] = None,
    session_factory: async_sessionmaker = Depends(get_session_factory)
):
    return _respond(await jobs.run_score_recalculation(session_factory, max_items=max_items))


@router.post("/auto-overdue")
async def trigger_auto_overdue(session_factory: async_sessionmaker = Depends(get_session_factory)):
    return _respond(await jobs.run_auto_overdue(session_factory))


@router.post("/intelligence")
async def trigger_intelligence(session_factory: async_sessionmaker = Depends(get_session_factory)):
    return _respond(await jobs.run_intelligence(session_factory))


@router.post("/weekly-snapshots")
async def trigger_weekly_snapshots(
    today: Optional[date] = None,
    session_factory: async_sessionmaker = Depends(get_session_factory)
):
    return _respond(await jobs.run_weekly_snapshots(session_factory, today=today))
