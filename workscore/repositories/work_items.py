from datetime import datetime
from typing import Iterable, List, Optional, Set

from sqlalchemy import select, or_, and_
from sqlalchemy.ext.asyncio import AsyncSession

from workscore.models.work_item import WorkItem, WorkItemAssignee, CANCELLED, CLOSED_STATUSES


def _touches_window(start: datetime, end: datetime):
    return or_(
        and_(WorkItem.assigned_at >= start, WorkItem.assigned_at <= end),
        and_(WorkItem.completed_at >= start, WorkItem.completed_at <= end),
        and_(WorkItem.due_date >= start, WorkItem.due_date <= end),
    )


def assigned_item_ids(user_id: int):
    return select(WorkItemAssignee.work_item_id).where(WorkItemAssignee.user_id == user_id)


async def list_user_items_in_window(
    db: AsyncSession, user_id: int, start: datetime, end: datetime
) -> List[WorkItem]:
    """The user's items with an assignment, completion or due date inside [start, end]."""
    result = await db.execute(
        select(WorkItem)
        .where(WorkItem.id.in_(assigned_item_ids(user_id)))
        .where(_touches_window(start, end))
        .order_by(WorkItem.id)
    )
    return list(result.scalars().all())


async def list_items_due_between(
    db: AsyncSession, start: datetime, end: datetime
) -> List[WorkItem]:
    result = await db.execute(
        select(WorkItem)
        .where(WorkItem.due_date.isnot(None))
        .where(WorkItem.due_date >= start)
        .where(WorkItem.due_date <= end)
        .where(WorkItem.status != CANCELLED)
        .order_by(WorkItem.due_date, WorkItem.id)
    )
    return list(result.scalars().all())


async def list_items_due_before(db: AsyncSession, end: datetime) -> List[WorkItem]:
    result = await db.execute(
        select(WorkItem)
        .where(WorkItem.due_date.isnot(None))
        .where(WorkItem.due_date < end)
        .where(WorkItem.status != CANCELLED)
        .order_by(WorkItem.id)
    )
    return list(result.scalars().all())


async def list_open_items_with_due_date(db: AsyncSession) -> List[WorkItem]:
    result = await db.execute(
        select(WorkItem)
        .where(WorkItem.status.notin_(CLOSED_STATUSES))
        .where(WorkItem.due_date.isnot(None))
        .order_by(WorkItem.due_date, WorkItem.id)
    )
    return list(result.scalars().all())


async def list_unmarked_overdue_items(db: AsyncSession, now: datetime) -> List[WorkItem]:
    """Open items past due that have not been stamped since their current due date.

    An item whose due date was pushed past its last stamp counts again.
    """
    result = await db.execute(
        select(WorkItem)
        .where(WorkItem.status.notin_(CLOSED_STATUSES))
        .where(WorkItem.due_date.isnot(None))
        .where(WorkItem.due_date < now)
        .where(or_(WorkItem.marked_overdue_at.is_(None), WorkItem.marked_overdue_at < WorkItem.due_date))
        .order_by(WorkItem.id)
    )
    return list(result.scalars().all())


async def list_active_goal_ids(
    db: AsyncSession, goal_ids: Optional[Iterable[int]] = None
) -> Set[int]:
    """Ids of KRA goals that are not cancelled, optionally limited to `goal_ids`."""
    query = select(WorkItem.id).where(WorkItem.kind == "kra").where(WorkItem.status != CANCELLED)
    if goal_ids is not None:
        wanted = set(goal_ids)
        if not wanted:
            return set()
        query = query.where(WorkItem.id.in_(wanted))
    result = await db.execute(query)
    return {row[0] for row in result.fetchall()}
