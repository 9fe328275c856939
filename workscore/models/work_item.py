from sqlalchemy import Column, Integer, String, DateTime, ForeignKey, UniqueConstraint
from sqlalchemy.ext.associationproxy import association_proxy
from sqlalchemy.orm import relationship
from workscore.database import Base
from workscore.utils.dates import utcnow

# Task statuses
NOT_STARTED = "not_started"
ASSIGNED = "assigned"
IN_PROGRESS = "in_progress"
BLOCKED = "blocked"
COMPLETED = "completed"
CANCELLED = "cancelled"
ON_HOLD = "on_hold"

CLOSED_STATUSES = (COMPLETED, CANCELLED)


class WorkItemAssignee(Base):
    __tablename__ = "work_item_assignees"

    id = Column(Integer, primary_key=True, index=True)
    work_item_id = Column(Integer, ForeignKey("work_items.id", ondelete="CASCADE"), nullable=False, index=True)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)

    __table_args__ = (UniqueConstraint("work_item_id", "user_id", name="uq_work_item_assignee"),)


class WorkItem(Base):
    """A task or a KRA goal. Owned by the task-management side; read-only here
    apart from the overdue stamp."""

    __tablename__ = "work_items"

    id = Column(Integer, primary_key=True, index=True)
    title = Column(String, nullable=False, default="")
    kind = Column(String, nullable=False, default="task")  # task, kra
    owner_id = Column(Integer, ForeignKey("users.id"), nullable=True)
    team_id = Column(Integer, ForeignKey("teams.id"), nullable=True, index=True)
    status = Column(String, nullable=False, default=NOT_STARTED, index=True)
    priority = Column(String, nullable=False, default="medium")  # low, medium, high, critical
    assigned_at = Column(DateTime, nullable=False, default=utcnow)
    due_date = Column(DateTime, nullable=True, index=True)
    completed_at = Column(DateTime, nullable=True)
    revision_count = Column(Integer, nullable=False, default=0)  # due-date pushes
    reopen_count = Column(Integer, nullable=False, default=0)    # reverted after completion
    parent_goal_id = Column(Integer, ForeignKey("work_items.id"), nullable=True)
    marked_overdue_at = Column(DateTime, nullable=True)
    updated_at = Column(DateTime, nullable=False, default=utcnow, onupdate=utcnow)

    # selectin: assignees are always loaded with the item, so async code never lazy-loads
    assignee_links = relationship(
        WorkItemAssignee,
        lazy="selectin",
        cascade="all, delete-orphan",
        order_by=WorkItemAssignee.user_id,
    )
    # list of user ids
    assignees = association_proxy(
        "assignee_links", "user_id", creator=lambda user_id: WorkItemAssignee(user_id=user_id)
    )

    def is_assigned_to(self, user_id: int) -> bool:
        return user_id in (self.assignees or [])
