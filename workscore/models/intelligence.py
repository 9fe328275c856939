from sqlalchemy import Column, Integer, Float, String, Date, DateTime, ForeignKey, JSON, UniqueConstraint
from workscore.database import Base
from workscore.utils.dates import utcnow


class ChronicOverduePattern(Base):
    __tablename__ = "chronic_overdue_patterns"

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    window_start = Column(DateTime, nullable=False)
    window_end = Column(DateTime, nullable=False)
    total_tasks = Column(Integer, nullable=False)
    overdue_tasks = Column(Integer, nullable=False)
    overdue_percentage = Column(Float, nullable=False)
    avg_days_overdue = Column(Integer, nullable=False, default=0)
    max_consecutive_overdue = Column(Integer, nullable=False, default=0)
    severity = Column(String, nullable=False)  # low, medium, high, critical
    recommendations = Column(JSON, nullable=False, default=list)
    detected_at = Column(DateTime, nullable=False, default=utcnow, index=True)


class DepartmentTrend(Base):
    __tablename__ = "department_trends"

    id = Column(Integer, primary_key=True, index=True)
    team_id = Column(Integer, ForeignKey("teams.id"), nullable=False, index=True)
    window_start = Column(DateTime, nullable=False)
    window_end = Column(DateTime, nullable=False)

    current_total = Column(Integer, nullable=False, default=0)
    current_completed = Column(Integer, nullable=False, default=0)
    current_overdue = Column(Integer, nullable=False, default=0)
    previous_total = Column(Integer, nullable=False, default=0)
    previous_completed = Column(Integer, nullable=False, default=0)
    previous_overdue = Column(Integer, nullable=False, default=0)

    current_completion_rate = Column(Float, nullable=False, default=0.0)
    previous_completion_rate = Column(Float, nullable=False, default=0.0)
    change_points = Column(Float, nullable=False, default=0.0)
    direction = Column(String, nullable=False)   # up, flat, down
    risk_level = Column(String, nullable=False)  # low, medium, high
    detected_at = Column(DateTime, nullable=False, default=utcnow, index=True)


class TaskRiskAssessment(Base):
    __tablename__ = "task_risk_assessments"

    id = Column(Integer, primary_key=True, index=True)
    work_item_id = Column(Integer, ForeignKey("work_items.id"), nullable=False, index=True)
    assignees = Column(JSON, nullable=False, default=list)
    risk_score = Column(Integer, nullable=False)
    risk_tier = Column(String, nullable=False)  # low, medium, critical
    factors = Column(JSON, nullable=False, default=dict)
    predicted_outcome = Column(String, nullable=False)  # on_time, late, very_late
    days_until_due = Column(Integer, nullable=False)
    recommendations = Column(JSON, nullable=False, default=list)
    assessed_at = Column(DateTime, nullable=False, default=utcnow, index=True)


class PerformanceSnapshot(Base):
    __tablename__ = "performance_snapshots"

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    week_start = Column(Date, nullable=False)
    week_end = Column(Date, nullable=False)
    iso_year = Column(Integer, nullable=False)
    iso_week = Column(Integer, nullable=False)
    overall_score = Column(Integer, nullable=False)
    previous_score = Column(Integer, nullable=True)
    trend = Column(String, nullable=False)  # up, flat, down
    tasks_assigned = Column(Integer, nullable=False, default=0)
    tasks_completed = Column(Integer, nullable=False, default=0)
    alerts = Column(JSON, nullable=False, default=list)
    snapshot_at = Column(DateTime, nullable=False, default=utcnow, index=True)

    __table_args__ = (
        UniqueConstraint("user_id", "iso_year", "iso_week", name="uq_snapshot_user_iso_week"),
    )
