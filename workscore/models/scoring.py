from sqlalchemy import Column, Integer, String, Date, DateTime, ForeignKey, UniqueConstraint
from workscore.database import Base
from workscore.utils.dates import utcnow

SCORING_CONFIG_ID = 1


class ScoringConfig(Base):
    __tablename__ = "scoring_config"

    id = Column(Integer, primary_key=True, default=SCORING_CONFIG_ID)
    completion_weight = Column(Integer, nullable=False)
    timeliness_weight = Column(Integer, nullable=False)
    quality_weight = Column(Integer, nullable=False)
    kra_alignment_weight = Column(Integer, nullable=False)
    updated_at = Column(DateTime, nullable=False, default=utcnow)
    updated_by = Column(String, nullable=False, default="system")


class WeeklyReport(Base):
    __tablename__ = "weekly_reports"

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    week_start = Column(Date, nullable=False)  # Monday
    week_end = Column(Date, nullable=False)    # Sunday

    tasks_assigned = Column(Integer, nullable=False, default=0)
    tasks_completed = Column(Integer, nullable=False, default=0)
    on_time_completion = Column(Integer, nullable=False, default=0)
    delay_count = Column(Integer, nullable=False, default=0)

    completion_score = Column(Integer, nullable=False, default=0)
    timeliness_score = Column(Integer, nullable=False, default=0)
    quality_score = Column(Integer, nullable=False, default=0)
    kra_alignment_score = Column(Integer, nullable=False, default=0)
    total_score = Column(Integer, nullable=False, default=0)

    generated_at = Column(DateTime, nullable=False, default=utcnow)

    __table_args__ = (
        UniqueConstraint("user_id", "week_start", name="uq_weekly_report_user_week"),
    )
