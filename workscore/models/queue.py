from sqlalchemy import Column, Integer, String, Text, Date, DateTime, ForeignKey, UniqueConstraint
from workscore.database import Base
from workscore.utils.dates import utcnow

QUEUED = "queued"
PROCESSING = "processing"
DONE = "done"


class RecalculationRequest(Base):
    __tablename__ = "recalculation_queue"

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=False)
    week_start = Column(Date, nullable=False)  # Monday of the invalidated week
    status = Column(String, nullable=False, default=QUEUED, index=True)
    enqueued_at = Column(DateTime, nullable=False, default=utcnow, index=True)
    claimed_at = Column(DateTime, nullable=True)
    attempts = Column(Integer, nullable=False, default=0)
    last_error = Column(Text, nullable=True)

    __table_args__ = (
        UniqueConstraint("user_id", "week_start", name="uq_recalc_user_week"),
    )
