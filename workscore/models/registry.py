# Importing this module registers every table on Base.metadata.
from workscore.models.user import User, Team  # noqa: F401
from workscore.models.work_item import WorkItem, WorkItemAssignee  # noqa: F401
from workscore.models.scoring import ScoringConfig, WeeklyReport  # noqa: F401
from workscore.models.queue import RecalculationRequest  # noqa: F401
from workscore.models.intelligence import (  # noqa: F401
    ChronicOverduePattern,
    DepartmentTrend,
    TaskRiskAssessment,
    PerformanceSnapshot,
)
