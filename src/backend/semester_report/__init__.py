"""
Semester report engine.

Turns a snapshot of chapter members, approved events, attendance, the point
ledger and event feedback into the end-of-semester statistical report
(rankings, retention signals, diversity, point-economy health and event
quality).
"""

from .config import ReportSettings, ThresholdConfig, load_settings  # noqa: F401
from .dataset import ReportSnapshot  # noqa: F401
from .errors import InvalidRecordError, ReportDataError, ReportRangeError  # noqa: F401
from .models import (  # noqa: F401
    AttendanceRecord,
    Event,
    FeedbackRecord,
    Member,
    PointLedgerEntry,
    ReportFilters,
    SemesterReport,
)
from .repository import (  # noqa: F401
    ReportDataRepository,
    SQLReportRepository,
    StaticReportRepository,
    build_repository_from_env,
)
from .service import SemesterReportService, generate_report  # noqa: F401
