from __future__ import annotations

import logging
from concurrent.futures import Executor
from typing import Dict, Optional, Sequence

from .calculators import SECTION_CALCULATORS
from .config import ReportSettings
from .dataset import ReportSnapshot
from .models import (
    AttendanceRecord,
    Event,
    FeedbackRecord,
    Member,
    PointLedgerEntry,
    ReportFilters,
    SemesterReport,
)
from .repository import ReportDataRepository

logger = logging.getLogger(__name__)


class SemesterReportService:
    """
    Assembles the semester report from one snapshot of chapter data.

    The service only composes section results; every figure is produced by
    a calculator in ``calculators.py``. Building twice from the same inputs
    yields equal reports.
    """

    def __init__(self, snapshot: ReportSnapshot, settings: Optional[ReportSettings] = None) -> None:
        self.snapshot = snapshot
        self.settings = settings or ReportSettings()

    @classmethod
    def from_records(
        cls,
        members: Sequence[Member],
        events: Sequence[Event],
        attendance: Sequence[AttendanceRecord],
        points: Sequence[PointLedgerEntry],
        feedback: Optional[Sequence[FeedbackRecord]] = None,
        settings: Optional[ReportSettings] = None,
    ) -> "SemesterReportService":
        snapshot = ReportSnapshot(
            members=members,
            events=events,
            attendance=attendance,
            points=points,
            feedback=feedback or (),
        )
        return cls(snapshot, settings=settings)

    def build(self, filters: ReportFilters, executor: Optional[Executor] = None) -> SemesterReport:
        """
        Compute every section and return the assembled report.

        ``executor`` optionally evaluates the sections concurrently; the
        result is the same either way.
        """

        if executor is None:
            sections: Dict[str, object] = {
                name: calculator(self.snapshot, self.settings) for name, calculator in SECTION_CALCULATORS.items()
            }
        else:
            futures = {
                name: executor.submit(calculator, self.snapshot, self.settings)
                for name, calculator in SECTION_CALCULATORS.items()
            }
            sections = {name: future.result() for name, future in futures.items()}

        return SemesterReport(semester_start=filters.start, semester_end=filters.end, **sections)


def generate_report(
    repository: ReportDataRepository,
    filters: ReportFilters,
    settings: Optional[ReportSettings] = None,
    executor: Optional[Executor] = None,
) -> SemesterReport:
    """
    Load the snapshot for ``filters`` and build the report.

    A ``ReportDataError`` from the repository propagates unchanged so the
    caller gets one error and no partial report.
    """

    snapshot = repository.load(filters)
    logger.info(
        "Generating semester report %s..%s (%d members, %d events, %d attendance, %d feedback)",
        filters.start.isoformat(),
        filters.end.isoformat(),
        snapshot.total_members,
        snapshot.total_events,
        snapshot.total_attendance,
        len(snapshot.feedback),
    )
    return SemesterReportService(snapshot, settings=settings).build(filters, executor=executor)
