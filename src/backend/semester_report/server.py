from __future__ import annotations

from datetime import date
from typing import Any, Dict, List, Optional, Tuple, Union

from fastapi import FastAPI, HTTPException
from pydantic import BaseModel, Field

from .config import configure_logging, load_settings
from .errors import ReportDataError, ReportRangeError
from .models import AttendanceRecord, Event, FeedbackRecord, Member, PointLedgerEntry, ReportFilters
from .repository import ReportDataRepository, StaticReportRepository, build_repository_from_env
from .service import generate_report

settings = load_settings()
configure_logging(settings.log_level)

app = FastAPI(title="Semester Report API", version="0.1.0")
repository: Optional[ReportDataRepository] = build_repository_from_env(settings)


class MemberPayload(BaseModel):
    user_id: str
    first_name: str = ""
    last_name: str = ""
    role: str
    officer_position: Optional[str] = None
    pledge_class: Optional[str] = None
    expected_graduation: Optional[Union[str, int]] = None
    majors: Optional[Union[List[str], str]] = None
    gender: Optional[str] = None
    pronouns: Optional[str] = None
    race: Optional[str] = None
    living_type: Optional[str] = None
    house_membership: bool = False


class EventPayload(BaseModel):
    id: str
    title: str = ""
    point_type: str
    created_by: Optional[str] = None
    point_value: float = Field(default=0.0, ge=0)


class AttendancePayload(BaseModel):
    event_id: str
    user_id: str


class PointPayload(BaseModel):
    user_id: str
    category: Optional[str] = None
    total_points: float = Field(default=0.0, ge=0)


class FeedbackPayload(BaseModel):
    event_id: str
    rating: int = Field(ge=1, le=5)
    would_attend_again: bool = False
    well_organized: bool = False


class SemesterReportRequest(BaseModel):
    start: Optional[date] = None
    end: Optional[date] = None
    members: Optional[List[MemberPayload]] = None
    events: Optional[List[EventPayload]] = None
    attendance: Optional[List[AttendancePayload]] = None
    points: Optional[List[PointPayload]] = None
    feedback: Optional[List[FeedbackPayload]] = None


class SemesterReportResponse(BaseModel):
    data: Dict[str, Any]
    source: str


@app.get("/health")
async def health() -> Dict[str, str]:
    return {"status": "ok"}


@app.post("/reports/semester", response_model=SemesterReportResponse)
def semester_report_endpoint(request: SemesterReportRequest) -> SemesterReportResponse:
    filters = _resolve_filters(request)
    source_repository, source = _resolve_repository(request)
    try:
        report = generate_report(source_repository, filters, settings=settings)
    except ReportDataError as exc:
        raise HTTPException(status_code=502, detail=f"Failed to generate report: {exc}") from exc
    return SemesterReportResponse(data=report.as_dict(), source=source)


def _resolve_filters(request: SemesterReportRequest) -> ReportFilters:
    default = ReportFilters.current_semester()
    try:
        return ReportFilters(start=request.start or default.start, end=request.end or default.end)
    except ReportRangeError as exc:
        raise HTTPException(status_code=422, detail=str(exc)) from exc


def _resolve_repository(request: SemesterReportRequest) -> Tuple[ReportDataRepository, str]:
    if repository is not None:
        return repository, "database"

    if request.members is None or request.events is None:
        raise HTTPException(
            status_code=500,
            detail=(
                "SEMESTER_REPORT_DATABASE_URL is not configured; "
                "supply members+events (and optionally attendance, points, feedback) in the request body."
            ),
        )

    try:
        inline = StaticReportRepository(
            members=[Member.from_row(payload.model_dump()) for payload in request.members],
            events=[Event.from_row(payload.model_dump()) for payload in request.events],
            attendance=[AttendanceRecord.from_row(payload.model_dump()) for payload in request.attendance or []],
            points=[PointLedgerEntry.from_row(payload.model_dump()) for payload in request.points or []],
            feedback=[FeedbackRecord.from_row(payload.model_dump()) for payload in request.feedback or []],
        )
    except ReportDataError as exc:
        raise HTTPException(status_code=422, detail=str(exc)) from exc
    return inline, "inline"
