from __future__ import annotations

import math
from dataclasses import dataclass, field
from datetime import date, datetime, time, timedelta
from typing import Any, Dict, Iterable, Mapping, Optional, Sequence, Tuple

from .errors import InvalidRecordError, ReportRangeError

MEMBER_ROLES = ("pledge", "brother", "officer", "president", "alumni", "abroad")
ACTIVE_ROLES = ("brother", "officer")


def _require(row: Mapping[str, Any], key: str, record: str) -> Any:
    value = row.get(key)
    if value is None or value == "":
        raise InvalidRecordError(f"{record} row is missing required field '{key}'", collection=record)
    return value


def _optional_str(value: Any) -> Optional[str]:
    if value is None:
        return None
    text = str(value).strip()
    return text or None


def _to_float(value: Any, record: str, key: str) -> float:
    if value is None or value == "":
        return 0.0
    try:
        result = float(value)
    except (TypeError, ValueError) as exc:
        raise InvalidRecordError(f"{record} field '{key}' is not numeric: {value!r}", collection=record) from exc
    if not math.isfinite(result):
        raise InvalidRecordError(f"{record} field '{key}' is not a finite number: {value!r}", collection=record)
    return result


def _to_bool(value: Any) -> bool:
    if isinstance(value, str):
        return value.strip().lower() in {"1", "true", "yes", "on"}
    return bool(value)


def _to_majors(value: Any) -> Tuple[str, ...]:
    if not value:
        return ()
    if isinstance(value, str):
        value = [value]
    return tuple(str(major).strip() for major in value if major and str(major).strip())


@dataclass(frozen=True)
class Member:
    """
    Roster entry for one member.

    Demographic attributes are optional and only feed the diversity section.
    ``majors`` is always a tuple so a member with a double major contributes
    to both buckets.
    """

    id: str
    first_name: str
    last_name: str
    role: str
    officer_position: Optional[str] = None
    pledge_class: Optional[str] = None
    majors: Tuple[str, ...] = ()
    graduation_year: Optional[str] = None
    gender: Optional[str] = None
    pronouns: Optional[str] = None
    race: Optional[str] = None
    living_type: Optional[str] = None
    house_membership: bool = False

    @property
    def full_name(self) -> str:
        return f"{self.first_name} {self.last_name}".strip()

    @classmethod
    def from_row(cls, row: Mapping[str, Any]) -> "Member":
        member_id = row.get("user_id", row.get("id"))
        if member_id is None or member_id == "":
            raise InvalidRecordError("members row is missing required field 'user_id'", collection="members")
        role = str(_require(row, "role", "members")).lower()
        if role not in MEMBER_ROLES:
            raise InvalidRecordError(f"members row has unknown role {role!r}", collection="members")
        return cls(
            id=str(member_id),
            first_name=str(row.get("first_name") or ""),
            last_name=str(row.get("last_name") or ""),
            role=role,
            officer_position=_optional_str(row.get("officer_position")),
            pledge_class=_optional_str(row.get("pledge_class")),
            majors=_to_majors(row.get("majors")),
            graduation_year=_optional_str(row.get("expected_graduation", row.get("graduation_year"))),
            gender=_optional_str(row.get("gender")),
            pronouns=_optional_str(row.get("pronouns")),
            race=_optional_str(row.get("race")),
            living_type=_optional_str(row.get("living_type")),
            house_membership=_to_bool(row.get("house_membership")),
        )


@dataclass(frozen=True)
class Event:
    id: str
    title: str
    category: str
    created_by: Optional[str] = None
    point_value: float = 0.0

    @classmethod
    def from_row(cls, row: Mapping[str, Any]) -> "Event":
        point_value = _to_float(row.get("point_value"), "events", "point_value")
        if point_value < 0:
            raise InvalidRecordError("events field 'point_value' must not be negative", collection="events")
        category = row.get("point_type", row.get("category"))
        return cls(
            id=str(_require(row, "id", "events")),
            title=str(row.get("title") or ""),
            category=str(category or "uncategorized"),
            created_by=_optional_str(row.get("created_by")),
            point_value=point_value,
        )


@dataclass(frozen=True)
class AttendanceRecord:
    event_id: str
    member_id: str

    @classmethod
    def from_row(cls, row: Mapping[str, Any]) -> "AttendanceRecord":
        member_id = row.get("user_id", row.get("member_id"))
        if member_id is None or member_id == "":
            raise InvalidRecordError("attendance row is missing required field 'user_id'", collection="attendance")
        return cls(event_id=str(_require(row, "event_id", "attendance")), member_id=str(member_id))


@dataclass(frozen=True)
class PointLedgerEntry:
    """
    One (possibly partial) point award.

    Entries without a category still count toward the member's total but
    are left out of every per-category figure.
    """

    member_id: str
    amount: float
    category: Optional[str] = None

    @classmethod
    def from_row(cls, row: Mapping[str, Any]) -> "PointLedgerEntry":
        member_id = row.get("user_id", row.get("member_id"))
        if member_id is None or member_id == "":
            raise InvalidRecordError("points row is missing required field 'user_id'", collection="points")
        amount = _to_float(row.get("total_points", row.get("amount")), "points", "total_points")
        if amount < 0:
            raise InvalidRecordError("points field 'total_points' must not be negative", collection="points")
        return cls(member_id=str(member_id), amount=amount, category=_optional_str(row.get("category")))


@dataclass(frozen=True)
class FeedbackRecord:
    event_id: str
    rating: int
    would_attend_again: bool = False
    well_organized: bool = False

    @classmethod
    def from_row(cls, row: Mapping[str, Any]) -> "FeedbackRecord":
        raw_rating = _require(row, "rating", "feedback")
        try:
            value = float(raw_rating)
        except (TypeError, ValueError) as exc:
            raise InvalidRecordError(f"feedback rating is not an integer: {raw_rating!r}", collection="feedback") from exc
        if isinstance(raw_rating, bool) or not value.is_integer():
            raise InvalidRecordError(f"feedback rating is not an integer: {raw_rating!r}", collection="feedback")
        rating = int(value)
        if not 1 <= rating <= 5:
            raise InvalidRecordError(f"feedback rating out of range: {rating}", collection="feedback")
        return cls(
            event_id=str(_require(row, "event_id", "feedback")),
            rating=rating,
            would_attend_again=_to_bool(row.get("would_attend_again")),
            well_organized=_to_bool(row.get("well_organized")),
        )


@dataclass(frozen=True)
class ReportFilters:
    """
    Inclusive ``[start, end]`` date range of a semester report.
    """

    start: date
    end: date

    def __post_init__(self) -> None:
        if self.end < self.start:
            raise ReportRangeError("end must not be before start")

    @classmethod
    def current_semester(cls, today: Optional[date] = None) -> "ReportFilters":
        # Fall runs Aug 1 - Dec 31, spring Jan 1 - Jul 31.
        today = today or date.today()
        if today.month >= 8:
            return cls(start=date(today.year, 8, 1), end=date(today.year, 12, 31))
        return cls(start=date(today.year, 1, 1), end=date(today.year, 7, 31))

    def window(self) -> Tuple[datetime, datetime]:
        """Return ``(start, end)`` datetimes with an exclusive end for queries."""
        return datetime.combine(self.start, time.min), datetime.combine(self.end + timedelta(days=1), time.min)


@dataclass(frozen=True)
class EventHighlight:
    name: str
    attendance: int


@dataclass(frozen=True)
class PointEarner:
    name: str
    points: float


@dataclass(frozen=True)
class MemberStanding:
    name: str
    points: float
    attendance_rate: float


@dataclass(frozen=True)
class OfficerStat:
    position: str
    name: str
    events_created: int
    avg_event_attendance: float


@dataclass(frozen=True)
class CategoryStat:
    category: str
    events_held: int
    avg_attendance: float
    points_distributed: float
    completion_rate: float


@dataclass(frozen=True)
class RatedEvent:
    title: str
    rating: float


@dataclass(frozen=True)
class MembershipSummary:
    """
    Head counts for the period.

    ``new_members`` and ``retention_rate`` stay at 0: members carry no join
    date and no prior-semester history to compute them from.
    """

    total_members: int = 0
    active_members: int = 0
    new_members: int = 0
    retention_rate: float = 0.0
    members_met_requirements: int = 0


@dataclass(frozen=True)
class EventStatistics:
    total_events: int = 0
    events_by_category: Dict[str, int] = field(default_factory=dict)
    total_attendance: int = 0
    average_attendance: float = 0.0
    most_attended_event: Optional[EventHighlight] = None
    least_attended_event: Optional[EventHighlight] = None


@dataclass(frozen=True)
class PointDistribution:
    total_points_awarded: float = 0.0
    average_points_per_member: float = 0.0
    highest_point_earner: Optional[PointEarner] = None
    points_by_category: Dict[str, float] = field(default_factory=dict)
    category_completion_rates: Dict[str, float] = field(default_factory=dict)
    top_performers: Sequence[MemberStanding] = ()


@dataclass(frozen=True)
class AttendanceAnalysis:
    overall_attendance_rate: float = 0.0
    perfect_attendance: Sequence[str] = ()
    low_attendance: Sequence[str] = ()


@dataclass(frozen=True)
class OfficerPerformance:
    officers: Sequence[OfficerStat] = ()


@dataclass(frozen=True)
class CategoryPerformance:
    categories: Sequence[CategoryStat] = ()


@dataclass(frozen=True)
class DiversityMetrics:
    pledge_class_distribution: Dict[str, int] = field(default_factory=dict)
    major_distribution: Dict[str, int] = field(default_factory=dict)
    graduation_year_distribution: Dict[str, int] = field(default_factory=dict)
    gender_distribution: Dict[str, int] = field(default_factory=dict)
    pronoun_distribution: Dict[str, int] = field(default_factory=dict)
    race_distribution: Dict[str, int] = field(default_factory=dict)
    living_type_distribution: Dict[str, int] = field(default_factory=dict)
    house_members: int = 0


@dataclass(frozen=True)
class RetentionMetrics:
    at_risk_members: Sequence[MemberStanding] = ()
    inactive_members: Sequence[str] = ()
    high_engagement_members: Sequence[str] = ()
    average_events_per_member: float = 0.0


@dataclass(frozen=True)
class PointSystemMetrics:
    average_points_gap: float = 0.0
    members_on_track: int = 0
    members_struggling: int = 0
    category_balance: Dict[str, float] = field(default_factory=dict)


@dataclass(frozen=True)
class EventQualityMetrics:
    average_rating: float = 0.0
    total_feedback: int = 0
    would_attend_again_rate: float = 0.0
    well_organized_rate: float = 0.0
    top_rated_events: Sequence[RatedEvent] = ()
    low_rated_events: Sequence[RatedEvent] = ()


@dataclass(frozen=True)
class SemesterReport:
    semester_start: date
    semester_end: date
    membership: MembershipSummary
    events: EventStatistics
    points: PointDistribution
    attendance: AttendanceAnalysis
    officers: OfficerPerformance
    categories: CategoryPerformance
    diversity: DiversityMetrics
    retention: RetentionMetrics
    point_system: PointSystemMetrics
    event_quality: EventQualityMetrics

    def as_dict(self) -> Dict[str, Any]:
        """
        Convert the report into the camelCase JSON shape the renderers expect.

        Top-level keys are flat (``totalMembers``, ``eventsByCategory`` ...)
        while the diversity, retention, point-system and event-quality
        sections stay nested, mirroring the payload the mobile client reads.
        """

        def _serialize(obj: Any) -> Any:
            if isinstance(obj, EventHighlight):
                return {"name": obj.name, "attendance": obj.attendance}
            if isinstance(obj, PointEarner):
                return {"name": obj.name, "points": obj.points}
            if isinstance(obj, MemberStanding):
                return {"name": obj.name, "points": obj.points, "attendanceRate": obj.attendance_rate}
            if isinstance(obj, OfficerStat):
                return {
                    "position": obj.position,
                    "name": obj.name,
                    "eventsCreated": obj.events_created,
                    "avgEventAttendance": obj.avg_event_attendance,
                }
            if isinstance(obj, CategoryStat):
                return {
                    "category": obj.category,
                    "eventsHeld": obj.events_held,
                    "avgAttendance": obj.avg_attendance,
                    "pointsDistributed": obj.points_distributed,
                    "completionRate": obj.completion_rate,
                }
            if isinstance(obj, RatedEvent):
                return {"title": obj.title, "rating": obj.rating}
            if isinstance(obj, date):
                return obj.isoformat()
            if isinstance(obj, dict):
                return {key: _serialize(value) for key, value in obj.items()}
            if isinstance(obj, Iterable) and not isinstance(obj, (str, bytes)):
                return [_serialize(item) for item in obj]
            return obj

        diversity = self.diversity
        retention = self.retention
        point_system = self.point_system
        quality = self.event_quality
        return {
            "semesterStart": _serialize(self.semester_start),
            "semesterEnd": _serialize(self.semester_end),
            "totalMembers": self.membership.total_members,
            "activeMembers": self.membership.active_members,
            "newMembers": self.membership.new_members,
            "retentionRate": self.membership.retention_rate,
            "membersMetRequirements": self.membership.members_met_requirements,
            "totalEvents": self.events.total_events,
            "eventsByCategory": _serialize(self.events.events_by_category),
            "totalAttendance": self.events.total_attendance,
            "averageAttendance": self.events.average_attendance,
            "mostAttendedEvent": _serialize(self.events.most_attended_event),
            "leastAttendedEvent": _serialize(self.events.least_attended_event),
            "averagePointsPerMember": self.points.average_points_per_member,
            "highestPointEarner": _serialize(self.points.highest_point_earner),
            "totalPointsAwarded": self.points.total_points_awarded,
            "pointsByCategory": _serialize(self.points.points_by_category),
            "categoryCompletionRates": _serialize(self.points.category_completion_rates),
            "topPerformers": _serialize(self.points.top_performers),
            "overallAttendanceRate": self.attendance.overall_attendance_rate,
            "perfectAttendance": _serialize(self.attendance.perfect_attendance),
            "lowAttendance": _serialize(self.attendance.low_attendance),
            "officerStats": _serialize(self.officers.officers),
            "categoryPerformance": _serialize(self.categories.categories),
            "diversityMetrics": {
                "pledgeClassDistribution": _serialize(diversity.pledge_class_distribution),
                "majorDistribution": _serialize(diversity.major_distribution),
                "graduationYearDistribution": _serialize(diversity.graduation_year_distribution),
                "genderDistribution": _serialize(diversity.gender_distribution),
                "pronounDistribution": _serialize(diversity.pronoun_distribution),
                "raceDistribution": _serialize(diversity.race_distribution),
                "livingTypeDistribution": _serialize(diversity.living_type_distribution),
                "houseMembers": diversity.house_members,
            },
            "retentionMetrics": {
                "atRiskMembers": _serialize(retention.at_risk_members),
                "inactiveMembers": _serialize(retention.inactive_members),
                "highEngagementMembers": _serialize(retention.high_engagement_members),
                "averageEventsPerMember": retention.average_events_per_member,
            },
            "pointSystemMetrics": {
                "averagePointsGap": point_system.average_points_gap,
                "membersOnTrack": point_system.members_on_track,
                "membersStruggling": point_system.members_struggling,
                "categoryBalance": _serialize(point_system.category_balance),
            },
            "eventQualityMetrics": {
                "averageRating": quality.average_rating,
                "totalFeedback": quality.total_feedback,
                "wouldAttendAgainRate": quality.would_attend_again_rate,
                "wellOrganizedRate": quality.well_organized_rate,
                "topRatedEvents": _serialize(quality.top_rated_events),
                "lowRatedEvents": _serialize(quality.low_rated_events),
            },
        }
