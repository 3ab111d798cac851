from __future__ import annotations

from collections import Counter, defaultdict
from dataclasses import dataclass, field
from typing import Dict, Sequence

from .metrics import percentage, safe_ratio, tally
from .models import ACTIVE_ROLES, AttendanceRecord, Event, FeedbackRecord, Member, PointLedgerEntry


@dataclass(frozen=True)
class MemberStats:
    member: Member
    points: float
    attended: int
    attendance_rate: float

    @property
    def name(self) -> str:
        return self.member.full_name


@dataclass
class ReportSnapshot:
    """
    Immutable view over the five input collections of one report.

    Members are restricted to the active roles (brother/officer). Ledger
    entries and attendance are indexed once here so that every section
    calculator reads the same tallies instead of rescanning the inputs.
    Point entries of people outside the member set and attendance for
    events outside the snapshot are ignored.
    """

    members: Sequence[Member]
    events: Sequence[Event]
    attendance: Sequence[AttendanceRecord]
    points: Sequence[PointLedgerEntry]
    feedback: Sequence[FeedbackRecord] = ()

    events_by_id: Dict[str, Event] = field(init=False, repr=False)
    events_by_category: Dict[str, int] = field(init=False, repr=False)
    attendance_by_event: Dict[str, int] = field(init=False, repr=False)
    attendance_by_member: Dict[str, int] = field(init=False, repr=False)
    member_points: Dict[str, float] = field(init=False, repr=False)
    member_category_points: Dict[str, Dict[str, float]] = field(init=False, repr=False)
    points_by_category: Dict[str, float] = field(init=False, repr=False)
    member_stats: Sequence[MemberStats] = field(init=False, repr=False)

    def __post_init__(self) -> None:
        self.members = tuple(member for member in self.members if member.role in ACTIVE_ROLES)
        self.events = tuple(self.events)
        self.feedback = tuple(self.feedback or ())

        member_ids = {member.id for member in self.members}
        self.points = tuple(entry for entry in self.points if entry.member_id in member_ids)

        self.events_by_id = {event.id: event for event in self.events}
        self.attendance = tuple(record for record in self.attendance if record.event_id in self.events_by_id)
        self.events_by_category = tally(event.category for event in self.events)
        self.attendance_by_event = dict(Counter(record.event_id for record in self.attendance))
        self.attendance_by_member = dict(Counter(record.member_id for record in self.attendance))

        member_points: Dict[str, float] = defaultdict(float)
        category_points: Dict[str, Dict[str, float]] = defaultdict(lambda: defaultdict(float))
        points_by_category: Dict[str, float] = defaultdict(float)
        for entry in self.points:
            member_points[entry.member_id] += entry.amount
            if entry.category:
                category_points[entry.member_id][entry.category] += entry.amount
                points_by_category[entry.category] += entry.amount
        self.member_points = dict(member_points)
        self.member_category_points = {member_id: dict(values) for member_id, values in category_points.items()}
        self.points_by_category = dict(points_by_category)

        self.member_stats = tuple(
            MemberStats(
                member=member,
                points=self.member_points.get(member.id, 0.0),
                attended=self.attendance_by_member.get(member.id, 0),
                attendance_rate=percentage(self.attendance_by_member.get(member.id, 0), self.total_events),
            )
            for member in self.members
        )

    @property
    def total_members(self) -> int:
        return len(self.members)

    @property
    def total_events(self) -> int:
        return len(self.events)

    @property
    def total_attendance(self) -> int:
        return len(self.attendance)

    @property
    def member_attendance(self) -> int:
        """Attendance records that belong to a member of the snapshot."""
        return sum(self.attendance_by_member.get(member.id, 0) for member in self.members)

    @property
    def total_points_awarded(self) -> float:
        return sum(self.member_points.values())

    @property
    def average_points_per_member(self) -> float:
        return safe_ratio(self.total_points_awarded, self.total_members)
