from datetime import date

import pytest

from backend.semester_report.models import (
    AttendanceRecord,
    Event,
    FeedbackRecord,
    Member,
    PointLedgerEntry,
    ReportFilters,
)


def make_member(member_id, first, last="Member", role="brother", **extra):
    return Member(id=member_id, first_name=first, last_name=last, role=role, **extra)


def make_event(event_id, title=None, category="service", created_by=None, point_value=1.0):
    return Event(
        id=event_id,
        title=title or f"Event {event_id}",
        category=category,
        created_by=created_by,
        point_value=point_value,
    )


def attend(member_id, *event_ids):
    return [AttendanceRecord(event_id=event_id, member_id=member_id) for event_id in event_ids]


def award(member_id, amount, category="service"):
    return PointLedgerEntry(member_id=member_id, amount=amount, category=category)


def feedback(event_id, rating, again=False, organized=False):
    return FeedbackRecord(event_id=event_id, rating=rating, would_attend_again=again, well_organized=organized)


@pytest.fixture
def fall_filters():
    return ReportFilters(start=date(2025, 8, 1), end=date(2025, 12, 31))


@pytest.fixture
def two_member_records():
    """A attends all five events with 100 points; B attends none with 0 points."""
    members = [make_member("a", "Alex", "Adams"), make_member("b", "Blair", "Brown")]
    events = [make_event(f"e{index}") for index in range(1, 6)]
    attendance = attend("a", *(event.id for event in events))
    points = [award("a", 100)]
    return members, events, attendance, points
