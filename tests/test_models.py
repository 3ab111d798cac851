from datetime import date, datetime

import pytest

from backend.semester_report.errors import InvalidRecordError, ReportDataError, ReportRangeError
from backend.semester_report.models import (
    AttendanceRecord,
    Event,
    FeedbackRecord,
    Member,
    PointLedgerEntry,
    ReportFilters,
)
from backend.semester_report.service import SemesterReportService


def test_member_from_row_maps_optional_fields():
    member = Member.from_row(
        {
            "user_id": 42,
            "first_name": "Jordan",
            "last_name": "Lee",
            "role": "Officer",
            "officer_position": "VP Scholarship",
            "expected_graduation": 2026,
            "majors": "Biology",
            "gender": "",
            "house_membership": 1,
        }
    )
    assert member.id == "42"
    assert member.role == "officer"
    assert member.full_name == "Jordan Lee"
    assert member.majors == ("Biology",)
    assert member.graduation_year == "2026"
    assert member.gender is None
    assert member.house_membership is True


@pytest.mark.parametrize(
    "raw, expected",
    [("false", False), ("0", False), ("", False), (None, False), (0, False),
     ("true", True), (" Yes ", True), ("1", True), (1, True), (True, True)],
)
def test_member_house_membership_parses_text_flags(raw, expected):
    member = Member.from_row({"user_id": "u1", "role": "brother", "house_membership": raw})
    assert member.house_membership is expected


def test_member_from_row_accepts_major_lists():
    member = Member.from_row({"user_id": "u1", "role": "brother", "majors": ["CS", "", "Math"]})
    assert member.majors == ("CS", "Math")
    assert member.pledge_class is None


@pytest.mark.parametrize(
    "row",
    [
        {"role": "brother"},
        {"user_id": "u1"},
        {"user_id": "u1", "role": "president-elect"},
    ],
)
def test_member_from_row_rejects_bad_rows(row):
    with pytest.raises(InvalidRecordError) as excinfo:
        Member.from_row(row)
    assert excinfo.value.collection == "members"


def test_event_from_row_uses_point_type_as_category():
    event = Event.from_row({"id": "e1", "title": "Car Wash", "point_type": "fundraising", "point_value": "2"})
    assert event.category == "fundraising"
    assert event.point_value == 2.0
    assert event.created_by is None


def test_event_from_row_rejects_negative_points():
    with pytest.raises(InvalidRecordError):
        Event.from_row({"id": "e1", "point_type": "service", "point_value": -1})


def test_point_entry_and_attendance_from_rows():
    entry = PointLedgerEntry.from_row({"user_id": "u1", "category": "service", "total_points": None})
    assert entry.amount == 0.0
    record = AttendanceRecord.from_row({"event_id": 7, "user_id": "u1"})
    assert record == AttendanceRecord(event_id="7", member_id="u1")


def test_point_entry_rejects_non_numeric_amount():
    with pytest.raises(ReportDataError):
        PointLedgerEntry.from_row({"user_id": "u1", "total_points": "lots"})


@pytest.mark.parametrize("value", ["nan", "inf", "-inf", float("nan")])
@pytest.mark.parametrize(
    "build",
    [
        lambda value: Event.from_row({"id": "e1", "point_type": "service", "point_value": value}),
        lambda value: PointLedgerEntry.from_row({"user_id": "u1", "total_points": value}),
    ],
    ids=["point_value", "total_points"],
)
def test_numeric_fields_reject_non_finite_values(build, value):
    with pytest.raises(InvalidRecordError):
        build(value)


@pytest.mark.parametrize("rating", [0, 6, "great", None, 4.9, "4.5", True, "nan"])
def test_feedback_rating_must_be_between_one_and_five(rating):
    with pytest.raises(InvalidRecordError):
        FeedbackRecord.from_row({"event_id": "e1", "rating": rating})


@pytest.mark.parametrize("rating", ["4", 4, 4.0])
def test_feedback_rating_accepts_whole_numbers(rating):
    assert FeedbackRecord.from_row({"event_id": "e1", "rating": rating}).rating == 4


def test_feedback_from_row_defaults_flags():
    record = FeedbackRecord.from_row({"event_id": "e1", "rating": "4"})
    assert record.rating == 4
    assert record.would_attend_again is False
    assert record.well_organized is False


def test_feedback_from_row_parses_text_flags():
    record = FeedbackRecord.from_row(
        {"event_id": "e1", "rating": 5, "would_attend_again": "false", "well_organized": "yes"}
    )
    assert record.would_attend_again is False
    assert record.well_organized is True


def test_report_filters_reject_inverted_range():
    with pytest.raises(ReportRangeError):
        ReportFilters(start=date(2025, 12, 31), end=date(2025, 8, 1))


@pytest.mark.parametrize(
    "today, start, end",
    [
        (date(2025, 10, 18), date(2025, 8, 1), date(2025, 12, 31)),
        (date(2025, 8, 1), date(2025, 8, 1), date(2025, 12, 31)),
        (date(2026, 3, 2), date(2026, 1, 1), date(2026, 7, 31)),
    ],
)
def test_current_semester(today, start, end):
    filters = ReportFilters.current_semester(today)
    assert (filters.start, filters.end) == (start, end)


def test_window_has_exclusive_end():
    filters = ReportFilters(start=date(2025, 8, 1), end=date(2025, 12, 31))
    assert filters.window() == (datetime(2025, 8, 1), datetime(2026, 1, 1))


def test_as_dict_uses_camel_case_keys():
    filters = ReportFilters(start=date(2025, 8, 1), end=date(2025, 12, 31))
    data = SemesterReportService.from_records([], [], [], []).build(filters).as_dict()

    for key in (
        "totalMembers",
        "eventsByCategory",
        "pointsByCategory",
        "membersMetRequirements",
        "diversityMetrics",
        "retentionMetrics",
        "pointSystemMetrics",
        "eventQualityMetrics",
    ):
        assert key in data
    assert set(data["diversityMetrics"]) == {
        "pledgeClassDistribution",
        "majorDistribution",
        "graduationYearDistribution",
        "genderDistribution",
        "pronounDistribution",
        "raceDistribution",
        "livingTypeDistribution",
        "houseMembers",
    }
