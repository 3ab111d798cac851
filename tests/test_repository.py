from datetime import date

import pytest
from sqlalchemy import create_engine, text
from sqlalchemy.pool import StaticPool

from backend.semester_report.config import ReportSettings
from backend.semester_report.errors import ReportDataError
from backend.semester_report.models import ReportFilters
from backend.semester_report.repository import SQLReportRepository, build_repository_from_env
from backend.semester_report.service import generate_report

SCHEMA = [
    """
    CREATE TABLE users (
        user_id TEXT PRIMARY KEY, first_name TEXT, last_name TEXT, role TEXT, officer_position TEXT,
        pledge_class TEXT, expected_graduation TEXT, majors TEXT, gender TEXT, pronouns TEXT,
        race TEXT, living_type TEXT, house_membership INTEGER
    )
    """,
    """
    CREATE TABLE events (
        id TEXT PRIMARY KEY, title TEXT, point_type TEXT, created_by TEXT, point_value REAL,
        start_time TEXT, status TEXT
    )
    """,
    "CREATE TABLE event_attendance (event_id TEXT, user_id TEXT)",
    "CREATE TABLE point_ledger (user_id TEXT, category TEXT, total_points REAL)",
    """
    CREATE TABLE feedback_submission (
        event_id TEXT, rating INTEGER, would_attend_again INTEGER, well_organized INTEGER
    )
    """,
]

SEED = [
    """
    INSERT INTO users VALUES
        ('u1', 'Ann', 'Avery', 'officer', 'President', 'Alpha', '2026', '["CS", "Math"]', 'F', 'she/her',
         NULL, 'Dorm', 1),
        ('u2', 'Ben', 'Bell', 'brother', NULL, 'Beta', '2027', 'History', NULL, NULL, NULL, NULL, 0),
        ('u3', 'Cal', 'Cole', 'pledge', NULL, 'Gamma', NULL, NULL, NULL, NULL, NULL, NULL, 0)
    """,
    """
    INSERT INTO events VALUES
        ('e1', 'Mixer', 'brotherhood', 'u1', 2, '2025-09-05 19:00:00', 'approved'),
        ('e2', 'Food Drive', 'service', 'u1', 1, '2025-12-31 10:00:00', 'approved'),
        ('e3', 'Draft Event', 'service', 'u1', 1, '2025-10-01 10:00:00', 'pending'),
        ('e4', 'Spring Retreat', 'brotherhood', 'u2', 3, '2026-02-01 10:00:00', 'approved')
    """,
    """
    INSERT INTO event_attendance VALUES
        ('e1', 'u1'), ('e1', 'u1'), ('e1', 'u2'), ('e2', 'u1'), ('e3', 'u2'), ('e4', 'u2')
    """,
    """
    INSERT INTO point_ledger VALUES
        ('u1', 'brotherhood', 10), ('u1', 'service', 4), ('u2', 'brotherhood', 2), ('u3', 'service', 9)
    """,
    """
    INSERT INTO feedback_submission VALUES
        ('e1', 5, 1, 1), ('e1', 4, 0, 1), ('e2', 9, 1, 0), ('e4', 1, 0, 0)
    """,
]


@pytest.fixture
def engine():
    engine = create_engine("sqlite://", connect_args={"check_same_thread": False}, poolclass=StaticPool)
    with engine.begin() as connection:
        for statement in SCHEMA + SEED:
            connection.execute(text(statement))
    return engine


@pytest.fixture
def filters():
    return ReportFilters(start=date(2025, 8, 1), end=date(2025, 12, 31))


def test_load_filters_range_status_and_roles(engine, filters):
    snapshot = SQLReportRepository(engine).load(filters)

    assert sorted(member.id for member in snapshot.members) == ["u1", "u2"]
    assert [event.id for event in snapshot.events] == ["e1", "e2"]
    assert sorted((record.event_id, record.member_id) for record in snapshot.attendance) == [
        ("e1", "u1"),
        ("e1", "u2"),
        ("e2", "u1"),
    ]
    ann = next(member for member in snapshot.members if member.id == "u1")
    assert ann.majors == ("CS", "Math")
    assert ann.house_membership is True


def test_invalid_feedback_rows_are_skipped(engine, filters):
    snapshot = SQLReportRepository(engine).load(filters)
    assert [(record.event_id, record.rating) for record in snapshot.feedback] == [("e1", 5), ("e1", 4)]


def test_missing_feedback_table_yields_no_feedback(engine, filters, caplog):
    with engine.begin() as connection:
        connection.execute(text("DROP TABLE feedback_submission"))

    with caplog.at_level("WARNING"):
        snapshot = SQLReportRepository(engine).load(filters)
    assert snapshot.feedback == ()
    assert "Feedback unavailable" in caplog.text


def test_missing_required_table_raises_report_data_error(engine, filters):
    with engine.begin() as connection:
        connection.execute(text("DROP TABLE users"))

    with pytest.raises(ReportDataError) as excinfo:
        SQLReportRepository(engine).load(filters)
    assert excinfo.value.collection == "members"


def test_empty_range_skips_attendance_queries(engine):
    with engine.begin() as connection:
        connection.execute(text("DROP TABLE event_attendance"))

    filters = ReportFilters(start=date(2024, 1, 1), end=date(2024, 7, 31))
    snapshot = SQLReportRepository(engine).load(filters)
    assert snapshot.events == ()
    assert snapshot.attendance == ()


def test_generate_report_from_database(engine, filters):
    report = generate_report(SQLReportRepository(engine), filters)

    assert report.membership.total_members == 2
    assert report.events.total_events == 2
    assert report.events.total_attendance == 3
    assert report.points.total_points_awarded == 16
    assert report.officers.officers[0].avg_event_attendance == 1.5
    assert report.event_quality.average_rating == 4.5
    assert report.diversity.major_distribution == {"CS": 1, "Math": 1, "History": 1}


def test_build_repository_from_env():
    assert build_repository_from_env(ReportSettings()) is None
    repository = build_repository_from_env(ReportSettings(database_url="sqlite://"))
    assert isinstance(repository, SQLReportRepository)
