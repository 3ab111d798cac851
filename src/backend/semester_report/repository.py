from __future__ import annotations

import json
import logging
from typing import Any, Callable, Iterable, List, Mapping, Optional, Sequence, Tuple, TypeVar

from sqlalchemy import bindparam, create_engine, text
from sqlalchemy.engine import Engine
from sqlalchemy.exc import SQLAlchemyError

from .config import ReportSettings, load_settings
from .dataset import ReportSnapshot
from .errors import InvalidRecordError, ReportDataError
from .models import (
    ACTIVE_ROLES,
    AttendanceRecord,
    Event,
    FeedbackRecord,
    Member,
    PointLedgerEntry,
    ReportFilters,
)

logger = logging.getLogger(__name__)

T = TypeVar("T")


def _dedupe_attendance(records: Iterable[AttendanceRecord]) -> Tuple[AttendanceRecord, ...]:
    return tuple(dict.fromkeys(records))


class ReportDataRepository:
    """
    Interface for loading the inputs of a semester report.

    Implementations return a ``ReportSnapshot`` holding approved events in
    the inclusive date range, their deduplicated attendance, the point
    ledger and any feedback. Any failure must surface as ``ReportDataError``.
    """

    def load(self, filters: ReportFilters) -> ReportSnapshot:
        raise NotImplementedError


class StaticReportRepository(ReportDataRepository):
    """
    Serve pre-fetched records, e.g. rows posted inline to the API.

    Records are assumed to already belong to the requested range.
    """

    def __init__(
        self,
        members: Sequence[Member] = (),
        events: Sequence[Event] = (),
        attendance: Sequence[AttendanceRecord] = (),
        points: Sequence[PointLedgerEntry] = (),
        feedback: Sequence[FeedbackRecord] = (),
    ):
        self.members = tuple(members)
        self.events = tuple(events)
        self.attendance = _dedupe_attendance(attendance)
        self.points = tuple(points)
        self.feedback = tuple(feedback)

    def load(self, filters: ReportFilters) -> ReportSnapshot:
        return ReportSnapshot(
            members=self.members,
            events=self.events,
            attendance=self.attendance,
            points=self.points,
            feedback=self.feedback,
        )


class SQLReportRepository(ReportDataRepository):
    """
    Load report inputs from the chapter database.

    Expected tables:
      - users(user_id, first_name, last_name, role, officer_position, pledge_class,
        expected_graduation, majors, gender, pronouns, race, living_type, house_membership)
      - events(id, title, point_type, created_by, point_value, start_time, status)
      - event_attendance(event_id, user_id)
      - point_ledger(user_id, category, total_points)
      - feedback_submission(event_id, rating, would_attend_again, well_organized)

    ``majors`` may be stored as a JSON array string. Feedback is optional: a
    missing or unreadable feedback table yields no feedback instead of an
    error.
    """

    def __init__(self, engine: Engine):
        self.engine = engine

    def load(self, filters: ReportFilters) -> ReportSnapshot:
        members = self._load_members()
        events = self._load_events(filters)
        points = self._load_points()
        event_ids = [event.id for event in events]
        attendance = self._load_attendance(event_ids)
        feedback = self._load_feedback(event_ids)
        logger.info(
            "Loaded report inputs: %d members, %d events, %d attendance, %d point entries, %d feedback",
            len(members),
            len(events),
            len(attendance),
            len(points),
            len(feedback),
        )
        return ReportSnapshot(
            members=members,
            events=events,
            attendance=attendance,
            points=points,
            feedback=feedback,
        )

    def _fetch(self, collection: str, query, params: Mapping[str, Any]) -> List[Mapping[str, Any]]:
        try:
            with self.engine.connect() as connection:
                return list(connection.execute(query, dict(params)).mappings().all())
        except SQLAlchemyError as exc:
            raise ReportDataError(f"Failed to load {collection}: {exc}", collection=collection) from exc

    @staticmethod
    def _map(rows: Iterable[Mapping[str, Any]], mapper: Callable[[Mapping[str, Any]], T]) -> Tuple[T, ...]:
        return tuple(mapper(row) for row in rows)

    def _load_members(self) -> Sequence[Member]:
        query = text(
            """
            SELECT user_id, first_name, last_name, role, officer_position, pledge_class,
                   expected_graduation, majors, gender, pronouns, race, living_type, house_membership
            FROM users
            WHERE role IN :roles
            """
        ).bindparams(bindparam("roles", expanding=True))
        rows = self._fetch("members", query, {"roles": list(ACTIVE_ROLES)})
        return self._map((self._decode_majors(row) for row in rows), Member.from_row)

    def _load_events(self, filters: ReportFilters) -> Sequence[Event]:
        query = text(
            """
            SELECT id, title, point_type, created_by, point_value
            FROM events
            WHERE start_time >= :start AND start_time < :end AND status = 'approved'
            ORDER BY start_time ASC
            """
        )
        start, end = filters.window()
        rows = self._fetch("events", query, {"start": start, "end": end})
        return self._map(rows, Event.from_row)

    def _load_points(self) -> Sequence[PointLedgerEntry]:
        query = text("SELECT user_id, category, total_points FROM point_ledger")
        rows = self._fetch("points", query, {})
        return self._map(rows, PointLedgerEntry.from_row)

    def _load_attendance(self, event_ids: Sequence[str]) -> Sequence[AttendanceRecord]:
        if not event_ids:
            return ()
        query = text(
            "SELECT DISTINCT event_id, user_id FROM event_attendance WHERE event_id IN :event_ids"
        ).bindparams(bindparam("event_ids", expanding=True))
        rows = self._fetch("attendance", query, {"event_ids": list(event_ids)})
        return _dedupe_attendance(self._map(rows, AttendanceRecord.from_row))

    def _load_feedback(self, event_ids: Sequence[str]) -> Sequence[FeedbackRecord]:
        if not event_ids:
            return ()
        query = text(
            """
            SELECT event_id, rating, would_attend_again, well_organized
            FROM feedback_submission
            WHERE event_id IN :event_ids
            """
        ).bindparams(bindparam("event_ids", expanding=True))
        try:
            rows = self._fetch("feedback", query, {"event_ids": list(event_ids)})
        except ReportDataError as exc:
            logger.warning("Feedback unavailable, skipping event quality inputs: %s", exc)
            return ()

        feedback: List[FeedbackRecord] = []
        for row in rows:
            try:
                feedback.append(FeedbackRecord.from_row(row))
            except InvalidRecordError as exc:
                logger.warning("Skipping feedback row: %s", exc)
        return tuple(feedback)

    @staticmethod
    def _decode_majors(row: Mapping[str, Any]) -> Mapping[str, Any]:
        majors = row.get("majors")
        if isinstance(majors, str) and majors.startswith("["):
            try:
                majors = json.loads(majors)
            except json.JSONDecodeError:
                majors = [majors]
            return {**row, "majors": majors}
        return row


def build_repository_from_env(settings: Optional[ReportSettings] = None) -> Optional[ReportDataRepository]:
    cfg = settings or load_settings()
    if cfg.database_url:
        engine = create_engine(cfg.database_url)
        return SQLReportRepository(engine)
    return None
