"""
Section calculators for the semester report.

Each calculator is a pure function of ``(snapshot, settings)`` returning one
report section. None of them depend on each other's output, so they can be
evaluated in any order or in parallel.
"""

from __future__ import annotations

import logging
from collections import defaultdict
from typing import Callable, Dict, List

from .config import ReportSettings
from .dataset import MemberStats, ReportSnapshot
from .metrics import percentage, safe_ratio, tally, top_n
from .models import (
    AttendanceAnalysis,
    CategoryPerformance,
    CategoryStat,
    DiversityMetrics,
    Event,
    EventHighlight,
    EventQualityMetrics,
    EventStatistics,
    MembershipSummary,
    MemberStanding,
    OfficerPerformance,
    OfficerStat,
    PointDistribution,
    PointEarner,
    PointSystemMetrics,
    RatedEvent,
    RetentionMetrics,
)

logger = logging.getLogger(__name__)

Calculator = Callable[[ReportSnapshot, ReportSettings], object]


def _standing(stats: MemberStats) -> MemberStanding:
    return MemberStanding(name=stats.name, points=stats.points, attendance_rate=stats.attendance_rate)


def _category_completion_rates(snapshot: ReportSnapshot) -> Dict[str, float]:
    rates: Dict[str, float] = {}
    for category in snapshot.events_by_category:
        earners = {
            member_id
            for member_id, categories in snapshot.member_category_points.items()
            if categories.get(category, 0) > 0
        }
        rates[category] = percentage(len(earners), snapshot.total_members)
    return rates


def membership_summary(snapshot: ReportSnapshot, settings: ReportSettings) -> MembershipSummary:
    requirements = settings.point_requirements
    met = 0
    if requirements:
        for member in snapshot.members:
            earned = snapshot.member_category_points.get(member.id, {})
            if all(earned.get(category, 0) >= required for category, required in requirements.items()):
                met += 1
    return MembershipSummary(
        total_members=snapshot.total_members,
        active_members=snapshot.total_members,
        members_met_requirements=met,
    )


def event_statistics(snapshot: ReportSnapshot, settings: ReportSettings) -> EventStatistics:
    def _count(event: Event) -> int:
        return snapshot.attendance_by_event.get(event.id, 0)

    def _tie(event: Event):
        return (event.title, event.id)

    # "Most attended" needs at least one attendee; "least attended" does not.
    attended = [event for event in snapshot.events if _count(event) > 0]
    most = top_n(attended, key=_count, n=1, descending=True, tie_key=_tie)
    least = top_n(snapshot.events, key=_count, n=1, descending=False, tie_key=_tie)

    return EventStatistics(
        total_events=snapshot.total_events,
        events_by_category=dict(snapshot.events_by_category),
        total_attendance=snapshot.total_attendance,
        average_attendance=safe_ratio(snapshot.total_attendance, snapshot.total_events),
        most_attended_event=EventHighlight(name=most[0].title, attendance=_count(most[0])) if most else None,
        least_attended_event=EventHighlight(name=least[0].title, attendance=_count(least[0])) if least else None,
    )


def point_distribution(snapshot: ReportSnapshot, settings: ReportSettings) -> PointDistribution:
    earners = [stats for stats in snapshot.member_stats if stats.points > 0]
    highest = top_n(earners, key=lambda stats: stats.points, n=1, tie_key=lambda stats: stats.name)
    leaderboard = top_n(
        snapshot.member_stats,
        key=lambda stats: stats.points,
        n=settings.thresholds.leaderboard_size,
        tie_key=lambda stats: stats.name,
    )
    return PointDistribution(
        total_points_awarded=snapshot.total_points_awarded,
        average_points_per_member=snapshot.average_points_per_member,
        highest_point_earner=PointEarner(name=highest[0].name, points=highest[0].points) if highest else None,
        points_by_category=dict(snapshot.points_by_category),
        category_completion_rates=_category_completion_rates(snapshot),
        top_performers=tuple(_standing(stats) for stats in leaderboard),
    )


def attendance_analysis(snapshot: ReportSnapshot, settings: ReportSettings) -> AttendanceAnalysis:
    low_rate = settings.thresholds.low_attendance_rate
    perfect: List[str] = []
    low: List[str] = []
    for stats in snapshot.member_stats:
        if snapshot.total_events > 0 and stats.attended == snapshot.total_events:
            perfect.append(stats.name)
        if stats.attendance_rate < low_rate:
            low.append(stats.name)
    return AttendanceAnalysis(
        overall_attendance_rate=percentage(
            snapshot.member_attendance, snapshot.total_events * snapshot.total_members
        ),
        perfect_attendance=tuple(perfect),
        low_attendance=tuple(low),
    )


def officer_performance(snapshot: ReportSnapshot, settings: ReportSettings) -> OfficerPerformance:
    created: Dict[str, List[Event]] = defaultdict(list)
    for event in snapshot.events:
        if event.created_by:
            created[event.created_by].append(event)

    officers: List[OfficerStat] = []
    for member in snapshot.members:
        if member.role != "officer" or not member.officer_position:
            continue
        events = created.get(member.id, [])
        if not events:
            continue
        attendance = sum(snapshot.attendance_by_event.get(event.id, 0) for event in events)
        officers.append(
            OfficerStat(
                position=member.officer_position,
                name=member.full_name,
                events_created=len(events),
                avg_event_attendance=safe_ratio(attendance, len(events)),
            )
        )
    return OfficerPerformance(officers=tuple(officers))


def category_performance(snapshot: ReportSnapshot, settings: ReportSettings) -> CategoryPerformance:
    attendance_by_category: Dict[str, int] = defaultdict(int)
    for event in snapshot.events:
        attendance_by_category[event.category] += snapshot.attendance_by_event.get(event.id, 0)

    completion = _category_completion_rates(snapshot)
    return CategoryPerformance(
        categories=tuple(
            CategoryStat(
                category=category,
                events_held=held,
                avg_attendance=safe_ratio(attendance_by_category[category], held),
                points_distributed=snapshot.points_by_category.get(category, 0.0),
                completion_rate=completion[category],
            )
            for category, held in snapshot.events_by_category.items()
        )
    )


def diversity_metrics(snapshot: ReportSnapshot, settings: ReportSettings) -> DiversityMetrics:
    members = snapshot.members
    return DiversityMetrics(
        pledge_class_distribution=tally(member.pledge_class for member in members),
        major_distribution=tally(major for member in members for major in member.majors),
        graduation_year_distribution=tally(member.graduation_year for member in members),
        gender_distribution=tally(member.gender for member in members),
        pronoun_distribution=tally(member.pronouns for member in members),
        race_distribution=tally(member.race for member in members),
        living_type_distribution=tally(member.living_type for member in members),
        house_members=sum(1 for member in members if member.house_membership),
    )


def retention_metrics(snapshot: ReportSnapshot, settings: ReportSettings) -> RetentionMetrics:
    thresholds = settings.thresholds
    average = snapshot.average_points_per_member
    stats = snapshot.member_stats

    at_risk = [
        item
        for item in stats
        if item.points < average * thresholds.at_risk_points_factor
        or item.attendance_rate < thresholds.low_attendance_rate
    ]
    engaged = [
        item
        for item in stats
        if item.attendance_rate > thresholds.high_engagement_attendance_rate
        and item.points > average * thresholds.high_engagement_points_factor
    ]
    return RetentionMetrics(
        at_risk_members=tuple(
            _standing(item)
            for item in top_n(
                at_risk,
                key=lambda item: item.points,
                n=thresholds.retention_list_size,
                descending=False,
                tie_key=lambda item: item.name,
            )
        ),
        inactive_members=tuple(item.name for item in stats if item.attended == 0),
        high_engagement_members=tuple(
            item.name for item in top_n(
                engaged,
                key=lambda item: item.points,
                n=thresholds.retention_list_size,
                tie_key=lambda item: item.name,
            )
        ),
        average_events_per_member=safe_ratio(snapshot.total_events, snapshot.total_members),
    )


def point_system_metrics(snapshot: ReportSnapshot, settings: ReportSettings) -> PointSystemMetrics:
    thresholds = settings.thresholds
    average = snapshot.average_points_per_member
    points = [stats.points for stats in snapshot.member_stats]

    gaps = [average - value for value in points if value < average]
    categorised_total = sum(snapshot.points_by_category.values())
    return PointSystemMetrics(
        average_points_gap=safe_ratio(sum(gaps), len(gaps)),
        members_on_track=sum(1 for value in points if value >= average * thresholds.on_track_points_factor),
        members_struggling=sum(1 for value in points if value < average * thresholds.struggling_points_factor),
        category_balance={
            category: percentage(value, categorised_total) for category, value in snapshot.points_by_category.items()
        },
    )


def event_quality_metrics(snapshot: ReportSnapshot, settings: ReportSettings) -> EventQualityMetrics:
    feedback = snapshot.feedback
    total = len(feedback)

    totals: Dict[str, List[int]] = defaultdict(list)
    dropped = 0
    for record in feedback:
        if record.event_id not in snapshot.events_by_id:
            dropped += 1
            continue
        totals[record.event_id].append(record.rating)
    if dropped:
        logger.debug("Ignored %d feedback records for events outside the report", dropped)

    rated = [
        RatedEvent(title=snapshot.events_by_id[event_id].title, rating=safe_ratio(sum(ratings), len(ratings)))
        for event_id, ratings in totals.items()
    ]
    size = settings.thresholds.rated_events_size

    return EventQualityMetrics(
        average_rating=safe_ratio(sum(record.rating for record in feedback), total),
        total_feedback=total,
        would_attend_again_rate=percentage(sum(1 for record in feedback if record.would_attend_again), total),
        well_organized_rate=percentage(sum(1 for record in feedback if record.well_organized), total),
        top_rated_events=tuple(top_n(rated, key=lambda item: item.rating, n=size, tie_key=lambda item: item.title)),
        low_rated_events=tuple(
            top_n(rated, key=lambda item: item.rating, n=size, descending=False, tie_key=lambda item: item.title)
        ),
    )


SECTION_CALCULATORS: Dict[str, Calculator] = {
    "membership": membership_summary,
    "events": event_statistics,
    "points": point_distribution,
    "attendance": attendance_analysis,
    "officers": officer_performance,
    "categories": category_performance,
    "diversity": diversity_metrics,
    "retention": retention_metrics,
    "point_system": point_system_metrics,
    "event_quality": event_quality_metrics,
}
