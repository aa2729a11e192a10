"""Visit matching and aggregation"""

import logging
from config import CHUNK_SIZE
from core.models import AggregateState, PointOfInterest, Session, VisitEvent, year_of
from core.scheduling import SynchronousScheduler
from dataclasses import replace
from typing import Iterable, Sequence
from utils.geo import squared_distance_metres

logger = logging.getLogger(__name__)


class VisitMatcher:
    """Turn sessions into visit events against a fixed pub list"""

    def __init__(self, points: Sequence[PointOfInterest], dwell_threshold_ms: int, radius_metres: float):
        self.points = points
        self.dwell_threshold_ms = dwell_threshold_ms
        self.radius_squared = radius_metres * radius_metres
        self.sessions_considered = 0
        self.sessions_matched = 0

    def match_session(self, session: Session) -> VisitEvent | None:
        """
        Match one session to a pub.

        Sessions shorter than the dwell threshold are ignored. Otherwise the
        first pub in catalog order within the radius wins, even when a later
        pub is nearer.
        """
        if session.end_ms - session.start_ms < self.dwell_threshold_ms:
            return None

        self.sessions_considered += 1
        for point in self.points:
            if squared_distance_metres(session.latitude, session.longitude, point.latitude, point.longitude) < self.radius_squared:
                self.sessions_matched += 1
                return VisitEvent(point_id=point.id, timestamp_ms=session.start_ms)

        return None

    def match(self, sessions: Iterable[Session]) -> list[VisitEvent]:
        events = []
        for session in sessions:
            event = self.match_session(session)
            if event is not None:
                events.append(event)
        return events


def match_sessions(
    sessions: Iterable[Session], points: Sequence[PointOfInterest], dwell_threshold_ms: int, radius_metres: float
) -> list[VisitEvent]:
    return VisitMatcher(points, dwell_threshold_ms, radius_metres).match(sessions)


class VisitAggregator:
    """Fold visit events into an AggregateState.

    Events must arrive in chronological order; otherwise first-seen dates and
    "first time" flags describe arrival order rather than time.
    """

    def __init__(self, current_year: int, trailing_years: int):
        self.current_year = current_year
        self.trailing_years = trailing_years

    def new_state(self) -> AggregateState:
        return AggregateState(current_year=self.current_year, trailing_years=self.trailing_years)

    def fold_into(self, state: AggregateState, events: Iterable[VisitEvent]) -> AggregateState:
        for event in events:
            point_id = event.point_id
            ts = event.timestamp_ms

            state.visit_counts[point_id] = state.visit_counts.get(point_id, 0) + 1
            state.last_seen[point_id] = max(state.last_seen.get(point_id, ts), ts)

            is_first_ever = point_id not in state.first_seen
            if is_first_ever:
                state.first_seen[point_id] = ts

            year = year_of(ts)
            summary = state.years.get(year)
            if summary is not None:
                summary.visits += 1
                if is_first_ever:
                    summary.new_points += 1

            if year == state.current_year:
                state.current_year_visits.append(replace(event, is_first_ever=is_first_ever))

        return state

    def fold(self, events: Iterable[VisitEvent]) -> AggregateState:
        return self.fold_into(self.new_state(), events)


def fold_events(events: Iterable[VisitEvent], current_year: int, trailing_years: int) -> AggregateState:
    return VisitAggregator(current_year, trailing_years).fold(events)


def track_visits(
    sessions: Sequence[Session],
    points: Sequence[PointOfInterest],
    *,
    dwell_threshold_ms: int,
    radius_metres: float,
    current_year: int,
    trailing_years: int,
    chunk_size: int = CHUNK_SIZE,
    scheduler=None,
) -> AggregateState:
    """
    Match and aggregate sessions in chunks.

    After each chunk is fully folded the scheduler's checkpoint runs; it may
    raise PipelineCancelled, which leaves the state covering whole chunks only.
    The result is the same for any chunk size.
    """
    scheduler = scheduler or SynchronousScheduler()
    chunk_size = max(1, chunk_size)

    matcher = VisitMatcher(points, dwell_threshold_ms, radius_metres)
    aggregator = VisitAggregator(current_year, trailing_years)
    state = aggregator.new_state()

    total_chunks = (len(sessions) + chunk_size - 1) // chunk_size
    for done, start in enumerate(range(0, len(sessions), chunk_size), start=1):
        events = matcher.match(sessions[start : start + chunk_size])
        aggregator.fold_into(state, events)
        scheduler.checkpoint(done, total_chunks)

    logger.info(f"{matcher.sessions_considered} sessions met the dwell threshold, {matcher.sessions_matched} matched a pub")
    logger.info(f"Visited {state.visited_count} distinct pubs across {state.total_visits} visits")

    return state
