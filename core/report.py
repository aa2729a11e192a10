import logging
from config import HOME_RADIUS_MILES, NEAREST_UNVISITED_N, TOP_N
from core.models import AggregateState, PointOfInterest, date_of
from typing import Sequence
from utils.geo import distance_miles, miles_to_metres, squared_distance_metres

logger = logging.getLogger(__name__)


def format_percent(part: int, whole: int) -> str:
    """Percentage with two decimals; an empty whole gives 0.00"""
    if not whole:
        return "0.00"
    return f"{part / whole * 100:.2f}"


def ranked_by_visits(state: AggregateState) -> list[tuple[str, int]]:
    """Pub ids by visit count, descending; equal counts keep first-visit order"""
    return sorted(state.visit_counts.items(), key=lambda item: item[1], reverse=True)


def pubs_near_home(points: Sequence[PointOfInterest], home: tuple[float, float], radius_miles: float) -> list[PointOfInterest]:
    home_lat, home_lon = home
    radius_m = miles_to_metres(radius_miles)
    radius_squared = radius_m * radius_m
    return [p for p in points if squared_distance_metres(home_lat, home_lon, p.latitude, p.longitude) < radius_squared]


def visit_markers(state: AggregateState, points: Sequence[PointOfInterest]) -> list[dict]:
    """Visited/unvisited flag per pub, for drawing a map"""
    return [
        {
            'id': p.id,
            'name': p.name,
            'postcode': p.postcode,
            'latitude': p.latitude,
            'longitude': p.longitude,
            'visited': state.is_visited(p.id),
            'visits': state.visit_counts.get(p.id, 0),
        }
        for p in points
    ]


class ReportFormatter:
    """Render the visit tally as the plain-text pub report"""

    def __init__(self, top_n: int = TOP_N, nearest_unvisited_n: int = NEAREST_UNVISITED_N, home_radius_miles: float = HOME_RADIUS_MILES):
        self.top_n = top_n
        self.nearest_unvisited_n = nearest_unvisited_n
        self.home_radius_miles = home_radius_miles
        self.report_lines = []

    def _list_or_none(self, lines: list[str]) -> None:
        self.report_lines.extend(lines or [" none"])
        self.report_lines.append("")

    def generate_overall_section(self, state: AggregateState, points: Sequence[PointOfInterest]) -> None:
        total = len(points)
        self.report_lines.extend(
            [
                "📊 Overall visited:",
                f"• {state.visited_count} of {total} = {format_percent(state.visited_count, total)}%",
                "",
            ]
        )

    def generate_top_section(self, state: AggregateState, pubs: dict[str, PointOfInterest]) -> None:
        self.report_lines.append(f"🍺 Top-{self.top_n} pubs by visits:")
        lines = [f" {i + 1}. {pubs[pid].label} – {count}" for i, (pid, count) in enumerate(ranked_by_visits(state)[: self.top_n])]
        self._list_or_none(lines)

    def generate_current_year_section(self, state: AggregateState, pubs: dict[str, PointOfInterest]) -> None:
        self.report_lines.append(f"📆 Pubs visited in {state.current_year}:")
        lines = []
        for event in sorted(state.current_year_visits, key=lambda e: e.timestamp_ms):
            mark = " [first time!]" if event.is_first_ever else ""
            lines.append(f"• {pubs[event.point_id].name} – {date_of(event.timestamp_ms)}{mark}")
        self._list_or_none(lines)

    def generate_years_section(self, state: AggregateState) -> None:
        self.report_lines.append(f"📅 Last {state.trailing_years} years summary:")
        lines = [f"{year}: {summary.visits} visits, {summary.new_points} new pubs" for year, summary in sorted(state.years.items())]
        self._list_or_none(lines)

    def generate_home_section(self, state: AggregateState, points: Sequence[PointOfInterest], home: tuple[float, float] | None) -> None:
        if home is None:
            self.report_lines.extend(["🏠 Home location not configured", ""])
            return

        nearby = pubs_near_home(points, home, self.home_radius_miles)
        visited_nearby = sum(1 for p in nearby if state.is_visited(p.id))

        self.report_lines.extend(
            [
                f"🏠 Within {self.home_radius_miles:g} mi of home:",
                f"• {visited_nearby}/{len(nearby)} pubs = {format_percent(visited_nearby, len(nearby))}%",
                "",
            ]
        )

        home_lat, home_lon = home
        not_visited = sorted(
            ((p, distance_miles(home_lat, home_lon, p.latitude, p.longitude)) for p in nearby if not state.is_visited(p.id)),
            key=lambda item: item[1],
        )

        self.report_lines.append(f"🔎 {self.nearest_unvisited_n} closest not-yet-visited:")
        lines = [f" {i + 1}. {p.label} – {miles:.2f} mi" for i, (p, miles) in enumerate(not_visited[: self.nearest_unvisited_n])]
        self._list_or_none(lines)

    def generate_all_time_section(self, state: AggregateState, pubs: dict[str, PointOfInterest]) -> None:
        self.report_lines.append("📚 All-time pubs sorted by visits:")
        lines = [f"• {pubs[pid].label} – {count} ({date_of(state.last_seen[pid])})" for pid, count in ranked_by_visits(state)]
        self.report_lines.extend(lines or [" none"])

    def generate_report(
        self, state: AggregateState, points: Sequence[PointOfInterest], home: tuple[float, float] | None = None
    ) -> str:
        """Build the full report text"""
        self.report_lines = []
        pubs = {p.id: p for p in points}

        self.generate_overall_section(state, points)
        self.generate_top_section(state, pubs)
        self.generate_current_year_section(state, pubs)
        self.generate_years_section(state)
        self.generate_home_section(state, points, home)
        self.generate_all_time_section(state, pubs)

        logger.debug(f"Generated report with {len(self.report_lines)} lines")
        return "\n".join(self.report_lines)
