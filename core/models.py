"""Data models for sessions, pubs, visit events and the running visit tally"""

from dataclasses import dataclass, field
from datetime import UTC, datetime


def year_of(timestamp_ms: int) -> int:
    """UTC calendar year of an epoch-millisecond timestamp"""
    return datetime.fromtimestamp(timestamp_ms / 1000, tz=UTC).year


def date_of(timestamp_ms: int) -> str:
    """UTC calendar date of an epoch-millisecond timestamp as YYYY-MM-DD"""
    return datetime.fromtimestamp(timestamp_ms / 1000, tz=UTC).date().isoformat()


@dataclass(frozen=True, slots=True)
class Session:
    """A time interval spent at one location.

    Attributes:
        latitude: Latitude in decimal degrees.
        longitude: Longitude in decimal degrees.
        start_ms: Unix epoch milliseconds.
        end_ms: Unix epoch milliseconds, strictly after start_ms.
    """

    latitude: float
    longitude: float
    start_ms: int
    end_ms: int

    @property
    def duration_ms(self) -> int:
        return self.end_ms - self.start_ms


@dataclass(frozen=True, slots=True)
class PointOfInterest:
    """A pub from the catalog"""

    id: str
    latitude: float
    longitude: float
    name: str
    postcode: str = ''

    @property
    def label(self) -> str:
        """Name with the postcode in brackets when known"""
        return f"{self.name} ({self.postcode})" if self.postcode else self.name


@dataclass(frozen=True, slots=True)
class VisitEvent:
    point_id: str
    timestamp_ms: int
    is_first_ever: bool = False


@dataclass(slots=True)
class YearSummary:
    visits: int = 0
    new_points: int = 0


@dataclass
class AggregateState:
    """Running visit tally, keyed by pub id.

    visit_counts keeps the order in which pubs were first visited; reports rely
    on it to break ties between equal counts.
    """

    current_year: int
    trailing_years: int
    visit_counts: dict[str, int] = field(default_factory=dict)
    first_seen: dict[str, int] = field(default_factory=dict)
    last_seen: dict[str, int] = field(default_factory=dict)
    years: dict[int, YearSummary] = field(default_factory=dict)
    current_year_visits: list[VisitEvent] = field(default_factory=list)

    def __post_init__(self):
        if not self.years:
            first_year = self.current_year - self.trailing_years + 1
            self.years = {year: YearSummary() for year in range(first_year, self.current_year + 1)}

    @property
    def visited_count(self) -> int:
        return len(self.first_seen)

    @property
    def total_visits(self) -> int:
        return sum(self.visit_counts.values())

    def is_visited(self, point_id: str) -> bool:
        return point_id in self.first_seen
