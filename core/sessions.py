"""
Location history normalization.

Google location exports come in several generations. Each known layout is
modelled as a schema with a detection predicate and a record decoder; the
schemas are tried in a fixed priority order and the first match decodes the
whole document into a flat list of sessions.
"""

import json
import logging
import math
import re
from config import E7_SCALE
from core.errors import InvalidInput, UnrecognizedSchema
from core.models import Session, year_of
from dataclasses import dataclass, field
from datetime import UTC, datetime, timedelta
from dateutil.parser import isoparse
from pathlib import Path
from typing import Iterable

logger = logging.getLogger(__name__)

EPOCH = datetime(1970, 1, 1, tzinfo=UTC)
GEO_URI_PATTERN = re.compile(r'^geo:(-?\d+(?:\.\d+)?),(-?\d+(?:\.\d+)?)$')


def dig(obj, *keys):
    """Follow nested dict keys, returning None as soon as a level is missing"""
    for key in keys:
        if not isinstance(obj, dict):
            return None
        obj = obj.get(key)
    return obj


def parse_e7(value) -> float | None:
    """Convert an E7 fixed-point coordinate to decimal degrees"""
    if isinstance(value, bool) or value is None:
        return None
    try:
        return float(value) / E7_SCALE
    except (TypeError, ValueError):
        return None


def parse_epoch_ms(value) -> int | None:
    """Parse an epoch-millisecond timestamp given as an integer or a digit string"""
    if isinstance(value, bool) or value is None:
        return None
    if isinstance(value, int):
        return value
    if isinstance(value, float):
        return int(value) if math.isfinite(value) else None
    if isinstance(value, str):
        text = value.strip()
        if text.lstrip('-').isdigit():
            return int(text)
    return None


def parse_iso_ms(value) -> int | None:
    """Parse an ISO-8601 timestamp to epoch milliseconds; naive times are UTC"""
    if not isinstance(value, str):
        return None
    try:
        dt = isoparse(value.strip())
    except (ValueError, OverflowError):
        return None
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=UTC)
    return (dt - EPOCH) // timedelta(milliseconds=1)


def parse_geo_uri(value) -> tuple[float, float] | None:
    """Parse a 'geo:<lat>,<lon>' string"""
    if not isinstance(value, str):
        return None
    match = GEO_URI_PATTERN.match(value)
    if not match:
        return None
    return float(match.group(1)), float(match.group(2))


def make_session(lat, lon, start_ms, end_ms) -> Session | None:
    """Build a session, or None if coordinates are not finite, the interval is empty or a time has no calendar date"""
    if lat is None or lon is None or start_ms is None or end_ms is None:
        return None
    if not (math.isfinite(lat) and math.isfinite(lon)):
        return None
    if end_ms <= start_ms:
        return None
    try:
        year_of(start_ms)
        year_of(end_ms)
    except (ValueError, OverflowError, OSError):
        return None
    return Session(latitude=lat, longitude=lon, start_ms=start_ms, end_ms=end_ms)


def _place_visit_session(place_visit: dict) -> Session | None:
    """Decode a placeVisit block shared by timeline objects and semantic segments"""
    location = place_visit.get('location')
    duration = place_visit.get('duration')
    if not isinstance(location, dict) or not isinstance(duration, dict):
        return None

    start_ms = parse_epoch_ms(duration.get('startTimestampMs'))
    if start_ms is None:
        start_ms = parse_iso_ms(duration.get('startTimestamp'))
    end_ms = parse_epoch_ms(duration.get('endTimestampMs'))
    if end_ms is None:
        end_ms = parse_iso_ms(duration.get('endTimestamp'))

    return make_session(
        parse_e7(location.get('latitudeE7')),
        parse_e7(location.get('longitudeE7')),
        start_ms,
        end_ms,
    )


class TimelineSchema:
    """One known location history layout"""

    name = 'unknown'

    def matches(self, document) -> bool:
        raise NotImplementedError

    def records(self, document) -> Iterable:
        raise NotImplementedError

    def decode(self, record) -> Session | None:
        raise NotImplementedError


class TimelineObjectsSchema(TimelineSchema):
    """Semantic Location History: {"timelineObjects": [{"placeVisit": {...}}, ...]}"""

    name = 'timelineObjects'

    def matches(self, document) -> bool:
        return isinstance(document, dict) and isinstance(document.get('timelineObjects'), list)

    def records(self, document) -> Iterable:
        return document['timelineObjects']

    def decode(self, record) -> Session | None:
        place_visit = dig(record, 'placeVisit')
        if not isinstance(place_visit, dict) or not place_visit.get('duration') or not place_visit.get('location'):
            return None
        return _place_visit_session(place_visit)


class RawLocationsSchema(TimelineSchema):
    """
    Records.json: {"locations": [{"latitudeE7": ..., "timestampMs": ...}, ...]}

    A ping has a single timestamp, so every record becomes a zero-length
    interval and is dropped. Pings cannot show how long anyone stayed anywhere.
    """

    name = 'locations'

    def matches(self, document) -> bool:
        return isinstance(document, dict) and isinstance(document.get('locations'), list)

    def records(self, document) -> Iterable:
        return document['locations']

    def decode(self, record) -> Session | None:
        if not isinstance(record, dict):
            return None
        timestamp = parse_epoch_ms(record.get('timestampMs'))
        if timestamp is None:
            timestamp = parse_iso_ms(record.get('timestamp'))
        return make_session(
            parse_e7(record.get('latitudeE7')),
            parse_e7(record.get('longitudeE7')),
            timestamp,
            timestamp,
        )


class SemanticSegmentsSchema(TimelineSchema):
    """On-device timeline: {"semanticSegments": [{"segmentType": "TYPE_PLACE", "placeVisit": {...}}, ...]}"""

    name = 'semanticSegments'

    def matches(self, document) -> bool:
        return isinstance(document, dict) and isinstance(document.get('semanticSegments'), list)

    def records(self, document) -> Iterable:
        return document['semanticSegments']

    def decode(self, record) -> Session | None:
        if dig(record, 'segmentType') != 'TYPE_PLACE':
            return None
        place_visit = dig(record, 'placeVisit')
        if not isinstance(place_visit, dict):
            return None
        return _place_visit_session(place_visit)


class VisitListSchema(TimelineSchema):
    """Mobile export: [{"startTime": ..., "endTime": ..., "visit": {"topCandidate": {"placeLocation": "geo:.."}}}]"""

    name = 'visitList'

    def matches(self, document) -> bool:
        return isinstance(document, list) and bool(document) and bool(dig(document[0], 'visit'))

    def records(self, document) -> Iterable:
        return document

    def decode(self, record) -> Session | None:
        coordinates = parse_geo_uri(dig(record, 'visit', 'topCandidate', 'placeLocation'))
        if coordinates is None:
            return None
        lat, lon = coordinates
        return make_session(lat, lon, parse_iso_ms(record.get('startTime')), parse_iso_ms(record.get('endTime')))


# Detection order matters: the first schema whose predicate matches wins
SCHEMAS = [
    TimelineObjectsSchema(),
    RawLocationsSchema(),
    SemanticSegmentsSchema(),
    VisitListSchema(),
]


@dataclass
class NormalizedTimeline:
    schema: str
    sessions: list[Session] = field(default_factory=list)
    dropped: int = 0


def detect_schema(document) -> TimelineSchema:
    """Return the first schema matching the document"""
    for schema in SCHEMAS:
        if schema.matches(document):
            return schema
    raise UnrecognizedSchema("Unrecognised location history layout")


def decode_timeline(document) -> NormalizedTimeline:
    """Decode a parsed document, keeping counts of dropped records"""
    schema = detect_schema(document)
    result = NormalizedTimeline(schema=schema.name)

    for i, record in enumerate(schema.records(document)):
        session = schema.decode(record)
        if session is None:
            result.dropped += 1
            logger.debug(f"Dropped {schema.name} record {i + 1}")
            continue
        result.sessions.append(session)

    return result


def normalize(document) -> list[Session]:
    """Convert a parsed location history document into an ordered list of sessions"""
    return decode_timeline(document).sessions


def parse_document(raw: bytes | str):
    """Decode raw JSON bytes or text"""
    try:
        return json.loads(raw)
    except (json.JSONDecodeError, UnicodeDecodeError) as e:
        raise InvalidInput(f"Invalid JSON: {e}") from e


def load_sessions(timeline_file: Path) -> list[Session]:
    """Read, parse and normalize a location history file"""
    try:
        raw = Path(timeline_file).read_bytes()
    except OSError as e:
        raise InvalidInput(f"Could not read {timeline_file}: {e}") from e

    result = decode_timeline(parse_document(raw))
    logger.info(f"Detected '{result.schema}' location history in {timeline_file}")
    logger.info(f"Kept {len(result.sessions)} sessions, dropped {result.dropped} unusable records")

    if not result.sessions:
        logger.warning("No usable sessions found")

    return result.sessions
