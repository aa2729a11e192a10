import json
import logging
import math
import requests
from config import CATALOG_SOURCE, CATALOG_TIMEOUT_SECONDS, UNNAMED_PUB
from core.errors import CatalogUnavailable
from core.models import PointOfInterest
from pathlib import Path

logger = logging.getLogger(__name__)


def _first_present(*values) -> str:
    for value in values:
        if value is not None and value != '':
            return str(value)
    return ''


def feature_to_point(feature: dict, index: int) -> PointOfInterest | None:
    """Map one GeoJSON feature to a pub, or None if it has no usable point geometry"""
    if not isinstance(feature, dict):
        return None

    properties = feature.get('properties') or {}
    geometry = feature.get('geometry') or {}
    if not isinstance(properties, dict) or not isinstance(geometry, dict):
        return None

    tags = properties.get('tags') or {}
    if not isinstance(tags, dict):
        return None

    coords = geometry.get('coordinates') or []
    if not isinstance(coords, list) or len(coords) < 2:
        return None

    try:
        lon, lat = float(coords[0]), float(coords[1])
    except (TypeError, ValueError):
        return None

    if not (math.isfinite(lat) and math.isfinite(lon)):
        return None

    point_id = _first_present(feature.get('id'), properties.get('@id'), properties.get('id')) or f"feature/{index}"
    name = _first_present(tags.get('name'), properties.get('name')) or UNNAMED_PUB
    postcode = _first_present(tags.get('addr:postcode'), properties.get('addr:postcode')).strip().upper()

    return PointOfInterest(id=point_id, latitude=lat, longitude=lon, name=name, postcode=postcode)


def parse_feature_collection(data) -> tuple[PointOfInterest, ...]:
    """Convert a GeoJSON feature collection into pubs, preserving feature order"""
    if not isinstance(data, dict) or not isinstance(data.get('features'), list):
        raise CatalogUnavailable("Pub list is not a GeoJSON feature collection")

    points = []
    seen_ids = set()
    skipped = 0

    for i, feature in enumerate(data['features']):
        point = feature_to_point(feature, i)
        if point is None:
            skipped += 1
            continue
        if point.id in seen_ids:
            logger.warning(f"Duplicate pub id {point.id} - keeping the first entry")
            continue
        seen_ids.add(point.id)
        points.append(point)

    if skipped:
        logger.warning(f"Skipped {skipped} features without point coordinates")

    return tuple(points)


class PubCatalog:
    """
    Lazily loaded, cached pub list.

    The catalog is either uninitialized or fully loaded. A failed load leaves it
    uninitialized, so a later call retries from scratch rather than seeing a
    partial list.
    """

    def __init__(self, source: str | Path | None = CATALOG_SOURCE, features: dict | None = None, timeout: int = CATALOG_TIMEOUT_SECONDS):
        self.source = source
        self.features = features
        self.timeout = timeout
        self._points: tuple[PointOfInterest, ...] | None = None

    @property
    def is_loaded(self) -> bool:
        return self._points is not None

    def _fetch(self):
        """Obtain the raw feature collection from memory, a URL or a file"""
        if self.features is not None:
            return self.features

        if self.source is None:
            raise CatalogUnavailable("No pub list source configured")

        source = str(self.source)
        if source.startswith(('http://', 'https://')):
            logger.info(f"Fetching pub list from {source}")
            try:
                response = requests.get(source, timeout=self.timeout)
                response.raise_for_status()
                return response.json()
            except (requests.RequestException, ValueError) as e:
                raise CatalogUnavailable(f"Pub list not found: {e}") from e

        path = Path(source)
        logger.info(f"Loading pub list from {path}")
        try:
            with open(path, encoding='utf-8') as f:
                return json.load(f)
        except (OSError, json.JSONDecodeError, UnicodeDecodeError) as e:
            raise CatalogUnavailable(f"Pub list not found: {e}") from e

    def load(self) -> tuple[PointOfInterest, ...]:
        """Return the pub list, fetching it on first use"""
        if self._points is not None:
            return self._points

        points = parse_feature_collection(self._fetch())
        self._points = points

        logger.info(f"Loaded {len(points)} pubs")
        return self._points

    def reset(self):
        """Forget the cached list so the next load fetches again"""
        self._points = None
