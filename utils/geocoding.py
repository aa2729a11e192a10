import json
import logging
import ssl
import time
from config import (
    CACHE_DIR,
    GEOCODING_CACHE_EXPIRATION_DAYS,
    GEOCODING_CACHE_FILE,
    GEOCODING_USER_AGENT,
)
from datetime import UTC, datetime
from dateutil.parser import parse as parse_date
from geopy.exc import GeocoderTimedOut, GeocoderUnavailable
from geopy.geocoders import Nominatim
from pathlib import Path

logger = logging.getLogger(__name__)


class GeocodingCache:
    """File-based cache of address lookups with rate limiting and expiration"""

    def __init__(
        self, cache_file: Path = CACHE_DIR / GEOCODING_CACHE_FILE, expiration_days: int = GEOCODING_CACHE_EXPIRATION_DAYS
    ):
        self.cache_file = cache_file
        self.expiration_days = expiration_days
        self.last_api_call = 0
        self.min_api_interval = 1.0
        self.cache_data = self._load_cache()
        self.session_hits = 0
        self.session_misses = 0

    def _empty_cache(self) -> dict:
        now = datetime.now(UTC).isoformat()
        return {
            'metadata': {
                'version': '1.0',
                'created': now,
                'last_updated': now,
                'total_entries': 0,
                'cache_hits': 0,
                'cache_misses': 0,
                'expiration_days': self.expiration_days,
            },
            'entries': {},
        }

    def _load_cache(self) -> dict:
        """Load cache from file, starting fresh if it is missing or unreadable"""
        if self.cache_file.exists():
            try:
                with open(self.cache_file) as f:
                    data = json.load(f)
                if isinstance(data, dict) and 'metadata' in data and 'entries' in data:
                    return data
                logger.warning("Geocoding cache has an unknown layout, starting fresh")
            except (json.JSONDecodeError, OSError):
                logger.warning("Could not load geocoding cache, starting fresh")

        return self._empty_cache()

    @staticmethod
    def _generate_cache_key(address: str) -> str:
        normalized = address.lower().strip().replace(' ', '_')
        return f"forward_{normalized}"

    def _is_expired(self, entry: dict) -> bool:
        try:
            entry_time = parse_date(entry['timestamp'])
            age_days = (datetime.now(UTC) - entry_time).days
            return age_days > self.expiration_days
        except (KeyError, TypeError, ValueError, OverflowError):
            return True

    def get(self, address: str) -> dict | None:
        """Get cached lookup result for an address"""
        key = self._generate_cache_key(address)
        entry = self.cache_data['entries'].get(key)

        if entry and not self._is_expired(entry):
            self.session_hits += 1
            self.cache_data['metadata']['cache_hits'] += 1
            return entry.get('response')

        self.session_misses += 1
        self.cache_data['metadata']['cache_misses'] += 1

        if entry:
            del self.cache_data['entries'][key]
            self.cache_data['metadata']['total_entries'] -= 1

        return None

    def set(self, address: str, response: dict):
        """Store a lookup result for an address"""
        key = self._generate_cache_key(address)

        entry = {
            'timestamp': datetime.now(UTC).isoformat(),
            'query_type': 'forward',
            'query': {'address': address},
            'response': response,
        }

        if key not in self.cache_data['entries']:
            self.cache_data['metadata']['total_entries'] += 1

        self.cache_data['entries'][key] = entry
        self.cache_data['metadata']['last_updated'] = datetime.now(UTC).isoformat()
        self._save_cache()

    def enforce_rate_limit(self):
        """Keep to one Nominatim request per second"""
        time_since_last = time.time() - self.last_api_call

        if time_since_last < self.min_api_interval:
            sleep_time = self.min_api_interval - time_since_last
            logger.debug(f"Rate limiting: sleeping {sleep_time:.2f} seconds")
            time.sleep(sleep_time)

        self.last_api_call = time.time()

    def clean_expired(self) -> int:
        """Remove expired entries from cache"""
        expired_keys = [key for key, entry in self.cache_data['entries'].items() if self._is_expired(entry)]

        for key in expired_keys:
            del self.cache_data['entries'][key]

        if expired_keys:
            self.cache_data['metadata']['total_entries'] -= len(expired_keys)
            self.cache_data['metadata']['last_updated'] = datetime.now(UTC).isoformat()
            self._save_cache()
            logger.info(f"Cleaned {len(expired_keys)} expired cache entries")

        return len(expired_keys)

    def clear(self):
        """Clear all cache entries"""
        entry_count = len(self.cache_data['entries'])
        self.cache_data['entries'] = {}
        self.cache_data['metadata']['total_entries'] = 0
        self.cache_data['metadata']['last_updated'] = datetime.now(UTC).isoformat()
        self._save_cache()
        logger.info(f"Cleared {entry_count} cache entries")

    def get_stats(self) -> dict:
        """Get cache statistics"""
        total_hits = self.cache_data['metadata']['cache_hits']
        total_misses = self.cache_data['metadata']['cache_misses']
        total_requests = total_hits + total_misses

        hit_ratio = (total_hits / total_requests * 100) if total_requests > 0 else 0

        return {
            'total_entries': self.cache_data['metadata']['total_entries'],
            'cache_hits': total_hits,
            'cache_misses': total_misses,
            'hit_ratio_percent': round(hit_ratio, 1),
            'session_hits': self.session_hits,
            'session_misses': self.session_misses,
            'expiration_days': self.expiration_days,
            'created': self.cache_data['metadata']['created'],
            'last_updated': self.cache_data['metadata']['last_updated'],
        }

    def _save_cache(self):
        self.cache_file.parent.mkdir(parents=True, exist_ok=True)
        with open(self.cache_file, 'w') as f:
            json.dump(self.cache_data, f, indent=2)


class HomeLocator:
    """Resolve a home address to coordinates with Nominatim"""

    def __init__(self, cache: GeocodingCache | None = None):
        ssl_context = ssl.create_default_context()
        self.geocoder = Nominatim(user_agent=GEOCODING_USER_AGENT, ssl_context=ssl_context)
        self.cache = cache or GeocodingCache()

    def locate(self, address: str) -> tuple[float, float] | None:
        """Return (latitude, longitude) for an address, or None if it cannot be found"""
        if not address or not address.strip():
            return None

        cached = self.cache.get(address)
        if cached:
            return cached['latitude'], cached['longitude']

        try:
            self.cache.enforce_rate_limit()
            location = self.geocoder.geocode(address, exactly_one=True)
        except (GeocoderTimedOut, GeocoderUnavailable) as e:
            logger.warning(f"Geocoding failed for {address!r}: {e}")
            return None

        if location is None:
            logger.warning(f"No match found for home address {address!r}")
            return None

        self.cache.set(
            address,
            {'latitude': location.latitude, 'longitude': location.longitude, 'display_name': location.address},
        )
        return location.latitude, location.longitude
