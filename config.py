from decouple import config
from pathlib import Path

# Directory paths
INPUT_DIR = Path(config('INPUT_DIR', default='takeout'))
OUTPUT_DIR = Path(config('OUTPUT_DIR', default='results'))
CACHE_DIR = Path(config('CACHE_DIR', default='data'))

# File names
TIMELINE_FILE = 'timeline.json'
GEOCODING_CACHE_FILE = 'geocoding_cache.json'
REPORT_FILE = 'pub_report.txt'
MARKERS_FILE = 'pub_markers.json'

# Location history files searched for inside a Takeout archive, in priority order
TAKEOUT_TIMELINE_CANDIDATES = [
    'Timeline.json',
    'location-history.json',
    'Records.json',
]

# Pub catalog (GeoJSON feature collection: local path or http(s) URL)
CATALOG_SOURCE = config('CATALOG_SOURCE', default='pubs-gb.geojson')
CATALOG_TIMEOUT_SECONDS = config('CATALOG_TIMEOUT_SECONDS', default=30, cast=int)
UNNAMED_PUB = 'Unnamed pub'

# Visit detection
DWELL_THRESHOLD_MINUTES = config('DWELL_THRESHOLD_MINUTES', default=30, cast=int)
MATCH_RADIUS_METRES = config('MATCH_RADIUS_METRES', default=15.0, cast=float)
CHUNK_SIZE = config('CHUNK_SIZE', default=500, cast=int)

# Home proximity
HOME_LATITUDE = config('HOME_LATITUDE', default=None, cast=lambda v: None if v in (None, '') else float(v))
HOME_LONGITUDE = config('HOME_LONGITUDE', default=None, cast=lambda v: None if v in (None, '') else float(v))
HOME_ADDRESS = config('HOME_ADDRESS', default='')
HOME_RADIUS_MILES = config('HOME_RADIUS_MILES', default=2.0, cast=float)

# Report layout
TRAILING_YEARS = config('TRAILING_YEARS', default=5, cast=int)
TOP_N = config('TOP_N', default=10, cast=int)
NEAREST_UNVISITED_N = config('NEAREST_UNVISITED_N', default=20, cast=int)

# Geographic constants
METRES_PER_DEG_LAT = 111_320
METRES_PER_MILE = 1609.34
E7_SCALE = 10_000_000

# Geocoding
GEOCODING_USER_AGENT = 'pub-tracker/1.0'
GEOCODING_CACHE_EXPIRATION_DAYS = config('GEOCODING_CACHE_EXPIRATION_DAYS', default=30, cast=int)

# Pipeline step definitions
PIPELINE_STEPS = [
    {
        'name': 'load-sessions',
        'description': 'Normalize location history into sessions',
    },
    {
        'name': 'load-catalog',
        'description': 'Load the pub catalog',
    },
    {
        'name': 'resolve-home',
        'description': 'Resolve the home reference point',
    },
    {
        'name': 'track-visits',
        'description': 'Match sessions to pubs and aggregate visits',
    },
    {
        'name': 'write-report',
        'description': 'Write the visit report and map markers',
    },
]
