#!/usr/bin/env python

"""
Pub Tracker - location history pub visit analyser

Reads a Google location history export, works out which pubs were visited and
for how long, and writes a plain-text report of lifetime, yearly and
near-home pub visit statistics.

Usage:
    main.py [command] [options]

    Default command is 'run-pipeline' if none specified.

Commands:
    run-pipeline: Match location history against the pub list and write the report (default)
    extract-takeout: Copy the location history JSON out of a Google Takeout zip file
    locate-home: Geocode --home-address and print its coordinates
    cache-stats: Display geocoding cache statistics and clean expired entries
    cache-clear: Clear all geocoding cache entries

Options:
    --timeline-file: Location history JSON (default: <input-dir>/timeline.json)
    --catalog: Pub list GeoJSON, local path or URL (default: pubs-gb.geojson)
    --home-lat / --home-lon: Home reference point for near-home statistics
    --home-address: Home address, geocoded when no coordinates are given
    --dry-run: Show what would be done without making changes
    --verbose: Enable verbose logging output
"""

import argparse
import json
import logging
import sys
from config import (
    CHUNK_SIZE,
    DWELL_THRESHOLD_MINUTES,
    HOME_ADDRESS,
    HOME_LATITUDE,
    HOME_LONGITUDE,
    HOME_RADIUS_MILES,
    INPUT_DIR,
    MARKERS_FILE,
    MATCH_RADIUS_METRES,
    NEAREST_UNVISITED_N,
    OUTPUT_DIR,
    PIPELINE_STEPS,
    REPORT_FILE,
    TIMELINE_FILE,
    TOP_N,
    TRAILING_YEARS,
)
from core.catalog import PubCatalog
from core.errors import PubTrackerError
from core.report import ReportFormatter, visit_markers
from core.scheduling import LoggingScheduler
from core.sessions import load_sessions
from core.takeout import TakeoutExtractor
from core.visits import track_visits
from datetime import UTC, datetime
from pathlib import Path
from utils.geocoding import GeocodingCache, HomeLocator

logging.basicConfig(level=logging.INFO, format='%(asctime)s - %(levelname)s - %(message)s')
logger = logging.getLogger(__name__)


class PubTrackerPipeline:
    """Runs the pub tracking steps in order and writes the results"""

    def __init__(
        self,
        timeline_file: Path,
        catalog: PubCatalog,
        output_dir: Path = OUTPUT_DIR,
        dwell_minutes: int = DWELL_THRESHOLD_MINUTES,
        radius_metres: float = MATCH_RADIUS_METRES,
        home: tuple[float, float] | None = None,
        home_address: str = HOME_ADDRESS,
        home_radius_miles: float = HOME_RADIUS_MILES,
        trailing_years: int = TRAILING_YEARS,
        top_n: int = TOP_N,
        nearest_unvisited_n: int = NEAREST_UNVISITED_N,
        chunk_size: int = CHUNK_SIZE,
        current_year: int | None = None,
        home_locator: HomeLocator | None = None,
        scheduler=None,
        dry_run: bool = False,
    ):
        self.timeline_file = timeline_file
        self.catalog = catalog
        self.output_dir = output_dir
        self.dwell_threshold_ms = dwell_minutes * 60_000
        self.radius_metres = radius_metres
        self.home = home
        self.home_address = home_address
        self.home_radius_miles = home_radius_miles
        self.trailing_years = trailing_years
        self.top_n = top_n
        self.nearest_unvisited_n = nearest_unvisited_n
        self.chunk_size = chunk_size
        self.current_year = current_year or datetime.now(UTC).year
        self.home_locator = home_locator
        self.scheduler = scheduler or LoggingScheduler()
        self.dry_run = dry_run

        self.sessions = []
        self.points = ()
        self.state = None
        self.report = None

        function_map = {
            'load-sessions': self._run_load_sessions,
            'load-catalog': self._run_load_catalog,
            'resolve-home': self._run_resolve_home,
            'track-visits': self._run_track_visits,
            'write-report': self._run_write_report,
        }
        self.pipeline_steps = [{**step, 'function': function_map[step['name']]} for step in PIPELINE_STEPS]

    def run_pipeline(self) -> bool:
        """Execute every step; any failure aborts the run without writing a report"""
        logger.info("Starting Pub Tracker pipeline")

        if self.dry_run:
            logger.info("DRY RUN MODE - No files will be modified")

        total_steps = len(self.pipeline_steps)
        for step_num, step in enumerate(self.pipeline_steps, start=1):
            logger.info(f"[{step_num}/{total_steps}] Executing: {step['description']}")

            if self.dry_run:
                logger.info(f"DRY RUN: Would execute {step['name']}")
                continue

            try:
                step['function']()
            except PubTrackerError as e:
                logger.error(f"Failed: {step['name']}: {e}")
                return False

            logger.info(f"Completed: {step['name']}")

        logger.info("Pipeline completed successfully!")
        return True

    def _run_load_sessions(self):
        self.sessions = load_sessions(self.timeline_file)

    def _run_load_catalog(self):
        self.points = self.catalog.load()

    def _run_resolve_home(self):
        if self.home is not None:
            return
        if not self.home_address:
            logger.warning("No home location configured - near-home statistics will be skipped")
            return

        locator = self.home_locator or HomeLocator()
        self.home = locator.locate(self.home_address)
        if self.home:
            logger.info(f"Home resolved to {self.home[0]:.6f}, {self.home[1]:.6f}")

    def _run_track_visits(self):
        self.state = track_visits(
            self.sessions,
            self.points,
            dwell_threshold_ms=self.dwell_threshold_ms,
            radius_metres=self.radius_metres,
            current_year=self.current_year,
            trailing_years=self.trailing_years,
            chunk_size=self.chunk_size,
            scheduler=self.scheduler,
        )

    def _run_write_report(self):
        formatter = ReportFormatter(
            top_n=self.top_n, nearest_unvisited_n=self.nearest_unvisited_n, home_radius_miles=self.home_radius_miles
        )
        self.report = formatter.generate_report(self.state, self.points, self.home)

        self.output_dir.mkdir(parents=True, exist_ok=True)

        with open(self.output_dir / REPORT_FILE, 'w') as f:
            f.write(self.report + "\n")

        markers_output = {
            'metadata': {
                'generated': datetime.now(UTC).isoformat(),
                'timeline_file': str(self.timeline_file),
                'total_pubs': len(self.points),
                'visited_pubs': self.state.visited_count,
                'total_visits': self.state.total_visits,
                'dwell_threshold_minutes': self.dwell_threshold_ms // 60_000,
                'match_radius_metres': self.radius_metres,
            },
            'markers': visit_markers(self.state, self.points),
        }

        with open(self.output_dir / MARKERS_FILE, 'w') as f:
            json.dump(markers_output, f, indent=2, ensure_ascii=False)

        logger.info(f"Report written to {self.output_dir / REPORT_FILE}")
        logger.info(f"Map markers written to {self.output_dir / MARKERS_FILE}")


def parse_arguments(argv=None):
    """Parse command line arguments"""
    parser = argparse.ArgumentParser(
        description="Pub Tracker - location history pub visit analyser",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog=__doc__,
    )

    parser.add_argument('command', nargs='?', default='run-pipeline', help='Command to execute (default: run-pipeline)')
    parser.add_argument('--dry-run', action='store_true', help='Show what would be done without making changes')
    parser.add_argument('--verbose', action='store_true', help='Enable verbose logging output')
    parser.add_argument('--input-dir', type=Path, default=INPUT_DIR, help='Directory holding the location history file')
    parser.add_argument('--output-dir', type=Path, default=OUTPUT_DIR, help='Path to output directory')
    parser.add_argument('--timeline-file', type=Path, help='Location history JSON file')
    parser.add_argument('--catalog', type=str, default=None, help='Pub list GeoJSON path or URL')

    # Visit detection
    parser.add_argument('--dwell-minutes', type=int, default=DWELL_THRESHOLD_MINUTES, help='Minimum stay to count as a visit')
    parser.add_argument('--radius-metres', type=float, default=MATCH_RADIUS_METRES, help='Maximum distance from a pub')
    parser.add_argument('--chunk-size', type=int, default=CHUNK_SIZE, help='Sessions processed per progress update')

    # Home proximity
    parser.add_argument('--home-lat', type=float, default=HOME_LATITUDE, help='Home latitude')
    parser.add_argument('--home-lon', type=float, default=HOME_LONGITUDE, help='Home longitude')
    parser.add_argument('--home-address', type=str, default=HOME_ADDRESS, help='Home address to geocode')
    parser.add_argument('--home-radius-miles', type=float, default=HOME_RADIUS_MILES, help='Radius for near-home statistics')

    # Report layout
    parser.add_argument('--trailing-years', type=int, default=TRAILING_YEARS, help='Years in the yearly summary')
    parser.add_argument('--top-n', type=int, default=TOP_N, help='Pubs in the top visits list')
    parser.add_argument('--nearest-n', type=int, default=NEAREST_UNVISITED_N, help='Closest unvisited pubs to list')

    # Extract takeout specific options
    parser.add_argument('--zip-file', type=str, help='Path to takeout zip file (auto-detected if not provided)')
    parser.add_argument('--cleanup', action='store_true', help='Delete original zip file after successful extraction')

    return parser.parse_args(argv)


def setup_logging(verbose: bool = False):
    """Configure logging based on verbosity level"""
    level = logging.DEBUG if verbose else logging.INFO
    logging.basicConfig(level=level, format='%(asctime)s - %(levelname)s - %(message)s', force=True)


def main(argv=None):
    args = parse_arguments(argv)

    setup_logging(args.verbose)

    command = args.command

    if command == "run-pipeline":
        home = None
        if args.home_lat is not None and args.home_lon is not None:
            home = (args.home_lat, args.home_lon)
        elif (args.home_lat is None) != (args.home_lon is None):
            logger.warning("Both --home-lat and --home-lon are needed; ignoring the one given")

        catalog = PubCatalog(args.catalog) if args.catalog else PubCatalog()
        pipeline = PubTrackerPipeline(
            timeline_file=args.timeline_file or args.input_dir / TIMELINE_FILE,
            catalog=catalog,
            output_dir=args.output_dir,
            dwell_minutes=args.dwell_minutes,
            radius_metres=args.radius_metres,
            home=home,
            home_address=args.home_address,
            home_radius_miles=args.home_radius_miles,
            trailing_years=args.trailing_years,
            top_n=args.top_n,
            nearest_unvisited_n=args.nearest_n,
            chunk_size=args.chunk_size,
            dry_run=args.dry_run,
        )
        success = pipeline.run_pipeline()
        if success and pipeline.report is not None:
            print(pipeline.report)
        sys.exit(0 if success else 1)

    elif command == "extract-takeout":
        if args.dry_run:
            logger.info(f"DRY RUN: Would extract location history into {args.input_dir / TIMELINE_FILE}")
            sys.exit(0)

        extractor = TakeoutExtractor(output_dir=args.input_dir)
        zip_path = Path(args.zip_file) if args.zip_file else None
        extracted = extractor.extract_takeout(zip_path=zip_path, cleanup=args.cleanup)
        sys.exit(0 if extracted else 1)

    elif command == "locate-home":
        if not args.home_address:
            logger.error("--home-address is required")
            sys.exit(1)

        coordinates = HomeLocator().locate(args.home_address)
        if coordinates is None:
            sys.exit(1)

        print(f"HOME_LATITUDE={coordinates[0]:.6f}")
        print(f"HOME_LONGITUDE={coordinates[1]:.6f}")
        sys.exit(0)

    elif command == "cache-stats":
        cache = GeocodingCache()
        stats = cache.get_stats()

        print("\n=== Geocoding Cache Statistics ===")
        print(f"Total entries: {stats['total_entries']}")
        print(f"Cache hits: {stats['cache_hits']}")
        print(f"Cache misses: {stats['cache_misses']}")
        print(f"Hit ratio: {stats['hit_ratio_percent']}%")
        print(f"Expiration: {stats['expiration_days']} days")
        print(f"Created: {stats['created']}")
        print(f"Last updated: {stats['last_updated']}")

        expired_count = cache.clean_expired()
        if expired_count > 0:
            print(f"Cleaned {expired_count} expired entries")

        sys.exit(0)

    elif command == "cache-clear":
        cache = GeocodingCache()
        cache.clear()
        print("Cache cleared successfully")
        sys.exit(0)

    else:
        print(__doc__.strip())


if __name__ == "__main__":
    main()
