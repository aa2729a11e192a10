import logging
import shutil
import zipfile
from config import TAKEOUT_TIMELINE_CANDIDATES, TIMELINE_FILE
from pathlib import Path, PurePosixPath

logger = logging.getLogger(__name__)


class TakeoutExtractor:
    """Pull the location history JSON out of a Google Takeout zip file"""

    def __init__(self, output_dir: Path = Path("takeout")):
        self.output_dir = output_dir

    def find_takeout_zip(self, search_dir: Path = Path(".")) -> Path | None:
        """Find takeout zip file matching the expected pattern"""
        pattern = "takeout-*.zip"
        zip_files = list(search_dir.glob(pattern))

        if not zip_files:
            logger.error(f"No takeout zip files found matching pattern '{pattern}' in {search_dir}")
            return None

        if len(zip_files) > 1:
            logger.warning(f"Multiple takeout zip files found: {[f.name for f in zip_files]}")
            logger.info(f"Using most recent: {max(zip_files, key=lambda f: f.stat().st_mtime).name}")

        return max(zip_files, key=lambda f: f.stat().st_mtime)

    def find_timeline_member(self, names: list[str]) -> str | None:
        """Pick the archive member holding location history, by candidate file name priority"""
        for candidate in TAKEOUT_TIMELINE_CANDIDATES:
            for name in names:
                if PurePosixPath(name).name == candidate:
                    return name
        return None

    def extract_takeout(self, zip_path: Path | None = None, cleanup: bool = False) -> Path | None:
        """
        Copy the location history file out of a Takeout zip

        Args:
            zip_path: Path to takeout zip file (auto-detected if None)
            cleanup: Whether to delete the original zip file after extraction

        Returns:
            Path of the extracted timeline file, or None on failure
        """
        if zip_path is None:
            zip_path = self.find_takeout_zip()
            if zip_path is None:
                return None

        if not zip_path.exists():
            logger.error(f"Zip file not found: {zip_path}")
            return None

        logger.info(f"Extracting location history from: {zip_path}")

        try:
            with zipfile.ZipFile(zip_path, 'r') as zip_ref:
                member = self.find_timeline_member(zip_ref.namelist())
                if member is None:
                    logger.error(f"No location history found in takeout (looked for {', '.join(TAKEOUT_TIMELINE_CANDIDATES)})")
                    return None

                self.output_dir.mkdir(parents=True, exist_ok=True)
                dest_file = self.output_dir / TIMELINE_FILE
                with zip_ref.open(member) as source, open(dest_file, 'wb') as dest:
                    shutil.copyfileobj(source, dest)
        except (zipfile.BadZipFile, OSError) as e:
            logger.error(f"Error extracting takeout: {e}")
            return None

        logger.info(f"Extracted: {member} -> {dest_file} ({dest_file.stat().st_size} bytes)")

        if cleanup:
            zip_path.unlink()
            logger.info(f"Deleted original zip file: {zip_path}")

        return dest_file
