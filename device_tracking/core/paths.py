"""
Centralized path management for device tracking.

Contains the data directory constants and the collection file names used by
the JSON collection store.
"""
import os
from pathlib import Path
from typing import Optional


# =============================================================================
# BASE DIRECTORIES
# =============================================================================

_BASE_DIR = Path(__file__).parent.parent.parent.absolute()  # repository root

if os.environ.get("DEVICE_TRACKING_DATA_DIR"):
    DATA_DIR = Path(os.environ["DEVICE_TRACKING_DATA_DIR"])
else:
    DATA_DIR = _BASE_DIR / "data"

LOGS_DIRECTORY = DATA_DIR / "logs"

# Appliance reference table: "name,watts" with a header row
APPLIANCES_CSV = DATA_DIR / "Appliances.csv"

# Raw readings written by the collector
READINGS_CSV = DATA_DIR / "readings.csv"


# =============================================================================
# COLLECTIONS
# =============================================================================

TRACKING_COLLECTION = "shelly-tracking-data"
ENVIRONMENT_COLLECTION = "shelly-environment-config"
EPISODES_COLLECTION = "consumption-events"


class StoragePaths:
    """
    Resolves collection names to files inside a data directory.

    Usage:
        paths = StoragePaths(Path('/var/lib/tracking'))
        paths.collection_file('shelly-tracking-data')
    """

    def __init__(self, data_dir: Optional[Path] = None):
        self.data_dir = Path(data_dir) if data_dir is not None else DATA_DIR

    def collection_file(self, name: str) -> Path:
        return self.data_dir / f"{name}.json"

    def ensure_dirs(self):
        """Create the data directory if needed."""
        self.data_dir.mkdir(parents=True, exist_ok=True)

    def __repr__(self) -> str:
        return f"StoragePaths(data_dir={self.data_dir})"
