"""
Appliance reference table: typical wattage per appliance type.

The table comes from a local ``name,watts`` CSV (header row, names may
contain commas) or from an HTTP endpoint returning ``{"appliances": {...}}``.
Both loaders return ``{}`` on any failure, and scoring falls back to the
hardcoded range tables.
"""
import logging
from pathlib import Path
from typing import Dict, Optional, Union

import pandas as pd
import requests
from requests.adapters import HTTPAdapter
from urllib3.util.retry import Retry

logger = logging.getLogger(__name__)

REQUEST_TIMEOUT = 10  # seconds

# Split on the last comma only
_LAST_COMMA = r',(?=[^,]*$)'


def create_session() -> requests.Session:
    """Create a requests session with retry strategy."""
    session = requests.Session()
    retry_strategy = Retry(
        total=3,
        backoff_factor=1,
        status_forcelist=[429, 500, 502, 503, 504],
    )
    adapter = HTTPAdapter(max_retries=retry_strategy)
    session.mount("http://", adapter)
    session.mount("https://", adapter)
    return session


def _clean_table(raw: Dict) -> Dict[str, int]:
    table = {}
    for name, watts in raw.items():
        name = str(name).strip()
        try:
            value = int(float(watts))
        except (TypeError, ValueError):
            logger.debug(f"Skipping appliance {name!r} with non-numeric wattage {watts!r}")
            continue
        if name:
            table[name] = value
    return table


def load_appliance_reference(path: Union[str, Path]) -> Dict[str, int]:
    """
    Read an appliance CSV into ``{name: watts}``.

    Returns {} if the file is missing or unreadable.
    """
    path = Path(path)
    if not path.exists():
        logger.warning(f"Appliance reference not found at {path}, using fallback patterns")
        return {}
    try:
        df = pd.read_csv(
            path,
            sep=_LAST_COMMA,
            engine='python',
            header=0,
            names=['name', 'watts'],
            skipinitialspace=True,
            dtype={'name': str},
        )
    except Exception as e:
        logger.warning(f"Could not read appliance reference {path}: {e}")
        return {}

    df = df.dropna(subset=['name', 'watts'])
    table = _clean_table(dict(zip(df['name'], df['watts'])))
    logger.info(f"Loaded {len(table)} appliances from {path}")
    return table


def fetch_appliance_reference(url: str, session: Optional[requests.Session] = None) -> Dict[str, int]:
    """
    Fetch ``{name: watts}`` from an HTTP endpoint.

    Returns {} on connection errors, bad status codes or malformed bodies.
    """
    session = session or create_session()
    try:
        response = session.get(url, timeout=REQUEST_TIMEOUT)
        response.raise_for_status()
        body = response.json()
    except (requests.RequestException, ValueError) as e:
        logger.warning(f"Failed to load appliance reference from {url}: {e}")
        return {}

    appliances = body.get('appliances') if isinstance(body, dict) else None
    if not isinstance(appliances, dict):
        logger.warning(f"Appliance endpoint {url} returned no 'appliances' mapping")
        return {}

    table = _clean_table(appliances)
    logger.info(f"Loaded {len(table)} appliances from {url}")
    return table


class ApplianceReference:
    """
    Owned appliance table with exact and similar-name lookup.

    Usage:
        reference = ApplianceReference(csv_path=APPLIANCES_CSV)
        reference.lookup('split')     # exact, then substring match
        reference.refresh()           # after device types change
    """

    def __init__(
        self,
        table: Optional[Dict[str, int]] = None,
        csv_path: Optional[Union[str, Path]] = None,
        url: Optional[str] = None,
        session: Optional[requests.Session] = None,
    ):
        self.csv_path = csv_path
        self.url = url
        self.session = session
        self.table: Dict[str, int] = dict(table) if table else {}
        self.loaded = bool(self.table)
        if not self.table and (csv_path or url):
            self.refresh()

    def refresh(self) -> int:
        """Reload from the configured source. Returns the number of entries."""
        if self.url:
            table = fetch_appliance_reference(self.url, session=self.session)
        elif self.csv_path:
            table = load_appliance_reference(self.csv_path)
        else:
            table = self.table
        self.table = table
        self.loaded = bool(table)
        return len(table)

    def lookup(self, device_type: str) -> Optional[int]:
        """Expected wattage: exact name, else the first name containing (or contained in) the type."""
        if not device_type:
            return None
        exact = self.table.get(device_type)
        if exact:
            return exact

        wanted = device_type.lower()
        for name, watts in self.table.items():
            candidate = name.lower()
            if wanted in candidate or candidate in wanted:
                return watts or None
        return None

    def __len__(self) -> int:
        return len(self.table)

    def __repr__(self) -> str:
        return f"ApplianceReference(entries={len(self.table)}, loaded={self.loaded})"
