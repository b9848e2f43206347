"""
Environment configuration collection (devices, rooms, device types).
"""
import logging
from typing import Optional

from ..core.models import EnvironmentConfig
from ..core.paths import ENVIRONMENT_COLLECTION

logger = logging.getLogger(__name__)


def load_environment_config(store, collection: str = ENVIRONMENT_COLLECTION) -> Optional[EnvironmentConfig]:
    """
    Read the device registry from a collection store.

    Returns None when the collection is missing or malformed.
    """
    data = store.load(collection)
    if data is None:
        return None
    if not isinstance(data, dict):
        logger.error(f"Environment config has unexpected shape ({type(data).__name__})")
        return None
    try:
        return EnvironmentConfig.from_dict(data)
    except (ValueError, TypeError) as e:
        logger.error(f"Invalid environment config: {e}")
        return None


def save_environment_config(store, environment: EnvironmentConfig, collection: str = ENVIRONMENT_COLLECTION):
    store.persist(collection, environment.to_dict())
    logger.info(f"Saved environment config with {len(environment.devices)} devices")
