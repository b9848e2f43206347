"""
Durable key-value persistence for tracking collections.

A collection is one JSON document.  ``load`` returns ``None`` when the
collection does not exist or cannot be parsed; callers fall back to their
empty defaults.  ``persist`` writes to a temporary file in the same
directory and renames it over the target, so readers never see a partial
document.
"""
import copy
import json
import logging
import os
import tempfile
from datetime import datetime
from pathlib import Path
from typing import Any, Dict, Optional

import numpy as np
import pandas as pd

from ..core.paths import StoragePaths

logger = logging.getLogger(__name__)


def _json_serializer(obj):
    """Fallback serialiser for json.dump."""
    if isinstance(obj, (pd.Timestamp, datetime)):
        return obj.isoformat()
    if isinstance(obj, (np.integer, np.floating)):
        return obj.item()
    if isinstance(obj, np.ndarray):
        return obj.tolist()
    if isinstance(obj, (set, tuple)):
        return list(obj)
    return str(obj)


class CollectionStore:
    """Interface for collection persistence."""

    def load(self, name: str) -> Optional[Any]:
        raise NotImplementedError

    def persist(self, name: str, data: Any) -> None:
        raise NotImplementedError

    def delete(self, name: str) -> None:
        raise NotImplementedError


class JsonCollectionStore(CollectionStore):
    """Collections stored as ``<data_dir>/<name>.json``."""

    def __init__(self, data_dir: Optional[Path] = None):
        self.paths = StoragePaths(data_dir)

    def load(self, name: str) -> Optional[Any]:
        file_path = self.paths.collection_file(name)
        if not file_path.exists():
            logger.info(f"Collection '{name}' not found, using defaults")
            return None
        try:
            with open(file_path, 'r', encoding='utf-8') as f:
                return json.load(f)
        except (OSError, json.JSONDecodeError, UnicodeDecodeError) as e:
            logger.error(f"Could not read collection '{name}' from {file_path}: {e}")
            return None

    def persist(self, name: str, data: Any) -> None:
        self.paths.ensure_dirs()
        file_path = self.paths.collection_file(name)

        fd, tmp_path = tempfile.mkstemp(prefix=f".{name}.", suffix=".tmp", dir=str(file_path.parent))
        try:
            with os.fdopen(fd, 'w', encoding='utf-8') as f:
                json.dump(data, f, indent=2, default=_json_serializer)
            os.replace(tmp_path, file_path)
        except BaseException:
            if os.path.exists(tmp_path):
                os.unlink(tmp_path)
            raise
        logger.debug(f"Collection '{name}' saved to {file_path}")

    def delete(self, name: str) -> None:
        file_path = self.paths.collection_file(name)
        if file_path.exists():
            file_path.unlink()

    def __repr__(self) -> str:
        return f"JsonCollectionStore(data_dir={self.paths.data_dir})"


class InMemoryCollectionStore(CollectionStore):
    """Process-local store; documents are deep-copied on the way in and out."""

    def __init__(self, initial: Optional[Dict[str, Any]] = None):
        self._collections: Dict[str, Any] = copy.deepcopy(initial) if initial else {}

    def load(self, name: str) -> Optional[Any]:
        if name not in self._collections:
            return None
        return copy.deepcopy(self._collections[name])

    def persist(self, name: str, data: Any) -> None:
        # Round-trip through JSON so tests see exactly what a file would hold
        self._collections[name] = json.loads(json.dumps(data, default=_json_serializer))

    def delete(self, name: str) -> None:
        self._collections.pop(name, None)

    def __contains__(self, name: str) -> bool:
        return name in self._collections
