"""File-based cache for the most recent trading advice."""

import json
import re
import time
from pathlib import Path
from typing import Optional

from advisor.config import Paths, SETTINGS


class AdviceCache:
    """JSON file per key with a TTL taken from cache.ttl_hours in settings."""

    def __init__(self, category: str = "advice", cache_dir: Optional[Path] = None):
        self.cache_dir = Path(cache_dir or Paths.DATA_CACHE) / category
        self.cache_dir.mkdir(parents=True, exist_ok=True)
        ttl_config = SETTINGS.get("cache", {}).get("ttl_hours", {})
        self.ttl_seconds = ttl_config.get(category, 24) * 3600

    def _key_path(self, key: str) -> Path:
        safe = re.sub(r"[^A-Za-z0-9_.-]", "_", key)
        return self.cache_dir / f"{safe}.json"

    def get(self, key: str) -> dict | None:
        """Retrieve cached JSON data if present and not expired."""
        path = self._key_path(key)
        if not path.exists():
            return None
        if time.time() - path.stat().st_mtime > self.ttl_seconds:
            path.unlink()
            return None
        with open(path) as f:
            return json.load(f)

    def set(self, key: str, data: dict) -> None:
        """Store JSON data, replacing any previous entry."""
        path = self._key_path(key)
        with open(path, "w") as f:
            json.dump(data, f, indent=2)
