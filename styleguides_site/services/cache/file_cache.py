"""
File-based JSON cache.

Each key is stored as `<cache_dir>/<sanitised key>.json` holding the data and
its metadata (creation timestamp in ms, optional lifetime in ms). Expired or
unreadable entries are treated as absent.
"""

import json
import re
import time
from collections.abc import Awaitable, Callable
from pathlib import Path
from typing import Any

from styleguides_site.config import settings
from styleguides_site.infrastructure.observability.logging import get_logger

logger = get_logger(__name__)

_UNSAFE_KEY_CHARS = re.compile(r"[^a-zA-Z0-9\-_]")
HOUR_MS = 60 * 60 * 1000


def _now_ms() -> int:
    return int(time.time() * 1000)


class FileCache:
    def __init__(self, cache_dir: str | Path | None = None):
        self.cache_dir = Path(cache_dir or settings.CACHE_DIR)

    def get_cache_file_path(self, key: str) -> Path:
        return self.cache_dir / f"{_UNSAFE_KEY_CHARS.sub('_', key)}.json"

    def _load_entry(self, key: str) -> dict | None:
        path = self.get_cache_file_path(key)
        try:
            entry = json.loads(path.read_text(encoding="utf-8"))
        except FileNotFoundError:
            return None
        except (OSError, ValueError) as e:
            logger.warning("Unreadable cache entry ignored", key=key, error=str(e))
            return None

        if not isinstance(entry, dict) or not isinstance(entry.get("metadata"), dict):
            logger.warning("Malformed cache entry ignored", key=key)
            return None
        return entry

    @staticmethod
    def _is_expired(metadata: dict) -> bool:
        expires_in = metadata.get("expiresIn")
        if not expires_in:
            return False
        return _now_ms() > metadata.get("timestamp", 0) + expires_in

    def write(self, key: str, data: Any, expires_in: int | None = None) -> None:
        """
        Store JSON-serialisable `data` under `key`.

        Args:
            expires_in: lifetime in milliseconds; None never expires
        """
        entry = {"data": data, "metadata": {"timestamp": _now_ms(), "expiresIn": expires_in}}
        path = self.get_cache_file_path(key)
        self.cache_dir.mkdir(parents=True, exist_ok=True)
        path.write_text(json.dumps(entry, indent=2), encoding="utf-8")

    def read(self, key: str) -> Any | None:
        entry = self._load_entry(key)
        if entry is None:
            return None

        if self._is_expired(entry["metadata"]):
            self.delete(key)
            return None

        return entry.get("data")

    def exists(self, key: str) -> bool:
        entry = self._load_entry(key)
        return entry is not None and not self._is_expired(entry["metadata"])

    def get_timestamp(self, key: str) -> int | None:
        entry = self._load_entry(key)
        if entry is None:
            return None
        return entry["metadata"].get("timestamp")

    def delete(self, key: str) -> None:
        self.get_cache_file_path(key).unlink(missing_ok=True)

    def clear(self) -> None:
        if not self.cache_dir.is_dir():
            return
        for path in self.cache_dir.glob("*.json"):
            path.unlink(missing_ok=True)


cache = FileCache()


async def get_or_set(
    key: str,
    factory: Callable[[], Awaitable[Any]],
    expires_in: int | None = None,
    file_cache: FileCache | None = None,
) -> Any:
    """Cached value for `key`, computing and storing it with `factory` on a miss."""
    file_cache = file_cache or cache
    cached = file_cache.read(key)
    if cached is not None:
        return cached

    data = await factory()
    file_cache.write(key, data, expires_in=expires_in)
    return data


def cache_24_hours(key: str, data: Any, file_cache: FileCache | None = None) -> None:
    (file_cache or cache).write(key, data, expires_in=24 * HOUR_MS)


def is_cache_older_than(key: str, hours: float, file_cache: FileCache | None = None) -> bool:
    """True if the entry is older than `hours` or missing."""
    timestamp = (file_cache or cache).get_timestamp(key)
    if not timestamp:
        return True
    age_hours = (_now_ms() - timestamp) / HOUR_MS
    return age_hours > hours
