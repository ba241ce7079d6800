"""TTL cache over durable storage with schema-version invalidation."""
import json
import logging
import time
from typing import Any, Callable, Optional

from app.storage import DurableStorage

logger = logging.getLogger(__name__)

CACHE_PREFIX = "spirithub_cache_"
CACHE_DURATION_MS = 60 * 60 * 1000
# Bump when the shape of cached view-models changes.
CACHE_VERSION = 5


def now_ms() -> int:
    return int(time.time() * 1000)


class CacheStore:
    """
    Namespaced key/value cache.

    Entries are JSON objects ``{data, timestamp, expiresAt, version}``. Expiry
    is checked lazily on read; stale or version-mismatched entries are removed
    by the read that finds them. Storage and serialization errors never reach
    the caller.
    """

    def __init__(self, storage: DurableStorage, clock: Callable[[], int] = now_ms):
        self.storage = storage
        self.clock = clock

    def set(self, key: str, data: Any, duration: int = CACHE_DURATION_MS) -> None:
        try:
            now = self.clock()
            entry = {
                "data": data,
                "timestamp": now,
                "expiresAt": now + duration,
                "version": CACHE_VERSION,
            }
            self.storage.set_item(key, json.dumps(entry))
        except Exception as e:
            logger.error("Error setting cache %s: %s", key, e)

    def get(self, key: str) -> Optional[Any]:
        try:
            raw = self.storage.get_item(key)
            if not raw:
                return None

            entry = json.loads(raw)
            if not entry.get("version") or entry["version"] != CACHE_VERSION:
                logger.info("Cache version mismatch for %s, clearing", key)
                self.storage.remove_item(key)
                return None

            if self.clock() > entry["expiresAt"]:
                self.storage.remove_item(key)
                return None

            return entry["data"]
        except Exception as e:
            logger.error("Error getting cache %s: %s", key, e)
            return None

    def is_expired(self, key: str) -> bool:
        try:
            raw = self.storage.get_item(key)
            if not raw:
                return True
            entry = json.loads(raw)
            return self.clock() > entry["expiresAt"]
        except Exception:
            return True

    def remove(self, key: str) -> None:
        try:
            self.storage.remove_item(key)
        except Exception as e:
            logger.error("Error removing cache %s: %s", key, e)

    def clear(self) -> int:
        """Remove every key in the cache namespace; returns how many."""
        removed = 0
        try:
            for key in self.storage.keys():
                if key.startswith(CACHE_PREFIX):
                    self.storage.remove_item(key)
                    removed += 1
        except Exception as e:
            logger.error("Error clearing cache: %s", e)
        return removed

    def get_cache_age(self, key: str) -> Optional[int]:
        """Age of an entry in whole minutes, for diagnostics."""
        try:
            raw = self.storage.get_item(key)
            if not raw:
                return None
            entry = json.loads(raw)
            return (self.clock() - entry["timestamp"]) // 60000
        except Exception:
            return None
