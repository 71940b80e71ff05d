import logging
import threading
import time

logger = logging.getLogger(__name__)


class ItemListCache:
    """Read-through cache of the public item list.

    The store stays authoritative: every write path calls ``invalidate()``
    and entries also expire after ``ttl`` seconds, so other processes'
    writes show up without coordination.
    """

    def __init__(self, ttl=30):
        self.ttl = ttl
        self._lock = threading.Lock()
        self._items = None
        self._loaded_at = 0.0
        self._generation = 0

    def get(self, loader):
        with self._lock:
            if self._items is not None and (time.monotonic() - self._loaded_at) < self.ttl:
                return self._items
            generation = self._generation
        items = loader()
        with self._lock:
            # Drop the result if a write invalidated us mid-load
            if generation == self._generation:
                self._items = items
                self._loaded_at = time.monotonic()
        return items

    def invalidate(self):
        with self._lock:
            self._items = None
            self._generation += 1
        logger.debug("Item list cache invalidated")


item_cache = ItemListCache()
