"""
TTL cache for enhanced commit listings.

Uses diskcache, whose native ``expire=`` enforces the absolute expiry:
an expired listing is simply absent on the next read.
"""

from typing import Any, Optional

from diskcache import Cache

from ..logging_config import get_logger

logger = get_logger(__name__)


class ListingCache:
    """
    Disk-backed listing cache.

    Errors from diskcache propagate; the cache store wraps them.
    """

    def __init__(self, cache_dir: str, ttl_seconds: int = 1800):
        """Open (or create) the listing store under ``cache_dir``.

        ``ttl_seconds`` applies to listings written without an explicit
        expiry.
        """
        self.ttl_seconds = ttl_seconds
        self.cache = Cache(cache_dir)
        logger.debug(f"Listing cache initialized at {cache_dir} with TTL={ttl_seconds}s")

    def get(self, key: str) -> Optional[Any]:
        value = self.cache.get(key)
        if value is not None:
            logger.debug(f"Listing cache hit: {key}")
        return value

    def set(self, key: str, value: Any, ttl_seconds: Optional[float] = None) -> None:
        expire = self.ttl_seconds if ttl_seconds is None else ttl_seconds
        self.cache.set(key, value, expire=expire)
        logger.debug(f"Listing cache set: {key} (expires in {expire}s)")

    def delete_prefix(self, prefix: str) -> int:
        """Delete every key starting with ``prefix``; return how many."""
        removed = 0
        for key in list(self.cache.iterkeys()):
            if isinstance(key, str) and key.startswith(prefix):
                if self.cache.delete(key):
                    removed += 1
        return removed

    def expire(self) -> int:
        """Drop expired entries now rather than lazily; return how many."""
        return self.cache.expire()

    def clear(self) -> int:
        return self.cache.clear()

    def __len__(self) -> int:
        return len(self.cache)

    def close(self) -> None:
        self.cache.close()
