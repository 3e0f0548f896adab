# services/cache_service.py
import hashlib
import json
import logging
from functools import lru_cache
from typing import List, Optional

import redis
from pydantic import ValidationError

from config import settings
from schemas.productManagement.search import SearchResultPage

logger = logging.getLogger(__name__)

CACHE_TTL_SEARCH = 300  # 5 minutes for search results
CACHE_TTL_SUGGESTIONS = 3600  # 1 hour for suggestions

# metric buckets live in the same database, only these keys are ours
CACHE_KEY_PATTERNS = ("search_results:*", "search_suggestions:*")


def suggestions_cache_key(term: str, limit: int) -> str:
    return f"search_suggestions:{hashlib.md5(f'{term.lower()}{limit}'.encode()).hexdigest()}"


class CacheService:
    """
    TTL store for search pages and suggestion lists.

    Redis failures on reads and writes degrade to a cache miss so search keeps
    answering from the database. Entries that no longer decode are dropped and
    count as a miss too. flush() is an operator action and raises.
    """

    def __init__(self, client: redis.Redis):
        self.redis = client

    def _get(self, key: str) -> Optional[bytes]:
        try:
            return self.redis.get(key)
        except redis.RedisError as e:
            logger.warning(f"Cache read failed for {key}: {e}")
            return None

    def _set(self, key: str, ttl: int, payload: str) -> None:
        try:
            self.redis.setex(key, ttl, payload)
        except redis.RedisError as e:
            logger.warning(f"Cache write failed for {key}: {e}")

    def _discard(self, key: str, reason: Exception) -> None:
        logger.warning(f"Dropping undecodable cache entry {key}: {reason}")
        try:
            self.redis.delete(key)
        except redis.RedisError as e:
            logger.warning(f"Cache delete failed for {key}: {e}")

    def get_cached_search(self, cache_key: str) -> Optional[SearchResultPage]:
        """Get cached search results if available"""
        cached = self._get(cache_key)
        if cached is None:
            return None
        try:
            return SearchResultPage.model_validate_json(cached)
        except ValidationError as e:
            self._discard(cache_key, e)
            return None

    def cache_search(self, cache_key: str, page: SearchResultPage, ttl: int = CACHE_TTL_SEARCH) -> None:
        self._set(cache_key, ttl, page.model_dump_json(by_alias=True))

    def get_cached_suggestions(self, cache_key: str) -> Optional[List[str]]:
        cached = self._get(cache_key)
        if cached is None:
            return None
        try:
            suggestions = json.loads(cached)
        except ValueError as e:
            self._discard(cache_key, e)
            return None
        if not isinstance(suggestions, list):
            self._discard(cache_key, TypeError(f"expected a list, got {type(suggestions).__name__}"))
            return None
        return suggestions

    def cache_suggestions(self, cache_key: str, suggestions: List[str], ttl: int = CACHE_TTL_SUGGESTIONS) -> None:
        self._set(cache_key, ttl, json.dumps(suggestions))

    def flush(self) -> int:
        """Delete every search and suggestion entry, leaving other keys alone. Returns the count removed."""
        removed = 0
        for pattern in CACHE_KEY_PATTERNS:
            keys = list(self.redis.scan_iter(match=pattern, count=500))
            if keys:
                removed += self.redis.delete(*keys)
        return removed


@lru_cache(maxsize=1)
def get_redis_client() -> redis.Redis:
    """Process-wide client for the FastAPI dependency layer; services receive it as an argument."""
    return redis.from_url(settings.REDIS_URL)
