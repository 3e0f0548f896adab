# services/search_service.py
import logging
import math
from typing import Dict, List, Optional

from sqlalchemy import func, select
from sqlalchemy.orm import Session
from sqlalchemy.sql import Select

from schemas.productManagement.search import ProductSearchRow, SearchResultPage
from services.cache_service import CacheService, CACHE_TTL_SEARCH, CACHE_TTL_SUGGESTIONS, suggestions_cache_key
from services.performance_monitor import PerformanceMonitor, PERFORMANCE_THRESHOLD, VERY_SLOW_THRESHOLD
from services.query_understanding import SearchFilter, normalize_term, MIN_SUGGESTION_LENGTH
from services.search_utils import build_query_plan, compile_query_plan
from services.suggestions import generate_suggestions

logger = logging.getLogger(__name__)

MAX_RESULTS = 1000
MAX_SUGGESTIONS = 20


def paginate(total: int, per_page: int, page: int) -> Dict[str, int]:
    """Pagination envelope for an already capped total."""
    offset = (page - 1) * per_page
    if total == 0 or offset >= total:
        first, last = 0, 0
    else:
        first, last = offset + 1, min(offset + per_page, total)
    return {
        "total": total,
        "per_page": per_page,
        "current_page": page,
        "last_page": math.ceil(total / per_page),
        "from": first,
        "to": last,
    }


def execute_search(db: Session, statement: Select, page: int, per_page: int) -> SearchResultPage:
    """
    Count, cap and fetch one page. Rows past MAX_RESULTS are never fetched.
    Database errors propagate to the caller.
    """
    count_stmt = select(func.count()).select_from(statement.order_by(None).subquery())
    total = min(db.execute(count_stmt).scalar_one(), MAX_RESULTS)

    envelope = paginate(total, per_page, page)
    offset = (page - 1) * per_page
    limit = min(per_page, MAX_RESULTS - offset)

    items: List[ProductSearchRow] = []
    if envelope["to"] and limit > 0:
        rows = db.execute(statement.offset(offset).limit(limit)).mappings().all()
        items = [ProductSearchRow.model_validate(dict(row)) for row in rows]

    return SearchResultPage(data=items, **envelope)


class SearchService:
    def __init__(
        self,
        db: Session,
        cache: Optional[CacheService] = None,
        monitor: Optional[PerformanceMonitor] = None,
        cache_enabled: bool = True,
    ):
        self.db = db
        self.cache = cache
        self.monitor = monitor or PerformanceMonitor()
        self.cache_enabled = cache_enabled and cache is not None

    def search(self, search_filter: SearchFilter) -> SearchResultPage:
        with self.monitor.track(
            "search",
            query=search_filter.query or "",
            filters=search_filter.applied_filters(),
        ) as context:
            cache_key = search_filter.cache_key()

            if self.cache_enabled:
                cached = self.cache.get_cached_search(cache_key)
                if cached is not None:
                    context.update(cache="hit", result_count=cached.total)
                    return cached

            plan = build_query_plan(search_filter)
            results = execute_search(
                self.db, compile_query_plan(plan), search_filter.page, search_filter.per_page
            )

            # empty pages are never cached
            if self.cache_enabled and results.total > 0:
                self.cache.cache_search(cache_key, results, CACHE_TTL_SEARCH)

            context.update(cache="miss", result_count=results.total)
            return results

    def get_suggestions(self, query: str, limit: int = 10) -> List[str]:
        term = normalize_term(query)
        limit = max(1, min(limit, MAX_SUGGESTIONS))

        with self.monitor.track("search_suggestions", query=term, limit=limit) as context:
            if len(term) < MIN_SUGGESTION_LENGTH:
                context.update(result_count=0)
                return []

            cache_key = suggestions_cache_key(term, limit)
            if self.cache is not None:
                cached = self.cache.get_cached_suggestions(cache_key)
                if cached is not None:
                    context.update(result_count=len(cached))
                    return cached

            suggestions = generate_suggestions(self.db, term, limit)
            if self.cache is not None:
                self.cache.cache_suggestions(cache_key, suggestions, CACHE_TTL_SUGGESTIONS)

            context.update(result_count=len(suggestions))
            return suggestions

    def clear_cache(self) -> None:
        """Drops every search and suggestion entry; there is no per-key invalidation."""
        if self.cache is None:
            return
        removed = self.cache.flush()
        logger.info(f"Search cache cleared: {removed} keys removed")

    def get_performance_stats(self) -> Dict:
        return {
            "cache_enabled": self.cache_enabled,
            "cache_ttl": CACHE_TTL_SEARCH,
            "performance_threshold_ms": PERFORMANCE_THRESHOLD,
            "very_slow_threshold_ms": VERY_SLOW_THRESHOLD,
            "max_results": MAX_RESULTS,
        }
