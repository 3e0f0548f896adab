# routes/search.py
from fastapi import APIRouter, Depends, HTTPException, Query
from fastapi.exceptions import RequestValidationError
from pydantic import ValidationError
from typing import Annotated, List, Optional
import logging
import redis

from config import settings
from db.connection import db_dependency
from schemas.productManagement.search import SearchRequest, SearchResponse, SuggestionResponse
from services.cache_service import CacheService, get_redis_client
from services.performance_monitor import PerformanceMonitor
from services.query_understanding import normalize_filters, normalize_term
from services.search_service import SearchService

router = APIRouter(prefix="/search", tags=["search"])
logger = logging.getLogger(__name__)

redis_dependency = Annotated[redis.Redis, Depends(get_redis_client)]


def get_search_service(db: db_dependency, client: redis_dependency) -> SearchService:
    return SearchService(
        db,
        cache=CacheService(client),
        monitor=PerformanceMonitor(client),
        cache_enabled=settings.SEARCH_CACHE_ENABLED,
    )


search_service_dependency = Annotated[SearchService, Depends(get_search_service)]


def _parse_attribute_params(values: List[str]) -> List[dict]:
    """
    Query-string attribute filters look like ``3:10,11`` (attribute 3, value 10 or 11).
    Malformed entries are passed through so the request schema reports them.
    """
    attributes = []
    for raw in values:
        attribute_id, _, value_ids = raw.partition(":")
        attributes.append({
            "attribute_id": attribute_id.strip(),
            "value_ids": [v.strip() for v in value_ids.split(",") if v.strip()],
        })
    return attributes


def _server_error(message: str, e: Exception) -> HTTPException:
    detail = {"success": False, "message": message}
    detail["error"] = str(e) if settings.APP_DEBUG else "Internal server error"
    return HTTPException(status_code=500, detail=detail)


def _run_search(request: SearchRequest, service: SearchService) -> dict:
    search_filter = normalize_filters(request.model_dump())

    try:
        results = service.search(search_filter)
    except Exception as e:
        logger.error(
            f"Search failed: operation=search query={search_filter.query!r} "
            f"filters={search_filter.applied_filters()} error={e}",
            exc_info=True,
        )
        raise _server_error("Search failed", e)

    return {
        "success": True,
        "data": {
            "products": results,
            "search_metadata": {
                "query": search_filter.query or "",
                "result_count": results.total,
                "filters_applied": search_filter.applied_filters(),
                "sort_by": search_filter.sort_by,
                "sort_direction": search_filter.sort_direction,
                "performance_stats": service.get_performance_stats(),
            },
        },
        "message": "Search completed successfully",
    }


@router.get("", response_model=SearchResponse)
def search_products_endpoint(
    service: search_service_dependency,
    q: Optional[str] = None,
    category_id: Optional[str] = None,
    category_slug: Optional[str] = None,
    min_price: Optional[str] = None,
    max_price: Optional[str] = None,
    attributes: List[str] = Query(default=[]),
    in_stock: Optional[str] = None,
    sort_by: Optional[str] = None,
    sort_direction: Optional[str] = None,
    per_page: Optional[str] = None,
    page: Optional[str] = None,
):
    """
    Filtered, paginated product search.
    Relevance order (name > SKU > description > category) applies when `q` is given.
    """
    params = {
        "q": q,
        "category_id": category_id,
        "category_slug": category_slug,
        "min_price": min_price,
        "max_price": max_price,
        "attributes": _parse_attribute_params(attributes),
        "in_stock": in_stock,
        "sort_by": sort_by,
        "sort_direction": sort_direction,
        "per_page": per_page,
        "page": page,
    }
    # let schema defaults apply to anything the client left out
    params = {key: value for key, value in params.items() if value is not None}

    try:
        request = SearchRequest.model_validate(params)
    except ValidationError as e:
        raise RequestValidationError(
            [{**error, "loc": ("query", *error["loc"])} for error in e.errors(include_url=False, include_context=False)]
        )

    return _run_search(request, service)


@router.post("", response_model=SearchResponse)
def search_products_body(request: SearchRequest, service: search_service_dependency):
    return _run_search(request, service)


@router.get("/suggestions", response_model=SuggestionResponse)
def search_suggestions(
    service: search_service_dependency,
    q: str = Query(..., min_length=2, max_length=100),
    limit: int = Query(10, ge=1, le=20),
):
    """Autocomplete suggestions from product names, SKUs, variant SKUs and category names."""
    try:
        suggestions = service.get_suggestions(q, limit)
    except Exception as e:
        logger.error(f"Suggestions failed: operation=search_suggestions query={q!r} error={e}", exc_info=True)
        raise _server_error("Failed to retrieve suggestions", e)

    return {
        "success": True,
        "data": {"query": normalize_term(q), "suggestions": suggestions},
        "message": "Suggestions retrieved successfully",
    }


@router.post("/cache/clear")
def clear_search_cache(service: search_service_dependency):
    service.clear_cache()
    return {"success": True, "message": "Search cache cleared"}


@router.get("/performance")
def search_performance(
    client: redis_dependency,
    hours: int = Query(1, ge=1, le=24),
):
    monitor = PerformanceMonitor(client)
    return {"success": True, "data": monitor.get_search_performance_stats(hours)}
