"""HTTP tests for the search endpoints."""

from unittest.mock import patch

from sqlalchemy.exc import OperationalError

from config import settings
from services.query_understanding import normalize_filters
from services.search_service import SearchService
from factories import make_attribute, make_category, make_product


def test_search_returns_page_and_metadata(client, db_session):
    make_product(db_session, "Solar Panel 10W")
    make_product(db_session, "Solar Panel 20W")
    make_product(db_session, "Battery Pack")

    response = client.get("/search", params={"q": "solar"})

    assert response.status_code == 200
    body = response.json()
    assert body["success"] is True
    products = body["data"]["products"]
    assert [p["name"] for p in products["data"]] == ["Solar Panel 10W", "Solar Panel 20W"]
    assert products["total"] == 2
    assert products["from"] == 1
    assert products["to"] == 2
    metadata = body["data"]["search_metadata"]
    assert metadata["query"] == "solar"
    assert metadata["result_count"] == 2
    assert metadata["sort_by"] == "relevance"
    assert metadata["sort_direction"] == "desc"
    assert metadata["performance_stats"]["max_results"] == 1000


def test_search_with_filters_via_query_string(client, db_session):
    color = make_attribute(db_session, "Color", ["Red", "Blue"])
    red, blue = color.values
    lights = make_category(db_session, "Lights", slug="lights")
    make_product(db_session, "Red Lamp", price="40", categories=[lights], attribute_values=[red],
                 variants=[{"stock_quantity": 2}])
    make_product(db_session, "Blue Lamp", price="40", categories=[lights], attribute_values=[blue],
                 variants=[{"stock_quantity": 2}])

    response = client.get("/search", params=[
        ("category_slug", "lights"),
        ("min_price", "10"),
        ("max_price", "50"),
        ("in_stock", "true"),
        ("attributes", f"{color.id}:{red.id}"),
    ])

    assert response.status_code == 200
    data = response.json()["data"]
    assert [p["name"] for p in data["products"]["data"]] == ["Red Lamp"]
    assert data["search_metadata"]["filters_applied"] == {
        "category_slug": "lights",
        "min_price": "10",
        "max_price": "50",
        "attributes": [{"attribute_id": color.id, "value_ids": [red.id]}],
        "in_stock": True,
    }


def test_search_accepts_json_body(client, db_session):
    make_product(db_session, "Solar Lantern")

    response = client.post("/search", json={"q": "lantern", "per_page": 5, "attributes": []})

    assert response.status_code == 200
    assert response.json()["data"]["products"]["per_page"] == 5


def test_empty_result_is_success(client):
    response = client.get("/search", params={"q": "nonexistentproduct"})

    assert response.status_code == 200
    products = response.json()["data"]["products"]
    assert products["data"] == []
    assert products["total"] == 0
    assert products["from"] == 0


def test_validation_errors_are_reported_per_field(client):
    response = client.get("/search", params={"min_price": "-10", "sort_by": "popularity", "per_page": "500"})

    assert response.status_code == 422
    fields = {tuple(error["loc"]) for error in response.json()["detail"]}
    assert ("query", "min_price") in fields
    assert ("query", "sort_by") in fields
    assert ("query", "per_page") in fields


def test_non_numeric_price_is_rejected(client):
    response = client.get("/search", params={"max_price": "cheap"})

    assert response.status_code == 422


def test_malformed_attribute_filter_is_rejected(client):
    response = client.get("/search", params={"attributes": "color:red"})

    assert response.status_code == 422


def test_inverted_price_range_is_accepted(client, db_session):
    make_product(db_session, "Plain", price="50")

    response = client.get("/search", params={"min_price": "100", "max_price": "10"})

    assert response.status_code == 200
    assert response.json()["data"]["products"]["total"] == 0


def test_storage_failure_is_an_internal_error(client):
    with patch.object(SearchService, "search", side_effect=OperationalError("SELECT", {}, Exception("down"))):
        response = client.get("/search", params={"q": "solar"})

    assert response.status_code == 500
    assert response.json()["detail"]["message"] == "Search failed"


def test_error_detail_only_in_debug_mode(client, monkeypatch):
    monkeypatch.setattr(settings, "APP_DEBUG", True)
    with patch.object(SearchService, "search", side_effect=RuntimeError("boom")):
        response = client.get("/search", params={"q": "solar"})

    assert response.json()["detail"]["error"] == "boom"


def test_suggestions_endpoint(client, db_session):
    make_product(db_session, "Solar Panel", sku="SOL-1")

    response = client.get("/search/suggestions", params={"q": "sol", "limit": 5})

    assert response.status_code == 200
    assert response.json()["data"] == {"query": "sol", "suggestions": ["Solar Panel", "SOL-1"]}


def test_suggestions_require_two_characters(client):
    assert client.get("/search/suggestions", params={"q": "a"}).status_code == 422
    assert client.get("/search/suggestions", params={"q": "ab", "limit": 21}).status_code == 422


def test_clear_cache_endpoint(client, db_session, redis_client):
    make_product(db_session, "Solar Panel")
    client.get("/search", params={"q": "solar"})
    assert redis_client.keys("search_results:*")

    response = client.post("/search/cache/clear")

    assert response.status_code == 200
    assert not redis_client.keys("search_results:*")


def test_cache_flag_disables_search_caching(client, db_session, redis_client, monkeypatch):
    monkeypatch.setattr(settings, "SEARCH_CACHE_ENABLED", False)
    make_product(db_session, "Solar Panel")

    response = client.get("/search", params={"q": "solar"})

    assert response.json()["data"]["search_metadata"]["performance_stats"]["cache_enabled"] is False
    assert not redis_client.keys("search_results:*")


def test_performance_endpoint_reports_recorded_searches(client, db_session):
    make_product(db_session, "Solar Panel")
    client.get("/search", params={"q": "solar"})
    client.get("/search", params={"q": "solar"})

    response = client.get("/search/performance")

    assert response.status_code == 200
    stats = response.json()["data"]
    assert stats["total_operations"] == 2
    assert stats["cache_hit_ratio"] == 0.5


def test_clearing_the_cache_keeps_performance_metrics(client, db_session):
    make_product(db_session, "Solar Panel")
    client.get("/search", params={"q": "solar"})
    client.get("/search", params={"q": "solar"})

    client.post("/search/cache/clear")

    stats = client.get("/search/performance").json()["data"]
    assert stats["total_operations"] == 2


def test_corrupt_cache_entry_falls_back_to_the_database(client, db_session, redis_client):
    make_product(db_session, "Solar Panel")
    redis_client.set(normalize_filters({"q": "solar"}).cache_key(), b"not json")

    response = client.get("/search", params={"q": "solar"})

    assert response.status_code == 200
    assert [p["name"] for p in response.json()["data"]["products"]["data"]] == ["Solar Panel"]
