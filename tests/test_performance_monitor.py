"""Performance classification and metric recording tests."""

import pytest

from services.performance_monitor import (
    PERFORMANCE_THRESHOLD,
    VERY_SLOW_THRESHOLD,
    PerformanceMonitor,
    classify_performance,
)


@pytest.mark.parametrize(
    "execution_time_ms, level",
    [
        (0, "fast"),
        (249.99, "fast"),
        (250, "slow"),
        (1000, "slow"),
        (1000.01, "very_slow"),
    ],
)
def test_classify_performance(execution_time_ms, level):
    assert classify_performance(execution_time_ms) == level


def test_thresholds():
    assert PERFORMANCE_THRESHOLD == 250
    assert VERY_SLOW_THRESHOLD == 1000


def test_record_is_stored_and_logged_by_level(monitor, caplog):
    caplog.set_level("INFO")

    record = monitor.record("search", 1200, {"query": "solar"})

    assert record.performance_level == "very_slow"
    assert monitor.load_records()[0]["context"] == {"query": "solar"}
    assert any(r.levelname == "ERROR" and "Very slow" in r.getMessage() for r in caplog.records)


def test_track_records_errors_and_reraises(monitor):
    with pytest.raises(ValueError):
        with monitor.track("search_suggestions", query="so"):
            raise ValueError("boom")

    record = monitor.load_records()[-1]
    assert record["operation"] == "search_suggestions"
    assert record["context"]["error"] == "boom"


def test_monitor_without_store_still_classifies():
    record = PerformanceMonitor().record("search", 300)

    assert record.performance_level == "slow"


def test_stats_summarise_recent_operations(monitor):
    monitor.record("search", 100, {"cache": "miss"})
    monitor.record("search", 20, {"cache": "hit"})
    monitor.record("search", 600, {"cache": "miss"})
    monitor.record("search_suggestions", 1500, {})

    stats = monitor.get_search_performance_stats()

    assert stats["total_operations"] == 4
    assert stats["slow_operations_count"] == 2
    assert stats["cache_hit_ratio"] == pytest.approx(1 / 3, abs=1e-4)
    assert stats["performance_distribution"] == {"fast": 2, "slow": 1, "very_slow": 1}
    assert stats["top_slow_operations"][0]["operation"] == "search_suggestions"
    assert stats["average_execution_time"] == 555.0
