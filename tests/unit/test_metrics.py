"""
Unit tests for MetricsCollector and the latency budget helpers.

Tests metrics collection functionality including:
- Thread-safety under concurrent access
- Bounded storage with LRU eviction
- SLA breach accounting and the timed_operation decorator
"""

import logging
import threading

import pytest

from context_space.observability.metrics import (

    MetricsCollector,

    get_metrics_collector,

    record_operation,

    timed_operation,

)


class TestMetricsCollectorThreadSafety:
    """Test thread-safety of metrics collection."""

    def test_concurrent_record_operation(self):
        collector = MetricsCollector()
        num_threads = 10
        operations_per_thread = 100
        barrier = threading.Barrier(num_threads)

        def record_operations(thread_id: int):
            barrier.wait()
            for i in range(operations_per_thread):
                collector.record_operation(
                    f"short_term.write_session.{thread_id}", duration_ms=1.0 + i
                )

        threads = [
            threading.Thread(target=record_operations, args=(i,)) for i in range(num_threads)
        ]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join()

        metrics = collector.get_metrics()
        total_recorded = sum(m["count"] for m in metrics["metrics"].values())
        assert total_recorded == num_threads * operations_per_thread


class TestMetricsCollectorBoundedStorage:
    """Test bounded storage and LRU eviction."""

    def test_max_metrics_limit(self):
        collector = MetricsCollector(max_metrics=5)
        for i in range(8):
            collector.record_operation(f"test.op_{i}", duration_ms=10.0)
        assert len(collector.get_metrics()["metrics"]) == 5

    def test_lru_eviction_order(self):
        """The least recently recorded key is evicted first."""
        collector = MetricsCollector(max_metrics=3)
        collector.record_operation("test.op_0", duration_ms=10.0)
        collector.record_operation("test.op_1", duration_ms=10.0)
        collector.record_operation("test.op_2", duration_ms=10.0)
        collector.record_operation("test.op_0", duration_ms=10.0)

        collector.record_operation("test.op_3", duration_ms=10.0)

        keys = set(collector.get_metrics()["metrics"])
        assert keys == {"test.op_0", "test.op_2", "test.op_3"}

    def test_no_eviction_on_update(self):
        collector = MetricsCollector(max_metrics=3)
        for i in range(3):
            collector.record_operation(f"test.op_{i}", duration_ms=10.0)
        collector.record_operation("test.op_0", duration_ms=20.0)

        metrics = collector.get_metrics()["metrics"]
        assert len(metrics) == 3
        assert metrics["test.op_0"]["count"] == 2
        assert metrics["test.op_0"]["max_duration_ms"] == 20.0


class TestMetricsCollectorFunctionality:
    def test_record_operation_with_tags(self):
        collector = MetricsCollector()
        collector.record_operation("pipeline.store", 12.5, channel="web")
        collector.record_operation("pipeline.store", 7.5, success=False, channel="web")

        metric = collector.get_metrics()["metrics"]["pipeline.store[channel=web]"]
        assert metric["count"] == 2
        assert metric["avg_duration_ms"] == 10.0
        assert metric["error_count"] == 1
        assert metric["error_rate_percent"] == 50.0

    def test_get_summary_aggregates_tagged_keys(self):
        collector = MetricsCollector()
        collector.record_operation("pipeline.store", 10.0, channel="web")
        collector.record_operation("pipeline.store", 30.0, channel="email")

        summary = collector.get_summary()["summary"]["pipeline.store"]
        assert summary["count"] == 2
        assert summary["min_duration_ms"] == 10.0
        assert summary["max_duration_ms"] == 30.0

    def test_get_operation_count_and_reset(self):
        collector = MetricsCollector()
        collector.record_operation("long_term.query", 1.0)
        collector.record_operation("long_term.query", 1.0, store="long_term")
        assert collector.get_operation_count("long_term.query") == 2
        collector.reset()
        assert collector.get_operation_count("long_term.query") == 0


class TestLatencyBudgets:
    def test_within_budget(self):
        assert record_operation("identity.resolve", 2.0, budget_ms=10.0) is True
        metric = get_metrics_collector().get_metrics()["metrics"]["identity.resolve"]
        assert metric["sla_breaches"] == 0

    def test_breach_is_logged_and_counted(self, caplog):
        with caplog.at_level(logging.WARNING, logger="context_space.observability.metrics"):
            within = record_operation("short_term.write_session", 9.0, budget_ms=5.0)

        assert within is False
        assert any("exceeded SLA" in r.getMessage() for r in caplog.records)
        metric = get_metrics_collector().get_metrics()["metrics"]["short_term.write_session"]
        assert metric["sla_breaches"] == 1
        # Breaches are reported, not treated as failures.
        assert metric["error_count"] == 0

    def test_global_collector_singleton(self):
        assert get_metrics_collector() is get_metrics_collector()


class TestTimedOperation:
    @pytest.mark.asyncio
    async def test_async_function_is_recorded(self):
        @timed_operation("test.async_op", budget_ms=1000.0)
        async def operation(value):
            return value * 2

        assert await operation(21) == 42
        assert operation.__name__ == "operation"
        assert get_metrics_collector().get_operation_count("test.async_op") == 1

    @pytest.mark.asyncio
    async def test_async_failure_is_recorded_and_raised(self):
        @timed_operation("test.async_fail")
        async def operation():
            raise ValueError("boom")

        with pytest.raises(ValueError):
            await operation()
        metric = get_metrics_collector().get_metrics()["metrics"]["test.async_fail"]
        assert metric["error_count"] == 1

    def test_sync_function_is_recorded(self):
        @timed_operation("test.sync_op")
        def operation():
            return "done"

        assert operation() == "done"
        assert get_metrics_collector().get_operation_count("test.sync_op") == 1
