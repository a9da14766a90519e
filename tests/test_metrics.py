import logging
from unittest.mock import MagicMock

from fustor_fs_queue.common.metrics import (
    InMemoryMetrics,
    LoggingMetrics,
    Metrics,
    NoOpMetrics,
    get_metrics,
    set_global_metrics,
)
from fustor_fs_queue.scheduler import IOScheduler


def test_noop_metrics_does_not_crash():
    m = NoOpMetrics()
    m.counter("fs_queue.pass", 1)
    m.gauge("fs_queue.pending", 42)


def test_logging_metrics(caplog):
    caplog.set_level(logging.DEBUG)
    m = LoggingMetrics("test_logger")

    m.counter("fs_queue.read", 1, tags={"path": "/a"})
    m.gauge("fs_queue.pending", 3)

    assert "METRIC counter fs_queue.read +1 path=/a" in caplog.text
    assert "METRIC gauge fs_queue.pending =3" in caplog.text


def test_in_memory_metrics_accumulates():
    m = InMemoryMetrics()
    m.counter("fs_queue.pass")
    m.counter("fs_queue.pass", 2)
    m.gauge("fs_queue.pending", 5)
    m.gauge("fs_queue.pending", 1)

    assert m.counters["fs_queue.pass"] == 3
    assert m.gauges["fs_queue.pending"] == 1


def test_scheduler_falls_back_to_global_metrics():
    original = get_metrics()
    try:
        mock_metrics = MagicMock(spec=Metrics)
        set_global_metrics(mock_metrics)

        assert IOScheduler().metrics is mock_metrics
        own = InMemoryMetrics()
        assert IOScheduler(metrics=own).metrics is own
    finally:
        set_global_metrics(original)
