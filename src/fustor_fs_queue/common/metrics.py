"""
Metrics abstraction for the I/O scheduler.

The scheduler reports pass, fault and per-operation counters through whatever
Metrics implementation is installed; by default nothing is recorded.
"""
from abc import ABC, abstractmethod
from collections import defaultdict
from typing import Dict, Optional
import logging

logger = logging.getLogger(__name__)


class Metrics(ABC):
    """Abstract base class for metrics recording."""

    @abstractmethod
    def counter(self, name: str, value: float = 1.0, tags: Optional[Dict[str, str]] = None) -> None:
        """Increment a counter."""
        pass

    @abstractmethod
    def gauge(self, name: str, value: float, tags: Optional[Dict[str, str]] = None) -> None:
        """Set a gauge value."""
        pass


class NoOpMetrics(Metrics):

    def counter(self, name: str, value: float = 1.0, tags: Optional[Dict[str, str]] = None) -> None:
        pass

    def gauge(self, name: str, value: float, tags: Optional[Dict[str, str]] = None) -> None:
        pass


class LoggingMetrics(Metrics):
    """Writes every sample to a logger at DEBUG (useful when tracing pass behaviour)."""

    def __init__(self, logger_name: str = "fustor_fs_queue.metrics"):
        self.logger = logging.getLogger(logger_name)

    def _format_tags(self, tags: Optional[Dict[str, str]]) -> str:
        if not tags:
            return ""
        return " ".join([f"{k}={v}" for k, v in tags.items()])

    def counter(self, name: str, value: float = 1.0, tags: Optional[Dict[str, str]] = None) -> None:
        self.logger.debug(f"METRIC counter {name} +{value} {self._format_tags(tags)}")

    def gauge(self, name: str, value: float, tags: Optional[Dict[str, str]] = None) -> None:
        self.logger.debug(f"METRIC gauge {name} ={value} {self._format_tags(tags)}")


class InMemoryMetrics(Metrics):
    """Keeps running totals in a dict; tags are ignored."""

    def __init__(self):
        self.counters: Dict[str, float] = defaultdict(float)
        self.gauges: Dict[str, float] = {}

    def counter(self, name: str, value: float = 1.0, tags: Optional[Dict[str, str]] = None) -> None:
        self.counters[name] += value

    def gauge(self, name: str, value: float, tags: Optional[Dict[str, str]] = None) -> None:
        self.gauges[name] = value


_GLOBAL_METRICS: Metrics = NoOpMetrics()


def get_metrics() -> Metrics:
    """Get the global metrics instance."""
    return _GLOBAL_METRICS


def set_global_metrics(metrics: Metrics) -> None:
    """Set the global metrics instance."""
    global _GLOBAL_METRICS
    _GLOBAL_METRICS = metrics
