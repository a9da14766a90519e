# fustor_fs_queue.common - logging, metrics and path helpers

from .logging_config import setup_logging
from .metrics import Metrics, NoOpMetrics, LoggingMetrics, InMemoryMetrics, get_metrics, set_global_metrics
from .paths import get_fustor_home_dir, to_path_key

__all__ = [
    "setup_logging",
    "Metrics",
    "NoOpMetrics",
    "LoggingMetrics",
    "InMemoryMetrics",
    "get_metrics",
    "set_global_metrics",
    "get_fustor_home_dir",
    "to_path_key",
]
