"""
Fustor FS Queue - a coalescing, retrying I/O scheduler for file access.

This package provides:
- IOScheduler: deduplicated stat/read, independent writes, ordered drain passes
- File backends (backend.py) with a local filesystem implementation
- Completion notification at quiescence (notifier.py)
- Configuration models and loader (models/)
- Common utilities: logging, metrics, path keys (common/)
- Exception hierarchy (exceptions.py)
"""

from .backend import FileBackend, LocalFileBackend, FileMetadata, NotFound, NOT_FOUND
from .exceptions import (
    FustorException,
    ConfigError,
    ValidationError,
    StateConflictError,
    BackendError,
    SystemicBackendFault,
    ReadRetriesExhaustedError,
)
from .models import SchedulerConfig, SchedulerState, load_scheduler_config
from .scheduler import IOScheduler, create_scheduler

__all__ = [
    "IOScheduler",
    "create_scheduler",
    "FileBackend",
    "LocalFileBackend",
    "FileMetadata",
    "NotFound",
    "NOT_FOUND",
    "SchedulerConfig",
    "SchedulerState",
    "load_scheduler_config",
    "FustorException",
    "ConfigError",
    "ValidationError",
    "StateConflictError",
    "BackendError",
    "SystemicBackendFault",
    "ReadRetriesExhaustedError",
]
