from enum import Enum


class SchedulerState(str, Enum):
    """State of the drain loop."""
    IDLE = "IDLE"
    RUNNING = "RUNNING"
    BACKOFF_WAIT = "BACKOFF_WAIT"
    CLOSED = "CLOSED"


class RequestKind(str, Enum):
    """Operation kinds, in the order a pass drains them."""
    STAT = "stat"
    WRITE = "write"
    READ = "read"
