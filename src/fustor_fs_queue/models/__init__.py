from .config import SchedulerConfig, load_scheduler_config
from .states import SchedulerState, RequestKind

__all__ = ["SchedulerConfig", "load_scheduler_config", "SchedulerState", "RequestKind"]
