"""
Scheduler configuration.

Config file: $FUSTOR_HOME/fs-queue.yaml (or an explicit path)

Example:
  fs_queue:
    backoff_delay_sec: 2.0
    max_read_attempts: 50
    read_retry_delay_sec: 0.5
    atomic_writes: true
"""
import logging
from pathlib import Path
from typing import Optional, Union

import yaml
from pydantic import BaseModel, ConfigDict, Field
from pydantic import ValidationError as PydanticValidationError

from ..common.paths import get_fustor_home_dir
from ..exceptions import ConfigError

logger = logging.getLogger("fustor_fs_queue.config")

CONFIG_FILE_NAME = "fs-queue.yaml"
CONFIG_SECTION = "fs_queue"


class SchedulerConfig(BaseModel):
    model_config = ConfigDict(extra='forbid')

    backoff_delay_sec: float = Field(default=1.0, ge=0, description="Delay before retrying a pass aborted by a systemic fault")
    max_read_attempts: Optional[int] = Field(default=None, gt=0, description="Reject a read after this many failed attempts; None retries forever")
    read_retry_delay_sec: float = Field(default=0.0, ge=0, description="Delay before a pass that only retries deferred reads")
    create_parents: bool = Field(default=True, description="LocalFileBackend: create missing parent directories on write")
    atomic_writes: bool = Field(default=False, description="LocalFileBackend: write through a temp file and rename")


def default_config_path() -> Path:
    return get_fustor_home_dir() / CONFIG_FILE_NAME


def load_scheduler_config(path: Optional[Union[str, Path]] = None) -> SchedulerConfig:
    """
    Load SchedulerConfig from YAML.

    The file may hold the fields at top level or under an `fs_queue:` section.
    A missing file yields the defaults; unreadable or invalid content raises
    ConfigError.
    """
    config_path = Path(path) if path is not None else default_config_path()
    if not config_path.exists():
        logger.debug(f"Config file not found: {config_path}. Using defaults.")
        return SchedulerConfig()

    try:
        with open(config_path) as f:
            data = yaml.safe_load(f) or {}
    except (OSError, yaml.YAMLError) as e:
        raise ConfigError(f"Failed to read {config_path}: {e}", context={"path": str(config_path)})

    if not isinstance(data, dict):
        raise ConfigError(f"{config_path} must contain a mapping", context={"path": str(config_path)})
    if CONFIG_SECTION in data:
        data = data[CONFIG_SECTION] or {}

    try:
        config = SchedulerConfig.model_validate(data)
    except PydanticValidationError as e:
        raise ConfigError(f"Invalid scheduler config in {config_path}: {e}", context={"path": str(config_path)})

    logger.info(f"Loaded scheduler config from {config_path}")
    return config
