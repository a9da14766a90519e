import os
from pathlib import Path
from typing import Union

from ..exceptions import ValidationError

PathLike = Union[str, "os.PathLike[str]"]


def get_fustor_home_dir() -> Path:
    """Return $FUSTOR_HOME, falling back to ~/.fustor."""
    home = os.environ.get("FUSTOR_HOME")
    if home:
        return Path(home).expanduser()
    return Path.home() / ".fustor"


def to_path_key(path: PathLike) -> str:
    """
    Normalize a caller-supplied path into the key used for request dedup.

    Relative paths are resolved against the current working directory at call
    time; `~` is expanded. Symlinks are not followed.
    """
    try:
        raw = os.fspath(path)
    except TypeError:
        raise ValidationError(f"Expected a path, got {type(path).__name__}")
    if isinstance(raw, bytes):
        raw = os.fsdecode(raw)
    if not raw:
        raise ValidationError("Path must not be empty")
    return os.path.abspath(os.path.expanduser(raw))
