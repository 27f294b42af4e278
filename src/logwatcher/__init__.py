"""Tail a growing log file across rotations."""

__all__ = [
    "__version__",
    "Action",
    "Line",
    "RotationDetected",
    "Watcher",
    "WatchConfig",
    "load_config",
]

try:
    from importlib.metadata import version as _pkg_version

    __version__ = _pkg_version("logwatcher")
except Exception:  # pragma: no cover
    __version__ = "0.0.0"

from logwatcher.watcher import Action, Line, RotationDetected, Watcher  # noqa: E402
from logwatcher.config import WatchConfig, load_config  # noqa: E402
