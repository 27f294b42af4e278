from __future__ import annotations
from dataclasses import dataclass
import yaml

from .watcher import DEFAULT_BACKOFF_SECONDS, PROBE_POLICIES, PROBE_RETRY, check_encoding


@dataclass
class WatchConfig:
    backoff_seconds: float = DEFAULT_BACKOFF_SECONDS
    probe_errors: str = PROBE_RETRY
    encoding: str = "utf-8"


def load_config(path: str) -> WatchConfig:
    try:
        with open(path, "r", encoding="utf-8") as f:
            data = yaml.safe_load(f) or {}
    except FileNotFoundError:
        raise FileNotFoundError(
            f"Configuration file not found: {path}\n"
            f"Please ensure the file exists or specify a different config with --config"
        )
    except yaml.YAMLError as e:
        raise ValueError(f"Invalid YAML in configuration file {path}: {e}")

    if not isinstance(data, dict):
        raise ValueError(f"Configuration file {path} must contain a mapping at the top level")

    try:
        backoff = float(data.get("backoff_seconds", DEFAULT_BACKOFF_SECONDS))
    except (TypeError, ValueError):
        raise ValueError(f"'backoff_seconds' must be a number, got {data.get('backoff_seconds')!r}")
    if backoff <= 0:
        raise ValueError(f"'backoff_seconds' must be positive, got {backoff}")

    probe_errors = str(data.get("probe_errors", PROBE_RETRY))
    if probe_errors not in PROBE_POLICIES:
        raise ValueError(
            f"'probe_errors' must be one of {', '.join(PROBE_POLICIES)}, got {probe_errors!r}"
        )

    encoding = str(data.get("encoding", "utf-8"))
    try:
        check_encoding(encoding)
    except ValueError as e:
        raise ValueError(f"Invalid 'encoding' in configuration file {path}: {e}")

    return WatchConfig(backoff_seconds=backoff, probe_errors=probe_errors, encoding=encoding)
