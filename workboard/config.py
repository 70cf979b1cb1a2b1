"""Board client configuration.

Values come from defaults, then an optional YAML file, then ``WORKBOARD_*``
environment variables.
"""

from __future__ import annotations

import dataclasses
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Mapping

import yaml

ENV_PREFIX = "WORKBOARD_"


@dataclass
class BoardConfig:
    """Configuration for a board session."""

    base_url: str = "http://localhost:3000"
    group_id: int | None = None
    token: str | None = None
    page_size: int = 20
    debounce_seconds: float = 0.5
    max_rating: int = 5
    request_timeout: float = 30.0
    log_level: str = "INFO"

    def __post_init__(self) -> None:
        if self.page_size <= 0:
            raise ValueError(f"page_size must be positive, got {self.page_size}")
        if self.debounce_seconds < 0:
            raise ValueError(f"debounce_seconds must not be negative, got {self.debounce_seconds}")
        if self.max_rating < 1:
            raise ValueError(f"max_rating must be at least 1, got {self.max_rating}")
        if self.request_timeout <= 0:
            raise ValueError(f"request_timeout must be positive, got {self.request_timeout}")
        self.log_level = self.log_level.upper()


_CASTS = {
    "group_id": int,
    "page_size": int,
    "max_rating": int,
    "debounce_seconds": float,
    "request_timeout": float,
}


def _cast(name: str, value):
    if value is None:
        return None
    cast = _CASTS.get(name)
    if cast is None:
        return str(value)
    try:
        return cast(value)
    except (TypeError, ValueError):
        raise ValueError(f"Invalid value for {name}: {value!r}") from None


def load_config(
    path: Path | str | None = None,
    env: Mapping[str, str] | None = None,
) -> BoardConfig:
    """Load configuration from a YAML file and the environment."""
    env = os.environ if env is None else env
    known = {f.name for f in dataclasses.fields(BoardConfig)}
    values: dict = {}

    if path is not None:
        raw = yaml.safe_load(Path(path).read_text(encoding="utf-8")) or {}
        if not isinstance(raw, dict):
            raise ValueError(f"Config file {path} must contain a mapping")
        unknown = set(raw) - known
        if unknown:
            raise ValueError(f"Unknown config keys in {path}: {', '.join(sorted(unknown))}")
        values.update({k: _cast(k, v) for k, v in raw.items()})

    for name in known:
        env_value = env.get(ENV_PREFIX + name.upper())
        if env_value not in (None, ""):
            values[name] = _cast(name, env_value)

    return BoardConfig(**values)
