"""Runtime settings read from DEPSENTINEL_* environment variables."""

from __future__ import annotations

import os
from dataclasses import dataclass, field

_TRUE_VALUES = {"1", "true", "yes", "on"}


def _env_int(key: str, default: int) -> int:
    return int(os.environ.get(key, default))


def _env_float(key: str, default: float) -> float:
    return float(os.environ.get(key, default))


def _env_bool(key: str, default: bool) -> bool:
    raw = os.environ.get(key)
    if raw is None:
        return default
    return raw.strip().lower() in _TRUE_VALUES


def _env_list(key: str) -> list[str]:
    raw = os.environ.get(key, "")
    return [item.strip() for item in raw.split(",") if item.strip()]


@dataclass(frozen=True)
class Settings:
    """Engine knobs; explicit keyword arguments to the engine override these."""

    max_depth: int = 8
    tool_timeout: float = 60.0
    use_tools: bool = False
    extra_ignore: list[str] = field(default_factory=list)

    @classmethod
    def from_env(cls) -> Settings:
        return cls(
            max_depth=_env_int("DEPSENTINEL_MAX_DEPTH", 8),
            tool_timeout=_env_float("DEPSENTINEL_TOOL_TIMEOUT", 60.0),
            use_tools=_env_bool("DEPSENTINEL_USE_TOOLS", False),
            extra_ignore=_env_list("DEPSENTINEL_EXTRA_IGNORE"),
        )
