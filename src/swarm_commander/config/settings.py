"""Application configuration and defaults."""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from pathlib import Path


def _env(key: str, default: str) -> str:
    return os.environ.get(f"SCOM_{key}", default)


def _default_config_file() -> Path:
    """Return the default health-check rules file.

    Checks SCOM_CONFIG first, then XDG_CONFIG_HOME, then ~/.config.
    """
    explicit = os.environ.get("SCOM_CONFIG", "")
    if explicit:
        return Path(explicit)
    xdg = os.environ.get("XDG_CONFIG_HOME", "")
    if xdg:
        return Path(xdg) / "scom" / "swarm.yaml"
    return Path.home() / ".config" / "scom" / "swarm.yaml"


@dataclass
class Settings:
    docker_bin: str = field(default_factory=lambda: _env("DOCKER_BIN", "docker"))
    query_timeout: float = field(default_factory=lambda: float(_env("QUERY_TIMEOUT", "10")))
    max_workers: int = field(default_factory=lambda: int(_env("MAX_WORKERS", "8")))
    tag_label: str = field(default_factory=lambda: _env("TAG_LABEL", "tags"))
    swarm_port: int = field(default_factory=lambda: int(_env("SWARM_PORT", "2377")))
    config_file: Path = field(default_factory=_default_config_file)


# Global singleton
settings = Settings()
