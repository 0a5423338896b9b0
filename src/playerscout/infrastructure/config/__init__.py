from __future__ import annotations

from .load import load_config
from .schema import (
    AppConfig,
    CollapsConfig,
    EnvOverrides,
    RezkaConfig,
    SourceConfig,
    VideoHubConfig,
)

__all__ = [
    "AppConfig",
    "CollapsConfig",
    "EnvOverrides",
    "RezkaConfig",
    "SourceConfig",
    "VideoHubConfig",
    "load_config",
]
