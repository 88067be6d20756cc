from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

from .utils import load_json


@dataclass(frozen=True)
class EngineConfig:
    render: dict[str, Any] = field(default_factory=dict)
    extract: dict[str, Any] = field(default_factory=dict)
    compile: dict[str, Any] = field(default_factory=dict)
    pagination: dict[str, Any] = field(default_factory=dict)


def default_config() -> EngineConfig:
    return EngineConfig()


def load_config(config_path: str | Path | None) -> EngineConfig:
    if config_path is None or not Path(config_path).exists():
        return default_config()
    data = load_json(config_path)
    return EngineConfig(
        render=data.get("render", {}),
        extract=data.get("extract", {}),
        compile=data.get("compile", {}),
        pagination=data.get("pagination", {}),
    )
