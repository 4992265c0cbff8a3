"""Configuration loading and validation."""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import Any

from deprivare.common.errors import ConfigError
from deprivare.common.fs import read_yaml
from deprivare.common.schema import validate_app_config

CONFIG_FILENAME = "deprivare.yml"


@dataclass(frozen=True)
class HttpSettings:
    connect_timeout_seconds: float
    read_timeout_seconds: float
    max_attempts: int
    max_wait_seconds: float


@dataclass(frozen=True)
class AppConfig:
    store_path: Path
    http: HttpSettings
    server_host: str
    server_port: int
    dataset_urls: dict[str, str | None]

    def dataset_url(self, descriptor) -> str | None:
        """Configured download URL for a dataset, falling back to its built-in URL."""
        if descriptor.id in self.dataset_urls:
            return self.dataset_urls[descriptor.id]
        return descriptor.url


def _deep_merge(base: Any, overlay: Any) -> Any:
    if isinstance(base, dict) and isinstance(overlay, dict):
        merged = dict(base)
        for key, value in overlay.items():
            if key in merged:
                merged[key] = _deep_merge(merged[key], value)
            else:
                merged[key] = value
        return merged
    return overlay


def _load_yaml_with_overlay(path: Path, overlay_path: Path | None) -> dict:
    if not path.exists():
        raise ConfigError(f"Config file not found: {path}")
    base = read_yaml(path)
    if overlay_path is None or not overlay_path.exists():
        return base
    overlay = read_yaml(overlay_path)
    return _deep_merge(base, overlay)


def load_config(
    config_dir: Path,
    *,
    allow_unknown: bool = False,
    overlay_config_dir: Path | None = None,
) -> AppConfig:
    overlay_path = None
    if overlay_config_dir is not None:
        overlay_path = overlay_config_dir / CONFIG_FILENAME
    cfg = validate_app_config(
        _load_yaml_with_overlay(config_dir / CONFIG_FILENAME, overlay_path),
        allow_unknown=allow_unknown,
    )
    http = cfg["http"]
    return AppConfig(
        store_path=Path(cfg["store"]["path"]),
        http=HttpSettings(
            connect_timeout_seconds=float(http["connect_timeout_seconds"]),
            read_timeout_seconds=float(http["read_timeout_seconds"]),
            max_attempts=http["max_attempts"],
            max_wait_seconds=float(http["max_wait_seconds"]),
        ),
        server_host=str(cfg["server"]["host"]),
        server_port=cfg["server"]["port"],
        dataset_urls={key: entry["url"] for key, entry in cfg["datasets"].items()},
    )
