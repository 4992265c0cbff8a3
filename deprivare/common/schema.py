"""Minimal strict schemas for YAML config validation."""

from __future__ import annotations

from deprivare.common.errors import ConfigError


def _assert_mapping(obj, ctx: str) -> None:
    if not isinstance(obj, dict):
        raise ConfigError(f"{ctx} must be a mapping")


def _assert_required_keys(obj: dict, required: set[str], ctx: str) -> None:
    _assert_mapping(obj, ctx)
    missing = required - set(obj)
    if missing:
        missing_str = ", ".join(sorted(missing))
        raise ConfigError(f"Missing keys in {ctx}: {missing_str}")


def _assert_no_unknown_keys(obj: dict, known: set[str], ctx: str, allow_unknown: bool) -> None:
    if allow_unknown:
        return
    unknown = set(obj) - known
    if unknown:
        unknown_str = ", ".join(sorted(unknown))
        raise ConfigError(f"Unknown keys in {ctx}: {unknown_str}")


def _assert_positive_number(value, ctx: str) -> None:
    if isinstance(value, bool) or not isinstance(value, (int, float)) or value <= 0:
        raise ConfigError(f"{ctx} must be a positive number")


def validate_app_config(cfg: dict, *, allow_unknown: bool = False) -> dict:
    top_required = {"store", "http", "server", "datasets"}
    _assert_required_keys(cfg, top_required, "config")
    _assert_no_unknown_keys(cfg, top_required, "config", allow_unknown)

    _assert_required_keys(cfg["store"], {"path"}, "store")
    _assert_no_unknown_keys(cfg["store"], {"path"}, "store", allow_unknown)

    http_keys = {
        "connect_timeout_seconds",
        "read_timeout_seconds",
        "max_attempts",
        "max_wait_seconds",
    }
    _assert_required_keys(cfg["http"], http_keys, "http")
    _assert_no_unknown_keys(cfg["http"], http_keys, "http", allow_unknown)
    for key in sorted(http_keys):
        _assert_positive_number(cfg["http"][key], f"http.{key}")
    if not isinstance(cfg["http"]["max_attempts"], int):
        raise ConfigError("http.max_attempts must be an integer")

    _assert_required_keys(cfg["server"], {"host", "port"}, "server")
    _assert_no_unknown_keys(cfg["server"], {"host", "port"}, "server", allow_unknown)
    port = cfg["server"]["port"]
    if isinstance(port, bool) or not isinstance(port, int) or not 0 < port < 65536:
        raise ConfigError("server.port must be an integer between 1 and 65535")

    datasets = cfg["datasets"] or {}
    _assert_mapping(datasets, "datasets")
    for dataset_id, entry in datasets.items():
        ctx = f"datasets.{dataset_id}"
        _assert_required_keys(entry, {"url"}, ctx)
        _assert_no_unknown_keys(entry, {"url"}, ctx, allow_unknown)
        if entry["url"] is not None and not isinstance(entry["url"], str):
            raise ConfigError(f"{ctx}.url must be a string or null")
    cfg["datasets"] = datasets

    return cfg
