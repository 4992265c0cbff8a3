"""CLI entrypoint for the deprivation dataset store."""

from __future__ import annotations

import argparse
import json
import sys
from pathlib import Path

from deprivare.common.config_loader import AppConfig, load_config
from deprivare.common.constants import COMMANDS, EXIT_HARD_FAIL, EXIT_SUCCESS, EXIT_USAGE
from deprivare.common.errors import ConfigError, DeprivareError, UnknownDataset
from deprivare.common.ids import generate_run_id
from deprivare.common.logging import build_logger, get_logger, log_event
from deprivare.datasets.catalog import default_registry
from deprivare.datasets.registry import DatasetRegistry, sorted_for_display
from deprivare.harvest.http import HttpClient
from deprivare.harvest.sources import download_rows, read_csv_rows
from deprivare.pipeline.install import install
from deprivare.pipeline.lookup import lookup
from deprivare.store.sqlite_store import DeprivationStore

USAGE_ERRORS = (ConfigError, UnknownDataset)


def parse_args(argv: list[str]) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description=__doc__)
    parser.add_argument("command", choices=COMMANDS)
    parser.add_argument("--db", default=None, help="store file, eg. depriv.db")
    parser.add_argument("--dataset", default=None, help="dataset identifier, eg. uk-composite-imd-2020-mysoc")
    parser.add_argument("--file", default=None, help="install from a local CSV instead of downloading")
    parser.add_argument("--lsoa", default=None)
    parser.add_argument("--host", default=None)
    parser.add_argument("--port", type=int, default=None)
    parser.add_argument("--config-dir", default="./config")
    parser.add_argument("--overlay-config-dir", default=None)
    parser.add_argument("--log-level", default="INFO", choices=["DEBUG", "INFO", "WARN", "ERROR"])
    return parser.parse_args(argv)


def _load_config(args: argparse.Namespace) -> AppConfig:
    overlay_config_dir = Path(args.overlay_config_dir) if args.overlay_config_dir else None
    return load_config(Path(args.config_dir), overlay_config_dir=overlay_config_dir)


def _db_path(args: argparse.Namespace) -> Path:
    if args.db:
        return Path(args.db)
    return _load_config(args).store_path


def _require(args: argparse.Namespace, *names: str) -> None:
    missing = [f"--{name}" for name in names if not getattr(args, name)]
    if missing:
        raise ConfigError(f"Missing parameters for {args.command}: {', '.join(missing)}")


def print_table(headers: list[str], rows: list[list[str]]) -> None:
    widths = [max([len(header), *(len(row[idx]) for row in rows)]) for idx, header in enumerate(headers)]
    print(" | ".join(header.ljust(width) for header, width in zip(headers, widths)))
    print("-+-".join("-" * width for width in widths))
    for row in rows:
        print(" | ".join(cell.ljust(width) for cell, width in zip(row, widths)))


def command_list(args: argparse.Namespace, registry: DatasetRegistry) -> int:
    descriptors = sorted_for_display(registry.list_all())
    print_table(["id", "year", "title"], [[d.id, str(d.year), d.title] for d in descriptors])
    return EXIT_SUCCESS


def command_info(args: argparse.Namespace, registry: DatasetRegistry) -> int:
    _require(args, "dataset")
    descriptor = registry.get(args.dataset)
    print(descriptor.title)
    print("-" * len(descriptor.title))
    print(descriptor.description)
    return EXIT_SUCCESS


def command_install(args: argparse.Namespace, registry: DatasetRegistry, logger) -> int:
    _require(args, "dataset")
    descriptor = registry.get(args.dataset)
    db_path = _db_path(args)

    with DeprivationStore.open_or_create(db_path, registry.schema(), read_only=False) as store:
        if args.file:
            result = install(store, descriptor.id, read_csv_rows(Path(args.file)), registry=registry, logger=logger)
        else:
            cfg = _load_config(args)
            url = cfg.dataset_url(descriptor)
            if not url:
                raise ConfigError(f"No download URL for {descriptor.id}; use --file")
            with HttpClient.from_settings(cfg.http) as client:
                result = install(store, descriptor.id, download_rows(client, url), registry=registry, logger=logger)
    print(f"Installed {result.dataset_id}: {result.rows_written} rows")
    return EXIT_SUCCESS


def command_installed(args: argparse.Namespace, registry: DatasetRegistry) -> int:
    with DeprivationStore.open_or_create(_db_path(args), registry.schema()) as store:
        latest: dict[str, str] = {}
        for record in store.installations():
            latest[record.dataset_id] = record.installed_at
    rows = []
    for dataset_id in sorted(latest):
        title = registry.get(dataset_id).title if dataset_id in registry else ""
        rows.append([dataset_id, title, latest[dataset_id]])
    print_table(["id", "name", "installed"], rows)
    return EXIT_SUCCESS


def command_lookup(args: argparse.Namespace, registry: DatasetRegistry) -> int:
    _require(args, "lsoa")
    with DeprivationStore.open_or_create(_db_path(args), registry.schema()) as store:
        result = lookup(store, args.lsoa)
    print(json.dumps(result, ensure_ascii=False, indent=2, sort_keys=True))
    return EXIT_SUCCESS


def command_serve(args: argparse.Namespace, registry: DatasetRegistry) -> int:
    import uvicorn

    from deprivare.api.app import create_app

    db_path = _db_path(args)
    host, port = args.host, args.port
    if host is None or port is None:
        cfg = _load_config(args)
        host = host or cfg.server_host
        port = port or cfg.server_port
    uvicorn.run(create_app(db_path, registry), host=host, port=port)
    return EXIT_SUCCESS


def execute_command(args: argparse.Namespace, registry: DatasetRegistry, logger) -> int:
    if args.command == "list":
        return command_list(args, registry)
    if args.command == "info":
        return command_info(args, registry)
    if args.command == "install":
        return command_install(args, registry, logger)
    if args.command == "installed":
        return command_installed(args, registry)
    if args.command == "lookup":
        return command_lookup(args, registry)
    if args.command == "serve":
        return command_serve(args, registry)
    raise ValueError(f"Unknown command: {args.command}")


def run_command(args: argparse.Namespace, registry: DatasetRegistry | None = None) -> int:
    run_id = generate_run_id()
    registry = registry or default_registry()
    logger = build_logger(run_id, level=args.log_level)

    try:
        return execute_command(args, registry, logger)
    except DeprivareError as exc:
        log_event(
            logger,
            f"{args.command} failed: {exc}",
            run_id=run_id,
            command=args.command,
            dataset=args.dataset,
            event="COMMAND_FAIL",
            status="error",
            error_code=exc.error_code,
        )
        print(f"Error: {exc}", file=sys.stderr)
        if isinstance(exc, USAGE_ERRORS):
            return EXIT_USAGE
        return EXIT_HARD_FAIL


def main(argv: list[str] | None = None) -> int:
    args = parse_args(argv or sys.argv[1:])
    try:
        return run_command(args)
    except Exception:
        get_logger().exception("unexpected failure running %s", args.command)
        return EXIT_HARD_FAIL


if __name__ == "__main__":
    raise SystemExit(main())
