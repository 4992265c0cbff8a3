"""Install a dataset's rows into a store as one all-or-nothing run."""

from __future__ import annotations

import logging
import time
from typing import Iterable, Iterator, Sequence

from deprivare.common.errors import DeprivareError
from deprivare.common.ids import generate_run_id
from deprivare.common.logging import build_logger, log_event
from deprivare.common.models import AttributeSet, InstallResult
from deprivare.common.time_utils import elapsed_ms
from deprivare.datasets.catalog import default_registry
from deprivare.datasets.registry import DatasetRegistry
from deprivare.pipeline.parse import RowParser, check_header
from deprivare.store.sqlite_store import DeprivationStore


def _parsed_rows(parser: RowParser, rows: Iterator[Sequence[str]], counter: list[int]) -> Iterator[AttributeSet]:
    # Data rows are numbered from 2; the header is row 1.
    for row_number, row in enumerate(rows, start=2):
        counter[0] += 1
        yield parser.parse(row, row_number=row_number)


def install(
    store: DeprivationStore,
    dataset_id: str,
    rows: Iterable[Sequence[str]],
    *,
    registry: DatasetRegistry | None = None,
    logger: logging.Logger | None = None,
) -> InstallResult:
    """Check, parse and write every row of a source, then record the installation.

    ``rows`` yields the header row first. Nothing is written unless the header
    matches and every row parses and conforms to the store schema.
    """
    registry = registry or default_registry()
    logger = logger or build_logger(generate_run_id())
    started = time.monotonic()

    descriptor = registry.get(dataset_id)
    log_event(logger, f"installing dataset: {descriptor.title}", dataset=dataset_id, event="INSTALL_START", status="ok")

    rows_in = [0]
    written = 0
    try:
        iterator = iter(rows)
        check_header(descriptor, next(iterator, None))
        parser = RowParser(descriptor)
        written = store.transact(_parsed_rows(parser, iterator, rows_in), dataset_id=dataset_id)
        store.record_installation(dataset_id)
    except DeprivareError as exc:
        log_event(
            logger,
            f"install failed: {exc}",
            dataset=dataset_id,
            event="INSTALL_FAIL",
            status="error",
            rows_in=rows_in[0],
            rows_out=written,
            duration_ms=elapsed_ms(started),
            error_code=exc.error_code,
        )
        raise

    result = InstallResult(dataset_id=dataset_id, rows_written=written, duration_ms=elapsed_ms(started))
    log_event(
        logger,
        "import complete",
        dataset=dataset_id,
        event="INSTALL_END",
        status="ok",
        rows_in=rows_in[0],
        rows_out=written,
        duration_ms=result.duration_ms,
    )
    return result
