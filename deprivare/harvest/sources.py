"""Row sources: published CSV files read from disk or downloaded over HTTP."""

from __future__ import annotations

import csv
from pathlib import Path
from typing import Iterator

from deprivare.common.errors import SourceError
from deprivare.harvest.http import HttpClient


def read_csv_rows(path: Path) -> Iterator[list[str]]:
    if not path.exists():
        raise SourceError(f"Missing CSV input: {path}")
    try:
        with path.open("r", encoding="utf-8-sig", newline="") as f:
            yield from csv.reader(f)
    except (OSError, UnicodeDecodeError, csv.Error) as exc:
        raise SourceError(f"Unable to read {path}: {exc}") from exc


def download_rows(client: HttpClient, url: str) -> Iterator[list[str]]:
    with client.stream_lines(url) as text:
        try:
            yield from csv.reader(text)
        except (UnicodeDecodeError, csv.Error) as exc:
            raise SourceError(f"Invalid CSV from {url}: {exc}") from exc
