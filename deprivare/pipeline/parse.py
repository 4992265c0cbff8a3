"""Header checks and strict typed parsing of published dataset rows."""

from __future__ import annotations

import re
from typing import Sequence

from deprivare.common.constants import GEOGRAPHIC_KEY
from deprivare.common.errors import MalformedValue, SchemaMismatch
from deprivare.common.models import AttributeSet, Scalar
from deprivare.datasets.registry import DatasetDescriptor

INTEGER_RE = re.compile(r"^[+-]?[0-9]+$")
FLOAT_RE = re.compile(r"^[+-]?([0-9]+(\.[0-9]*)?|\.[0-9]+)([eE][+-]?[0-9]+)?$")


def parse_integer(raw: str) -> int:
    cleaned = raw.strip()
    if not INTEGER_RE.match(cleaned):
        raise ValueError(f"not an integer literal: {raw!r}")
    return int(cleaned)


def parse_float(raw: str) -> float:
    cleaned = raw.strip()
    if not FLOAT_RE.match(cleaned):
        raise ValueError(f"not a number literal: {raw!r}")
    return float(cleaned)


def parse_string(raw: str) -> str:
    return raw.strip()


CELL_READERS = {
    "string": parse_string,
    "integer": parse_integer,
    "float": parse_float,
}


def check_header(descriptor: DatasetDescriptor, header: Sequence[str] | None) -> None:
    expected = list(descriptor.headers)
    actual = list(header) if header is not None else None
    if actual is None:
        raise SchemaMismatch(f"{descriptor.id}: source is empty", expected=expected, actual=None)
    if actual != expected:
        raise SchemaMismatch(
            f"{descriptor.id}: invalid headers",
            expected=expected,
            actual=actual,
        )


class RowParser:
    """Turns rows of one dataset into attribute sets.

    Column positions are resolved once from the declared headers, so a parser
    must only be used on a source whose header passed ``check_header``.
    """

    def __init__(self, descriptor: DatasetDescriptor) -> None:
        self.descriptor = descriptor
        positions = {column: idx for idx, column in enumerate(descriptor.headers)}
        self.width = len(descriptor.headers)
        self.key_position = positions[descriptor.key_column]
        self.plan = [
            (descriptor.attribute(field.name), positions[field.column], field.column, CELL_READERS[field.value_type])
            for field in descriptor.fields
        ]

    def parse(self, row: Sequence[str], row_number: int | None = None) -> AttributeSet:
        where = f"{self.descriptor.id} row {row_number}" if row_number is not None else self.descriptor.id
        if len(row) != self.width:
            raise MalformedValue(f"{where}: expected {self.width} cells, got {len(row)}")

        lsoa = parse_string(row[self.key_position])
        if not lsoa:
            raise MalformedValue(f"{where}: blank {self.descriptor.key_column!r}")

        out: dict[str, Scalar] = {GEOGRAPHIC_KEY: lsoa}
        for attribute, position, column, reader in self.plan:
            cell = row[position]
            try:
                out[attribute] = reader(cell)
            except ValueError as exc:
                raise MalformedValue(f"{where}: column {column!r}: {exc}") from exc
        return out
