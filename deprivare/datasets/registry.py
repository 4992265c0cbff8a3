"""Dataset descriptors and the registry that resolves them by identifier."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Iterable

from deprivare.common.constants import GEOGRAPHIC_KEY, VALUE_TYPES
from deprivare.common.errors import ConfigError, UnknownDataset


@dataclass(frozen=True)
class FieldSpec:
    """One typed attribute read from a named source column."""

    name: str
    column: str
    value_type: str


@dataclass(frozen=True)
class DatasetDescriptor:
    id: str
    title: str
    year: int
    description: str
    headers: tuple[str, ...]
    key_column: str
    fields: tuple[FieldSpec, ...]
    url: str | None = None

    def __post_init__(self) -> None:
        if self.key_column not in self.headers:
            raise ConfigError(f"{self.id}: key column {self.key_column!r} is not a declared header")
        names = [field.name for field in self.fields]
        dupes = {name for name in names if names.count(name) > 1}
        if dupes:
            raise ConfigError(f"{self.id}: duplicate fields: {', '.join(sorted(dupes))}")
        for field in self.fields:
            if field.column not in self.headers:
                raise ConfigError(f"{self.id}: field {field.name!r} reads undeclared column {field.column!r}")
            if field.value_type not in VALUE_TYPES:
                raise ConfigError(f"{self.id}: field {field.name!r} has unknown type {field.value_type!r}")

    def attribute(self, field_name: str) -> str:
        return f"{self.id}/{field_name}"

    def schema(self) -> dict[str, str]:
        return {self.attribute(field.name): field.value_type for field in self.fields}


class DatasetRegistry:
    """Ordered catalogue of known datasets."""

    def __init__(self, descriptors: Iterable[DatasetDescriptor] = ()) -> None:
        self._descriptors: dict[str, DatasetDescriptor] = {}
        for descriptor in descriptors:
            self.register(descriptor)

    def register(self, descriptor: DatasetDescriptor) -> None:
        if descriptor.id in self._descriptors:
            raise ConfigError(f"Dataset already registered: {descriptor.id}")
        self._descriptors[descriptor.id] = descriptor

    def get(self, dataset_id: str) -> DatasetDescriptor:
        try:
            return self._descriptors[dataset_id]
        except KeyError:
            raise UnknownDataset(dataset_id) from None

    def list_all(self) -> list[DatasetDescriptor]:
        return list(self._descriptors.values())

    def schema(self) -> dict[str, str]:
        out = {GEOGRAPHIC_KEY: "string"}
        for descriptor in self._descriptors.values():
            out.update(descriptor.schema())
        return out

    def __contains__(self, dataset_id: object) -> bool:
        return dataset_id in self._descriptors


def sorted_for_display(descriptors: Iterable[DatasetDescriptor]) -> list[DatasetDescriptor]:
    return sorted(descriptors, key=lambda d: (-d.year, d.id))
