"""Data models used across ingestion, storage and lookup."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Dict, Union

Scalar = Union[str, int, float]
AttributeSet = Dict[str, Scalar]


@dataclass(frozen=True)
class InstallationRecord:
    dataset_id: str
    installed_at: str


@dataclass(frozen=True)
class InstallResult:
    dataset_id: str
    rows_written: int
    duration_ms: int
