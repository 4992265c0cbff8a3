"""Merge-on-read lookup of every installed dataset for one LSOA."""

from __future__ import annotations

from deprivare.common.constants import GEOGRAPHIC_KEY
from deprivare.common.models import AttributeSet
from deprivare.store.sqlite_store import DeprivationStore


def merge_attribute_sets(attribute_sets: list[AttributeSet]) -> AttributeSet:
    merged: AttributeSet = {}
    for attrs in attribute_sets:
        for name, value in attrs.items():
            if name == GEOGRAPHIC_KEY and name in merged:
                continue
            merged[name] = value
    return merged


def lookup(store: DeprivationStore, key: str) -> AttributeSet:
    """Return one flat mapping for ``key``; empty when nothing is stored for it."""
    return merge_attribute_sets(store.find_by_geographic_key(key))
