"""Lookup of previously uploaded parts, used when resuming a multipart upload."""

from __future__ import annotations

from collections.abc import Iterable

from object_uploader.types import PartRecord

__all__ = ("PartRegistry", "build_part_registry")

PartRegistry = dict[int, PartRecord]


def build_part_registry(entries: Iterable[PartRecord] | None) -> PartRegistry:
    """Index a part listing by part number.

    Listings may repeat a part number (a part uploaded twice); the first
    occurrence wins. A missing listing means nothing can be reused and
    yields an empty registry.

    Args:
        entries: Parts reported by the store, in any order

    Returns:
        Mapping of part number to its recorded PartRecord
    """
    registry: PartRegistry = {}
    for record in entries or ():
        registry.setdefault(record.part_number, record)
    return registry
