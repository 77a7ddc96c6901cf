"""Completeness rules for packaging and labeling batches.

A batch is complete when every field its product line requires has a value.
Packaging requires the finished quantity plus the line's packing materials;
labeling requires the line's accessories.
"""

from __future__ import annotations

from typing import Iterable, Mapping


def is_complete(batch) -> bool:
    return not missing_required_fields(batch)


def missing_required_fields(batch, supplied: Mapping[str, object] | None = None) -> list[str]:
    """Required fields that are neither supplied nor already recorded on ``batch``."""

    supplied = supplied or {}
    missing: list[str] = []
    for field_name in batch.required_fields:
        if field_name in supplied:
            if supplied[field_name] is None:
                missing.append(field_name)
            continue
        if getattr(batch, field_name) is None:
            missing.append(field_name)
    return missing


def foreign_branch_fields(
    field_names: Iterable[str],
    *,
    own: Iterable[str],
    universe: Iterable[str],
) -> list[str]:
    """Fields in ``field_names`` that belong to another product line's branch."""

    own_set = set(own)
    universe_set = set(universe)
    return sorted(name for name in field_names if name in universe_set and name not in own_set)
