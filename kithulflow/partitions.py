"""Per-product-line partition resolver.

Each product line stores cans, processing batches, assignments, packaging
batches and labeling batches in its own table. Services never build table
names; they ask this module for the model of an entity kind in a line.
"""

from __future__ import annotations

from enum import Enum
from typing import Iterable

from django.db import models

from field_collection.models import Draft, SapCan, TreacleCan
from kithulflow.exceptions import NotFoundError
from kithulflow.product_lines import ProductLine
from production.models import (
    JaggeryBatchCan,
    JaggeryLabelingBatch,
    JaggeryPackagingBatch,
    JaggeryProcessingBatch,
    TreacleBatchCan,
    TreacleLabelingBatch,
    TreaclePackagingBatch,
    TreacleProcessingBatch,
)


class EntityKind(str, Enum):
    DRAFT = "draft"
    CAN = "can"
    PROCESSING_BATCH = "processing_batch"
    PROCESSING_ASSIGNMENT = "processing_assignment"
    PACKAGING_BATCH = "packaging_batch"
    LABELING_BATCH = "labeling_batch"


_REGISTRY: dict[tuple[EntityKind, ProductLine], type[models.Model]] = {
    (EntityKind.DRAFT, ProductLine.TREACLE): Draft,
    (EntityKind.DRAFT, ProductLine.JAGGERY): Draft,
    (EntityKind.CAN, ProductLine.TREACLE): SapCan,
    (EntityKind.CAN, ProductLine.JAGGERY): TreacleCan,
    (EntityKind.PROCESSING_BATCH, ProductLine.TREACLE): TreacleProcessingBatch,
    (EntityKind.PROCESSING_BATCH, ProductLine.JAGGERY): JaggeryProcessingBatch,
    (EntityKind.PROCESSING_ASSIGNMENT, ProductLine.TREACLE): TreacleBatchCan,
    (EntityKind.PROCESSING_ASSIGNMENT, ProductLine.JAGGERY): JaggeryBatchCan,
    (EntityKind.PACKAGING_BATCH, ProductLine.TREACLE): TreaclePackagingBatch,
    (EntityKind.PACKAGING_BATCH, ProductLine.JAGGERY): JaggeryPackagingBatch,
    (EntityKind.LABELING_BATCH, ProductLine.TREACLE): TreacleLabelingBatch,
    (EntityKind.LABELING_BATCH, ProductLine.JAGGERY): JaggeryLabelingBatch,
}

_LOOKUP_FIELDS: dict[EntityKind, str] = {
    EntityKind.DRAFT: "draft_id",
    EntityKind.CAN: "can_id",
    EntityKind.PROCESSING_BATCH: "batch_id",
    EntityKind.PACKAGING_BATCH: "packaging_id",
    EntityKind.LABELING_BATCH: "labeling_id",
}

_LABELS: dict[EntityKind, str] = {
    EntityKind.DRAFT: "Draft",
    EntityKind.CAN: "Can",
    EntityKind.PROCESSING_BATCH: "Processing batch",
    EntityKind.PROCESSING_ASSIGNMENT: "Processing assignment",
    EntityKind.PACKAGING_BATCH: "Packaging batch",
    EntityKind.LABELING_BATCH: "Labeling batch",
}


def resolve(kind: EntityKind | str, product_line: ProductLine | str) -> type[models.Model]:
    """Return the model storing ``kind`` for ``product_line``.

    Unknown kinds or product lines raise ``LookupError``.
    """

    try:
        key = (EntityKind(kind), ProductLine(product_line))
    except ValueError as exc:
        raise LookupError(f"Unknown partition: {kind!r} / {product_line!r}") from exc
    return _REGISTRY[key]


def partitions(
    kind: EntityKind | str,
    product_line: ProductLine | str | None = None,
) -> list[tuple[ProductLine, type[models.Model]]]:
    """Return ``(line, model)`` pairs for one product line, or for all of them."""

    lines: Iterable[ProductLine] = ProductLine if product_line is None else [ProductLine(product_line)]
    return [(line, resolve(kind, line)) for line in lines]


def product_line_of(instance: models.Model) -> ProductLine:
    line = getattr(type(instance), "product_line", "")
    if not line:
        raise LookupError(f"{type(instance).__name__} is not partitioned by product line")
    return ProductLine(line)


def locate(
    kind: EntityKind | str,
    identifier: str,
    *,
    product_line: ProductLine | str | None = None,
    for_update: bool = False,
    select_related: Iterable[str] = (),
) -> tuple[ProductLine, models.Model]:
    """Find an entity by its external identifier across partitions.

    ``for_update`` locks the row and must be used inside ``transaction.atomic``.
    """

    kind = EntityKind(kind)
    field = _LOOKUP_FIELDS.get(kind)
    if field is None:
        raise LookupError(f"{kind.value} has no external identifier")
    for line, model in partitions(kind, product_line):
        queryset = model.objects.all()
        related = tuple(select_related)
        if related:
            queryset = queryset.select_related(*related)
        if for_update:
            queryset = queryset.select_for_update()
        instance = queryset.filter(**{field: identifier}).first()
        if instance is not None:
            return line, instance
    raise NotFoundError(f"{_LABELS[kind]} {identifier} not found.", identifiers=[identifier])
