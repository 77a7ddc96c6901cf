from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date, datetime
from decimal import Decimal
from typing import Optional

from django.core.exceptions import ObjectDoesNotExist
from django.db.models import Count, DecimalField, Sum
from django.db.models.functions import Coalesce

from production.models import BaseLabelingBatch, BasePackagingBatch, BaseProcessingBatch
from production.services.completeness import is_complete


@dataclass(frozen=True)
class ProcessingBatchSummary:
    batch_id: str
    batch_number: str
    product_line: str
    scheduled_date: date
    status: str
    status_label: str
    output_quantity: Optional[Decimal]
    gas_used_kg: Optional[Decimal]
    notes: str
    created_by_id: Optional[int]
    created_by_name: Optional[str]
    can_count: int
    total_input_quantity: Decimal
    created_at: datetime
    updated_at: datetime
    can_ids: list[str] = field(default_factory=list)
    packaging_id: Optional[str] = None


@dataclass(frozen=True)
class PackagingBatchSummary:
    packaging_id: str
    processing_batch_id: str
    batch_number: str
    product_line: str
    scheduled_date: date
    status: str
    status_label: str
    notes: str
    finished_quantity: Optional[Decimal]
    bottle_quantity: Optional[Decimal]
    lid_quantity: Optional[Decimal]
    alufoil_quantity: Optional[Decimal]
    vacuum_bag_quantity: Optional[Decimal]
    parchment_paper_quantity: Optional[Decimal]
    processing_output_quantity: Optional[Decimal]
    is_complete: bool
    started_at: datetime
    updated_at: datetime
    labeling_id: Optional[str] = None


@dataclass(frozen=True)
class LabelingBatchSummary:
    labeling_id: str
    packaging_id: str
    processing_batch_id: str
    batch_number: str
    product_line: str
    status: str
    status_label: str
    notes: str
    sticker_quantity: Optional[Decimal]
    shrink_sleeve_quantity: Optional[Decimal]
    neck_tag_quantity: Optional[Decimal]
    corrugated_carton_quantity: Optional[Decimal]
    finished_quantity: Optional[Decimal]
    is_complete: bool
    created_at: datetime
    updated_at: datetime


def _related_or_none(instance, name: str):
    try:
        return getattr(instance, name)
    except ObjectDoesNotExist:
        return None


def _display_name(user) -> Optional[str]:
    if not user:
        return None
    return user.get_full_name() or str(user)


def processing_batch_summary(batch: BaseProcessingBatch) -> ProcessingBatchSummary:
    """Map a processing batch; uses ``can_count``/``input_quantity`` annotations when present."""

    assignments = list(batch.assignments.all())
    can_count = getattr(batch, "can_count", None)
    if can_count is None:
        can_count = len(assignments)
    input_quantity = getattr(batch, "input_quantity", None)
    if input_quantity is None:
        input_quantity = sum((Decimal(item.can.quantity) for item in assignments), Decimal("0"))
    packaging = _related_or_none(batch, "packaging_batch")
    return ProcessingBatchSummary(
        batch_id=batch.batch_id,
        batch_number=batch.batch_number,
        product_line=str(batch.product_line),
        scheduled_date=batch.scheduled_date,
        status=batch.status,
        status_label=batch.get_status_display(),
        output_quantity=batch.output_quantity,
        gas_used_kg=batch.gas_used_kg,
        notes=batch.notes,
        created_by_id=batch.created_by_id,
        created_by_name=_display_name(batch.created_by),
        can_count=int(can_count),
        total_input_quantity=Decimal(input_quantity or 0),
        created_at=batch.created_at,
        updated_at=batch.updated_at,
        can_ids=sorted(item.can.can_id for item in assignments),
        packaging_id=packaging.packaging_id if packaging else None,
    )


def packaging_batch_summary(batch: BasePackagingBatch) -> PackagingBatchSummary:
    processing = batch.processing_batch
    labeling = _related_or_none(batch, "labeling_batch")
    return PackagingBatchSummary(
        packaging_id=batch.packaging_id,
        processing_batch_id=processing.batch_id,
        batch_number=processing.batch_number,
        product_line=str(batch.product_line),
        scheduled_date=processing.scheduled_date,
        status=batch.status,
        status_label=batch.get_status_display(),
        notes=batch.notes,
        finished_quantity=batch.finished_quantity,
        bottle_quantity=batch.bottle_quantity,
        lid_quantity=batch.lid_quantity,
        alufoil_quantity=batch.alufoil_quantity,
        vacuum_bag_quantity=batch.vacuum_bag_quantity,
        parchment_paper_quantity=batch.parchment_paper_quantity,
        processing_output_quantity=processing.output_quantity,
        is_complete=is_complete(batch),
        started_at=batch.started_at,
        updated_at=batch.updated_at,
        labeling_id=labeling.labeling_id if labeling else None,
    )


def labeling_batch_summary(batch: BaseLabelingBatch) -> LabelingBatchSummary:
    packaging = batch.packaging_batch
    processing = packaging.processing_batch
    return LabelingBatchSummary(
        labeling_id=batch.labeling_id,
        packaging_id=packaging.packaging_id,
        processing_batch_id=processing.batch_id,
        batch_number=processing.batch_number,
        product_line=str(batch.product_line),
        status=batch.status,
        status_label=batch.get_status_display(),
        notes=batch.notes,
        sticker_quantity=batch.sticker_quantity,
        shrink_sleeve_quantity=batch.shrink_sleeve_quantity,
        neck_tag_quantity=batch.neck_tag_quantity,
        corrugated_carton_quantity=batch.corrugated_carton_quantity,
        finished_quantity=packaging.finished_quantity,
        is_complete=is_complete(batch),
        created_at=batch.created_at,
        updated_at=batch.updated_at,
    )


def with_processing_totals(queryset):
    """Annotate processing batches with their can count and input quantity."""

    return (
        queryset.select_related("created_by", "packaging_batch")
        .prefetch_related("assignments__can")
        .annotate(
            can_count=Count("assignments", distinct=True),
            input_quantity=Coalesce(Sum("assignments__can__quantity"), Decimal("0"), output_field=DecimalField()),
        )
    )


def with_packaging_relations(queryset):
    return queryset.select_related("processing_batch", "labeling_batch")


def with_labeling_relations(queryset):
    return queryset.select_related("packaging_batch__processing_batch")
