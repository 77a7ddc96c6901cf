"""Eligibility queries: upstream output not yet consumed by the next stage.

Every query is read-only and spans one product line or both.
"""

from __future__ import annotations

from enum import Enum
from typing import Optional, Union

from django.db.models import Exists, OuterRef, Q

from field_collection.services.summaries import CanSummary, can_summary
from kithulflow.partitions import EntityKind, partitions, resolve
from kithulflow.product_lines import clean_product_line_filter
from production.models import BaseProcessingBatch, StageStatus
from production.services.summaries import (
    PackagingBatchSummary,
    ProcessingBatchSummary,
    packaging_batch_summary,
    processing_batch_summary,
    with_packaging_relations,
    with_processing_totals,
)


class Stage(str, Enum):
    """The stage that would consume the eligible records."""

    PROCESSING = "processing"
    PACKAGING = "packaging"
    LABELING = "labeling"


EligibleRecord = Union[CanSummary, ProcessingBatchSummary, PackagingBatchSummary]


def _live_assignments(assignment_model):
    return assignment_model.objects.filter(can=OuterRef("pk")).exclude(
        batch__status=BaseProcessingBatch.Status.CANCELLED
    )


def available_cans(product_line: Optional[str] = None, *, for_batch=None) -> list[CanSummary]:
    """Cans not held by any in-progress or completed processing batch.

    With ``for_batch`` the cans already assigned to that batch are included,
    so an assignment editor can show the current selection.
    """

    product_line = clean_product_line_filter(product_line)
    results: list[CanSummary] = []
    for line, can_model in partitions(EntityKind.CAN, product_line):
        assignment_model = resolve(EntityKind.PROCESSING_ASSIGNMENT, line)
        condition = ~Exists(_live_assignments(assignment_model))
        if for_batch is not None and type(for_batch).product_line == line:
            condition |= Exists(assignment_model.objects.filter(can=OuterRef("pk"), batch=for_batch))
        queryset = (
            can_model.objects.filter(condition)
            .select_related("collection_center", "draft")
            .order_by("can_id")
        )
        results.extend(can_summary(can) for can in queryset)
    return results


def eligible_processing_batches(product_line: Optional[str] = None) -> list[ProcessingBatchSummary]:
    """Completed processing batches that have no packaging batch yet."""

    product_line = clean_product_line_filter(product_line)
    results: list[ProcessingBatchSummary] = []
    for _line, model in partitions(EntityKind.PROCESSING_BATCH, product_line):
        queryset = with_processing_totals(
            model.objects.filter(
                status=BaseProcessingBatch.Status.COMPLETED,
                packaging_batch__isnull=True,
            )
        )
        results.extend(processing_batch_summary(batch) for batch in queryset)
    results.sort(key=lambda item: item.batch_number)
    results.sort(key=lambda item: item.scheduled_date, reverse=True)
    return results


def eligible_packaging_batches(product_line: Optional[str] = None) -> list[PackagingBatchSummary]:
    """Completed packaging batches that have no labeling batch yet."""

    product_line = clean_product_line_filter(product_line)
    results: list[PackagingBatchSummary] = []
    for _line, model in partitions(EntityKind.PACKAGING_BATCH, product_line):
        queryset = with_packaging_relations(
            model.objects.filter(
                Q(status=StageStatus.COMPLETED) & Q(labeling_batch__isnull=True)
            )
        )
        results.extend(packaging_batch_summary(batch) for batch in queryset)
    results.sort(key=lambda item: item.started_at, reverse=True)
    return results


def find_eligible(stage: Stage | str, product_line: Optional[str] = None) -> list[EligibleRecord]:
    stage = Stage(stage)
    if stage is Stage.PROCESSING:
        return list(available_cans(product_line))
    if stage is Stage.PACKAGING:
        return list(eligible_processing_batches(product_line))
    return list(eligible_packaging_batches(product_line))
