from __future__ import annotations

import logging
from typing import Any, Mapping, Optional

from django.core.exceptions import ValidationError
from django.db import transaction
from django.utils import timezone

from kithulflow.exceptions import ConflictError, NotEligibleError
from kithulflow.identifiers import PACKAGING_BATCH_PREFIX, new_identifier
from kithulflow.partitions import EntityKind, locate, partitions, resolve
from kithulflow.product_lines import clean_product_line_filter
from production.forms import PackagingBatchUpdateForm
from production.models import BasePackagingBatch, BaseProcessingBatch, StageStatus
from production.services.eligibility import eligible_processing_batches
from production.services.stage_updates import apply_stage_update
from production.services.summaries import (
    PackagingBatchSummary,
    ProcessingBatchSummary,
    packaging_batch_summary,
    with_packaging_relations,
)
from users.access import ensure_role
from users.models import Role


logger = logging.getLogger(__name__)


class PackagingBatchService:
    """Packaging batches: one per completed processing batch."""

    def __init__(self, *, actor) -> None:
        self.actor = actor

    def _authorize(self) -> None:
        ensure_role(self.actor, Role.PACKAGING)

    def _summary(self, batch: BasePackagingBatch) -> PackagingBatchSummary:
        model = type(batch)
        return packaging_batch_summary(with_packaging_relations(model.objects.filter(pk=batch.pk)).get())

    def create(self, processing_batch_id: str) -> PackagingBatchSummary:
        self._authorize()
        with transaction.atomic():
            line, processing = locate(EntityKind.PROCESSING_BATCH, processing_batch_id, for_update=True)
            if processing.status != BaseProcessingBatch.Status.COMPLETED:
                raise NotEligibleError(
                    f"Processing batch {processing.batch_id} must be completed before packaging.",
                    identifiers=[processing.batch_id],
                )
            model = resolve(EntityKind.PACKAGING_BATCH, line)
            existing = model.objects.filter(processing_batch=processing).only("packaging_id").first()
            if existing is not None:
                raise ConflictError(
                    f"Processing batch {processing.batch_id} already has packaging batch {existing.packaging_id}.",
                    identifiers=[existing.packaging_id],
                )
            batch = model.objects.create(
                packaging_id=new_identifier(PACKAGING_BATCH_PREFIX),
                processing_batch=processing,
                status=StageStatus.PENDING,
                started_at=timezone.now(),
            )
        logger.info(
            "Packaging batch %s opened for processing batch %s by %s",
            batch.packaging_id,
            processing.batch_id,
            self.actor.pk,
        )
        return self._summary(batch)

    def get(self, packaging_id: str) -> PackagingBatchSummary:
        self._authorize()
        _line, batch = locate(EntityKind.PACKAGING_BATCH, packaging_id)
        return self._summary(batch)

    def list(self, product_line: Optional[str] = None) -> list[PackagingBatchSummary]:
        self._authorize()
        product_line = clean_product_line_filter(product_line)
        results: list[PackagingBatchSummary] = []
        for _line, model in partitions(EntityKind.PACKAGING_BATCH, product_line):
            results.extend(packaging_batch_summary(batch) for batch in with_packaging_relations(model.objects.all()))
        results.sort(key=lambda item: item.started_at, reverse=True)
        return results

    def update(self, packaging_id: str, payload: Mapping[str, Any]) -> PackagingBatchSummary:
        self._authorize()
        form = PackagingBatchUpdateForm(data=dict(payload))
        if not form.is_valid():
            raise ValidationError(form.errors.as_data())
        values = form.submitted_values()
        if not values:
            raise ValidationError("No fields to update.")

        with transaction.atomic():
            _line, batch = locate(EntityKind.PACKAGING_BATCH, packaging_id, for_update=True)
            previous_status = batch.status
            update_fields = apply_stage_update(
                batch,
                values,
                own_fields=batch.material_fields,
                all_branch_fields=BasePackagingBatch.ALL_MATERIAL_FIELDS,
                identifier=batch.packaging_id,
                stage_label="packaging",
            )
            batch.save(update_fields=update_fields)
        if batch.status != previous_status:
            logger.info(
                "Packaging batch %s moved from %s to %s",
                batch.packaging_id,
                previous_status,
                batch.status,
            )
        return self._summary(batch)

    def delete(self, packaging_id: str) -> None:
        """Remove the packaging batch; its labeling batch goes with it."""

        self._authorize()
        with transaction.atomic():
            _line, batch = locate(EntityKind.PACKAGING_BATCH, packaging_id, for_update=True)
            batch.delete()
        logger.info("Packaging batch %s deleted by %s", packaging_id, self.actor.pk)

    def eligible_sources(self, product_line: Optional[str] = None) -> list[ProcessingBatchSummary]:
        self._authorize()
        return eligible_processing_batches(product_line)
