from __future__ import annotations

import logging
from typing import Any, Mapping, Optional

from django.core.exceptions import ValidationError
from django.db import transaction

from kithulflow.exceptions import NotEligibleError, NotFoundError
from kithulflow.identifiers import LABELING_BATCH_PREFIX, new_identifier
from kithulflow.partitions import EntityKind, locate, partitions, resolve
from kithulflow.product_lines import clean_product_line_filter
from production.forms import LabelingBatchUpdateForm
from production.models import BaseLabelingBatch, StageStatus
from production.services.eligibility import eligible_packaging_batches
from production.services.stage_updates import apply_stage_update
from production.services.summaries import (
    LabelingBatchSummary,
    PackagingBatchSummary,
    labeling_batch_summary,
    with_labeling_relations,
)
from users.access import ensure_role
from users.models import Role


logger = logging.getLogger(__name__)


class LabelingBatchService:
    """Labeling batches: one per completed packaging batch."""

    def __init__(self, *, actor) -> None:
        self.actor = actor

    def _authorize(self) -> None:
        ensure_role(self.actor, Role.LABELING)

    def _summary(self, batch: BaseLabelingBatch) -> LabelingBatchSummary:
        model = type(batch)
        return labeling_batch_summary(with_labeling_relations(model.objects.filter(pk=batch.pk)).get())

    def create(self, packaging_id: str) -> LabelingBatchSummary:
        """Open the labeling batch for a completed packaging batch.

        Calling it again for the same packaging batch returns the existing
        labeling batch.
        """

        self._authorize()
        with transaction.atomic():
            line, packaging = locate(EntityKind.PACKAGING_BATCH, packaging_id, for_update=True)
            if packaging.status != StageStatus.COMPLETED:
                raise NotEligibleError(
                    f"Packaging batch {packaging.packaging_id} must be completed before labeling.",
                    identifiers=[packaging.packaging_id],
                )
            model = resolve(EntityKind.LABELING_BATCH, line)
            batch, created = model.objects.get_or_create(
                packaging_batch=packaging,
                defaults={
                    "labeling_id": new_identifier(LABELING_BATCH_PREFIX),
                    "status": StageStatus.PENDING,
                },
            )
        if created:
            logger.info(
                "Labeling batch %s opened for packaging batch %s by %s",
                batch.labeling_id,
                packaging.packaging_id,
                self.actor.pk,
            )
        return self._summary(batch)

    def get(self, labeling_id: str) -> LabelingBatchSummary:
        self._authorize()
        _line, batch = locate(EntityKind.LABELING_BATCH, labeling_id)
        return self._summary(batch)

    def get_for_packaging(self, packaging_id: str) -> LabelingBatchSummary:
        self._authorize()
        line, packaging = locate(EntityKind.PACKAGING_BATCH, packaging_id)
        batch = resolve(EntityKind.LABELING_BATCH, line).objects.filter(packaging_batch=packaging).first()
        if batch is None:
            raise NotFoundError(
                f"Packaging batch {packaging_id} has no labeling batch.",
                identifiers=[packaging_id],
            )
        return self._summary(batch)

    def list(self, product_line: Optional[str] = None) -> list[LabelingBatchSummary]:
        self._authorize()
        product_line = clean_product_line_filter(product_line)
        results: list[LabelingBatchSummary] = []
        for _line, model in partitions(EntityKind.LABELING_BATCH, product_line):
            results.extend(labeling_batch_summary(batch) for batch in with_labeling_relations(model.objects.all()))
        results.sort(key=lambda item: item.created_at, reverse=True)
        return results

    def update(self, labeling_id: str, payload: Mapping[str, Any]) -> LabelingBatchSummary:
        self._authorize()
        form = LabelingBatchUpdateForm(data=dict(payload))
        if not form.is_valid():
            raise ValidationError(form.errors.as_data())
        values = form.submitted_values()
        if not values:
            raise ValidationError("No fields to update.")

        with transaction.atomic():
            _line, batch = locate(EntityKind.LABELING_BATCH, labeling_id, for_update=True)
            previous_status = batch.status
            update_fields = apply_stage_update(
                batch,
                values,
                own_fields=batch.accessory_fields,
                all_branch_fields=BaseLabelingBatch.ALL_ACCESSORY_FIELDS,
                identifier=batch.labeling_id,
                stage_label="labeling",
            )
            batch.save(update_fields=update_fields)
        if batch.status != previous_status:
            logger.info("Labeling batch %s moved from %s to %s", batch.labeling_id, previous_status, batch.status)
        return self._summary(batch)

    def delete(self, labeling_id: str) -> None:
        self._authorize()
        with transaction.atomic():
            _line, batch = locate(EntityKind.LABELING_BATCH, labeling_id, for_update=True)
            batch.delete()
        logger.info("Labeling batch %s deleted by %s", labeling_id, self.actor.pk)

    def eligible_sources(self, product_line: Optional[str] = None) -> list[PackagingBatchSummary]:
        self._authorize()
        return eligible_packaging_batches(product_line)
