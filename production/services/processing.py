from __future__ import annotations

import logging
from typing import Any, Iterable, Mapping, Optional

from django.core.exceptions import ValidationError
from django.db import transaction
from django.db.models import IntegerField, Max
from django.db.models.functions import Cast
from django.utils import timezone

from field_collection.services.summaries import CanSummary
from kithulflow.exceptions import BusinessRuleError, ConflictError, NotFoundError
from kithulflow.identifiers import PROCESSING_BATCH_PREFIX, new_identifier
from kithulflow.partitions import EntityKind, locate, partitions, resolve
from kithulflow.product_lines import ProductLine, clean_product_line_filter
from production.forms import BatchCansForm, ProcessingBatchCreateForm, ProcessingBatchUpdateForm
from production.models import BaseProcessingBatch, BatchNumberSequence
from production.services.eligibility import available_cans
from production.services.summaries import ProcessingBatchSummary, processing_batch_summary, with_processing_totals
from users.access import ensure_role
from users.models import Role


logger = logging.getLogger(__name__)

Status = BaseProcessingBatch.Status


class ProcessingBatchService:
    """Lifecycle of processing batches between ``in-progress``, ``completed`` and ``cancelled``.

    Every transition runs in its own transaction and locks the batch row
    before looking at its status.
    """

    def __init__(self, *, actor) -> None:
        self.actor = actor

    def _authorize(self) -> None:
        ensure_role(self.actor, Role.PROCESSING)

    def _lock(self, batch_id: str) -> tuple[ProductLine, BaseProcessingBatch]:
        return locate(EntityKind.PROCESSING_BATCH, batch_id, for_update=True)

    def _summary(self, batch: BaseProcessingBatch) -> ProcessingBatchSummary:
        model = type(batch)
        return processing_batch_summary(with_processing_totals(model.objects.filter(pk=batch.pk)).get())

    def _next_batch_number(self, product_line: ProductLine, model) -> str:
        sequence, _ = BatchNumberSequence.objects.select_for_update().get_or_create(product_line=product_line)
        existing = (
            model.objects.filter(batch_number__regex=r"^[0-9]+$")
            .annotate(numeric_number=Cast("batch_number", IntegerField()))
            .aggregate(highest=Max("numeric_number"))
        )["highest"] or 0
        next_value = max(sequence.last_value, existing) + 1
        sequence.last_value = next_value
        sequence.save(update_fields=["last_value"])
        return str(next_value).zfill(2)

    def create(self, payload: Optional[Mapping[str, Any]] = None) -> ProcessingBatchSummary:
        self._authorize()
        form = ProcessingBatchCreateForm(data=dict(payload or {}))
        if not form.is_valid():
            raise ValidationError(form.errors.as_data())
        product_line = ProductLine(form.cleaned_data.get("product_line") or ProductLine.TREACLE)
        scheduled_date = form.cleaned_data.get("scheduled_date") or timezone.localdate()
        model = resolve(EntityKind.PROCESSING_BATCH, product_line)

        with transaction.atomic():
            batch = model.objects.create(
                batch_id=new_identifier(PROCESSING_BATCH_PREFIX),
                batch_number=self._next_batch_number(product_line, model),
                scheduled_date=scheduled_date,
                status=Status.IN_PROGRESS,
                created_by=self.actor,
            )
        logger.info(
            "Processing batch %s (%s #%s) created by %s",
            batch.batch_id,
            product_line,
            batch.batch_number,
            self.actor.pk,
        )
        return self._summary(batch)

    def get(self, batch_id: str) -> ProcessingBatchSummary:
        self._authorize()
        _line, batch = locate(EntityKind.PROCESSING_BATCH, batch_id)
        return self._summary(batch)

    def list(self, product_line: Optional[str] = None, *, status: Optional[str] = None) -> list[ProcessingBatchSummary]:
        self._authorize()
        if status and status not in Status.values:
            raise ValidationError({"status": [f"Unknown processing status: {status}."]})
        product_line = clean_product_line_filter(product_line)
        results: list[ProcessingBatchSummary] = []
        for _line, model in partitions(EntityKind.PROCESSING_BATCH, product_line):
            queryset = model.objects.all()
            if status:
                queryset = queryset.filter(status=status)
            results.extend(processing_batch_summary(batch) for batch in with_processing_totals(queryset))
        results.sort(key=lambda item: item.created_at, reverse=True)
        results.sort(key=lambda item: item.scheduled_date, reverse=True)
        return results

    def update(self, batch_id: str, payload: Mapping[str, Any]) -> ProcessingBatchSummary:
        self._authorize()
        form = ProcessingBatchUpdateForm(data=dict(payload))
        if not form.is_valid():
            raise ValidationError(form.errors.as_data())
        values = form.submitted_values()
        if not values:
            raise ValidationError("No fields to update.")

        with transaction.atomic():
            line, batch = self._lock(batch_id)
            requested_line = values.pop("product_line", None)
            if requested_line and ProductLine(requested_line) != line:
                raise BusinessRuleError(
                    "Cannot move a processing batch between products.",
                    identifiers=[batch.batch_id],
                )
            if batch.status == Status.CANCELLED:
                raise BusinessRuleError("Cancelled batches cannot be edited.", identifiers=[batch.batch_id])
            for field_name, value in values.items():
                setattr(batch, field_name, value)
            if values:
                batch.save(update_fields=[*values.keys(), "updated_at"])
        return self._summary(batch)

    def set_cans(self, batch_id: str, can_ids: Iterable[str]) -> ProcessingBatchSummary:
        """Replace the batch's can assignment with ``can_ids``.

        Any failure leaves the previous assignment untouched.
        """

        self._authorize()
        form = BatchCansForm(data={"can_ids": list(can_ids)})
        if not form.is_valid():
            raise ValidationError(form.errors.as_data())
        requested = form.cleaned_data["can_ids"]

        with transaction.atomic():
            line, batch = self._lock(batch_id)
            if batch.status != Status.IN_PROGRESS:
                raise BusinessRuleError(
                    "Cans can only be assigned to in-progress batches.",
                    identifiers=[batch.batch_id],
                )
            assignment_model = resolve(EntityKind.PROCESSING_ASSIGNMENT, line)
            can_model = resolve(EntityKind.CAN, line)

            assignment_model.objects.filter(batch=batch).delete()

            cans = {can.can_id: can for can in can_model.objects.select_for_update().filter(can_id__in=requested)}
            missing = [can_id for can_id in requested if can_id not in cans]
            if missing:
                raise NotFoundError(f"Cans not found: {', '.join(missing)}.", identifiers=missing)

            taken = (
                assignment_model.objects.filter(can__in=list(cans.values()))
                .exclude(batch=batch)
                .exclude(batch__status=Status.CANCELLED)
                .select_related("batch", "can")
                .order_by("can__can_id")
            )
            conflicts = [assignment.can.can_id for assignment in taken]
            if conflicts:
                holders = sorted({assignment.batch.batch_id for assignment in taken})
                logger.warning(
                    "Processing batch %s rejected cans %s already held by %s",
                    batch.batch_id,
                    conflicts,
                    holders,
                )
                raise ConflictError(
                    f"Cans already assigned to another batch: {', '.join(conflicts)}.",
                    identifiers=conflicts,
                )

            now = timezone.now()
            assignment_model.objects.bulk_create(
                [assignment_model(batch=batch, can=cans[can_id], added_at=now) for can_id in requested]
            )
            batch.save(update_fields=["updated_at"])
        logger.info("Processing batch %s now holds %d cans", batch.batch_id, len(requested))
        return self._summary(batch)

    def submit(self, batch_id: str) -> ProcessingBatchSummary:
        self._authorize()
        with transaction.atomic():
            _line, batch = self._lock(batch_id)
            if batch.status == Status.CANCELLED:
                raise BusinessRuleError("Cancelled batches cannot be submitted.", identifiers=[batch.batch_id])
            if batch.status != Status.COMPLETED:
                batch.status = Status.COMPLETED
                batch.save(update_fields=["status", "updated_at"])
                logger.info("Processing batch %s completed by %s", batch.batch_id, self.actor.pk)
        return self._summary(batch)

    def reopen(self, batch_id: str) -> ProcessingBatchSummary:
        """Return a completed batch to ``in-progress``, discarding its packaging batch."""

        self._authorize()
        with transaction.atomic():
            line, batch = self._lock(batch_id)
            if batch.status == Status.CANCELLED:
                raise BusinessRuleError("Cancelled batches cannot be reopened.", identifiers=[batch.batch_id])
            if batch.status != Status.COMPLETED:
                raise BusinessRuleError("Only completed batches can be reopened.", identifiers=[batch.batch_id])
            batch.status = Status.IN_PROGRESS
            batch.save(update_fields=["status", "updated_at"])
            packaging_model = resolve(EntityKind.PACKAGING_BATCH, line)
            removed, _ = packaging_model.objects.filter(processing_batch=batch).delete()
        logger.info(
            "Processing batch %s reopened by %s (%d dependent rows removed)",
            batch.batch_id,
            self.actor.pk,
            removed,
        )
        return self._summary(batch)

    def cancel(self, batch_id: str) -> ProcessingBatchSummary:
        """Cancel an in-progress batch; its cans become available again."""

        self._authorize()
        with transaction.atomic():
            _line, batch = self._lock(batch_id)
            if batch.status == Status.COMPLETED:
                raise BusinessRuleError(
                    "Completed batches must be reopened before they can be cancelled.",
                    identifiers=[batch.batch_id],
                )
            if batch.status != Status.CANCELLED:
                batch.status = Status.CANCELLED
                batch.save(update_fields=["status", "updated_at"])
                logger.info("Processing batch %s cancelled by %s", batch.batch_id, self.actor.pk)
        return self._summary(batch)

    def delete(self, batch_id: str) -> None:
        self._authorize()
        with transaction.atomic():
            line, batch = self._lock(batch_id)
            resolve(EntityKind.PROCESSING_ASSIGNMENT, line).objects.filter(batch=batch).delete()
            resolve(EntityKind.PACKAGING_BATCH, line).objects.filter(processing_batch=batch).delete()
            batch.delete()
        logger.info("Processing batch %s deleted by %s", batch_id, self.actor.pk)

    def available_cans(
        self,
        product_line: Optional[str] = None,
        *,
        batch_id: Optional[str] = None,
    ) -> list[CanSummary]:
        self._authorize()
        for_batch = None
        if batch_id:
            line, for_batch = locate(EntityKind.PROCESSING_BATCH, batch_id)
            product_line = product_line or line
        return available_cans(product_line, for_batch=for_batch)
