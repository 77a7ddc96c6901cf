from __future__ import annotations

import logging
from typing import Any, Mapping, Optional

from django.core.exceptions import ValidationError
from django.db import IntegrityError, transaction

from field_collection.forms import CanCreateForm, CanUpdateForm
from field_collection.models import Draft
from field_collection.services.drafts import load_center, load_draft
from field_collection.services.summaries import CanSummary, can_summary
from kithulflow.exceptions import BusinessRuleError, ConflictError
from kithulflow.partitions import EntityKind, locate, partitions, resolve
from kithulflow.product_lines import clean_product_line_filter
from production.models import BaseProcessingBatch


logger = logging.getLogger(__name__)


def _ensure_editable(draft: Draft) -> None:
    if draft.status != Draft.Status.DRAFT:
        raise BusinessRuleError(
            "Cans can only be changed while the draft is open. Reopen the draft first.",
            identifiers=[draft.draft_id],
        )


def _load_can(actor, can_id: str, *, for_update: bool = False):
    line, can = locate(EntityKind.CAN, can_id, for_update=for_update)
    draft = load_draft(actor, can.draft.draft_id, for_update=for_update)
    return line, can, draft


def create_can(*, actor, payload: Mapping[str, Any]) -> CanSummary:
    """Record a collected can against an open draft.

    The can id is taken as given (``SAP-00000001``) or built from
    ``serial_number`` with the product line's prefix.
    """

    form = CanCreateForm(data=dict(payload))
    if not form.is_valid():
        raise ValidationError(form.errors.as_data())
    data = form.cleaned_data
    model = resolve(EntityKind.CAN, data["product_line"])
    can_id = data["can_id"]

    try:
        with transaction.atomic():
            draft = load_draft(actor, data["draft_id"], for_update=True)
            _ensure_editable(draft)
            center = load_center(data["collection_center_id"], active_only=True)
            if model.objects.filter(can_id=can_id).exists():
                raise ConflictError(f"Can {can_id} is already registered.", identifiers=[can_id])
            can = model.objects.create(
                can_id=can_id,
                draft=draft,
                collection_center=center,
                brix_value=data.get("brix_value"),
                ph_value=data.get("ph_value"),
                quantity=data["quantity"],
            )
    except IntegrityError as exc:
        raise ConflictError(f"Can {can_id} is already registered.", identifiers=[can_id]) from exc

    logger.info("Can %s added to draft %s", can_id, draft.draft_id)
    return can_summary(can)


def update_can(*, actor, can_id: str, payload: Mapping[str, Any]) -> CanSummary:
    form = CanUpdateForm(data=dict(payload))
    if not form.is_valid():
        raise ValidationError(form.errors.as_data())
    if not form.submitted_fields:
        raise ValidationError("No fields to update.")
    if "quantity" in form.submitted_fields and form.cleaned_data.get("quantity") is None:
        raise ValidationError({"quantity": ["Quantity cannot be cleared."]})

    with transaction.atomic():
        _line, can, draft = _load_can(actor, can_id, for_update=True)
        _ensure_editable(draft)
        for field_name in form.submitted_fields:
            setattr(can, field_name, form.cleaned_data.get(field_name))
        can.save(update_fields=[*form.submitted_fields, "updated_at"])
    return can_summary(can)


def delete_can(*, actor, can_id: str) -> None:
    """Remove a can unless a live processing batch has already taken it."""

    with transaction.atomic():
        _line, can, draft = _load_can(actor, can_id, for_update=True)
        _ensure_editable(draft)
        batch_ids = list(
            can.assignments.exclude(batch__status=BaseProcessingBatch.Status.CANCELLED).values_list(
                "batch__batch_id", flat=True
            )
        )
        if batch_ids:
            raise ConflictError(
                f"Can {can_id} is assigned to processing batch {', '.join(batch_ids)}.",
                identifiers=batch_ids,
            )
        can.delete()
    logger.info("Can %s deleted from draft %s", can_id, draft.draft_id)


def get_can(*, actor, can_id: str) -> CanSummary:
    _line, can, _draft = _load_can(actor, can_id)
    return can_summary(can)


def list_draft_cans(*, actor, draft_id: str, product_line: Optional[str] = None) -> list[CanSummary]:
    draft = load_draft(actor, draft_id)
    product_line = clean_product_line_filter(product_line)
    summaries: list[CanSummary] = []
    for _line, model in partitions(EntityKind.CAN, product_line):
        queryset = model.objects.filter(draft=draft).select_related("collection_center", "draft")
        summaries.extend(can_summary(can) for can in queryset)
    summaries.sort(key=lambda item: (item.collection_center_name, item.can_id))
    return summaries
