from __future__ import annotations

import logging
from decimal import Decimal
from typing import Any, Mapping, Optional

from django.core.exceptions import PermissionDenied, ValidationError
from django.db import IntegrityError, transaction
from django.db.models import Count, Sum
from django.utils import timezone

from field_collection.forms import DraftCreateForm
from field_collection.models import CenterCompletion, CollectionCenter, Draft
from field_collection.services.summaries import (
    CollectionCenterSummary,
    DraftDetail,
    DraftSummary,
    center_summary,
    draft_summary,
    group_cans_by_center,
)
from kithulflow.exceptions import BusinessRuleError, ConflictError, NotFoundError
from kithulflow.identifiers import DRAFT_PREFIX, new_identifier
from kithulflow.partitions import EntityKind, partitions
from kithulflow.product_lines import clean_product_line_filter
from users.access import ensure_can_access, ensure_role, is_administrator
from users.models import Role


logger = logging.getLogger(__name__)


def load_draft(actor, draft_id: str, *, for_update: bool = False) -> Draft:
    ensure_role(actor, Role.FIELD_COLLECTION)
    queryset = Draft.objects.all()
    if for_update:
        queryset = queryset.select_for_update()
    draft = queryset.filter(draft_id=draft_id).first()
    if draft is None:
        raise NotFoundError(f"Draft {draft_id} not found.", identifiers=[draft_id])
    ensure_can_access(actor, draft)
    return draft


def load_center(center_id: str, *, active_only: bool = False) -> CollectionCenter:
    queryset = CollectionCenter.objects.all()
    if active_only:
        queryset = queryset.filter(is_active=True)
    center = queryset.filter(center_id=center_id).first()
    if center is None:
        raise NotFoundError(f"Collection center {center_id} not found.", identifiers=[center_id])
    return center


def _can_totals(draft_pks, product_line: Optional[str] = None) -> dict[int, dict[str, Any]]:
    """Return per-draft can count and quantity, plus the product lines touched."""

    totals: dict[int, dict[str, Any]] = {}
    for line, model in partitions(EntityKind.CAN, product_line):
        rows = (
            model.objects.filter(draft_id__in=list(draft_pks))
            .values("draft_id")
            .annotate(can_count=Count("pk"), quantity=Sum("quantity"))
        )
        for row in rows:
            entry = totals.setdefault(
                row["draft_id"],
                {"can_count": 0, "quantity": Decimal("0"), "lines": set()},
            )
            entry["can_count"] += row["can_count"]
            entry["quantity"] += Decimal(row["quantity"] or 0)
            entry["lines"].add(line)
    return totals


def _summarize(draft: Draft) -> DraftSummary:
    totals = _can_totals([draft.pk]).get(draft.pk, {})
    return draft_summary(
        draft,
        can_count=totals.get("can_count", 0),
        total_quantity=totals.get("quantity"),
    )


def create_draft(*, actor, payload: Optional[Mapping[str, Any]] = None) -> DraftSummary:
    """Open a collection draft for the actor on the given (or current) date."""

    ensure_role(actor, Role.FIELD_COLLECTION)
    form = DraftCreateForm(data=dict(payload or {}))
    if not form.is_valid():
        raise ValidationError(form.errors.as_data())
    draft_date = form.cleaned_data.get("date") or timezone.localdate()

    existing = Draft.objects.filter(created_by=actor, date=draft_date).only("draft_id").first()
    if existing is not None:
        raise ConflictError(
            f"A draft already exists for {draft_date:%Y-%m-%d}.",
            identifiers=[existing.draft_id],
        )

    try:
        with transaction.atomic():
            draft = Draft.objects.create(
                draft_id=new_identifier(DRAFT_PREFIX),
                date=draft_date,
                status=Draft.Status.DRAFT,
                created_by=actor,
            )
    except IntegrityError as exc:
        raise ConflictError(f"A draft already exists for {draft_date:%Y-%m-%d}.") from exc

    logger.info("Draft %s created for %s by %s", draft.draft_id, draft_date, actor.pk)
    return draft_summary(draft)


def get_draft(*, actor, draft_id: str) -> DraftDetail:
    draft = load_draft(actor, draft_id)
    completed_ids = list_completed_centers(actor=actor, draft_id=draft_id)
    cans = []
    for _line, model in partitions(EntityKind.CAN):
        cans.extend(model.objects.filter(draft=draft).select_related("collection_center", "draft"))
    centers = group_cans_by_center(cans, completed_ids)
    total_quantity = sum((center.total_quantity for center in centers), Decimal("0"))
    summary = draft_summary(draft, can_count=len(cans), total_quantity=total_quantity)
    return DraftDetail(draft=summary, centers=centers, completed_center_ids=completed_ids)


def list_drafts(
    *,
    actor,
    product_line: Optional[str] = None,
    status: Optional[str] = None,
) -> list[DraftSummary]:
    """List drafts visible to the actor, newest first.

    ``product_line`` keeps only drafts holding at least one can of that line.
    """

    ensure_role(actor, Role.FIELD_COLLECTION)
    queryset = Draft.objects.select_related("created_by")
    if not is_administrator(actor):
        queryset = queryset.filter(created_by=actor)
    if status:
        if status not in Draft.Status.values:
            raise ValidationError({"status": [f"Unknown draft status: {status}."]})
        queryset = queryset.filter(status=status)
    drafts = list(queryset.order_by("-date", "-created_at"))
    product_line = clean_product_line_filter(product_line)
    totals = _can_totals([draft.pk for draft in drafts], product_line)

    summaries: list[DraftSummary] = []
    for draft in drafts:
        entry = totals.get(draft.pk)
        if product_line is not None and entry is None:
            continue
        entry = entry or {}
        summaries.append(
            draft_summary(
                draft,
                can_count=entry.get("can_count", 0),
                total_quantity=entry.get("quantity"),
            )
        )
    return summaries


def _set_status(actor, draft_id: str, status: str, *, require_completion: bool) -> DraftSummary:
    with transaction.atomic():
        draft = load_draft(actor, draft_id, for_update=True)
        if require_completion and not draft.center_completions.exists():
            raise BusinessRuleError(
                "Complete at least one collection center before saving or submitting the draft.",
                identifiers=[draft.draft_id],
            )
        if draft.status != status:
            draft.status = status
            draft.save(update_fields=["status", "updated_at"])
            logger.info("Draft %s moved to %s by %s", draft.draft_id, status, actor.pk)
    return _summarize(draft)


def save_draft(*, actor, draft_id: str) -> DraftSummary:
    return _set_status(actor, draft_id, Draft.Status.DRAFT, require_completion=True)


def submit_draft(*, actor, draft_id: str) -> DraftSummary:
    return _set_status(actor, draft_id, Draft.Status.SUBMITTED, require_completion=True)


def reopen_draft(*, actor, draft_id: str) -> DraftSummary:
    """Send a submitted draft back to editing. Center completions are kept."""

    return _set_status(actor, draft_id, Draft.Status.DRAFT, require_completion=False)


def delete_draft(*, actor, draft_id: str) -> None:
    """Remove a draft with its cans and center completions. Administrators only."""

    if not is_administrator(actor):
        raise PermissionDenied("Only administrators can delete drafts.")
    with transaction.atomic():
        draft = load_draft(actor, draft_id, for_update=True)
        for _line, model in partitions(EntityKind.CAN):
            model.objects.filter(draft=draft).delete()
        draft.center_completions.all().delete()
        draft.delete()
    logger.info("Draft %s deleted by %s", draft_id, actor.pk)


def submit_center(*, actor, draft_id: str, center_id: str) -> list[str]:
    """Mark a collection center as finished within the draft.

    Repeating the call refreshes the completion time.
    """

    with transaction.atomic():
        draft = load_draft(actor, draft_id, for_update=True)
        center = load_center(center_id)
        CenterCompletion.objects.update_or_create(
            draft=draft,
            center=center,
            defaults={"completed_at": timezone.now()},
        )
    logger.info("Center %s completed on draft %s", center_id, draft_id)
    return list_completed_centers(actor=actor, draft_id=draft_id)


def reopen_center(*, actor, draft_id: str, center_id: str) -> list[str]:
    with transaction.atomic():
        draft = load_draft(actor, draft_id, for_update=True)
        center = load_center(center_id)
        CenterCompletion.objects.filter(draft=draft, center=center).delete()
    return list_completed_centers(actor=actor, draft_id=draft_id)


def list_completed_centers(*, actor, draft_id: str) -> list[str]:
    draft = load_draft(actor, draft_id)
    return list(
        draft.center_completions.order_by("center__center_id").values_list("center__center_id", flat=True)
    )


def list_active_centers() -> list[CollectionCenterSummary]:
    return [center_summary(center) for center in CollectionCenter.objects.filter(is_active=True).order_by("name")]
