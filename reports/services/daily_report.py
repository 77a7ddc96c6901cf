from __future__ import annotations

import re
from dataclasses import dataclass, field, fields
from datetime import date, datetime, timedelta
from decimal import Decimal
from typing import Union

from django.core.exceptions import ValidationError
from django.db.models import Count, DecimalField, Exists, OuterRef, Q, Sum
from django.db.models.functions import Coalesce
from django.utils import timezone

from field_collection.models import Draft
from kithulflow.partitions import EntityKind, resolve
from kithulflow.product_lines import ProductLine
from production.models import BaseProcessingBatch, StageStatus


DATE_PATTERN = re.compile(r"^\d{4}-\d{2}-\d{2}$")

ZERO = Decimal("0")
DECIMAL_FIELD = DecimalField(max_digits=18, decimal_places=2)


@dataclass(frozen=True)
class FieldCollectionMetrics:
    drafts: int = 0
    cans: int = 0
    quantity: Decimal = ZERO
    draft_ids: frozenset[str] = field(default_factory=frozenset)

    def merge(self, other: "FieldCollectionMetrics") -> "FieldCollectionMetrics":
        return FieldCollectionMetrics(
            drafts=self.drafts + other.drafts,
            cans=self.cans + other.cans,
            quantity=self.quantity + other.quantity,
            draft_ids=self.draft_ids | other.draft_ids,
        )


@dataclass(frozen=True)
class ProcessingMetrics:
    total_batches: int = 0
    completed_batches: int = 0
    total_output: Decimal = ZERO
    total_input: Decimal = ZERO
    total_gas_used_kg: Decimal = ZERO


@dataclass(frozen=True)
class PackagingMetrics:
    total_batches: int = 0
    completed_batches: int = 0
    finished_quantity: Decimal = ZERO
    bottle_quantity: Decimal = ZERO
    lid_quantity: Decimal = ZERO
    alufoil_quantity: Decimal = ZERO
    vacuum_bag_quantity: Decimal = ZERO
    parchment_paper_quantity: Decimal = ZERO


@dataclass(frozen=True)
class LabelingMetrics:
    total_batches: int = 0
    completed_batches: int = 0
    sticker_quantity: Decimal = ZERO
    shrink_sleeve_quantity: Decimal = ZERO
    neck_tag_quantity: Decimal = ZERO
    corrugated_carton_quantity: Decimal = ZERO


def _sum_metrics(left, right):
    """Field-by-field sum of two metric dataclasses of the same type."""

    return type(left)(**{item.name: getattr(left, item.name) + getattr(right, item.name) for item in fields(left)})


@dataclass(frozen=True)
class StageMetrics:
    field_collection: FieldCollectionMetrics = field(default_factory=FieldCollectionMetrics)
    processing: ProcessingMetrics = field(default_factory=ProcessingMetrics)
    packaging: PackagingMetrics = field(default_factory=PackagingMetrics)
    labeling: LabelingMetrics = field(default_factory=LabelingMetrics)

    def merge(self, other: "StageMetrics") -> "StageMetrics":
        return StageMetrics(
            field_collection=self.field_collection.merge(other.field_collection),
            processing=_sum_metrics(self.processing, other.processing),
            packaging=_sum_metrics(self.packaging, other.packaging),
            labeling=_sum_metrics(self.labeling, other.labeling),
        )


@dataclass(frozen=True)
class ProductReport:
    product_line: str
    metrics: StageMetrics


@dataclass(frozen=True)
class DailyReport:
    date: date
    generated_at: datetime
    per_product: dict[str, ProductReport]
    totals: StageMetrics


def parse_report_date(value: Union[str, date, None]) -> date:
    """Accept ``YYYY-MM-DD`` strings, dates, or ``None`` for today."""

    if value is None:
        return timezone.localdate()
    if isinstance(value, datetime):
        return timezone.localdate(value) if timezone.is_aware(value) else value.date()
    if isinstance(value, date):
        return value
    raw = str(value).strip()
    if not raw:
        return timezone.localdate()
    if not DATE_PATTERN.match(raw):
        raise ValidationError({"date": ["Date must be in YYYY-MM-DD format."]})
    try:
        return date.fromisoformat(raw)
    except ValueError as exc:
        raise ValidationError({"date": [f"{raw} is not a valid calendar date."]}) from exc


def _local_day_bounds(target_date: date) -> tuple[datetime, datetime]:
    """Return timezone-aware start/end datetimes for the provided day."""

    local_tz = timezone.get_current_timezone()
    start_naive = datetime.combine(target_date, datetime.min.time())
    end_naive = datetime.combine(target_date + timedelta(days=1), datetime.min.time())
    return (
        timezone.make_aware(start_naive, local_tz),
        timezone.make_aware(end_naive, local_tz),
    )


def _decimal_sum(field_name: str) -> Coalesce:
    return Coalesce(Sum(field_name), ZERO, output_field=DECIMAL_FIELD)


def _field_collection_metrics(product_line: ProductLine, target_date: date) -> FieldCollectionMetrics:
    can_model = resolve(EntityKind.CAN, product_line)
    drafts = Draft.objects.filter(
        Exists(can_model.objects.filter(draft=OuterRef("pk"))),
        date=target_date,
        status=Draft.Status.SUBMITTED,
    )
    draft_ids = frozenset(drafts.values_list("draft_id", flat=True))
    totals = can_model.objects.filter(draft__in=drafts).aggregate(
        can_count=Count("pk"),
        total_quantity=_decimal_sum("quantity"),
    )
    return FieldCollectionMetrics(
        drafts=len(draft_ids),
        cans=totals["can_count"] or 0,
        quantity=Decimal(totals["total_quantity"] or 0),
        draft_ids=draft_ids,
    )


def _processing_metrics(product_line: ProductLine, target_date: date) -> ProcessingMetrics:
    batch_model = resolve(EntityKind.PROCESSING_BATCH, product_line)
    assignment_model = resolve(EntityKind.PROCESSING_ASSIGNMENT, product_line)
    batches = batch_model.objects.filter(scheduled_date=target_date).exclude(
        status=BaseProcessingBatch.Status.CANCELLED
    )
    totals = batches.aggregate(
        total_batches=Count("pk"),
        completed_batches=Count("pk", filter=Q(status=BaseProcessingBatch.Status.COMPLETED)),
        total_output=_decimal_sum("output_quantity"),
        total_gas_used_kg=_decimal_sum("gas_used_kg"),
    )
    total_input = assignment_model.objects.filter(batch__in=batches).aggregate(
        total=_decimal_sum("can__quantity")
    )["total"]
    return ProcessingMetrics(
        total_batches=totals["total_batches"] or 0,
        completed_batches=totals["completed_batches"] or 0,
        total_output=Decimal(totals["total_output"] or 0),
        total_input=Decimal(total_input or 0),
        total_gas_used_kg=Decimal(totals["total_gas_used_kg"] or 0),
    )


def _packaging_metrics(product_line: ProductLine, start: datetime, end: datetime) -> PackagingMetrics:
    model = resolve(EntityKind.PACKAGING_BATCH, product_line)
    quantity_fields = ("finished_quantity",) + model.ALL_MATERIAL_FIELDS
    totals = model.objects.filter(started_at__gte=start, started_at__lt=end).aggregate(
        total_batches=Count("pk"),
        completed_batches=Count("pk", filter=Q(status=StageStatus.COMPLETED)),
        **{f"sum_{name}": _decimal_sum(name) for name in quantity_fields},
    )
    return PackagingMetrics(
        total_batches=totals["total_batches"] or 0,
        completed_batches=totals["completed_batches"] or 0,
        **{name: Decimal(totals[f"sum_{name}"] or 0) for name in quantity_fields},
    )


def _labeling_metrics(product_line: ProductLine, start: datetime, end: datetime) -> LabelingMetrics:
    model = resolve(EntityKind.LABELING_BATCH, product_line)
    totals = model.objects.filter(created_at__gte=start, created_at__lt=end).aggregate(
        total_batches=Count("pk"),
        completed_batches=Count("pk", filter=Q(status=StageStatus.COMPLETED)),
        **{f"sum_{name}": _decimal_sum(name) for name in model.ALL_ACCESSORY_FIELDS},
    )
    return LabelingMetrics(
        total_batches=totals["total_batches"] or 0,
        completed_batches=totals["completed_batches"] or 0,
        **{name: Decimal(totals[f"sum_{name}"] or 0) for name in model.ALL_ACCESSORY_FIELDS},
    )


def build_product_report(product_line: Union[ProductLine, str], target_date: date) -> ProductReport:
    product_line = ProductLine(product_line)
    start, end = _local_day_bounds(target_date)
    return ProductReport(
        product_line=product_line.value,
        metrics=StageMetrics(
            field_collection=_field_collection_metrics(product_line, target_date),
            processing=_processing_metrics(product_line, target_date),
            packaging=_packaging_metrics(product_line, start, end),
            labeling=_labeling_metrics(product_line, start, end),
        ),
    )


def build_daily_report(target_date: Union[str, date, None] = None) -> DailyReport:
    """Compose the cross-stage production report for one calendar day.

    Per product line, field collection counts submitted drafts of the day
    holding cans of that line, processing counts non-cancelled batches
    scheduled that day, packaging counts batches started that day and
    labeling counts batches created that day. Totals sum every metric across
    lines except the draft ids, which are merged as a set.
    """

    report_date = parse_report_date(target_date)
    per_product: dict[str, ProductReport] = {}
    totals = StageMetrics()
    for product_line in ProductLine:
        product_report = build_product_report(product_line, report_date)
        per_product[product_line.value] = product_report
        totals = totals.merge(product_report.metrics)
    return DailyReport(
        date=report_date,
        generated_at=timezone.now(),
        per_product=per_product,
        totals=totals,
    )
