from __future__ import annotations

from decimal import Decimal

from django.conf import settings
from django.core.validators import MinValueValidator
from django.db import models
from django.utils import timezone

from field_collection.models import SapCan, TreacleCan
from kithulflow.product_lines import ProductLine


MAX_CANS_PER_BATCH = 15

NON_NEGATIVE = [MinValueValidator(Decimal("0"))]


class StageStatus(models.TextChoices):
    """Statuses shared by packaging and labeling batches."""

    PENDING = "pending", "Pending"
    IN_PROGRESS = "in-progress", "In progress"
    COMPLETED = "completed", "Completed"
    ON_HOLD = "on-hold", "On hold"


def _quantity_field(**kwargs) -> models.DecimalField:
    return models.DecimalField(
        max_digits=12,
        decimal_places=2,
        null=True,
        blank=True,
        validators=NON_NEGATIVE,
        **kwargs,
    )


class BatchNumberSequence(models.Model):
    """Last batch number issued per product line.

    Creation locks the row so concurrent creators never read the same value.
    """

    product_line = models.CharField(max_length=16, choices=ProductLine.choices, unique=True)
    last_value = models.PositiveIntegerField(default=0)

    class Meta:
        verbose_name = "Batch number sequence"
        verbose_name_plural = "Batch number sequences"

    def __str__(self) -> str:
        return f"{self.product_line}: {self.last_value:02d}"


class BaseProcessingBatch(models.Model):
    class Status(models.TextChoices):
        IN_PROGRESS = "in-progress", "In progress"
        COMPLETED = "completed", "Completed"
        CANCELLED = "cancelled", "Cancelled"

    product_line: str = ""

    batch_id = models.CharField(max_length=64, unique=True)
    batch_number = models.CharField(max_length=16)
    scheduled_date = models.DateField(default=timezone.localdate)
    status = models.CharField(max_length=16, choices=Status.choices, default=Status.IN_PROGRESS)
    output_quantity = _quantity_field()
    gas_used_kg = _quantity_field()
    notes = models.TextField(blank=True)
    created_by = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="%(class)s_created",
    )
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        abstract = True
        ordering = ["-scheduled_date", "batch_number"]

    def __str__(self) -> str:
        return f"{self.product_line} #{self.batch_number} ({self.batch_id})"


class TreacleProcessingBatch(BaseProcessingBatch):
    product_line = ProductLine.TREACLE

    class Meta(BaseProcessingBatch.Meta):
        verbose_name = "Treacle processing batch"
        verbose_name_plural = "Treacle processing batches"


class JaggeryProcessingBatch(BaseProcessingBatch):
    product_line = ProductLine.JAGGERY

    class Meta(BaseProcessingBatch.Meta):
        verbose_name = "Jaggery processing batch"
        verbose_name_plural = "Jaggery processing batches"


class BaseBatchCan(models.Model):
    """Assignment of one can to one processing batch."""

    added_at = models.DateTimeField(default=timezone.now)

    class Meta:
        abstract = True
        ordering = ["added_at", "pk"]


class TreacleBatchCan(BaseBatchCan):
    batch = models.ForeignKey(
        TreacleProcessingBatch,
        on_delete=models.CASCADE,
        related_name="assignments",
    )
    can = models.ForeignKey(
        SapCan,
        on_delete=models.CASCADE,
        related_name="assignments",
    )

    class Meta(BaseBatchCan.Meta):
        verbose_name = "Treacle batch can"
        verbose_name_plural = "Treacle batch cans"
        constraints = [
            models.UniqueConstraint(fields=["batch", "can"], name="unique_treacle_batch_can"),
        ]


class JaggeryBatchCan(BaseBatchCan):
    batch = models.ForeignKey(
        JaggeryProcessingBatch,
        on_delete=models.CASCADE,
        related_name="assignments",
    )
    can = models.ForeignKey(
        TreacleCan,
        on_delete=models.CASCADE,
        related_name="assignments",
    )

    class Meta(BaseBatchCan.Meta):
        verbose_name = "Jaggery batch can"
        verbose_name_plural = "Jaggery batch cans"
        constraints = [
            models.UniqueConstraint(fields=["batch", "can"], name="unique_jaggery_batch_can"),
        ]


class BasePackagingBatch(models.Model):
    Status = StageStatus

    product_line: str = ""
    material_fields: tuple[str, ...] = ()

    packaging_id = models.CharField(max_length=64, unique=True)
    status = models.CharField(max_length=16, choices=StageStatus.choices, default=StageStatus.PENDING)
    notes = models.TextField(blank=True)
    finished_quantity = _quantity_field()
    bottle_quantity = _quantity_field()
    lid_quantity = _quantity_field()
    alufoil_quantity = _quantity_field()
    vacuum_bag_quantity = _quantity_field()
    parchment_paper_quantity = _quantity_field()
    started_at = models.DateTimeField(default=timezone.now)
    updated_at = models.DateTimeField(auto_now=True)

    ALL_MATERIAL_FIELDS = (
        "bottle_quantity",
        "lid_quantity",
        "alufoil_quantity",
        "vacuum_bag_quantity",
        "parchment_paper_quantity",
    )

    class Meta:
        abstract = True
        ordering = ["-started_at"]

    def __str__(self) -> str:
        return self.packaging_id

    @property
    def required_fields(self) -> tuple[str, ...]:
        return ("finished_quantity",) + self.material_fields


class TreaclePackagingBatch(BasePackagingBatch):
    product_line = ProductLine.TREACLE
    material_fields = ("bottle_quantity", "lid_quantity")

    processing_batch = models.OneToOneField(
        TreacleProcessingBatch,
        on_delete=models.CASCADE,
        related_name="packaging_batch",
    )

    class Meta(BasePackagingBatch.Meta):
        verbose_name = "Treacle packaging batch"
        verbose_name_plural = "Treacle packaging batches"


class JaggeryPackagingBatch(BasePackagingBatch):
    product_line = ProductLine.JAGGERY
    material_fields = ("alufoil_quantity", "vacuum_bag_quantity", "parchment_paper_quantity")

    processing_batch = models.OneToOneField(
        JaggeryProcessingBatch,
        on_delete=models.CASCADE,
        related_name="packaging_batch",
    )

    class Meta(BasePackagingBatch.Meta):
        verbose_name = "Jaggery packaging batch"
        verbose_name_plural = "Jaggery packaging batches"


class BaseLabelingBatch(models.Model):
    Status = StageStatus

    product_line: str = ""
    accessory_fields: tuple[str, ...] = ()

    labeling_id = models.CharField(max_length=64, unique=True)
    status = models.CharField(max_length=16, choices=StageStatus.choices, default=StageStatus.PENDING)
    notes = models.TextField(blank=True)
    sticker_quantity = _quantity_field()
    shrink_sleeve_quantity = _quantity_field()
    neck_tag_quantity = _quantity_field()
    corrugated_carton_quantity = _quantity_field()
    created_at = models.DateTimeField(default=timezone.now)
    updated_at = models.DateTimeField(auto_now=True)

    ALL_ACCESSORY_FIELDS = (
        "sticker_quantity",
        "shrink_sleeve_quantity",
        "neck_tag_quantity",
        "corrugated_carton_quantity",
    )

    class Meta:
        abstract = True
        ordering = ["-created_at"]

    def __str__(self) -> str:
        return self.labeling_id

    @property
    def required_fields(self) -> tuple[str, ...]:
        return self.accessory_fields


class TreacleLabelingBatch(BaseLabelingBatch):
    product_line = ProductLine.TREACLE
    accessory_fields = (
        "sticker_quantity",
        "shrink_sleeve_quantity",
        "neck_tag_quantity",
        "corrugated_carton_quantity",
    )

    packaging_batch = models.OneToOneField(
        TreaclePackagingBatch,
        on_delete=models.CASCADE,
        related_name="labeling_batch",
    )

    class Meta(BaseLabelingBatch.Meta):
        verbose_name = "Treacle labeling batch"
        verbose_name_plural = "Treacle labeling batches"


class JaggeryLabelingBatch(BaseLabelingBatch):
    product_line = ProductLine.JAGGERY
    accessory_fields = ("sticker_quantity", "corrugated_carton_quantity")

    packaging_batch = models.OneToOneField(
        JaggeryPackagingBatch,
        on_delete=models.CASCADE,
        related_name="labeling_batch",
    )

    class Meta(BaseLabelingBatch.Meta):
        verbose_name = "Jaggery labeling batch"
        verbose_name_plural = "Jaggery labeling batches"
