from __future__ import annotations

from decimal import Decimal

from django.conf import settings
from django.core.validators import MaxValueValidator, MinValueValidator
from django.db import models
from django.utils import timezone

from kithulflow.product_lines import ProductLine


class CollectionCenter(models.Model):
    center_id = models.CharField(max_length=64, unique=True)
    name = models.CharField(max_length=150)
    location = models.CharField(max_length=255, blank=True)
    agent_name = models.CharField(max_length=150, blank=True)
    contact_phone = models.CharField(max_length=32, blank=True)
    is_active = models.BooleanField(default=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        verbose_name = "Collection center"
        verbose_name_plural = "Collection centers"
        ordering = ["name"]

    def __str__(self) -> str:
        return f"{self.name} ({self.center_id})"


class Draft(models.Model):
    class Status(models.TextChoices):
        DRAFT = "draft", "Draft"
        SUBMITTED = "submitted", "Submitted"

    draft_id = models.CharField(max_length=64, unique=True)
    date = models.DateField(default=timezone.localdate)
    status = models.CharField(max_length=16, choices=Status.choices, default=Status.DRAFT)
    created_by = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.PROTECT,
        related_name="field_collection_drafts",
    )
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        verbose_name = "Field collection draft"
        verbose_name_plural = "Field collection drafts"
        ordering = ["-date", "-created_at"]
        constraints = [
            models.UniqueConstraint(
                fields=["created_by", "date"],
                name="unique_draft_per_user_and_date",
            ),
        ]

    def __str__(self) -> str:
        return f"{self.draft_id} ({self.date:%Y-%m-%d})"


class CenterCompletion(models.Model):
    draft = models.ForeignKey(
        Draft,
        on_delete=models.CASCADE,
        related_name="center_completions",
    )
    center = models.ForeignKey(
        CollectionCenter,
        on_delete=models.CASCADE,
        related_name="completions",
    )
    completed_at = models.DateTimeField(default=timezone.now)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        verbose_name = "Center completion"
        verbose_name_plural = "Center completions"
        ordering = ["draft", "center__name"]
        constraints = [
            models.UniqueConstraint(
                fields=["draft", "center"],
                name="unique_center_completion_per_draft",
            ),
        ]

    def __str__(self) -> str:
        return f"{self.draft.draft_id} · {self.center.center_id}"


class BaseCan(models.Model):
    """Unit of collected raw material recorded against a draft.

    Each product line keeps its cans in its own table; ``product_line`` tells
    the concrete model which line it belongs to.
    """

    product_line: str = ""

    can_id = models.CharField(max_length=32, unique=True)
    draft = models.ForeignKey(
        Draft,
        on_delete=models.CASCADE,
        related_name="%(class)ss",
    )
    collection_center = models.ForeignKey(
        CollectionCenter,
        on_delete=models.PROTECT,
        related_name="%(class)ss",
    )
    brix_value = models.DecimalField(
        max_digits=5,
        decimal_places=2,
        null=True,
        blank=True,
        validators=[MinValueValidator(Decimal("0")), MaxValueValidator(Decimal("100"))],
    )
    ph_value = models.DecimalField(
        max_digits=4,
        decimal_places=2,
        null=True,
        blank=True,
        validators=[MinValueValidator(Decimal("0")), MaxValueValidator(Decimal("14"))],
    )
    quantity = models.DecimalField(
        max_digits=10,
        decimal_places=2,
        validators=[MinValueValidator(Decimal("0.01"))],
    )
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        abstract = True
        ordering = ["collection_center__name", "can_id"]

    def __str__(self) -> str:
        return self.can_id


class SapCan(BaseCan):
    product_line = ProductLine.TREACLE

    class Meta(BaseCan.Meta):
        verbose_name = "Sap can"
        verbose_name_plural = "Sap cans"


class TreacleCan(BaseCan):
    product_line = ProductLine.JAGGERY

    class Meta(BaseCan.Meta):
        verbose_name = "Treacle can"
        verbose_name_plural = "Treacle cans"
