from __future__ import annotations

from decimal import Decimal

from django import forms

from kithulflow.product_lines import ProductLine
from production.models import MAX_CANS_PER_BATCH, StageStatus


class PartialUpdateForm(forms.Form):
    """Form whose fields are all optional; ``submitted_fields`` lists those present in the payload."""

    def __init__(self, data=None, *args, **kwargs):
        super().__init__(data, *args, **kwargs)
        for field in self.fields.values():
            field.required = False
        self.submitted_fields = [name for name in self.fields if data is not None and name in data]

    def submitted_values(self) -> dict:
        return {name: self.cleaned_data.get(name) for name in self.submitted_fields}


def _quantity_field() -> forms.DecimalField:
    return forms.DecimalField(max_digits=12, decimal_places=2, min_value=Decimal("0"), required=False)


class ProcessingBatchCreateForm(forms.Form):
    scheduled_date = forms.DateField(required=False, input_formats=["%Y-%m-%d"])
    product_line = forms.ChoiceField(choices=ProductLine.choices, required=False)


class ProcessingBatchUpdateForm(PartialUpdateForm):
    scheduled_date = forms.DateField(input_formats=["%Y-%m-%d"])
    product_line = forms.ChoiceField(choices=ProductLine.choices)
    output_quantity = _quantity_field()
    gas_used_kg = _quantity_field()
    notes = forms.CharField(max_length=2000, strip=True)

    def clean_scheduled_date(self):
        value = self.cleaned_data.get("scheduled_date")
        if "scheduled_date" in self.submitted_fields and value is None:
            raise forms.ValidationError("Scheduled date cannot be cleared.")
        return value

    def clean_notes(self):
        return self.cleaned_data.get("notes") or ""


class BatchCansForm(forms.Form):
    can_ids = forms.JSONField(required=False)

    def clean_can_ids(self):
        values = self.cleaned_data.get("can_ids")
        if values is None:
            return []
        if not isinstance(values, (list, tuple)) or not all(isinstance(item, str) for item in values):
            raise forms.ValidationError("Provide a list of can ids.")
        unique: list[str] = []
        for item in values:
            cleaned = item.strip().upper()
            if cleaned and cleaned not in unique:
                unique.append(cleaned)
        if len(unique) > MAX_CANS_PER_BATCH:
            raise forms.ValidationError(f"A processing batch holds at most {MAX_CANS_PER_BATCH} cans.")
        return unique


class StageBatchUpdateForm(PartialUpdateForm):
    status = forms.ChoiceField(choices=StageStatus.choices)
    notes = forms.CharField(max_length=2000, strip=True)

    def clean_notes(self):
        return self.cleaned_data.get("notes") or ""


class PackagingBatchUpdateForm(StageBatchUpdateForm):
    finished_quantity = _quantity_field()
    bottle_quantity = _quantity_field()
    lid_quantity = _quantity_field()
    alufoil_quantity = _quantity_field()
    vacuum_bag_quantity = _quantity_field()
    parchment_paper_quantity = _quantity_field()


class LabelingBatchUpdateForm(StageBatchUpdateForm):
    sticker_quantity = _quantity_field()
    shrink_sleeve_quantity = _quantity_field()
    neck_tag_quantity = _quantity_field()
    corrugated_carton_quantity = _quantity_field()
