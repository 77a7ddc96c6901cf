from __future__ import annotations

import re
from decimal import Decimal

from django import forms

from kithulflow.product_lines import CAN_ID_PREFIXES, CAN_SERIAL_DIGITS, ProductLine


CAN_ID_PATTERN = re.compile(r"^(?P<prefix>[A-Z]{3})-(?P<serial>\d{%d})$" % CAN_SERIAL_DIGITS)
SERIAL_PATTERN = re.compile(r"^\d{1,%d}$" % CAN_SERIAL_DIGITS)


def build_can_id(product_line: str, serial_number: str) -> str:
    return f"{CAN_ID_PREFIXES[ProductLine(product_line)]}-{serial_number.zfill(CAN_SERIAL_DIGITS)}"


class DraftCreateForm(forms.Form):
    date = forms.DateField(required=False, input_formats=["%Y-%m-%d"])


class CanMeasurementsForm(forms.Form):
    brix_value = forms.DecimalField(
        required=False,
        max_digits=5,
        decimal_places=2,
        min_value=Decimal("0"),
        max_value=Decimal("100"),
    )
    ph_value = forms.DecimalField(
        required=False,
        max_digits=4,
        decimal_places=2,
        min_value=Decimal("0"),
        max_value=Decimal("14"),
    )
    quantity = forms.DecimalField(max_digits=10, decimal_places=2)

    def clean_quantity(self):
        quantity = self.cleaned_data.get("quantity")
        if quantity is not None and quantity <= 0:
            raise forms.ValidationError("Quantity must be greater than zero.")
        return quantity


class CanCreateForm(CanMeasurementsForm):
    draft_id = forms.CharField(max_length=64)
    collection_center_id = forms.CharField(max_length=64)
    product_line = forms.ChoiceField(choices=ProductLine.choices)
    can_id = forms.CharField(max_length=32, required=False)
    serial_number = forms.CharField(max_length=CAN_SERIAL_DIGITS, required=False)

    def clean_can_id(self):
        return (self.cleaned_data.get("can_id") or "").strip().upper()

    def clean_serial_number(self):
        serial = (self.cleaned_data.get("serial_number") or "").strip()
        if serial and not SERIAL_PATTERN.match(serial):
            raise forms.ValidationError(f"Serial number must be 1 to {CAN_SERIAL_DIGITS} digits.")
        return serial

    def clean(self):
        cleaned = super().clean()
        product_line = cleaned.get("product_line")
        can_id = cleaned.get("can_id")
        serial = cleaned.get("serial_number")
        if not product_line or "can_id" in self.errors or "serial_number" in self.errors:
            return cleaned

        expected_prefix = CAN_ID_PREFIXES[ProductLine(product_line)]
        if can_id:
            match = CAN_ID_PATTERN.match(can_id)
            if not match:
                self.add_error(
                    "can_id",
                    f"Can id must look like {expected_prefix}-{'0' * CAN_SERIAL_DIGITS}.",
                )
            elif match.group("prefix") != expected_prefix:
                self.add_error(
                    "can_id",
                    f"{product_line.title()} cans must use the {expected_prefix}- prefix.",
                )
        elif serial:
            cleaned["can_id"] = build_can_id(product_line, serial)
        else:
            raise forms.ValidationError("Provide either a can id or a serial number.")
        return cleaned


class CanUpdateForm(CanMeasurementsForm):
    """Partial update: only the submitted measurements are validated and applied."""

    def __init__(self, data=None, *args, **kwargs):
        super().__init__(data, *args, **kwargs)
        self.fields["quantity"].required = False
        self.submitted_fields = [name for name in self.fields if data is not None and name in data]
