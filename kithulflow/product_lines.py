from __future__ import annotations

from django.core.exceptions import ValidationError
from django.db import models


class ProductLine(models.TextChoices):
    TREACLE = "treacle", "Treacle"
    JAGGERY = "jaggery", "Jaggery"


# Treacle is boiled from sap cans; jaggery is set from treacle cans.
CAN_ID_PREFIXES: dict[str, str] = {
    ProductLine.TREACLE: "SAP",
    ProductLine.JAGGERY: "TCL",
}

CAN_SERIAL_DIGITS = 8


def normalize_product_line(value) -> ProductLine | None:
    """Return the matching product line for a loosely formatted value, or ``None``."""

    if value is None:
        return None
    if isinstance(value, ProductLine):
        return value
    cleaned = str(value).strip().lower()
    if cleaned in ProductLine.values:
        return ProductLine(cleaned)
    return None


def clean_product_line_filter(value) -> ProductLine | None:
    """Normalize a caller-supplied product filter; blank means every line."""

    if value is None or (isinstance(value, str) and not value.strip()):
        return None
    product_line = normalize_product_line(value)
    if product_line is None:
        raise ValidationError({"product_line": [f"Unknown product line: {value}."]})
    return product_line
