"""Update rules shared by packaging and labeling batches."""

from __future__ import annotations

from typing import Any, Iterable, Mapping

from kithulflow.exceptions import BusinessRuleError
from production.models import StageStatus
from production.services.completeness import foreign_branch_fields, is_complete, missing_required_fields


def apply_stage_update(
    batch,
    values: Mapping[str, Any],
    *,
    own_fields: Iterable[str],
    all_branch_fields: Iterable[str],
    identifier: str,
    stage_label: str,
) -> list[str]:
    """Validate ``values`` against ``batch`` and apply them in memory.

    Returns the field names to persist. Raises ``BusinessRuleError`` for
    fields of the other product line, for completed batches updated without
    an explicit status, and for required fields left without a value.
    """

    if "status" in values and not values["status"]:
        values = {name: value for name, value in values.items() if name != "status"}

    foreign = foreign_branch_fields(values.keys(), own=own_fields, universe=all_branch_fields)
    if foreign:
        raise BusinessRuleError(
            f"{batch.product_line.label} {stage_label} does not use: {', '.join(foreign)}.",
            identifiers=foreign,
        )

    if batch.status == StageStatus.COMPLETED and "status" not in values:
        raise BusinessRuleError(
            f"{stage_label.capitalize()} batch {identifier} is completed; set the status explicitly to change it.",
            identifiers=[identifier],
        )

    missing = missing_required_fields(batch, values)
    if missing:
        raise BusinessRuleError(
            f"Missing required fields for {batch.product_line.label} {stage_label}: {', '.join(missing)}.",
            identifiers=missing,
        )

    for field_name, value in values.items():
        setattr(batch, field_name, value)

    explicit_status = values.get("status")
    if explicit_status:
        batch.status = explicit_status
    elif is_complete(batch):
        batch.status = StageStatus.COMPLETED
    elif batch.status == StageStatus.PENDING:
        batch.status = StageStatus.IN_PROGRESS

    update_fields = [name for name in values.keys() if name != "status"]
    update_fields.extend(["status", "updated_at"])
    return update_fields
