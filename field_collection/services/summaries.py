from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date, datetime
from decimal import Decimal
from typing import Iterable, Optional

from field_collection.models import BaseCan, CollectionCenter, Draft
from kithulflow.product_lines import ProductLine


@dataclass(frozen=True)
class CanSummary:
    can_id: str
    product_line: str
    draft_id: str
    collection_center_id: str
    collection_center_name: str
    brix_value: Optional[Decimal]
    ph_value: Optional[Decimal]
    quantity: Decimal
    created_at: datetime
    updated_at: datetime


@dataclass(frozen=True)
class CenterCans:
    center_id: str
    center_name: str
    is_completed: bool
    cans: list[CanSummary] = field(default_factory=list)

    @property
    def can_count(self) -> int:
        return len(self.cans)

    @property
    def total_quantity(self) -> Decimal:
        return sum((can.quantity for can in self.cans), Decimal("0"))


@dataclass(frozen=True)
class DraftSummary:
    draft_id: str
    date: date
    status: str
    status_label: str
    created_by_id: Optional[int]
    created_by_name: Optional[str]
    can_count: int
    total_quantity: Decimal
    created_at: datetime
    updated_at: datetime


@dataclass(frozen=True)
class DraftDetail:
    draft: DraftSummary
    centers: list[CenterCans]
    completed_center_ids: list[str]


@dataclass(frozen=True)
class CollectionCenterSummary:
    center_id: str
    name: str
    location: str
    agent_name: str
    contact_phone: str
    is_active: bool


def _display_name(user) -> Optional[str]:
    if not user:
        return None
    return user.get_full_name() or str(user)


def can_summary(can: BaseCan) -> CanSummary:
    center = can.collection_center
    return CanSummary(
        can_id=can.can_id,
        product_line=ProductLine(type(can).product_line).value,
        draft_id=can.draft.draft_id,
        collection_center_id=center.center_id,
        collection_center_name=center.name,
        brix_value=can.brix_value,
        ph_value=can.ph_value,
        quantity=Decimal(can.quantity),
        created_at=can.created_at,
        updated_at=can.updated_at,
    )


def draft_summary(draft: Draft, *, can_count: int = 0, total_quantity: Decimal | None = None) -> DraftSummary:
    return DraftSummary(
        draft_id=draft.draft_id,
        date=draft.date,
        status=draft.status,
        status_label=draft.get_status_display(),
        created_by_id=draft.created_by_id,
        created_by_name=_display_name(draft.created_by),
        can_count=can_count,
        total_quantity=Decimal(total_quantity or 0),
        created_at=draft.created_at,
        updated_at=draft.updated_at,
    )


def center_summary(center: CollectionCenter) -> CollectionCenterSummary:
    return CollectionCenterSummary(
        center_id=center.center_id,
        name=center.name,
        location=center.location,
        agent_name=center.agent_name,
        contact_phone=center.contact_phone,
        is_active=center.is_active,
    )


def group_cans_by_center(cans: Iterable[BaseCan], completed_center_ids: Iterable[str]) -> list[CenterCans]:
    """Bucket cans per collection center, ordered by center name."""

    completed = set(completed_center_ids)
    buckets: dict[str, tuple[CollectionCenter, list[CanSummary]]] = {}
    for can in cans:
        center = can.collection_center
        entry = buckets.setdefault(center.center_id, (center, []))
        entry[1].append(can_summary(can))
    grouped = [
        CenterCans(
            center_id=center.center_id,
            center_name=center.name,
            is_completed=center.center_id in completed,
            cans=sorted(items, key=lambda item: item.can_id),
        )
        for center, items in buckets.values()
    ]
    grouped.sort(key=lambda item: (item.center_name, item.center_id))
    return grouped
