"""Role and ownership checks applied by the lifecycle services."""

from __future__ import annotations

from typing import Any

from django.core.exceptions import PermissionDenied

from .models import Role


def is_administrator(actor) -> bool:
    if actor is None:
        return False
    return getattr(actor, "role", None) == Role.ADMINISTRATOR


def has_role(actor, *roles: str) -> bool:
    if actor is None:
        return False
    if is_administrator(actor):
        return True
    return getattr(actor, "role", None) in roles


def ensure_role(actor, *roles: str) -> None:
    """Raise ``PermissionDenied`` unless the actor holds one of ``roles``.

    Administrators pass every role check.
    """

    if not has_role(actor, *roles):
        allowed = ", ".join(roles) if roles else Role.ADMINISTRATOR
        raise PermissionDenied(f"This action requires one of the roles: {allowed}.")


def can_access(actor, entity: Any) -> bool:
    """Administrators reach everything; anyone else only what they created."""

    if is_administrator(actor):
        return True
    if actor is None:
        return False
    return getattr(entity, "created_by_id", None) == actor.pk


def ensure_can_access(actor, entity: Any) -> None:
    if not can_access(actor, entity):
        raise PermissionDenied("You do not have access to this record.")
