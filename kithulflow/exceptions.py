"""Error taxonomy shared by the lifecycle services.

Validation failures use ``django.core.exceptions.ValidationError`` and access
denials use ``django.core.exceptions.PermissionDenied``. The classes below
cover the remaining categories and carry the identifiers a caller needs to
explain the failure (missing ids, conflicting ids, missing field names).
"""

from __future__ import annotations

from typing import Iterable

from django.core.exceptions import ObjectDoesNotExist


class LifecycleError(Exception):
    def __init__(self, message: str, *, identifiers: Iterable[str] = ()) -> None:
        super().__init__(message)
        self.message = message
        self.identifiers: tuple[str, ...] = tuple(identifiers)


class NotFoundError(LifecycleError, ObjectDoesNotExist):
    """Referenced entity or entities do not exist."""


class ConflictError(LifecycleError):
    """Uniqueness or exclusivity violation."""


class BusinessRuleError(LifecycleError):
    """The entity is not in a state that allows the requested transition."""


class NotEligibleError(BusinessRuleError):
    """The upstream batch has not reached a state that allows a downstream batch."""
