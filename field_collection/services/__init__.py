"""Domain services for the field collection app."""

from .cans import create_can, delete_can, get_can, list_draft_cans, update_can
from .drafts import (
    create_draft,
    delete_draft,
    get_draft,
    list_active_centers,
    list_completed_centers,
    list_drafts,
    reopen_center,
    reopen_draft,
    save_draft,
    submit_center,
    submit_draft,
)

__all__ = [
    "create_can",
    "create_draft",
    "delete_can",
    "delete_draft",
    "get_can",
    "get_draft",
    "list_active_centers",
    "list_completed_centers",
    "list_draft_cans",
    "list_drafts",
    "reopen_center",
    "reopen_draft",
    "save_draft",
    "submit_center",
    "submit_draft",
    "update_can",
]
