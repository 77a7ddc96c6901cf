from __future__ import annotations

import uuid


DRAFT_PREFIX = "d"
PROCESSING_BATCH_PREFIX = "pb"
PACKAGING_BATCH_PREFIX = "pkg"
LABELING_BATCH_PREFIX = "lab"


def new_identifier(prefix: str) -> str:
    """Return an opaque external identifier such as ``pb3f9c0a1e4b7d``."""

    return f"{prefix}{uuid.uuid4().hex[:12]}"
