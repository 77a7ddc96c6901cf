"""Domain services for the production app."""

from .completeness import is_complete, missing_required_fields
from .eligibility import Stage, available_cans, find_eligible
from .labeling import LabelingBatchService
from .packaging import PackagingBatchService
from .processing import ProcessingBatchService

__all__ = [
    "LabelingBatchService",
    "PackagingBatchService",
    "ProcessingBatchService",
    "Stage",
    "available_cans",
    "find_eligible",
    "is_complete",
    "missing_required_fields",
]
