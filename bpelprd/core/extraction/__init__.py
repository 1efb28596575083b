"""Extraction pipeline: gap detection and result models.

The service lives in ``extraction.service``; it is not re-exported here
because the PRD package imports these models.
"""

from .gaps import GapDetector, list_rules
from .models import (
    ExtractionResult,
    Gap,
    GapCategory,
    GapRule,
    GateDefinition,
    GateResult,
    Risk,
)

__all__ = [
    "ExtractionResult",
    "Gap",
    "GapCategory",
    "GapDetector",
    "GapRule",
    "GateDefinition",
    "GateResult",
    "Risk",
    "list_rules",
]
