"""Data contracts for the extraction pipeline.

Gap records, completeness gates and the per-file extraction result.
Kept as dataclasses for transport between the service, CLI and API.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional

from ..bpel_parser.models import ParseError, ProcessDocument


class GapCategory(str, Enum):
    """What kind of ambiguity a gap records."""

    EMBEDDED_CODE = "embedded_code"
    VENDOR_EXTENSION = "vendor_extension"
    CONTRACT = "contract"
    DATA = "data"
    BUSINESS_RULE = "business_rule"
    ERROR_HANDLING = "error_handling"
    TIMING = "timing"
    CORRELATION = "correlation"
    HUMAN_WORKFLOW = "human_workflow"
    CONFIGURATION = "configuration"
    PARSING = "parsing"


class Risk(str, Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"


@dataclass
class GapRule:
    """A deterministic gap detection rule."""

    rule_id: str
    """Rule identifier, e.g. ``"embedded_java"``."""

    category: GapCategory
    description: str
    default_risk: Risk = Risk.MEDIUM


@dataclass
class Gap:
    """One row of the Gaps & Assumptions table."""

    gap_id: str  # "GAP-001"
    rule: str
    category: GapCategory
    description: str
    question: str
    proposed_default: str
    risk: Risk
    validation: str
    line: int = 0
    refs: List[str] = field(default_factory=list)  # related IDs, e.g. ["X-004", "D-002"]

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.gap_id,
            "rule": self.rule,
            "category": self.category.value,
            "description": self.description,
            "question": self.question,
            "proposed_default": self.proposed_default,
            "risk": self.risk.value,
            "validation": self.validation,
            "line": self.line,
            "refs": list(self.refs),
        }


@dataclass
class GateDefinition:
    """Definition of a completeness gate run against a rendered PRD."""

    name: str
    """Gate identifier, e.g. ``"expressions_verbatim"``."""

    description: str
    blocking: bool = True


@dataclass
class GateResult:
    """Result of running a completeness gate."""

    gate_name: str
    passed: bool
    details: Dict[str, Any] = field(default_factory=dict)
    blocking: bool = True

    def to_dict(self) -> Dict[str, Any]:
        return {
            "gate": self.gate_name,
            "passed": self.passed,
            "blocking": self.blocking,
            "details": self.details,
        }


@dataclass
class ExtractionResult:
    """Everything produced for one BPEL file."""

    file_path: str
    document: Optional[ProcessDocument] = None
    gaps: List[Gap] = field(default_factory=list)
    markdown: str = ""
    summary: Dict[str, Any] = field(default_factory=dict)
    gates: List[GateResult] = field(default_factory=list)
    errors: List[ParseError] = field(default_factory=list)
    prd_path: Optional[str] = None
    summary_path: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.document is not None and not any(
            e.severity == "error" for e in self.errors
        )

    @property
    def blocking_failures(self) -> List[GateResult]:
        return [g for g in self.gates if g.blocking and not g.passed]
