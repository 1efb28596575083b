"""Completeness gates for a PRD.

Gates compare a markdown PRD (ours or one produced elsewhere, e.g. by an
LLM agent) against the parsed process. A gate passes when every item it
tracks is present in the document; the details list what is missing.
"""

import logging
import re
from typing import Any, Callable, Dict, List, Optional, Sequence

from ..bpel_parser.models import ProcessDocument
from ..extraction.models import Gap, GateDefinition, GateResult

logger = logging.getLogger(__name__)

GAP_TABLE_COLUMNS = [
    "ID", "Category", "Description", "Question", "Proposed Default", "Risk", "Validation",
]

_GATES: List[GateDefinition] = [
    GateDefinition(
        name="variables_documented",
        description="Every declared variable is named in the PRD.",
        blocking=False,
    ),
    GateDefinition(
        name="partner_links_documented",
        description="Every partner link is named in the PRD.",
        blocking=True,
    ),
    GateDefinition(
        name="expressions_verbatim",
        description="Every XPath expression appears character for character.",
        blocking=True,
    ),
    GateDefinition(
        name="decisions_documented",
        description="Every decision is listed with the verbatim condition of each branch.",
        blocking=True,
    ),
    GateDefinition(
        name="faults_documented",
        description="Every fault handler and every fault thrown is documented.",
        blocking=True,
    ),
    GateDefinition(
        name="gaps_tabulated",
        description="A seven-column Gaps & Assumptions table lists every detected gap.",
        blocking=True,
    ),
]


def get_gates() -> List[GateDefinition]:
    return list(_GATES)


def _mentions(markdown: str, name: str) -> bool:
    """Name appears as a whole token (not as part of a longer identifier)."""
    if not name:
        return True
    return re.search(r"(?<![\w\-])" + re.escape(name) + r"(?![\w\-])", markdown) is not None


def _coverage(total: int, missing: int) -> float:
    return (total - missing) / total if total else 1.0


def run_gates(
    document: ProcessDocument,
    markdown: str,
    gaps: Optional[Sequence[Gap]] = None,
) -> List[GateResult]:
    """Run every gate. ``gaps`` is optional: without it only the table shape is checked."""
    gate_map: Dict[str, Callable[..., GateResult]] = {
        "variables_documented": _gate_variables,
        "partner_links_documented": _gate_partner_links,
        "expressions_verbatim": _gate_expressions,
        "decisions_documented": _gate_decisions,
        "faults_documented": _gate_faults,
        "gaps_tabulated": _gate_gaps,
    }
    results = []
    for gate_def in _GATES:
        result = gate_map[gate_def.name](document, markdown, gaps, gate_def)
        if not result.passed:
            logger.info("Gate %s failed for %s: %s", gate_def.name, document.name,
                        result.details.get("missing"))
        results.append(result)
    return results


def _result(gate_def: GateDefinition, total: int, missing: List[Any], **extra: Any) -> GateResult:
    details: Dict[str, Any] = {
        "total": total,
        "missing": missing,
        "coverage": _coverage(total, len(missing)),
    }
    details.update(extra)
    return GateResult(
        gate_name=gate_def.name,
        passed=not missing,
        details=details,
        blocking=gate_def.blocking,
    )


def _gate_variables(document, markdown, gaps, gate_def) -> GateResult:
    names = sorted({v.name for v in document.variables})
    missing = [n for n in names if not _mentions(markdown, n)]
    return _result(gate_def, len(names), missing)


def _gate_partner_links(document, markdown, gaps, gate_def) -> GateResult:
    names = sorted({p.name for p in document.partner_links})
    missing = [n for n in names if not _mentions(markdown, n)]
    return _result(gate_def, len(names), missing)


def _gate_expressions(document, markdown, gaps, gate_def) -> GateResult:
    missing = [
        {"id": e.expression_id, "line": e.line, "text": e.text}
        for e in document.expressions
        if e.text not in markdown
    ]
    return _result(gate_def, len(document.expressions), missing)


def _gate_decisions(document, markdown, gaps, gate_def) -> GateResult:
    missing = []
    for decision in document.decisions:
        absent = [
            b.condition for b in decision.branches
            if b.condition and b.condition not in markdown
        ]
        if absent:
            missing.append({"id": decision.decision_id, "line": decision.line, "conditions": absent})
    return _result(gate_def, len(document.decisions), missing)


def _gate_faults(document, markdown, gaps, gate_def) -> GateResult:
    missing = []
    for fault in document.faults:
        label = fault.fault_name or fault.kind
        if not _mentions(markdown, label):
            missing.append({"id": fault.fault_id, "line": fault.line, "fault": label})
    thrown = sorted({t.fault_name for t in document.fault_throws if t.fault_name})
    missing.extend({"fault": name} for name in thrown if not _mentions(markdown, name))
    return _result(gate_def, len(document.faults) + len(thrown), missing)


def _find_gap_header(markdown: str) -> bool:
    for line in markdown.splitlines():
        if not line.lstrip().startswith("|"):
            continue
        cells = [c.strip().lower() for c in line.strip().strip("|").split("|")]
        if len(cells) < len(GAP_TABLE_COLUMNS):
            continue
        if all(
            any(col.lower() in cell for cell in cells) for col in GAP_TABLE_COLUMNS
        ):
            return True
    return False


def _gate_gaps(document, markdown, gaps, gate_def) -> GateResult:
    has_table = _find_gap_header(markdown)
    ids = [g.gap_id for g in gaps] if gaps is not None else []
    missing: List[Any] = [i for i in ids if not _mentions(markdown, i)]
    if not has_table:
        missing.insert(0, "gaps table header")
    return _result(gate_def, len(ids) + 1, missing, table_found=has_table)
