"""Machine-readable JSON summary of an extracted process."""

from dataclasses import asdict
from typing import Any, Dict, List, Optional, Sequence

from ..bpel_parser.contracts import ContractIndex
from ..bpel_parser.models import ProcessDocument
from ..constants import RISK_LEVELS, SUMMARY_SCHEMA_VERSION
from ..extraction.models import Gap
from .mapping import map_components


def build_summary(
    document: ProcessDocument,
    gaps: Sequence[Gap],
    contracts: Optional[ContractIndex] = None,
) -> Dict[str, Any]:
    """Build the summary dict written to ``summaries/<process>.json``.

    Keys are stable across runs for the same input; lists keep document
    order so diffs between runs stay readable.
    """
    contracts = contracts or ContractIndex()

    partner_links: List[Dict[str, Any]] = []
    for plink in document.partner_links:
        entry = asdict(plink)
        entry["direction"] = plink.direction
        if contracts.has_wsdl:
            resolved = contracts.resolve_partner_link(plink)
            entry["contract"] = {
                "resolved": resolved.resolved,
                "my_port_type": resolved.my_port_type,
                "partner_port_type": resolved.partner_port_type,
                "operations": [
                    {"name": op.name, "pattern": op.pattern,
                     "input": op.input_message, "output": op.output_message,
                     "faults": [f.get("name", "") for f in op.faults]}
                    for op in resolved.operations
                ],
                "missing_operations": resolved.missing_operations,
            }
        partner_links.append(entry)

    variables: List[Dict[str, Any]] = []
    for variable in document.variables:
        entry = asdict(variable)
        fields = contracts.resolve_variable(variable)
        if fields:
            entry["fields"] = [
                {"name": f.name, "type": f.type_name, "cardinality": f.cardinality}
                for f in fields
            ]
        variables.append(entry)

    correlations = [
        {
            "name": cset.name,
            "properties": cset.properties,
            "property_types": {
                p: contracts.properties.get(p.split(":")[-1], "") for p in cset.properties
            },
            "scope": cset.scope,
            "line": cset.line,
            "usages": [asdict(u) for u in cset.usages],
        }
        for cset in document.correlation_sets
    ]

    return {
        "schema_version": SUMMARY_SCHEMA_VERSION,
        "process": {
            "name": document.name,
            "target_namespace": document.target_namespace,
            "bpel_version": document.bpel_version,
            "file_path": document.file_path,
            "line_count": document.line_count,
            "query_language": document.query_language,
            "expression_language": document.expression_language,
            "documentation": document.documentation,
            "namespaces": dict(document.namespaces),
        },
        "imports": [asdict(i) for i in document.imports],
        "partner_links": partner_links,
        "variables": variables,
        "interactions": [asdict(i) for i in document.interactions],
        "decisions": [asdict(d) for d in document.decisions],
        "loops": [asdict(loop) for loop in document.loops],
        "data_mappings": [
            {
                "assign": m.assign_name,
                "operation": m.operation,
                "scope": m.scope,
                "line": m.line,
                "source": m.source.describe() if m.source else None,
                "target": m.target.describe() if m.target else None,
            }
            for m in document.data_mappings
        ],
        "faults": {
            "handlers": [asdict(f) for f in document.faults],
            "thrown": [asdict(t) for t in document.fault_throws],
        },
        "compensations": [asdict(c) for c in document.compensations],
        "correlations": correlations,
        "human_tasks": [asdict(t) for t in document.human_tasks],
        "timers": [asdict(t) for t in document.timers],
        "event_handlers": [asdict(e) for e in document.event_handlers],
        "java_embeddings": [asdict(j) for j in document.java_embeddings],
        "expressions": [asdict(e) for e in document.expressions],
        "links": [asdict(link) for link in document.links],
        "target_components": [c.to_dict() for c in map_components(document)],
        "unknown_elements": list(document.unknown_elements),
        "gaps": [g.to_dict() for g in gaps],
        "statistics": {
            "activities": dict(sorted(document.statistics.items())),
            "activity_count": sum(document.statistics.values()),
            "expression_count": len(document.expressions),
            "gap_count": len(gaps),
            "gaps_by_risk": {
                risk: sum(1 for g in gaps if g.risk.value == risk)
                for risk in RISK_LEVELS
            },
        },
    }
