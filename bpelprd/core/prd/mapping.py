"""Target component naming for the implementer hand-off.

Suggests Spring Boot component names for the constructs in a process:
inbound partner links become controllers, the process itself a service,
outbound partner links clients, message and element types model classes
and fault names exceptions. Names only; no code is generated.
"""

import re
from dataclasses import dataclass
from typing import Dict, List

from ..bpel_parser.models import ProcessDocument
from ..bpel_parser.utils import local_name

# Trailing words that add nothing to a component name
_NOISE_SUFFIXES = ("PartnerLink", "PL", "Service", "Process", "BPEL", "Bpel")


def _pascal_case(name: str) -> str:
    """Convert a slash/dash/underscore-delimited name to PascalCase."""
    parts = re.split(r"[/\-_.\s]+", name.strip("/"))
    return "".join(p[:1].upper() + p[1:] for p in parts if p)


def _base_name(name: str) -> str:
    base = _pascal_case(local_name(name))
    for suffix in _NOISE_SUFFIXES:
        if base.endswith(suffix) and len(base) > len(suffix):
            base = base[: -len(suffix)]
            break
    return base or "Unnamed"


@dataclass
class ComponentMapping:
    """One suggested target component."""

    kind: str  # "controller" | "service" | "client" | "model" | "exception"
    name: str
    source: str  # BPEL construct it derives from

    def to_dict(self) -> Dict[str, str]:
        return {"kind": self.kind, "name": self.name, "source": self.source}


def map_components(document: ProcessDocument) -> List[ComponentMapping]:
    """Suggested target components, deduplicated, in document order."""
    result: List[ComponentMapping] = []
    seen = set()

    def add(kind: str, name: str, source: str) -> None:
        if (kind, name) in seen:
            return
        seen.add((kind, name))
        result.append(ComponentMapping(kind, name, source))

    for plink in document.partner_links:
        if plink.direction in ("inbound", "bidirectional"):
            add("controller", _base_name(plink.name) + "Controller", f"partnerLink {plink.name}")

    add("service", _base_name(document.name) + "Service", f"process {document.name}")

    for plink in document.partner_links:
        if plink.direction in ("outbound", "bidirectional"):
            add("client", _base_name(plink.name) + "Client", f"partnerLink {plink.name}")

    for variable in document.variables:
        if variable.kind in ("messageType", "element") and variable.type_name:
            add("model", _pascal_case(local_name(variable.type_name)),
                f"{variable.kind} {variable.type_name}")

    fault_names = [f.fault_name for f in document.faults] + [
        t.fault_name for t in document.fault_throws
    ]
    for fault_name in fault_names:
        if not fault_name:
            continue
        base = _pascal_case(local_name(fault_name))
        if not base.endswith("Exception"):
            base = (re.sub(r"(Fault|Error)$", "", base) or base) + "Exception"
        add("exception", base, f"fault {fault_name}")

    return result
