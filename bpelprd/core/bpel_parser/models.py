"""BPEL parser data models.

Defines the normalized intermediate representation of a BPEL process.
These are pure data containers: no parsing logic.
"""

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional


@dataclass
class Activity:
    """A single node of the process activity tree.

    Structured activities (sequence, flow, if, scope, ...) hold their
    nested activities in ``children``. Branch containers of if/switch/pick
    are represented as pseudo-activities ("branch") so the tree keeps
    the original nesting.
    """

    activity_type: str  # "invoke" | "sequence" | "bpelx:exec" | "branch" | ...
    name: str
    line: int
    scope: str  # "process/ProcessOrder/ValidateScope"
    attributes: Dict[str, str] = field(default_factory=dict)
    documentation: Optional[str] = None
    children: List["Activity"] = field(default_factory=list)


@dataclass
class ImportDecl:
    namespace: str
    location: str
    import_type: str
    line: int = 0


@dataclass
class PartnerLink:
    name: str
    partner_link_type: str
    my_role: str
    partner_role: str
    scope: str
    line: int
    initialize_partner_role: str = ""
    operations: List[str] = field(default_factory=list)  # operations used in the process

    @property
    def direction(self) -> str:
        """inbound | outbound | bidirectional | unknown."""
        if self.my_role and self.partner_role:
            return "bidirectional"
        if self.my_role:
            return "inbound"
        if self.partner_role:
            return "outbound"
        return "unknown"


@dataclass
class Variable:
    name: str
    kind: str  # "messageType" | "element" | "type" | "untyped"
    type_name: str
    scope: str
    line: int
    initializer: Optional[str] = None


@dataclass
class Interaction:
    """A message exchange with a partner (receive/reply/invoke/onMessage/onEvent)."""

    activity_type: str
    name: str
    partner_link: str
    operation: str
    scope: str
    line: int
    port_type: str = ""
    input_variable: str = ""
    output_variable: str = ""
    create_instance: bool = False
    fault_name: str = ""
    fault_handled: bool = False  # an enclosing scope or inline handler catches faults
    # every toPart/@fromVariable and fromPart/@toVariable, in document order
    to_part_variables: List[str] = field(default_factory=list)
    from_part_variables: List[str] = field(default_factory=list)
    correlations: List[Dict[str, str]] = field(default_factory=list)


@dataclass
class Branch:
    label: str  # "if" | "elseif" | "else" | "case" | "otherwise" | "onMessage" | "onAlarm"
    condition: Optional[str]  # verbatim XPath, None for else/otherwise
    activity_types: List[str] = field(default_factory=list)
    line: int = 0


@dataclass
class Decision:
    decision_id: str  # "D-001"
    activity_type: str  # "if" | "switch" | "pick"
    name: str
    scope: str
    line: int
    branches: List[Branch] = field(default_factory=list)
    has_default: bool = False


@dataclass
class Loop:
    loop_id: str  # "L-001"
    activity_type: str  # "while" | "repeatUntil" | "forEach"
    name: str
    scope: str
    line: int
    condition: Optional[str] = None
    counter: str = ""
    start_expression: Optional[str] = None
    final_expression: Optional[str] = None
    completion_condition: Optional[str] = None
    parallel: bool = False
    body_types: List[str] = field(default_factory=list)


@dataclass
class DataEndpoint:
    """One side of a copy operation."""

    variable: str = ""
    part: str = ""
    query: str = ""
    expression: str = ""
    literal: str = ""
    partner_link: str = ""
    endpoint_reference: str = ""
    property: str = ""

    def describe(self) -> str:
        """Compact human-readable form used in tables."""
        if self.expression:
            return self.expression
        if self.literal:
            return f"literal {self.literal}"
        if self.partner_link:
            ref = f" ({self.endpoint_reference})" if self.endpoint_reference else ""
            return f"partnerLink {self.partner_link}{ref}"
        if not self.variable:
            return "(none)"
        text = f"${self.variable}"
        if self.part:
            text += f".{self.part}"
        if self.property:
            text += f" property {self.property}"
        if self.query:
            text += f" {self.query}"
        return text


@dataclass
class DataMapping:
    assign_name: str
    operation: str  # "copy" | "copyList" | "append" | "insertAfter" | "remove" | ...
    scope: str
    line: int
    source: Optional[DataEndpoint] = None
    target: Optional[DataEndpoint] = None


@dataclass
class FaultHandler:
    fault_id: str  # "F-001"
    kind: str  # "catch" | "catchAll"
    scope: str
    line: int
    fault_name: str = ""
    fault_variable: str = ""
    fault_type: str = ""  # faultMessageType or faultElement
    activity_types: List[str] = field(default_factory=list)


@dataclass
class FaultThrow:
    activity_type: str  # "throw" | "rethrow" | "reply"
    name: str
    fault_name: str
    scope: str
    line: int
    fault_variable: str = ""


@dataclass
class Compensation:
    compensation_id: str  # "C-001"
    kind: str  # "handler" | "compensate" | "compensateScope"
    scope: str
    line: int
    name: str = ""
    target: str = ""
    activity_types: List[str] = field(default_factory=list)


@dataclass
class CorrelationUsage:
    activity_type: str
    activity_name: str
    initiate: str  # "yes" | "no" | "join" | ""
    pattern: str  # "request" | "response" | "request-response" | "in" | "out" | ""
    line: int


@dataclass
class CorrelationSet:
    name: str
    properties: List[str]
    scope: str
    line: int
    usages: List[CorrelationUsage] = field(default_factory=list)


@dataclass
class HumanTask:
    task_id: str  # "H-001"
    name: str
    detected_by: str  # "workflow_pattern" | "task_service" | "initiate_task" | "extension"
    scope: str
    line: int
    partner_link: str = ""
    operation: str = ""
    task_definition: str = ""
    input_variable: str = ""
    output_variable: str = ""


@dataclass
class Timer:
    activity_type: str  # "wait" | "onAlarm"
    name: str
    kind: str  # "for" | "until" | "repeatEvery"
    expression: str
    scope: str
    line: int


@dataclass
class EventHandler:
    kind: str  # "onEvent" | "onMessage" | "onAlarm"
    scope: str
    line: int
    partner_link: str = ""
    operation: str = ""
    variable: str = ""
    activity_types: List[str] = field(default_factory=list)


@dataclass
class JavaEmbedding:
    name: str
    language: str
    version: str
    source: str
    scope: str
    line: int


@dataclass
class Expression:
    """An XPath or duration expression, kept exactly as written."""

    expression_id: str  # "X-001"
    text: str
    usage: str  # "condition" | "from" | "to" | "query" | "for" | "until" | ...
    activity_type: str
    activity_name: str
    scope: str
    line: int
    language: str = ""


@dataclass
class Link:
    name: str
    flow_name: str
    scope: str
    line: int
    source: str = ""
    target: str = ""
    transition_condition: Optional[str] = None


@dataclass
class ProcessDocument:
    """Complete extraction of one BPEL process."""

    name: str
    target_namespace: str
    bpel_version: str  # "2.0" | "1.1"
    file_path: str
    line_count: int = 0
    query_language: str = ""
    expression_language: str = ""
    suppress_join_failure: str = ""
    documentation: Optional[str] = None
    namespaces: Dict[str, str] = field(default_factory=dict)
    imports: List[ImportDecl] = field(default_factory=list)
    partner_links: List[PartnerLink] = field(default_factory=list)
    variables: List[Variable] = field(default_factory=list)
    activities: List[Activity] = field(default_factory=list)
    interactions: List[Interaction] = field(default_factory=list)
    decisions: List[Decision] = field(default_factory=list)
    loops: List[Loop] = field(default_factory=list)
    data_mappings: List[DataMapping] = field(default_factory=list)
    faults: List[FaultHandler] = field(default_factory=list)
    fault_throws: List[FaultThrow] = field(default_factory=list)
    compensations: List[Compensation] = field(default_factory=list)
    correlation_sets: List[CorrelationSet] = field(default_factory=list)
    human_tasks: List[HumanTask] = field(default_factory=list)
    timers: List[Timer] = field(default_factory=list)
    event_handlers: List[EventHandler] = field(default_factory=list)
    java_embeddings: List[JavaEmbedding] = field(default_factory=list)
    links: List[Link] = field(default_factory=list)
    expressions: List[Expression] = field(default_factory=list)
    unknown_elements: List[Dict[str, Any]] = field(default_factory=list)
    statistics: Dict[str, int] = field(default_factory=dict)

    def find_partner_link(self, name: str) -> Optional[PartnerLink]:
        for plink in self.partner_links:
            if plink.name == name:
                return plink
        return None


@dataclass
class ParseError:
    """An error encountered during parsing."""

    file_path: str
    line: int
    message: str
    severity: str = "warning"  # "warning" | "error"


@dataclass
class ParseResult:
    """Complete parse output for a single BPEL file."""

    file_path: str
    document: Optional[ProcessDocument]
    line_count: int = 0
    errors: List[ParseError] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return self.document is not None and not any(
            e.severity == "error" for e in self.errors
        )


# =============================================================================
# Contract models (WSDL / XSD)
# =============================================================================


@dataclass
class WsdlOperation:
    name: str
    input_message: str = ""
    output_message: str = ""
    faults: List[Dict[str, str]] = field(default_factory=list)  # {"name", "message"}

    @property
    def pattern(self) -> str:
        """request-response | one-way | notification."""
        if self.input_message and self.output_message:
            return "request-response"
        if self.input_message:
            return "one-way"
        return "notification"


@dataclass
class PortType:
    name: str
    operations: List[WsdlOperation] = field(default_factory=list)
    line: int = 0

    def find_operation(self, name: str) -> Optional[WsdlOperation]:
        for op in self.operations:
            if op.name == name:
                return op
        return None


@dataclass
class WsdlMessage:
    name: str
    parts: List[Dict[str, str]] = field(default_factory=list)  # {"name", "element" | "type"}
    line: int = 0


@dataclass
class PartnerLinkType:
    name: str
    roles: Dict[str, str] = field(default_factory=dict)  # role name -> portType QName
    line: int = 0


@dataclass
class PropertyAlias:
    property_name: str
    message_type: str = ""
    part: str = ""
    element: str = ""
    query: str = ""


@dataclass
class ServiceEndpoint:
    service: str
    port: str
    binding: str
    address: str


@dataclass
class XsdField:
    name: str
    type_name: str
    min_occurs: str = "1"
    max_occurs: str = "1"

    @property
    def cardinality(self) -> str:
        upper = "*" if self.max_occurs == "unbounded" else self.max_occurs
        return f"{self.min_occurs}..{upper}"


@dataclass
class XsdType:
    name: str
    kind: str  # "element" | "complexType" | "simpleType"
    type_name: str = ""  # element type attribute, or restriction base
    fields: List[XsdField] = field(default_factory=list)
    enumerations: List[str] = field(default_factory=list)
    line: int = 0


@dataclass
class XsdResult:
    file_path: str
    target_namespace: str = ""
    elements: List[XsdType] = field(default_factory=list)
    types: List[XsdType] = field(default_factory=list)
    errors: List[ParseError] = field(default_factory=list)


@dataclass
class WsdlResult:
    file_path: str
    target_namespace: str = ""
    messages: List[WsdlMessage] = field(default_factory=list)
    port_types: List[PortType] = field(default_factory=list)
    partner_link_types: List[PartnerLinkType] = field(default_factory=list)
    properties: Dict[str, str] = field(default_factory=dict)  # property name -> type QName
    property_aliases: List[PropertyAlias] = field(default_factory=list)
    services: List[ServiceEndpoint] = field(default_factory=list)
    imports: List[ImportDecl] = field(default_factory=list)
    schemas: List[XsdResult] = field(default_factory=list)  # inline <types> schemas
    errors: List[ParseError] = field(default_factory=list)
