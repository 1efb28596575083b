"""Deterministic gap detection.

Each rule inspects the ProcessDocument (and the contract index) and
emits Gap rows for the Gaps & Assumptions table. Rules never guess at
business intent: they point at the construct, ask the question a
reviewer must answer and propose the default an implementer would use
until it is answered.
"""

import logging
import re
from typing import Callable, Dict, Iterable, Iterator, List, Optional, Sequence, Set

from ..bpel_parser.contracts import ContractIndex
from ..bpel_parser.models import Activity, ParseError, ProcessDocument
from ..constants import DEFAULT_VENDOR_XPATH_PREFIXES
from .models import Gap, GapCategory, GapRule, Risk

logger = logging.getLogger(__name__)

# 2.0 variable reference: $order.payload/ns:id
_DOLLAR_VAR_RE = re.compile(r"\$([A-Za-z_][\w\-]*)")
# 1.1 / Oracle accessors: getVariableData('order', ...), setVariableData("x", ...)
_ACCESSOR_VAR_RE = re.compile(
    r"(?:getVariableData|setVariableData|getVariableProperty)\s*\(\s*['\"]([^'\"]+)['\"]"
)
_LITERAL_DURATION_RE = re.compile(
    r"""^\s*(?:'[^']*'|"[^"]*"|-?P[\dYMDTHS.]+|\d{4}-\d{2}-\d{2}[T\d:.Z+\-]*)\s*$"""
)
_ALWAYS_TRUE_RE = re.compile(r"^\s*(?:(?:\w+:)?true\(\)|1\s*=\s*1|'true'|\"true\")\s*$")
_ALWAYS_FALSE_RE = re.compile(r"^\s*(?:(?:\w+:)?false\(\)|1\s*=\s*0|'false'|\"false\")\s*$")

_RULES: List[GapRule] = [
    GapRule("embedded_java", GapCategory.EMBEDDED_CODE,
            "Java embedded with bpelx:exec", Risk.HIGH),
    GapRule("vendor_xpath", GapCategory.VENDOR_EXTENSION,
            "XPath uses vendor-specific extension functions", Risk.MEDIUM),
    GapRule("unresolved_contract", GapCategory.CONTRACT,
            "Partner link or variable type cannot be resolved from supplied WSDL/XSD",
            Risk.MEDIUM),
    GapRule("untyped_variable", GapCategory.DATA,
            "Variable declared without messageType, element or type", Risk.MEDIUM),
    GapRule("unused_variable", GapCategory.DATA,
            "Variable declared but never referenced", Risk.LOW),
    GapRule("missing_default_branch", GapCategory.BUSINESS_RULE,
            "Decision without else/otherwise branch", Risk.MEDIUM),
    GapRule("unhandled_invoke", GapCategory.ERROR_HANDLING,
            "Invoke with no enclosing catch or catchAll", Risk.HIGH),
    GapRule("swallowed_fault", GapCategory.ERROR_HANDLING,
            "Fault handler that does nothing", Risk.HIGH),
    GapRule("hardcoded_timer", GapCategory.TIMING,
            "Wait or alarm with a literal duration or deadline", Risk.LOW),
    GapRule("unbounded_loop", GapCategory.BUSINESS_RULE,
            "Loop whose condition can never end it", Risk.HIGH),
    GapRule("correlation", GapCategory.CORRELATION,
            "Correlation set unused, or inbound message without correlation", Risk.HIGH),
    GapRule("dynamic_endpoint", GapCategory.CONFIGURATION,
            "Partner endpoint assigned at runtime", Risk.MEDIUM),
    GapRule("human_task", GapCategory.HUMAN_WORKFLOW,
            "Human task whose definition is outside the BPEL file", Risk.MEDIUM),
    GapRule("unknown_construct", GapCategory.PARSING,
            "Element not recognized as a BPEL activity", Risk.MEDIUM),
    GapRule("parse_warning", GapCategory.PARSING,
            "Non-fatal parser finding", Risk.LOW),
]

_RULE_INDEX: Dict[str, GapRule] = {rule.rule_id: rule for rule in _RULES}


def list_rules() -> List[GapRule]:
    """All gap rules in evaluation order."""
    return list(_RULES)


def iter_activities(activities: Iterable[Activity]) -> Iterator[Activity]:
    """Depth-first walk over an activity tree."""
    for activity in activities:
        yield activity
        yield from iter_activities(activity.children)


def referenced_variables(document: ProcessDocument) -> Set[str]:
    """Names of all variables the process reads or writes anywhere."""
    names: Set[str] = set()
    for interaction in document.interactions:
        names.update((interaction.input_variable, interaction.output_variable))
        names.update(interaction.to_part_variables)
        names.update(interaction.from_part_variables)
    for mapping in document.data_mappings:
        for endpoint in (mapping.source, mapping.target):
            if endpoint is not None:
                names.add(endpoint.variable)
    for fault in document.faults:
        names.add(fault.fault_variable)
    for throw in document.fault_throws:
        names.add(throw.fault_variable)
    for handler in document.event_handlers:
        names.add(handler.variable)
    for task in document.human_tasks:
        names.update((task.input_variable, task.output_variable))
    for expression in document.expressions:
        names.update(_DOLLAR_VAR_RE.findall(expression.text))
        names.update(_ACCESSOR_VAR_RE.findall(expression.text))
    for embedding in document.java_embeddings:
        names.update(_ACCESSOR_VAR_RE.findall(embedding.source))
    for activity in iter_activities(document.activities):
        names.update(activity.attributes.get("variables", "").split())
    names.discard("")
    return names


class GapDetector:
    """Runs the enabled gap rules over a parsed process.

    Args:
        vendor_prefixes: XPath function prefixes treated as vendor extensions
        disabled_rules: Rule ids to skip
    """

    def __init__(
        self,
        vendor_prefixes: Optional[Sequence[str]] = None,
        disabled_rules: Optional[Iterable[str]] = None,
    ):
        prefixes = list(vendor_prefixes if vendor_prefixes is not None else DEFAULT_VENDOR_XPATH_PREFIXES)
        self.disabled_rules = set(disabled_rules or [])
        unknown = self.disabled_rules - set(_RULE_INDEX)
        if unknown:
            logger.warning("Ignoring unknown gap rules in config: %s", sorted(unknown))
        self._vendor_re = (
            re.compile(r"\b((?:%s):[\w.\-]+)\s*\(" % "|".join(re.escape(p) for p in prefixes))
            if prefixes else None
        )

    def detect(
        self,
        document: ProcessDocument,
        contracts: Optional[ContractIndex] = None,
        parse_errors: Sequence[ParseError] = (),
    ) -> List[Gap]:
        """Run every enabled rule and number the gaps GAP-001, GAP-002, ..."""
        contracts = contracts or ContractIndex()
        handlers: Dict[str, Callable[[], Iterable[Gap]]] = {
            "embedded_java": lambda: self._embedded_java(document),
            "vendor_xpath": lambda: self._vendor_xpath(document),
            "unresolved_contract": lambda: self._unresolved_contract(document, contracts),
            "untyped_variable": lambda: self._untyped_variable(document),
            "unused_variable": lambda: self._unused_variable(document),
            "missing_default_branch": lambda: self._missing_default_branch(document),
            "unhandled_invoke": lambda: self._unhandled_invoke(document),
            "swallowed_fault": lambda: self._swallowed_fault(document),
            "hardcoded_timer": lambda: self._hardcoded_timer(document),
            "unbounded_loop": lambda: self._unbounded_loop(document),
            "correlation": lambda: self._correlation(document),
            "dynamic_endpoint": lambda: self._dynamic_endpoint(document),
            "human_task": lambda: self._human_task(document),
            "unknown_construct": lambda: self._unknown_construct(document),
            "parse_warning": lambda: self._parse_warning(parse_errors),
        }

        gaps: List[Gap] = []
        for rule in _RULES:
            if rule.rule_id in self.disabled_rules:
                continue
            gaps.extend(handlers[rule.rule_id]())

        for index, gap in enumerate(gaps, start=1):
            gap.gap_id = f"GAP-{index:03d}"

        logger.info("Detected %d gaps in process %s", len(gaps), document.name)
        return gaps

    @staticmethod
    def _gap(rule_id: str, description: str, question: str, proposed_default: str,
             validation: str, line: int = 0, risk: Optional[Risk] = None,
             refs: Optional[List[str]] = None) -> Gap:
        rule = _RULE_INDEX[rule_id]
        return Gap(
            gap_id="",
            rule=rule_id,
            category=rule.category,
            description=description,
            question=question,
            proposed_default=proposed_default,
            risk=risk or rule.default_risk,
            validation=validation,
            line=line,
            refs=refs or [],
        )

    # ------------------------------------------------------------------
    # Rules
    # ------------------------------------------------------------------

    def _embedded_java(self, document: ProcessDocument) -> Iterator[Gap]:
        for embedding in document.java_embeddings:
            label = embedding.name or f"line {embedding.line}"
            yield self._gap(
                "embedded_java",
                f"Embedded {embedding.language} block '{label}' in {embedding.scope} "
                f"({len(embedding.source.splitlines())} lines) carries logic not visible in BPEL structure.",
                "What business behaviour does this code implement, and which of it must be preserved?",
                "Port the block as a private service method with identical inputs and outputs.",
                "Code review of the embedded source against the ported method; unit test with captured variable values.",
                line=embedding.line,
            )

    def _vendor_xpath(self, document: ProcessDocument) -> Iterator[Gap]:
        if self._vendor_re is None:
            return
        usages: Dict[str, List[str]] = {}
        first_line: Dict[str, int] = {}
        for expression in document.expressions:
            for function in self._vendor_re.findall(expression.text):
                ids = usages.setdefault(function, [])
                if expression.expression_id not in ids:
                    ids.append(expression.expression_id)
                first_line.setdefault(function, expression.line)
        for function, ids in usages.items():
            yield self._gap(
                "vendor_xpath",
                f"Vendor XPath function {function}() used in {', '.join(ids)}.",
                f"What is the exact semantics of {function}() for the data it receives here?",
                "Re-implement as a plain helper with the documented vendor semantics.",
                "Compare helper output with the source engine for the recorded expressions.",
                line=first_line[function],
                refs=ids,
            )

    def _unresolved_contract(self, document: ProcessDocument, contracts: ContractIndex) -> Iterator[Gap]:
        if not document.partner_links:
            return
        if not contracts.has_wsdl:
            yield self._gap(
                "unresolved_contract",
                f"No WSDL supplied; {len(document.partner_links)} partner links have no operation contract.",
                "Where are the WSDL definitions for the partner link types this process uses?",
                "Document operations as observed in the process; treat message shapes as unknown.",
                "Supply wsdl/*.wsdl and re-run extraction; the gap disappears when all types resolve.",
                line=document.partner_links[0].line,
            )
            return

        for plink in document.partner_links:
            resolved = contracts.resolve_partner_link(plink)
            if not resolved.partner_link_type_found:
                yield self._gap(
                    "unresolved_contract",
                    f"partnerLinkType {plink.partner_link_type or '(none)'} of partner link "
                    f"'{plink.name}' is not defined in the supplied WSDL.",
                    f"Which WSDL defines the contract of '{plink.name}'?",
                    "Treat operations used by the process as the complete contract.",
                    "Locate the WSDL and confirm roles and portTypes match the partner link.",
                    line=plink.line,
                )
            elif resolved.missing_operations:
                yield self._gap(
                    "unresolved_contract",
                    f"Operations {', '.join(resolved.missing_operations)} used on '{plink.name}' "
                    f"are not declared on its portTypes.",
                    "Is the WSDL out of date, or does the process call a different endpoint?",
                    "Trust the operations used by the process.",
                    "Diff the deployed WSDL against the supplied one.",
                    line=plink.line,
                )

        if contracts.has_schema:
            for variable in document.variables:
                if variable.kind == "untyped" or contracts.is_variable_type_known(variable):
                    continue
                yield self._gap(
                    "unresolved_contract",
                    f"Type {variable.type_name} of variable '{variable.name}' is not defined "
                    f"in the supplied WSDL/XSD.",
                    f"Which schema defines {variable.type_name}?",
                    "Model the variable as an opaque XML document.",
                    "Locate the schema and confirm the payload structure.",
                    line=variable.line,
                    risk=Risk.LOW,
                )

    def _untyped_variable(self, document: ProcessDocument) -> Iterator[Gap]:
        for variable in document.variables:
            if variable.kind != "untyped":
                continue
            yield self._gap(
                "untyped_variable",
                f"Variable '{variable.name}' in {variable.scope} has no declared type.",
                f"What data does '{variable.name}' hold?",
                "Infer the type from assignments; model as string until confirmed.",
                "Trace every assign targeting the variable.",
                line=variable.line,
            )

    def _unused_variable(self, document: ProcessDocument) -> Iterator[Gap]:
        used = referenced_variables(document)
        for variable in document.variables:
            if variable.name in used:
                continue
            yield self._gap(
                "unused_variable",
                f"Variable '{variable.name}' in {variable.scope} is never read or written.",
                "Is this variable dead, or used by code outside the process definition?",
                "Omit from the target data model.",
                "Search embedded code, sensors and deployment descriptors for the name.",
                line=variable.line,
            )

    def _missing_default_branch(self, document: ProcessDocument) -> Iterator[Gap]:
        for decision in document.decisions:
            if decision.has_default:
                continue
            fallback = "else" if decision.activity_type == "if" else "otherwise"
            label = decision.name or decision.activity_type
            yield self._gap(
                "missing_default_branch",
                f"{decision.decision_id} '{label}' has no {fallback} branch; "
                f"when no condition holds the process continues silently.",
                "Is falling through intended when none of the conditions match?",
                "Preserve fall-through and log the unmatched case.",
                "Test with data matching none of the branch conditions.",
                line=decision.line,
                refs=[decision.decision_id],
            )

    def _unhandled_invoke(self, document: ProcessDocument) -> Iterator[Gap]:
        # one gap per call site; the same operation may be unguarded in several scopes
        for interaction in document.interactions:
            if interaction.activity_type != "invoke" or interaction.fault_handled:
                continue
            label = f"'{interaction.name}' " if interaction.name else ""
            yield self._gap(
                "unhandled_invoke",
                f"Invoke {label}of {interaction.partner_link}.{interaction.operation} has no enclosing "
                f"catch or catchAll; faults terminate the process instance.",
                "What should happen when this partner call fails or times out?",
                "Propagate the fault to the caller as a technical error.",
                "Fault-inject the partner call and observe the outcome.",
                line=interaction.line,
            )

    def _swallowed_fault(self, document: ProcessDocument) -> Iterator[Gap]:
        for fault in document.faults:
            if any(t != "empty" for t in fault.activity_types):
                continue
            caught = fault.fault_name or "all faults"
            yield self._gap(
                "swallowed_fault",
                f"{fault.fault_id} {fault.kind} for {caught} in {fault.scope} discards the fault.",
                "Is ignoring this fault intentional?",
                "Log the fault and continue, matching current behaviour.",
                "Confirm with the process owner; test the fault path.",
                line=fault.line,
                refs=[fault.fault_id],
            )

    def _hardcoded_timer(self, document: ProcessDocument) -> Iterator[Gap]:
        for timer in document.timers:
            if not _LITERAL_DURATION_RE.match(timer.expression):
                continue
            yield self._gap(
                "hardcoded_timer",
                f"{timer.activity_type} uses literal {timer.kind} {timer.expression}.",
                "Should this duration or deadline be configurable per environment?",
                "Externalize as a configuration property with the current value as default.",
                "Check the value with operations for each environment.",
                line=timer.line,
            )

    def _unbounded_loop(self, document: ProcessDocument) -> Iterator[Gap]:
        for loop in document.loops:
            condition = loop.condition or ""
            infinite = (
                (loop.activity_type == "while" and _ALWAYS_TRUE_RE.match(condition))
                or (loop.activity_type == "repeatUntil" and _ALWAYS_FALSE_RE.match(condition))
            )
            if not infinite:
                continue
            exits = {"exit", "terminate", "throw"} & set(loop.body_types)
            yield self._gap(
                "unbounded_loop",
                f"{loop.loop_id} {loop.activity_type} condition {condition} never ends the loop"
                + (f"; exits only via {', '.join(sorted(exits))}." if exits else "."),
                "What event is expected to end this loop?",
                "Bound the loop with a configurable maximum iteration count.",
                "Review with the process owner; test the exit path.",
                line=loop.line,
                refs=[loop.loop_id],
            )

    def _correlation(self, document: ProcessDocument) -> Iterator[Gap]:
        for cset in document.correlation_sets:
            if cset.usages:
                continue
            yield self._gap(
                "correlation",
                f"Correlation set '{cset.name}' ({', '.join(cset.properties) or 'no properties'}) "
                f"is declared but never used.",
                "Is correlation done elsewhere (e.g. WS-Addressing) or is this set obsolete?",
                "Rely on conversation id based routing.",
                "Check callback routing in the deployed engine.",
                line=cset.line,
            )
        if not document.correlation_sets:
            return
        for interaction in document.interactions:
            if interaction.activity_type not in ("receive", "onMessage", "onEvent"):
                continue
            if interaction.create_instance or interaction.correlations:
                continue
            yield self._gap(
                "correlation",
                f"Inbound {interaction.activity_type} {interaction.partner_link}.{interaction.operation} "
                f"uses no correlation set although the process declares some.",
                "How is this message routed to the right process instance?",
                "Assume engine-managed (WS-Addressing) correlation.",
                "Send two concurrent conversations and verify routing.",
                line=interaction.line,
            )

    def _dynamic_endpoint(self, document: ProcessDocument) -> Iterator[Gap]:
        for mapping in document.data_mappings:
            target = mapping.target
            if target is None or not target.partner_link:
                continue
            yield self._gap(
                "dynamic_endpoint",
                f"Assign '{mapping.assign_name}' sets the endpoint of partner link "
                f"'{target.partner_link}' at runtime from {mapping.source.describe() if mapping.source else '(none)'}.",
                "Where do endpoint addresses come from, and how many distinct targets exist?",
                "Resolve the endpoint from configuration keyed by the same input.",
                "List the addresses used in production.",
                line=mapping.line,
            )

    def _human_task(self, document: ProcessDocument) -> Iterator[Gap]:
        for task in document.human_tasks:
            definition = task.task_definition or "not referenced"
            yield self._gap(
                "human_task",
                f"{task.task_id} human task '{task.name}' (task definition: {definition}); "
                f"assignees, outcomes and escalation live outside the BPEL file.",
                "Who acts on this task, which outcomes exist, and what happens on expiry?",
                "Model as an asynchronous approval with APPROVE/REJECT outcomes.",
                "Review the .task definition and routing rules with the business owner.",
                line=task.line,
                refs=[task.task_id],
            )

    def _unknown_construct(self, document: ProcessDocument) -> Iterator[Gap]:
        for unknown in document.unknown_elements:
            yield self._gap(
                "unknown_construct",
                f"Element <{unknown['element']}> in {unknown['scope']} is not a recognized activity.",
                "What does this construct do at runtime?",
                "Carry the element over as a documented no-op.",
                "Check the engine documentation for the element.",
                line=unknown.get("line", 0),
            )

    def _parse_warning(self, parse_errors: Sequence[ParseError]) -> Iterator[Gap]:
        for error in parse_errors:
            if error.severity != "warning":
                continue
            yield self._gap(
                "parse_warning",
                error.message,
                "Is the source file complete and valid for the engine version in use?",
                "Proceed with the extracted structure.",
                "Validate the file in the design tool.",
                line=error.line,
            )
