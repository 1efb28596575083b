"""BPEL process parser: ElementTree-based.

Extracts a normalized ProcessDocument from WS-BPEL 2.0 and BPEL4WS 1.1
process definitions, including Oracle ``bpelx`` extensions:
- partner links, variables, correlation sets, imports
- the activity tree (sequence, flow, if/switch, loops, pick, scope, ...)
- interactions (receive/reply/invoke/onMessage/onEvent)
- decisions, loops, assign data mappings
- fault, compensation and event handlers, timers
- Oracle human task scopes and Java embeddings (bpelx:exec)
- every XPath / duration expression, verbatim

Follows the parse_file/parse_source interface of the other parsers.
"""

import logging
import xml.etree.ElementTree as ET
from typing import Dict, List, Optional, Sequence

from ..constants import (
    ASSIGN_OPERATIONS,
    BPEL_VERSIONS,
    BPELX_NS,
    DEFAULT_TASK_SERVICE_SUFFIXES,
    NON_ACTIVITY_ELEMENTS,
)
from .models import (
    Activity,
    Branch,
    Compensation,
    CorrelationSet,
    CorrelationUsage,
    DataEndpoint,
    DataMapping,
    Decision,
    EventHandler,
    Expression,
    FaultHandler,
    FaultThrow,
    HumanTask,
    ImportDecl,
    Interaction,
    JavaEmbedding,
    Link,
    Loop,
    ParseError,
    ParseResult,
    PartnerLink,
    ProcessDocument,
    Timer,
    Variable,
)
from .utils import (
    LineIndex,
    child_text,
    collect_namespaces,
    count_lines,
    element_children,
    element_source,
    get_text,
    local_find,
    local_findall,
    namespace_of,
    read_source,
    relative_path,
    strip_namespace,
)

logger = logging.getLogger(__name__)

# Pseudo-activity types used to keep handler and branch nesting in the tree
PSEUDO_ACTIVITIES = frozenset({
    "branch", "catch", "catchAll", "compensationHandler",
    "terminationHandler", "onEvent", "onMessage", "onAlarm",
})


class BpelParser:
    """Parse BPEL process files into ProcessDocument objects.

    The parser itself is stateless; each parse_source call builds a fresh
    _ProcessWalker that owns the per-document counters.
    """

    def __init__(self, task_service_suffixes: Optional[Sequence[str]] = None):
        self.task_service_suffixes = tuple(
            task_service_suffixes
            if task_service_suffixes is not None
            else DEFAULT_TASK_SERVICE_SUFFIXES
        )

    def get_language(self) -> str:
        return "bpel"

    def parse_file(self, file_path: str, project_root: str = "") -> ParseResult:
        """Parse a .bpel file into a ProcessDocument."""
        rel_path = relative_path(file_path, project_root)

        try:
            source_text = read_source(file_path)
        except OSError as e:
            logger.error("Cannot read %s: %s", file_path, e)
            return ParseResult(
                file_path=rel_path,
                document=None,
                errors=[ParseError(
                    file_path=rel_path,
                    line=0,
                    message=f"Cannot read file: {e}",
                    severity="error",
                )],
            )

        return self.parse_source(source_text, rel_path)

    def parse_source(self, source_text: str, file_path: str) -> ParseResult:
        """Parse BPEL source text into a ProcessDocument."""
        line_count = count_lines(source_text)

        try:
            root = ET.fromstring(source_text)
        except ET.ParseError as e:
            logger.warning("Malformed XML in %s: %s", file_path, e)
            line = e.position[0] if getattr(e, "position", None) else 0
            return ParseResult(
                file_path=file_path,
                document=None,
                line_count=line_count,
                errors=[ParseError(
                    file_path=file_path,
                    line=line,
                    message=f"XML parse error: {e}",
                    severity="error",
                )],
            )

        root_tag = strip_namespace(root.tag)
        root_ns = namespace_of(root.tag)
        if root_tag != "process":
            logger.debug("Not a BPEL process: root <%s> in %s", root_tag, file_path)
            return ParseResult(
                file_path=file_path,
                document=None,
                line_count=line_count,
                errors=[ParseError(
                    file_path=file_path,
                    line=1,
                    message=f"Root element <{root_tag}> is not a BPEL <process>",
                    severity="error",
                )],
            )

        errors: List[ParseError] = []
        version = BPEL_VERSIONS.get(root_ns)
        if version is None:
            errors.append(ParseError(
                file_path=file_path,
                line=1,
                message=f"Unknown BPEL namespace '{root_ns}', assuming 2.0",
            ))
            version = "2.0"

        walker = _ProcessWalker(
            root=root,
            source_text=source_text,
            file_path=file_path,
            version=version,
            task_service_suffixes=self.task_service_suffixes,
            errors=errors,
        )
        document = walker.walk()
        document.line_count = line_count

        logger.info(
            "Parsed BPEL process %s from %s: %d activities, %d expressions, %d warnings",
            document.name,
            file_path,
            sum(document.statistics.values()),
            len(document.expressions),
            len(errors),
        )
        return ParseResult(
            file_path=file_path,
            document=document,
            line_count=line_count,
            errors=errors,
        )


class _ProcessWalker:
    """Single-use tree walker that fills one ProcessDocument."""

    def __init__(
        self,
        root: ET.Element,
        source_text: str,
        file_path: str,
        version: str,
        task_service_suffixes: Sequence[str],
        errors: List[ParseError],
    ):
        self.root = root
        self.file_path = file_path
        self.version = version
        self.task_service_suffixes = tuple(task_service_suffixes)
        self.errors = errors
        self.lines = LineIndex(root, source_text)
        self.doc = ProcessDocument(
            name=root.get("name", ""),
            target_namespace=root.get("targetNamespace", ""),
            bpel_version=version,
            file_path=file_path,
            query_language=root.get("queryLanguage", ""),
            expression_language=root.get("expressionLanguage", ""),
            suppress_join_failure=root.get("suppressJoinFailure", ""),
            namespaces=collect_namespaces(source_text),
        )
        self._counters: Dict[str, int] = {}
        # One entry per enclosing scope: does it declare catch/catchAll?
        self._handled_stack: List[bool] = []
        # Human task opened by an enclosing workflow-pattern scope
        self._task_stack: List[HumanTask] = []

    # ------------------------------------------------------------------
    # Entry point
    # ------------------------------------------------------------------

    def walk(self) -> ProcessDocument:
        doc = self.doc
        doc.documentation = child_text(self.root, "documentation") or None

        for imp in local_findall(self.root, "import"):
            doc.imports.append(ImportDecl(
                namespace=imp.get("namespace", ""),
                location=imp.get("location", ""),
                import_type=imp.get("importType", ""),
                line=self.lines.line_of(imp),
            ))

        doc.activities = self._container(self.root, "process")

        # Operations actually used per partner link, in first-use order
        for interaction in doc.interactions:
            plink = doc.find_partner_link(interaction.partner_link)
            if plink and interaction.operation and interaction.operation not in plink.operations:
                plink.operations.append(interaction.operation)

        return doc

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def _next_id(self, prefix: str) -> str:
        self._counters[prefix] = self._counters.get(prefix, 0) + 1
        return f"{prefix}-{self._counters[prefix]:03d}"

    def _warn(self, element: ET.Element, message: str) -> None:
        self.errors.append(ParseError(
            file_path=self.file_path,
            line=self.lines.line_of(element),
            message=message,
        ))

    def _expr(
        self,
        text: Optional[str],
        usage: str,
        owner: ET.Element,
        scope: str,
        element: Optional[ET.Element] = None,
    ) -> Optional[str]:
        """Record an expression in the catalogue and return it unchanged."""
        if text is None:
            return None
        text = text.strip()
        if not text:
            return None
        anchor = element if element is not None else owner
        self.doc.expressions.append(Expression(
            expression_id=self._next_id("X"),
            text=text,
            usage=usage,
            activity_type=self._type_of(owner),
            activity_name=owner.get("name", ""),
            scope=scope,
            line=self.lines.line_of(anchor),
            language=(element.get("expressionLanguage", "") if element is not None else ""),
        ))
        return text

    def _expr_attr_or_child(
        self, element: ET.Element, name: str, usage: str, scope: str
    ) -> Optional[str]:
        """Expression given as attribute (1.1 style) or child element (2.0)."""
        if element.get(name) is not None:
            return self._expr(element.get(name), usage, element, scope)
        child = local_find(element, name)
        if child is not None:
            return self._expr(get_text(child), usage, element, scope, child)
        return None

    def _type_of(self, element: ET.Element) -> str:
        local = strip_namespace(element.tag)
        if namespace_of(element.tag) == BPELX_NS:
            return f"bpelx:{local}"
        return local

    def _is_activity(self, element: ET.Element) -> bool:
        local = strip_namespace(element.tag)
        if local in NON_ACTIVITY_ELEMENTS:
            return False
        if namespace_of(element.tag) == BPELX_NS:
            return local in ("exec", "validate", "flowN")
        return True

    def _activity_children(self, element: ET.Element) -> List[ET.Element]:
        return [c for c in element_children(element) if self._is_activity(c)]

    def _walk_activities(self, element: ET.Element, scope: str) -> List[Activity]:
        result = []
        for child in self._activity_children(element):
            activity = self._activity(child, scope)
            if activity is not None:
                result.append(activity)
        return result

    def _pseudo(
        self, activity_type: str, element: ET.Element, scope: str,
        name: str = "", children: Optional[List[Activity]] = None,
        attributes: Optional[Dict[str, str]] = None,
    ) -> Activity:
        return Activity(
            activity_type=activity_type,
            name=name,
            line=self.lines.line_of(element),
            scope=scope,
            attributes=attributes or {},
            children=children or [],
        )

    @staticmethod
    def _types(activities: List[Activity]) -> List[str]:
        return [a.activity_type for a in activities]

    # ------------------------------------------------------------------
    # Process / scope containers
    # ------------------------------------------------------------------

    def _container(self, element: ET.Element, scope: str) -> List[Activity]:
        """Declarations, main activity and handlers of the process or a scope."""
        self._partner_links(element, scope)
        self._variables(element, scope)
        self._correlation_sets(element, scope)

        handled = self._declares_catch(element)

        self._handled_stack.append(handled)
        try:
            activities = self._walk_activities(element, scope)
        finally:
            self._handled_stack.pop()

        # Faults raised inside handlers propagate to the parent scope
        activities.extend(self._fault_handlers(element, scope))
        activities.extend(self._compensation_handler(element, scope))
        activities.extend(self._termination_handler(element, scope))
        activities.extend(self._event_handlers(element, scope))
        return activities

    def _declares_catch(self, element: ET.Element) -> bool:
        handlers = local_find(element, "faultHandlers")
        if handlers is None:
            return False
        return bool(local_findall(handlers, "catch") or local_findall(handlers, "catchAll"))

    def _partner_links(self, element: ET.Element, scope: str) -> None:
        container = local_find(element, "partnerLinks")
        if container is None:
            return
        for plink in local_findall(container, "partnerLink"):
            self.doc.partner_links.append(PartnerLink(
                name=plink.get("name", ""),
                partner_link_type=plink.get("partnerLinkType", ""),
                my_role=plink.get("myRole", ""),
                partner_role=plink.get("partnerRole", ""),
                initialize_partner_role=plink.get("initializePartnerRole", ""),
                scope=scope,
                line=self.lines.line_of(plink),
            ))

    def _variables(self, element: ET.Element, scope: str) -> None:
        container = local_find(element, "variables")
        if container is None:
            return
        for var in local_findall(container, "variable"):
            if var.get("messageType"):
                kind, type_name = "messageType", var.get("messageType", "")
            elif var.get("element"):
                kind, type_name = "element", var.get("element", "")
            elif var.get("type"):
                kind, type_name = "type", var.get("type", "")
            else:
                kind, type_name = "untyped", ""

            initializer = None
            from_elem = local_find(var, "from")
            if from_elem is not None:
                endpoint = self._endpoint(from_elem, "from", var, scope)
                initializer = endpoint.describe()

            self.doc.variables.append(Variable(
                name=var.get("name", ""),
                kind=kind,
                type_name=type_name,
                scope=scope,
                line=self.lines.line_of(var),
                initializer=initializer,
            ))

    def _correlation_sets(self, element: ET.Element, scope: str) -> None:
        container = local_find(element, "correlationSets")
        if container is None:
            return
        for cset in local_findall(container, "correlationSet"):
            self.doc.correlation_sets.append(CorrelationSet(
                name=cset.get("name", ""),
                properties=cset.get("properties", "").split(),
                scope=scope,
                line=self.lines.line_of(cset),
            ))

    # ------------------------------------------------------------------
    # Handlers
    # ------------------------------------------------------------------

    def _fault_handlers(self, element: ET.Element, scope: str) -> List[Activity]:
        container = local_find(element, "faultHandlers")
        if container is None:
            return []
        result = []
        for handler in element_children(container):
            kind = strip_namespace(handler.tag)
            if kind not in ("catch", "catchAll"):
                continue
            fault_id = self._next_id("F")
            children = self._walk_activities(handler, scope)
            self.doc.faults.append(FaultHandler(
                fault_id=fault_id,
                kind=kind,
                scope=scope,
                line=self.lines.line_of(handler),
                fault_name=handler.get("faultName", ""),
                fault_variable=handler.get("faultVariable", ""),
                fault_type=handler.get("faultMessageType", "") or handler.get("faultElement", ""),
                activity_types=self._types(children),
            ))
            result.append(self._pseudo(
                kind, handler, scope,
                name=handler.get("faultName", ""),
                children=children,
                attributes={"fault_id": fault_id},
            ))
        return result

    def _compensation_handler(self, element: ET.Element, scope: str) -> List[Activity]:
        handler = local_find(element, "compensationHandler")
        if handler is None:
            return []
        children = self._walk_activities(handler, scope)
        compensation_id = self._next_id("C")
        self.doc.compensations.append(Compensation(
            compensation_id=compensation_id,
            kind="handler",
            scope=scope,
            line=self.lines.line_of(handler),
            name=element.get("name", ""),
            activity_types=self._types(children),
        ))
        return [self._pseudo(
            "compensationHandler", handler, scope, children=children,
            attributes={"compensation_id": compensation_id},
        )]

    def _termination_handler(self, element: ET.Element, scope: str) -> List[Activity]:
        handler = local_find(element, "terminationHandler")
        if handler is None:
            return []
        return [self._pseudo(
            "terminationHandler", handler, scope,
            children=self._walk_activities(handler, scope),
        )]

    def _event_handlers(self, element: ET.Element, scope: str) -> List[Activity]:
        container = local_find(element, "eventHandlers")
        if container is None:
            return []
        result = []
        for handler in element_children(container):
            kind = strip_namespace(handler.tag)
            if kind in ("onEvent", "onMessage"):
                self._interaction(handler, scope)
                children = self._walk_activities(handler, scope)
                self.doc.event_handlers.append(EventHandler(
                    kind=kind,
                    scope=scope,
                    line=self.lines.line_of(handler),
                    partner_link=handler.get("partnerLink", ""),
                    operation=handler.get("operation", ""),
                    variable=handler.get("variable", ""),
                    activity_types=self._types(children),
                ))
                result.append(self._pseudo(
                    kind, handler, scope,
                    name=handler.get("operation", ""),
                    children=children,
                ))
            elif kind == "onAlarm":
                self._timers(handler, "onAlarm", scope)
                children = self._walk_activities(handler, scope)
                self.doc.event_handlers.append(EventHandler(
                    kind=kind,
                    scope=scope,
                    line=self.lines.line_of(handler),
                    activity_types=self._types(children),
                ))
                result.append(self._pseudo(kind, handler, scope, children=children))
        return result

    def _timers(self, element: ET.Element, activity_type: str, scope: str) -> None:
        for kind in ("for", "until", "repeatEvery"):
            text = self._expr_attr_or_child(element, kind, kind, scope)
            if text:
                self.doc.timers.append(Timer(
                    activity_type=activity_type,
                    name=element.get("name", ""),
                    kind=kind,
                    expression=text,
                    scope=scope,
                    line=self.lines.line_of(element),
                ))

    # ------------------------------------------------------------------
    # Activities
    # ------------------------------------------------------------------

    def _activity(self, element: ET.Element, scope: str) -> Optional[Activity]:
        activity_type = self._type_of(element)

        if activity_type == "extensionActivity":
            return self._extension_activity(element, scope)

        activity = Activity(
            activity_type=activity_type,
            name=element.get("name", ""),
            line=self.lines.line_of(element),
            scope=scope,
            documentation=child_text(element, "documentation") or None,
        )
        self.doc.statistics[activity_type] = self.doc.statistics.get(activity_type, 0) + 1
        self._link_participation(element, activity, scope)

        handler = getattr(self, f"_on_{activity_type.replace(':', '_')}", None)
        if handler is None:
            self.doc.unknown_elements.append({
                "element": activity_type,
                "name": element.get("name", ""),
                "scope": scope,
                "line": activity.line,
            })
            self._warn(element, f"Unrecognized activity <{activity_type}>")
            activity.attributes["source"] = element_source(element)
            return activity

        handler(element, activity, scope)
        return activity

    def _link_participation(self, element: ET.Element, activity: Activity, scope: str) -> None:
        """Flow link sources/targets, join and skip conditions."""
        # 2.0 wraps in <sources>/<targets>; 1.1 uses direct children
        sources = local_findall(element, "source")
        targets = local_findall(element, "target")
        wrapper = local_find(element, "sources")
        if wrapper is not None:
            sources += local_findall(wrapper, "source")
        wrapper = local_find(element, "targets")
        if wrapper is not None:
            targets += local_findall(wrapper, "target")
            join = local_find(wrapper, "joinCondition")
            if join is not None:
                activity.attributes["joinCondition"] = self._expr(
                    get_text(join), "joinCondition", element, scope, join
                ) or ""
        if element.get("joinCondition"):
            activity.attributes["joinCondition"] = self._expr(
                element.get("joinCondition"), "joinCondition", element, scope
            ) or ""

        label = activity.name or activity.activity_type
        for src in sources:
            link = self._find_link(src.get("linkName", ""))
            condition = src.get("transitionCondition")
            cond_elem = local_find(src, "transitionCondition")
            if cond_elem is not None:
                condition = self._expr(get_text(cond_elem), "transitionCondition", element, scope, cond_elem)
            elif condition is not None:
                condition = self._expr(condition, "transitionCondition", element, scope)
            if link is not None:
                link.source = label
                link.transition_condition = condition
        for tgt in targets:
            link = self._find_link(tgt.get("linkName", ""))
            if link is not None:
                link.target = label

        skip = element.get("skipCondition")
        skip_elem = local_find(element, "skipCondition")
        if skip_elem is not None:
            skip = get_text(skip_elem)
        if skip:
            activity.attributes["skipCondition"] = self._expr(
                skip, "skipCondition", element, scope, skip_elem
            ) or ""

    def _find_link(self, name: str) -> Optional[Link]:
        for link in reversed(self.doc.links):
            if link.name == name:
                return link
        return None

    # -- structured --------------------------------------------------------

    def _on_sequence(self, element, activity, scope):
        activity.children = self._walk_activities(element, scope)

    def _on_flow(self, element, activity, scope):
        links = local_find(element, "links")
        if links is not None:
            for link in local_findall(links, "link"):
                self.doc.links.append(Link(
                    name=link.get("name", ""),
                    flow_name=element.get("name", ""),
                    scope=scope,
                    line=self.lines.line_of(link),
                ))
        activity.children = self._walk_activities(element, scope)

    def _on_scope(self, element, activity, scope):
        name = element.get("name") or f"scope@{activity.line}"
        inner = f"{scope}/{name}"

        task = self._workflow_task(element, inner)
        if task is not None:
            self._task_stack.append(task)
        try:
            activity.children = self._container(element, inner)
        finally:
            if task is not None:
                self._task_stack.pop()

        if element.get("isolated"):
            activity.attributes["isolated"] = element.get("isolated", "")

    def _workflow_task(self, element: ET.Element, scope: str) -> Optional[HumanTask]:
        """Oracle marks human task scopes with a bpelx workflow pattern annotation."""
        annotation = local_find(element, "annotation")
        if annotation is None or namespace_of(annotation.tag) != BPELX_NS:
            return None
        for pattern in local_findall(annotation, "pattern"):
            marker = f"{pattern.get('patternName', '')} {get_text(pattern)}".lower()
            if "workflow" in marker or "humantask" in marker:
                task = HumanTask(
                    task_id=self._next_id("H"),
                    name=element.get("name", ""),
                    detected_by="workflow_pattern",
                    scope=scope,
                    line=self.lines.line_of(element),
                    task_definition=element.get("wfTaskDefinition", "")
                    or pattern.get("taskDefinition", ""),
                )
                self.doc.human_tasks.append(task)
                return task
        return None

    def _on_if(self, element, activity, scope):
        decision = Decision(
            decision_id=self._next_id("D"),
            activity_type="if",
            name=element.get("name", ""),
            scope=scope,
            line=activity.line,
        )
        self.doc.decisions.append(decision)

        condition = self._expr_attr_or_child(element, "condition", "condition", scope)
        body = self._walk_activities(element, scope)
        decision.branches.append(Branch("if", condition, self._types(body), activity.line))
        activity.children.append(self._pseudo(
            "branch", element, scope, name="if", children=body,
            attributes={"condition": condition or ""},
        ))

        for elseif in local_findall(element, "elseif"):
            condition = self._expr_attr_or_child(elseif, "condition", "condition", scope)
            body = self._walk_activities(elseif, scope)
            decision.branches.append(Branch(
                "elseif", condition, self._types(body), self.lines.line_of(elseif)
            ))
            activity.children.append(self._pseudo(
                "branch", elseif, scope, name="elseif", children=body,
                attributes={"condition": condition or ""},
            ))

        otherwise = local_find(element, "else")
        if otherwise is not None:
            decision.has_default = True
            body = self._walk_activities(otherwise, scope)
            decision.branches.append(Branch(
                "else", None, self._types(body), self.lines.line_of(otherwise)
            ))
            activity.children.append(self._pseudo("branch", otherwise, scope, name="else", children=body))

        activity.attributes["decision_id"] = decision.decision_id

    def _on_switch(self, element, activity, scope):
        decision = Decision(
            decision_id=self._next_id("D"),
            activity_type="switch",
            name=element.get("name", ""),
            scope=scope,
            line=activity.line,
        )
        self.doc.decisions.append(decision)

        for branch in element_children(element):
            label = strip_namespace(branch.tag)
            if label == "case":
                condition = self._expr_attr_or_child(branch, "condition", "condition", scope)
                body = self._walk_activities(branch, scope)
            elif label == "otherwise":
                decision.has_default = True
                condition = None
                body = self._walk_activities(branch, scope)
            else:
                continue
            decision.branches.append(Branch(
                label, condition, self._types(body), self.lines.line_of(branch)
            ))
            activity.children.append(self._pseudo(
                "branch", branch, scope, name=label, children=body,
                attributes={"condition": condition or ""},
            ))

        activity.attributes["decision_id"] = decision.decision_id

    def _on_pick(self, element, activity, scope):
        decision = Decision(
            decision_id=self._next_id("D"),
            activity_type="pick",
            name=element.get("name", ""),
            scope=scope,
            line=activity.line,
        )
        self.doc.decisions.append(decision)
        create_instance = element.get("createInstance", "no") == "yes"

        for branch in element_children(element):
            label = strip_namespace(branch.tag)
            if label == "onMessage":
                interaction = self._interaction(branch, scope, create_instance=create_instance)
                condition = f"message {interaction.partner_link}.{interaction.operation}"
            elif label == "onAlarm":
                before = len(self.doc.timers)
                self._timers(branch, "onAlarm", scope)
                condition = "alarm " + " ".join(
                    f"{t.kind} {t.expression}" for t in self.doc.timers[before:]
                )
            else:
                continue
            body = self._walk_activities(branch, scope)
            decision.branches.append(Branch(
                label, condition.strip(), self._types(body), self.lines.line_of(branch)
            ))
            activity.children.append(self._pseudo(
                label, branch, scope, name=branch.get("operation", ""), children=body,
            ))

        # A pick always waits for one of its events; there is no implicit default
        decision.has_default = True
        activity.attributes["decision_id"] = decision.decision_id

    def _on_while(self, element, activity, scope):
        loop = Loop(
            loop_id=self._next_id("L"),
            activity_type="while",
            name=element.get("name", ""),
            scope=scope,
            line=activity.line,
        )
        self.doc.loops.append(loop)
        loop.condition = self._expr_attr_or_child(element, "condition", "condition", scope)
        activity.children = self._walk_activities(element, scope)
        loop.body_types = self._types(activity.children)
        activity.attributes["loop_id"] = loop.loop_id

    def _on_repeatUntil(self, element, activity, scope):
        loop = Loop(
            loop_id=self._next_id("L"),
            activity_type="repeatUntil",
            name=element.get("name", ""),
            scope=scope,
            line=activity.line,
        )
        self.doc.loops.append(loop)
        activity.children = self._walk_activities(element, scope)
        loop.condition = self._expr_attr_or_child(element, "condition", "condition", scope)
        loop.body_types = self._types(activity.children)
        activity.attributes["loop_id"] = loop.loop_id

    def _on_forEach(self, element, activity, scope):
        loop = Loop(
            loop_id=self._next_id("L"),
            activity_type="forEach",
            name=element.get("name", ""),
            scope=scope,
            line=activity.line,
            counter=element.get("counterName", ""),
            parallel=element.get("parallel", "no") == "yes",
        )
        self.doc.loops.append(loop)
        loop.start_expression = self._expr_attr_or_child(
            element, "startCounterValue", "startCounterValue", scope
        )
        loop.final_expression = self._expr_attr_or_child(
            element, "finalCounterValue", "finalCounterValue", scope
        )
        completion = local_find(element, "completionCondition")
        if completion is not None:
            branches = local_find(completion, "branches")
            loop.completion_condition = self._expr(
                get_text(branches) if branches is not None else get_text(completion),
                "completionCondition", element, scope,
                branches if branches is not None else completion,
            )
        activity.children = self._walk_activities(element, scope)
        loop.body_types = self._types(activity.children)
        activity.attributes["loop_id"] = loop.loop_id

    def _on_bpelx_flowN(self, element, activity, scope):
        loop = Loop(
            loop_id=self._next_id("L"),
            activity_type="flowN",
            name=element.get("name", ""),
            scope=scope,
            line=activity.line,
            counter=element.get("indexVariable", ""),
            parallel=True,
        )
        self.doc.loops.append(loop)
        loop.final_expression = self._expr(element.get("N"), "finalCounterValue", element, scope)
        activity.children = self._walk_activities(element, scope)
        loop.body_types = self._types(activity.children)
        activity.attributes["loop_id"] = loop.loop_id

    # -- messaging ---------------------------------------------------------

    @staticmethod
    def _part_variables(element: ET.Element, container: str, part: str, attribute: str) -> List[str]:
        parts = local_find(element, container)
        if parts is None:
            return []
        return [p.get(attribute, "") for p in local_findall(parts, part) if p.get(attribute)]

    def _interaction(
        self, element: ET.Element, scope: str, create_instance: bool = False
    ) -> Interaction:
        activity_type = strip_namespace(element.tag)
        input_var = element.get("inputVariable", "")
        output_var = element.get("outputVariable", "")
        variable = element.get("variable", "")
        if activity_type in ("receive", "onMessage", "onEvent"):
            output_var = output_var or variable
        elif activity_type == "reply":
            input_var = input_var or variable

        # 2.0 toParts/fromParts reference variables without inputVariable
        to_part_vars = self._part_variables(element, "toParts", "toPart", "fromVariable")
        from_part_vars = self._part_variables(element, "fromParts", "fromPart", "toVariable")
        input_var = input_var or next(iter(to_part_vars), "")
        output_var = output_var or next(iter(from_part_vars), "")

        interaction = Interaction(
            activity_type=activity_type,
            name=element.get("name", ""),
            partner_link=element.get("partnerLink", ""),
            operation=element.get("operation", ""),
            port_type=element.get("portType", ""),
            scope=scope,
            line=self.lines.line_of(element),
            input_variable=input_var,
            output_variable=output_var,
            create_instance=create_instance or element.get("createInstance", "no") == "yes",
            fault_name=element.get("faultName", ""),
            to_part_variables=to_part_vars,
            from_part_variables=from_part_vars,
        )
        interaction.fault_handled = any(self._handled_stack)

        correlations = local_find(element, "correlations")
        if correlations is not None:
            for corr in local_findall(correlations, "correlation"):
                usage = {
                    "set": corr.get("set", ""),
                    "initiate": corr.get("initiate", ""),
                    "pattern": corr.get("pattern", ""),
                }
                interaction.correlations.append(usage)
                cset = self._find_correlation_set(usage["set"], scope)
                if cset is not None:
                    cset.usages.append(CorrelationUsage(
                        activity_type=activity_type,
                        activity_name=interaction.name,
                        initiate=usage["initiate"],
                        pattern=usage["pattern"],
                        line=interaction.line,
                    ))
                else:
                    self._warn(corr, f"Correlation set '{usage['set']}' is not declared")

        self.doc.interactions.append(interaction)
        return interaction

    def _find_correlation_set(self, name: str, scope: str) -> Optional[CorrelationSet]:
        """Innermost visible declaration wins."""
        candidates = [
            c for c in self.doc.correlation_sets
            if c.name == name and (scope == c.scope or scope.startswith(c.scope + "/"))
        ]
        if not candidates:
            return None
        return max(candidates, key=lambda c: len(c.scope))

    def _on_receive(self, element, activity, scope):
        interaction = self._interaction(element, scope)
        self._interaction_attributes(activity, interaction)

    def _on_reply(self, element, activity, scope):
        interaction = self._interaction(element, scope)
        self._interaction_attributes(activity, interaction)
        if interaction.fault_name:
            self.doc.fault_throws.append(FaultThrow(
                activity_type="reply",
                name=interaction.name,
                fault_name=interaction.fault_name,
                scope=scope,
                line=interaction.line,
                fault_variable=interaction.input_variable,
            ))

    def _on_invoke(self, element, activity, scope):
        # 2.0 allows catch/catchAll/compensationHandler inline on invoke
        inline_catch = bool(local_findall(element, "catch") or local_findall(element, "catchAll"))
        self._handled_stack.append(inline_catch)
        try:
            interaction = self._interaction(element, scope)
        finally:
            self._handled_stack.pop()
        self._interaction_attributes(activity, interaction)

        task = self._human_task_for_invoke(interaction, scope)
        if task is not None:
            activity.attributes["human_task"] = task.task_id

        inline_scope = f"{scope}/{interaction.name or 'invoke'}"
        for kind in ("catch", "catchAll"):
            for handler in local_findall(element, kind):
                fault_id = self._next_id("F")
                children = self._walk_activities(handler, scope)
                self.doc.faults.append(FaultHandler(
                    fault_id=fault_id,
                    kind=kind,
                    scope=inline_scope,
                    line=self.lines.line_of(handler),
                    fault_name=handler.get("faultName", ""),
                    fault_variable=handler.get("faultVariable", ""),
                    fault_type=handler.get("faultMessageType", "") or handler.get("faultElement", ""),
                    activity_types=self._types(children),
                ))
                activity.children.append(self._pseudo(
                    kind, handler, inline_scope, name=handler.get("faultName", ""),
                    children=children, attributes={"fault_id": fault_id},
                ))
        activity.children.extend(self._compensation_handler(element, inline_scope))

    def _interaction_attributes(self, activity: Activity, interaction: Interaction) -> None:
        for key, value in (
            ("partnerLink", interaction.partner_link),
            ("operation", interaction.operation),
            ("inputVariable", interaction.input_variable),
            ("outputVariable", interaction.output_variable),
            ("faultName", interaction.fault_name),
        ):
            if value:
                activity.attributes[key] = value
        if interaction.create_instance:
            activity.attributes["createInstance"] = "yes"

    def _human_task_for_invoke(self, interaction: Interaction, scope: str) -> Optional[HumanTask]:
        is_task_service = interaction.partner_link.endswith(self.task_service_suffixes)
        is_initiate = interaction.operation == "initiateTask"
        if not (is_task_service or is_initiate):
            return None

        if self._task_stack:
            task = self._task_stack[-1]
            if not task.partner_link:
                task.partner_link = interaction.partner_link
                task.operation = interaction.operation
                task.input_variable = interaction.input_variable
                task.output_variable = interaction.output_variable
            return task

        task = HumanTask(
            task_id=self._next_id("H"),
            name=interaction.name or interaction.partner_link,
            detected_by="initiate_task" if is_initiate else "task_service",
            scope=scope,
            line=interaction.line,
            partner_link=interaction.partner_link,
            operation=interaction.operation,
            input_variable=interaction.input_variable,
            output_variable=interaction.output_variable,
        )
        self.doc.human_tasks.append(task)
        return task

    # -- data --------------------------------------------------------------

    def _on_assign(self, element, activity, scope):
        name = element.get("name", "")
        copies = 0
        for op in element_children(element):
            op_name = strip_namespace(op.tag)
            if op_name == "extensionAssignOperation":
                inner = element_children(op)
                if not inner:
                    continue
                op = inner[0]
                op_name = strip_namespace(op.tag)
            if op_name not in ASSIGN_OPERATIONS:
                if op_name not in NON_ACTIVITY_ELEMENTS:
                    self._warn(op, f"Unrecognized assign operation <{op_name}>")
                continue

            from_elem = local_find(op, "from")
            to_elem = local_find(op, "to")
            if to_elem is None:
                to_elem = local_find(op, "target")

            mapping = DataMapping(
                assign_name=name,
                operation=op_name,
                scope=scope,
                line=self.lines.line_of(op),
                source=self._endpoint(from_elem, "from", element, scope) if from_elem is not None else None,
                target=self._endpoint(to_elem, "to", element, scope) if to_elem is not None else None,
            )
            self.doc.data_mappings.append(mapping)
            copies += 1

        activity.attributes["copies"] = str(copies)

    def _endpoint(self, element: ET.Element, usage: str, owner: ET.Element, scope: str) -> DataEndpoint:
        endpoint = DataEndpoint(
            variable=element.get("variable", ""),
            part=element.get("part", ""),
            partner_link=element.get("partnerLink", ""),
            endpoint_reference=element.get("endpointReference", ""),
            property=element.get("property", ""),
        )

        query_attr = element.get("query")
        query_elem = local_find(element, "query")
        if query_elem is not None:
            endpoint.query = self._expr(get_text(query_elem), "query", owner, scope, query_elem) or ""
        elif query_attr:
            endpoint.query = self._expr(query_attr, "query", owner, scope, element) or ""

        if element.get("expression"):
            endpoint.expression = self._expr(element.get("expression"), usage, owner, scope, element) or ""
            return endpoint

        literal = local_find(element, "literal")
        if literal is not None:
            endpoint.literal = self._literal(literal)
            return endpoint

        has_reference = any((
            endpoint.variable, endpoint.partner_link, endpoint.property, endpoint.query,
        ))
        text = (element.text or "").strip()
        if not has_reference and text and not element_children(element):
            if self.version == "1.1":
                # A 1.1 <from> with bare content is a literal value
                endpoint.literal = text
            else:
                endpoint.expression = self._expr(text, usage, owner, scope, element) or ""
        elif not has_reference and element_children(element) and self.version == "1.1":
            endpoint.literal = self._literal(element)
        return endpoint

    @staticmethod
    def _literal(element: ET.Element) -> str:
        parts = [(element.text or "").strip()]
        parts.extend(element_source(child) for child in element_children(element))
        return " ".join(p for p in parts if p)

    # -- faults / compensation ---------------------------------------------

    def _on_throw(self, element, activity, scope):
        activity.attributes["faultName"] = element.get("faultName", "")
        self.doc.fault_throws.append(FaultThrow(
            activity_type="throw",
            name=element.get("name", ""),
            fault_name=element.get("faultName", ""),
            scope=scope,
            line=activity.line,
            fault_variable=element.get("faultVariable", ""),
        ))

    def _on_rethrow(self, element, activity, scope):
        self.doc.fault_throws.append(FaultThrow(
            activity_type="rethrow",
            name=element.get("name", ""),
            fault_name="",
            scope=scope,
            line=activity.line,
        ))

    def _on_compensate(self, element, activity, scope):
        self._compensation_call(element, activity, scope, "compensate")

    def _on_compensateScope(self, element, activity, scope):
        self._compensation_call(element, activity, scope, "compensateScope")

    def _compensation_call(self, element, activity, scope, kind):
        target = element.get("target", "") or element.get("scope", "")
        if target:
            activity.attributes["target"] = target
        self.doc.compensations.append(Compensation(
            compensation_id=self._next_id("C"),
            kind=kind,
            scope=scope,
            line=activity.line,
            name=element.get("name", ""),
            target=target,
        ))

    # -- simple ------------------------------------------------------------

    def _on_wait(self, element, activity, scope):
        self._timers(element, "wait", scope)

    def _on_empty(self, element, activity, scope):
        pass

    def _on_exit(self, element, activity, scope):
        pass

    def _on_terminate(self, element, activity, scope):
        pass

    def _on_validate(self, element, activity, scope):
        activity.attributes["variables"] = element.get("variables", "")

    _on_bpelx_validate = _on_validate

    def _on_bpelx_exec(self, element, activity, scope):
        source = get_text(element)
        self.doc.java_embeddings.append(JavaEmbedding(
            name=element.get("name", ""),
            language=element.get("language", "java"),
            version=element.get("version", ""),
            source=source,
            scope=scope,
            line=activity.line,
        ))
        activity.attributes["language"] = element.get("language", "java")

    def _extension_activity(self, element: ET.Element, scope: str) -> Optional[Activity]:
        """Unwrap <extensionActivity>; Oracle 11g nests bpelx:exec and humanTask here."""
        inner = [c for c in element_children(element) if strip_namespace(c.tag) != "documentation"]
        if not inner:
            self._warn(element, "Empty <extensionActivity>")
            return None
        child = inner[0]
        local = strip_namespace(child.tag)
        if local == "humanTask":
            activity = Activity(
                activity_type="humanTask",
                name=child.get("name", ""),
                line=self.lines.line_of(child),
                scope=scope,
            )
            self.doc.statistics["humanTask"] = self.doc.statistics.get("humanTask", 0) + 1
            task = HumanTask(
                task_id=self._next_id("H"),
                name=child.get("name", ""),
                detected_by="extension",
                scope=scope,
                line=activity.line,
                task_definition=child.get("taskDefinition", "") or child.get("taskFile", ""),
                input_variable=child.get("inputVariable", ""),
                output_variable=child.get("outputVariable", ""),
            )
            self.doc.human_tasks.append(task)
            activity.attributes["human_task"] = task.task_id
            return activity
        return self._activity(child, scope)
