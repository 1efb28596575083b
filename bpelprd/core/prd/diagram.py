"""Deterministic PlantUML activity diagram for a BPEL process.

Every node corresponds to an activity in the parsed tree; nothing is
inferred. Fault, compensation and event handlers are left out of the
main flow and summarised in a note.
"""

import logging
import re
from typing import Dict, List

from ..bpel_parser.models import Activity, Loop, ProcessDocument

logger = logging.getLogger(__name__)

_THEME = """
skinparam backgroundColor #FEFEFE
skinparam shadowing false
skinparam defaultFontSize 12
skinparam roundCorner 8
skinparam activity {
  BackgroundColor #F8F9FA
  BorderColor #495057
  FontColor #212529
  ArrowColor #495057
  DiamondBackgroundColor #E9ECEF
  DiamondBorderColor #495057
}
skinparam note {
  BackgroundColor #FFF3CD
  BorderColor #FFCA2C
  FontColor #664D03
}
""".strip()

_MAX_ACTIVITIES = 200
_MAX_DEPTH = 20

_HANDLER_TYPES = frozenset({
    "catch", "catchAll", "compensationHandler", "terminationHandler",
    "onEvent", "onMessage", "onAlarm",
})


def _safe(text: str) -> str:
    """Sanitize text for PlantUML, removing characters that break syntax."""
    cleaned = re.sub(r'[<>{}@#$%^&*;\'"\\|~`]', "", text)
    cleaned = cleaned.replace("\n", " ").replace("\r", "").strip()
    return re.sub(r"\s+", " ", cleaned) or "unnamed"


def _safe_condition(text: str) -> str:
    """Sanitize a condition for use inside ``if (...)``."""
    cleaned = re.sub(r'[()<>{}\[\]@#$%^&*;\'"\\|~`]', "", text)
    cleaned = re.sub(r"\s+", " ", cleaned).strip()
    return cleaned[:60] if cleaned else "condition"


def _label(activity: Activity) -> str:
    kind = activity.activity_type
    if kind in ("invoke", "receive", "reply"):
        target = ".".join(
            p for p in (activity.attributes.get("partnerLink"), activity.attributes.get("operation")) if p
        )
        text = f"{kind} {target}" if target else kind
    elif activity.name:
        text = f"{kind} {activity.name}"
    else:
        text = kind
    return _safe(text)


def render_activity_diagram(document: ProcessDocument) -> str:
    """PlantUML source for the main flow of the process."""
    walker = _DiagramWalker(document)
    walker.walk(document.activities, depth=0)

    lines = ["@startuml", _THEME, ""]
    lines.append(f"title {_safe(document.name or 'process')} - Activity Flow")
    lines.append("")
    lines.append("start")
    lines.extend(walker.lines)
    lines.append("stop")
    if walker.handlers:
        lines.append(
            f"note right: {walker.handlers} fault, compensation or event handlers not shown"
        )
    if walker.truncated:
        logger.info("Activity diagram for %s truncated at %d nodes", document.name, _MAX_ACTIVITIES)
        lines.append("note right: diagram truncated")
    lines.append("@enduml")
    return "\n".join(lines)


class _DiagramWalker:
    """Emits PlantUML lines for an activity tree."""

    def __init__(self, document: ProcessDocument):
        self.lines: List[str] = []
        self.count = 0
        self.handlers = 0
        self.truncated = False
        self._loops: Dict[str, Loop] = {loop.loop_id: loop for loop in document.loops}

    def walk(self, activities: List[Activity], depth: int) -> None:
        for activity in activities:
            if activity.activity_type in _HANDLER_TYPES:
                self.handlers += 1
                continue
            if self.count >= _MAX_ACTIVITIES or depth > _MAX_DEPTH:
                self.truncated = True
                return
            self._emit(activity, depth)

    def _node(self, text: str) -> None:
        self.lines.append(f":{text};")
        self.count += 1

    def _block(self, activities: List[Activity], depth: int, placeholder: str) -> None:
        """Walk a branch body; empty bodies still get a node."""
        before = self.count
        self.walk(activities, depth + 1)
        if self.count == before:
            self._node(_safe(placeholder))

    def _loop_condition(self, activity: Activity) -> str:
        loop = self._loops.get(activity.attributes.get("loop_id", ""))
        if loop is None:
            return activity.name or activity.activity_type
        if loop.activity_type in ("forEach", "flowN"):
            counter = loop.counter or "i"
            return f"{counter} from {loop.start_expression or '1'} to {loop.final_expression or 'N'}"
        return loop.condition or activity.name or activity.activity_type

    def _emit(self, activity: Activity, depth: int) -> None:
        kind = activity.activity_type
        children = activity.children

        if kind == "sequence":
            self.walk(children, depth + 1)
            return

        if kind == "scope":
            self.lines.append(f'partition "{_safe(activity.name or "scope")}" {{')
            self._block(children, depth, activity.name or "scope")
            self.lines.append("}")
            return

        if kind in ("if", "switch"):
            branches = [c for c in children if c.activity_type == "branch"]
            if not branches:
                return
            for index, branch in enumerate(branches):
                condition = branch.attributes.get("condition", "")
                if index == 0:
                    self.lines.append(f"if ({_safe_condition(condition)}) then (yes)")
                elif condition:
                    self.lines.append(f"elseif ({_safe_condition(condition)}) then (yes)")
                else:
                    self.lines.append("else (no)")
                self._block(branch.children, depth, branch.name or "continue")
            self.lines.append("endif")
            return

        if kind == "pick":
            events = [c for c in children if c.activity_type in ("onMessage", "onAlarm")]
            if not events:
                return
            self.lines.append("split")
            for index, event in enumerate(events):
                if index:
                    self.lines.append("split again")
                label = f"{event.activity_type} {event.name}" if event.name else event.activity_type
                self._node(_safe(label))
                self.walk(event.children, depth + 1)
            self.lines.append("end split")
            return

        if kind in ("flow", "bpelx:flowN"):
            body = [c for c in children if c.activity_type not in _HANDLER_TYPES]
            if kind == "flow" and len(body) < 2:
                self.walk(body, depth + 1)
                return
            self.lines.append("fork")
            for index, child in enumerate(body):
                if index:
                    self.lines.append("fork again")
                self._block([child], depth, child.activity_type)
            if not body:
                self._node("parallel branch")
            self.lines.append("end fork")
            return

        if kind in ("while", "forEach"):
            self.lines.append(f"while ({_safe_condition(self._loop_condition(activity))})")
            self._block(children, depth, kind)
            self.lines.append("endwhile")
            return

        if kind == "repeatUntil":
            self.lines.append("repeat")
            self._block(children, depth, kind)
            self.lines.append(
                f"repeat while (until {_safe_condition(self._loop_condition(activity))}) is (no)"
            )
            return

        self._node(_label(activity))
        # inline catch/compensation handlers on invoke
        self.handlers += sum(1 for c in children if c.activity_type in _HANDLER_TYPES)
        if kind in ("exit", "terminate"):
            self.lines.append("stop")
