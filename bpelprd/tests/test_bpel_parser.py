"""Tests for the BPEL process parser."""

import xml.etree.ElementTree as ET

import pytest

from bpelprd.core.bpel_parser import BpelParser, detect_artifact_type, parse_file, parse_source
from bpelprd.core.bpel_parser.utils import LineIndex, count_lines, local_name

from conftest import LEGACY_BPEL, MESSAGE_PARTS, ORDER_BPEL


# =========================================================================
# Small inline fixtures
# =========================================================================

LINE_SAMPLE = """<process name="Lines" xmlns="http://docs.oasis-open.org/wsbpel/2.0/process/executable">
  <!-- <empty name="commented"/>
       spans two lines -->
  <sequence>
    <empty name="first"/>
    <empty
        name="second"/>
  </sequence>
</process>
"""

UNKNOWN_NS = """<process name="Odd" xmlns="urn:example:not-bpel">
  <empty name="noop"/>
</process>
"""

UNKNOWN_ACTIVITY = """<process name="Custom"
         xmlns="http://docs.oasis-open.org/wsbpel/2.0/process/executable">
  <sequence>
    <bogus name="mystery"/>
  </sequence>
</process>
"""

FLOW_WITH_LINKS = """<process name="Parallel"
         xmlns="http://docs.oasis-open.org/wsbpel/2.0/process/executable">
  <flow name="split">
    <links>
      <link name="aToB"/>
    </links>
    <empty name="a">
      <sources>
        <source linkName="aToB">
          <transitionCondition>$ok = true()</transitionCondition>
        </source>
      </sources>
    </empty>
    <empty name="b">
      <targets>
        <target linkName="aToB"/>
      </targets>
    </empty>
  </flow>
</process>
"""

FOREACH_AND_HANDLERS = """<process name="Batch"
         xmlns="http://docs.oasis-open.org/wsbpel/2.0/process/executable"
         xmlns:tns="urn:batch">
  <variables>
    <variable name="fault" element="tns:BatchFault"/>
  </variables>
  <faultHandlers>
    <catch faultName="tns:BatchFailed" faultVariable="fault">
      <rethrow/>
    </catch>
  </faultHandlers>
  <eventHandlers>
    <onAlarm>
      <repeatEvery>'PT5M'</repeatEvery>
      <empty name="heartbeat"/>
    </onAlarm>
  </eventHandlers>
  <sequence>
    <forEach name="EachItem" counterName="i" parallel="yes">
      <startCounterValue>1</startCounterValue>
      <finalCounterValue>count($items/item)</finalCounterValue>
      <completionCondition>
        <branches>2</branches>
      </completionCondition>
      <scope name="ItemScope">
        <compensationHandler>
          <empty name="undo"/>
        </compensationHandler>
        <throw name="Fail" faultName="tns:BatchFailed" faultVariable="fault"/>
      </scope>
    </forEach>
    <compensateScope target="ItemScope"/>
    <repeatUntil name="Poll">
      <empty name="tick"/>
      <condition>false()</condition>
    </repeatUntil>
  </sequence>
</process>
"""

WORKFLOW_SCOPE = """<process name="Approval"
         xmlns="http://docs.oasis-open.org/wsbpel/2.0/process/executable"
         xmlns:bpelx="http://schemas.oracle.com/bpel/extension">
  <partnerLinks>
    <partnerLink name="ReviewTaskService" partnerLinkType="ts:TaskService"
                 partnerRole="TaskService" myRole="TaskServiceCallbackListener"/>
  </partnerLinks>
  <scope name="ReviewTask" wfTaskDefinition="Review.task">
    <bpelx:annotation>
      <bpelx:pattern patternName="bpelx:workflow"/>
    </bpelx:annotation>
    <invoke name="initiateTask_Review" partnerLink="ReviewTaskService"
            operation="initiateTask" inputVariable="taskReq"/>
  </scope>
</process>
"""

TASK_SERVICE_INVOKE = """<process name="Review"
         xmlns="http://docs.oasis-open.org/wsbpel/2.0/process/executable">
  <invoke name="submitReview" partnerLink="ReviewTaskService" operation="submit"/>
</process>
"""


def _parse(source: str, file_path: str = "process.bpel"):
    result = BpelParser().parse_source(source, file_path)
    assert result.document is not None, result.errors
    return result


# =========================================================================
# Tests: Utilities
# =========================================================================

class TestUtilities:
    def test_detect_artifact_type(self):
        assert detect_artifact_type("bpel/Order.bpel") == "bpel"
        assert detect_artifact_type("wsdl/Order.WSDL") == "wsdl"
        assert detect_artifact_type("xsd/types.xsd") == "xsd"
        assert detect_artifact_type("readme.md") is None

    def test_local_name(self):
        assert local_name("tns:OrderPLT") == "OrderPLT"
        assert local_name("OrderPLT") == "OrderPLT"

    def test_count_lines(self):
        assert count_lines("") == 0
        assert count_lines("a\nb") == 2
        assert count_lines("a\nb\n") == 2


class TestLineIndex:
    def test_lines_skip_comments_and_multiline_tags(self):
        doc = _parse(LINE_SAMPLE).document
        sequence = doc.activities[0]
        assert sequence.line == 4
        first, second = sequence.children
        assert (first.name, first.line) == ("first", 5)
        assert (second.name, second.line) == ("second", 6)

    def test_unknown_element_has_line_zero(self):
        root = ET.fromstring("<a><b/></a>")
        index = LineIndex(root, "<a><b/></a>")
        assert index.line_of(None) == 0
        assert index.line_of(ET.Element("c")) == 0


# =========================================================================
# Tests: Process-level declarations
# =========================================================================

class TestProcessDeclarations:
    def test_metadata(self):
        doc = _parse(ORDER_BPEL).document
        assert doc.name == "OrderProcess"
        assert doc.bpel_version == "2.0"
        assert doc.target_namespace == "http://example.com/order"
        assert doc.documentation == "Accepts customer orders and reserves stock."
        assert doc.line_count == ORDER_BPEL.count("\n")
        assert doc.namespaces["ora"] == "http://schemas.oracle.com/xpath/extension"

    def test_imports(self):
        doc = _parse(ORDER_BPEL).document
        assert len(doc.imports) == 1
        assert doc.imports[0].location == "OrderService.wsdl"
        assert doc.imports[0].line == 11

    def test_partner_links(self):
        doc = _parse(ORDER_BPEL).document
        client, inventory = doc.partner_links
        assert (client.name, client.line, client.direction) == ("client", 14, "inbound")
        assert (inventory.name, inventory.line, inventory.direction) == (
            "InventoryService", 15, "outbound"
        )
        assert client.operations == ["submitOrder"]
        assert inventory.operations == ["checkStock", "reserveStock"]

    def test_variables(self):
        doc = _parse(ORDER_BPEL).document
        by_name = {v.name: v for v in doc.variables}
        assert by_name["orderRequest"].kind == "messageType"
        assert by_name["orderRequest"].type_name == "tns:OrderRequestMessage"
        assert by_name["retryCount"].kind == "type"
        assert by_name["scratch"].kind == "untyped"
        assert by_name["scratch"].line == 24
        assert all(v.scope == "process" for v in doc.variables)

    def test_correlation_sets(self):
        doc = _parse(ORDER_BPEL).document
        (cset,) = doc.correlation_sets
        assert cset.name == "OrderCS"
        assert cset.properties == ["tns:orderId"]
        assert cset.line == 27
        (usage,) = cset.usages
        assert usage.activity_name == "ReceiveOrder"
        assert usage.initiate == "yes"


# =========================================================================
# Tests: Activities
# =========================================================================

class TestActivities:
    def test_tree_shape(self):
        doc = _parse(ORDER_BPEL).document
        (main,) = doc.activities
        assert main.activity_type == "sequence"
        assert [a.activity_type for a in main.children] == [
            "receive", "assign", "invoke", "if", "while", "reply",
        ]

    def test_statistics_count_unwrapped_exec(self):
        doc = _parse(ORDER_BPEL).document
        assert doc.statistics["bpelx:exec"] == 1
        assert doc.statistics["invoke"] == 2
        assert doc.statistics["sequence"] == 2
        assert "extensionActivity" not in doc.statistics

    def test_interactions(self):
        doc = _parse(ORDER_BPEL).document
        names = [i.name for i in doc.interactions]
        assert names == ["ReceiveOrder", "CheckStock", "ReserveStock", "ReplyOrder"]

        receive, check, reserve, reply = doc.interactions
        assert receive.create_instance is True
        assert receive.output_variable == "orderRequest"
        assert receive.correlations == [{"set": "OrderCS", "initiate": "yes", "pattern": ""}]
        assert check.line == 48
        assert check.fault_handled is False
        assert reserve.fault_handled is True
        assert reserve.scope == "process/ReserveScope"
        assert reply.input_variable == "orderResponse"

    def test_message_parts(self):
        (send,) = _parse(MESSAGE_PARTS).document.interactions
        assert send.to_part_variables == ["header", "body"]
        assert send.from_part_variables == ["status", "detail"]
        assert send.input_variable == "header"
        assert send.output_variable == "status"

    def test_if_becomes_decision_with_branches(self):
        doc = _parse(ORDER_BPEL).document
        (decision,) = doc.decisions
        assert decision.decision_id == "D-001"
        assert decision.activity_type == "if"
        assert decision.name == "StockDecision"
        assert decision.line == 50
        assert decision.has_default is False
        assert [b.label for b in decision.branches] == ["if", "elseif"]
        assert decision.branches[0].condition == "$stockResponse.payload/ord:available > 0"
        assert decision.branches[0].activity_types == ["scope"]
        assert decision.branches[1].line == 68
        assert decision.branches[1].activity_types == ["wait"]

    def test_branch_pseudo_activities(self):
        doc = _parse(ORDER_BPEL).document
        if_activity = doc.activities[0].children[3]
        assert if_activity.attributes["decision_id"] == "D-001"
        assert [c.activity_type for c in if_activity.children] == ["branch", "branch"]
        assert [c.name for c in if_activity.children] == ["if", "elseif"]
        assert if_activity.children[1].attributes["condition"] == (
            "$stockResponse.payload/ord:backorder = 'true'"
        )

    def test_while_loop(self):
        doc = _parse(ORDER_BPEL).document
        (loop,) = doc.loops
        assert loop.loop_id == "L-001"
        assert loop.condition == "$retryCount < 3"
        assert loop.body_types == ["assign"]
        assert loop.line == 75

    def test_data_mappings(self):
        doc = _parse(ORDER_BPEL).document
        first, second, third = doc.data_mappings
        assert first.assign_name == "PrepareStock"
        assert first.source.expression == "$orderRequest.payload/ord:itemId"
        assert first.target.expression == "$stockRequest.payload/ord:itemId"
        assert second.target.variable == "stockRequest"
        assert second.target.part == "payload"
        assert second.target.query == "ord:trackingId"
        assert third.target.variable == "retryCount"

    def test_scope_fault_handler(self):
        doc = _parse(ORDER_BPEL).document
        (fault,) = doc.faults
        assert fault.fault_id == "F-001"
        assert fault.kind == "catchAll"
        assert fault.scope == "process/ReserveScope"
        assert fault.activity_types == ["empty"]
        assert fault.line == 54

    def test_java_embedding_in_extension_activity(self):
        doc = _parse(ORDER_BPEL).document
        (java,) = doc.java_embeddings
        assert java.name == "LogReservation"
        assert java.version == "1.5"
        assert java.line == 62
        assert 'getVariableData("orderRequest")' in java.source
        assert java.source.startswith("System.out.println")

    def test_timer(self):
        doc = _parse(ORDER_BPEL).document
        (timer,) = doc.timers
        assert (timer.activity_type, timer.kind, timer.expression) == ("wait", "for", "'PT1H'")
        assert timer.name == "BackorderDelay"


# =========================================================================
# Tests: Expression catalogue
# =========================================================================

class TestExpressions:
    def test_catalogue_order_and_ids(self):
        doc = _parse(ORDER_BPEL).document
        texts = [(e.expression_id, e.usage, e.text) for e in doc.expressions]
        assert texts == [
            ("X-001", "from", "$orderRequest.payload/ord:itemId"),
            ("X-002", "to", "$stockRequest.payload/ord:itemId"),
            ("X-003", "from", "ora:getCompositeInstanceId()"),
            ("X-004", "query", "ord:trackingId"),
            ("X-005", "condition", "$stockResponse.payload/ord:available > 0"),
            ("X-006", "condition", "$stockResponse.payload/ord:backorder = 'true'"),
            ("X-007", "for", "'PT1H'"),
            ("X-008", "condition", "$retryCount < 3"),
            ("X-009", "from", "$retryCount + 1"),
        ]

    def test_expression_lines_point_at_expression_element(self):
        doc = _parse(ORDER_BPEL).document
        by_id = {e.expression_id: e for e in doc.expressions}
        assert by_id["X-001"].line == 38
        assert by_id["X-004"].line == 44
        assert by_id["X-005"].line == 51
        assert by_id["X-007"].line == 71
        assert by_id["X-008"].line == 76

    def test_expression_owner(self):
        doc = _parse(ORDER_BPEL).document
        x3 = doc.expressions[2]
        assert x3.activity_type == "assign"
        assert x3.activity_name == "PrepareStock"
        assert x3.scope == "process"


# =========================================================================
# Tests: BPEL 1.1 and Oracle extensions
# =========================================================================

class TestLegacyProcess:
    def test_version(self):
        doc = _parse(LEGACY_BPEL).document
        assert doc.bpel_version == "1.1"

    def test_bare_from_is_literal(self):
        doc = _parse(LEGACY_BPEL).document
        (mapping,) = doc.data_mappings
        assert mapping.source.literal == "PENDING"
        assert mapping.source.expression == ""
        assert mapping.source.describe() == "literal PENDING"

    def test_switch_with_otherwise(self):
        doc = _parse(LEGACY_BPEL).document
        switch, pick = doc.decisions
        assert switch.activity_type == "switch"
        assert switch.has_default is True
        assert [b.label for b in switch.branches] == ["case", "otherwise"]
        assert switch.branches[0].condition == (
            "bpws:getVariableData('inputVariable','payload','/client:amount') > 1000"
        )
        assert switch.branches[1].condition is None
        assert switch.branches[1].activity_types == ["bpelx:exec"]

    def test_pick_always_has_default(self):
        doc = _parse(LEGACY_BPEL).document
        pick = doc.decisions[1]
        assert pick.activity_type == "pick"
        assert pick.has_default is True
        assert [b.label for b in pick.branches] == ["onMessage", "onAlarm"]
        assert pick.branches[0].condition == "message ApprovalTaskService.onTaskCompleted"
        assert pick.branches[1].condition == "alarm for 'P3D'"
        assert pick.branches[1].activity_types == ["terminate"]

    def test_direct_bpelx_exec(self):
        doc = _parse(LEGACY_BPEL).document
        (java,) = doc.java_embeddings
        assert java.name == "AutoApprove"
        assert java.source == 'setVariableData("status", "APPROVED");'
        assert java.line == 32

    def test_initiate_task_invoke_is_human_task(self):
        doc = _parse(LEGACY_BPEL).document
        (task,) = doc.human_tasks
        assert task.task_id == "H-001"
        assert task.detected_by == "initiate_task"
        assert task.partner_link == "ApprovalTaskService"
        assert task.input_variable == "taskInput"

    def test_bidirectional_partner_link(self):
        doc = _parse(LEGACY_BPEL).document
        assert doc.partner_links[0].direction == "bidirectional"

    def test_attribute_expressions(self):
        doc = _parse(LEGACY_BPEL).document
        assert [e.usage for e in doc.expressions] == ["condition", "for"]
        assert doc.expressions[1].text == "'P3D'"


class TestStructuredConstructs:
    def test_flow_links(self):
        doc = _parse(FLOW_WITH_LINKS).document
        (link,) = doc.links
        assert link.name == "aToB"
        assert link.flow_name == "split"
        assert link.source == "a"
        assert link.target == "b"
        assert link.transition_condition == "$ok = true()"

    def test_for_each(self):
        doc = _parse(FOREACH_AND_HANDLERS).document
        for_each = doc.loops[0]
        assert for_each.activity_type == "forEach"
        assert for_each.counter == "i"
        assert for_each.parallel is True
        assert for_each.start_expression == "1"
        assert for_each.final_expression == "count($items/item)"
        assert for_each.completion_condition == "2"
        assert for_each.body_types == ["scope"]

    def test_repeat_until(self):
        doc = _parse(FOREACH_AND_HANDLERS).document
        repeat = doc.loops[1]
        assert repeat.activity_type == "repeatUntil"
        assert repeat.condition == "false()"

    def test_fault_throw_and_rethrow(self):
        doc = _parse(FOREACH_AND_HANDLERS).document
        kinds = [(t.activity_type, t.fault_name) for t in doc.fault_throws]
        assert ("throw", "tns:BatchFailed") in kinds
        assert ("rethrow", "") in kinds
        (catch,) = doc.faults
        assert catch.fault_name == "tns:BatchFailed"
        assert catch.fault_variable == "fault"
        assert catch.scope == "process"

    def test_compensation(self):
        doc = _parse(FOREACH_AND_HANDLERS).document
        kinds = {c.kind: c for c in doc.compensations}
        assert kinds["handler"].scope == "process/ItemScope"
        assert kinds["handler"].name == "ItemScope"
        assert kinds["handler"].activity_types == ["empty"]
        assert kinds["compensateScope"].target == "ItemScope"

    def test_event_handler_alarm(self):
        doc = _parse(FOREACH_AND_HANDLERS).document
        (handler,) = doc.event_handlers
        assert handler.kind == "onAlarm"
        assert handler.activity_types == ["empty"]
        (timer,) = doc.timers
        assert (timer.kind, timer.expression) == ("repeatEvery", "'PT5M'")

    def test_handlers_follow_main_activity(self):
        doc = _parse(FOREACH_AND_HANDLERS).document
        assert [a.activity_type for a in doc.activities] == ["sequence", "catch", "onAlarm"]

    def test_workflow_scope_merges_task_invoke(self):
        doc = _parse(WORKFLOW_SCOPE).document
        (task,) = doc.human_tasks
        assert task.detected_by == "workflow_pattern"
        assert task.name == "ReviewTask"
        assert task.task_definition == "Review.task"
        assert task.partner_link == "ReviewTaskService"
        assert task.operation == "initiateTask"


# =========================================================================
# Tests: Errors and warnings
# =========================================================================

class TestParseErrors:
    def test_malformed_xml(self):
        result = BpelParser().parse_source("<process name='x'>", "broken.bpel")
        assert result.document is None
        assert result.errors[0].severity == "error"
        assert "XML parse error" in result.errors[0].message

    def test_non_process_root(self):
        result = BpelParser().parse_source("<definitions/>", "service.wsdl")
        assert result.document is None
        assert "is not a BPEL <process>" in result.errors[0].message

    def test_unknown_namespace_assumes_2_0(self):
        result = BpelParser().parse_source(UNKNOWN_NS, "odd.bpel")
        assert result.document is not None
        assert result.document.bpel_version == "2.0"
        assert result.errors[0].severity == "warning"
        assert "Unknown BPEL namespace" in result.errors[0].message

    def test_unknown_activity_recorded(self):
        result = _parse(UNKNOWN_ACTIVITY)
        (unknown,) = result.document.unknown_elements
        assert unknown["element"] == "bogus"
        assert unknown["name"] == "mystery"
        assert unknown["line"] == 4
        assert any("Unrecognized activity <bogus>" in e.message for e in result.errors)
        bogus = result.document.activities[0].children[0]
        assert "mystery" in bogus.attributes["source"]

    def test_parse_file(self, tmp_path):
        path = tmp_path / "bpel" / "Order.bpel"
        path.parent.mkdir()
        path.write_text(ORDER_BPEL, encoding="utf-8")
        result = parse_file(str(path), str(tmp_path))
        assert result.file_path == "bpel/Order.bpel"
        assert result.document.name == "OrderProcess"

    def test_parse_missing_file(self, tmp_path):
        result = parse_file(str(tmp_path / "missing.bpel"))
        assert result.document is None
        assert "Cannot read file" in result.errors[0].message

    @pytest.mark.parametrize("suffixes, expected", [
        (None, 1),
        ([], 0),
    ])
    def test_task_service_suffixes(self, suffixes, expected):
        doc = parse_source(TASK_SERVICE_INVOKE, "approval.bpel", task_service_suffixes=suffixes).document
        assert len(doc.human_tasks) == expected
