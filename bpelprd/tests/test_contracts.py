"""Tests for WSDL/XSD parsing and contract resolution."""

from bpelprd.core.bpel_parser import BpelParser, ContractIndex, WsdlParser, XsdParser
from bpelprd.core.bpel_parser.models import PartnerLink, Variable

from conftest import INVENTORY_XSD, ORDER_BPEL, ORDER_WSDL


# =========================================================================
# Sample sources
# =========================================================================

WSDL_11_PLT = """<definitions name="Legacy"
             xmlns="http://schemas.xmlsoap.org/wsdl/"
             xmlns:plnk="http://schemas.xmlsoap.org/ws/2003/05/partner-link/">
  <portType name="LegacyPort">
    <operation name="notify">
      <input message="tns:NotifyMessage"/>
    </operation>
  </portType>
  <plnk:partnerLinkType name="LegacyPLT">
    <plnk:role name="LegacyProvider">
      <plnk:portType name="tns:LegacyPort"/>
    </plnk:role>
  </plnk:partnerLinkType>
</definitions>
"""


def _order_index(with_xsd: bool = False) -> ContractIndex:
    xsd_parser = XsdParser()
    wsdl = WsdlParser(xsd_parser).parse_source(ORDER_WSDL, "wsdl/OrderService.wsdl")
    xsds = [xsd_parser.parse_source(INVENTORY_XSD, "xsd/Inventory.xsd")] if with_xsd else []
    return ContractIndex([wsdl], xsds)


def _plink(name: str, plt: str, my_role: str = "", partner_role: str = "", operations=None) -> PartnerLink:
    return PartnerLink(
        name=name, partner_link_type=plt, my_role=my_role, partner_role=partner_role,
        scope="process", line=1, operations=list(operations or []),
    )


def _variable(name: str, kind: str, type_name: str) -> Variable:
    return Variable(name=name, kind=kind, type_name=type_name, scope="process", line=1)


# =========================================================================
# Tests: WSDL parser
# =========================================================================

class TestWsdlParser:
    def test_messages_and_port_types(self):
        result = WsdlParser().parse_source(ORDER_WSDL, "order.wsdl")
        assert not result.errors
        assert [m.name for m in result.messages] == [
            "OrderRequestMessage", "OrderResponseMessage", "InvalidOrderMessage",
        ]
        assert result.messages[0].parts == [
            {"name": "payload", "element": "ord:OrderRequest", "type": ""},
        ]
        (port_type,) = result.port_types
        (operation,) = port_type.operations
        assert operation.name == "submitOrder"
        assert operation.pattern == "request-response"
        assert operation.faults == [{"name": "InvalidOrder", "message": "tns:InvalidOrderMessage"}]

    def test_partner_link_type_roles(self):
        result = WsdlParser().parse_source(ORDER_WSDL, "order.wsdl")
        (plt,) = result.partner_link_types
        assert plt.name == "OrderPLT"
        assert plt.roles == {"OrderProvider": "tns:OrderPortType"}

    def test_bpel_11_role_with_nested_port_type(self):
        result = WsdlParser().parse_source(WSDL_11_PLT, "legacy.wsdl")
        (plt,) = result.partner_link_types
        assert plt.roles == {"LegacyProvider": "tns:LegacyPort"}
        assert result.port_types[0].operations[0].pattern == "one-way"

    def test_properties_and_aliases(self):
        result = WsdlParser().parse_source(ORDER_WSDL, "order.wsdl")
        assert result.properties == {"orderId": "xsd:string"}
        (alias,) = result.property_aliases
        assert alias.property_name == "tns:orderId"
        assert alias.part == "payload"
        assert alias.query == "ord:orderId"

    def test_services(self):
        result = WsdlParser().parse_source(ORDER_WSDL, "order.wsdl")
        (endpoint,) = result.services
        assert endpoint.service == "OrderService"
        assert endpoint.port == "OrderPort"
        assert endpoint.address == "http://localhost:8080/order"

    def test_inline_schema(self):
        result = WsdlParser().parse_source(ORDER_WSDL, "order.wsdl")
        (schema,) = result.schemas
        assert [e.name for e in schema.elements] == ["OrderRequest", "OrderResponse"]
        assert [t.name for t in schema.types] == ["OrderResponseType"]

    def test_not_a_wsdl(self):
        result = WsdlParser().parse_source(INVENTORY_XSD, "types.xsd")
        assert result.errors[0].severity == "error"
        assert "is not WSDL <definitions>" in result.errors[0].message

    def test_malformed(self):
        result = WsdlParser().parse_source("<definitions>", "broken.wsdl")
        assert result.errors[0].severity == "error"


# =========================================================================
# Tests: XSD parser
# =========================================================================

class TestXsdParser:
    def test_complex_type_with_extension(self):
        result = XsdParser().parse_source(INVENTORY_XSD, "inventory.xsd")
        types = {t.name: t for t in result.types}
        stock = types["StockItem"]
        assert stock.kind == "complexType"
        assert stock.type_name == "inv:BaseItem"
        assert [f.name for f in stock.fields] == ["available", "warehouse", "supplier"]

    def test_attributes_become_fields(self):
        result = XsdParser().parse_source(INVENTORY_XSD, "inventory.xsd")
        base = next(t for t in result.types if t.name == "BaseItem")
        assert [f.name for f in base.fields] == ["sku", "@version"]
        assert base.fields[1].cardinality == "1..1"

    def test_simple_type_enumeration(self):
        result = XsdParser().parse_source(INVENTORY_XSD, "inventory.xsd")
        status = next(t for t in result.types if t.name == "StockStatus")
        assert status.kind == "simpleType"
        assert status.type_name == "xsd:string"
        assert status.enumerations == ["IN_STOCK", "BACKORDER"]

    def test_top_level_element(self):
        result = XsdParser().parse_source(INVENTORY_XSD, "inventory.xsd")
        (element,) = result.elements
        assert element.name == "StockLevel"
        assert element.type_name == "inv:StockItem"
        assert element.fields == []

    def test_not_a_schema(self):
        result = XsdParser().parse_source(ORDER_WSDL, "order.wsdl")
        assert "is not an XML <schema>" in result.errors[0].message


# =========================================================================
# Tests: Contract index
# =========================================================================

class TestContractIndex:
    def test_empty_index(self):
        index = ContractIndex()
        assert index.has_wsdl is False
        assert index.has_schema is False
        assert index.resolve_variable(_variable("x", "messageType", "tns:Missing")) == []

    def test_resolve_partner_link(self):
        index = _order_index()
        resolved = index.resolve_partner_link(
            _plink("client", "tns:OrderPLT", my_role="OrderProvider", operations=["submitOrder"])
        )
        assert resolved.partner_link_type_found is True
        assert resolved.my_port_type == "tns:OrderPortType"
        assert [op.name for op in resolved.operations] == ["submitOrder"]
        assert resolved.missing_operations == []
        assert resolved.resolved is True

    def test_missing_operation(self):
        index = _order_index()
        resolved = index.resolve_partner_link(
            _plink("client", "tns:OrderPLT", my_role="OrderProvider", operations=["cancelOrder"])
        )
        assert resolved.missing_operations == ["cancelOrder"]
        assert resolved.resolved is False

    def test_unknown_partner_link_type(self):
        index = _order_index()
        resolved = index.resolve_partner_link(
            _plink("InventoryService", "tns:InventoryPLT", partner_role="InventoryProvider",
                   operations=["checkStock"])
        )
        assert resolved.partner_link_type_found is False
        assert resolved.missing_operations == ["checkStock"]

    def test_resolve_message_variable_flattens_parts(self):
        index = _order_index()
        fields = index.resolve_variable(_variable("orderRequest", "messageType", "tns:OrderRequestMessage"))
        assert [f.name for f in fields] == ["payload/orderId", "payload/itemId", "payload/quantity"]
        assert fields[2].cardinality == "0..1"

    def test_resolve_element_through_named_type(self):
        index = _order_index()
        fields = index.resolve_variable(_variable("orderResponse", "messageType", "tns:OrderResponseMessage"))
        assert [f.name for f in fields] == ["payload/status", "payload/lines"]
        assert fields[1].cardinality == "1..*"

    def test_simple_typed_part_is_kept(self):
        index = _order_index()
        fields = index.resolve_variable(_variable("fault", "messageType", "tns:InvalidOrderMessage"))
        assert [(f.name, f.type_name) for f in fields] == [("reason", "xsd:string")]

    def test_extension_base_fields_come_first(self):
        index = _order_index(with_xsd=True)
        fields = index.resolve_variable(_variable("stock", "element", "inv:StockLevel"))
        assert [f.name for f in fields] == ["sku", "@version", "available", "warehouse", "supplier"]

    def test_type_known(self):
        index = _order_index(with_xsd=True)
        assert index.is_variable_type_known(_variable("a", "messageType", "tns:OrderRequestMessage"))
        assert index.is_variable_type_known(_variable("b", "type", "xsd:int"))
        assert index.is_variable_type_known(_variable("c", "type", "inv:StockStatus"))
        assert not index.is_variable_type_known(_variable("d", "messageType", "tns:StockRequestMessage"))
        assert not index.is_variable_type_known(_variable("e", "untyped", ""))

    def test_properties_and_services_merged(self):
        index = _order_index()
        assert index.properties == {"orderId": "xsd:string"}
        assert index.services[0].address == "http://localhost:8080/order"

    def test_process_partner_links_against_wsdl(self):
        doc = BpelParser().parse_source(ORDER_BPEL, "order.bpel").document
        index = _order_index()
        client, inventory = doc.partner_links
        assert index.resolve_partner_link(client).resolved is True
        assert index.resolve_partner_link(inventory).resolved is False
