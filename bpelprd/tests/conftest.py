"""Shared BPEL / WSDL / XSD samples for the bpelprd tests."""

import pytest

from bpelprd.core.config import ExtractionSettings


# =========================================================================
# Sample sources
# =========================================================================

# Line numbers asserted in the tests are 1-based within this string.
ORDER_BPEL = """<?xml version="1.0" encoding="UTF-8"?>
<process name="OrderProcess"
         targetNamespace="http://example.com/order"
         xmlns="http://docs.oasis-open.org/wsbpel/2.0/process/executable"
         xmlns:tns="http://example.com/order"
         xmlns:ord="http://example.com/order/schema"
         xmlns:bpelx="http://schemas.oracle.com/bpel/extension"
         xmlns:ora="http://schemas.oracle.com/xpath/extension"
         xmlns:xsd="http://www.w3.org/2001/XMLSchema">
  <documentation>Accepts customer orders and reserves stock.</documentation>
  <import namespace="http://example.com/order" location="OrderService.wsdl"
          importType="http://schemas.xmlsoap.org/wsdl/"/>
  <partnerLinks>
    <partnerLink name="client" partnerLinkType="tns:OrderPLT" myRole="OrderProvider"/>
    <partnerLink name="InventoryService" partnerLinkType="tns:InventoryPLT"
                 partnerRole="InventoryProvider"/>
  </partnerLinks>
  <variables>
    <variable name="orderRequest" messageType="tns:OrderRequestMessage"/>
    <variable name="orderResponse" messageType="tns:OrderResponseMessage"/>
    <variable name="stockRequest" messageType="tns:StockRequestMessage"/>
    <variable name="stockResponse" messageType="tns:StockResponseMessage"/>
    <variable name="retryCount" type="xsd:int"/>
    <variable name="scratch"/>
  </variables>
  <correlationSets>
    <correlationSet name="OrderCS" properties="tns:orderId"/>
  </correlationSets>
  <sequence name="main">
    <receive name="ReceiveOrder" partnerLink="client" operation="submitOrder"
             variable="orderRequest" createInstance="yes">
      <correlations>
        <correlation set="OrderCS" initiate="yes"/>
      </correlations>
    </receive>
    <assign name="PrepareStock">
      <copy>
        <from>$orderRequest.payload/ord:itemId</from>
        <to>$stockRequest.payload/ord:itemId</to>
      </copy>
      <copy>
        <from>ora:getCompositeInstanceId()</from>
        <to variable="stockRequest" part="payload">
          <query>ord:trackingId</query>
        </to>
      </copy>
    </assign>
    <invoke name="CheckStock" partnerLink="InventoryService" operation="checkStock"
            inputVariable="stockRequest" outputVariable="stockResponse"/>
    <if name="StockDecision">
      <condition>$stockResponse.payload/ord:available &gt; 0</condition>
      <scope name="ReserveScope">
        <faultHandlers>
          <catchAll>
            <empty name="IgnoreReserveFailure"/>
          </catchAll>
        </faultHandlers>
        <sequence>
          <invoke name="ReserveStock" partnerLink="InventoryService" operation="reserveStock"
                  inputVariable="stockRequest"/>
          <extensionActivity>
            <bpelx:exec name="LogReservation" language="java" version="1.5"><![CDATA[
System.out.println("reserved <" + getVariableData("orderRequest") + ">");
]]></bpelx:exec>
          </extensionActivity>
        </sequence>
      </scope>
      <elseif>
        <condition>$stockResponse.payload/ord:backorder = 'true'</condition>
        <wait name="BackorderDelay">
          <for>'PT1H'</for>
        </wait>
      </elseif>
    </if>
    <while name="RetryLoop">
      <condition>$retryCount &lt; 3</condition>
      <assign name="IncrementRetry">
        <copy>
          <from>$retryCount + 1</from>
          <to variable="retryCount"/>
        </copy>
      </assign>
    </while>
    <reply name="ReplyOrder" partnerLink="client" operation="submitOrder"
           variable="orderResponse"/>
  </sequence>
</process>
"""

ORDER_WSDL = """<?xml version="1.0" encoding="UTF-8"?>
<definitions name="OrderService"
             targetNamespace="http://example.com/order"
             xmlns="http://schemas.xmlsoap.org/wsdl/"
             xmlns:tns="http://example.com/order"
             xmlns:ord="http://example.com/order/schema"
             xmlns:plnk="http://docs.oasis-open.org/wsbpel/2.0/plnktype"
             xmlns:vprop="http://docs.oasis-open.org/wsbpel/2.0/varprop"
             xmlns:soap="http://schemas.xmlsoap.org/wsdl/soap/"
             xmlns:xsd="http://www.w3.org/2001/XMLSchema">
  <types>
    <xsd:schema targetNamespace="http://example.com/order/schema">
      <xsd:element name="OrderRequest">
        <xsd:complexType>
          <xsd:sequence>
            <xsd:element name="orderId" type="xsd:string"/>
            <xsd:element name="itemId" type="xsd:string"/>
            <xsd:element name="quantity" type="xsd:int" minOccurs="0"/>
          </xsd:sequence>
        </xsd:complexType>
      </xsd:element>
      <xsd:element name="OrderResponse" type="ord:OrderResponseType"/>
      <xsd:complexType name="OrderResponseType">
        <xsd:sequence>
          <xsd:element name="status" type="xsd:string"/>
          <xsd:element name="lines" type="xsd:string" maxOccurs="unbounded"/>
        </xsd:sequence>
      </xsd:complexType>
    </xsd:schema>
  </types>
  <message name="OrderRequestMessage">
    <part name="payload" element="ord:OrderRequest"/>
  </message>
  <message name="OrderResponseMessage">
    <part name="payload" element="ord:OrderResponse"/>
  </message>
  <message name="InvalidOrderMessage">
    <part name="reason" type="xsd:string"/>
  </message>
  <portType name="OrderPortType">
    <operation name="submitOrder">
      <input message="tns:OrderRequestMessage"/>
      <output message="tns:OrderResponseMessage"/>
      <fault name="InvalidOrder" message="tns:InvalidOrderMessage"/>
    </operation>
  </portType>
  <plnk:partnerLinkType name="OrderPLT">
    <plnk:role name="OrderProvider" portType="tns:OrderPortType"/>
  </plnk:partnerLinkType>
  <vprop:property name="orderId" type="xsd:string"/>
  <vprop:propertyAlias propertyName="tns:orderId" messageType="tns:OrderRequestMessage" part="payload">
    <vprop:query>ord:orderId</vprop:query>
  </vprop:propertyAlias>
  <service name="OrderService">
    <port name="OrderPort" binding="tns:OrderBinding">
      <soap:address location="http://localhost:8080/order"/>
    </port>
  </service>
</definitions>
"""

INVENTORY_XSD = """<?xml version="1.0"?>
<xsd:schema xmlns:xsd="http://www.w3.org/2001/XMLSchema"
            xmlns:inv="http://example.com/inventory"
            targetNamespace="http://example.com/inventory">
  <xsd:complexType name="BaseItem">
    <xsd:sequence>
      <xsd:element name="sku" type="xsd:string"/>
    </xsd:sequence>
    <xsd:attribute name="version" type="xsd:int" use="required"/>
  </xsd:complexType>
  <xsd:complexType name="StockItem">
    <xsd:complexContent>
      <xsd:extension base="inv:BaseItem">
        <xsd:sequence>
          <xsd:element name="available" type="xsd:int"/>
          <xsd:choice>
            <xsd:element name="warehouse" type="xsd:string"/>
            <xsd:element name="supplier" type="xsd:string"/>
          </xsd:choice>
        </xsd:sequence>
      </xsd:extension>
    </xsd:complexContent>
  </xsd:complexType>
  <xsd:simpleType name="StockStatus">
    <xsd:restriction base="xsd:string">
      <xsd:enumeration value="IN_STOCK"/>
      <xsd:enumeration value="BACKORDER"/>
    </xsd:restriction>
  </xsd:simpleType>
  <xsd:element name="StockLevel" type="inv:StockItem"/>
</xsd:schema>
"""

LEGACY_BPEL = """<process name="LegacyApproval"
         targetNamespace="http://example.com/legacy"
         xmlns="http://schemas.xmlsoap.org/ws/2003/03/business-process/"
         xmlns:bpws="http://schemas.xmlsoap.org/ws/2003/03/business-process/"
         xmlns:bpelx="http://schemas.oracle.com/bpel/extension">
  <partnerLinks>
    <partnerLink name="client" partnerLinkType="client:LegacyApproval"
                 myRole="LegacyApprovalProvider" partnerRole="LegacyApprovalRequester"/>
    <partnerLink name="ApprovalTaskService" partnerLinkType="taskService:TaskService"
                 partnerRole="TaskService" myRole="TaskServiceCallbackListener"/>
  </partnerLinks>
  <variables>
    <variable name="inputVariable" messageType="client:RequestMessage"/>
    <variable name="status" type="xsd:string"/>
    <variable name="taskInput" messageType="taskService:initiateTaskMessage"/>
  </variables>
  <sequence name="main">
    <receive name="receiveInput" partnerLink="client" operation="initiate"
             variable="inputVariable" createInstance="yes"/>
    <assign name="InitStatus">
      <copy>
        <from>PENDING</from>
        <to variable="status"/>
      </copy>
    </assign>
    <switch name="RouteRequest">
      <case condition="bpws:getVariableData('inputVariable','payload','/client:amount') &gt; 1000">
        <invoke name="InitiateApproval" partnerLink="ApprovalTaskService"
                operation="initiateTask" inputVariable="taskInput"/>
      </case>
      <otherwise>
        <bpelx:exec name="AutoApprove" language="java" version="1.4"><![CDATA[setVariableData("status", "APPROVED");]]></bpelx:exec>
      </otherwise>
    </switch>
    <pick name="AwaitDecision">
      <onMessage partnerLink="ApprovalTaskService" operation="onTaskCompleted" variable="taskInput">
        <empty/>
      </onMessage>
      <onAlarm for="'P3D'">
        <terminate name="Expire"/>
      </onAlarm>
    </pick>
    <invoke name="callbackClient" partnerLink="client" operation="onResult"
            inputVariable="inputVariable"/>
  </sequence>
</process>
"""

# Invoke whose message is assembled from and split into several variables
MESSAGE_PARTS = """<process name="Parts"
         xmlns="http://docs.oasis-open.org/wsbpel/2.0/process/executable">
  <variables>
    <variable name="header" type="xsd:string"/>
    <variable name="body" type="xsd:string"/>
    <variable name="status" type="xsd:string"/>
    <variable name="detail" type="xsd:string"/>
  </variables>
  <invoke name="Send" partnerLink="Partner" operation="send">
    <toParts>
      <toPart part="header" fromVariable="header"/>
      <toPart part="body" fromVariable="body"/>
    </toParts>
    <fromParts>
      <fromPart part="status" toVariable="status"/>
      <fromPart part="detail" toVariable="detail"/>
    </fromParts>
  </invoke>
</process>
"""


# =========================================================================
# Fixtures
# =========================================================================

@pytest.fixture
def order_bpel() -> str:
    return ORDER_BPEL


@pytest.fixture
def order_wsdl() -> str:
    return ORDER_WSDL


@pytest.fixture
def inventory_xsd() -> str:
    return INVENTORY_XSD


@pytest.fixture
def legacy_bpel() -> str:
    return LEGACY_BPEL


@pytest.fixture
def settings() -> ExtractionSettings:
    """Built-in defaults, independent of config/bpelprd.yaml."""
    return ExtractionSettings()


@pytest.fixture
def project_dir(tmp_path):
    """A project laid out the way the default globs expect."""
    (tmp_path / "bpel").mkdir()
    (tmp_path / "wsdl").mkdir()
    (tmp_path / "xsd").mkdir()
    (tmp_path / "bpel" / "OrderProcess.bpel").write_text(ORDER_BPEL, encoding="utf-8")
    (tmp_path / "wsdl" / "OrderService.wsdl").write_text(ORDER_WSDL, encoding="utf-8")
    (tmp_path / "xsd" / "Inventory.xsd").write_text(INVENTORY_XSD, encoding="utf-8")
    return tmp_path
