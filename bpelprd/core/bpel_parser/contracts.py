"""Contract index: resolves BPEL references against supplied WSDL/XSD.

Lookups are by local name. BPEL, WSDL and XSD files routinely bind the
same namespace to different prefixes, and ElementTree does not keep the
prefix bindings of attribute values, so QNames are matched on their local
part and reported as written.
"""

import logging
from dataclasses import dataclass, field
from typing import Dict, Iterable, List, Optional

from .models import (
    PartnerLink,
    PartnerLinkType,
    PortType,
    ServiceEndpoint,
    Variable,
    WsdlMessage,
    WsdlOperation,
    WsdlResult,
    XsdField,
    XsdResult,
    XsdType,
)
from .utils import local_name

logger = logging.getLogger(__name__)


@dataclass
class ResolvedPartnerLink:
    """Contract view of one partner link."""

    name: str
    partner_link_type_found: bool
    my_port_type: str = ""
    partner_port_type: str = ""
    operations: List[WsdlOperation] = field(default_factory=list)
    missing_operations: List[str] = field(default_factory=list)

    @property
    def resolved(self) -> bool:
        return self.partner_link_type_found and not self.missing_operations


class ContractIndex:
    """Merged, name-indexed view over all WSDL and XSD results."""

    def __init__(
        self,
        wsdls: Optional[Iterable[WsdlResult]] = None,
        xsds: Optional[Iterable[XsdResult]] = None,
    ):
        self.wsdls: List[WsdlResult] = list(wsdls or [])
        self.xsds: List[XsdResult] = list(xsds or [])

        self._plts: Dict[str, PartnerLinkType] = {}
        self._port_types: Dict[str, PortType] = {}
        self._messages: Dict[str, WsdlMessage] = {}
        self._elements: Dict[str, XsdType] = {}
        self._types: Dict[str, XsdType] = {}
        self.properties: Dict[str, str] = {}
        self.services: List[ServiceEndpoint] = []

        schemas: List[XsdResult] = list(self.xsds)
        for wsdl in self.wsdls:
            for plt in wsdl.partner_link_types:
                self._plts.setdefault(plt.name, plt)
            for pt in wsdl.port_types:
                self._port_types.setdefault(pt.name, pt)
            for msg in wsdl.messages:
                self._messages.setdefault(msg.name, msg)
            self.properties.update(wsdl.properties)
            self.services.extend(wsdl.services)
            schemas.extend(wsdl.schemas)

        for schema in schemas:
            for elem in schema.elements:
                self._elements.setdefault(elem.name, elem)
            for xtype in schema.types:
                self._types.setdefault(xtype.name, xtype)

    @property
    def has_wsdl(self) -> bool:
        return bool(self.wsdls)

    @property
    def has_schema(self) -> bool:
        return bool(self._elements or self._types)

    def find_partner_link_type(self, qname: str) -> Optional[PartnerLinkType]:
        return self._plts.get(local_name(qname))

    def find_port_type(self, qname: str) -> Optional[PortType]:
        return self._port_types.get(local_name(qname))

    def find_message(self, qname: str) -> Optional[WsdlMessage]:
        return self._messages.get(local_name(qname))

    def find_element(self, qname: str) -> Optional[XsdType]:
        return self._elements.get(local_name(qname))

    def find_type(self, qname: str) -> Optional[XsdType]:
        return self._types.get(local_name(qname))

    # ------------------------------------------------------------------
    # Resolution
    # ------------------------------------------------------------------

    def resolve_partner_link(self, plink: PartnerLink) -> ResolvedPartnerLink:
        """Map a partner link to the portTypes and operations it exposes/uses."""
        plt = self.find_partner_link_type(plink.partner_link_type)
        resolved = ResolvedPartnerLink(name=plink.name, partner_link_type_found=plt is not None)
        if plt is None:
            resolved.missing_operations = list(plink.operations)
            return resolved

        resolved.my_port_type = plt.roles.get(plink.my_role, "") if plink.my_role else ""
        resolved.partner_port_type = (
            plt.roles.get(plink.partner_role, "") if plink.partner_role else ""
        )

        available: Dict[str, WsdlOperation] = {}
        for pt_name in (resolved.my_port_type, resolved.partner_port_type):
            port_type = self.find_port_type(pt_name) if pt_name else None
            if port_type is None:
                continue
            for op in port_type.operations:
                available.setdefault(op.name, op)

        resolved.operations = list(available.values())
        resolved.missing_operations = [
            op for op in plink.operations if op not in available
        ]
        return resolved

    def resolve_variable(self, variable: Variable) -> List[XsdField]:
        """Flatten a variable's declared type into its top-level fields."""
        if variable.kind == "messageType":
            message = self.find_message(variable.type_name)
            if message is None:
                return []
            fields: List[XsdField] = []
            for part in message.parts:
                part_type = part.get("element") or part.get("type", "")
                nested = self._fields_for(part_type, is_element=bool(part.get("element")))
                if nested:
                    fields.extend(
                        XsdField(
                            name=f"{part['name']}/{f.name}",
                            type_name=f.type_name,
                            min_occurs=f.min_occurs,
                            max_occurs=f.max_occurs,
                        )
                        for f in nested
                    )
                else:
                    fields.append(XsdField(name=part["name"], type_name=part_type))
            return fields
        if variable.kind == "element":
            return self._fields_for(variable.type_name, is_element=True)
        if variable.kind == "type":
            return self._fields_for(variable.type_name, is_element=False)
        return []

    def is_variable_type_known(self, variable: Variable) -> bool:
        if variable.kind == "messageType":
            return self.find_message(variable.type_name) is not None
        if variable.kind == "element":
            return self.find_element(variable.type_name) is not None
        if variable.kind == "type":
            # Built-in schema types (xsd:string, ...) are always known
            return (
                self.find_type(variable.type_name) is not None
                or variable.type_name.split(":", 1)[0] in ("xsd", "xs")
            )
        return False

    def _fields_for(self, qname: str, is_element: bool, depth: int = 0) -> List[XsdField]:
        if not qname or depth > 3:
            return []
        if is_element:
            element = self.find_element(qname)
            if element is None:
                return []
            if element.fields:
                return element.fields
            return self._fields_for(element.type_name, is_element=False, depth=depth + 1)
        xtype = self.find_type(qname)
        if xtype is None:
            return []
        fields = list(xtype.fields)
        if xtype.kind == "complexType" and xtype.type_name:
            # Extension: base fields come first
            fields = self._fields_for(xtype.type_name, False, depth + 1) + fields
        return fields
