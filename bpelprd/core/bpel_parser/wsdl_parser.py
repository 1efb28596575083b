"""WSDL 1.1 parser.

Extracts the contract information a BPEL process depends on:
- messages and their parts
- portTypes and operations (input / output / faults)
- partnerLinkTypes and roles (BPEL 2.0 and 1.1 plnk namespaces)
- correlation properties and propertyAliases
- service ports and their soap/http addresses
- inline <types> schemas (delegated to XsdParser)
"""

import logging
import xml.etree.ElementTree as ET
from typing import Optional

from .models import (
    ImportDecl,
    ParseError,
    PartnerLinkType,
    PortType,
    PropertyAlias,
    ServiceEndpoint,
    WsdlMessage,
    WsdlOperation,
    WsdlResult,
)
from .utils import (
    LineIndex,
    child_text,
    local_find,
    local_findall,
    local_findall_recursive,
    read_source,
    relative_path,
    strip_namespace,
)
from .xsd_parser import XsdParser

logger = logging.getLogger(__name__)


class WsdlParser:
    """Parse WSDL definitions into WsdlResult objects."""

    def __init__(self, xsd_parser: Optional[XsdParser] = None):
        self._xsd_parser = xsd_parser or XsdParser()

    def get_language(self) -> str:
        return "wsdl"

    def parse_file(self, file_path: str, project_root: str = "") -> WsdlResult:
        rel_path = relative_path(file_path, project_root)
        try:
            source_text = read_source(file_path)
        except OSError as e:
            logger.error("Cannot read %s: %s", file_path, e)
            return WsdlResult(
                file_path=rel_path,
                errors=[ParseError(rel_path, 0, f"Cannot read file: {e}", "error")],
            )
        return self.parse_source(source_text, rel_path)

    def parse_source(self, source_text: str, file_path: str) -> WsdlResult:
        try:
            root = ET.fromstring(source_text)
        except ET.ParseError as e:
            logger.warning("Malformed XML in %s: %s", file_path, e)
            return WsdlResult(
                file_path=file_path,
                errors=[ParseError(file_path, 0, f"XML parse error: {e}", "error")],
            )

        if strip_namespace(root.tag) != "definitions":
            return WsdlResult(
                file_path=file_path,
                errors=[ParseError(
                    file_path, 1,
                    f"Root element <{strip_namespace(root.tag)}> is not WSDL <definitions>",
                    "error",
                )],
            )

        lines = LineIndex(root, source_text)
        result = WsdlResult(
            file_path=file_path,
            target_namespace=root.get("targetNamespace", ""),
        )

        for imp in local_findall(root, "import"):
            result.imports.append(ImportDecl(
                namespace=imp.get("namespace", ""),
                location=imp.get("location", ""),
                import_type="wsdl",
                line=lines.line_of(imp),
            ))

        types = local_find(root, "types")
        if types is not None:
            for schema in local_findall(types, "schema"):
                result.schemas.append(self._xsd_parser.parse_schema(schema, file_path, lines))

        for msg in local_findall(root, "message"):
            result.messages.append(WsdlMessage(
                name=msg.get("name", ""),
                parts=[
                    {
                        "name": part.get("name", ""),
                        "element": part.get("element", ""),
                        "type": part.get("type", ""),
                    }
                    for part in local_findall(msg, "part")
                ],
                line=lines.line_of(msg),
            ))

        for port_type in local_findall(root, "portType"):
            pt = PortType(name=port_type.get("name", ""), line=lines.line_of(port_type))
            for op in local_findall(port_type, "operation"):
                input_elem = local_find(op, "input")
                output_elem = local_find(op, "output")
                pt.operations.append(WsdlOperation(
                    name=op.get("name", ""),
                    input_message=input_elem.get("message", "") if input_elem is not None else "",
                    output_message=output_elem.get("message", "") if output_elem is not None else "",
                    faults=[
                        {"name": f.get("name", ""), "message": f.get("message", "")}
                        for f in local_findall(op, "fault")
                    ],
                ))
            result.port_types.append(pt)

        # partnerLinkType may be a direct child or wrapped in extensibility elements
        for plt in local_findall_recursive(root, "partnerLinkType"):
            result.partner_link_types.append(PartnerLinkType(
                name=plt.get("name", ""),
                roles={
                    role.get("name", ""): self._role_port_type(role)
                    for role in local_findall(plt, "role")
                },
                line=lines.line_of(plt),
            ))

        for prop in local_findall(root, "property"):
            result.properties[prop.get("name", "")] = prop.get("type", "") or prop.get("element", "")

        for alias in local_findall(root, "propertyAlias"):
            query = alias.get("query", "") or child_text(alias, "query")
            result.property_aliases.append(PropertyAlias(
                property_name=alias.get("propertyName", ""),
                message_type=alias.get("messageType", ""),
                part=alias.get("part", ""),
                element=alias.get("element", ""),
                query=query,
            ))

        for service in local_findall(root, "service"):
            for port in local_findall(service, "port"):
                address = ""
                for child in port:
                    if isinstance(child.tag, str) and strip_namespace(child.tag) == "address":
                        address = child.get("location", "")
                result.services.append(ServiceEndpoint(
                    service=service.get("name", ""),
                    port=port.get("name", ""),
                    binding=port.get("binding", ""),
                    address=address,
                ))

        logger.debug(
            "Parsed WSDL %s: %d portTypes, %d partnerLinkTypes, %d messages",
            file_path, len(result.port_types), len(result.partner_link_types),
            len(result.messages),
        )
        return result

    @staticmethod
    def _role_port_type(role: ET.Element) -> str:
        # 2.0: <plnk:role name portType/>; 1.1: <plnk:role name><plnk:portType name/></plnk:role>
        if role.get("portType"):
            return role.get("portType", "")
        nested = local_find(role, "portType")
        if nested is not None:
            return nested.get("name", "")
        return ""
