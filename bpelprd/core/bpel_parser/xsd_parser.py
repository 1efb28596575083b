"""XML Schema parser.

Extracts top-level elements and named complex/simple types so message
payloads referenced by BPEL variables can be documented field by field.
Nested anonymous complex types are flattened one level: their child
elements become the fields of the owning element.
"""

import logging
import xml.etree.ElementTree as ET
from typing import List

from .models import ParseError, XsdField, XsdResult, XsdType
from .utils import (
    LineIndex,
    local_find,
    local_findall,
    read_source,
    relative_path,
    strip_namespace,
)

logger = logging.getLogger(__name__)

# Compositors whose <element> children are fields
_COMPOSITORS = ("sequence", "all", "choice")


class XsdParser:
    """Parse .xsd files (and inline WSDL schemas) into XsdResult objects."""

    def get_language(self) -> str:
        return "xsd"

    def parse_file(self, file_path: str, project_root: str = "") -> XsdResult:
        rel_path = relative_path(file_path, project_root)
        try:
            source_text = read_source(file_path)
        except OSError as e:
            logger.error("Cannot read %s: %s", file_path, e)
            return XsdResult(
                file_path=rel_path,
                errors=[ParseError(rel_path, 0, f"Cannot read file: {e}", "error")],
            )
        return self.parse_source(source_text, rel_path)

    def parse_source(self, source_text: str, file_path: str) -> XsdResult:
        try:
            root = ET.fromstring(source_text)
        except ET.ParseError as e:
            logger.warning("Malformed XML in %s: %s", file_path, e)
            return XsdResult(
                file_path=file_path,
                errors=[ParseError(file_path, 0, f"XML parse error: {e}", "error")],
            )

        if strip_namespace(root.tag) != "schema":
            return XsdResult(
                file_path=file_path,
                errors=[ParseError(
                    file_path, 1,
                    f"Root element <{strip_namespace(root.tag)}> is not an XML <schema>",
                    "error",
                )],
            )

        result = self.parse_schema(root, file_path, LineIndex(root, source_text))
        logger.debug(
            "Parsed schema %s: %d elements, %d types",
            file_path, len(result.elements), len(result.types),
        )
        return result

    def parse_schema(self, schema: ET.Element, file_path: str, lines: LineIndex) -> XsdResult:
        """Extract declarations from an already-parsed <schema> element."""
        result = XsdResult(
            file_path=file_path,
            target_namespace=schema.get("targetNamespace", ""),
        )

        for elem in local_findall(schema, "element"):
            inline = local_find(elem, "complexType")
            result.elements.append(XsdType(
                name=elem.get("name", ""),
                kind="element",
                type_name=elem.get("type", ""),
                fields=self._fields(inline) if inline is not None else [],
                line=lines.line_of(elem),
            ))

        for ctype in local_findall(schema, "complexType"):
            result.types.append(XsdType(
                name=ctype.get("name", ""),
                kind="complexType",
                type_name=self._base_type(ctype),
                fields=self._fields(ctype),
                line=lines.line_of(ctype),
            ))

        for stype in local_findall(schema, "simpleType"):
            restriction = local_find(stype, "restriction")
            result.types.append(XsdType(
                name=stype.get("name", ""),
                kind="simpleType",
                type_name=restriction.get("base", "") if restriction is not None else "",
                enumerations=[
                    e.get("value", "")
                    for e in (local_findall(restriction, "enumeration") if restriction is not None else [])
                ],
                line=lines.line_of(stype),
            ))

        return result

    @staticmethod
    def _base_type(ctype: ET.Element) -> str:
        for content in ("complexContent", "simpleContent"):
            wrapper = local_find(ctype, content)
            if wrapper is None:
                continue
            for derivation in ("extension", "restriction"):
                node = local_find(wrapper, derivation)
                if node is not None:
                    return node.get("base", "")
        return ""

    def _fields(self, ctype: ET.Element) -> List[XsdField]:
        fields: List[XsdField] = []
        containers = [ctype]
        # complexContent/extension and simpleContent wrap the compositor
        for content in ("complexContent", "simpleContent"):
            wrapper = local_find(ctype, content)
            if wrapper is not None:
                containers.extend(
                    c for c in wrapper if strip_namespace(c.tag) in ("extension", "restriction")
                )

        for container in containers:
            for compositor in _COMPOSITORS:
                for group in local_findall(container, compositor):
                    fields.extend(self._compositor_fields(group))
            for attr in local_findall(container, "attribute"):
                fields.append(XsdField(
                    name="@" + (attr.get("name") or attr.get("ref", "")),
                    type_name=attr.get("type", ""),
                    min_occurs="1" if attr.get("use") == "required" else "0",
                    max_occurs="1",
                ))
        return fields

    def _compositor_fields(self, group: ET.Element) -> List[XsdField]:
        fields = []
        for child in group:
            if not isinstance(child.tag, str):
                continue
            local = strip_namespace(child.tag)
            if local == "element":
                type_name = child.get("type", "")
                if not type_name and local_find(child, "complexType") is not None:
                    type_name = "(anonymous complexType)"
                fields.append(XsdField(
                    name=child.get("name") or child.get("ref", ""),
                    type_name=type_name,
                    min_occurs=child.get("minOccurs", "1"),
                    max_occurs=child.get("maxOccurs", "1"),
                ))
            elif local in _COMPOSITORS:
                fields.extend(self._compositor_fields(child))
            elif local == "any":
                fields.append(XsdField(
                    name="(any)",
                    type_name=child.get("namespace", "##any"),
                    min_occurs=child.get("minOccurs", "1"),
                    max_occurs=child.get("maxOccurs", "1"),
                ))
        return fields
