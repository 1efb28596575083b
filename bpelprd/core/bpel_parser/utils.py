"""Shared ElementTree helpers for the BPEL, WSDL and XSD parsers."""

import io
import logging
import re
import xml.etree.ElementTree as ET
from pathlib import Path
from typing import Dict, List, Optional

logger = logging.getLogger(__name__)

# File extension -> artifact type
EXTENSION_MAP = {
    ".bpel": "bpel",
    ".wsdl": "wsdl",
    ".xsd": "xsd",
}

# Start tags, excluding end tags, comments, PIs and declarations
_START_TAG_RE = re.compile(r"<(?![/!?])(?:[A-Za-z_][\w.\-]*:)?([A-Za-z_][\w.\-]*)")
_MASK_RE = re.compile(r"<!--.*?-->|<!\[CDATA\[.*?\]\]>|<\?.*?\?>|<!DOCTYPE[^>]*>", re.DOTALL)


def detect_artifact_type(file_path: str) -> Optional[str]:
    """Return "bpel", "wsdl", "xsd" or None based on file extension."""
    return EXTENSION_MAP.get(Path(file_path).suffix.lower())


def strip_namespace(tag: str) -> str:
    """Remove XML namespace from a tag.

    '{http://docs.oasis-open.org/wsbpel/2.0/process/executable}invoke' -> 'invoke'
    """
    if tag.startswith("{"):
        return tag.split("}", 1)[1]
    return tag


def namespace_of(tag: str) -> str:
    """Return the namespace URI of a tag, or empty string."""
    if tag.startswith("{"):
        return tag[1:].split("}", 1)[0]
    return ""


def local_name(qname: str) -> str:
    """'ns1:OrderPLT' -> 'OrderPLT'."""
    return qname.split(":", 1)[1] if ":" in qname else qname


def local_find(element: ET.Element, name: str) -> Optional[ET.Element]:
    """Find a child element by local name, ignoring namespaces."""
    for child in element:
        if isinstance(child.tag, str) and strip_namespace(child.tag) == name:
            return child
    return None


def local_findall(element: ET.Element, name: str) -> List[ET.Element]:
    """Find all child elements by local name, ignoring namespaces."""
    return [
        child for child in element
        if isinstance(child.tag, str) and strip_namespace(child.tag) == name
    ]


def local_findall_recursive(element: ET.Element, name: str) -> List[ET.Element]:
    """Find all descendant elements by local name, ignoring namespaces."""
    return [
        node for node in element.iter()
        if isinstance(node.tag, str) and strip_namespace(node.tag) == name
    ]


def element_children(element: ET.Element) -> List[ET.Element]:
    """Child elements, skipping comments and processing instructions."""
    return [child for child in element if isinstance(child.tag, str)]


def get_text(element: Optional[ET.Element]) -> str:
    """Text content of an element with surrounding whitespace removed.

    Inner whitespace is kept as written so XPath stays verbatim.
    """
    if element is None:
        return ""
    return "".join(element.itertext()).strip()


def child_text(element: ET.Element, name: str) -> str:
    """Text of a named child element, or empty string."""
    return get_text(local_find(element, name))


def element_source(element: ET.Element) -> str:
    """Serialize an element back to its XML string representation."""
    try:
        return ET.tostring(element, encoding="unicode", short_empty_elements=True)
    except (TypeError, ValueError):
        return ""


def collect_namespaces(source_text: str) -> Dict[str, str]:
    """Collect prefix -> URI declarations from the whole document.

    ElementTree drops prefixes, so QName attribute values are resolved
    against this map. The first declaration of a prefix wins.
    """
    namespaces: Dict[str, str] = {}
    try:
        for _event, (prefix, uri) in ET.iterparse(
            io.StringIO(source_text), events=("start-ns",)
        ):
            namespaces.setdefault(prefix or "", uri)
    except ET.ParseError as e:
        logger.debug("Namespace scan stopped early: %s", e)
    return namespaces


class LineIndex:
    """Maps parsed elements to their 1-based source line.

    ElementTree keeps no positions. Start tags in the source appear in the
    same order as ``root.iter()``, so a single scan of the text (with
    comments, CDATA and PIs blanked out, newlines preserved) aligns each
    element with its start tag.
    """

    def __init__(self, root: ET.Element, source_text: str):
        self._lines: Dict[int, int] = {}
        masked = _MASK_RE.sub(
            lambda m: re.sub(r"[^\n]", " ", m.group(0)), source_text
        )
        tags = _START_TAG_RE.finditer(masked)
        pos = 0
        line = 1
        for element in root.iter():
            if not isinstance(element.tag, str):
                continue
            match = next(tags, None)
            if match is None:
                break
            if match.group(1) != strip_namespace(element.tag):
                logger.debug(
                    "Line index out of step at <%s> vs <%s>; remaining lines unknown",
                    strip_namespace(element.tag), match.group(1),
                )
                break
            line += masked.count("\n", pos, match.start())
            pos = match.start()
            self._lines[id(element)] = line
        # Elements must outlive the index for id() keys to stay valid
        self._root = root

    def line_of(self, element: Optional[ET.Element]) -> int:
        """Line of the element's start tag, or 0 if unknown."""
        if element is None:
            return 0
        return self._lines.get(id(element), 0)


def count_lines(source_text: str) -> int:
    return source_text.count("\n") + (
        1 if source_text and not source_text.endswith("\n") else 0
    )


def read_source(file_path: str) -> str:
    """Read an XML file as text; raises OSError."""
    with open(file_path, "r", encoding="utf-8-sig", errors="replace") as f:
        return f.read()


def relative_path(file_path: str, project_root: str) -> str:
    if project_root:
        try:
            return Path(file_path).resolve().relative_to(
                Path(project_root).resolve()
            ).as_posix()
        except ValueError:
            pass
    return file_path
