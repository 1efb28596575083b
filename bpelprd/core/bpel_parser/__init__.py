"""bpelprd parsers: ElementTree based BPEL, WSDL and XSD parsing.

Public API:
    parse_file(path, project_root) → ParseResult
    parse_source(source, file_path) → ParseResult
    detect_artifact_type(file_path) → "bpel" | "wsdl" | "xsd" | None
"""

from typing import Optional, Sequence

from .bpel_parser import BpelParser
from .contracts import ContractIndex, ResolvedPartnerLink
from .models import ParseError, ParseResult, ProcessDocument, WsdlResult, XsdResult
from .utils import detect_artifact_type
from .wsdl_parser import WsdlParser
from .xsd_parser import XsdParser

__all__ = [
    "parse_file",
    "parse_source",
    "detect_artifact_type",
    "BpelParser",
    "WsdlParser",
    "XsdParser",
    "ContractIndex",
    "ResolvedPartnerLink",
    "ParseError",
    "ParseResult",
    "ProcessDocument",
    "WsdlResult",
    "XsdResult",
]


def parse_file(
    file_path: str,
    project_root: str = "",
    task_service_suffixes: Optional[Sequence[str]] = None,
) -> ParseResult:
    """Parse a .bpel file into a ProcessDocument.

    Args:
        file_path: Absolute path to the BPEL file
        project_root: Project root for computing relative paths
        task_service_suffixes: Partner link suffixes that mark a human task service

    Returns:
        ParseResult; ``document`` is None when the file is not a valid process
    """
    return BpelParser(task_service_suffixes).parse_file(file_path, project_root)


def parse_source(
    source_text: str,
    file_path: str,
    task_service_suffixes: Optional[Sequence[str]] = None,
) -> ParseResult:
    """Parse BPEL source text into a ProcessDocument.

    Args:
        source_text: BPEL XML as string
        file_path: Relative file path (for metadata)
        task_service_suffixes: Partner link suffixes that mark a human task service

    Returns:
        ParseResult; ``document`` is None when the text is not a valid process
    """
    return BpelParser(task_service_suffixes).parse_source(source_text, file_path)
