"""Extraction service: BPEL (+ WSDL/XSD) in, PRD markdown and JSON out.

One service instance is shared by the CLI and the HTTP API. It holds the
parsers and the gap detector configured from ``ExtractionSettings`` and
runs the same pipeline for in-memory sources and for project directories:

    parse -> resolve contracts -> detect gaps -> render -> run gates
"""

import json
import logging
from pathlib import Path
from typing import Dict, List, Optional, Tuple

from ..bpel_parser import BpelParser, ContractIndex, WsdlParser, XsdParser
from ..bpel_parser.models import ParseError, ParseResult, WsdlResult, XsdResult
from ..bpel_parser.utils import read_source, relative_path
from ..config import ExtractionSettings, get_settings
from ..prd import RenderOptions, build_summary, render_markdown, run_gates
from .gaps import GapDetector
from .models import ExtractionResult, GateResult


class ExtractionService:
    """Runs the extraction pipeline for single sources or whole projects."""

    def __init__(self, settings: Optional[ExtractionSettings] = None):
        self.settings = settings or get_settings()
        self._logger = logging.getLogger(self.__class__.__name__)

        self.bpel_parser = BpelParser(self.settings.task_service_suffixes)
        self.xsd_parser = XsdParser()
        self.wsdl_parser = WsdlParser(self.xsd_parser)
        self.gap_detector = GapDetector(
            vendor_prefixes=self.settings.vendor_xpath_prefixes,
            disabled_rules=self.settings.disabled_rules,
        )

    @property
    def logger(self) -> logging.Logger:
        return self._logger

    # ------------------------------------------------------------------
    # Contracts
    # ------------------------------------------------------------------

    def build_contracts(
        self,
        wsdl_sources: Optional[Dict[str, str]] = None,
        xsd_sources: Optional[Dict[str, str]] = None,
    ) -> Tuple[ContractIndex, List[ParseError]]:
        """Parse in-memory WSDL/XSD texts keyed by file name."""
        wsdls = [self.wsdl_parser.parse_source(text, name) for name, text in sorted((wsdl_sources or {}).items())]
        xsds = [self.xsd_parser.parse_source(text, name) for name, text in sorted((xsd_sources or {}).items())]
        return self._index(wsdls, xsds)

    def load_contracts(self, project_dir: Path) -> Tuple[ContractIndex, List[ParseError]]:
        """Parse every WSDL/XSD the configured globs find under ``project_dir``."""
        wsdls = [
            self.wsdl_parser.parse_file(str(path), str(project_dir))
            for path in self._discover(project_dir, self.settings.wsdl_globs)
        ]
        xsds = [
            self.xsd_parser.parse_file(str(path), str(project_dir))
            for path in self._discover(project_dir, self.settings.xsd_globs)
        ]
        return self._index(wsdls, xsds)

    def _index(
        self, wsdls: List[WsdlResult], xsds: List[XsdResult]
    ) -> Tuple[ContractIndex, List[ParseError]]:
        # A broken contract file weakens resolution but never invalidates the process
        errors = [
            ParseError(e.file_path, e.line, e.message, "warning")
            for result in (*wsdls, *xsds)
            for e in result.errors
        ]
        usable_wsdls = [w for w in wsdls if not any(e.severity == "error" for e in w.errors)]
        usable_xsds = [x for x in xsds if not any(e.severity == "error" for e in x.errors)]
        self.logger.info(
            "Contract index: %d WSDL, %d XSD (%d problems)",
            len(usable_wsdls), len(usable_xsds), len(errors),
        )
        return ContractIndex(usable_wsdls, usable_xsds), errors

    # ------------------------------------------------------------------
    # Single source
    # ------------------------------------------------------------------

    def extract_source(
        self,
        bpel_text: str,
        file_name: str = "process.bpel",
        wsdl_sources: Optional[Dict[str, str]] = None,
        xsd_sources: Optional[Dict[str, str]] = None,
        include_diagram: Optional[bool] = None,
    ) -> ExtractionResult:
        """Extract the PRD for one BPEL text.

        Raises:
            ValueError: If the text is not a well-formed BPEL process
        """
        contracts, contract_errors = self.build_contracts(wsdl_sources, xsd_sources)
        parse_result = self.bpel_parser.parse_source(bpel_text, file_name)
        return self._extract(parse_result, contracts, contract_errors, include_diagram)

    def verify(
        self,
        bpel_text: str,
        markdown: str,
        file_name: str = "process.bpel",
    ) -> List[GateResult]:
        """Run completeness gates on a PRD produced elsewhere.

        Gap IDs are not compared, since another producer numbers its own
        gaps; only the gap table shape is checked.

        Raises:
            ValueError: If the BPEL text is not a well-formed process
        """
        parse_result = self.bpel_parser.parse_source(bpel_text, file_name)
        document = self._require_document(parse_result)
        return run_gates(document, markdown)

    def _require_document(self, parse_result: ParseResult):
        if parse_result.document is None:
            messages = "; ".join(e.message for e in parse_result.errors) or "not a BPEL process"
            raise ValueError(f"{parse_result.file_path}: {messages}")
        return parse_result.document

    def _extract(
        self,
        parse_result: ParseResult,
        contracts: ContractIndex,
        contract_errors: List[ParseError],
        include_diagram: Optional[bool] = None,
    ) -> ExtractionResult:
        document = self._require_document(parse_result)
        errors = list(parse_result.errors) + list(contract_errors)

        gaps = self.gap_detector.detect(document, contracts, errors)
        options = RenderOptions(
            include_diagram=self.settings.include_diagram if include_diagram is None else include_diagram,
            include_checklist=self.settings.include_checklist,
        )
        markdown = render_markdown(document, gaps, contracts, options)
        summary = build_summary(document, gaps, contracts)
        gates = run_gates(document, markdown, gaps)

        failed = [g.gate_name for g in gates if not g.passed]
        self.logger.info(
            "Extracted %s: %d gaps, %d/%d gates passed%s",
            document.name, len(gaps), len(gates) - len(failed), len(gates),
            f" (failed: {', '.join(failed)})" if failed else "",
        )
        return ExtractionResult(
            file_path=parse_result.file_path,
            document=document,
            gaps=gaps,
            markdown=markdown,
            summary=summary,
            gates=gates,
            errors=errors,
        )

    # ------------------------------------------------------------------
    # Project directories
    # ------------------------------------------------------------------

    @staticmethod
    def _discover(project_dir: Path, globs: List[str]) -> List[Path]:
        found = set()
        for pattern in globs:
            found.update(p for p in project_dir.glob(pattern) if p.is_file())
        return sorted(found)

    def discover_processes(self, project_dir: Path) -> List[Path]:
        return self._discover(project_dir, self.settings.bpel_globs)

    @staticmethod
    def _output_stem(used_names: Dict[str, int], name: str) -> str:
        """File stem for a process; repeated names get _2, _3, ... in discovery order."""
        if name in used_names:
            used_names[name] += 1
            return f"{name}_{used_names[name]}"
        used_names[name] = 1
        return name

    def extract_project(
        self,
        project_dir: str,
        output_dir: Optional[str] = None,
        include_diagram: Optional[bool] = None,
    ) -> List[ExtractionResult]:
        """Extract every BPEL process in a project and write PRDs and summaries.

        Files that fail to read or parse are reported in the returned list
        with an ``error`` ParseError and do not stop the run.

        Raises:
            ValueError: If ``project_dir`` is not a directory
            RuntimeError: If an output file cannot be written
        """
        project = Path(project_dir)
        if not project.is_dir():
            raise ValueError(f"Project directory not found: {project_dir}")
        out_root = Path(output_dir) if output_dir else project
        prd_dir = out_root / self.settings.prd_dir
        summary_dir = out_root / self.settings.summary_dir

        bpel_files = self.discover_processes(project)
        if not bpel_files:
            self.logger.warning("No BPEL files matched %s under %s", self.settings.bpel_globs, project)
            return []

        contracts, contract_errors = self.load_contracts(project)
        self.logger.info("Extracting %d BPEL processes from %s", len(bpel_files), project)

        results: List[ExtractionResult] = []
        used_names: Dict[str, int] = {}
        for path in bpel_files:
            rel_path = relative_path(str(path), str(project))
            try:
                source_text = read_source(str(path))
                parse_result = self.bpel_parser.parse_source(source_text, rel_path)
                result = self._extract(parse_result, contracts, contract_errors, include_diagram)
            except (OSError, ValueError) as e:
                self.logger.error("Extraction failed for %s: %s", rel_path, e)
                results.append(ExtractionResult(
                    file_path=rel_path,
                    errors=[ParseError(rel_path, 0, str(e), "error")],
                ))
                continue

            stem = self._output_stem(used_names, result.document.name or path.stem)

            result.prd_path = str(self._write(prd_dir / f"{stem}.md", result.markdown))
            result.summary_path = str(self._write(
                summary_dir / f"{stem}.json",
                json.dumps(result.summary, indent=self.settings.json_indent, ensure_ascii=False) + "\n",
            ))
            results.append(result)

        failed = sum(1 for r in results if not r.ok)
        self.logger.info(
            "Project extraction complete: %d processes, %d failed", len(results), failed
        )
        return results

    def verify_project(
        self, project_dir: str, prd_dir: Optional[str] = None
    ) -> Dict[str, List[GateResult]]:
        """Gate every ``prds/<process>.md`` against its BPEL source.

        A process without a PRD file gets a single failed ``prd_present`` gate.

        Raises:
            ValueError: If ``project_dir`` is not a directory
        """
        project = Path(project_dir)
        if not project.is_dir():
            raise ValueError(f"Project directory not found: {project_dir}")
        prds = Path(prd_dir) if prd_dir else project / self.settings.prd_dir

        report: Dict[str, List[GateResult]] = {}
        used_names: Dict[str, int] = {}
        for path in self.discover_processes(project):
            rel_path = relative_path(str(path), str(project))
            try:
                parse_result = self.bpel_parser.parse_source(read_source(str(path)), rel_path)
                document = self._require_document(parse_result)
            except (OSError, ValueError) as e:
                self.logger.error("Cannot verify %s: %s", rel_path, e)
                report[rel_path] = [GateResult("parse", False, {"error": str(e)})]
                continue

            prd_file = prds / f"{self._output_stem(used_names, document.name or path.stem)}.md"
            if not prd_file.is_file():
                report[rel_path] = [GateResult("prd_present", False, {"expected": str(prd_file)})]
                continue
            report[rel_path] = run_gates(document, prd_file.read_text(encoding="utf-8"))
        return report

    def _write(self, path: Path, content: str) -> Path:
        try:
            path.parent.mkdir(parents=True, exist_ok=True)
            path.write_text(content, encoding="utf-8")
        except OSError as e:
            raise RuntimeError(f"Cannot write {path}: {e}") from e
        self.logger.debug("Wrote %s", path)
        return path
