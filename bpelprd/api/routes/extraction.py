"""Extraction API routes.

  POST /extract  -> PRD markdown, JSON summary and gate results for one BPEL text
  POST /verify   -> gate results for a PRD produced elsewhere
  GET  /rules    -> gap rules and whether each is enabled
"""

import logging
from dataclasses import asdict

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel, Field

from ...core.extraction.gaps import list_rules
from ..deps import enforce_body_limit, get_extraction_service

logger = logging.getLogger(__name__)

router = APIRouter(tags=["extraction"])


class ExtractRequest(BaseModel):
    file_name: str = "process.bpel"
    bpel: str
    wsdl: dict[str, str] = Field(default_factory=dict)  # {file name: WSDL text}
    xsd: dict[str, str] = Field(default_factory=dict)
    include_diagram: bool | None = None


class VerifyRequest(BaseModel):
    # Gates read only the process and the markdown; extra fields are ignored
    file_name: str = "process.bpel"
    bpel: str
    markdown: str


@router.post("/extract", dependencies=[Depends(enforce_body_limit)])
async def extract(
    body: ExtractRequest,
    service=Depends(get_extraction_service),
):
    """Extract the PRD for a single BPEL process."""
    try:
        result = service.extract_source(
            body.bpel,
            file_name=body.file_name,
            wsdl_sources=body.wsdl,
            xsd_sources=body.xsd,
            include_diagram=body.include_diagram,
        )
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    except RuntimeError as e:
        logger.error("Extraction failed for %s: %s", body.file_name, e)
        raise HTTPException(status_code=500, detail=str(e))

    return {
        "file_name": result.file_path,
        "summary": result.summary,
        "markdown": result.markdown,
        "gates": [g.to_dict() for g in result.gates],
        "errors": [asdict(e) for e in result.errors],
    }


@router.post("/verify", dependencies=[Depends(enforce_body_limit)])
async def verify(
    body: VerifyRequest,
    service=Depends(get_extraction_service),
):
    """Run completeness gates on an externally written PRD."""
    try:
        gates = service.verify(
            body.bpel,
            body.markdown,
            file_name=body.file_name,
        )
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))

    return {
        "passed": all(g.passed for g in gates if g.blocking),
        "gates": [g.to_dict() for g in gates],
    }


@router.get("/rules")
async def rules(service=Depends(get_extraction_service)):
    """List gap rules with their enabled flag."""
    disabled = service.gap_detector.disabled_rules
    return [
        {
            "id": rule.rule_id,
            "category": rule.category.value,
            "description": rule.description,
            "default_risk": rule.default_risk.value,
            "enabled": rule.rule_id not in disabled,
        }
        for rule in list_rules()
    ]
