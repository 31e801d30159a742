"""
Scan trigger route.
"""

import logging
from typing import List, Optional

from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse
from pydantic import BaseModel, ConfigDict, Field

from regscan.scanner.orchestrator import ScanOrchestrator, ScanRequest
from regscan.web.dependencies import get_orchestrator

logger = logging.getLogger(__name__)

router = APIRouter(tags=["scan"])


class ScanBody(BaseModel):
    """Request body; a date range outside 1-60 days falls back to the default."""

    model_config = ConfigDict(populate_by_name=True)

    date_range_days: Optional[int] = Field(None, alias="dateRangeDays")
    selected_source_ids: Optional[List[str]] = Field(None, alias="selectedSourceIds")


@router.post("/scan")
async def run_scan(
    body: Optional[ScanBody] = None,
    orchestrator: ScanOrchestrator = Depends(get_orchestrator),
):
    """Run a scan and return its report."""
    body = body or ScanBody()
    request = ScanRequest(
        date_range_days=body.date_range_days,
        selected_source_ids=body.selected_source_ids,
    )
    logger.info(
        "Scan requested: %d days, %s sources",
        request.date_range_days,
        len(request.selected_source_ids) if request.selected_source_ids else "all",
    )

    report = await orchestrator.run(request)
    if not report.success:
        return JSONResponse(status_code=500, content=report.to_dict())
    return report.to_dict()
