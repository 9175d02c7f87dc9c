from fastapi import APIRouter, Depends, HTTPException, Path, Query
from fastapi.responses import Response
from datetime import datetime
from typing import Optional
import logging

from ..auth.dependencies import gate, get_sync_manager
from ..auth.session import SessionState
from ..core.exceptions import PortalError, to_http_exception
from ..services.analytics_service import SECTION_TITLES, SECTIONS, AnalyticsService
from ..services.report_service import render_report, report_filename

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/admin/analytics", tags=["analytics"])

require_analytics_page = gate("/admin/analytics")


async def _section(sync, section: str, start: Optional[datetime], end: Optional[datetime]):
    if section not in SECTIONS:
        raise HTTPException(status_code=404, detail=f"Unknown analytics section: {section}")
    if start and end and start > end:
        raise HTTPException(status_code=400, detail="Start date must be before end date")
    try:
        return await AnalyticsService(sync).section(section, start, end)
    except PortalError as e:
        logger.error(f"Error building {section} analytics: {str(e)}")
        raise to_http_exception(e)


@router.get("/{section}")
async def section_analytics(
    section: str = Path(..., description=", ".join(SECTIONS)),
    start_date: Optional[datetime] = Query(None),
    end_date: Optional[datetime] = Query(None),
    session: SessionState = Depends(require_analytics_page),
    sync=Depends(get_sync_manager),
):
    result = await _section(sync, section, start_date, end_date)
    return {"success": True, "section": section, "title": SECTION_TITLES[section], **result}


@router.get("/{section}/pdf")
async def section_pdf(
    section: str = Path(...),
    start_date: Optional[datetime] = Query(None),
    end_date: Optional[datetime] = Query(None),
    session: SessionState = Depends(require_analytics_page),
    sync=Depends(get_sync_manager),
):
    result = await _section(sync, section, start_date, end_date)
    if not result["data"]:
        raise HTTPException(status_code=404, detail="No data to export")

    title = SECTION_TITLES[section]
    pdf = render_report(result["data"], result["kpis"], title, generated_by=session.email or "Admin")
    return Response(
        content=pdf,
        media_type="application/pdf",
        headers={"Content-Disposition": f'attachment; filename="{report_filename(title)}"'},
    )
