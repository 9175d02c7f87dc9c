"""
PDF rendering for analytics exports.

``render_report`` is a pure function of its inputs: rows, KPIs and a section
title in, PDF bytes out. Nothing here touches the store.
"""

from datetime import datetime
from io import BytesIO
from typing import Any, Dict, List, Optional
import json
import logging
import re
from xml.sax.saxutils import escape

from reportlab.lib import colors
from reportlab.lib.pagesizes import A4, landscape
from reportlab.lib.styles import ParagraphStyle, getSampleStyleSheet
from reportlab.lib.units import mm
from reportlab.platypus import Paragraph, SimpleDocTemplate, Spacer, Table, TableStyle

logger = logging.getLogger(__name__)

MARGIN = 14 * mm
FOOTER_TEXT = "© Barangay System. All Rights Reserved."


def humanize(key: str) -> str:
    """camelCase -> Title Case ("avgResponseTime" -> "Avg Response Time")"""
    spaced = re.sub(r"([A-Z])", r" \1", key).strip()
    return spaced[:1].upper() + spaced[1:]


def format_cell(value: Any) -> str:
    if value is None:
        return "N/A"
    if isinstance(value, bool):
        return "Yes" if value else "No"
    if isinstance(value, (dict, list)):
        return json.dumps(value, default=str)
    return str(value)


def report_filename(title: str, today: Optional[datetime] = None) -> str:
    slug = re.sub(r"\s+", "_", title)
    return f"{slug}_{(today or datetime.now()).strftime('%Y-%m-%d')}.pdf"


def _draw_footer(canvas, doc):
    canvas.saveState()
    canvas.setFont("Helvetica", 8)
    canvas.setFillColor(colors.grey)
    width, _ = doc.pagesize
    canvas.drawCentredString(width / 2, 10 * mm, f"Page {doc.page}")
    canvas.drawString(MARGIN, 10 * mm, FOOTER_TEXT)
    canvas.restoreState()


def _section_heading(text: str, styles, width: float) -> Table:
    heading = Table([[Paragraph(text, styles["SectionHeading"])]], colWidths=[width])
    heading.setStyle(TableStyle([
        ("BACKGROUND", (0, 0), (-1, -1), colors.black),
        ("LEFTPADDING", (0, 0), (-1, -1), 4),
    ]))
    return heading


def render_report(
    rows: List[Dict[str, Any]],
    kpis: Optional[Dict[str, Any]],
    title: str,
    generated_by: str = "Admin",
    today: Optional[datetime] = None,
) -> bytes:
    """Paginated A4 landscape report: overview KPI table, then the detailed records table."""
    buffer = BytesIO()
    doc = SimpleDocTemplate(
        buffer,
        pagesize=landscape(A4),
        leftMargin=MARGIN,
        rightMargin=MARGIN,
        topMargin=MARGIN,
        bottomMargin=18 * mm,
        title=f"Barangay {title} Analytics",
    )

    styles = getSampleStyleSheet()
    styles.add(ParagraphStyle("SectionHeading", parent=styles["Heading4"], textColor=colors.white, spaceBefore=0, spaceAfter=0))
    cell_style = ParagraphStyle("Cell", parent=styles["BodyText"], fontSize=7, leading=9)

    story = [
        Paragraph(escape(f"Barangay {title} Analytics"), styles["Title"]),
        Paragraph(
            f"Analytics Performance Report | Generated by: {escape(generated_by)} | "
            f"Date: {(today or datetime.now()).strftime('%Y-%m-%d')}",
            styles["Normal"],
        ),
        Spacer(1, 6 * mm),
    ]

    if kpis:
        story.append(_section_heading("Overview Statistics", styles, doc.width))
        kpi_table = Table(
            [["Metric", "Value"]] + [[humanize(k), format_cell(v)] for k, v in kpis.items()],
            hAlign="LEFT",
            colWidths=[90 * mm, 60 * mm],
        )
        kpi_table.setStyle(TableStyle([
            ("BACKGROUND", (0, 0), (-1, 0), colors.HexColor("#F0F0F0")),
            ("FONTNAME", (0, 0), (-1, 0), "Helvetica-Bold"),
            ("FONTNAME", (1, 1), (1, -1), "Helvetica-Bold"),
            ("ALIGN", (1, 0), (1, -1), "RIGHT"),
            ("FONTSIZE", (0, 0), (-1, -1), 9),
            ("LINEBELOW", (0, 0), (-1, -1), 0.1, colors.HexColor("#C8C8C8")),
        ]))
        story += [kpi_table, Spacer(1, 6 * mm)]

    story.append(_section_heading("Detailed Records", styles, doc.width))
    if rows:
        headers = list(rows[0].keys())
        body = [[Paragraph(escape(format_cell(row.get(h))), cell_style) for h in headers] for row in rows]
        table = Table(
            [[humanize(h) for h in headers]] + body,
            colWidths=[doc.width / len(headers)] * len(headers),
            repeatRows=1,
        )
        table.setStyle(TableStyle([
            ("BACKGROUND", (0, 0), (-1, 0), colors.black),
            ("TEXTCOLOR", (0, 0), (-1, 0), colors.white),
            ("FONTNAME", (0, 0), (-1, 0), "Helvetica-Bold"),
            ("FONTSIZE", (0, 0), (-1, 0), 8),
            ("ALIGN", (0, 0), (-1, 0), "CENTER"),
            ("GRID", (0, 0), (-1, -1), 0.25, colors.grey),
            ("ROWBACKGROUNDS", (0, 1), (-1, -1), [colors.white, colors.HexColor("#F5F5F5")]),
            ("VALIGN", (0, 0), (-1, -1), "TOP"),
        ]))
        story.append(table)
    else:
        story.append(Paragraph("No records for the selected range.", styles["Normal"]))

    doc.build(story, onFirstPage=_draw_footer, onLaterPages=_draw_footer)
    logger.info(f"Rendered {title} report with {len(rows)} row(s)")
    return buffer.getvalue()
