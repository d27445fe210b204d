# site_sentinel/services/reporting.py
import logging
import io
import traceback
from datetime import datetime, timezone
from html import escape
from typing import Dict, List, Optional

from fpdf import FPDF  # Keep FPDF *only* for the error fallback
from xhtml2pdf import pisa

from ..models import AIAnalysis, Site, TimeRange
from .sites import detect_breaches
from .telemetry import mock_traffic_volume

logger = logging.getLogger("Runner." + __name__)

REPORT_TITLE = "Site Security & Surveillance - Intelligence Report"


def _site_section(site: Site, analysis: Optional[AIAnalysis]) -> str:
    breaches = detect_breaches(site)
    rows = [
        ("URL", escape(site.url)),
        ("Status", site.status.upper()),
        ("Uptime", f"{site.uptime}%"),
        ("Latency", f"{site.response_time}ms"),
        ("Uptime SLA", f"{breaches['uptime_sla']}% ({'Breached' if breaches['sla_breach'] else 'Passing'})"),
        ("Latency Limit", f"{breaches['thresholds']['latency_ms']}ms ({'Breached' if breaches['latency_breach'] else 'Passing'})"),
        ("Traffic Volume", f"{mock_traffic_volume():,}"),
        ("Monitored Since", escape(site.added_at)),
    ]
    if site.tags:
        rows.append(("Tags", escape(", ".join(site.tags))))
    table_rows = "".join(
        f"<tr><td class='key'>{k}</td><td class='value'>{v}</td></tr>" for k, v in rows)

    findings = ""
    if analysis:
        vuln_rows = "".join(
            "<tr><td class='key indented'>{title}</td><td class='value'>{severity} / {status}</td></tr>".format(
                title=escape(v.title), severity=v.severity.upper(), status=v.status.value)
            for v in analysis.vulnerabilities)
        recommendations = "".join(
            f"<li>{escape(r)}</li>" for r in analysis.recommendations)
        findings = (
            "<h3>AI Findings</h3>"
            f"<p>{escape(analysis.cyber_crime_detection)}</p>"
            f"<table><tr><td colspan='2' class='subkey'>Vulnerabilities:</td></tr>{vuln_rows}</table>"
            f"<ul>{recommendations}</ul>"
        )

    return f"""
        <h2>{escape(site.name)}</h2>
        <table>
            {table_rows}
        </table>
        {findings}
    """


def build_report_html(
    sites: List[Site],
    time_range: TimeRange,
    analyses: Optional[Dict[str, AIAnalysis]] = None
) -> str:
    """
    Generates the print-laid-out HTML document for a batch report
    covering the given sites.
    """
    analyses = analyses or {}
    sections = "".join(_site_section(site, analyses.get(site.id))
                       for site in sites)
    generated = datetime.now(timezone.utc).strftime("%Y-%m-%d %H:%M:%S UTC")

    html_template = f"""
    <html>
    <head>
        <meta http-equiv="Content-Type" content="text/html; charset=utf-8">
        <style>
            @page {{
                size: a4 portrait;
                margin: 1.5cm;

                @frame header {{
                    -pdf-frame-content: header_content;
                    top: 1cm;
                    left: 1.5cm;
                    right: 1.5cm;
                    height: 1.5cm;
                }}

                @frame footer {{
                    -pdf-frame-content: footer_content;
                    bottom: 1cm;
                    left: 1.5cm;
                    right: 1.5cm;
                    height: 1cm;
                }}
            }}

            body {{ font-family: "Helvetica", "Arial", sans-serif; font-size: 10pt; color: #333; }}
            h1 {{ font-size: 18pt; font-weight: bold; color: #111; margin-top: 0; margin-bottom: 5pt; }}
            h2 {{ font-size: 14pt; font-weight: bold; color: #222; margin-top: 15pt; border-bottom: 1px solid #888; padding-bottom: 2px; page-break-after: avoid; }}
            h3 {{ font-size: 12pt; font-weight: bold; color: #333; margin-top: 10pt; page-break-after: avoid; }}
            table {{ width: 100%; border-collapse: collapse; margin-top: 10pt; margin-bottom: 10pt; page-break-inside: avoid; }}
            th, td {{ border: 1px solid #ddd; padding: 6px; text-align: left; word-wrap: break-word; }}
            td.key {{ font-weight: bold; width: 40%; background-color: #f9f9f9; }}
            td.value {{ width: 60%; }}
            td.subkey {{ font-weight: bold; background-color: #f0f0f0; padding-left: 10px;}}
            td.indented {{ padding-left: 20px; }}
            ul {{ margin-top: 5pt; margin-bottom: 10pt; padding-left: 20px; }}
            li {{ margin-bottom: 4pt; }}
            #header_content {{ text-align: left; font-size: 10pt; font-weight: bold; color: #555; }}
            #footer_content {{ text-align: right; font-size: 9pt; color: #888; }}
        </style>
    </head>
    <body>
        <div id="header_content">
            {REPORT_TITLE}
        </div>

        <div id="footer_content">
            Generated: {generated} | Page <pdf:pagenumber />
        </div>

        <h1>{time_range.value} Intelligence Report</h1>
        <p>{len(sites)} properties audited.</p>

        {sections}

        <p>End of Document - Generated by Site Security &amp; Surveillance Autonomous Systems</p>
    </body>
    </html>
    """
    return html_template


def create_pdf_report(html_content: str) -> bytes:
    """
    Renders the report HTML to PDF with xhtml2pdf.
    This is a blocking function.
    """
    result = io.BytesIO()

    try:
        pisa_status = pisa.CreatePDF(
            html_content,
            dest=result,
            encoding='utf-8'
        )
        if pisa_status.err:
            raise RuntimeError(f"PISA PDF creation error: {pisa_status.err}")

        pdf_bytes = result.getvalue()
        if not pdf_bytes:
            raise RuntimeError("PDF generation resulted in an empty file.")
        logger.info("xhtml2pdf conversion successful.")
        return pdf_bytes

    except Exception as e:
        logger.error(f"Failed to generate PDF: {e}", exc_info=True)
        pdf_error = FPDF()
        pdf_error.add_page()
        pdf_error.set_font('Helvetica', 'B', 16)
        pdf_error.cell(0, 20, 'PDF Generation Failed', new_x="LMARGIN", new_y="NEXT", align='C')
        pdf_error.set_font('Helvetica', '', 10)
        pdf_error.multi_cell(
            0, 5, f"An error occurred: {e}\n\n{traceback.format_exc()}")
        return bytes(pdf_error.output())
    finally:
        result.close()
