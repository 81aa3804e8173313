# ems/services/reports/pdf_generator.py
import html
import logging

from playwright.async_api import async_playwright

from ems.services.reports.base import Dataset, ReportGenerator

logger = logging.getLogger(__name__)

PAGE_STYLE = """
body { font-family: Helvetica, Arial, sans-serif; font-size: 10px; color: #222; }
h1 { font-size: 18px; margin-bottom: 2px; }
p.meta { color: #666; margin-top: 0; }
table { width: 100%; border-collapse: collapse; }
th { background: #2f5597; color: #fff; text-align: left; padding: 4px; }
td { border-bottom: 1px solid #ddd; padding: 4px; }
tr:nth-child(even) td { background: #f3f6fb; }
"""


def build_html(dataset: Dataset) -> str:
    header = "".join(f"<th>{html.escape(str(c))}</th>" for c in dataset.columns)
    body = "".join(
        "<tr>" + "".join(f"<td>{html.escape('' if v is None else str(v))}</td>" for v in row) + "</tr>"
        for row in dataset.rows
    )
    if not dataset.rows:
        body = f'<tr><td colspan="{len(dataset.columns)}">No data</td></tr>'

    return (
        "<!DOCTYPE html><html><head><meta charset=\"utf-8\">"
        f"<title>{html.escape(dataset.title)}</title><style>{PAGE_STYLE}</style></head><body>"
        f"<h1>{html.escape(dataset.title)}</h1>"
        f"<p class=\"meta\">Generated on {dataset.generated_at:%Y-%m-%d %H:%M:%S} - {len(dataset.rows)} rows</p>"
        f"<table><thead><tr>{header}</tr></thead><tbody>{body}</tbody></table>"
        "</body></html>"
    )


class PdfReportGenerator(ReportGenerator):
    format = "pdf"
    content_type = "application/pdf"
    extension = "pdf"

    def __init__(self, timeout_ms: int = 30000):
        self.timeout_ms = timeout_ms

    async def html_to_pdf(self, html_content: str) -> bytes:
        async with async_playwright() as p:
            browser = await p.chromium.launch(
                headless=True,
                args=['--no-sandbox', '--disable-setuid-sandbox', '--disable-dev-shm-usage']
            )
            try:
                page = await browser.new_page()
                await page.set_content(html_content, wait_until='load', timeout=self.timeout_ms)
                return await page.pdf(
                    format='A4',
                    landscape=True,
                    print_background=True,
                    margin={'top': '1cm', 'right': '1cm', 'bottom': '1cm', 'left': '1cm'}
                )
            finally:
                await browser.close()

    async def render(self, dataset: Dataset) -> bytes:
        logger.debug(f"Rendering {dataset.name} ({len(dataset.rows)} rows) to PDF")
        return await self.html_to_pdf(build_html(dataset))
