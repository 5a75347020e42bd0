import logging

from playwright.async_api import Error as PlaywrightError
from playwright.async_api import async_playwright

from app.config import settings
from app.services.errors import PrintContextUnavailable

logger = logging.getLogger(__name__)


async def html_to_pdf(html: str) -> bytes:
    """
    Print an HTML document to PDF in a fresh headless Chromium context.
    Raises PrintContextUnavailable when no print context can be opened
    (browser not installed, launch failure, render timeout).
    """
    timeout_ms = settings.PDF_RENDER_TIMEOUT_SECONDS * 1000
    try:
        async with async_playwright() as pw:
            browser = await pw.chromium.launch()
            try:
                context = await browser.new_context()
                page = await context.new_page()
                await page.set_content(html, wait_until="load", timeout=timeout_ms)
                return await page.pdf(
                    format="A4",
                    print_background=True,
                    margin={"top": "15mm", "bottom": "15mm", "left": "12mm", "right": "12mm"},
                )
            finally:
                await browser.close()
    except PlaywrightError as exc:
        logger.error("PDF print context failed: %s", exc)
        raise PrintContextUnavailable(
            "Could not open a print context for the PDF export, try the print view instead"
        ) from exc
