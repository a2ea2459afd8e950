"""
Headless PDF rendering for exported report pages.

Each request gets its own Chromium process:
- load the HTML and wait for network idle and DOM readiness
- let charts settle, then poll <canvas> elements until they hold pixels
  (bounded; after the budget the PDF is rendered anyway)
- print to PDF with the requested page options
The browser is closed on every exit path.
"""
from __future__ import annotations

import asyncio
from dataclasses import dataclass
from functools import lru_cache
from typing import Any, Callable, Dict, Optional

from loguru import logger
from playwright.async_api import async_playwright

from core.config import Config

LAUNCH_ARGS = [
    '--no-sandbox',
    '--disable-setuid-sandbox',
    '--disable-dev-shm-usage',
    '--disable-web-security',
    '--disable-features=VizDisplayCompositor',
    '--no-first-run',
    '--no-zygote',
    '--disable-gpu',
]

DEFAULT_PDF_OPTIONS: Dict[str, Any] = {
    'format': 'Letter',
    'printBackground': True,
    'margin': {
        'top': '20mm',
        'right': '20mm',
        'bottom': '20mm',
        'left': '20mm',
    },
}

# Request option name -> Page.pdf() keyword
PDF_OPTION_KEYS = {
    'format': 'format',
    'landscape': 'landscape',
    'scale': 'scale',
    'printBackground': 'print_background',
    'margin': 'margin',
    'preferCSSPageSize': 'prefer_css_page_size',
    'displayHeaderFooter': 'display_header_footer',
    'headerTemplate': 'header_template',
    'footerTemplate': 'footer_template',
    'pageRanges': 'page_ranges',
    'width': 'width',
    'height': 'height',
    'outline': 'outline',
    'tagged': 'tagged',
}

# True once every canvas holds at least one non-zero byte. Canvases without a
# 2d context, zero-sized or tainted ones count as ready.
CANVAS_READY_JS = """
() => Array.from(document.querySelectorAll('canvas')).every((canvas) => {
  if (!canvas.width || !canvas.height) return true;
  const ctx = canvas.getContext('2d');
  if (!ctx) return true;
  try {
    const data = ctx.getImageData(0, 0, canvas.width, canvas.height).data;
    return data.some((value) => value !== 0);
  } catch (error) {
    return true;
  }
})
"""


@dataclass
class CanvasPollPolicy:
    """Best-effort wait for chart canvases."""
    initial_delay_ms: int = 500
    interval_ms: int = 100
    max_attempts: int = 20

    @classmethod
    def from_config(cls, data: Dict[str, Any]) -> "CanvasPollPolicy":
        return cls(
            initial_delay_ms=int(data.get('initial_delay_ms', cls.initial_delay_ms)),
            interval_ms=int(data.get('interval_ms', cls.interval_ms)),
            max_attempts=max(int(data.get('max_attempts', cls.max_attempts)), 1),
        )


def merge_pdf_options(
    options: Optional[Dict[str, Any]],
    defaults: Optional[Dict[str, Any]] = None,
) -> Dict[str, Any]:
    """Request options laid over the defaults (top-level keys replace defaults)."""
    merged = dict(DEFAULT_PDF_OPTIONS)
    merged.update(defaults or {})
    merged.update({key: value for key, value in (options or {}).items() if value is not None})
    return merged


def to_pdf_kwargs(options: Dict[str, Any]) -> Dict[str, Any]:
    """Translate camelCase request options into Page.pdf() keyword arguments."""
    snake_keys = set(PDF_OPTION_KEYS.values())
    kwargs: Dict[str, Any] = {}
    for key, value in options.items():
        if key in PDF_OPTION_KEYS:
            kwargs[PDF_OPTION_KEYS[key]] = value
        elif key in snake_keys:
            kwargs[key] = value
        else:
            logger.debug(f"Ignoring unsupported PDF option: {key}")
    return kwargs


async def wait_for_canvases(page, policy: CanvasPollPolicy) -> bool:
    """
    Poll the page until every canvas is drawn or the attempt budget runs out.

    Returns:
        True if the canvases were ready, False if the budget was exhausted
    """
    await asyncio.sleep(policy.initial_delay_ms / 1000)

    for attempt in range(1, policy.max_attempts + 1):
        if await page.evaluate(CANVAS_READY_JS):
            logger.debug(f"Canvases ready after {attempt} check(s)")
            return True
        if attempt < policy.max_attempts:
            await asyncio.sleep(policy.interval_ms / 1000)

    logger.warning(
        f"Canvases still blank after {policy.max_attempts} checks; rendering anyway"
    )
    return False


class HeadlessPdfRenderer:
    """Renders standalone HTML pages to PDF bytes with Playwright Chromium."""

    def __init__(
        self,
        render_config: Optional[Dict[str, Any]] = None,
        playwright_factory: Callable = async_playwright,
    ):
        render_config = render_config or Config().get_render_config()
        self.headless = render_config.get('headless', True)
        self.viewport = dict(render_config.get('viewport') or {'width': 1200, 'height': 1600})
        self.device_scale_factor = render_config.get('device_scale_factor', 2)
        self.navigation_timeout_ms = render_config.get('navigation_timeout_ms', 30000)
        self.settle_ms = render_config.get('settle_ms', 2000)
        self.canvas_poll = CanvasPollPolicy.from_config(render_config.get('canvas_poll') or {})
        self.default_options = render_config.get('default_options') or {}
        self.playwright_factory = playwright_factory

    async def render(self, html: str, options: Optional[Dict[str, Any]] = None) -> bytes:
        """Render ``html`` to a PDF using the merged page options."""
        pdf_kwargs = to_pdf_kwargs(merge_pdf_options(options, self.default_options))
        logger.debug(f"Rendering PDF ({len(html)} chars HTML) with options {pdf_kwargs}")

        async with self.playwright_factory() as playwright:
            browser = await playwright.chromium.launch(headless=self.headless, args=LAUNCH_ARGS)
            try:
                page = await browser.new_page(
                    viewport=self.viewport,
                    device_scale_factor=self.device_scale_factor,
                )
                await page.set_content(
                    html,
                    wait_until='networkidle',
                    timeout=self.navigation_timeout_ms,
                )
                await page.wait_for_load_state('domcontentloaded', timeout=self.navigation_timeout_ms)

                # Charts animate in after load
                await asyncio.sleep(self.settle_ms / 1000)
                await wait_for_canvases(page, self.canvas_poll)

                pdf_bytes = await page.pdf(**pdf_kwargs)
            finally:
                await browser.close()
                logger.debug("Browser closed")

        logger.info(f"PDF rendered ({len(pdf_bytes)} bytes)")
        return pdf_bytes


@lru_cache(maxsize=1)
def get_pdf_renderer() -> HeadlessPdfRenderer:
    """Shared renderer instance (FastAPI dependency)."""
    return HeadlessPdfRenderer()
