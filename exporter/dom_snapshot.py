"""
DOM snapshot of the report root and the standalone export document built from it.
"""
from __future__ import annotations

import copy
import html
from pathlib import Path
from typing import Iterable, List, Optional, Sequence, Union

from bs4 import BeautifulSoup, Tag
from loguru import logger

from exporter.errors import ContentNotFoundError
from exporter.models import RenderOptions, ReportSnapshot
from exporter.style_snapshot import StyleSheet, extract_styles

DEFAULT_FALLBACK_IDS = ("pdf-pages-only", "category-report-content")
EXPORT_CONTROLS_SELECTORS = ('[data-testid="export-buttons"]', ".no-print")
PAGE_BLOCK_SELECTOR = '[data-testid="page"]'
DEFAULT_FONT_URL = "https://fonts.googleapis.com/css2?family=Roboto:wght@300;400;500;600;700&display=swap"


def load_document(source: Union[str, Path]) -> BeautifulSoup:
    """Parse a report page from a file path or an HTML string."""
    if isinstance(source, Path):
        source = source.read_text(encoding="utf-8")
    return BeautifulSoup(source, "html.parser")


def document_from_page(page) -> BeautifulSoup:
    """Parse the current DOM of a live (sync) Playwright page."""
    return BeautifulSoup(page.content(), "html.parser")


def candidate_ids(content_id: str, fallback_ids: Iterable[str] = DEFAULT_FALLBACK_IDS) -> List[str]:
    ids = [content_id]
    for fallback_id in fallback_ids:
        if fallback_id not in ids:
            ids.append(fallback_id)
    return ids


def find_report_root(
    document: BeautifulSoup,
    content_id: str,
    fallback_ids: Iterable[str] = DEFAULT_FALLBACK_IDS,
) -> Tag:
    """
    Locate the report root, trying ``content_id`` then each fallback id.

    Raises:
        ContentNotFoundError: if none of the ids exists in the document
    """
    tried = candidate_ids(content_id, fallback_ids)
    for element_id in tried:
        element = document.find(id=element_id)
        if element is not None:
            if element_id != content_id:
                logger.info(f"Report root found with alternative id: {element_id}")
            return element

    logger.warning(f"Report root not found; tried ids: {tried}")
    raise ContentNotFoundError(tried)


def strip_export_controls(root: Tag, selectors: Sequence[str] = EXPORT_CONTROLS_SELECTORS) -> int:
    """Remove every descendant matching an export-controls selector. Returns the count removed."""
    removed = 0
    for selector in selectors:
        for element in root.select(selector):
            # Nested matches may already be gone with their parent
            if element.decomposed:
                continue
            element.decompose()
            removed += 1
    return removed


def take_snapshot(
    document: BeautifulSoup,
    content_id: str,
    style_source: Iterable[StyleSheet],
    fallback_ids: Iterable[str] = DEFAULT_FALLBACK_IDS,
) -> ReportSnapshot:
    """Clone the report root, drop export-only controls and capture the styles."""
    root = find_report_root(document, content_id, fallback_ids)

    clone = copy.copy(root)
    removed = strip_export_controls(clone)
    if removed:
        logger.debug(f"Removed {removed} export control element(s) from snapshot")

    styles = extract_styles(style_source)
    logger.debug(f"Snapshot of #{root.get('id')}: {len(str(clone))} chars markup, {len(styles)} chars styles")
    return ReportSnapshot(content_id=root.get("id") or content_id, root=clone, styles=styles)


def print_stylesheet(options: RenderOptions) -> str:
    """Print overrides appended after the captured styles."""
    return f"""
/* Export overrides */
@page {{
  size: {options.format};
  margin: {options.margin.css()};
}}

body {{
  margin: 0;
  padding: 0;
  font-family: 'Roboto', Arial, sans-serif;
  background: white !important;
}}

* {{
  -webkit-print-color-adjust: exact !important;
  print-color-adjust: exact !important;
  color-adjust: exact !important;
}}

{PAGE_BLOCK_SELECTOR} {{
  break-after: page;
  page-break-after: always;
  margin-bottom: 0;
}}

{PAGE_BLOCK_SELECTOR}:last-child {{
  break-after: auto;
  page-break-after: auto;
}}

{', '.join(EXPORT_CONTROLS_SELECTORS)} {{
  display: none !important;
}}
"""


def build_export_document(
    snapshot: ReportSnapshot,
    title: str,
    options: Optional[RenderOptions] = None,
    font_url: Optional[str] = DEFAULT_FONT_URL,
) -> str:
    """Serialize the snapshot into a standalone HTML page ready for rendering or printing."""
    options = options or RenderOptions()
    font_link = f'<link href="{html.escape(font_url)}" rel="stylesheet">' if font_url else ""

    return f"""<!DOCTYPE html>
<html>
<head>
<meta charset="UTF-8">
<meta name="viewport" content="width=device-width, initial-scale=1.0">
<title>{html.escape(title)}</title>
{font_link}
<style>
{snapshot.styles}
{print_stylesheet(options)}
</style>
</head>
<body>
{snapshot.markup}
</body>
</html>
"""
