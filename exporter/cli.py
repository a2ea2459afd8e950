"""CLI entry point for exporting a report page to PDF."""

import argparse
import sys
from pathlib import Path
from typing import List, Optional

from loguru import logger

from backend.lib.logging_setup import setup_logging
from core.config import Config
from exporter.dom_snapshot import document_from_page, load_document
from exporter.errors import ContentNotFoundError, ExportFailedError
from exporter.models import RenderOptions, get_page_size
from exporter.pipeline import ExportPipeline
from exporter.style_snapshot import DocumentStyleSource, PageStyleSource, StaticStyleSource


def snapshot_live_page(url: str, timeout_ms: int = 30000):
    """Load ``url`` in headless Chromium and return (document, style source)."""
    from playwright.sync_api import sync_playwright

    with sync_playwright() as playwright:
        browser = playwright.chromium.launch(headless=True)
        try:
            page = browser.new_page()
            page.goto(url, wait_until='networkidle', timeout=timeout_ms)
            document = document_from_page(page)
            # Read the sheets while the page is still open
            style_source = StaticStyleSource(list(PageStyleSource(page)))
        finally:
            browser.close()
    return document, style_source


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Export a leadership report page to PDF")
    source = parser.add_mutually_exclusive_group(required=True)
    source.add_argument("--source", "-s", help="Saved report HTML file")
    source.add_argument("--url", "-u", help="URL of a running report page")
    parser.add_argument("--content-id", "-c", help="Id of the report root element")
    parser.add_argument("--team", "-t", default="Equipo", help="Team name used in title and filename")
    parser.add_argument("--filename", "-f", help="Output filename (default derived from team and date)")
    parser.add_argument("--out", "-o", help="Downloads directory (overrides config.yaml)")
    parser.add_argument(
        "--endpoint",
        "-e",
        action="append",
        help="Render endpoint, repeat to try several in order (overrides config.yaml)",
    )
    parser.add_argument("--page-size", help="Paper preset, e.g. letter, A4, legal")
    parser.add_argument("--no-fallback", action="store_true", help="Fail instead of opening the print view")
    parser.add_argument("--config", help="Path to config.yaml")
    return parser


def main(argv: Optional[List[str]] = None) -> int:
    """Main CLI entry point."""
    args = build_parser().parse_args(argv)
    setup_logging(enable_console=True, enable_file=False, intercept_stdlib=False)

    config = Config(args.config) if args.config else Config()
    content_id = args.content_id or config.get('export.content_id', 'category-report-content')

    options = RenderOptions()
    if args.page_size:
        try:
            options = get_page_size(args.page_size).to_options()
        except KeyError as e:
            logger.error(str(e))
            return 2

    pipeline = ExportPipeline.from_config(
        config,
        downloads_dir=Path(args.out) if args.out else None,
        endpoints=args.endpoint,
        use_fallback=not args.no_fallback,
    )

    if args.url:
        document, style_source = snapshot_live_page(args.url)
    else:
        source_path = Path(args.source)
        if not source_path.exists():
            logger.error(f"Source file not found: {source_path}")
            return 2
        document = load_document(source_path)
        style_source = DocumentStyleSource(document, base_url=source_path.resolve().as_uri())

    try:
        outcome = pipeline.export(
            document,
            content_id,
            style_source,
            team_name=args.team,
            filename=args.filename,
            options=options,
        )
    except ContentNotFoundError as e:
        logger.error(f"No se encontró el contenido del reporte: {e}")
        return 1
    except ExportFailedError as e:
        logger.error(e.message)
        return 1

    if outcome.downloaded:
        print(f"PDF saved to {outcome.saved_path}")
        return 0
    if outcome.fallback_opened:
        print("Render service unavailable; print view opened in the browser")
        return 0
    print("Render service unavailable and the print view could not be opened")
    return 1


if __name__ == "__main__":
    sys.exit(main())
