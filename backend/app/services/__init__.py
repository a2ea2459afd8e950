"""Services package."""
from backend.app.services.pdf_render_service import HeadlessPdfRenderer, get_pdf_renderer

__all__ = ["HeadlessPdfRenderer", "get_pdf_renderer"]
