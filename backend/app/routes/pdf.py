"""
PDF generation route.
"""
import re
import unicodedata
from typing import Any, Dict, Optional
from urllib.parse import quote

from fastapi import APIRouter, Depends, Response
from fastapi.responses import JSONResponse
from loguru import logger
from pydantic import BaseModel

from backend.app.services.pdf_render_service import HeadlessPdfRenderer, get_pdf_renderer

router = APIRouter()

DEFAULT_FILENAME = "reporte.pdf"


class GeneratePdfRequest(BaseModel):
    html: Optional[str] = None
    filename: Optional[str] = None
    options: Optional[Dict[str, Any]] = None


def _header_filename(filename: Optional[str]) -> str:
    cleaned = re.sub(r'["\r\n\\]', "_", filename or "").strip()
    return cleaned or DEFAULT_FILENAME


def content_disposition(filename: str) -> str:
    """
    Attachment header for ``filename``.

    Header values travel as latin-1, so a name outside ASCII gets an ASCII
    ``filename=`` stand-in plus the exact name as RFC 5987 ``filename*``.
    """
    ascii_name = unicodedata.normalize("NFKD", filename).encode("ascii", "ignore").decode("ascii")
    if ascii_name == filename:
        return f'attachment; filename="{filename}"'
    ascii_name = re.sub(r"[^\w.\-]+", "_", ascii_name)
    if not re.search(r"[A-Za-z0-9]", ascii_name.rsplit(".", 1)[0]):
        ascii_name = DEFAULT_FILENAME
    return f"attachment; filename=\"{ascii_name}\"; filename*=UTF-8''{quote(filename, safe='')}"


@router.post("/generate-pdf")
async def generate_pdf(
    payload: GeneratePdfRequest,
    renderer: HeadlessPdfRenderer = Depends(get_pdf_renderer),
) -> Response:
    """
    Render the posted HTML to PDF and return it as an attachment.
    """
    if not payload.html:
        return JSONResponse(status_code=400, content={"error": "HTML es requerido"})

    filename = _header_filename(payload.filename)
    try:
        pdf_bytes = await renderer.render(payload.html, payload.options)
        headers = {
            "Content-Disposition": content_disposition(filename),
            "Cache-Control": "no-cache",
        }
        return Response(content=pdf_bytes, media_type="application/pdf", headers=headers)
    except Exception as exc:
        logger.exception(f"Error generando PDF '{filename}'")
        return JSONResponse(
            status_code=500,
            content={"error": "Error interno del servidor", "message": str(exc)},
        )


@router.api_route(
    "/generate-pdf",
    methods=["GET", "PUT", "PATCH", "DELETE"],
    include_in_schema=False,
)
async def generate_pdf_method_not_allowed() -> JSONResponse:
    return JSONResponse(
        status_code=405,
        content={"error": "Método no permitido"},
        headers={"Allow": "POST"},
    )
