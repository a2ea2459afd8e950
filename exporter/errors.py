"""
Exceptions raised by the report export pipeline.

Hierarchy:
    ExportError (base)
    ├── ContentNotFoundError   - report root missing (fatal for the run)
    ├── StyleSheetAccessError  - one stylesheet cannot be read (skipped)
    ├── RenderUnavailable      - every render endpoint failed (falls back to print)
    ├── PopupBlocked           - print view could not be opened (absorbed)
    ├── ServiceError           - render service answered with an error
    └── ExportFailedError      - every recovery path failed (shown to the user)
"""
from __future__ import annotations

from typing import Any, Dict, List, Optional, Sequence

USER_FACING_FAILURE = "Error al generar el PDF. Por favor, inténtalo de nuevo."


class ExportError(Exception):
    """Base exception for report export failures."""

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}

    def __str__(self) -> str:
        if self.details:
            return f"{self.message} | Details: {self.details}"
        return self.message


class ContentNotFoundError(ExportError):
    """Raised when no report root element exists in the document."""

    def __init__(self, tried_ids: Sequence[str]):
        self.tried_ids = list(tried_ids)
        super().__init__(
            "No se encontró el contenido del reporte",
            {"tried_ids": self.tried_ids},
        )


class StyleSheetAccessError(ExportError):
    """Raised by a style sheet whose rules cannot be enumerated (cross-origin)."""


class RenderUnavailable(ExportError):
    """Raised when no render endpoint produced a PDF."""

    def __init__(self, failures: Optional[List[Any]] = None):
        self.failures = list(failures or [])
        super().__init__(
            "No PDF render endpoint available",
            {"attempts": [str(failure) for failure in self.failures]},
        )


class PopupBlocked(ExportError):
    """Raised when the fallback print view could not be opened."""


class ServiceError(ExportError):
    """Error reported by the headless render service."""

    def __init__(self, message: str, status_code: int = 500, details: Optional[Dict[str, Any]] = None):
        super().__init__(message, details)
        self.status_code = status_code


class ExportFailedError(ExportError):
    """Raised when neither the render service nor the print fallback worked."""

    def __init__(self, cause: Optional[BaseException] = None):
        super().__init__(USER_FACING_FAILURE, {"cause": repr(cause)} if cause else None)
        self.cause = cause
