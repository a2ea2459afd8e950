"""Transient data carried through a single export run."""
from __future__ import annotations

import re
from dataclasses import dataclass, field
from datetime import date
from enum import Enum
from pathlib import Path
from typing import Any, Dict, List, Optional, Union

from bs4 import Tag


@dataclass(frozen=True)
class Margin:
    """Page margins as CSS lengths."""
    top: str = "20mm"
    right: str = "20mm"
    bottom: str = "20mm"
    left: str = "20mm"

    @classmethod
    def uniform(cls, value: str) -> "Margin":
        return cls(top=value, right=value, bottom=value, left=value)

    def to_payload(self) -> Dict[str, str]:
        return {"top": self.top, "right": self.right, "bottom": self.bottom, "left": self.left}

    def css(self) -> str:
        if len({self.top, self.right, self.bottom, self.left}) == 1:
            return self.top
        return f"{self.top} {self.right} {self.bottom} {self.left}"


@dataclass(frozen=True)
class RenderOptions:
    """Page options forwarded to the render service."""
    format: str = "Letter"
    print_background: bool = True
    margin: Margin = field(default_factory=Margin)
    landscape: Optional[bool] = None
    scale: Optional[float] = None
    prefer_css_page_size: Optional[bool] = None

    def to_payload(self) -> Dict[str, Any]:
        """Wire form, camelCase like the service expects."""
        payload: Dict[str, Any] = {
            "format": self.format,
            "printBackground": self.print_background,
            "margin": self.margin.to_payload(),
        }
        if self.landscape is not None:
            payload["landscape"] = self.landscape
        if self.scale is not None:
            payload["scale"] = self.scale
        if self.prefer_css_page_size is not None:
            payload["preferCSSPageSize"] = self.prefer_css_page_size
        return payload


@dataclass(frozen=True)
class PageSize:
    """Named paper preset used by the print stylesheet."""
    name: str
    size: str
    width: str
    height: str
    margin: str

    def to_options(self, print_background: bool = True) -> RenderOptions:
        return RenderOptions(
            format=self.size,
            print_background=print_background,
            margin=Margin.uniform(self.margin),
        )


PAGE_SIZES: List[PageSize] = [
    PageSize(name="Carta (Letter)", size="letter", width="8.5in", height="11in", margin="0.5in"),
    PageSize(name="A4", size="A4", width="210mm", height="297mm", margin="15mm"),
    PageSize(name="Legal", size="legal", width="8.5in", height="14in", margin="0.5in"),
    PageSize(name="Carta - Sin márgenes", size="letter", width="8.5in", height="11in", margin="0"),
    PageSize(name="A4 - Sin márgenes", size="A4", width="210mm", height="297mm", margin="0"),
]


def get_page_size(name: str) -> PageSize:
    """Look up a preset by display name or paper size (case-insensitive)."""
    lowered = name.lower()
    for preset in PAGE_SIZES:
        if preset.name.lower() == lowered:
            return preset
    for preset in PAGE_SIZES:
        if preset.size.lower() == lowered:
            return preset
    raise KeyError(f"Unknown page size: {name}")


@dataclass
class ReportSnapshot:
    """Detached copy of the report root plus the captured stylesheet text."""
    content_id: str
    root: Tag
    styles: str

    @property
    def markup(self) -> str:
        return str(self.root)


@dataclass(frozen=True)
class RenderRequest:
    """One export attempt; reused unchanged across endpoint candidates."""
    html: str
    filename: str
    options: RenderOptions = field(default_factory=RenderOptions)

    def to_payload(self) -> Dict[str, Any]:
        return {
            "html": self.html,
            "filename": self.filename,
            "options": self.options.to_payload(),
        }


@dataclass(frozen=True)
class RenderSuccess:
    """PDF bytes returned by an endpoint."""
    endpoint: str
    content: bytes
    filename: str
    content_type: str = "application/pdf"

    @property
    def size(self) -> int:
        return len(self.content)


@dataclass(frozen=True)
class RenderUnavailableResult:
    """An endpoint that could not render (network error or non-2xx)."""
    endpoint: str
    reason: str
    status_code: Optional[int] = None

    def __str__(self) -> str:
        if self.status_code is not None:
            return f"{self.endpoint}: HTTP {self.status_code} {self.reason}".rstrip()
        return f"{self.endpoint}: {self.reason}"


RenderResult = Union[RenderSuccess, RenderUnavailableResult]


class ExportState(str, Enum):
    IDLE = "idle"
    SNAPSHOTTING = "snapshotting"
    RENDER_ATTEMPT = "render_attempt"
    DOWNLOAD = "download"
    FALLBACK = "fallback"


@dataclass
class ExportOutcome:
    """How an export run ended."""
    state: ExportState
    filename: str
    attempts: List[RenderResult] = field(default_factory=list)
    saved_path: Optional[Path] = None
    fallback_opened: bool = False

    @property
    def downloaded(self) -> bool:
        return self.state is ExportState.DOWNLOAD


def default_filename(team_name: str, today: Optional[date] = None) -> str:
    """Reporte_Liderazgo_<team>_<YYYY-MM-DD>.pdf"""
    today = today or date.today()
    safe_name = re.sub(r"\s+", "_", team_name.strip())
    return f"Reporte_Liderazgo_{safe_name}_{today.isoformat()}.pdf"


def default_title(team_name: str) -> str:
    return f"Reporte de Liderazgo - {team_name}"
