"""
Print fallback: show the export page in a new browsing context with a print button.

Used when no render endpoint produced a PDF. The user prints (or saves as
PDF) with the browser's own dialog.
"""
from __future__ import annotations

import re
import tempfile
import webbrowser
from abc import ABC, abstractmethod
from pathlib import Path
from typing import List, Optional

from loguru import logger

from exporter.errors import PopupBlocked

PRINT_CONTROL = """
<style>
  @media print { .no-print { display: none !important; } }
</style>
<div class="no-print" style="position: fixed; top: 20px; right: 20px; z-index: 10000;">
  <button onclick="window.print(); window.close();" style="
    padding: 12px 24px;
    background: #1976d2;
    color: white;
    border: none;
    border-radius: 6px;
    cursor: pointer;
    font-size: 16px;
    font-weight: 600;
    box-shadow: 0 4px 8px rgba(0,0,0,0.2);
    font-family: 'Roboto', Arial, sans-serif;
  ">
    🖨️ Imprimir PDF
  </button>
</div>
"""

_BODY_CLOSE_RE = re.compile(r"</body\s*>", re.IGNORECASE)


def build_print_document(html: str) -> str:
    """Inject the floating print control just before ``</body>``."""
    matches = list(_BODY_CLOSE_RE.finditer(html))
    if not matches:
        return html + PRINT_CONTROL
    last = matches[-1]
    return html[:last.start()] + PRINT_CONTROL + html[last.start():]


class BrowsingContext(ABC):
    """A freshly opened top-level window/tab."""

    @abstractmethod
    def write(self, html: str) -> None:
        raise NotImplementedError

    def close_document(self) -> None:
        """Finish the document stream (``document.close()``)."""

    def focus(self) -> None:
        """Bring the context to the front."""


class BrowsingContextOpener(ABC):
    """Opens new browsing contexts; returns ``None`` when the host blocks it."""

    @abstractmethod
    def open(self) -> Optional[BrowsingContext]:
        raise NotImplementedError


class MemoryBrowsingContext(BrowsingContext):
    def __init__(self):
        self.chunks: List[str] = []
        self.closed = False
        self.focused = False

    @property
    def html(self) -> str:
        return "".join(self.chunks)

    def write(self, html: str) -> None:
        self.chunks.append(html)

    def close_document(self) -> None:
        self.closed = True

    def focus(self) -> None:
        self.focused = True


class MemoryOpener(BrowsingContextOpener):
    """Keeps opened contexts in memory; ``blocked=True`` simulates a popup blocker."""

    def __init__(self, blocked: bool = False):
        self.blocked = blocked
        self.contexts: List[MemoryBrowsingContext] = []

    def open(self) -> Optional[BrowsingContext]:
        if self.blocked:
            return None
        context = MemoryBrowsingContext()
        self.contexts.append(context)
        return context


class FileBrowsingContext(BrowsingContext):
    """Writes the page to a file and shows it in the system browser once complete."""

    def __init__(self, path: Path, launcher=webbrowser.open):
        self.path = path
        self.launcher = launcher
        self._chunks: List[str] = []

    def write(self, html: str) -> None:
        self._chunks.append(html)

    def close_document(self) -> None:
        self.path.write_text("".join(self._chunks), encoding="utf-8")

    def focus(self) -> None:
        if not self.launcher(self.path.resolve().as_uri(), new=2):
            raise PopupBlocked(f"Browser refused to open {self.path}")


class WebBrowserOpener(BrowsingContextOpener):
    """Opens the print view in the default web browser."""

    def __init__(self, directory: Optional[Path] = None, launcher=webbrowser.open):
        self.directory = directory
        self.launcher = launcher

    def open(self) -> Optional[BrowsingContext]:
        # One scratch directory per opener; each run overwrites print.html
        if self.directory is None:
            self.directory = Path(tempfile.mkdtemp(prefix="export-print-"))
        self.directory.mkdir(parents=True, exist_ok=True)
        return FileBrowsingContext(self.directory / "print.html", launcher=self.launcher)


class FallbackPrintPresenter:
    """Presents the export page for native printing."""

    def __init__(self, opener: BrowsingContextOpener):
        self.opener = opener

    def present(self, html: str, title: str = "") -> bool:
        """
        Open the print view.

        Returns:
            True if the view was opened, False if the host blocked it
        """
        context = self.opener.open()
        if context is None:
            logger.warning("Print view blocked; nothing opened")
            return False

        context.write(build_print_document(html))
        context.close_document()
        try:
            context.focus()
        except PopupBlocked as exc:
            logger.warning(f"Print view blocked: {exc}")
            return False

        logger.info(f"Using print fallback{f' for {title}' if title else ''}")
        return True
