"""
Style snapshot extraction.

Collects the text of every CSS rule reachable from a document so it can be
inlined into a standalone export page. Sheets whose rules cannot be read
(cross-origin, unreachable) are skipped; the rest are kept in declaration
order, duplicates included, so the cascade resolves the same way once the
text is reinjected.
"""
from __future__ import annotations

import re
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Callable, Iterable, Iterator, List, Optional
from urllib.parse import urljoin, urlparse
from urllib.request import url2pathname

import requests
from bs4 import BeautifulSoup
from loguru import logger

from exporter.errors import StyleSheetAccessError

StyleLoader = Callable[[str], str]

_COMMENT_RE = re.compile(r"/\*.*?\*/", re.DOTALL)

# Runs inside the page; a sheet whose cssRules throws reports rules=null.
_PAGE_STYLESHEETS_JS = """
() => Array.from(document.styleSheets).map((sheet) => {
  try {
    return { href: sheet.href, rules: Array.from(sheet.cssRules).map((rule) => rule.cssText) };
  } catch (error) {
    return { href: sheet.href, rules: null };
  }
})
"""


def split_css_rules(css_text: str) -> List[str]:
    """
    Split a stylesheet into top-level rule texts.

    Block rules (``a { ... }``, ``@media ... { ... }``) are kept whole,
    statement at-rules (``@import ...;``) end at their semicolon. Comments are
    dropped.
    """
    text = _COMMENT_RE.sub("", css_text or "")
    rules: List[str] = []
    depth = 0
    quote: Optional[str] = None
    escaped = False
    start = 0

    for index, char in enumerate(text):
        if quote:
            if escaped:
                escaped = False
            elif char == "\\":
                escaped = True
            elif char == quote:
                quote = None
            continue
        if char in ("'", '"'):
            quote = char
        elif char == "{":
            depth += 1
        elif char == "}":
            depth = max(depth - 1, 0)
            if depth == 0:
                rules.append(text[start:index + 1].strip())
                start = index + 1
        elif char == ";" and depth == 0:
            rules.append(text[start:index + 1].strip())
            start = index + 1

    tail = text[start:].strip()
    if tail:
        rules.append(tail)
    return [rule for rule in rules if rule and rule != ";"]


class StyleSheet(ABC):
    """A single stylesheet whose rules may or may not be readable."""

    href: Optional[str] = None

    @abstractmethod
    def rules(self) -> List[str]:
        """
        Return the rule texts in declaration order.

        Raises:
            StyleSheetAccessError: if the rules cannot be enumerated
        """
        raise NotImplementedError

    def describe(self) -> str:
        return self.href or f"<inline {self.__class__.__name__}>"


class InlineStyleSheet(StyleSheet):
    """Rules from a ``<style>`` element."""

    def __init__(self, css_text: str):
        self.css_text = css_text

    def rules(self) -> List[str]:
        return split_css_rules(self.css_text)


class StaticStyleSheet(StyleSheet):
    """Pre-collected rules; ``rules=None`` marks an inaccessible sheet."""

    def __init__(self, rules: Optional[List[str]], href: Optional[str] = None):
        self._rules = rules
        self.href = href

    def rules(self) -> List[str]:
        if self._rules is None:
            raise StyleSheetAccessError(f"Cannot read rules of {self.describe()}")
        return list(self._rules)


class LinkedStyleSheet(StyleSheet):
    """Rules from a ``<link rel="stylesheet">``, readable only from the document's origin."""

    def __init__(self, href: str, base_url: Optional[str], loader: StyleLoader):
        self.raw_href = href
        self.base_url = base_url
        self.href = urljoin(base_url, href) if base_url else href
        self.loader = loader

    def rules(self) -> List[str]:
        if not _same_origin(self.base_url, self.href):
            raise StyleSheetAccessError(f"Cross-origin stylesheet {self.href}")
        try:
            css_text = self.loader(self.href)
        except StyleSheetAccessError:
            raise
        except (OSError, requests.RequestException, ValueError) as exc:
            raise StyleSheetAccessError(f"Failed to load {self.href}: {exc}") from exc
        return split_css_rules(css_text)


def _origin(url: str) -> tuple:
    parsed = urlparse(url)
    return (parsed.scheme.lower(), parsed.netloc.lower())


def _same_origin(base_url: Optional[str], href: str) -> bool:
    if not base_url:
        # No document origin: only relative references are considered local
        return not urlparse(href).scheme
    return _origin(base_url) == _origin(href)


def load_stylesheet(url: str, session: Optional[requests.Session] = None, timeout: float = 10.0) -> str:
    """Default loader: ``file://`` URLs and bare paths are read from disk, http(s) via requests."""
    parsed = urlparse(url)
    if parsed.scheme in ("", "file"):
        path = Path(url2pathname(parsed.path)) if parsed.scheme == "file" else Path(url)
        return path.read_text(encoding="utf-8")
    if parsed.scheme in ("http", "https"):
        http = session or requests
        response = http.get(url, timeout=timeout)
        response.raise_for_status()
        return response.text
    raise StyleSheetAccessError(f"Unsupported stylesheet scheme: {parsed.scheme}")


class DocumentStyleSource:
    """Iterates the ``<style>`` and stylesheet ``<link>`` elements of a parsed document."""

    def __init__(
        self,
        document: BeautifulSoup,
        base_url: Optional[str] = None,
        loader: Optional[StyleLoader] = None,
    ):
        self.document = document
        self.base_url = base_url
        self.loader = loader or load_stylesheet

    def __iter__(self) -> Iterator[StyleSheet]:
        for element in self.document.find_all(["style", "link"]):
            if element.name == "style":
                yield InlineStyleSheet(element.get_text())
                continue
            rel = [value.lower() for value in element.get("rel") or []]
            href = element.get("href")
            if "stylesheet" in rel and href:
                yield LinkedStyleSheet(href, self.base_url, self.loader)


class PageStyleSource:
    """Reads ``document.styleSheets`` from a live (sync) Playwright page."""

    def __init__(self, page):
        self.page = page

    def __iter__(self) -> Iterator[StyleSheet]:
        for entry in self.page.evaluate(_PAGE_STYLESHEETS_JS) or []:
            yield StaticStyleSheet(entry.get("rules"), href=entry.get("href"))


class StaticStyleSource:
    """In-memory list of sheets."""

    def __init__(self, sheets: Iterable[StyleSheet]):
        self.sheets = list(sheets)

    def __iter__(self) -> Iterator[StyleSheet]:
        return iter(self.sheets)


def extract_styles(source: Iterable[StyleSheet]) -> str:
    """
    Concatenate the rule texts of every readable sheet, one rule per line.

    A sheet that fails on rule access is skipped; extraction continues with
    the next sheet.
    """
    parts: List[str] = []
    skipped = 0

    for sheet in source:
        try:
            rules = sheet.rules()
        except StyleSheetAccessError as exc:
            skipped += 1
            logger.debug(f"Skipping inaccessible stylesheet: {exc}")
            continue
        except Exception as exc:
            skipped += 1
            logger.warning(f"Could not read stylesheet {sheet.describe()}: {exc}")
            continue

        for rule in rules:
            parts.append(rule + "\n")

    if skipped:
        logger.info(f"Style snapshot skipped {skipped} stylesheet(s)")
    return "".join(parts)
