"""
Client for the headless render service.

Endpoints are tried strictly in order. A network error and a non-2xx status
are the same thing here: the endpoint is unavailable and the next one is
tried. There is no retry against an endpoint that already failed, and no
request is made after the first success.
"""
from __future__ import annotations

import re
import shutil
import tempfile
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Dict, List, Optional, Sequence
from urllib.parse import unquote, urljoin, urlparse

import requests
from loguru import logger

from exporter.errors import RenderUnavailable, ServiceError
from exporter.models import RenderRequest, RenderResult, RenderSuccess, RenderUnavailableResult

_FILENAME_STAR_RE = re.compile(r"filename\*\s*=\s*([^']*)'[^']*'([^;]+)", re.IGNORECASE)
_FILENAME_RE = re.compile(r'filename\s*=\s*"([^"]*)"|filename\s*=\s*([^;]+)', re.IGNORECASE)
_UNSAFE_FILENAME_CHARS = re.compile(r'[\\/:*?"<>|\x00-\x1f]')


def filename_from_disposition(header: Optional[str]) -> Optional[str]:
    """Extract the suggested filename from a Content-Disposition header."""
    if not header:
        return None
    match = _FILENAME_STAR_RE.search(header)
    if match:
        return unquote(match.group(2).strip().strip('"'))
    match = _FILENAME_RE.search(header)
    if match:
        value = match.group(1) if match.group(1) is not None else match.group(2)
        value = value.strip()
        return value or None
    return None


def service_error_from_response(response) -> ServiceError:
    """Build a ServiceError from an error response (``{error, message}`` JSON when available)."""
    status_code = response.status_code
    reason = getattr(response, "reason", None) or getattr(response, "reason_phrase", "") or ""
    try:
        body = response.json()
    except ValueError:
        body = None

    if isinstance(body, dict) and body.get("error"):
        details = {"message": body["message"]} if body.get("message") else None
        return ServiceError(str(body["error"]), status_code=status_code, details=details)
    return ServiceError(str(reason) or f"HTTP {status_code}", status_code=status_code)


def sanitize_filename(filename: str, default: str = "reporte.pdf") -> str:
    name = _UNSAFE_FILENAME_CHARS.sub("_", Path(filename.replace("\\", "/")).name).strip(" .")
    return name or default


class RemoteRenderClient:
    """Posts a RenderRequest to an ordered list of render endpoints."""

    def __init__(
        self,
        endpoints: Sequence[str],
        session: Optional[requests.Session] = None,
        timeout: Optional[float] = None,
        base_url: Optional[str] = None,
    ):
        if not endpoints:
            raise ValueError("At least one render endpoint is required")
        self.base_url = base_url
        self.endpoints: List[str] = [self._resolve(endpoint) for endpoint in endpoints]
        self.session = session or requests.Session()
        self.timeout = timeout

    def _resolve(self, endpoint: str) -> str:
        # Relative endpoints (deployed function paths) need the app's origin
        if self.base_url and not urlparse(endpoint).scheme:
            return urljoin(self.base_url, endpoint)
        return endpoint

    def attempt(self, request: RenderRequest, endpoint: str) -> RenderResult:
        """Single POST to one endpoint; never raises for transport or HTTP failures."""
        try:
            response = self.session.post(
                endpoint,
                json=request.to_payload(),
                headers={"Content-Type": "application/json"},
                timeout=self.timeout,
            )
        except (requests.RequestException, OSError) as exc:
            logger.info(f"Render endpoint {endpoint} unreachable: {exc}")
            return RenderUnavailableResult(endpoint=endpoint, reason=str(exc))

        status_code = response.status_code
        if not 200 <= status_code < 300:
            error = service_error_from_response(response)
            logger.info(f"Render endpoint {endpoint} answered HTTP {status_code}: {error}")
            return RenderUnavailableResult(endpoint=endpoint, reason=error.message, status_code=status_code)

        headers = response.headers
        filename = filename_from_disposition(headers.get("Content-Disposition")) or request.filename
        return RenderSuccess(
            endpoint=endpoint,
            content=response.content,
            filename=filename,
            content_type=headers.get("Content-Type", "application/pdf"),
        )

    def render(self, request: RenderRequest, attempts: Optional[List[RenderResult]] = None) -> RenderSuccess:
        """
        Try each endpoint in order and return the first success.

        Args:
            request: The request, sent unchanged to every candidate
            attempts: Optional list that receives every attempt result in order

        Raises:
            RenderUnavailable: when every endpoint failed
        """
        log = attempts if attempts is not None else []
        failures: List[RenderUnavailableResult] = []

        for index, endpoint in enumerate(self.endpoints, start=1):
            logger.debug(f"Render attempt {index}/{len(self.endpoints)} -> {endpoint}")
            result = self.attempt(request, endpoint)
            log.append(result)
            if isinstance(result, RenderSuccess):
                logger.info(f"PDF rendered by {endpoint} ({result.size} bytes)")
                return result
            failures.append(result)

        logger.warning(f"All {len(self.endpoints)} render endpoint(s) unavailable")
        raise RenderUnavailable(failures)

    def close(self) -> None:
        self.session.close()


class DownloadHost(ABC):
    """Where a rendered PDF ends up: object URL, synthetic click, revoke."""

    @abstractmethod
    def create_object_url(self, content: bytes, content_type: str) -> str:
        raise NotImplementedError

    @abstractmethod
    def click_download(self, object_url: str, filename: str) -> Path:
        raise NotImplementedError

    @abstractmethod
    def revoke_object_url(self, object_url: str) -> None:
        raise NotImplementedError


class DirectoryDownloadHost(DownloadHost):
    """Stages the payload in a temp file and saves it into a downloads directory."""

    def __init__(self, downloads_dir: Path):
        self.downloads_dir = Path(downloads_dir)
        self._staged: Dict[str, Path] = {}

    @property
    def active_urls(self) -> List[str]:
        return list(self._staged)

    def create_object_url(self, content: bytes, content_type: str) -> str:
        suffix = ".pdf" if content_type.startswith("application/pdf") else ".bin"
        with tempfile.NamedTemporaryFile(prefix="export-", suffix=suffix, delete=False) as handle:
            handle.write(content)
            staged = Path(handle.name)
        object_url = staged.as_uri()
        self._staged[object_url] = staged
        return object_url

    def _target_path(self, filename: str) -> Path:
        target = self.downloads_dir / sanitize_filename(filename)
        counter = 1
        while target.exists():
            stem = Path(sanitize_filename(filename)).stem
            suffix = Path(sanitize_filename(filename)).suffix
            target = self.downloads_dir / f"{stem} ({counter}){suffix}"
            counter += 1
        return target

    def click_download(self, object_url: str, filename: str) -> Path:
        staged = self._staged.get(object_url)
        if staged is None:
            raise KeyError(f"Unknown or revoked object URL: {object_url}")
        self.downloads_dir.mkdir(parents=True, exist_ok=True)
        target = self._target_path(filename)
        shutil.copyfile(staged, target)
        return target

    def revoke_object_url(self, object_url: str) -> None:
        staged = self._staged.pop(object_url, None)
        if staged is not None:
            staged.unlink(missing_ok=True)


def deliver(result: RenderSuccess, host: DownloadHost, filename: Optional[str] = None) -> Path:
    """Hand the PDF to the download host; the object URL is always revoked."""
    object_url = host.create_object_url(result.content, result.content_type)
    try:
        saved_path = host.click_download(object_url, filename or result.filename)
    finally:
        host.revoke_object_url(object_url)
    logger.info(f"PDF downloaded to {saved_path}")
    return saved_path
