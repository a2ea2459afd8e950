"""
Export pipeline: snapshot -> remote render -> download, or print fallback.

States run ``idle -> snapshotting -> render_attempt -> download | fallback``
and always end back in ``idle``. A finished run is never restarted
automatically; the caller triggers a new export.
"""
from __future__ import annotations

from pathlib import Path
from typing import Iterable, List, Optional

import requests
from bs4 import BeautifulSoup
from loguru import logger

from core.config import Config
from exporter.dom_snapshot import DEFAULT_FALLBACK_IDS, DEFAULT_FONT_URL, build_export_document, take_snapshot
from exporter.errors import ExportFailedError, RenderUnavailable
from exporter.models import (
    ExportOutcome,
    ExportState,
    RenderOptions,
    RenderRequest,
    RenderResult,
    default_filename,
    default_title,
)
from exporter.print_fallback import BrowsingContextOpener, FallbackPrintPresenter, WebBrowserOpener
from exporter.render_client import DirectoryDownloadHost, DownloadHost, RemoteRenderClient, deliver
from exporter.style_snapshot import DocumentStyleSource, StyleSheet


class ExportPipeline:
    """Runs one export at a time for a report view."""

    def __init__(
        self,
        client: RemoteRenderClient,
        download_host: DownloadHost,
        presenter: Optional[FallbackPrintPresenter] = None,
        *,
        font_url: Optional[str] = DEFAULT_FONT_URL,
        fallback_ids: Iterable[str] = DEFAULT_FALLBACK_IDS,
    ):
        self.client = client
        self.download_host = download_host
        self.presenter = presenter
        self.font_url = font_url
        self.fallback_ids = list(fallback_ids)
        self.state = ExportState.IDLE
        self.transitions: List[ExportState] = []

    @classmethod
    def from_config(
        cls,
        config: Optional[Config] = None,
        *,
        session: Optional[requests.Session] = None,
        opener: Optional[BrowsingContextOpener] = None,
        downloads_dir: Optional[Path] = None,
        endpoints: Optional[List[str]] = None,
        use_fallback: bool = True,
    ) -> "ExportPipeline":
        config = config or Config()
        export_config = config.get_export_config()
        client = RemoteRenderClient(
            endpoints or export_config['endpoints'],
            session=session,
            timeout=export_config['request_timeout'],
            base_url=config.get('export.base_url'),
        )
        presenter = FallbackPrintPresenter(opener or WebBrowserOpener()) if use_fallback else None
        return cls(
            client,
            DirectoryDownloadHost(downloads_dir or export_config['downloads_dir']),
            presenter,
            font_url=export_config['font_url'],
            fallback_ids=export_config['fallback_ids'],
        )

    def _enter(self, state: ExportState) -> None:
        logger.debug(f"Export state: {self.state.value} -> {state.value}")
        self.state = state
        self.transitions.append(state)

    def export(
        self,
        document: BeautifulSoup,
        content_id: str,
        style_source: Optional[Iterable[StyleSheet]] = None,
        *,
        team_name: str = "Equipo",
        title: Optional[str] = None,
        filename: Optional[str] = None,
        options: Optional[RenderOptions] = None,
    ) -> ExportOutcome:
        """
        Export the report root of ``document`` to PDF.

        Raises:
            ContentNotFoundError: the report root is missing; nothing is sent
            ExportFailedError: rendering and the print fallback both failed
        """
        title = title or default_title(team_name)
        filename = filename or default_filename(team_name)
        options = options or RenderOptions()
        style_source = style_source if style_source is not None else DocumentStyleSource(document)
        attempts: List[RenderResult] = []
        html: Optional[str] = None

        self.transitions = []
        try:
            self._enter(ExportState.SNAPSHOTTING)
            snapshot = take_snapshot(document, content_id, style_source, self.fallback_ids)

            try:
                html = build_export_document(snapshot, title, options, self.font_url)
                request = RenderRequest(html=html, filename=filename, options=options)

                self._enter(ExportState.RENDER_ATTEMPT)
                result = self.client.render(request, attempts)

                self._enter(ExportState.DOWNLOAD)
                saved_path = deliver(result, self.download_host)
                return ExportOutcome(
                    state=ExportState.DOWNLOAD,
                    filename=saved_path.name,
                    attempts=attempts,
                    saved_path=saved_path,
                )
            except RenderUnavailable as exc:
                logger.warning(f"Render service unavailable, using print fallback: {exc}")
                return self._fallback(html or snapshot.markup, title, filename, attempts)
            except Exception as exc:
                logger.exception(f"PDF export failed, using print fallback: {exc}")
                return self._fallback(html or snapshot.markup, title, filename, attempts, cause=exc)
        finally:
            self._enter(ExportState.IDLE)

    def _fallback(
        self,
        html: str,
        title: str,
        filename: str,
        attempts: List[RenderResult],
        cause: Optional[BaseException] = None,
    ) -> ExportOutcome:
        self._enter(ExportState.FALLBACK)
        if self.presenter is None:
            raise ExportFailedError(cause or RenderUnavailable(attempts))

        try:
            opened = self.presenter.present(html, title)
        except Exception as exc:
            logger.error(f"Print fallback failed: {exc}")
            raise ExportFailedError(exc) from exc

        return ExportOutcome(
            state=ExportState.FALLBACK,
            filename=filename,
            attempts=attempts,
            fallback_opened=opened,
        )
