from datetime import date

import pytest
import requests
from fastapi.testclient import TestClient

from backend.app.main import app
from backend.app.services.pdf_render_service import get_pdf_renderer
from core.config import Config
from exporter.errors import ContentNotFoundError, ExportFailedError, USER_FACING_FAILURE
from exporter.models import ExportState, RenderSuccess, default_filename
from exporter.pipeline import ExportPipeline
from exporter.print_fallback import FallbackPrintPresenter, MemoryOpener
from exporter.render_client import DirectoryDownloadHost, RemoteRenderClient
from tests.fakes import MINIMAL_PDF, FakeSession, StubRenderer, make_document, pdf_response

ENDPOINT = "http://localhost:3001/api/generate-pdf"


class RaisingPresenter(FallbackPrintPresenter):
    def present(self, html, title=""):
        raise RuntimeError("window.open crashed")


class RecordingSession:
    """Wraps the in-process TestClient and keeps every response."""

    def __init__(self, client: TestClient):
        self.client = client
        self.responses = []

    def post(self, url, json=None, headers=None, timeout=None):
        response = self.client.post(url, json=json, headers=headers)
        self.responses.append(response)
        return response

    def close(self):
        self.client.close()


def make_pipeline(session, tmp_path, opener=None, endpoints=(ENDPOINT,)):
    client = RemoteRenderClient(list(endpoints), session=session)
    presenter = FallbackPrintPresenter(opener) if opener is not None else None
    return ExportPipeline(client, DirectoryDownloadHost(tmp_path), presenter)


def test_default_filename():
    assert default_filename("Equipo  Norte", date(2024, 3, 5)) == "Reporte_Liderazgo_Equipo_Norte_2024-03-05.pdf"


def test_export_downloads_pdf(tmp_path):
    session = FakeSession({ENDPOINT: pdf_response(filename="Reporte.pdf")})
    opener = MemoryOpener()
    pipeline = make_pipeline(session, tmp_path, opener)

    outcome = pipeline.export(make_document(), "category-report-content", team_name="Norte")

    assert outcome.downloaded
    assert outcome.saved_path.read_bytes() == MINIMAL_PDF
    assert outcome.filename == "Reporte.pdf"
    assert opener.contexts == []
    assert pipeline.transitions == [
        ExportState.SNAPSHOTTING,
        ExportState.RENDER_ATTEMPT,
        ExportState.DOWNLOAD,
        ExportState.IDLE,
    ]
    assert pipeline.state is ExportState.IDLE

    payload = session.calls[0]["json"]
    assert payload["filename"].startswith("Reporte_Liderazgo_Norte_")
    assert "<title>Reporte de Liderazgo - Norte</title>" in payload["html"]
    assert "export-buttons\"" not in payload["html"].split("<body>", 1)[1]
    assert payload["options"]["format"] == "Letter"


def test_missing_root_makes_no_request(tmp_path):
    session = FakeSession({ENDPOINT: pdf_response()})
    opener = MemoryOpener()
    pipeline = make_pipeline(session, tmp_path, opener)

    with pytest.raises(ContentNotFoundError):
        pipeline.export(make_document("<div id='other'></div>"), "report-root")

    assert session.calls == []
    assert opener.contexts == []
    assert pipeline.state is ExportState.IDLE


def test_all_endpoints_down_uses_fallback_once(tmp_path):
    session = FakeSession({})
    opener = MemoryOpener()
    pipeline = make_pipeline(session, tmp_path, opener, endpoints=("http://a/pdf", "http://b/pdf"))

    outcome = pipeline.export(make_document(), "category-report-content")

    assert outcome.state is ExportState.FALLBACK
    assert outcome.fallback_opened is True
    assert len(outcome.attempts) == 2
    assert len(opener.contexts) == 1
    assert "Imprimir PDF" in opener.contexts[0].html
    assert "Resumen ejecutivo" in opener.contexts[0].html
    assert list(tmp_path.iterdir()) == []
    assert pipeline.transitions[-2:] == [ExportState.FALLBACK, ExportState.IDLE]


def test_fallback_blocked_is_not_an_error(tmp_path):
    pipeline = make_pipeline(FakeSession({}), tmp_path, MemoryOpener(blocked=True))
    outcome = pipeline.export(make_document(), "category-report-content")
    assert outcome.state is ExportState.FALLBACK
    assert outcome.fallback_opened is False


def test_fallback_failure_surfaces_user_message(tmp_path):
    client = RemoteRenderClient([ENDPOINT], session=FakeSession({}))
    pipeline = ExportPipeline(client, DirectoryDownloadHost(tmp_path), RaisingPresenter(MemoryOpener()))

    with pytest.raises(ExportFailedError) as excinfo:
        pipeline.export(make_document(), "category-report-content")

    assert excinfo.value.message == USER_FACING_FAILURE
    assert pipeline.state is ExportState.IDLE


def test_no_presenter_raises_export_failed(tmp_path):
    pipeline = make_pipeline(FakeSession({}), tmp_path)
    with pytest.raises(ExportFailedError):
        pipeline.export(make_document(), "category-report-content")


def test_download_failure_falls_back(tmp_path):
    class BrokenHost(DirectoryDownloadHost):
        def click_download(self, object_url, filename):
            raise OSError("read-only filesystem")

    client = RemoteRenderClient([ENDPOINT], session=FakeSession({ENDPOINT: pdf_response()}))
    opener = MemoryOpener()
    pipeline = ExportPipeline(client, BrokenHost(tmp_path), FallbackPrintPresenter(opener))

    outcome = pipeline.export(make_document(), "category-report-content")

    assert outcome.state is ExportState.FALLBACK
    assert isinstance(outcome.attempts[0], RenderSuccess)
    assert len(opener.contexts) == 1


def test_round_trip_through_render_service(tmp_path):
    renderer = StubRenderer()
    app.dependency_overrides[get_pdf_renderer] = lambda: renderer
    try:
        session = RecordingSession(TestClient(app))
        pipeline = make_pipeline(session, tmp_path, MemoryOpener(), endpoints=("http://testserver/api/generate-pdf",))

        outcome = pipeline.export(
            make_document(),
            "category-report-content",
            filename="Reporte_Liderazgo_Sur_2024-05-01.pdf",
        )
    finally:
        app.dependency_overrides.clear()

    (response,) = session.responses
    assert response.status_code == 200
    assert outcome.downloaded
    assert outcome.filename == "Reporte_Liderazgo_Sur_2024-05-01.pdf"
    saved = outcome.saved_path.read_bytes()
    assert len(saved) == int(response.headers["content-length"])
    assert saved.startswith(b"%PDF")
    assert renderer.calls[0]["options"]["printBackground"] is True


def test_round_trip_keeps_non_latin1_team_filename(tmp_path):
    renderer = StubRenderer()
    app.dependency_overrides[get_pdf_renderer] = lambda: renderer
    try:
        session = RecordingSession(TestClient(app))
        opener = MemoryOpener()
        pipeline = make_pipeline(session, tmp_path, opener, endpoints=("http://testserver/api/generate-pdf",))

        outcome = pipeline.export(make_document(), "category-report-content", team_name="Команда Север")
    finally:
        app.dependency_overrides.clear()

    (response,) = session.responses
    assert response.status_code == 200
    assert outcome.downloaded
    assert opener.contexts == []
    assert outcome.filename == default_filename("Команда Север")
    assert outcome.saved_path.read_bytes() == MINIMAL_PDF


def test_from_config_uses_configured_endpoints(tmp_path, monkeypatch):
    monkeypatch.setenv("PDF_EXPORT_ENDPOINTS", "http://one/pdf, http://two/pdf")

    pipeline = ExportPipeline.from_config(
        Config(str(tmp_path / "missing.yaml")),
        session=requests.Session(),
        opener=MemoryOpener(),
        downloads_dir=tmp_path,
    )

    assert pipeline.client.endpoints == ["http://one/pdf", "http://two/pdf"]
    assert pipeline.download_host.downloads_dir == tmp_path
    assert pipeline.presenter is not None
