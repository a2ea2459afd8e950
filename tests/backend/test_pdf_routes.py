from datetime import date

import pytest
from fastapi.testclient import TestClient

from backend.app import main
from backend.app.main import app
from backend.app.routes.pdf import content_disposition
from backend.app.services.pdf_render_service import get_pdf_renderer
from exporter.models import default_filename
from exporter.render_client import filename_from_disposition
from tests.fakes import MINIMAL_PDF, StubRenderer


@pytest.fixture
def renderer():
    stub = StubRenderer()
    app.dependency_overrides[get_pdf_renderer] = lambda: stub
    yield stub
    app.dependency_overrides.clear()


@pytest.fixture
def client(renderer):
    return TestClient(app)


def test_health(client):
    response = client.get("/health")
    assert response.status_code == 200
    assert response.json() == {"status": "OK", "service": "PDF Generator API"}


def test_generate_pdf_returns_attachment(client, renderer):
    response = client.post(
        "/api/generate-pdf",
        json={"html": "<html><body>r</body></html>", "filename": "Reporte_A.pdf", "options": {"format": "A4"}},
    )

    assert response.status_code == 200
    assert response.headers["content-type"] == "application/pdf"
    assert response.headers["content-disposition"] == 'attachment; filename="Reporte_A.pdf"'
    assert response.content == MINIMAL_PDF
    assert int(response.headers["content-length"]) == len(MINIMAL_PDF)
    assert renderer.calls == [{"html": "<html><body>r</body></html>", "options": {"format": "A4"}}]


def test_generate_pdf_default_filename(client):
    response = client.post("/api/generate-pdf", json={"html": "<p>x</p>"})
    assert response.headers["content-disposition"] == 'attachment; filename="reporte.pdf"'


def test_generate_pdf_strips_header_breaking_chars(client):
    response = client.post("/api/generate-pdf", json={"html": "<p>x</p>", "filename": 'a"b\r\nc.pdf'})
    assert response.headers["content-disposition"] == 'attachment; filename="a_b__c.pdf"'


@pytest.mark.parametrize("body", [{}, {"html": ""}, {"html": None}])
def test_generate_pdf_requires_html(client, renderer, body):
    response = client.post("/api/generate-pdf", json=body)
    assert response.status_code == 400
    assert response.json() == {"error": "HTML es requerido"}
    assert renderer.calls == []


def test_generate_pdf_malformed_body(client):
    response = client.post(
        "/api/generate-pdf",
        content=b"not json",
        headers={"Content-Type": "application/json"},
    )
    assert response.status_code == 400
    assert response.json() == {"error": "HTML es requerido"}


@pytest.mark.parametrize("method", ["get", "put", "delete"])
def test_other_methods_not_allowed(client, renderer, method):
    response = getattr(client, method)("/api/generate-pdf")
    assert response.status_code == 405
    assert response.json() == {"error": "Método no permitido"}
    assert renderer.calls == []


def test_render_failure_returns_500(client, renderer):
    renderer.error = RuntimeError("Chromium crashed")
    response = client.post("/api/generate-pdf", json={"html": "<p>x</p>"})
    assert response.status_code == 500
    assert response.json() == {"error": "Error interno del servidor", "message": "Chromium crashed"}


def test_oversized_body_rejected(client, renderer, monkeypatch):
    monkeypatch.setitem(main.render_config, "max_body_bytes", 64)
    response = client.post("/api/generate-pdf", json={"html": "<p>" + "x" * 200 + "</p>"})
    assert response.status_code == 413
    assert response.json()["error"] == "Contenido demasiado grande"
    assert renderer.calls == []


def test_cors_preflight(client):
    response = client.options(
        "/api/generate-pdf",
        headers={"Origin": "http://localhost:3000", "Access-Control-Request-Method": "POST"},
    )
    assert response.status_code == 200
    assert "access-control-allow-origin" in response.headers


def test_generate_pdf_non_latin1_filename(client, renderer):
    filename = default_filename("Команда Север", date(2024, 1, 1))

    response = client.post("/api/generate-pdf", json={"html": "<p>x</p>", "filename": filename})

    assert response.status_code == 200
    assert response.content == MINIMAL_PDF
    disposition = response.headers["content-disposition"]
    assert disposition.startswith('attachment; filename="Reporte_Liderazgo_')
    assert filename_from_disposition(disposition) == filename
    assert len(renderer.calls) == 1


@pytest.mark.parametrize(
    "filename, expected",
    [
        ("Reporte.pdf", 'attachment; filename="Reporte.pdf"'),
        ("Reporte España.pdf", "attachment; filename=\"Reporte_Espana.pdf\"; filename*=UTF-8''Reporte%20Espa%C3%B1a.pdf"),
        ("Отчет.pdf", "attachment; filename=\"reporte.pdf\"; filename*=UTF-8''%D0%9E%D1%82%D1%87%D0%B5%D1%82.pdf"),
    ],
)
def test_content_disposition(filename, expected):
    assert content_disposition(filename) == expected
