from exporter import cli
from exporter.pipeline import ExportPipeline
from exporter.print_fallback import FallbackPrintPresenter, MemoryOpener
from exporter.render_client import DirectoryDownloadHost, RemoteRenderClient
from tests.fakes import REPORT_HTML, FakeSession, pdf_response

ENDPOINT = "http://render.local/api/generate-pdf"


def install_pipeline(monkeypatch, session, tmp_path, opener=None):
    captured = {}

    def from_config(config=None, **kwargs):
        captured.update(kwargs)
        client = RemoteRenderClient(kwargs.get("endpoints") or [ENDPOINT], session=session)
        presenter = FallbackPrintPresenter(opener) if kwargs.get("use_fallback") and opener else None
        return ExportPipeline(client, DirectoryDownloadHost(kwargs.get("downloads_dir") or tmp_path), presenter)

    monkeypatch.setattr(ExportPipeline, "from_config", staticmethod(from_config))
    return captured


def write_report(tmp_path):
    source = tmp_path / "report.html"
    source.write_text(REPORT_HTML, encoding="utf-8")
    return source


def test_cli_downloads_pdf(tmp_path, monkeypatch, capsys):
    session = FakeSession({ENDPOINT: pdf_response(filename="Reporte_CLI.pdf")})
    captured = install_pipeline(monkeypatch, session, tmp_path)
    out_dir = tmp_path / "out"

    code = cli.main([
        "--source", str(write_report(tmp_path)),
        "--team", "Norte",
        "--out", str(out_dir),
        "--endpoint", ENDPOINT,
        "--page-size", "A4",
    ])

    assert code == 0
    assert (out_dir / "Reporte_CLI.pdf").exists()
    assert captured["endpoints"] == [ENDPOINT]
    assert session.calls[0]["json"]["options"]["format"] == "A4"
    assert "PDF saved to" in capsys.readouterr().out


def test_cli_fallback_opened(tmp_path, monkeypatch):
    opener = MemoryOpener()
    install_pipeline(monkeypatch, FakeSession({}), tmp_path, opener)

    assert cli.main(["--source", str(write_report(tmp_path))]) == 0
    assert len(opener.contexts) == 1


def test_cli_no_fallback_fails(tmp_path, monkeypatch):
    install_pipeline(monkeypatch, FakeSession({}), tmp_path, MemoryOpener())
    assert cli.main(["--source", str(write_report(tmp_path)), "--no-fallback"]) == 1


def test_cli_missing_report_root(tmp_path, monkeypatch):
    session = FakeSession({})
    install_pipeline(monkeypatch, session, tmp_path)
    source = tmp_path / "empty.html"
    source.write_text("<html><body></body></html>", encoding="utf-8")
    assert cli.main(["--source", str(source)]) == 1
    assert session.calls == []


def test_cli_bad_arguments(tmp_path, monkeypatch):
    install_pipeline(monkeypatch, FakeSession({}), tmp_path)
    assert cli.main(["--source", str(tmp_path / "missing.html")]) == 2
    assert cli.main(["--source", str(write_report(tmp_path)), "--page-size", "tabloid"]) == 2
