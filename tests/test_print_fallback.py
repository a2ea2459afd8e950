from exporter.print_fallback import (
    PRINT_CONTROL,
    FallbackPrintPresenter,
    MemoryOpener,
    WebBrowserOpener,
    build_print_document,
)


def test_build_print_document_inserts_before_last_body_close():
    html = "<html><body><p>a</p></body></html>"
    result = build_print_document(html)
    assert result == "<html><body><p>a</p>" + PRINT_CONTROL + "</body></html>"
    assert "window.print(); window.close();" in result
    assert "Imprimir PDF" in result


def test_build_print_document_without_body_appends():
    assert build_print_document("<p>fragment</p>") == "<p>fragment</p>" + PRINT_CONTROL


def test_present_writes_closes_and_focuses():
    opener = MemoryOpener()
    presenter = FallbackPrintPresenter(opener)

    assert presenter.present("<html><body>r</body></html>", "Reporte") is True

    (context,) = opener.contexts
    assert context.closed and context.focused
    assert "@media print" in context.html
    assert context.html.count("Imprimir PDF") == 1


def test_present_blocked_popup_returns_false():
    opener = MemoryOpener(blocked=True)
    assert FallbackPrintPresenter(opener).present("<html></html>") is False
    assert opener.contexts == []


def test_web_browser_opener_writes_file_and_launches(tmp_path):
    launched = []

    def launcher(url, new=0):
        launched.append((url, new))
        return True

    presenter = FallbackPrintPresenter(WebBrowserOpener(directory=tmp_path, launcher=launcher))

    assert presenter.present("<html><body>r</body></html>") is True
    written = (tmp_path / "print.html").read_text(encoding="utf-8")
    assert "Imprimir PDF" in written
    assert launched == [((tmp_path / "print.html").resolve().as_uri(), 2)]


def test_web_browser_refusal_counts_as_blocked(tmp_path):
    presenter = FallbackPrintPresenter(WebBrowserOpener(directory=tmp_path, launcher=lambda url, new=0: False))
    assert presenter.present("<html><body>r</body></html>") is False


def test_web_browser_opener_reuses_one_directory(tmp_path, monkeypatch):
    created = []

    def fake_mkdtemp(prefix=""):
        path = tmp_path / f"{prefix}{len(created)}"
        path.mkdir()
        created.append(path)
        return str(path)

    monkeypatch.setattr("exporter.print_fallback.tempfile.mkdtemp", fake_mkdtemp)
    opener = WebBrowserOpener(launcher=lambda url, new=0: True)
    presenter = FallbackPrintPresenter(opener)

    assert presenter.present("<html><body>first</body></html>") is True
    assert presenter.present("<html><body>second</body></html>") is True

    assert created == [opener.directory]
    assert [p.name for p in opener.directory.iterdir()] == ["print.html"]
    assert "second" in (opener.directory / "print.html").read_text(encoding="utf-8")
