"""Tests for document text extraction, upload storage and URL fetching."""

import io

import docx
import httpx
import pytest
from PyPDF2 import PdfWriter

from config.exceptions import DocumentParseError, InputError, StorageTimeoutError, UnsupportedFileTypeError
from tools.document_parser import get_file_type, parse_document
from tools.storage import LocalStorage, fetch_url_text


def _docx_bytes(*paragraphs: str) -> bytes:
    document = docx.Document()
    for p in paragraphs:
        document.add_paragraph(p)
    buf = io.BytesIO()
    document.save(buf)
    return buf.getvalue()


def _blank_pdf_bytes() -> bytes:
    writer = PdfWriter()
    writer.add_blank_page(width=200, height=200)
    buf = io.BytesIO()
    writer.write(buf)
    return buf.getvalue()


class TestGetFileType:
    @pytest.mark.parametrize("filename,expected", [
        ("notes.pdf", "pdf"),
        ("Notes.PDF", "pdf"),
        ("report.docx", "docx"),
        ("legacy.doc", "docx"),
        ("README.md", "md"),
        ("plain.txt", "txt"),
        ("slides.pptx", None),
        ("no_extension", None),
    ])
    def test_extension_mapping(self, filename, expected):
        assert get_file_type(filename) == expected


class TestParseDocument:
    def test_markdown(self):
        text = parse_document(b"# Title\r\n\r\n\r\n\r\nBody text about cells.", "notes.md")
        assert text == "# Title\n\nBody text about cells."

    def test_plain_text_utf8(self):
        assert parse_document("细胞是生命的基本单位。".encode("utf-8"), "notes.txt") == "细胞是生命的基本单位。"

    def test_word_document(self):
        data = _docx_bytes("Photosynthesis happens in chloroplasts.", "", "Light is converted to energy.")
        text = parse_document(data, "bio.docx")
        assert text == "Photosynthesis happens in chloroplasts.\n\nLight is converted to energy."

    def test_unsupported_extension(self):
        with pytest.raises(UnsupportedFileTypeError):
            parse_document(b"data", "slides.pptx")

    def test_empty_file(self):
        with pytest.raises(DocumentParseError, match="empty"):
            parse_document(b"", "notes.md")

    def test_too_short(self):
        with pytest.raises(DocumentParseError):
            parse_document(b"tiny", "notes.txt")

    def test_corrupt_word_document(self):
        with pytest.raises(DocumentParseError, match="Word"):
            parse_document(b"definitely not a zip archive", "bio.docx")

    def test_corrupt_pdf(self):
        with pytest.raises(DocumentParseError):
            parse_document(b"not a pdf at all", "paper.pdf")

    def test_pdf_without_text(self):
        with pytest.raises(DocumentParseError, match="no readable text"):
            parse_document(_blank_pdf_bytes(), "scan.pdf")


class TestLocalStorage:
    @pytest.mark.asyncio
    async def test_save_upload_and_parse(self, tmp_path, storage):
        source = tmp_path / "lecture.md"
        source.write_text("# Lecture\n\nEnzymes lower activation energy.", encoding="utf-8")
        key = storage.save_upload(source)
        assert key.endswith("/lecture.md")
        text = await storage.fetch_and_parse(key, "lecture.md")
        assert "Enzymes lower activation energy." in text

    @pytest.mark.asyncio
    async def test_filename_defaults_to_key_name(self, storage):
        key = storage.save_bytes(b"Some readable plain text.", "note.txt")
        assert await storage.fetch_and_parse(key) == "Some readable plain text."

    def test_save_upload_rejects_unsupported(self, tmp_path, storage):
        source = tmp_path / "deck.pptx"
        source.write_bytes(b"x")
        with pytest.raises(InputError):
            storage.save_upload(source)

    def test_save_upload_missing_file(self, tmp_path, storage):
        with pytest.raises(InputError):
            storage.save_upload(tmp_path / "missing.md")

    def test_missing_key(self, storage):
        with pytest.raises(InputError, match="not found"):
            storage.read_bytes("abc/missing.md")

    def test_key_cannot_escape_root(self, storage):
        with pytest.raises(InputError, match="Invalid file key"):
            storage.read_bytes("../../etc/passwd")


@pytest.fixture
def mock_http(monkeypatch):
    """Route fetch_url_text through an httpx.MockTransport; returns the captured requests."""
    real_client = httpx.AsyncClient
    state = {"handler": None, "requests": []}

    def handler(request):
        state["requests"].append(request)
        return state["handler"](request)

    def factory(**kwargs):
        return real_client(transport=httpx.MockTransport(handler), **kwargs)

    monkeypatch.setattr(httpx, "AsyncClient", factory)
    return state


class TestFetchUrlText:
    @pytest.mark.asyncio
    async def test_fetch_through_reader_prefix(self, settings, mock_http):
        mock_http["handler"] = lambda request: httpx.Response(200, text="Readable page content.\r\n")
        text = await fetch_url_text("https://example.org/article", settings)
        assert text == "Readable page content."
        url = mock_http["requests"][0].url
        assert url.host == "r.jina.ai"
        assert "example.org/article" in str(url)

    @pytest.mark.asyncio
    async def test_http_error_is_input_error(self, settings, mock_http):
        mock_http["handler"] = lambda request: httpx.Response(404, text="not found")
        with pytest.raises(InputError, match="404"):
            await fetch_url_text("https://example.org/missing", settings)

    @pytest.mark.asyncio
    async def test_timeout_is_transient(self, settings, mock_http):
        def slow(request):
            raise httpx.ReadTimeout("timed out", request=request)

        mock_http["handler"] = slow
        with pytest.raises(StorageTimeoutError):
            await fetch_url_text("https://example.org/slow", settings)

    @pytest.mark.asyncio
    async def test_connection_error(self, settings, mock_http):
        def refused(request):
            raise httpx.ConnectError("refused", request=request)

        mock_http["handler"] = refused
        with pytest.raises(InputError, match="Failed to fetch"):
            await fetch_url_text("https://example.org/down", settings)

    @pytest.mark.asyncio
    async def test_empty_page(self, settings, mock_http):
        mock_http["handler"] = lambda request: httpx.Response(200, text="   ")
        with pytest.raises(InputError, match="no readable content"):
            await fetch_url_text("https://example.org/blank", settings)
