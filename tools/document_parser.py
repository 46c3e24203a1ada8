"""Extract plain text from uploaded documents (pdf, docx, md, txt)."""

import io
import logging
from pathlib import PurePath
from typing import Optional

import docx
from PyPDF2 import PdfReader
from PyPDF2.errors import PdfReadError

from config.exceptions import DocumentParseError, UnsupportedFileTypeError
from tools.text_utils import normalize_newlines

logger = logging.getLogger(__name__)

# Shorter extracted text is treated as unreadable
MIN_TEXT_LENGTH = 10

FILE_EXTENSIONS: dict[str, str] = {
    ".pdf": "pdf",
    ".docx": "docx",
    ".doc": "docx",
    ".md": "md",
    ".txt": "txt",
}


def get_file_type(filename: str) -> Optional[str]:
    """Map a filename's extension to a parser key, or None if unsupported."""
    return FILE_EXTENSIONS.get(PurePath(filename).suffix.lower())


def _require_text(text: str, filename: str, kind: str) -> str:
    text = normalize_newlines(text)
    if len(text) < MIN_TEXT_LENGTH:
        raise DocumentParseError(f"{kind} contains no readable text content", filename=filename)
    return text


def parse_pdf(data: bytes, filename: str = "") -> str:
    """Join the text of every page; pages without text are skipped."""
    try:
        reader = PdfReader(io.BytesIO(data))
        if reader.is_encrypted:
            reader.decrypt("")
        pages = []
        for i, page in enumerate(reader.pages):
            extracted = page.extract_text() or ""
            if extracted.strip():
                pages.append(extracted)
            else:
                logger.debug("PDF %s page %d yielded no text (scanned?)", filename, i + 1)
    except (PdfReadError, ValueError, OSError) as e:
        raise DocumentParseError(f"Failed to parse PDF: {e}", filename=filename) from e
    return _require_text("\n\n".join(pages), filename, "PDF")


def parse_word(data: bytes, filename: str = "") -> str:
    """Paragraph text of a .docx document, separated by blank lines."""
    try:
        document = docx.Document(io.BytesIO(data))
    except Exception as e:
        # python-docx raises zipfile/KeyError/lxml errors for legacy or corrupt files
        raise DocumentParseError(f"Failed to parse Word document: {e}", filename=filename) from e
    text = "\n\n".join(p.text for p in document.paragraphs if p.text.strip())
    return _require_text(text, filename, "Word document")


def parse_markdown(content: str, filename: str = "") -> str:
    return _require_text(content, filename, "Markdown file")


def parse_document(data: bytes, filename: str) -> str:
    """Dispatch on file extension and return normalized plain text.

    Raises:
        UnsupportedFileTypeError: Unknown extension.
        DocumentParseError: Empty, corrupt, or fewer than 10 readable characters.
    """
    file_type = get_file_type(filename)
    if file_type is None:
        raise UnsupportedFileTypeError(filename)
    if not data:
        raise DocumentParseError("File is empty", filename=filename)

    if file_type == "pdf":
        return parse_pdf(data, filename)
    if file_type == "docx":
        return parse_word(data, filename)
    return parse_markdown(data.decode("utf-8", errors="replace"), filename)
