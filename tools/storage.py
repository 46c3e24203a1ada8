"""Uploaded-file storage and remote content fetching."""

import asyncio
import logging
import shutil
import uuid
from pathlib import Path, PurePath
from typing import Optional, Protocol, runtime_checkable

import httpx

from config.exceptions import InputError, StorageError, StorageTimeoutError
from config.settings import Settings, get_settings
from tools.document_parser import MIN_TEXT_LENGTH, get_file_type, parse_document
from tools.text_utils import normalize_newlines

logger = logging.getLogger(__name__)


@runtime_checkable
class StorageReader(Protocol):
    """Anything that can turn a stored file reference into plain text."""

    async def fetch_and_parse(self, file_key: str, filename: Optional[str] = None) -> str:
        ...


class LocalStorage:
    """Stores uploads under a local directory, keyed by ``<uuid>/<filename>``."""

    def __init__(self, root: str | Path):
        self.root = Path(root)
        self.root.mkdir(parents=True, exist_ok=True)

    def _path(self, file_key: str) -> Path:
        path = (self.root / file_key).resolve()
        if self.root.resolve() not in path.parents:
            raise InputError(f"Invalid file key: {file_key}")
        return path

    def save_upload(self, source: str | Path, filename: Optional[str] = None) -> str:
        """Copy a local file into storage and return its file key."""
        source = Path(source)
        if not source.is_file():
            raise InputError(f"File not found: {source}")
        filename = filename or source.name
        if get_file_type(filename) is None:
            raise InputError(f"Unsupported file type: {filename}")
        file_key = f"{uuid.uuid4().hex}/{PurePath(filename).name}"
        target = self._path(file_key)
        target.parent.mkdir(parents=True, exist_ok=True)
        shutil.copyfile(source, target)
        logger.info("Stored upload %s as %s", source, file_key)
        return file_key

    def save_bytes(self, data: bytes, filename: str) -> str:
        file_key = f"{uuid.uuid4().hex}/{PurePath(filename).name}"
        target = self._path(file_key)
        target.parent.mkdir(parents=True, exist_ok=True)
        target.write_bytes(data)
        return file_key

    def read_bytes(self, file_key: str) -> bytes:
        path = self._path(file_key)
        try:
            return path.read_bytes()
        except FileNotFoundError as e:
            raise InputError(f"Stored file not found: {file_key}") from e
        except OSError as e:
            raise StorageError(f"Failed to read stored file {file_key}: {e}") from e

    async def fetch_and_parse(self, file_key: str, filename: Optional[str] = None) -> str:
        """Read a stored file and extract its text.

        Raises:
            InputError: Missing file or unsupported type.
            DocumentParseError: Empty/corrupt content or under 10 readable characters.
        """
        filename = filename or PurePath(file_key).name
        data = await asyncio.to_thread(self.read_bytes, file_key)
        text = await asyncio.to_thread(parse_document, data, filename)
        logger.info("Parsed %s: %d chars", filename, len(text))
        return text


async def fetch_url_text(url: str, settings: Optional[Settings] = None) -> str:
    """Fetch a web page as readable text through the configured reader proxy.

    Raises:
        StorageTimeoutError: The fetch timed out.
        InputError: Non-2xx response, connection failure, or no readable content.
    """
    settings = settings or get_settings()
    reader_url = f"{settings.url_reader_prefix}{url}"
    try:
        async with httpx.AsyncClient(timeout=settings.fetch_timeout_seconds, follow_redirects=True) as client:
            response = await client.get(reader_url)
            response.raise_for_status()
    except httpx.TimeoutException as e:
        raise StorageTimeoutError(f"Timed out fetching {url}") from e
    except httpx.HTTPStatusError as e:
        raise InputError(f"Failed to fetch URL: HTTP {e.response.status_code}", {"url": url}) from e
    except httpx.RequestError as e:
        raise InputError(f"Failed to fetch URL: {e}", {"url": url}) from e

    text = normalize_newlines(response.text)
    if len(text) < MIN_TEXT_LENGTH:
        raise InputError("URL returned no readable content", {"url": url})
    logger.info("Fetched %s: %d chars", url, len(text))
    return text
