"""Reads the uploaded database file and assembles the DocumentRequest.

The database is a plain-text blob (notes, CSV, JSON, markdown) that every
section prompt embeds. A missing or blank database is a MissingInputError,
raised before any generation call.
"""

import asyncio
import logging
from pathlib import Path

from fastapi import HTTPException
from fastapi import UploadFile

from app.core.config import settings
from app.core.exceptions import MissingInputError
from app.core.validation import ALLOWED_EXTENSIONS
from app.core.validation import MAX_FILE_SIZE
from app.core.validation import MAX_TITLE_CHARS
from app.core.validation import TEXT_ENCODINGS
from app.models.document_models import DocumentRequest

__all__ = [
    "_build_document_request",
    "_read_database_file",
]

logger = logging.getLogger(__name__)


def _decode_text(contents: bytes, filename: str, request_id: str) -> str:
    for encoding in TEXT_ENCODINGS:
        try:
            return contents.decode(encoding)
        except UnicodeDecodeError:
            logger.debug("[%s] %s is not valid %s", request_id, filename, encoding)
    # latin-1 decodes any byte sequence, so this is only reached if TEXT_ENCODINGS is changed
    raise HTTPException(status_code=400, detail=f"Could not decode '{filename}' as text.")


async def _read_database_file(f_obj: UploadFile | None, request_id: str) -> str:
    """Validates and decodes the uploaded database file."""
    if f_obj is None or not f_obj.filename:
        logger.warning("[%s] No database file supplied", request_id)
        raise MissingInputError("Please upload a database file.")

    filename = f_obj.filename
    ext = Path(filename).suffix.lower()
    if ext not in ALLOWED_EXTENSIONS:
        logger.warning("[%s] Rejected database file with invalid extension: %s", request_id, filename)
        raise HTTPException(
            status_code=400,
            detail=f"Unsupported file type ('{filename}'). Allowed extensions: {', '.join(sorted(ALLOWED_EXTENSIONS))}",
        )

    try:
        if hasattr(f_obj.file, "seek") and callable(f_obj.file.seek):
            await asyncio.to_thread(f_obj.file.seek, 0)
        contents = await f_obj.read()
    except Exception as read_err:
        logger.error("[%s] Failed to read %s: %s", request_id, filename, read_err, exc_info=True)
        raise HTTPException(status_code=400, detail=f"Could not read '{filename}'.") from read_err

    size = len(contents)
    if size > MAX_FILE_SIZE:
        logger.warning("[%s] Rejected oversized database file: %s (%d bytes)", request_id, filename, size)
        raise HTTPException(
            status_code=413,
            detail=f"File '{filename}' too large ({size // (1024 * 1024)}MB). Limit: {MAX_FILE_SIZE // (1024 * 1024)}MB",
        )

    text = _decode_text(contents, filename, request_id)
    if not text.strip():
        logger.warning("[%s] Database file %s is empty", request_id, filename)
        raise MissingInputError(f"The database file '{filename}' is empty.")
    if len(text) > settings.max_database_chars:
        raise HTTPException(
            status_code=413,
            detail=f"Database text too large ({len(text)} chars, limit {settings.max_database_chars}).",
        )

    logger.info("[%s] Database file %s read: %d chars", request_id, filename, len(text))
    return text


async def _build_document_request(
    title: str,
    style: str,
    length: str,
    database_file: UploadFile | None,
    request_id: str,
) -> DocumentRequest:
    if not title or not title.strip():
        raise MissingInputError("A document title is required.")
    if len(title) > MAX_TITLE_CHARS:
        raise HTTPException(status_code=400, detail=f"Title longer than {MAX_TITLE_CHARS} characters.")
    database_text = await _read_database_file(database_file, request_id)
    return DocumentRequest(title=title, database_text=database_text, style=style or "formal", length=length or "medium")
