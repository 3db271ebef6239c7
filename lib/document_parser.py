"""
Resume text extraction.

Clients send each resume as ``{fileName, text, type}``. Plain-text resumes
arrive as-is; PDF and DOCX files arrive as base64 data URLs and are decoded
and parsed here. Every result is stripped of NUL and other control bytes
before it is stored or sent to a model.
"""

import asyncio
import base64
import binascii
import logging
from io import BytesIO
import re
from typing import Iterable, Union

import pdfplumber
from docx import Document


logger = logging.getLogger(__name__)

PDF_DATA_URL_PREFIX = "data:application/pdf;base64,"
DOCX_DATA_URL_PREFIX = (
    "data:application/vnd.openxmlformats-officedocument.wordprocessingml.document;base64,"
)

# NUL and C0 control characters except tab, newline and carriage return
_CONTROL_CHARS_RE = re.compile(r"[\x00-\x08\x0B\x0C\x0E-\x1F]")

StreamLike = Union[BytesIO, bytes, bytearray, memoryview]


class DocumentParseError(Exception):
    """Raised when an uploaded document cannot be turned into text."""


def clean_text(text: str) -> str:
    """Remove NUL and control bytes that databases and models reject."""
    return _CONTROL_CHARS_RE.sub("", text or "")


def decode_data_url(data_url: str, prefix: str) -> bytes:
    """
    Decode a base64 data URL.

    Args:
        data_url: Full data URL, e.g. ``data:application/pdf;base64,JVBE...``
        prefix: Expected ``data:<mime>;base64,`` prefix

    Raises:
        DocumentParseError: If the prefix is missing or the payload is not base64
    """
    if not data_url.startswith(prefix):
        raise DocumentParseError("Unexpected data URL prefix")
    try:
        return base64.b64decode(data_url[len(prefix):], validate=False)
    except (binascii.Error, ValueError) as e:
        raise DocumentParseError(f"Invalid base64 payload: {e}") from e


async def extract_resume_text(text: str, file_type: str = "txt") -> str:
    """
    Turn an uploaded resume into clean plain text.

    Args:
        text: Raw text, or a base64 data URL for PDF/DOCX uploads
        file_type: ``pdf``, ``docx`` or anything else for plain text

    Returns:
        Cleaned resume text

    Raises:
        DocumentParseError: If a PDF or DOCX payload cannot be parsed
    """
    file_type = (file_type or "txt").lower()
    text = text or ""

    if file_type == "pdf" and text.startswith(PDF_DATA_URL_PREFIX):
        try:
            text = await extract_text_from_pdf_stream(decode_data_url(text, PDF_DATA_URL_PREFIX))
        except DocumentParseError:
            raise
        except Exception as e:
            raise DocumentParseError(f"PDF parsing failed: {e}") from e
        logger.info(f"Extracted {len(text)} characters from PDF")

    elif file_type == "docx" and text.startswith(DOCX_DATA_URL_PREFIX):
        try:
            text = await extract_text_from_docx_stream(decode_data_url(text, DOCX_DATA_URL_PREFIX))
        except DocumentParseError:
            raise
        except Exception as e:
            raise DocumentParseError(f"DOCX parsing failed: {e}") from e
        logger.info(f"Extracted {len(text)} characters from DOCX")

    return clean_text(text)


async def extract_text_from_pdf_stream(file_stream: StreamLike) -> str:
    """Return normalized text from a PDF stream without blocking the event loop."""
    stream = _prepare_stream(file_stream)
    return await asyncio.to_thread(_extract_pdf_text_sync, stream)


async def extract_text_from_docx_stream(file_stream: StreamLike) -> str:
    """Return normalized text from a DOCX stream, including table cells."""
    stream = _prepare_stream(file_stream)
    return await asyncio.to_thread(_extract_docx_text_sync, stream)


def _extract_pdf_text_sync(file_stream: BytesIO) -> str:
    chunks: list[str] = []

    with pdfplumber.open(file_stream) as pdf:
        for idx, page in enumerate(pdf.pages, start=1):
            try:
                page_text = page.extract_text() or ""
            except Exception as exc:  # pragma: no cover - pdfplumber internals
                logger.warning("Skipping unreadable PDF page %s: %s", idx, exc)
                continue
            if page_text:
                chunks.append(page_text)

    text = _normalize_text(chunks)
    if not text:
        logger.info("PDF contained no extractable text")
    return text


def _extract_docx_text_sync(file_stream: BytesIO) -> str:
    doc = Document(file_stream)
    text = _normalize_text(_iter_docx_text(doc))
    if not text:
        logger.info("DOCX contained no extractable text")
    return text


def _iter_docx_text(doc) -> Iterable[str]:
    for para in doc.paragraphs:
        if para.text:
            yield para.text

    for table in doc.tables:
        for row in table.rows:
            for cell in row.cells:
                if cell.text:
                    yield cell.text


def _normalize_text(chunks: Iterable[str]) -> str:
    """Trim chunks, drop empty ones and join them with single line breaks."""
    cleaned = [chunk.strip() for chunk in chunks if chunk and chunk.strip()]
    if not cleaned:
        return ""

    text = "\n".join(cleaned)
    text = re.sub(r"\n{3,}", "\n\n", text)
    return text.strip()


def _prepare_stream(file_stream: StreamLike) -> BytesIO:
    if isinstance(file_stream, (bytes, bytearray, memoryview)):
        stream = BytesIO(file_stream)
    else:
        stream = file_stream

    if stream.closed:
        raise ValueError("file_stream is closed")

    stream.seek(0)
    return stream
