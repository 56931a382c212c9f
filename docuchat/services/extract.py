
import io
import logging
from typing import Optional

from pdfminer.high_level import extract_pages
from pdfminer.layout import LTTextContainer
from docx import Document as DocxDocument
import chardet

from ..errors import ExtractionError

logger = logging.getLogger(__name__)

DOCX_MIME = "application/vnd.openxmlformats-officedocument.wordprocessingml.document"
PDF_MIME = "application/pdf"
TEXT_MIMES = ("text/plain", "text/csv")


def _decode(content: bytes) -> str:
    enc = chardet.detect(content).get("encoding") or "utf-8"
    try:
        return content.decode(enc, errors="ignore")
    except LookupError:
        return content.decode("utf-8", errors="ignore")


def _row_texts(row) -> list:
    texts, seen = [], None
    for cell in row.cells:
        # a merged cell is repeated once per grid column it spans
        if cell._tc is seen:
            continue
        seen = cell._tc
        texts.append(cell.text)
    return texts


def _extract_docx(content: bytes) -> str:
    try:
        doc = DocxDocument(io.BytesIO(content))
    except Exception as e:
        raise ExtractionError(f"Failed to parse DOCX: {e}") from e
    lines = [p.text for p in doc.paragraphs]
    for table in doc.tables:
        for row in table.rows:
            lines.append("\t".join(_row_texts(row)))
    text = "\n".join(lines).strip()
    if not text:
        raise ExtractionError("Failed to parse DOCX: no text could be extracted")
    return text


def _extract_pdf(content: bytes) -> str:
    try:
        pages = []
        for page in extract_pages(io.BytesIO(content)):
            pages.append("".join(el.get_text() for el in page if isinstance(el, LTTextContainer)).strip())
    except Exception as e:
        raise ExtractionError(f"Failed to parse PDF: {e}") from e
    text = "\n\n".join(p for p in pages if p)
    if not text:
        raise ExtractionError(
            "Failed to parse PDF: no text could be extracted - the document may be image-based or encrypted"
        )
    return text


def extract_text(filename: str, content: bytes, mime_type: Optional[str] = None) -> str:
    """Turn raw file bytes into plain text based on MIME type or extension."""
    name = (filename or "").lower()
    mime = (mime_type or "").lower()

    if mime in TEXT_MIMES or name.endswith((".txt", ".csv")):
        text = _decode(content)
    elif mime == DOCX_MIME or name.endswith(".docx"):
        text = _extract_docx(content)
    elif mime == PDF_MIME or name.endswith(".pdf"):
        text = _extract_pdf(content)
    else:
        # Unknown types: best effort
        text = _decode(content)

    logger.info("Extracted %d characters from %s (%s)", len(text), filename, mime or "unknown type")
    return text
