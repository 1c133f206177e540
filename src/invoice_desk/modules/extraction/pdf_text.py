from __future__ import annotations

from io import BytesIO

from pypdf import PdfReader
from pypdf.errors import PdfReadError

from invoice_desk.core.logging import get_logger, log_event

logger = get_logger(__name__)


class PdfTextError(ValueError):
    pass


def looks_like_pdf_bytes(body: bytes) -> bool:
    return body[:1024].lstrip().startswith(b"%PDF")


def extract_pdf_text(body: bytes) -> str:
    """Concatenate the text layer of every page; no OCR is attempted."""
    if not body:
        raise PdfTextError("Empty PDF file")
    if not looks_like_pdf_bytes(body):
        raise PdfTextError("File does not look like a PDF")
    try:
        reader = PdfReader(BytesIO(body))
        pages = [
            (page.extract_text() or "").replace("\u202f", " ").replace("\xa0", " ")
            for page in reader.pages
        ]
    except (PdfReadError, ValueError) as e:
        raise PdfTextError(f"Could not read PDF: {e}") from e
    text = "\n".join(pages)
    log_event(
        logger,
        "pdf.text.extracted",
        page_count=len(pages),
        empty_pages=sum(1 for p in pages if not p.strip()),
        char_count=len(text),
    )
    return text
