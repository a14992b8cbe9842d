"""PDF text extraction via pypdf."""

from __future__ import annotations

import io
import logging

from pypdf import PdfReader
from pypdf.errors import PdfReadError

from sienna.core.utils import ValidationError

logger = logging.getLogger(__name__)


def extract_pdf_text(data: bytes) -> str:
    """Concatenated text of every page, pages separated by blank lines."""
    try:
        reader = PdfReader(io.BytesIO(data))
    except PdfReadError as e:
        raise ValidationError(f"Not a readable PDF: {e}") from e
    pages = [(page.extract_text() or "").strip() for page in reader.pages]
    text = "\n\n".join(p for p in pages if p)
    logger.info("Extracted %d chars from %d PDF pages", len(text), len(reader.pages))
    return text
