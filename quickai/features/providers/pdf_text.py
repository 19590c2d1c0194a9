"""Document text extraction with PyMuPDF."""
import logging

import fitz  # PyMuPDF
from starlette.concurrency import run_in_threadpool

from quickai.core.errors import ValidationError
from quickai.features.providers.contracts import DocumentTextRequest, TextResult

logger = logging.getLogger("quickai")


def extract_pdf_text(pdf_bytes: bytes) -> str:
    """Return the concatenated text of every page, stripped."""
    try:
        doc = fitz.open(stream=pdf_bytes, filetype="pdf")
    except (fitz.FileDataError, RuntimeError, ValueError) as e:
        raise ValidationError(f"Failed to read PDF: {e}")

    try:
        if doc.needs_pass:
            raise ValidationError("PDF is encrypted")
        try:
            pages = [doc.load_page(i).get_text("text") for i in range(doc.page_count)]
        except (ValueError, RuntimeError) as e:
            raise ValidationError(f"Failed to read PDF: {e}")
    finally:
        doc.close()

    return "\n".join(pages).strip()


class PyMuPdfTextProvider:
    """DocumentTextProvider that parses PDFs in the threadpool."""

    name = "pymupdf"

    async def extract(self, request: DocumentTextRequest) -> TextResult:
        text = await run_in_threadpool(extract_pdf_text, request.document)
        return TextResult(text=text)
