"""
PDF text extraction service using pdfplumber.

Turns an uploaded PDF into plain text for the extraction prompts.
"""

import io
import logging
import re
from typing import BinaryIO

import pdfplumber

from ..exceptions import UnreadableDocumentError

logger = logging.getLogger(__name__)

_HORIZONTAL_WHITESPACE = re.compile(r"[ \t]+")


class PDFService:
    """
    Service for PDF text extraction.

    Uses pdfplumber (backed by pdfminer.six) to read the text layer of each
    page. Image-only PDFs yield empty text; the pipeline reports those as
    empty documents.
    """

    def __init__(self, page_separator: str = "\n\n"):
        """
        Initialize the PDF service.

        Args:
            page_separator: String inserted between the text of consecutive pages.
        """
        self.page_separator = page_separator

    def _read_bytes(self, file_bytes: bytes | BinaryIO) -> bytes:
        if hasattr(file_bytes, "read"):
            return file_bytes.read()
        return file_bytes

    def extract_pages(self, file_bytes: bytes | BinaryIO) -> list[str]:
        """
        Extract text per page.

        Args:
            file_bytes: PDF file as bytes or file-like object.

        Returns:
            List of page texts, one per page, in page order.

        Raises:
            UnreadableDocumentError: If the file is empty, not a PDF, or corrupt.
        """
        pdf_bytes = self._read_bytes(file_bytes)

        if not pdf_bytes:
            raise UnreadableDocumentError("Empty PDF file provided")

        # Validate PDF magic bytes
        if not pdf_bytes[:4] == b"%PDF":
            raise UnreadableDocumentError(
                "Invalid PDF file: does not start with PDF header"
            )

        try:
            pages: list[str] = []
            with pdfplumber.open(io.BytesIO(pdf_bytes)) as pdf:
                for page in pdf.pages:
                    text = page.extract_text() or ""
                    pages.append(_HORIZONTAL_WHITESPACE.sub(" ", text).strip())
        except Exception as e:
            logger.error("PDF text extraction failed: %s", e)
            raise UnreadableDocumentError(f"Invalid or corrupted PDF file: {e}") from e

        logger.info(
            "Extracted text from %d page(s), %d characters",
            len(pages),
            sum(len(p) for p in pages),
        )
        return pages

    def extract_text(self, file_bytes: bytes | BinaryIO) -> str:
        """
        Extract the full text of a PDF.

        Args:
            file_bytes: PDF file as bytes or file-like object.

        Returns:
            Text of all pages joined by the page separator. Pages without
            text are skipped.

        Raises:
            UnreadableDocumentError: If the document cannot be read.
        """
        pages = self.extract_pages(file_bytes)
        return self.page_separator.join(p for p in pages if p)


# Singleton instance for convenience
_pdf_service: PDFService | None = None


def get_pdf_service() -> PDFService:
    """Get or create the PDF service singleton."""
    global _pdf_service
    if _pdf_service is None:
        _pdf_service = PDFService()
    return _pdf_service
