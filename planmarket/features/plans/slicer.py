"""
planmarket/features/plans/slicer.py

PDF page counting and page-subset extraction (pypdf).

Extraction builds a brand new document with PdfWriter; each copied page
carries its own resources (fonts, images, XObjects), so the output is a
standalone PDF rather than a byte range of the source.
"""

import io
import logging
from typing import Iterable, List

from pypdf import PdfReader, PdfWriter
from pypdf.errors import PyPdfError

from planmarket.core.errors import CorruptDocumentError, InvalidPageRangeError

logger = logging.getLogger(__name__)

PDF_CONTENT_TYPE = "application/pdf"

# pypdf surfaces malformed input as its own errors and, for some structural
# damage, as plain lookup/type errors from the object parser.
_PARSE_ERRORS = (PyPdfError, ValueError, KeyError, IndexError, TypeError, AttributeError)


def _open(document: bytes) -> PdfReader:
    if not document:
        raise CorruptDocumentError("Document is empty")
    try:
        reader = PdfReader(io.BytesIO(document))
        # Page tree is parsed lazily; touch it here so parse errors surface now.
        len(reader.pages)
    except _PARSE_ERRORS as exc:
        raise CorruptDocumentError(f"Document could not be parsed as PDF: {exc}") from exc
    return reader


def page_count(document: bytes) -> int:
    """Return the number of pages in ``document``.

    Raises:
        CorruptDocumentError: unparsable bytes or a PDF without pages
    """
    count = len(_open(document).pages)
    if count < 1:
        raise CorruptDocumentError("Document has no pages")
    return count


def validate_pages(pages: Iterable[int], total_pages: int) -> List[int]:
    """Check every 1-based page number lies in [1, total_pages]."""
    selected = list(pages)
    if not selected:
        raise InvalidPageRangeError("At least one page must be selected")
    out_of_range = [p for p in selected if p < 1 or p > total_pages]
    if out_of_range:
        raise InvalidPageRangeError(
            f"Pages {out_of_range} are outside the valid range 1-{total_pages}"
        )
    return selected


def extract_pages(document: bytes, pages: Iterable[int]) -> bytes:
    """Build a new PDF containing ``pages`` of ``document`` in the given order.

    Args:
        document: Source PDF bytes (never modified)
        pages: 1-based page numbers; output page i is source page pages[i]

    Returns:
        Bytes of the new, independently valid PDF
    """
    reader = _open(document)
    selected = validate_pages(pages, len(reader.pages))

    writer = PdfWriter()
    try:
        for number in selected:
            writer.add_page(reader.pages[number - 1])
        buffer = io.BytesIO()
        writer.write(buffer)
    except _PARSE_ERRORS as exc:
        raise CorruptDocumentError(f"Pages could not be copied from document: {exc}") from exc

    output = buffer.getvalue()
    logger.debug("pdf.extract", extra={"pages": ",".join(map(str, selected)), "bytes": len(output)})
    return output
