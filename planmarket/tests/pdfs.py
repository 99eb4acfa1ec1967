"""PDF builders for tests.

Page i (1-based) of a generated document is a blank page 99 + i points wide,
so a page can be traced back to its source position after extraction.
"""

import io
from typing import List

from pypdf import PdfReader, PdfWriter


def make_pdf(pages: int) -> bytes:
    writer = PdfWriter()
    for i in range(pages):
        writer.add_blank_page(width=100 + i, height=200)
    buffer = io.BytesIO()
    writer.write(buffer)
    return buffer.getvalue()


def source_pages(document: bytes) -> List[int]:
    """1-based source page numbers of every page in ``document``."""
    reader = PdfReader(io.BytesIO(document))
    return [int(round(float(page.mediabox.width))) - 99 for page in reader.pages]
