import pytest

from planmarket.core.errors import CorruptDocumentError, InvalidPageRangeError
from planmarket.features.plans import slicer
from planmarket.tests.pdfs import make_pdf, source_pages


def test_page_count_of_generated_document():
    assert slicer.page_count(make_pdf(4)) == 4


def test_extract_keeps_requested_order():
    document = make_pdf(4)
    output = slicer.extract_pages(document, [3, 1])

    assert slicer.page_count(output) == 2
    assert source_pages(output) == [3, 1]


def test_extract_is_standalone_and_leaves_source_untouched():
    document = make_pdf(5)
    original = bytes(document)

    output = slicer.extract_pages(document, [2, 4, 5])

    assert document == original
    assert output.startswith(b"%PDF-")
    assert source_pages(output) == [2, 4, 5]


@pytest.mark.parametrize("pages", [[0], [5], [1, 6], [-1], []])
def test_out_of_range_pages_are_rejected(pages):
    with pytest.raises(InvalidPageRangeError):
        slicer.extract_pages(make_pdf(4), pages)


@pytest.mark.parametrize("document", [b"", b"not a pdf at all", make_pdf(3)[:40]])
def test_unparsable_documents_are_corrupt(document):
    with pytest.raises(CorruptDocumentError):
        slicer.page_count(document)


def test_document_without_pages_is_corrupt():
    with pytest.raises(CorruptDocumentError):
        slicer.page_count(make_pdf(0))


def test_validate_pages_returns_selection():
    assert slicer.validate_pages([2, 1], 2) == [2, 1]
