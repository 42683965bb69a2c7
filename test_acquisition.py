"""Tests for text acquisition: local OCR, spreadsheets and Document AI."""

import io
from types import SimpleNamespace

import pytest
from google.api_core import exceptions as gcp_exceptions
from PIL import Image

from taxdoc import document_parser
from taxdoc.document_ai import DocumentAIClient
from taxdoc.document_parser import (
    AcquisitionError, DocumentParser, SourceDocument, SpreadsheetParser,
    acquire_text, guess_mime_type,
)


def _png_bytes() -> bytes:
    buffer = io.BytesIO()
    Image.new("L", (20, 20), color=255).save(buffer, format="PNG")
    return buffer.getvalue()


class FakePage:
    def __init__(self, chars):
        self.chars = chars

    def to_image(self, resolution):
        return SimpleNamespace(original=Image.new("RGB", (10, 10)))


class FakePDF:
    def __init__(self, pages):
        self.pages = pages

    def __enter__(self):
        return self

    def __exit__(self, *exc):
        return False


def _chars(text, top=10):
    return [
        {'text': ch, 'top': top, 'x0': i * 6.0, 'x1': i * 6.0 + 5.0, 'size': 10}
        for i, ch in enumerate(text)
    ]


def test_guess_mime_type():
    assert guess_mime_type("scan.PDF") == "application/pdf"
    assert guess_mime_type("w2.jpeg") == "image/jpeg"
    assert guess_mime_type("forms.csv") == "text/csv"
    with pytest.raises(AcquisitionError):
        guess_mime_type("notes.unknownext")


def test_source_document_from_path(tmp_path):
    path = tmp_path / "1099-int.csv"
    path.write_bytes(b"Form Type,1099-INT\n")
    document = SourceDocument.from_path(str(path))
    assert document.mime_type == "text/csv"
    assert document.filename == "1099-int.csv"
    assert document.is_spreadsheet


def test_image_ocr_with_corrections(monkeypatch):
    calls = []

    def fake_ocr(image, lang=None):
        calls.append((image.mode, lang))
        return "Form l099-NEC\nNonemployee compensation 5,000.00"

    monkeypatch.setattr(document_parser.pytesseract, "image_to_string", fake_ocr)
    acquired = DocumentParser().acquire(SourceDocument(_png_bytes(), "image/png", "scan.png"))
    assert acquired.text.startswith("Form 1099-NEC")
    assert acquired.entities == []
    assert acquired.source == "tesseract"
    assert calls == [("RGB", "eng")]


def test_pdf_spatial_text_used_when_substantial(monkeypatch):
    line = "1 Wages, tips, other compensation 55,000.00 2 Federal income tax withheld 6,200.00"
    pages = [FakePage(_chars(line, top=10) + _chars(line, top=30) + _chars(line, top=50))]
    monkeypatch.setattr(document_parser.pdfplumber, "open", lambda fp: FakePDF(pages))

    def no_ocr(*args, **kwargs):
        raise AssertionError("OCR should not run")

    monkeypatch.setattr(document_parser.pytesseract, "image_to_string", no_ocr)
    acquired = DocumentParser().acquire(SourceDocument(b"%PDF", "application/pdf"))
    assert acquired.text.splitlines()[0] == line


def test_pdf_falls_back_to_ocr_when_thin(monkeypatch):
    pages = [FakePage(_chars("W-2")), FakePage([])]
    monkeypatch.setattr(document_parser.pdfplumber, "open", lambda fp: FakePDF(pages))
    monkeypatch.setattr(
        document_parser.pytesseract, "image_to_string",
        lambda image, lang=None: "Wage and Tax Statement",
    )
    acquired = DocumentParser(dpi=200).acquire(SourceDocument(b"%PDF", "application/pdf"))
    assert acquired.text == "Wage and Tax Statement\n\nWage and Tax Statement"


def test_garbled_detection():
    assert DocumentParser._is_garbled("Z\nP\nI\nA\nreal line here")
    assert not DocumentParser._is_garbled("a normal line\nanother normal line")


def test_unsupported_type_for_ocr():
    with pytest.raises(AcquisitionError):
        DocumentParser().acquire(SourceDocument(b"x", "application/zip"))


def test_spreadsheet_key_value_entities():
    csv = (
        b"Form Type,W-2\n"
        b"Employer Name,Acme Corp\n"
        b"Box 1 Wages,\"52,000.00\"\n"
        b"Box 2 Federal Income Tax Withheld,6000\n"
    )
    acquired = SpreadsheetParser().acquire(SourceDocument(csv, "text/csv", "w2.csv"))
    assert [(e.type, e.mention_text) for e in acquired.entities] == [
        ("form type", "W-2"),
        ("employer name", "Acme Corp"),
        ("box 1 wages", "52,000.00"),
        ("box 2 federal income tax withheld", "6000"),
    ]
    assert all(e.confidence == 1.0 for e in acquired.entities)
    assert "Acme Corp" in acquired.text


def test_spreadsheet_other_shapes_return_text_only():
    csv = b"a,b,c\n1,2,3\n"
    acquired = SpreadsheetParser().acquire(SourceDocument(csv, "text/csv"))
    assert acquired.entities == []
    assert acquired.text


def test_acquire_text_wraps_failures():
    class Broken:
        name = "broken"

        def acquire(self, document):
            raise RuntimeError("engine crashed")

    with pytest.raises(AcquisitionError) as exc_info:
        acquire_text(SourceDocument(b"x", "application/pdf", "w2.pdf"), Broken())
    assert "engine crashed" in str(exc_info.value)
    assert isinstance(exc_info.value.__cause__, RuntimeError)


def test_source_bytes_not_mutated(monkeypatch):
    monkeypatch.setattr(
        document_parser.pytesseract, "image_to_string", lambda image, lang=None: "text"
    )
    content = _png_bytes()
    document = SourceDocument(content, "image/png")
    DocumentParser().acquire(document)
    assert document.content == content


# ---------------------------------------------------------------------------
# Document AI
# ---------------------------------------------------------------------------

def _docai_result(text="W-2 Wage and Tax Statement", entities=()):
    return SimpleNamespace(document=SimpleNamespace(text=text, entities=list(entities)))


def _docai_entity(type_, mention, normalized="", confidence=0.9):
    return SimpleNamespace(
        type_=type_,
        mention_text=mention,
        normalized_value=SimpleNamespace(text=normalized),
        confidence=confidence,
    )


class FakeDocAIClient:
    def __init__(self, outcomes):
        self.outcomes = list(outcomes)
        self.requests = []

    def process_document(self, request, timeout):
        self.requests.append((request, timeout))
        outcome = self.outcomes.pop(0)
        if isinstance(outcome, Exception):
            raise outcome
        return outcome


def _client(outcomes, sleeps):
    fake = FakeDocAIClient(outcomes)
    client = DocumentAIClient(
        project_id="proj", processor_id="proc", location="us",
        client=fake, sleep=sleeps.append,
    )
    return client, fake


def test_document_ai_returns_text_and_entities():
    sleeps = []
    result = _docai_result(entities=[
        _docai_entity("wages_tips_other_compensation", "$50,000.00", normalized="", confidence=0.97),
    ])
    client, fake = _client([result], sleeps)
    acquired = client.acquire(SourceDocument(b"%PDF", "application/pdf", "w2.pdf"))

    assert acquired.text == "W-2 Wage and Tax Statement"
    assert acquired.source == "document_ai"
    entity = acquired.entities[0]
    assert entity.type == "wages_tips_other_compensation"
    assert entity.mention_text == "$50,000.00"
    assert entity.normalized_value is None
    assert entity.confidence == 0.97
    request, timeout = fake.requests[0]
    assert request.name == "projects/proj/locations/us/processors/proc"
    assert request.raw_document.mime_type == "application/pdf"
    assert timeout == 60.0
    assert sleeps == []


def test_document_ai_retries_transient_failures():
    sleeps = []
    client, fake = _client([
        gcp_exceptions.ServiceUnavailable("down"),
        gcp_exceptions.DeadlineExceeded("slow"),
        _docai_result(),
    ], sleeps)
    acquired = client.acquire(SourceDocument(b"%PDF", "application/pdf"))
    assert acquired.text == "W-2 Wage and Tax Statement"
    assert len(fake.requests) == 3
    assert sleeps == [5.0, 5.0]


def test_document_ai_gives_up_after_three_attempts():
    sleeps = []
    client, fake = _client([ConnectionError("reset")] * 3, sleeps)
    with pytest.raises(AcquisitionError):
        client.acquire(SourceDocument(b"%PDF", "application/pdf"))
    assert len(fake.requests) == 3
    assert sleeps == [5.0, 5.0]


def test_document_ai_does_not_retry_rejections():
    sleeps = []
    client, fake = _client([gcp_exceptions.InvalidArgument("bad pdf")], sleeps)
    with pytest.raises(AcquisitionError):
        client.acquire(SourceDocument(b"%PDF", "application/pdf"))
    assert len(fake.requests) == 1
    assert sleeps == []


def test_document_ai_missing_document():
    client, _ = _client([SimpleNamespace(document=None)], [])
    with pytest.raises(AcquisitionError):
        client.acquire(SourceDocument(b"%PDF", "application/pdf"))
