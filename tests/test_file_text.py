"""Tests for file_text.py: reference document text extraction."""

import io
from unittest.mock import MagicMock, patch

import pytest
import requests
from docx import Document

from notegen.docx_writer import LessonMetadata
from notegen.file_text import extract_text, extract_text_from_url
from notegen.pdf_export import render_lesson_note_pdf


@pytest.fixture
def docx_bytes():
    doc = Document()
    doc.add_paragraph("Strand 1: Number")
    doc.add_paragraph("")
    table = doc.add_table(rows=2, cols=3)
    table.cell(0, 0).text = "Week"
    table.cell(0, 1).text = "Topic"
    table.cell(0, 2).text = "Resources"
    table.cell(1, 0).text = "1"
    merged = table.cell(1, 1).merge(table.cell(1, 2))
    merged.text = "Fractions"
    buf = io.BytesIO()
    doc.save(buf)
    return buf.getvalue()


class TestExtractText:

    def test_docx_paragraphs_and_tables(self, docx_bytes):
        text = extract_text(docx_bytes, "scheme.docx")
        assert text.splitlines() == ["Strand 1: Number", "Week | Topic | Resources", "1 | Fractions"]

    def test_docx_from_path(self, docx_bytes, tmp_path):
        path = tmp_path / "scheme.docx"
        path.write_bytes(docx_bytes)
        assert "Week | Topic | Resources" in extract_text(str(path), "scheme.docx")

    def test_empty_docx(self):
        buf = io.BytesIO()
        Document().save(buf)
        assert extract_text(buf.getvalue(), "empty.docx") == "[Empty DOCX file]"

    def test_pdf_pages(self):
        pdf = render_lesson_note_pdf("Count the stones in groups of two.", LessonMetadata())
        text = extract_text(pdf, "note.pdf")
        assert text.startswith("--- Page 1 ---")
        assert "Count the stones" in text

    def test_html_visible_text(self):
        page = b"<html><head><style>p{}</style><script>var x=1;</script></head><body><p>Hello</p><p>World</p></body></html>"
        assert extract_text(page, "page.html") == "Hello\nWorld"

    def test_plain_text(self):
        assert extract_text("Akwaaba".encode("utf-8"), "notes.txt") == "Akwaaba"

    def test_unsupported(self):
        out = extract_text(b"\x00", "slides.pptx")
        assert out == "[Content extraction for .pptx files is not currently supported. File: slides.pptx]"

    def test_unreadable(self):
        out = extract_text(b"not a zip", "broken.docx")
        assert out.startswith("[Error reading file broken.docx:")


class TestExtractFromUrl:

    def test_downloads_and_extracts(self):
        resp = MagicMock()
        resp.content = b"Curriculum text"
        with patch("notegen.file_text.requests.get", return_value=resp) as get:
            assert extract_text_from_url("https://example.com/files/curriculum.txt?x=1") == "Curriculum text"
        assert get.call_args.kwargs["timeout"] == 30

    def test_network_error(self):
        with patch("notegen.file_text.requests.get", side_effect=requests.ConnectionError("down")):
            out = extract_text_from_url("https://example.com/a.pdf")
        assert out.startswith("[Error reading file a.pdf:")
