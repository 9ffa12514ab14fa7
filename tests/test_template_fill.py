"""Tests for template_fill.py: placeholders in a school's own .docx template."""

import io
from datetime import date

import pytest
from docx import Document

from notegen.docx_writer import DocumentGenerationError
from notegen.lesson_plan import LessonPlan
from notegen.template_fill import (
    UNCLOSED_TAG_MESSAGE,
    UNOPENED_TAG_MESSAGE,
    TemplateFillError,
    check_tags,
    fill_lesson_plan_template,
    fill_template,
    lesson_template_fields,
    template_filename,
)

PLAN = LessonPlan.from_dict({
    "subject": "Mathematics",
    "class": "Basic 6",
    "weekEnding": "12th January, 2024",
    "phases": {
        "phase1_starter": {"duration": "10 mins", "learnerActivities": "Sing a counting song\nCount in twos"},
    },
})


def _template(body_text="Subject: {subject}") -> bytes:
    doc = Document()
    doc.add_paragraph(body_text)
    split = doc.add_paragraph()
    split.add_run("Class: {cla").bold = True
    split.add_run("ss}")
    table = doc.add_table(rows=1, cols=2)
    table.cell(0, 0).text = "{phase1_activities}"
    table.cell(0, 1).text = "Notes: {unknownField}"
    header = doc.sections[0].header
    header.is_linked_to_previous = False
    header.paragraphs[0].text = "Week ending {weekEnding}"
    buf = io.BytesIO()
    doc.save(buf)
    return buf.getvalue()


def _open(data: bytes):
    return Document(io.BytesIO(data))


class TestFillTemplate:

    def test_body_table_and_header(self):
        doc = _open(fill_lesson_plan_template(PLAN, _template()))
        texts = [p.text for p in doc.paragraphs]
        assert texts[:2] == ["Subject: Mathematics", "Class: Basic 6"]
        assert doc.tables[0].cell(0, 1).text == "Notes: "
        assert doc.sections[0].header.paragraphs[0].text == "Week ending 12th January, 2024"

    def test_split_run_keeps_first_run_formatting(self):
        paragraph = _open(fill_lesson_plan_template(PLAN, _template())).paragraphs[1]
        assert paragraph.runs[0].bold
        assert paragraph.runs[0].text == "Class: Basic 6"
        assert all(r.text == "" for r in paragraph.runs[1:])

    def test_newlines_become_line_breaks(self):
        cell = _open(fill_lesson_plan_template(PLAN, _template())).tables[0].cell(0, 0)
        assert "<w:br/>" in cell._tc.xml
        assert cell.text == "Sing a counting song\nCount in twos"

    def test_template_from_path(self, tmp_path):
        path = tmp_path / "school.docx"
        path.write_bytes(_template())
        doc = _open(fill_template(str(path), {"subject": "Science"}))
        assert doc.paragraphs[0].text == "Subject: Science"

    @pytest.mark.parametrize("text, message", [
        ("Subject: {subject", UNCLOSED_TAG_MESSAGE),
        ("Subject: subject}", UNOPENED_TAG_MESSAGE),
        ("{{subject}}", UNCLOSED_TAG_MESSAGE),
    ])
    def test_malformed_tags(self, text, message):
        with pytest.raises(TemplateFillError) as exc:
            fill_template(_template(text), {"subject": "Science"})
        assert str(exc.value) == message

    def test_unreadable_template(self):
        with pytest.raises(DocumentGenerationError):
            fill_template(b"not a docx", {})


class TestFields:

    def test_field_names(self):
        fields = lesson_template_fields(PLAN)
        assert fields["class"] == "Basic 6"
        assert fields["phase1_duration"] == "10 mins"
        assert fields["phase3_activities"] == ""

    def test_check_tags_accepts_balanced(self):
        check_tags("{a} and {b}")

    def test_filename(self):
        assert template_filename(PLAN, today=date(2024, 1, 12)) == "lesson-mathematics-basic-6-2024-01-12.docx"
