"""Tests for main.py: CLI request building and the render command."""

import argparse
import json
from unittest.mock import MagicMock, patch

import pytest
from docx import Document

import main

PLAN = {
    "subject": "Mathematics",
    "class": "Basic 6",
    "weekNumber": "3",
    "phases": {"phase1_starter": {"learnerActivities": "Sing a counting song"}},
}


def _args(**overrides):
    values = {name: None for name in main.REQUEST_FLAGS}
    values.update(request=None, num_lessons=None, days=None, diagrams=False, reference=None)
    values.update(overrides)
    return argparse.Namespace(**values)


class TestRequestFromArgs:

    def test_flags_override_request_file(self, tmp_path):
        path = tmp_path / "request.json"
        path.write_text(json.dumps({"subject": "Science", "level": "Basic 4", "term": "1"}))
        data = main._request_from_args(_args(request=str(path), subject="Mathematics", num_lessons=2))
        assert data == {"subject": "Mathematics", "level": "Basic 4", "term": "1", "num_lessons": 2}

    def test_days_and_diagrams(self):
        data = main._request_from_args(_args(subject="English", days="Monday, Wednesday,", diagrams=True))
        assert data["scheduled_days"] == ["Monday", "Wednesday"]
        assert data["include_diagrams"] is True

    def test_reference_documents(self, tmp_path):
        ref = tmp_path / "scheme.txt"
        ref.write_text("Week 1: Fractions")
        data = main._request_from_args(_args(reference=[str(ref)]))
        assert data["reference_documents"] == [
            {"title": "scheme.txt", "file_name": "scheme.txt", "content": "Week 1: Fractions"},
        ]

    def test_reference_url(self):
        resp = MagicMock()
        resp.content = b"Strand 2: Algebra"
        with patch("notegen.file_text.requests.get", return_value=resp) as get:
            data = main._request_from_args(_args(reference=["https://example.com/docs/syllabus.txt?v=2"]))
        assert get.call_args.args[0] == "https://example.com/docs/syllabus.txt?v=2"
        assert data["reference_documents"] == [
            {"title": "syllabus.txt", "file_name": "syllabus.txt", "content": "Strand 2: Algebra"},
        ]


class TestRunGenerate:

    def test_requires_subject_and_level(self, tmp_path):
        with pytest.raises(ValueError):
            main.run_generate({"subject": "Mathematics"}, output_dir=str(tmp_path))


class TestRunRender:

    def test_note_to_docx(self, tmp_path):
        src = tmp_path / "note.md"
        src.write_text("# Introduction\nLearners count bottle tops.", encoding="utf-8")
        out = main.run_render(str(src), "docx", output_path=str(tmp_path / "note.docx"))
        texts = [p.text for p in Document(out).paragraphs]
        assert "Learners count bottle tops." in texts

    def test_note_to_html(self, tmp_path):
        src = tmp_path / "note.md"
        src.write_text("Count <stones>", encoding="utf-8")
        out = main.run_render(str(src), "html", output_path=str(tmp_path / "note.html"))
        with open(out, encoding="utf-8") as f:
            assert "Count &lt;stones&gt;" in f.read()

    def test_plan_default_name(self, tmp_path, monkeypatch):
        monkeypatch.chdir(tmp_path)
        src = tmp_path / "plan.json"
        src.write_text(json.dumps([PLAN]), encoding="utf-8")
        out = main.run_render(str(src), "pdf", as_json=True)
        assert out == "B6-MATH-WK3.pdf"
        assert (tmp_path / out).read_bytes().startswith(b"%PDF")

    def test_empty_input(self, tmp_path):
        src = tmp_path / "empty.md"
        src.write_text("  \n", encoding="utf-8")
        with pytest.raises(ValueError):
            main.run_render(str(src), "pdf")


class TestRunFillTemplate:

    def _template(self, tmp_path):
        doc = Document()
        doc.add_paragraph("{subject} for {class}")
        path = tmp_path / "school.docx"
        doc.save(str(path))
        return str(path)

    def test_one_file_per_lesson(self, tmp_path):
        src = tmp_path / "plan.json"
        src.write_text(json.dumps([PLAN, dict(PLAN, subject="Science")]), encoding="utf-8")
        paths = main.run_fill_template(str(src), self._template(tmp_path), str(tmp_path / "filled.docx"))
        assert paths == [str(tmp_path / "filled-1.docx"), str(tmp_path / "filled-2.docx")]
        assert Document(paths[1]).paragraphs[0].text == "Science for Basic 6"


class TestRunAssessment:

    QUIZ = {
        "title": "Plants Quiz",
        "questions": [{"id": 1, "type": "essay", "question": "Describe photosynthesis.", "points": 5}],
    }

    def test_from_json(self, tmp_path):
        src = tmp_path / "quiz.json"
        src.write_text(json.dumps(self.QUIZ), encoding="utf-8")
        out = main.run_assessment(from_json=str(src), output_path=str(tmp_path / "quiz.docx"))
        assert "1. Describe photosynthesis. (5 points)" in [p.text for p in Document(out).paragraphs]
        assert json.loads(src.read_text(encoding="utf-8")) == self.QUIZ

    def test_generated_is_saved_as_json(self, tmp_path):
        from notegen.assessment import Assessment

        with patch("notegen.assessment.generate_assessment", return_value=Assessment.from_dict(self.QUIZ)) as gen:
            out = main.run_assessment({"subject": "Science", "level": "Basic 5", "topic": "Plants"},
                                      output_path=str(tmp_path / "quiz.docx"))
        assert gen.call_args.args[0].topic == "Plants"
        saved = json.loads((tmp_path / "quiz.json").read_text(encoding="utf-8"))
        assert saved["title"] == "Plants Quiz"
        assert out.endswith("quiz.docx")

    def test_requires_topic(self):
        with pytest.raises(ValueError):
            main.run_assessment({"subject": "Science", "level": "Basic 5"})
