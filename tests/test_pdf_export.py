"""Tests for pdf_export.py: reportlab output read back with pdfplumber."""

import json
import os

import pytest

from notegen.docx_writer import DocumentGenerationError, LessonMetadata
from notegen.lesson_plan import LessonPlan, Phase
from notegen.output import generate_output
from notegen.pdf_export import check_pdf_text, render_lesson_note_pdf, render_lesson_plan_pdf


@pytest.fixture
def plans():
    base = {
        "subject": "Mathematics",
        "class": "Basic 6",
        "phases": {
            "phase1_starter": {"learnerActivities": "Sing a counting song", "resources": "None"},
            "phase2_newLearning": {
                "learnerActivities": "**Activity 1:** Fold paper strips\n- Shade one half\n| Part | Value |\n| A | 1/2 |",
                "resources": "Paper",
            },
            "phase3_reflection": {"learnerActivities": "Recap.\n\n**Sample Class Exercises:**\n1. Add 1/2 and 1/4."},
        },
    }
    return [LessonPlan.from_dict(base), LessonPlan.from_dict(dict(base, subject="Science"))]


class TestLessonNotePdf:

    def test_readable_pdf(self):
        text = "# Introduction\nCount the stones in groups of two.\n\n- Chalk\n\n| Item | Qty |\n|---|---|\n| Chalk | 2 |"
        data = render_lesson_note_pdf(text, LessonMetadata(subject="Mathematics", level="Basic 6"))
        assert data.startswith(b"%PDF")
        check = check_pdf_text(data, ["LESSON NOTE", "Count the stones", "Subject: Mathematics"])
        assert check["text_extractable"]
        assert check["issues"] == [], check["issues"]

    def test_markup_characters_escaped(self):
        data = render_lesson_note_pdf("Compare 5 < 6 & 7 > 2", LessonMetadata())
        assert check_pdf_text(data, ["5 < 6 & 7 > 2"])["issues"] == []


class TestLessonPlanPdf:

    def test_one_page_per_lesson(self, plans):
        check = check_pdf_text(render_lesson_plan_pdf(plans), ["PHASE 1: STARTER", "Learners Activities", "Lesson: 2 of 2"])
        assert check["pages"] >= 2
        assert check["issues"] == [], check["issues"]

    def test_empty_plans_raise(self):
        with pytest.raises(DocumentGenerationError):
            render_lesson_plan_pdf([])


class TestCheckPdfText:

    def test_not_a_pdf(self):
        check = check_pdf_text(b"not a pdf")
        assert not check["text_extractable"]
        assert any("PDF parse error" in issue for issue in check["issues"])

    def test_missing_phrase_reported(self):
        data = render_lesson_note_pdf("Count the stones in groups of two.", LessonMetadata())
        check = check_pdf_text(data, ["Photosynthesis"])
        assert check["found"] == []
        assert check["issues"] == ["'Photosynthesis' not found in extracted text"]


class TestLongContent:

    @pytest.fixture
    def long_plan(self):
        steps = "\n".join(f"- Learners fold paper strip {i} and shade one part" for i in range(1, 81))
        return LessonPlan(
            subject="Mathematics",
            class_name="Basic 6",
            week_number="3",
            new_learning=Phase(learner_activities=steps, resources="Paper strips"),
        )

    def test_long_phase_splits_across_pages(self, long_plan):
        check = check_pdf_text(render_lesson_plan_pdf([long_plan]), ["strip 1 and", "strip 80 and"])
        assert check["pages"] >= 2
        assert check["issues"] == [], check["issues"]

    def test_long_note_table_cell(self):
        cell = " ".join(["counting"] * 1200)
        text = f"| Topic | Notes |\n|---|---|\n| Fractions | {cell} |"
        check = check_pdf_text(render_lesson_note_pdf(text, LessonMetadata()), ["Fractions"])
        assert check["pages"] >= 2
        assert check["issues"] == [], check["issues"]

    def test_long_plan_output_package(self, long_plan, tmp_path):
        folder = generate_output(
            json.dumps([long_plan.to_dict()]), json_mode=True, output_dir=str(tmp_path), output_suffix="long",
        )
        assert "B6-MATH-WK3.pdf" in os.listdir(folder)
