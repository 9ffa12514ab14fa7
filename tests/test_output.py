"""Tests for output.py: the per-run output package."""

import json
import os

import pytest

from notegen import output
from notegen.docx_writer import LessonMetadata
from notegen.output import FORMAT_CHECK_NAME, PRINT_HTML_NAME, REQUEST_JSON_NAME, generate_output, list_recent_outputs

NOTE = "# Introduction\nLearners count bottle tops in groups of two.\n\n- Bottle tops\n- Chalk"
PLAN_JSON = json.dumps([{
    "subject": "Mathematics",
    "class": "Basic 6",
    "weekNumber": "3",
    "phases": {"phase1_starter": {"learnerActivities": "Sing a counting song"}},
}])


@pytest.fixture
def metadata():
    return LessonMetadata(subject="Mathematics", level="Basic 6")


class TestGenerateOutput:

    def test_lesson_note_package(self, tmp_path, metadata):
        folder = generate_output(
            NOTE, metadata=metadata, request_data={"subject": "Mathematics", "level": "Basic 6"},
            output_dir=str(tmp_path), output_suffix="abc123",
        )
        name = os.path.basename(folder)
        assert name.startswith("Basic_6_Mathematics_")
        assert name.endswith("_abc123")
        files = set(os.listdir(folder))
        assert any(f.endswith(".pdf") for f in files)
        assert any(f.endswith(".docx") for f in files)
        assert {PRINT_HTML_NAME, "ai_response.md", REQUEST_JSON_NAME, FORMAT_CHECK_NAME} <= files

        with open(os.path.join(folder, FORMAT_CHECK_NAME)) as f:
            check = json.load(f)
        assert check["text_extractable"]
        assert check["issues"] == []
        assert check["docx_written"]
        assert check["lessons"] == 1

    def test_lesson_plan_package(self, tmp_path):
        folder = generate_output(PLAN_JSON, json_mode=True, output_dir=str(tmp_path), output_suffix="x")
        files = set(os.listdir(folder))
        assert {"B6-MATH-WK3.pdf", "B6-MATH-WK3.docx", "ai_response.json", PRINT_HTML_NAME} <= files
        assert REQUEST_JSON_NAME not in files

    def test_docx_failure_is_not_fatal(self, tmp_path, metadata, monkeypatch):
        def boom(*args):
            raise RuntimeError("docx broke")

        monkeypatch.setattr(output, "render_lesson_note_docx", boom)
        folder = generate_output(NOTE, metadata=metadata, output_dir=str(tmp_path), output_suffix="y")
        files = os.listdir(folder)
        assert not any(f.endswith(".docx") for f in files)
        assert any(f.endswith(".pdf") for f in files)

    def test_pdf_failure_is_fatal(self, tmp_path, metadata, monkeypatch):
        def boom(*args):
            raise RuntimeError("pdf broke")

        monkeypatch.setattr(output, "render_lesson_note_pdf", boom)
        with pytest.raises(RuntimeError):
            generate_output(NOTE, metadata=metadata, output_dir=str(tmp_path), output_suffix="z")


class TestListRecentOutputs:

    def test_missing_dir(self, tmp_path):
        assert list_recent_outputs(str(tmp_path / "nope")) == []

    def test_lists_packages(self, tmp_path, metadata):
        generate_output(
            NOTE, metadata=metadata, request_data={"subject": "Mathematics", "level": "Basic 6"},
            output_dir=str(tmp_path), output_suffix="one",
        )
        (tmp_path / "stray.txt").write_text("not a folder")
        runs = list_recent_outputs(str(tmp_path))
        assert len(runs) == 1
        run = runs[0]
        assert run["subject"] == "Mathematics"
        assert run["pdf_name"].endswith(".pdf")
        assert run["docx_name"].endswith(".docx")

    def test_limit(self, tmp_path):
        for i in range(3):
            (tmp_path / f"run_{i}").mkdir()
        assert len(list_recent_outputs(str(tmp_path), limit=2)) == 2
