"""Tests for the FastAPI app: document downloads, generation jobs, dashboard."""

import json
import time

import pytest
from fastapi.testclient import TestClient

from notegen import assessment, lesson_generator
from notegen.ai_client import AIServiceError
from notegen.docx_writer import DocumentGenerationError
from notegen.lesson_generator import LessonGenerationError
from notegen.lesson_plan import PARSE_ERROR_MESSAGE
from web import config
from web.app import app
from web.routes import documents

NOTE = "# Introduction\nLearners count bottle tops in groups of two.\n\n- Bottle tops"
LESSON = {
    "subject": "Mathematics",
    "class": "Basic 6",
    "weekNumber": "3",
    "phases": {"phase1_starter": {"learnerActivities": "Sing a counting song"}},
}


@pytest.fixture
def client(tmp_path, monkeypatch):
    monkeypatch.setattr(config, "OUTPUT_DIR", tmp_path)
    return TestClient(app)


def _wait_for_result(client, job_id, timeout=20):
    deadline = time.time() + timeout
    while time.time() < deadline:
        resp = client.get(f"/generate/result/{job_id}")
        if resp.status_code != 202:
            return resp
        time.sleep(0.05)
    raise AssertionError(f"job {job_id} did not finish in {timeout}s")


class TestDashboard:

    def test_health(self, client):
        assert client.get("/health").json() == {"status": "ok"}

    def test_dashboard_renders(self, client):
        resp = client.get("/")
        assert resp.status_code == 200
        assert "Ghana Lesson Notes" in resp.text
        assert "No lesson packages yet." in resp.text


class TestDocumentRoutes:

    def test_lesson_note_docx(self, client):
        body = {"text": NOTE, "metadata": {"subject": "Mathematics", "level": "Basic 6"}}
        resp = client.post("/documents/lesson-note/docx", json=body)
        assert resp.status_code == 200
        assert resp.content[:2] == b"PK"
        assert 'filename="lesson-note-mathematics-basic-6-' in resp.headers["content-disposition"]

    def test_lesson_note_pdf(self, client):
        resp = client.post("/documents/lesson-note/pdf", json={"text": NOTE})
        assert resp.status_code == 200
        assert resp.content.startswith(b"%PDF")
        assert resp.headers["content-disposition"].endswith('.pdf"')

    def test_lesson_note_html(self, client):
        resp = client.post("/documents/lesson-note/html", json={"text": NOTE, "auto_print": True})
        assert resp.status_code == 200
        assert "text/html" in resp.headers["content-type"]
        assert "LESSON NOTE" in resp.text
        assert "window.print()" in resp.text

    def test_unknown_format(self, client):
        resp = client.post("/documents/lesson-note/odt", json={"text": NOTE})
        assert resp.status_code == 400

    def test_empty_text(self, client):
        resp = client.post("/documents/lesson-note/docx", json={"text": "   "})
        assert resp.status_code == 400

    def test_lesson_plan_from_lessons(self, client):
        resp = client.post("/documents/lesson-plan/docx", json={"lessons": [LESSON]})
        assert resp.status_code == 200
        assert 'filename="B6-MATH-WK3.docx"' in resp.headers["content-disposition"]

    def test_lesson_plan_from_ai_response(self, client):
        resp = client.post("/documents/lesson-plan/pdf", json={"response": "```json\n" + json.dumps(LESSON) + "\n```"})
        assert resp.status_code == 200
        assert resp.content.startswith(b"%PDF")

    def test_lesson_plan_parse_error(self, client):
        resp = client.post("/documents/lesson-plan/docx", json={"response": "Sorry, I cannot help."})
        assert resp.status_code == 422
        assert resp.json()["detail"] == PARSE_ERROR_MESSAGE

    def test_lesson_plan_needs_input(self, client):
        resp = client.post("/documents/lesson-plan/docx", json={})
        assert resp.status_code == 400

    def test_document_failure_is_500(self, client, monkeypatch):
        def boom(text, metadata):
            raise DocumentGenerationError("Failed to generate Word document")

        monkeypatch.setattr(documents, "render_lesson_note_docx", boom)
        resp = client.post("/documents/lesson-note/docx", json={"text": NOTE})
        assert resp.status_code == 500
        assert resp.json() == {"detail": "Failed to generate Word document"}

    def test_unexpected_error_is_json_500(self, tmp_path, monkeypatch):
        def boom(text, metadata):
            raise KeyError("metadata")

        monkeypatch.setattr(config, "OUTPUT_DIR", tmp_path)
        monkeypatch.setattr(documents, "render_lesson_note_pdf", boom)
        client = TestClient(app, raise_server_exceptions=False)
        resp = client.post("/documents/lesson-note/pdf", json={"text": NOTE})
        assert resp.status_code == 500
        assert resp.json() == {"detail": "Internal server error."}


class TestGenerateRoutes:

    def test_start_requires_subject_and_level(self, client):
        assert client.post("/generate/start", json={"subject": "Mathematics"}).status_code == 400
        assert client.post("/generate/start", content=b"not json").status_code == 400

    def test_unknown_job(self, client):
        assert client.get("/generate/result/does-not-exist").status_code == 404

    def test_job_writes_package(self, client, tmp_path, monkeypatch):
        def fake_generate(request, progress_callback=None):
            progress_callback(1, "running", "Generating lesson 1 of 1", {})
            return NOTE

        monkeypatch.setattr(lesson_generator, "generate_lesson_note", fake_generate)
        job_id = client.post("/generate/start", json={"subject": "Mathematics", "level": "Basic 6"}).json()["job_id"]

        result = _wait_for_result(client, job_id)
        assert result.status_code == 200
        data = result.json()
        assert data["status"] == "done"
        assert data["text"] == NOTE
        assert data["json_mode"] is False
        assert (tmp_path / data["folder"]).is_dir()

        stream = client.get(f"/generate/stream/{job_id}")
        assert '"step": "complete"' in stream.text

    def test_job_failure(self, client, monkeypatch):
        def fake_generate(request, progress_callback=None):
            try:
                raise AIServiceError("API Error: 529 overloaded", status_code=529)
            except AIServiceError as e:
                raise LessonGenerationError(lesson_generator.GENERATION_ERROR_MESSAGE, lesson_index=0) from e

        monkeypatch.setattr(lesson_generator, "generate_lesson_note", fake_generate)
        job_id = client.post("/generate/start", json={"subject": "Mathematics", "level": "Basic 6"}).json()["job_id"]

        result = _wait_for_result(client, job_id)
        assert result.status_code == 502
        assert "temporarily overloaded" in result.json()["detail"]


QUIZ = {
    "title": "Plants Quiz",
    "subject": "Science",
    "level": "Basic 5",
    "topic": "Plants",
    "questions": [{"id": 1, "type": "short_answer", "question": "Name one root crop.", "points": 1}],
    "answerKey": [{"questionId": 1, "answer": "Cassava"}],
}


class TestAssessmentRoutes:

    def test_docx_from_assessment(self, client):
        resp = client.post("/documents/assessment/docx", json={"assessment": QUIZ})
        assert resp.status_code == 200
        assert resp.content[:2] == b"PK"
        assert 'filename="Plants_Quiz_' in resp.headers["content-disposition"]

    def test_docx_from_ai_response(self, client):
        resp = client.post("/documents/assessment/docx",
                           json={"response": "Sure!\n" + json.dumps(QUIZ), "include_answers": False})
        assert resp.status_code == 200

    def test_docx_needs_input(self, client):
        assert client.post("/documents/assessment/docx", json={}).status_code == 400

    def test_docx_parse_error(self, client):
        resp = client.post("/documents/assessment/docx", json={"response": "No questions today."})
        assert resp.status_code == 422
        assert resp.json()["detail"] == assessment.PARSE_ERROR_MESSAGE

    def test_generate_validation(self, client):
        body = {"subject": "Science", "level": "Basic 5"}
        assert client.post("/generate/assessment", json=body).status_code == 400
        assert client.post("/generate/assessment", json=dict(body, topic="Plants", type="exam")).status_code == 400
        assert client.post("/generate/assessment", content=b"not json").status_code == 400

    def test_generate(self, client, monkeypatch):
        seen = []

        def fake_generate(config):
            seen.append(config)
            return assessment.Assessment.from_dict(QUIZ)

        monkeypatch.setattr(assessment, "generate_assessment", fake_generate)
        body = {"subject": "Science", "level": "Basic 5", "topic": "Plants", "questionTypes": ["short_answer"]}
        resp = client.post("/generate/assessment", json=body)
        assert resp.status_code == 200
        assert resp.json()["assessment"]["title"] == "Plants Quiz"
        assert resp.json()["include_answer_key"] is True
        assert seen[0].question_types == ("short_answer",)

    def test_generate_ai_failure(self, client, monkeypatch):
        def fake_generate(config):
            try:
                raise AIServiceError("API Error: 529 overloaded", status_code=529)
            except AIServiceError as e:
                raise assessment.AssessmentError(assessment.GENERATION_ERROR_MESSAGE) from e

        monkeypatch.setattr(assessment, "generate_assessment", fake_generate)
        body = {"subject": "Science", "level": "Basic 5", "topic": "Plants"}
        resp = client.post("/generate/assessment", json=body)
        assert resp.status_code == 502
        assert "temporarily overloaded" in resp.json()["detail"]
