"""Document routes: render supplied lesson text, lesson plan JSON or assessments to DOCX, HTML or PDF."""

import json
import logging
from typing import Optional

from fastapi import APIRouter
from fastapi.responses import HTMLResponse, JSONResponse, Response
from pydantic import BaseModel, Field

from notegen.assessment import assessment_filename, parse_assessment_response, render_assessment_docx
from notegen.docx_writer import LessonMetadata, lesson_note_filename, render_lesson_note_docx
from notegen.html_export import lesson_note_html, lessons_html, print_document
from notegen.lesson_plan import lesson_plan_filename, parse_ai_json_response, plans_from_payload
from notegen.lesson_plan_docx import render_lesson_plan_docx
from notegen.pdf_export import render_lesson_note_pdf, render_lesson_plan_pdf

logger = logging.getLogger(__name__)

router = APIRouter()

FORMATS = ("docx", "html", "pdf")
MEDIA_TYPES = {
    "docx": "application/vnd.openxmlformats-officedocument.wordprocessingml.document",
    "pdf": "application/pdf",
}


class LessonNoteBody(BaseModel):
    text: str
    metadata: dict = Field(default_factory=dict)
    auto_print: bool = False


class LessonPlanBody(BaseModel):
    response: Optional[str] = None
    lessons: Optional[list] = None
    auto_print: bool = False


def _bad_format(fmt: str) -> JSONResponse:
    return JSONResponse(
        {"detail": f"Unsupported format '{fmt}'. Use one of: {', '.join(FORMATS)}."},
        status_code=400,
    )


def _download(data: bytes, fmt: str, filename: str) -> Response:
    return Response(
        content=data,
        media_type=MEDIA_TYPES[fmt],
        headers={"Content-Disposition": f'attachment; filename="{filename}"'},
    )


@router.post("/lesson-note/{fmt}")
async def post_lesson_note(fmt: str, body: LessonNoteBody):
    """Free-text lesson note to a file download (or a print page for html)."""
    if fmt not in FORMATS:
        return _bad_format(fmt)
    if not body.text.strip():
        return JSONResponse({"detail": "Lesson note text is empty."}, status_code=400)
    metadata = LessonMetadata.from_dict(body.metadata)
    filename = lesson_note_filename(metadata)
    logger.info("Rendering lesson note as %s (%d chars)", fmt, len(body.text))

    if fmt == "html":
        page = print_document(lesson_note_html(body.text, metadata), title="Lesson Note", auto_print=body.auto_print)
        return HTMLResponse(page)
    if fmt == "docx":
        return _download(render_lesson_note_docx(body.text, metadata), fmt, filename)
    return _download(render_lesson_note_pdf(body.text, metadata), fmt, filename.replace(".docx", ".pdf"))


@router.post("/lesson-plan/{fmt}")
async def post_lesson_plan(fmt: str, body: LessonPlanBody):
    """Weekly lesson plan(s) from AI JSON text or already-parsed lesson objects."""
    if fmt not in FORMATS:
        return _bad_format(fmt)
    if body.lessons:
        plans = plans_from_payload(body.lessons)
    elif body.response:
        plans = parse_ai_json_response(body.response)
    else:
        return JSONResponse({"detail": "Provide 'response' (AI JSON text) or 'lessons'."}, status_code=400)
    logger.info("Rendering %d lesson plan(s) as %s", len(plans), fmt)

    if fmt == "html":
        page = print_document(lessons_html(plans), title="Lesson Plan", auto_print=body.auto_print)
        return HTMLResponse(page)
    filename = lesson_plan_filename(plans, extension=fmt)
    if fmt == "docx":
        return _download(render_lesson_plan_docx(plans), fmt, filename)
    return _download(render_lesson_plan_pdf(plans), fmt, filename)


class AssessmentBody(BaseModel):
    assessment: Optional[dict] = None
    response: Optional[str] = None
    include_answers: bool = True


@router.post("/assessment/docx")
async def post_assessment_docx(body: AssessmentBody):
    """Assessment (parsed JSON or raw AI text) to a .docx download, answer key optional."""
    if body.assessment:
        assessment = parse_assessment_response(json.dumps(body.assessment))
    elif body.response:
        assessment = parse_assessment_response(body.response)
    else:
        return JSONResponse({"detail": "Provide 'assessment' or 'response' (AI JSON text)."}, status_code=400)
    logger.info("Rendering assessment '%s' (%d questions)", assessment.title, len(assessment.questions))
    data = render_assessment_docx(assessment, include_answers=body.include_answers)
    return _download(data, "docx", assessment_filename(assessment))
