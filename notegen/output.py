"""Output package: every artifact for one generated lesson note in one folder."""

import json
import logging
import os
import re
from datetime import datetime

from notegen.docx_writer import LessonMetadata, lesson_note_filename, render_lesson_note_docx
from notegen.html_export import lesson_note_html, lessons_html, print_document
from notegen.lesson_plan import lesson_plan_filename, parse_ai_json_response
from notegen.lesson_plan_docx import render_lesson_plan_docx
from notegen.pdf_export import check_pdf_text, render_lesson_note_pdf, render_lesson_plan_pdf

logger = logging.getLogger(__name__)

RECENT_MAX = 10
PRINT_HTML_NAME = "lesson_print.html"
REQUEST_JSON_NAME = "request.json"
FORMAT_CHECK_NAME = "format_check.json"


def _slug(value: str, fallback: str) -> str:
    slug = re.sub(r"[^\w]+", "_", value or "").strip("_")
    return slug or fallback


def _write_text(path: str, text: str):
    with open(path, "w", encoding="utf-8") as f:
        f.write(text)


def _write_json(path: str, data):
    with open(path, "w", encoding="utf-8") as f:
        json.dump(data, f, indent=2, ensure_ascii=False, default=str)


def generate_output(
    text: str,
    metadata: LessonMetadata = None,
    json_mode: bool = False,
    request_data: dict = None,
    output_dir: str = "output",
    output_suffix: str = None,
) -> str:
    """Write the full lesson package for one AI result.

    Args:
        text: Lesson note text, or the template JSON when ``json_mode``.
        metadata: Subject/level header for free-text notes; also names the folder.
        json_mode: Render ``text`` as weekly lesson plans instead of a free-text note.
        request_data: Generation request, saved as request.json when given.
        output_dir: Base output directory.
        output_suffix: Optional unique suffix (e.g. job_id[:8]) for folder name. If None, uses HHmmss.

    Returns:
        Path to the output folder
    """
    metadata = metadata or LessonMetadata()
    plans = parse_ai_json_response(text) if json_mode else None
    if plans:
        class_name = plans[0].class_name or metadata.level
        subject = plans[0].subject or metadata.subject
    else:
        class_name, subject = metadata.level, metadata.subject

    date_str = datetime.now().strftime("%Y-%m-%d")
    suffix = output_suffix if output_suffix else datetime.now().strftime("%H%M%S")
    out_folder = os.path.join(
        output_dir, f"{_slug(class_name, 'Class')}_{_slug(subject, 'Lesson')}_{date_str}_{suffix}"
    )
    os.makedirs(out_folder, exist_ok=True)

    if plans:
        docx_filename = lesson_plan_filename(plans)
    else:
        docx_filename = lesson_note_filename(metadata)
    stem = os.path.splitext(docx_filename)[0]

    # --- 1. PDF ---
    pdf_filename = f"{stem}.pdf"
    pdf_path = os.path.join(out_folder, pdf_filename)
    try:
        pdf_bytes = render_lesson_plan_pdf(plans) if plans else render_lesson_note_pdf(text, metadata)
        with open(pdf_path, "wb") as f:
            f.write(pdf_bytes)
    except Exception as e:
        logger.error("PDF generation failed: %s", e)
        raise

    # --- 2. DOCX ---
    docx_path = os.path.join(out_folder, docx_filename)
    try:
        docx_bytes = render_lesson_plan_docx(plans) if plans else render_lesson_note_docx(text, metadata)
        with open(docx_path, "wb") as f:
            f.write(docx_bytes)
    except Exception as e:
        logger.error("DOCX generation failed: %s", e)
        # Non-fatal, PDF and HTML are still usable

    # --- 3. print HTML ---
    body = lessons_html(plans) if plans else lesson_note_html(text, metadata)
    _write_text(os.path.join(out_folder, PRINT_HTML_NAME), print_document(body, title=stem))

    # --- 4. raw AI response ---
    raw_name = "ai_response.json" if json_mode else "ai_response.md"
    _write_text(os.path.join(out_folder, raw_name), text)

    # --- 5. request.json ---
    if request_data:
        _write_json(os.path.join(out_folder, REQUEST_JSON_NAME), request_data)

    # --- 6. format_check.json ---
    expected = ["Learners Activities", "PHASE 1: STARTER"] if plans else ["LESSON NOTE"]
    check = check_pdf_text(pdf_bytes, expected)
    check["lessons"] = len(plans) if plans else 1
    check["docx_written"] = os.path.exists(docx_path)
    _write_json(os.path.join(out_folder, FORMAT_CHECK_NAME), check)

    logger.info("Lesson package saved to: %s", out_folder)
    logger.info("  PDF: %s", pdf_filename)
    logger.info("  DOCX: %s", docx_filename)
    return out_folder


def list_recent_outputs(output_dir: str, limit: int = RECENT_MAX) -> list:
    """Last ``limit`` output folders, newest first, with their PDF and DOCX names."""
    if not os.path.isdir(output_dir):
        return []
    runs = []
    for name in os.listdir(output_dir):
        path = os.path.join(output_dir, name)
        if not os.path.isdir(path):
            continue
        try:
            mtime = os.stat(path).st_mtime
        except OSError:
            mtime = 0
        pdf_name = docx_name = None
        for f in sorted(os.listdir(path)):
            lower = f.lower()
            if lower.endswith(".pdf") and not pdf_name:
                pdf_name = f
            elif lower.endswith(".docx") and not docx_name:
                docx_name = f
        summary = {}
        request_path = os.path.join(path, REQUEST_JSON_NAME)
        if os.path.exists(request_path):
            try:
                with open(request_path, "r", encoding="utf-8") as f:
                    summary = json.load(f)
            except (json.JSONDecodeError, OSError):
                pass
        runs.append({
            "folder": name,
            "mtime": mtime,
            "subject": summary.get("subject"),
            "level": summary.get("level"),
            "pdf_name": pdf_name,
            "docx_name": docx_name,
        })
    runs.sort(key=lambda r: r["mtime"], reverse=True)
    return runs[:limit]
