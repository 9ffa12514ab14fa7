"""Fill a school's own .docx lesson plan template with lesson plan fields.

The template carries ``{placeholder}`` tags ({subject}, {phase1_activities},
...) anywhere in body paragraphs, tables, headers or footers. Word often
splits a tag across runs, so each paragraph is filled as a whole: the text
lands in its first run (keeping that run's formatting) and the other runs
are emptied. Newlines in a value become line breaks.
"""

import io
import logging
import re
from datetime import date

from docx import Document

from notegen.docx_writer import DocumentGenerationError, document_bytes

logger = logging.getLogger(__name__)

PLACEHOLDER_RE = re.compile(r"\{(\w+)\}")

UNCLOSED_TAG_MESSAGE = "Template error: Unclosed tag found. Please check your template placeholders."
UNOPENED_TAG_MESSAGE = "Template error: Unopened tag found. Please check your template placeholders."


class TemplateFillError(ValueError):
    """Raised when a template's placeholders are malformed."""


def lesson_template_fields(plan) -> dict:
    """Placeholder values for one LessonPlan."""
    return {
        "weekEnding": plan.week_ending,
        "day": plan.day,
        "subject": plan.subject,
        "duration": plan.duration,
        "strand": plan.strand,
        "class": plan.class_name,
        "classSize": plan.class_size,
        "subStrand": plan.sub_strand,
        "contentStandard": plan.content_standard,
        "indicator": plan.indicator,
        "lesson": plan.lesson,
        "performanceIndicator": plan.performance_indicator,
        "coreCompetencies": plan.core_competencies,
        "keywords": plan.keywords,
        "reference": plan.reference,
        "phase1_duration": plan.starter.duration,
        "phase1_activities": plan.starter.learner_activities,
        "phase1_resources": plan.starter.resources,
        "phase2_duration": plan.new_learning.duration,
        "phase2_activities": plan.new_learning.learner_activities,
        "phase2_resources": plan.new_learning.resources,
        "phase3_duration": plan.reflection.duration,
        "phase3_activities": plan.reflection.learner_activities,
        "phase3_resources": plan.reflection.resources,
    }


def check_tags(text: str):
    """Raise TemplateFillError on a ``{`` without ``}`` or the reverse."""
    open_at = None
    for i, ch in enumerate(text):
        if ch == "{":
            if open_at is not None:
                raise TemplateFillError(UNCLOSED_TAG_MESSAGE)
            open_at = i
        elif ch == "}":
            if open_at is None:
                raise TemplateFillError(UNOPENED_TAG_MESSAGE)
            open_at = None
    if open_at is not None:
        raise TemplateFillError(UNCLOSED_TAG_MESSAGE)


def _fill_paragraph(paragraph, fields: dict) -> int:
    text = paragraph.text
    if "{" not in text and "}" not in text:
        return 0
    check_tags(text)
    count = len(PLACEHOLDER_RE.findall(text))
    filled = PLACEHOLDER_RE.sub(lambda m: str(fields.get(m.group(1)) or ""), text)
    runs = paragraph.runs
    if runs:
        runs[0].text = filled
        for run in runs[1:]:
            run.text = ""
    else:
        paragraph.add_run(filled)
    return count


def _paragraphs(container):
    """Every paragraph in a document part, including nested table cells."""
    yield from container.paragraphs
    for table in container.tables:
        for row in table.rows:
            for cell in row.cells:
                yield from _paragraphs(cell)


def fill_template(template, fields: dict) -> bytes:
    """Fill ``{placeholder}`` tags in a .docx template.

    Args:
        template: Path to the template or its bytes.
        fields: Placeholder name -> value; unknown names become empty.

    Raises:
        TemplateFillError: a tag is unclosed or unopened.
        DocumentGenerationError: the template could not be read or saved.
    """
    try:
        doc = Document(io.BytesIO(template) if isinstance(template, (bytes, bytearray)) else template)
    except Exception as e:
        logger.error("Cannot open template: %s", e)
        raise DocumentGenerationError("Failed to generate lesson note from template") from e

    parts = [doc]
    for section in doc.sections:
        parts.extend(hf for hf in (section.header, section.footer) if not hf.is_linked_to_previous)
    filled = 0
    # merged cells repeat in row.cells; fill each paragraph once.
    # Elements are kept referenced so their ids stay unique.
    seen = {}
    for part in parts:
        for paragraph in _paragraphs(part):
            if id(paragraph._p) in seen:
                continue
            seen[id(paragraph._p)] = paragraph._p
            filled += _fill_paragraph(paragraph, fields)

    try:
        data = document_bytes(doc)
    except Exception as e:
        logger.error("Template DOCX save failed: %s", e)
        raise DocumentGenerationError("Failed to generate lesson note from template") from e
    logger.info("Template filled: %d placeholder(s), %d bytes", filled, len(data))
    return data


def fill_lesson_plan_template(plan, template) -> bytes:
    return fill_template(template, lesson_template_fields(plan))


def template_filename(plan, today: date = None) -> str:
    """'lesson-mathematics-basic-6-2024-01-12.docx'."""
    today = today or date.today()
    subject = re.sub(r"\s+", "-", plan.subject.strip()).lower()
    class_level = re.sub(r"\s+", "-", plan.class_name.strip()).lower()
    return f"lesson-{subject}-{class_level}-{today.isoformat()}.docx"
