"""Print-ready HTML for lesson notes and weekly lesson plans.

Fragments are built in code from the shared block classification; the page
shell (A4 CSS, optional print script) is a Jinja2 template.
"""

import html
import logging
import os
import re

from jinja2 import Environment, FileSystemLoader, select_autoescape

from notegen import blocks as B
from notegen.lesson_plan import (
    clean_content_standard,
    clean_strand,
    ensure_performance_indicator_prefix,
    format_class,
    format_subject,
    format_term,
    format_week,
    lesson_label,
    reference_text,
    NEW_LEARNING_DURATION,
    REFLECTION_DURATION,
    STARTER_DURATION,
)
from notegen.markdown_tokens import parse_markdown_line
from notegen.text_normalizer import capitalize_first_letter, clean_and_split_text

logger = logging.getLogger(__name__)

TEMPLATE_DIR = os.path.join(os.path.dirname(os.path.abspath(__file__)), "templates")
PAGE_BREAK = '<div style="page-break-after: always; height: 0; margin: 0; padding: 0;"></div>'

_env = Environment(
    loader=FileSystemLoader(TEMPLATE_DIR),
    autoescape=select_autoescape(["html"]),
)

_EXERCISES_RE = re.compile(r"Sample Class Exercises", re.IGNORECASE)


def _esc(text: str) -> str:
    return html.escape(text or "", quote=True)


def _tokens_html(tokens) -> str:
    parts = []
    for token in tokens:
        text = _esc(token.text)
        if token.italic:
            text = f"<em>{text}</em>"
        if token.bold:
            text = f"<strong>{text}</strong>"
        parts.append(text)
    return "".join(parts)


def _table_html(rows) -> str:
    n_cols = max(len(r) for r in rows)
    out = ["<table>"]
    for r, row in enumerate(rows):
        tag = "th" if r == 0 else "td"
        cells = []
        for c in range(n_cols):
            cell = row[c] if c < len(row) else ""
            cells.append(f"<{tag}>{_tokens_html(parse_markdown_line(cell))}</{tag}>")
        out.append("<tr>" + "".join(cells) + "</tr>")
    out.append("</table>")
    return "".join(out)


def _block_html(block) -> str:
    if block.kind == B.BLANK:
        return "<br/>"
    if block.kind == B.PAGE_BREAK:
        return PAGE_BREAK
    if block.kind == B.TABLE:
        return _table_html(block.rows)
    body = _tokens_html(block.tokens)
    if block.kind == B.HEADING:
        css = "content-header exercises" if _EXERCISES_RE.search(block.text) else "content-header"
        return f'<div class="{css}">{body}</div>'
    if block.kind in (B.BULLET, B.NUMBERED):
        marker = B.BULLET_CHAR if block.kind == B.BULLET else f"<strong>{_esc(block.marker)}</strong>"
        return (f'<div class="list-item"><span class="bullet">{marker}</span>'
                f'<span class="list-text">{body}</span></div>')
    return f'<div class="content-line">{body}</div>'


def markdown_to_html(text: str) -> str:
    """Free text to HTML fragments, one element per classified block."""
    if not text:
        return ""
    blocks = B.classify_lines(clean_and_split_text(text))
    return "\n".join(_block_html(b) for b in blocks)


def _label_cell(label: str, value: str, colspan: int = 1) -> str:
    span = f' colspan="{colspan}"' if colspan > 1 else ""
    return f"<td{span}><strong>{_esc(label)}:</strong> {_inline(value)}</td>"


def _inline(value: str) -> str:
    """Single-cell value: normalized lines joined with <br/>."""
    lines = [line.strip() for line in clean_and_split_text(value) if line.strip()]
    return "<br/>".join(_tokens_html(parse_markdown_line(line)) for line in lines)


def _phase_row(name: str, duration: str, note: str, phase) -> str:
    note_html = f"<div>({_esc(note)})</div>" if note else ""
    return (
        "<tr>"
        f'<td><div class="phase-name">{_esc(name)}</div>'
        f'<div class="phase-duration">({_esc(duration)})</div>{note_html}</td>'
        f"<td>{markdown_to_html(capitalize_first_letter(phase.learner_activities))}</td>"
        f"<td>{markdown_to_html(capitalize_first_letter(phase.resources))}</td>"
        "</tr>"
    )


def lesson_plan_html(plan, index: int = 0, total: int = 1) -> str:
    """One lesson plan as the five-table weekly layout."""
    class_title = format_class(plan.class_name or "Basic 1").upper()
    lesson_name, _, lesson_value = lesson_label(plan, index, total).partition(":")
    parts = [
        '<div class="page-header">',
        f"<p>{_esc(format_term(plan.term))}</p>",
        f"<p>WEEKLY LESSON PLAN – {_esc(class_title)}</p>",
        f'<p class="week">{_esc(format_week(plan.week_number))}</p>',
        "</div>",
        "<table>",
        "<tr>" + _label_cell("Week Ending", plan.week_ending)
        + _label_cell("Day", plan.day, 2)
        + _label_cell("Subject", format_subject(plan.subject), 3) + "</tr>",
        "<tr>" + _label_cell("Duration", plan.duration, 3)
        + _label_cell("Strand", clean_strand(plan.strand), 3) + "</tr>",
        "<tr>" + _label_cell("Class", format_class(plan.class_name))
        + _label_cell("Class Size", plan.class_size, 2)
        + _label_cell("Sub Strand", clean_strand(plan.sub_strand), 3) + "</tr>",
        "</table>",
        "<table><tr>"
        + _label_cell("Content Standard", clean_content_standard(plan.content_standard))
        + _label_cell("Indicator", plan.indicator)
        + _label_cell(lesson_name, lesson_value.strip())
        + "</tr></table>",
        "<table><tr>"
        + _label_cell("Performance Indicator", ensure_performance_indicator_prefix(plan.performance_indicator))
        + _label_cell("Core Competencies", plan.core_competencies)
        + "</tr></table>",
        "<table>",
        f'<tr><td style="width: 19%"><strong>Keywords:</strong></td><td>{_inline(plan.keywords)}</td></tr>',
        f"<tr><td><strong>Reference:</strong></td><td>{_esc(reference_text(plan))}</td></tr>",
        "</table>",
        "<table>",
        '<tr><th class="bg-gray" style="width: 16%">Phase/Duration</th>'
        '<th class="bg-gray">Learners Activities</th>'
        '<th class="bg-gray" style="width: 22%">Resources</th></tr>',
        _phase_row("PHASE 1: STARTER", STARTER_DURATION, "Introduction", plan.starter),
        _phase_row("PHASE 2: NEW LEARNING", NEW_LEARNING_DURATION, "", plan.new_learning),
        _phase_row("PHASE 3: REFLECTION", REFLECTION_DURATION, "Plenary/Closure", plan.reflection),
        "</table>",
    ]
    return "\n".join(parts)


def lessons_html(plans) -> str:
    total = len(plans)
    return f"\n{PAGE_BREAK}\n".join(lesson_plan_html(p, i, total) for i, p in enumerate(plans))


def lesson_note_html(text: str, metadata) -> str:
    """Free-text lesson note with its metadata header."""
    meta = "".join(
        f"<p><strong>{_esc(label)}:</strong> {_esc(value)}</p>"
        for label, value in metadata.labelled_fields()
    )
    return (
        '<div class="note-title">LESSON NOTE</div>'
        f'<div class="note-meta">{meta}</div>'
        '<hr class="note-rule"/>'
        f"{markdown_to_html(text)}"
    )


def print_document(body: str, title: str = "Lesson Plan", auto_print: bool = False) -> str:
    """Wrap a fragment in the A4 print page. ``body`` is trusted, already-escaped HTML."""
    page = _env.get_template("print.html").render(body=body, title=title, auto_print=auto_print)
    logger.debug("Print document rendered: %d chars, auto_print=%s", len(page), auto_print)
    return page
