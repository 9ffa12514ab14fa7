"""Weekly lesson plan DOCX: one section per lesson, five bordered tables each.

Layout (widths in twips, A4 with 0.5in margins):
  1. Week Ending | Day | Subject / Duration | Strand / Class | Class Size | Sub Strand
  2. Content Standard | Indicator | Lesson
  3. Performance Indicator | Core Competencies
  4. Keywords / Reference
  5. Phase/Duration | Learners Activities | Resources, one row per phase
"""

import logging
import re

from docx import Document
from docx.enum.section import WD_SECTION
from docx.enum.table import WD_ALIGN_VERTICAL
from docx.enum.text import WD_ALIGN_PARAGRAPH
from docx.oxml import OxmlElement
from docx.oxml.ns import qn
from docx.shared import Inches, Pt, Twips

from notegen import blocks as B
from notegen.docx_writer import DocumentGenerationError, document_bytes
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

FONT = "Segoe UI"
BODY_SIZE = Pt(10)
SMALL_SIZE = Pt(9)
TITLE_SIZE = Pt(12)
HEADER_FILL = "D9D9D9"
MARGIN = Inches(0.5)

SPACE_CELL = Pt(4)
SPACE_CELL_TIGHT = Pt(2)
SPACE_BEFORE_EXERCISES = Pt(20)

HEADER_WIDTHS = [1500, 600, 1100, 2600, 2600, 2100]
STANDARDS_WIDTHS = [2100, 6300, 2100]
COMPETENCY_WIDTHS = [8232, 2268]
KEYWORD_WIDTHS = [2000, 8500]
PHASE_WIDTHS = [1701, 6497, 2268]

_EXERCISES_RE = re.compile(r"Sample Class Exercises", re.IGNORECASE)


def _style_run(run, bold=False, italic=False, size=BODY_SIZE):
    run.bold = bold
    if italic:
        run.italic = True
    run.font.name = FONT
    run.font.size = size
    return run


def _spacing(paragraph, before, after):
    paragraph.paragraph_format.space_before = before
    paragraph.paragraph_format.space_after = after


def _next_paragraph(cell, first: list):
    """First call reuses the empty paragraph every new cell starts with."""
    if first:
        first.pop()
        return cell.paragraphs[0]
    return cell.add_paragraph()


def _shade(cell, fill=HEADER_FILL):
    tc_pr = cell._tc.get_or_add_tcPr()
    shd = OxmlElement("w:shd")
    shd.set(qn("w:val"), "clear")
    shd.set(qn("w:color"), "auto")
    shd.set(qn("w:fill"), fill)
    tc_pr.append(shd)


def _fill_label_cell(cell, label: str, value: str):
    """'Label:' in bold, then the normalized value; one paragraph per line."""
    lines = [line.strip() for line in clean_and_split_text(value) if line.strip()]
    first = [True]
    if not lines:
        p = _next_paragraph(cell, first)
        _style_run(p.add_run(f"{label}:"), bold=True)
        _style_run(p.add_run(" "))
        _spacing(p, SPACE_CELL, SPACE_CELL)
        return
    for i, line in enumerate(lines):
        p = _next_paragraph(cell, first)
        if i == 0:
            _style_run(p.add_run(f"{label}:"), bold=True)
            line = " " + line
        for token in parse_markdown_line(line):
            _style_run(p.add_run(token.text), bold=token.bold, italic=token.italic)
        _spacing(p, SPACE_CELL if i == 0 else SPACE_CELL_TIGHT,
                 SPACE_CELL if i == len(lines) - 1 else Pt(0))


def _cell_blocks(text: str):
    """Classified blocks for a table cell; nested tables flatten to one line per row."""
    for block in B.classify_lines(clean_and_split_text(text)):
        if block.kind in (B.BLANK, B.PAGE_BREAK):
            continue
        if block.kind == B.TABLE:
            for row in block.rows:
                line = " | ".join(row)
                yield B.Block(B.PARAGRAPH, tokens=parse_markdown_line(line), text=line)
            continue
        yield block


def _fill_text_cell(cell, text: str, bold=False, header=False):
    """Free text through the shared normalizer and line classifier."""
    first = [True]
    align = WD_ALIGN_PARAGRAPH.CENTER if header else WD_ALIGN_PARAGRAPH.LEFT
    for block in _cell_blocks(text):
        p = _next_paragraph(cell, first)
        p.alignment = align
        if block.kind == B.BULLET:
            _style_run(p.add_run(f"{B.BULLET_CHAR} "), bold=bold)
        elif block.kind == B.NUMBERED:
            _style_run(p.add_run(f"{block.marker} "), bold=bold)
        for token in block.tokens:
            _style_run(p.add_run(token.text), bold=bold or block.bold or token.bold, italic=token.italic)
        before = SPACE_BEFORE_EXERCISES if _EXERCISES_RE.search(block.text) else SPACE_CELL
        _spacing(p, before, SPACE_CELL)
    if first:
        p = cell.paragraphs[0]
        p.alignment = align
        _style_run(p.add_run(""))
        _spacing(p, SPACE_CELL, SPACE_CELL)
    cell.vertical_alignment = WD_ALIGN_VERTICAL.TOP
    if header:
        _shade(cell)


def _fill_phase_name_cell(cell, name: str, duration: str):
    p = cell.paragraphs[0]
    _style_run(p.add_run(name), bold=True)
    _spacing(p, SPACE_CELL, SPACE_CELL_TIGHT)
    p = cell.add_paragraph()
    _style_run(p.add_run(f"({duration})"), bold=True, size=SMALL_SIZE)
    _spacing(p, Pt(0), SPACE_CELL)
    cell.vertical_alignment = WD_ALIGN_VERTICAL.TOP


def _new_table(doc, rows: int, widths: list):
    table = doc.add_table(rows=rows, cols=len(widths))
    table.style = "Table Grid"
    table.autofit = False
    for col, width in zip(table.columns, widths):
        for cell in col.cells:
            cell.width = Twips(width)
    return table


def _table_gap(doc):
    """Hairline paragraph so Word keeps consecutive tables apart."""
    p = doc.add_paragraph()
    fmt = p.paragraph_format
    fmt.space_before = Pt(0)
    fmt.space_after = Pt(0)
    fmt.line_spacing = Pt(1)


def _add_heading_line(doc, text: str, space_after, underline=False):
    p = doc.add_paragraph()
    p.alignment = WD_ALIGN_PARAGRAPH.CENTER
    run = _style_run(p.add_run(text), bold=True, size=TITLE_SIZE)
    if underline:
        run.underline = True
    p.paragraph_format.space_after = space_after


def _add_header_table(doc, plan):
    table = _new_table(doc, 3, HEADER_WIDTHS)
    r0 = table.rows[0].cells
    _fill_label_cell(r0[0], "Week Ending", plan.week_ending)
    _fill_label_cell(r0[1].merge(r0[2]), "Day", plan.day)
    _fill_label_cell(r0[3].merge(r0[5]), "Subject", format_subject(plan.subject))
    r1 = table.rows[1].cells
    _fill_label_cell(r1[0].merge(r1[2]), "Duration", plan.duration)
    _fill_label_cell(r1[3].merge(r1[5]), "Strand", clean_strand(plan.strand))
    r2 = table.rows[2].cells
    _fill_label_cell(r2[0], "Class", format_class(plan.class_name))
    _fill_label_cell(r2[1].merge(r2[2]), "Class Size", plan.class_size)
    _fill_label_cell(r2[3].merge(r2[5]), "Sub Strand", clean_strand(plan.sub_strand))


def _add_standards_table(doc, plan, index, total):
    cells = _new_table(doc, 1, STANDARDS_WIDTHS).rows[0].cells
    _fill_label_cell(cells[0], "Content Standard", clean_content_standard(plan.content_standard))
    _fill_label_cell(cells[1], "Indicator", plan.indicator)
    label, _, value = lesson_label(plan, index, total).partition(":")
    _fill_label_cell(cells[2], label, value.strip())


def _add_competency_table(doc, plan):
    cells = _new_table(doc, 1, COMPETENCY_WIDTHS).rows[0].cells
    _fill_label_cell(cells[0], "Performance Indicator",
                     ensure_performance_indicator_prefix(plan.performance_indicator))
    _fill_label_cell(cells[1], "Core Competencies", plan.core_competencies)


def _add_keyword_table(doc, plan):
    table = _new_table(doc, 2, KEYWORD_WIDTHS)
    _fill_label_cell(table.cell(0, 0), "Keywords", "")
    _fill_text_cell(table.cell(0, 1), plan.keywords)
    _fill_label_cell(table.cell(1, 0), "Reference", "")
    _fill_text_cell(table.cell(1, 1), reference_text(plan))


def _add_phase_table(doc, plan):
    table = _new_table(doc, 4, PHASE_WIDTHS)
    for cell, title in zip(table.rows[0].cells, ("Phase/Duration", "Learners Activities", "Resources")):
        _fill_text_cell(cell, title, bold=True, header=True)
    phases = (
        ("PHASE 1: STARTER", STARTER_DURATION, plan.starter),
        ("PHASE 2: NEW LEARNING", NEW_LEARNING_DURATION, plan.new_learning),
        ("PHASE 3: REFLECTION", REFLECTION_DURATION, plan.reflection),
    )
    for row, (name, duration, phase) in zip(table.rows[1:], phases):
        cells = row.cells
        _fill_phase_name_cell(cells[0], name, duration)
        _fill_text_cell(cells[1], capitalize_first_letter(phase.learner_activities))
        _fill_text_cell(cells[2], capitalize_first_letter(phase.resources))


def _add_lesson(doc, plan, index, total):
    _add_heading_line(doc, format_term(plan.term), Pt(5))
    class_title = format_class(plan.class_name or "Basic 1").upper()
    _add_heading_line(doc, f"WEEKLY LESSON PLAN – {class_title}", Pt(5))
    _add_heading_line(doc, format_week(plan.week_number), Pt(15), underline=True)

    _add_header_table(doc, plan)
    _table_gap(doc)
    _add_standards_table(doc, plan, index, total)
    _table_gap(doc)
    _add_competency_table(doc, plan)
    _table_gap(doc)
    _add_keyword_table(doc, plan)
    _table_gap(doc)
    _add_phase_table(doc, plan)


def _set_margins(section):
    section.left_margin = MARGIN
    section.right_margin = MARGIN
    section.top_margin = MARGIN
    section.bottom_margin = MARGIN


def build_lesson_plan_document(plans):
    """Document with one section per lesson plan."""
    doc = Document()
    total = len(plans)
    for index, plan in enumerate(plans):
        section = doc.sections[0] if index == 0 else doc.add_section(WD_SECTION.NEW_PAGE)
        _set_margins(section)
        _add_lesson(doc, plan, index, total)
    return doc


def render_lesson_plan_docx(plans) -> bytes:
    """Lesson plans as .docx bytes. Raises DocumentGenerationError on failure."""
    if not plans:
        raise DocumentGenerationError("Failed to generate Ghana lesson plan document")
    try:
        data = document_bytes(build_lesson_plan_document(plans))
    except Exception as e:
        logger.error("Lesson plan DOCX generation failed: %s", e)
        raise DocumentGenerationError("Failed to generate Ghana lesson plan document") from e
    logger.info("Lesson plan DOCX generated: %d lesson(s), %d bytes", len(plans), len(data))
    return data
