"""Server-side PDF rendering (reportlab platypus) and a pdfplumber text check.

Uses the same block classification as the DOCX and HTML assemblers, so a
heading, bullet or table reads the same in every format.
"""

import io
import logging
import re

from reportlab.lib.colors import HexColor
from reportlab.lib.enums import TA_CENTER, TA_LEFT
from reportlab.lib.pagesizes import A4
from reportlab.lib.styles import ParagraphStyle
from reportlab.lib.units import inch
from reportlab.platypus import (
    BaseDocTemplate,
    Flowable,
    Frame,
    PageBreak,
    PageTemplate,
    Paragraph,
    Spacer,
    Table,
    TableStyle,
)

from notegen import blocks as B
from notegen.docx_writer import DocumentGenerationError
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

PAGE_W, PAGE_H = A4
MARGIN = 0.5 * inch
CONTENT_W = PAGE_W - 2 * MARGIN

BLACK = HexColor("#000000")
HEADER_GRAY = HexColor("#D9D9D9")

SANS_FONT = "Helvetica"
SANS_FONT_BOLD = "Helvetica-Bold"

BODY_SIZE = 10
SMALL_SIZE = 9
TITLE_SIZE = 12
NOTE_TITLE_SIZE = 16
BULLET_INDENT = 11
RULE_HEIGHT = 0.6

# Fractions of CONTENT_W, from the DOCX twip widths
HEADER_COLS = [1500, 600, 1100, 2600, 2600, 2100]
STANDARDS_COLS = [2100, 6300, 2100]
COMPETENCY_COLS = [8232, 2268]
KEYWORD_COLS = [2000, 8500]
PHASE_COLS = [1701, 6497, 2268]

_EXERCISES_RE = re.compile(r"Sample Class Exercises", re.IGNORECASE)


def _esc(text: str) -> str:
    """Escape text for reportlab Paragraph XML."""
    if not text:
        return ""
    return (
        text.replace("&", "&amp;")
        .replace("<", "&lt;")
        .replace(">", "&gt;")
        .replace('"', "&quot;")
    )


def _markup(tokens) -> str:
    parts = []
    for token in tokens:
        text = _esc(token.text)
        if token.italic:
            text = f"<i>{text}</i>"
        if token.bold:
            text = f"<b>{text}</b>"
        parts.append(text)
    return "".join(parts)


def _widths(twips: list, total=CONTENT_W) -> list:
    s = sum(twips)
    return [total * t / s for t in twips]


def _build_styles():
    styles = {}
    styles["title"] = ParagraphStyle(
        "title", fontName=SANS_FONT_BOLD, fontSize=NOTE_TITLE_SIZE,
        textColor=BLACK, alignment=TA_CENTER, leading=NOTE_TITLE_SIZE + 4,
        spaceAfter=8,
    )
    styles["plan_title"] = ParagraphStyle(
        "plan_title", fontName=SANS_FONT_BOLD, fontSize=TITLE_SIZE,
        textColor=BLACK, alignment=TA_CENTER, leading=TITLE_SIZE + 3,
        spaceAfter=3,
    )
    styles["meta"] = ParagraphStyle(
        "meta", fontName=SANS_FONT, fontSize=BODY_SIZE,
        textColor=BLACK, alignment=TA_LEFT, leading=BODY_SIZE + 3,
        spaceAfter=3,
    )
    styles["body"] = ParagraphStyle(
        "body", fontName=SANS_FONT, fontSize=BODY_SIZE,
        textColor=BLACK, alignment=TA_LEFT, leading=BODY_SIZE + 3,
        spaceAfter=4,
    )
    styles["heading"] = ParagraphStyle(
        "heading", parent=styles["body"], fontName=SANS_FONT_BOLD,
        spaceBefore=4,
    )
    styles["bullet"] = ParagraphStyle(
        "bullet", parent=styles["body"],
        leftIndent=BULLET_INDENT, firstLineIndent=-BULLET_INDENT + 2,
    )
    styles["cell"] = ParagraphStyle(
        "cell", fontName=SANS_FONT, fontSize=BODY_SIZE,
        textColor=BLACK, alignment=TA_LEFT, leading=BODY_SIZE + 2,
        spaceAfter=2,
    )
    styles["cell_small"] = ParagraphStyle(
        "cell_small", parent=styles["cell"], fontName=SANS_FONT_BOLD, fontSize=SMALL_SIZE,
    )
    return styles


class HRLineFlowable(Flowable):
    """Horizontal rule spanning the frame width."""

    def __init__(self, width, color=BLACK, thickness=RULE_HEIGHT):
        super().__init__()
        self.width = width
        self.color = color
        self.thickness = thickness
        self.spaceAfter = 8

    def wrap(self, available_width, available_height):
        return (self.width, self.thickness + 2)

    def draw(self):
        self.canv.saveState()
        self.canv.setStrokeColor(self.color)
        self.canv.setLineWidth(self.thickness)
        self.canv.line(0, 1, self.width, 1)
        self.canv.restoreState()


_GRID = [
    ("GRID", (0, 0), (-1, -1), 0.5, BLACK),
    ("VALIGN", (0, 0), (-1, -1), "TOP"),
    ("LEFTPADDING", (0, 0), (-1, -1), 6),
    ("RIGHTPADDING", (0, 0), (-1, -1), 6),
    ("TOPPADDING", (0, 0), (-1, -1), 4),
    ("BOTTOMPADDING", (0, 0), (-1, -1), 4),
]


def _block_flowables(block, styles, cell=False) -> list:
    """Flowables for one classified block; ``cell`` uses the tighter table style."""
    body = styles["cell"] if cell else styles["body"]
    if block.kind == B.BLANK:
        return [] if cell else [Spacer(1, BODY_SIZE / 2)]
    if block.kind == B.PAGE_BREAK:
        return [] if cell else [PageBreak()]
    if block.kind == B.TABLE:
        if cell:
            # no nested tables inside plan cells; one line per row
            return [Paragraph(_markup(parse_markdown_line(" | ".join(row))), body) for row in block.rows]
        return [_markdown_table(block.rows, styles)]
    markup = _markup(block.tokens)
    if block.kind == B.HEADING:
        style = body if cell else styles["heading"]
        if _EXERCISES_RE.search(block.text):
            style = ParagraphStyle("exercises", parent=style, spaceBefore=20)
        return [Paragraph(f"<b>{markup}</b>", style)]
    if block.kind == B.BULLET:
        return [Paragraph(f"{B.BULLET_CHAR} {markup}", body if cell else styles["bullet"])]
    if block.kind == B.NUMBERED:
        return [Paragraph(f"<b>{_esc(block.marker)}</b> {markup}", body)]
    return [Paragraph(markup, body)]


def _markdown_table(rows, styles, width=CONTENT_W):
    n_cols = max(len(r) for r in rows)
    data = []
    for r, row in enumerate(rows):
        cells = []
        for c in range(n_cols):
            markup = _markup(parse_markdown_line(row[c] if c < len(row) else ""))
            cells.append([Paragraph(f"<b>{markup}</b>" if r == 0 and markup else markup, styles["cell"])])
        data.append(cells)
    t = Table(data, colWidths=[width / n_cols] * n_cols, repeatRows=1, splitInRow=1)
    t.setStyle(TableStyle(_GRID))
    return t


def _text_flowables(text: str, styles, cell=False) -> list:
    out = []
    for block in B.classify_lines(clean_and_split_text(text or "")):
        out.extend(_block_flowables(block, styles, cell=cell))
    if cell and not out:
        out.append(Paragraph("", styles["cell"]))
    return out


def _build_pdf(story: list) -> bytes:
    buf = io.BytesIO()
    frame = Frame(
        MARGIN, MARGIN,
        CONTENT_W, PAGE_H - 2 * MARGIN,
        leftPadding=0, rightPadding=0,
        topPadding=0, bottomPadding=0,
    )
    template = PageTemplate(id="lesson", frames=[frame])
    doc = BaseDocTemplate(
        buf, pagesize=A4,
        leftMargin=MARGIN, rightMargin=MARGIN,
        topMargin=MARGIN, bottomMargin=MARGIN,
    )
    doc.addPageTemplates([template])
    doc.build(story)
    return buf.getvalue()


def render_lesson_note_pdf(text: str, metadata) -> bytes:
    """Free-text lesson note as PDF bytes."""
    styles = _build_styles()
    story = [Paragraph("LESSON NOTE", styles["title"])]
    for label, value in metadata.labelled_fields():
        story.append(Paragraph(f"<b>{_esc(label)}:</b> {_esc(value)}", styles["meta"]))
    story.append(HRLineFlowable(CONTENT_W))
    story.extend(_text_flowables(text, styles))
    try:
        data = _build_pdf(story)
    except Exception as e:
        logger.error("PDF generation failed: %s", e)
        raise DocumentGenerationError("Failed to generate PDF document") from e
    logger.info("Lesson note PDF generated (%d bytes)", len(data))
    return data


# --- Weekly lesson plan ---

def _label_para(label: str, value: str, styles):
    lines = [line.strip() for line in clean_and_split_text(value or "") if line.strip()]
    body = "<br/>".join(_markup(parse_markdown_line(line)) for line in lines)
    return Paragraph(f"<b>{_esc(label)}:</b> {body}", styles["cell"])


def _grid_table(data, twips, extra=None):
    # rows taller than a page split across pages; splitting needs flowable lists
    data = [[c if isinstance(c, (list, str)) else [c] for c in row] for row in data]
    t = Table(data, colWidths=_widths(twips), splitInRow=1)
    t.setStyle(TableStyle(_GRID + (extra or [])))
    return t


def _plan_flowables(plan, index: int, total: int, styles) -> list:
    cell = styles["cell"]
    class_title = format_class(plan.class_name or "Basic 1").upper()
    week = format_week(plan.week_number)
    story = [
        Paragraph(_esc(format_term(plan.term)), styles["plan_title"]),
        Paragraph(f"WEEKLY LESSON PLAN – {_esc(class_title)}", styles["plan_title"]),
        Paragraph(f"<u>{_esc(week)}</u>", ParagraphStyle("week", parent=styles["plan_title"], spaceAfter=10)),
    ]

    def lp(label, value):
        return _label_para(label, value, styles)

    header = [
        [lp("Week Ending", plan.week_ending), lp("Day", plan.day), "",
         lp("Subject", format_subject(plan.subject)), "", ""],
        [lp("Duration", plan.duration), "", "", lp("Strand", clean_strand(plan.strand)), "", ""],
        [lp("Class", format_class(plan.class_name)), lp("Class Size", plan.class_size), "",
         lp("Sub Strand", clean_strand(plan.sub_strand)), "", ""],
    ]
    story.append(_grid_table(header, HEADER_COLS, [
        ("SPAN", (1, 0), (2, 0)), ("SPAN", (3, 0), (5, 0)),
        ("SPAN", (0, 1), (2, 1)), ("SPAN", (3, 1), (5, 1)),
        ("SPAN", (1, 2), (2, 2)), ("SPAN", (3, 2), (5, 2)),
    ]))
    story.append(Spacer(1, 2))

    lesson_name, _, lesson_value = lesson_label(plan, index, total).partition(":")
    story.append(_grid_table([[
        lp("Content Standard", clean_content_standard(plan.content_standard)),
        lp("Indicator", plan.indicator),
        lp(lesson_name, lesson_value.strip()),
    ]], STANDARDS_COLS))
    story.append(Spacer(1, 2))

    story.append(_grid_table([[
        lp("Performance Indicator", ensure_performance_indicator_prefix(plan.performance_indicator)),
        lp("Core Competencies", plan.core_competencies),
    ]], COMPETENCY_COLS))
    story.append(Spacer(1, 2))

    story.append(_grid_table([
        [Paragraph("<b>Keywords:</b>", cell), _text_flowables(plan.keywords, styles, cell=True)],
        [Paragraph("<b>Reference:</b>", cell), Paragraph(_esc(reference_text(plan)), cell)],
    ], KEYWORD_COLS))
    story.append(Spacer(1, 2))

    phases = [
        [Paragraph("<b>Phase/Duration</b>", cell),
         Paragraph("<b>Learners Activities</b>", cell),
         Paragraph("<b>Resources</b>", cell)],
    ]
    for name, duration, phase in (
        ("PHASE 1: STARTER", STARTER_DURATION, plan.starter),
        ("PHASE 2: NEW LEARNING", NEW_LEARNING_DURATION, plan.new_learning),
        ("PHASE 3: REFLECTION", REFLECTION_DURATION, plan.reflection),
    ):
        phases.append([
            [Paragraph(f"<b>{name}</b>", cell), Paragraph(f"({duration})", styles["cell_small"])],
            _text_flowables(capitalize_first_letter(phase.learner_activities), styles, cell=True),
            _text_flowables(capitalize_first_letter(phase.resources), styles, cell=True),
        ])
    story.append(_grid_table(phases, PHASE_COLS, [
        ("BACKGROUND", (0, 0), (-1, 0), HEADER_GRAY),
    ]))
    return story


def render_lesson_plan_pdf(plans) -> bytes:
    """Weekly lesson plans as PDF bytes, one lesson per page."""
    if not plans:
        raise DocumentGenerationError("Failed to generate PDF document")
    styles = _build_styles()
    story = []
    total = len(plans)
    for index, plan in enumerate(plans):
        if index:
            story.append(PageBreak())
        story.extend(_plan_flowables(plan, index, total, styles))
    try:
        data = _build_pdf(story)
    except Exception as e:
        logger.error("PDF generation failed: %s", e)
        raise DocumentGenerationError("Failed to generate PDF document") from e
    logger.info("Lesson plan PDF generated: %d lesson(s), %d bytes", total, len(data))
    return data


def check_pdf_text(pdf_bytes: bytes, expected=()) -> dict:
    """Extract text from a generated PDF and verify it is readable."""
    result = {
        "text_extractable": False,
        "total_chars": 0,
        "pages": 0,
        "found": [],
        "issues": [],
    }
    try:
        import pdfplumber
        with pdfplumber.open(io.BytesIO(pdf_bytes)) as pdf:
            full_text = ""
            for page in pdf.pages:
                full_text += (page.extract_text() or "") + "\n"
            result["pages"] = len(pdf.pages)

        result["text_extractable"] = len(full_text.strip()) > 20
        result["total_chars"] = len(full_text)

        lowered = full_text.lower()
        for phrase in expected:
            if phrase.lower() in lowered:
                result["found"].append(phrase)
            else:
                result["issues"].append(f"'{phrase}' not found in extracted text")
    except Exception as e:
        result["issues"].append(f"PDF parse error: {str(e)}")

    return result
