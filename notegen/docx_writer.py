"""Lesson note DOCX assembler (python-docx).

Free-form lesson note text -> a single-section Word document with a metadata
header, bold headings, bullet glyphs and real tables for markdown table rows.
"""

import io
import logging
import re
from dataclasses import dataclass
from datetime import date

from docx import Document
from docx.enum.text import WD_ALIGN_PARAGRAPH
from docx.shared import Inches, Pt

from notegen import blocks as B
from notegen.markdown_tokens import parse_markdown_line
from notegen.text_normalizer import clean_and_split_text

logger = logging.getLogger(__name__)

MARGIN = Inches(1)
SPACE_AFTER_PARAGRAPH = Pt(7.5)
SPACE_AFTER_META = Pt(5)
SEPARATOR = "─" * 80


class DocumentGenerationError(Exception):
    """Raised when a document cannot be built or serialized."""


@dataclass(frozen=True)
class LessonMetadata:
    subject: str = ""
    level: str = ""
    strand: str = ""
    sub_strand: str = ""
    content_standard: str = ""
    template_name: str = ""

    @classmethod
    def from_dict(cls, data: dict) -> "LessonMetadata":
        data = data or {}
        return cls(
            subject=data.get("subject") or "",
            level=data.get("level") or "",
            strand=data.get("strand") or "",
            sub_strand=data.get("sub_strand") or data.get("subStrand") or "",
            content_standard=data.get("content_standard") or data.get("contentStandard") or "",
            template_name=data.get("template_name") or data.get("templateName") or "",
        )

    def labelled_fields(self) -> list:
        """(label, value) pairs for the fields that are set, in header order."""
        pairs = [
            ("Subject", self.subject),
            ("Grade Level", self.level),
            ("Strand", self.strand),
            ("Sub-Strand", self.sub_strand),
            ("Content Standard", self.content_standard),
            ("Template", self.template_name),
        ]
        return [(label, value) for label, value in pairs if value]


def _add_runs(paragraph, tokens, force_bold=False):
    for token in tokens:
        run = paragraph.add_run(token.text)
        run.bold = force_bold or token.bold
        if token.italic:
            run.italic = True


def _add_header(doc, metadata: LessonMetadata):
    title = doc.add_paragraph("LESSON NOTE", style="Title")
    title.alignment = WD_ALIGN_PARAGRAPH.CENTER

    for label, value in metadata.labelled_fields():
        p = doc.add_paragraph()
        p.add_run(f"{label}: ").bold = True
        p.add_run(value)
        p.paragraph_format.space_after = SPACE_AFTER_META

    sep = doc.add_paragraph(SEPARATOR)
    sep.paragraph_format.space_after = Pt(10)


def _add_table(doc, rows):
    n_cols = max(len(r) for r in rows)
    table = doc.add_table(rows=len(rows), cols=n_cols)
    table.style = "Table Grid"
    for r, row in enumerate(rows):
        for c in range(n_cols):
            cell_text = row[c] if c < len(row) else ""
            _add_runs(table.cell(r, c).paragraphs[0], parse_markdown_line(cell_text))
    return table


def _add_block(doc, block):
    if block.kind == B.BLANK:
        doc.add_paragraph()
        return
    if block.kind == B.PAGE_BREAK:
        doc.add_page_break()
        return
    if block.kind == B.TABLE:
        _add_table(doc, block.rows)
        return

    p = doc.add_paragraph()
    if block.kind == B.BULLET:
        p.add_run(f"{B.BULLET_CHAR} ")
    elif block.kind == B.NUMBERED:
        p.add_run(f"{block.marker} ")
    _add_runs(p, block.tokens, force_bold=block.bold)
    p.paragraph_format.space_after = SPACE_AFTER_PARAGRAPH


def build_lesson_note_document(text: str, metadata: LessonMetadata):
    """Build the python-docx Document for a free-form lesson note."""
    doc = Document()
    section = doc.sections[0]
    section.left_margin = MARGIN
    section.right_margin = MARGIN
    section.top_margin = MARGIN
    section.bottom_margin = MARGIN

    _add_header(doc, metadata)
    for block in B.classify_lines(clean_and_split_text(text)):
        _add_block(doc, block)
    return doc


def document_bytes(doc) -> bytes:
    buf = io.BytesIO()
    doc.save(buf)
    return buf.getvalue()


def render_lesson_note_docx(text: str, metadata: LessonMetadata) -> bytes:
    """Lesson note as .docx bytes. Raises DocumentGenerationError on failure."""
    try:
        data = document_bytes(build_lesson_note_document(text, metadata))
    except Exception as e:
        logger.error("DOCX generation failed: %s", e)
        raise DocumentGenerationError("Failed to generate Word document") from e
    logger.info("Lesson note DOCX generated (%d bytes)", len(data))
    return data


def _slug(value: str) -> str:
    return re.sub(r"\s+", "-", value.strip()).lower()


def lesson_note_filename(metadata: LessonMetadata, today: date = None) -> str:
    today = today or date.today()
    return f"lesson-note-{_slug(metadata.subject)}-{_slug(metadata.level)}-{today.isoformat()}.docx"
