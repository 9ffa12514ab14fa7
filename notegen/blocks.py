"""Line classification shared by the DOCX, HTML and PDF assemblers.

Every normalized line is exactly one of: blank, paragraph, heading, bullet,
numbered item, page break, or part of a table. Consecutive table rows are
collected into a single table block.
"""

import logging
import re
from dataclasses import dataclass, field

from notegen.markdown_tokens import TextToken, parse_markdown_line

logger = logging.getLogger(__name__)

BULLET_CHAR = "•"

SECTION_HEADER_RE = re.compile(r"^(?:Activity|Step|Part|Phase|Group)\s+\d+", re.IGNORECASE)
MD_HEADING_RE = re.compile(r"^#+\s+")
BULLET_RE = re.compile(r"^[-*•]\s+")
NUMBERED_RE = re.compile(r"^(\(?\d+[.)])\s+")
LABEL_RE = re.compile(r"^[A-Za-z0-9\s()'/&,-]+:$")
TABLE_ROW_RE = re.compile(r"^\|.*\|$")
TABLE_SEPARATOR_RE = re.compile(r"^\|(?:\s*:?-+:?\s*\|)+$")
PAGE_BREAK_RE = re.compile(r"^-{3,}$")

BLANK = "blank"
PARAGRAPH = "paragraph"
HEADING = "heading"
BULLET = "bullet"
NUMBERED = "numbered"
TABLE = "table"
PAGE_BREAK = "page_break"


@dataclass
class Block:
    kind: str
    tokens: list = field(default_factory=list)
    rows: list = field(default_factory=list)
    bold: bool = False
    marker: str = ""
    text: str = ""


def is_section_header(line: str) -> bool:
    return bool(SECTION_HEADER_RE.match(line.replace("**", "").strip()))


def is_table_row(line: str) -> bool:
    return bool(TABLE_ROW_RE.match(line))


def is_table_separator(line: str) -> bool:
    return bool(TABLE_SEPARATOR_RE.match(line))


def split_table_row(line: str) -> list:
    """``| a | | b |`` -> ``["a", "", "b"]``; empty cells keep their column."""
    return [cell.strip() for cell in line.strip()[1:-1].split("|")]


def _strip_trailing_orphan(line: str) -> str:
    if line.count("**") % 2 and line.endswith("**"):
        return line[:-2].rstrip()
    return line


def _bold_tokens(text: str) -> list:
    return [TextToken(t.text, bold=True, italic=t.italic) for t in parse_markdown_line(text)]


def classify_line(line: str) -> Block:
    """Classify one non-table line."""
    stripped = _strip_trailing_orphan(line.strip())
    if not stripped:
        return Block(BLANK)
    if PAGE_BREAK_RE.match(stripped):
        return Block(PAGE_BREAK)
    if is_section_header(stripped):
        text = stripped.replace("**", "").strip()
        return Block(HEADING, tokens=[TextToken(text, bold=True)], bold=True, text=text)
    if MD_HEADING_RE.match(stripped):
        text = MD_HEADING_RE.sub("", stripped)
        return Block(HEADING, tokens=_bold_tokens(text), bold=True, text=text)
    if BULLET_RE.match(stripped):
        text = BULLET_RE.sub("", stripped)
        return Block(BULLET, tokens=parse_markdown_line(text), marker=BULLET_CHAR, text=text)
    if LABEL_RE.match(stripped.replace("**", "")):
        text = stripped.replace("**", "")
        return Block(HEADING, tokens=[TextToken(text, bold=True)], bold=True, text=text)
    m = NUMBERED_RE.match(stripped)
    if m:
        text = stripped[m.end():]
        return Block(NUMBERED, tokens=parse_markdown_line(text), marker=m.group(1), text=text)
    return Block(PARAGRAPH, tokens=parse_markdown_line(stripped), text=stripped)


def classify_lines(lines) -> list:
    """Turn normalized lines into blocks, collecting table rows into tables.

    Separator rows (``|---|:--:|``) are dropped without ending the table; the
    table is emitted when the first non-table line arrives or input ends.
    """
    blocks = []
    rows = []
    for raw in lines:
        line = raw.strip()
        if is_table_separator(line):
            continue
        if is_table_row(line):
            rows.append(split_table_row(line))
            continue
        if rows:
            blocks.append(Block(TABLE, rows=rows))
            rows = []
        blocks.append(classify_line(line))
    if rows:
        blocks.append(Block(TABLE, rows=rows))
    logger.debug("Classified %d lines into %d blocks", len(lines), len(blocks))
    return blocks
