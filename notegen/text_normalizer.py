"""Text normalization for AI-generated lesson notes.

The AI returns free-form prose: numbered and lettered lists run together on a
single line, activity headers split from their descriptions, and stray bold
markers. clean_and_split_text() turns one such blob into the ordered list of
logical lines the DOCX, HTML and PDF assemblers render.

Only two repairs ever join lines: a bare list marker ("4.") is joined with the
line after it, and a section header ("Activity 3:") is joined with its
description. Every other rule only inserts line breaks.
"""

import logging
import re

logger = logging.getLogger(__name__)

HEADER_WORDS = "Activity|Step|Part|Phase|Group"

# Phrases that open a new thought when they follow sentence-ending punctuation.
NEW_THOUGHT_PHRASES = (
    # Sequence
    "Next,", "Then,", "Finally,", "First,", "Second,", "Third,", "Firstly,",
    "Secondly,", "Thirdly,", "Lastly,", "To begin,", "To start,", "Initially,",
    # Addition
    "Additionally,", "Moreover,", "Furthermore,", "In addition,", "Also,",
    "Besides,", "Equally important,", "What is more,",
    # Contrast
    "However,", "Nevertheless,", "On the other hand,", "Conversely,",
    "In contrast,", "Although,", "Despite this,", "Yet,", "Still,", "Nonetheless,",
    # Cause and effect
    "Therefore,", "As a result,", "Consequently,", "Hence,", "Thus,",
    "Accordingly,", "For this reason,", "Because of this,",
    # Examples
    "For example,", "For instance,", "Such as,", "Specifically,",
    "In particular,", "To illustrate,", "As an example,",
    # Summary
    "In conclusion,", "To summarize,", "In summary,", "To conclude,", "Overall,",
    "In short,", "Briefly,", "To sum up,",
    # Time
    "Meanwhile,", "Subsequently,", "Afterwards,", "Before this,", "After this,",
    "During this,", "At the same time,", "Later,", "Earlier,",
    # Emphasis
    "Indeed,", "In fact,", "Certainly,", "Undoubtedly,", "Clearly,",
    "Obviously,", "Of course,", "Importantly,", "Significantly,",
    # Classroom instructions
    "Note that", "Remember that", "Ensure that", "Make sure", "Be sure to",
    "It is important to", "Students should", "Learners should", "Teachers should",
    "Ask students to", "Have students", "Guide students", "Allow students",
    "Encourage students", "Instruct students",
)

_ORPHAN_TRAILING_RE = re.compile(r"\*\*\s*$")

_NUMBERED_PERIOD_RE = re.compile(r"([^\n\d])[ \t]+(\d+\.\s)")
_NUMBERED_PAREN_RE = re.compile(r"([^\n\d])[ \t]+(\d+\)\s)")
_LETTERED_RE = re.compile(r"([^\n])[ \t]+([a-zA-Z][).]\s)")
_TIER_RE = re.compile(r"([^\n])[ \t]+(Tier\s\d)", re.IGNORECASE)

_NEW_THOUGHT_RE = re.compile(
    r"([.!?])[ \t]+(" + "|".join(re.escape(p) for p in NEW_THOUGHT_PHRASES) + r")",
    re.IGNORECASE,
)
_DOUBLE_SPACE_SENTENCE_RE = re.compile(r"([.!?])[ \t]{2,}([A-Z])")
_ACTOR_RE = re.compile(r"([.!?])[ \t]+(The teacher|The learner|Students|Learners|Pupils)\b")
_IMPERATIVE_RE = re.compile(
    r"([.!?])[ \t]+(Ask |Tell |Show |Explain |Demonstrate |Guide |Have |Let |Allow |Encourage )"
)

# "**Activity 1:**", "**Activity 1" and "Activity 1:**" all lose their markers.
_HEADER_WRAPPED_RE = re.compile(rf"\*\*\b({HEADER_WORDS})[ \t]+(\d+:?)\*\*", re.IGNORECASE)
_HEADER_LEADING_RE = re.compile(rf"\*\*\b({HEADER_WORDS})[ \t]+(\d+:?)", re.IGNORECASE)
_HEADER_TRAILING_RE = re.compile(rf"\b({HEADER_WORDS})[ \t]+(\d+:?)\*\*", re.IGNORECASE)

# A header that ends its line is joined with the next non-blank line, unless
# that line is a bullet, table row, markdown heading or list item.
_HEADER_MERGE_RE = re.compile(
    rf"(\**\b(?:{HEADER_WORDS})[ \t]+\d+(?::|[^\n]*?:)?\**)[ \t]*[\r\n]+\s*"
    r"(?!\s|[|#]|[-*•]\s|\(?\d+[.)]\s)",
    re.IGNORECASE,
)
_HEADER_NEWLINE_RE = re.compile(rf"([^\s#*•-])[ \t]*(\b(?:{HEADER_WORDS})[ \t]+\d+:)", re.IGNORECASE)

_HEADER_LINE_RE = re.compile(rf"^\**\s*(?:{HEADER_WORDS})\s+\d+", re.IGNORECASE)
_LESSON_LINE_RE = re.compile(r"^\**\s*Lesson:\s*\d+\s*of\s*\d+", re.IGNORECASE)

_MANY_ASTERISKS_RE = re.compile(r"\*{4,}")
_MANY_NEWLINES_RE = re.compile(r"\n{3,}")
_BROKEN_NUMBER_RE = re.compile(r"(^|\n)([ \t]*(?:\*\*)?\(?\d+[.)](?:\*\*)?)[ \t]*\n\s*(?![\s|])")
_COLON_SPLIT_RE = re.compile(
    rf"(^|\n)(?!\||\**\s*(?i:(?:{HEADER_WORDS})\s+\d+|Lesson:\s*\d+))([^:\n]{{3,60}}:)[ \t]+([A-Z0-9(])"
)


def _drop_orphan_marker(line: str) -> str:
    if len(re.findall(r"\*\*", line)) % 2 == 0:
        return line
    if line.rstrip().endswith("**"):
        return _ORPHAN_TRAILING_RE.sub("", line)
    idx = line.rfind("**")
    return line[:idx] + line[idx + 2:]


def remove_orphan_asterisks(text: str) -> str:
    """Drop one unmatched ``**`` from every line that has an odd count.

    A trailing marker is preferred ("Activity 3: Cardinal Directions**"),
    otherwise the last one on the line goes. Balanced bold is left alone.
    """
    if not text:
        return text
    return "\n".join(_drop_orphan_marker(line) for line in text.split("\n"))


def _map_prose_lines(fn, text: str) -> str:
    """Apply fn to every line except markdown table rows."""
    return "\n".join(
        line if line.lstrip().startswith("|") else fn(line)
        for line in text.split("\n")
    )


def _split_run_together(line: str) -> str:
    # Lists: "1. A 2. B", "1) A 2) B", "a) x b) y", "Tier 1 ... Tier 2"
    line = _NUMBERED_PERIOD_RE.sub(r"\1\n\2", line)
    line = _NUMBERED_PAREN_RE.sub(r"\1\n\2", line)
    line = _LETTERED_RE.sub(r"\1\n\2", line)
    line = _TIER_RE.sub(r"\1\n\2", line)
    # New thoughts after sentence-ending punctuation
    line = _NEW_THOUGHT_RE.sub(r"\1\n\2", line)
    line = _DOUBLE_SPACE_SENTENCE_RE.sub(r"\1\n\2", line)
    line = _ACTOR_RE.sub(r"\1\n\2", line)
    return _IMPERATIVE_RE.sub(r"\1\n\2", line)


def _wrap_header_lines(text: str) -> str:
    out = []
    for line in text.split("\n"):
        trimmed = line.strip()
        if trimmed and (_HEADER_LINE_RE.match(trimmed) or _LESSON_LINE_RE.match(trimmed)):
            out.append(f"**{trimmed.replace('**', '').strip()}**")
        else:
            out.append(line)
    return "\n".join(out)


def clean_and_split_text(text: str) -> list:
    """Split an AI-generated blob into logical lines.

    Returns an empty list for empty input.
    """
    if not text:
        return []

    processed = text.replace("\r\n", "\n").replace("\r", "\n")
    processed = remove_orphan_asterisks(processed)
    processed = _map_prose_lines(_split_run_together, processed)

    processed = _HEADER_WRAPPED_RE.sub(r"\1 \2", processed)
    processed = _HEADER_LEADING_RE.sub(r"\1 \2", processed)
    processed = _HEADER_TRAILING_RE.sub(r"\1 \2", processed)

    processed = _HEADER_MERGE_RE.sub(r"\1 ", processed)
    processed = _map_prose_lines(lambda line: _HEADER_NEWLINE_RE.sub(r"\1\n\n\2", line), processed)
    processed = _wrap_header_lines(processed)

    processed = _MANY_ASTERISKS_RE.sub("**", processed)
    processed = _MANY_NEWLINES_RE.sub("\n\n", processed)

    # Runs last so nothing above splits the marker off again.
    processed = _BROKEN_NUMBER_RE.sub(r"\1\2 ", processed)
    processed = _COLON_SPLIT_RE.sub(r"\1\2\n\3", processed)

    # Line splitting can cut a bold span in two.
    processed = remove_orphan_asterisks(processed)

    lines = processed.split("\n")
    logger.debug("Normalized %d chars into %d lines", len(text), len(lines))
    return lines


def capitalize_first_letter(text: str) -> str:
    if not text:
        return text
    return text[0].upper() + text[1:]


_RECAP_RE = re.compile(r"(^|\n)(?!\*\*)(Recap Activity:[^\n]*)", re.IGNORECASE)
_ORAL_QUIZ_RE = re.compile(r"(^|\n)(?!\*\*)(Quick oral quiz:)", re.IGNORECASE)
_TEACHER_SUMMARY_RE = re.compile(r"(^|\n)(?!\*\*)(Teacher summari[sz]es[^:\n]*:)", re.IGNORECASE)
_SAMPLE_EXERCISES_RE = re.compile(r"\n*(\*\*)?(Sample Class Exercises):?(\*\*)?", re.IGNORECASE)


def format_generated_content(text: str) -> str:
    """Bold the recurring section labels in AI text output and tidy spacing."""
    if not text:
        return text
    formatted = _RECAP_RE.sub(r"\1**\2**", text)
    formatted = _ORAL_QUIZ_RE.sub(r"\1**\2**", formatted)
    formatted = _TEACHER_SUMMARY_RE.sub(r"\1**\2**", formatted)
    formatted = _SAMPLE_EXERCISES_RE.sub("\n\n**Sample Class Exercises:**", formatted)
    formatted = _MANY_NEWLINES_RE.sub("\n\n", formatted)
    formatted = formatted.replace("****", "**")
    return formatted.lstrip("\n")
