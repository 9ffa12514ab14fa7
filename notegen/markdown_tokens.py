"""Inline markdown tokens: one logical line into bold / italic / plain runs."""

import re
from dataclasses import dataclass

_BOLD_SPLIT_RE = re.compile(r"(\*\*.+?\*\*)")
_ITALIC_SPLIT_RE = re.compile(r"(\*(?=\S)[^*]+?(?<=\S)\*)")


@dataclass(frozen=True)
class TextToken:
    """One inline run. Runs never nest; a line is a flat sequence of them."""

    text: str
    bold: bool = False
    italic: bool = False


def _italic_tokens(segment: str) -> list:
    tokens = []
    for part in _ITALIC_SPLIT_RE.split(segment):
        if not part:
            continue
        if _ITALIC_SPLIT_RE.fullmatch(part):
            tokens.append(TextToken(part[1:-1], italic=True))
        else:
            tokens.append(TextToken(part))
    return tokens


def parse_markdown_line(line: str) -> list:
    """Tokenize ``line`` on ``**bold**`` first, then ``*italic*`` in the rest.

    Markers without a partner stay in the text as literal characters, so for
    a line with balanced ``**`` pairs the token texts concatenate to the line
    with each pair removed once.
    """
    if not line:
        return []
    tokens = []
    for part in _BOLD_SPLIT_RE.split(line):
        if not part:
            continue
        if _BOLD_SPLIT_RE.fullmatch(part):
            content = part[2:-2]
            # "** **" carries no emphasis worth keeping
            tokens.append(TextToken(content, bold=bool(content.strip())))
        else:
            tokens.extend(_italic_tokens(part))
    return tokens


def tokens_to_text(tokens) -> str:
    return "".join(t.text for t in tokens)
