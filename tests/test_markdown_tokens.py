"""Tests for markdown_tokens.py: inline bold/italic runs."""

from notegen.markdown_tokens import TextToken, parse_markdown_line, tokens_to_text


class TestParseMarkdownLine:

    def test_empty(self):
        assert parse_markdown_line("") == []

    def test_plain(self):
        assert parse_markdown_line("plain text") == [TextToken("plain text")]

    def test_bold_in_middle(self):
        assert parse_markdown_line("Count **three** stones") == [
            TextToken("Count "),
            TextToken("three", bold=True),
            TextToken(" stones"),
        ]

    def test_italic(self):
        assert parse_markdown_line("*slowly* read") == [
            TextToken("slowly", italic=True),
            TextToken(" read"),
        ]

    def test_unbalanced_marker_stays_literal(self):
        tokens = parse_markdown_line("a **b")
        assert tokens_to_text(tokens) == "a **b"
        assert not any(t.bold for t in tokens)

    def test_whitespace_bold_is_plain(self):
        assert parse_markdown_line("** **") == [TextToken(" ")]

    def test_balanced_round_trip(self):
        line = "**Lesson:** Count **all** the stones"
        tokens = parse_markdown_line(line)
        assert tokens_to_text(tokens) == line.replace("**", "")
        assert [t.text for t in tokens if t.bold] == ["Lesson:", "all"]
