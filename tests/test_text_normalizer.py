"""Tests for text_normalizer.py: line splitting and repair of AI lesson note text."""

from notegen.text_normalizer import (
    capitalize_first_letter,
    clean_and_split_text,
    format_generated_content,
    remove_orphan_asterisks,
)


class TestListSplitting:
    """Lists the AI runs together on one line come apart."""

    def test_empty_input(self):
        assert clean_and_split_text("") == []
        assert clean_and_split_text(None) == []

    def test_numbered_period(self):
        assert clean_and_split_text("1. A 2. B") == ["1. A", "2. B"]

    def test_numbered_paren(self):
        assert clean_and_split_text("1) Count 2) Add") == ["1) Count", "2) Add"]

    def test_lettered(self):
        lines = clean_and_split_text("Choose one: a) red b) blue")
        assert lines == ["Choose one:", "a) red", "b) blue"]

    def test_new_thought_phrase(self):
        lines = clean_and_split_text("Count the stones. Next, add them.")
        assert lines == ["Count the stones.", "Next, add them."]

    def test_crlf_is_normalized(self):
        assert clean_and_split_text("Line one\r\nLine two") == ["Line one", "Line two"]

    def test_table_rows_untouched(self):
        row = "| a | 1. b 2. c |"
        assert clean_and_split_text(row) == [row]

    def test_tier_levels(self):
        lines = clean_and_split_text("Tier 1 reteach Tier 2 small groups Tier 3 one-to-one")
        assert lines == ["Tier 1 reteach", "Tier 2 small groups", "Tier 3 one-to-one"]

    def test_actor_starts_new_line(self):
        assert clean_and_split_text("Show the chart. Learners copy it.") == ["Show the chart.", "Learners copy it."]

    def test_imperative_starts_new_line(self):
        lines = clean_and_split_text("Learners read aloud. Ask them to point.")
        assert lines == ["Learners read aloud.", "Ask them to point."]


class TestHeaders:
    """Activity headers stay on one bold line with their description."""

    def test_header_joined_with_description(self):
        lines = clean_and_split_text("**Activity 2:**\nLearners count the bottle tops.")
        assert lines == ["**Activity 2: Learners count the bottle tops.**"]

    def test_header_mid_line_moves_to_own_line(self):
        lines = clean_and_split_text("Learners sit in groups. Activity 3: Sorting shapes")
        assert lines == ["Learners sit in groups.", "", "**Activity 3: Sorting shapes**"]

    def test_lesson_line_is_bold_and_not_split(self):
        assert clean_and_split_text("Lesson: 1 of 3") == ["**Lesson: 1 of 3**"]

    def test_header_on_its_own_line_joins_description(self):
        lines = clean_and_split_text("Activity 3:\nUnderstanding Interdependence")
        assert lines == ["**Activity 3: Understanding Interdependence**"]

    def test_bold_header_with_inline_description(self):
        assert clean_and_split_text("**Activity 1:** Foo") == ["**Activity 1: Foo**"]

    def test_header_not_merged_into_bullet_list(self):
        lines = clean_and_split_text("**Activity 1:**\n- Sort the shapes\n- Count the sides")
        assert lines == ["**Activity 1:**", "- Sort the shapes", "- Count the sides"]


class TestRepairs:

    def test_bare_number_joined_with_next_line(self):
        assert clean_and_split_text("4.\nDraw a number line.") == ["4. Draw a number line."]

    def test_bare_number_not_joined_with_table_row(self):
        assert clean_and_split_text("1.\n| a | b |") == ["1.", "| a | b |"]

    def test_label_split_from_value(self):
        lines = clean_and_split_text("Materials: Bottle tops and sticks")
        assert lines == ["Materials:", "Bottle tops and sticks"]

    def test_trailing_orphan_removed(self):
        assert remove_orphan_asterisks("Activity 3: Cardinal Directions**") == "Activity 3: Cardinal Directions"

    def test_last_orphan_removed(self):
        assert remove_orphan_asterisks("**bold** and **more") == "**bold** and more"

    def test_balanced_bold_left_alone(self):
        line = "Use **three** stones and **two** sticks"
        assert remove_orphan_asterisks(line) == line

    def test_no_line_has_odd_markers(self):
        text = "**Recap:** count **all\nthe stones** please\nActivity 1: Sort**"
        for line in clean_and_split_text(text):
            assert line.count("**") % 2 == 0, f"odd ** count in {line!r}"


class TestFormatGeneratedContent:

    def test_section_labels_bolded(self):
        text = "Recap Activity: count to ten\nQuick oral quiz: what is 2+2?\nSample Class Exercises\n1. Add 3 and 4."
        out = format_generated_content(text)
        assert "**Recap Activity: count to ten**" in out
        assert "**Quick oral quiz:**" in out
        assert "\n\n**Sample Class Exercises:**\n1. Add 3 and 4." in out

    def test_already_bold_exercises_not_doubled(self):
        out = format_generated_content("Summary.\n\n**Sample Class Exercises:**\n1. Add.")
        assert out.count("**Sample Class Exercises:**") == 1
        assert "****" not in out

    def test_empty(self):
        assert format_generated_content("") == ""


class TestCapitalize:

    def test_first_letter(self):
        assert capitalize_first_letter("learners count") == "Learners count"

    def test_empty(self):
        assert capitalize_first_letter("") == ""
