"""Tests for lesson_plan.py: AI JSON parsing, field formatting and file naming."""

import json
from datetime import date

import pytest

from notegen.lesson_plan import (
    PARSE_ERROR_MESSAGE,
    LessonPlan,
    LessonPlanParseError,
    clean_content_standard,
    clean_strand,
    ensure_performance_indicator_prefix,
    format_class,
    format_subject,
    format_term,
    format_week,
    lesson_label,
    lesson_plan_filename,
    parse_ai_json_response,
    plans_from_payload,
    reference_text,
)

LESSON = {
    "term": "First Term",
    "weekNumber": "3",
    "weekEnding": "12/01/2024",
    "day": "Monday",
    "subject": "Mathematics",
    "duration": "60 minutes",
    "strand": "Strand 1: Number",
    "class": "Basic 6",
    "classSize": "35",
    "subStrand": "Fractions",
    "contentStandard": "B6.1.3.1",
    "indicator": "Add fractions",
    "lesson": "1 of 1",
    "performanceIndicator": "add two fractions",
    "coreCompetencies": "Critical Thinking",
    "keywords": ["numerator", "denominator"],
    "reference": "NaCCA Mathematics Curriculum for Basic 6",
    "phases": {
        "phase1_starter": {"duration": "10 mins", "learnerActivities": "Sing a counting song", "resources": "None"},
        "phase2_newLearning": {"duration": "40 mins", "learnerActivities": "Fold paper strips", "resources": "Paper"},
        "phase3_reflection": {"duration": "10 mins", "learnerActivities": "Recap", "resources": "Chalkboard"},
    },
}


class TestParseAIJsonResponse:

    def test_array(self):
        plans = parse_ai_json_response(json.dumps([LESSON, dict(LESSON, subject="Science")]))
        assert [p.subject for p in plans] == ["Mathematics", "Science"]

    def test_fenced_object(self):
        plans = parse_ai_json_response("```json\n" + json.dumps(LESSON) + "\n```")
        assert len(plans) == 1
        assert plans[0].class_name == "Basic 6"

    def test_separated_objects(self):
        text = '{"subject": "English"}\n---\n{"subject": "Science"}'
        assert [p.subject for p in parse_ai_json_response(text)] == ["English", "Science"]

    def test_chatter_around_json(self):
        text = 'Here is your plan:\n{"subject": "Mathematics"}\nHope it helps'
        assert parse_ai_json_response(text)[0].subject == "Mathematics"

    def test_lessons_wrapper(self):
        text = json.dumps({"lessons": [LESSON, dict(LESSON, subject="Science")]})
        assert [p.subject for p in parse_ai_json_response(text)] == ["Mathematics", "Science"]
        assert [p.subject for p in plans_from_payload({"lessons": [LESSON]})] == ["Mathematics"]

    def test_empty_lessons_wrapper_raises(self):
        with pytest.raises(LessonPlanParseError):
            parse_ai_json_response('{"lessons": []}')

    @pytest.mark.parametrize("bad", ["", "   ", "not json at all", "[]"])
    def test_unusable_raises(self, bad):
        with pytest.raises(LessonPlanParseError) as exc:
            parse_ai_json_response(bad)
        assert str(exc.value) == PARSE_ERROR_MESSAGE

    def test_parse_error_is_value_error(self):
        assert issubclass(LessonPlanParseError, ValueError)


class TestLessonPlanModel:

    def test_phases_and_lists(self):
        plan = LessonPlan.from_dict(LESSON)
        assert plan.starter.learner_activities == "Sing a counting song"
        assert plan.new_learning.resources == "Paper"
        assert plan.keywords == "numerator\ndenominator"
        assert plan.week_number == "3"

    def test_round_trip(self):
        plan = LessonPlan.from_dict(LESSON)
        assert LessonPlan.from_dict(plan.to_dict()) == plan

    def test_missing_fields_are_empty(self):
        plan = LessonPlan.from_dict({"subject": "Science"})
        assert plan.strand == ""
        assert plan.reflection.learner_activities == ""

    def test_plans_from_payload(self):
        assert len(plans_from_payload([LESSON])) == 1
        assert len(plans_from_payload(LESSON)) == 1
        assert len(plans_from_payload(json.dumps([LESSON]))) == 1

    def test_plans_from_payload_rejects_non_lessons(self):
        with pytest.raises(LessonPlanParseError):
            plans_from_payload([])
        with pytest.raises(LessonPlanParseError):
            plans_from_payload([1, 2])


class TestFormatting:

    def test_subject(self):
        assert format_subject("mathematics") == "Mathematics"
        assert format_subject("social studies") == "Social Studies"

    def test_term(self):
        assert format_term("") == "FIRST TERM"
        assert format_term("2") == "TERM 2"
        assert format_term("second") == "SECOND TERM"
        assert format_term("First Term") == "FIRST TERM"

    def test_week(self):
        assert format_week("") == "WEEK 1"
        assert format_week("3") == "WEEK 3"
        assert format_week("Week 4") == "WEEK 4"

    def test_class(self):
        assert format_class("Basic6") == "Basic 6"
        assert format_class("basic 1") == "Basic 1"

    def test_content_standard_duplicate_code(self):
        text = "B1.2.1.1.: B1.2.1.1. Demonstrate understanding"
        assert clean_content_standard(text) == "B1.2.1.1: Demonstrate understanding"

    def test_content_standard_untouched(self):
        assert clean_content_standard("B6.1.1.1: Demonstrate") == "B6.1.1.1: Demonstrate"

    def test_strand_prefixes(self):
        assert clean_strand("Strand 1: Number") == "Number"
        assert clean_strand("Sub-strand 2: Fractions") == "Fractions"
        assert clean_strand("3: Geometry") == "Geometry"
        assert clean_strand("Number") == "Number"

    def test_performance_indicator_prefix(self):
        out = ensure_performance_indicator_prefix("add fractions")
        assert out == "By the end of the lesson, learners will be able to: add fractions"
        assert ensure_performance_indicator_prefix(out) == out
        assert ensure_performance_indicator_prefix("  ") == ""

    def test_reference_text(self):
        plan = LessonPlan(subject="mathematics", class_name="basic6")
        assert reference_text(plan) == "NaCCA Mathematics Curriculum for Basic 6"


class TestLessonLabel:

    @pytest.mark.parametrize("lesson,expected", [
        ("2 of 3", "Lesson: 2 of 3"),
        ("Lesson 1 of 2", "Lesson: 1 of 2"),
        ("lesson: 1 of 2", "Lesson: 1 of 2"),
        ("2", "Lesson: 2 of 1"),
        ("", "Lesson: 1 of 1"),
    ])
    def test_single(self, lesson, expected):
        assert lesson_label(LessonPlan(lesson=lesson)) == expected

    def test_multi_lesson_numbered_in_order(self):
        assert lesson_label(LessonPlan(lesson="1 of 1"), index=1, total=3) == "Lesson: 2 of 3"


class TestFilename:

    def test_abbreviated(self):
        plans = [LessonPlan(class_name="Basic 6", subject="Mathematics", week_number="3")]
        assert lesson_plan_filename(plans) == "B6-MATH-WK3.docx"
        assert lesson_plan_filename(plans, extension="pdf") == "B6-MATH-WK3.pdf"

    def test_partial_and_unknown_subjects(self):
        assert lesson_plan_filename([LessonPlan(class_name="Basic 2", subject="Religious Studies")]) == "B2-RME-WK1.docx"
        assert lesson_plan_filename([LessonPlan(class_name="Basic 2", subject="Agriculture", week_number="Week 5")]) == "B2-AGRI-WK5.docx"

    def test_no_plans(self):
        assert lesson_plan_filename([], today=date(2024, 1, 12)) == "ghana-lesson-plan-2024-01-12.docx"
