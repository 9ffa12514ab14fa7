"""Quizzes, worksheets, homework and tests: AI prompt, response parsing, Word export.

The AI is asked for one JSON object (title, instructions, questions and an
optional answer key, extension activities and accommodations). The parsed
Assessment renders to a single-section .docx with the answer key on its own
page.
"""

import json
import logging
import re
from dataclasses import dataclass, field
from datetime import date

from docx import Document
from docx.enum.text import WD_ALIGN_PARAGRAPH
from docx.shared import Pt

from notegen.ai_client import AIServiceError, call_ai
from notegen.docx_writer import DocumentGenerationError, document_bytes

logger = logging.getLogger(__name__)

ASSESSMENT_TYPES = ("quiz", "worksheet", "homework", "test")
DIFFICULTY_LEVELS = ("easy", "medium", "hard", "mixed")
QUESTION_TYPES = {
    "multiple_choice": "multiple choice questions with 4 options (A, B, C, D)",
    "true_false": "true/false questions",
    "short_answer": "short answer questions (1-2 sentences)",
    "essay": "essay questions with detailed rubrics",
    "fill_blank": "fill-in-the-blank questions",
    "matching": "matching questions with items and answers",
}

ASSESSMENT_SYSTEM_MESSAGE = (
    "You are an expert educator who creates high-quality, age-appropriate assessments. "
    "Generate assessments in valid JSON format only, with no additional text or markdown formatting."
)
GENERATION_ERROR_MESSAGE = "Failed to generate assessment. Please try again."
PARSE_ERROR_MESSAGE = "Failed to parse assessment. Please ensure the AI returned valid JSON."

SPECIAL_NEEDS_NOTE = """Include accommodations for special needs students:
- Clear, simple language
- Visual supports where appropriate
- Extended time suggestions
- Alternative question formats
"""
ELL_NOTE = """Include ELL (English Language Learner) support:
- Simplified vocabulary
- Context clues
- Visual aids
- Sentence frames for answers
"""
GIFTED_NOTE = """Include extensions for gifted students:
- Higher-order thinking questions
- Open-ended challenges
- Research opportunities
- Creative application tasks
"""

ANSWER_LINE = "_" * 80
ESSAY_ANSWER_LINES = 3

_JSON_OBJECT_RE = re.compile(r"\{[\s\S]*\}")


class AssessmentError(Exception):
    """Raised when the AI call for an assessment fails."""


class AssessmentParseError(ValueError):
    """Raised when an AI response holds no usable assessment JSON."""


def _as_list(value) -> list:
    if value is None:
        return []
    if isinstance(value, (list, tuple)):
        return list(value)
    return [value]


@dataclass(frozen=True)
class AssessmentConfig:
    type: str
    subject: str
    level: str
    topic: str
    difficulty: str = "medium"
    question_types: tuple = ("multiple_choice",)
    number_of_questions: int = 10
    include_answer_key: bool = True
    time_limit: int = None
    special_needs: bool = False
    ell_support: bool = False
    gifted_extensions: bool = False

    @classmethod
    def from_dict(cls, data: dict) -> "AssessmentConfig":
        """Build from CLI/web JSON; camelCase keys are accepted too. Raises ValueError on bad input."""
        def get(snake, camel=None, default=None):
            value = data.get(snake)
            if value is None and camel:
                value = data.get(camel)
            return default if value is None else value

        kind = (get("type", default="quiz") or "quiz").lower()
        if kind not in ASSESSMENT_TYPES:
            raise ValueError(f"Unknown assessment type '{kind}'. Use one of: {', '.join(ASSESSMENT_TYPES)}.")
        difficulty = (get("difficulty", default="medium") or "medium").lower()
        if difficulty not in DIFFICULTY_LEVELS:
            raise ValueError(f"Unknown difficulty '{difficulty}'. Use one of: {', '.join(DIFFICULTY_LEVELS)}.")

        question_types = get("question_types", "questionTypes", default=["multiple_choice"])
        if isinstance(question_types, str):
            question_types = [q.strip() for q in question_types.split(",") if q.strip()]
        unknown = [q for q in question_types if q not in QUESTION_TYPES]
        if unknown:
            raise ValueError(f"Unknown question type(s): {', '.join(unknown)}.")

        time_limit = get("time_limit", "timeLimit")
        return cls(
            type=kind,
            subject=get("subject", default=""),
            level=get("level", default=""),
            topic=get("topic", default=""),
            difficulty=difficulty,
            question_types=tuple(question_types) or ("multiple_choice",),
            number_of_questions=max(1, int(get("number_of_questions", "numberOfQuestions", default=10))),
            include_answer_key=bool(get("include_answer_key", "includeAnswerKey", default=True)),
            time_limit=int(time_limit) if time_limit else None,
            special_needs=bool(get("special_needs", "specialNeeds", default=False)),
            ell_support=bool(get("ell_support", "ellSupport", default=False)),
            gifted_extensions=bool(get("gifted_extensions", "giftedExtensions", default=False)),
        )


@dataclass
class Question:
    id: int
    type: str
    question: str
    options: list = field(default_factory=list)
    correct_answer: object = None
    points: int = 1
    hints: list = field(default_factory=list)

    @classmethod
    def from_dict(cls, data: dict, default_id: int = 1) -> "Question":
        return cls(
            id=int(data.get("id") or default_id),
            type=data.get("type") or "short_answer",
            question=str(data.get("question") or "").strip(),
            options=[str(o) for o in _as_list(data.get("options"))],
            correct_answer=data.get("correctAnswer", data.get("correct_answer")),
            points=int(data.get("points") or 1),
            hints=[str(h) for h in _as_list(data.get("hints"))],
        )


@dataclass
class AnswerKeyEntry:
    question_id: int
    answer: object
    explanation: str = ""
    rubric: str = ""

    @classmethod
    def from_dict(cls, data: dict) -> "AnswerKeyEntry":
        return cls(
            question_id=int(data.get("questionId") or data.get("question_id") or 0),
            answer=data.get("answer", ""),
            explanation=str(data.get("explanation") or ""),
            rubric=str(data.get("rubric") or ""),
        )

    @property
    def answer_text(self) -> str:
        if isinstance(self.answer, (list, tuple)):
            return ", ".join(str(a) for a in self.answer)
        return "" if self.answer is None else str(self.answer)


@dataclass
class Assessment:
    title: str
    subject: str = ""
    level: str = ""
    topic: str = ""
    difficulty: str = ""
    time_limit: int = None
    instructions: str = ""
    questions: list = field(default_factory=list)
    answer_key: list = field(default_factory=list)
    extensions: list = field(default_factory=list)
    accommodations: list = field(default_factory=list)

    @classmethod
    def from_dict(cls, data: dict) -> "Assessment":
        questions = [
            Question.from_dict(q, default_id=i)
            for i, q in enumerate(_as_list(data.get("questions")), 1)
            if isinstance(q, dict)
        ]
        answer_key = [
            AnswerKeyEntry.from_dict(a)
            for a in _as_list(data.get("answerKey") or data.get("answer_key"))
            if isinstance(a, dict)
        ]
        time_limit = data.get("timeLimit", data.get("time_limit"))
        return cls(
            title=str(data.get("title") or "Assessment").strip(),
            subject=str(data.get("subject") or ""),
            level=str(data.get("level") or ""),
            topic=str(data.get("topic") or ""),
            difficulty=str(data.get("difficulty") or ""),
            time_limit=int(time_limit) if time_limit else None,
            instructions=str(data.get("instructions") or ""),
            questions=questions,
            answer_key=answer_key,
            extensions=[str(e) for e in _as_list(data.get("extensions"))],
            accommodations=[str(a) for a in _as_list(data.get("accommodations"))],
        )

    def to_dict(self) -> dict:
        return {
            "title": self.title,
            "subject": self.subject,
            "level": self.level,
            "topic": self.topic,
            "difficulty": self.difficulty,
            "timeLimit": self.time_limit,
            "instructions": self.instructions,
            "questions": [
                {
                    "id": q.id,
                    "type": q.type,
                    "question": q.question,
                    "options": q.options,
                    "correctAnswer": q.correct_answer,
                    "points": q.points,
                    "hints": q.hints,
                }
                for q in self.questions
            ],
            "answerKey": [
                {"questionId": a.question_id, "answer": a.answer, "explanation": a.explanation, "rubric": a.rubric}
                for a in self.answer_key
            ],
            "extensions": self.extensions,
            "accommodations": self.accommodations,
        }


# --- Prompt ---

def _example_json(config: AssessmentConfig) -> str:
    example = {
        "title": "Assessment Title",
        "subject": config.subject,
        "level": config.level,
        "topic": config.topic,
        "difficulty": config.difficulty,
    }
    if config.time_limit:
        example["timeLimit"] = config.time_limit
    example["instructions"] = "Clear instructions for students"
    example["questions"] = [{
        "id": 1,
        "type": "multiple_choice",
        "question": "Question text here?",
        "options": ["A) Option 1", "B) Option 2", "C) Option 3", "D) Option 4"],
        "correctAnswer": "A",
        "points": 2,
        "hints": ["Optional hint for struggling students"],
    }]
    if config.include_answer_key:
        example["answerKey"] = [{
            "questionId": 1,
            "answer": "A) Option 1",
            "explanation": "Explanation of why this is correct",
            "rubric": "For essay questions, provide scoring rubric",
        }]
    if config.gifted_extensions:
        example["extensions"] = ["Extension activity 1", "Extension activity 2"]
    if config.special_needs or config.ell_support:
        example["accommodations"] = ["Accommodation suggestion 1", "Accommodation suggestion 2"]
    return json.dumps(example, indent=2)


def build_assessment_prompt(config: AssessmentConfig) -> str:
    question_types = ", ".join(QUESTION_TYPES[q] for q in config.question_types)
    lines = [
        f'Create a {config.type} for {config.subject} at {config.level} level on the topic "{config.topic}".',
        "",
        f"Difficulty: {config.difficulty}",
        f"Number of Questions: {config.number_of_questions}",
        f"Question Types: {question_types}",
    ]
    if config.time_limit:
        lines.append(f"Time Limit: {config.time_limit} minutes")
    prompt = "\n".join(lines) + "\n\n"

    if config.special_needs:
        prompt += SPECIAL_NEEDS_NOTE
    if config.ell_support:
        prompt += ELL_NOTE
    if config.gifted_extensions:
        prompt += GIFTED_NOTE

    prompt += "\nGenerate the assessment in this EXACT JSON format (no markdown, no extra text):\n"
    return prompt + _example_json(config)


# --- Parsing and generation ---

def parse_assessment_response(response: str) -> Assessment:
    """The assessment in an AI response: the outermost ``{...}`` span, parsed."""
    match = _JSON_OBJECT_RE.search(response or "")
    if not match:
        logger.error("No JSON found in assessment response. Preview: %s", (response or "")[:300])
        raise AssessmentParseError(PARSE_ERROR_MESSAGE)
    try:
        data = json.loads(match.group(0))
    except json.JSONDecodeError as e:
        logger.error("Assessment JSON is invalid: %s", e)
        raise AssessmentParseError(PARSE_ERROR_MESSAGE) from e
    if not isinstance(data, dict) or not isinstance(data.get("questions"), list):
        raise AssessmentParseError(PARSE_ERROR_MESSAGE)
    try:
        assessment = Assessment.from_dict(data)
    except (TypeError, ValueError) as e:
        logger.error("Assessment fields are malformed: %s", e)
        raise AssessmentParseError(PARSE_ERROR_MESSAGE) from e
    if not assessment.questions:
        raise AssessmentParseError(PARSE_ERROR_MESSAGE)
    return assessment


def generate_assessment(config: AssessmentConfig, call=call_ai) -> Assessment:
    """Ask the AI for an assessment and parse it.

    Args:
        config: What to generate.
        call: AI completion function, ``call(prompt, system_message=...) -> str``.

    Raises:
        AssessmentError: the AI call failed (the AIServiceError is the cause).
        AssessmentParseError: the AI answered without usable JSON.
    """
    prompt = build_assessment_prompt(config)
    logger.info("Generating %s: %s / %s / %s", config.type, config.subject, config.level, config.topic)
    try:
        content = call(prompt, system_message=ASSESSMENT_SYSTEM_MESSAGE)
    except AIServiceError as e:
        logger.error("Error generating assessment: %s", e)
        raise AssessmentError(GENERATION_ERROR_MESSAGE) from e
    assessment = parse_assessment_response(content)
    logger.info("Assessment generated: %d question(s)", len(assessment.questions))
    return assessment


# --- Word export ---

def _spaced(paragraph, before=None, after=None):
    if before is not None:
        paragraph.paragraph_format.space_before = before
    if after is not None:
        paragraph.paragraph_format.space_after = after
    return paragraph


def _label_line(doc, label: str, value: str, after=Pt(5)):
    p = doc.add_paragraph()
    p.add_run(f"{label}: ").bold = True
    p.add_run(value)
    return _spaced(p, after=after)


def _add_question(doc, number: int, question: Question):
    p = doc.add_paragraph()
    p.add_run(f"{number}. ").bold = True
    p.add_run(question.question)
    p.add_run(f" ({question.points} point{'s' if question.points > 1 else ''})").italic = True
    _spaced(p, before=Pt(10), after=Pt(5))

    for option in question.options:
        _spaced(doc.add_paragraph(f"   {option}"), after=Pt(2.5))

    if question.type in ("short_answer", "essay"):
        lines = ESSAY_ANSWER_LINES if question.type == "essay" else 1
        for _ in range(lines):
            _spaced(doc.add_paragraph(ANSWER_LINE), before=Pt(5), after=Pt(5))


def _add_answer_key(doc, assessment: Assessment):
    doc.add_page_break()
    heading = doc.add_heading("Answer Key", level=1)
    heading.alignment = WD_ALIGN_PARAGRAPH.CENTER
    _spaced(heading, after=Pt(15))

    for number, entry in enumerate(assessment.answer_key, 1):
        p = doc.add_paragraph()
        p.add_run(f"{number}. ").bold = True
        p.add_run("Answer: ").bold = True
        p.add_run(entry.answer_text)
        _spaced(p, before=Pt(10), after=Pt(5))
        for label, value in (("Explanation", entry.explanation), ("Rubric", entry.rubric)):
            if value:
                p = doc.add_paragraph()
                p.add_run(f"   {label}: ").italic = True
                p.add_run(value)
                _spaced(p, after=Pt(5))


def build_assessment_document(assessment: Assessment, include_answers: bool = True):
    doc = Document()
    title = doc.add_heading(assessment.title, level=1)
    title.alignment = WD_ALIGN_PARAGRAPH.CENTER
    _spaced(title, after=Pt(10))

    _label_line(doc, "Subject", assessment.subject)
    _label_line(doc, "Level", assessment.level)
    _label_line(doc, "Topic", assessment.topic)
    _label_line(doc, "Difficulty", assessment.difficulty.capitalize())
    if assessment.time_limit:
        _label_line(doc, "Time Limit", f"{assessment.time_limit} minutes", after=Pt(10))

    _spaced(doc.add_heading("Instructions:", level=2), before=Pt(10), after=Pt(5))
    _spaced(doc.add_paragraph(assessment.instructions), after=Pt(15))

    _spaced(doc.add_heading("Questions:", level=2), before=Pt(10), after=Pt(10))
    for number, question in enumerate(assessment.questions, 1):
        _add_question(doc, number, question)

    if include_answers and assessment.answer_key:
        _add_answer_key(doc, assessment)

    if assessment.extensions:
        _spaced(doc.add_heading("Extension Activities", level=2), before=Pt(15), after=Pt(10))
        for number, ext in enumerate(assessment.extensions, 1):
            _spaced(doc.add_paragraph(f"{number}. {ext}"), after=Pt(5))

    if assessment.accommodations:
        _spaced(doc.add_heading("Suggested Accommodations", level=2), before=Pt(15), after=Pt(10))
        for acc in assessment.accommodations:
            _spaced(doc.add_paragraph(f"• {acc}"), after=Pt(5))
    return doc


def render_assessment_docx(assessment: Assessment, include_answers: bool = True) -> bytes:
    """Assessment as .docx bytes. Raises DocumentGenerationError on failure."""
    try:
        data = document_bytes(build_assessment_document(assessment, include_answers))
    except Exception as e:
        logger.error("Assessment DOCX generation failed: %s", e)
        raise DocumentGenerationError("Failed to generate Word document") from e
    logger.info("Assessment DOCX generated (%d bytes)", len(data))
    return data


def assessment_filename(assessment: Assessment, today: date = None) -> str:
    today = today or date.today()
    stem = re.sub(r"\s+", "_", assessment.title.strip()) or "Assessment"
    return f"{stem}_{today.isoformat()}.docx"
