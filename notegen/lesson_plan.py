"""Weekly lesson plan: the fixed-schema JSON the AI returns in template mode.

Parsing is forgiving because the model does not always follow the output
instructions: code fences, arrays, ``---``-separated objects and leading or
trailing chatter are all accepted.
"""

import json
import logging
import re
from dataclasses import dataclass, field
from datetime import date

logger = logging.getLogger(__name__)

PERFORMANCE_INDICATOR_PREFIX = "By the end of the lesson, learners will be able to"
DEFAULT_TERM = "FIRST TERM"

STARTER_DURATION = "10 mins"
NEW_LEARNING_DURATION = "40 mins"
REFLECTION_DURATION = "10 mins"

SUBJECT_ABBREVIATIONS = {
    "MATHEMATICS": "MATH",
    "MATHS": "MATH",
    "SCIENCE": "SCI",
    "RELIGIOUS AND MORAL EDUCATION": "RME",
    "RELIGIOUS & MORAL EDUCATION": "RME",
    "COMPUTING": "COMP",
    "INFORMATION AND COMMUNICATION TECHNOLOGY": "ICT",
    "ICT": "ICT",
    "CREATIVE ARTS": "C.ART",
    "OUR WORLD OUR PEOPLE": "OWOP",
    "HISTORY": "HIST",
    "GHANAIAN LANGUAGE": "GH.LANG",
    "ENGLISH LANGUAGE": "ENG",
    "ENGLISH": "ENG",
    "FRENCH": "FRE",
    "PHYSICAL EDUCATION": "PE",
    "CAREER TECHNOLOGY": "C.TECH",
    "SOCIAL STUDIES": "S.STD",
    "HOME ECONOMICS": "HE",
    "PRE-TECHNICAL SKILLS": "PTS",
}
SUBJECT_PARTIAL_ABBREVIATIONS = (
    ("RELIGIOUS", "RME"),
    ("OUR WORLD", "OWOP"),
    ("CREATIVE", "C.ART"),
    ("CAREER", "C.TECH"),
)

PARSE_ERROR_MESSAGE = "Failed to parse lesson data. Please ensure the AI returned valid JSON."

_FENCE_OPEN_RE = re.compile(r"^```(?:json)?\s*\n?")
_FENCE_CLOSE_RE = re.compile(r"\n?```\s*$")


class LessonPlanParseError(ValueError):
    """Raised when an AI response holds no usable lesson plan JSON."""


@dataclass
class Phase:
    duration: str = ""
    learner_activities: str = ""
    resources: str = ""

    @classmethod
    def from_dict(cls, data) -> "Phase":
        data = data if isinstance(data, dict) else {}
        return cls(
            duration=_str(data.get("duration")),
            learner_activities=_str(data.get("learnerActivities") or data.get("learner_activities")),
            resources=_str(data.get("resources")),
        )

    def to_dict(self) -> dict:
        return {
            "duration": self.duration,
            "learnerActivities": self.learner_activities,
            "resources": self.resources,
        }


@dataclass
class LessonPlan:
    term: str = ""
    week_number: str = ""
    week_ending: str = ""
    day: str = ""
    subject: str = ""
    duration: str = ""
    strand: str = ""
    class_name: str = ""
    class_size: str = ""
    sub_strand: str = ""
    content_standard: str = ""
    indicator: str = ""
    lesson: str = ""
    performance_indicator: str = ""
    core_competencies: str = ""
    keywords: str = ""
    reference: str = ""
    starter: Phase = field(default_factory=Phase)
    new_learning: Phase = field(default_factory=Phase)
    reflection: Phase = field(default_factory=Phase)

    @classmethod
    def from_dict(cls, data: dict) -> "LessonPlan":
        """Build from the camelCase keys the AI emits; snake_case is accepted too."""
        phases = data.get("phases") or {}
        return cls(
            term=_str(data.get("term")),
            week_number=_str(data.get("weekNumber") or data.get("week_number") or data.get("week")),
            week_ending=_str(data.get("weekEnding") or data.get("week_ending")),
            day=_str(data.get("day")),
            subject=_str(data.get("subject")),
            duration=_str(data.get("duration")),
            strand=_str(data.get("strand")),
            class_name=_str(data.get("class") or data.get("class_name") or data.get("level")),
            class_size=_str(data.get("classSize") or data.get("class_size")),
            sub_strand=_str(data.get("subStrand") or data.get("sub_strand")),
            content_standard=_str(data.get("contentStandard") or data.get("content_standard")),
            indicator=_str(data.get("indicator") or data.get("indicators")),
            lesson=_str(data.get("lesson")),
            performance_indicator=_str(data.get("performanceIndicator") or data.get("performance_indicator")),
            core_competencies=_str(data.get("coreCompetencies") or data.get("core_competencies")),
            keywords=_str(data.get("keywords") or data.get("keyWords")),
            reference=_str(data.get("reference")),
            starter=Phase.from_dict(phases.get("phase1_starter")),
            new_learning=Phase.from_dict(phases.get("phase2_newLearning")),
            reflection=Phase.from_dict(phases.get("phase3_reflection")),
        )

    def to_dict(self) -> dict:
        return {
            "term": self.term,
            "weekNumber": self.week_number,
            "weekEnding": self.week_ending,
            "day": self.day,
            "subject": self.subject,
            "duration": self.duration,
            "strand": self.strand,
            "class": self.class_name,
            "classSize": self.class_size,
            "subStrand": self.sub_strand,
            "contentStandard": self.content_standard,
            "indicator": self.indicator,
            "lesson": self.lesson,
            "performanceIndicator": self.performance_indicator,
            "coreCompetencies": self.core_competencies,
            "keywords": self.keywords,
            "reference": self.reference,
            "phases": {
                "phase1_starter": self.starter.to_dict(),
                "phase2_newLearning": self.new_learning.to_dict(),
                "phase3_reflection": self.reflection.to_dict(),
            },
        }


def _str(value) -> str:
    if value is None:
        return ""
    if isinstance(value, list):
        return "\n".join(_str(v) for v in value)
    return str(value).strip()


# --- AI response parsing ---

def _strip_fences(text: str) -> str:
    text = text.strip()
    if text.startswith("```"):
        text = _FENCE_OPEN_RE.sub("", text)
        text = _FENCE_CLOSE_RE.sub("", text)
    return text.strip()


def _looks_like_lesson(item) -> bool:
    return isinstance(item, dict) and bool(item.get("subject") or item.get("phases") or item.get("strand"))


def _lessons_from(parsed) -> list:
    if isinstance(parsed, list):
        return [item for item in parsed if _looks_like_lesson(item)]
    if isinstance(parsed, dict):
        # {"lessons": [...]} wrapper
        if isinstance(parsed.get("lessons"), list) and not _looks_like_lesson(parsed):
            return _lessons_from(parsed["lessons"])
        return [parsed]
    return []


def _parse_separated(text: str) -> list:
    """Legacy format: several JSON objects separated by ``---`` lines."""
    results = []
    for part in text.split("---"):
        chunk = _strip_fences(part)
        if len(chunk) < 5:
            continue
        try:
            parsed = json.loads(chunk)
        except json.JSONDecodeError as e:
            logger.debug("Skipping unparseable lesson block: %s", e)
            continue
        if isinstance(parsed, dict) and (parsed.get("subject") or parsed.get("phases")):
            results.append(parsed)
    return results


def _parse_embedded(text: str) -> list:
    """Last resort: the span from the first ``{``/``[`` to the last ``}``/``]``."""
    start = re.search(r"[{\[]", text)
    end = max(text.rfind("}"), text.rfind("]"))
    if not start or end <= start.start():
        return []
    try:
        return _lessons_from(json.loads(text[start.start():end + 1]))
    except json.JSONDecodeError:
        return []


def parse_ai_json_response(response: str) -> list:
    """Extract lesson plans from an AI response.

    Tries, in order: a JSON array, ``---``-separated objects, a single JSON
    document, and the outermost bracketed span. Always returns a non-empty
    list of LessonPlan; raises LessonPlanParseError otherwise.
    """
    if not response or not response.strip():
        raise LessonPlanParseError(PARSE_ERROR_MESSAGE)
    clean = _strip_fences(response)

    items = []
    if clean.startswith("[") and "{" in clean:
        try:
            items = _lessons_from(json.loads(clean))
        except json.JSONDecodeError:
            logger.warning("Failed to parse response as a JSON array, trying other formats")

    if not items and "---" in clean:
        items = _parse_separated(clean)

    if not items:
        try:
            items = _lessons_from(json.loads(clean))
        except json.JSONDecodeError:
            items = _parse_embedded(response)

    if not items:
        logger.error("No lesson data found in AI response. Preview: %s", response[:300])
        raise LessonPlanParseError(PARSE_ERROR_MESSAGE)

    logger.info("Parsed %d lesson plan(s) from AI response", len(items))
    return [LessonPlan.from_dict(item) for item in items]


def plans_from_payload(payload) -> list:
    """Lesson plans from a JSON string, a dict or a list of dicts."""
    if isinstance(payload, str):
        return parse_ai_json_response(payload)
    items = _lessons_from(payload)
    if not items:
        raise LessonPlanParseError(PARSE_ERROR_MESSAGE)
    return [LessonPlan.from_dict(item) for item in items]


# --- Field formatting ---

def format_subject(subject: str) -> str:
    """'mathematics' -> 'Mathematics'; every word title-cased."""
    return " ".join(w[:1].upper() + w[1:].lower() for w in (subject or "").split(" "))


def format_term(term: str) -> str:
    if not term or not term.strip():
        return DEFAULT_TERM
    clean = term.strip().upper()
    if clean.isdigit():
        return f"TERM {clean}"
    if clean in ("FIRST", "SECOND", "THIRD"):
        return f"{clean} TERM"
    return clean


def format_week(week: str) -> str:
    if not week or not str(week).strip():
        return "WEEK 1"
    clean = str(week).strip().upper()
    if not clean.startswith("WEEK"):
        return f"WEEK {clean}"
    return clean


def format_class(class_name: str) -> str:
    """'Basic6' -> 'Basic 6', 'basic 1' -> 'Basic 1'."""
    if not class_name:
        return ""
    spaced = re.sub(r"([A-Za-z]+)(\d+)", r"\1 \2", class_name)
    return " ".join(w[:1].upper() + w[1:] for w in spaced.lower().split(" "))


def clean_content_standard(text: str) -> str:
    """'B1.2.1.1.: B1.2.1.1. Demonstrate' -> 'B1.2.1.1: Demonstrate'."""
    if not text:
        return ""
    m = re.match(r"^([A-Z0-9.]+?)\.?(?:\.:|:|\.)\s*\1\.?\s*(.*)", text, re.IGNORECASE | re.DOTALL)
    if m:
        return f"{m.group(1)}: {m.group(2)}"
    return text


def clean_strand(text: str) -> str:
    """Drop 'Strand 1:' / 'Sub-strand 2:' / '3:' prefixes."""
    if not text:
        return ""
    return re.sub(r"^(?:Strand|Sub[- ]?Strand)?\s*\d+\s*:\s*", "", text, flags=re.IGNORECASE).strip()


def ensure_performance_indicator_prefix(text: str) -> str:
    if not text or not text.strip():
        return ""
    clean = text.strip()
    if clean.lower().startswith(PERFORMANCE_INDICATOR_PREFIX.lower()):
        return clean
    return f"{PERFORMANCE_INDICATOR_PREFIX}: {clean}"


def lesson_label(plan: LessonPlan, index: int = 0, total: int = 1) -> str:
    """Text of the 'Lesson' cell, always of the form 'Lesson: X of Y'.

    With several lessons in one document they are numbered in order, whatever
    the AI wrote.
    """
    text = plan.lesson or "1 of 1"
    if total > 1:
        text = f"{index + 1} of {total}"
    if text.isdigit():
        text = f"{text} of 1"
    lower = text.lower()
    if lower.startswith("lesson:"):
        return "Lesson: " + text[len("lesson:"):].strip()
    if lower.startswith("lesson "):
        return re.sub(r"^Lesson\s+", "Lesson: ", text, flags=re.IGNORECASE)
    return f"Lesson: {text}"


def reference_text(plan: LessonPlan) -> str:
    return f"NaCCA {format_subject(plan.subject)} Curriculum for {format_class(plan.class_name)}"


# --- File naming ---

def subject_abbreviation(subject: str) -> str:
    if not subject:
        return "SUBJ"
    upper = subject.upper().strip()
    if upper in SUBJECT_ABBREVIATIONS:
        return SUBJECT_ABBREVIATIONS[upper]
    for needle, abbr in SUBJECT_PARTIAL_ABBREVIATIONS:
        if needle in upper:
            return abbr
    return re.sub(r"\s", "", upper[:4])


def class_abbreviation(class_name: str) -> str:
    if not class_name:
        return "CLS"
    upper = class_name.upper().strip()
    if "BASIC" in upper:
        upper = upper.replace("BASIC", "B", 1)
    elif "YEAR" in upper:
        upper = upper.replace("YEAR", "Y", 1)
    return re.sub(r"\s", "", upper)


def week_abbreviation(week: str) -> str:
    if not week:
        return "WK1"
    m = re.search(r"\d+", str(week))
    return f"WK{m.group(0)}" if m else "WK"


def lesson_plan_filename(plans, extension: str = "docx", today: date = None) -> str:
    """'B6-MATH-WK3.docx' from the first lesson; dated fallback when there is none."""
    if not plans:
        today = today or date.today()
        return f"ghana-lesson-plan-{today.isoformat()}.{extension}"
    first = plans[0]
    return "-".join([
        class_abbreviation(first.class_name),
        subject_abbreviation(first.subject),
        week_abbreviation(first.week_number),
    ]) + f".{extension}"
