"""Lesson note generation: prompt building and per-lesson AI calls.

A request for several lessons is split into one single-lesson request per
lesson (strands, standards and indicators are taken one line per lesson) and
the AI is called for each of them concurrently. Results are stitched back in
lesson order: text notes separated by ``---`` lines, template JSON objects
into one array.
"""

import logging
import re
from concurrent.futures import ThreadPoolExecutor, as_completed
from dataclasses import dataclass, replace

from notegen.ai_client import AIServiceError, call_ai
from notegen.text_normalizer import format_generated_content

logger = logging.getLogger(__name__)

MAX_PARALLEL_LESSONS = 5
REFERENCE_CHARS = 3000
LESSON_SEPARATOR = "\n\n---\n\n"
GENERATION_ERROR_MESSAGE = "Failed to generate lesson note. Please check your API key and try again."

_FENCE_RE = re.compile(r"^\s*```(?:json)?|```\s*$")


class LessonGenerationError(Exception):
    """Raised when a lesson note cannot be generated."""
    def __init__(self, message: str, lesson_index: int = None):
        super().__init__(message)
        self.lesson_index = lesson_index


# --- Ghana context ---

CURRICULUM_STANDARDS = {
    "primary": "NaCCA Standards-Based Curriculum for Primary Schools",
    "jhs": "Junior High School Curriculum Framework",
    "shs": "WASSCE (West African Senior School Certificate Examination) Syllabus",
}

LOCAL_MATERIALS = [
    "Locally available counting beads (abacus)",
    "Recycled materials (bottle caps, cardboard)",
    "Local natural resources (stones, sticks, seeds)",
    "Picture charts from local scenes",
    "Ghanaian textbooks approved by MoE",
    "Local newspaper cuttings",
    "Community resource persons",
]

SUBJECT_EXAMPLES = {
    "mathematics": [
        "Market transactions in Ghana cedis",
        "Measuring land in local units",
        "Local business profit calculations",
        "Using cedi notes and pesewa coins",
        "Data from local football leagues",
    ],
    "science": [
        "Ghanaian ecosystems (Kakum Forest, Mole National Park)",
        "Local plants and herbs (neem, moringa)",
        "Traditional farming methods",
        "Local weather patterns (Harmattan, Rainy Season)",
        "Hydroelectric power (Akosombo Dam)",
    ],
    "english": [
        "Ghanaian literature and folklore (Ananse stories)",
        "Local proverbs and idioms",
        "Ghanaian authors (Ama Ata Aidoo, Efua Sutherland)",
        "Describing local festivals (Homowo, Hogbetsotso)",
        "Debates on local social issues",
        "Grammar examples using Ghanaian names and places (e.g., 'Kofi is eating fufu', 'We travelled to Kumasi')",
        "Sentence structure exercises based on daily Ghanaian life",
    ],
    "history": [
        "Ashanti Kingdom and Golden Stool",
        "Independence struggle and The Big Six",
        "National heroes (Kwame Nkrumah, Yaa Asantewaa)",
        "Trans-Atlantic Slave Trade (Cape Coast Castle)",
        "Republic Days",
    ],
    "geography": [
        "Volta River and Lake Volta",
        "Akosombo Dam",
        "Ghana's regions and capitals",
        "Cash crops (Cocoa, Shea nut)",
        "Mining resources (Gold, Bauxite)",
    ],
    "rme": [
        "Traditional religious practices",
        "Christian missions in Ghana",
        "Islamic history in Ghana",
        "Moral values in Ghanaian culture",
        "Rites of passage (Naming ceremonies, Puberty rites)",
    ],
    "ict": [
        "Mobile money transactions",
        "Digital addressing system",
        "Local tech startups",
        "Internet cafes in communities",
        "Using phones for agriculture",
    ],
    "creative-arts": [
        "Kente weaving patterns",
        "Adinkra symbols",
        "Traditional drumming and dance (Adowa, Kpanlogo)",
        "Pottery and bead making",
        "Highlife and Hiplife music",
    ],
}
DEFAULT_SUBJECT_EXAMPLES = ["Use appropriate Ghanaian context and examples"]

DIFFERENTIATION_STRATEGIES = {
    "slow": [
        "Use more concrete examples from local environment",
        "Provide step-by-step guidance",
        "Use peer support from faster learners",
        "Give extra time and simplified tasks",
    ],
    "average": [
        "Standard activities with local examples",
        "Group work with mixed abilities",
        "Scaffolded support as needed",
    ],
    "fast": [
        "Extension activities with deeper Ghanaian context",
        "Research tasks on local applications",
        "Challenge to teach peers",
    ],
    "mixed": [
        "Tiered activities based on Ghanaian context",
        "Flexible grouping for collaborative learning",
        "Choice boards with different Ghanaian topics",
        "Multiple entry points to the lesson",
    ],
}

PHILOSOPHIES = {
    "student-centered": "Focus on student-led activities, discovery learning, and hands-on exploration. Minimize direct instruction. Emphasize group work, discussions, and student presentations.",
    "teacher-led": "Use direct instruction as the primary method. Include clear explanations, demonstrations, and guided practice. Teacher controls the pace and flow of the lesson.",
    "balanced": "Balance between teacher-led instruction and student activities. Combine direct teaching with interactive elements, discussions, and practice opportunities.",
    "inquiry-based": "Design activities around questions and problems for students to investigate. Promote critical thinking and discovery. Guide students to find answers rather than providing them directly.",
    "collaborative": "Emphasize group work, peer learning, and cooperative activities. Include team projects, partner work, and collaborative problem-solving throughout the lesson.",
}

DETAIL_LEVELS = {
    "brief": "Provide a concise outline with key points only. Keep explanations short and focused on essentials. Aim for brevity while covering all necessary sections.",
    "moderate": "Provide standard detail with clear explanations and examples. Balance thoroughness with readability. Include practical details without being overwhelming.",
    "detailed": "Provide comprehensive explanations, multiple examples, and thorough coverage of each section. Include specific instructions, dialogue suggestions, and detailed activity descriptions.",
    "very-detailed": "Provide extensive detail including scripted dialogue, multiple examples for different scenarios, differentiation strategies for various learner types, detailed timing for each activity segment, and comprehensive assessment rubrics.",
}


def curriculum_standard(level: str) -> str:
    lower = (level or "").lower()
    if any(k in lower for k in ("basic 7", "basic 8", "basic 9", "jhs")):
        return CURRICULUM_STANDARDS["jhs"]
    if "shs" in lower or "form" in lower:
        return CURRICULUM_STANDARDS["shs"]
    return CURRICULUM_STANDARDS["primary"]


def subject_examples(subject: str) -> list:
    lower = (subject or "").lower().replace(" ", "-")
    for key, examples in SUBJECT_EXAMPLES.items():
        if key in lower:
            return examples
    return DEFAULT_SUBJECT_EXAMPLES


def differentiation_strategy(ability: str = "mixed") -> str:
    strategies = DIFFERENTIATION_STRATEGIES.get((ability or "").lower(), DIFFERENTIATION_STRATEGIES["mixed"])
    return "\n".join(f"- {s}" for s in strategies)


def philosophy_guidance(philosophy: str) -> str:
    return PHILOSOPHIES.get(philosophy or "", PHILOSOPHIES["balanced"])


def detail_level_guidance(detail_level: str) -> str:
    return DETAIL_LEVELS.get(detail_level or "", DETAIL_LEVELS["moderate"])


# --- Templates ---

@dataclass(frozen=True)
class LessonTemplate:
    name: str
    description: str
    structure: str
    id: str = ""

    @property
    def is_json(self) -> bool:
        return self.structure.strip().startswith("{")


GHANA_STANDARD_TEMPLATE = LessonTemplate(
    id="ghana-standard",
    name="Ghana Standard Lesson Plan",
    description="Official Ghana Education Service lesson plan format with three phases",
    structure="""
{
  "term": "{TERM}",
  "weekEnding": "{WEEK_ENDING}",
  "day": "{DAY}",
  "subject": "{SUBJECT}",
  "duration": "{DURATION}",
  "strand": "{STRAND}",
  "class": "{LEVEL}",
  "classSize": "{CLASS_SIZE}",
  "subStrand": "{SUB_STRAND}",
  "contentStandard": "{CONTENT_STANDARD}",
  "indicator": "{INDICATOR}",
  "lesson": "1 of 1",
  "performanceIndicator": "{PERFORMANCE_INDICATOR}",
  "coreCompetencies": "{CORE_COMPETENCIES}",
  "keywords": "{KEYWORDS}",
  "reference": "{REFERENCE}",

  "phases": {
    "phase1_starter": {
      "duration": "{STARTER_DURATION}",
      "learnerActivities": "{STARTER_ACTIVITIES}",
      "resources": "{STARTER_RESOURCES}"
    },
    "phase2_newLearning": {
      "duration": "{NEW_LEARNING_DURATION}",
      "learnerActivities": "{NEW_LEARNING_ACTIVITIES}",
      "resources": "{NEW_LEARNING_RESOURCES}"
    },
    "phase3_reflection": {
      "duration": "{REFLECTION_DURATION}",
      "learnerActivities": "{REFLECTION_ACTIVITIES}",
      "resources": "{REFLECTION_RESOURCES}"
    }
  }
}
""",
)

TEMPLATES = {GHANA_STANDARD_TEMPLATE.id: GHANA_STANDARD_TEMPLATE}


# --- Request ---

@dataclass(frozen=True)
class ReferenceDocument:
    """Extracted text of a curriculum or resource file attached to a request."""
    title: str
    file_name: str = ""
    content: str = ""
    description: str = ""
    kind: str = "curriculum"

    @classmethod
    def from_dict(cls, data: dict) -> "ReferenceDocument":
        return cls(
            title=data.get("title") or data.get("file_name") or "Document",
            file_name=data.get("file_name") or data.get("fileName") or "",
            content=data.get("content") or "",
            description=data.get("description") or "",
            kind=data.get("kind") or "curriculum",
        )


def _nth_line(text: str, index: int) -> str:
    """Line ``index`` of a newline-separated field; the last line repeats."""
    parts = [p.strip() for p in (text or "").split("\n") if p.strip()]
    if not parts:
        return ""
    return parts[min(index, len(parts) - 1)]


def _first_line(text: str) -> str:
    return (text or "").split("\n")[0].strip()


@dataclass(frozen=True)
class LessonRequest:
    subject: str
    level: str
    strand: str = ""
    sub_strand: str = ""
    content_standard: str = ""
    indicators: str = ""
    exemplars: str = ""
    class_size: str = ""
    philosophy: str = "balanced"
    detail_level: str = "moderate"
    term: str = ""
    week_number: str = ""
    week_ending: str = ""
    location: str = ""
    scheme_resources: str = ""
    include_diagrams: bool = False
    num_lessons: int = 1
    scheduled_days: tuple = ()
    template: LessonTemplate = None
    reference_documents: tuple = ()

    @classmethod
    def from_dict(cls, data: dict) -> "LessonRequest":
        """Build from CLI/web JSON; camelCase keys are accepted too."""
        def get(snake, camel=None):
            value = data.get(snake)
            if value is None and camel:
                value = data.get(camel)
            return value

        template = get("template")
        if isinstance(template, str):
            template = TEMPLATES.get(template)
        elif isinstance(template, dict):
            template = LessonTemplate(
                id=template.get("id", ""),
                name=template.get("name", "Custom Template"),
                description=template.get("description", ""),
                structure=template.get("structure", ""),
            )

        return cls(
            subject=get("subject") or "",
            level=get("level") or "",
            strand=get("strand") or "",
            sub_strand=get("sub_strand", "subStrand") or "",
            content_standard=get("content_standard", "contentStandard") or "",
            indicators=get("indicators") or "",
            exemplars=get("exemplars") or "",
            class_size=str(get("class_size", "classSize") or ""),
            philosophy=get("philosophy") or "balanced",
            detail_level=get("detail_level", "detailLevel") or "moderate",
            term=get("term") or "",
            week_number=str(get("week_number", "weekNumber") or ""),
            week_ending=get("week_ending", "weekEnding") or "",
            location=get("location") or "",
            scheme_resources=get("scheme_resources", "schemeResources") or "",
            include_diagrams=bool(get("include_diagrams", "includeDiagrams")),
            num_lessons=max(1, int(get("num_lessons", "numLessons") or 1)),
            scheduled_days=tuple(get("scheduled_days", "scheduledDays") or ()),
            template=template,
            reference_documents=tuple(
                d if isinstance(d, ReferenceDocument) else ReferenceDocument.from_dict(d)
                for d in (get("reference_documents", "referenceDocuments") or ())
            ),
        )

    @property
    def json_mode(self) -> bool:
        return self.template is not None and self.template.is_json

    def for_lesson(self, index: int) -> "LessonRequest":
        """Single-lesson request for lesson ``index`` of a multi-lesson week."""
        day = self.scheduled_days[index] if index < len(self.scheduled_days) else None
        return replace(
            self,
            num_lessons=1,
            strand=_nth_line(self.strand, index),
            sub_strand=_nth_line(self.sub_strand, index),
            content_standard=_nth_line(self.content_standard, index),
            indicators=_nth_line(self.indicators, index),
            exemplars=_nth_line(self.exemplars, index),
            scheduled_days=(day,) if day else (),
        )

    def first_lines(self) -> "LessonRequest":
        """Single lesson from scheme fields that may hold a whole week."""
        return replace(
            self,
            strand=_first_line(self.strand),
            sub_strand=_first_line(self.sub_strand),
            content_standard=_first_line(self.content_standard),
            indicators=_first_line(self.indicators),
            exemplars=_first_line(self.exemplars),
        )


# --- Prompt ---

def _reference_block(documents, kind: str, heading: str) -> str:
    docs = [d for d in documents if d.kind == kind]
    if not docs:
        return ""
    entries = []
    for i, doc in enumerate(docs, 1):
        desc = f" - {doc.description}" if doc.description else ""
        entries.append(f"{i}. {doc.title}{desc} ({doc.file_name})\nCONTENT:\n{doc.content[:REFERENCE_CHARS]}...")
    return f"\n\n**{heading}:**\n" + "\n\n".join(entries)


def _ghana_context(request: LessonRequest) -> str:
    location = ""
    if request.location:
        location = f"""8. **LOCATION SPECIFIC CONTEXT:** The school is located in **{request.location}**.
   - Use examples relevant to this specific location (e.g., nearby landmarks, local geography, main economic activities of the area).
   - If the location is a coastal area, use ocean/fishing examples. If forest belt, use farming/forestry examples. If northern savannah, use relevant agricultural/climate examples.
   - Mention local markets, festivals, or sites familiar to students in {request.location}."""
    examples = "\n".join(f"- {ex}" for ex in subject_examples(request.subject))
    materials = ", ".join(LOCAL_MATERIALS[:5])
    strategies = differentiation_strategy("mixed")

    return f"""
**GHANAIAN CONTEXT REQUIREMENTS (CRITICAL):**
1. Use ONLY Ghanaian names (Kwame, Akosua, Kofi, Ama, etc.)
2. Use ONLY Ghanaian places (Accra, Kumasi, Tamale, Cape Coast, etc.)
3. Use ONLY Ghanaian currency (Ghana cedis and pesewas)
4. Use ONLY locally available materials: {materials}
5. Include Ghanaian values and cultural elements
6. Make it practical for real Ghanaian classroom conditions (large classes, limited resources)
7. Curriculum Standard: {curriculum_standard(request.level)}
{location}

**LANGUAGE AND SPELLING INSTRUCTIONS (CRITICAL):**
- **USE BRITISH ENGLISH SPELLING ONLY.** (e.g., 'colour' not 'color', 'programme' not 'program', 'centre' not 'center', 'behaviour' not 'behavior', 'organise' not 'organize', 'analyse' not 'analyze').
- This is mandatory for the Ghanaian curriculum context.
- For "Ghanaian Language" subject: ALL content MUST be written in ENGLISH ONLY.
- DO NOT use any Twi, Fante, Akan, Ewe, Ga, Dagbani, or any other Ghanaian local language words unless explicitly teaching them as vocabulary terms.
- Lesson activities, instructions, examples, and all text must be in plain British English.

**FORMATTING REQUIREMENTS:**
- Start each new thought, idea, or concept on a NEW LINE.
- Use double newlines (blank line) between different sections or major ideas.
- Number activities clearly (1), 2), 3) or Activity 1:, Activity 2:) with each on its own line.
- Avoid long run-on paragraphs - break them into digestible chunks.
- Use bullet points for lists of items.

**GHANAIAN EXAMPLES TO USE:**
{examples}

**DIFFERENTIATION STRATEGIES:**
{strategies}
"""


def _diagram_block(request: LessonRequest) -> str:
    if not request.include_diagrams:
        return ""
    return """**DIAGRAM OUTLINES:**
Include descriptions of relevant diagrams, charts, illustrations, or visual aids throughout the lesson. For each diagram, provide:
- A clear title/caption
- Description of what should be shown
- How it supports the learning objectives
- When it should be presented
- Key elements, labels, or annotations

"""


def _day_instruction(request: LessonRequest) -> str:
    if request.scheduled_days:
        return f'the scheduled day ("{request.scheduled_days[0]}")'
    return "the day of the week"


def _template_prompt(request: LessonRequest, references: str) -> str:
    template = request.template
    philosophy = philosophy_guidance(request.philosophy)
    detail = detail_level_guidance(request.detail_level)
    objectives = " ".join(filter(None, [
        f"Indicators: {request.indicators}" if request.indicators else "",
        f"Exemplars: {request.exemplars}" if request.exemplars else "",
    ]))
    scheme = f"\n- Resources from Scheme: {request.scheme_resources}" if request.scheme_resources else ""
    term = request.term or 'the academic term (e.g., "First Term")'
    class_size = request.class_size or "typical class size (e.g., 30-40 students)"
    diagrams = "Include diagram outlines as requested." if request.include_diagrams else "Do not include diagram outlines."
    reference_note = (
        "\n- Reference and incorporate content from the provided curriculum documents and resource materials"
        if references else ""
    )

    if template.is_json:
        output_format = """
ATTENTION: This is a JSON template!
- Your FIRST character must be: {
- Your LAST character must be: }
- NO text before the opening {
- NO text after the closing }
- NO markdown code fences
- ONLY pure JSON
- Do NOT add or remove fields; ensure all string values are properly escaped
"""
    else:
        output_format = """
- Start with the EXACT first line of the template
- Work through EACH section systematically, maintaining exact formatting
"""

    return f"""You are an expert educational content creator for Ghana's education system. You will be given a lesson note template with exact headings and structure. Your task is to FILL IN the template with actual content while keeping the EXACT structure and headings.

**Template Name:** {template.name}
**Template Description:** {template.description}

**Lesson Information to Use:**
- Subject: {request.subject}
- Grade Level: {request.level}
- Strand: {request.strand}
- Sub-Strand: {request.sub_strand}
- Content Standard: {request.content_standard}
- Learning Indicators: {request.indicators or "None provided"}
- Exemplars: {request.exemplars or "None provided"}{scheme}{references}

{_ghana_context(request)}

**TEACHING APPROACH:**
{philosophy}

**DETAIL LEVEL:**
{detail}

{_diagram_block(request)}**EXACT TEMPLATE TO FILL (DO NOT MODIFY STRUCTURE OR HEADINGS):**

{template.structure}

**HOW TO FILL THE TEMPLATE:**
- Replace {{SUBJECT}} with: {request.subject}
- Replace {{LEVEL}} or {{CLASS}} with: {request.level}
- Replace {{STRAND}} with: {request.strand}
- Replace {{SUB_STRAND}} with: {request.sub_strand}
- Replace {{CONTENT_STANDARD}} with: {request.content_standard}
- Replace {{EXEMPLARS}}, {{OBJECTIVES}}, or {{INDICATOR}} with appropriate learning objectives based on: {objectives}
- Replace {{TERM}} with: {term}
- Replace {{WEEK_ENDING}} with: {request.week_ending} (Leave empty if not provided)
- Replace {{DAY}} with: {_day_instruction(request)}
- Replace {{DURATION}} with appropriate lesson duration (e.g., 60 minutes, 1 hour)
- Replace {{CLASS_SIZE}} with: {class_size}
- Replace {{PERFORMANCE_INDICATOR}} with specific measurable outcomes starting with "By the end of the lesson, learners will be able to:"
- Replace {{CORE_COMPETENCIES}} with relevant competencies (e.g., Critical Thinking, Creativity, Communication, Collaboration)
- Replace {{KEYWORDS}} with key vocabulary terms for this lesson
- Replace {{REFERENCE}} with EXACTLY: "NaCCA {request.subject} Curriculum for {request.level}" - DO NOT add any other text, materials, or resources to this field.
- Replace {{STARTER_DURATION}} with "10 mins"
- Replace {{NEW_LEARNING_DURATION}} with "40 mins"
- Replace {{REFLECTION_DURATION}} with "10 mins"
- For {{STARTER_ACTIVITIES}}: Describe the starter/warm-up activities.
- For {{NEW_LEARNING_ACTIVITIES}}: Number the activities (Activity 1:, Activity 2:) starting on new lines and USE bold formatting (e.g. **Activity 1:**).
- For {{REFLECTION_ACTIVITIES}}:
  1. Briefly summarize the lesson closure.
  2. ALWAYS add a blank line (double newline), then include the subheading "**Sample Class Exercises:**" (bolded) followed by at least 3 concept application questions for students to solve.
  3. Ensure these questions test understanding of the lesson concepts in a practical way.
- For {{STARTER_RESOURCES}}, {{NEW_LEARNING_RESOURCES}}, {{REFLECTION_RESOURCES}}, list ONLY essential, simple, and readily available materials (avoid long lists)
- **FORMATTING:** Use short, clear paragraphs. Avoid long "walls of text". Use bullet points (-) for lists. Separate distinct ideas with newlines.

**CONTENT QUALITY REQUIREMENTS:**
- **Paragraphing:** Break long text into smaller, readable paragraphs. Use double newlines (\\n\\n) to separate paragraphs in JSON strings.
- **Teaching Philosophy:** {request.philosophy or 'balanced'} - {philosophy}
- **Detail Level:** {request.detail_level or 'moderate'} - {detail}
- **Diagrams:** {diagrams}
- Ensure all content is appropriate for {request.level} students in Ghana
- Make it ready for immediate classroom use{reference_note}

**OUTPUT FORMAT:**
{output_format}
- Output ONLY the filled template - no commentary, no explanations, no meta-text
- Ensure EVERY placeholder is replaced with actual content

BEGIN THE FILLED TEMPLATE NOW:"""


def _text_prompt(request: LessonRequest, references: str) -> str:
    reference_note = (
        "Reference and incorporate content from the provided curriculum documents and resource materials where appropriate.\n\n"
        if references else ""
    )
    return f"""You are an expert educational content creator for Ghana's education system. Generate a comprehensive, professional lesson note based on the following information:

**Subject:** {request.subject}
**Grade Level:** {request.level}
**Class Size:** {request.class_size or "Typical (30-40)"}
**Strand:** {request.strand}
**Sub-Strand:** {request.sub_strand}
**Content Standard:** {request.content_standard}
**Learning Indicators:** {request.indicators or "None provided"}
**Exemplars:** {request.exemplars or "None provided"}
**Scheme Resources:** {request.scheme_resources or "Standard teaching materials"}{references}

{_ghana_context(request)}

**TEACHING APPROACH:**
{philosophy_guidance(request.philosophy)}

**DETAIL LEVEL:**
{detail_level_guidance(request.detail_level)}
- **Formatting:** Use short, clear paragraphs. Avoid long blocks of text. Use bullet points where appropriate.

{_diagram_block(request)}Please create a lesson note that includes:
1. Lesson Title
2. Learning Objectives (at least 3)
3. Materials Needed (List only essential, readily available items)
4. Introduction/Warm-up Activity (5-10 minutes)
5. Main Teaching Activities (30-40 minutes)
   - Step-by-step instructional sequence
   - Guided practice activities
   - Examples and demonstrations
   - IMPORTANT: Start every "Activity X:" on a new line and use bold formatting (e.g., **Activity 1:**).
6. Assessment Methods
7. Differentiation Strategies
8. Closure/Summary (5 minutes) - Include summary of key points.
   - **Sample Class Exercises (Concept Application):** (Must be bolded) Include at least 3 questions for learners to practice.
9. Homework/Extension Activities

{reference_note}Format the lesson note professionally with clear sections and practical, actionable content that a teacher can use directly in the classroom."""


def build_prompt(request: LessonRequest) -> str:
    """Prompt for a single lesson; template mode when the request carries a template."""
    references = (
        _reference_block(request.reference_documents, "curriculum", "Reference Curriculum Documents")
        + _reference_block(request.reference_documents, "resource", "Additional Resource Materials")
    )
    if request.template is not None:
        return _template_prompt(request, references)
    return _text_prompt(request, references)


# --- Generation ---

def _generate_single(request: LessonRequest, call) -> str:
    request = request.first_lines()
    prompt = build_prompt(request)
    logger.debug("Prompt built: %d chars (template=%s)", len(prompt), bool(request.template))
    text = call(prompt, num_lessons=1)
    if request.json_mode:
        # formatting would corrupt the JSON
        return text
    return format_generated_content(text)


def _combine_json(results: list) -> str:
    objects = []
    for r in results:
        trimmed = _FENCE_RE.sub("", r).strip()
        if trimmed.startswith("[") and trimmed.endswith("]"):
            trimmed = trimmed[1:-1].strip()
        objects.append(trimmed)
    return f"[{','.join(objects)}]"


def _combine_text(results: list) -> str:
    total = len(results)
    titled = []
    for i, res in enumerate(results):
        header = f"Lesson: {i + 1} of {total}"
        if header not in res:
            res = f"**{header}**\n\n{res}"
        titled.append(res)
    return LESSON_SEPARATOR.join(titled)


def generate_lesson_note(request: LessonRequest, progress_callback=None, call=call_ai) -> str:
    """Generate the lesson note text (or template JSON) for ``request``.

    Args:
        request: What to generate. ``num_lessons`` > 1 fans out to one AI call per lesson.
        progress_callback: Optional callable(step, status, message, data), called as
            each lesson starts and finishes. ``step`` is the 1-based lesson number.
        call: AI completion function, ``call(prompt, num_lessons=1) -> str``.

    Returns:
        Combined text, or a JSON array string in template JSON mode.
    """
    def _progress(step, status, message, data=None):
        if progress_callback:
            progress_callback(step, status, message, data or {})

    total = request.num_lessons
    if total <= 1:
        _progress(1, "running", "Generating lesson 1 of 1")
        try:
            text = _generate_single(request, call)
        except AIServiceError as e:
            logger.error("Error generating lesson note: %s", e)
            _progress(1, "error", str(e))
            raise LessonGenerationError(GENERATION_ERROR_MESSAGE, lesson_index=0) from e
        _progress(1, "done", "Lesson 1 of 1 generated", {"chars": len(text)})
        return text

    logger.info("Generating %d lessons individually", total)
    results = [None] * total
    with ThreadPoolExecutor(max_workers=min(total, MAX_PARALLEL_LESSONS)) as ex:
        futs = {}
        for i in range(total):
            _progress(i + 1, "running", f"Generating lesson {i + 1} of {total}")
            futs[ex.submit(_generate_single, request.for_lesson(i), call)] = i
        for fut in as_completed(futs):
            idx = futs[fut]
            try:
                results[idx] = fut.result()
            except AIServiceError as e:
                logger.error("Error generating lesson %d of %d: %s", idx + 1, total, e)
                _progress(idx + 1, "error", str(e))
                for other in futs:
                    other.cancel()
                raise LessonGenerationError(GENERATION_ERROR_MESSAGE, lesson_index=idx) from e
            _progress(idx + 1, "done", f"Lesson {idx + 1} of {total} generated", {"chars": len(results[idx])})

    if request.json_mode:
        return _combine_json(results)
    return _combine_text(results)


def request_summary(request: LessonRequest) -> dict:
    """JSON-safe view of a request, for output packages and job results."""
    data = {
        "subject": request.subject,
        "level": request.level,
        "strand": request.strand,
        "sub_strand": request.sub_strand,
        "content_standard": request.content_standard,
        "indicators": request.indicators,
        "exemplars": request.exemplars,
        "class_size": request.class_size,
        "philosophy": request.philosophy,
        "detail_level": request.detail_level,
        "term": request.term,
        "week_number": request.week_number,
        "week_ending": request.week_ending,
        "location": request.location,
        "include_diagrams": request.include_diagrams,
        "num_lessons": request.num_lessons,
        "scheduled_days": list(request.scheduled_days),
        "template": request.template.id or request.template.name if request.template else None,
        "reference_documents": [d.title for d in request.reference_documents],
    }
    return data
