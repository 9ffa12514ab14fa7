"""Ghana Lesson Notes: generate, render, assess and extract from the command line.

Usage:
    python main.py generate --subject Mathematics --level "Basic 6" --strand "Number"
    python main.py generate --request path/to/request.json --num-lessons 3
    python main.py render lesson.md --format pdf -o lesson.pdf
    python main.py render ai_response.json --json --format docx
    python main.py render ai_response.json --json --docx-template school_template.docx
    python main.py assessment --subject Science --level "Basic 5" --topic "Plants" --type quiz
    python main.py extract curriculum.docx
"""

import argparse
import json
import logging
import os
import sys
import time

from dotenv import load_dotenv

load_dotenv()

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s [%(name)s] %(levelname)s: %(message)s",
)
logger = logging.getLogger("notegen")

REQUEST_FLAGS = (
    "subject", "level", "strand", "sub_strand", "content_standard", "indicators",
    "exemplars", "class_size", "philosophy", "detail_level", "term", "week_number",
    "week_ending", "location", "template",
)


def _request_from_args(args) -> dict:
    """Request dict from --request JSON, overridden by any explicit flags."""
    data = {}
    if args.request:
        with open(args.request, "r", encoding="utf-8") as f:
            data = json.load(f)
    for name in REQUEST_FLAGS:
        value = getattr(args, name)
        if value is not None:
            data[name] = value
    if args.num_lessons is not None:
        data["num_lessons"] = args.num_lessons
    if args.days:
        data["scheduled_days"] = [d.strip() for d in args.days.split(",") if d.strip()]
    if args.diagrams:
        data["include_diagrams"] = True
    if args.reference:
        from notegen.file_text import extract_text, extract_text_from_url, url_file_name

        docs = list(data.get("reference_documents") or [])
        for ref in args.reference:
            if ref.startswith(("http://", "https://")):
                name = url_file_name(ref)
                content = extract_text_from_url(ref, name)
            else:
                name = os.path.basename(ref)
                content = extract_text(ref, name)
            docs.append({"title": name, "file_name": name, "content": content})
        data["reference_documents"] = docs
    return data


def run_generate(request_data: dict, output_dir: str = "output", progress_callback=None) -> str:
    """Generate a lesson note for ``request_data`` and write its output package.

    Returns:
        Output folder path.
    """
    from notegen.docx_writer import LessonMetadata
    from notegen.lesson_generator import LessonRequest, generate_lesson_note, request_summary
    from notegen.output import generate_output

    request = LessonRequest.from_dict(request_data)
    if not request.subject or not request.level:
        raise ValueError("Subject and level are required.")

    t0 = time.time()
    logger.info(
        "Generating %d lesson(s): %s / %s%s",
        request.num_lessons, request.subject, request.level,
        f" (template: {request.template.name})" if request.template else "",
    )
    text = generate_lesson_note(request, progress_callback=progress_callback)
    logger.info("  Generation done in %.1fs (%d chars)", time.time() - t0, len(text))

    return generate_output(
        text,
        metadata=LessonMetadata.from_dict(request_data),
        json_mode=request.json_mode,
        request_data=request_summary(request),
        output_dir=output_dir,
    )


def run_render(input_path: str, fmt: str, as_json: bool = False, metadata: dict = None, output_path: str = None) -> str:
    """Render an existing lesson note (or lesson plan JSON) file to docx, html or pdf.

    Returns:
        Path of the written file.
    """
    from notegen.docx_writer import LessonMetadata, lesson_note_filename, render_lesson_note_docx
    from notegen.html_export import lesson_note_html, lessons_html, print_document
    from notegen.lesson_plan import lesson_plan_filename, parse_ai_json_response
    from notegen.lesson_plan_docx import render_lesson_plan_docx
    from notegen.pdf_export import render_lesson_note_pdf, render_lesson_plan_pdf

    with open(input_path, "r", encoding="utf-8") as f:
        text = f.read()
    if not text.strip():
        raise ValueError(f"Input file is empty: {input_path}")

    if as_json:
        plans = parse_ai_json_response(text)
        default_name = lesson_plan_filename(plans, extension=fmt)
        if fmt == "docx":
            data = render_lesson_plan_docx(plans)
        elif fmt == "pdf":
            data = render_lesson_plan_pdf(plans)
        else:
            data = print_document(lessons_html(plans), title="Lesson Plan").encode("utf-8")
    else:
        meta = LessonMetadata.from_dict(metadata or {})
        default_name = os.path.splitext(lesson_note_filename(meta))[0] + f".{fmt}"
        if fmt == "docx":
            data = render_lesson_note_docx(text, meta)
        elif fmt == "pdf":
            data = render_lesson_note_pdf(text, meta)
        else:
            data = print_document(lesson_note_html(text, meta), title="Lesson Note").encode("utf-8")

    output_path = output_path or default_name
    with open(output_path, "wb") as f:
        f.write(data)
    logger.info("Wrote %s (%d bytes)", output_path, len(data))
    return output_path


def run_fill_template(input_path: str, template_path: str, output_path: str = None) -> list:
    """Fill a school's .docx template once per lesson in a lesson plan JSON file.

    Returns:
        Paths of the written files.
    """
    from notegen.lesson_plan import parse_ai_json_response
    from notegen.template_fill import fill_lesson_plan_template, template_filename

    with open(input_path, "r", encoding="utf-8") as f:
        plans = parse_ai_json_response(f.read())
    with open(template_path, "rb") as f:
        template = f.read()

    paths = []
    for i, plan in enumerate(plans, 1):
        path = output_path or template_filename(plan)
        if len(plans) > 1:
            stem, ext = os.path.splitext(path)
            path = f"{stem}-{i}{ext}"
        with open(path, "wb") as f:
            f.write(fill_lesson_plan_template(plan, template))
        logger.info("Wrote %s", path)
        paths.append(path)
    return paths


def run_assessment(config_data: dict = None, from_json: str = None, include_answers: bool = True,
                   output_path: str = None) -> str:
    """Generate an assessment with the AI (or load a saved one) and write it as .docx.

    The parsed assessment is saved next to the document as JSON.

    Returns:
        Path of the written .docx.
    """
    from notegen.assessment import (
        AssessmentConfig,
        assessment_filename,
        generate_assessment,
        parse_assessment_response,
        render_assessment_docx,
    )

    if from_json:
        with open(from_json, "r", encoding="utf-8") as f:
            assessment = parse_assessment_response(f.read())
    else:
        config = AssessmentConfig.from_dict(config_data or {})
        if not config.subject or not config.level or not config.topic:
            raise ValueError("Subject, level and topic are required.")
        assessment = generate_assessment(config)
        include_answers = include_answers and config.include_answer_key

    output_path = output_path or assessment_filename(assessment)
    with open(output_path, "wb") as f:
        f.write(render_assessment_docx(assessment, include_answers))
    if not from_json:
        with open(os.path.splitext(output_path)[0] + ".json", "w", encoding="utf-8") as f:
            json.dump(assessment.to_dict(), f, indent=2, ensure_ascii=False)
    logger.info("Wrote %s (%d question(s))", output_path, len(assessment.questions))
    return output_path


def main():
    parser = argparse.ArgumentParser(description="Ghana Lesson Notes")
    parser.add_argument("--verbose", action="store_true", help="Enable verbose/debug logging")
    sub = parser.add_subparsers(dest="command")

    gen = sub.add_parser("generate", help="Generate a lesson note with the AI and write an output package")
    gen.add_argument("--request", type=str, help="Path to a JSON request file (flags override its fields)")
    gen.add_argument("--subject", type=str)
    gen.add_argument("--level", type=str, help='Class level, e.g. "Basic 6"')
    gen.add_argument("--strand", type=str)
    gen.add_argument("--sub-strand", dest="sub_strand", type=str)
    gen.add_argument("--content-standard", dest="content_standard", type=str)
    gen.add_argument("--indicators", type=str)
    gen.add_argument("--exemplars", type=str)
    gen.add_argument("--class-size", dest="class_size", type=str)
    gen.add_argument("--philosophy", type=str, help="balanced, student-centered, teacher-led, inquiry-based or collaborative")
    gen.add_argument("--detail-level", dest="detail_level", type=str, help="brief, moderate, detailed or very-detailed")
    gen.add_argument("--term", type=str)
    gen.add_argument("--week-number", dest="week_number", type=str)
    gen.add_argument("--week-ending", dest="week_ending", type=str)
    gen.add_argument("--location", type=str)
    gen.add_argument("--template", type=str, help='Template id, e.g. "ghana-standard" for the weekly lesson plan')
    gen.add_argument("--num-lessons", dest="num_lessons", type=int)
    gen.add_argument("--days", type=str, help="Comma-separated teaching days, one per lesson")
    gen.add_argument("--diagrams", action="store_true", help="Ask for diagram descriptions")
    gen.add_argument("--reference", action="append", help="Reference document path or http(s) URL (docx, pdf, html, txt); repeatable")
    gen.add_argument("--output-dir", dest="output_dir", type=str, default="output")

    ren = sub.add_parser("render", help="Render an existing lesson note or lesson plan JSON")
    ren.add_argument("input", type=str, help="Lesson note text/markdown, or AI JSON with --json")
    ren.add_argument("--format", dest="fmt", choices=("docx", "html", "pdf"), default="docx")
    ren.add_argument("--json", dest="as_json", action="store_true", help="Input is lesson plan JSON")
    ren.add_argument("--subject", type=str)
    ren.add_argument("--level", type=str)
    ren.add_argument("--docx-template", dest="docx_template", type=str,
                     help="Fill this .docx template ({subject}, {phase1_activities}, ...) instead; needs --json")
    ren.add_argument("-o", "--output", type=str, help="Output file path")

    ext = sub.add_parser("extract", help="Print the text of a reference document")
    ext.add_argument("input", type=str)

    asm = sub.add_parser("assessment", help="Generate a quiz, worksheet, homework or test as .docx")
    asm.add_argument("--type", type=str, default="quiz", help="quiz, worksheet, homework or test")
    asm.add_argument("--subject", type=str)
    asm.add_argument("--level", type=str)
    asm.add_argument("--topic", type=str)
    asm.add_argument("--difficulty", type=str, default="medium", help="easy, medium, hard or mixed")
    asm.add_argument("--question-types", dest="question_types", type=str, default="multiple_choice",
                     help="Comma-separated: multiple_choice, true_false, short_answer, essay, fill_blank, matching")
    asm.add_argument("--num-questions", dest="number_of_questions", type=int, default=10)
    asm.add_argument("--time-limit", dest="time_limit", type=int, help="Minutes")
    asm.add_argument("--no-answer-key", dest="include_answer_key", action="store_false")
    asm.add_argument("--special-needs", dest="special_needs", action="store_true")
    asm.add_argument("--ell", dest="ell_support", action="store_true", help="English Language Learner support")
    asm.add_argument("--gifted", dest="gifted_extensions", action="store_true")
    asm.add_argument("--from-json", dest="from_json", type=str, help="Re-export a saved assessment JSON without the AI")
    asm.add_argument("-o", "--output", type=str, help="Output .docx path")

    args = parser.parse_args()

    if args.verbose:
        logging.getLogger().setLevel(logging.DEBUG)

    from notegen.ai_client import AIServiceError
    from notegen.docx_writer import DocumentGenerationError
    from notegen.lesson_generator import LessonGenerationError
    from notegen.lesson_plan import LessonPlanParseError

    if args.command == "generate":
        try:
            request_data = _request_from_args(args)
            out_folder = run_generate(request_data, output_dir=args.output_dir)
        except (FileNotFoundError, json.JSONDecodeError, ValueError) as e:
            logger.error("%s", e)
            sys.exit(1)
        except LessonGenerationError as e:
            logger.error("%s (%s)", e, e.__cause__)
            sys.exit(1)
        except (AIServiceError, DocumentGenerationError) as e:
            logger.error("%s", e)
            sys.exit(1)
        logger.info("Lesson package saved to: %s", out_folder)
    elif args.command == "render":
        if not os.path.exists(args.input):
            logger.error("Input file not found: %s", args.input)
            sys.exit(1)
        if args.docx_template and not args.as_json:
            logger.error("--docx-template needs lesson plan JSON input (--json)")
            sys.exit(1)
        metadata = {"subject": args.subject, "level": args.level}
        try:
            if args.docx_template:
                run_fill_template(args.input, args.docx_template, output_path=args.output)
            else:
                run_render(args.input, args.fmt, as_json=args.as_json, metadata=metadata, output_path=args.output)
        except (FileNotFoundError, LessonPlanParseError, DocumentGenerationError, ValueError) as e:
            logger.error("%s", e)
            sys.exit(1)
    elif args.command == "assessment":
        from notegen.assessment import AssessmentError

        config_data = {
            name: getattr(args, name)
            for name in ("type", "subject", "level", "topic", "difficulty", "question_types",
                         "number_of_questions", "time_limit", "include_answer_key",
                         "special_needs", "ell_support", "gifted_extensions")
        }
        try:
            path = run_assessment(config_data, from_json=args.from_json, output_path=args.output)
        except AssessmentError as e:
            logger.error("%s (%s)", e, e.__cause__)
            sys.exit(1)
        except (FileNotFoundError, DocumentGenerationError, ValueError) as e:
            logger.error("%s", e)
            sys.exit(1)
        logger.info("Assessment saved to: %s", path)
    elif args.command == "extract":
        from notegen.file_text import extract_text

        if not os.path.exists(args.input):
            logger.error("Input file not found: %s", args.input)
            sys.exit(1)
        print(extract_text(args.input, os.path.basename(args.input)))
    else:
        parser.print_help()


if __name__ == "__main__":
    main()
