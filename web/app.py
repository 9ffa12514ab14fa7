"""FastAPI app for Ghana lesson notes: generation jobs, document rendering, dashboard."""

import logging
from pathlib import Path

from dotenv import load_dotenv
from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from fastapi.staticfiles import StaticFiles
from fastapi.templating import Jinja2Templates

from notegen.assessment import AssessmentError, AssessmentParseError
from notegen.docx_writer import DocumentGenerationError
from notegen.lesson_plan import LessonPlanParseError
from web import config
from web.routes import dashboard, documents, generate

load_dotenv()

logger = logging.getLogger(__name__)

WEB_DIR = Path(__file__).resolve().parent

app = FastAPI(title="Ghana Lesson Notes", version="0.1.0")

# Attach state to app so routes can access templates without circular import
templates = Jinja2Templates(directory=str(WEB_DIR / "templates"))
app.state.templates = templates


@app.on_event("startup")
def startup():
    logging.basicConfig(
        level=logging.INFO,
        format="%(asctime)s [%(name)s] %(levelname)s: %(message)s",
    )
    logger.info("Output directory: %s", config.OUTPUT_DIR)

# Static files (optional)
static_dir = WEB_DIR / "static"
if static_dir.exists():
    app.mount("/static", StaticFiles(directory=str(static_dir)), name="static")

# Serve generated output files (PDF, DOCX, print HTML)
config.OUTPUT_DIR.mkdir(parents=True, exist_ok=True)
app.mount("/output", StaticFiles(directory=str(config.OUTPUT_DIR)), name="output")


app.include_router(dashboard.router, tags=["dashboard"])
app.include_router(documents.router, prefix="/documents", tags=["documents"])
app.include_router(generate.router, prefix="/generate", tags=["generate"])


@app.exception_handler(LessonPlanParseError)
async def lesson_plan_parse_error_handler(request: Request, exc: LessonPlanParseError):
    logger.warning("Lesson plan parse failed for %s: %s", request.url.path, exc)
    return JSONResponse({"detail": str(exc)}, status_code=422)


@app.exception_handler(DocumentGenerationError)
async def document_generation_error_handler(request: Request, exc: DocumentGenerationError):
    logger.error("Document generation failed for %s: %s", request.url.path, exc.__cause__ or exc)
    return JSONResponse({"detail": str(exc)}, status_code=500)


@app.exception_handler(AssessmentParseError)
async def assessment_parse_error_handler(request: Request, exc: AssessmentParseError):
    logger.warning("Assessment parse failed for %s: %s", request.url.path, exc)
    return JSONResponse({"detail": str(exc)}, status_code=422)


@app.exception_handler(AssessmentError)
async def assessment_error_handler(request: Request, exc: AssessmentError):
    logger.error("Assessment generation failed for %s: %s", request.url.path, exc.__cause__ or exc)
    return JSONResponse({"detail": generate._friendly_error(exc)}, status_code=502)


@app.exception_handler(Exception)
async def catch_all_exception_handler(request: Request, exc: Exception):
    """Unexpected errors keep the JSON error shape of the other handlers."""
    logger.exception("Unhandled exception for %s %s: %s", request.method, request.url.path, exc)
    return JSONResponse({"detail": "Internal server error."}, status_code=500)
