"""Dashboard route: generation form and recent output packages."""

from fastapi import APIRouter, Request
from fastapi.responses import HTMLResponse

from notegen.lesson_generator import DETAIL_LEVELS, PHILOSOPHIES
from notegen.output import list_recent_outputs
from web import config

router = APIRouter()
RECENT_MAX = 10


@router.get("/", response_class=HTMLResponse)
async def get_dashboard(request: Request):
    """Dashboard: generate form + recent runs from output/."""
    recent = list_recent_outputs(str(config.OUTPUT_DIR), RECENT_MAX)
    templates = request.app.state.templates
    return templates.TemplateResponse(
        request,
        "dashboard.html",
        {
            "recent_runs": recent,
            "philosophies": list(PHILOSOPHIES),
            "detail_levels": list(DETAIL_LEVELS),
        },
    )


@router.get("/health")
async def get_health():
    return {"status": "ok"}
