"""Generate routes: start a lesson generation job, stream its progress (SSE), fetch the result."""

import asyncio
import json
import logging
import os
import queue
import threading
import uuid

from fastapi import APIRouter, Request
from fastapi.responses import JSONResponse, StreamingResponse

from web import config
from web import state as web_state

logger = logging.getLogger(__name__)

router = APIRouter()


def _friendly_error(e: Exception) -> str:
    err_msg = str(e)
    cause = str(e.__cause__ or "")
    if "overloaded" in cause.lower() or "529" in cause:
        return "The AI service is temporarily overloaded. Please try again in a few minutes."
    if "rate limit" in cause.lower() or "429" in cause:
        return "API rate limit reached. Please try again in a few minutes."
    if "timed out" in cause.lower():
        return cause
    if len(err_msg) > 800:
        err_msg = err_msg[:800] + "..."
    return err_msg


def _run_generation(request_data: dict, job_id: str):
    """Run generation in a thread; push progress to job_queues[job_id]; store result in job_stores[job_id]."""
    from notegen.docx_writer import LessonMetadata
    from notegen.lesson_generator import LessonRequest, generate_lesson_note, request_summary
    from notegen.output import generate_output

    q = web_state.job_queues[job_id]

    def progress_callback(step, status: str, message: str, data: dict):
        q.put({"step": step, "status": status, "message": message, "data": data or {}})

    try:
        lesson_request = LessonRequest.from_dict(request_data)
        text = generate_lesson_note(lesson_request, progress_callback=progress_callback)
        result = {"text": text, "json_mode": lesson_request.json_mode}
        try:
            out_folder = generate_output(
                text,
                metadata=LessonMetadata.from_dict(request_data),
                json_mode=lesson_request.json_mode,
                request_data=request_summary(lesson_request),
                output_dir=str(config.OUTPUT_DIR),
                output_suffix=job_id[:8],
            )
            result["folder"] = os.path.basename(out_folder)
        except Exception as e:
            # the text is still returned; only the package is missing
            logger.exception("Output package failed for job %s: %s", job_id, e)
            result["output_error"] = str(e)
        web_state.job_stores[job_id] = result
        q.put({"step": "complete", "status": "done", "message": "Complete", "data": {"job_id": job_id}})
    except Exception as e:
        logger.exception("Generation failed for job %s: %s", job_id, e)
        err_msg = _friendly_error(e)
        web_state.job_stores[job_id] = {"error": err_msg}
        q.put({"step": "error", "status": "error", "message": err_msg, "data": {}})
    finally:
        web_state.job_queues.pop(job_id, None)


@router.post("/start")
async def post_generate_start(request: Request):
    """Start a generation job; returns {job_id} for the stream and result routes."""
    try:
        body = await request.json()
    except json.JSONDecodeError:
        return JSONResponse({"detail": "Request body must be JSON."}, status_code=400)
    if not isinstance(body, dict) or not body.get("subject") or not body.get("level"):
        return JSONResponse({"detail": "Subject and level are required."}, status_code=400)

    job_id = str(uuid.uuid4())
    web_state.job_queues[job_id] = queue.Queue()
    thread = threading.Thread(target=_run_generation, args=(body, job_id))
    thread.daemon = True
    thread.start()
    logger.info("Generation job %s started: %s / %s", job_id, body.get("subject"), body.get("level"))
    return JSONResponse({"job_id": job_id})


@router.get("/stream/{job_id}")
async def get_stream(job_id: str):
    """SSE stream of progress events for job_id."""
    q = web_state.job_queues.get(job_id)

    async def event_stream():
        if not q:
            if job_id in web_state.job_stores:
                state = web_state.job_stores[job_id]
                if "error" in state:
                    yield f"data: {json.dumps({'step': 'error', 'message': state['error']})}\n\n"
                else:
                    yield f"data: {json.dumps({'step': 'complete', 'job_id': job_id})}\n\n"
            return
        while True:
            try:
                item = await asyncio.get_event_loop().run_in_executor(
                    None, lambda: q.get(timeout=0.5)
                )
            except queue.Empty:
                continue
            yield f"data: {json.dumps(item)}\n\n"
            if item.get("step") in ("complete", "error"):
                break

    return StreamingResponse(
        event_stream(),
        media_type="text/event-stream",
        headers={"Cache-Control": "no-cache", "X-Accel-Buffering": "no"},
    )


@router.get("/result/{job_id}")
async def get_result(job_id: str):
    """Generated text and output folder, the error, or 202 while still running."""
    state = web_state.job_stores.get(job_id)
    if not state:
        if job_id in web_state.job_queues:
            return JSONResponse({"status": "running"}, status_code=202)
        return JSONResponse({"detail": "Job not found or not ready."}, status_code=404)
    if "error" in state:
        return JSONResponse({"detail": state["error"]}, status_code=502)
    return JSONResponse({"status": "done", **state})


@router.post("/assessment")
async def post_generate_assessment(request: Request):
    """Generate a quiz, worksheet, homework or test; returns the parsed assessment JSON."""
    from notegen.assessment import AssessmentConfig, generate_assessment

    try:
        body = await request.json()
    except json.JSONDecodeError:
        return JSONResponse({"detail": "Request body must be JSON."}, status_code=400)
    if not isinstance(body, dict):
        return JSONResponse({"detail": "Request body must be a JSON object."}, status_code=400)
    try:
        config = AssessmentConfig.from_dict(body)
    except ValueError as e:
        return JSONResponse({"detail": str(e)}, status_code=400)
    if not config.subject or not config.level or not config.topic:
        return JSONResponse({"detail": "Subject, level and topic are required."}, status_code=400)

    assessment = await asyncio.get_event_loop().run_in_executor(None, generate_assessment, config)
    return JSONResponse({"assessment": assessment.to_dict(), "include_answer_key": config.include_answer_key})
