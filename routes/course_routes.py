"""
FastAPI routes for courses, chapters and study artifact generation.
Clean, well-documented endpoints following REST conventions.
"""

from fastapi import APIRouter, Depends, File, Request, UploadFile
from fastapi.responses import StreamingResponse
from typing import Any, Dict, List, Optional
import asyncio
import json
import logging

from models.course_models import (
    ArtifactKind, ChapterCreateRequest, CourseCreateRequest, MangaPanel
)
from services.study_service import StudyService
from utils.exceptions import IntelliLearnError

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/api/v1", tags=["courses"])


def get_study_service(request: Request) -> StudyService:
    return request.app.state.study_service


# Course Endpoints
@router.post("/courses", status_code=201)
async def create_course(body: CourseCreateRequest, service: StudyService = Depends(get_study_service)):
    """Create an empty course"""
    return {"course": service.create_course(body.name.strip())}


@router.get("/courses")
async def list_courses(service: StudyService = Depends(get_study_service)):
    courses = service.list_courses()
    return {
        "courses": [
            {"id": c.id, "name": c.name, "chapter_count": len(c.chapters), "created_at": c.created_at}
            for c in courses
        ]
    }


@router.get("/courses/{course_id}")
async def get_course(course_id: str, service: StudyService = Depends(get_study_service)):
    return {"course": service.get_course(course_id)}


@router.delete("/courses/{course_id}", status_code=204)
async def delete_course(course_id: str, service: StudyService = Depends(get_study_service)):
    """Delete a course and all its chapters"""
    service.delete_course(course_id)


# Chapter Endpoints
@router.post("/courses/{course_id}/chapters", status_code=201)
async def add_chapter(
    course_id: str,
    body: ChapterCreateRequest,
    service: StudyService = Depends(get_study_service)
):
    return {"chapter": service.add_chapter(course_id, body.name.strip())}


@router.get("/chapters/{chapter_id}")
async def get_chapter(chapter_id: str, service: StudyService = Depends(get_study_service)):
    return {"chapter": service.get_chapter(chapter_id)}


@router.delete("/chapters/{chapter_id}", status_code=204)
async def delete_chapter(chapter_id: str, service: StudyService = Depends(get_study_service)):
    service.delete_chapter(chapter_id)


@router.put("/chapters/{chapter_id}/source")
async def upload_chapter_source(
    chapter_id: str,
    file: UploadFile = File(...),
    service: StudyService = Depends(get_study_service)
):
    """
    Upload the chapter source material.

    Accepts .txt, images, PDF, DOC(X) and PPT(X). Replacing the source
    discards every previously generated artifact of the chapter.
    """
    data = await file.read()
    chapter = service.upload_source(chapter_id, file.filename or "upload", data, file.content_type)
    return {"chapter": chapter}


@router.delete("/chapters/{chapter_id}/source")
async def reset_chapter_source(chapter_id: str, service: StudyService = Depends(get_study_service)):
    """Remove the source and all artifacts derived from it"""
    return {"chapter": service.reset_source(chapter_id)}


# Generation Endpoints
@router.post("/chapters/{chapter_id}/artifacts/{kind}")
async def generate_artifact(
    chapter_id: str,
    kind: ArtifactKind,
    service: StudyService = Depends(get_study_service)
):
    """
    Generate one study artifact from the chapter source.

    **Blocking operation** - returns the updated chapter.
    kind: summary / quiz / flashcards / manga_script
    """
    chapter = await service.generate_artifact(chapter_id, kind)
    return {"chapter": chapter}


@router.post("/chapters/{chapter_id}/manga")
async def generate_manga(chapter_id: str, service: StudyService = Depends(get_study_service)):
    """
    Generate the manga storyboard: script first, then every panel image concurrently.
    Panels whose image failed carry image_url == "error".
    """
    chapter = await service.generate_manga(chapter_id)
    return {"chapter": chapter}


@router.post("/chapters/{chapter_id}/extract-text")
async def extract_chapter_text(chapter_id: str, service: StudyService = Depends(get_study_service)):
    """Return the verbatim text of the chapter source"""
    return {"text": await service.extract_text(chapter_id)}


# SSE Streaming Helpers

def _sse_event(data: dict) -> str:
    """Format a dict as an SSE data line."""
    return f"data: {json.dumps(data, default=str)}\n\n"


def _sse_error_event(
    exc: Exception,
    phase: str = "stream",
    error_code: str = "INTERNAL_ERROR",
    status_code: int = 500,
    context: Optional[dict] = None,
) -> str:
    """Build a structured SSE error event from an exception."""
    if isinstance(exc, IntelliLearnError):
        error_code = exc.error_code
        status_code = exc.status_code
        context = exc.context
        message = exc.message
    else:
        message = str(exc)
    return _sse_event({
        "type": "error",
        "error": error_code,
        "message": message,
        "status_code": status_code,
        "phase": phase,
        "context": context,
    })


def _panels_event(event_type: str, panels: List[MangaPanel]) -> str:
    payload: Dict[str, Any] = {
        "type": event_type,
        "panels": [panel.model_dump() for panel in panels],
    }
    return _sse_event(payload)


@router.post("/chapters/{chapter_id}/manga/stream")
async def generate_manga_stream(chapter_id: str, service: StudyService = Depends(get_study_service)):
    """
    SSE streaming version of /chapters/{chapter_id}/manga.
    Emits:
    - script_ready: panels with text only, as soon as the script exists
    - manga_complete: panels with every image resolved (data URI or "error")
    - error: on script-phase failure
    """
    # Pre-stream validation (raises before stream starts → global handler returns JSON)
    service.get_chapter(chapter_id)

    async def event_stream():
        queue: asyncio.Queue = asyncio.Queue()
        task = asyncio.create_task(service.generate_manga(chapter_id, on_publish=queue.put))
        published = 0

        def next_event(panels: List[MangaPanel]) -> str:
            nonlocal published
            published += 1
            return _panels_event("script_ready" if published == 1 else "manga_complete", panels)

        while True:
            getter = asyncio.ensure_future(queue.get())
            done, _ = await asyncio.wait({getter, task}, return_when=asyncio.FIRST_COMPLETED)
            if getter in done:
                yield next_event(getter.result())
                continue
            getter.cancel()
            break

        while not queue.empty():
            yield next_event(queue.get_nowait())

        try:
            task.result()
        except Exception as e:
            logger.error(f"Manga stream for chapter {chapter_id} failed: {e}")
            yield _sse_error_event(e, phase="script" if published == 0 else "images")

    return StreamingResponse(event_stream(), media_type="text/event-stream")
