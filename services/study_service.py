"""
Study service: course/chapter management and artifact generation.
Connects uploads, the generation client and the manga orchestrator to course storage.
"""

import inspect
import logging
import time
from typing import Any, Awaitable, Callable, Dict, List, Optional, Union

from models.course_models import (
    ArtifactKind, ARTIFACT_FIELDS, Chapter, Course, MangaPanel, SourceContent
)
from services.content_normalizer import normalize_upload
from services.generation_client import GenerationClient
from services.manga_orchestrator import MangaOrchestrator
from utils.exceptions import IntelliLearnError, ValidationError
from utils.file_storage import CourseStorage, GenerationLogger

logger = logging.getLogger(__name__)

PanelListener = Callable[[List[MangaPanel]], Union[None, Awaitable[None]]]


class StudyService:
    """Main service for chapter study material"""

    def __init__(
        self,
        client: GenerationClient,
        storage: Optional[CourseStorage] = None,
        generation_logger: Optional[GenerationLogger] = None
    ):
        self.client = client
        self.storage = storage or CourseStorage()
        self.logger = generation_logger or GenerationLogger(self.storage.data_dir)

    # Course / chapter management
    def create_course(self, name: str) -> Course:
        return self.storage.create_course(name)

    def list_courses(self) -> List[Course]:
        return self.storage.list_courses()

    def get_course(self, course_id: str) -> Course:
        return self.storage.get_course(course_id)

    def delete_course(self, course_id: str) -> None:
        self.storage.delete_course(course_id)

    def add_chapter(self, course_id: str, name: str) -> Chapter:
        return self.storage.add_chapter(course_id, name)

    def get_chapter(self, chapter_id: str) -> Chapter:
        return self.storage.get_chapter(chapter_id)

    def delete_chapter(self, chapter_id: str) -> None:
        self.storage.delete_chapter(chapter_id)

    # Source management
    def upload_source(self, chapter_id: str, filename: str, data: bytes, mime_type: Optional[str]) -> Chapter:
        """Normalize an upload and make it the chapter source; existing artifacts are discarded"""
        self.storage.get_chapter(chapter_id)
        source = normalize_upload(filename, data, mime_type)
        return self.storage.replace_source(chapter_id, source)

    def reset_source(self, chapter_id: str) -> Chapter:
        return self.storage.replace_source(chapter_id, None)

    def _require_source(self, chapter: Chapter) -> SourceContent:
        if chapter.source is None:
            raise ValidationError(
                f"Chapter {chapter.id} has no source content",
                error_code="NO_SOURCE",
                context={"chapter_id": chapter.id},
            )
        return chapter.source

    # Generation
    async def generate_artifact(self, chapter_id: str, kind: ArtifactKind) -> Chapter:
        """Generate a summary, quiz or flashcard set and commit it to the chapter"""
        if kind == ArtifactKind.MANGA_SCRIPT:
            return await self.generate_manga(chapter_id)

        chapter = self.storage.get_chapter(chapter_id)
        source = self._require_source(chapter)
        start_time = time.time()

        try:
            artifact = await self.client.generate(source, kind)
            chapter = self.storage.commit(
                chapter_id, {ARTIFACT_FIELDS[kind]: artifact}, expected_fingerprint=source.fingerprint
            )
        except IntelliLearnError as e:
            logger.error(f"{kind.value} generation failed for chapter {chapter_id}: {e.message}")
            self._log(kind, chapter_id, source, start_time, status="error", error=e.error_code)
            raise

        self._log(kind, chapter_id, source, start_time, status="success")
        return chapter

    async def generate_manga(self, chapter_id: str, on_publish: Optional[PanelListener] = None) -> Chapter:
        """
        Run the two-phase manga generation for a chapter.
        The script is committed as soon as it exists, then again with every image resolved.
        """
        chapter = self.storage.get_chapter(chapter_id)
        source = self._require_source(chapter)
        start_time = time.time()

        async def publish(panels: List[MangaPanel]) -> None:
            self.storage.commit(chapter_id, {"manga_script": panels}, expected_fingerprint=source.fingerprint)
            if on_publish is not None:
                result = on_publish(panels)
                if inspect.isawaitable(result):
                    await result

        orchestrator = MangaOrchestrator(self.client, publish)
        try:
            panels = await orchestrator.run(source)
        except IntelliLearnError as e:
            logger.error(f"Manga generation failed for chapter {chapter_id}: {e.message}")
            self._log(ArtifactKind.MANGA_SCRIPT, chapter_id, source, start_time, status="error", error=e.error_code)
            raise

        failed = sum(1 for panel in panels if panel.image_failed)
        self._log(
            ArtifactKind.MANGA_SCRIPT, chapter_id, source, start_time,
            status="success" if not failed else "partial",
            panels=len(panels),
            failed_images=failed,
        )
        return self.storage.get_chapter(chapter_id)

    async def extract_text(self, chapter_id: str) -> str:
        """Verbatim text of the chapter source (not stored)"""
        chapter = self.storage.get_chapter(chapter_id)
        return await self.client.extract_text(self._require_source(chapter))

    def _log(
        self,
        kind: ArtifactKind,
        chapter_id: str,
        source: SourceContent,
        start_time: float,
        **fields: Any
    ) -> None:
        entry: Dict[str, Any] = {
            "type": kind.value,
            "chapter_id": chapter_id,
            "content_kind": source.kind.value,
            "generation_time": round(time.time() - start_time, 2),
        }
        entry.update(fields)
        self.logger.log_generation(entry)
