"""
Tests for the study service: uploads, artifact commits and manga publish points.

Run with:
    python3 -m pytest tests/test_study_service.py -v
"""

import asyncio
import json

import pytest

from conftest import FakeBackend, quiz_json, flashcards_json, panels_json
from models.course_models import ArtifactKind, ContentKind, ERROR_MARKER
from services.generation_client import GenerationClient
from services.study_service import StudyService
from utils.exceptions import (
    GenerationFailedError, MalformedJsonError, ScriptGenerationFailedError, StaleSourceError,
    UnsupportedMediaTypeError, ValidationError,
)


def run(coro):
    return asyncio.run(coro)


def make_service(storage, generation_logger, backend):
    return StudyService(GenerationClient(backend), storage, generation_logger)


def chapter_with_text(service, text="Enzymes speed up reactions by lowering activation energy."):
    course = service.create_course("Biochemistry")
    chapter = service.add_chapter(course.id, "Enzymes")
    return service.upload_source(chapter.id, "enzymes.txt", text.encode("utf-8"), "text/plain")


def logged(generation_logger):
    with open(generation_logger.path, encoding="utf-8") as f:
        return json.load(f)["items"]


def test_upload_and_generate_simple_artifacts(storage, generation_logger):
    backend = FakeBackend(["## Enzymes\n- catalysts", quiz_json(), flashcards_json()])
    service = make_service(storage, generation_logger, backend)
    chapter = chapter_with_text(service)

    run(service.generate_artifact(chapter.id, ArtifactKind.SUMMARY))
    run(service.generate_artifact(chapter.id, ArtifactKind.QUIZ))
    updated = run(service.generate_artifact(chapter.id, ArtifactKind.FLASHCARDS))

    assert updated.summary.startswith("## Enzymes")
    assert len(updated.quiz) == 5
    assert all(q.correct_answer in q.options for q in updated.quiz)
    assert len(updated.flashcards) == 10
    assert storage.get_chapter(chapter.id) == updated
    assert [entry["status"] for entry in logged(generation_logger)] == ["success"] * 3


def test_failed_generation_stores_nothing(storage, generation_logger):
    backend = FakeBackend(["{bad json"])
    service = make_service(storage, generation_logger, backend)
    chapter = chapter_with_text(service)

    with pytest.raises(MalformedJsonError):
        run(service.generate_artifact(chapter.id, ArtifactKind.QUIZ))

    assert storage.get_chapter(chapter.id).quiz is None
    entry = logged(generation_logger)[-1]
    assert entry["status"] == "error"
    assert entry["error"] == "MALFORMED_JSON"


def test_generation_requires_source(storage, generation_logger):
    service = make_service(storage, generation_logger, FakeBackend())
    course = service.create_course("Empty")
    chapter = service.add_chapter(course.id, "Nothing yet")
    with pytest.raises(ValidationError) as exc_info:
        run(service.generate_artifact(chapter.id, ArtifactKind.SUMMARY))
    assert exc_info.value.error_code == "NO_SOURCE"


def test_unsupported_upload_leaves_chapter_untouched(storage, generation_logger):
    backend = FakeBackend(["summary"])
    service = make_service(storage, generation_logger, backend)
    chapter = chapter_with_text(service)
    run(service.generate_artifact(chapter.id, ArtifactKind.SUMMARY))

    with pytest.raises(UnsupportedMediaTypeError):
        service.upload_source(chapter.id, "movie.mp4", b"....", "video/mp4")

    current = storage.get_chapter(chapter.id)
    assert current.source.name == "enzymes.txt"
    assert current.summary == "summary"


def test_new_upload_invalidates_artifacts(storage, generation_logger):
    backend = FakeBackend(["summary"])
    service = make_service(storage, generation_logger, backend)
    chapter = chapter_with_text(service)
    run(service.generate_artifact(chapter.id, ArtifactKind.SUMMARY))

    replaced = service.upload_source(chapter.id, "slide.png", b"\x89PNG", "image/png")
    assert replaced.source.kind == ContentKind.IMAGE
    assert not replaced.has_artifacts()


def test_result_for_replaced_source_is_discarded(storage, generation_logger):
    service = None

    class SwappingBackend(FakeBackend):
        async def generate_text(self, *args, **kwargs):
            service.upload_source(chapter.id, "new.txt", b"completely different text", "text/plain")
            return await super().generate_text(*args, **kwargs)

    backend = SwappingBackend(["summary of the old text"])
    service = make_service(storage, generation_logger, backend)
    chapter = chapter_with_text(service)

    with pytest.raises(StaleSourceError):
        run(service.generate_artifact(chapter.id, ArtifactKind.SUMMARY))

    current = storage.get_chapter(chapter.id)
    assert current.source.name == "new.txt"
    assert current.summary is None


def test_manga_commits_script_then_final(storage, generation_logger):
    backend = FakeBackend([panels_json(2)], failing_scenes=["scene 2"])
    service = make_service(storage, generation_logger, backend)
    chapter = chapter_with_text(service)

    snapshots = []

    def on_publish(panels):
        snapshots.append(storage.get_chapter(chapter.id).manga_script)

    final = run(service.generate_manga(chapter.id, on_publish=on_publish))

    assert len(snapshots) == 2
    assert all(panel.image_url is None for panel in snapshots[0])
    assert snapshots[1] == final.manga_script
    assert final.manga_script[0].image_url.startswith("data:image/png;base64,")
    assert final.manga_script[1].image_url == ERROR_MARKER

    entry = logged(generation_logger)[-1]
    assert entry["status"] == "partial"
    assert entry["failed_images"] == 1


def test_manga_via_generate_artifact(storage, generation_logger):
    backend = FakeBackend([panels_json(2)])
    service = make_service(storage, generation_logger, backend)
    chapter = chapter_with_text(service)
    updated = run(service.generate_artifact(chapter.id, ArtifactKind.MANGA_SCRIPT))
    assert len(updated.manga_script) == 2


def test_aborted_manga_commits_nothing(storage, generation_logger):
    backend = FakeBackend([json.dumps({"panels": []})])
    service = make_service(storage, generation_logger, backend)
    chapter = chapter_with_text(service)

    with pytest.raises(ScriptGenerationFailedError):
        run(service.generate_manga(chapter.id))

    assert storage.get_chapter(chapter.id).manga_script is None
    assert logged(generation_logger)[-1]["error"] == "SCRIPT_GENERATION_FAILED"


def test_extract_text(storage, generation_logger):
    backend = FakeBackend(["Text read from the slide"])
    service = make_service(storage, generation_logger, backend)
    course = service.create_course("Physics")
    chapter = service.add_chapter(course.id, "Optics")
    service.upload_source(chapter.id, "slide.jpg", b"\xff\xd8\xff", "image/jpeg")

    assert run(service.extract_text(chapter.id)) == "Text read from the slide"
    assert storage.get_chapter(chapter.id).summary is None


def test_backend_failure_is_generation_failed(storage, generation_logger):
    backend = FakeBackend([TimeoutError("backend timed out")])
    service = make_service(storage, generation_logger, backend)
    chapter = chapter_with_text(service)
    with pytest.raises(GenerationFailedError):
        run(service.generate_artifact(chapter.id, ArtifactKind.SUMMARY))
