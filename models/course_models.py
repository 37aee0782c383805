"""
Pydantic models for IntelliLearn courses, chapters and study artifacts.
Following KISS principle - simple, clear models with validation.
"""

import hashlib
from pydantic import BaseModel, ConfigDict, Field, model_validator
from typing import List, Optional, Dict, Any
from datetime import datetime
from enum import Enum


# Sentinel stored in MangaPanel.image_url when image generation was attempted and failed
ERROR_MARKER = "error"


# Enums for type safety and validation
class ContentKind(str, Enum):
    TEXT = "text"
    IMAGE = "image"
    DOCUMENT = "document"


class ArtifactKind(str, Enum):
    SUMMARY = "summary"
    QUIZ = "quiz"
    FLASHCARDS = "flashcards"
    MANGA_SCRIPT = "manga_script"


# Chapter field holding each artifact kind's result
ARTIFACT_FIELDS: Dict[ArtifactKind, str] = {
    ArtifactKind.SUMMARY: "summary",
    ArtifactKind.QUIZ: "quiz",
    ArtifactKind.FLASHCARDS: "flashcards",
    ArtifactKind.MANGA_SCRIPT: "manga_script",
}


# Source Content
class SourceContent(BaseModel):
    """Normalized chapter source: raw text or a base64 data URI"""
    model_config = ConfigDict(frozen=True)

    name: str
    content: str
    kind: ContentKind
    mime_type: Optional[str] = None

    @model_validator(mode="after")
    def _require_mime_type(self) -> "SourceContent":
        if self.kind != ContentKind.TEXT and not self.mime_type:
            raise ValueError(f"mime_type is required for {self.kind.value} content")
        return self

    @property
    def fingerprint(self) -> str:
        """Stable identity of this source, used to detect stale artifact commits."""
        digest = hashlib.sha256()
        digest.update(self.kind.value.encode("utf-8"))
        digest.update(b"\0")
        digest.update(self.content.encode("utf-8"))
        return digest.hexdigest()

    @property
    def base64_data(self) -> str:
        """Payload of a data URI without its `data:<mime>;base64,` prefix."""
        if self.content.startswith("data:") and "," in self.content:
            return self.content.split(",", 1)[1]
        return self.content


# Artifact Models
class QuizQuestion(BaseModel):
    """Multiple-choice question whose answer is one of its options"""
    question: str
    options: List[str] = Field(..., min_length=2)
    correct_answer: str

    @model_validator(mode="after")
    def _answer_among_options(self) -> "QuizQuestion":
        if self.correct_answer not in self.options:
            raise ValueError("correct_answer must be one of the options")
        return self


class Flashcard(BaseModel):
    term: str
    definition: str


class MangaPanel(BaseModel):
    """One storyboard panel; image_url is None until the image phase resolves it"""
    scene: str
    dialogue: List[str] = []
    narration: Optional[str] = None
    emotion: str = ""
    image_url: Optional[str] = None

    @property
    def image_failed(self) -> bool:
        return self.image_url == ERROR_MARKER


# Course / Chapter Models
class Chapter(BaseModel):
    """Chapter owning one source and the artifacts derived from it"""
    id: str
    course_id: str
    name: str
    source: Optional[SourceContent] = None
    summary: Optional[str] = None
    quiz: Optional[List[QuizQuestion]] = None
    flashcards: Optional[List[Flashcard]] = None
    manga_script: Optional[List[MangaPanel]] = None
    created_at: datetime = Field(default_factory=datetime.utcnow)

    @staticmethod
    def source_update(source: Optional[SourceContent]) -> Dict[str, Any]:
        """
        Field update replacing the chapter source.
        Always nulls every artifact so nothing derived from the old source survives.
        """
        update: Dict[str, Any] = {"source": source}
        for field in ARTIFACT_FIELDS.values():
            update[field] = None
        return update

    def has_artifacts(self) -> bool:
        return any(getattr(self, field) is not None for field in ARTIFACT_FIELDS.values())


class Course(BaseModel):
    id: str
    name: str
    chapters: List[Chapter] = []
    created_at: datetime = Field(default_factory=datetime.utcnow)


# Request Models
class CourseCreateRequest(BaseModel):
    name: str = Field(..., min_length=1, max_length=200)


class ChapterCreateRequest(BaseModel):
    name: str = Field(..., min_length=1, max_length=200)
