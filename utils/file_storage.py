"""
Storage utilities for courses, chapters and generated artifacts.
Local JSON files: one document holding every course, plus a generation log.
"""

import json
import os
import threading
from pathlib import Path
from typing import Any, Dict, List, Optional, Union
from datetime import datetime
import logging
import uuid

from models.course_models import Course, Chapter, SourceContent, ARTIFACT_FIELDS
from utils.exceptions import NotFoundError, StaleSourceError, StorageError, ValidationError

logger = logging.getLogger(__name__)

COURSES_FILENAME = "courses.json"
GENERATION_LOGS_FILENAME = "generation_logs.json"

# Chapter fields a commit may replace
COMMITTABLE_FIELDS = {"name", "source", *ARTIFACT_FIELDS.values()}


def get_data_dir() -> Path:
    return Path(os.getenv("INTELLILEARN_DATA_DIR", "data"))


def generate_uuid() -> str:
    """Generate unique ID for courses/chapters"""
    return str(uuid.uuid4())


def read_json_file(filepath: Path) -> Optional[Dict[str, Any]]:
    """Read JSON file, return None if not found or invalid"""
    try:
        if not filepath.exists():
            return None
        with open(filepath, 'r', encoding='utf-8') as f:
            return json.load(f)
    except json.JSONDecodeError as e:
        logger.error(f"Invalid JSON in {filepath}: {e}")
        return None
    except OSError as e:
        logger.error(f"Error reading {filepath}: {e}")
        return None


def write_json_file(filepath: Path, data: Dict[str, Any]) -> bool:
    """Write data to JSON file atomically"""
    try:
        filepath.parent.mkdir(parents=True, exist_ok=True)
        temp_file = filepath.with_suffix('.tmp')
        with open(temp_file, 'w', encoding='utf-8') as f:
            json.dump(data, f, indent=2, default=str)
        temp_file.replace(filepath)
        return True
    except (OSError, TypeError) as e:
        logger.error(f"Error writing {filepath}: {e}")
        return False


def append_to_json_list(filepath: Path, item: Dict[str, Any]) -> bool:
    """Append item to JSON list file (creates if not exists)"""
    data = read_json_file(filepath) or {"items": []}
    if "items" not in data:
        data["items"] = []
    data["items"].append(item)
    return write_json_file(filepath, data)


class CourseStorage:
    """
    Courses and chapters in a single JSON document.

    Every write replaces whole fields (merge-by-field); no field is ever partially merged.
    """

    def __init__(self, data_dir: Optional[Union[str, Path]] = None):
        self.data_dir = Path(data_dir) if data_dir else get_data_dir()
        self.path = self.data_dir / COURSES_FILENAME
        self._lock = threading.RLock()

    def _load(self) -> List[Course]:
        if not self.path.exists():
            return []
        # A store that exists but cannot be read must never be treated as empty
        try:
            with open(self.path, 'r', encoding='utf-8') as f:
                data = json.load(f)
            return [Course.model_validate(course) for course in data.get("courses", [])]
        except (OSError, ValueError, AttributeError) as e:
            logger.error(f"Unreadable course store {self.path}: {e}")
            raise StorageError(f"Course store {self.path} is unreadable", context={"path": str(self.path)}) from e

    def _save(self, courses: List[Course]) -> None:
        payload = {"courses": [course.model_dump(mode="json") for course in courses]}
        if not write_json_file(self.path, payload):
            raise StorageError(f"Failed to write {self.path}")

    @staticmethod
    def _find_course(courses: List[Course], course_id: str) -> Course:
        for course in courses:
            if course.id == course_id:
                return course
        raise NotFoundError(f"Course {course_id} not found", error_code="COURSE_NOT_FOUND")

    @staticmethod
    def _find_chapter(courses: List[Course], chapter_id: str) -> tuple:
        for course in courses:
            for index, chapter in enumerate(course.chapters):
                if chapter.id == chapter_id:
                    return course, index
        raise NotFoundError(f"Chapter {chapter_id} not found", error_code="CHAPTER_NOT_FOUND")

    # Course Operations
    def create_course(self, name: str) -> Course:
        with self._lock:
            courses = self._load()
            course = Course(id=generate_uuid(), name=name)
            courses.append(course)
            self._save(courses)
        logger.info(f"Created course {course.id} ({name})")
        return course

    def list_courses(self) -> List[Course]:
        with self._lock:
            return self._load()

    def get_course(self, course_id: str) -> Course:
        with self._lock:
            return self._find_course(self._load(), course_id)

    def delete_course(self, course_id: str) -> None:
        with self._lock:
            courses = self._load()
            course = self._find_course(courses, course_id)
            courses.remove(course)
            self._save(courses)
        logger.info(f"Deleted course {course_id} with {len(course.chapters)} chapters")

    # Chapter Operations
    def add_chapter(self, course_id: str, name: str) -> Chapter:
        with self._lock:
            courses = self._load()
            course = self._find_course(courses, course_id)
            chapter = Chapter(id=generate_uuid(), course_id=course_id, name=name)
            course.chapters.append(chapter)
            self._save(courses)
        logger.info(f"Added chapter {chapter.id} to course {course_id}")
        return chapter

    def get_chapter(self, chapter_id: str) -> Chapter:
        with self._lock:
            course, index = self._find_chapter(self._load(), chapter_id)
            return course.chapters[index]

    def delete_chapter(self, chapter_id: str) -> None:
        with self._lock:
            courses = self._load()
            course, index = self._find_chapter(courses, chapter_id)
            del course.chapters[index]
            self._save(courses)
        logger.info(f"Deleted chapter {chapter_id}")

    def commit(
        self,
        chapter_id: str,
        update: Dict[str, Any],
        expected_fingerprint: Optional[str] = None
    ) -> Chapter:
        """
        Replace the given chapter fields in one write.

        With expected_fingerprint, the write is rejected with StaleSourceError unless the
        chapter still holds the source that fingerprint was taken from.
        """
        unknown = set(update) - COMMITTABLE_FIELDS
        if unknown:
            raise ValidationError(f"Cannot commit chapter fields: {sorted(unknown)}", error_code="INVALID_FIELDS")

        with self._lock:
            courses = self._load()
            course, index = self._find_chapter(courses, chapter_id)
            chapter = course.chapters[index]

            if expected_fingerprint is not None:
                current = chapter.source.fingerprint if chapter.source else None
                if current != expected_fingerprint:
                    logger.warning(f"Discarding stale commit of {sorted(update)} for chapter {chapter_id}")
                    raise StaleSourceError(chapter_id, context={"fields": sorted(update)})

            updated = Chapter.model_validate({**chapter.model_dump(), **update})
            course.chapters[index] = updated
            self._save(courses)

        logger.info(f"Committed {sorted(update)} for chapter {chapter_id}")
        return updated

    def replace_source(self, chapter_id: str, source: Optional[SourceContent]) -> Chapter:
        """Swap the chapter source and null every artifact in the same write"""
        return self.commit(chapter_id, Chapter.source_update(source))


class GenerationLogger:
    """Append-only JSON log of generation requests"""

    def __init__(self, data_dir: Optional[Union[str, Path]] = None):
        self.path = (Path(data_dir) if data_dir else get_data_dir()) / GENERATION_LOGS_FILENAME

    def log_generation(self, log_data: Dict[str, Any]) -> bool:
        entry = {"timestamp": datetime.utcnow().isoformat(), **log_data}
        if not append_to_json_list(self.path, entry):
            logger.warning(f"Failed to write generation log entry: {log_data.get('type')}")
            return False
        return True
