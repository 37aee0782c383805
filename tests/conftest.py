"""
Shared fixtures for the IntelliLearn test suite.

Run with:
    python3 -m pytest tests -v
"""

import asyncio
import json
from typing import List, Optional

import pytest

from models.course_models import SourceContent, ContentKind
from services.generation_client import GenerationClient
from utils.file_storage import CourseStorage, GenerationLogger


class FakeBackend:
    """
    In-memory stand-in for the OpenAI backend.

    text_responses are returned (or raised, for exceptions) in call order.
    Image requests whose prompt contains any of failing_scenes raise.
    """

    def __init__(self, text_responses: Optional[list] = None, failing_scenes: Optional[List[str]] = None,
                 image_delay: float = 0.0):
        self.text_responses = list(text_responses or [])
        self.failing_scenes = list(failing_scenes or [])
        self.image_delay = image_delay
        self.text_calls = []
        self.image_calls = []
        self.in_flight = 0
        self.max_in_flight = 0

    async def generate_text(self, model, parts, output_schema=None, system_prompt=None, temperature=None):
        self.text_calls.append({
            "model": model,
            "parts": parts,
            "output_schema": output_schema,
            "system_prompt": system_prompt,
            "temperature": temperature,
        })
        response = self.text_responses.pop(0)
        if isinstance(response, BaseException):
            raise response
        return response

    async def generate_image(self, model, prompt):
        self.image_calls.append(prompt)
        self.in_flight += 1
        self.max_in_flight = max(self.max_in_flight, self.in_flight)
        try:
            await asyncio.sleep(self.image_delay)
            for scene in self.failing_scenes:
                if scene in prompt:
                    raise RuntimeError(f"image backend unavailable for {scene}")
            return b"\x89PNG-" + str(len(self.image_calls)).encode()
        finally:
            self.in_flight -= 1


def panels_json(count: int, prefix: str = "scene") -> str:
    return json.dumps({"panels": [
        {
            "scene": f"{prefix} {i}",
            "dialogue": [f"SENSEI: line {i}"],
            "narration": None if i % 2 else f"narration {i}",
            "emotion": "determined",
        }
        for i in range(1, count + 1)
    ]})


def quiz_json(count: int = 5) -> str:
    return json.dumps({"questions": [
        {
            "question": f"Question {i}?",
            "options": [f"answer {i}", "wrong a", "wrong b", "wrong c"],
            "correct_answer": f"answer {i}",
        }
        for i in range(1, count + 1)
    ]})


def flashcards_json(count: int = 10) -> str:
    return json.dumps({"flashcards": [
        {"term": f"term {i}", "definition": f"definition {i}"} for i in range(1, count + 1)
    ]})


def words(count: int) -> str:
    return " ".join(f"w{i}" for i in range(count))


@pytest.fixture
def backend():
    return FakeBackend()


@pytest.fixture
def client(backend):
    return GenerationClient(backend)


@pytest.fixture
def storage(tmp_path):
    return CourseStorage(tmp_path)


@pytest.fixture
def generation_logger(tmp_path):
    return GenerationLogger(tmp_path)


@pytest.fixture
def text_source():
    return SourceContent(name="notes.txt", content="Photosynthesis converts light into chemical energy.",
                         kind=ContentKind.TEXT)


@pytest.fixture
def image_source():
    return SourceContent(name="diagram.png", content="data:image/png;base64,iVBORw0KGgo=",
                         kind=ContentKind.IMAGE, mime_type="image/png")


@pytest.fixture
def document_source():
    return SourceContent(name="lecture.pdf", content="data:application/pdf;base64,JVBERi0xLjQ=",
                         kind=ContentKind.DOCUMENT, mime_type="application/pdf")
