"""
Single-call generation unit.
Builds a backend request from normalized chapter content and a registry entry,
invokes the backend once, and validates the structured result.
No retries happen here; retry policy belongs to the caller.
"""

import logging
import time
from typing import Any, Dict, List, Optional, Union

from pydantic import ValidationError as PydanticValidationError

from clients.openai_client import text_part, inline_data_part
from models.course_models import (
    SourceContent, ContentKind, ArtifactKind, QuizQuestion, Flashcard, MangaPanel
)
from prompts.artifact_prompts import (
    ArtifactSpec,
    get_artifact_spec,
    build_panel_image_prompt,
    build_text_extraction_prompt,
    EXTRACTION_SYSTEM_PROMPT,
    QUIZ_QUESTION_COUNT,
    FLASHCARD_COUNT,
)
from services.content_normalizer import to_data_uri
from services.response_parser import parse_json_response
from utils.exceptions import IntelliLearnError, GenerationFailedError
from utils.model_config import ModelConfig, ModelVariant

logger = logging.getLogger(__name__)

Artifact = Union[str, List[QuizQuestion], List[Flashcard], List[MangaPanel]]

PANEL_IMAGE_MIME_TYPE = "image/png"


def _normalize_answer(text: str) -> str:
    return " ".join(text.split()).casefold()


def repair_quiz_question(raw: Dict[str, Any]) -> Dict[str, Any]:
    """
    Snap a near-miss correct answer onto the verbatim option it refers to.
    Answers differing only in case or whitespace are rewritten; anything else is left alone.
    """
    options = raw.get("options") or []
    answer = raw.get("correct_answer")
    if not isinstance(answer, str) or answer in options:
        return raw

    wanted = _normalize_answer(answer)
    for option in options:
        if isinstance(option, str) and _normalize_answer(option) == wanted:
            return {**raw, "correct_answer": option}
    return raw


class GenerationClient:
    """
    Artifact generation against an injected backend.

    The backend must provide:
        async generate_text(model, parts, output_schema=None, system_prompt=None, temperature=None) -> Optional[str]
        async generate_image(model, prompt) -> bytes
    """

    def __init__(self, backend):
        self.backend = backend

    def build_parts(self, content: SourceContent, spec: ArtifactSpec) -> List[Dict[str, Any]]:
        """Text sources go inline in the prompt; images and documents travel as binary parts"""
        if content.kind == ContentKind.TEXT:
            prompt = spec.instruction
            if spec.include_source_text:
                prompt = f"{prompt}\n\n---\n\n{content.content}"
            return [text_part(prompt)]
        elif content.kind in (ContentKind.IMAGE, ContentKind.DOCUMENT):
            return [
                inline_data_part(content.base64_data, content.mime_type, content.name),
                text_part(spec.instruction),
            ]
        raise ValueError(f"Unknown content kind: {content.kind}")

    async def generate(
        self,
        content: SourceContent,
        kind: ArtifactKind,
        extra_params: Optional[Dict[str, Any]] = None
    ) -> Artifact:
        """
        Generate one artifact from chapter content.

        extra_params are forwarded to the registry lookup (panel_count and scenes for manga scripts).
        Summaries are returned verbatim; structured kinds are parsed and validated.

        Raises:
            GenerationFailedError: backend error, empty output, or no valid items.
            ParseError: structured output could not be parsed.
        """
        spec = get_artifact_spec(kind, content.kind, **(extra_params or {}))
        parts = self.build_parts(content, spec)

        text = await self._call_text_backend(
            spec.model, parts, spec.schema, spec.system_prompt, spec.temperature,
            context={"kind": kind.value, "content_kind": content.kind.value},
        )

        if spec.schema is None:
            return text

        data = parse_json_response(text)
        items = self._unwrap_items(data, spec.result_key)

        if kind == ArtifactKind.QUIZ:
            return self._validate_quiz(items)
        elif kind == ArtifactKind.FLASHCARDS:
            return self._validate_flashcards(items)
        elif kind == ArtifactKind.MANGA_SCRIPT:
            return self._validate_panels(items)
        raise ValueError(f"No validator for artifact kind: {kind}")

    async def generate_image(self, scene: str) -> str:
        """Generate one panel illustration and return it as a data URI"""
        model = ModelConfig.get_model(ModelVariant.IMAGE)
        try:
            image = await self.backend.generate_image(model, build_panel_image_prompt(scene))
        except IntelliLearnError:
            raise
        except Exception as e:
            raise GenerationFailedError(f"Image generation failed: {e}", context={"model": model}) from e

        if not image:
            raise GenerationFailedError("No image was generated for the manga panel", context={"model": model})
        return to_data_uri(image, PANEL_IMAGE_MIME_TYPE)

    async def extract_text(self, content: SourceContent) -> str:
        """Verbatim text of a source; images and documents go through a deterministic extraction call"""
        if content.kind == ContentKind.TEXT:
            return content.content

        model = ModelConfig.for_content(content.kind)
        parts = [
            inline_data_part(content.base64_data, content.mime_type, content.name),
            text_part(build_text_extraction_prompt(content.kind)),
        ]
        return await self._call_text_backend(
            model, parts, None, EXTRACTION_SYSTEM_PROMPT, 0.0,
            context={"kind": "text_extraction", "content_kind": content.kind.value},
        )

    async def _call_text_backend(
        self,
        model: str,
        parts: List[Dict[str, Any]],
        schema: Optional[Dict[str, Any]],
        system_prompt: Optional[str],
        temperature: Optional[float],
        context: Dict[str, Any]
    ) -> str:
        start_time = time.time()
        try:
            text = await self.backend.generate_text(
                model, parts,
                output_schema=schema,
                system_prompt=system_prompt,
                temperature=temperature,
            )
        except IntelliLearnError:
            raise
        except Exception as e:
            logger.error(f"Backend call to {model} failed: {e}")
            raise GenerationFailedError(f"Backend call failed: {e}", context={**context, "model": model}) from e

        if not text or not text.strip():
            logger.error(f"Backend returned no text for {context}")
            raise GenerationFailedError("Backend returned no text", context={**context, "model": model})

        logger.info(f"{context['kind']} generated by {model} in {time.time() - start_time:.2f}s")
        return text

    def _unwrap_items(self, data: Any, result_key: Optional[str]) -> List[Any]:
        """Accept either the schema envelope {"<key>": [...]} or a bare array"""
        if isinstance(data, dict) and result_key in data:
            data = data[result_key]
        if not isinstance(data, list):
            raise GenerationFailedError(
                "Structured response has an unexpected shape",
                error_code="INVALID_ARTIFACT",
                context={"expected": result_key, "got": type(data).__name__},
            )
        return data

    def _validate_quiz(self, items: List[Any]) -> List[QuizQuestion]:
        questions = []
        for index, raw in enumerate(items):
            if not isinstance(raw, dict):
                logger.warning(f"Dropping quiz item {index}: not an object")
                continue
            try:
                questions.append(QuizQuestion(**repair_quiz_question(raw)))
            except PydanticValidationError as e:
                logger.warning(f"Dropping quiz question {index}: {e.errors()[0]['msg']}")

        if not questions:
            raise GenerationFailedError("No valid quiz questions in response", error_code="INVALID_ARTIFACT")
        if len(questions) != QUIZ_QUESTION_COUNT:
            logger.warning(f"Requested {QUIZ_QUESTION_COUNT} quiz questions, keeping {len(questions)}")
        return questions

    def _validate_flashcards(self, items: List[Any]) -> List[Flashcard]:
        cards = []
        for index, raw in enumerate(items):
            if not isinstance(raw, dict):
                logger.warning(f"Dropping flashcard {index}: not an object")
                continue
            try:
                cards.append(Flashcard(**raw))
            except PydanticValidationError as e:
                logger.warning(f"Dropping flashcard {index}: {e.errors()[0]['msg']}")

        if not cards:
            raise GenerationFailedError("No valid flashcards in response", error_code="INVALID_ARTIFACT")
        if len(cards) != FLASHCARD_COUNT:
            logger.warning(f"Requested {FLASHCARD_COUNT} flashcards, keeping {len(cards)}")
        return cards

    def _validate_panels(self, items: List[Any]) -> List[MangaPanel]:
        """Panels never carry an image from the script phase"""
        panels = []
        for index, raw in enumerate(items):
            if not isinstance(raw, dict):
                logger.warning(f"Dropping manga panel {index}: not an object")
                continue
            fields = {k: v for k, v in raw.items() if k in ("scene", "dialogue", "narration", "emotion")}
            if isinstance(fields.get("dialogue"), str):
                fields["dialogue"] = [fields["dialogue"]] if fields["dialogue"] else []
            if fields.get("emotion") is None:
                fields.pop("emotion", None)
            try:
                panels.append(MangaPanel(**fields))
            except PydanticValidationError as e:
                logger.warning(f"Dropping manga panel {index}: {e.errors()[0]['msg']}")
        return panels
