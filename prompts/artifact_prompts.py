"""
Prompt templates and output schemas for study artifact generation.
A lookup by artifact kind and content kind yields a deterministic
(instruction, schema, model) entry.
"""

from typing import Dict, Any, Optional, List, NamedTuple

from models.course_models import ArtifactKind, ContentKind
from utils.model_config import ModelConfig

QUIZ_QUESTION_COUNT = 5
QUIZ_OPTION_COUNT = 4
FLASHCARD_COUNT = 10


class ArtifactSpec(NamedTuple):
    """Everything the generation client needs for one request"""
    kind: ArtifactKind
    instruction: str
    model: str
    system_prompt: str
    schema: Optional[Dict[str, Any]] = None
    result_key: Optional[str] = None
    temperature: Optional[float] = None
    include_source_text: bool = True


def _strict_schema(name: str, result_key: str, item_schema: Dict[str, Any]) -> Dict[str, Any]:
    """Wrap an array-of-items schema in the object envelope strict structured output requires"""
    return {
        "name": name,
        "strict": True,
        "schema": {
            "type": "object",
            "properties": {
                result_key: {"type": "array", "items": item_schema},
            },
            "required": [result_key],
            "additionalProperties": False,
        },
    }


QUIZ_SCHEMA = _strict_schema("quiz", "questions", {
    "type": "object",
    "properties": {
        "question": {"type": "string"},
        "options": {"type": "array", "items": {"type": "string"}},
        "correct_answer": {"type": "string"},
    },
    "required": ["question", "options", "correct_answer"],
    "additionalProperties": False,
})

FLASHCARDS_SCHEMA = _strict_schema("flashcards", "flashcards", {
    "type": "object",
    "properties": {
        "term": {"type": "string"},
        "definition": {"type": "string"},
    },
    "required": ["term", "definition"],
    "additionalProperties": False,
})

MANGA_SCRIPT_SCHEMA = _strict_schema("manga_script", "panels", {
    "type": "object",
    "properties": {
        "scene": {"type": "string", "description": "Detailed visual description of the scene for the artist."},
        "dialogue": {
            "type": "array",
            "items": {"type": "string"},
            "description": "Character lines in 'CHARACTER: text' format.",
        },
        "narration": {"type": ["string", "null"], "description": "Narration box text, or null."},
        "emotion": {"type": "string", "description": "Dominant emotion of the panel."},
    },
    "required": ["scene", "dialogue", "narration", "emotion"],
    "additionalProperties": False,
})


def _source_reference(content_kind: ContentKind) -> str:
    if content_kind == ContentKind.TEXT:
        return "the source text below"
    elif content_kind == ContentKind.IMAGE:
        return "the attached image"
    elif content_kind == ContentKind.DOCUMENT:
        return "the attached document"
    raise ValueError(f"Unknown content kind: {content_kind}")


def build_summary_prompt(content_kind: ContentKind) -> str:
    """Build prompt for chapter summary"""
    return f"""Please provide a concise, easy-to-digest summary of {_source_reference(content_kind)}.
Use headings and bullet points for maximum clarity and readability.
Focus on the key takeaways a student needs to remember."""


def build_quiz_prompt(content_kind: ContentKind) -> str:
    """Build prompt for extractive multiple-choice quiz"""
    return f"""Act as an extractive question-answering model. Generate a quiz based strictly on {_source_reference(content_kind)}.

INSTRUCTIONS:
1. Scan the material for factual statements.
2. Select a specific phrase or sentence segment to serve as the correct answer. The answer must be verbatim from the material.
3. Create a question that this specific segment answers.
4. Add {QUIZ_OPTION_COUNT - 1} distractor options that are contextually relevant but incorrect.
5. Each question has exactly {QUIZ_OPTION_COUNT} options, and correct_answer must be copied character for character from one of them.

Generate exactly {QUIZ_QUESTION_COUNT} questions.

OUTPUT FORMAT (JSON - no markdown formatting):
{{"questions": [{{"question": "...", "options": ["...", "...", "...", "..."], "correct_answer": "..."}}]}}"""


def build_flashcards_prompt(content_kind: ContentKind) -> str:
    """Build prompt for term/definition flashcards"""
    return f"""Generate a set of exactly {FLASHCARD_COUNT} flashcards for the key terms, concepts, and definitions in {_source_reference(content_kind)}.
Each flashcard has a short term and a one or two sentence definition grounded in the material.

OUTPUT FORMAT (JSON - no markdown formatting):
{{"flashcards": [{{"term": "...", "definition": "..."}}]}}"""


def build_manga_script_prompt(
    content_kind: ContentKind,
    panel_count: int,
    scenes: Optional[List[str]] = None
) -> str:
    """
    Build prompt for the manga storyboard script.
    With scenes (text sources), each scene becomes exactly one panel in order.
    """
    if scenes:
        scene_blocks = "\n\n".join(
            f"SCENE {i}:\n{scene}" for i, scene in enumerate(scenes, 1)
        )
        coverage = f"""The source text has been split into {len(scenes)} consecutive scenes.
Turn each scene into exactly one panel, in order: panel 1 covers SCENE 1, panel 2 covers SCENE 2, and so on.
Cover every fact and concept in each scene; do not merge or skip scenes.

{scene_blocks}"""
    else:
        coverage = f"""Cover all facts, concepts and details in {_source_reference(content_kind)}, spread evenly across the panels."""

    return f"""Act as a professional manga storyboarder. Transform the educational content into a manga script of exactly {panel_count} panels.

INSTRUCTIONS:
1. For each panel provide a detailed visual scene description, the dialogue lines, optional narration, and the dominant emotion.
2. Break dense information into digestible dialogue and narration.
3. Style: dramatic, engaging, educational Japanese manga.

{coverage}

OUTPUT FORMAT (JSON - no markdown formatting):
{{"panels": [{{"scene": "...", "dialogue": ["CHARACTER: ..."], "narration": "..." or null, "emotion": "..."}}]}}"""


def build_panel_image_prompt(scene: str) -> str:
    """Build prompt for a single panel illustration"""
    return (
        "Generate a single manga panel image in a dramatic black and white style "
        f"with high contrast. The scene is: {scene}"
    )


def build_text_extraction_prompt(content_kind: ContentKind) -> str:
    """Build prompt for verbatim text extraction from an image or document"""
    if content_kind == ContentKind.IMAGE:
        return ("Act as a high-precision text extraction model. Extract the text from this image exactly as it appears. "
                "If it is a picture without text, describe it in detail.")
    return ("Act as a high-precision text extraction model. Analyze all pages and extract the complete text content "
            "exactly as it appears. Maintain the original structure (headings, paragraphs). "
            "Do not summarize, do not interpret. Simply extract the text.")


SYSTEM_PROMPTS: Dict[ArtifactKind, str] = {
    ArtifactKind.SUMMARY: "You are an expert academic summarizer. Your summaries are clear, structured, "
                          "and focus on the key takeaways of the provided material.",
    ArtifactKind.QUIZ: "You are an AI that performs extractive question answering. You extract answers "
                       "directly from the source material without modification.",
    ArtifactKind.FLASHCARDS: "You are an expert educational content creator.",
    ArtifactKind.MANGA_SCRIPT: "You are a professional manga storyboarder who turns study material into visual stories.",
}

EXTRACTION_SYSTEM_PROMPT = "You are a dedicated OCR engine. You extract text verbatim from images."


def get_artifact_spec(
    kind: ArtifactKind,
    content_kind: ContentKind,
    panel_count: Optional[int] = None,
    scenes: Optional[List[str]] = None
) -> ArtifactSpec:
    """
    Look up the generation entry for an artifact kind and source content kind.
    Manga scripts require panel_count; scenes are only used for text sources.
    """
    model = ModelConfig.for_content(content_kind)
    system_prompt = SYSTEM_PROMPTS[kind]

    if kind == ArtifactKind.SUMMARY:
        return ArtifactSpec(kind, build_summary_prompt(content_kind), model, system_prompt)

    elif kind == ArtifactKind.QUIZ:
        return ArtifactSpec(
            kind, build_quiz_prompt(content_kind), model, system_prompt,
            schema=QUIZ_SCHEMA, result_key="questions", temperature=0.0,
        )

    elif kind == ArtifactKind.FLASHCARDS:
        return ArtifactSpec(
            kind, build_flashcards_prompt(content_kind), model, system_prompt,
            schema=FLASHCARDS_SCHEMA, result_key="flashcards",
        )

    elif kind == ArtifactKind.MANGA_SCRIPT:
        if not panel_count or panel_count < 1:
            raise ValueError("panel_count is required for manga script generation")
        use_scenes = content_kind == ContentKind.TEXT and bool(scenes)
        return ArtifactSpec(
            kind,
            build_manga_script_prompt(content_kind, panel_count, scenes if use_scenes else None),
            model,
            system_prompt,
            schema=MANGA_SCRIPT_SCHEMA,
            result_key="panels",
            temperature=1.0,
            include_source_text=not use_scenes,
        )

    raise ValueError(f"Unknown artifact kind: {kind}")
