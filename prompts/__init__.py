# Prompts module initialization

# Artifact Generation Prompts
from .artifact_prompts import (
    ArtifactSpec,
    get_artifact_spec,
    build_panel_image_prompt,
    build_text_extraction_prompt,
    QUIZ_QUESTION_COUNT,
    QUIZ_OPTION_COUNT,
    FLASHCARD_COUNT
)

__all__ = [
    'ArtifactSpec',
    'get_artifact_spec',
    'build_panel_image_prompt',
    'build_text_extraction_prompt',
    'QUIZ_QUESTION_COUNT',
    'QUIZ_OPTION_COUNT',
    'FLASHCARD_COUNT'
]
