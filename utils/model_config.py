"""
Model configuration and variant selection for artifact generation.
Centralized model management following DRY principle.
"""

import os
from typing import Dict, Any, Optional
from enum import Enum

from models.course_models import ContentKind


class ModelVariant(str, Enum):
    FAST = "fast"
    VISION = "vision"
    IMAGE = "image"


# Model configurations
MODEL_CONFIGS: Dict[ModelVariant, Dict[str, Any]] = {
    ModelVariant.FAST: {
        "env": "INTELLILEARN_FAST_MODEL",
        "model": "gpt-4o-mini",
        "max_tokens": 8000,
    },
    ModelVariant.VISION: {
        "env": "INTELLILEARN_VISION_MODEL",
        "model": "gpt-4o",
        "max_tokens": 16000,
    },
    ModelVariant.IMAGE: {
        "env": "INTELLILEARN_IMAGE_MODEL",
        "model": "gpt-image-1",
        "size": "1024x1024",
    },
}


def variant_for_content(kind: ContentKind) -> ModelVariant:
    """Text goes to the cheaper model; images and documents need the multimodal one."""
    if kind == ContentKind.TEXT:
        return ModelVariant.FAST
    elif kind in (ContentKind.IMAGE, ContentKind.DOCUMENT):
        return ModelVariant.VISION
    else:
        raise ValueError(f"Unknown content kind: {kind}")


class ModelConfig:
    """Model configuration manager"""

    @staticmethod
    def get_config(variant: ModelVariant) -> Dict[str, Any]:
        """Get configuration for a variant, with the model name overridable from the environment"""
        if variant not in MODEL_CONFIGS:
            raise ValueError(f"Unknown model variant: {variant}. Available: {[v.value for v in MODEL_CONFIGS]}")

        config = dict(MODEL_CONFIGS[variant])
        config["model"] = os.getenv(config["env"]) or config["model"]
        return config

    @staticmethod
    def get_model(variant: ModelVariant) -> str:
        return ModelConfig.get_config(variant)["model"]

    @staticmethod
    def for_content(kind: ContentKind) -> str:
        """Model name used for a given source content kind"""
        return ModelConfig.get_model(variant_for_content(kind))

    @staticmethod
    def max_tokens_for(model: str) -> Optional[int]:
        """Completion token limit of the variant currently configured with this model name"""
        for variant in MODEL_CONFIGS:
            config = ModelConfig.get_config(variant)
            if config["model"] == model:
                return config.get("max_tokens")
        return None
