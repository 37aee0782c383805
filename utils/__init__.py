# IntelliLearn Utilities
from .file_storage import (
    CourseStorage,
    GenerationLogger,
    generate_uuid,
    read_json_file,
    write_json_file
)

from .model_config import (
    ModelConfig,
    ModelVariant,
    variant_for_content,
    MODEL_CONFIGS
)

__all__ = [
    'CourseStorage',
    'GenerationLogger',
    'generate_uuid',
    'read_json_file',
    'write_json_file',
    'ModelConfig',
    'ModelVariant',
    'variant_for_content',
    'MODEL_CONFIGS'
]
