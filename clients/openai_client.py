"""
OpenAI backend for artifact generation.

Implements the two backend calls the generation pipeline consumes:
- generate_text(model, parts, output_schema=None, ...) -> response text
- generate_image(model, prompt) -> image bytes

Prompt parts are plain dicts:
    {"type": "text", "text": "..."}
    {"type": "inline_data", "mime_type": "image/png", "data": "<base64>", "name": "scan.png"}
"""

import base64
import os
import logging
from typing import List, Dict, Any, Optional

from openai import AsyncOpenAI

from utils.exceptions import ConfigurationError, ContentBlockedError, GenerationFailedError
from utils.model_config import ModelConfig, ModelVariant

logger = logging.getLogger(__name__)


def text_part(text: str) -> Dict[str, Any]:
    return {"type": "text", "text": text}


def inline_data_part(data: str, mime_type: str, name: Optional[str] = None) -> Dict[str, Any]:
    return {"type": "inline_data", "data": data, "mime_type": mime_type, "name": name}


def _to_openai_content(parts: List[Dict[str, Any]]) -> List[Dict[str, Any]]:
    """Convert prompt parts into chat completion content blocks"""
    content = []
    for part in parts:
        if part["type"] == "text":
            content.append({"type": "text", "text": part["text"]})
        elif part["type"] == "inline_data":
            data_uri = f"data:{part['mime_type']};base64,{part['data']}"
            if part["mime_type"].startswith("image/"):
                content.append({"type": "image_url", "image_url": {"url": data_uri}})
            else:
                content.append({
                    "type": "file",
                    "file": {"filename": part.get("name") or "document", "file_data": data_uri},
                })
        else:
            raise ValueError(f"Unknown prompt part type: {part['type']}")
    return content


class OpenAIBackend:
    """Thin async wrapper over the OpenAI SDK; one instance per process or test"""

    def __init__(self, api_key: Optional[str] = None, client: Optional[AsyncOpenAI] = None):
        if client is not None:
            self.client = client
            return

        key = api_key or os.getenv("OPENAI_API_KEY")
        if not key:
            raise ConfigurationError("OpenAI API key is missing. Set OPENAI_API_KEY to use AI features.")
        self.client = AsyncOpenAI(api_key=key)

    async def generate_text(
        self,
        model: str,
        parts: List[Dict[str, Any]],
        output_schema: Optional[Dict[str, Any]] = None,
        system_prompt: Optional[str] = None,
        temperature: Optional[float] = None,
    ) -> Optional[str]:
        """
        Run one chat completion.
        Returns the response text (None when the model produced nothing).
        Raises ContentBlockedError when the model refused or the output was filtered.
        """
        messages = []
        if system_prompt:
            messages.append({"role": "system", "content": system_prompt})
        messages.append({"role": "user", "content": _to_openai_content(parts)})

        params: Dict[str, Any] = {"model": model, "messages": messages}
        if output_schema:
            params["response_format"] = {"type": "json_schema", "json_schema": output_schema}
        if temperature is not None:
            params["temperature"] = temperature
        max_tokens = ModelConfig.max_tokens_for(model)
        if max_tokens:
            params["max_completion_tokens"] = max_tokens

        response = await self.client.chat.completions.create(**params)

        if not response.choices:
            return None

        choice = response.choices[0]
        refusal = getattr(choice.message, "refusal", None)
        if refusal:
            raise ContentBlockedError(refusal, context={"model": model})
        if choice.finish_reason == "content_filter":
            raise ContentBlockedError("output removed by content filter", context={"model": model})
        if choice.finish_reason == "length":
            logger.warning(f"Response from {model} was truncated at the token limit")

        return choice.message.content

    async def generate_image(self, model: str, prompt: str) -> bytes:
        """Generate one image and return its raw bytes"""
        params: Dict[str, Any] = {
            "model": model,
            "prompt": prompt,
            "n": 1,
            "size": ModelConfig.get_config(ModelVariant.IMAGE)["size"],
        }
        if model.startswith("dall-e"):
            params["response_format"] = "b64_json"

        response = await self.client.images.generate(**params)

        if not response.data or not response.data[0].b64_json:
            raise GenerationFailedError("No image was generated for the manga panel", context={"model": model})
        return base64.b64decode(response.data[0].b64_json)
