"""
Two-phase manga storyboard generation.

Phase 1 asks the model for a script of N panels, N chosen from the source
content. Phase 2 fans out one image request per panel and waits for all of
them to settle. A failed panel image is recorded as ERROR_MARKER on that
panel only. The run aborts when the script fails or when either publish fails.

    IDLE -> SCRIPT_REQUESTED -> SCRIPT_READY -> IMAGES_PENDING -> DONE
                 |                   |               |
                 +------> ABORTED <--+---------------+
"""

import asyncio
import inspect
import logging
import math
from enum import Enum
from typing import Awaitable, Callable, List, Optional, Union

from models.course_models import SourceContent, ContentKind, ArtifactKind, MangaPanel, ERROR_MARKER
from utils.exceptions import IntelliLearnError, ScriptGenerationFailedError

logger = logging.getLogger(__name__)

# Panel count policy
IMAGE_PANEL_COUNT = 4
DOCUMENT_PANEL_COUNT = 6
SHORT_TEXT_WORDS = 75
SHORT_TEXT_PANEL_COUNT = 2
WORDS_PER_PANEL = 125
MIN_TEXT_PANELS = 3
MAX_TEXT_PANELS = 8

Publisher = Callable[[List[MangaPanel]], Union[None, Awaitable[None]]]


class MangaState(str, Enum):
    IDLE = "idle"
    SCRIPT_REQUESTED = "script_requested"
    SCRIPT_READY = "script_ready"
    IMAGES_PENDING = "images_pending"
    DONE = "done"
    ABORTED = "aborted"


def count_words(text: str) -> int:
    return len(text.split())


def panel_count_for_words(word_count: int) -> int:
    """2 panels for short texts, otherwise one panel per ~125 words bounded to 3..8"""
    if word_count < SHORT_TEXT_WORDS:
        return SHORT_TEXT_PANEL_COUNT
    return max(MIN_TEXT_PANELS, min(MAX_TEXT_PANELS, math.ceil(word_count / WORDS_PER_PANEL)))


def compute_panel_count(content: SourceContent) -> int:
    if content.kind == ContentKind.TEXT:
        return panel_count_for_words(count_words(content.content))
    elif content.kind == ContentKind.IMAGE:
        return IMAGE_PANEL_COUNT
    elif content.kind == ContentKind.DOCUMENT:
        return DOCUMENT_PANEL_COUNT
    raise ValueError(f"Unknown content kind: {content.kind}")


def segment_words(text: str, count: int) -> List[List[str]]:
    """
    Split text into exactly `count` contiguous word runs of ceil(words / count) words.
    The final run may be shorter; texts with fewer words than runs are padded with empty runs.
    """
    if count < 1:
        raise ValueError("count must be at least 1")

    words = text.split()
    size = max(1, math.ceil(len(words) / count))
    runs = [words[i:i + size] for i in range(0, len(words), size)]
    while len(runs) < count:
        runs.append([])
    return runs


def build_scenes(text: str, count: int) -> List[str]:
    return [" ".join(run) for run in segment_words(text, count)]


class MangaOrchestrator:
    """
    Runs one manga generation. Instances are single-use and hold no state beyond the run.

    `publish` is called with the script once it is ready (images unresolved) and again with
    the final script once every image has settled. It may be a plain or async callable.
    """

    def __init__(self, client, publish: Optional[Publisher] = None):
        self.client = client
        self.publish = publish
        self.state = MangaState.IDLE
        self.panel_count: Optional[int] = None

    async def run(self, content: SourceContent) -> List[MangaPanel]:
        if self.state != MangaState.IDLE:
            raise RuntimeError(f"MangaOrchestrator already used (state: {self.state.value})")

        script = await self._generate_script(content)

        try:
            await self._publish(script)
        except Exception:
            self.state = MangaState.ABORTED
            raise

        return await self._generate_images(script)

    async def _generate_script(self, content: SourceContent) -> List[MangaPanel]:
        self.state = MangaState.SCRIPT_REQUESTED
        self.panel_count = compute_panel_count(content)

        extra_params = {"panel_count": self.panel_count}
        if content.kind == ContentKind.TEXT:
            extra_params["scenes"] = build_scenes(content.content, self.panel_count)

        logger.info(f"Requesting {self.panel_count}-panel manga script for {content.name} ({content.kind.value})")

        try:
            script = await self.client.generate(content, ArtifactKind.MANGA_SCRIPT, extra_params)
        except IntelliLearnError as e:
            self.state = MangaState.ABORTED
            logger.error(f"Manga script generation failed: {e.message}")
            raise ScriptGenerationFailedError(e.message, context={"cause": e.error_code}) from e
        except Exception as e:
            self.state = MangaState.ABORTED
            logger.error(f"Manga script generation failed: {e}")
            raise ScriptGenerationFailedError(str(e)) from e

        if not script:
            self.state = MangaState.ABORTED
            logger.error("Manga script generation returned no panels")
            raise ScriptGenerationFailedError("model returned no panels")

        if len(script) != self.panel_count:
            logger.warning(f"Requested {self.panel_count} panels, model returned {len(script)}; keeping all")

        self.state = MangaState.SCRIPT_READY
        return script

    async def _generate_images(self, script: List[MangaPanel]) -> List[MangaPanel]:
        self.state = MangaState.IMAGES_PENDING
        logger.info(f"Generating {len(script)} manga panel images")

        # Every request is issued before any is awaited; gather never cancels siblings on failure
        results = await asyncio.gather(
            *[self.client.generate_image(panel.scene) for panel in script],
            return_exceptions=True
        )

        final_script = []
        failed = 0
        for index, (panel, result) in enumerate(zip(script, results)):
            if isinstance(result, BaseException):
                failed += 1
                logger.warning(f"Failed to generate image for panel {index + 1}: {result}")
                final_script.append(panel.model_copy(update={"image_url": ERROR_MARKER}))
            else:
                final_script.append(panel.model_copy(update={"image_url": result}))

        if failed:
            logger.warning(f"{failed}/{len(script)} panel images failed")

        try:
            await self._publish(final_script)
        except Exception:
            self.state = MangaState.ABORTED
            raise
        self.state = MangaState.DONE
        return final_script

    async def _publish(self, panels: List[MangaPanel]) -> None:
        if self.publish is None:
            return
        result = self.publish(list(panels))
        if inspect.isawaitable(result):
            await result
