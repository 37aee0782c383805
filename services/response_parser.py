"""
Defensive JSON extraction from free-form model output.

Models sometimes wrap structured output in a markdown fence or prepend a
sentence of commentary. This module tolerates exactly those two framings
and nothing else: a single leading/trailing fence is stripped, text before
the first '{' or '[' is discarded, and the rest must parse as JSON.
No attempt is made to repair truncated or invalid JSON.
"""

import json
import logging
import re
from typing import Any, Optional

from utils.exceptions import EmptyResponseError, NoStructuralTokenError, MalformedJsonError

logger = logging.getLogger(__name__)

_LEADING_FENCE = re.compile(r'^```[\w+-]*[ \t]*\n?')
_TRAILING_FENCE = re.compile(r'\n?[ \t]*```$')


def strip_code_fence(text: str) -> str:
    """Remove one leading and one trailing ``` marker (bare or language-tagged)."""
    text = text.strip()
    text = _LEADING_FENCE.sub('', text, count=1)
    text = _TRAILING_FENCE.sub('', text, count=1)
    return text.strip()


def find_structural_start(text: str) -> int:
    """Index of the first '{' or '[' in text, or -1."""
    positions = [pos for pos in (text.find('{'), text.find('[')) if pos != -1]
    return min(positions) if positions else -1


def parse_json_response(raw_text: Optional[str]) -> Any:
    """
    Parse structured model output.

    Raises:
        EmptyResponseError: raw_text is None or blank.
        NoStructuralTokenError: no '{' or '[' in the text.
        MalformedJsonError: the text from the first structural token on is not valid JSON.
    """
    if raw_text is None or not raw_text.strip():
        raise EmptyResponseError()

    text = strip_code_fence(raw_text)
    start = find_structural_start(text)
    if start == -1:
        logger.error(f"No JSON found in model response: {raw_text[:500]}")
        raise NoStructuralTokenError(context={"preview": raw_text[:200]})

    if start > 0:
        logger.debug(f"Discarding {start} characters of commentary before JSON")

    try:
        return json.loads(text[start:])
    except json.JSONDecodeError as e:
        logger.error(f"Could not parse JSON from: {raw_text[:500]}")
        raise MalformedJsonError(str(e), context={"preview": raw_text[:200]}) from e
