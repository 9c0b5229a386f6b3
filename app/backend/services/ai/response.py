"""
Tolerant JSON recovery for LLM replies.

Models regularly wrap the requested JSON in code fences or surround it with
prose despite being told not to. The recovery steps run in a fixed order;
changing the order changes the outcome on ambiguous replies.
"""

import json
import logging
import re
from typing import Any

from ...exceptions import EmptyUpstreamReplyError, MalformedJSONError

logger = logging.getLogger(__name__)

_JSON_FENCE_OPENER = re.compile(r"^```json\s*", re.IGNORECASE)
_FENCE_OPENER = re.compile(r"^```\s*")
_FENCE_CLOSER = re.compile(r"\s*```$")


def _strip_fences(text: str) -> str:
    if _JSON_FENCE_OPENER.match(text):
        text = _JSON_FENCE_OPENER.sub("", text, count=1)
        return _FENCE_CLOSER.sub("", text, count=1)
    if _FENCE_OPENER.match(text):
        text = _FENCE_OPENER.sub("", text, count=1)
        return _FENCE_CLOSER.sub("", text, count=1)
    return text


def isolate_json(raw_content: str) -> str:
    """
    Cut the candidate JSON object out of a raw reply.

    Steps:
    1. Trim.
    2. Strip a leading ```json fence and a trailing fence.
    3. Otherwise strip a leading generic ``` fence and a trailing fence.
    4. Drop everything before the first ``{``.
    5. Drop everything after the last ``}``.
    6. Trim again.
    """
    text = _strip_fences(raw_content.strip())

    start = text.find("{")
    if start > 0:
        text = text[start:]

    end = text.rfind("}")
    if end != -1 and end != len(text) - 1:
        text = text[: end + 1]

    return text.strip()


def extract_json(raw_content: str | None) -> dict[str, Any]:
    """
    Parse the JSON object embedded in an LLM reply.

    Args:
        raw_content: Message content returned by the LLM transport.

    Returns:
        The parsed object, with keys in the order the model produced them.

    Raises:
        EmptyUpstreamReplyError: If the reply has no content.
        MalformedJSONError: If no JSON object can be recovered.
    """
    if raw_content is None or not raw_content.strip():
        raise EmptyUpstreamReplyError("LLM service returned an empty reply")

    candidate = isolate_json(raw_content)

    try:
        parsed = json.loads(candidate)
    except json.JSONDecodeError as e:
        logger.warning("Failed to parse LLM reply as JSON: %s", raw_content[:200])
        raise MalformedJSONError(str(e), raw_content) from e

    if not isinstance(parsed, dict):
        logger.warning("LLM reply is JSON but not an object: %s", type(parsed).__name__)
        raise MalformedJSONError(
            f"expected a JSON object, got {type(parsed).__name__}", raw_content
        )

    return parsed
