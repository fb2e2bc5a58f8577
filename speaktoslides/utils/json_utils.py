"""Extract JSON payloads from model output."""

import json
import logging
import re
from typing import Any

from speaktoslides.core.exceptions import GenerationFormatError

logger = logging.getLogger(__name__)

_FENCE_PATTERN = re.compile(r"^```(?:json|JSON)?\s*(.*?)\s*```$", re.DOTALL)

SPAN_PAIRS = (("{", "}"), ("[", "]"))


def strip_code_fences(text: str) -> str:
    """Remove a surrounding markdown code fence, if any."""
    clean = text.strip()
    match = _FENCE_PATTERN.match(clean)
    if match:
        return match.group(1).strip()
    if clean.startswith("```"):
        # Unterminated fence: drop the opening line only
        clean = re.sub(r"^```(?:json|JSON)?\s*", "", clean)
    return clean


def outermost_span(text: str, pairs: tuple[tuple[str, str], ...] = SPAN_PAIRS) -> str | None:
    """Text from the first opening bracket to its last matching closer."""
    starts = [(text.find(opener), opener, closer) for opener, closer in pairs]
    starts = [s for s in starts if s[0] != -1]
    if not starts:
        return None
    start, _, closer = min(starts)
    end = text.rfind(closer)
    if end <= start:
        return None
    return text[start : end + 1]


def extract_json(raw: str, what: str = "response") -> Any:
    """Parse JSON from raw model output.

    Tries the fence-stripped text first, then the outermost ``{...}`` or
    ``[...]`` span to tolerate leading or trailing prose.

    Args:
        raw: Raw text returned by the model
        what: Short description of the expected payload, for error messages

    Returns:
        The decoded JSON value

    Raises:
        GenerationFormatError: If no JSON value can be decoded
    """
    clean = strip_code_fences(raw or "")
    if not clean:
        raise GenerationFormatError(f"AI returned an empty {what}.")

    try:
        return json.loads(clean)
    except json.JSONDecodeError:
        pass

    span = outermost_span(clean)
    if span is not None:
        try:
            return json.loads(span)
        except json.JSONDecodeError:
            pass

    logger.error(
        "Model returned non-JSON output",
        extra={"what": what, "preview": clean[:300]},
    )
    raise GenerationFormatError(f"AI returned invalid JSON for {what}.")
