"""Parse planner output into a control signal plus user-visible text.

The planner is asked for ``{"kind": ..., "text": ...}``. Older prompt
versions ended the reply with a bracketed tag instead; those are still
recognized. Anything else is a plain reply. Tags never reach the user.
"""

import json
import logging
import re
from dataclasses import dataclass
from enum import Enum

from speaktoslides.utils.json_utils import outermost_span, strip_code_fences

logger = logging.getLogger(__name__)

OBJECT_SPAN = (("{", "}"),)


class PlannerSignal(str, Enum):
    REPLY = "reply"
    READY_TO_OUTLINE = "ready_to_outline"
    BUILD_NOW = "build_now"
    EDIT_DETECTED = "edit_detected"


# Checked in this order when several tags are present
LEGACY_MARKERS = (
    ("[READY_TO_OUTLINE]", PlannerSignal.READY_TO_OUTLINE),
    ("[BUILD_NOW]", PlannerSignal.BUILD_NOW),
    ("[EDIT_DETECTED]", PlannerSignal.EDIT_DETECTED),
)

_MARKER_PATTERN = re.compile(
    "|".join(re.escape(marker) for marker, _ in LEGACY_MARKERS), re.IGNORECASE
)


@dataclass(frozen=True)
class PlannerReply:
    kind: PlannerSignal
    text: str


def strip_markers(text: str) -> str:
    """Remove every legacy tag and tidy the surrounding whitespace."""
    cleaned = _MARKER_PATTERN.sub("", text)
    cleaned = re.sub(r"[ \t]+\n", "\n", cleaned)
    cleaned = re.sub(r"\n{3,}", "\n\n", cleaned)
    return cleaned.strip()


def _load_object(text: str | None) -> dict | None:
    if not text or not text.startswith("{"):
        return None
    try:
        payload = json.loads(text)
    except json.JSONDecodeError:
        return None
    return payload if isinstance(payload, dict) else None


def _from_json(raw: str) -> PlannerReply | None:
    candidate = strip_code_fences(raw)
    # Models sometimes wrap the object in a sentence or two of prose
    payload = _load_object(candidate) or _load_object(outermost_span(candidate, OBJECT_SPAN))
    if payload is None or "kind" not in payload:
        return None

    try:
        kind = PlannerSignal(str(payload["kind"]).strip().lower())
    except ValueError:
        logger.warning("Planner returned unknown kind", extra={"kind": payload["kind"]})
        kind = PlannerSignal.REPLY

    text = payload.get("text")
    return PlannerReply(kind=kind, text=strip_markers(text if isinstance(text, str) else ""))


def parse_planner_reply(raw: str) -> PlannerReply:
    """Classify raw planner output.

    Args:
        raw: Model output

    Returns:
        PlannerReply whose text is safe to show the user
    """
    raw = (raw or "").strip()

    structured = _from_json(raw)
    if structured is not None:
        return structured

    upper = raw.upper()
    for marker, signal in LEGACY_MARKERS:
        if marker in upper:
            return PlannerReply(kind=signal, text=strip_markers(raw))

    return PlannerReply(kind=PlannerSignal.REPLY, text=strip_markers(raw))
