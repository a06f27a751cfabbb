"""Normalize raw model replies into review findings."""

import json
import logging
import re

from pydantic import ValidationError

from models import (
    EmptyResponse,
    MalformedResponse,
    ParsedReview,
    ReviewFinding,
    ReviewOutcome,
)

logger = logging.getLogger(__name__)

# Markdown fence markers, e.g. ```json ... ```
_FENCE_PATTERN = re.compile(r"```(?:json)?", re.IGNORECASE)


def strip_fences(text: str) -> str:
    """Remove code-fence markers the model wraps around JSON."""
    return _FENCE_PATTERN.sub("", text).strip()


def _looks_like_review(obj) -> bool:
    """True for a "reviews" object or a non-empty array of objects."""
    if isinstance(obj, dict):
        return isinstance(obj.get("reviews"), list)
    if isinstance(obj, list):
        return bool(obj) and all(isinstance(item, dict) for item in obj)
    return False


def _decode(text: str):
    """Decode *text* as JSON, falling back to a review embedded in prose.

    The fallback only accepts a value shaped like a review, so a bracketed
    fragment such as "lines [42]" still fails as malformed.
    """
    try:
        return json.loads(text)
    except json.JSONDecodeError as first_error:
        starts = [i for i in (text.find("{"), text.find("[")) if i != -1]
        if not starts:
            raise first_error
        decoder = json.JSONDecoder()
        try:
            obj, _ = decoder.raw_decode(text[min(starts):])
        except json.JSONDecodeError:
            raise first_error from None
        if not _looks_like_review(obj):
            raise first_error
        return obj


def _extract_items(data) -> list:
    """Accept a bare array or an object with a "reviews" array."""
    if isinstance(data, list):
        return data
    if isinstance(data, dict) and isinstance(data.get("reviews"), list):
        return data["reviews"]
    return []


def normalize_response(content: str | None) -> ReviewOutcome:
    """
    Turn raw reply text into a typed outcome.

    Never raises for bad input: callers inspect the returned type.

    Args:
        content: Message content from the model, possibly None

    Returns:
        EmptyResponse, MalformedResponse, or ParsedReview with the
        findings that carried a usable line number and comment
    """
    if content is None or not content.strip():
        return EmptyResponse()

    cleaned = strip_fences(content)
    if not cleaned:
        return EmptyResponse(reason="only code fences")

    try:
        data = _decode(cleaned)
    except json.JSONDecodeError as e:
        return MalformedResponse(raw=content, error=str(e))

    findings: list[ReviewFinding] = []
    dropped = 0
    for item in _extract_items(data):
        try:
            findings.append(ReviewFinding.model_validate(item))
        except ValidationError as e:
            dropped += 1
            logger.debug("Dropping invalid finding %r: %s", item, e)

    return ParsedReview(findings=findings, dropped=dropped)
