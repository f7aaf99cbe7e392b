"""Caption payload parsing and validation.

WHY: Captions arrive as a JSON string inside a multipart form field (or
as a JSON file for the CLI). A malformed payload must be rejected with a
clear message before anything is compiled, rather than producing an
empty or corrupt subtitle track.

HOW: Two passes. First the decoded payload is checked against
CAPTIONS_SCHEMA with jsonschema (shape and types). Then each span is
checked semantically: finite times, non-negative start, positive
duration, and at least one non-empty word.

RULES:
- Every failure raises CaptionValidationError naming the span index
- Extra keys on a caption object are ignored
- An empty caption array is rejected
- Empty tokens from double spaces are kept; only an all-blank text fails
"""

from __future__ import annotations

import json
import math
from pathlib import Path
from typing import Any, List, Union

import jsonschema

from caption_burner.core.ir import CaptionSpan


class CaptionValidationError(ValueError):
    """Raised when a caption payload or span is malformed."""


CAPTIONS_SCHEMA = {
    "$schema": "http://json-schema.org/draft-07/schema#",
    "title": "Caption spans",
    "type": "array",
    "minItems": 1,
    "items": {
        "type": "object",
        "required": ["text", "startTime", "endTime"],
        "properties": {
            "text": {"type": "string"},
            "startTime": {"type": "number"},
            "endTime": {"type": "number"},
        },
    },
}


def validate_span(span: CaptionSpan, index: int = 0) -> CaptionSpan:
    """Check the semantic invariants of one span and return it unchanged."""
    if not (math.isfinite(span.start_s) and math.isfinite(span.end_s)):
        raise CaptionValidationError(
            "Caption {}: startTime and endTime must be finite numbers".format(index)
        )
    if span.start_s < 0:
        raise CaptionValidationError(
            "Caption {}: startTime must not be negative (got {})".format(index, span.start_s)
        )
    if span.end_s <= span.start_s:
        raise CaptionValidationError(
            "Caption {}: endTime ({}) must be greater than startTime ({})".format(
                index, span.end_s, span.start_s
            )
        )
    if not any(span.words):
        raise CaptionValidationError("Caption {}: text contains no words".format(index))
    return span


def parse_captions(raw: Union[str, bytes, List[Any]]) -> List[CaptionSpan]:
    """Decode and validate a caption payload.

    Args:
        raw: A JSON document (str or bytes) or an already-decoded list of
             caption objects with ``text``, ``startTime``, ``endTime``.

    Returns:
        CaptionSpan objects in payload order.

    Raises:
        CaptionValidationError: If the JSON is invalid, does not match
            CAPTIONS_SCHEMA, or any span breaks a timing/text invariant.
    """
    if isinstance(raw, (str, bytes)):
        try:
            data = json.loads(raw)
        except ValueError as exc:
            raise CaptionValidationError("Captions are not valid JSON: {}".format(exc)) from exc
    else:
        data = raw

    try:
        jsonschema.validate(instance=data, schema=CAPTIONS_SCHEMA)
    except jsonschema.ValidationError as exc:
        location = "/".join(str(p) for p in exc.absolute_path) or "(root)"
        raise CaptionValidationError(
            "Captions do not match the expected format at {}: {}".format(location, exc.message)
        ) from exc

    spans: List[CaptionSpan] = []
    for index, item in enumerate(data):
        try:
            span = CaptionSpan.from_dict(item)
        except (OverflowError, ValueError, TypeError) as exc:
            raise CaptionValidationError("Caption {}: {}".format(index, exc)) from exc
        spans.append(validate_span(span, index))
    return spans


def load_captions(path: Path) -> List[CaptionSpan]:
    """Read and validate a UTF-8 caption JSON file."""
    return parse_captions(Path(path).read_text(encoding="utf-8"))
