"""Intermediate representation dataclasses for captions and subtitle tracks.

WHY: The HTTP payload speaks camelCase JSON (``startTime``/``endTime``),
the compiler speaks seconds and words, and the ASS writer speaks dialogue
events. Small typed dataclasses keep each stage honest about what it
receives.

HOW: Three dataclasses:
  CaptionSpan   - one timed block of caption text (input, read once)
  TrackStyle    - the global font and highlight colour for a track
  DialogueEvent - one timed, styled ASS line (one per word per span)

RULES:
- All times are float seconds
- CaptionSpan.words splits on single spaces only (no trimming)
- DialogueEvent.style is always "Default"; the highlight lives in the
  inline override codes of its text
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict, List


@dataclass(frozen=True)
class CaptionSpan:
    """A timed caption block: space-delimited words shown from start to end.

    RULES:
    - text: raw caption text, split on single spaces into words
    - start_s / end_s: float seconds, end_s > start_s once validated
    """

    text: str
    start_s: float
    end_s: float

    @property
    def words(self) -> List[str]:
        return self.text.split(" ")

    @property
    def duration_s(self) -> float:
        return self.end_s - self.start_s

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "CaptionSpan":
        """Build a span from the wire format (``text``/``startTime``/``endTime``)."""
        return cls(
            text=data["text"],
            start_s=float(data["startTime"]),
            end_s=float(data["endTime"]),
        )

    def to_dict(self) -> Dict[str, Any]:
        return {"text": self.text, "startTime": self.start_s, "endTime": self.end_s}


@dataclass(frozen=True)
class TrackStyle:
    """Global style parameters for one generated track.

    One default text style and one highlight style share the font; only
    the highlight carries active_color. The colour is an ASS colour token
    and is passed through uninterpreted.
    """

    font_family: str
    active_color: str
    font_size: int = 36


@dataclass(frozen=True)
class DialogueEvent:
    """One ASS ``Dialogue:`` line, a single word's highlight window."""

    start_s: float
    end_s: float
    text: str
    style: str = "Default"
    layer: int = 0
