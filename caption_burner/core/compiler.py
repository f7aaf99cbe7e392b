"""Subtitle track compiler: caption spans to a word-highlight ASS script.

WHY: Social captions highlight the word being spoken. FFmpeg's ``ass``
filter (libass) renders Advanced SubStation Alpha scripts, whose inline
override codes can recolour and embolden a single word. Emitting one
dialogue event per word, each with a different word highlighted, gives
the karaoke effect without any per-frame work.

HOW: Each caption span is split on single spaces and its duration is
divided into equal word slots. For slot i, the whole caption line is
rendered with word i wrapped in ``{\\1c<colour>\\b1}...{\\b0\\1c&HFFFFFF&}``
and every other word in the default style. A fixed header declares the
``Default`` and ``Highlight`` styles with the requested font and colour.

RULES:
- Pure and deterministic: same spans, font, and colour → same bytes
- One event per word per span, spans in input order, words in order
- Word slots are strictly equal (no weighting by word length)
- Times are HH:MM:SS.CC with centiseconds truncated, never rounded
- Every event uses style "Default"; the highlight is inline
- Caption words are escaped (backslash, braces, newlines) unless
  escape=False is passed
"""

from __future__ import annotations

import math
from typing import Iterable, List

from caption_burner.core.ir import CaptionSpan, DialogueEvent, TrackStyle
from caption_burner.core.validation import validate_span

DEFAULT_FONT_SIZE = 36

_RESET_OVERRIDE = "{\\b0\\1c&HFFFFFF&}"

# U+2060: zero width, never a line-break opportunity
WORD_JOINER = "\u2060"

_HEADER_TEMPLATE = """[Script Info]
Title: Active Word Highlighting
ScriptType: v4.00+
Collisions: Normal
PlayDepth: 0

[V4+ Styles]
Format: Name, Fontname, Fontsize, PrimaryColour, SecondaryColour, OutlineColour, BackColour, Bold, Italic, Underline, StrikeOut, ScaleX, ScaleY, Spacing, Angle, BorderStyle, Outline, Shadow, Alignment, MarginL, MarginR, MarginV, Encoding
Style: Default,{font},{size},&H00FFFFFF,&H000000FF,&H00000000,&H64000000,0,0,0,0,100,100,0,0,1,1,0,2,10,10,10,1
Style: Highlight,{font},{size},{color},&H000000FF,&H00000000,&H64000000,1,0,0,0,100,100,0,0,1,1,0,2,10,10,10,1

[Events]
Format: Layer, Start, End, Style, Name, MarginL, MarginR, MarginV, Effect, Text
"""


def format_time(seconds: float) -> str:
    """Format seconds as an ASS timestamp ``HH:MM:SS.CC``.

    libass parses this with a fixed-width grammar, so every field is
    zero-padded to two digits and centiseconds are truncated:
    ``format_time(0.005) == "00:00:00.00"``.
    """
    hours = int(seconds // 3600)
    minutes = int((seconds % 3600) // 60)
    secs = int(seconds % 60)
    centis = int(math.floor((seconds % 1) * 100))
    return "{:02d}:{:02d}:{:02d}.{:02d}".format(hours, minutes, secs, centis)


def escape_text(text: str) -> str:
    """Escape caption text so it cannot open or break an override block.

    libass has no escape for a literal backslash, so each one is followed
    by a word joiner (U+2060) that keeps ``\\N``, ``\\n`` and ``\\h`` from
    being read as breaks. Braces are prefixed with a backslash; line
    breaks become the ASS hard break ``\\N`` (a raw newline would end the
    Dialogue line).
    """
    escaped = text.replace("\\", "\\" + WORD_JOINER)
    escaped = escaped.replace("{", "\\{").replace("}", "\\}")
    escaped = escaped.replace("\r\n", "\\N").replace("\r", "\\N").replace("\n", "\\N")
    return escaped


def highlight_line(words: List[str], index: int, active_color: str) -> str:
    """Render the caption line with ``words[index]`` highlighted."""
    before = " ".join(words[:index])
    after = " ".join(words[index + 1:])
    parts = [
        before + " " if before else "",
        "{{\\1c{}\\b1}}{}{}".format(active_color, words[index], _RESET_OVERRIDE),
        " " + after if after else "",
    ]
    return "".join(parts)


def build_events(
    spans: Iterable[CaptionSpan],
    active_color: str,
    escape: bool = True,
) -> List[DialogueEvent]:
    """Expand caption spans into one DialogueEvent per word.

    Raises:
        CaptionValidationError: If a span has no words or a non-positive
            duration.
    """
    events: List[DialogueEvent] = []
    for span_index, span in enumerate(spans):
        validate_span(span, span_index)
        words = span.words
        if escape:
            words = [escape_text(w) for w in words]
        word_duration = span.duration_s / len(words)

        for i in range(len(words)):
            word_start = span.start_s + i * word_duration
            word_end = word_start + word_duration
            events.append(DialogueEvent(
                start_s=word_start,
                end_s=word_end,
                text=highlight_line(words, i, active_color),
            ))
    return events


def render_header(style: TrackStyle) -> str:
    return _HEADER_TEMPLATE.format(
        font=style.font_family,
        size=style.font_size,
        color=style.active_color,
    )


def render_event(event: DialogueEvent) -> str:
    # Layer,Start,End,Style,Name,MarginL,MarginR,MarginV,Effect,Text
    return "Dialogue: {},{},{},{},,0,0,0,,{}".format(
        event.layer,
        format_time(event.start_s),
        format_time(event.end_s),
        event.style,
        event.text,
    )


def compile_track(
    spans: Iterable[CaptionSpan],
    font_family: str,
    active_color: str,
    font_size: int = DEFAULT_FONT_SIZE,
    escape: bool = True,
) -> str:
    """Compile caption spans into a complete ASS subtitle script.

    Args:
        spans: Caption spans in display order.
        font_family: Font family name used by both styles.
        active_color: ASS colour token for the highlighted word, passed
                      through verbatim (not validated).
        font_size: Font size for both styles.
        escape: Escape ASS control characters in caption words.

    Returns:
        The script text: header, then one Dialogue line per word, ending
        with a newline.

    Raises:
        CaptionValidationError: If any span is malformed.
        ValueError: If font_family is empty.
    """
    if not font_family:
        raise ValueError("font_family must be a non-empty string")

    style = TrackStyle(font_family=font_family, active_color=active_color, font_size=font_size)
    events = build_events(spans, active_color, escape=escape)
    lines = [render_event(e) for e in events]
    return render_header(style) + "".join(line + "\n" for line in lines)
