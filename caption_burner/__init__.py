"""Caption Burner: word-highlight subtitles burned into uploaded video.

WHY: Short-form video wants captions where the word being spoken lights
up. Editors already have per-caption timings; this package turns those
caption spans into an ASS subtitle track with one highlighted word per
dialogue event and burns it into the video with FFmpeg.

HOW: Three stages: validate (caption payload → CaptionSpan list),
compile (spans → ASS script text), render (FFmpeg ``ass`` filter). The
compiler is pure; the HTTP API and CLI are thin layers around it.

RULES:
- The compiler never performs I/O
- Style parameters (font, highlight colour) are passed explicitly
- FFmpeg is an external collaborator, invoked once per job
"""

__version__ = "0.1.0"
