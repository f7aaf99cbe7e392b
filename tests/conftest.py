"""Shared test fixtures for the caption_burner test suite.

WHY: Compiler, pipeline, CLI, and API tests all need the same caption
payloads and an isolated directory layout (uploads, outputs, fonts) so
nothing is written into the working directory.

RULES:
- Caption fixtures use times that format exactly (no float edge cases)
- The font fixture creates an empty placeholder font file; FFmpeg is
  always faked, so the file is never parsed
"""

from __future__ import annotations

import json
from pathlib import Path
from typing import Any, Dict, List

import pytest

from caption_burner.config import Settings
from caption_burner.core.ir import CaptionSpan


SAMPLE_CAPTIONS: List[Dict[str, Any]] = [
    {"text": "Hello World", "startTime": 0, "endTime": 2},
    {"text": "how are you", "startTime": 2.5, "endTime": 4},
]


@pytest.fixture
def sample_payload() -> List[Dict[str, Any]]:
    """The wire-format caption list (camelCase keys)."""
    return [dict(c) for c in SAMPLE_CAPTIONS]


@pytest.fixture
def sample_spans() -> List[CaptionSpan]:
    return [CaptionSpan.from_dict(c) for c in SAMPLE_CAPTIONS]


@pytest.fixture
def captions_file(tmp_path: Path, sample_payload) -> Path:
    path = tmp_path / "captions.json"
    path.write_text(json.dumps(sample_payload), encoding="utf-8")
    return path


@pytest.fixture
def test_settings(tmp_path: Path) -> Settings:
    """Settings pointing at tmp dirs, with the font file present."""
    settings = Settings(
        uploads_dir=tmp_path / "uploads",
        outputs_dir=tmp_path / "outputs",
        fonts_dir=tmp_path / "fonts",
        font_family="Lilita One",
        font_file="LilitaOne-Regular.ttf",
        font_size=36,
        default_active_color="&H00FF00",
        ffmpeg_binary="ffmpeg",
        job_ttl_seconds=3600,
        max_jobs=100,
    )
    for directory in (settings.uploads_dir, settings.outputs_dir, settings.fonts_dir):
        directory.mkdir(parents=True)
    settings.font_path.write_bytes(b"")
    return settings


@pytest.fixture
def fake_burn(monkeypatch):
    """Replace the FFmpeg run in the pipeline with a recorder.

    The fake reads the subtitle file while it still exists (the pipeline
    deletes it afterwards) and writes a small output file. Set
    ``recorder["error"]`` to an exception to make the fake write a partial
    output and then raise it, as an interrupted FFmpeg run would.
    """
    recorder: Dict[str, Any] = {"calls": [], "error": None}

    async def _fake_burn_subtitles(video_path, subtitle_path, output_path, fonts_dir=None,
                                   ffmpeg_binary="ffmpeg", on_start=None, on_stderr=None):
        recorder["calls"].append({
            "video_path": Path(video_path),
            "subtitle_path": Path(subtitle_path),
            "subtitle_text": Path(subtitle_path).read_text(encoding="utf-8"),
            "output_path": Path(output_path),
            "fonts_dir": fonts_dir,
            "ffmpeg_binary": ffmpeg_binary,
        })
        if recorder["error"] is not None:
            Path(output_path).write_bytes(b"partial video")
            raise recorder["error"]
        Path(output_path).write_bytes(b"processed video")
        return Path(output_path)

    monkeypatch.setattr("caption_burner.pipeline.burn_subtitles", _fake_burn_subtitles)
    return recorder
