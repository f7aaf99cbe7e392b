"""Burn-in pipeline: font check, track compilation, and FFmpeg run for one job.

WHY: The API and the CLI run the same sequence: make sure the caption
font exists, compile the ASS track, hand it to FFmpeg, record the
outcome on the job. Keeping that sequence in one coroutine means both
entry points share the job state machine and the cleanup rules.

HOW: run_burn_job() moves the job PENDING → RUNNING, writes
``captions.ass`` into the job's work directory, awaits burn_subtitles(),
then marks the job SUCCEEDED (with the output filename) or FAILED (with
the error message). The work directory is released in a finally block.

RULES:
- The font must be resolved before a job is created (resolve_font)
- captions.ass is written before FFmpeg starts and deleted after it ends
- Output files are named ``<epoch-ms>-<job-id-prefix>-output.mp4``
- Failures are recorded on the job and re-raised to the caller
- A failed run leaves no output file behind
"""

from __future__ import annotations

import logging
import time
from pathlib import Path
from typing import List, Optional

from caption_burner.core.compiler import compile_track
from caption_burner.core.ir import CaptionSpan, TrackStyle
from caption_burner.server.jobs import JobStatus, JobStore
from caption_burner.transcode import burn_subtitles

logger = logging.getLogger(__name__)

SUBTITLE_FILENAME = "captions.ass"


class FontNotFoundError(FileNotFoundError):
    """Raised when the caption font file is missing from the fonts directory."""


def resolve_font(fonts_dir: Path, font_file: str, font_family: str) -> Path:
    """Return the font file path, or raise FontNotFoundError."""
    font_path = Path(fonts_dir) / font_file
    if not font_path.is_file():
        logger.error("Font file does not exist: %s", font_path)
        raise FontNotFoundError("Font file not found: {}".format(font_family))
    logger.info("Font file exists: %s", font_path)
    return font_path


def output_filename(job_id: str, now: Optional[float] = None) -> str:
    if now is None:
        now = time.time()
    return "{}-{}-output.mp4".format(int(now * 1000), job_id[:8])


async def run_burn_job(
    job_id: str,
    store: JobStore,
    video_path: Path,
    spans: List[CaptionSpan],
    style: TrackStyle,
    outputs_dir: Path,
    fonts_dir: Optional[Path] = None,
    ffmpeg_binary: str = "ffmpeg",
) -> Path:
    """Compile the track and burn it into ``video_path`` for an existing job.

    Returns:
        Path of the processed video inside ``outputs_dir``.

    Raises:
        KeyError: If job_id is not in the store.
        CaptionValidationError: If a span is malformed.
        TranscodeError: If FFmpeg fails.
    """
    job = store.get_job(job_id)
    if job is None:
        raise KeyError("Job not found: {}".format(job_id))

    output_path = Path(outputs_dir) / output_filename(job_id)

    try:
        store.update_job(job_id, status=JobStatus.RUNNING)

        track = compile_track(
            spans,
            font_family=style.font_family,
            active_color=style.active_color,
            font_size=style.font_size,
        )
        subtitle_path = job.work_dir / SUBTITLE_FILENAME
        subtitle_path.write_text(track, encoding="utf-8")
        logger.info("Generated ASS file: %s", subtitle_path)

        logger.info("Output file path: %s", output_path)

        await burn_subtitles(
            video_path,
            subtitle_path,
            output_path,
            fonts_dir=fonts_dir,
            ffmpeg_binary=ffmpeg_binary,
        )
    except Exception as exc:
        logger.exception("Burn-in failed for job %s", job_id)
        store.update_job(job_id, status=JobStatus.FAILED, error=str(exc))
        if output_path.exists():
            output_path.unlink()
        raise
    else:
        store.update_job(job_id, status=JobStatus.SUCCEEDED, output_file=output_path.name)
        return output_path
    finally:
        store.release_workspace(job_id)
