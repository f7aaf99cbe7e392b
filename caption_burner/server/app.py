"""FastAPI application: upload a video with captions, get back a burned-in copy.

WHY: Clients (editors' tools, automation flows, curl) need one HTTP call
that takes a video plus timed captions and returns a link to the video
with word-highlight subtitles burned in.

HOW: POST /process-video accepts a multipart upload (``video`` file,
``captions`` JSON string, optional ``activeColor``). The captions are
validated, the font is checked, a job is created, and the burn-in
pipeline runs to completion before the response is sent. Processed
videos are served from GET /outputs/{filename}; GET /jobs/{id} reports
job state.

RULES:
- Caption validation failure → 422, before any job exists
- Missing font → 500, before compiling or transcoding
- Too many tracked jobs → 429
- FFmpeg failure → 500 with the failure message, not retried
- Uploads are saved under a fixed name; a failed save marks the job failed
- Error responses use the ErrorResponse schema
- The job store is a singleton; expired jobs are swept every 5 minutes
"""

from __future__ import annotations

import asyncio
import logging
from contextlib import asynccontextmanager
from pathlib import Path
from typing import Annotated, Optional

from fastapi import FastAPI, File, Form, HTTPException, Request, UploadFile
from fastapi.responses import FileResponse

from caption_burner import __version__
from caption_burner.config import configure_logging, ensure_directories, load_settings
from caption_burner.core.ir import TrackStyle
from caption_burner.core.validation import CaptionValidationError, parse_captions
from caption_burner.pipeline import FontNotFoundError, resolve_font, run_burn_job
from caption_burner.server.jobs import Job, JobStatus, JobStore
from caption_burner.server.models import (
    ErrorResponse,
    HealthResponse,
    JobResponse,
    ProcessVideoResponse,
)
from caption_burner.transcode import TranscodeError

logger = logging.getLogger(__name__)

# Uploads are saved as <UPLOAD_STEM><ext> inside the job work dir
UPLOAD_STEM = "input"

# ---------------------------------------------------------------------------
# App and store setup
# ---------------------------------------------------------------------------

settings = load_settings()

job_store = JobStore(
    ttl_seconds=settings.job_ttl_seconds,
    max_jobs=settings.max_jobs,
    workspace_root=settings.uploads_dir,
)


async def _periodic_cleanup() -> None:
    """Run job cleanup every 5 minutes."""
    while True:
        await asyncio.sleep(300)
        job_store.cleanup_expired()


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Create directories and start periodic cleanup; cancel it on shutdown."""
    ensure_directories(settings)
    task = asyncio.create_task(_periodic_cleanup())
    yield
    task.cancel()
    try:
        await task
    except asyncio.CancelledError:
        pass


app = FastAPI(
    lifespan=lifespan,
    title="Caption Burner API",
    description=(
        "Upload a video and timed captions; the service burns word-by-word "
        "highlighted subtitles into the video with FFmpeg and returns a "
        "download link."
    ),
    version=__version__,
    docs_url="/docs",
    redoc_url="/redoc",
)


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _job_to_response(job: Job) -> JobResponse:
    return JobResponse(
        id=job.id,
        status=job.status.value,
        filename=job.filename,
        created_at=job.created_at,
        completed_at=job.completed_at,
        config=job.config,
        error=job.error,
        output_file=job.output_file,
    )


def _upload_path(work_dir: Path, filename: str) -> Path:
    """Fixed name inside the work dir; only the client's extension is kept."""
    return work_dir / (UPLOAD_STEM + Path(filename).suffix)


async def _save_upload(upload: UploadFile, destination: Path) -> None:
    content = await upload.read()
    destination.write_bytes(content)


# ---------------------------------------------------------------------------
# Endpoints: Processing
# ---------------------------------------------------------------------------


@app.post(
    "/process-video",
    response_model=ProcessVideoResponse,
    tags=["processing"],
    summary="Burn word-highlight captions into a video",
    description=(
        "Upload a video and a JSON array of captions "
        "(`[{\"text\", \"startTime\", \"endTime\"}]`, seconds). Each word is "
        "highlighted in turn for an equal share of its caption's duration. "
        "Responds once FFmpeg has finished, with the URL of the processed video."
    ),
    responses={
        422: {"model": ErrorResponse, "description": "Malformed captions payload"},
        429: {"model": ErrorResponse, "description": "Too many tracked jobs"},
        500: {"model": ErrorResponse, "description": "Font missing or FFmpeg failure"},
    },
)
async def process_video(
    request: Request,
    video: Annotated[
        UploadFile,
        File(description="Video file to burn captions into."),
    ],
    captions: Annotated[
        str,
        Form(description="JSON array of caption objects with text, startTime, endTime."),
    ],
    active_color: Annotated[
        Optional[str],
        Form(
            alias="activeColor",
            description="ASS colour for the highlighted word (e.g. '&H00FF00'). Defaults to green.",
        ),
    ] = None,
) -> ProcessVideoResponse:
    filename = Path(video.filename or "upload").name or "upload"
    color = active_color or settings.default_active_color

    logger.info("Video uploaded: %s", filename)
    logger.info("Font family requested: %s", settings.font_family)
    logger.info("Active word color: %s", color)

    try:
        spans = parse_captions(captions)
    except CaptionValidationError as exc:
        raise HTTPException(status_code=422, detail=str(exc))

    try:
        resolve_font(settings.fonts_dir, settings.font_file, settings.font_family)
    except FontNotFoundError as exc:
        raise HTTPException(status_code=500, detail=str(exc))

    style = TrackStyle(
        font_family=settings.font_family,
        active_color=color,
        font_size=settings.font_size,
    )
    config = {
        "font_family": style.font_family,
        "active_color": style.active_color,
        "font_size": style.font_size,
        "caption_count": len(spans),
    }

    try:
        job = job_store.create_job(filename=filename, config=config)
    except ValueError as exc:
        raise HTTPException(status_code=429, detail=str(exc))

    video_path = _upload_path(job.work_dir, filename)
    try:
        await _save_upload(video, video_path)
    except OSError as exc:
        logger.exception("Failed to save upload for job %s", job.id)
        job_store.update_job(job.id, status=JobStatus.FAILED, error=str(exc))
        job_store.release_workspace(job.id)
        raise HTTPException(status_code=500, detail="Error saving upload: {}".format(exc))

    settings.outputs_dir.mkdir(parents=True, exist_ok=True)
    try:
        output_path = await run_burn_job(
            job.id,
            job_store,
            video_path=video_path,
            spans=spans,
            style=style,
            outputs_dir=settings.outputs_dir,
            fonts_dir=settings.fonts_dir,
            ffmpeg_binary=settings.ffmpeg_binary,
        )
    except (TranscodeError, OSError) as exc:
        raise HTTPException(status_code=500, detail="Error processing video: {}".format(exc))

    url = request.url_for("download_output", filename=output_path.name)
    return ProcessVideoResponse(url=str(url), job_id=job.id)


@app.get(
    "/jobs/{job_id}",
    response_model=JobResponse,
    tags=["processing"],
    summary="Get burn-in job status",
    responses={
        404: {"model": ErrorResponse, "description": "Job not found"},
    },
)
async def get_job(job_id: str) -> JobResponse:
    job = job_store.get_job(job_id)
    if job is None:
        raise HTTPException(status_code=404, detail="Job not found: {}".format(job_id))
    return _job_to_response(job)


# ---------------------------------------------------------------------------
# Endpoints: Outputs
# ---------------------------------------------------------------------------


@app.get(
    "/outputs/{filename}",
    name="download_output",
    tags=["outputs"],
    summary="Download a processed video",
    response_class=FileResponse,
    responses={
        400: {"model": ErrorResponse, "description": "Invalid filename"},
        404: {"model": ErrorResponse, "description": "File not found"},
    },
)
async def download_output(filename: str) -> FileResponse:
    # Ensure filename doesn't contain path separators
    if "/" in filename or "\\" in filename or ".." in filename:
        raise HTTPException(status_code=400, detail="Invalid filename")

    fpath = settings.outputs_dir / filename
    if not fpath.is_file():
        raise HTTPException(
            status_code=404,
            detail="File '{}' not found.".format(filename),
        )
    return FileResponse(fpath, media_type="video/mp4", filename=filename)


# ---------------------------------------------------------------------------
# Endpoints: Health
# ---------------------------------------------------------------------------


@app.get(
    "/health",
    response_model=HealthResponse,
    tags=["health"],
    summary="Health check",
)
async def health_check() -> HealthResponse:
    return HealthResponse(status="ok", version=__version__)


def run_api(host: Optional[str] = None, port: Optional[int] = None) -> None:
    """Entry point for the caption-burner-api console script."""
    import uvicorn

    from caption_burner.config import HOST, PORT

    configure_logging()
    logger.info("Server running on http://%s:%s", host or HOST, port or PORT)
    uvicorn.run(app, host=host or HOST, port=port or PORT)
