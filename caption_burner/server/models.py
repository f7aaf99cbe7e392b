"""Pydantic response models for the HTTP API.

WHY: FastAPI uses these for response serialization and the OpenAPI docs
at /docs. Request input is multipart form data (video + captions JSON
string), validated by caption_burner.core.validation rather than here.

RULES:
- All models use Field(description=...) for OpenAPI documentation
- Response models never expose internal paths (work dirs, outputs dir)
- Python 3.9+ compatible (no PEP 604 unions, use Optional from typing)
"""

from __future__ import annotations

from typing import Any, Dict, Optional

from pydantic import BaseModel, Field


class ProcessVideoResponse(BaseModel):
    """Response returned once a video has been processed."""

    url: str = Field(description="Absolute URL of the processed video.")
    job_id: str = Field(description="Identifier of the burn-in job.")

    model_config = {"json_schema_extra": {
        "examples": [
            {
                "url": "http://localhost:5000/outputs/1739959200000-550e8400-output.mp4",
                "job_id": "550e8400e29b41d4a716446655440000",
            }
        ]
    }}


class JobResponse(BaseModel):
    """Burn-in job status.

    RULES:
    - error is only set when status is 'failed'
    - output_file is only set when status is 'succeeded'
    """

    id: str = Field(description="Unique job identifier (UUID hex).")
    status: str = Field(description="Current job status: pending, running, succeeded, failed.")
    filename: str = Field(description="Original uploaded filename.")
    created_at: float = Field(description="Job creation timestamp (Unix epoch seconds).")
    completed_at: Optional[float] = Field(
        default=None,
        description="Timestamp when the job reached a terminal state.",
    )
    config: Dict[str, Any] = Field(description="Style parameters used for this job.")
    error: Optional[str] = Field(
        default=None,
        description="Error message, only present when status is 'failed'.",
    )
    output_file: Optional[str] = Field(
        default=None,
        description="Processed video filename, only present when status is 'succeeded'.",
    )


class ErrorResponse(BaseModel):
    """Standard error response body."""

    detail: str = Field(description="Human-readable error description.")


class HealthResponse(BaseModel):
    """Health check response."""

    status: str = Field(description="Service health status.", json_schema_extra={"example": "ok"})
    version: str = Field(description="API version string.", json_schema_extra={"example": "0.1.0"})
