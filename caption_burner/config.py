"""Configuration defaults, directory layout, and .env loading.

WHY: The service needs a handful of paths (uploads, outputs, fonts), the
default caption style, and the FFmpeg binary name. Keeping them in one
module makes them easy to find and override, while the compiler itself
only ever sees explicit arguments.

HOW: python-dotenv loads the .env file on import. Module-level constants
hold the defaults (each overridable via environment variable). The
Settings dataclass bundles them so the API and CLI can pass one object
around, and tests can build their own instance pointing at tmp dirs.

RULES:
- All defaults can be overridden via environment variables
- Directories are created by ensure_directories(), never on import
- DEFAULT_ACTIVE_COLOR is an ASS colour token, passed through verbatim
"""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass
from pathlib import Path

from dotenv import load_dotenv

# Load .env from the project root (where the service is started from)
load_dotenv()

# ---------------------------------------------------------------------------
# Server
# ---------------------------------------------------------------------------

HOST = os.getenv("HOST", "0.0.0.0")
PORT = int(os.getenv("PORT", "5000"))

# ---------------------------------------------------------------------------
# Directories
# ---------------------------------------------------------------------------

BASE_DIR = Path(os.getenv("CAPTION_BURNER_HOME", os.getcwd()))
UPLOADS_DIR = Path(os.getenv("UPLOADS_DIR", str(BASE_DIR / "uploads")))
OUTPUTS_DIR = Path(os.getenv("OUTPUTS_DIR", str(BASE_DIR / "outputs")))
FONTS_DIR = Path(os.getenv("FONTS_DIR", str(BASE_DIR / "Library" / "Fonts")))

# ---------------------------------------------------------------------------
# Caption style defaults
# ---------------------------------------------------------------------------

FONT_FAMILY = os.getenv("FONT_FAMILY", "Lilita One")
"""Internal family name of the font, as libass resolves it."""

FONT_FILE = os.getenv("FONT_FILE", "LilitaOne-Regular.ttf")
"""Font file that must exist inside FONTS_DIR before a job may start."""

FONT_SIZE = int(os.getenv("FONT_SIZE", "36"))

DEFAULT_ACTIVE_COLOR = os.getenv("DEFAULT_ACTIVE_COLOR", "&H00FF00")
"""Highlight colour for the active word (ASS &HBBGGRR notation, green)."""

# ---------------------------------------------------------------------------
# External tools and job bookkeeping
# ---------------------------------------------------------------------------

FFMPEG_BINARY = os.getenv("FFMPEG_BINARY", "ffmpeg")
JOB_TTL_SECONDS = int(os.getenv("JOB_TTL_SECONDS", "3600"))
MAX_JOBS = int(os.getenv("MAX_JOBS", "100"))

LOG_FORMAT = "[%(levelname)s] %(name)s: %(message)s"


@dataclass
class Settings:
    """Resolved configuration for one service or CLI run."""

    uploads_dir: Path = UPLOADS_DIR
    outputs_dir: Path = OUTPUTS_DIR
    fonts_dir: Path = FONTS_DIR
    font_family: str = FONT_FAMILY
    font_file: str = FONT_FILE
    font_size: int = FONT_SIZE
    default_active_color: str = DEFAULT_ACTIVE_COLOR
    ffmpeg_binary: str = FFMPEG_BINARY
    job_ttl_seconds: int = JOB_TTL_SECONDS
    max_jobs: int = MAX_JOBS

    @property
    def font_path(self) -> Path:
        return self.fonts_dir / self.font_file


def load_settings() -> Settings:
    """Build Settings from the module defaults (already env-resolved)."""
    return Settings()


def ensure_directories(settings: Settings) -> None:
    """Create the uploads, outputs, and fonts directories if missing."""
    for directory in (settings.uploads_dir, settings.outputs_dir, settings.fonts_dir):
        directory.mkdir(parents=True, exist_ok=True)


def configure_logging(level: int = logging.INFO) -> None:
    """Install the service log format on the root logger.

    Called by the CLI and the API entry point only; library code just
    uses ``logging.getLogger(__name__)``.
    """
    logging.basicConfig(level=level, format=LOG_FORMAT)
