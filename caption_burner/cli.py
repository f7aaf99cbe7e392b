"""Command-line interface for Caption Burner.

WHY: The same compiler and FFmpeg pipeline the API uses is handy from a
terminal: preview the ASS track a caption file produces, burn captions
into a local video without running a server, or start the API itself.

HOW: argparse with three subcommands:
  compile - caption JSON → ASS script (file or stdout)
  burn    - video + caption JSON → processed video, via run_burn_job()
  serve   - start the FastAPI app with uvicorn

RULES:
- Status messages go to stderr; only ``compile`` without -o writes stdout
- Validation, font, and FFmpeg errors print "Error: ..." and exit 1
- Defaults for font and colour come from caption_burner.config
"""

from __future__ import annotations

import argparse
import asyncio
import logging
import sys
from pathlib import Path
from typing import List, NoReturn, Optional

from caption_burner.config import (
    DEFAULT_ACTIVE_COLOR,
    FFMPEG_BINARY,
    FONT_FAMILY,
    FONT_FILE,
    FONT_SIZE,
    FONTS_DIR,
    HOST,
    PORT,
    configure_logging,
)
from caption_burner.core.compiler import compile_track
from caption_burner.core.ir import TrackStyle
from caption_burner.core.validation import CaptionValidationError, load_captions
from caption_burner.pipeline import FontNotFoundError, resolve_font, run_burn_job
from caption_burner.server.jobs import JobStore
from caption_burner.transcode import TranscodeError


def _status(msg: str) -> None:
    """Print a status message to stderr so stdout stays pipeable."""
    print(msg, file=sys.stderr, flush=True)


def _fail(msg: str) -> NoReturn:
    print("Error: {}".format(msg), file=sys.stderr)
    sys.exit(1)


# ---------------------------------------------------------------------------
# Subcommands
# ---------------------------------------------------------------------------


def _cmd_compile(args: argparse.Namespace) -> None:
    try:
        spans = load_captions(Path(args.captions))
        track = compile_track(
            spans,
            font_family=args.font,
            active_color=args.color,
            font_size=args.font_size,
            escape=args.escape,
        )
    except (CaptionValidationError, OSError) as exc:
        _fail(str(exc))

    if args.output:
        Path(args.output).write_text(track, encoding="utf-8")
        _status("Wrote {} ({} captions)".format(args.output, len(spans)))
    else:
        sys.stdout.write(track)


async def _burn(args: argparse.Namespace) -> Path:
    video_path = Path(args.video)
    if not video_path.is_file():
        raise FileNotFoundError("Video file not found: {}".format(video_path))

    spans = load_captions(Path(args.captions))
    fonts_dir = Path(args.fonts_dir)
    resolve_font(fonts_dir, args.font_file, args.font)

    output = Path(args.output) if args.output else video_path.with_name(
        "{}-captioned.mp4".format(video_path.stem)
    )
    style = TrackStyle(font_family=args.font, active_color=args.color, font_size=args.font_size)

    store = JobStore()
    job = store.create_job(video_path.name, config={"active_color": args.color})
    _status("Burning {} captions into {}...".format(len(spans), video_path.name))
    produced = await run_burn_job(
        job.id,
        store,
        video_path=video_path,
        spans=spans,
        style=style,
        outputs_dir=output.parent,
        fonts_dir=fonts_dir,
        ffmpeg_binary=args.ffmpeg,
    )
    produced.replace(output)
    return output


def _cmd_burn(args: argparse.Namespace) -> None:
    try:
        output = asyncio.run(_burn(args))
    except (CaptionValidationError, FontNotFoundError, TranscodeError, OSError) as exc:
        _fail(str(exc))
    _status("Saved: {}".format(output))


def _cmd_serve(args: argparse.Namespace) -> None:
    from caption_burner.server.app import run_api

    run_api(host=args.host, port=args.port)


# ---------------------------------------------------------------------------
# Parser
# ---------------------------------------------------------------------------


def _add_style_arguments(parser: argparse.ArgumentParser) -> None:
    parser.add_argument(
        "--font",
        default=FONT_FAMILY,
        help="Font family name used in the subtitle styles (default: %(default)s).",
    )
    parser.add_argument(
        "--font-size",
        type=int,
        default=FONT_SIZE,
        help="Font size for both styles (default: %(default)s).",
    )
    parser.add_argument(
        "--color",
        default=DEFAULT_ACTIVE_COLOR,
        help="ASS colour of the highlighted word (default: %(default)s).",
    )


def build_parser() -> argparse.ArgumentParser:
    """Build the argparse parser; separate from main() so tests can inspect it."""
    parser = argparse.ArgumentParser(
        prog="caption-burner",
        description="Burn word-by-word highlighted captions into videos.",
    )
    parser.add_argument(
        "-v", "--verbose",
        action="store_true",
        help="Log FFmpeg output and debug messages.",
    )
    subparsers = parser.add_subparsers(dest="command", required=True)

    compile_parser = subparsers.add_parser(
        "compile",
        help="Compile a caption JSON file into an ASS subtitle track.",
    )
    compile_parser.add_argument("captions", help="Caption JSON file.")
    compile_parser.add_argument(
        "-o", "--output",
        default=None,
        help="Write the track here instead of stdout.",
    )
    compile_parser.add_argument(
        "--no-escape",
        dest="escape",
        action="store_false",
        help="Do not escape backslashes and braces in caption text.",
    )
    _add_style_arguments(compile_parser)
    compile_parser.set_defaults(handler=_cmd_compile)

    burn_parser = subparsers.add_parser(
        "burn",
        help="Burn captions into a local video with FFmpeg.",
    )
    burn_parser.add_argument("video", help="Input video file.")
    burn_parser.add_argument("captions", help="Caption JSON file.")
    burn_parser.add_argument(
        "-o", "--output",
        default=None,
        help="Output video path (default: <video>-captioned.mp4 next to the input).",
    )
    burn_parser.add_argument(
        "--fonts-dir",
        default=str(FONTS_DIR),
        help="Directory holding the caption font (default: %(default)s).",
    )
    burn_parser.add_argument(
        "--font-file",
        default=FONT_FILE,
        help="Font file that must exist in --fonts-dir (default: %(default)s).",
    )
    burn_parser.add_argument(
        "--ffmpeg",
        default=FFMPEG_BINARY,
        help="FFmpeg binary to run (default: %(default)s).",
    )
    _add_style_arguments(burn_parser)
    burn_parser.set_defaults(handler=_cmd_burn)

    serve_parser = subparsers.add_parser("serve", help="Run the HTTP API.")
    serve_parser.add_argument("--host", default=HOST, help="Bind address (default: %(default)s).")
    serve_parser.add_argument("--port", type=int, default=PORT, help="Port (default: %(default)s).")
    serve_parser.set_defaults(handler=_cmd_serve)

    return parser


def main(argv: Optional[List[str]] = None) -> None:
    """Entry point for ``caption-burner`` and ``python -m caption_burner``.

    argv=None means use sys.argv; explicit argv is for testing.
    """
    parser = build_parser()
    args = parser.parse_args(argv)
    if args.command != "serve":
        configure_logging(logging.DEBUG if args.verbose else logging.WARNING)
    args.handler(args)


if __name__ == "__main__":
    main()
