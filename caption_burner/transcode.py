"""FFmpeg subtitle burn-in as an explicit asynchronous task.

WHY: Burning an ASS track into video is FFmpeg's job. A transcode can run
for minutes, must not block the API's event loop, and its progress
(start, diagnostic stderr stream, terminal success or failure) needs to
be observable by the caller and the logs.

HOW: build_burn_command() assembles the argv. A Transcode object owns one
FFmpeg process started with asyncio.create_subprocess_exec; run() moves
it through PENDING → RUNNING → SUCCEEDED | FAILED, forwarding each stderr
line to an optional callback and the module logger. burn_subtitles() is
the one-call convenience wrapper.

RULES:
- The ASS path in the ``-vf`` argument is exactly the path given
- Filter option values are escaped for FFmpeg's filtergraph syntax
- A missing FFmpeg binary fails before any process is started
- Non-zero exit → FAILED, TranscodeError carrying the stderr tail
- No timeout, no cancellation, no retries
"""

from __future__ import annotations

import asyncio
import collections
import enum
import logging
import shutil
from pathlib import Path
from typing import Callable, Deque, Dict, FrozenSet, List, Optional

logger = logging.getLogger(__name__)

STDERR_TAIL_LINES = 20


class TranscodeError(RuntimeError):
    """Raised when FFmpeg cannot be started or exits with an error."""

    def __init__(self, message: str, returncode: Optional[int] = None, stderr_tail: str = "") -> None:
        super().__init__(message)
        self.returncode = returncode
        self.stderr_tail = stderr_tail


class TranscodeState(str, enum.Enum):
    """Lifecycle of one FFmpeg invocation."""

    PENDING = "pending"
    RUNNING = "running"
    SUCCEEDED = "succeeded"
    FAILED = "failed"


_TRANSITIONS: Dict[TranscodeState, FrozenSet[TranscodeState]] = {
    TranscodeState.PENDING: frozenset({TranscodeState.RUNNING, TranscodeState.FAILED}),
    TranscodeState.RUNNING: frozenset({TranscodeState.SUCCEEDED, TranscodeState.FAILED}),
    TranscodeState.SUCCEEDED: frozenset(),
    TranscodeState.FAILED: frozenset(),
}


def _escape_filter_value(value: str) -> str:
    """Escape a filter option value for an FFmpeg ``-vf`` graph."""
    for ch in ("\\", ":", "'", ",", ";", "[", "]"):
        value = value.replace(ch, "\\" + ch)
    return value


def build_burn_command(
    video_path: Path,
    subtitle_path: Path,
    output_path: Path,
    fonts_dir: Optional[Path] = None,
    ffmpeg_binary: str = "ffmpeg",
) -> List[str]:
    """Build the FFmpeg argv that overlays an ASS track onto a video.

    ``fontsdir`` is added when given so libass finds the caption font
    without it being installed system-wide.
    """
    vf = "ass=filename={}".format(_escape_filter_value(str(subtitle_path)))
    if fonts_dir is not None:
        vf += ":fontsdir={}".format(_escape_filter_value(str(fonts_dir)))
    return [
        ffmpeg_binary,
        "-y",
        "-nostdin",
        "-i", str(video_path),
        "-vf", vf,
        str(output_path),
    ]


class Transcode:
    """One FFmpeg burn-in run with an observable state machine.

    Attributes:
        command: Full argv passed to the process.
        state: Current TranscodeState.
        returncode: FFmpeg exit status once finished, else None.
        error: Failure message when state is FAILED, else None.
    """

    def __init__(
        self,
        command: List[str],
        on_start: Optional[Callable[[str], None]] = None,
        on_stderr: Optional[Callable[[str], None]] = None,
    ) -> None:
        self.command = command
        self.state = TranscodeState.PENDING
        self.returncode: Optional[int] = None
        self.error: Optional[str] = None
        self._on_start = on_start
        self._on_stderr = on_stderr
        self._tail: Deque[str] = collections.deque(maxlen=STDERR_TAIL_LINES)

    @property
    def stderr_tail(self) -> str:
        return "\n".join(self._tail)

    def _transition(self, new_state: TranscodeState) -> None:
        if new_state not in _TRANSITIONS[self.state]:
            raise TranscodeError(
                "Illegal transcode transition {} -> {}".format(self.state.value, new_state.value)
            )
        self.state = new_state

    def _fail(self, message: str) -> TranscodeError:
        self._transition(TranscodeState.FAILED)
        self.error = message
        logger.error("Error during FFmpeg processing: %s", message)
        return TranscodeError(message, returncode=self.returncode, stderr_tail=self.stderr_tail)

    async def run(self) -> None:
        """Start FFmpeg and wait for it to exit.

        Raises:
            TranscodeError: If the transcode was already run, the binary
                is missing, the process cannot be started, or it exits
                non-zero.
        """
        if self.state is not TranscodeState.PENDING:
            raise TranscodeError("Transcode already {}".format(self.state.value))

        binary = self.command[0]
        if shutil.which(binary) is None:
            raise self._fail("FFmpeg binary '{}' was not found on PATH".format(binary))

        try:
            process = await asyncio.create_subprocess_exec(
                *self.command,
                stdin=asyncio.subprocess.DEVNULL,
                stdout=asyncio.subprocess.DEVNULL,
                stderr=asyncio.subprocess.PIPE,
            )
        except OSError as exc:
            raise self._fail("Could not start FFmpeg: {}".format(exc)) from exc

        self._transition(TranscodeState.RUNNING)
        command_line = " ".join(self.command)
        logger.info("FFmpeg command: %s", command_line)
        if self._on_start is not None:
            self._on_start(command_line)

        while True:
            raw = await process.stderr.readline()
            if not raw:
                break
            line = raw.decode("utf-8", errors="replace").rstrip()
            self._tail.append(line)
            logger.debug("FFmpeg stderr: %s", line)
            if self._on_stderr is not None:
                self._on_stderr(line)

        self.returncode = await process.wait()
        if self.returncode != 0:
            raise self._fail("FFmpeg exited with status {}".format(self.returncode))

        self._transition(TranscodeState.SUCCEEDED)


async def burn_subtitles(
    video_path: Path,
    subtitle_path: Path,
    output_path: Path,
    fonts_dir: Optional[Path] = None,
    ffmpeg_binary: str = "ffmpeg",
    on_start: Optional[Callable[[str], None]] = None,
    on_stderr: Optional[Callable[[str], None]] = None,
) -> Path:
    """Overlay ``subtitle_path`` onto ``video_path`` and write ``output_path``.

    Returns:
        The output path once FFmpeg has exited successfully.

    Raises:
        TranscodeError: On any FFmpeg failure.
    """
    command = build_burn_command(video_path, subtitle_path, output_path, fonts_dir, ffmpeg_binary)
    transcode = Transcode(command, on_start=on_start, on_stderr=on_stderr)
    await transcode.run()
    logger.info("Video processed successfully. Output file: %s", output_path)
    return Path(output_path)
