"""Tests for the FFmpeg command builder and the Transcode state machine.

HOW: asyncio.create_subprocess_exec and shutil.which are monkeypatched;
the fake process exposes a real asyncio.StreamReader for stderr so the
line-streaming loop runs unchanged. Coroutines are driven with
asyncio.run() from synchronous tests.
"""

from __future__ import annotations

import asyncio
from pathlib import Path

import pytest

from caption_burner import transcode
from caption_burner.transcode import (
    Transcode,
    TranscodeError,
    TranscodeState,
    build_burn_command,
    burn_subtitles,
)


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


class _FakeProcess:
    def __init__(self, stderr_lines, returncode):
        # Created inside the running loop by the fake exec below
        self.stderr = asyncio.StreamReader()
        for line in stderr_lines:
            self.stderr.feed_data(line)
        self.stderr.feed_eof()
        self._returncode = returncode

    async def wait(self):
        return self._returncode


@pytest.fixture
def fake_ffmpeg(monkeypatch):
    """Install a fake FFmpeg; returns a dict to configure and inspect it."""
    state = {"stderr": [], "returncode": 0, "calls": [], "start_error": None}

    async def _fake_exec(*args, **kwargs):
        state["calls"].append(list(args))
        if state["start_error"] is not None:
            raise state["start_error"]
        return _FakeProcess(state["stderr"], state["returncode"])

    monkeypatch.setattr(transcode.asyncio, "create_subprocess_exec", _fake_exec)
    monkeypatch.setattr(transcode.shutil, "which", lambda name: "/usr/bin/" + name)
    return state


# ---------------------------------------------------------------------------
# TestBuildBurnCommand
# ---------------------------------------------------------------------------


class TestBuildBurnCommand:

    def test_basic_command(self):
        cmd = build_burn_command(Path("in.mp4"), Path("/tmp/job/captions.ass"), Path("out.mp4"))
        assert cmd == [
            "ffmpeg", "-y", "-nostdin",
            "-i", "in.mp4",
            "-vf", "ass=filename=/tmp/job/captions.ass",
            "out.mp4",
        ]

    def test_fonts_dir_added(self):
        cmd = build_burn_command(
            Path("in.mp4"), Path("/tmp/captions.ass"), Path("out.mp4"),
            fonts_dir=Path("/srv/Library/Fonts"),
        )
        assert cmd[cmd.index("-vf") + 1] == "ass=filename=/tmp/captions.ass:fontsdir=/srv/Library/Fonts"

    def test_filter_special_characters_escaped(self):
        cmd = build_burn_command(Path("in.mp4"), Path("/tmp/a:b,c's.ass"), Path("out.mp4"))
        assert cmd[cmd.index("-vf") + 1] == "ass=filename=/tmp/a\\:b\\,c\\'s.ass"

    def test_custom_binary(self):
        cmd = build_burn_command(Path("a"), Path("b"), Path("c"), ffmpeg_binary="/opt/ffmpeg")
        assert cmd[0] == "/opt/ffmpeg"


# ---------------------------------------------------------------------------
# TestTranscode
# ---------------------------------------------------------------------------


class TestTranscode:

    def test_starts_pending(self):
        assert Transcode(["ffmpeg"]).state == TranscodeState.PENDING

    def test_success_streams_stderr_and_succeeds(self, fake_ffmpeg):
        fake_ffmpeg["stderr"] = [b"frame=1\n", b"frame=2\n"]
        started, lines = [], []
        job = Transcode(["ffmpeg", "-i", "x"], on_start=started.append, on_stderr=lines.append)

        asyncio.run(job.run())

        assert job.state == TranscodeState.SUCCEEDED
        assert job.returncode == 0
        assert started == ["ffmpeg -i x"]
        assert lines == ["frame=1", "frame=2"]
        assert fake_ffmpeg["calls"] == [["ffmpeg", "-i", "x"]]

    def test_nonzero_exit_fails_with_stderr_tail(self, fake_ffmpeg):
        fake_ffmpeg["stderr"] = [b"Invalid data found when processing input\n"]
        fake_ffmpeg["returncode"] = 1
        job = Transcode(["ffmpeg"])

        with pytest.raises(TranscodeError) as excinfo:
            asyncio.run(job.run())

        assert job.state == TranscodeState.FAILED
        assert excinfo.value.returncode == 1
        assert "Invalid data" in excinfo.value.stderr_tail
        assert "status 1" in job.error

    def test_missing_binary_fails_before_launch(self, fake_ffmpeg, monkeypatch):
        monkeypatch.setattr(transcode.shutil, "which", lambda name: None)
        job = Transcode(["ffmpeg"])

        with pytest.raises(TranscodeError, match="not found"):
            asyncio.run(job.run())

        assert job.state == TranscodeState.FAILED
        assert fake_ffmpeg["calls"] == []

    def test_launch_error_fails(self, fake_ffmpeg):
        fake_ffmpeg["start_error"] = PermissionError("denied")
        job = Transcode(["ffmpeg"])

        with pytest.raises(TranscodeError, match="Could not start"):
            asyncio.run(job.run())

        assert job.state == TranscodeState.FAILED

    def test_cannot_run_twice(self, fake_ffmpeg):
        job = Transcode(["ffmpeg"])
        asyncio.run(job.run())

        with pytest.raises(TranscodeError, match="already succeeded"):
            asyncio.run(job.run())

        assert job.state == TranscodeState.SUCCEEDED
        assert len(fake_ffmpeg["calls"]) == 1

    def test_stderr_tail_is_bounded(self, fake_ffmpeg):
        fake_ffmpeg["stderr"] = [("line %d\n" % i).encode() for i in range(50)]
        job = Transcode(["ffmpeg"])
        asyncio.run(job.run())
        tail = job.stderr_tail.splitlines()
        assert len(tail) == transcode.STDERR_TAIL_LINES
        assert tail[-1] == "line 49"


def test_burn_subtitles_returns_output_path(fake_ffmpeg, tmp_path):
    output = tmp_path / "out.mp4"
    result = asyncio.run(burn_subtitles(tmp_path / "in.mp4", tmp_path / "c.ass", output))
    assert result == output
    assert fake_ffmpeg["calls"][0][-1] == str(output)
