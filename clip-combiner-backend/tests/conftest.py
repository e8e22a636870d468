"""Shared test fixtures for the clip combiner tests."""

import sys
import textwrap

import pytest

from services import FFmpegCompositor, create_service


FAKE_FFMPEG = textwrap.dedent('''
    import os
    import sys
    import time

    MODE = {mode!r}
    LOG = {log!r}
    DELAY = {delay!r}

    args = sys.argv[1:]
    output = [a for a in args if not a.startswith("-")][-1]
    inputs = [args[i + 1] for i, a in enumerate(args) if a == "-i"]
    name = os.path.basename(output)

    with open(LOG, "a") as fh:
        fh.write(f"start {{name}} {{time.monotonic()}} {{os.getpid()}}\\n")

    if MODE == "hang":
        time.sleep(60)
    time.sleep(DELAY)

    if MODE == "fail":
        with open(output, "wb") as fh:
            fh.write(b"partial")
        sys.stderr.write("Input #0, mov,mp4\\rframe=1\\nConversion failed!\\n")
        code = 1
    elif MODE == "empty":
        open(output, "wb").close()
        code = 0
    else:
        with open(output, "wb") as fh:
            for path in inputs:
                with open(path, "rb") as src:
                    fh.write(src.read())
        code = 0

    with open(LOG, "a") as fh:
        fh.write(f"end {{name}} {{time.monotonic()}} {{os.getpid()}}\\n")
    sys.exit(code)
''')


class FakeFFmpeg:
    """A stand-in ffmpeg binary that records every invocation to a log file."""

    def __init__(self, tmp_path):
        self.tmp_path = tmp_path
        self.log = tmp_path / "ffmpeg.log"
        self.log.touch()

    def command(self, mode="ok", delay=0.0):
        script = self.tmp_path / f"fake_ffmpeg_{mode}.py"
        script.write_text(FAKE_FFMPEG.format(mode=mode, log=str(self.log), delay=delay))
        return [sys.executable, str(script)]

    def compositor(self, mode="ok", delay=0.0, timeout=30):
        return FFmpegCompositor(ffmpeg_cmd=self.command(mode, delay), timeout=timeout)

    def events(self):
        """Parsed log lines: (event, output name, timestamp, pid)."""
        rows = []
        for line in self.log.read_text().splitlines():
            event, name, stamp, pid = line.split()
            rows.append((event, name, float(stamp), int(pid)))
        return rows


@pytest.fixture
def fake_ffmpeg(tmp_path):
    return FakeFFmpeg(tmp_path)


@pytest.fixture
def make_clip(tmp_path):
    """Writes a small placeholder clip and returns its path as a string."""
    clips_dir = tmp_path / "clips"
    clips_dir.mkdir()

    def _make(name, content=b"clip"):
        path = clips_dir / name
        path.write_bytes(content)
        return str(path)

    return _make


@pytest.fixture
def make_service(tmp_path, fake_ffmpeg):
    """Builds a service on a fresh in-memory database and the fake ffmpeg."""

    def _make(mode="ok", delay=0.0, timeout=30):
        return create_service(
            database_url="sqlite://",
            combinations_dir=str(tmp_path / "combinations"),
            compositor=fake_ffmpeg.compositor(mode, delay, timeout),
        )

    return _make
