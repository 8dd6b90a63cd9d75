"""Shared test fixtures for MediaForge.

External tools are replaced by small executable Python scripts written into
``tmp_path``. Their behaviour is tuned through environment variables so a
test can change it with ``monkeypatch.setenv``:

- FAKE_TOOL_DELAY: seconds between progress lines (default 0.02)
- FAKE_TOOL_COUNTER: file counting invocations (flaky tools)
- FAKE_TOOL_FAILS: number of failing invocations before success (default 2)
- FAKE_TOOL_PIDFILE: file the stubborn tool writes its pid to
"""

import asyncio
import os
import stat
import sys
import textwrap
import threading
from pathlib import Path

import pytest

from mediaforge.config.models import JobsConfig, ToolPathsConfig
from mediaforge.tools.models import ToolInfo, ToolRegistry, ToolStatus

_SHEBANG = (
    f"#!{sys.executable}" if len(sys.executable) < 120 else "#!/usr/bin/env python3"
)

_PRELUDE = """
import os
import signal
import sys
import time

DELAY = float(os.environ.get("FAKE_TOOL_DELAY", "0.02"))
args = sys.argv[1:]
if args and args[0] in ("--version", "-version"):
    print("ffmpeg version 6.1.1 Copyright (c) 2000-2023" if args[0] == "-version"
          else "2024.08.06")
    sys.exit(0)
"""

YTDLP_OK = """
out_dir = os.path.dirname(args[args.index("-o") + 1])
dest = os.path.join(out_dir, "Sample Video.mp4")
print(f"[download] Destination: {dest}", flush=True)
for pct in (10.0, 45.5, 80.0, 100.0):
    print(f"[download]  {pct:5.1f}% of 10.00MiB at 1.00MiB/s ETA 00:05", flush=True)
    time.sleep(DELAY)
with open(dest, "w") as f:
    f.write("video")
"""

YTDLP_FLAKY = """
counter = os.environ["FAKE_TOOL_COUNTER"]
fails = int(os.environ.get("FAKE_TOOL_FAILS", "2"))
count = int(open(counter).read()) if os.path.exists(counter) else 0
count += 1
with open(counter, "w") as f:
    f.write(str(count))

out_dir = os.path.dirname(args[args.index("-o") + 1])
dest = os.path.join(out_dir, "Flaky Video.mp4")
print(f"[download] Destination: {dest}", flush=True)
print("[download]  20.0% of 5.00MiB at 1.00MiB/s ETA 00:04", flush=True)
if count <= fails:
    with open(dest + ".part", "w") as f:
        f.write("partial")
    print("ERROR: unable to download video data: HTTP Error 503", file=sys.stderr)
    sys.exit(1)
print("[download] 100.0% of 5.00MiB at 1.00MiB/s ETA 00:00", flush=True)
with open(dest, "w") as f:
    f.write("video")
"""

YTDLP_FAIL = """
out_dir = os.path.dirname(args[args.index("-o") + 1])
dest = os.path.join(out_dir, "Broken Video.mp4")
print(f"[download] Destination: {dest}", flush=True)
with open(dest + ".part", "w") as f:
    f.write("partial")
print("ERROR: Unsupported URL", file=sys.stderr)
sys.exit(1)
"""

YTDLP_DISK_FULL = """
print("ERROR: unable to write data: [Errno 28] No space left on device",
      file=sys.stderr)
sys.exit(1)
"""

YTDLP_SLOW = """
out_dir = os.path.dirname(args[args.index("-o") + 1])
url = args[-1]
dest = os.path.join(out_dir, url.rstrip("/").rsplit("/", 1)[-1] + ".mp4")
print(f"[download] Destination: {dest}", flush=True)
for step in range(1, 11):
    print(f"[download]  {step * 10:5.1f}% of 1.00MiB at 1.00MiB/s ETA 00:01",
          flush=True)
    time.sleep(DELAY)
with open(dest, "w") as f:
    f.write("video")
"""

YTDLP_STUBBORN = """
signal.signal(signal.SIGTERM, signal.SIG_IGN)
with open(os.environ["FAKE_TOOL_PIDFILE"], "w") as f:
    f.write(str(os.getpid()))
print("[download]   1.0% of 100.00MiB at 1.00MiB/s ETA 01:39", flush=True)
while True:
    time.sleep(0.1)
"""

FFMPEG_OK = """
out = args[-1]
if not os.environ.get("FAKE_FFMPEG_NO_DURATION"):
    print("  Duration: 00:01:00.00, start: 0.000000, bitrate: 128 kb/s",
          file=sys.stderr, flush=True)
    time.sleep(0.1)
for micros in (15_000_000, 30_000_000, 60_000_000):
    print(f"out_time_us={micros}")
    print("speed=2.0x")
    print("progress=continue", flush=True)
    time.sleep(DELAY)
print("progress=end", flush=True)
with open(out, "w") as f:
    f.write("converted")
"""

FFMPEG_FAIL = """
out = args[-1]
with open(out, "w") as f:
    f.write("half")
print("  Duration: 00:01:00.00, start: 0.000000, bitrate: 128 kb/s",
      file=sys.stderr)
print("Error while decoding stream #0:0: Invalid data found when processing input",
      file=sys.stderr)
sys.exit(1)
"""


FAKE_TOOLS = {
    "ytdlp": YTDLP_OK,
    "ytdlp_flaky": YTDLP_FLAKY,
    "ytdlp_fail": YTDLP_FAIL,
    "ytdlp_disk_full": YTDLP_DISK_FULL,
    "ytdlp_slow": YTDLP_SLOW,
    "ytdlp_stubborn": YTDLP_STUBBORN,
    "ffmpeg": FFMPEG_OK,
    "ffmpeg_fail": FFMPEG_FAIL,
}


def write_tool(directory: Path, name: str, body: str) -> Path:
    """Write an executable fake tool script and return its path."""
    directory.mkdir(parents=True, exist_ok=True)
    path = directory / name
    path.write_text(_SHEBANG + "\n" + _PRELUDE + textwrap.dedent(body))
    path.chmod(path.stat().st_mode | stat.S_IXUSR | stat.S_IXGRP | stat.S_IXOTH)
    return path


@pytest.fixture
def tool_factory(tmp_path: Path):
    """Return a function writing a fake tool into tmp_path/bin.

    ``make("yt-dlp", "ytdlp_flaky")`` writes the flaky downloader under the
    name yt-dlp; behaviours are the keys of FAKE_TOOLS.
    """

    def make(name: str, behaviour: str) -> Path:
        return write_tool(tmp_path / "bin", name, FAKE_TOOLS[behaviour])

    return make


@pytest.fixture
def output_dir(tmp_path: Path) -> Path:
    path = tmp_path / "out"
    path.mkdir()
    return path


@pytest.fixture
def fast_jobs_config() -> JobsConfig:
    """JobsConfig with timing constants shrunk for tests."""
    return JobsConfig(
        fetch_concurrency=3,
        transcode_concurrency=2,
        fetch_timeout_seconds=30.0,
        transcode_timeout_seconds=30.0,
        cancel_grace_seconds=0.5,
        fetch_max_attempts=3,
        retry_backoff_seconds=0.05,
        min_free_space_mb=0,
        notify_interval_seconds=0,
    )


@pytest.fixture
def fake_tools(tool_factory) -> ToolPathsConfig:
    """ToolPathsConfig pointing at well-behaved fake yt-dlp and ffmpeg."""
    return ToolPathsConfig(
        ytdlp=tool_factory("yt-dlp", "ytdlp"),
        ffmpeg=tool_factory("ffmpeg", "ffmpeg"),
    )


@pytest.fixture
def input_video(tmp_path: Path) -> Path:
    path = tmp_path / "media" / "clip.mkv"
    path.parent.mkdir()
    path.write_bytes(b"\x1a\x45\xdf\xa3 not really matroska")
    return path


class RecordingNotifier:
    """Notifier that keeps every snapshot it receives."""

    def __init__(self) -> None:
        self.snapshots = []
        self._lock = threading.Lock()

    def notify(self, snapshot) -> None:
        with self._lock:
            self.snapshots.append(snapshot)

    def for_task(self, task_id: str) -> list:
        with self._lock:
            return [s for s in self.snapshots if s.id == task_id]


@pytest.fixture
def recorder() -> RecordingNotifier:
    return RecordingNotifier()


def pid_alive(pid: int) -> bool:
    try:
        os.kill(pid, 0)
    except ProcessLookupError:
        return False
    except PermissionError:
        return True
    return True


@pytest.fixture
def is_alive():
    """Return a function telling whether a pid still exists."""
    return pid_alive


async def _wait_until(predicate, timeout: float = 10.0, interval: float = 0.02):
    loop = asyncio.get_running_loop()
    deadline = loop.time() + timeout
    while not predicate():
        if loop.time() > deadline:
            raise AssertionError(f"Condition not met within {timeout}s")
        await asyncio.sleep(interval)


@pytest.fixture
def wait_until():
    """Return a coroutine function polling ``predicate`` until it is true."""
    return _wait_until


@pytest.fixture
def available_tools(fake_tools: ToolPathsConfig) -> ToolRegistry:
    """ToolRegistry reporting both fake tools as available."""
    return ToolRegistry(
        ytdlp=ToolInfo(
            name="yt-dlp",
            path=fake_tools.ytdlp,
            version="2024.08.06",
            status=ToolStatus.AVAILABLE,
        ),
        ffmpeg=ToolInfo(
            name="ffmpeg",
            path=fake_tools.ffmpeg,
            version="6.1.1",
            status=ToolStatus.AVAILABLE,
        ),
    )
