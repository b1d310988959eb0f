from __future__ import annotations

"""
Transcoder process runner
-------------------------
Narrow seam around the external `ffmpeg` invocation so the orchestrator can
be exercised with a fake.

- `build_hls_args` produces the fixed HLS command line.
- `FFmpegRunner.run(args, timeout=...)` spawns the process, waits with a
  timeout and kills it on expiry. The exit status is the only success signal.
"""

import asyncio
import logging
from dataclasses import dataclass
from pathlib import Path
from typing import List, Optional, Protocol, Sequence

from placeus.core.storage import MANIFEST_NAME, SEGMENT_PATTERN

logger = logging.getLogger(__name__)

HLS_SEGMENT_SECONDS = 10
_STDERR_TAIL = 2000


@dataclass
class RunResult:
    returncode: Optional[int]
    stderr: str = ""
    timed_out: bool = False

    @property
    def ok(self) -> bool:
        return not self.timed_out and self.returncode == 0


class ProcessRunner(Protocol):
    async def run(self, args: Sequence[str], *, timeout: Optional[float] = None) -> RunResult: ...


def build_hls_args(binary: str, input_path: Path, out_dir: Path) -> List[str]:
    """VOD HLS: H.264 video, AAC audio, 10s segments numbered from 0."""
    return [
        binary,
        "-i", str(input_path),
        "-codec:v", "libx264",
        "-codec:a", "aac",
        "-hls_time", str(HLS_SEGMENT_SECONDS),
        "-hls_playlist_type", "vod",
        "-hls_segment_filename", str(out_dir / SEGMENT_PATTERN),
        "-start_number", "0",
        str(out_dir / MANIFEST_NAME),
    ]


class FFmpegRunner:
    """Runs the transcoder as a child process."""

    async def run(self, args: Sequence[str], *, timeout: Optional[float] = None) -> RunResult:
        try:
            proc = await asyncio.create_subprocess_exec(
                *args,
                stdin=asyncio.subprocess.DEVNULL,
                stdout=asyncio.subprocess.DEVNULL,
                stderr=asyncio.subprocess.PIPE,
            )
        except OSError as e:
            logger.error("Failed to spawn %s: %s", args[0] if args else "<empty>", e)
            return RunResult(returncode=None, stderr=str(e))

        try:
            _, stderr = await asyncio.wait_for(proc.communicate(), timeout=timeout)
        except asyncio.TimeoutError:
            proc.kill()
            await proc.wait()
            logger.warning("Transcoder killed after %.0fs timeout", timeout or 0)
            return RunResult(returncode=proc.returncode, timed_out=True)
        except asyncio.CancelledError:
            proc.kill()
            await proc.wait()
            raise

        tail = (stderr or b"").decode("utf-8", errors="ignore")[-_STDERR_TAIL:]
        return RunResult(returncode=proc.returncode, stderr=tail)


__all__ = ["RunResult", "ProcessRunner", "FFmpegRunner", "build_hls_args", "HLS_SEGMENT_SECONDS"]
