from __future__ import annotations

"""
Transcode orchestrator
======================

One run per uploaded item:

1. acquire `<scratch_root>/<lesson_id>` (removed on every exit path)
2. materialize the source (handed-over bytes, or a download of `media_key`)
3. run the transcoder with the fixed HLS arguments
4. upload every output file to `<prefix>/<lesson_id>/<filename>` concurrently

Failures
--------
- Non-zero exit, spawn failure, timeout, or an empty output directory raise
  `TranscodeError`. These are not retried by the worker pool.
- Storage failures surface as `S3StorageError` and may be retried.
"""

import asyncio
import logging
import shutil
from contextlib import asynccontextmanager
from pathlib import Path
from typing import AsyncIterator, Dict, List, Optional

import anyio

from placeus.core.storage import MediaLayout, safe_extension
from placeus.services.object_store import ObjectStoreProtocol
from placeus.services.transcode.runner import ProcessRunner, build_hls_args

logger = logging.getLogger(__name__)

_CONTENT_TYPES: Dict[str, str] = {
    ".m3u8": "application/vnd.apple.mpegurl",
    ".ts": "video/mp2t",
}
_OUTPUT_DIR = "hls"


class TranscodeError(RuntimeError):
    """The transcoder did not produce a usable segment set."""


def content_type_for(path: Path) -> str:
    return _CONTENT_TYPES.get(path.suffix.lower(), "application/octet-stream")


@asynccontextmanager
async def scratch_dir(root: Path, lesson_id: str) -> AsyncIterator[Path]:
    """Fresh per-item working directory, removed however the block exits."""
    work = Path(root) / lesson_id
    await anyio.to_thread.run_sync(lambda: shutil.rmtree(work, ignore_errors=True))
    await anyio.to_thread.run_sync(lambda: work.mkdir(parents=True, exist_ok=True))
    try:
        yield work
    finally:
        await anyio.to_thread.run_sync(lambda: shutil.rmtree(work, ignore_errors=True))
        logger.debug("Removed scratch dir %s", work)


class TranscodeOrchestrator:
    def __init__(
        self,
        store: ObjectStoreProtocol,
        runner: ProcessRunner,
        layout: MediaLayout,
        *,
        scratch_root: Path,
        binary: str = "ffmpeg",
        timeout: Optional[float] = None,
    ) -> None:
        self.store = store
        self.runner = runner
        self.layout = layout
        self.scratch_root = Path(scratch_root)
        self.binary = binary
        self.timeout = timeout

    async def run(self, lesson_id: str, media_key: str, source: Optional[bytes] = None) -> List[str]:
        """Transcode one item; returns the uploaded artifact keys."""
        async with scratch_dir(self.scratch_root, lesson_id) as work:
            input_path = work / f"input{safe_extension(media_key)}"
            out_dir = work / _OUTPUT_DIR
            await anyio.Path(out_dir).mkdir()

            data = source if source is not None else await self.store.get(media_key)
            await anyio.Path(input_path).write_bytes(data)

            result = await self.runner.run(
                build_hls_args(self.binary, input_path, out_dir), timeout=self.timeout
            )
            if result.timed_out:
                raise TranscodeError(f"transcoder timed out after {self.timeout}s")
            if not result.ok:
                raise TranscodeError(
                    f"transcoder exited with status {result.returncode}: {result.stderr[-500:]}"
                )

            outputs = await anyio.to_thread.run_sync(
                lambda: sorted(p for p in out_dir.iterdir() if p.is_file())
            )
            if not outputs:
                raise TranscodeError("transcoder produced no output files")

            keys = await self._upload_all(lesson_id, outputs)
            logger.info("Transcoded %s into %d artifact(s)", lesson_id, len(keys))
            return keys

    async def _upload_all(self, lesson_id: str, paths: List[Path]) -> List[str]:
        results = await asyncio.gather(
            *(self._upload_one(lesson_id, p) for p in paths), return_exceptions=True
        )
        errors = [r for r in results if isinstance(r, BaseException)]
        if errors:
            logger.error("%d of %d artifact uploads failed for %s", len(errors), len(paths), lesson_id)
            raise errors[0]
        return [str(r) for r in results]

    async def _upload_one(self, lesson_id: str, path: Path) -> str:
        key = self.layout.item_key(lesson_id, path.name)
        data = await anyio.Path(path).read_bytes()
        await self.store.put(key, data, content_type_for(path))
        return key


__all__ = ["TranscodeOrchestrator", "TranscodeError", "scratch_dir", "content_type_for"]
