from __future__ import annotations

from pathlib import Path

import pytest

from placeus.core.storage import MediaLayout
from placeus.services.transcode.orchestrator import TranscodeError, TranscodeOrchestrator, scratch_dir
from placeus.services.transcode.runner import RunResult, build_hls_args
from placeus.utils.aws import ObjectNotFoundError
from tests.fixtures.mocks.storage import InMemoryObjectStore
from tests.fixtures.mocks.transcoder import FakeRunner


def _orchestrator(store, runner, tmp_path: Path, timeout=30.0) -> TranscodeOrchestrator:
    return TranscodeOrchestrator(
        store, runner, MediaLayout("courses"), scratch_root=tmp_path, binary="ffmpeg", timeout=timeout
    )


def test_hls_arguments_are_fixed(tmp_path: Path):
    args = build_hls_args("ffmpeg", tmp_path / "in.mp4", tmp_path / "out")
    assert args == [
        "ffmpeg",
        "-i", str(tmp_path / "in.mp4"),
        "-codec:v", "libx264",
        "-codec:a", "aac",
        "-hls_time", "10",
        "-hls_playlist_type", "vod",
        "-hls_segment_filename", str(tmp_path / "out" / "segment%03d.ts"),
        "-start_number", "0",
        str(tmp_path / "out" / "index.m3u8"),
    ]


@pytest.mark.anyio
async def test_success_uploads_every_artifact_and_cleans_scratch(tmp_path: Path):
    store = InMemoryObjectStore()
    runner = FakeRunner(segments=3)
    keys = await _orchestrator(store, runner, tmp_path).run("L1", "courses/L1/video.mp4", b"SRC")

    assert sorted(keys) == [
        "courses/L1/index.m3u8",
        "courses/L1/segment000.ts",
        "courses/L1/segment001.ts",
        "courses/L1/segment002.ts",
    ]
    assert store.content_type("courses/L1/index.m3u8") == "application/vnd.apple.mpegurl"
    assert store.content_type("courses/L1/segment001.ts") == "video/mp2t"
    assert runner.saw_input == [b"SRC"]
    assert runner.timeouts == [30.0]
    assert runner.calls[0][2].endswith("input.mp4")
    assert not (tmp_path / "L1").exists()


@pytest.mark.anyio
async def test_source_is_downloaded_when_not_handed_over(tmp_path: Path):
    store = InMemoryObjectStore()
    store.seed("courses/L2/video.mov", b"FROM-STORE")
    runner = FakeRunner(segments=1)

    await _orchestrator(store, runner, tmp_path).run("L2", "courses/L2/video.mov")
    assert runner.saw_input == [b"FROM-STORE"]


@pytest.mark.anyio
async def test_missing_source_aborts_and_cleans_up(tmp_path: Path):
    store = InMemoryObjectStore()
    runner = FakeRunner()
    with pytest.raises(ObjectNotFoundError):
        await _orchestrator(store, runner, tmp_path).run("L3", "courses/L3/video.mp4")
    assert runner.calls == []
    assert not (tmp_path / "L3").exists()


@pytest.mark.anyio
@pytest.mark.parametrize("runner", [FakeRunner(returncode=1), FakeRunner(timed_out=True)])
async def test_transcoder_failure_uploads_nothing_and_cleans_up(tmp_path: Path, runner: FakeRunner):
    store = InMemoryObjectStore()
    with pytest.raises(TranscodeError):
        await _orchestrator(store, runner, tmp_path).run("L4", "courses/L4/video.mp4", b"SRC")
    assert store.objects == {}
    assert not (tmp_path / "L4").exists()


@pytest.mark.anyio
async def test_empty_output_is_a_failure(tmp_path: Path):
    class _SilentRunner:
        async def run(self, args, *, timeout=None):
            return RunResult(returncode=0)

    store = InMemoryObjectStore()
    with pytest.raises(TranscodeError):
        await _orchestrator(store, _SilentRunner(), tmp_path).run("L5", "k.mp4", b"S")
    assert store.objects == {}


@pytest.mark.anyio
async def test_scratch_dir_is_removed_when_block_raises(tmp_path: Path):
    with pytest.raises(RuntimeError):
        async with scratch_dir(tmp_path, "L6") as work:
            (work / "partial.ts").write_bytes(b"x")
            raise RuntimeError("boom")
    assert not (tmp_path / "L6").exists()
