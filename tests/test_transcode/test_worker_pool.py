from __future__ import annotations

from pathlib import Path
from typing import List

import pytest

from placeus.core.storage import MediaLayout
from placeus.schemas.media import TranscodeStatus
from placeus.services.transcode.orchestrator import TranscodeOrchestrator
from placeus.services.transcode.worker import TranscodeJob, TranscodeWorkerPool
from tests.fixtures.mocks.storage import InMemoryObjectStore
from tests.fixtures.mocks.transcoder import FakeRunner


class _Sleeps:
    def __init__(self) -> None:
        self.delays: List[float] = []

    async def __call__(self, delay: float) -> None:
        self.delays.append(delay)


def _pool(store, runner, tmp_path: Path, sleeps, **kw) -> TranscodeWorkerPool:
    layout = MediaLayout("courses")
    orch = TranscodeOrchestrator(store, runner, layout, scratch_root=tmp_path, timeout=5)
    kw.setdefault("max_attempts", 3)
    kw.setdefault("base_delay", 1.0)
    return TranscodeWorkerPool(orch, store, layout, sleep=sleeps, **kw)


JOB = TranscodeJob(lesson_id="L1", media_key="courses/L1/video.mp4")


def _store_with_source() -> InMemoryObjectStore:
    store = InMemoryObjectStore()
    store.seed(JOB.media_key, b"SRC", "video/mp4")
    return store


@pytest.mark.anyio
async def test_transient_storage_error_is_retried_with_backoff(tmp_path: Path):
    store = _store_with_source()
    store.fail_puts["index.m3u8"] = 2
    runner = FakeRunner(segments=1)
    sleeps = _Sleeps()

    status = await _pool(store, runner, tmp_path, sleeps).process(JOB)

    assert status is TranscodeStatus.SUCCEEDED
    assert len(runner.calls) == 3
    assert runner.saw_input == [b"SRC"] * 3
    assert sleeps.delays == [1.0, 2.0]
    record = store.read_json("courses/L1/transcode.json")
    assert record["status"] == "succeeded"
    assert record["attempts"] == 3
    assert "courses/L1/index.m3u8" in record["artifacts"]


@pytest.mark.anyio
async def test_gives_up_after_max_attempts(tmp_path: Path):
    store = _store_with_source()
    store.fail_puts["index.m3u8"] = 10
    runner = FakeRunner(segments=1)
    sleeps = _Sleeps()

    status = await _pool(store, runner, tmp_path, sleeps, max_attempts=2).process(JOB)

    assert status is TranscodeStatus.FAILED
    assert len(runner.calls) == 2
    assert sleeps.delays == [1.0]
    record = store.read_json("courses/L1/transcode.json")
    assert record["status"] == "failed"
    assert "injected put failure" in record["error"]


@pytest.mark.anyio
async def test_transcoder_failure_is_not_retried(tmp_path: Path):
    store = _store_with_source()
    runner = FakeRunner(returncode=1)
    sleeps = _Sleeps()

    status = await _pool(store, runner, tmp_path, sleeps).process(JOB)

    assert status is TranscodeStatus.FAILED
    assert len(runner.calls) == 1
    assert sleeps.delays == []
    assert "status 1" in store.read_json("courses/L1/transcode.json")["error"]


@pytest.mark.anyio
async def test_missing_source_is_not_retried(tmp_path: Path):
    store = InMemoryObjectStore()
    runner = FakeRunner()
    sleeps = _Sleeps()
    job = TranscodeJob(lesson_id="L2", media_key="courses/L2/video.mp4")

    assert await _pool(store, runner, tmp_path, sleeps).process(job) is TranscodeStatus.FAILED
    assert runner.calls == []
    assert sleeps.delays == []


@pytest.mark.anyio
async def test_submitted_jobs_run_on_workers_and_drain_on_stop(tmp_path: Path):
    store = InMemoryObjectStore()
    runner = FakeRunner(segments=1)
    pool = _pool(store, runner, tmp_path, _Sleeps(), concurrency=2)

    for n in range(4):
        store.seed(f"courses/L{n}/video.mp4", b"S")
        await pool.submit(TranscodeJob(lesson_id=f"L{n}", media_key=f"courses/L{n}/video.mp4"))
    assert pool.running

    await pool.stop(grace=5)

    assert not pool.running
    for n in range(4):
        assert store.read_json(f"courses/L{n}/transcode.json")["status"] == "succeeded"


@pytest.mark.anyio
async def test_job_record_write_failure_does_not_fail_the_job(tmp_path: Path):
    store = _store_with_source()
    store.fail_puts["transcode.json"] = 100
    runner = FakeRunner(segments=1)

    status = await _pool(store, runner, tmp_path, _Sleeps()).process(JOB)

    assert status is TranscodeStatus.SUCCEEDED
    assert "courses/L1/index.m3u8" in store.objects
