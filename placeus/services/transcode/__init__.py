"""Background HLS transcoding: process runner, orchestrator and worker pool."""

from placeus.services.transcode.orchestrator import TranscodeError, TranscodeOrchestrator
from placeus.services.transcode.runner import FFmpegRunner, ProcessRunner, RunResult
from placeus.services.transcode.worker import TranscodeJob, TranscodeWorkerPool

__all__ = [
    "FFmpegRunner",
    "ProcessRunner",
    "RunResult",
    "TranscodeError",
    "TranscodeJob",
    "TranscodeOrchestrator",
    "TranscodeWorkerPool",
]
