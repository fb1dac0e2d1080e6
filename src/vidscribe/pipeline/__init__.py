"""Video pipeline: state machine, steps, orchestrator, worker pool and recovery."""

from vidscribe.pipeline.factory import Pipeline, build_pipeline
from vidscribe.pipeline.orchestrator import JobOrchestrator
from vidscribe.pipeline.queue import WorkerPool
from vidscribe.pipeline.recovery import StuckVideoRecovery

__all__ = ["JobOrchestrator", "Pipeline", "StuckVideoRecovery", "WorkerPool", "build_pipeline"]
