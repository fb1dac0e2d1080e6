"""Tests for the admission-controlled worker pool."""

import queue
import threading
import time

import pytest

from vidscribe.models.events import ProcessingFinished, ReprocessItem, ReprocessVideos
from vidscribe.models.video import VideoStatus
from vidscribe.pipeline.queue import Job, WorkerPool

TIMEOUT = 5


class BlockingHandler:
    """Records each job as it starts, then waits until released."""

    def __init__(self):
        self.started: queue.Queue = queue.Queue()
        self.release = threading.Event()
        self.calls: list[str] = []
        self._lock = threading.Lock()
        self.active: dict[str, int] = {}
        self.max_active: dict[str, int] = {}

    def __call__(self, job: Job):
        with self._lock:
            self.calls.append(job.video_id)
            self.active[job.video_id] = self.active.get(job.video_id, 0) + 1
            self.max_active[job.video_id] = max(self.max_active.get(job.video_id, 0), self.active[job.video_id])
        self.started.put(job.video_id)
        self.release.wait(TIMEOUT)
        with self._lock:
            self.active[job.video_id] -= 1
        return ProcessingFinished(video_id=job.video_id, status=VideoStatus.COMPLETED)


def started_now(handler: BlockingHandler, settle: float = 0.1) -> list[str]:
    time.sleep(settle)
    seen = []
    while not handler.started.empty():
        seen.append(handler.started.get_nowait())
    return seen


class TestAdmission:
    def test_per_creator_limit_backlogs_extra_jobs(self):
        handler = BlockingHandler()
        with WorkerPool(handler, max_workers=8, per_creator_concurrency=2) as pool:
            futures = [pool.submit(Job(f"v{i}", "busy-creator", "reprocess")) for i in range(5)]
            other = pool.submit(Job("other", "quiet-creator", "reprocess"))

            first = [handler.started.get(timeout=TIMEOUT) for _ in range(3)]
            assert sorted(first) == ["other", "v0", "v1"]
            assert started_now(handler) == []
            assert pool.in_flight("busy-creator") == 2

            handler.release.set()
            for f in futures + [other]:
                assert f.result(timeout=TIMEOUT).status is VideoStatus.COMPLETED

        assert sorted(handler.calls) == ["other", "v0", "v1", "v2", "v3", "v4"]
        assert pool.in_flight("busy-creator") == 0

    def test_queued_duplicate_is_coalesced(self):
        handler = BlockingHandler()
        with WorkerPool(handler, max_workers=4, per_creator_concurrency=1) as pool:
            blocker = pool.submit(Job("a", "c1", "reprocess"))
            handler.started.get(timeout=TIMEOUT)

            first = pool.submit(Job("b", "c1", "reprocess", reason="manual"))
            second = pool.submit(Job("b", "c1", "reprocess", reason="auto-recovery"))
            assert first is second

            handler.release.set()
            blocker.result(timeout=TIMEOUT)
            first.result(timeout=TIMEOUT)

        assert handler.calls.count("b") == 1

    def test_runs_for_one_video_never_overlap(self):
        handler = BlockingHandler()
        with WorkerPool(handler, max_workers=4, per_creator_concurrency=4) as pool:
            first = pool.submit(Job("same", "c1", "reprocess"))
            handler.started.get(timeout=TIMEOUT)
            # The first run has left the queue, so this one is not coalesced
            second = pool.submit(Job("same", "c1", "reprocess"))
            assert first is not second
            assert started_now(handler) == []

            handler.release.set()
            first.result(timeout=TIMEOUT)
            second.result(timeout=TIMEOUT)

        assert handler.max_active["same"] == 1
        assert handler.calls == ["same", "same"]

    def test_handler_exception_is_captured_and_slot_released(self):
        def explode(job):
            raise RuntimeError("boom")

        with WorkerPool(explode, max_workers=2, per_creator_concurrency=1) as pool:
            future = pool.submit(Job("v", "c1", "reprocess"))
            with pytest.raises(RuntimeError, match="boom"):
                future.result(timeout=TIMEOUT)
            follow_up = pool.submit(Job("w", "c1", "reprocess"))
            with pytest.raises(RuntimeError):
                follow_up.result(timeout=TIMEOUT)

        assert pool.in_flight("c1") == 0


    def test_queued_intake_does_not_absorb_reprocess(self):
        def handle(job):
            if job.kind == "process":
                return None
            return ReprocessItem(video_id=job.video_id, status=VideoStatus.COMPLETED)

        gate = BlockingHandler()

        def dispatch(job):
            return gate(job) if job.video_id == "blocker" else handle(job)

        with WorkerPool(dispatch, max_workers=4, per_creator_concurrency=1) as pool:
            blocker = pool.submit(Job("blocker", "c1", "reprocess"))
            gate.started.get(timeout=TIMEOUT)

            intake = pool.submit(Job("x", "c1", "process"))
            again = pool.submit(Job("x", "c1", "reprocess", reason="manual"))
            assert intake is not again

            gate.release.set()
            blocker.result(timeout=TIMEOUT)
            assert intake.result(timeout=TIMEOUT) is None
            assert again.result(timeout=TIMEOUT).status is VideoStatus.COMPLETED

    def test_video_locks_are_dropped_after_runs(self):
        handler = BlockingHandler()
        with WorkerPool(handler, max_workers=4, per_creator_concurrency=4) as pool:
            futures = [pool.submit(Job(f"v{i}", "c1", "reprocess")) for i in range(3)]
            for _ in range(3):
                handler.started.get(timeout=TIMEOUT)
            assert pool.tracked_videos() == 3

            handler.release.set()
            for f in futures:
                f.result(timeout=TIMEOUT)

        assert pool.tracked_videos() == 0


class TestBulkReprocess:
    def test_collects_per_video_outcomes(self):
        def handle(job):
            if job.video_id == "bad":
                raise RuntimeError("worker crashed")
            if job.video_id == "failed":
                return ReprocessItem(video_id="failed", status=VideoStatus.FAILED, error_message="no transcript")
            return ReprocessItem(video_id=job.video_id, status=VideoStatus.COMPLETED)

        with WorkerPool(handle, max_workers=4) as pool:
            report = pool.reprocess(
                ReprocessVideos(video_ids=["ok-1", "failed", "bad", "ok-2"], reason="model upgrade"),
                {"ok-1": "c1", "failed": "c1", "bad": "c2", "ok-2": "c2"},
            )

        assert report.reason == "model upgrade"
        assert [i.video_id for i in report.succeeded] == ["ok-1", "ok-2"]
        assert [i.video_id for i in report.failed] == ["failed", "bad"]
        assert report.failed[1].error_message == "worker crashed"
