"""Admission-controlled worker pool in front of the orchestrator."""

from __future__ import annotations

import threading
from collections import defaultdict, deque
from concurrent.futures import Future, ThreadPoolExecutor
from concurrent.futures import wait as wait_for
from dataclasses import dataclass, field
from typing import Callable

from vidscribe.models.events import (
    ProcessingFinished,
    ProcessVideo,
    ReprocessItem,
    ReprocessReport,
    ReprocessVideos,
)
from vidscribe.models.video import VideoStatus
from vidscribe.pipeline.orchestrator import JobOrchestrator
from vidscribe.utils.progress import log_error, log_step


@dataclass(frozen=True)
class Job:
    video_id: str
    creator_id: str
    kind: str  # process | reprocess
    reason: str = ""
    event: ProcessVideo | None = None

    @property
    def dedupe_key(self) -> tuple[str, str, str]:
        # Both kinds enter at `transcribing`, but intake skips videos a reprocess must run
        return (self.video_id, VideoStatus.TRANSCRIBING.value, self.kind)


@dataclass
class _VideoLock:
    """Serializes runs for one video; dropped once no job holds or awaits it."""

    lock: threading.Lock = field(default_factory=threading.Lock)
    users: int = 0


Handler = Callable[[Job], "ProcessingFinished | ReprocessItem | None"]


def orchestrator_handler(orchestrator: JobOrchestrator) -> Handler:
    """Route pool jobs to the orchestrator entry point matching their kind."""

    def handle(job: Job) -> ProcessingFinished | ReprocessItem | None:
        if job.kind == "process":
            return orchestrator.run(job.event)
        return orchestrator.reprocess_item(job.video_id, job.reason)

    return handle


class WorkerPool:
    """Thread pool with three admission rules.

    - at most `per_creator_concurrency` runs in flight per creator; extra
      jobs wait in that creator's backlog without holding a thread
    - runs for the same video never overlap (per-video lock)
    - a job whose dedupe key matches one that is queued but not yet started
      is coalesced into it and shares its future
    """

    def __init__(self, handler: Handler, *, max_workers: int = 8, per_creator_concurrency: int = 20):
        self._handler = handler
        self._executor = ThreadPoolExecutor(max_workers=max_workers, thread_name_prefix="vidscribe")
        self.per_creator_concurrency = per_creator_concurrency

        self._lock = threading.Lock()
        self._queued: dict[tuple[str, str, str], Future] = {}
        self._in_flight: dict[str, int] = defaultdict(int)
        self._backlog: dict[str, deque[tuple[Job, Future]]] = defaultdict(deque)
        self._video_locks: dict[str, _VideoLock] = {}

    # -- submission ---------------------------------------------------------

    def submit(self, job: Job) -> Future:
        with self._lock:
            existing = self._queued.get(job.dedupe_key)
            if existing is not None:
                log_step("queue", f"{job.video_id}: coalesced with queued run")
                return existing

            future: Future = Future()
            self._queued[job.dedupe_key] = future
            if self._in_flight[job.creator_id] < self.per_creator_concurrency:
                self._in_flight[job.creator_id] += 1
                self._dispatch(job, future)
            else:
                self._backlog[job.creator_id].append((job, future))
                log_step("queue", f"{job.video_id}: creator {job.creator_id} at capacity, backlogged")
            return future

    def submit_process(self, event: ProcessVideo) -> Future:
        return self.submit(Job(event.video_id, event.creator_id, "process", event=event))

    def submit_reprocess(self, video_id: str, creator_id: str, reason: str) -> Future:
        return self.submit(Job(video_id, creator_id, "reprocess", reason=reason))

    def reprocess(self, event: ReprocessVideos, creators: dict[str, str]) -> ReprocessReport:
        """Fan out a bulk reprocess and wait for every run.

        `creators` maps each video id to its creator for admission control.
        """
        futures = {
            video_id: self.submit_reprocess(video_id, creators.get(video_id, ""), event.reason)
            for video_id in event.video_ids
        }
        wait_for(futures.values())

        report = ReprocessReport(reason=event.reason)
        for video_id, future in futures.items():
            error = future.exception()
            if error is not None:
                report.items.append(ReprocessItem(video_id=video_id, error_message=str(error)))
                continue
            result = future.result()
            if isinstance(result, ReprocessItem):
                report.items.append(result)
            elif result is not None:
                report.items.append(
                    ReprocessItem(video_id=video_id, status=result.status, error_message=result.error_message)
                )
            else:
                report.items.append(ReprocessItem(video_id=video_id, error_message="Run was skipped"))
        return report

    # -- execution ----------------------------------------------------------

    def _dispatch(self, job: Job, future: Future) -> None:
        self._executor.submit(self._execute, job, future)

    def _execute(self, job: Job, future: Future) -> None:
        with self._lock:
            if self._queued.get(job.dedupe_key) is future:
                del self._queued[job.dedupe_key]
            video_lock = self._video_locks.setdefault(job.video_id, _VideoLock())
            video_lock.users += 1

        try:
            if not future.set_running_or_notify_cancel():
                return
            with video_lock.lock:
                try:
                    result = self._handler(job)
                except Exception as e:
                    log_error(f"{job.video_id}: {job.kind} run raised {type(e).__name__}: {e}")
                    future.set_exception(e)
                else:
                    future.set_result(result)
        finally:
            self._release(job, video_lock)

    def _release(self, job: Job, video_lock: _VideoLock) -> None:
        with self._lock:
            video_lock.users -= 1
            if video_lock.users == 0:
                del self._video_locks[job.video_id]
            backlog = self._backlog[job.creator_id]
            if backlog:
                next_job, next_future = backlog.popleft()
                self._dispatch(next_job, next_future)
            else:
                self._in_flight[job.creator_id] -= 1

    def in_flight(self, creator_id: str) -> int:
        with self._lock:
            return self._in_flight[creator_id]

    def tracked_videos(self) -> int:
        """Videos with a run in progress or waiting on their lock."""
        with self._lock:
            return len(self._video_locks)

    def shutdown(self, wait: bool = True) -> None:
        self._executor.shutdown(wait=wait)

    def __enter__(self) -> WorkerPool:
        return self

    def __exit__(self, *exc) -> None:
        self.shutdown()
