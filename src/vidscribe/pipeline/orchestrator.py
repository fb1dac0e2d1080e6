"""Job orchestrator: runs a video through the step registry in order."""

from __future__ import annotations

from collections.abc import Sequence

from vidscribe.db.tables import utcnow
from vidscribe.db.video_store import VideoStore
from vidscribe.errors import (
    InvariantViolation,
    StaleStatusError,
    StepFailed,
    VidscribeError,
    VideoNotFound,
)
from vidscribe.models.config import PipelineConfig
from vidscribe.models.events import (
    ProcessingFinished,
    ProcessVideo,
    ReprocessItem,
    ReprocessReport,
    ReprocessVideos,
)
from vidscribe.models.video import VideoRecord, VideoStatus
from vidscribe.pipeline.events import EventBus
from vidscribe.pipeline.states import INTAKE_FROM, RECOVERY_ENTRY, advance
from vidscribe.pipeline.steps import PipelineStep
from vidscribe.utils.progress import log, log_error, log_step, log_success, log_warning
from vidscribe.utils.retry import retrying_on_exception


class JobOrchestrator:
    """Sequences transcribe → chunk → embed for one video at a time.

    Steps are injected as an ordered registry. The first step must start at
    `transcribing`, and each step's `next_status` must be the next step's
    `status`. Transient step errors are retried within the step; anything
    else marks the video failed. Invariant violations also mark the video
    failed and are then re-raised.
    """

    def __init__(
        self,
        videos: VideoStore,
        steps: Sequence[PipelineStep],
        *,
        config: PipelineConfig | None = None,
        events: EventBus | None = None,
    ):
        self.videos = videos
        self.steps = list(steps)
        self.config = config or PipelineConfig()
        self.events = events or EventBus()
        self._check_registry()

    def _check_registry(self) -> None:
        if not self.steps:
            raise InvariantViolation("Orchestrator needs at least one step")
        if self.steps[0].status is not RECOVERY_ENTRY:
            raise InvariantViolation(f"First step must run at {RECOVERY_ENTRY.value}")
        for prev, nxt in zip(self.steps, self.steps[1:]):
            if prev.next_status is not nxt.status:
                raise InvariantViolation(
                    f"Step {prev.name} ends at {prev.next_status.value} "
                    f"but {nxt.name} starts at {nxt.status.value}"
                )
        if self.steps[-1].next_status is not VideoStatus.COMPLETED:
            raise InvariantViolation("Last step must complete the video")

    # -- triggers -----------------------------------------------------------

    def run(self, event: ProcessVideo) -> ProcessingFinished | None:
        """Handle an intake trigger. Duplicate triggers for a started video are ignored."""
        video = self.videos.get(event.video_id)
        if video.source_family != event.source_family:
            raise InvariantViolation(
                f"Trigger for {video.id} names family {event.source_family.value}, "
                f"video is {video.source_family.value}"
            )
        if video.status not in INTAKE_FROM:
            log_warning(f"{video.id} is already {video.status.value}; ignoring duplicate trigger")
            return None
        return self._execute(video, recovery=False)

    def reprocess_one(self, video_id: str, *, reason: str = "manual") -> ProcessingFinished:
        video = self.videos.get(video_id)
        log(f"Reprocessing {video_id} ({reason}), currently {video.status.value}")
        return self._execute(video, recovery=True)

    def reprocess(self, event: ReprocessVideos) -> ReprocessReport:
        """Re-run every video independently; one failure never stops the rest."""
        report = ReprocessReport(reason=event.reason)
        for video_id in event.video_ids:
            report.items.append(self.reprocess_item(video_id, event.reason))
        log(f"Reprocess ({event.reason}): {len(report.succeeded)} succeeded, {len(report.failed)} failed")
        return report

    def reprocess_item(self, video_id: str, reason: str) -> ReprocessItem:
        try:
            finished = self.reprocess_one(video_id, reason=reason)
        except InvariantViolation as e:
            log_error(f"Invariant violation while reprocessing {video_id}: {e}")
            return ReprocessItem(video_id=video_id, status=self._current_status(video_id), error_message=str(e))
        except VideoNotFound as e:
            return ReprocessItem(video_id=video_id, error_message=str(e))
        except VidscribeError as e:
            return ReprocessItem(video_id=video_id, status=self._current_status(video_id), error_message=str(e))
        except Exception as e:
            log_error(f"Unexpected error while reprocessing {video_id}: {e}")
            return ReprocessItem(
                video_id=video_id, status=self._current_status(video_id), error_message=f"{type(e).__name__}: {e}"
            )
        return ReprocessItem(
            video_id=video_id, status=finished.status, error_message=finished.error_message
        )

    # -- execution ----------------------------------------------------------

    def _execute(self, video: VideoRecord, *, recovery: bool) -> ProcessingFinished:
        advance(
            self.videos,
            video.id,
            video.status,
            RECOVERY_ENTRY,
            recovery=recovery,
            error_message=None,
            processing_started_at=utcnow(),
            processing_completed_at=None,
        )

        for step in self.steps:
            video = self.videos.get(video.id)
            if video.status is not step.status:
                raise StaleStatusError(video.id, step.status.value, video.status.value)

            try:
                errors = step.validate_inputs(video)
                if errors:
                    raise StepFailed(step.name, "; ".join(errors))
                self._run_step(step, video)
            except StaleStatusError:
                log_warning(f"{video.id}: another run took over during {step.name}; abandoning")
                raise
            except InvariantViolation as e:
                log_error(f"{video.id}: invariant violated in {step.name}: {e}")
                self._fail(video.id, step.status, f"{type(e).__name__}: {e}")
                raise
            except VidscribeError as e:
                log_error(f"{video.id}: {step.name} failed: {e}")
                return self._fail(video.id, step.status, str(e))
            except Exception as e:
                log_error(f"{video.id}: unexpected error in {step.name}: {type(e).__name__}: {e}")
                self._fail(video.id, step.status, f"{type(e).__name__}: {e}")
                raise

        finished = ProcessingFinished(video_id=video.id, status=VideoStatus.COMPLETED)
        log_success(f"{video.id} completed")
        self.events.publish(finished)
        return finished

    def _run_step(self, step: PipelineStep, video: VideoRecord) -> None:
        log_step(step.name, f"{video.id}: starting")
        retrying = retrying_on_exception(
            step.is_retryable,
            max_attempts=self.config.step_retries + 1,
            backoff_seconds=self.config.step_backoff_seconds,
            label=f"{step.name} {video.id}",
        )
        # Each retry re-reads the video so it sees the previous attempt's committed writes
        retrying(lambda: step.run(self.videos.get(video.id)))

    def _fail(self, video_id: str, current: VideoStatus, message: str) -> ProcessingFinished:
        try:
            advance(
                self.videos,
                video_id,
                current,
                VideoStatus.FAILED,
                error_message=message[:2000],
                processing_completed_at=utcnow(),
            )
        except StaleStatusError as e:
            log_warning(f"{video_id}: could not mark failed ({e})")
            raise
        finished = ProcessingFinished(video_id=video_id, status=VideoStatus.FAILED, error_message=message)
        self.events.publish(finished)
        return finished

    def _current_status(self, video_id: str) -> VideoStatus | None:
        try:
            return self.videos.get_status(video_id)
        except VideoNotFound:
            return None
