"""Stuck-video recovery sweep."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Callable

from vidscribe.db.tables import utcnow
from vidscribe.db.video_store import VideoStore
from vidscribe.errors import StaleStatusError
from vidscribe.models.config import RecoveryConfig
from vidscribe.models.video import VideoRecord, VideoStatus
from vidscribe.pipeline.states import IN_PROGRESS, advance
from vidscribe.utils.progress import log, log_step, log_warning

RECOVERED = "recovered"
FAILED = "failed"
SKIPPED = "skipped"


@dataclass(frozen=True)
class RecoveryResult:
    video_id: str
    status: str
    reason: str


class StuckVideoRecovery:
    """Finds videos idling in an in-progress status past their stage timeout.

    Each is re-entered at `transcribing` through `resubmit`, at most
    `max_attempts` times and no more often than `min_interval_minutes`.
    Past the limit the video is marked failed.
    """

    def __init__(
        self,
        videos: VideoStore,
        resubmit: Callable[[VideoRecord], object],
        config: RecoveryConfig | None = None,
    ):
        self.videos = videos
        self.resubmit = resubmit
        self.config = config or RecoveryConfig()

    def find_stuck(self, now: datetime | None = None) -> list[VideoRecord]:
        now = now or utcnow()
        stuck = []
        for status in sorted(IN_PROGRESS, key=lambda s: s.value):
            minutes = self.config.stage_timeout_minutes.get(status.value)
            if minutes is None:
                continue
            stuck.extend(self.videos.list_stale(status, now - timedelta(minutes=minutes)))
        return stuck

    def sweep(self, now: datetime | None = None) -> list[RecoveryResult]:
        now = now or utcnow()
        stuck = self.find_stuck(now)
        log(f"Recovery sweep: {len(stuck)} stuck video(s)")
        results = [self._recover(video, now) for video in stuck]

        counts = {s: sum(1 for r in results if r.status == s) for s in (RECOVERED, FAILED, SKIPPED)}
        if results:
            log(f"Recovery: {counts[RECOVERED]} recovered, {counts[FAILED]} failed, {counts[SKIPPED]} skipped")
        return results

    def _recover(self, video: VideoRecord, now: datetime) -> RecoveryResult:
        attempts = video.recovery_attempts
        if attempts >= self.config.max_attempts:
            message = f"Auto-recovery failed after {attempts} attempts"
            try:
                advance(
                    self.videos,
                    video.id,
                    video.status,
                    VideoStatus.FAILED,
                    error_message=message,
                    processing_completed_at=now,
                )
            except StaleStatusError as e:
                return RecoveryResult(video.id, SKIPPED, f"Status changed during sweep: {e}")
            log_warning(f"{video.id}: {message}")
            return RecoveryResult(video.id, FAILED, f"Max recovery attempts ({self.config.max_attempts}) reached")

        interval = timedelta(minutes=self.config.min_interval_minutes)
        if video.last_recovery_at is not None and now - video.last_recovery_at < interval:
            wait_minutes = (interval - (now - video.last_recovery_at)).total_seconds() / 60
            return RecoveryResult(video.id, SKIPPED, f"Rate limited: retry in {wait_minutes:.0f} minutes")

        self.videos.record_recovery_attempt(video.id, at=now)
        log_step("recovery", f"{video.id}: stuck in {video.status.value}, attempt {attempts + 1}")
        self.resubmit(video)
        return RecoveryResult(video.id, RECOVERED, f"Re-entered at transcribing from {video.status.value}")
