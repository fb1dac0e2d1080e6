"""Free Loom transcripts via the Loom REST API."""

from __future__ import annotations

import httpx

from vidscribe.models.transcript import TimedSegment
from vidscribe.sources.base import Declined, FatalInput, Outcome, Success, VideoSource
from vidscribe.sources.classifier import loom_video_id
from vidscribe.sources.rest import outcome_for_exception, outcome_for_status
from vidscribe.utils.progress import log_step


class LoomTranscriptProvider:
    """Fetches ``/videos/{id}/transcript``; a missing transcript is a decline."""

    name = "loom"
    paid = False

    def __init__(self, client: httpx.Client, *, api_base: str, api_key: str | None):
        self._client = client
        self.api_base = api_base.rstrip("/")
        self.api_key = api_key

    def extract(self, source: VideoSource) -> Outcome:
        video_id = loom_video_id(source.reference)
        if video_id is None:
            return FatalInput(f"Not a Loom video reference: {source.reference}")
        if not self.api_key:
            return FatalInput("LOOM_API_KEY is not set")

        try:
            response = self._client.get(
                f"{self.api_base}/videos/{video_id}/transcript",
                headers={"Authorization": f"Bearer {self.api_key}"},
            )
        except httpx.HTTPError as e:
            return outcome_for_exception(e, "Loom")

        if response.status_code == 404:
            return Declined("Loom transcript not available for this video")
        failure = outcome_for_status(response, "Loom")
        if failure is not None:
            return failure

        try:
            sentences = response.json().get("sentences") or []
        except ValueError:
            return FatalInput("Loom returned a malformed transcript payload")

        segments = [
            TimedSegment(
                text=s["text"].strip(),
                start=s.get("start_time", 0) / 1000,
                duration=max(0, s.get("end_time", 0) - s.get("start_time", 0)) / 1000,
            )
            for s in sentences
            if s.get("text", "").strip()
        ]
        if not segments:
            return Declined("Loom transcript is empty")

        log_step(self.name, f"{video_id}: {len(segments)} sentences")
        return Success(
            transcript_text=" ".join(s.text for s in segments),
            timestamped_segments=segments,
            cost_usd=0.0,
            duration_seconds=segments[-1].end,
        )
