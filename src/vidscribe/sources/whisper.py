"""Paid speech-to-text fallback via an OpenAI-compatible transcription API."""

from __future__ import annotations

from typing import Protocol

import httpx

from vidscribe.models.transcript import TimedSegment
from vidscribe.sources.base import FatalInput, Outcome, Success, TransientFailure, VideoSource
from vidscribe.sources.media import MediaError, PreparedAudio
from vidscribe.sources.rest import outcome_for_exception, outcome_for_status
from vidscribe.utils.progress import log_step


class AudioSource(Protocol):
    def prepare_audio(self, source: VideoSource) -> PreparedAudio: ...
    def cleanup(self, video_id: str) -> None: ...


def whisper_cost(duration_seconds: float, rate_per_minute: float) -> float:
    """cost = duration_minutes × rate, rounded to a millionth of a dollar."""
    return round(duration_seconds / 60 * rate_per_minute, 6)


class WhisperProvider:
    """The guaranteed backstop: any source with audio can be transcribed.

    It never declines. Failures are transient (429, 5xx, timeouts, flaky
    downloads) or fatal (credentials, oversized upload, unusable media).
    """

    name = "whisper"
    paid = True

    def __init__(
        self,
        client: httpx.Client,
        media: AudioSource,
        *,
        api_base: str,
        api_key: str | None,
        model: str = "whisper-1",
        rate_per_minute: float = 0.006,
        max_upload_mb: int = 25,
    ):
        self._client = client
        self._media = media
        self.api_base = api_base.rstrip("/")
        self.api_key = api_key
        self.model = model
        self.rate_per_minute = rate_per_minute
        self.max_upload_bytes = max_upload_mb * 1024 * 1024

    def estimate_cost(self, duration_seconds: float) -> float:
        return whisper_cost(duration_seconds, self.rate_per_minute)

    def extract(self, source: VideoSource) -> Outcome:
        if not self.api_key:
            return FatalInput("OPENAI_API_KEY is not set")

        try:
            audio = self._media.prepare_audio(source)
        except MediaError as e:
            if e.transient:
                return TransientFailure(str(e))
            return FatalInput(str(e))

        try:
            return self._transcribe(source, audio)
        finally:
            self._media.cleanup(source.video_id)

    def _transcribe(self, source: VideoSource, audio: PreparedAudio) -> Outcome:
        size = audio.size_bytes
        if size > self.max_upload_bytes:
            return FatalInput(
                f"Audio is {size / 1024 / 1024:.1f} MB, over the "
                f"{self.max_upload_bytes // (1024 * 1024)} MB upload limit"
            )

        log_step(self.name, f"{source.video_id}: uploading {size / 1024:.0f} KB")
        try:
            with audio.path.open("rb") as fh:
                response = self._client.post(
                    f"{self.api_base}/audio/transcriptions",
                    headers={"Authorization": f"Bearer {self.api_key}"},
                    data={"model": self.model, "response_format": "verbose_json"},
                    files={"file": (audio.path.name, fh, "audio/mpeg")},
                )
        except httpx.HTTPError as e:
            return outcome_for_exception(e, "Whisper")

        failure = outcome_for_status(response, "Whisper")
        if failure is not None:
            return failure

        try:
            payload = response.json()
        except ValueError:
            return TransientFailure("Whisper returned a malformed response")

        text = (payload.get("text") or "").strip()
        if not text:
            return FatalInput("Whisper found no speech in the audio")

        segments = [
            TimedSegment(
                text=s["text"].strip(),
                start=float(s.get("start", 0.0)),
                duration=max(0.0, float(s.get("end", 0.0)) - float(s.get("start", 0.0))),
            )
            for s in payload.get("segments") or []
            if s.get("text", "").strip()
        ]
        duration = float(payload.get("duration") or audio.duration_seconds)
        cost = self.estimate_cost(duration)

        log_step(self.name, f"{source.video_id}: {duration / 60:.1f} min transcribed (${cost:.4f})")
        return Success(
            transcript_text=text,
            timestamped_segments=segments,
            cost_usd=cost,
            duration_seconds=duration,
            language=payload.get("language"),
        )
