"""Transcript router: cheapest-first provider fallback with normalization."""

from __future__ import annotations

import re
import unicodedata
from collections.abc import Mapping

from vidscribe.errors import InvariantViolation, RouterError, UnknownSourceFamily
from vidscribe.models.config import RetryPolicy, RouterConfig
from vidscribe.models.transcript import ProviderAttempt, TimedSegment, TranscriptResult
from vidscribe.models.video import SourceFamily, VideoRecord
from vidscribe.sources.base import (
    Declined,
    FatalInput,
    Outcome,
    Success,
    TranscriptProvider,
    TransientFailure,
    VideoSource,
)
from vidscribe.sources.classifier import classify
from vidscribe.sources.whisper import whisper_cost
from vidscribe.utils.progress import log_step, log_success, log_warning
from vidscribe.utils.retry import retrying_on_result

_SOUND_MARKER = re.compile(r"\[[^\]]*\]|♪+")
_SPACE_BEFORE_PUNCT = re.compile(r"\s+([,.!?;:])")
_WHITESPACE = re.compile(r"\s+")


def normalize_text(text: str) -> str:
    """Canonical transcript text: NFKC, no sound markers, single spaces."""
    text = unicodedata.normalize("NFKC", text)
    text = _SOUND_MARKER.sub(" ", text)
    text = _WHITESPACE.sub(" ", text)
    text = _SPACE_BEFORE_PUNCT.sub(r"\1", text)
    return text.strip()


def normalize_segments(segments: list[TimedSegment]) -> list[TimedSegment]:
    normalized = []
    for seg in segments:
        text = normalize_text(seg.text)
        if text:
            normalized.append(seg.model_copy(update={"text": text}))
    return normalized


class TranscriptRouter:
    """Tries each eligible provider in cost order until one succeeds.

    Success stops the walk. Declined and FatalInput move on at once.
    TransientFailure is retried under the provider's policy (free or paid)
    and then moves on.
    """

    def __init__(self, providers: Mapping[str, TranscriptProvider], config: RouterConfig):
        self.providers = dict(providers)
        self.config = config

    def candidates(self, source: VideoSource) -> list[TranscriptProvider]:
        chosen = []
        for candidate in classify(source.family, source.reference):
            provider = self.providers.get(candidate.provider)
            if provider is None:
                if candidate.provider == "whisper":
                    raise InvariantViolation("Paid transcription provider is not registered")
                log_warning(f"Provider {candidate.provider} is not configured, skipping")
                continue
            chosen.append(provider)
        return chosen

    def route(self, video: VideoRecord | VideoSource) -> TranscriptResult:
        """Return a normalized transcript or raise RouterError.

        Raises:
            UnknownSourceFamily: The video's family is not recognized.
            RouterError: Every candidate was exhausted (NO_TRANSCRIPT_AVAILABLE).
        """
        source = _as_source(video)
        trail: list[ProviderAttempt] = []
        spent = 0.0

        for provider in self.candidates(source):
            outcome, calls, cost = self._try_provider(provider, source)
            spent += cost
            trail.append(
                ProviderAttempt(
                    provider=provider.name,
                    outcome=outcome.outcome,
                    reason=None if isinstance(outcome, Success) else outcome.reason,
                    attempts=calls,
                    cost_usd=cost,
                )
            )

            if isinstance(outcome, Success):
                text = normalize_text(outcome.transcript_text)
                if not text:
                    trail[-1] = trail[-1].model_copy(
                        update={"outcome": "declined", "reason": "Transcript empty after normalization"}
                    )
                    log_step(provider.name, "transcript empty after normalization, trying next")
                    continue
                log_success(
                    f"{source.video_id}: transcript via {provider.name} "
                    f"({len(text.split())} words, ${spent:.4f})"
                )
                return TranscriptResult(
                    method_used=provider.name,
                    transcript_text=text,
                    timestamped_segments=normalize_segments(outcome.timestamped_segments),
                    cost_usd=spent,
                    duration_seconds=outcome.duration_seconds,
                    language=outcome.language,
                    attempts=trail,
                )

            if isinstance(outcome, Declined):
                log_step(provider.name, f"declined: {outcome.reason}")
            elif isinstance(outcome, FatalInput):
                log_warning(f"{provider.name}: {outcome.reason}")
            else:
                log_warning(f"{provider.name}: gave up after {calls} attempts: {outcome.reason}")

        raise RouterError(
            f"No transcript available for video {source.video_id}: "
            + "; ".join(f"{a.provider} {a.outcome} ({a.reason})" for a in trail),
            attempts=trail,
            cost_usd=spent,
        )

    def _try_provider(
        self, provider: TranscriptProvider, source: VideoSource
    ) -> tuple[Outcome, int, float]:
        """Invoke a provider under its retry policy; return (outcome, calls, cost billed)."""
        outcomes: list[Outcome] = []

        def call() -> Outcome:
            log_step(provider.name, f"extracting {source.video_id} (attempt {len(outcomes) + 1})")
            outcome = provider.extract(source)
            outcomes.append(outcome)
            return outcome

        policy = self._policy(provider)
        retrying = retrying_on_result(
            lambda o: isinstance(o, TransientFailure),
            max_attempts=policy.max_attempts,
            backoff_seconds=policy.backoff_seconds,
            max_backoff_seconds=policy.max_backoff_seconds,
            label=provider.name,
        )
        outcome = retrying(call)
        return outcome, len(outcomes), sum(o.cost_usd for o in outcomes)

    def _policy(self, provider: TranscriptProvider) -> RetryPolicy:
        return self.config.paid_retry if getattr(provider, "paid", False) else self.config.free_retry

    def estimate_cost(self, family: SourceFamily | str, duration_seconds: float) -> float:
        """Expected spend: nothing for hosted embeds, paid rate for raw files."""
        try:
            family = SourceFamily(family)
        except ValueError:
            raise UnknownSourceFamily(family) from None
        if family is SourceFamily.RAW_FILE:
            return whisper_cost(duration_seconds, self.config.whisper_rate_per_minute)
        return 0.0

    def cost_table(self) -> dict[str, float]:
        """Per-minute rate of every provider the router knows about."""
        return {
            name: (self.config.whisper_rate_per_minute if getattr(p, "paid", False) else 0.0)
            for name, p in self.providers.items()
        }


def _as_source(video: VideoRecord | VideoSource) -> VideoSource:
    if isinstance(video, VideoSource):
        return video
    return VideoSource(
        video_id=video.id,
        family=video.source_family,
        reference=video.source_reference,
    )
