"""Free YouTube captions via youtube-transcript-api."""

from __future__ import annotations

import html

from youtube_transcript_api import (
    AgeRestricted,
    CouldNotRetrieveTranscript,
    InvalidVideoId,
    NoTranscriptFound,
    RequestBlocked,
    TranscriptsDisabled,
    VideoUnavailable,
    VideoUnplayable,
    YouTubeRequestFailed,
    YouTubeTranscriptApi,
)

from vidscribe.models.transcript import TimedSegment
from vidscribe.sources.base import (
    Declined,
    FatalInput,
    Outcome,
    Success,
    TransientFailure,
    VideoSource,
)
from vidscribe.sources.classifier import youtube_video_id
from vidscribe.utils.progress import log_step


class YouTubeCaptionProvider:
    """Manual captions first, then auto-generated, in the preferred languages."""

    name = "youtube"
    paid = False

    _DECLINE_ERRORS = (TranscriptsDisabled, NoTranscriptFound)
    _FATAL_ERRORS = (VideoUnavailable, InvalidVideoId, AgeRestricted, VideoUnplayable)
    _TRANSIENT_ERRORS = (RequestBlocked, YouTubeRequestFailed)

    def __init__(self, languages: list[str], api: YouTubeTranscriptApi | None = None):
        self.languages = languages
        self._api = api or YouTubeTranscriptApi()

    def extract(self, source: VideoSource) -> Outcome:
        video_id = youtube_video_id(source.reference)
        if video_id is None:
            return FatalInput(f"Not a YouTube video reference: {source.reference}")

        try:
            transcripts = self._api.list(video_id)
            try:
                transcript = transcripts.find_manually_created_transcript(self.languages)
            except NoTranscriptFound:
                transcript = transcripts.find_generated_transcript(self.languages)
            fetched = transcript.fetch()
        except self._DECLINE_ERRORS as e:
            return Declined(f"No YouTube captions: {type(e).__name__}")
        except self._FATAL_ERRORS as e:
            return FatalInput(f"YouTube video unusable: {type(e).__name__}")
        except self._TRANSIENT_ERRORS as e:
            return TransientFailure(f"YouTube request failed: {type(e).__name__}")
        except CouldNotRetrieveTranscript as e:
            return FatalInput(f"YouTube transcript unavailable: {type(e).__name__}")
        except OSError as e:
            return TransientFailure(f"YouTube network error: {e}")

        segments = [
            TimedSegment(text=html.unescape(s.text).strip(), start=s.start, duration=s.duration)
            for s in fetched
            if s.text.strip()
        ]
        if not segments:
            return Declined("YouTube caption track is empty")

        log_step(self.name, f"{video_id}: {len(segments)} caption segments ({transcript.language_code})")
        return Success(
            transcript_text=" ".join(s.text for s in segments),
            timestamped_segments=segments,
            cost_usd=0.0,
            duration_seconds=segments[-1].end,
            language=transcript.language_code,
        )
