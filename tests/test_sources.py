"""Tests for provider adapters. HTTP is served by httpx.MockTransport."""

from types import SimpleNamespace
from unittest.mock import MagicMock

import httpx
import pytest
from youtube_transcript_api import NoTranscriptFound, RequestBlocked, TranscriptsDisabled, VideoUnavailable

from conftest import YOUTUBE_URL
from vidscribe.models.video import SourceFamily
from vidscribe.sources.base import Declined, FatalInput, Success, TransientFailure, VideoSource
from vidscribe.sources.loom import LoomTranscriptProvider
from vidscribe.sources.media import MediaError, PreparedAudio
from vidscribe.sources.mux import MuxCaptionProvider
from vidscribe.sources.vtt import parse_timestamp, parse_vtt
from vidscribe.sources.whisper import WhisperProvider, whisper_cost
from vidscribe.sources.youtube import YouTubeCaptionProvider

LOOM_ID = "0123456789abcdef0123456789abcdef"

SAMPLE_VTT = """WEBVTT
Kind: captions

NOTE generated by the encoder

1
00:00:00.000 --> 00:00:02.500
<c>Hello</c> and welcome

2
00:00:02.500 --> 00:00:04.000
Hello and welcome

3
00:00:04.000 --> 00:00:06.000
to the <b>course</b>.
"""


def mock_client(handler) -> httpx.Client:
    return httpx.Client(transport=httpx.MockTransport(handler))


def src(family, reference, video_id="vid-1"):
    return VideoSource(video_id=video_id, family=family, reference=reference)


class TestVtt:
    def test_timestamps(self):
        assert parse_timestamp("01:02:03.500") == pytest.approx(3723.5)
        assert parse_timestamp("02:03,250") == pytest.approx(123.25)

    def test_parse_merges_repeats_and_strips_tags(self):
        segments = parse_vtt(SAMPLE_VTT)

        assert [s.text for s in segments] == ["Hello and welcome", "to the course."]
        assert segments[0].start == 0.0
        assert segments[0].end == pytest.approx(4.0)
        assert segments[1].start == pytest.approx(4.0)

    def test_empty(self):
        assert parse_vtt("WEBVTT\n") == []


class TestYouTube:
    def _api_with(self, snippets, *, manual=True):
        transcript = MagicMock()
        transcript.language_code = "en"
        transcript.fetch.return_value = snippets
        listing = MagicMock()
        if manual:
            listing.find_manually_created_transcript.return_value = transcript
        else:
            listing.find_manually_created_transcript.side_effect = NoTranscriptFound("dQw4w9WgXcQ", ["en"], None)
            listing.find_generated_transcript.return_value = transcript
        api = MagicMock()
        api.list.return_value = listing
        return api

    def test_manual_captions(self):
        api = self._api_with(
            [
                SimpleNamespace(text="Tom &amp; Jerry", start=0.0, duration=1.5),
                SimpleNamespace(text="  ", start=1.5, duration=0.5),
                SimpleNamespace(text="are back", start=2.0, duration=2.0),
            ]
        )
        provider = YouTubeCaptionProvider(["en"], api=api)

        outcome = provider.extract(src(SourceFamily.EMBED_FREE, YOUTUBE_URL))

        assert isinstance(outcome, Success)
        assert outcome.transcript_text == "Tom & Jerry are back"
        assert outcome.cost_usd == 0
        assert outcome.duration_seconds == pytest.approx(4.0)
        api.list.assert_called_once_with("dQw4w9WgXcQ")

    def test_falls_back_to_generated(self):
        api = self._api_with([SimpleNamespace(text="auto words", start=0.0, duration=1.0)], manual=False)
        outcome = YouTubeCaptionProvider(["en"], api=api).extract(src(SourceFamily.EMBED_FREE, YOUTUBE_URL))

        assert isinstance(outcome, Success)
        api.list.return_value.find_generated_transcript.assert_called_once_with(["en"])

    @pytest.mark.parametrize(
        "error, expected",
        [
            (TranscriptsDisabled("dQw4w9WgXcQ"), Declined),
            (VideoUnavailable("dQw4w9WgXcQ"), FatalInput),
            (RequestBlocked("dQw4w9WgXcQ"), TransientFailure),
            (ConnectionResetError("reset"), TransientFailure),
        ],
    )
    def test_error_mapping(self, error, expected):
        api = MagicMock()
        api.list.side_effect = error

        outcome = YouTubeCaptionProvider(["en"], api=api).extract(src(SourceFamily.EMBED_FREE, YOUTUBE_URL))

        assert isinstance(outcome, expected)

    def test_non_youtube_reference_is_fatal(self):
        api = MagicMock()
        outcome = YouTubeCaptionProvider(["en"], api=api).extract(src(SourceFamily.EMBED_FREE, "https://vimeo.com/1"))

        assert isinstance(outcome, FatalInput)
        api.list.assert_not_called()


class TestLoom:
    def _provider(self, handler, api_key="loom-key"):
        return LoomTranscriptProvider(mock_client(handler), api_base="https://api.loom.com/v1", api_key=api_key)

    def test_success_converts_milliseconds(self):
        seen = {}

        def handler(request):
            seen["auth"] = request.headers["Authorization"]
            seen["path"] = request.url.path
            return httpx.Response(
                200,
                json={
                    "sentences": [
                        {"text": "First line.", "start_time": 0, "end_time": 1500},
                        {"text": "Second line.", "start_time": 1500, "end_time": 4000},
                    ]
                },
            )

        outcome = self._provider(handler).extract(src(SourceFamily.EMBED_FREE, f"https://www.loom.com/share/{LOOM_ID}"))

        assert isinstance(outcome, Success)
        assert outcome.transcript_text == "First line. Second line."
        assert outcome.timestamped_segments[1].start == pytest.approx(1.5)
        assert outcome.duration_seconds == pytest.approx(4.0)
        assert seen == {"auth": "Bearer loom-key", "path": f"/v1/videos/{LOOM_ID}/transcript"}

    @pytest.mark.parametrize(
        "status, expected",
        [(404, Declined), (429, TransientFailure), (503, TransientFailure), (401, FatalInput)],
    )
    def test_status_mapping(self, status, expected):
        provider = self._provider(lambda request: httpx.Response(status, text="nope"))
        outcome = provider.extract(src(SourceFamily.EMBED_FREE, LOOM_ID))
        assert isinstance(outcome, expected)

    def test_timeout_is_transient(self):
        def handler(request):
            raise httpx.ReadTimeout("slow", request=request)

        outcome = self._provider(handler).extract(src(SourceFamily.EMBED_FREE, LOOM_ID))
        assert isinstance(outcome, TransientFailure)

    def test_missing_key_is_fatal(self):
        provider = self._provider(lambda request: httpx.Response(200, json={}), api_key=None)
        assert isinstance(provider.extract(src(SourceFamily.EMBED_FREE, LOOM_ID)), FatalInput)


class TestMux:
    ASSET = {
        "id": "asset123",
        "status": "ready",
        "duration": 65.0,
        "playback_ids": [{"id": "signed1", "policy": "signed"}, {"id": "pub1", "policy": "public"}],
        "tracks": [
            {"type": "video", "id": "v1"},
            {"type": "text", "id": "txt1", "text_source": "generated_vod", "status": "ready", "language_code": "en"},
        ],
    }

    def _provider(self, handler):
        return MuxCaptionProvider(
            mock_client(handler),
            api_base="https://api.mux.com/video/v1",
            stream_base="https://stream.mux.com",
            token_id="tid",
            token_secret="tsecret",
        )

    def _asset_handler(self, asset, vtt=SAMPLE_VTT):
        requests = []

        def handler(request):
            requests.append(request)
            if request.url.host == "api.mux.com":
                return httpx.Response(200, json={"data": asset})
            return httpx.Response(200, text=vtt)

        return handler, requests

    def test_ready_captions(self):
        handler, requests = self._asset_handler(self.ASSET)

        outcome = self._provider(handler).extract(src(SourceFamily.EMBED_OPTIONAL_CAPTION, "asset123"))

        assert isinstance(outcome, Success)
        assert outcome.transcript_text == "Hello and welcome to the course."
        assert outcome.duration_seconds == 65.0
        assert outcome.language == "en"
        assert requests[0].headers["Authorization"].startswith("Basic ")
        assert str(requests[1].url) == "https://stream.mux.com/pub1/text/txt1.vtt"

    def test_captions_not_generated_declines(self):
        asset = {**self.ASSET, "tracks": [{"type": "video", "id": "v1"}]}
        handler, requests = self._asset_handler(asset)

        outcome = self._provider(handler).extract(src(SourceFamily.EMBED_OPTIONAL_CAPTION, "asset123"))

        assert isinstance(outcome, Declined)
        assert len(requests) == 1

    def test_captions_still_preparing_declines(self):
        asset = {**self.ASSET, "tracks": [{"type": "text", "id": "t", "text_source": "generated_vod", "status": "preparing"}]}
        handler, _ = self._asset_handler(asset)

        outcome = self._provider(handler).extract(src(SourceFamily.EMBED_OPTIONAL_CAPTION, "asset123"))

        assert isinstance(outcome, Declined)

    @pytest.mark.parametrize("status, expected", [("preparing", TransientFailure), ("errored", FatalInput)])
    def test_asset_status(self, status, expected):
        handler, _ = self._asset_handler({**self.ASSET, "status": status})
        outcome = self._provider(handler).extract(src(SourceFamily.EMBED_OPTIONAL_CAPTION, "asset123"))
        assert isinstance(outcome, expected)

    def test_missing_credentials(self):
        provider = MuxCaptionProvider(
            mock_client(lambda r: httpx.Response(200)),
            api_base="https://api.mux.com/video/v1",
            stream_base="https://stream.mux.com",
            token_id=None,
            token_secret=None,
        )
        assert isinstance(provider.extract(src(SourceFamily.EMBED_OPTIONAL_CAPTION, "asset123")), FatalInput)


class StubMedia:
    def __init__(self, path=None, duration=600.0, error=None):
        self.path = path
        self.duration = duration
        self.error = error
        self.cleaned = []
        self.prepared = 0

    def prepare_audio(self, source):
        self.prepared += 1
        if self.error is not None:
            raise self.error
        return PreparedAudio(path=self.path, duration_seconds=self.duration)

    def cleanup(self, video_id):
        self.cleaned.append(video_id)


class TestWhisper:
    @pytest.fixture
    def audio(self, tmp_path):
        path = tmp_path / "speech.mp3"
        path.write_bytes(b"\x01" * 4096)
        return path

    def _provider(self, handler, media, **kwargs):
        kwargs.setdefault("api_key", "sk-test")
        return WhisperProvider(mock_client(handler), media, api_base="https://api.openai.com/v1", **kwargs)

    def test_cost_formula(self):
        assert whisper_cost(600, 0.006) == pytest.approx(0.06)
        assert whisper_cost(3600, 0.006) == pytest.approx(0.36)

    def test_success(self, audio):
        seen = {}

        def handler(request):
            seen["url"] = str(request.url)
            seen["auth"] = request.headers["Authorization"]
            seen["multipart"] = request.headers["Content-Type"].startswith("multipart/form-data")
            return httpx.Response(
                200,
                json={
                    "text": " Ten minutes of talk. ",
                    "duration": 600.0,
                    "language": "english",
                    "segments": [{"text": " Ten minutes of talk.", "start": 0.0, "end": 600.0}],
                },
            )

        media = StubMedia(audio)
        outcome = self._provider(handler, media).extract(src(SourceFamily.RAW_FILE, "talk.mp4"))

        assert isinstance(outcome, Success)
        assert outcome.transcript_text == "Ten minutes of talk."
        assert outcome.cost_usd == pytest.approx(0.06)
        assert outcome.duration_seconds == 600.0
        assert seen == {
            "url": "https://api.openai.com/v1/audio/transcriptions",
            "auth": "Bearer sk-test",
            "multipart": True,
        }
        assert media.cleaned == ["vid-1"]

    @pytest.mark.parametrize("status, expected", [(429, TransientFailure), (500, TransientFailure), (401, FatalInput)])
    def test_status_mapping(self, audio, status, expected):
        media = StubMedia(audio)
        outcome = self._provider(lambda r: httpx.Response(status, text="err"), media).extract(
            src(SourceFamily.RAW_FILE, "talk.mp4")
        )
        assert isinstance(outcome, expected)
        assert media.cleaned == ["vid-1"]

    def test_missing_key_skips_media(self, audio):
        media = StubMedia(audio)
        outcome = self._provider(lambda r: httpx.Response(200), media, api_key=None).extract(
            src(SourceFamily.RAW_FILE, "talk.mp4")
        )
        assert isinstance(outcome, FatalInput)
        assert media.prepared == 0

    def test_oversized_upload_is_fatal(self, tmp_path):
        big = tmp_path / "big.mp3"
        big.write_bytes(b"\x00" * (1024 * 1024 + 1))
        calls = []
        outcome = self._provider(lambda r: calls.append(r) or httpx.Response(200), StubMedia(big), max_upload_mb=1).extract(
            src(SourceFamily.RAW_FILE, "talk.mp4")
        )
        assert isinstance(outcome, FatalInput)
        assert calls == []

    @pytest.mark.parametrize("transient, expected", [(True, TransientFailure), (False, FatalInput)])
    def test_media_errors(self, transient, expected):
        media = StubMedia(error=MediaError("download failed", transient=transient))
        outcome = self._provider(lambda r: httpx.Response(200), media).extract(src(SourceFamily.EMBED_FREE, YOUTUBE_URL))
        assert isinstance(outcome, expected)

    def test_empty_text_is_fatal(self, audio):
        outcome = self._provider(lambda r: httpx.Response(200, json={"text": "  "}), StubMedia(audio)).extract(
            src(SourceFamily.RAW_FILE, "talk.mp4")
        )
        assert isinstance(outcome, FatalInput)
