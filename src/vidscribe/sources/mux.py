"""Mux auto-generated captions via the Mux Video API."""

from __future__ import annotations

import httpx

from vidscribe.sources.base import Declined, FatalInput, Outcome, Success, TransientFailure, VideoSource
from vidscribe.sources.classifier import mux_asset_id
from vidscribe.sources.rest import outcome_for_exception, outcome_for_status
from vidscribe.sources.vtt import parse_vtt
from vidscribe.utils.progress import log_step


class MuxCaptionProvider:
    """Reads an asset's text track and downloads it as WebVTT.

    A missing or still-preparing caption track declines straight away, which
    sends the router on to paid transcription.
    """

    name = "mux"
    paid = False

    def __init__(
        self,
        client: httpx.Client,
        *,
        api_base: str,
        stream_base: str,
        token_id: str | None,
        token_secret: str | None,
    ):
        self._client = client
        self.api_base = api_base.rstrip("/")
        self.stream_base = stream_base.rstrip("/")
        self.token_id = token_id
        self.token_secret = token_secret

    def fetch_asset(self, asset_id: str) -> dict | Outcome:
        """Return the asset's ``data`` object, or a failure Outcome."""
        if not (self.token_id and self.token_secret):
            return FatalInput("MUX_TOKEN_ID / MUX_TOKEN_SECRET are not set")
        try:
            response = self._client.get(
                f"{self.api_base}/assets/{asset_id}",
                auth=(self.token_id, self.token_secret),
            )
        except httpx.HTTPError as e:
            return outcome_for_exception(e, "Mux")

        failure = outcome_for_status(response, "Mux")
        if failure is not None:
            return failure
        try:
            return response.json()["data"]
        except (ValueError, KeyError):
            return FatalInput("Mux returned a malformed asset payload")

    def extract(self, source: VideoSource) -> Outcome:
        asset_id = mux_asset_id(source.reference)
        if asset_id is None:
            return FatalInput(f"Not a Mux asset reference: {source.reference}")

        asset = self.fetch_asset(asset_id)
        if not isinstance(asset, dict):
            return asset

        status = asset.get("status")
        if status == "errored":
            return FatalInput(f"Mux asset {asset_id} errored")
        if status != "ready":
            return TransientFailure(f"Mux asset {asset_id} is not ready (status: {status})")

        track = _caption_track(asset.get("tracks") or [])
        if track is None:
            return Declined("No auto-captions generated for this asset")
        if track.get("status", "ready") != "ready":
            return Declined(f"Auto-captions not ready yet (status: {track.get('status')})")

        playback_id = _playback_id(asset)
        if playback_id is None:
            return FatalInput(f"Mux asset {asset_id} has no playback id")

        try:
            response = self._client.get(
                f"{self.stream_base}/{playback_id}/text/{track['id']}.vtt",
                headers={"Accept": "text/vtt"},
            )
        except httpx.HTTPError as e:
            return outcome_for_exception(e, "Mux")
        failure = outcome_for_status(response, "Mux")
        if failure is not None:
            return failure

        segments = parse_vtt(response.text)
        if not segments:
            return Declined("Mux caption track is empty")

        log_step(self.name, f"{asset_id}: {len(segments)} caption cues")
        return Success(
            transcript_text=" ".join(s.text for s in segments),
            timestamped_segments=segments,
            cost_usd=0.0,
            duration_seconds=asset.get("duration") or segments[-1].end,
            language=track.get("language_code"),
        )


def _caption_track(tracks: list[dict]) -> dict | None:
    text_tracks = [t for t in tracks if t.get("type") in ("text", "subtitle")]
    generated = [t for t in text_tracks if str(t.get("text_source", "")).startswith("generated")]
    candidates = generated or text_tracks
    return candidates[0] if candidates else None


def _playback_id(asset: dict) -> str | None:
    ids = asset.get("playback_ids") or []
    public = [p for p in ids if p.get("policy") == "public"]
    chosen = (public or ids)[:1]
    return chosen[0]["id"] if chosen else None
