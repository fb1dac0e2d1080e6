"""Locating source media and preparing speech audio for paid transcription."""

from __future__ import annotations

import shutil
import subprocess
from dataclasses import dataclass
from pathlib import Path
from typing import TYPE_CHECKING

import httpx

from vidscribe.models.video import SourceFamily
from vidscribe.sources.base import VideoSource
from vidscribe.sources.classifier import loom_video_id, mux_asset_id, youtube_video_id
from vidscribe.utils.ffmpeg import FFmpegError, extract_speech_audio, probe_duration
from vidscribe.utils.progress import log_step

if TYPE_CHECKING:
    from vidscribe.sources.mux import MuxCaptionProvider

_TRANSIENT_MARKERS = ("HTTP Error 429", "HTTP Error 5", "timed out", "Temporary failure", "Connection reset")


class MediaError(Exception):
    """Media could not be obtained. `transient` marks conditions worth retrying."""

    def __init__(self, message: str, *, transient: bool = False):
        self.transient = transient
        super().__init__(message)


@dataclass(frozen=True)
class PreparedAudio:
    path: Path
    duration_seconds: float

    @property
    def size_bytes(self) -> int:
        return self.path.stat().st_size


class MediaResolver:
    """Fetches a video's media into a per-video cache directory and extracts audio.

    - raw files are read from ``storage_root``
    - YouTube / Loom embeds are downloaded with yt-dlp
    - Mux assets are downloaded from their static audio rendition
    """

    def __init__(
        self,
        *,
        storage_root: Path | str,
        cache_dir: Path | str,
        client: httpx.Client,
        mux_stream_base: str = "https://stream.mux.com",
        mux: MuxCaptionProvider | None = None,
        download_timeout_seconds: float = 600.0,
    ):
        self.storage_root = Path(storage_root).resolve()
        self.cache_dir = Path(cache_dir)
        self._client = client
        self.mux_stream_base = mux_stream_base.rstrip("/")
        self._mux = mux
        self.download_timeout_seconds = download_timeout_seconds

    def workdir(self, video_id: str) -> Path:
        path = self.cache_dir / video_id
        path.mkdir(parents=True, exist_ok=True)
        return path

    def cleanup(self, video_id: str) -> None:
        shutil.rmtree(self.cache_dir / video_id, ignore_errors=True)

    def resolve(self, source: VideoSource) -> Path:
        """Return a local media file for `source`."""
        if source.family is SourceFamily.RAW_FILE:
            return self._local_file(source.reference)
        if source.family is SourceFamily.EMBED_OPTIONAL_CAPTION:
            return self._download_mux(source)
        return self._download_embed(source)

    def prepare_audio(self, source: VideoSource) -> PreparedAudio:
        """Resolve media and extract a mono, low-bitrate speech track from it."""
        media = self.resolve(source)
        audio_path = self.workdir(source.video_id) / "speech.mp3"
        try:
            extract_speech_audio(media, audio_path)
            duration = probe_duration(audio_path)
        except FFmpegError as e:
            raise MediaError(f"Audio extraction failed: {e}") from e
        except FileNotFoundError as e:
            raise MediaError(f"ffmpeg is not available: {e}") from e
        log_step("media", f"{source.video_id}: {duration / 60:.1f} min of audio extracted")
        return PreparedAudio(audio_path, duration)

    def _local_file(self, reference: str) -> Path:
        path = Path(reference)
        if not path.is_absolute():
            path = self.storage_root / path
        path = path.resolve()
        if not path.is_relative_to(self.storage_root):
            raise MediaError(f"Raw file lies outside the storage root: {reference}")
        if not path.is_file():
            raise MediaError(f"Raw file not found: {reference}")
        return path

    def _download_embed(self, source: VideoSource) -> Path:
        url = source.reference.strip()
        if not url.startswith(("http://", "https://")):
            if youtube_video_id(url):
                url = f"https://www.youtube.com/watch?v={youtube_video_id(url)}"
            elif loom_video_id(url):
                url = f"https://www.loom.com/share/{loom_video_id(url)}"
            else:
                raise MediaError(f"Cannot build a download URL for: {source.reference}")

        workdir = self.workdir(source.video_id)
        for stale in workdir.glob("source.*"):
            stale.unlink()

        cmd = [
            "yt-dlp",
            "--no-playlist",
            "--quiet",
            "-f", "bestaudio/best",
            "-o", str(workdir / "source.%(ext)s"),
            url,
        ]
        try:
            result = subprocess.run(
                cmd, capture_output=True, text=True, timeout=self.download_timeout_seconds
            )
        except subprocess.TimeoutExpired as e:
            raise MediaError("yt-dlp download timed out", transient=True) from e
        except FileNotFoundError as e:
            raise MediaError("yt-dlp is not installed") from e

        if result.returncode != 0:
            stderr = result.stderr or ""
            transient = any(marker in stderr for marker in _TRANSIENT_MARKERS)
            raise MediaError(
                f"yt-dlp download failed (rc={result.returncode}): {stderr[:300]}",
                transient=transient,
            )

        downloaded = sorted(workdir.glob("source.*"))
        if not downloaded:
            raise MediaError("yt-dlp finished without producing a file")
        return downloaded[0]

    def _download_mux(self, source: VideoSource) -> Path:
        playback_id = self._mux_playback_id(source.reference)
        url = f"{self.mux_stream_base}/{playback_id}/audio.m4a"
        target = self.workdir(source.video_id) / "source.m4a"
        try:
            with self._client.stream("GET", url) as response:
                if response.status_code == 429 or response.status_code >= 500:
                    raise MediaError(f"Mux audio download failed ({response.status_code})", transient=True)
                if not response.is_success:
                    raise MediaError(
                        f"Mux audio rendition unavailable ({response.status_code}); "
                        "static renditions may be disabled for this asset"
                    )
                with target.open("wb") as fh:
                    for block in response.iter_bytes():
                        fh.write(block)
        except httpx.TimeoutException as e:
            raise MediaError("Mux audio download timed out", transient=True) from e
        except httpx.TransportError as e:
            raise MediaError(f"Mux audio download network error: {e}", transient=True) from e
        return target

    def _mux_playback_id(self, reference: str) -> str:
        if "stream.mux.com" in reference:
            playback_id = mux_asset_id(reference)
            if playback_id:
                return playback_id

        asset_id = mux_asset_id(reference)
        if asset_id is None:
            raise MediaError(f"Not a Mux reference: {reference}")
        if self._mux is None:
            return asset_id

        asset = self._mux.fetch_asset(asset_id)
        if not isinstance(asset, dict):
            raise MediaError(asset.reason, transient=asset.outcome == "transient")
        ids = asset.get("playback_ids") or []
        if not ids:
            raise MediaError(f"Mux asset {asset_id} has no playback id")
        return ids[0]["id"]
