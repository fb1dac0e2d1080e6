"""FFmpeg / FFprobe wrappers used to prepare media for paid transcription."""

from __future__ import annotations

import json
import subprocess
from pathlib import Path


class FFmpegError(Exception):
    """Raised when an FFmpeg or FFprobe command fails."""

    def __init__(self, cmd: list[str], returncode: int, stderr: str):
        self.cmd = cmd
        self.returncode = returncode
        self.stderr = stderr
        super().__init__(f"{cmd[0]} failed (rc={returncode}): {stderr[:500]}")


def run_ffmpeg(args: list[str], *, check: bool = True) -> subprocess.CompletedProcess:
    """Run an FFmpeg command with standard options."""
    cmd = ["ffmpeg", "-y", "-hide_banner", "-loglevel", "error"] + args
    result = subprocess.run(cmd, capture_output=True, text=True)
    if check and result.returncode != 0:
        raise FFmpegError(cmd, result.returncode, result.stderr)
    return result


def extract_speech_audio(
    input_path: Path | str,
    output_path: Path | str,
    *,
    sample_rate: int = 16000,
    bitrate_kbps: int = 48,
) -> Path:
    """Strip video and downmix to a small mono MP3 suitable for speech-to-text.

    At 48 kbps an hour of audio is ~21 MB, under the transcription API's 25 MB cap.
    """
    output_path = Path(output_path)
    run_ffmpeg([
        "-i", str(input_path),
        "-vn",
        "-ac", "1",
        "-ar", str(sample_rate),
        "-b:a", f"{bitrate_kbps}k",
        str(output_path),
    ])
    return output_path


def probe_duration(path: Path | str) -> float:
    """Return the media duration in seconds, as reported by FFprobe."""
    path = Path(path)
    if not path.exists():
        raise FileNotFoundError(f"Media file not found: {path}")

    cmd = [
        "ffprobe",
        "-v", "quiet",
        "-print_format", "json",
        "-show_format",
        str(path),
    ]
    result = subprocess.run(cmd, capture_output=True, text=True)
    if result.returncode != 0:
        raise FFmpegError(cmd, result.returncode, result.stderr)

    fmt = json.loads(result.stdout or "{}").get("format", {})
    return float(fmt.get("duration") or 0.0)
