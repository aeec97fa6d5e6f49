"""Read duration, size and codec metadata from an in-memory media blob (no network)."""

from __future__ import annotations

import io
import logging

import av

from models.media import MediaInfo, SourceMedia
from services.errors import MediaProbeError

logger = logging.getLogger(__name__)


def probe(data: bytes, mime_type: str, *, filename: str = "source.mp4") -> SourceMedia:
    """
    Open ``data`` with PyAV and return it as an immutable SourceMedia.

    Duration comes from the container, falling back to the longest stream when
    the container does not report one. Width/height/codec describe the first
    video stream, or the first audio stream for audio-only media.
    """
    if not data:
        raise MediaProbeError("Media blob is empty")
    try:
        with av.open(io.BytesIO(data), "r") as container:
            duration = _duration_seconds(container)
            video = next(iter(container.streams.video), None)
            audio = next(iter(container.streams.audio), None)
            if video is not None:
                width = video.codec_context.width or 0
                height = video.codec_context.height or 0
                codec = video.codec_context.name
            elif audio is not None:
                width = height = 0
                codec = audio.codec_context.name
            else:
                raise MediaProbeError(f"{filename}: no audio or video streams")
    except av.error.FFmpegError as exc:
        raise MediaProbeError(f"{filename}: unreadable media ({exc})") from exc

    info = MediaInfo(
        duration_seconds=duration,
        size_bytes=len(data),
        width=width,
        height=height,
        codec=codec,
    )
    logger.info(
        "[media_probe] %s: %.2fs %d bytes %dx%d codec=%s",
        filename,
        info.duration_seconds,
        info.size_bytes,
        info.width,
        info.height,
        info.codec,
    )
    return SourceMedia(data=data, mime_type=mime_type, info=info, filename=filename)


def _duration_seconds(container: av.container.InputContainer) -> float:
    if container.duration is not None:
        return float(container.duration) / av.time_base
    longest = 0.0
    for stream in container.streams:
        if stream.duration is not None and stream.time_base is not None:
            longest = max(longest, float(stream.duration * stream.time_base))
    return longest
