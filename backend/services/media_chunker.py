"""Split oversized media into time-bounded, size-bounded chunks for transcription."""

from __future__ import annotations

import io
import logging
import math
from typing import Callable

import av

from models.media import Chunk, SourceMedia
from services.errors import AudioExtractionError
from services.settings import CHUNK_OVERLAP_SECONDS, MAX_CHUNK_BYTES

logger = logging.getLogger(__name__)

AUDIO_CODEC = "libmp3lame"
AUDIO_FORMAT = "mp3"
AUDIO_MIME_TYPE = "audio/mpeg"
AUDIO_SAMPLE_RATE = 16000
AUDIO_BIT_RATE = 64000

AudioExtractor = Callable[[bytes], bytes]


def extract_audio(data: bytes) -> bytes:
    """
    Decode the first audio stream of ``data`` and re-encode it as mono 16 kHz MP3.

    MP3 frames are self-synchronising, so byte slices of the result stay
    decodable; that is what makes byte-proportional slicing usable.
    """
    out_buffer = io.BytesIO()
    try:
        with av.open(io.BytesIO(data), "r") as source:
            in_stream = next(iter(source.streams.audio), None)
            if in_stream is None:
                raise AudioExtractionError("no audio stream")
            with av.open(out_buffer, "w", format=AUDIO_FORMAT) as target:
                out_stream = target.add_stream(AUDIO_CODEC, rate=AUDIO_SAMPLE_RATE, layout="mono")
                out_stream.bit_rate = AUDIO_BIT_RATE
                resampler = av.AudioResampler(format="s16p", layout="mono", rate=AUDIO_SAMPLE_RATE)
                for frame in source.decode(in_stream):
                    for resampled in resampler.resample(frame):
                        for packet in out_stream.encode(resampled):
                            target.mux(packet)
                for resampled in resampler.resample(None):
                    for packet in out_stream.encode(resampled):
                        target.mux(packet)
                for packet in out_stream.encode():
                    target.mux(packet)
    except av.error.FFmpegError as exc:
        raise AudioExtractionError(str(exc)) from exc
    audio = out_buffer.getvalue()
    if not audio:
        raise AudioExtractionError("encoder produced no audio")
    return audio


class MediaChunker:
    """
    Produce an ordered list of chunks whose time ranges cover the whole media.

    Media at or below ``max_chunk_bytes`` is returned untouched as one chunk.
    Larger media is cut into ``ceil(size / max_chunk_bytes)`` equal-duration
    pieces of its extracted audio track, sliced by byte proportion. Byte offsets
    are an approximation of time offsets (exact only for constant bitrate), so
    chunk boundaries should be treated as approximate.
    """

    def __init__(self, *, extractor: AudioExtractor | None = None) -> None:
        self._extract = extractor or extract_audio

    def chunk(
        self,
        media: SourceMedia,
        max_chunk_bytes: int = MAX_CHUNK_BYTES,
        chunk_overlap_seconds: float = CHUNK_OVERLAP_SECONDS,
    ) -> list[Chunk]:
        if max_chunk_bytes <= 0:
            raise ValueError("max_chunk_bytes must be positive")
        if chunk_overlap_seconds < 0:
            raise ValueError("chunk_overlap_seconds must not be negative")

        duration = media.duration_seconds
        if media.size_bytes <= max_chunk_bytes:
            logger.info("[media_chunker] %s fits in one chunk (%d bytes)", media.filename, media.size_bytes)
            return [
                Chunk(
                    index=0,
                    start_time=0.0,
                    end_time=duration,
                    duration=duration,
                    data=media.data,
                    size_bytes=media.size_bytes,
                    mime_type=media.mime_type,
                )
            ]

        if duration <= 0:
            raise ValueError(f"{media.filename}: cannot chunk media without a positive duration")

        chunk_count = math.ceil(media.size_bytes / max_chunk_bytes)
        chunk_duration = duration / chunk_count

        try:
            payload = self._extract(media.data)
            mime_type = AUDIO_MIME_TYPE
            logger.info(
                "[media_chunker] Extracted audio: %d -> %d bytes",
                media.size_bytes,
                len(payload),
            )
        except Exception as exc:  # noqa: BLE001
            logger.warning(
                "[media_chunker] Audio extraction failed for %s (%s); slicing raw media bytes instead",
                media.filename,
                exc,
            )
            payload = media.data
            mime_type = media.mime_type

        chunks = _slice_by_proportion(
            payload,
            duration=duration,
            chunk_count=chunk_count,
            chunk_duration=chunk_duration,
            overlap=chunk_overlap_seconds,
            mime_type=mime_type,
        )
        logger.info(
            "[media_chunker] %s -> %d chunks of ~%.1fs",
            media.filename,
            len(chunks),
            chunk_duration,
        )
        return chunks


def _slice_by_proportion(
    payload: bytes,
    *,
    duration: float,
    chunk_count: int,
    chunk_duration: float,
    overlap: float,
    mime_type: str,
) -> list[Chunk]:
    total = len(payload)

    def byte_at(seconds: float) -> int:
        return math.floor(seconds / duration * total)

    chunks: list[Chunk] = []
    for index in range(chunk_count):
        last = index == chunk_count - 1
        nominal_start = index * chunk_duration
        start_time = max(0.0, nominal_start - overlap) if index else 0.0
        # The final chunk absorbs any rounding remainder.
        end_time = duration if last else (index + 1) * chunk_duration
        start_byte = byte_at(start_time)
        end_byte = total if last else byte_at(end_time)
        data = payload[start_byte:end_byte]
        chunks.append(
            Chunk(
                index=index,
                start_time=start_time,
                end_time=end_time,
                duration=end_time - start_time,
                data=data,
                size_bytes=len(data),
                mime_type=mime_type,
            )
        )
    return chunks
