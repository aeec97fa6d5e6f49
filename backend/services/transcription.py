"""Sequential chunk transcription with per-chunk failure isolation."""

from __future__ import annotations

import asyncio
import logging
from typing import Awaitable, Callable

import httpx

from models.errors import Failure, FailureKind
from models.media import Chunk
from models.transcript import ChunkTranscription, Transcript
from services.errors import (
    ClipcasterError,
    SizeLimitExceeded,
    TranscriptionTimeout,
    TranscriptionTransportError,
)
from services.settings import (
    INTER_CHUNK_DELAY_SECONDS,
    TRANSCRIPTION_LANGUAGE,
    TRANSCRIPTION_MODEL,
    TRANSCRIPTION_SIZE_LIMIT,
    TRANSCRIPTION_TIMEOUT_SECONDS,
    TRANSCRIPTION_URL,
)

logger = logging.getLogger(__name__)

TranscribeCall = Callable[[Chunk], Awaitable[str]]
TokenProvider = Callable[[], Awaitable[str]]


class TranscriptionOrchestrator:
    """
    Feed chunks one at a time to a transcription call and stitch the results.

    Chunks are processed strictly in order with a fixed delay between calls.
    A failing chunk contributes an empty string and a recorded Failure; it never
    aborts the batch, so the transcript always has one position per chunk.
    """

    def __init__(
        self,
        *,
        delay_seconds: float = INTER_CHUNK_DELAY_SECONDS,
        timeout_seconds: float = TRANSCRIPTION_TIMEOUT_SECONDS,
        size_limit_bytes: int = TRANSCRIPTION_SIZE_LIMIT,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ) -> None:
        self._delay = delay_seconds
        self._timeout = timeout_seconds
        self._size_limit = size_limit_bytes
        self._sleep = sleep

    async def transcribe(self, chunks: list[Chunk], call: TranscribeCall) -> Transcript:
        transcript = Transcript()
        for position, chunk in enumerate(chunks):
            transcript.entries.append(await self._transcribe_one(chunk, call))
            if position < len(chunks) - 1 and self._delay > 0:
                await self._sleep(self._delay)

        failed = len(transcript.failures)
        if failed:
            logger.warning(
                "[transcription] %d of %d chunks failed; transcript has gaps",
                failed,
                len(chunks),
            )
        logger.info(
            "[transcription] Assembled transcript: %d chunks, %d words",
            len(chunks),
            len(transcript.full_text.split()),
        )
        return transcript

    async def _transcribe_one(self, chunk: Chunk, call: TranscribeCall) -> ChunkTranscription:
        entry = ChunkTranscription(
            chunk_index=chunk.index,
            start_time=chunk.start_time,
            end_time=chunk.end_time,
        )
        if chunk.size_bytes > self._size_limit:
            entry.error = SizeLimitExceeded(
                chunk.size_bytes, self._size_limit, detail=f"chunk {chunk.index}"
            ).to_failure()
            logger.error("[transcription] chunk %d rejected: %s", chunk.index, entry.error.message)
            return entry

        logger.info(
            "[transcription] chunk %d (%.1fs-%.1fs, %d bytes)",
            chunk.index,
            chunk.start_time,
            chunk.end_time,
            chunk.size_bytes,
        )
        try:
            text = await asyncio.wait_for(call(chunk), timeout=self._timeout)
        except asyncio.TimeoutError:
            entry.error = TranscriptionTimeout(
                f"Transcription timed out after {self._timeout:.0f}s", detail=f"chunk {chunk.index}"
            ).to_failure()
        except ClipcasterError as exc:
            failure = exc.to_failure() if exc.kind is not None else None
            entry.error = failure or Failure(FailureKind.TRANSCRIPTION_TRANSPORT, exc.message)
        except Exception as exc:  # noqa: BLE001
            entry.error = Failure(
                kind=FailureKind.TRANSCRIPTION_TRANSPORT,
                message=f"{type(exc).__name__}: {exc}",
                detail=f"chunk {chunk.index}",
            )
        else:
            entry.text = (text or "").strip()

        if entry.error is not None:
            logger.error(
                "[transcription] chunk %d failed (%s): %s",
                chunk.index,
                entry.error.kind.value,
                entry.error.message,
            )
        return entry


class WhisperTranscriber:
    """Transcription call against an OpenAI-compatible /audio/transcriptions endpoint."""

    def __init__(
        self,
        client: httpx.AsyncClient,
        token_provider: TokenProvider,
        *,
        url: str = TRANSCRIPTION_URL,
        model: str = TRANSCRIPTION_MODEL,
        language: str = TRANSCRIPTION_LANGUAGE,
        size_limit_bytes: int = TRANSCRIPTION_SIZE_LIMIT,
        timeout_seconds: float = TRANSCRIPTION_TIMEOUT_SECONDS,
    ) -> None:
        self._client = client
        self._token_provider = token_provider
        self._url = url
        self._model = model
        self._language = language
        self._size_limit = size_limit_bytes
        self._timeout = timeout_seconds

    async def __call__(self, chunk: Chunk) -> str:
        if chunk.size_bytes > self._size_limit:
            raise SizeLimitExceeded(chunk.size_bytes, self._size_limit, detail=f"chunk {chunk.index}")

        token = await self._token_provider()
        try:
            response = await self._client.post(
                self._url,
                headers={"Authorization": f"Bearer {token}"},
                data={
                    "model": self._model,
                    "language": self._language,
                    "response_format": "json",
                },
                files={"file": (chunk.filename, chunk.data, chunk.mime_type)},
                timeout=self._timeout,
            )
        except httpx.TimeoutException as exc:
            raise TranscriptionTimeout(
                f"Transcription request timed out: {exc}", detail=f"chunk {chunk.index}"
            ) from exc
        except httpx.HTTPError as exc:
            raise TranscriptionTransportError(
                f"Transcription request failed: {type(exc).__name__}: {exc}",
                detail=f"chunk {chunk.index}",
            ) from exc

        if response.status_code // 100 != 2:
            raise TranscriptionTransportError(
                f"Transcription API error: HTTP {response.status_code}",
                status_code=response.status_code,
                detail=response.text[:500],
            )
        try:
            return str(response.json().get("text", ""))
        except ValueError as exc:
            raise TranscriptionTransportError(
                "Transcription API returned a non-JSON body",
                status_code=response.status_code,
                detail=response.text[:500],
            ) from exc


def static_token(value: str | None) -> TokenProvider:
    """Token provider for API-key style bearer auth."""

    async def _provide() -> str:
        if not value:
            raise TranscriptionTransportError("No transcription API key configured (OPENAI_API_KEY)")
        return value

    return _provide
