"""Resumable, chunked upload of source media to an external object store."""

from __future__ import annotations

import asyncio
import logging
import re
from dataclasses import dataclass
from typing import Any, Awaitable, Callable
from urllib.parse import quote

import httpx

from models.errors import Failure, FailureKind
from models.media import SourceMedia
from models.upload import UploadResult, UploadSession
from services.credentials import CredentialLifecycleManager
from services.errors import ClipcasterError, ReauthRequired, TokenExpired, UploadChunkError
from services.settings import (
    UPLOAD_BACKOFF_SECONDS,
    UPLOAD_CHUNK_BYTES,
    UPLOAD_CHUNK_GRANULARITY,
    UPLOAD_CHUNK_TIMEOUT_SECONDS,
    UPLOAD_INIT_TIMEOUT_SECONDS,
    UPLOAD_MAX_RETRIES,
)

logger = logging.getLogger(__name__)

RESUME_INCOMPLETE = 308
_RANGE = re.compile(r"bytes=(\d+)-(\d+)")

ProgressCallback = Callable[[int, int], None]


@dataclass(frozen=True)
class UploadTarget:
    """Where a resumable session is opened and how the finished object is identified."""

    init_url: str
    metadata: dict[str, Any]
    remote_id_field: str = "id"

    @classmethod
    def gcs(cls, bucket: str, object_name: str, content_type: str) -> "UploadTarget":
        return cls(
            init_url=(
                f"https://storage.googleapis.com/upload/storage/v1/b/{quote(bucket, safe='')}/o"
                "?uploadType=resumable"
            ),
            metadata={"name": object_name, "contentType": content_type},
            remote_id_field="name",
        )

    @classmethod
    def google_drive(cls, filename: str, content_type: str, folder_id: str | None = None) -> "UploadTarget":
        metadata: dict[str, Any] = {"name": filename, "mimeType": content_type}
        if folder_id:
            metadata["parents"] = [folder_id]
        return cls(
            init_url="https://www.googleapis.com/upload/drive/v3/files?uploadType=resumable",
            metadata=metadata,
        )


class _Transient(Exception):
    pass


class ResumableUploadEngine:
    """
    INIT a session, PUT byte ranges in order, FINALIZE if needed.

    ``bytes_confirmed`` only moves to an offset the server acknowledged in a
    308 ``Range`` header; a PUT is never assumed to have landed. That is what
    lets a later ``upload`` with the same session continue after a crash.
    """

    def __init__(
        self,
        client: httpx.AsyncClient,
        credentials: CredentialLifecycleManager,
        *,
        init_timeout: float = UPLOAD_INIT_TIMEOUT_SECONDS,
        chunk_timeout: float = UPLOAD_CHUNK_TIMEOUT_SECONDS,
        max_retries: int = UPLOAD_MAX_RETRIES,
        backoff_seconds: float = UPLOAD_BACKOFF_SECONDS,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ) -> None:
        self._client = client
        self._credentials = credentials
        self._init_timeout = init_timeout
        self._chunk_timeout = chunk_timeout
        self._max_retries = max_retries
        self._backoff = backoff_seconds
        self._sleep = sleep

    async def upload(
        self,
        media: SourceMedia,
        provider_id: str,
        target: UploadTarget,
        *,
        chunk_size_bytes: int = UPLOAD_CHUNK_BYTES,
        on_progress: ProgressCallback | None = None,
        session: UploadSession | None = None,
    ) -> UploadResult:
        if chunk_size_bytes <= 0 or chunk_size_bytes % UPLOAD_CHUNK_GRANULARITY:
            raise ValueError(f"chunk_size_bytes must be a positive multiple of {UPLOAD_CHUNK_GRANULARITY}")

        try:
            if session is None:
                session = await self.start_session(media, provider_id, target, chunk_size_bytes)
            else:
                offset, remote_id = await self.query_offset(session, provider_id, target.remote_id_field)
                session.bytes_confirmed = offset
                logger.info(
                    "[upload] Resuming %s at %d/%d bytes",
                    media.filename,
                    session.bytes_confirmed,
                    session.total_bytes,
                )
                if remote_id is not None:
                    return UploadResult(ok=True, remote_id=remote_id, session=session)
        except httpx.TimeoutException:
            logger.warning("[upload] Session init timed out after %.0fs; caller should fall back", self._init_timeout)
            return UploadResult(
                ok=False,
                session=session,
                fallback_required=True,
                failure=Failure(
                    FailureKind.UPLOAD_INIT_TIMEOUT,
                    f"Resumable upload init timed out after {self._init_timeout:.0f}s",
                ),
            )
        except (UploadChunkError, ReauthRequired, TokenExpired) as exc:
            return self._failed(session, exc)

        try:
            remote_id = await self._transfer(media, session, provider_id, target, on_progress)
        except (UploadChunkError, ReauthRequired, TokenExpired) as exc:
            return self._failed(session, exc)

        logger.info("[upload] %s uploaded (%d bytes) -> %s", media.filename, session.total_bytes, remote_id)
        return UploadResult(ok=True, remote_id=remote_id, session=session)

    async def start_session(
        self,
        media: SourceMedia,
        provider_id: str,
        target: UploadTarget,
        chunk_size_bytes: int = UPLOAD_CHUNK_BYTES,
    ) -> UploadSession:
        """POST the object metadata and return a session bound to the ``Location`` URL."""
        for _ in range(2):
            token = await self._credentials.ensure_valid(provider_id)
            try:
                response = await self._client.post(
                    target.init_url,
                    headers={
                        "Authorization": f"Bearer {token}",
                        "X-Upload-Content-Type": media.mime_type,
                        "X-Upload-Content-Length": str(media.size_bytes),
                    },
                    json=target.metadata,
                    timeout=self._init_timeout,
                )
            except httpx.TimeoutException:
                raise
            except httpx.HTTPError as exc:
                raise UploadChunkError(f"Upload session init failed: {type(exc).__name__}: {exc}") from exc
            if response.status_code == 401 and await self._credentials.handle_expired(provider_id):
                continue
            break

        location = response.headers.get("Location")
        if response.status_code // 100 != 2 or not location:
            self._raise_if_reauth(provider_id, response)
            raise UploadChunkError(
                f"Upload session init failed: HTTP {response.status_code}",
                detail=response.text[:500],
            )
        logger.info("[upload] Session opened for %s (%d bytes)", media.filename, media.size_bytes)
        return UploadSession(
            upload_url=location,
            total_bytes=media.size_bytes,
            chunk_size_bytes=chunk_size_bytes,
        )

    async def query_offset(
        self,
        session: UploadSession,
        provider_id: str,
        remote_id_field: str | None = None,
    ) -> tuple[int, str | None]:
        """Ask the server how many bytes it holds; returns (offset, remote_id if already complete)."""
        response = await self._put_with_retries(
            session, provider_id, b"", f"bytes */{session.total_bytes}"
        )
        if response.status_code == RESUME_INCOMPLETE:
            return _confirmed_offset(response), None
        return session.total_bytes, _remote_id(response, remote_id_field)

    async def _transfer(
        self,
        media: SourceMedia,
        session: UploadSession,
        provider_id: str,
        target: UploadTarget,
        on_progress: ProgressCallback | None,
    ) -> str:
        stalls = 0
        rollbacks = 0
        while session.bytes_confirmed < session.total_bytes:
            start = session.bytes_confirmed
            end = min(start + session.chunk_size_bytes, session.total_bytes)
            response = await self._put_with_retries(
                session,
                provider_id,
                media.data[start:end],
                f"bytes {start}-{end - 1}/{session.total_bytes}",
            )
            if response.status_code != RESUME_INCOMPLETE:
                session.bytes_confirmed = session.total_bytes
                _report(on_progress, session)
                return _remote_id(response, target.remote_id_field)

            confirmed = min(_confirmed_offset(response), session.total_bytes)
            if confirmed < start:
                # Server holds less than it acknowledged before; resend from its offset.
                rollbacks += 1
                if rollbacks > self._max_retries:
                    raise UploadChunkError(f"Server kept losing data below byte {start}", detail=session.upload_url)
                logger.warning("[upload] Server rolled back from %d to %d bytes", start, confirmed)
                session.bytes_confirmed = confirmed
                _report(on_progress, session)
                continue
            if confirmed == start:
                stalls += 1
                logger.warning("[upload] Server confirmed no progress at offset %d (stall %d)", start, stalls)
                if stalls > self._max_retries:
                    raise UploadChunkError(f"Upload stalled at byte {start}", detail=session.upload_url)
                await self._sleep(self._backoff * stalls)
                continue
            stalls = 0
            session.bytes_confirmed = confirmed
            _report(on_progress, session)

        # Every byte acknowledged but no terminal response yet.
        response = await self._put_with_retries(
            session, provider_id, b"", f"bytes */{session.total_bytes}"
        )
        if response.status_code == RESUME_INCOMPLETE:
            raise UploadChunkError("Finalize request left the upload incomplete", detail=session.upload_url)
        return _remote_id(response, target.remote_id_field)

    async def _put_with_retries(
        self,
        session: UploadSession,
        provider_id: str,
        body: bytes,
        content_range: str,
    ) -> httpx.Response:
        """PUT one byte range, retrying the same range on transient failure with linear backoff."""
        attempt = 0
        while True:
            try:
                return await self._put(session, provider_id, body, content_range)
            except _Transient as exc:
                attempt += 1
                if attempt > self._max_retries:
                    raise UploadChunkError(
                        f"Chunk {content_range} failed after {self._max_retries} retries: {exc}",
                        detail=session.upload_url,
                    ) from exc
                delay = self._backoff * attempt
                logger.warning(
                    "[upload] %s failed (%s); retry %d/%d in %.1fs",
                    content_range,
                    exc,
                    attempt,
                    self._max_retries,
                    delay,
                )
                await self._sleep(delay)

    async def _put(self, session: UploadSession, provider_id: str, body: bytes, content_range: str) -> httpx.Response:
        token = await self._credentials.ensure_valid(provider_id)
        try:
            response = await self._client.put(
                session.upload_url,
                content=body,
                headers={"Authorization": f"Bearer {token}", "Content-Range": content_range},
                timeout=self._chunk_timeout,
            )
        except httpx.HTTPError as exc:
            raise _Transient(f"{type(exc).__name__}: {exc}") from exc

        status = response.status_code
        if status in (200, 201, RESUME_INCOMPLETE):
            return response
        if status == 401:
            if await self._credentials.handle_expired(provider_id):
                raise _Transient("HTTP 401, token refreshed")
            self._raise_if_reauth(provider_id, response)
            raise _Transient("HTTP 401")
        if status == 429 or status >= 500:
            raise _Transient(f"HTTP {status}")
        if status in (404, 410):
            raise UploadChunkError("Upload session expired or not found", detail=session.upload_url)
        raise UploadChunkError(f"Chunk {content_range} rejected: HTTP {status}", detail=response.text[:500])

    def _raise_if_reauth(self, provider_id: str, response: httpx.Response) -> None:
        broker = self._credentials.broker
        if response.status_code == 401 and broker.is_pending(provider_id):
            raise ReauthRequired(provider_id, pending=broker.begin(provider_id))

    @staticmethod
    def _failed(session: UploadSession | None, exc: ClipcasterError) -> UploadResult:
        logger.error("[upload] Upload failed (%s): %s", exc.kind.value, exc.message)
        return UploadResult(ok=False, session=session, failure=exc.to_failure())


def _confirmed_offset(response: httpx.Response) -> int:
    """308 ``Range: bytes=0-N`` means N+1 bytes persisted; no header means none."""
    match = _RANGE.search(response.headers.get("Range", ""))
    if match is None:
        return 0
    return int(match.group(2)) + 1


def _remote_id(response: httpx.Response, field: str | None) -> str:
    try:
        payload = response.json()
    except ValueError as exc:
        raise UploadChunkError("Upload completed but the response carried no JSON metadata") from exc
    if not isinstance(payload, dict):
        raise UploadChunkError("Upload completed but the response carried no JSON metadata")
    for key in (field, "id", "name"):
        if key and payload.get(key):
            return str(payload[key])
    raise UploadChunkError("Upload completed but no remote id was returned")


def _report(on_progress: ProgressCallback | None, session: UploadSession) -> None:
    logger.info(
        "[upload] %d/%d bytes confirmed (%.0f%%)",
        session.bytes_confirmed,
        session.total_bytes,
        100.0 * session.bytes_confirmed / session.total_bytes if session.total_bytes else 100.0,
    )
    if on_progress is not None:
        on_progress(session.bytes_confirmed, session.total_bytes)
