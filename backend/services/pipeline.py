"""End-to-end processing: chunk, transcribe, segment, select clips; upload alongside."""

from __future__ import annotations

import asyncio
import logging
from contextlib import suppress
from dataclasses import dataclass, field

from models.clip import Clip, Segment, SelectionResult
from models.errors import Failure, FailureKind
from models.job import JobStatus, ProjectMetadata
from models.media import SourceMedia
from models.transcript import Transcript
from models.upload import UploadResult
from services.clip_selection import ClipSelectionEngine
from services.context import PipelineContext
from services.errors import ClipcasterError, PipelineError
from services.gcs import generate_signed_url, object_name_for, upload_blob
from services.media_chunker import MediaChunker
from services.resumable_upload import ProgressCallback, ResumableUploadEngine, UploadTarget
from services.segments import SegmentHeuristic
from services.settings import DEFAULT_SEGMENT_COUNT, GOOGLE_PROVIDER_ID
from services.transcription import TranscriptionOrchestrator

logger = logging.getLogger(__name__)


@dataclass
class PipelineResult:
    media: SourceMedia
    transcript: Transcript
    segments: list[Segment]
    selection: SelectionResult
    upload: UploadResult | None = None
    remote_url: str | None = None
    caveats: list[str] = field(default_factory=list)

    @property
    def clips(self) -> list[Clip]:
        return self.selection.clips

    @property
    def remote_id(self) -> str | None:
        return self.upload.remote_id if self.upload is not None else None

    @property
    def status(self) -> JobStatus:
        return JobStatus.COMPLETED_WITH_CAVEATS if self.caveats else JobStatus.COMPLETED


class ClipPipeline:
    def __init__(
        self,
        context: PipelineContext,
        *,
        chunker: MediaChunker | None = None,
        orchestrator: TranscriptionOrchestrator | None = None,
        heuristic: SegmentHeuristic | None = None,
        engine: ClipSelectionEngine | None = None,
        uploader: ResumableUploadEngine | None = None,
    ) -> None:
        settings = context.settings
        self._context = context
        self._chunker = chunker or MediaChunker()
        self._orchestrator = orchestrator or TranscriptionOrchestrator(
            delay_seconds=settings.inter_chunk_delay,
            timeout_seconds=settings.transcription_timeout,
        )
        self._heuristic = heuristic or SegmentHeuristic()
        self._engine = engine or ClipSelectionEngine(context.generate)
        self._uploader = uploader or ResumableUploadEngine(context.http, context.credentials)

    async def run(
        self,
        media: SourceMedia,
        project: ProjectMetadata,
        *,
        job_id: str = "local",
        upload: bool = True,
        on_progress: ProgressCallback | None = None,
    ) -> PipelineResult:
        """
        Run the clip pipeline and, concurrently, the source upload.

        Partial failures become caveats on the result. Raises PipelineError only
        when no usable transcript or no clips could be produced.
        """
        if upload and not self._context.can_upload:
            logger.info("[pipeline] No Google credential stored; skipping source upload")
            upload = False
        upload_task = (
            asyncio.create_task(self._upload(media, job_id, on_progress)) if upload else None
        )
        try:
            transcript, segments, selection = await self._analyse(media, project)
        except BaseException:
            if upload_task is not None:
                upload_task.cancel()
                with suppress(asyncio.CancelledError):
                    await upload_task
            raise

        upload_result = await upload_task if upload_task is not None else None
        result = PipelineResult(
            media=media,
            transcript=transcript,
            segments=segments,
            selection=selection,
            upload=upload_result,
        )
        if upload_result is not None and upload_result.ok:
            result.remote_url = await self._signed_url(upload_result.remote_id)
        result.caveats = _caveats(result)
        logger.info(
            "[pipeline] %s: %d clips, status=%s, caveats=%s",
            media.filename,
            len(result.clips),
            result.status.value,
            result.caveats,
        )
        return result

    async def _analyse(
        self, media: SourceMedia, project: ProjectMetadata
    ) -> tuple[Transcript, list[Segment], SelectionResult]:
        settings = self._context.settings
        # Audio extraction is CPU-bound; keep the loop free for the upload.
        chunks = await asyncio.to_thread(
            self._chunker.chunk, media, settings.max_chunk_bytes, settings.chunk_overlap_seconds
        )
        transcript = await self._orchestrator.transcribe(chunks, self._context.transcribe_call)
        if not transcript.usable:
            raise PipelineError(
                f"No usable transcript: {len(transcript.failures)} of {len(chunks)} chunks failed",
                failures=transcript.failures,
            )

        segments = self._heuristic.segment(
            transcript, DEFAULT_SEGMENT_COUNT, total_duration=media.duration_seconds
        )
        selection = await self._engine.select(
            segments, transcript.full_text, max(project.num_clips, 1), project
        )
        if not selection.clips:
            raise PipelineError("No clips could be produced", failures=selection.failures)
        return transcript, segments, selection

    async def _upload(
        self, media: SourceMedia, job_id: str, on_progress: ProgressCallback | None
    ) -> UploadResult:
        settings = self._context.settings
        object_name = object_name_for(job_id, media.filename)
        target = UploadTarget.gcs(settings.gcs_bucket, object_name, media.mime_type)
        result = await self._uploader.upload(
            media,
            GOOGLE_PROVIDER_ID,
            target,
            chunk_size_bytes=settings.upload_chunk_bytes,
            on_progress=on_progress,
        )
        if not result.fallback_required:
            return result

        logger.info("[pipeline] Falling back to single-request upload for %s", object_name)
        try:
            token = await self._context.credentials.ensure_valid(GOOGLE_PROVIDER_ID)
            remote_id = await asyncio.to_thread(
                upload_blob,
                object_name,
                media.data,
                content_type=media.mime_type,
                bucket_name=settings.gcs_bucket,
                access_token=token,
            )
        except ClipcasterError as exc:
            return UploadResult(ok=False, failure=exc.to_failure() if exc.kind else None)
        except Exception as exc:  # noqa: BLE001
            logger.error("[pipeline] Fallback upload failed: %s", exc, exc_info=True)
            return UploadResult(
                ok=False,
                failure=Failure(FailureKind.UPLOAD_CHUNK, f"Fallback upload failed: {type(exc).__name__}: {exc}"),
            )
        return UploadResult(ok=True, remote_id=remote_id)

    async def _signed_url(self, remote_id: str | None) -> str | None:
        if not remote_id:
            return None
        settings = self._context.settings
        try:
            token = None
            if settings.signing_service_account:
                token = await self._context.credentials.ensure_valid(GOOGLE_PROVIDER_ID)
            return await asyncio.to_thread(
                generate_signed_url,
                remote_id,
                bucket_name=settings.gcs_bucket,
                service_account_email=settings.signing_service_account,
                access_token=token,
            )
        except Exception as exc:  # noqa: BLE001
            logger.warning("[pipeline] Could not sign download URL for %s: %s", remote_id, exc)
            return None


def _caveats(result: PipelineResult) -> list[str]:
    caveats = list(result.transcript.caveats)
    selection = result.selection
    if selection.fallback_count:
        caveats.append(
            f"{selection.fallback_count} of {len(selection.clips)} clips are heuristic fallbacks"
        )
    for failure in selection.failures:
        caveats.append(f"AI selection degraded: {failure.message}")
    upload = result.upload
    if upload is not None and not upload.ok:
        reason = upload.failure.message if upload.failure else "unknown error"
        caveats.append(f"Source upload failed: {reason}")
    return caveats
