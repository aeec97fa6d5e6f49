"""Processing backend REST API: submit a video + project metadata, poll for clips."""

import asyncio
import logging
import secrets
from dataclasses import asdict
from datetime import datetime, timezone

from fastapi import APIRouter, BackgroundTasks, File, Form, HTTPException, Request, UploadFile
from pydantic import BaseModel, Field, ValidationError

from models.job import JobStatus, ProcessingJob, ProjectMetadata
from models.media import SourceMedia
from services.errors import MediaProbeError, PipelineError
from services.media_probe import probe
from services.pipeline import ClipPipeline
from services.store import jobs

# Avoid 0/O, 1/I/l in processing IDs so links don't get misread.
_JOB_ALPHABET = "23456789abcdefghjkmnpqrstuvwxyz"
_JOB_ID_LENGTH = 12

router = APIRouter(tags=["jobs"])
logger = logging.getLogger(__name__)


class ProjectRequest(BaseModel):
    """Project metadata sent as the JSON ``project`` form field."""

    project_name: str = ""
    description: str = ""
    ai_prompt: str = ""
    target_platforms: list[str] = Field(default_factory=list)
    num_clips: int = Field(default=3, ge=1, le=20)
    target_duration: float | None = Field(default=None, gt=0)


class JobCreateResponse(BaseModel):
    processing_id: str
    status_url: str


class ClipResponse(BaseModel):
    start_time: float
    end_time: float
    viral_score: int
    caption: str
    hashtags: list[str]
    hook_line: str
    call_to_action: str
    target_platforms: list[str]
    reasoning: str
    confidence_score: float
    user_compliance_score: int
    segment_text: str
    content_type: str
    is_fallback: bool


class JobReadResponse(BaseModel):
    """Job status for polling. GET /api/jobs/{id}."""

    status: JobStatus
    caveats: list[str] = Field(default_factory=list)
    clips: list[ClipResponse] = Field(default_factory=list)
    transcript: str = ""
    remote_id: str | None = None
    remote_url: str | None = None
    error: str | None = None


def _generate_job_id() -> str:
    return "".join(secrets.choice(_JOB_ALPHABET) for _ in range(_JOB_ID_LENGTH))


def _pipeline(request: Request) -> ClipPipeline:
    pipeline = getattr(request.app.state, "pipeline", None)
    if pipeline is None:
        raise HTTPException(status_code=503, detail="Processing pipeline not configured")
    return pipeline


async def run_job(pipeline: ClipPipeline, job: ProcessingJob, media: SourceMedia) -> None:
    """Run the pipeline for ``job`` and record the outcome on it."""
    job.status = JobStatus.PROCESSING
    logger.info("[jobs] Job %s processing %s (%d bytes)", job.id, media.filename, media.size_bytes)
    try:
        result = await pipeline.run(media, job.project, job_id=job.id)
    except PipelineError as exc:
        logger.error("[jobs] Job %s failed: %s", job.id, exc.message)
        job.status = JobStatus.ERROR
        job.error = exc.message
    except Exception as exc:  # noqa: BLE001
        logger.exception("[jobs] Job %s crashed", job.id)
        job.status = JobStatus.ERROR
        job.error = f"{type(exc).__name__}: {exc}"
    else:
        job.transcript = result.transcript.full_text
        job.clips = result.clips
        job.caveats = result.caveats
        job.remote_id = result.remote_id
        job.remote_url = result.remote_url
        job.status = result.status
        logger.info("[jobs] Job %s finished: status=%s clips=%d", job.id, job.status.value, len(job.clips))
    finally:
        job.finished_at = datetime.now(timezone.utc)


@router.post("/jobs", response_model=JobCreateResponse, status_code=202)
async def create_job(
    request: Request,
    background_tasks: BackgroundTasks,
    video: UploadFile = File(...),
    project: str = Form("{}"),
) -> JobCreateResponse:
    """Accept a video and project metadata; processing continues in the background."""
    logger.info("[jobs] POST /api/jobs called. filename=%s", video.filename)
    pipeline = _pipeline(request)
    try:
        metadata = ProjectRequest.model_validate_json(project)
    except ValidationError as exc:
        raise HTTPException(status_code=422, detail=f"Invalid project metadata: {exc.errors()}") from exc

    data = await video.read()
    try:
        media = await asyncio.to_thread(
            probe,
            data,
            video.content_type or "application/octet-stream",
            filename=video.filename or "source.mp4",
        )
    except MediaProbeError as exc:
        raise HTTPException(status_code=400, detail=exc.message) from exc

    job_id = _generate_job_id()
    job = ProcessingJob(id=job_id, project=ProjectMetadata(**metadata.model_dump()))
    jobs[job_id] = job
    background_tasks.add_task(run_job, pipeline, job, media)
    logger.info("[jobs] POST /jobs -> 202 processing_id=%s duration=%.1fs", job_id, media.duration_seconds)
    return JobCreateResponse(processing_id=job_id, status_url=f"/api/jobs/{job_id}")


@router.get("/jobs/{job_id}", response_model=JobReadResponse, status_code=200)
def get_job(job_id: str) -> JobReadResponse:
    logger.info("[jobs] GET /api/jobs/%s called", job_id)
    job = jobs.get(job_id)
    if job is None:
        raise HTTPException(status_code=404, detail="Job not found")
    return JobReadResponse(
        status=job.status,
        caveats=job.caveats,
        clips=[ClipResponse(**asdict(clip)) for clip in job.clips],
        transcript=job.transcript,
        remote_id=job.remote_id,
        remote_url=job.remote_url,
        error=job.error,
    )
