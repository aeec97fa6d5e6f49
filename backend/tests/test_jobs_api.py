"""Tests for POST /api/jobs and GET /api/jobs/{id}."""

import io
import json
import wave

import httpx
import pytest

from app.main import app
from models.clip import Clip, SelectionResult
from models.job import JobStatus
from models.transcript import ChunkTranscription, Transcript
from services.errors import PipelineError
from services.pipeline import PipelineResult
from services.store import jobs


def _wav_bytes(seconds: float = 1.0) -> bytes:
    buffer = io.BytesIO()
    with wave.open(buffer, "wb") as wav:
        wav.setnchannels(1)
        wav.setsampwidth(2)
        wav.setframerate(8000)
        wav.writeframes(b"\x00\x00" * int(seconds * 8000))
    return buffer.getvalue()


class _FakePipeline:
    def __init__(self, *, error: Exception | None = None) -> None:
        self.error = error
        self.runs: list[tuple] = []

    async def run(self, media, project, *, job_id):
        self.runs.append((media.filename, project, job_id))
        if self.error is not None:
            raise self.error
        return PipelineResult(
            media=media,
            transcript=Transcript(entries=[ChunkTranscription(0, 0.0, 1.0, "hello world")]),
            segments=[],
            selection=SelectionResult(clips=[Clip(0.0, 1.0, caption="hi", is_fallback=True)]),
            caveats=["1 of 1 clips are heuristic fallbacks"],
        )


@pytest.fixture(autouse=True)
def clear_jobs() -> None:
    """Isolate tests by clearing the in-memory job store."""
    jobs.clear()
    yield
    jobs.clear()
    app.state.pipeline = None


async def _post(project: dict | str, data: bytes | None = None) -> httpx.Response:
    transport = httpx.ASGITransport(app=app)
    payload = project if isinstance(project, str) else json.dumps(project)
    async with httpx.AsyncClient(transport=transport, base_url="http://test") as client:
        return await client.post(
            "/api/jobs",
            files={"video": ("talk.wav", data if data is not None else _wav_bytes(), "audio/wav")},
            data={"project": payload},
        )


async def _get(path: str) -> httpx.Response:
    transport = httpx.ASGITransport(app=app)
    async with httpx.AsyncClient(transport=transport, base_url="http://test") as client:
        return await client.get(path)


@pytest.mark.anyio
async def test_health() -> None:
    response = await _get("/health")
    assert response.status_code == 200
    assert response.json() == {"status": "ok"}


@pytest.mark.anyio
async def test_create_job_runs_pipeline_and_exposes_result() -> None:
    pipeline = _FakePipeline()
    app.state.pipeline = pipeline

    response = await _post({"project_name": "Talk", "ai_prompt": "funny bits", "num_clips": 1})

    assert response.status_code == 202
    body = response.json()
    job_id = body["processing_id"]
    assert body["status_url"] == f"/api/jobs/{job_id}"
    assert len(job_id) == 12
    assert not set(job_id) & set("01ilo")
    assert pipeline.runs[0][0] == "talk.wav"
    assert pipeline.runs[0][1].ai_prompt == "funny bits"
    assert pipeline.runs[0][2] == job_id

    status = await _get(body["status_url"])
    assert status.status_code == 200
    result = status.json()
    assert result["status"] == JobStatus.COMPLETED_WITH_CAVEATS.value
    assert result["caveats"] == ["1 of 1 clips are heuristic fallbacks"]
    assert result["clips"][0]["caption"] == "hi"
    assert result["clips"][0]["is_fallback"] is True
    assert result["transcript"] == "hello world"
    assert jobs[job_id].finished_at is not None


@pytest.mark.anyio
async def test_pipeline_error_marks_job_failed() -> None:
    app.state.pipeline = _FakePipeline(error=PipelineError("No usable transcript"))

    response = await _post({})
    job_id = response.json()["processing_id"]

    result = (await _get(f"/api/jobs/{job_id}")).json()
    assert result["status"] == JobStatus.ERROR.value
    assert result["error"] == "No usable transcript"
    assert result["clips"] == []


@pytest.mark.anyio
async def test_invalid_project_metadata_is_rejected() -> None:
    app.state.pipeline = _FakePipeline()
    assert (await _post("{not json")).status_code == 422
    assert (await _post({"num_clips": 0})).status_code == 422
    assert jobs == {}


@pytest.mark.anyio
async def test_unreadable_media_is_rejected() -> None:
    app.state.pipeline = _FakePipeline()
    response = await _post({}, data=b"not a video at all" * 32)
    assert response.status_code == 400
    assert jobs == {}


@pytest.mark.anyio
async def test_unconfigured_pipeline_returns_503() -> None:
    app.state.pipeline = None
    assert (await _post({})).status_code == 503


@pytest.mark.anyio
async def test_get_job_returns_404_when_missing() -> None:
    response = await _get("/api/jobs/nonexistent")
    assert response.status_code == 404
    assert response.json()["detail"] == "Job not found"
