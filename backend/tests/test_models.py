from datetime import datetime, timedelta, timezone

from models import (
    Chunk,
    ChunkTranscription,
    Clip,
    Credential,
    Failure,
    FailureKind,
    JobStatus,
    ProcessingJob,
    ProjectMetadata,
    SelectionResult,
    Transcript,
    UploadSession,
)


def test_processing_job_defaults() -> None:
    job = ProcessingJob(id="abc123", project=ProjectMetadata(project_name="talk"))
    assert job.status is JobStatus.WAITING
    assert isinstance(job.created_at, datetime)
    assert job.finished_at is None
    assert job.clips == []
    assert job.caveats == []
    assert job.remote_id is None
    assert job.project.num_clips == 3


def test_transcript_keeps_one_position_per_chunk() -> None:
    failure = Failure(FailureKind.TRANSCRIPTION_TIMEOUT, "timed out")
    transcript = Transcript(
        entries=[
            ChunkTranscription(0, 0.0, 10.0, "hello"),
            ChunkTranscription(1, 10.0, 20.0, error=failure),
            ChunkTranscription(2, 20.0, 30.0, "world"),
        ]
    )
    assert transcript.texts == ["hello", "", "world"]
    assert transcript.full_text == "hello  world"
    assert transcript.failures == [failure]
    assert transcript.usable is True
    assert transcript.duration == 30.0
    assert transcript.caveats == ["1 of 3 chunks failed; transcription truncated"]


def test_transcript_unusable_when_every_chunk_failed() -> None:
    failure = Failure(FailureKind.TRANSCRIPTION_TRANSPORT, "boom")
    transcript = Transcript(entries=[ChunkTranscription(0, 0.0, 5.0, error=failure)])
    assert transcript.usable is False
    assert Transcript().duration == 0.0
    assert Transcript().caveats == []


def test_clip_validity_and_duration() -> None:
    assert Clip(start_time=1.0, end_time=31.5).duration == 30.5
    assert Clip(start_time=1.0, end_time=31.5).is_valid
    assert not Clip(start_time=5.0, end_time=5.0).is_valid
    assert not Clip(start_time=9.0, end_time=3.0).is_valid


def test_selection_result_counts_fallback_clips() -> None:
    result = SelectionResult(
        clips=[Clip(0, 10), Clip(10, 20, is_fallback=True), Clip(20, 30, is_fallback=True)]
    )
    assert result.fallback_count == 2


def test_chunk_filename_follows_mime_type() -> None:
    assert Chunk(0, 0.0, 1.0, 1.0, b"x").filename == "chunk_1.mp3"
    assert Chunk(2, 0.0, 1.0, 1.0, b"x", mime_type="video/mp4").filename == "chunk_3.bin"


def test_upload_session_complete() -> None:
    session = UploadSession("https://upload.example/s", total_bytes=100, chunk_size_bytes=256 * 1024)
    assert not session.complete
    session.bytes_confirmed = 100
    assert session.complete


def test_credential_expires_within_margin() -> None:
    now = datetime(2026, 1, 1, tzinfo=timezone.utc)
    credential = Credential("google", "tok", expires_at=now + timedelta(seconds=200))
    assert credential.expires_within(300, now=now)
    assert not credential.expires_within(100, now=now)


def test_credential_from_token_response_keeps_refresh_token() -> None:
    now = datetime(2026, 1, 1, tzinfo=timezone.utc)
    credential = Credential.from_token_response(
        "google", {"access_token": "new", "expires_in": 1800}, refresh_token="r1", now=now
    )
    assert credential.access_token == "new"
    assert credential.refresh_token == "r1"
    assert credential.expires_at == now + timedelta(seconds=1800)
