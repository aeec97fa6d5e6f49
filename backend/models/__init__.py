from .clip import Clip, ReviewDisposition, ReviewedClip, ReviewSummary, Segment, SelectionResult
from .credential import Credential
from .errors import Failure, FailureKind
from .job import JobStatus, ProcessingJob, ProjectMetadata
from .media import Chunk, MediaInfo, SourceMedia
from .transcript import ChunkTranscription, Transcript
from .upload import UploadResult, UploadSession

__all__ = [
    "SourceMedia",
    "MediaInfo",
    "Chunk",
    "ChunkTranscription",
    "Transcript",
    "Segment",
    "Clip",
    "ReviewDisposition",
    "ReviewedClip",
    "ReviewSummary",
    "SelectionResult",
    "UploadSession",
    "UploadResult",
    "Credential",
    "Failure",
    "FailureKind",
    "JobStatus",
    "ProcessingJob",
    "ProjectMetadata",
]
