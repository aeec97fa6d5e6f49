from dataclasses import dataclass
from enum import Enum


class FailureKind(str, Enum):
    SIZE_LIMIT_EXCEEDED = "size_limit_exceeded"
    TRANSCRIPTION_TIMEOUT = "transcription_timeout"
    TRANSCRIPTION_TRANSPORT = "transcription_transport"
    AI_TRANSPORT = "ai_transport"
    AI_PARSE = "ai_parse"
    UPLOAD_INIT_TIMEOUT = "upload_init_timeout"
    UPLOAD_CHUNK = "upload_chunk"
    TOKEN_EXPIRED = "token_expired"
    REAUTH_REQUIRED = "reauth_required"


@dataclass(frozen=True)
class Failure:
    kind: FailureKind
    message: str               # human-readable cause
    detail: str | None = None  # e.g. chunk index, vendor error body
