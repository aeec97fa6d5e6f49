"""Exception taxonomy. Each error maps onto a FailureKind for result values."""

from __future__ import annotations

import asyncio
from typing import Any

from models.errors import Failure, FailureKind


class ClipcasterError(Exception):
    kind: FailureKind | None = None

    def __init__(self, message: str, *, detail: str | None = None) -> None:
        super().__init__(message)
        self.message = message
        self.detail = detail

    def to_failure(self) -> Failure:
        if self.kind is None:
            raise TypeError(f"{type(self).__name__} has no failure kind")
        return Failure(kind=self.kind, message=self.message, detail=self.detail)


class MediaProbeError(ClipcasterError):
    pass


class AudioExtractionError(ClipcasterError):
    pass


class SizeLimitExceeded(ClipcasterError):
    kind = FailureKind.SIZE_LIMIT_EXCEEDED

    def __init__(self, size_bytes: int, limit_bytes: int, *, detail: str | None = None) -> None:
        super().__init__(
            f"Chunk size {size_bytes / (1024 * 1024):.2f}MB exceeds the "
            f"{limit_bytes / (1024 * 1024):.0f}MB transcription limit",
            detail=detail,
        )
        self.size_bytes = size_bytes
        self.limit_bytes = limit_bytes


class TranscriptionTimeout(ClipcasterError):
    kind = FailureKind.TRANSCRIPTION_TIMEOUT


class TranscriptionTransportError(ClipcasterError):
    kind = FailureKind.TRANSCRIPTION_TRANSPORT

    def __init__(self, message: str, *, status_code: int | None = None, detail: str | None = None) -> None:
        super().__init__(message, detail=detail)
        self.status_code = status_code


class AIParseError(ClipcasterError):
    kind = FailureKind.AI_PARSE


class UploadChunkError(ClipcasterError):
    kind = FailureKind.UPLOAD_CHUNK


class TokenExpired(ClipcasterError):
    kind = FailureKind.TOKEN_EXPIRED


class TokenRefreshError(TokenExpired):
    def __init__(self, message: str, *, invalid_grant: bool = False, status_code: int | None = None) -> None:
        super().__init__(message)
        self.invalid_grant = invalid_grant
        self.status_code = status_code


class ReauthRequired(ClipcasterError):
    """Credential cannot be refreshed; the user has to authorize again.

    ``pending`` resolves with the new Credential once the authorization flow
    delivers one.
    """

    kind = FailureKind.REAUTH_REQUIRED

    def __init__(
        self,
        provider_id: str,
        message: str | None = None,
        *,
        pending: asyncio.Future[Any] | None = None,
    ) -> None:
        super().__init__(
            message or f"Re-authentication required for provider {provider_id}",
            detail=provider_id,
        )
        self.provider_id = provider_id
        self.pending = pending


class HandoffError(ClipcasterError):
    def __init__(self, message: str, *, status_code: int | None = None) -> None:
        super().__init__(message)
        self.status_code = status_code


class PipelineError(ClipcasterError):
    def __init__(self, message: str, *, failures: list[Failure] | None = None) -> None:
        super().__init__(message)
        self.failures = failures or []
