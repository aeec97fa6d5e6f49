"""Tunable limits and environment-backed configuration."""

import os
from dataclasses import dataclass

MiB = 1024 * 1024

# Transcription
MAX_CHUNK_BYTES = 20 * MiB                # safe margin below the API ceiling
TRANSCRIPTION_SIZE_LIMIT = 25 * MiB       # hard body limit of the transcription endpoint
CHUNK_OVERLAP_SECONDS = 0.0
INTER_CHUNK_DELAY_SECONDS = 2.0
TRANSCRIPTION_TIMEOUT_SECONDS = 10 * 60
TRANSCRIPTION_URL = "https://api.openai.com/v1/audio/transcriptions"
TRANSCRIPTION_MODEL = "whisper-1"
TRANSCRIPTION_LANGUAGE = "en"

# Clip selection
DEFAULT_SEGMENT_COUNT = 20
CONDENSED_TRANSCRIPT_WORDS = 500
REVIEW_TRANSCRIPT_CHARS = 2000
GEMINI_MODEL = "gemini-2.5-flash"
AI_CALL_TIMEOUT_SECONDS = 120.0

# Upload
UPLOAD_CHUNK_BYTES = 8 * MiB              # must stay a multiple of 256 KiB
UPLOAD_CHUNK_GRANULARITY = 256 * 1024
UPLOAD_INIT_TIMEOUT_SECONDS = 15.0
UPLOAD_CHUNK_TIMEOUT_SECONDS = 120.0
UPLOAD_MAX_RETRIES = 3
UPLOAD_BACKOFF_SECONDS = 1.0
DEFAULT_BUCKET = "clipcaster-media"

# Credentials
GOOGLE_PROVIDER_ID = "google"
GOOGLE_TOKEN_URL = "https://oauth2.googleapis.com/token"
REFRESH_MARGIN_SECONDS = 5 * 60

# Processing backend handoff
HANDOFF_TIMEOUT_SECONDS = 5 * 60


def _env(name: str, default: str | None = None) -> str | None:
    value = os.environ.get(name, "").strip()
    return value or default


@dataclass(frozen=True)
class Settings:
    openai_api_key: str | None = None
    gemini_api_key: str | None = None
    gemini_model: str = GEMINI_MODEL
    gcs_bucket: str = DEFAULT_BUCKET
    google_client_id: str | None = None
    google_client_secret: str | None = None
    processing_backend_url: str | None = None
    google_access_token: str | None = None
    google_refresh_token: str | None = None
    signing_service_account: str | None = None
    max_chunk_bytes: int = MAX_CHUNK_BYTES
    chunk_overlap_seconds: float = CHUNK_OVERLAP_SECONDS
    inter_chunk_delay: float = INTER_CHUNK_DELAY_SECONDS
    transcription_timeout: float = TRANSCRIPTION_TIMEOUT_SECONDS
    upload_chunk_bytes: int = UPLOAD_CHUNK_BYTES

    @classmethod
    def from_env(cls) -> "Settings":
        """Build settings from environment variables; blank values count as unset."""
        return cls(
            openai_api_key=_env("OPENAI_API_KEY"),
            gemini_api_key=_env("GEMINI_API_KEY"),
            gemini_model=_env("GEMINI_MODEL", GEMINI_MODEL),
            gcs_bucket=_env("GCS_BUCKET", DEFAULT_BUCKET),
            google_client_id=_env("GOOGLE_CLIENT_ID"),
            google_client_secret=_env("GOOGLE_CLIENT_SECRET"),
            processing_backend_url=_env("PROCESSING_BACKEND_URL"),
            google_access_token=_env("GOOGLE_ACCESS_TOKEN"),
            google_refresh_token=_env("GOOGLE_REFRESH_TOKEN"),
            signing_service_account=_env("GCS_SIGNING_SERVICE_ACCOUNT"),
            max_chunk_bytes=int(_env("MAX_CHUNK_BYTES", str(MAX_CHUNK_BYTES))),
            chunk_overlap_seconds=float(_env("CHUNK_OVERLAP_SECONDS", str(CHUNK_OVERLAP_SECONDS))),
            inter_chunk_delay=float(_env("INTER_CHUNK_DELAY_SECONDS", str(INTER_CHUNK_DELAY_SECONDS))),
            transcription_timeout=float(
                _env("TRANSCRIPTION_TIMEOUT_SECONDS", str(TRANSCRIPTION_TIMEOUT_SECONDS))
            ),
            upload_chunk_bytes=int(_env("UPLOAD_CHUNK_BYTES", str(UPLOAD_CHUNK_BYTES))),
        )
