"""Explicit per-process context handed to pipeline components."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timezone

import httpx

from models.credential import Credential
from services.clip_selection import GenerateCall
from services.credentials import AuthorizationBroker, CredentialLifecycleManager, CredentialStore, OAuthTokenRefresher
from services.gemini_client import GeminiModel
from services.settings import GOOGLE_PROVIDER_ID, Settings
from services.transcription import TranscribeCall, WhisperTranscriber, static_token


@dataclass
class PipelineContext:
    settings: Settings
    http: httpx.AsyncClient
    store: CredentialStore
    credentials: CredentialLifecycleManager
    transcribe_call: TranscribeCall
    generate: GenerateCall

    @property
    def can_upload(self) -> bool:
        return self.store.get(GOOGLE_PROVIDER_ID) is not None


def build_context(
    settings: Settings,
    http: httpx.AsyncClient,
    *,
    store: CredentialStore | None = None,
    broker: AuthorizationBroker | None = None,
) -> PipelineContext:
    store = store or CredentialStore()
    seed_google_credential(store, settings)
    refresher = OAuthTokenRefresher(
        http,
        client_id=settings.google_client_id,
        client_secret=settings.google_client_secret,
    )
    credentials = CredentialLifecycleManager(store, refresher, broker or AuthorizationBroker(store))
    return PipelineContext(
        settings=settings,
        http=http,
        store=store,
        credentials=credentials,
        transcribe_call=WhisperTranscriber(http, static_token(settings.openai_api_key)),
        generate=GeminiModel(settings.gemini_api_key, model=settings.gemini_model).generate,
    )


def seed_google_credential(store: CredentialStore, settings: Settings) -> None:
    """
    Store a Google credential from GOOGLE_ACCESS_TOKEN / GOOGLE_REFRESH_TOKEN.

    A refresh token alone is stored as already expired, so the first
    ``ensure_valid`` exchanges it for an access token.
    """
    if store.get(GOOGLE_PROVIDER_ID) is not None:
        return
    if not (settings.google_access_token or settings.google_refresh_token):
        return
    expires_at = (
        datetime.max.replace(tzinfo=timezone.utc)
        if settings.google_access_token and not settings.google_refresh_token
        else datetime.fromtimestamp(0, tz=timezone.utc)
    )
    store.save(
        Credential(
            provider_id=GOOGLE_PROVIDER_ID,
            access_token=settings.google_access_token or "",
            refresh_token=settings.google_refresh_token,
            expires_at=expires_at,
        )
    )
