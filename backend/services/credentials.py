"""Credential lifecycle: validate, refresh, and when needed force re-authentication."""

from __future__ import annotations

import asyncio
import logging
from datetime import datetime, timezone
from typing import Callable

import httpx

from models.credential import Credential
from services.errors import ReauthRequired, TokenRefreshError
from services.settings import GOOGLE_TOKEN_URL, REFRESH_MARGIN_SECONDS

logger = logging.getLogger(__name__)

REFRESH_TIMEOUT_SECONDS = 15.0


class CredentialStore:
    """In-memory credential records keyed by provider ID (one user per context)."""

    def __init__(self) -> None:
        self._records: dict[str, Credential] = {}

    def get(self, provider_id: str) -> Credential | None:
        return self._records.get(provider_id)

    def save(self, credential: Credential) -> None:
        self._records[credential.provider_id] = credential

    def delete(self, provider_id: str) -> None:
        self._records.pop(provider_id, None)


class AuthorizationBroker:
    """
    One awaitable future per in-flight authorization attempt.

    Whatever transport delivers the OAuth result (callback route, CLI prompt,
    test) calls ``complete``; everything else only awaits the future.
    """

    def __init__(
        self,
        store: CredentialStore,
        *,
        on_begin: Callable[[str], None] | None = None,
    ) -> None:
        self._store = store
        self._on_begin = on_begin
        self._pending: dict[str, asyncio.Future[Credential]] = {}

    def begin(self, provider_id: str) -> asyncio.Future[Credential]:
        future = self._pending.get(provider_id)
        if future is not None and not future.done():
            return future
        future = asyncio.get_running_loop().create_future()
        self._pending[provider_id] = future
        logger.info("[credentials] Authorization flow started for %s", provider_id)
        if self._on_begin is not None:
            self._on_begin(provider_id)
        return future

    def is_pending(self, provider_id: str) -> bool:
        future = self._pending.get(provider_id)
        return future is not None and not future.done()

    def complete(self, credential: Credential) -> bool:
        """Store the delivered credential and resolve the waiting future, if any."""
        self._store.save(credential)
        future = self._pending.pop(credential.provider_id, None)
        if future is None or future.done():
            return False
        future.set_result(credential)
        logger.info("[credentials] Authorization completed for %s", credential.provider_id)
        return True

    def fail(self, provider_id: str, exc: BaseException) -> bool:
        future = self._pending.pop(provider_id, None)
        if future is None or future.done():
            return False
        future.set_exception(exc)
        return True


class OAuthTokenRefresher:
    """``grant_type=refresh_token`` exchange against a provider token endpoint."""

    def __init__(
        self,
        client: httpx.AsyncClient,
        *,
        client_id: str | None,
        client_secret: str | None,
        token_url: str = GOOGLE_TOKEN_URL,
        timeout_seconds: float = REFRESH_TIMEOUT_SECONDS,
    ) -> None:
        self._client = client
        self._client_id = client_id
        self._client_secret = client_secret
        self._token_url = token_url
        self._timeout = timeout_seconds

    async def refresh(self, credential: Credential) -> Credential:
        form = {
            "grant_type": "refresh_token",
            "refresh_token": credential.refresh_token or "",
        }
        if self._client_id:
            form["client_id"] = self._client_id
        if self._client_secret:
            form["client_secret"] = self._client_secret
        try:
            response = await self._client.post(self._token_url, data=form, timeout=self._timeout)
        except httpx.HTTPError as exc:
            raise TokenRefreshError(f"Token refresh request failed: {type(exc).__name__}: {exc}") from exc

        if response.status_code // 100 != 2:
            error = _error_code(response)
            raise TokenRefreshError(
                f"Token refresh rejected: HTTP {response.status_code} {error or ''}".strip(),
                invalid_grant=error == "invalid_grant",
                status_code=response.status_code,
            )
        try:
            payload = response.json()
            if "access_token" not in payload:
                raise TokenRefreshError("Token refresh response has no access_token")
            return Credential.from_token_response(
                credential.provider_id,
                payload,
                refresh_token=credential.refresh_token,
            )
        except (ValueError, TypeError, KeyError, OverflowError) as exc:
            raise TokenRefreshError(
                "Token refresh returned an unreadable body", status_code=response.status_code
            ) from exc


def _error_code(response: httpx.Response) -> str | None:
    try:
        body = response.json()
    except ValueError:
        return None
    if isinstance(body, dict):
        error = body.get("error")
        return error if isinstance(error, str) else None
    return None


class CredentialLifecycleManager:
    """
    Hand out bearer tokens that are valid "now", refreshing transparently.

    Refreshes and re-authorizations are deduplicated per provider: callers that
    observe expiry while one is in flight await the same task instead of
    starting another.
    """

    def __init__(
        self,
        store: CredentialStore,
        refresher: OAuthTokenRefresher,
        broker: AuthorizationBroker | None = None,
        *,
        margin_seconds: float = REFRESH_MARGIN_SECONDS,
        clock: Callable[[], datetime] | None = None,
    ) -> None:
        self._store = store
        self._refresher = refresher
        self._broker = broker or AuthorizationBroker(store)
        self._margin = margin_seconds
        self._clock = clock or (lambda: datetime.now(timezone.utc))
        self._in_flight: dict[str, asyncio.Task[Credential]] = {}

    @property
    def broker(self) -> AuthorizationBroker:
        return self._broker

    async def ensure_valid(self, provider_id: str) -> str:
        credential = self._store.get(provider_id)
        if credential is None:
            raise self._start_reauth(provider_id, "No stored credential")
        if not credential.expires_within(self._margin, now=self._clock()):
            return credential.access_token
        logger.info("[credentials] Token for %s expires within %ds; refreshing", provider_id, self._margin)
        refreshed = await self._refresh_once(provider_id, credential)
        return refreshed.access_token

    async def handle_expired(self, provider_id: str, connection: Credential | None = None) -> bool:
        """React to a server-side rejection of the current token; True when a fresh token is stored."""
        credential = connection or self._store.get(provider_id)
        if credential is None:
            self._start_reauth(provider_id, "No stored credential")
            return False
        try:
            await self._refresh_once(provider_id, credential)
        except ReauthRequired:
            return False
        except TokenRefreshError as exc:
            logger.error("[credentials] Refresh for %s failed: %s", provider_id, exc)
            return False
        return True

    async def _refresh_once(self, provider_id: str, credential: Credential) -> Credential:
        task = self._in_flight.get(provider_id)
        if task is None:
            task = asyncio.ensure_future(self._refresh(provider_id, credential))
            self._in_flight[provider_id] = task
            task.add_done_callback(lambda done: self._clear_in_flight(provider_id, done))
        else:
            logger.info("[credentials] Refresh for %s already in flight; awaiting it", provider_id)
        return await asyncio.shield(task)

    def _clear_in_flight(self, provider_id: str, task: asyncio.Task[Credential]) -> None:
        if self._in_flight.get(provider_id) is task:
            del self._in_flight[provider_id]

    async def _refresh(self, provider_id: str, credential: Credential) -> Credential:
        if not credential.refresh_token:
            raise self._start_reauth(provider_id, "No refresh token")
        try:
            fresh = await self._refresher.refresh(credential)
        except TokenRefreshError as exc:
            if exc.invalid_grant:
                raise self._start_reauth(provider_id, "Refresh token rejected (invalid_grant)") from exc
            raise
        self._store.save(fresh)
        logger.info("[credentials] Refreshed token for %s (expires %s)", provider_id, fresh.expires_at.isoformat())
        return fresh

    def _start_reauth(self, provider_id: str, reason: str) -> ReauthRequired:
        # Stale record goes first so no half-valid credential outlives the new flow.
        self._store.delete(provider_id)
        pending = self._broker.begin(provider_id)
        logger.warning("[credentials] %s for %s; re-authentication required", reason, provider_id)
        return ReauthRequired(provider_id, f"{reason}; re-authentication required for {provider_id}", pending=pending)
