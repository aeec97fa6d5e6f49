from dataclasses import dataclass
from datetime import datetime, timedelta, timezone


@dataclass
class Credential:
    provider_id: str
    access_token: str
    expires_at: datetime
    refresh_token: str | None = None

    def expires_within(self, margin_seconds: float, *, now: datetime | None = None) -> bool:
        now = now or datetime.now(timezone.utc)
        return self.expires_at - timedelta(seconds=margin_seconds) <= now

    @classmethod
    def from_token_response(
        cls,
        provider_id: str,
        payload: dict,
        *,
        refresh_token: str | None = None,
        now: datetime | None = None,
    ) -> "Credential":
        now = now or datetime.now(timezone.utc)
        return cls(
            provider_id=provider_id,
            access_token=payload["access_token"],
            expires_at=now + timedelta(seconds=int(payload.get("expires_in", 3600))),
            refresh_token=payload.get("refresh_token") or refresh_token,
        )
