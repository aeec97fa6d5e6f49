"""Client for handing a whole video to the processing backend in one request."""

from __future__ import annotations

import json
import logging
from dataclasses import asdict, dataclass

import httpx

from models.job import ProjectMetadata
from models.media import SourceMedia
from services.errors import HandoffError
from services.settings import HANDOFF_TIMEOUT_SECONDS

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class HandoffReceipt:
    processing_id: str
    status_url: str


async def hand_off(
    client: httpx.AsyncClient,
    backend_url: str,
    media: SourceMedia,
    project: ProjectMetadata,
    *,
    timeout_seconds: float = HANDOFF_TIMEOUT_SECONDS,
) -> HandoffReceipt:
    """
    POST the video and its project metadata as one multipart request.

    Processing continues asynchronously on the backend; poll ``status_url``.
    """
    url = f"{backend_url.rstrip('/')}/api/jobs"
    logger.info("[handoff] POST %s (%d bytes, project=%s)", url, media.size_bytes, project.project_name)
    try:
        response = await client.post(
            url,
            files={"video": (media.filename, media.data, media.mime_type)},
            data={"project": json.dumps(asdict(project))},
            timeout=timeout_seconds,
        )
    except httpx.TimeoutException as exc:
        raise HandoffError(
            f"Request timed out after {timeout_seconds:.0f} seconds; processing may still be running"
        ) from exc
    except httpx.HTTPError as exc:
        raise HandoffError(f"Processing backend unreachable: {type(exc).__name__}: {exc}") from exc

    if response.status_code // 100 != 2:
        raise HandoffError(
            f"Processing backend rejected the upload: HTTP {response.status_code}",
            status_code=response.status_code,
        )
    try:
        body = response.json()
        return HandoffReceipt(processing_id=str(body["processing_id"]), status_url=str(body["status_url"]))
    except (KeyError, TypeError, ValueError) as exc:
        raise HandoffError("Processing backend response lacks processing_id/status_url") from exc
