"""Generative-model call used by clip selection (Gemini via google-genai)."""

from __future__ import annotations

import asyncio
import logging
from typing import Any

from services.settings import AI_CALL_TIMEOUT_SECONDS, GEMINI_MODEL

logger = logging.getLogger(__name__)


class GeminiModel:
    """
    Async text-in/text-out wrapper around ``google.genai``.

    The SDK client is created lazily so the rest of the pipeline can be
    imported and tested without credentials.
    """

    def __init__(
        self,
        api_key: str | None,
        *,
        model: str = GEMINI_MODEL,
        timeout_seconds: float = AI_CALL_TIMEOUT_SECONDS,
        client: Any | None = None,
    ) -> None:
        self._api_key = api_key
        self._model = model
        self._timeout = timeout_seconds
        self._client = client

    def _ensure_client(self) -> Any:
        if self._client is not None:
            return self._client
        if not self._api_key:
            raise RuntimeError("GEMINI_API_KEY not set")
        from google import genai  # noqa: PLC0415

        self._client = genai.Client(api_key=self._api_key)
        return self._client

    async def generate(self, prompt: str) -> str:
        from google.genai import types  # noqa: PLC0415

        client = self._ensure_client()
        logger.info("[gemini] generate_content model=%s prompt=%d chars", self._model, len(prompt))
        response = await asyncio.wait_for(
            client.aio.models.generate_content(
                model=self._model,
                contents=prompt,
                config=types.GenerateContentConfig(
                    response_mime_type="application/json",
                    temperature=0.3,
                ),
            ),
            timeout=self._timeout,
        )
        text = response.text or ""
        logger.info("[gemini] response %d chars", len(text))
        return text
