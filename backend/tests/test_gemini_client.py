import asyncio
from types import SimpleNamespace

import pytest

from services.gemini_client import GeminiModel


class _FakeModels:
    def __init__(self, text: str | None, delay: float = 0.0) -> None:
        self.text = text
        self.delay = delay
        self.calls: list[dict] = []

    async def generate_content(self, **kwargs):
        self.calls.append(kwargs)
        await asyncio.sleep(self.delay)
        return SimpleNamespace(text=self.text)


def _client(models: _FakeModels) -> SimpleNamespace:
    return SimpleNamespace(aio=SimpleNamespace(models=models))


@pytest.mark.anyio
async def test_generate_requests_json_output() -> None:
    models = _FakeModels('{"selected_clips": []}')
    model = GeminiModel(None, model="gemini-test", client=_client(models))

    assert await model.generate("pick clips") == '{"selected_clips": []}'
    call = models.calls[0]
    assert call["model"] == "gemini-test"
    assert call["contents"] == "pick clips"
    assert call["config"].response_mime_type == "application/json"


@pytest.mark.anyio
async def test_empty_response_becomes_empty_string() -> None:
    model = GeminiModel(None, client=_client(_FakeModels(None)))
    assert await model.generate("prompt") == ""


@pytest.mark.anyio
async def test_slow_call_times_out() -> None:
    model = GeminiModel(None, timeout_seconds=0.05, client=_client(_FakeModels("{}", delay=5)))
    with pytest.raises(asyncio.TimeoutError):
        await model.generate("prompt")


@pytest.mark.anyio
async def test_missing_api_key_raises() -> None:
    with pytest.raises(RuntimeError, match="GEMINI_API_KEY"):
        await GeminiModel(None).generate("prompt")
