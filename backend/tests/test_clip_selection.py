import json

import pytest

from models.clip import Segment
from models.errors import FailureKind
from models.job import ProjectMetadata
from services.clip_selection import ClipSelectionEngine, condense_transcript, fallback_clips


def _segment(index: int, start: float, score: float, length: float = 10.0) -> Segment:
    return Segment(
        index=index,
        start_time=start,
        end_time=start + length,
        duration=length,
        text=f"segment {index} text",
        heuristic_score=score,
    )


def _segments(count: int) -> list[Segment]:
    return [_segment(i, i * 10.0, float(count - i)) for i in range(count)]


class _ScriptedModel:
    """Returns canned responses in order; raises when a response is an exception."""

    def __init__(self, *responses: object) -> None:
        self._responses = list(responses)
        self.prompts: list[str] = []

    async def __call__(self, prompt: str) -> str:
        self.prompts.append(prompt)
        response = self._responses.pop(0)
        if isinstance(response, Exception):
            raise response
        return response


def _clip(start: float, end: float, **extra: object) -> dict:
    return {"start_time": start, "end_time": end, "caption": f"clip {start}", **extra}


@pytest.mark.anyio
async def test_both_calls_failing_still_yields_requested_count() -> None:
    model = _ScriptedModel(RuntimeError("quota"), RuntimeError("quota"))
    engine = ClipSelectionEngine(model)

    result = await engine.select(_segments(8), "some transcript", 5)

    assert len(result.clips) == 5
    assert all(c.is_fallback for c in result.clips)
    assert result.fallback_count == 5
    # No candidates means no review call.
    assert len(model.prompts) == 1
    assert [f.kind for f in result.failures] == [FailureKind.AI_TRANSPORT]


@pytest.mark.anyio
async def test_unparseable_generation_falls_back() -> None:
    model = _ScriptedModel("I could not find any clips, sorry.")
    result = await ClipSelectionEngine(model).select(_segments(3), "text", 2)

    assert len(result.clips) == 2
    assert result.failures[0].kind is FailureKind.AI_PARSE


def test_fallback_orders_by_score_then_earliest_start() -> None:
    segments = [
        _segment(0, 10.0, 3.0),
        _segment(1, 5.0, 9.0),
        _segment(2, 20.0, 1.0),
        _segment(3, 1.0, 9.0),
    ]
    clips = fallback_clips(segments, 2)

    assert [c.start_time for c in clips] == [1.0, 5.0]
    assert clips[0].reasoning.startswith("Fallback selection based on heuristic score")
    assert clips[0].hook_line == "You won't believe what happens next!"
    assert clips[0].call_to_action == "Follow for more!"
    assert fallback_clips(segments, 0) == []


@pytest.mark.anyio
async def test_approved_and_refined_clips_are_kept() -> None:
    generated = {"selected_clips": [_clip(0, 15), _clip(20, 40), _clip(50, 70)]}
    review = {
        "review_results": {
            "approved_clips": [_clip(0, 15)],
            "refined_clips": [_clip(22, 38, caption="tighter")],
            "rejected_clips": [_clip(50, 70)],
        }
    }
    model = _ScriptedModel(json.dumps(generated), "```json\n" + json.dumps(review) + "\n```")
    result = await ClipSelectionEngine(model).select(_segments(10), "transcript words", 2)

    assert [(c.start_time, c.end_time) for c in result.clips] == [(0.0, 15.0), (22.0, 38.0)]
    assert result.clips[1].caption == "tighter"
    assert result.fallback_count == 0
    assert (result.generated_count, result.approved_count, result.refined_count, result.rejected_count) == (
        3,
        1,
        1,
        1,
    )
    assert len(model.prompts) == 2


@pytest.mark.anyio
async def test_invalid_clips_are_dropped_and_backfilled() -> None:
    generated = {"selected_clips": [_clip(0, 10), _clip(30, 30)]}
    review = {"review_results": {"approved_clips": [_clip(0, 10), _clip(30, 30)], "refined_clips": [_clip(45, 40)]}}
    model = _ScriptedModel(json.dumps(generated), json.dumps(review))
    result = await ClipSelectionEngine(model).select(_segments(5), "transcript", 3)

    assert result.dropped_invalid == 2
    assert len(result.clips) == 3
    assert all(c.end_time > c.start_time for c in result.clips)
    assert result.clips[0].is_fallback is False
    assert result.fallback_count == 2


@pytest.mark.anyio
async def test_directives_and_condensed_transcript_reach_the_prompt() -> None:
    model = _ScriptedModel(json.dumps({"selected_clips": []}))
    project = ProjectMetadata(project_name="Cooking show", ai_prompt="only the knife skills")
    transcript = " ".join(f"word{i}" for i in range(800))

    await ClipSelectionEngine(model, condensed_words=500).select(_segments(3), transcript, 1, project)

    prompt = model.prompts[0]
    assert "only the knife skills" in prompt
    assert "word499" in prompt
    assert "word500" not in prompt


@pytest.mark.anyio
async def test_non_positive_request_raises() -> None:
    with pytest.raises(ValueError):
        await ClipSelectionEngine(_ScriptedModel()).select(_segments(3), "text", 0)


def test_condense_transcript_keeps_leading_words() -> None:
    assert condense_transcript("a b  c\nd e", 3) == "a b c"


@pytest.mark.anyio
async def test_malformed_numbers_and_summary_do_not_escape_select() -> None:
    generated = '{"selected_clips": [{"start_time": 1, "end_time": 20, "viral_score": NaN}]}'
    review = (
        '{"review_results": {"approved_clips": [{"start_time": 1, "end_time": 20, "viral_score": Infinity}],'
        ' "review_summary": {"recommendations": 5}}}'
    )
    result = await ClipSelectionEngine(_ScriptedModel(generated, review)).select(_segments(6), "transcript", 5)

    assert len(result.clips) == 5
    assert (result.clips[0].start_time, result.clips[0].end_time) == (1.0, 20.0)
    assert result.clips[0].viral_score == 5
    assert result.fallback_count == 4
