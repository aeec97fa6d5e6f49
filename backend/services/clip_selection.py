"""Dual-pass (generate, then review) clip selection with a deterministic fallback."""

from __future__ import annotations

import logging
from typing import Awaitable, Callable

from models.clip import Clip, ReviewDisposition, Segment, SelectionResult
from models.errors import Failure, FailureKind
from models.job import ProjectMetadata
from services.ai_parsing import clip_to_dict, parse_review, parse_selected_clips
from services.errors import AIParseError
from services.prompts import build_generation_prompt, build_review_prompt
from services.settings import CONDENSED_TRANSCRIPT_WORDS, REVIEW_TRANSCRIPT_CHARS

logger = logging.getLogger(__name__)

GenerateCall = Callable[[str], Awaitable[str]]

FALLBACK_PLATFORMS = ["tiktok", "instagram", "youtube_shorts"]


class ClipSelectionEngine:
    """
    Pass 1 asks the model for candidate clips; pass 2 asks it, framed as an
    independent reviewer, to approve, refine or reject them. Approved and
    refined clips are kept; any shortfall against the requested count is filled
    from the highest-scoring segments.

    The engine makes at most two model calls per ``select`` and never retries.
    AI failures degrade to empty results; only a non-positive requested count
    raises.
    """

    def __init__(
        self,
        generate: GenerateCall,
        *,
        condensed_words: int = CONDENSED_TRANSCRIPT_WORDS,
        review_chars: int = REVIEW_TRANSCRIPT_CHARS,
    ) -> None:
        self._generate = generate
        self._condensed_words = condensed_words
        self._review_chars = review_chars

    async def select(
        self,
        segments: list[Segment],
        transcript: str,
        requested_count: int,
        directives: ProjectMetadata | None = None,
    ) -> SelectionResult:
        if requested_count <= 0:
            raise ValueError("requested_count must be positive")

        result = SelectionResult()

        # GENERATE
        candidates = await self._generate_candidates(segments, transcript, requested_count, directives, result)
        result.generated_count = len(candidates)

        # REVIEW
        kept: list[Clip] = []
        if candidates:
            kept = await self._review(candidates, transcript, directives, result)

        # ASSEMBLE
        valid = [clip for clip in kept if clip.is_valid]
        result.dropped_invalid = len(kept) - len(valid)
        if result.dropped_invalid:
            logger.warning("[clip_selection] Dropped %d clips with end_time <= start_time", result.dropped_invalid)
        final = valid[:requested_count]
        if len(final) < requested_count:
            fallback = fallback_clips(segments, requested_count - len(final))
            if fallback:
                logger.info(
                    "[clip_selection] %d AI clips kept; adding %d fallback clips",
                    len(final),
                    len(fallback),
                )
            final.extend(fallback)

        result.clips = final
        logger.info(
            "[clip_selection] Selected %d/%d clips (generated=%d approved=%d refined=%d rejected=%d fallback=%d)",
            len(final),
            requested_count,
            result.generated_count,
            result.approved_count,
            result.refined_count,
            result.rejected_count,
            result.fallback_count,
        )
        return result

    async def _generate_candidates(
        self,
        segments: list[Segment],
        transcript: str,
        requested_count: int,
        directives: ProjectMetadata | None,
        result: SelectionResult,
    ) -> list[Clip]:
        prompt = build_generation_prompt(
            condense_transcript(transcript, self._condensed_words),
            [_segment_summary(s) for s in segments],
            requested_count,
            directives,
        )
        text = await self._call("generate", prompt, result)
        if text is None:
            return []
        clips = parse_selected_clips(text)
        if clips is None:
            result.failures.append(AIParseError("Pass 1 response was not valid JSON").to_failure())
            return []
        return clips

    async def _review(
        self,
        candidates: list[Clip],
        transcript: str,
        directives: ProjectMetadata | None,
        result: SelectionResult,
    ) -> list[Clip]:
        prompt = build_review_prompt(
            [clip_to_dict(c) for c in candidates],
            transcript[: self._review_chars],
            directives,
        )
        text = await self._call("review", prompt, result)
        if text is None:
            return []
        parsed = parse_review(text)
        if parsed is None:
            result.failures.append(AIParseError("Pass 2 response was not valid JSON").to_failure())
            return []
        reviewed, summary = parsed
        result.approved_count = summary.approved_count
        result.refined_count = summary.refined_count
        result.rejected_count = summary.rejected_count
        approved = [r.clip for r in reviewed if r.disposition is ReviewDisposition.APPROVED]
        refined = [r.clip for r in reviewed if r.disposition is ReviewDisposition.REFINED]
        return approved + refined

    async def _call(self, stage: str, prompt: str, result: SelectionResult) -> str | None:
        try:
            return await self._generate(prompt)
        except Exception as exc:  # noqa: BLE001
            logger.error("[clip_selection] %s call failed: %s: %s", stage, type(exc).__name__, exc)
            result.failures.append(
                Failure(FailureKind.AI_TRANSPORT, f"{stage} call failed: {type(exc).__name__}: {exc}")
            )
            return None


def condense_transcript(transcript: str, max_words: int) -> str:
    return " ".join(transcript.split()[:max_words])


def fallback_clips(segments: list[Segment], count: int) -> list[Clip]:
    """
    Deterministic, non-AI clips from the top segments.

    Ordered strictly by heuristic score descending, ties broken by earlier start time.
    """
    if count <= 0:
        return []
    ranked = sorted(segments, key=lambda s: (-s.heuristic_score, s.start_time))
    return [_fallback_clip(segment) for segment in ranked[:count]]


def _fallback_clip(segment: Segment) -> Clip:
    return Clip(
        start_time=round(segment.start_time, 2),
        end_time=round(segment.end_time, 2),
        viral_score=max(1, min(10, round(segment.heuristic_score))),
        caption="Check out this moment!",
        hashtags=["viral", "fyp", "clips"],
        hook_line="You won't believe what happens next!",
        call_to_action="Follow for more!",
        target_platforms=list(FALLBACK_PLATFORMS),
        reasoning=f"Fallback selection based on heuristic score {segment.heuristic_score:.2f}",
        confidence_score=0.5,
        user_compliance_score=5,
        segment_text=segment.text,
        content_type="highlight",
        is_fallback=True,
    )


def _segment_summary(segment: Segment) -> dict:
    return {
        "start_time": segment.start_time,
        "end_time": segment.end_time,
        "heuristic_score": segment.heuristic_score,
        "text": segment.text[:300],
    }
