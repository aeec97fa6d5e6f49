"""Parsing boundary for generative-model responses: JSON-in-text, maybe fenced."""

from __future__ import annotations

import json
import logging
import math
import re
from typing import Any

from models.clip import Clip, ReviewDisposition, ReviewedClip, ReviewSummary

logger = logging.getLogger(__name__)

_FENCE = re.compile(r"```(?:json|JSON)?\s*\n?")


def parse_json_object(text: str | None) -> dict[str, Any] | None:
    """
    Best-effort extraction of a JSON object from model output.

    Markdown code fences are stripped first; if the remainder still does not
    parse, the outermost ``{...}`` span is tried. Returns None instead of raising.
    """
    if not text:
        return None
    cleaned = _FENCE.sub("", text).strip()
    for candidate in (cleaned, _outermost_object(cleaned)):
        if not candidate:
            continue
        try:
            parsed = json.loads(candidate)
        except json.JSONDecodeError:
            continue
        if isinstance(parsed, dict):
            return parsed
    logger.warning("[ai_parsing] No JSON object in model response (%d chars): %.120s", len(text), text)
    return None


def _outermost_object(text: str) -> str | None:
    start = text.find("{")
    end = text.rfind("}")
    if start == -1 or end <= start:
        return None
    return text[start : end + 1]


def parse_selected_clips(text: str | None) -> list[Clip] | None:
    """Pass-1 response ``{"selected_clips": [...]}``; None when unparseable."""
    parsed = parse_json_object(text)
    if parsed is None:
        return None
    raw = parsed.get("selected_clips")
    if not isinstance(raw, list):
        logger.warning("[ai_parsing] selected_clips missing; keys=%s", list(parsed.keys()))
        return None
    return [clip for clip in (clip_from_dict(item) for item in raw) if clip is not None]


def parse_review(text: str | None) -> tuple[list[ReviewedClip], ReviewSummary] | None:
    """Pass-2 response ``{"review_results": {...}}``; None when unparseable."""
    parsed = parse_json_object(text)
    if parsed is None:
        return None
    results = parsed.get("review_results")
    if not isinstance(results, dict):
        logger.warning("[ai_parsing] review_results missing; keys=%s", list(parsed.keys()))
        return None

    reviewed: list[ReviewedClip] = []
    for key, disposition in (
        ("approved_clips", ReviewDisposition.APPROVED),
        ("refined_clips", ReviewDisposition.REFINED),
        ("rejected_clips", ReviewDisposition.REJECTED),
    ):
        items = results.get(key) or []
        if not isinstance(items, list):
            continue
        for item in items:
            clip = clip_from_dict(item)
            if clip is not None:
                reviewed.append(ReviewedClip(clip=clip, disposition=disposition))

    raw_summary = results.get("review_summary")
    raw_summary = raw_summary if isinstance(raw_summary, dict) else {}
    summary = ReviewSummary(
        approved_count=sum(1 for r in reviewed if r.disposition is ReviewDisposition.APPROVED),
        refined_count=sum(1 for r in reviewed if r.disposition is ReviewDisposition.REFINED),
        rejected_count=sum(1 for r in reviewed if r.disposition is ReviewDisposition.REJECTED),
        overall_quality_score=_as_float(raw_summary.get("overall_quality_score")),
        recommendations=_str_list(raw_summary.get("recommendations")),
    )
    return reviewed, summary


def clip_from_dict(item: Any) -> Clip | None:
    """Normalise one model-produced clip: clamp scores, round times. None if unusable."""
    if not isinstance(item, dict):
        return None
    start = _as_float(item.get("start_time"))
    end = _as_float(item.get("end_time"))
    if start is None or end is None:
        return None
    viral = _as_float(item.get("viral_score"))
    confidence = _as_float(item.get("confidence_score"))
    compliance = _as_float(item.get("user_compliance_score"))
    platforms = item.get("target_platforms") or item.get("platforms") or []
    return Clip(
        start_time=round(start, 2),
        end_time=round(end, 2),
        viral_score=_clamp_int(viral, 1, 10, default=5),
        caption=str(item.get("caption") or ""),
        hashtags=_str_list(item.get("hashtags")),
        hook_line=str(item.get("hook_line") or ""),
        call_to_action=str(item.get("call_to_action") or ""),
        target_platforms=_str_list(platforms),
        reasoning=str(item.get("reasoning") or ""),
        confidence_score=round(min(max(confidence if confidence is not None else 0.5, 0.0), 1.0), 2),
        user_compliance_score=_clamp_int(compliance, 1, 10, default=5),
        segment_text=str(item.get("segment_text") or ""),
        content_type=str(item.get("content_type") or ""),
    )


def clip_to_dict(clip: Clip) -> dict[str, Any]:
    return {
        "start_time": clip.start_time,
        "end_time": clip.end_time,
        "duration": clip.duration,
        "viral_score": clip.viral_score,
        "content_type": clip.content_type,
        "caption": clip.caption,
        "hashtags": clip.hashtags,
        "hook_line": clip.hook_line,
        "call_to_action": clip.call_to_action,
        "platforms": clip.target_platforms,
        "segment_text": clip.segment_text,
        "reasoning": clip.reasoning,
        "confidence_score": clip.confidence_score,
        "user_compliance_score": clip.user_compliance_score,
    }


def _as_float(value: Any) -> float | None:
    if isinstance(value, bool):
        return None
    try:
        number = float(value)
    except (TypeError, ValueError):
        return None
    # json.loads accepts NaN and Infinity.
    return number if math.isfinite(number) else None


def _clamp_int(value: float | None, lo: int, hi: int, *, default: int) -> int:
    if value is None:
        return default
    return int(min(max(round(value), lo), hi))


def _str_list(value: Any) -> list[str]:
    if isinstance(value, str):
        return [value]
    if not isinstance(value, list):
        return []
    return [str(v) for v in value if v]
