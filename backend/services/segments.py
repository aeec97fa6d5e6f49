"""Structural segmentation of a flat transcript into scored candidate segments."""

from __future__ import annotations

import logging

from models.clip import Segment
from models.transcript import Transcript

logger = logging.getLogger(__name__)

WORDS_PER_SECOND = 2.5

VIRAL_KEYWORDS = [
    "insane", "crazy", "unbelievable", "oh my god", "no way",
    "let's go", "watch this", "biggest", "secret", "never",
    "first time", "challenge", "reveal", "shocking", "hack",
    "tip", "mistake", "worst", "best", "amazing", "incredible",
    "literally", "honestly", "seriously", "wait for it",
    "plot twist", "you won't believe", "game changer", "epic",
]

KEYWORD_WEIGHT = 5.0
PUNCTUATION_WEIGHT = 3.0
DENSITY_WEIGHT = 2.0


class SegmentHeuristic:
    """
    Divide the transcript's word stream into evenly sized, evenly timed segments.

    This does not re-analyse audio: segment times are synthetic, obtained by
    spreading the total duration evenly across groups. Scores are a cheap,
    deterministic signal used only for tie-breaks and fallback ranking.
    """

    def __init__(self, *, keywords: list[str] | None = None) -> None:
        self._keywords = [k.lower() for k in (keywords or VIRAL_KEYWORDS)]

    def segment(
        self,
        transcript: Transcript | str,
        target_segment_count: int,
        *,
        total_duration: float | None = None,
    ) -> list[Segment]:
        if target_segment_count <= 0:
            raise ValueError("target_segment_count must be positive")

        text = transcript.full_text if isinstance(transcript, Transcript) else transcript
        if total_duration is None and isinstance(transcript, Transcript) and transcript.duration > 0:
            total_duration = transcript.duration
        words = text.split()
        if not words:
            return []

        count = min(target_segment_count, len(words))
        duration = total_duration if total_duration and total_duration > 0 else len(words) / WORDS_PER_SECOND
        slot = duration / count
        mean_words = len(words) / count

        segments = []
        for index, (lo, hi) in enumerate(_even_bounds(len(words), count)):
            group = words[lo:hi]
            start = round(index * slot, 2)
            end = round(duration if index == count - 1 else (index + 1) * slot, 2)
            segment_text = " ".join(group)
            hits = self._keyword_hits(segment_text)
            exclamations = segment_text.count("!")
            questions = segment_text.count("?")
            segments.append(
                Segment(
                    index=index,
                    start_time=start,
                    end_time=end,
                    duration=round(end - start, 2),
                    text=segment_text,
                    heuristic_score=self._score(hits, exclamations, questions, len(group), mean_words),
                    word_count=len(group),
                    keyword_hits=hits,
                    exclamations=exclamations,
                    questions=questions,
                )
            )
        logger.info("[segments] %d words -> %d segments over %.1fs", len(words), len(segments), duration)
        return segments

    def _keyword_hits(self, text: str) -> int:
        lowered = text.lower()
        return sum(1 for kw in self._keywords if kw in lowered)

    @staticmethod
    def _score(hits: int, exclamations: int, questions: int, word_count: int, mean_words: float) -> float:
        # Normalise: 3+ keyword hits, 3+ ! or ? marks, and a full-size group each saturate.
        keyword_score = min(hits / 3.0, 1.0)
        punctuation_score = min((exclamations + questions) / 3.0, 1.0)
        density_score = min(word_count / mean_words, 1.0) if mean_words else 0.0
        score = (
            keyword_score * KEYWORD_WEIGHT
            + punctuation_score * PUNCTUATION_WEIGHT
            + density_score * DENSITY_WEIGHT
        )
        return round(max(0.0, min(score, 10.0)), 2)


def _even_bounds(total: int, groups: int) -> list[tuple[int, int]]:
    """Split ``range(total)`` into ``groups`` contiguous runs differing by at most one item."""
    base, extra = divmod(total, groups)
    bounds = []
    lo = 0
    for i in range(groups):
        hi = lo + base + (1 if i < extra else 0)
        bounds.append((lo, hi))
        lo = hi
    return bounds
