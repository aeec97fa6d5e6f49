from dataclasses import dataclass, field
from enum import Enum

from .errors import Failure


@dataclass
class Segment:
    index: int
    start_time: float
    end_time: float
    duration: float
    text: str
    heuristic_score: float     # 0.0-10.0, tie-break / fallback ranking only
    word_count: int = 0
    keyword_hits: int = 0
    exclamations: int = 0
    questions: int = 0


class ReviewDisposition(str, Enum):
    APPROVED = "approved"
    REFINED = "refined"
    REJECTED = "rejected"


@dataclass
class Clip:
    start_time: float
    end_time: float
    viral_score: int = 5                   # 1-10
    caption: str = ""
    hashtags: list[str] = field(default_factory=list)
    hook_line: str = ""
    call_to_action: str = ""
    target_platforms: list[str] = field(default_factory=list)
    reasoning: str = ""
    confidence_score: float = 0.5          # 0.0-1.0
    user_compliance_score: int = 5         # 1-10
    segment_text: str = ""
    content_type: str = ""
    is_fallback: bool = False

    @property
    def duration(self) -> float:
        return round(self.end_time - self.start_time, 2)

    @property
    def is_valid(self) -> bool:
        return self.end_time > self.start_time


@dataclass
class ReviewedClip:
    clip: Clip
    disposition: ReviewDisposition


@dataclass
class ReviewSummary:
    approved_count: int = 0
    refined_count: int = 0
    rejected_count: int = 0
    overall_quality_score: float | None = None
    recommendations: list[str] = field(default_factory=list)


@dataclass
class SelectionResult:
    clips: list[Clip] = field(default_factory=list)
    generated_count: int = 0
    approved_count: int = 0
    refined_count: int = 0
    rejected_count: int = 0
    dropped_invalid: int = 0
    failures: list[Failure] = field(default_factory=list)

    @property
    def fallback_count(self) -> int:
        return sum(1 for clip in self.clips if clip.is_fallback)
