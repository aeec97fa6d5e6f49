from __future__ import annotations

from dataclasses import dataclass, field

from .errors import Failure


@dataclass
class ChunkTranscription:
    chunk_index: int
    start_time: float
    end_time: float
    text: str = ""
    error: Failure | None = None

    @property
    def ok(self) -> bool:
        return self.error is None


@dataclass
class Transcript:
    entries: list[ChunkTranscription] = field(default_factory=list)

    @property
    def texts(self) -> list[str]:
        return [entry.text for entry in self.entries]

    @property
    def full_text(self) -> str:
        # One position per chunk, failed chunks included as "".
        return " ".join(self.texts)

    @property
    def failures(self) -> list[Failure]:
        return [entry.error for entry in self.entries if entry.error is not None]

    @property
    def usable(self) -> bool:
        return any(entry.text.strip() for entry in self.entries)

    @property
    def duration(self) -> float:
        if not self.entries:
            return 0.0
        return max(entry.end_time for entry in self.entries)

    @property
    def caveats(self) -> list[str]:
        failed = len(self.failures)
        if not failed:
            return []
        return [f"{failed} of {len(self.entries)} chunks failed; transcription truncated"]
