from dataclasses import dataclass, field


@dataclass(frozen=True)
class MediaInfo:
    duration_seconds: float
    size_bytes: int
    width: int = 0
    height: int = 0
    codec: str | None = None


@dataclass(frozen=True)
class SourceMedia:
    data: bytes = field(repr=False)
    mime_type: str
    info: MediaInfo
    filename: str = "source.mp4"

    @property
    def duration_seconds(self) -> float:
        return self.info.duration_seconds

    @property
    def size_bytes(self) -> int:
        return self.info.size_bytes


@dataclass
class Chunk:
    index: int                 # 0-based, contiguous
    start_time: float          # seconds from media start
    end_time: float
    duration: float            # end_time - start_time
    data: bytes = field(repr=False)
    size_bytes: int = 0
    mime_type: str = "audio/mpeg"

    @property
    def filename(self) -> str:
        ext = "mp3" if self.mime_type == "audio/mpeg" else "bin"
        return f"chunk_{self.index + 1}.{ext}"
