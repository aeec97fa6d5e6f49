from dataclasses import dataclass

from .errors import Failure


@dataclass
class UploadSession:
    upload_url: str
    total_bytes: int
    chunk_size_bytes: int
    bytes_confirmed: int = 0   # advanced only by a server acknowledgement

    @property
    def complete(self) -> bool:
        return self.bytes_confirmed >= self.total_bytes


@dataclass
class UploadResult:
    ok: bool
    remote_id: str | None = None
    session: UploadSession | None = None
    failure: Failure | None = None
    fallback_required: bool = False   # resumable init timed out, use the simple path
