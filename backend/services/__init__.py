from .gcs import generate_signed_url, get_bucket_name
from .store import jobs

__all__ = ["jobs", "generate_signed_url", "get_bucket_name"]
