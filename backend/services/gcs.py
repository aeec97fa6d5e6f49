"""GCS helpers: object naming, the non-resumable upload path, and signed download URLs."""

import os
import re
from datetime import datetime, timedelta, timezone

from services.settings import DEFAULT_BUCKET

DOWNLOAD_EXPIRATION_SECONDS = 48 * 3600  # 48 hours

_UNSAFE = re.compile(r"[^A-Za-z0-9._-]+")


def get_bucket_name() -> str:
    """Bucket name from env or default."""
    return os.environ.get("GCS_BUCKET", "").strip() or DEFAULT_BUCKET


def object_name_for(job_id: str, filename: str) -> str:
    """Object path for a job's source media, e.g. "sources/abc123/talk.mp4"."""
    safe = _UNSAFE.sub("_", os.path.basename(filename)).strip("_") or "source"
    return f"sources/{job_id}/{safe}"


def upload_blob(
    blob_name: str,
    data: bytes,
    *,
    content_type: str = "video/mp4",
    bucket_name: str | None = None,
    access_token: str | None = None,
) -> str:
    """
    Upload raw bytes to a GCS object in one request (fallback when a resumable
    session cannot be opened). Returns the object name.

    :param blob_name: Object path in bucket, e.g. "sources/abc123/talk.mp4"
    :param data: Raw bytes to upload
    :param content_type: MIME type stored on the object
    :param bucket_name: GCS bucket; default from GCS_BUCKET env or "clipcaster-media"
    :param access_token: OAuth bearer to act as the user; default credentials when omitted
    """
    bucket = _client(access_token).bucket(bucket_name or get_bucket_name())
    blob = bucket.blob(blob_name)
    blob.upload_from_string(data, content_type=content_type)
    return blob_name


def generate_signed_url(
    blob_name: str,
    *,
    bucket_name: str | None = None,
    expiration_seconds: int = DOWNLOAD_EXPIRATION_SECONDS,
    method: str = "GET",
    service_account_email: str | None = None,
    access_token: str | None = None,
) -> str:
    """
    Generate a V4 signed URL for an uploaded object.

    Signing needs a service account. Without ``service_account_email`` the
    default credentials must be a service-account key (GOOGLE_APPLICATION_CREDENTIALS);
    user ADC cannot sign. With ``service_account_email`` and ``access_token`` the
    URL is signed remotely through IAM signBlob, so the token's principal needs
    roles/iam.serviceAccountTokenCreator on that account.

    :param blob_name: Object path in bucket, e.g. "sources/abc123/talk.mp4"
    :param bucket_name: GCS bucket; default from GCS_BUCKET env or "clipcaster-media"
    :param expiration_seconds: URL validity in seconds
    :param method: HTTP method for the signed URL ("GET" for download)
    :param service_account_email: Account to sign as via IAM signBlob
    :param access_token: OAuth bearer used for the signBlob call
    :return: Signed URL string
    """
    signing_token = access_token if service_account_email else None
    bucket = _client(signing_token).bucket(bucket_name or get_bucket_name())
    blob = bucket.blob(blob_name)
    expiration = datetime.now(timezone.utc) + timedelta(seconds=expiration_seconds)
    if service_account_email and access_token:
        return blob.generate_signed_url(
            expiration=expiration,
            method=method,
            version="v4",
            service_account_email=service_account_email,
            access_token=access_token,
        )
    return blob.generate_signed_url(expiration=expiration, method=method, version="v4")


def _client(access_token: str | None = None):
    """Storage client acting as the OAuth user when a token is given, else default credentials."""
    from google.cloud import storage

    if not access_token:
        return storage.Client()
    from google.oauth2.credentials import Credentials  # noqa: PLC0415

    return storage.Client(credentials=Credentials(token=access_token))
