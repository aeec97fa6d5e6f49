"""Tests for GCS object naming, single-request upload, and signed URL generation."""

import sys
from datetime import datetime, timezone
from unittest.mock import MagicMock, patch

from services.gcs import (
    DOWNLOAD_EXPIRATION_SECONDS,
    generate_signed_url,
    get_bucket_name,
    object_name_for,
    upload_blob,
)
from services.settings import DEFAULT_BUCKET


def _mock_storage() -> tuple[MagicMock, MagicMock, MagicMock, dict]:
    mock_blob = MagicMock()
    mock_bucket = MagicMock()
    mock_bucket.blob.return_value = mock_blob
    mock_client = MagicMock()
    mock_client.bucket.return_value = mock_bucket
    mock_storage = MagicMock()
    mock_storage.Client.return_value = mock_client
    # Satisfy "from google.cloud import storage" without real package
    mock_cloud = MagicMock()
    mock_cloud.storage = mock_storage
    mock_oauth2 = MagicMock()
    modules = {
        "google": MagicMock(),
        "google.cloud": mock_cloud,
        "google.cloud.storage": mock_storage,
        "google.oauth2": mock_oauth2,
        "google.oauth2.credentials": mock_oauth2.credentials,
    }
    return mock_storage, mock_bucket, mock_blob, modules


def test_get_bucket_name_default() -> None:
    with patch.dict("os.environ", {"GCS_BUCKET": ""}, clear=False):
        assert get_bucket_name() == DEFAULT_BUCKET


def test_get_bucket_name_strips_whitespace() -> None:
    with patch.dict("os.environ", {"GCS_BUCKET": "  my-bucket  "}, clear=False):
        assert get_bucket_name() == "my-bucket"


def test_object_name_is_scoped_to_job_and_sanitised() -> None:
    assert object_name_for("abc123", "talk.mp4") == "sources/abc123/talk.mp4"
    assert object_name_for("abc123", "../My Talk (final).mp4") == "sources/abc123/My_Talk_final_.mp4"
    assert object_name_for("abc123", "") == "sources/abc123/source"


def test_upload_blob_with_user_token() -> None:
    mock_storage, mock_bucket, mock_blob, modules = _mock_storage()

    with patch.dict(sys.modules, modules):
        name = upload_blob(
            "sources/abc123/talk.mp4",
            b"video-bytes",
            content_type="video/mp4",
            bucket_name="clipcaster-media",
            access_token="ya29.token",
        )

    assert name == "sources/abc123/talk.mp4"
    modules["google.oauth2.credentials"].Credentials.assert_called_once_with(token="ya29.token")
    mock_storage.Client.assert_called_once()
    assert "credentials" in mock_storage.Client.call_args[1]
    mock_bucket.blob.assert_called_once_with("sources/abc123/talk.mp4")
    mock_blob.upload_from_string.assert_called_once_with(b"video-bytes", content_type="video/mp4")


def test_upload_blob_without_token_uses_default_credentials() -> None:
    mock_storage, _, _, modules = _mock_storage()

    with patch.dict(sys.modules, modules):
        upload_blob("sources/abc123/talk.mp4", b"x", bucket_name="clipcaster-media")

    mock_storage.Client.assert_called_once_with()


def test_generate_signed_url_builds_correct_parameters() -> None:
    """Mock google.cloud.storage and assert generate_signed_url is called with correct params."""
    mock_storage, mock_bucket, mock_blob, modules = _mock_storage()
    mock_blob.generate_signed_url.return_value = "https://storage.example.com/signed"

    with patch.dict(sys.modules, modules):
        url = generate_signed_url(
            "sources/abc123/talk.mp4",
            bucket_name="clipcaster-media",
            expiration_seconds=3600,
            method="GET",
        )

    assert url == "https://storage.example.com/signed"
    mock_storage.Client.return_value.bucket.assert_called_once_with("clipcaster-media")
    mock_bucket.blob.assert_called_once_with("sources/abc123/talk.mp4")
    call_kw = mock_blob.generate_signed_url.call_args[1]
    assert call_kw["method"] == "GET"
    assert call_kw["version"] == "v4"
    now_utc = datetime.now(timezone.utc)
    assert abs((call_kw["expiration"] - now_utc).total_seconds() - 3600) < 5


def test_generate_signed_url_default_expiration_48h() -> None:
    _, _, mock_blob, modules = _mock_storage()

    with (
        patch.dict(sys.modules, modules),
        patch("services.gcs.get_bucket_name", return_value=DEFAULT_BUCKET),
    ):
        generate_signed_url("sources/abc123/talk.mp4")

    expiration = mock_blob.generate_signed_url.call_args[1]["expiration"]
    now_utc = datetime.now(timezone.utc)
    assert abs((expiration - now_utc).total_seconds() - DOWNLOAD_EXPIRATION_SECONDS) < 5


def test_generate_signed_url_signs_remotely_with_user_token() -> None:
    mock_storage, _, mock_blob, modules = _mock_storage()

    with patch.dict(sys.modules, modules):
        generate_signed_url(
            "sources/abc123/talk.mp4",
            bucket_name="clipcaster-media",
            service_account_email="signer@proj.iam.gserviceaccount.com",
            access_token="ya29.token",
        )

    modules["google.oauth2.credentials"].Credentials.assert_called_once_with(token="ya29.token")
    call_kw = mock_blob.generate_signed_url.call_args[1]
    assert call_kw["service_account_email"] == "signer@proj.iam.gserviceaccount.com"
    assert call_kw["access_token"] == "ya29.token"
    assert call_kw["version"] == "v4"
