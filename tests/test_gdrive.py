"""Tests for sharing export CSVs through Google Drive."""

from datetime import date
from unittest.mock import MagicMock, patch

import pytest

from shelfwatch.config import GDriveConfig
from shelfwatch.gdrive import CSV_MIMETYPE, DriveCsvShare, shared_name

SHARED_ON = date(2025, 1, 15)


def _mock_googleapiclient():
    """Return a mock googleapiclient.http and a patcher installing it."""
    mock_http = MagicMock()
    mock_api = MagicMock()
    mock_api.http = mock_http
    return mock_http, patch.dict("sys.modules", {
        "googleapiclient": mock_api,
        "googleapiclient.http": mock_http,
    })


def _mock_google_auth(credentials_module):
    return patch.dict("sys.modules", {
        "google": MagicMock(),
        "google.auth": MagicMock(),
        "google.auth.transport": MagicMock(),
        "google.auth.transport.requests": MagicMock(),
        "google.oauth2": MagicMock(),
        "google.oauth2.credentials": credentials_module,
        "google_auth_oauthlib": MagicMock(),
        "google_auth_oauthlib.flow": MagicMock(),
        "googleapiclient": MagicMock(),
        "googleapiclient.discovery": MagicMock(),
    })


@pytest.fixture
def export_csv(tmp_path):
    path = tmp_path / "filtered_expiry_data.csv"
    path.write_text('"Product Name","Barcode","Expiry Date","Days Left"\n', encoding="utf-8")
    return path


def _share_with_service(file_id, tmp_path, folder_id=""):
    share = DriveCsvShare(
        credentials_path=tmp_path / "creds.json",
        token_path=tmp_path / "token.json",
        folder_id=folder_id,
    )
    service = MagicMock()
    files = service.files.return_value
    files.create.return_value.execute.return_value = {"id": file_id}
    share._service = service
    return share, files


def test_shared_name():
    assert shared_name("/tmp/filtered_expiry_data.csv", SHARED_ON) == (
        "filtered_expiry_data_20250115.csv"
    )


def test_from_config(tmp_path):
    config = GDriveConfig(
        credentials_path=str(tmp_path / "creds.json"),
        token_path=str(tmp_path / "token.json"),
        folder_id="folder123",
    )
    share = DriveCsvShare.from_config(config)
    assert share._credentials_path == tmp_path / "creds.json"
    assert share._token_path == tmp_path / "token.json"
    assert share._folder_id == "folder123"


def test_upload_missing_file(tmp_path):
    share, _ = _share_with_service("unused", tmp_path)
    with pytest.raises(FileNotFoundError, match="ファイルが見つかりません"):
        share.upload_csv(tmp_path / "missing.csv")


def test_upload_csv(export_csv, tmp_path):
    share, files = _share_with_service("file_abc123", tmp_path, folder_id="folder123")
    mock_http, patcher = _mock_googleapiclient()
    with patcher:
        file_id = share.upload_csv(export_csv, shared_on=SHARED_ON)

    assert file_id == "file_abc123"
    body = files.create.call_args.kwargs["body"]
    assert body == {
        "name": "filtered_expiry_data_20250115.csv",
        "parents": ["folder123"],
    }
    assert mock_http.MediaFileUpload.call_args.kwargs["mimetype"] == CSV_MIMETYPE


def test_upload_without_folder(export_csv, tmp_path):
    share, files = _share_with_service("file_xyz", tmp_path)
    _, patcher = _mock_googleapiclient()
    with patcher:
        share.upload_csv(export_csv, shared_on=SHARED_ON)

    assert "parents" not in files.create.call_args.kwargs["body"]


def test_folder_override(export_csv, tmp_path):
    share, files = _share_with_service("file_456", tmp_path, folder_id="default_folder")
    _, patcher = _mock_googleapiclient()
    with patcher:
        share.upload_csv(export_csv, folder_id="override_folder", shared_on=SHARED_ON)

    assert files.create.call_args.kwargs["body"]["parents"] == ["override_folder"]


def test_missing_client_secrets(tmp_path):
    """FileNotFoundError when neither a token nor client secrets exist."""
    share = DriveCsvShare(
        credentials_path=tmp_path / "nonexistent.json",
        token_path=tmp_path / "token.json",
    )
    with _mock_google_auth(MagicMock()):
        with pytest.raises(FileNotFoundError, match="クレデンシャル"):
            share._drive()


def test_cached_valid_token_skips_consent(tmp_path):
    token = tmp_path / "token.json"
    token.write_text("{}")
    share = DriveCsvShare(credentials_path=tmp_path / "nonexistent.json", token_path=token)

    credentials_module = MagicMock()
    creds = credentials_module.Credentials.from_authorized_user_file.return_value
    creds.valid = True
    with _mock_google_auth(credentials_module):
        assert share._authorize() is creds
    assert token.read_text() == "{}"


def test_expired_token_refreshed_and_saved(tmp_path):
    token = tmp_path / "token.json"
    token.write_text("{}")
    share = DriveCsvShare(credentials_path=tmp_path / "nonexistent.json", token_path=token)

    credentials_module = MagicMock()
    creds = credentials_module.Credentials.from_authorized_user_file.return_value
    creds.valid = False
    creds.expired = True
    creds.refresh_token = "refresh"
    creds.to_json.return_value = '{"token": "new"}'
    with _mock_google_auth(credentials_module):
        share._authorize()

    creds.refresh.assert_called_once()
    assert token.read_text() == '{"token": "new"}'
